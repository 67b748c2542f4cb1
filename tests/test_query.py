"""Tests for tag query compilation, status vocabulary and matching."""

import pytest

from thoughtline.errors import ErrorCode, QuerySyntaxError
from thoughtline.parser.outline import parse_outline
from thoughtline.parser.status import (
    parse_status_filter,
    resolve_status_alias,
    resolve_status_name,
    status_from_char,
)
from thoughtline.query.ast import (
    EMPTY_QUERY,
    NestedNode,
    OrNode,
    TagNode,
    compile_query,
    format_query,
    query_tags,
)
from thoughtline.query.matcher import QueryFilters, format_child_item, match_query


def _tree(text: str):
    return parse_outline(text.splitlines())


# ─────────────────────────────────────────────────────────────────────────────
# Status vocabulary
# ─────────────────────────────────────────────────────────────────────────────


class TestStatus:
    """Checkbox characters, names and aliases."""

    def test_status_from_char(self):
        assert status_from_char("x") == "done"
        assert status_from_char("X") == "done"
        assert status_from_char("/") == "in_progress"
        assert status_from_char("!") == "blocked"
        assert status_from_char("-") == "cancelled"
        assert status_from_char("?") == "open"
        assert status_from_char("~") == "open"

    def test_aliases(self):
        assert resolve_status_alias("wip") == "/"
        assert resolve_status_alias("Complete") == "x"
        assert resolve_status_alias("space") == " "
        assert resolve_status_alias("prog") == "/"
        assert resolve_status_alias("zzz") is None

    def test_shared_prefix_takes_first_alias(self):
        assert resolve_status_alias("c") == "x"
        assert resolve_status_alias("canc") == "-"
        assert resolve_status_alias("") is None

    def test_status_names(self):
        assert resolve_status_name("shipped") == "done"
        assert resolve_status_name("todo") == "open"
        assert resolve_status_name("stuck") == "blocked"

    def test_status_token_in_query(self):
        assert parse_status_filter("deploy status:wip now") == ("deploy now", "in_progress")
        assert parse_status_filter("  just text ") == ("just text", None)
        assert parse_status_filter("status:") == ("", None)


# ─────────────────────────────────────────────────────────────────────────────
# Query compilation
# ─────────────────────────────────────────────────────────────────────────────


class TestCompileQuery:
    """Query string grammar."""

    def test_single_tag(self):
        assert compile_query("#meeting") == TagNode("#meeting")
        assert compile_query("meeting") == TagNode("#meeting")

    def test_or(self):
        assert compile_query("#a, #b") == OrNode(("#a", "#b"))

    def test_duplicate_or_collapses(self):
        assert compile_query("#a,#a") == TagNode("#a")

    def test_nested(self):
        node = compile_query("#proj1,#proj2 > #meeting")
        assert node == NestedNode(OrNode(("#proj1", "#proj2")), TagNode("#meeting"))

    def test_nesting_is_right_associative(self):
        node = compile_query("#a > #b > #c")
        assert node == NestedNode(TagNode("#a"), NestedNode(TagNode("#b"), TagNode("#c")))

    @pytest.mark.parametrize("query", ["", "   ", ",,", "#"])
    def test_empty_queries_match_nothing(self, query):
        assert compile_query(query) == EMPTY_QUERY

    @pytest.mark.parametrize("query", ["#a >", "> #b", "#a > > #b", "#a b"])
    def test_syntax_errors(self, query):
        with pytest.raises(QuerySyntaxError) as exc_info:
            compile_query(query)
        assert exc_info.value.code == ErrorCode.QUERY_SYNTAX
        assert "suggestion" in exc_info.value.details

    def test_format_and_tags(self):
        node = compile_query("proj1,#proj2>#meeting")
        assert format_query(node) == "#proj1,#proj2 > #meeting"
        assert query_tags(node) == ["#proj1", "#proj2", "#meeting"]


# ─────────────────────────────────────────────────────────────────────────────
# Matching
# ─────────────────────────────────────────────────────────────────────────────


class TestMatchQuery:
    """Walking parsed trees with a compiled query."""

    def test_meeting_subject_and_child(self):
        tree = _tree("- #meeting Ada: standup\n  - blocked on db\n")
        results = match_query(tree, compile_query("#meeting"), QueryFilters(include_children=True))
        assert len(results) == 1
        result = results[0]
        assert result.subject == "Ada"
        assert result.text == "standup"
        assert result.children == ["- blocked on db"]

    def test_children_omitted_by_default(self):
        tree = _tree("- #meeting Ada: standup\n  - blocked on db\n")
        assert match_query(tree, compile_query("#meeting"))[0].children == []

    def test_nested_or_parent(self):
        tree = _tree(
            "- #proj1 Launch\n"
            "  - #meeting kickoff\n"
            "- #meeting unrelated\n"
        )
        results = match_query(tree, compile_query("#proj1,#proj2 > #meeting"))
        assert len(results) == 1
        assert results[0].tag == "#meeting"
        assert results[0].line == 1

    def test_nested_reports_every_descendant(self):
        tree = _tree(
            "- #p\n"
            "  - plain\n"
            "    - #c deep\n"
            "  - #c shallow\n"
        )
        results = match_query(tree, compile_query("#p > #c"))
        assert [r.line for r in results] == [2, 3]

    def test_nested_never_reports_the_parent_item(self):
        tree = _tree("- #p #c both\n  - plain\n")
        assert match_query(tree, compile_query("#p > #c")) == []

    def test_or_is_commutative(self):
        tree = _tree("- #a one\n- #b two\n  - #a #b three\n- #c four\n")
        left = match_query(tree, compile_query("#a,#b"))
        right = match_query(tree, compile_query("#b,#a"))
        assert [r.line for r in left] == [r.line for r in right] == [0, 1, 2]

    def test_results_in_document_order(self):
        tree = _tree("- #t a\n  - #t b\n- #t c\n")
        assert [r.line for r in match_query(tree, compile_query("#t"))] == [0, 1, 2]

    def test_empty_query_matches_nothing(self):
        assert match_query(_tree("- #t a\n"), compile_query("")) == []

    def test_tag_after_punctuation_matches(self):
        tree = _tree("- call vendor (#todo soon)\n- x#todo#idea\n")
        assert [r.line for r in match_query(tree, compile_query("#todo"))] == [0, 1]
        assert [r.line for r in match_query(tree, compile_query("#idea"))] == [1]

    def test_path_is_stamped(self):
        results = match_query(_tree("- #t a"), compile_query("#t"), QueryFilters(path="x.md"))
        assert results[0].path == "x.md"


class TestFilters:
    """Subject, text, status and parent-context filters."""

    def test_subject_filter(self):
        tree = _tree("- #meeting Ada: one\n- #meeting Bob: two\n- #meeting no subject\n")
        results = match_query(tree, compile_query("#meeting"), QueryFilters(subject="ada"))
        assert [r.line for r in results] == [0]

    def test_text_filter_searches_children(self):
        tree = _tree("- #idea parser\n  - use a stack\n- #idea other\n")
        results = match_query(tree, compile_query("#idea"), QueryFilters(text="STACK"))
        assert [r.line for r in results] == [0]

    def test_status_filter(self):
        tree = _tree("- [x] #todo a\n- [ ] #todo b\n- [/] #todo c\n- #todo plain\n")
        node = compile_query("#todo")
        assert [r.line for r in match_query(tree, node, QueryFilters(status="done"))] == [0]
        assert [r.line for r in match_query(tree, node, QueryFilters(status="open"))] == [1]
        assert [r.line for r in match_query(tree, node, QueryFilters(status="wip"))] == [2]
        assert len(match_query(tree, node, QueryFilters(status="all"))) == 4

    def test_unknown_status_rejected(self):
        with pytest.raises(ValueError):
            QueryFilters(status="bogus")

    def test_parent_context_from_tagless_ancestors(self):
        tree = _tree(
            "- Project X\n"
            "  - Week 1\n"
            "    - #todo a\n"
            "- #meeting standup\n"
            "  - #todo b\n"
        )
        results = match_query(tree, compile_query("#todo"))
        assert results[0].parent_context == "Project X\nWeek 1"
        assert results[1].parent_context is None

        filtered = match_query(tree, compile_query("#todo"), QueryFilters(parent_context="week 1"))
        assert [r.line for r in filtered] == [2]

    def test_format_child_item(self):
        tree = _tree("- root\n  * a\n    - b\n")
        assert format_child_item(tree[0].children[0]) == "* a\n  - b"
