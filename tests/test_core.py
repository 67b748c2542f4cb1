"""Tests for the async service operations in thoughtline.core."""

import os
from pathlib import Path

import pytest

from conftest import TAGS_NOTE, write_note
from thoughtline import core
from thoughtline.errors import (
    AmbiguousMatchError,
    ErrorCode,
    NoteNotFound,
    QuerySyntaxError,
    ThoughtlineError,
)

MONDAY = "Daily Notes/2025-01-06.md"
TUESDAY = "Daily Notes/2025-01-07.md"


# ─────────────────────────────────────────────────────────────────────────────
# query_tag
# ─────────────────────────────────────────────────────────────────────────────


class TestQueryTag:
    """Vault-wide tag queries."""

    @pytest.mark.asyncio
    async def test_across_vault(self, sample_vault):
        response = await core.query_tag("#meeting")
        assert response.query == "#meeting"
        assert response.tags == ["#meeting"]
        assert [(m.path, m.line) for m in response.matches] == [(MONDAY, 1), (TUESDAY, 3)]
        assert response.documents_scanned == 3
        assert response.skipped == []

    @pytest.mark.asyncio
    async def test_response_lists_query_tags(self, sample_vault):
        response = await core.query_tag("idea,#meeting > todo")
        assert response.query == "#idea,#meeting > #todo"
        assert response.tags == ["#idea", "#meeting", "#todo"]

    @pytest.mark.asyncio
    async def test_subject_filter(self, sample_vault):
        response = await core.query_tag("#meeting", subject="ada")
        assert [m.subject for m in response.matches] == ["Ada"]
        assert response.matches[0].children == ["- blocked on db"]

    @pytest.mark.asyncio
    async def test_status_and_parent_context(self, sample_vault):
        response = await core.query_tag("#todo", status="open")
        assert len(response.matches) == 1
        match = response.matches[0]
        assert match.line == 4
        assert match.parent_context == "Project X"
        assert match.children == ["- write notes"]

    @pytest.mark.asyncio
    async def test_status_token_in_text_query(self, sample_vault):
        response = await core.query_tag("#todo", query="status:done")
        assert [m.line for m in response.matches] == [6]

    @pytest.mark.asyncio
    async def test_without_children(self, sample_vault):
        response = await core.query_tag("#todo", include_children=False)
        assert all(m.children == [] for m in response.matches)

    @pytest.mark.asyncio
    async def test_date(self, sample_vault):
        response = await core.query_tag("#todo", date="2025-01-06")
        assert len(response.matches) == 2
        assert response.documents_scanned == 1

    @pytest.mark.asyncio
    async def test_missing_daily_note_is_skipped(self, sample_vault):
        response = await core.query_tag("#todo", date="2025-01-08")
        assert response.matches == []
        assert response.skipped == ["Daily Notes/2025-01-08.md"]

    @pytest.mark.asyncio
    async def test_path(self, sample_vault):
        response = await core.query_tag("#idea", path="notes/plan.md")
        assert [m.text for m in response.matches] == ["use a stack"]

    @pytest.mark.asyncio
    async def test_missing_path(self, sample_vault):
        with pytest.raises(NoteNotFound):
            await core.query_tag("#idea", path="notes/none.md")

    @pytest.mark.asyncio
    async def test_bad_date(self, sample_vault):
        with pytest.raises(ThoughtlineError) as exc_info:
            await core.query_tag("#todo", date="someday")
        assert exc_info.value.code == ErrorCode.INVALID_DATE

    @pytest.mark.asyncio
    async def test_bad_status(self, sample_vault):
        with pytest.raises(ThoughtlineError) as exc_info:
            await core.query_tag("#todo", status="bogus")
        assert exc_info.value.code == ErrorCode.INVALID_ARGUMENT

    @pytest.mark.asyncio
    async def test_syntax_error(self, sample_vault):
        with pytest.raises(QuerySyntaxError):
            await core.query_tag("#todo >")

    @pytest.mark.asyncio
    async def test_unreadable_document_skipped(self, sample_vault):
        (sample_vault / "broken.md").write_bytes(b"- #meeting \xff\xfe\n")
        response = await core.query_tag("#meeting")
        assert response.skipped == ["broken.md"]
        assert len(response.matches) == 2

    @pytest.mark.asyncio
    async def test_changed_note_is_reparsed(self, sample_vault):
        first = await core.query_tag("#idea")
        assert len(first.matches) == 1

        note = write_note(sample_vault, "notes/plan.md", "- #idea one\n- #idea two\n")
        stat = note.stat()
        os.utime(note, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))

        second = await core.query_tag("#idea")
        assert [m.text for m in second.matches] == ["one", "two"]

    @pytest.mark.asyncio
    async def test_edits_do_not_grow_cache(self, sample_vault):
        note = sample_vault / "notes" / "plan.md"
        for i in range(5):
            write_note(sample_vault, "notes/plan.md", f"- #idea version {i}\n")
            stat = note.stat()
            os.utime(note, ns=(stat.st_atime_ns, stat.st_mtime_ns + (i + 1) * 1_000_000_000))
            response = await core.query_tag("#idea", path="notes/plan.md")
            assert [m.text for m in response.matches] == [f"version {i}"]

        assert len(core.get_cache()) == 1

    @pytest.mark.asyncio
    async def test_repeated_query_hits_cache(self, sample_vault):
        await core.query_tag("#meeting")
        misses = core.get_cache().misses
        await core.query_tag("#meeting")
        assert core.get_cache().misses == misses
        assert core.get_cache().hits >= 3

    @pytest.mark.asyncio
    async def test_scan_timeout(self, sample_vault, monkeypatch):
        monkeypatch.setattr(core, "SCAN_TIMEOUT_SECONDS", 0)
        with pytest.raises(ThoughtlineError) as exc_info:
            await core.query_tag("#meeting")
        assert exc_info.value.code == ErrorCode.SCAN_TIMEOUT

    @pytest.mark.asyncio
    async def test_ignored_folders_from_config(self, sample_vault):
        (sample_vault / ".tlconfig").write_text("ignore_folders:\n  - notes\n")
        core.reset_state()
        response = await core.query_tag("#idea")
        assert response.matches == []


# ─────────────────────────────────────────────────────────────────────────────
# Tags, notes and structure
# ─────────────────────────────────────────────────────────────────────────────


class TestListTags:
    """Tag usage counts."""

    @pytest.mark.asyncio
    async def test_counts_notes_per_tag(self, sample_vault):
        write_note(sample_vault, "Config/Tags.md", TAGS_NOTE)
        tags = await core.list_tags()
        assert [(t.tag, t.count) for t in tags] == [
            ("#meeting", 3),
            ("#todo", 2),
            ("#^ship1", 1),
            ("#idea", 1),
        ]
        assert tags[0].description == "Notes from a meeting"
        assert tags[1].is_task_tag
        assert not tags[0].is_task_tag

    @pytest.mark.asyncio
    async def test_tags_outside_list_items_count_once_per_note(self, tmp_vault):
        write_note(tmp_vault, "a.md", "# Heading #proj\n\nSome #proj text.\n- #proj item\n")
        write_note(tmp_vault, "b.md", "- #proj again\n")
        tags = await core.list_tags()
        assert [(t.tag, t.count) for t in tags] == [("#proj", 2)]


class TestGetNote:
    """Reading notes."""

    @pytest.mark.asyncio
    async def test_by_date(self, sample_vault):
        note = await core.get_note(date="2025-01-06")
        assert note.path == MONDAY
        assert note.content.startswith("# Monday")

    @pytest.mark.asyncio
    async def test_by_path(self, sample_vault):
        note = await core.get_note(path="notes/plan.md")
        assert note.content == "- #idea use a stack"

    @pytest.mark.asyncio
    async def test_requires_path_or_date(self, sample_vault):
        with pytest.raises(ThoughtlineError) as exc_info:
            await core.get_note()
        assert exc_info.value.code == ErrorCode.INVALID_ARGUMENT

    @pytest.mark.asyncio
    async def test_missing(self, sample_vault):
        with pytest.raises(NoteNotFound):
            await core.get_note(path="nope.md")


class TestGetTagStructure:
    """Line-numbered trees under one item."""

    @pytest.mark.asyncio
    async def test_single_match(self, sample_vault):
        structure = await core.get_tag_structure("#meeting", date="2025-01-06")
        assert structure.path == MONDAY
        assert structure.line == 1
        assert structure.text == "#meeting Ada: standup"
        assert [(c.line, c.text, c.indent) for c in structure.children] == [(2, "blocked on db", 0)]

    @pytest.mark.asyncio
    async def test_query_narrows_down(self, sample_vault):
        structure = await core.get_tag_structure("#todo", query="ship", path=MONDAY)
        assert structure.line == 4
        child = structure.children[0]
        assert child.text == "write notes"
        assert not child.is_task

    @pytest.mark.asyncio
    async def test_ambiguous(self, sample_vault):
        with pytest.raises(AmbiguousMatchError) as exc_info:
            await core.get_tag_structure("#todo", date="2025-01-06")
        assert exc_info.value.candidates == [
            'Line 4: "[ ] #todo ship release ^ship1"',
            'Line 6: "[x] #todo fix build"',
        ]

    @pytest.mark.asyncio
    async def test_no_match(self, sample_vault):
        with pytest.raises(ThoughtlineError) as exc_info:
            await core.get_tag_structure("#idea", date="2025-01-06")
        assert exc_info.value.code == ErrorCode.NO_MATCH

    @pytest.mark.asyncio
    async def test_requires_date_or_path(self, sample_vault):
        with pytest.raises(ThoughtlineError) as exc_info:
            await core.get_tag_structure("#todo")
        assert exc_info.value.code == ErrorCode.INVALID_ARGUMENT

    @pytest.mark.asyncio
    async def test_screenshot_children(self, tmp_vault: Path):
        write_note(tmp_vault, "shots.md", "- #shot demo\n  - ![[capture.png]]\n  - caption\n")
        structure = await core.get_tag_structure("#shot", path="shots.md")
        assert [c.is_screenshot for c in structure.children] == [True, False]


# ─────────────────────────────────────────────────────────────────────────────
# Backlinks and thoughts
# ─────────────────────────────────────────────────────────────────────────────


class TestBacklinks:
    """Lines linking to a note."""

    @pytest.mark.asyncio
    async def test_block_backlinks(self, sample_vault):
        entries = await core.find_backlinks(MONDAY, block_id="ship1")
        assert [(e.path, e.line) for e in entries] == [(TUESDAY, 0), (TUESDAY, 2)]
        assert entries[0].text == "- follow-up [[2025-01-06#^ship1]]"

    @pytest.mark.asyncio
    async def test_no_backlinks(self, sample_vault):
        assert await core.find_backlinks("notes/plan.md") == []

    @pytest.mark.asyncio
    async def test_missing_note(self, sample_vault):
        with pytest.raises(NoteNotFound):
            await core.find_backlinks("nope.md")


class TestThought:
    """Thought reconstruction over the vault."""

    @pytest.mark.asyncio
    async def test_with_backlinks(self, sample_vault):
        result = await core.thought(MONDAY, line=4)
        assert result.header == "- [ ] #todo ship release ^ship1"
        assert result.parents == ["Monday", "Project X"]
        assert [(s.role, s.path) for s in result.sections] == [("root", MONDAY), ("branch", TUESDAY)]
        assert result.sections[0].markdown == "- write notes"
        assert result.sections[1].markdown == "- notes drafted"
        assert [r.preview for r in result.references] == ["quick mention [[2025-01-06#^ship1]]"]

    @pytest.mark.asyncio
    async def test_by_block_id_without_backlinks(self, sample_vault):
        result = await core.thought(MONDAY, block_id="^ship1", include_backlinks=False)
        assert [s.role for s in result.sections] == ["root"]
        assert result.references == []

    @pytest.mark.asyncio
    async def test_search(self, sample_vault):
        result = await core.thought(MONDAY, line=4, search="drafted")
        assert [s.role for s in result.sections] == ["branch"]
        assert result.references == []

    @pytest.mark.asyncio
    async def test_leaf_without_block(self, sample_vault):
        result = await core.thought(MONDAY, line=6)
        assert result.sections == []
        assert result.header == "- [x] #todo fix build"
        assert result.message is not None

    @pytest.mark.asyncio
    async def test_missing_source(self, sample_vault):
        result = await core.thought("nope.md", line=0)
        assert result.error is not None


class TestVaultInfo:
    @pytest.mark.asyncio
    async def test_summary(self, sample_vault):
        info = await core.vault_info()
        assert info["vault_root"] == str(sample_vault)
        assert info["documents"] == 3
        assert info["daily_notes_folder"] == "Daily Notes"
        assert info["config_file"] is None
