"""Tag query language.

Grammar::

    Query   := Part (">" Part)*
    Part    := TagExpr ("," TagExpr)*
    TagExpr := "#"? identifier

Examples:
    "#meeting"                  -> TagNode("#meeting")
    "#proj1,#proj2"             -> OrNode(("#proj1", "#proj2"))
    "#proj1,#proj2 > #meeting"  -> NestedNode(OrNode(...), TagNode("#meeting"))
    "#a > #b > #c"              -> NestedNode(#a, NestedNode(#b, #c))

Empty input compiles to a node that matches nothing. Whitespace inside a tag
expression ("#a #b") and an empty operand of ">" ("#a >") raise
QuerySyntaxError instead: the intended tag cannot be recovered, and a query
that silently matches nothing would read as "no such items".
"""

from dataclasses import dataclass

from ..errors import QuerySyntaxError


@dataclass(frozen=True)
class TagNode:
    tag: str


@dataclass(frozen=True)
class OrNode:
    tags: tuple[str, ...]


@dataclass(frozen=True)
class NestedNode:
    parent: "TagQueryNode"
    child: "TagQueryNode"


TagQueryNode = TagNode | OrNode | NestedNode

# Matches nothing: real tags always carry at least one character after "#"
EMPTY_QUERY = TagNode("")


def normalize_tag(tag: str) -> str:
    """Ensure a tag starts with exactly one "#"."""
    tag = tag.strip()
    if not tag:
        return ""
    return "#" + tag.lstrip("#")


def _compile_part(query: str, part: str) -> TagQueryNode:
    tags: list[str] = []
    for expr in part.split(","):
        expr = expr.strip()
        if not expr:
            continue
        if any(ch.isspace() for ch in expr):
            raise QuerySyntaxError(query, f"whitespace inside tag expression {expr!r}")
        tag = normalize_tag(expr)
        if tag != "#" and tag not in tags:
            tags.append(tag)

    if not tags:
        return EMPTY_QUERY
    if len(tags) == 1:
        return TagNode(tags[0])
    return OrNode(tuple(tags))


def compile_query(query: str) -> TagQueryNode:
    """Compile a query string into an immutable query tree.

    Empty or meaningless input compiles to a node that matches nothing.

    Raises:
        QuerySyntaxError: On an empty operand of ">" or whitespace inside a
            tag expression.
    """
    normalized = (query or "").strip()
    if not normalized:
        return EMPTY_QUERY

    parts = [part.strip() for part in normalized.split(">")]
    if len(parts) > 1 and any(not part for part in parts):
        raise QuerySyntaxError(query, "empty operand around '>'")

    # Rightmost part is innermost
    node = _compile_part(query, parts[-1])
    for part in reversed(parts[:-1]):
        node = NestedNode(parent=_compile_part(query, part), child=node)
    return node


def query_tags(node: TagQueryNode) -> list[str]:
    """All tags mentioned by a query, outermost first."""
    match node:
        case TagNode(tag=tag):
            return [tag] if tag else []
        case OrNode(tags=tags):
            return list(tags)
        case NestedNode(parent=parent, child=child):
            return query_tags(parent) + query_tags(child)
    return []


def format_query(node: TagQueryNode) -> str:
    """Render a query tree back to its canonical string form."""
    match node:
        case TagNode(tag=tag):
            return tag
        case OrNode(tags=tags):
            return ",".join(tags)
        case NestedNode(parent=parent, child=child):
            return f"{format_query(parent)} > {format_query(child)}"
    return ""
