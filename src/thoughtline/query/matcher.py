"""Evaluate compiled tag queries against parsed outline trees."""

from dataclasses import dataclass

from ..models import MatchResult
from ..parser.outline import ListItem
from ..parser.status import STATUS_NAMES, resolve_status_name
from .ast import NestedNode, OrNode, TagNode, TagQueryNode


@dataclass
class QueryFilters:
    """Filters applied to every item the query itself matches.

    `status` accepts "all", any status name, or a status alias ("wip",
    "complete", ...). An unknown status raises ValueError.
    """

    subject: str | None = None
    parent_context: str | None = None
    text: str | None = None
    include_children: bool = False
    status: str | None = None
    path: str = ""

    def __post_init__(self) -> None:
        self.status = normalize_status_filter(self.status)


def normalize_status_filter(status: str | None) -> str | None:
    """Return a status name to compare against, or None to accept everything."""
    if status is None:
        return None
    token = status.strip().lower()
    if not token or token == "all":
        return None
    if token in STATUS_NAMES:
        return token
    resolved = resolve_status_name(token)
    if resolved is None:
        raise ValueError(f"Unknown status filter: {status!r}")
    return resolved


def matches(item: ListItem, node: TagQueryNode) -> tuple[bool, str | None]:
    """Test one item against a query node.

    Returns:
        (matched, matched_tag). Nested nodes test only their child half; the
        ancestor requirement is enforced by the tree walk.
    """
    match node:
        case TagNode(tag=tag):
            if tag and tag in item.tags:
                return True, tag
        case OrNode(tags=tags):
            for tag in tags:
                if tag in item.tags:
                    return True, tag
        case NestedNode(child=child):
            return matches(item, child)
    return False, None


def format_child_item(item: ListItem, depth: int = 0) -> str:
    """Render an item and its descendants, two spaces per nesting level."""
    lines = [f"{'  ' * depth}{item.bullet} {item.raw_text}"]
    for child in item.children:
        lines.append(format_child_item(child, depth + 1))
    return "\n".join(lines)


def _contains(value: str, needle: str) -> bool:
    return needle.lower() in value.lower()


def _passes_filters(item: ListItem, context: str | None, filters: QueryFilters) -> bool:
    if filters.subject:
        if not item.subject or not _contains(item.subject, filters.subject):
            return False

    if filters.parent_context:
        if not context or not _contains(context, filters.parent_context):
            return False

    if filters.text:
        search_text = item.text + " " + " ".join(child.raw_text for child in item.children)
        if not _contains(search_text, filters.text):
            return False

    if filters.status is not None and item.status != filters.status:
        return False

    return True


def _extend_context(context: str | None, item: ListItem) -> str | None:
    # Tagged items are markers, not context
    if item.tags:
        return context
    return f"{context}\n{item.raw_text}" if context else item.raw_text


def _walk(
    items: list[ListItem],
    node: TagQueryNode,
    filters: QueryFilters,
    context: str | None,
    results: list[MatchResult],
) -> None:
    for item in items:
        child_context = _extend_context(context, item)

        if isinstance(node, NestedNode):
            # Descend only below an item that satisfies the parent half
            parent_matched, _ = matches(item, node.parent)
            if parent_matched:
                _walk(item.children, node.child, filters, child_context, results)
            continue

        matched, tag = matches(item, node)
        if matched and _passes_filters(item, context, filters):
            results.append(
                MatchResult(
                    tag=tag or (item.tags[0] if item.tags else ""),
                    subject=item.subject,
                    text=item.text,
                    raw_text=item.raw_text,
                    path=filters.path,
                    line=item.line,
                    parent_context=context,
                    children=(
                        [format_child_item(child) for child in item.children]
                        if filters.include_children
                        else []
                    ),
                    status=item.status,
                )
            )

        _walk(item.children, node, filters, child_context, results)


def match_query(
    tree: list[ListItem],
    query: TagQueryNode,
    filters: QueryFilters | None = None,
) -> list[MatchResult]:
    """Find every item in a parsed tree matching a query and filters.

    Items are visited depth-first in document order, so results come back in
    the order their lines appear. A nested query "#p > #c" only reports items
    tagged #c that sit somewhere below an item tagged #p.

    Args:
        tree: Root items from parse_outline().
        query: A node from compile_query().
        filters: Optional filters; `filters.path` is stamped on each result.

    Returns:
        Matching items as MatchResult models.
    """
    results: list[MatchResult] = []
    _walk(tree, query, filters or QueryFilters(), None, results)
    return results
