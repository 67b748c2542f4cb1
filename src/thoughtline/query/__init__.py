"""Tag query compilation and matching."""

from .ast import NestedNode, OrNode, TagNode, TagQueryNode, compile_query, normalize_tag, query_tags
from .matcher import QueryFilters, format_child_item, match_query, matches

__all__ = [
    "TagNode",
    "OrNode",
    "NestedNode",
    "TagQueryNode",
    "compile_query",
    "normalize_tag",
    "query_tags",
    "QueryFilters",
    "match_query",
    "matches",
    "format_child_item",
]
