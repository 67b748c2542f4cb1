"""Outline parsing, task status vocabulary and wikilink scanning."""

from .dedent import dedent_lines, prepare_outline
from .links import BacklinkHit, extract_links, scan_backlink_hits
from .outline import ListItem, extract_tags, iter_items, parse_list_item, parse_outline
from .status import parse_status_filter, resolve_status_alias, resolve_status_name

__all__ = [
    "ListItem",
    "parse_outline",
    "parse_list_item",
    "extract_tags",
    "iter_items",
    "dedent_lines",
    "prepare_outline",
    "BacklinkHit",
    "extract_links",
    "scan_backlink_hits",
    "parse_status_filter",
    "resolve_status_alias",
    "resolve_status_name",
]
