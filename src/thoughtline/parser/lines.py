"""Single-line helpers shared by the outline parser and the thought builder."""

import re

from ..config import TAB_WIDTH

# "- text", "+ text", "* text" or "12. text"
LIST_ITEM_PATTERN = re.compile(r"^(\s*)([-+*]|\d+\.)\s+(.*)$")

# Loose bullet check: a marker at the start, text optional ("-" alone counts)
BULLET_PREFIX_PATTERN = re.compile(r"^\s*(?:[-*+]|\d+\.)(?:\s|$)")

HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.*)$")

# List marker plus optional checkbox, used to recover an item's bare text
LIST_MARKER_PATTERN = re.compile(r"^(\s*)(?:[-*+]|\d+\.)\s*(?:\[.\]\s*)?(.*)$")

BLOCK_ID_PATTERN = re.compile(r"(?:^|\s)\^([A-Za-z0-9][A-Za-z0-9-]*)\s*$")

_INLINE_BLOCK_ID = re.compile(r"\^[\w-]+\b")
_LEADING_MARKER = re.compile(r"^\s*(?:[-*+]|\d+\.)\s*(?:\[.\]\s*)?")


def expand_tabs(value: str) -> str:
    """Replace every tab with TAB_WIDTH spaces."""
    return value.replace("\t", " " * TAB_WIDTH)


def leading_space(value: str) -> int:
    """Count leading whitespace characters (call on tab-expanded text)."""
    return len(value) - len(value.lstrip())


def is_blank(value: str) -> bool:
    return not value.strip()


def is_list_item(value: str) -> bool:
    return BULLET_PREFIX_PATTERN.match(value) is not None


def is_heading(value: str) -> bool:
    """True for ATX headings ("# Title" .. "###### Title"), ignoring indentation."""
    return HEADING_PATTERN.match(value.strip()) is not None


def strip_list_marker(line: str) -> str:
    """Return the text of a list line without indent, bullet, or checkbox."""
    normalized = expand_tabs(line)
    match = LIST_MARKER_PATTERN.match(normalized)
    if not match or not is_list_item(normalized):
        return normalized.strip()
    return match.group(2).strip()


def strip_heading_marker(line: str) -> str:
    match = HEADING_PATTERN.match(line.strip())
    return match.group(2).strip() if match else line.strip()


def extract_block_id(line: str) -> str | None:
    """Return the trailing block anchor of a line ("text ^abc" -> "abc")."""
    match = BLOCK_ID_PATTERN.search(line.rstrip())
    return match.group(1) if match else None


def line_has_block_id(line: str, block_id: str) -> bool:
    """True if the line carries ^block_id as a whole token."""
    block_id = block_id.lstrip("^")
    if not block_id:
        return False
    return re.search(rf"\^{re.escape(block_id)}(?![\w-])", line) is not None


def normalize_for_search(value: str) -> str:
    """Normalize a line for fuzzy comparison.

    Drops the block id, the bullet and checkbox, then lowercases.
    """
    normalized = expand_tabs(value)
    normalized = _INLINE_BLOCK_ID.sub("", normalized, count=1)
    normalized = _LEADING_MARKER.sub("", normalized, count=1)
    return normalized.strip().lower()
