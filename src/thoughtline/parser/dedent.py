"""Remove inherited indentation from outline snippets."""

from .lines import expand_tabs, is_blank, leading_space, strip_list_marker


def min_indent(lines: list[str]) -> int:
    """Smallest leading-space count among non-blank lines (0 if all blank)."""
    indents = [leading_space(line) for line in lines if not is_blank(line)]
    return min(indents) if indents else 0


def dedent_lines(lines: list[str], offset: int | None = None) -> list[str]:
    """Strip a common indentation offset from a block of lines.

    Args:
        lines: Tab-expanded lines.
        offset: Columns to remove. Defaults to the block's minimum indent.

    Returns:
        New lines: blank lines become "", trailing whitespace is trimmed, and
        each line loses at most its own indent.
    """
    if offset is None:
        offset = min_indent(lines)

    result = []
    for line in lines:
        if is_blank(line):
            result.append("")
            continue
        cut = min(leading_space(line), max(0, offset))
        result.append(line[cut:].rstrip())
    return result


def trim_blank_edges(lines: list[str]) -> list[str]:
    start = 0
    end = len(lines)
    while start < end and is_blank(lines[start]):
        start += 1
    while end > start and is_blank(lines[end - 1]):
        end -= 1
    return lines[start:end]


def prepare_outline(snippet: str, strip_first_marker: bool = False) -> str:
    """Normalize a markdown snippet for display.

    Expands tabs, optionally strips the first line's bullet, trims leading and
    trailing blank lines, and dedents the rest.
    """
    normalized = expand_tabs(snippet)
    if is_blank(normalized):
        return ""

    lines = normalized.splitlines()
    if strip_first_marker and lines:
        lines[0] = strip_list_marker(lines[0])

    lines = trim_blank_edges(lines)
    return "\n".join(dedent_lines(lines)).rstrip()
