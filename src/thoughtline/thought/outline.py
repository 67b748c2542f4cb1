"""Thought outline builder.

Given the lines of a document and an anchor, reconstructs the anchored item's
neighborhood: its dedented child subtree, the ancestor chain above it, and a
header line. Backlink sections from other documents are built separately
(see backlinks.py) and merged in here.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Literal

from ..config import SNAPSHOT_INDENT_STEP
from ..errors import AnchorUnresolved
from ..models import BacklinkSections, ThoughtResult, ThoughtSection
from ..parser.dedent import dedent_lines, prepare_outline, trim_blank_edges
from ..parser.lines import (
    expand_tabs,
    extract_block_id,
    is_blank,
    is_heading,
    is_list_item,
    leading_space,
    line_has_block_id,
    normalize_for_search,
    strip_heading_marker,
    strip_list_marker,
)
from ..parser.links import BacklinkHit
from ..parser.status import CHAR_BY_STATUS, STATUS_BY_CHAR, resolve_status_alias

if TYPE_CHECKING:
    from ..vault import DocumentLoader

log = logging.getLogger(__name__)

NO_OUTLINE_MESSAGE = "No outline available for this task yet."
SOURCE_UNAVAILABLE_ERROR = "Unable to resolve the source note for this task."

DATE_TOKEN_PATTERN = re.compile(r"\b(\d{4}-\d{2}-\d{2})\b")


@dataclass
class AnchorLocator:
    """Where a thought is centered.

    Resolution order is line, then block id, then fuzzy text. `text` and
    `status` also feed the header when the anchor cannot be found.
    """

    line: int | None = None
    block_id: str | None = None
    text: str | None = None
    status: str | None = None


@dataclass
class ParentContext:
    text: str
    line: int
    type: Literal["heading", "list", "paragraph"]
    anchor: str | None = None


@dataclass
class ContextEntry:
    indent: int = 0
    bullet: str = "-"
    text: str = ""


@dataclass
class ContextSnapshot:
    """Externally cached neighborhood of an item, used when its line is gone."""

    parents: list[ContextEntry] = field(default_factory=list)
    children: list[ContextEntry] = field(default_factory=list)
    block_id: str | None = None
    hits: list[BacklinkHit] = field(default_factory=list)


# ─────────────────────────────────────────────────────────────────────────────
# Anchor resolution
# ─────────────────────────────────────────────────────────────────────────────


def locate_anchor(lines: list[str], anchor: AnchorLocator) -> int:
    """Find the anchor's line index.

    Raises:
        AnchorUnresolved: If no locator matches.
    """
    if anchor.line is not None and 0 <= anchor.line < len(lines):
        return anchor.line

    if anchor.block_id:
        for index, line in enumerate(lines):
            if line_has_block_id(line, anchor.block_id):
                return index

    needle = normalize_for_search(anchor.text or "")
    if needle:
        for index, line in enumerate(lines):
            if needle in normalize_for_search(line):
                return index

    raise AnchorUnresolved(
        "Anchor matched no line",
        {"line": anchor.line, "block_id": anchor.block_id, "text": anchor.text},
    )


# ─────────────────────────────────────────────────────────────────────────────
# Subtree and parent chain
# ─────────────────────────────────────────────────────────────────────────────


def subtree_end(lines: list[str], index: int) -> int:
    """Index one past the last line nested under the line at `index`.

    The subtree stops at the first non-blank line indented at or left of the
    anchor; trailing blank lines are not part of it.
    """
    root_indent = leading_space(expand_tabs(lines[index]))
    end = index + 1
    for i in range(index + 1, len(lines)):
        line = expand_tabs(lines[i])
        if is_blank(line):
            continue
        if leading_space(line) <= root_indent:
            break
        end = i + 1
    return end


def extract_children(lines: list[str], index: int) -> list[str]:
    """Return the dedented lines nested under the list item at `index`.

    Non-list anchors have no subtree.
    """
    if not 0 <= index < len(lines):
        return []

    root = expand_tabs(lines[index])
    if is_blank(root) or not is_list_item(root):
        return []

    collected = [expand_tabs(line) for line in lines[index + 1:subtree_end(lines, index)]]
    return dedent_lines(trim_blank_edges(collected))


def build_parent_chain(lines: list[str], index: int) -> list[ParentContext]:
    """Walk backward from `index` collecting ancestors, oldest first.

    A heading is recorded and ends the walk. List and paragraph lines count
    only when indented left of everything recorded so far.
    """
    if not 0 <= index < len(lines):
        return []

    threshold = leading_space(expand_tabs(lines[index]))
    chain: list[ParentContext] = []

    for i in range(index - 1, -1, -1):
        raw = expand_tabs(lines[i])
        if is_blank(raw):
            continue

        if is_heading(raw):
            chain.append(ParentContext(strip_heading_marker(raw), i, "heading", extract_block_id(raw)))
            break

        indent = leading_space(raw)
        if indent >= threshold:
            continue

        if is_list_item(raw):
            chain.append(ParentContext(strip_list_marker(raw), i, "list", extract_block_id(raw)))
        else:
            chain.append(ParentContext(raw.strip(), i, "paragraph", extract_block_id(raw)))
        threshold = indent

    chain.reverse()
    return chain


# ─────────────────────────────────────────────────────────────────────────────
# Header and fallbacks
# ─────────────────────────────────────────────────────────────────────────────


def _status_char(status: str | None) -> str:
    if not status:
        return " "
    if status in CHAR_BY_STATUS:
        return CHAR_BY_STATUS[status]
    if len(status) == 1 and status.lower() in STATUS_BY_CHAR:
        return status.lower()
    return resolve_status_alias(status) or " "


def synthesize_header(lines: list[str], index: int | None, anchor: AnchorLocator) -> str:
    """The anchor line itself when resolved, else "- [status] text"."""
    if index is not None:
        return expand_tabs(lines[index]).strip()

    text = strip_list_marker(anchor.text or "")
    if not text:
        return ""
    return f"- [{_status_char(anchor.status)}] {text}"


def build_context_fallback(snapshot: ContextSnapshot) -> str:
    """Rebuild an outline from a context snapshot.

    Parents are stacked SNAPSHOT_INDENT_STEP spaces per level; children sit
    under the last parent at their own indent (or one step when they have
    none).
    """
    lines: list[str] = []
    for level, parent in enumerate(snapshot.parents):
        bullet = parent.bullet.strip() or "-"
        lines.append(f"{' ' * (level * SNAPSHOT_INDENT_STEP)}{bullet} {parent.text}".rstrip())

    root_indent = len(snapshot.parents) * SNAPSHOT_INDENT_STEP
    for child in snapshot.children:
        bullet = child.bullet.strip() or "-"
        extra = child.indent if child.indent > 0 else SNAPSHOT_INDENT_STEP
        lines.append(f"{' ' * (root_indent + extra)}{bullet} {child.text}".rstrip())

    return prepare_outline("\n".join(lines))


def extract_date_token(value: str | None) -> str | None:
    if not value:
        return None
    match = DATE_TOKEN_PATTERN.search(value)
    return match.group(1) if match else None


def document_label(path: str) -> str:
    """Display label for a document: its date token, else its file stem."""
    return extract_date_token(path) or PurePosixPath(path).stem or path


# ─────────────────────────────────────────────────────────────────────────────
# Builder
# ─────────────────────────────────────────────────────────────────────────────


def _apply_search(result: ThoughtResult, search: str | None) -> ThoughtResult:
    needle = (search or "").strip().lower()
    if not needle:
        return result

    sections = [s for s in result.sections if needle in s.markdown.lower()]
    references = [
        r for r in result.references if needle in r.preview.lower() or needle in r.label.lower()
    ]
    if not sections and not references:
        return result.model_copy(
            update={
                "sections": [],
                "references": [],
                "message": f'No matches for "{search.strip()}" in this thought.',
            }
        )
    return result.model_copy(update={"sections": sections, "references": references})


def build_thought(
    lines: list[str] | None,
    anchor: AnchorLocator,
    context: ContextSnapshot | None = None,
    path: str = "",
    label: str | None = None,
    backlinks: BacklinkSections | None = None,
    search: str | None = None,
    loader: "DocumentLoader | None" = None,
) -> ThoughtResult:
    """Reconstruct the thought around an anchored item.

    Args:
        lines: Lines of the anchor's document, or None when it cannot be read.
        anchor: How to find the item.
        context: Cached neighborhood used if the anchor line cannot be found.
        path: Vault-relative path of the document (for section metadata).
        label: Section label; defaults to the document's date token or stem.
        backlinks: Pre-built sections from documents linking to this one.
        search: Keep only sections and references containing this text.
        loader: Reads the documents behind `context.hits` when no backlinks
            are given.

    Returns:
        A ThoughtResult. Never raises for unresolvable anchors; an unreadable
        document yields a result with `error` set.
    """
    if lines is None:
        return ThoughtResult(error=SOURCE_UNAVAILABLE_ERROR)

    if context is not None and not anchor.block_id and context.block_id:
        anchor = AnchorLocator(
            line=anchor.line, block_id=context.block_id, text=anchor.text, status=anchor.status
        )

    index: int | None
    try:
        index = locate_anchor(lines, anchor)
    except AnchorUnresolved as e:
        log.debug("%s in %s: %s", e.message, path or "<document>", e.details)
        index = None

    section_label = label or document_label(path)
    sections: list[ThoughtSection] = []
    parents: list[str] = []
    markdown = ""

    if index is not None:
        parents = [p.text for p in build_parent_chain(lines, index)]
        children = extract_children(lines, index)
        if children:
            markdown = "\n".join(children).rstrip()
    elif context is not None and (context.parents or context.children):
        parents = [p.text for p in context.parents]
        markdown = build_context_fallback(context)
    elif anchor.text and anchor.text.strip():
        markdown = prepare_outline(anchor.text, strip_first_marker=True)

    if markdown.strip():
        sections.append(
            ThoughtSection(
                role="root",
                label=section_label,
                markdown=markdown,
                path=path,
                segments=parents,
                target_anchor=anchor.block_id.lstrip("^") if anchor.block_id else None,
                target_line=index,
            )
        )

    if backlinks is None and loader is not None and context is not None and context.hits:
        from .backlinks import build_backlink_sections

        backlinks = build_backlink_sections(path, context.hits, loader)

    references = []
    if backlinks is not None:
        sections.extend(backlinks.sections)
        references.extend(backlinks.references)

    result = ThoughtResult(
        sections=sections,
        references=references,
        header=synthesize_header(lines, index, anchor),
        parents=parents,
    )
    if not sections and not references:
        return result.model_copy(update={"message": NO_OUTLINE_MESSAGE})

    return _apply_search(result, search)
