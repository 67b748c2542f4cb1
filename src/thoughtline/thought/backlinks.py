"""Backlink sections: what other documents say under their links to a note."""

import logging
import re
from collections.abc import Iterable
from typing import TYPE_CHECKING

from ..errors import DocumentUnavailable
from ..models import BacklinkSections, ThoughtReference, ThoughtSection
from ..parser.lines import expand_tabs, extract_block_id, is_blank, strip_list_marker
from ..parser.links import BacklinkHit, normalize_link_target
from .outline import build_parent_chain, document_label, extract_children, extract_date_token

if TYPE_CHECKING:
    from ..vault import DocumentLoader

log = logging.getLogger(__name__)

REFERENCE_SEPARATOR = " > "


def _natural_key(value: str) -> list[int | str]:
    """Case-insensitive sort key that orders "note 2" before "note 10"."""
    return [int(part) if part.isdigit() else part for part in re.split(r"(\d+)", value.lower())]


def chronology_key(path: str) -> tuple[int, str, list[int | str]]:
    """Dated documents first (ascending), then the rest by name."""
    date = extract_date_token(path)
    if date:
        return (0, date, _natural_key(path))
    return (1, "", _natural_key(path))


def group_hits(anchor_doc_id: str, hits: Iterable[BacklinkHit]) -> dict[str, list[BacklinkHit]]:
    """Group hits by source document, dropping hits inside the anchor document."""
    anchor_key = normalize_link_target(anchor_doc_id)
    grouped: dict[str, list[BacklinkHit]] = {}
    for hit in hits:
        if not hit.path or normalize_link_target(hit.path) == anchor_key:
            continue
        grouped.setdefault(hit.path, []).append(hit)
    return grouped


def _hit_source(lines: list[str], hit: BacklinkHit) -> tuple[list[str], int]:
    if hit.snippet and hit.snippet.strip():
        return expand_tabs(hit.snippet).splitlines(), 0
    return lines, hit.line


def build_backlink_sections(
    anchor_doc_id: str,
    hits: Iterable[BacklinkHit],
    loader: "DocumentLoader",
) -> BacklinkSections:
    """Turn backlink hits into branch sections and one-line references.

    For each source document (chronological order), hits are visited by line.
    A hit with nested children becomes part of that document's branch section;
    a childless hit becomes a reference whose preview is its ancestor chain
    plus its own text.

    Args:
        anchor_doc_id: Document the hits link to; hits inside it are ignored.
        hits: Backlink locations, in any order and possibly duplicated.
        loader: Reads source documents.

    Returns:
        BacklinkSections with at most one branch section per source document.
    """
    grouped = group_hits(anchor_doc_id, hits)
    result = BacklinkSections()

    for path in sorted(grouped, key=chronology_key):
        try:
            lines = loader.read_lines(path)
        except DocumentUnavailable as e:
            log.warning("Skipping backlinks from %s: %s", path, e.message)
            continue

        label = document_label(path)
        branch_markdowns: list[str] = []
        branch_hit: BacklinkHit | None = None
        seen: set[int] = set()

        for hit in sorted(grouped[path], key=lambda h: h.line):
            if hit.line < 0 or hit.line >= len(lines) or hit.line in seen:
                continue
            seen.add(hit.line)

            source, start = _hit_source(lines, hit)
            children = extract_children(source, start)
            if any(not is_blank(line) for line in children):
                branch_markdowns.append("\n".join(children).rstrip())
                branch_hit = branch_hit or hit
                continue

            segments = [p.text for p in build_parent_chain(lines, hit.line)]
            own_text = strip_list_marker(source[start]) if start < len(source) else ""
            if own_text:
                segments.append(own_text)
            preview = REFERENCE_SEPARATOR.join(s for s in segments if s)
            if not preview:
                continue
            result.references.append(
                ThoughtReference(
                    path=path,
                    label=label,
                    preview=preview,
                    segments=segments,
                    target_line=hit.line,
                )
            )

        if branch_markdowns and branch_hit is not None:
            result.sections.append(
                ThoughtSection(
                    role="branch",
                    label=label,
                    markdown="\n\n".join(branch_markdowns),
                    path=path,
                    segments=[p.text for p in build_parent_chain(lines, branch_hit.line)],
                    target_anchor=extract_block_id(lines[branch_hit.line]),
                    target_line=branch_hit.line,
                )
            )

    return result
