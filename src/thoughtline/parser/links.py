"""Wikilink extraction and backlink hit scanning."""

import re
from dataclasses import dataclass
from pathlib import PurePosixPath

# [[target]], [[target#Heading]], [[target#^block]], [[target|alias]]
LINK_PATTERN = re.compile(r"\[\[([^\]]+)\]\]")


@dataclass(frozen=True)
class WikiLink:
    target: str
    heading: str | None = None
    block_id: str | None = None
    alias: str | None = None


@dataclass(frozen=True)
class BacklinkHit:
    """A line in another document that links to the anchor document."""

    path: str
    line: int
    snippet: str | None = None


def normalize_link_target(target: str) -> str:
    """Normalize a link target for comparison.

    - Strips whitespace and surrounding slashes
    - Removes the .md extension
    - Uses forward slashes
    - Lowercases
    """
    target = target.strip().replace("\\", "/").strip("/")
    if target.lower().endswith(".md"):
        target = target[:-3]
    return target.lower()


def parse_wikilink(body: str) -> WikiLink:
    """Split the inside of [[...]] into target, heading/block and alias."""
    body, _, alias = body.partition("|")
    target, _, fragment = body.partition("#")
    heading = None
    block_id = None
    fragment = fragment.strip()
    if fragment.startswith("^"):
        block_id = fragment[1:] or None
    elif fragment:
        heading = fragment
    return WikiLink(
        target=target.strip(),
        heading=heading,
        block_id=block_id,
        alias=alias.strip() or None,
    )


def extract_links(content: str) -> list[WikiLink]:
    """Extract every wikilink from content in appearance order."""
    return [parse_wikilink(body) for body in LINK_PATTERN.findall(content)]


def link_points_to(link: WikiLink, doc_path: str) -> bool:
    """True if a link targets the document at doc_path.

    Links match either the full vault-relative path or the bare file stem,
    the way Obsidian resolves shortest-path links.
    """
    target = normalize_link_target(link.target)
    if not target:
        return False
    full = normalize_link_target(doc_path)
    stem = PurePosixPath(full).name
    return target == full or target == stem


def scan_backlink_hits(
    source_path: str,
    lines: list[str],
    target_path: str,
    block_id: str | None = None,
) -> list[BacklinkHit]:
    """Find lines of one document that link to target_path.

    Args:
        source_path: Vault-relative path of the scanned document.
        lines: The scanned document's lines.
        target_path: Vault-relative path of the linked-to document.
        block_id: When given, only links to this block (``[[doc#^id]]``) count.

    Returns:
        One hit per matching line, in line order.
    """
    wanted = block_id.lstrip("^") if block_id else None
    hits: list[BacklinkHit] = []
    for index, line in enumerate(lines):
        if "[[" not in line:
            continue
        for link in extract_links(line):
            if not link_points_to(link, target_path):
                continue
            if wanted is not None and link.block_id != wanted:
                continue
            hits.append(BacklinkHit(path=source_path, line=index))
            break
    return hits
