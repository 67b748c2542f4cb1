"""Core service operations for thoughtline.

This module holds the read-only operations used by the CLI and the MCP
server. The parser, matcher and thought builder are pure; everything here is
about getting documents to them.

Design principles:
- All operations are async; file reads and parsing run in worker threads
- Vault-wide scans fan out one task per document, bounded by a semaphore and
  an overall time budget
- Per-document results are memoized in a QueryCache keyed by path and mtime
"""

import asyncio
import logging
from collections import Counter
from collections.abc import Awaitable, Callable
from dataclasses import replace
from pathlib import Path
from typing import Any, TypeVar

from . import config as _config
from .cache import QueryCache
from .config import MAX_CONCURRENT_DOCUMENTS, SCAN_TIMEOUT_SECONDS
from .context import clear_context_cache, get_vault_context
from .errors import (
    AmbiguousMatchError,
    AnchorUnresolved,
    DocumentUnavailable,
    ErrorCode,
    NoteNotFound,
    ThoughtlineError,
)
from .models import (
    BacklinkEntry,
    MatchResult,
    NoteContent,
    QueryResponse,
    TagInfo,
    TagStructure,
    TagStructureNode,
    ThoughtResult,
)
from .parser.lines import extract_block_id
from .parser.links import BacklinkHit, scan_backlink_hits
from .parser.outline import NOTE_TAG_PATTERN, ListItem, iter_items, parse_outline
from .parser.status import parse_status_filter
from .query.ast import compile_query, format_query, query_tags
from .query.matcher import QueryFilters, match_query
from .thought.backlinks import build_backlink_sections
from .thought.outline import AnchorLocator, build_thought, locate_anchor, subtree_end
from .vault import VaultLoader

log = logging.getLogger(__name__)

T = TypeVar("T")

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg")


# Resolve config at call time so tests can patch thoughtline.config
def get_vault_root() -> Path:
    return _config.get_vault_root()


# ─────────────────────────────────────────────────────────────────────────────
# Module-level state (lazy initialization)
# ─────────────────────────────────────────────────────────────────────────────

_cache: QueryCache | None = None


def get_cache() -> QueryCache:
    """Get the process-wide query cache."""
    global _cache
    if _cache is None:
        _cache = QueryCache()
    return _cache


def get_loader() -> VaultLoader:
    """Build a loader for the configured vault, honoring its .tlconfig."""
    root = get_vault_root()
    context = get_vault_context(root)
    return VaultLoader(
        root,
        daily_notes_folder=context.config.daily_notes_folder,
        ignore_folders=context.config.ignore_folders,
    )


def reset_state() -> None:
    """Drop cached results and vault context. Useful for testing."""
    if _cache is not None:
        _cache.clear()
    clear_context_cache()


# ─────────────────────────────────────────────────────────────────────────────
# Helper functions
# ─────────────────────────────────────────────────────────────────────────────


def _mtime_ns(loader: VaultLoader, path: str) -> int:
    try:
        return loader.resolve(path).stat().st_mtime_ns
    except FileNotFoundError as e:
        raise DocumentUnavailable(path, "file not found") from e
    except OSError as e:
        raise DocumentUnavailable(path, str(e)) from e


async def _cached(
    loader: VaultLoader, path: str, key: tuple, compute: Callable[[], T]
) -> T:
    """Run compute() in a worker thread, memoized per document version."""
    mtime = await asyncio.to_thread(_mtime_ns, loader, path)
    cache = get_cache()
    cache.invalidate_stale(path, mtime)
    return await cache.get_or_compute(
        (path, mtime, str(loader.root), *key), lambda: asyncio.to_thread(compute)
    )


async def _fan_out(
    paths: list[str],
    worker: Callable[[str], Awaitable[T]],
) -> tuple[list[tuple[str, T]], list[str]]:
    """Run worker over every path concurrently.

    Returns:
        ((path, result) pairs in path order, paths skipped as unavailable).

    Raises:
        ThoughtlineError: If the whole scan exceeds SCAN_TIMEOUT_SECONDS.
    """
    semaphore = asyncio.Semaphore(MAX_CONCURRENT_DOCUMENTS)

    async def run(path: str) -> tuple[str, T | None, bool]:
        async with semaphore:
            try:
                return path, await worker(path), True
            except DocumentUnavailable as e:
                log.warning("Skipping %s: %s", path, e.message)
                return path, None, False

    try:
        outcomes = await asyncio.wait_for(
            asyncio.gather(*(run(path) for path in paths)),
            timeout=SCAN_TIMEOUT_SECONDS,
        )
    except TimeoutError as e:
        raise ThoughtlineError(
            f"Vault scan exceeded {SCAN_TIMEOUT_SECONDS:g}s over {len(paths)} documents",
            {"documents": len(paths)},
            code=ErrorCode.SCAN_TIMEOUT,
        ) from e

    results = [(path, value) for path, value, ok in outcomes if ok]
    skipped = [path for path, _, ok in outcomes if not ok]
    return results, skipped


def _resolve_date_path(loader: VaultLoader, date: str) -> str:
    try:
        return loader.daily_note_path(date)
    except ValueError as e:
        raise ThoughtlineError(str(e), {"date": date}, code=ErrorCode.INVALID_DATE) from e


def _target_paths(loader: VaultLoader, date: str | None, path: str | None) -> list[str]:
    if path:
        if not loader.exists(path):
            raise NoteNotFound(path)
        return [path]
    if date:
        return [_resolve_date_path(loader, date)]
    return loader.list_markdown_files()


def _parse(loader: VaultLoader, path: str) -> list[ListItem]:
    return parse_outline(loader.read_lines(path))


# ─────────────────────────────────────────────────────────────────────────────
# Tag queries
# ─────────────────────────────────────────────────────────────────────────────


async def query_tag(
    tag: str,
    subject: str | None = None,
    parent_context: str | None = None,
    date: str | None = None,
    query: str | None = None,
    include_children: bool = True,
    status: str | None = None,
    path: str | None = None,
) -> QueryResponse:
    """Find list items matching a tag query across the vault.

    Args:
        tag: Tag query ("#tag", "#a,#b", "#parent > #child").
        subject: Substring filter on the "Subject:" part of an item.
        parent_context: Substring filter on tagless ancestor text.
        date: Restrict to one daily note (YYYY-MM-DD, today, yesterday, tomorrow).
        query: Substring filter on item text and child text. A "status:<word>"
            token inside it acts as the status filter.
        include_children: Render each match's child subtree.
        status: "open", "done", "all", another status name, or an alias.
        path: Restrict to one note.

    Returns:
        QueryResponse with matches in path order, then line order.
    """
    node = compile_query(tag)

    text_filter = query
    if query:
        text_filter, status_from_query = parse_status_filter(query)
        status = status or status_from_query

    try:
        filters = QueryFilters(
            subject=subject,
            parent_context=parent_context,
            text=text_filter or None,
            include_children=include_children,
            status=status,
        )
    except ValueError as e:
        raise ThoughtlineError(str(e), {"status": status}, code=ErrorCode.INVALID_ARGUMENT) from e

    loader = get_loader()
    paths = await asyncio.to_thread(_target_paths, loader, date, path)
    filter_key = (
        filters.subject,
        filters.parent_context,
        filters.text,
        filters.include_children,
        filters.status,
    )

    async def match_document(doc: str) -> list[MatchResult]:
        def compute() -> list[MatchResult]:
            doc_filters = replace(filters, path=doc)
            return match_query(_parse(loader, doc), node, doc_filters)

        return await _cached(loader, doc, ("match", format_query(node), filter_key), compute)

    results, skipped = await _fan_out(paths, match_document)
    matches = [match for _, doc_matches in results for match in doc_matches]
    log.debug("Query %r matched %d items in %d documents", tag, len(matches), len(paths))

    return QueryResponse(
        query=format_query(node),
        tags=query_tags(node),
        matches=matches,
        documents_scanned=len(results),
        skipped=skipped,
    )


async def list_tags() -> list[TagInfo]:
    """List every tag in the vault with the number of notes using it, most used first."""
    loader = get_loader()
    context = get_vault_context(loader.root)
    paths = await asyncio.to_thread(loader.list_markdown_files)

    async def count_document(doc: str) -> Counter:
        def compute() -> Counter:
            return Counter(set(NOTE_TAG_PATTERN.findall("\n".join(loader.read_lines(doc)))))

        return await _cached(loader, doc, ("tags",), compute)

    results, _ = await _fan_out(paths, count_document)
    totals: Counter = Counter()
    for _, counts in results:
        totals.update(counts)

    return [
        TagInfo(
            tag=tag,
            count=count,
            description=context.tag_descriptions.get(tag),
            is_task_tag=tag in context.task_tags,
        )
        for tag, count in sorted(totals.items(), key=lambda kv: (-kv[1], kv[0].lower()))
    ]


# ─────────────────────────────────────────────────────────────────────────────
# Notes and structure
# ─────────────────────────────────────────────────────────────────────────────


async def get_note(path: str | None = None, date: str | None = None) -> NoteContent:
    """Read a note by path, or the daily note for a date.

    Raises:
        ThoughtlineError: If neither path nor date is given.
        NoteNotFound: If the note does not exist.
    """
    loader = get_loader()
    if not path and not date:
        raise ThoughtlineError(
            "Either path or date must be provided", code=ErrorCode.INVALID_ARGUMENT
        )
    target = path or _resolve_date_path(loader, date or "")
    return await asyncio.to_thread(loader.read_note, target)


def _is_screenshot(text: str) -> bool:
    return text.startswith("![[") and any(ext in text.lower() for ext in IMAGE_EXTENSIONS)


def _structure_node(item: ListItem, depth: int) -> TagStructureNode:
    return TagStructureNode(
        line=item.line,
        text=item.raw_text,
        indent=depth,
        bullet=item.bullet,
        is_screenshot=_is_screenshot(item.raw_text),
        is_task=item.is_task,
        status=item.status,
        children=[_structure_node(child, depth + 1) for child in item.children],
    )


def build_tag_structure(lines: list[str], path: str, match: MatchResult) -> TagStructure:
    """Line-numbered tree of everything nested under one matched item."""
    end = subtree_end(lines, match.line)
    items = iter_items(parse_outline(lines[:end]))
    root = next((item for item in items if item.line == match.line), None)
    children = [_structure_node(child, 0) for child in root.children] if root else []
    return TagStructure(
        path=path,
        tag=match.tag,
        line=match.line,
        text=match.raw_text,
        children=children,
    )


async def get_tag_structure(
    tag: str,
    query: str | None = None,
    date: str | None = None,
    path: str | None = None,
) -> TagStructure:
    """Get the line-numbered structure under exactly one tagged item.

    Raises:
        ThoughtlineError: If neither date nor path is given, or nothing matches.
        AmbiguousMatchError: If more than one item matches.
    """
    if not date and not path:
        raise ThoughtlineError(
            "Either date or path must be provided", code=ErrorCode.INVALID_ARGUMENT
        )

    response = await query_tag(tag, date=date, query=query, include_children=False, path=path)
    if not response.matches:
        where = f" with query {query!r}" if query else ""
        where += f" in {date}" if date else ""
        raise ThoughtlineError(
            f"No items found matching tag {tag!r}{where}",
            {"tag": tag, "query": query, "date": date, "path": path},
            code=ErrorCode.NO_MATCH,
        )
    if len(response.matches) > 1:
        candidates = [
            f'Line {m.line}: "{m.raw_text[:60]}{"..." if len(m.raw_text) > 60 else ""}"'
            for m in response.matches
        ]
        raise AmbiguousMatchError(tag, candidates)

    match = response.matches[0]
    loader = get_loader()
    lines = await asyncio.to_thread(loader.read_lines, match.path)
    return build_tag_structure(lines, match.path, match)


# ─────────────────────────────────────────────────────────────────────────────
# Backlinks and thoughts
# ─────────────────────────────────────────────────────────────────────────────


async def _backlink_hits(
    loader: VaultLoader, path: str, block_id: str | None
) -> list[BacklinkHit]:
    paths = await asyncio.to_thread(loader.list_markdown_files)
    sources = [doc for doc in paths if doc != path]

    async def scan(doc: str) -> list[BacklinkHit]:
        def compute() -> list[BacklinkHit]:
            return scan_backlink_hits(doc, loader.read_lines(doc), path, block_id)

        return await _cached(loader, doc, ("links", path, block_id), compute)

    results, _ = await _fan_out(sources, scan)
    return [hit for _, hits in results for hit in hits]


async def find_backlinks(path: str, block_id: str | None = None) -> list[BacklinkEntry]:
    """Find lines in other notes that link to a note (or one block of it).

    Raises:
        NoteNotFound: If the note does not exist.
    """
    loader = get_loader()
    if not loader.exists(path):
        raise NoteNotFound(path)

    hits = await _backlink_hits(loader, path, block_id)
    entries = []
    documents: dict[str, list[str]] = {}
    for hit in hits:
        if hit.path not in documents:
            documents[hit.path] = await asyncio.to_thread(loader.read_lines, hit.path)
        lines = documents[hit.path]
        text = lines[hit.line].strip() if hit.line < len(lines) else ""
        entries.append(BacklinkEntry(path=hit.path, line=hit.line, text=text))
    return entries


def _anchor_block_id(lines: list[str] | None, anchor: AnchorLocator) -> str | None:
    if anchor.block_id:
        return anchor.block_id.lstrip("^")
    if lines is None:
        return None
    try:
        index = locate_anchor(lines, anchor)
    except AnchorUnresolved:
        return None
    return extract_block_id(lines[index])


async def thought(
    path: str,
    line: int | None = None,
    block_id: str | None = None,
    text: str | None = None,
    include_backlinks: bool = True,
    search: str | None = None,
) -> ThoughtResult:
    """Reconstruct the thought around one item of a note.

    Args:
        path: Note containing the item.
        line: 0-based line of the item.
        block_id: Block anchor of the item ("abc" or "^abc").
        text: Item text to locate fuzzily when line and block id fail.
        include_backlinks: Add sections from notes linking to the item's block.
        search: Keep only sections and references containing this text.
    """
    loader = get_loader()
    anchor = AnchorLocator(line=line, block_id=block_id, text=text)

    lines: list[str] | None
    try:
        lines = await asyncio.to_thread(loader.read_lines, path)
    except DocumentUnavailable as e:
        log.warning("Thought source unavailable: %s", e.message)
        lines = None

    backlinks = None
    resolved_block = _anchor_block_id(lines, anchor)
    if include_backlinks and lines is not None and resolved_block:
        hits = await _backlink_hits(loader, path, resolved_block)
        backlinks = await asyncio.to_thread(build_backlink_sections, path, hits, loader)

    return build_thought(lines, anchor, path=path, backlinks=backlinks, search=search)


async def vault_info() -> dict[str, Any]:
    """Summarize the configured vault."""
    loader = get_loader()
    context = get_vault_context(loader.root)
    files = await asyncio.to_thread(loader.list_markdown_files)
    return {
        "vault_root": str(loader.root),
        "config_file": str(context.config.source_file) if context.config.source_file else None,
        "daily_notes_folder": loader.daily_notes_folder,
        "ignore_folders": list(loader.ignore_folders),
        "documents": len(files),
        "described_tags": len(context.tag_descriptions),
        "task_tags": context.task_tags,
        "cache": get_cache().stats(),
    }
