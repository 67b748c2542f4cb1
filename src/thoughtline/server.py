"""FastMCP server for thoughtline.

This module provides MCP protocol wrappers around the core operations.
All actual logic lives in core.py - this file just handles MCP serialization.
"""

import os

from fastmcp import FastMCP

from . import core
from .models import BacklinkEntry, NoteContent, QueryResponse, TagInfo, TagStructure, ThoughtResult

mcp = FastMCP(
    name="thoughtline",
    instructions=(
        "Read-only access to a vault of markdown outlines. Use query_tag to find "
        "tagged bullets, get_thought to see an item's children, ancestors and "
        "backlinks, and get_tag_structure for line numbers under one item."
    ),
)


# ─────────────────────────────────────────────────────────────────────────────
# MCP Tool Wrappers
# ─────────────────────────────────────────────────────────────────────────────


@mcp.tool(
    name="list_tags",
    description="List all tags in the vault, sorted by usage count, with descriptions from Config/Tags.md.",
)
async def list_tags_tool() -> list[TagInfo]:
    """List all tags with usage counts."""
    return await core.list_tags()


@mcp.tool(
    name="query_tag",
    description=(
        "Query list items by tag. Syntax: '#tag', '#tag1,#tag2' (either), "
        "'#parent > #child' (child tag nested under parent tag). "
        "Text between the tag and ':' is the subject ('#meeting Ada: standup' -> subject 'Ada'). "
        "parent_context matches text of untagged ancestor bullets."
    ),
)
async def query_tag_tool(
    tag: str,
    subject: str | None = None,
    parent_context: str | None = None,
    date: str | None = None,
    query: str | None = None,
    include_children: bool = True,
    status: str | None = None,
    path: str | None = None,
) -> QueryResponse:
    """Query tagged items."""
    return await core.query_tag(
        tag=tag,
        subject=subject,
        parent_context=parent_context,
        date=date,
        query=query,
        include_children=include_children,
        status=status,
        path=path,
    )


@mcp.tool(
    name="get_note",
    description="Read a note by vault-relative path, or a daily note by date (YYYY-MM-DD, today, yesterday, tomorrow).",
)
async def get_note_tool(path: str | None = None, date: str | None = None) -> NoteContent:
    """Read a note."""
    return await core.get_note(path=path, date=date)


@mcp.tool(
    name="get_tag_structure",
    description=(
        "Get the line-numbered bullet tree under exactly one tagged item in a note. "
        "Requires date or path; use query to narrow down when several items match."
    ),
)
async def get_tag_structure_tool(
    tag: str,
    query: str | None = None,
    date: str | None = None,
    path: str | None = None,
) -> TagStructure:
    """Get the structure under a tagged item."""
    return await core.get_tag_structure(tag=tag, query=query, date=date, path=path)


@mcp.tool(
    name="get_thought",
    description=(
        "Reconstruct the thought around one item: its nested children, its ancestor "
        "chain, and outlines from other notes that link to its ^block id. "
        "Locate the item by line (0-based), block_id, or text."
    ),
)
async def get_thought_tool(
    path: str,
    line: int | None = None,
    block_id: str | None = None,
    text: str | None = None,
    include_backlinks: bool = True,
    search: str | None = None,
) -> ThoughtResult:
    """Build a thought outline."""
    return await core.thought(
        path=path,
        line=line,
        block_id=block_id,
        text=text,
        include_backlinks=include_backlinks,
        search=search,
    )


@mcp.tool(
    name="backlinks",
    description="Find lines in other notes that link to a note, optionally only to one ^block id.",
)
async def backlinks_tool(path: str, block_id: str | None = None) -> list[BacklinkEntry]:
    """Find backlinks to a note."""
    return await core.find_backlinks(path=path, block_id=block_id)


def main():
    """Run the MCP server."""
    import logging

    from ._logging import configure_logging
    from .config import ConfigurationError
    from .watcher import FileWatcher

    configure_logging()
    log = logging.getLogger(__name__)

    watcher = None
    if os.environ.get("THOUGHTLINE_WATCH", "1").lower() not in ("0", "false", "no"):
        try:
            watcher = FileWatcher(core.get_cache(), core.get_vault_root())
        except ConfigurationError as e:
            log.warning("File watching disabled: %s", e)

    if watcher is not None:
        with watcher:
            mcp.run()
    else:
        mcp.run()


if __name__ == "__main__":
    main()
