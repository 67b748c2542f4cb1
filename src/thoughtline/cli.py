#!/usr/bin/env python3
"""
tl: CLI for thoughtline

Usage:
    tl query "#meeting"                 # Find tagged bullets across the vault
    tl query "#proj > #todo" --status open
    tl thought "Daily Notes/2025-01-06.md" --block abc123
    tl structure "#meeting" --date today
    tl tags                             # Tags by usage
"""

from __future__ import annotations

import asyncio
import difflib
import json
import sys
from collections.abc import Sequence
from typing import Any, NoReturn

import click
from click.exceptions import ClickException, UsageError

from . import __version__ as THOUGHTLINE_VERSION


def run_async(coro):
    """Run async function synchronously."""
    return asyncio.run(coro)


def output(data, as_json: bool = False):
    """Output data as JSON or formatted text."""
    if as_json:
        click.echo(json.dumps(data, indent=2, default=str))
    else:
        click.echo(data)


def format_table(rows: list[dict], columns: list[str], max_widths: dict | None = None) -> str:
    """Format rows as a simple table."""
    if not rows:
        return ""

    max_widths = max_widths or {}
    widths = {col: len(col) for col in columns}
    cells: list[dict[str, str]] = []

    for row in rows:
        cell = {}
        for col in columns:
            val = str(row.get(col, "") if row.get(col) is not None else "")
            limit = max_widths.get(col, 50)
            if len(val) > limit:
                val = val[: limit - 3] + "..."
            cell[col] = val
            widths[col] = max(widths[col], len(val))
        cells.append(cell)

    header = "  ".join(col.upper().ljust(widths[col]) for col in columns)
    separator = "  ".join("-" * widths[col] for col in columns)
    lines = [header, separator]
    for cell in cells:
        lines.append("  ".join(cell[col].ljust(widths[col]) for col in columns).rstrip())
    return "\n".join(lines)


# ─────────────────────────────────────────────────────────────────────────────
# Error Handling
# ─────────────────────────────────────────────────────────────────────────────


def _handle_error(
    ctx: click.Context,
    error: Exception,
    fallback_message: str | None = None,
    exit_code: int = 1,
) -> NoReturn:
    """Handle an error with optional JSON output.

    If --json-errors is enabled, outputs structured JSON error.
    Otherwise, outputs human-readable error message.

    Args:
        ctx: Click context (must have obj["json_errors"] set).
        error: The exception that occurred.
        fallback_message: Optional message to use for non-ThoughtlineError exceptions.
        exit_code: Exit code to use (default 1).
    """
    from .errors import ThoughtlineError, format_error_json

    json_errors = ctx.obj.get("json_errors", False) if ctx.obj else False

    if isinstance(error, ThoughtlineError):
        if json_errors:
            click.echo(error.to_json(), err=True)
        else:
            click.echo(f"Error: {error.message}", err=True)
            suggestion = error.details.get("suggestion") if error.details else None
            if suggestion:
                click.echo(f"Hint: {suggestion}", err=True)
    else:
        message = fallback_message or str(error)
        if json_errors:
            click.echo(format_error_json(_infer_error_code(error, message), message), err=True)
        else:
            click.echo(f"Error: {message}", err=True)

    sys.exit(exit_code)


def _infer_error_code(error: Exception, message: str) -> str:
    """Infer an error code for exceptions that carry none."""
    from .config import ConfigurationError
    from .errors import ErrorCode

    if isinstance(error, ConfigurationError):
        return ErrorCode.VAULT_NOT_CONFIGURED
    if isinstance(error, FileNotFoundError):
        return ErrorCode.NOTE_NOT_FOUND
    if "unable to parse date" in message.lower():
        return ErrorCode.INVALID_DATE
    if isinstance(error, ValueError):
        return ErrorCode.INVALID_ARGUMENT
    return ErrorCode.FILE_READ_ERROR


def get_error_code_for_exception(exc: Exception) -> str:
    """Map Click exceptions to error codes."""
    if isinstance(exc, click.BadParameter):
        return "INVALID_ARGUMENT"
    elif isinstance(exc, click.MissingParameter):
        return "MISSING_ARGUMENT"
    elif isinstance(exc, click.NoSuchOption):
        return "UNKNOWN_OPTION"
    elif isinstance(exc, UsageError):
        return "USAGE_ERROR"
    elif isinstance(exc, ClickException):
        return "CLI_ERROR"
    return "UNKNOWN_ERROR"


def _run(ctx: click.Context, coro):
    """Run a core coroutine, routing expected failures through _handle_error."""
    from .config import ConfigurationError
    from .errors import ThoughtlineError

    try:
        return run_async(coro)
    except (ThoughtlineError, ConfigurationError, ValueError) as e:
        _handle_error(ctx, e)


# ─────────────────────────────────────────────────────────────────────────────
# JSON Error Handling
# ─────────────────────────────────────────────────────────────────────────────


class JsonErrorGroup(click.Group):
    """Custom Click group that formats errors as JSON when --json-errors is set.

    This handles Click validation errors (bad option values, missing args, etc.)
    that occur before the command callback is invoked. Also provides typo
    suggestions for unknown commands.
    """

    def resolve_command(self, ctx, args):
        """Override to suggest similar commands for typos."""
        try:
            return super().resolve_command(ctx, args)
        except UsageError as e:
            cmd_name = args[0] if args else ""
            if cmd_name and "No such command" in str(e):
                matches = difflib.get_close_matches(
                    cmd_name, self.list_commands(ctx), n=1, cutoff=0.6
                )
                if matches:
                    raise UsageError(f"No such command '{cmd_name}'. Did you mean '{matches[0]}'?")
            raise

    def invoke(self, ctx):
        """Override invoke to catch and format errors."""
        try:
            return super().invoke(ctx)
        except ClickException as e:
            if ctx.params.get("json_errors"):
                from .errors import format_error_json

                code = get_error_code_for_exception(e)
                click.echo(format_error_json(code, e.format_message()), err=True)
                raise SystemExit(1)
            raise

    def main(
        self,
        args: Sequence[str] | None = None,
        prog_name: str | None = None,
        complete_var: str | None = None,
        standalone_mode: bool = True,
        **extra: Any,
    ) -> Any:
        """Override main to catch errors during argument parsing.

        When --json-errors appears anywhere it is moved to the front so Click
        parses it as a global flag, and Click runs non-standalone so parse
        errors surface as exceptions we can format.
        """
        from .errors import format_error_json

        argv = list(args) if args is not None else list(sys.argv[1:])
        if "--json-errors" not in argv:
            return super().main(args, prog_name, complete_var, standalone_mode, **extra)

        argv = [a for a in argv if a != "--json-errors"]
        argv.insert(0, "--json-errors")

        try:
            return super().main(
                argv,
                prog_name,
                complete_var,
                standalone_mode=False,
                **extra,
            )
        except ClickException as e:
            code = get_error_code_for_exception(e)
            click.echo(format_error_json(code, e.format_message()), err=True)
            raise SystemExit(1)
        except SystemExit:
            raise
        except Exception as e:
            click.echo(format_error_json("INTERNAL_ERROR", str(e)), err=True)
            raise SystemExit(1)


# ─────────────────────────────────────────────────────────────────────────────
# Root group
# ─────────────────────────────────────────────────────────────────────────────


@click.group(cls=JsonErrorGroup)
@click.version_option(version=THOUGHTLINE_VERSION, prog_name="tl")
@click.option(
    "--json-errors",
    "json_errors",
    is_flag=True,
    help="Output errors as JSON (for programmatic use)",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    envvar="THOUGHTLINE_QUIET",
    help="Suppress warnings, show only errors and essential output",
)
@click.pass_context
def cli(ctx: click.Context, json_errors: bool, quiet: bool):
    """tl: query tagged bullets and thought outlines in a markdown vault.

    \b
    Tag queries:
      tl query "#meeting"                    # Every #meeting bullet
      tl query "#meeting" --subject Ada      # "#meeting Ada: ..." only
      tl query "#proj1,#proj2 > #todo"       # #todo nested under either project
      tl query "#todo" --status open --date today

    \b
    Thoughts:
      tl thought notes/plan.md --line 12     # Children, ancestors, backlinks
      tl thought notes/plan.md --block abc   # Locate by ^abc
      tl backlinks notes/plan.md --block abc

    \b
    Vault:
      tl tags                                # Tags by usage
      tl note --date yesterday               # Read a daily note
      tl structure "#meeting" --date today   # Line numbers under one item
      tl info                                # Vault configuration

    \b
    For programmatic error handling:
      tl --json-errors query ...   # Errors output as JSON with error codes
    """
    from ._logging import set_quiet_mode

    ctx.ensure_object(dict)
    ctx.obj["json_errors"] = json_errors
    ctx.obj["quiet"] = quiet

    if quiet:
        set_quiet_mode(True)


# ─────────────────────────────────────────────────────────────────────────────
# Query Commands
# ─────────────────────────────────────────────────────────────────────────────


@cli.command("query")
@click.argument("tag")
@click.option("--subject", "-s", help="Subject substring ('#tag Subject: text')")
@click.option("--context", "-c", "parent_context", help="Ancestor text substring")
@click.option("--text", "-t", "text_filter", help="Text substring (may contain status:<word>)")
@click.option("--status", help="open, done, all, or any status name/alias (wip, blocked, ...)")
@click.option("--date", "-d", help="Daily note date (YYYY-MM-DD, today, yesterday, tomorrow)")
@click.option("--path", "-p", help="Restrict to one note")
@click.option("--no-children", is_flag=True, help="Do not render nested bullets")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def query(
    ctx: click.Context,
    tag: str,
    subject: str | None,
    parent_context: str | None,
    text_filter: str | None,
    status: str | None,
    date: str | None,
    path: str | None,
    no_children: bool,
    as_json: bool,
):
    """Find bullets matching a tag query.

    \b
    Examples:
      tl query "#meeting"
      tl query "#meeting" --subject Ada --json
      tl query "#proj > #todo" --text "status:wip deploy"
    """
    from .core import query_tag

    response = _run(
        ctx,
        query_tag(
            tag=tag,
            subject=subject,
            parent_context=parent_context,
            date=date,
            query=text_filter,
            include_children=not no_children,
            status=status,
            path=path,
        ),
    )

    if as_json:
        output(response.model_dump(), as_json=True)
        return

    if not response.matches:
        click.echo(f"No items matching {response.query or tag!r}")
        return

    for match in response.matches:
        status_mark = f" [{match.status}]" if match.status else ""
        subject_mark = f" ({match.subject})" if match.subject else ""
        click.echo(f"{match.path}:{match.line + 1}{status_mark} {match.tag}{subject_mark} {match.text}")
        for child in match.children:
            for line in child.splitlines():
                click.echo(f"    {line}")


@cli.command("tags")
@click.option("--limit", "-n", type=int, default=None, help="Show only the top N tags")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def tags(ctx: click.Context, limit: int | None, as_json: bool):
    """List tags by usage count."""
    from .core import list_tags

    infos = _run(ctx, list_tags())
    if limit is not None:
        infos = infos[:limit]

    if as_json:
        output([info.model_dump() for info in infos], as_json=True)
        return

    if not infos:
        click.echo("No tags found")
        return

    rows = [
        {
            "tag": info.tag + (" (task)" if info.is_task_tag else ""),
            "count": info.count,
            "description": info.description,
        }
        for info in infos
    ]
    click.echo(format_table(rows, ["tag", "count", "description"], {"description": 60}))


@cli.command("structure")
@click.argument("tag")
@click.option("--query", "-t", "text_filter", help="Narrow down to one item by text")
@click.option("--date", "-d", help="Daily note date")
@click.option("--path", "-p", help="Note path")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def structure(
    ctx: click.Context,
    tag: str,
    text_filter: str | None,
    date: str | None,
    path: str | None,
    as_json: bool,
):
    """Show line numbers of everything nested under one tagged bullet."""
    from .core import get_tag_structure

    if not date and not path:
        raise UsageError("Must specify --date or --path")

    result = _run(ctx, get_tag_structure(tag=tag, query=text_filter, date=date, path=path))

    if as_json:
        output(result.model_dump(), as_json=True)
        return

    click.echo(f"{result.path}:{result.line + 1} {result.text}")

    def show(nodes, depth: int) -> None:
        for node in nodes:
            click.echo(f"{node.line + 1:>5}  {'  ' * depth}{node.bullet} {node.text}")
            show(node.children, depth + 1)

    show(result.children, 0)


# ─────────────────────────────────────────────────────────────────────────────
# Note and Thought Commands
# ─────────────────────────────────────────────────────────────────────────────


@cli.command("note")
@click.argument("path", required=False)
@click.option("--date", "-d", help="Daily note date")
@click.option("--metadata", "-m", is_flag=True, help="Show only frontmatter")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def note(ctx: click.Context, path: str | None, date: str | None, metadata: bool, as_json: bool):
    """Read a note by path or by daily-note date."""
    from .core import get_note

    if path and date:
        raise UsageError("Cannot specify both PATH and --date")
    if not path and not date:
        raise UsageError("Must specify either PATH or --date")

    content = _run(ctx, get_note(path=path, date=date))

    if as_json:
        data = content.model_dump()
        if metadata:
            data.pop("content")
        output(data, as_json=True)
        return

    if metadata:
        for key, value in content.frontmatter.items():
            click.echo(f"{key}: {value}")
        return

    click.echo(content.content)


@cli.command("thought")
@click.argument("path")
@click.option("--line", "-l", type=int, help="Line number of the item (1-based)")
@click.option("--block", "-b", "block_id", help="Block id of the item (^abc or abc)")
@click.option("--text", "-t", help="Item text to locate")
@click.option("--search", "-s", help="Keep only sections containing this text")
@click.option("--no-backlinks", is_flag=True, help="Skip outlines from linking notes")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def thought(
    ctx: click.Context,
    path: str,
    line: int | None,
    block_id: str | None,
    text: str | None,
    search: str | None,
    no_backlinks: bool,
    as_json: bool,
):
    """Show an item's children, its ancestors, and what links to it.

    \b
    Examples:
      tl thought "Daily Notes/2025-01-06.md" --line 4
      tl thought projects/launch.md --block a1b2c3 --search deploy
    """
    from . import core

    if line is None and not block_id and not text:
        raise UsageError("Must specify --line, --block or --text")
    if line is not None and line < 1:
        raise click.BadParameter("line numbers start at 1", param_hint="--line")

    result = _run(
        ctx,
        core.thought(
            path=path,
            line=line - 1 if line is not None else None,
            block_id=block_id,
            text=text,
            include_backlinks=not no_backlinks,
            search=search,
        ),
    )

    if as_json:
        output(result.model_dump(), as_json=True)
        return

    if result.error:
        _handle_error(ctx, ValueError(result.error))

    if result.parents:
        click.echo(" > ".join(result.parents))
    if result.header:
        click.echo(result.header)
    if result.message:
        click.echo(result.message)

    for section in result.sections:
        click.echo("")
        click.echo(f"## {section.label} ({section.role}, {section.path})")
        click.echo(section.markdown)

    if result.references:
        click.echo("")
        click.echo("## References")
        for reference in result.references:
            click.echo(f"- {reference.label}: {reference.preview}")


@cli.command("backlinks")
@click.argument("path")
@click.option("--block", "-b", "block_id", help="Only links to this block id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def backlinks(ctx: click.Context, path: str, block_id: str | None, as_json: bool):
    """List lines in other notes that link to PATH."""
    from .core import find_backlinks

    entries = _run(ctx, find_backlinks(path=path, block_id=block_id))

    if as_json:
        output([entry.model_dump() for entry in entries], as_json=True)
        return

    if not entries:
        click.echo("No backlinks found")
        return

    for entry in entries:
        click.echo(f"{entry.path}:{entry.line + 1} {entry.text}")


@cli.command("info")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def info(ctx: click.Context, as_json: bool):
    """Show vault configuration."""
    from .core import vault_info

    data = _run(ctx, vault_info())

    if as_json:
        output(data, as_json=True)
        return

    click.echo(f"Vault:         {data['vault_root']}")
    click.echo(f"Config file:   {data['config_file'] or '(none)'}")
    click.echo(f"Daily notes:   {data['daily_notes_folder']}")
    click.echo(f"Ignored:       {', '.join(data['ignore_folders'])}")
    click.echo(f"Documents:     {data['documents']}")
    click.echo(f"Described tags: {data['described_tags']}")
    if data["task_tags"]:
        click.echo(f"Task tags:     {', '.join(data['task_tags'])}")


def main():
    """Entry point for tl CLI."""
    from ._logging import configure_logging

    configure_logging()
    cli()


if __name__ == "__main__":
    main()
