"""Task status vocabulary: checkbox characters, status names and aliases."""

import re
from typing import Literal

TaskStatus = Literal["open", "done", "cancelled", "in_progress", "blocked"]

STATUS_NAMES: tuple[TaskStatus, ...] = ("open", "done", "cancelled", "in_progress", "blocked")

# Checkbox character -> status name. Unknown characters count as open.
STATUS_BY_CHAR: dict[str, TaskStatus] = {
    " ": "open",
    "?": "open",
    "x": "done",
    "-": "cancelled",
    "/": "in_progress",
    "!": "blocked",
}

# Status name -> canonical checkbox character
CHAR_BY_STATUS: dict[str, str] = {
    "open": " ",
    "done": "x",
    "cancelled": "-",
    "in_progress": "/",
    "blocked": "!",
}

# Keyword -> checkbox character
STATUS_ALIASES: dict[str, str] = {
    # done
    "done": "x",
    "complete": "x",
    "completed": "x",
    "finished": "x",
    "resolved": "x",
    "shipped": "x",
    "deployed": "x",
    "closed": "x",
    "success": "x",
    "achieved": "x",
    # cancelled / skipped
    "cancel": "-",
    "cancelled": "-",
    "canceled": "-",
    "dropped": "-",
    "skipped": "-",
    "abandoned": "-",
    "declined": "-",
    "rejected": "-",
    "shelved": "-",
    # blocked / attention
    "blocked": "!",
    "error": "!",
    "issue": "!",
    "urgent": "!",
    "stalled": "!",
    "stuck": "!",
    "waiting": "!",
    "hold": "!",
    "onhold": "!",
    "failed": "!",
    # unsure, reads as open
    "unsure": "?",
    "maybe": "?",
    "question": "?",
    # open
    "todo": " ",
    "pending": " ",
    "open": " ",
    "ready": " ",
    "next": " ",
    "backlog": " ",
    "someday": " ",
    "not-started": " ",
    "incomplete": " ",
    # in progress
    "wip": "/",
    "in-progress": "/",
    "in_progress": "/",
    "inprogress": "/",
    "progress": "/",
    "started": "/",
    "active": "/",
    "doing": "/",
}

_STATUS_TOKEN = re.compile(r"\bstatus:\s*(\S*)", re.IGNORECASE)


def status_from_char(char: str) -> TaskStatus:
    """Map a checkbox character to its status name."""
    return STATUS_BY_CHAR.get(char.lower(), "open")


def resolve_status_alias(raw: str) -> str | None:
    """Resolve a status keyword to its checkbox character.

    Accepts bare checkbox characters, status names, aliases, and alias
    prefixes ("prog" -> "/"). A prefix shared by several aliases resolves to
    the first one in STATUS_ALIASES order. Returns None when nothing matches.
    """
    token = raw.strip().lower()
    if not token:
        return None

    if len(token) == 1 and token in STATUS_BY_CHAR:
        return token
    if token == "space":
        return " "

    if token in STATUS_ALIASES:
        return STATUS_ALIASES[token]

    for alias, char in STATUS_ALIASES.items():
        if alias.startswith(token):
            return char
    return None


def resolve_status_name(raw: str) -> TaskStatus | None:
    """Resolve a status keyword to a status name ("wip" -> "in_progress")."""
    char = resolve_status_alias(raw)
    return status_from_char(char) if char is not None else None


def parse_status_filter(query: str) -> tuple[str, TaskStatus | None]:
    """Pull a "status:<word>" token out of a free-text query.

    Returns:
        Tuple of (query without the token, resolved status name or None).
    """
    match = _STATUS_TOKEN.search(query)
    if not match:
        return query.strip(), None

    cleaned = " ".join(query.replace(match.group(0), " ").split())
    raw = match.group(1).strip()
    if not raw:
        return cleaned, None
    return cleaned, resolve_status_name(raw)
