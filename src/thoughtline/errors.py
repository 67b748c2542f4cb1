"""Error types for thoughtline.

Every error raised across the service boundary carries a stable code so the
CLI (--json-errors) and MCP callers can branch on it without parsing messages.
"""

import json
from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Stable error codes for programmatic callers."""

    QUERY_SYNTAX = "QUERY_SYNTAX"
    ANCHOR_UNRESOLVED = "ANCHOR_UNRESOLVED"
    DOCUMENT_UNAVAILABLE = "DOCUMENT_UNAVAILABLE"
    NOTE_NOT_FOUND = "NOTE_NOT_FOUND"
    AMBIGUOUS_MATCH = "AMBIGUOUS_MATCH"
    NO_MATCH = "NO_MATCH"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    INVALID_DATE = "INVALID_DATE"
    VAULT_NOT_CONFIGURED = "VAULT_NOT_CONFIGURED"
    SCAN_TIMEOUT = "SCAN_TIMEOUT"
    FILE_READ_ERROR = "FILE_READ_ERROR"


def format_error_json(code: str, message: str, details: dict[str, Any] | None = None) -> str:
    """Format an error as a JSON string: {"error": {"code", "message", "details"?}}."""
    error: dict[str, dict[str, Any]] = {"error": {"code": str(code), "message": message}}
    if details:
        error["error"]["details"] = details
    return json.dumps(error, default=str)


class ThoughtlineError(Exception):
    """Base error with a code, a human message and optional details."""

    code: ErrorCode = ErrorCode.FILE_READ_ERROR

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: ErrorCode | None = None,
    ) -> None:
        self.message = message
        self.details = details or {}
        if code is not None:
            self.code = code
        super().__init__(message)

    def to_json(self) -> str:
        return format_error_json(self.code, self.message, self.details)


class QuerySyntaxError(ThoughtlineError, ValueError):
    """Raised when a tag query string cannot be compiled."""

    code = ErrorCode.QUERY_SYNTAX

    def __init__(self, query: str, reason: str) -> None:
        self.query = query
        self.reason = reason
        super().__init__(
            f"Invalid tag query {query!r}: {reason}",
            {"query": query, "suggestion": "Use '#tag', '#a,#b' or '#parent > #child'"},
        )


class AnchorUnresolved(ThoughtlineError):
    """Raised when an anchor locator matches no line in a document.

    The thought builder always recovers from this through its fallback chain.
    """

    code = ErrorCode.ANCHOR_UNRESOLVED


class DocumentUnavailable(ThoughtlineError):
    """Raised when a document loader cannot return lines for a document."""

    code = ErrorCode.DOCUMENT_UNAVAILABLE

    def __init__(self, doc_id: str, reason: str) -> None:
        self.doc_id = doc_id
        super().__init__(f"Document unavailable: {doc_id} ({reason})", {"path": doc_id})


class NoteNotFound(ThoughtlineError, FileNotFoundError):
    """Raised when a requested note does not exist in the vault."""

    code = ErrorCode.NOTE_NOT_FOUND

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Note not found: {path}", {"path": path})


class AmbiguousMatchError(ThoughtlineError, ValueError):
    """Raised when a structure lookup matches several tagged items."""

    code = ErrorCode.AMBIGUOUS_MATCH

    def __init__(self, tag: str, candidates: list[str]) -> None:
        self.candidates = candidates
        listing = "\n".join(f"  - {c}" for c in candidates)
        super().__init__(
            f"Multiple items found matching tag {tag!r}. "
            f"Use a text query to narrow down:\n{listing}",
            {"tag": tag, "candidates": candidates},
        )
