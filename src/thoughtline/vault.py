"""Filesystem access to a vault of markdown notes.

All paths handed to and returned from this module are vault-relative POSIX
strings ("Daily Notes/2025-01-06.md").
"""

import logging
import re
from datetime import date, timedelta
from pathlib import Path
from typing import Protocol

import frontmatter

from .config import DEFAULT_DAILY_NOTES_FOLDER, DEFAULT_IGNORE_FOLDERS
from .errors import DocumentUnavailable, ErrorCode, NoteNotFound, ThoughtlineError
from .models import NoteContent

log = logging.getLogger(__name__)

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class DocumentLoader(Protocol):
    """Anything that can return the lines of a document by identifier."""

    def read_lines(self, doc_id: str) -> list[str]:
        """Return the document's lines.

        Raises:
            DocumentUnavailable: If the document cannot be read.
        """
        ...


def parse_date(value: str, today: date | None = None) -> str:
    """Normalize a date argument to YYYY-MM-DD.

    Accepts YYYY-MM-DD, "today", "yesterday" and "tomorrow".

    Raises:
        ValueError: For anything else.
    """
    today = today or date.today()
    token = value.strip().lower()
    relative = {"today": 0, "yesterday": -1, "tomorrow": 1}
    if token in relative:
        return (today + timedelta(days=relative[token])).isoformat()

    if _ISO_DATE.match(token):
        try:
            return date.fromisoformat(token).isoformat()
        except ValueError:
            pass
    raise ValueError(f"Unable to parse date: {value}")


class VaultLoader:
    """Reads markdown documents from a vault directory."""

    def __init__(
        self,
        root: Path,
        daily_notes_folder: str = DEFAULT_DAILY_NOTES_FOLDER,
        ignore_folders: tuple[str, ...] | list[str] = DEFAULT_IGNORE_FOLDERS,
    ):
        self.root = Path(root)
        self.daily_notes_folder = daily_notes_folder
        self.ignore_folders = tuple(ignore_folders)

    def resolve(self, doc_id: str) -> Path:
        """Map a vault-relative path to a file, refusing paths outside the vault.

        Raises:
            ThoughtlineError: If the path escapes the vault root.
        """
        candidate = (self.root / doc_id).resolve()
        root = self.root.resolve()
        if candidate != root and root not in candidate.parents:
            raise ThoughtlineError(
                f"Path escapes the vault: {doc_id}",
                {"path": doc_id},
                code=ErrorCode.INVALID_ARGUMENT,
            )
        return candidate

    def relative(self, path: Path) -> str:
        return path.resolve().relative_to(self.root.resolve()).as_posix()

    def read_text(self, doc_id: str) -> str:
        """Read a document's text.

        Raises:
            DocumentUnavailable: If the file is missing or unreadable.
        """
        path = self.resolve(doc_id)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise DocumentUnavailable(doc_id, "file not found") from e
        except (OSError, UnicodeDecodeError) as e:
            raise DocumentUnavailable(doc_id, str(e)) from e

    def read_lines(self, doc_id: str) -> list[str]:
        return self.read_text(doc_id).splitlines()

    def exists(self, doc_id: str) -> bool:
        try:
            return self.resolve(doc_id).is_file()
        except ThoughtlineError:
            return False

    def _ignored(self, relative: Path) -> bool:
        return any(part in self.ignore_folders for part in relative.parts)

    def list_markdown_files(self) -> list[str]:
        """All markdown files in the vault outside ignored folders, sorted."""
        if not self.root.is_dir():
            log.warning("Vault root does not exist: %s", self.root)
            return []

        files = []
        for md_file in self.root.rglob("*.md"):
            relative = md_file.relative_to(self.root)
            if self._ignored(relative) or not md_file.is_file():
                continue
            files.append(relative.as_posix())
        return sorted(files)

    def daily_note_path(self, value: str) -> str:
        """Vault-relative path of the daily note for a date argument."""
        return f"{self.daily_notes_folder}/{parse_date(value)}.md"

    def read_note(self, doc_id: str) -> NoteContent:
        """Read a note, splitting off its YAML frontmatter.

        Raises:
            NoteNotFound: If the note does not exist.
        """
        path = self.resolve(doc_id)
        if not path.is_file():
            raise NoteNotFound(doc_id)

        try:
            post = frontmatter.load(str(path))
        except Exception as e:
            # Malformed frontmatter: serve the raw text
            log.warning("Could not parse frontmatter in %s: %s", doc_id, e)
            return NoteContent(path=doc_id, content=self.read_text(doc_id))

        return NoteContent(path=doc_id, content=post.content, frontmatter=dict(post.metadata))
