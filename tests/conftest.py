"""Shared test fixtures for thoughtline test suite.

Design:
- tmp_vault: Creates isolated vault in temp directory
- runner: CliRunner with proper isolation
- Async helpers: pytest-asyncio configured with function scope
"""

from pathlib import Path
from typing import Generator

import pytest
from click.testing import CliRunner

from thoughtline import core
from thoughtline.cli import cli


# ─────────────────────────────────────────────────────────────────────────────
# Core Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def _reset_core_state() -> Generator[None, None, None]:
    """Drop cached results and vault context around every test."""
    core.reset_state()
    yield
    core.reset_state()


@pytest.fixture
def runner() -> CliRunner:
    """CLI runner with isolated environment."""
    return CliRunner()


@pytest.fixture
def tmp_vault(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Create an isolated vault directory and point THOUGHTLINE_VAULT at it.

    Usage:
        def test_something(tmp_vault):
            write_note(tmp_vault, "Daily Notes/2025-01-06.md", "- #todo ship")
    """
    vault = tmp_path / "vault"
    (vault / "Daily Notes").mkdir(parents=True)

    monkeypatch.setenv("THOUGHTLINE_VAULT", str(vault))
    monkeypatch.delenv("VAULT_PATH", raising=False)
    return vault


@pytest.fixture
def cli_invoke(runner: CliRunner, tmp_vault: Path):
    """Helper for invoking CLI with proper isolation.

    Usage:
        def test_query(cli_invoke):
            result = cli_invoke(["query", "#todo"])
            assert result.exit_code == 0
    """
    def _invoke(args: list[str], catch_exceptions: bool = False):
        return runner.invoke(
            cli,
            args,
            catch_exceptions=catch_exceptions,
            env={"THOUGHTLINE_VAULT": str(tmp_vault)},
        )
    return _invoke


# ─────────────────────────────────────────────────────────────────────────────
# Helper Functions (for test code, not fixtures)
# ─────────────────────────────────────────────────────────────────────────────


def write_note(vault: Path, path: str, content: str) -> Path:
    """Write a note into the vault, creating parent folders.

    Usage in tests:
        from conftest import write_note
        write_note(tmp_vault, "notes/plan.md", "- #idea try it")
    """
    note_path = vault / path
    note_path.parent.mkdir(parents=True, exist_ok=True)
    note_path.write_text(content, encoding="utf-8")
    return note_path


MONDAY_NOTE = """# Monday
- #meeting Ada: standup
  - blocked on db
- Project X
  - [ ] #todo ship release ^ship1
    - write notes
  - [x] #todo fix build
"""

TUESDAY_NOTE = """- follow-up [[2025-01-06#^ship1]]
  - notes drafted
- quick mention [[2025-01-06#^ship1]]
- #meeting Bob: retro
"""

TAGS_NOTE = """- #meeting Notes from a meeting

## Task Tags
- #todo
"""


@pytest.fixture
def sample_vault(tmp_vault: Path) -> Path:
    """Vault with two linked daily notes and one project note.

    Creates:
    - Daily Notes/2025-01-06.md (#meeting, two #todo tasks, block ^ship1)
    - Daily Notes/2025-01-07.md (two links to ^ship1, #meeting)
    - notes/plan.md (#idea)
    """
    write_note(tmp_vault, "Daily Notes/2025-01-06.md", MONDAY_NOTE)
    write_note(tmp_vault, "Daily Notes/2025-01-07.md", TUESDAY_NOTE)
    write_note(tmp_vault, "notes/plan.md", "- #idea use a stack\n")
    return tmp_vault
