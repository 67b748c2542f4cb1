"""Per-vault settings and tag metadata.

Two sources, both optional:

A .tlconfig YAML file at the vault root::

    daily_notes_folder: Journal
    ignore_folders:
      - .obsidian
      - Archive

and a Config/Tags.md note describing tags::

    - #meeting Notes from a meeting
    - #idea Something to revisit

    ## Task Tags
    - #todo
    - #followup
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .config import (
    DEFAULT_DAILY_NOTES_FOLDER,
    DEFAULT_IGNORE_FOLDERS,
    TAGS_CONFIG_PATH,
    VAULT_CONFIG_FILENAME,
)
from .parser.lines import HEADING_PATTERN
from .parser.outline import iter_items, parse_outline

log = logging.getLogger(__name__)

TASK_TAGS_HEADING = "task tags"

# Cache for vault context loading (per-session)
_context_cache: dict[str, "VaultContext"] = {}


@dataclass
class VaultConfig:
    """Settings from the vault's .tlconfig file."""

    daily_notes_folder: str = DEFAULT_DAILY_NOTES_FOLDER
    ignore_folders: list[str] = field(default_factory=lambda: list(DEFAULT_IGNORE_FOLDERS))
    source_file: Path | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], source_file: Path | None = None) -> "VaultConfig":
        """Create VaultConfig from parsed YAML dict."""
        ignore = data.get("ignore_folders", DEFAULT_IGNORE_FOLDERS)
        if isinstance(ignore, str):
            ignore = [part.strip() for part in ignore.split(",") if part.strip()]
        return cls(
            daily_notes_folder=str(data.get("daily_notes_folder") or DEFAULT_DAILY_NOTES_FOLDER),
            ignore_folders=[str(folder) for folder in ignore],
            source_file=source_file,
        )


@dataclass
class VaultContext:
    """Everything thoughtline knows about a vault besides its notes."""

    root: Path
    config: VaultConfig
    tag_descriptions: dict[str, str] = field(default_factory=dict)
    task_tags: list[str] = field(default_factory=list)


def load_vault_config(vault_root: Path) -> VaultConfig:
    """Load .tlconfig from the vault root, falling back to defaults."""
    config_file = vault_root / VAULT_CONFIG_FILENAME
    if not config_file.exists():
        return VaultConfig()

    try:
        data = yaml.safe_load(config_file.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        log.warning("Ignoring unreadable %s: %s", config_file, e)
        return VaultConfig()

    # Empty file or all comments
    if data is None:
        return VaultConfig(source_file=config_file)
    if not isinstance(data, dict):
        log.warning("Ignoring %s: expected a mapping", config_file)
        return VaultConfig()
    return VaultConfig.from_dict(data, source_file=config_file)


def parse_tag_descriptions(lines: list[str]) -> dict[str, str]:
    """Map "#tag" to the text that follows it on "- #tag description" bullets."""
    descriptions: dict[str, str] = {}
    for item in iter_items(parse_outline(lines)):
        if not item.tags or not item.raw_text.startswith(item.tags[0]):
            continue
        description = item.raw_text[len(item.tags[0]):].strip()
        if description:
            descriptions[item.tags[0]] = description
    return descriptions


def parse_task_tags(lines: list[str]) -> list[str]:
    """Tags listed under a "Task Tags" heading, up to the next heading of the same level."""
    start = None
    level = 0
    end = len(lines)
    for index, line in enumerate(lines):
        match = HEADING_PATTERN.match(line.strip())
        if not match:
            continue
        if start is None:
            if match.group(2).strip().lower() == TASK_TAGS_HEADING:
                start, level = index + 1, len(match.group(1))
        elif len(match.group(1)) <= level:
            end = index
            break

    if start is None:
        return []

    task_tags = []
    for item in iter_items(parse_outline(lines[start:end])):
        if item.tags and item.raw_text.startswith(item.tags[0]) and item.tags[0] not in task_tags:
            task_tags.append(item.tags[0])
    return task_tags


def load_vault_context(vault_root: Path) -> VaultContext:
    """Read .tlconfig and Config/Tags.md for a vault."""
    config = load_vault_config(vault_root)
    context = VaultContext(root=vault_root, config=config)

    tags_file = vault_root / TAGS_CONFIG_PATH
    if tags_file.exists():
        try:
            lines = tags_file.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError) as e:
            log.warning("Could not read %s: %s", tags_file, e)
        else:
            context.tag_descriptions = parse_tag_descriptions(lines)
            context.task_tags = parse_task_tags(lines)

    return context


def get_vault_context(vault_root: Path) -> VaultContext:
    """Get the vault context (cached per vault path)."""
    cache_key = str(vault_root.resolve())
    if cache_key not in _context_cache:
        _context_cache[cache_key] = load_vault_context(vault_root)
    return _context_cache[cache_key]


def clear_context_cache() -> None:
    """Clear the context cache. Useful for testing or after config changes."""
    _context_cache.clear()
