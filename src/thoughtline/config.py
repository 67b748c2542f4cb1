"""Configuration management for thoughtline.

This module contains all configurable constants for the outline engine and
the vault service layer. Magic numbers are documented here rather than
scattered throughout the codebase.
"""

import os
from pathlib import Path


class ConfigurationError(Exception):
    """Raised when required configuration is missing."""

    pass


# =============================================================================
# Vault Discovery
# =============================================================================

# Per-vault settings file (YAML). Marks a directory as a vault root when it
# carries a vault_path key, or configures the vault it lives in.
VAULT_CONFIG_FILENAME = ".tlconfig"

# Maximum directory traversal depth when searching for .tlconfig files
MAX_CONFIG_SEARCH_DEPTH = 10


def get_vault_root() -> Path:
    """Get the vault root directory.

    Discovery order:
    1. THOUGHTLINE_VAULT environment variable (explicit override)
    2. VAULT_PATH environment variable (shared with other vault tooling)
    3. Walk up from cwd looking for .tlconfig with a vault_path field
    4. Error with helpful message

    Raises:
        ConfigurationError: If no vault can be found.
    """
    for env_var in ("THOUGHTLINE_VAULT", "VAULT_PATH"):
        root = os.environ.get(env_var)
        if root:
            return Path(root)

    discovered = _discover_vault_config()
    if discovered:
        _, vault_path = discovered
        return vault_path

    raise ConfigurationError(
        "No vault configured. Options:\n"
        "  1. Set THOUGHTLINE_VAULT to your vault directory\n"
        "  2. Add a .tlconfig with 'vault_path: <dir>' to this project"
    )


def _discover_vault_config(
    start_dir: Path | None = None, max_depth: int = MAX_CONFIG_SEARCH_DEPTH
) -> tuple[Path, Path] | None:
    """Walk up from start_dir looking for .tlconfig with vault_path.

    Args:
        start_dir: Directory to start from (defaults to cwd)
        max_depth: Maximum directories to traverse up

    Returns:
        Tuple of (config_path, vault_path) if found, None otherwise.
    """
    import yaml

    current = Path(start_dir or os.getcwd()).resolve()

    for _ in range(max_depth):
        config_file = current / VAULT_CONFIG_FILENAME
        if config_file.exists():
            try:
                data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict) and "vault_path" in data:
                    vault_path = (current / str(data["vault_path"])).resolve()
                    if vault_path.is_dir():
                        return (config_file, vault_path)
            except (OSError, yaml.YAMLError):
                pass

        parent = current.parent
        if parent == current:  # Reached filesystem root
            break
        current = parent

    return None


# =============================================================================
# Outline Parsing
# =============================================================================

# A tab always counts as four spaces. Not configurable: the parser, the dedent
# math and the parent-chain walk all depend on the same column arithmetic.
TAB_WIDTH = 4

# Indent step used when an outline is rebuilt from a context snapshot
SNAPSHOT_INDENT_STEP = 2


# =============================================================================
# Vault Layout
# =============================================================================

DEFAULT_DAILY_NOTES_FOLDER = "Daily Notes"

# Directories never scanned for markdown
DEFAULT_IGNORE_FOLDERS = (".obsidian", ".git", "node_modules", ".trash")

# Markdown file declaring tag descriptions and task tags
TAGS_CONFIG_PATH = "Config/Tags.md"


# =============================================================================
# Corpus Scans
# =============================================================================

# Documents parsed concurrently during a vault-wide scan
MAX_CONCURRENT_DOCUMENTS = 16

# Wall-clock budget for one vault-wide fan-out (not per document)
SCAN_TIMEOUT_SECONDS = 30.0

# Cached per-document results kept before the least recently used are evicted
MAX_CACHE_ENTRIES = 4096


# =============================================================================
# File Watching
# =============================================================================

# Debounce window before changed files invalidate cached query results
WATCH_DEBOUNCE_SECONDS = 1.0
