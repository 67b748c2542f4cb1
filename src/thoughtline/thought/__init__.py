"""Thought reconstruction: an item's subtree, ancestors and backlinks."""

from .backlinks import build_backlink_sections
from .outline import (
    AnchorLocator,
    ContextEntry,
    ContextSnapshot,
    ParentContext,
    build_parent_chain,
    build_thought,
    extract_children,
)

__all__ = [
    "AnchorLocator",
    "ContextEntry",
    "ContextSnapshot",
    "ParentContext",
    "build_thought",
    "build_parent_chain",
    "extract_children",
    "build_backlink_sections",
]
