"""Indentation-based outline parsing.

Turns the lines of a markdown document into a tree of list items. Only list
lines take part in the tree; headings and paragraphs are skipped here and
handled by the thought builder, which works on raw lines.
"""

import re
from collections.abc import Iterator
from dataclasses import dataclass, field

from .lines import LIST_ITEM_PATTERN, expand_tabs
from .status import TaskStatus, status_from_char

TAG_PATTERN = re.compile(r"#[^\s#\[\]:]+")

# Tags anywhere in a note, colons included
NOTE_TAG_PATTERN = re.compile(r"#[^\s#\[\]]+")

_TASK_PATTERN = re.compile(r"^\[(.)\]\s*(.*)$", re.DOTALL)


@dataclass
class ListItem:
    """One parsed bullet and the items nested under it."""

    indent: int
    bullet: str
    is_task: bool
    status: TaskStatus | None
    tags: list[str]
    subject: str | None
    text: str
    raw_text: str
    line: int
    children: list["ListItem"] = field(default_factory=list)

    def walk(self) -> Iterator["ListItem"]:
        """Yield this item and every descendant in document order."""
        yield self
        for child in self.children:
            yield from child.walk()


def extract_tags(text: str) -> list[str]:
    """Return every #tag token in appearance order (duplicates kept)."""
    return TAG_PATTERN.findall(text)


def split_subject(text: str, tags: list[str]) -> tuple[str | None, str]:
    """Split "#tag Subject: rest" into (subject, rest).

    The subject is whatever sits between the first tag and the next colon.
    Without a colon, or with an empty subject, the whole after-tag text is
    returned as the text and the subject is None.
    """
    if not tags:
        return None, text

    first = tags[0]
    index = text.find(first)
    if index == -1:
        return None, text

    after = text[index + len(first):].strip()
    head, colon, tail = after.partition(":")
    if not colon or "\n" in head:
        return None, after

    subject = head.strip()
    if not subject:
        return None, after
    return subject, tail.strip()


def parse_list_item(raw_text: str, bullet: str, line: int, indent: int = 0) -> ListItem:
    """Build a ListItem from the text that follows a bullet."""
    is_task = False
    status: TaskStatus | None = None
    remaining = raw_text

    task_match = _TASK_PATTERN.match(raw_text)
    if task_match:
        is_task = True
        status = status_from_char(task_match.group(1))
        remaining = task_match.group(2)

    tags = extract_tags(remaining)
    subject, text = split_subject(remaining, tags)

    return ListItem(
        indent=indent,
        bullet=bullet,
        is_task=is_task,
        status=status,
        tags=tags,
        subject=subject,
        text=text,
        raw_text=raw_text,
        line=line,
    )


def parse_outline(lines: list[str]) -> list[ListItem]:
    """Parse document lines into a forest of list items.

    Args:
        lines: Document lines (tabs are expanded to four spaces here).

    Returns:
        Root items in document order; nesting is carried by `children`.
    """
    roots: list[ListItem] = []
    stack: list[ListItem] = []

    for index, raw_line in enumerate(lines):
        match = LIST_ITEM_PATTERN.match(expand_tabs(raw_line))
        if not match:
            continue

        indent_str, bullet, text = match.groups()
        indent = len(indent_str)
        item = parse_list_item(text, bullet, index, indent=indent)

        # Close siblings and uncles
        while stack and stack[-1].indent >= indent:
            stack.pop()

        if stack:
            stack[-1].children.append(item)
        else:
            roots.append(item)
        stack.append(item)

    return roots


def iter_items(roots: list[ListItem]) -> Iterator[ListItem]:
    """Yield every item of a forest in document order."""
    for root in roots:
        yield from root.walk()
