"""Pydantic models returned by the service layer, the MCP tools and the CLI."""

from typing import Any, Literal

from pydantic import BaseModel, Field


class MatchResult(BaseModel):
    """One list item matched by a tag query."""

    tag: str  # The query tag that matched (first hit for OR queries)
    subject: str | None = None
    text: str
    raw_text: str
    path: str = ""  # Vault-relative document path, stamped by the caller
    line: int  # 0-based line number
    parent_context: str | None = None  # Tagless ancestor texts joined by newline
    children: list[str] = Field(default_factory=list)  # Rendered child subtrees
    status: str | None = None  # Task status name; None for plain bullets


class QueryResponse(BaseModel):
    """Results of a tag query over one or more documents."""

    query: str
    tags: list[str] = Field(default_factory=list)  # Every tag the query mentions
    matches: list[MatchResult] = Field(default_factory=list)
    documents_scanned: int = 0
    skipped: list[str] = Field(default_factory=list)  # Documents that could not be read


class ThoughtSection(BaseModel):
    """One rendered block of a thought: the anchor's subtree or a backlink branch."""

    role: Literal["root", "branch"]
    label: str
    markdown: str
    path: str
    segments: list[str] = Field(default_factory=list)  # Breadcrumb, oldest first
    target_anchor: str | None = None
    target_line: int | None = None


class ThoughtReference(BaseModel):
    """A backlink hit with no children of its own."""

    path: str
    label: str
    preview: str  # Breadcrumb joined with " > "
    segments: list[str] = Field(default_factory=list)
    target_line: int | None = None


class BacklinkSections(BaseModel):
    sections: list[ThoughtSection] = Field(default_factory=list)
    references: list[ThoughtReference] = Field(default_factory=list)


class ThoughtResult(BaseModel):
    """The reconstructed neighborhood of an anchored item."""

    sections: list[ThoughtSection] = Field(default_factory=list)
    references: list[ThoughtReference] = Field(default_factory=list)
    header: str = ""
    parents: list[str] = Field(default_factory=list)  # Parent chain texts, oldest first
    message: str | None = None
    error: str | None = None


class BacklinkEntry(BaseModel):
    """A line in another document that links to a note."""

    path: str
    line: int
    text: str


class TagInfo(BaseModel):
    """A tag seen in the vault, with usage count and optional description."""

    tag: str
    count: int
    description: str | None = None
    is_task_tag: bool = False


class TagStructureNode(BaseModel):
    """One line under a tagged item, with its nesting preserved."""

    line: int
    text: str
    indent: int
    bullet: str
    is_screenshot: bool = False
    is_task: bool = False
    status: str | None = None
    children: list["TagStructureNode"] = Field(default_factory=list)


class TagStructure(BaseModel):
    """The tree of lines under exactly one tagged item."""

    path: str
    tag: str
    line: int
    text: str
    children: list[TagStructureNode] = Field(default_factory=list)


class NoteContent(BaseModel):
    """A note's body with its parsed YAML frontmatter."""

    path: str
    content: str
    frontmatter: dict[str, Any] = Field(default_factory=dict)
