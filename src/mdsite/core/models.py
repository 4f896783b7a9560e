"""Data models for the load, parse, and render pipeline.

Document metadata is validated with pydantic; the parsed body is a closed sum
type of frozen dataclasses (Block / Inline) so every consumer can dispatch
exhaustively on the concrete class.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


# --- inline content ---

@dataclass(frozen=True)
class Text:
    content: str


@dataclass(frozen=True)
class Code:
    content: str


@dataclass(frozen=True)
class Emphasis:
    children: tuple["Inline", ...]


@dataclass(frozen=True)
class Strong:
    children: tuple["Inline", ...]


@dataclass(frozen=True)
class Strikethrough:
    children: tuple["Inline", ...]


@dataclass(frozen=True)
class Link:
    """A hyperlink. target is symbolic; nothing is fetched or checked at parse time."""
    target: str
    label: tuple["Inline", ...]
    title: Optional[str] = None


@dataclass(frozen=True)
class InlineImage:
    reference: str
    alt: str = ""
    title: Optional[str] = None


@dataclass(frozen=True)
class LineBreak:
    pass


@dataclass(frozen=True)
class RawHtml:
    content: str


Inline = Union[Text, Code, Emphasis, Strong, Strikethrough, Link, InlineImage, LineBreak, RawHtml]


# --- block content ---

class CalloutKind(str, Enum):
    """Admonition kinds accepted in ':::kind' containers and '> [!KIND]' quotes"""
    note = "note"
    tip = "tip"
    info = "info"
    important = "important"
    warning = "warning"
    caution = "caution"
    danger = "danger"


@dataclass(frozen=True)
class Heading:
    """A section heading; children holds the blocks nested under it."""
    level: int
    text: tuple[Inline, ...]
    anchor: str
    line: Optional[int] = None
    children: tuple["Block", ...] = ()


@dataclass(frozen=True)
class Paragraph:
    children: tuple[Inline, ...]
    line: Optional[int] = None


@dataclass(frozen=True)
class CodeBlock:
    """Opaque code text with an optional language tag. Never interpreted."""
    code: str
    language: Optional[str] = None
    line: Optional[int] = None


@dataclass(frozen=True)
class Image:
    """A paragraph consisting of a single image, rendered as a figure."""
    reference: str
    alt: str = ""
    caption: Optional[str] = None
    line: Optional[int] = None


@dataclass(frozen=True)
class List:
    items: tuple[tuple["Block", ...], ...]
    ordered: bool = False
    start: Optional[int] = None
    line: Optional[int] = None


@dataclass(frozen=True)
class Table:
    header: tuple[tuple[Inline, ...], ...]
    rows: tuple[tuple[tuple[Inline, ...], ...], ...]
    line: Optional[int] = None


@dataclass(frozen=True)
class Quote:
    children: tuple["Block", ...]
    line: Optional[int] = None


@dataclass(frozen=True)
class Callout:
    kind: CalloutKind
    children: tuple["Block", ...]
    title: Optional[str] = None
    line: Optional[int] = None


@dataclass(frozen=True)
class Html:
    content: str
    line: Optional[int] = None


@dataclass(frozen=True)
class Rule:
    line: Optional[int] = None


Block = Union[Heading, Paragraph, CodeBlock, Image, List, Table, Quote, Callout, Html, Rule]


# --- documents ---

def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, str):
        return value.split(",")
    if isinstance(value, (list, tuple)):
        return list(value)
    raise ValueError(f"expected a string or list, got {type(value).__name__}")


class DocumentMeta(BaseModel):
    """Validated front-matter fields. Unknown keys are ignored here and kept on Document.frontmatter."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    title: str = Field(..., min_length=1)
    authors: tuple[str, ...] = Field(default=(), validation_alias=AliasChoices("authors", "author"))
    revised: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("revised", "revdate", "date"),
        description="Revision timestamp; always timezone-aware",
    )
    keywords: tuple[str, ...] = Field(default=(), validation_alias=AliasChoices("keywords", "tags"))
    description: Optional[str] = None
    slug: Optional[str] = None
    series: Optional[str] = None
    series_part: Optional[int] = Field(default=None, ge=1)
    draft: bool = False

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("authors", "keywords", mode="before")
    @classmethod
    def _split_list(cls, v: Any) -> tuple[str, ...]:
        items = [str(item).strip() for item in _as_list(v)]
        return tuple(dict.fromkeys(item for item in items if item))

    @field_validator("revised", mode="before")
    @classmethod
    def _date_only_is_utc_midnight(cls, v: Any) -> Any:
        if isinstance(v, str) and len(v.strip()) == 10:
            v = date.fromisoformat(v.strip())
        if isinstance(v, date) and not isinstance(v, datetime):
            return datetime.combine(v, time.min, tzinfo=timezone.utc)
        return v

    @field_validator("revised")
    @classmethod
    def _require_offset(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.utcoffset() is None:
            raise ValueError("datetime must carry a UTC offset")
        return v


@dataclass(frozen=True)
class SourceFile:
    """A discovered source document; rel_path is the root-relative POSIX path."""
    path: Path
    rel_path: str


@dataclass(frozen=True)
class Document:
    """A loaded source document. blocks is filled by the content parser."""
    slug: str
    source_path: str
    meta: DocumentMeta
    body: str
    content_hash: str
    body_line: int = 1
    frontmatter: dict[str, Any] = field(default_factory=dict, compare=False)
    blocks: tuple[Block, ...] = ()

    @property
    def title(self) -> str:
        return self.meta.title

    @property
    def keywords(self) -> tuple[str, ...]:
        return self.meta.keywords

    @property
    def revised(self) -> Optional[datetime]:
        return self.meta.revised

    def with_blocks(self, blocks: tuple[Block, ...]) -> "Document":
        return replace(self, blocks=blocks)
