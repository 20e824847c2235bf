"""Core data structures for the Localizer translator."""

from __future__ import annotations

import asyncio
import pathlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Tuple


class ContentKind(Enum):
    """How a piece of content is segmented."""

    PLAIN_TEXT = "txt"
    MARKDOWN = "md"
    JSON = "json"

    @classmethod
    def from_file_type(cls, file_type: str) -> "ContentKind":
        normalized = file_type.strip().lower().lstrip(".")
        if normalized in {"md", "markdown", "mdx"}:
            return cls.MARKDOWN
        if normalized == "json":
            return cls.JSON
        return cls.PLAIN_TEXT


def detect_file_type(path: str | pathlib.Path) -> str:
    """Return the lower-case extension of a path, or ``txt`` when it has none."""

    suffix = pathlib.PurePath(str(path)).suffix
    return suffix.lstrip(".").lower() or "txt"


class FragmentType(Enum):
    HEADER = "header"
    LIST = "list"
    CODE = "code"
    QUOTE = "quote"
    TABLE = "table"
    TASK_LIST = "taskList"
    FOOTNOTE = "footnote"
    DEFINITION = "definition"
    CONTAINER = "container"
    MATH = "math"
    HTML = "html"
    DETAILS = "details"
    MERMAID = "mermaid"
    PARAGRAPH = "paragraph"


@dataclass
class FormatDescriptor:
    """Structural metadata needed to regenerate a fragment.

    ``leading`` and ``trailing`` hold the whitespace that surrounded the
    fragment text inside the original match. Descriptors never carry prose.
    """

    leading: str = ""
    trailing: str = ""


@dataclass
class ParagraphFormat(FormatDescriptor):
    line_indents: List[str] = field(default_factory=list)


@dataclass
class HeaderFormat(FormatDescriptor):
    level: int = 1
    spacing: str = " "


@dataclass
class ListLine:
    indent: str
    level: int
    marker: Optional[str]
    is_numbered: bool


@dataclass
class ListFormat(FormatDescriptor):
    lines: List[ListLine] = field(default_factory=list)


@dataclass
class CodeFormat(FormatDescriptor):
    language: str = ""
    info: str = ""
    line_indents: List[str] = field(default_factory=list)
    closing_indent: str = ""


@dataclass
class MermaidFormat(CodeFormat):
    fenced: bool = True


@dataclass
class QuoteFormat(FormatDescriptor):
    depth: int = 1
    prefixes: List[str] = field(default_factory=list)


class Alignment(Enum):
    NONE = "none"
    LEFT = "left"
    RIGHT = "right"
    CENTER = "center"


@dataclass
class TableFormat(FormatDescriptor):
    separator_rows: List[bool] = field(default_factory=list)
    alignments: List[Alignment] = field(default_factory=list)
    row_indents: List[str] = field(default_factory=list)
    column_widths: List[int] = field(default_factory=list)


@dataclass
class TaskListFormat(FormatDescriptor):
    indents: List[str] = field(default_factory=list)
    checked: List[bool] = field(default_factory=list)


@dataclass
class FootnoteFormat(FormatDescriptor):
    footnote_id: str = ""
    spacing: str = " "
    line_indents: List[str] = field(default_factory=list)


@dataclass
class DefinitionFormat(FormatDescriptor):
    definition_count: int = 0


@dataclass
class ContainerFormat(FormatDescriptor):
    kind: str = ""
    header: str = ""
    body_indents: List[str] = field(default_factory=list)
    closing_indent: str = ""


@dataclass
class DetailsFormat(FormatDescriptor):
    open_tag: str = "<details>"
    summary: Optional[str] = None
    summary_indent: str = ""
    body_indents: List[str] = field(default_factory=list)
    body_leading: List[str] = field(default_factory=list)
    body_trailing: List[str] = field(default_factory=list)
    closing_indent: str = ""


@dataclass
class MathFormat(FormatDescriptor):
    inline: bool = True
    multiline: bool = False


@dataclass
class HtmlFormat(FormatDescriptor):
    tag: str = ""
    attributes: str = ""
    self_closing: bool = False


@dataclass
class Fragment:
    """One translatable unit extracted from structured content."""

    text: str
    type: FragmentType
    descriptor: FormatDescriptor
    position: int
    span: Tuple[int, int] = (0, 0)

    @property
    def translatable(self) -> bool:
        descriptor = self.descriptor
        return not (isinstance(descriptor, HtmlFormat) and descriptor.self_closing)


@dataclass
class SegmentedContent:
    """Template with positional placeholders plus the fragments it refers to."""

    template: str
    fragments: List[Fragment] = field(default_factory=list)
    kind: ContentKind = ContentKind.PLAIN_TEXT

    def __len__(self) -> int:
        return len(self.fragments)


@dataclass
class QueueTask:
    """A unit of queued work and the future that reports its outcome."""

    work: Callable[[], Awaitable[Any]]
    future: "asyncio.Future[Any]"


class DispatchMode(Enum):
    PARALLEL = "parallel"
    QUEUED = "queued"


@dataclass(frozen=True)
class TranslationPolicy:
    """Explicit runtime policy handed to the orchestrator and queue."""

    dispatch_mode: DispatchMode = DispatchMode.PARALLEL
    min_spacing: float = 2.5
    model: Optional[str] = None
    temperature: float = 0.4

    @property
    def queued(self) -> bool:
        return self.dispatch_mode is DispatchMode.QUEUED
