"""Structural recognizers for Markdown and plain text content.

Each recognizer pairs a compiled pattern with a descriptor extractor. The
extractor receives the matched text with its surrounding whitespace removed
plus the indentation of the first matched line, and returns the structural
metadata the reconstructor needs. Declaration order in
``MARKDOWN_RECOGNIZERS`` is the tie-break priority when two recognizers claim
the same offset. Block constructs come before the paragraph rule, and inline
math and HTML come after it, so they only stand alone on a line of their own.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Tuple

from .structures import (
    Alignment,
    CodeFormat,
    ContainerFormat,
    DefinitionFormat,
    DetailsFormat,
    FootnoteFormat,
    FormatDescriptor,
    FragmentType,
    HeaderFormat,
    HtmlFormat,
    ListFormat,
    ListLine,
    MathFormat,
    MermaidFormat,
    ParagraphFormat,
    QuoteFormat,
    TableFormat,
    TaskListFormat,
)

Extractor = Callable[[str, str], FormatDescriptor]

INDENT_PATTERN = re.compile(r"^[ \t]*")
LIST_MARKER_PATTERN = re.compile(r"^[ \t]*([-*+]|\d+\.)[ \t]+")
QUOTE_PREFIX_PATTERN = re.compile(r"^[ \t]*>(?:[ \t]*>)*[ \t]*")
TASK_BOX_PATTERN = re.compile(r"\[([ xX])\]")
FOOTNOTE_MARK_PATTERN = re.compile(r"^\[\^([^\]\n]+)\]:([ \t]*)")
CONTAINER_OPEN_PATTERN = re.compile(r"^[ \t]*:::[ \t]*([\w-]+)")
DETAILS_OPEN_PATTERN = re.compile(r"<details\b[^>]*>")
DETAILS_CLOSE_PATTERN = re.compile(r"</details>\s*$")
SUMMARY_PATTERN = re.compile(r"<summary>([\s\S]*?)</summary>")
HTML_PARTS_PATTERN = re.compile(r"^<(\w+)((?:\s[^<>]*?)?)\s*(/?)>")

_LIST_ITEM = r"[ \t]*(?:[-*+]|\d+\.)[ \t]+\S[^\n]*"
_BLOCK_START = r"[ \t]*(?:#{1,6}[ \t]|```|:::|\||>|<|\$\$|\[\^)"
# Lines that open another block. Inline math, inline HTML and footnote
# references may still start a paragraph; a line holding nothing but tags, one
# HTML element or one math expression is left to the HTML and math rules.
_PARAGRAPH_EXCLUDED = (
    r"[ \t]*(?:#{1,6}[ \t]|[-*+][ \t]|\d+\.[ \t]|>|```|:::|\||:[ \t]"
    r"|\$\$(?![^\n]*\$\$[ \t]*\S)"
    r"|\[\^[^\]\n]+\]:"
    r"|<details\b"
    r"|(?:<[^<>\n]*>[ \t]*)+$"
    r"|<\w+(?:\s[^<>\n]*)?>[^<\n]*</\w+>[ \t]*$"
    r"|\$(?=\S)[^\n$]+(?<=\S)\$[ \t]*$"
    r"|(?:[-*_=][ \t]*){3,}$)"
)

HEADER_PATTERN = re.compile(r"^[ \t]{0,3}#{1,6}[ \t]+\S[^\n]*$", re.M)
MERMAID_PATTERN = re.compile(
    r"^[ \t]*```[ \t]*mermaid[ \t]*\n[\s\S]*?^[ \t]*```[ \t]*$"
    r"|^mermaid[ \t]*\n[\s\S]*?(?=\n[ \t]*\n|\Z)",
    re.M,
)
CODE_PATTERN = re.compile(r"^[ \t]*```[^\n`]*\n[\s\S]*?^[ \t]*```[ \t]*$", re.M)
CONTAINER_PATTERN = re.compile(
    r"^[ \t]*:::[ \t]*[\w-]+[^\n]*\n[\s\S]*?^[ \t]*:::[ \t]*$", re.M
)
DETAILS_PATTERN = re.compile(r"^[ \t]*<details\b[^>]*>[\s\S]*?</details>", re.M)
TABLE_PATTERN = re.compile(
    r"^[ \t]*\|[^\n]*\|[ \t]*$(?:\n[ \t]*\|[^\n]*\|[ \t]*$)*", re.M
)
QUOTE_PATTERN = re.compile(r"^[ \t]*>[^\n]*(?:\n[ \t]*>[^\n]*)*", re.M)
TASK_LIST_PATTERN = re.compile(
    r"^[ \t]*[-*+][ \t]+\[[ xX]\][^\n]*(?:\n[ \t]*[-*+][ \t]+\[[ xX]\][^\n]*)*",
    re.M,
)
LIST_PATTERN = re.compile(
    rf"^{_LIST_ITEM}(?:\n(?:{_LIST_ITEM}|(?!{_BLOCK_START})[ \t]*\S[^\n]*))*", re.M
)
FOOTNOTE_PATTERN = re.compile(
    r"^\[\^[^\]\n]+\]:[ \t]+\S[^\n]*(?:\n(?!\[\^|[ \t]*$|#)[^\n]+)*", re.M
)
DEFINITION_PATTERN = re.compile(
    r"^(?![ \t]*(?:[-*+>#|<:]|\d+\.|```|\$\$))[^\n:]*[^\s:][^\n:]*"
    r"(?:\n:[ \t]+\S[^\n]*)+",
    re.M,
)
MATH_PATTERN = re.compile(
    r"\$\$[\s\S]+?\$\$|(?<![\\$\w])\$(?=\S)[^\n$]+(?<=\S)\$(?![$\w])"
)
HTML_PATTERN = re.compile(r"<(\w+)(?:\s[^<>]*)?>[^<]*</\1>|<\w+(?:\s[^<>]*)?/>")
PARAGRAPH_PATTERN = re.compile(
    rf"^(?!{_PARAGRAPH_EXCLUDED})[^\n]*\S[^\n]*"
    rf"(?:\n(?!{_PARAGRAPH_EXCLUDED})[^\n]*\S[^\n]*)*",
    re.M,
)
PLAIN_PARAGRAPH_PATTERN = re.compile(r"^[^\n]*\S[^\n]*(?:\n[^\n]*\S[^\n]*)*", re.M)


def leading_indent(line: str) -> str:
    match = INDENT_PATTERN.match(line)
    return match.group(0) if match else ""


def nesting_level(indent: str) -> int:
    """Two columns of indentation per nesting level, tabs count as four."""

    return len(indent.expandtabs(4)) // 2


def split_cells(row: str) -> List[str]:
    """Split a table row into raw cells, dropping the outer pipes."""

    stripped = row.strip()
    if stripped.startswith("|"):
        stripped = stripped[1:]
    if stripped.endswith("|"):
        stripped = stripped[:-1]
    return stripped.split("|")


def is_separator_row(row: str) -> bool:
    stripped = row.strip()
    return bool(stripped) and "-" in stripped and set(stripped) <= set("|:- \t")


def parse_alignment(cell: str) -> Alignment:
    cell = cell.strip()
    if cell.startswith(":") and cell.endswith(":") and len(cell) > 1:
        return Alignment.CENTER
    if cell.endswith(":"):
        return Alignment.RIGHT
    if cell.startswith(":"):
        return Alignment.LEFT
    return Alignment.NONE


def split_details(text: str) -> Tuple[Optional[str], List[str]]:
    """Return the summary text and the body lines of a ``<details>`` block."""

    body = DETAILS_OPEN_PATTERN.sub("", text, count=1)
    body = DETAILS_CLOSE_PATTERN.sub("", body)
    summary: Optional[str] = None
    match = SUMMARY_PATTERN.search(body)
    if match:
        summary = match.group(1).strip()
        body = body[: match.start()] + body[match.end() :]
    lines = body.split("\n")
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    return summary, lines


def _extract_paragraph(text: str, indent: str) -> ParagraphFormat:
    lines = text.split("\n")
    return ParagraphFormat(line_indents=[""] + [leading_indent(line) for line in lines[1:]])


def _extract_header(text: str, indent: str) -> HeaderFormat:
    match = re.match(r"(#{1,6})([ \t]+)", text)
    if not match:
        return HeaderFormat()
    return HeaderFormat(level=len(match.group(1)), spacing=match.group(2))


def _extract_list(text: str, indent: str) -> ListFormat:
    lines: List[ListLine] = []
    for index, line in enumerate(text.split("\n")):
        line_indent = leading_indent(line)
        structural_indent = indent if index == 0 else line_indent
        marker_match = LIST_MARKER_PATTERN.match(line)
        marker = marker_match.group(1) if marker_match else None
        lines.append(
            ListLine(
                indent="" if index == 0 else line_indent,
                level=nesting_level(structural_indent),
                marker=marker,
                is_numbered=bool(marker and marker[0].isdigit()),
            )
        )
    return ListFormat(lines=lines)


def _fence_parts(text: str) -> Tuple[str, List[str], str]:
    lines = text.split("\n")
    opening = lines[0]
    body = lines[1:-1] if len(lines) > 1 else []
    closing_indent = leading_indent(lines[-1]) if len(lines) > 1 else ""
    return opening, body, closing_indent


def _extract_code(text: str, indent: str) -> CodeFormat:
    opening, body, closing_indent = _fence_parts(text)
    info = opening.strip()[3:]
    words = info.split()
    return CodeFormat(
        language=words[0] if words else "",
        info=info,
        line_indents=[leading_indent(line) for line in body],
        closing_indent=closing_indent,
    )


def _extract_mermaid(text: str, indent: str) -> MermaidFormat:
    fenced = text.startswith("```")
    if fenced:
        opening, body, closing_indent = _fence_parts(text)
    else:
        lines = text.split("\n")
        opening, body, closing_indent = lines[0], lines[1:], ""
    return MermaidFormat(
        language="mermaid",
        info=opening.strip()[3:] if fenced else opening.strip(),
        line_indents=[leading_indent(line) for line in body],
        closing_indent=closing_indent,
        fenced=fenced,
    )


def _extract_container(text: str, indent: str) -> ContainerFormat:
    opening, body, closing_indent = _fence_parts(text)
    match = CONTAINER_OPEN_PATTERN.match(opening)
    kind = match.group(1) if match else ""
    return ContainerFormat(
        kind=kind,
        header=match.group(0) if match else f":::{kind}",
        body_indents=[leading_indent(line) for line in body],
        closing_indent=closing_indent,
    )


def _blank_run(lines: List[str]) -> List[str]:
    run = []
    for line in lines:
        if line.strip():
            break
        run.append(line)
    return run


def _extract_details(text: str, indent: str) -> DetailsFormat:
    lines = text.split("\n")
    open_match = DETAILS_OPEN_PATTERN.search(text)
    summary, body = split_details(text)
    summary_indent = next(
        (leading_indent(line) for line in lines if "<summary>" in line), ""
    )
    header_end = 0
    if summary is not None:
        header_end = next(
            (index for index, line in enumerate(lines) if "</summary>" in line), 0
        )
    inner = lines[header_end + 1 : -1] if len(lines) > 1 else []
    body_leading = _blank_run(inner)
    body_trailing: List[str] = []
    if body and lines[-1].strip() == "</details>":
        body_trailing = list(reversed(_blank_run(list(reversed(inner)))))
    return DetailsFormat(
        open_tag=open_match.group(0) if open_match else "<details>",
        summary=summary,
        summary_indent=summary_indent if lines and "<summary>" not in lines[0] else "",
        body_indents=[leading_indent(line) for line in body],
        body_leading=body_leading if body else [],
        body_trailing=body_trailing,
        closing_indent=leading_indent(lines[-1]) if len(lines) > 1 else "",
    )


def _extract_table(text: str, indent: str) -> TableFormat:
    rows = text.split("\n")
    separator_rows = [is_separator_row(row) for row in rows]
    alignments: List[Alignment] = []
    widths: List[int] = []
    for row, is_separator in zip(rows, separator_rows):
        cells = split_cells(row)
        if is_separator:
            if not alignments:
                alignments = [parse_alignment(cell) for cell in cells]
            continue
        for column, cell in enumerate(cells):
            size = len(cell.strip())
            if column < len(widths):
                widths[column] = max(widths[column], size)
            else:
                widths.append(size)
    return TableFormat(
        separator_rows=separator_rows,
        alignments=alignments,
        row_indents=[""] + [leading_indent(row) for row in rows[1:]],
        column_widths=widths,
    )


def _extract_quote(text: str, indent: str) -> QuoteFormat:
    prefixes = []
    for line in text.split("\n"):
        match = QUOTE_PREFIX_PATTERN.match(line)
        prefixes.append(match.group(0) if match else "")
    return QuoteFormat(depth=prefixes[0].count(">") if prefixes else 1, prefixes=prefixes)


def _extract_task_list(text: str, indent: str) -> TaskListFormat:
    lines = text.split("\n")
    checked = []
    for line in lines:
        box = TASK_BOX_PATTERN.search(line)
        checked.append(bool(box and box.group(1).lower() == "x"))
    return TaskListFormat(
        indents=[""] + [leading_indent(line) for line in lines[1:]],
        checked=checked,
    )


def _extract_footnote(text: str, indent: str) -> FootnoteFormat:
    lines = text.split("\n")
    match = FOOTNOTE_MARK_PATTERN.match(text)
    if not match:
        return FootnoteFormat(line_indents=[""] * len(lines))
    return FootnoteFormat(
        footnote_id=match.group(1),
        spacing=match.group(2) or " ",
        line_indents=[""] + [leading_indent(line) for line in lines[1:]],
    )


def _extract_definition(text: str, indent: str) -> DefinitionFormat:
    return DefinitionFormat(definition_count=len(text.split("\n")) - 1)


def _extract_math(text: str, indent: str) -> MathFormat:
    return MathFormat(inline=not text.startswith("$$"), multiline="\n" in text)


def _extract_html(text: str, indent: str) -> HtmlFormat:
    match = HTML_PARTS_PATTERN.match(text)
    if not match:
        return HtmlFormat(self_closing=text.endswith("/>"))
    return HtmlFormat(
        tag=match.group(1),
        attributes=match.group(2),
        self_closing=text.endswith("/>"),
    )


@dataclass(frozen=True)
class Recognizer:
    """A structural rule: where a construct is, and how to describe it."""

    type: FragmentType
    pattern: re.Pattern[str]
    extract: Extractor

    def spans(self, content: str) -> Iterator[Tuple[int, int]]:
        for match in self.pattern.finditer(content):
            if match.end() > match.start():
                yield match.start(), match.end()


MARKDOWN_RECOGNIZERS: Tuple[Recognizer, ...] = (
    Recognizer(FragmentType.HEADER, HEADER_PATTERN, _extract_header),
    Recognizer(FragmentType.MERMAID, MERMAID_PATTERN, _extract_mermaid),
    Recognizer(FragmentType.CODE, CODE_PATTERN, _extract_code),
    Recognizer(FragmentType.CONTAINER, CONTAINER_PATTERN, _extract_container),
    Recognizer(FragmentType.DETAILS, DETAILS_PATTERN, _extract_details),
    Recognizer(FragmentType.TABLE, TABLE_PATTERN, _extract_table),
    Recognizer(FragmentType.QUOTE, QUOTE_PATTERN, _extract_quote),
    Recognizer(FragmentType.TASK_LIST, TASK_LIST_PATTERN, _extract_task_list),
    Recognizer(FragmentType.LIST, LIST_PATTERN, _extract_list),
    Recognizer(FragmentType.FOOTNOTE, FOOTNOTE_PATTERN, _extract_footnote),
    Recognizer(FragmentType.DEFINITION, DEFINITION_PATTERN, _extract_definition),
    Recognizer(FragmentType.PARAGRAPH, PARAGRAPH_PATTERN, _extract_paragraph),
    Recognizer(FragmentType.MATH, MATH_PATTERN, _extract_math),
    Recognizer(FragmentType.HTML, HTML_PATTERN, _extract_html),
)

PLAIN_TEXT_RECOGNIZER = Recognizer(
    FragmentType.PARAGRAPH, PLAIN_PARAGRAPH_PATTERN, _extract_paragraph
)
