"""Regenerate formatting around translated fragments and fill the template."""

from __future__ import annotations

import re
from typing import Callable, Dict, List, Optional, Sequence, Type, TypeVar

from .errors import ReconstructionError
from .patterns import (
    FOOTNOTE_MARK_PATTERN,
    LIST_MARKER_PATTERN,
    QUOTE_PREFIX_PATTERN,
    is_separator_row,
    split_cells,
    split_details,
)
from .segmenter import PLACEHOLDER_PATTERN
from .structures import (
    Alignment,
    CodeFormat,
    ContainerFormat,
    DetailsFormat,
    FootnoteFormat,
    FormatDescriptor,
    Fragment,
    FragmentType,
    HeaderFormat,
    HtmlFormat,
    ListFormat,
    MathFormat,
    MermaidFormat,
    ParagraphFormat,
    QuoteFormat,
    SegmentedContent,
    TableFormat,
    TaskListFormat,
)

Formatter = Callable[[Fragment, str], str]
DescriptorT = TypeVar("DescriptorT", bound=FormatDescriptor)

HEADER_MARK_PATTERN = re.compile(r"^[ \t]*#{1,6}[ \t]*")
TASK_PREFIX_PATTERN = re.compile(r"^[ \t]*(?:[-*+][ \t]+)?\[[ xX]\][ \t]*|^[ \t]*[-*+][ \t]+")
CONTAINER_MARK_PATTERN = re.compile(r"^[ \t]*:::[ \t]*[\w-]*")
DEFINITION_MARK_PATTERN = re.compile(r"^[ \t]*:+[ \t]*")
HTML_OPEN_PATTERN = re.compile(r"^<\w+[^>]*>")
HTML_CLOSE_PATTERN = re.compile(r"</\w+>$")
MATH_DELIMITER_PATTERN = re.compile(r"^\$+|\$+$")
DETAILS_LIST_PATTERN = re.compile(r"^-+[ \t]+")


def _pick(values: Sequence[str], index: int, default: str = "") -> str:
    """Per-line value for ``index``, reusing the last known one past the end."""

    if index < len(values):
        return values[index]
    return values[-1] if values else default


def _indented(indent: str, line: str) -> str:
    content = line.strip()
    return indent + content if content else indent


def _descriptor(fragment: Fragment, kind: Type[DescriptorT]) -> DescriptorT:
    descriptor = fragment.descriptor
    if not isinstance(descriptor, kind):
        raise ReconstructionError(
            f"Fragment {fragment.position} of type {fragment.type.value} carries a "
            f"{type(descriptor).__name__} instead of a {kind.__name__}."
        )
    return descriptor


def _format_paragraph(fragment: Fragment, translated: str) -> str:
    fmt = _descriptor(fragment, ParagraphFormat)
    lines = translated.split("\n")
    result = [lines[0].lstrip()]
    for index, line in enumerate(lines[1:], start=1):
        result.append(_pick(fmt.line_indents, index) + line.lstrip())
    return "\n".join(result)


def _format_header(fragment: Fragment, translated: str) -> str:
    fmt = _descriptor(fragment, HeaderFormat)
    text = " ".join(part.strip() for part in translated.split("\n") if part.strip())
    text = HEADER_MARK_PATTERN.sub("", text, count=1).strip()
    return "#" * fmt.level + fmt.spacing + text


def _format_list(fragment: Fragment, translated: str) -> str:
    fmt = _descriptor(fragment, ListFormat)
    if not fmt.lines:
        return translated

    counters: Dict[int, int] = {}
    parents: Dict[int, Optional[int]] = {}
    items_seen: Dict[int, int] = {}
    result: List[str] = []
    for index, line in enumerate(translated.split("\n")):
        struct = fmt.lines[index] if index < len(fmt.lines) else fmt.lines[-1]
        if struct.marker is None:
            result.append(_indented(struct.indent, line))
            continue

        level = struct.level
        content = LIST_MARKER_PATTERN.sub("", line, count=1).strip()
        if struct.is_numbered:
            # A level restarts its numbering whenever it is entered under a
            # different parent item than the one it was last counted under.
            parent_item = items_seen.get(level - 1) if level > 0 else None
            if level not in counters or parents.get(level) != parent_item:
                counters[level] = 1
                parents[level] = parent_item
            marker = f"{counters[level]}."
            counters[level] += 1
        else:
            marker = "-"
        items_seen[level] = items_seen.get(level, 0) + 1
        result.append(f"{struct.indent}{marker} {content}")
    return "\n".join(result)


def _strip_fences(lines: List[str], opening_markers: Sequence[str]) -> List[str]:
    if lines and lines[0].strip().startswith(tuple(opening_markers)):
        lines = lines[1:]
    if lines and lines[-1].strip().startswith("```"):
        lines = lines[:-1]
    return lines


def _format_code(fragment: Fragment, translated: str) -> str:
    fmt = _descriptor(fragment, CodeFormat)
    lines = _strip_fences(translated.split("\n"), ("```",))
    body = [_indented(_pick(fmt.line_indents, index), line) for index, line in enumerate(lines)]
    return "\n".join([f"```{fmt.info}", *body, f"{fmt.closing_indent}```"])


def _format_mermaid(fragment: Fragment, translated: str) -> str:
    fmt = _descriptor(fragment, MermaidFormat)
    lines = translated.split("\n")
    if fmt.fenced:
        lines = _strip_fences(lines, ("```",))
    elif lines and lines[0].strip().lower() == "mermaid":
        lines = lines[1:]
    body = [_indented(_pick(fmt.line_indents, index), line) for index, line in enumerate(lines)]
    if not fmt.fenced:
        return "\n".join([fmt.info, *body])
    return "\n".join([f"```{fmt.info}", *body, f"{fmt.closing_indent}```"])


def _format_quote(fragment: Fragment, translated: str) -> str:
    fmt = _descriptor(fragment, QuoteFormat)
    result = []
    for index, line in enumerate(translated.split("\n")):
        prefix = fmt.prefixes[index] if index < len(fmt.prefixes) else _pick(fmt.prefixes, 0)
        result.append(prefix + QUOTE_PREFIX_PATTERN.sub("", line, count=1).strip())
    return "\n".join(result)


def _render_cell(text: str, width: int, alignment: Alignment) -> str:
    gap = width - len(text)
    if alignment is Alignment.CENTER:
        left = gap // 2
        return " " + " " * left + text + " " * (gap - left) + " "
    if alignment is Alignment.RIGHT:
        return " " + " " * gap + text + " "
    return " " + text + " " * gap + " "


def _render_separator(width: int, alignment: Alignment) -> str:
    if alignment is Alignment.CENTER:
        return ":" + "-" * width + ":"
    if alignment is Alignment.RIGHT:
        return "-" * (width + 1) + ":"
    if alignment is Alignment.LEFT:
        return ":" + "-" * (width + 1)
    return "-" * (width + 2)


def _format_table(fragment: Fragment, translated: str) -> str:
    fmt = _descriptor(fragment, TableFormat)
    original_rows = fragment.text.split("\n")
    translated_rows = [
        row for row in translated.split("\n") if "|" in row and not is_separator_row(row)
    ]

    rows: List[Optional[List[str]]] = []
    content_index = 0
    for index, is_separator in enumerate(fmt.separator_rows):
        if is_separator:
            rows.append(None)
            continue
        original_cells = [cell.strip() for cell in split_cells(original_rows[index])]
        candidate: List[str] = []
        if content_index < len(translated_rows):
            candidate = [cell.strip() for cell in split_cells(translated_rows[content_index])]
        content_index += 1
        rows.append(
            [
                candidate[column] if column < len(candidate) and candidate[column] else cell
                for column, cell in enumerate(original_cells)
            ]
        )

    column_count = max(
        [len(fmt.alignments), len(fmt.column_widths)]
        + [len(cells) for cells in rows if cells is not None]
    )
    widths = [
        fmt.column_widths[column] if column < len(fmt.column_widths) else 0
        for column in range(column_count)
    ]
    for cells in rows:
        if cells is None:
            continue
        for column, cell in enumerate(cells):
            widths[column] = max(widths[column], len(cell))

    def alignment_for(column: int) -> Alignment:
        if column < len(fmt.alignments):
            return fmt.alignments[column]
        return Alignment.NONE

    rendered = []
    for index, cells in enumerate(rows):
        indent = _pick(fmt.row_indents, index)
        if cells is None:
            parts = [_render_separator(widths[column], alignment_for(column)) for column in range(column_count)]
        else:
            padded = cells + [""] * (column_count - len(cells))
            parts = [
                _render_cell(cell, widths[column], alignment_for(column))
                for column, cell in enumerate(padded)
            ]
        rendered.append(indent + "|" + "|".join(parts) + "|")
    return "\n".join(rendered)


def _format_task_list(fragment: Fragment, translated: str) -> str:
    fmt = _descriptor(fragment, TaskListFormat)
    result = []
    for index, line in enumerate(translated.split("\n")):
        indent = _pick(fmt.indents, index)
        checked = fmt.checked[index] if index < len(fmt.checked) else False
        label = TASK_PREFIX_PATTERN.sub("", line.strip(), count=1).strip()
        box = "[x]" if checked else "[ ]"
        result.append(f"{indent}- {box} {label}" if label else f"{indent}- {box}")
    return "\n".join(result)


def _format_footnote(fragment: Fragment, translated: str) -> str:
    fmt = _descriptor(fragment, FootnoteFormat)
    lines = translated.split("\n")
    first = FOOTNOTE_MARK_PATTERN.sub("", lines[0].strip(), count=1).strip()
    result = [f"[^{fmt.footnote_id}]:{fmt.spacing}{first}"]
    for index, line in enumerate(lines[1:], start=1):
        result.append(_indented(_pick(fmt.line_indents, index), line))
    return "\n".join(result)


def _format_definition(fragment: Fragment, translated: str) -> str:
    original_lines = fragment.text.split("\n")
    term = original_lines[0]
    definitions = [line for line in translated.split("\n")[1:] if line.strip()]
    if not definitions:
        definitions = original_lines[1:]
    cleaned = [DEFINITION_MARK_PATTERN.sub("", line, count=1).strip() for line in definitions]
    return "\n".join([term] + [f": {definition}" for definition in cleaned])


def _format_container(fragment: Fragment, translated: str) -> str:
    fmt = _descriptor(fragment, ContainerFormat)
    lines = translated.split("\n")
    title = ""
    if lines and lines[0].lstrip().startswith(":::"):
        title = CONTAINER_MARK_PATTERN.sub("", lines[0], count=1).rstrip()
        lines = lines[1:]
    if lines and lines[-1].strip() == ":::":
        lines = lines[:-1]
    body = [_indented(_pick(fmt.body_indents, index), line) for index, line in enumerate(lines)]
    return "\n".join([fmt.header + title, *body, f"{fmt.closing_indent}:::"])


def _format_details(fragment: Fragment, translated: str) -> str:
    fmt = _descriptor(fragment, DetailsFormat)
    summary, body = split_details(translated)
    if summary is None:
        summary = fmt.summary
    result = [fmt.open_tag]
    if summary is not None:
        result.append(f"{fmt.summary_indent}<summary>{summary}</summary>")
    if body:
        result.extend(fmt.body_leading)
    for index, line in enumerate(body):
        content = DETAILS_LIST_PATTERN.sub("- ", line.strip(), count=1)
        indent = _pick(fmt.body_indents, index)
        result.append(indent + content if content else indent)
    if body:
        result.extend(fmt.body_trailing)
    result.append(f"{fmt.closing_indent}</details>")
    return "\n".join(result)


def _format_math(fragment: Fragment, translated: str) -> str:
    fmt = _descriptor(fragment, MathFormat)
    content = MATH_DELIMITER_PATTERN.sub("", translated.strip()).strip()
    if fmt.inline:
        return f"${content}$"
    if fmt.multiline:
        return f"$$\n{content}\n$$"
    return f"$${content}$$"


def _format_html(fragment: Fragment, translated: str) -> str:
    fmt = _descriptor(fragment, HtmlFormat)
    if fmt.self_closing:
        return fragment.text
    content = HTML_OPEN_PATTERN.sub("", translated.strip(), count=1)
    content = HTML_CLOSE_PATTERN.sub("", content, count=1)
    return f"<{fmt.tag}{fmt.attributes}>{content}</{fmt.tag}>"


FORMATTERS: Dict[FragmentType, Formatter] = {
    FragmentType.PARAGRAPH: _format_paragraph,
    FragmentType.HEADER: _format_header,
    FragmentType.LIST: _format_list,
    FragmentType.CODE: _format_code,
    FragmentType.MERMAID: _format_mermaid,
    FragmentType.QUOTE: _format_quote,
    FragmentType.TABLE: _format_table,
    FragmentType.TASK_LIST: _format_task_list,
    FragmentType.FOOTNOTE: _format_footnote,
    FragmentType.DEFINITION: _format_definition,
    FragmentType.CONTAINER: _format_container,
    FragmentType.DETAILS: _format_details,
    FragmentType.MATH: _format_math,
    FragmentType.HTML: _format_html,
}


def format_fragment(fragment: Fragment, translated: str) -> str:
    """Rebuild one fragment around its translated text.

    The whitespace that surrounded the original match is restored around the
    regenerated body. Types without a formatter are substituted verbatim.
    """

    formatter = FORMATTERS.get(fragment.type)
    body = formatter(fragment, translated) if formatter else translated
    descriptor = fragment.descriptor
    return f"{descriptor.leading}{body}{descriptor.trailing}"


def reconstruct(segmented: SegmentedContent, translations: Sequence[str]) -> str:
    """Substitute every placeholder in the template exactly once."""

    fragments = segmented.fragments
    if len(translations) != len(fragments):
        raise ReconstructionError(
            f"Expected {len(fragments)} translated fragments, got {len(translations)}."
        )

    formatted = [
        format_fragment(fragment, translated)
        for fragment, translated in zip(fragments, translations)
    ]
    substituted: set[int] = set()

    def substitute(match: "re.Match[str]") -> str:
        position = int(match.group(1))
        if position >= len(formatted) or position in substituted:
            raise ReconstructionError(
                f"Template placeholder {position} has no unique fragment."
            )
        substituted.add(position)
        return formatted[position]

    result = PLACEHOLDER_PATTERN.sub(substitute, segmented.template)
    if len(substituted) != len(formatted):
        missing = sorted(set(range(len(formatted))) - substituted)
        raise ReconstructionError(
            "Template is missing placeholders for fragments: "
            + ", ".join(str(position) for position in missing)
        )
    return result
