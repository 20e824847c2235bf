"""Remove model artifacts from raw translation responses."""

from __future__ import annotations

import re
from typing import List

from .structures import ContentKind

LABEL_PATTERN = re.compile(
    r"^\s*(?:translated text|translation|text to translate)\s*:[ \t]*\n?", re.I
)
ANNOTATION_PATTERN = re.compile(
    r"[ \t]*(?:\((?:note|translation|translator's note)\s*:[^)]*\)"
    r"|\[(?:note|translation|translator's note)\s*:[^\]]*\])",
    re.I,
)
LEADING_ANNOTATION_PATTERN = re.compile(
    r"^(?:\((?:note|translation|translator's note)\s*:[^)]*\)"
    r"|\[(?:note|translation|translator's note)\s*:[^\]]*\])[ \t]*",
    re.I | re.M,
)
RUN_ON_WHITESPACE_PATTERN = re.compile(r"(?<=\S)[ \t]{2,}(?=\S)")
URL_PATTERN = re.compile(r"https?://[^\s<>\"')\]]+")
CODE_FENCE_PATTERN = re.compile(r"^\s*```")

TRIPLE_QUOTES = ('"""', "'''")
QUOTE_PAIRS = (('"', '"'), ("“", "”"), ("„", "“"), ("'", "'"))
CURLY_QUOTES = str.maketrans(
    {
        "“": '"',
        "”": '"',
        "„": '"',
        "‘": "'",
        "’": "'",
    }
)


def _strip_label(text: str) -> str:
    return LABEL_PATTERN.sub("", text, count=1)


def _strip_triple_quotes(text: str, original: str) -> str:
    stripped = text.strip()
    for quote in TRIPLE_QUOTES:
        if (
            len(stripped) >= 2 * len(quote)
            and stripped.startswith(quote)
            and stripped.endswith(quote)
            and not original.strip().startswith(quote)
        ):
            return stripped[len(quote) : -len(quote)].strip("\n")
    return text


def _strip_code_fence(text: str, original: str) -> str:
    if CODE_FENCE_PATTERN.match(original):
        return text
    lines = text.strip().split("\n")
    if (
        len(lines) >= 2
        and lines[0].strip().startswith("```")
        and lines[-1].strip() == "```"
    ):
        return "\n".join(lines[1:-1])
    return text


def _strip_quote_marks(text: str, original: str) -> str:
    stripped = text.strip()
    source = original.strip()
    for opening, closing in QUOTE_PAIRS:
        if len(stripped) < 2 or not (
            stripped.startswith(opening) and stripped.endswith(closing)
        ):
            continue
        if source.startswith(opening) and source.endswith(closing):
            return text
        inner = stripped[len(opening) : -len(closing)]
        if opening in inner or closing in inner:
            return text
        return inner
    return text


def _collapse_whitespace(text: str, kind: ContentKind) -> str:
    lines: List[str] = []
    in_fence = False
    for line in text.split("\n"):
        if kind is ContentKind.MARKDOWN and CODE_FENCE_PATTERN.match(line):
            in_fence = not in_fence
            lines.append(line)
            continue
        if in_fence:
            lines.append(line)
            continue
        lines.append(RUN_ON_WHITESPACE_PATTERN.sub(" ", line))
    return "\n".join(lines)


def _restore_urls(text: str, original: str) -> str:
    """Put the original URLs back, in order, wherever the model returned one."""

    originals = URL_PATTERN.findall(original)
    if not originals:
        return text
    position = 0

    def restore(match: "re.Match[str]") -> str:
        nonlocal position
        if position >= len(originals):
            return match.group(0)
        url = originals[position]
        position += 1
        return url

    return URL_PATTERN.sub(restore, text)


def _trim_blank_lines(text: str) -> str:
    lines = text.split("\n")
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    return "\n".join(lines)


def sanitize(raw_response: str, original_text: str, kind: ContentKind) -> str:
    """Clean a raw model response for one fragment.

    Wrapping the model adds (labels, quote marks, triple quotes, fences) is
    only removed when the original text did not carry it. An empty response,
    or one that is empty after cleaning, falls back to ``original_text``.
    """

    if not raw_response:
        return original_text

    text = raw_response.replace("\r\n", "\n").replace("\r", "\n")
    original = original_text.replace("\r\n", "\n").replace("\r", "\n")

    text = _strip_label(text)
    text = _strip_triple_quotes(text, original)
    text = _strip_code_fence(text, original)
    text = _strip_quote_marks(text, original)
    text = _strip_label(text)

    text = LEADING_ANNOTATION_PATTERN.sub("", text)
    text = ANNOTATION_PATTERN.sub("", text)
    text = _collapse_whitespace(text, kind)
    if kind is not ContentKind.MARKDOWN:
        text = text.translate(CURLY_QUOTES)
    text = _restore_urls(text, original)
    text = _trim_blank_lines(text)

    if not text.strip():
        return original_text
    # Leading indentation is structural for Markdown, so only trailing space goes.
    return text.rstrip() if kind is ContentKind.MARKDOWN else text.strip()
