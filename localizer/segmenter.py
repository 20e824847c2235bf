"""Split structured content into translatable fragments and a template."""

from __future__ import annotations

import re
from typing import List, Sequence, Tuple

from .patterns import MARKDOWN_RECOGNIZERS, PLAIN_TEXT_RECOGNIZER, Recognizer
from .structures import ContentKind, Fragment, SegmentedContent

PLACEHOLDER_OPEN = "\ue000"
PLACEHOLDER_CLOSE = "\ue001"
PLACEHOLDER_PATTERN = re.compile(f"{PLACEHOLDER_OPEN}(\\d+){PLACEHOLDER_CLOSE}")


def placeholder(position: int) -> str:
    """Return the template token standing in for the fragment at ``position``."""

    return f"{PLACEHOLDER_OPEN}{position}{PLACEHOLDER_CLOSE}"


def _split_whitespace(raw: str) -> Tuple[str, str, str]:
    """Split a match into (leading whitespace, core text, trailing whitespace)."""

    core = raw.strip()
    if not core:
        return raw, "", ""
    start = raw.index(core)
    return raw[:start], core, raw[start + len(core) :]


class Segmenter:
    """Applies an ordered recognizer set to content."""

    def __init__(
        self,
        markdown_recognizers: Sequence[Recognizer] = MARKDOWN_RECOGNIZERS,
        plain_text_recognizer: Recognizer = PLAIN_TEXT_RECOGNIZER,
    ) -> None:
        self.markdown_recognizers = tuple(markdown_recognizers)
        self.plain_text_recognizer = plain_text_recognizer

    def recognizers_for(self, kind: ContentKind) -> Tuple[Recognizer, ...]:
        if kind is ContentKind.MARKDOWN:
            return self.markdown_recognizers
        return (self.plain_text_recognizer,)

    def find_matches(
        self, content: str, kind: ContentKind
    ) -> List[Tuple[int, int, Recognizer]]:
        """Collect non-overlapping matches ordered by source offset.

        Candidates are sorted by start offset, then by recognizer declaration
        order. A candidate that overlaps an accepted match is discarded, so
        the earliest and highest priority claim on any region wins.
        """

        candidates: List[Tuple[int, int, int, Recognizer]] = []
        for priority, recognizer in enumerate(self.recognizers_for(kind)):
            for start, end in recognizer.spans(content):
                if content[start:end].strip():
                    candidates.append((start, priority, end, recognizer))
        candidates.sort(key=lambda item: (item[0], item[1]))

        accepted: List[Tuple[int, int, Recognizer]] = []
        cursor = 0
        for start, _priority, end, recognizer in candidates:
            if start < cursor:
                continue
            accepted.append((start, end, recognizer))
            cursor = end
        return accepted

    def segment(
        self, content: str, kind: ContentKind = ContentKind.PLAIN_TEXT
    ) -> SegmentedContent:
        if not content:
            return SegmentedContent(template="", fragments=[], kind=kind)

        pieces: List[str] = []
        fragments: List[Fragment] = []
        cursor = 0
        for position, (start, end, recognizer) in enumerate(
            self.find_matches(content, kind)
        ):
            leading, core, trailing = _split_whitespace(content[start:end])
            first_indent = leading.rsplit("\n", 1)[-1]
            descriptor = recognizer.extract(core, first_indent)
            descriptor.leading = leading
            descriptor.trailing = trailing
            fragments.append(
                Fragment(
                    text=core,
                    type=recognizer.type,
                    descriptor=descriptor,
                    position=position,
                    span=(start, end),
                )
            )
            pieces.append(content[cursor:start])
            pieces.append(placeholder(position))
            cursor = end
        pieces.append(content[cursor:])
        return SegmentedContent(template="".join(pieces), fragments=fragments, kind=kind)


_DEFAULT_SEGMENTER = Segmenter()


def segment(content: str, kind: ContentKind = ContentKind.PLAIN_TEXT) -> SegmentedContent:
    """Segment content with the default recognizer set."""

    return _DEFAULT_SEGMENTER.segment(content, kind)
