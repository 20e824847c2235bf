"""High-level orchestration for content translation."""

from __future__ import annotations

import asyncio
import logging
import pathlib
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .errors import (
    ErrorCategory,
    LocalizerError,
    OverwriteRefusedError,
    TranslationProviderError,
)
from .policy import ErrorPolicy
from .prompts import build_question, build_system_prompt
from .providers import TranslationProvider
from .reconstructor import reconstruct
from .request_queue import RateLimitedQueue
from .sanitizer import sanitize
from .segmenter import Segmenter
from .structures import ContentKind, Fragment, TranslationPolicy
from .tree import TreeTranslator

logger = logging.getLogger(__name__)


@dataclass
class TranslationSummary:
    """Report returned after translating a single file."""

    input_path: pathlib.Path
    output_path: pathlib.Path
    file_type: str
    source_locale: str
    target_locale: str
    provider_name: str
    model: str | None
    total_errors: int
    elapsed_seconds: float
    error_messages: List[str] = field(default_factory=list)


class Translator:
    """Coordinates segmentation, provider calls, sanitizing and reconstruction.

    Fragments are dispatched together, either straight to the provider or
    through a :class:`RateLimitedQueue` when the policy asks for queued
    dispatch. Results are written back by fragment position, so the output
    order never depends on completion order. A fragment whose call fails
    keeps its original text and the failure is recorded on the error policy.
    """

    def __init__(
        self,
        provider: TranslationProvider,
        policy: Optional[TranslationPolicy] = None,
        *,
        error_policy: Optional[ErrorPolicy] = None,
        queue: Optional[RateLimitedQueue] = None,
        segmenter: Optional[Segmenter] = None,
        max_retries: int = 2,
        retry_backoff: Sequence[float] = (1, 4, 9),
    ) -> None:
        self.provider = provider
        self.policy = policy or TranslationPolicy()
        self.error_policy = error_policy or ErrorPolicy()
        if queue is None and self.policy.queued:
            queue = RateLimitedQueue(self.policy.min_spacing)
        self.queue = queue
        self.segmenter = segmenter or Segmenter()
        self.max_retries = max_retries
        self.retry_backoff = list(retry_backoff) or [0]

    async def segment_and_translate(
        self,
        content: str,
        file_type: str,
        source_locale: str,
        target_locale: str,
        context: str = "",
    ) -> str:
        """Translate flat content of the given file type, keeping its formatting."""

        if not content:
            return ""

        kind = ContentKind.from_file_type(file_type)
        if kind is ContentKind.JSON:
            kind = ContentKind.PLAIN_TEXT
        system_prompt = build_system_prompt(file_type, source_locale, target_locale, context)
        segmented = self.segmenter.segment(content, kind)
        logger.debug(
            "Segmented %s content into %d fragments", kind.value, len(segmented)
        )

        translations = await asyncio.gather(
            *(
                self._translate_fragment(fragment, system_prompt, kind)
                for fragment in segmented.fragments
            )
        )
        return reconstruct(segmented, translations)

    async def translate_leaf(
        self, text: str, source_locale: str, target_locale: str, context: str = ""
    ) -> str:
        """Translate one string leaf of a nested value as plain text."""

        return await self.segment_and_translate(
            text, ContentKind.PLAIN_TEXT.value, source_locale, target_locale, context
        )

    def tree_translator(self) -> TreeTranslator:
        return TreeTranslator(self.translate_leaf, error_policy=self.error_policy)

    async def _translate_fragment(
        self, fragment: Fragment, system_prompt: str, kind: ContentKind
    ) -> str:
        if not fragment.translatable:
            return fragment.text
        try:
            response = await self._dispatch(build_question(fragment.text), system_prompt)
        except Exception as exc:
            self.error_policy.handle_error(
                ErrorCategory.TRANSLATION,
                f"Could not translate {fragment.type.value} fragment "
                f"{fragment.position}; keeping the original text.",
                str(exc),
            )
            return fragment.text
        self.error_policy.record_success()
        return sanitize(response, fragment.text, kind)

    async def _dispatch(self, question: str, system_prompt: str) -> str:
        attempt = 0
        while True:
            try:
                if self.queue is not None:
                    return await self.queue.submit(
                        lambda: self.provider.translate(question, system_prompt)
                    )
                return await self.provider.translate(question, system_prompt)
            except TranslationProviderError as exc:
                attempt += 1
                if attempt > self.max_retries:
                    raise
                wait_time = self.retry_backoff[min(attempt - 1, len(self.retry_backoff) - 1)]
                logger.info(
                    "Could not translate one fragment (attempt %d of %d: %s). "
                    "Retrying automatically...",
                    attempt,
                    self.max_retries,
                    exc,
                )
                await asyncio.sleep(wait_time)


def validate_paths(
    input_path: pathlib.Path,
    output_path: pathlib.Path,
    force_overwrite: bool,
) -> None:
    """Validate input/output path combinations and overwrite policy."""

    if not input_path.exists():
        raise FileNotFoundError(f"Input file {input_path} not found.")
    if not input_path.is_file():
        raise LocalizerError("Input path must be a file.")

    if input_path.resolve() == output_path.resolve():
        raise OverwriteRefusedError(
            "The output path matches the input file. Refusing to overwrite the source file."
        )

    if output_path.exists() and not force_overwrite:
        raise OverwriteRefusedError(
            "The output file already exists. Rename it or use the overwrite flag."
        )
