"""Recursive translation of nested JSON-like values."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

from .errors import ErrorCategory, SerializationError
from .policy import ErrorPolicy

logger = logging.getLogger(__name__)

FILE_CONTEXT_KEY = "$fileContext"

LeafTranslator = Callable[[str, str, str, str], Awaitable[str]]
ContextResolver = Callable[[str], str]
PathSegment = Union[str, int]
CacheKey = Tuple[str, str, str]


def encode_json(value: Any) -> str:
    """Serialize a translated tree the way locale files are written."""

    if not isinstance(value, (dict, list)):
        raise SerializationError(
            f"Translated content is not a JSON object or array (got {type(value).__name__})."
        )
    try:
        return json.dumps(value, ensure_ascii=False, indent=2)
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"Translated content could not be encoded: {exc}") from exc


def decode_json(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise SerializationError(f"Invalid JSON content: {exc}") from exc


def format_path(path: Sequence[PathSegment]) -> str:
    return ".".join(str(segment) for segment in path)


class TreeTranslator:
    """Walks a JSON-like value and translates every non-blank string leaf.

    Each ``translate_tree`` call owns a cache keyed by
    ``(text, source, target)``. The cache stores the in-flight translation,
    so identical leaves anywhere in the tree cost a single call even though
    siblings are translated concurrently.
    """

    def __init__(
        self,
        translate_leaf: LeafTranslator,
        *,
        error_policy: Optional[ErrorPolicy] = None,
    ) -> None:
        self.translate_leaf = translate_leaf
        self.error_policy = error_policy or ErrorPolicy()

    async def translate_tree(
        self,
        value: Any,
        source: str,
        target: str,
        context_resolver: Optional[ContextResolver] = None,
    ) -> Any:
        cache: Dict[CacheKey, "asyncio.Future[str]"] = {}
        return await self._walk(value, [], source, target, context_resolver, cache)

    async def _walk(
        self,
        value: Any,
        path: List[PathSegment],
        source: str,
        target: str,
        resolver: Optional[ContextResolver],
        cache: Dict[CacheKey, "asyncio.Future[str]"],
    ) -> Any:
        if value is None:
            return None
        if isinstance(value, list):
            return list(
                await asyncio.gather(
                    *(
                        self._walk(item, path + [index], source, target, resolver, cache)
                        for index, item in enumerate(value)
                    )
                )
            )
        if isinstance(value, dict):
            keys = list(value.keys())
            results = await asyncio.gather(
                *(
                    self._walk(value[key], path + [key], source, target, resolver, cache)
                    for key in keys
                )
            )
            return dict(zip(keys, results))
        if not isinstance(value, str) or not value.strip():
            return value

        key = (value, source, target)
        pending = cache.get(key)
        if pending is None:
            pending = asyncio.ensure_future(
                self._translate_leaf(value, format_path(path), source, target, resolver)
            )
            cache[key] = pending
        return await pending

    async def _translate_leaf(
        self,
        text: str,
        path: str,
        source: str,
        target: str,
        resolver: Optional[ContextResolver],
    ) -> str:
        context = resolver(path) if resolver else ""
        try:
            translated = await self.translate_leaf(text, source, target, context or "")
        except Exception as exc:
            self.error_policy.handle_error(
                ErrorCategory.TRANSLATION,
                f'Translation failed for "{text}" at path "{path}"; keeping the original.',
                str(exc),
            )
            return text
        self.error_policy.record_success()
        return translated

    async def translate_document(
        self,
        value: Any,
        source: str,
        target: str,
        context_resolver: Optional[ContextResolver] = None,
        *,
        serialize: bool = True,
    ) -> Any:
        """Translate a tree and, when ``serialize`` is set, encode it as JSON text."""

        translated = await self.translate_tree(value, source, target, context_resolver)
        logger.debug("Translated tree from %s to %s", source, target)
        if not serialize:
            return translated
        return encode_json(translated)

    async def translate_locales(
        self,
        value: Any,
        source: str,
        targets: Sequence[str],
        context_resolver: Optional[ContextResolver] = None,
        *,
        serialize: bool = False,
    ) -> Dict[str, Any]:
        """Translate one tree into several locales concurrently.

        Locales are independent: a locale whose serialization fails is
        reported and left out of the result while the others complete.
        """

        outcomes = await asyncio.gather(
            *(
                self.translate_document(
                    value, source, target, context_resolver, serialize=serialize
                )
                for target in targets
            ),
            return_exceptions=True,
        )
        results: Dict[str, Any] = {}
        for target, outcome in zip(targets, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                self.error_policy.handle_error(
                    ErrorCategory.SERIALIZATION,
                    f"Failed to process locale {target}.",
                    str(outcome),
                )
                continue
            results[target] = outcome
        return results
