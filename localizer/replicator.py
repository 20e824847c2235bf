"""Replicate a source tree into one translated tree per locale."""

from __future__ import annotations

import asyncio
import logging
import pathlib
import time
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from .configuration import ProjectConfig
from .context import matches_file_types
from .errors import (
    ErrorCategory,
    LocalizerError,
    ProjectConfigurationError,
    ReconstructionError,
    SerializationError,
)
from .structures import ContentKind, detect_file_type
from .translator import Translator
from .tree import decode_json

logger = logging.getLogger(__name__)


def _category_for(exc: Exception) -> ErrorCategory:
    if isinstance(exc, (OSError, UnicodeDecodeError)):
        return ErrorCategory.FILE_IO
    if isinstance(exc, SerializationError):
        return ErrorCategory.SERIALIZATION
    if isinstance(exc, ReconstructionError):
        return ErrorCategory.RECONSTRUCTION
    return ErrorCategory.OTHER


@dataclass
class LocaleReport:
    """Outcome of one locale."""

    locale: str
    written: List[pathlib.Path] = field(default_factory=list)
    failures: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failures


@dataclass
class ReplicationSummary:
    """Report returned after replicating a project."""

    source: pathlib.Path
    destination: pathlib.Path
    source_locale: str
    total_files: int
    locales: Dict[str, LocaleReport]
    total_errors: int
    provider_name: str
    elapsed_seconds: float
    error_messages: List[str] = field(default_factory=list)

    @property
    def failed_locales(self) -> List[str]:
        return [locale for locale, report in self.locales.items() if not report.succeeded]


class FileReplicator:
    """Translates every matching source file into ``destination/<locale>/``.

    JSON files go through the tree translator with per-key context; every
    other file type is translated as flat content with its file context.
    Failures are isolated per file and locale.
    """

    def __init__(self, translator: Translator, project: ProjectConfig) -> None:
        self.translator = translator
        self.project = project
        self.tree = translator.tree_translator()

    def discover(self) -> List[pathlib.Path]:
        """Relative paths of all translatable files under the source directory."""

        source = self.project.source_path
        if not source.is_dir():
            raise ProjectConfigurationError(
                f"Source directory {source} does not exist or is not a directory."
            )
        return [
            path.relative_to(source)
            for path in sorted(source.rglob("*"))
            if path.is_file() and matches_file_types(path, self.project.file_types)
        ]

    def output_path(self, locale: str, relative: pathlib.Path) -> pathlib.Path:
        return self.project.destination_path / locale / relative

    async def translate_content(self, relative: pathlib.Path, text: str, locale: str) -> str:
        file_type = detect_file_type(relative)
        project = self.project
        if ContentKind.from_file_type(file_type) is ContentKind.JSON:
            return await self.tree.translate_document(
                decode_json(text),
                project.source_locale,
                locale,
                project.context.resolver_for(relative),
                serialize=True,
            )
        return await self.translator.segment_and_translate(
            text,
            file_type,
            project.source_locale,
            locale,
            project.context.for_file(relative),
        )

    async def translate_file(self, relative: pathlib.Path, locale: str) -> pathlib.Path:
        source_file = self.project.source_path / relative
        text = source_file.read_text(encoding="utf-8")
        translated = await self.translate_content(relative, text, locale)
        target = self.output_path(locale, relative)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(translated, encoding="utf-8")
        logger.info("Wrote %s", target)
        return target

    async def run(self, locales: Sequence[str] | None = None) -> ReplicationSummary:
        start_time = time.time()
        targets = list(locales or self.project.locales)
        files = self.discover()
        reports = {locale: LocaleReport(locale=locale) for locale in targets}
        error_policy = self.translator.error_policy

        async def process(relative: pathlib.Path, locale: str) -> None:
            try:
                written = await self.translate_file(relative, locale)
            except (LocalizerError, OSError, UnicodeDecodeError) as exc:
                message = f"Error translating {relative} into {locale}."
                error_policy.handle_error(_category_for(exc), message, str(exc))
                reports[locale].failures.append(f"{message} ({exc})")
                return
            reports[locale].written.append(written)

        await asyncio.gather(
            *(process(relative, locale) for relative in files for locale in targets)
        )

        return ReplicationSummary(
            source=self.project.source_path,
            destination=self.project.destination_path,
            source_locale=self.project.source_locale,
            total_files=len(files),
            locales=reports,
            total_errors=len(error_policy.records),
            provider_name=getattr(self.translator.provider, "name", "provider"),
            elapsed_seconds=time.time() - start_time,
            error_messages=error_policy.messages,
        )
