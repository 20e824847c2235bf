"""Command line interface for the Localizer translator."""

from __future__ import annotations

import argparse
import asyncio
import logging
import pathlib
import re
import sys
import time
from typing import Any, Iterable, Mapping, Optional

from .configuration import (
    PROJECT_FILE_NAME,
    ProjectConfig,
    build_policy,
    get_settings,
    load_project_config,
    normalise_file_types,
    write_project_config,
)
from .context import LocaleContextType, build_context_skeleton
from .errors import (
    LocalizerError,
    OverwriteRefusedError,
    ProjectConfigurationError,
    TranslationProviderConfigurationError,
)
from .providers import build_provider, normalise_provider_name
from .replicator import FileReplicator, ReplicationSummary
from .structures import ContentKind, detect_file_type
from .translator import TranslationSummary, Translator, validate_paths
from .tree import decode_json


def _add_provider_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-p",
        "--provider",
        help="Translation provider identifier (openai, azure_openai, legacy_openai, mistral, echo).",
    )
    parser.add_argument(
        "-m",
        "--model",
        help="Provider-specific model or deployment identifier.",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--queued",
        dest="dispatch_mode",
        action="store_const",
        const="queued",
        help="Send provider calls one at a time through the rate-limited queue.",
    )
    mode.add_argument(
        "--parallel",
        dest="dispatch_mode",
        action="store_const",
        const="parallel",
        help="Send all provider calls at once (default).",
    )
    parser.add_argument(
        "--min-spacing-ms",
        type=int,
        help="Minimum milliseconds between queued provider calls (default: 2500).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed progress information.",
    )
    parser.add_argument(
        "--debug-provider",
        action="store_true",
        help="Log complete provider requests and responses for troubleshooting.",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="localizer",
        description=(
            "Translate text, Markdown and JSON locale files while preserving formatting."
        ),
    )
    commands = parser.add_subparsers(dest="command", required=True)

    init = commands.add_parser("init", help=f"Create {PROJECT_FILE_NAME}.")
    init.add_argument("--source", required=True, help="Directory holding the source files.")
    init.add_argument(
        "--locales",
        required=True,
        help="Comma-separated target locales, e.g. es,fr,de.",
    )
    init.add_argument(
        "--from",
        dest="source_locale",
        default="en",
        help="Source locale (default: en).",
    )
    init.add_argument(
        "--file-types",
        default=".json,.md,.txt",
        help="Comma-separated file extensions to translate (default: .json,.md,.txt).",
    )
    init.add_argument("--destination", default="", help="Directory for the translated trees.")
    init.add_argument(
        "--context-type",
        choices=[member.value for member in LocaleContextType],
        default=LocaleContextType.FILE.value,
        help="file: one context per file; deep: one context per JSON key as well.",
    )
    init.add_argument("--config", help=f"Project file path (default: ./{PROJECT_FILE_NAME}).")
    init.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Overwrite an existing project file.",
    )

    translate = commands.add_parser("translate", help="Translate the project into every locale.")
    translate.add_argument("--config", help=f"Project file path (default: ./{PROJECT_FILE_NAME}).")
    translate.add_argument(
        "--locales",
        help="Comma-separated subset of the project locales to translate.",
    )
    _add_provider_options(translate)

    single = commands.add_parser("file", help="Translate a single file.")
    single.add_argument("input_file", help="Path to the file to translate.")
    single.add_argument(
        "-t",
        "--target-locale",
        required=True,
        help="Destination locale (name or code).",
    )
    single.add_argument(
        "-s",
        "--source-locale",
        default="en",
        help="Source locale (default: en).",
    )
    single.add_argument(
        "-o",
        "--output",
        help="Output file path. Defaults to appending the target locale to the name.",
    )
    single.add_argument("--context", default="", help="Extra context for the translator.")
    single.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Allow overwriting the output file if it already exists.",
    )
    _add_provider_options(single)
    return parser


def split_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def sanitise_locale_for_filename(locale: str) -> str:
    """Generate a filesystem-friendly suffix from a locale descriptor."""

    collapsed = re.sub(r"\s+", "-", locale.strip())
    ascii_only = collapsed.encode("ascii", "ignore").decode("ascii")
    cleaned = re.sub(r"[^A-Za-z0-9\-_]+", "", ascii_only)
    return cleaned or "translated"


def derive_output_path(input_path: pathlib.Path, locale: str) -> pathlib.Path:
    addition = sanitise_locale_for_filename(locale)
    return input_path.with_name(f"{input_path.stem}_{addition}{input_path.suffix}")


def configure_logging(verbose: bool, provider_debug: bool) -> None:
    level = logging.WARNING
    if verbose:
        level = logging.INFO
    if provider_debug:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def build_translator(
    *,
    provider: str | None,
    model: str | None,
    dispatch_mode: str | None,
    min_spacing_ms: int | None,
    provider_debug: bool,
    request_options: Mapping[str, Any] | None = None,
) -> Translator:
    """Create the orchestrator from settings plus command line overrides."""

    settings: Any = None
    if provider is None or normalise_provider_name(provider) != "echo":
        settings = get_settings()
        if settings.LOCALIZER_PROVIDER_DEBUG and not provider_debug:
            provider_debug = True
            logging.getLogger("localizer.providers").setLevel(logging.DEBUG)
    policy = build_policy(
        settings,
        dispatch_mode=dispatch_mode,
        min_spacing_ms=min_spacing_ms,
        model=model,
    )
    translation_provider = build_provider(
        provider,
        settings=settings,
        model=policy.model,
        temperature=policy.temperature,
        debug=provider_debug,
        request_options=request_options,
    )
    return Translator(translation_provider, policy)


def execute_init(
    *,
    source: str,
    locales: list[str],
    source_locale: str,
    file_types: list[str],
    destination: str,
    context_type: str,
    config_file: str | None,
    force_overwrite: bool,
) -> tuple[int, pathlib.Path | None, str | None]:
    """Write a project file and return the exit code, its path, and a message."""

    config_path = (
        pathlib.Path(config_file).expanduser().resolve()
        if config_file
        else pathlib.Path.cwd() / PROJECT_FILE_NAME
    )
    if config_path.exists() and not force_overwrite:
        return 1, None, f"{config_path} already exists. Use --force to replace it."
    if not locales:
        return 1, None, "Please provide at least one target locale."

    base_dir = config_path.parent
    source_dir = (base_dir / source).resolve()
    if not source_dir.is_dir():
        return 1, None, f"Source directory {source_dir} does not exist."

    kind = LocaleContextType.parse(context_type)
    normalized_types = normalise_file_types(file_types)
    try:
        skeleton = build_context_skeleton(source_dir, normalized_types, kind)
    except LocalizerError as exc:
        return 1, None, str(exc)

    project = ProjectConfig(
        source=source,
        file_types=normalized_types,
        locales=[locale.lower() for locale in locales],
        source_locale=source_locale.lower(),
        destination=destination,
        context_type=kind,
        locale_context=skeleton,
        base_dir=base_dir,
    )
    if destination:
        project.destination_path.mkdir(parents=True, exist_ok=True)
    written = write_project_config(project, config_path)
    return 0, written, None


async def _replicate(
    translator: Translator, project: ProjectConfig, locales: list[str]
) -> ReplicationSummary:
    return await FileReplicator(translator, project).run(locales or None)


def execute_translation(
    *,
    config_file: str | None,
    locales: list[str],
    provider: str | None,
    model: str | None,
    dispatch_mode: str | None,
    min_spacing_ms: int | None,
    provider_debug: bool,
) -> tuple[int, ReplicationSummary | None, str | None]:
    """Translate a whole project and return the exit code, summary, and message."""

    config_path = pathlib.Path(config_file).expanduser().resolve() if config_file else None
    try:
        project = load_project_config(config_path)
        unknown = [locale for locale in locales if locale.lower() not in project.locales]
        if unknown:
            raise ProjectConfigurationError(
                "Locales not configured in the project file: " + ", ".join(unknown)
            )
        translator = build_translator(
            provider=provider or project.ai_service_provider,
            model=model,
            dispatch_mode=dispatch_mode,
            min_spacing_ms=min_spacing_ms,
            provider_debug=provider_debug,
            request_options=project.llm_config,
        )
        summary = asyncio.run(
            _replicate(translator, project, [locale.lower() for locale in locales])
        )
    except TranslationProviderConfigurationError as exc:
        return 1, None, str(exc)
    except LocalizerError as exc:
        return 1, None, str(exc)
    except KeyboardInterrupt:
        return 2, None, "Translation interrupted by user."

    exit_code = 1 if summary.failed_locales else 0
    return exit_code, summary, None


async def _translate_single(
    translator: Translator,
    *,
    input_path: pathlib.Path,
    output_path: pathlib.Path,
    source_locale: str,
    target_locale: str,
    context: str,
) -> TranslationSummary:
    start_time = time.time()
    file_type = detect_file_type(input_path)
    text = input_path.read_text(encoding="utf-8")
    if ContentKind.from_file_type(file_type) is ContentKind.JSON:
        translated = await translator.tree_translator().translate_document(
            decode_json(text),
            source_locale,
            target_locale,
            lambda _path: context,
        )
    else:
        translated = await translator.segment_and_translate(
            text, file_type, source_locale, target_locale, context
        )
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(translated, encoding="utf-8")

    records = translator.error_policy.records
    return TranslationSummary(
        input_path=input_path,
        output_path=output_path,
        file_type=file_type,
        source_locale=source_locale,
        target_locale=target_locale,
        provider_name=translator.provider.name,
        model=translator.policy.model,
        total_errors=len(records),
        elapsed_seconds=time.time() - start_time,
        error_messages=[record.message for record in records],
    )


def execute_file_translation(
    *,
    input_file: str,
    output_file: str | None,
    target_locale: str,
    source_locale: str,
    context: str,
    force_overwrite: bool,
    provider: str | None,
    model: str | None,
    dispatch_mode: str | None,
    min_spacing_ms: int | None,
    provider_debug: bool,
) -> tuple[int, TranslationSummary | None, str | None]:
    """Translate one file and return the exit code, summary, and message."""

    input_path = pathlib.Path(input_file).expanduser().resolve()
    output_path = (
        pathlib.Path(output_file).expanduser().resolve()
        if output_file
        else derive_output_path(input_path, target_locale)
    )

    try:
        validate_paths(input_path, output_path, force_overwrite=force_overwrite)
    except FileNotFoundError as exc:
        return 1, None, str(exc)
    except OverwriteRefusedError as exc:
        return 1, None, str(exc)
    except LocalizerError as exc:
        return 1, None, str(exc)

    try:
        translator = build_translator(
            provider=provider,
            model=model,
            dispatch_mode=dispatch_mode,
            min_spacing_ms=min_spacing_ms,
            provider_debug=provider_debug,
        )
        summary = asyncio.run(
            _translate_single(
                translator,
                input_path=input_path,
                output_path=output_path,
                source_locale=source_locale,
                target_locale=target_locale,
                context=context,
            )
        )
    except TranslationProviderConfigurationError as exc:
        return 1, None, str(exc)
    except LocalizerError as exc:
        return 1, None, str(exc)
    except OSError as exc:
        return 1, None, f"Could not read or write the file: {exc}"
    except UnicodeDecodeError as exc:
        return 1, None, f"{input_path} is not UTF-8 encoded text: {exc}"
    except KeyboardInterrupt:
        return 2, None, "Translation interrupted by user."

    return 0, summary, None


def print_summary(summary: TranslationSummary) -> None:
    """Output a friendly report once a single file is done."""

    print("\nTranslation complete.")
    print(f"  Input file:      {summary.input_path}")
    print(f"  Output file:     {summary.output_path}")
    print(f"  File type:       {summary.file_type}")
    print(
        f"  Provider:        {summary.provider_name}"
        + (f" ({summary.model})" if summary.model else "")
    )
    print(f"  Locales:         {summary.source_locale} -> {summary.target_locale}")
    print(f"  Elapsed time:    {summary.elapsed_seconds:.2f} seconds")
    if summary.total_errors:
        print("  Notes:")
        for message in summary.error_messages:
            print(f"    - {message}")


def print_replication_summary(summary: ReplicationSummary) -> None:
    """Output a per-locale report once a project run completes."""

    print("\nTranslation complete.")
    print(f"  Source:          {summary.source} ({summary.source_locale})")
    print(f"  Destination:     {summary.destination}")
    print(f"  Files:           {summary.total_files}")
    print(f"  Provider:        {summary.provider_name}")
    for locale, report in summary.locales.items():
        status = "ok" if report.succeeded else "failed"
        print(f"  [{status}] {locale}: {len(report.written)} files written")
    print(f"  Elapsed time:    {summary.elapsed_seconds:.2f} seconds")
    if summary.total_errors:
        print("  Notes:")
        for message in summary.error_messages:
            print(f"    - {message}")


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.command == "init":
        exit_code, path, message = execute_init(
            source=args.source,
            locales=split_list(args.locales),
            source_locale=args.source_locale,
            file_types=split_list(args.file_types),
            destination=args.destination,
            context_type=args.context_type,
            config_file=args.config,
            force_overwrite=args.force,
        )
        if message:
            print(message)
        if path:
            print(f"Project file created: {path}")
            print("Fill in localeContext to steer translations, then run `localizer translate`.")
        return exit_code

    configure_logging(args.verbose, args.debug_provider)

    if args.command == "translate":
        exit_code, summary, message = execute_translation(
            config_file=args.config,
            locales=split_list(args.locales),
            provider=args.provider,
            model=args.model,
            dispatch_mode=args.dispatch_mode,
            min_spacing_ms=args.min_spacing_ms,
            provider_debug=args.debug_provider,
        )
        if message:
            print(message)
        if summary:
            print_replication_summary(summary)
        return exit_code

    exit_code, file_summary, message = execute_file_translation(
        input_file=args.input_file,
        output_file=args.output,
        target_locale=args.target_locale,
        source_locale=args.source_locale,
        context=args.context,
        force_overwrite=args.force,
        provider=args.provider,
        model=args.model,
        dispatch_mode=args.dispatch_mode,
        min_spacing_ms=args.min_spacing_ms,
        provider_debug=args.debug_provider,
    )
    if message:
        print(message)
    if file_summary:
        print_summary(file_summary)
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
