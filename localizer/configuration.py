"""Prepper-backed provider settings and the project file loader."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Sequence

from dotenv import dotenv_values
from prepper import (
    ConfigNotFound,
    Field,
    IoError,
    SchemaError,
    SchemaModel,
    ValidationError,
    model_validator,
)
from prepper.config import ConfigInstance
from prepper.loaders import _parse_file, _path_to_source, discover_file_paths
from prepper.merge import merge_layer
from prepper.provenance import ProvenanceRecorder

from .context import LocaleContext, LocaleContextType
from .errors import ProjectConfigurationError, TranslationProviderConfigurationError
from .providers import normalise_provider_name
from .structures import DispatchMode, TranslationPolicy

APP_NAME = "Localizer"
PROJECT_FILE_NAME = "localizer.config.json"
PROVIDER_CHOICES = ("openai", "azure_openai", "legacy_openai", "mistral", "echo")


class LocalizerConfig(SchemaModel):
    """Schema describing all supported configuration options."""

    LLM_PROVIDER: Literal[
        "openai", "azure_openai", "legacy_openai", "mistral", "echo"
    ] = Field(
        default="openai",
        description="Large language model provider selection.",
    )
    AZURE_OPENAI_API_KEY: str | None = Field(default=None, secret=True)
    AZURE_OPENAI_ENDPOINT: str | None = Field(default=None)
    AZURE_OPENAI_API_VERSION: str | None = Field(default=None)
    AZURE_OPENAI_DEPLOYMENT_NAME: str | None = Field(default=None)
    OPENAI_API_KEY: str | None = Field(default=None, secret=True)
    MISTRAL_API_KEY: str | None = Field(default=None, secret=True)
    LOCALIZER_MODEL: str | None = Field(
        default=None,
        description="Model or deployment override for the selected provider.",
    )
    LOCALIZER_TEMPERATURE: float = Field(default=0.4)
    LOCALIZER_DISPATCH_MODE: Literal["parallel", "queued"] = Field(
        default="parallel",
        description="Send fragments all at once or through the rate-limited queue.",
    )
    LOCALIZER_MIN_SPACING_MS: int = Field(
        default=2500,
        description="Minimum milliseconds between queued provider calls.",
    )
    LOCALIZER_PROVIDER_DEBUG: bool = Field(default=False)

    @model_validator(mode="before")
    def _normalise_choices(data: Any) -> Any:
        if isinstance(data, dict):
            raw_value = data.get("LLM_PROVIDER")
            if isinstance(raw_value, str):
                normalized = normalise_provider_name(raw_value)
                if normalized not in PROVIDER_CHOICES:
                    normalized = "openai"
                data["LLM_PROVIDER"] = normalized
            raw_mode = data.get("LOCALIZER_DISPATCH_MODE")
            if isinstance(raw_mode, str):
                data["LOCALIZER_DISPATCH_MODE"] = raw_mode.strip().lower()
        return data


@lru_cache(maxsize=1)
def _load_config_instance(app_dir: Path | None = None) -> ConfigInstance:
    """Load configuration layers once and cache the immutable instance."""

    base_dir = app_dir or Path.cwd()
    try:
        provenance = ProvenanceRecorder()
        combined = _load_discovered_yaml(app_dir=base_dir, provenance=provenance)
        _merge_env_sources(
            combined,
            provenance=provenance,
            app_dir=base_dir,
            schema=LocalizerConfig,
        )

        if not combined:
            raise ConfigNotFound("No configuration sources were found.")

        model = LocalizerConfig.validate(combined, provenance=provenance)
        _validate_provider_settings(model)

        instance = ConfigInstance(
            model=model,
            provenance=provenance,
            env_prefix=None,
            schema_cls=LocalizerConfig,
        )
        return instance
    except ConfigNotFound as exc:
        raise TranslationProviderConfigurationError(
            "No configuration sources were found. Provide settings via a home YAML "
            "file, a local config.yaml, a .env file, or environment variables."
        ) from exc
    except IoError as exc:
        raise TranslationProviderConfigurationError(
            f"Configuration files could not be read: {exc}"
        ) from exc
    except SchemaError as exc:
        raise TranslationProviderConfigurationError(
            f"Configuration schema error: {exc}"
        ) from exc
    except ValidationError as exc:
        issues = _format_validation_errors(exc.to_dict())
        raise TranslationProviderConfigurationError(issues) from exc


def _load_discovered_yaml(
    *,
    app_dir: Path,
    provenance: ProvenanceRecorder,
) -> dict[str, Any]:
    """Load YAML configuration files using Prepper's discovery rules."""

    result: dict[str, Any] = {}
    discovered = discover_file_paths(
        APP_NAME,
        "yaml",
        app_dir=app_dir,
        extra_paths=None,
    )
    for path, label in discovered:
        parsed = _parse_file(path, "yaml")
        if not isinstance(parsed, Mapping):
            raise IoError(
                f"Invalid configuration file {path}: expected a mapping at the root."
            )
        source = _path_to_source(label, "yaml", path)
        merge_layer(result, parsed, provenance=provenance, source=source, layer="file")
    return result


def _merge_env_sources(
    target: dict[str, Any],
    *,
    provenance: ProvenanceRecorder,
    app_dir: Path,
    schema: type[SchemaModel],
) -> None:
    """Merge .env and process environment variables into the target mapping."""

    allowed = set(schema.__field_infos__.keys())

    def merge_values(values: Mapping[str, str], *, source_prefix: str) -> None:
        for key, value in sorted(values.items()):
            if value is None:
                continue
            if key not in allowed:
                continue
            merge_layer(
                target,
                {key: value},
                provenance=provenance,
                source=f"env:{source_prefix}:{key}",
                layer="env",
            )

    dotenv_path = app_dir / ".env"
    if dotenv_path.exists():
        dotenv_content = dotenv_values(dotenv_path)
        merge_values(
            {k: v for k, v in dotenv_content.items() if v is not None},
            source_prefix=".env",
        )

    merge_values(
        {k: v for k, v in os.environ.items() if isinstance(v, str)},
        source_prefix="process",
    )


def _validate_provider_settings(settings: LocalizerConfig) -> None:
    provider = settings.LLM_PROVIDER
    errors: list[str] = []

    if provider in {"openai", "legacy_openai"}:
        if not settings.OPENAI_API_KEY:
            errors.append(
                f"OPENAI_API_KEY is required when LLM_PROVIDER is '{provider}'."
            )
    elif provider == "azure_openai":
        missing = [
            name
            for name, value in {
                "AZURE_OPENAI_API_KEY": settings.AZURE_OPENAI_API_KEY,
                "AZURE_OPENAI_ENDPOINT": settings.AZURE_OPENAI_ENDPOINT,
                "AZURE_OPENAI_API_VERSION": settings.AZURE_OPENAI_API_VERSION,
                "AZURE_OPENAI_DEPLOYMENT_NAME": settings.AZURE_OPENAI_DEPLOYMENT_NAME,
            }.items()
            if not value
        ]
        if missing:
            errors.append(
                "The following Azure OpenAI settings must be provided when "
                f"LLM_PROVIDER is 'azure_openai': {', '.join(missing)}."
            )
    elif provider == "mistral":
        if not settings.MISTRAL_API_KEY:
            errors.append("MISTRAL_API_KEY is required when LLM_PROVIDER is 'mistral'.")

    if errors:
        bullet_list = "\n".join(f"- {message}" for message in errors)
        raise TranslationProviderConfigurationError(
            "Configuration validation errors detected:\n" + bullet_list
        )


def _format_validation_errors(entries: Sequence[dict[str, Any]]) -> str:
    details: list[str] = []
    for entry in entries:
        path = entry.get("path") or []
        if isinstance(path, (list, tuple)):
            location = ".".join(str(part) for part in path if part not in {None, ""})
        else:
            location = str(path)
        message = str(entry.get("message") or entry.get("msg") or "Invalid value")
        source = entry.get("source")
        origin = f" (source: {source})" if source else ""
        prefix = f"{location}: " if location else ""
        details.append(f"- {prefix}{message}{origin}")
    return "Configuration validation errors detected:\n" + "\n".join(details)


def get_config(app_dir: Path | None = None) -> ConfigInstance:
    """Return the immutable configuration instance."""

    return _load_config_instance(app_dir=app_dir)


def get_settings(app_dir: Path | None = None) -> LocalizerConfig:
    """Return the validated schema model for typed access."""

    return get_config(app_dir=app_dir).model()


def build_policy(
    settings: Any,
    *,
    dispatch_mode: str | None = None,
    min_spacing_ms: int | None = None,
    model: str | None = None,
) -> TranslationPolicy:
    """Turn provider settings plus command line overrides into a policy object."""

    mode = dispatch_mode or getattr(settings, "LOCALIZER_DISPATCH_MODE", None) or "parallel"
    spacing = min_spacing_ms
    if spacing is None:
        spacing = getattr(settings, "LOCALIZER_MIN_SPACING_MS", None)
    if spacing is None:
        spacing = 2500
    temperature = getattr(settings, "LOCALIZER_TEMPERATURE", None)
    return TranslationPolicy(
        dispatch_mode=DispatchMode(str(mode).strip().lower()),
        min_spacing=max(0, int(spacing)) / 1000,
        model=model or getattr(settings, "LOCALIZER_MODEL", None),
        temperature=0.4 if temperature is None else float(temperature),
    )


@dataclass
class ProjectConfig:
    """Contents of ``localizer.config.json``.

    Paths are kept as written in the file and resolved against ``base_dir``,
    the directory holding the project file.
    """

    source: str
    file_types: List[str]
    locales: List[str]
    source_locale: str
    destination: str = ""
    context_type: LocaleContextType = LocaleContextType.FILE
    locale_context: Dict[str, Any] = field(default_factory=dict)
    ai_service_provider: str | None = None
    llm_config: Dict[str, Any] = field(default_factory=dict)
    base_dir: Path = field(default_factory=Path.cwd)

    @property
    def source_path(self) -> Path:
        return (self.base_dir / self.source).resolve()

    @property
    def destination_path(self) -> Path:
        return (self.base_dir / self.destination).resolve()

    @property
    def context(self) -> LocaleContext:
        return LocaleContext(entries=self.locale_context, context_type=self.context_type)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "source": self.source,
            "fileTypes": list(self.file_types),
            "locales": list(self.locales),
            "from": self.source_locale,
            "destination": self.destination,
            "localeContextType": self.context_type.value,
            "localeContext": self.locale_context,
        }
        if self.ai_service_provider:
            data["aiServiceProvider"] = self.ai_service_provider
        data["llmConfig"] = self.llm_config
        return data


def normalise_file_types(file_types: Sequence[str]) -> List[str]:
    normalized = []
    for file_type in file_types:
        cleaned = str(file_type).strip().lower()
        if not cleaned:
            continue
        normalized.append(cleaned if cleaned.startswith(".") else f".{cleaned}")
    return normalized


def _require_list(data: Mapping[str, Any], key: str, errors: list[str]) -> List[str]:
    value = data.get(key)
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, list) or not [item for item in value if str(item).strip()]:
        errors.append(f"'{key}' must be a non-empty list.")
        return []
    return [str(item).strip() for item in value if str(item).strip()]


def parse_project_config(data: Any, *, base_dir: Path) -> ProjectConfig:
    """Validate the raw project file mapping."""

    if not isinstance(data, Mapping):
        raise ProjectConfigurationError(
            "Project file is malformed: expected a JSON object at the root."
        )

    errors: list[str] = []
    source = data.get("source")
    if not isinstance(source, str) or not source.strip():
        errors.append("'source' must name the directory holding the source files.")
    file_types = normalise_file_types(_require_list(data, "fileTypes", errors))
    locales = [locale.lower() for locale in _require_list(data, "locales", errors)]
    source_locale = data.get("from")
    if not isinstance(source_locale, str) or not source_locale.strip():
        errors.append("'from' must be the source locale code.")
    destination = data.get("destination") or ""
    if not isinstance(destination, str):
        errors.append("'destination' must be a path when given.")
    try:
        context_type = LocaleContextType.parse(data.get("localeContextType"))
    except ValueError as exc:
        errors.append(str(exc))
        context_type = LocaleContextType.FILE
    locale_context = data.get("localeContext") or {}
    if not isinstance(locale_context, Mapping):
        errors.append("'localeContext' must be an object.")
    ai_service_provider = data.get("aiServiceProvider") or None
    if ai_service_provider is not None and not isinstance(ai_service_provider, str):
        errors.append("'aiServiceProvider' must be a provider name.")
    llm_config = data.get("llmConfig") or {}
    if not isinstance(llm_config, Mapping):
        errors.append("'llmConfig' must be an object.")

    if errors:
        bullet_list = "\n".join(f"- {message}" for message in errors)
        raise ProjectConfigurationError(
            "Project configuration errors detected:\n" + bullet_list
        )

    return ProjectConfig(
        source=source.strip(),  # type: ignore[union-attr]
        file_types=file_types,
        locales=locales,
        source_locale=source_locale.strip().lower(),  # type: ignore[union-attr]
        destination=destination.strip(),  # type: ignore[union-attr]
        context_type=context_type,
        locale_context=dict(locale_context),  # type: ignore[arg-type]
        ai_service_provider=ai_service_provider,
        llm_config=dict(llm_config),  # type: ignore[arg-type]
        base_dir=base_dir,
    )


def load_project_config(path: Path | None = None) -> ProjectConfig:
    """Read and validate the project file (default: ``./localizer.config.json``)."""

    config_path = path or Path.cwd() / PROJECT_FILE_NAME
    if not config_path.is_file():
        raise ProjectConfigurationError(
            f"Project file {config_path} not found. Run `localizer init` first."
        )
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ProjectConfigurationError(
            f"Project file {config_path} could not be read: {exc}"
        ) from exc
    return parse_project_config(data, base_dir=config_path.resolve().parent)


def write_project_config(config: ProjectConfig, path: Path | None = None) -> Path:
    config_path = path or config.base_dir / PROJECT_FILE_NAME
    config_path.write_text(
        json.dumps(config.to_dict(), ensure_ascii=False, indent=2) + "\n",
        encoding="utf-8",
    )
    return config_path
