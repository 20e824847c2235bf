"""Translation provider abstractions."""

from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Mapping

from .errors import (
    TranslationProviderConfigurationError,
    TranslationProviderError,
)
from .prompts import unwrap_question

logger = logging.getLogger(__name__)

PROVIDER_SYNONYMS = {
    "gpt": "openai",
    "default": "openai",
    "azure": "azure_openai",
    "azure_open_ai": "azure_openai",
    "azureopenai": "azure_openai",
    "legacy": "legacy_openai",
    "openai_legacy": "legacy_openai",
    "mistralai": "mistral",
    "mistral_ai": "mistral",
    "noop": "echo",
    "mock": "echo",
}


def normalise_provider_name(name: str | None) -> str:
    normalized = (name or "openai").strip().lower().replace("-", "_")
    return PROVIDER_SYNONYMS.get(normalized, normalized)


class TranslationProvider(ABC):
    """Abstract adapter for translation providers."""

    name = "provider"

    @abstractmethod
    async def translate(self, question: str, system_prompt: str) -> str:
        """Answer one translation question under the given instruction."""


class EchoTranslationProvider(TranslationProvider):
    """A provider that returns the original text (useful for testing)."""

    name = "echo"

    async def translate(self, question: str, system_prompt: str) -> str:
        return unwrap_question(question)


class SDKTranslationProvider(TranslationProvider):
    """Shared plumbing for providers backed by a vendor SDK client.

    ``request_options`` are passed through to every request and override the
    defaults this class sends (``temperature`` included).
    """

    DEFAULT_MODEL = ""

    def __init__(
        self,
        *,
        settings: Any = None,
        model: str | None = None,
        temperature: float = 0.4,
        debug: bool = False,
        request_options: Mapping[str, Any] | None = None,
    ) -> None:
        self.debug = debug
        self.settings = settings
        self.temperature = temperature
        self.request_options = dict(request_options or {})
        self._client, default_model = self._build_client()
        self.model = model or default_model

    def _setting(self, key: str) -> str | None:
        if self.settings is not None:
            value = getattr(self.settings, key, None)
            if value:
                return str(value)
        return os.getenv(key)

    @abstractmethod
    def _build_client(self) -> tuple[Any, str]:
        """Return the SDK client and the default model name."""

    @abstractmethod
    async def _invoke_model(self, *, system_prompt: str, question: str) -> str:
        """Send one request and return the answer text."""

    def _request_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {"model": self.model, "temperature": self.temperature}
        params.update(self.request_options)
        return params

    async def translate(self, question: str, system_prompt: str) -> str:
        self._log_debug("provider.request.system_prompt", system_prompt)
        self._log_debug("provider.request.question", question)
        text = await self._invoke_model(system_prompt=system_prompt, question=question)
        self._log_debug("provider.response.text", text)
        return text

    def _log_debug(self, label: str, payload: Any) -> None:
        """Emit structured debug information when enabled."""

        if not self.debug:
            return
        if isinstance(payload, (dict, list)):
            message = json.dumps(payload, ensure_ascii=False, indent=2, default=str)
        else:
            message = str(payload)
        logger.debug("[provider-debug] %s:\n%s", label, message)

    def _safe_dump_response(self, response: Any) -> Any:
        """Best-effort conversion of SDK response objects into JSON-friendly data."""

        for attr in ("model_dump_json", "model_dump"):
            candidate = getattr(response, attr, None)
            if candidate:
                try:
                    data = candidate()
                    if isinstance(data, str):
                        return json.loads(data)
                    return data
                except (TypeError, ValueError):
                    continue
        return str(response)

    def _extract_choice_text(self, response: Any) -> str:
        """Extract the answer text from a chat-style ``choices`` response."""

        for choice in getattr(response, "choices", None) or []:
            message = getattr(choice, "message", None)
            content = getattr(message, "content", None) if message else None
            if isinstance(content, list):
                texts: list[str] = []
                for part in content:
                    if isinstance(part, dict):
                        text_value = part.get("text")
                    else:
                        text_value = getattr(part, "text", None)
                    if text_value:
                        texts.append(str(text_value))
                content = "".join(texts)
            if content:
                return str(content)

        raise TranslationProviderError(
            "Translation provider response empty or unrecognised."
        )


class OpenAITranslationProvider(SDKTranslationProvider):
    """Translation provider that uses the OpenAI Responses API."""

    name = "openai"
    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(self, *, provider_kind: str = "openai", **kwargs: Any) -> None:
        self.provider_kind = (
            "azure_openai" if provider_kind == "azure_openai" else "openai"
        )
        super().__init__(**kwargs)

    def _build_client(self) -> tuple[Any, str]:
        if self.provider_kind == "azure_openai":
            return self._build_azure_client()

        return self._build_openai_client()

    def _build_openai_client(self) -> tuple[Any, str]:
        api_key = self._setting("OPENAI_API_KEY")
        if not api_key:
            raise TranslationProviderConfigurationError(
                "OpenAI configuration missing. Set OPENAI_API_KEY or choose a "
                "different provider."
            )
        try:
            from openai import AsyncOpenAI  # type: ignore
        except ImportError as exc:  # pragma: no cover - import guard
            raise TranslationProviderConfigurationError(
                "OpenAI Python SDK not installed. Install with `pip install openai`."
            ) from exc

        return AsyncOpenAI(api_key=api_key), self.DEFAULT_MODEL

    def _build_azure_client(self) -> tuple[Any, str]:
        values = {
            key: self._setting(key)
            for key in (
                "AZURE_OPENAI_API_KEY",
                "AZURE_OPENAI_ENDPOINT",
                "AZURE_OPENAI_API_VERSION",
                "AZURE_OPENAI_DEPLOYMENT_NAME",
            )
        }
        missing = [name for name, value in values.items() if not value]
        if missing:
            raise TranslationProviderConfigurationError(
                "Azure OpenAI configuration incomplete. Please set: "
                + ", ".join(missing)
                + "."
            )

        try:
            from openai import AsyncAzureOpenAI  # type: ignore
        except ImportError as exc:  # pragma: no cover - import guard
            raise TranslationProviderConfigurationError(
                "OpenAI Python SDK not installed. Install with `pip install openai`."
            ) from exc

        client = AsyncAzureOpenAI(
            api_key=values["AZURE_OPENAI_API_KEY"],
            api_version=values["AZURE_OPENAI_API_VERSION"],
            azure_endpoint=values["AZURE_OPENAI_ENDPOINT"],
        )
        return client, values["AZURE_OPENAI_DEPLOYMENT_NAME"]  # type: ignore[return-value]

    async def _invoke_model(self, *, system_prompt: str, question: str) -> str:
        """Call the OpenAI Responses API and return the answer text."""

        try:
            response = await self._client.responses.create(
                **self._request_params(),
                input=[
                    {
                        "role": "system",
                        "content": [
                            {"type": "input_text", "text": system_prompt},
                        ],
                    },
                    {
                        "role": "user",
                        "content": [
                            {"type": "input_text", "text": question},
                        ],
                    },
                ],
            )
        except Exception as exc:  # pragma: no cover - network call
            raise TranslationProviderError(
                f"Translation service temporarily unavailable: {exc}"
            ) from exc
        self._log_debug("provider.response.raw", self._safe_dump_response(response))
        return self._extract_text(response)

    def _extract_text(self, response: Any) -> str:
        """Extract the answer text from a Responses API result."""

        output_text = getattr(response, "output_text", None)
        if output_text:
            return str(output_text)

        parts: list[str] = []
        for item in getattr(response, "output", None) or []:
            for part in getattr(item, "content", None) or []:
                text_value = getattr(part, "text", None)
                if text_value:
                    parts.append(str(text_value))
        if parts:
            return "".join(parts)

        raise TranslationProviderError(
            "Translation provider response empty or unrecognised."
        )


class LegacyOpenAITranslationProvider(OpenAITranslationProvider):
    """Translation provider that uses the Chat Completions API for compatibility."""

    name = "legacy_openai"

    async def _invoke_model(self, *, system_prompt: str, question: str) -> str:
        """Call the Chat Completions API and return the answer text."""

        try:
            response = await self._client.chat.completions.create(
                **self._request_params(),
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": question},
                ],
            )
        except Exception as exc:  # pragma: no cover - network call
            raise TranslationProviderError(
                f"Translation service temporarily unavailable: {exc}"
            ) from exc
        self._log_debug("provider.response.raw", self._safe_dump_response(response))
        return self._extract_choice_text(response)


class MistralTranslationProvider(SDKTranslationProvider):
    """Translation provider that uses the Mistral chat completion API."""

    name = "mistral"
    DEFAULT_MODEL = "open-mistral-nemo"

    def _build_client(self) -> tuple[Any, str]:
        api_key = self._setting("MISTRAL_API_KEY")
        if not api_key:
            raise TranslationProviderConfigurationError(
                "Mistral configuration missing. Set MISTRAL_API_KEY or choose a "
                "different provider."
            )
        try:
            from mistralai import Mistral  # type: ignore
        except ImportError as exc:  # pragma: no cover - import guard
            raise TranslationProviderConfigurationError(
                "Mistral Python SDK not installed. Install with `pip install mistralai`."
            ) from exc

        return Mistral(api_key=api_key), self.DEFAULT_MODEL

    async def _invoke_model(self, *, system_prompt: str, question: str) -> str:
        """Call ``chat.complete_async`` and return the answer text."""

        try:
            response = await self._client.chat.complete_async(
                **self._request_params(),
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": question},
                ],
            )
        except Exception as exc:  # pragma: no cover - network call
            raise TranslationProviderError(
                f"Translation service temporarily unavailable: {exc}"
            ) from exc
        self._log_debug("provider.response.raw", self._safe_dump_response(response))
        return self._extract_choice_text(response)


def build_provider(
    name: str | None = None,
    *,
    settings: Any = None,
    model: str | None = None,
    temperature: float | None = None,
    debug: bool = False,
    request_options: Mapping[str, Any] | None = None,
) -> TranslationProvider:
    """Factory to create providers by name.

    Without an explicit name the ``LLM_PROVIDER`` setting decides, falling back
    to the OpenAI Responses API. ``request_options`` (the project file's
    ``llmConfig``) are forwarded to every SDK request.
    """

    if name is None and settings is not None:
        name = getattr(settings, "LLM_PROVIDER", None)
    normalized = normalise_provider_name(name)
    options = {
        "settings": settings,
        "model": model,
        "temperature": 0.4 if temperature is None else temperature,
        "debug": debug,
        "request_options": request_options,
    }
    if normalized in {"openai", "azure_openai"}:
        return OpenAITranslationProvider(provider_kind=normalized, **options)
    if normalized == "legacy_openai":
        return LegacyOpenAITranslationProvider(**options)
    if normalized == "mistral":
        return MistralTranslationProvider(**options)
    if normalized == "echo":
        return EchoTranslationProvider()
    raise TranslationProviderConfigurationError(
        f"Unknown translation provider '{name}'."
    )
