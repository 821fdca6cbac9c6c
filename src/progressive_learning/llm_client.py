"""
llm_client.py – External generator boundary
============================================
The coach needs exactly one thing from the outside world:

    generate(system_prompt, user_prompt) -> str

Execution tiers (the highest available one is chosen by get_generator):
  1. Azure OpenAI   – when AZURE_OPENAI_ENDPOINT + AZURE_OPENAI_API_KEY are real
  2. OpenAI         – when OPENAI_API_KEY is real
  3. Offline        – FORCE_MOCK_MODE or nothing configured; every call raises
                      GeneratorUnavailable so callers fall back to templates

Every SDK failure (network, non-200, timeout, content filter) surfaces as a
GenerationError; nothing else escapes generate().
"""

from __future__ import annotations

import logging
import time
from typing import Optional, Protocol

import openai
from openai import AzureOpenAI, OpenAI

from progressive_learning.config import Settings, get_settings

logger = logging.getLogger(__name__)


class GenerationError(RuntimeError):
    """The external generator could not produce a reply."""


class GeneratorUnavailable(GenerationError, EnvironmentError):
    """No generator is configured (mock mode)."""


class TextGenerator(Protocol):
    """
    Anything with a mode label and a generate() call.  Implementations should
    raise GenerationError on failure; the agent also degrades to its fallbacks
    on any other exception, but logs it with a traceback.
    """
    mode: str

    def generate(self, system_prompt: str, user_prompt: str) -> str: ...


class OpenAIGenerator:
    """Chat-completions generator backed by the openai SDK."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        gen = self._settings.generation

        if self._settings.azure.is_configured:
            self._client = AzureOpenAI(
                azure_endpoint=self._settings.azure.endpoint,
                api_key=self._settings.azure.api_key,
                api_version=self._settings.azure.api_version,
                timeout=gen.timeout_seconds,
                max_retries=gen.max_retries,
            )
            self._model = self._settings.azure.deployment
            self.mode = "azure_openai"
        elif self._settings.openai.is_configured:
            self._client = OpenAI(
                api_key=self._settings.openai.api_key,
                timeout=gen.timeout_seconds,
                max_retries=gen.max_retries,
            )
            self._model = self._settings.openai.model
            self.mode = "openai"
        else:
            raise EnvironmentError(
                "Neither Azure OpenAI nor OpenAI is configured. "
                "Set AZURE_OPENAI_ENDPOINT + AZURE_OPENAI_API_KEY or OPENAI_API_KEY."
            )

    def generate(self, system_prompt: str, user_prompt: str) -> str:
        gen = self._settings.generation
        started = time.perf_counter()
        try:
            response = self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user",   "content": user_prompt},
                ],
                temperature=gen.temperature,
                max_tokens=gen.max_tokens,
            )
        except openai.OpenAIError as exc:
            raise GenerationError(f"{self.mode} request failed: {exc}") from exc

        elapsed_ms = (time.perf_counter() - started) * 1000
        content = response.choices[0].message.content if response.choices else None
        logger.debug("%s reply in %.0f ms (%d chars)", self.mode, elapsed_ms, len(content or ""))
        if content is None:
            raise GenerationError(f"{self.mode} returned an empty completion")
        return content


class OfflineGenerator:
    """Mock-mode generator: always unavailable, so fallbacks are used."""

    mode = "offline"

    def generate(self, system_prompt: str, user_prompt: str) -> str:
        raise GeneratorUnavailable("generator disabled (mock mode)")


def get_generator(settings: Optional[Settings] = None) -> TextGenerator:
    settings = settings or get_settings()
    if not settings.live_mode:
        logger.info("No live generator configured; running on fallback templates.")
        return OfflineGenerator()
    return OpenAIGenerator(settings)
