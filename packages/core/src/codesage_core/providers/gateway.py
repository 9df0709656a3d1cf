"""Ordered provider fallback.

Providers are tried in a fixed order: OpenAI, then Claude, then the mock.
A provider without a credential is never constructed, so it is never
attempted. Each real provider gets its full retry budget before the gateway
moves on to the next one.
"""

from __future__ import annotations

import logging
from typing import NamedTuple

from codesage_core.config import is_provider_configured
from codesage_core.exceptions import AIServiceError, ProviderExhaustedError
from codesage_core.providers.base import BaseProvider
from codesage_core.providers.mock import MockProvider

logger = logging.getLogger(__name__)


class AnalysisResult(NamedTuple):
    raw_text: str
    provider: str
    model: str


class AIProviderGateway:
    def __init__(
        self,
        providers: list[BaseProvider],
        mock: MockProvider | None = None,
        mock_on_exhaustion: bool = True,
    ):
        self.providers = list(providers)
        self.mock = mock or MockProvider()
        self.mock_on_exhaustion = mock_on_exhaustion

    @classmethod
    def from_config(cls, config: dict) -> AIProviderGateway:
        """Build the gateway with only the providers whose credential is set."""
        retry = {
            "timeout": config.get("provider_timeout", 30),
            "attempts": config.get("max_attempts", 3),
            "base_delay": config.get("backoff_base", 2.0),
        }
        providers: list[BaseProvider] = []
        if is_provider_configured(config.get("openai_api_key")):
            from codesage_core.providers.openai import OpenAIProvider

            providers.append(OpenAIProvider(api_key=config["openai_api_key"], model=config["openai_model"], **retry))
        if is_provider_configured(config.get("anthropic_api_key")):
            from codesage_core.providers.anthropic import AnthropicProvider

            providers.append(
                AnthropicProvider(api_key=config["anthropic_api_key"], model=config["anthropic_model"], **retry)
            )
        return cls(providers, mock_on_exhaustion=config.get("mock_on_exhaustion", True))

    def analyze(self, diff: str) -> AnalysisResult:
        """Return the first successful reply together with who produced it."""
        if not self.providers:
            logger.warning("No AI API keys configured. Returning mock analysis.")
            return self._mock_result(diff)

        last_error: ProviderExhaustedError | None = None
        for provider in self.providers:
            try:
                raw = provider.analyze(diff)
                return AnalysisResult(raw_text=raw, provider=provider.NAME, model=provider.model)
            except ProviderExhaustedError as e:
                last_error = e
                logger.warning("%s analysis failed, trying next provider: %s", provider.NAME, e)

        if not self.mock_on_exhaustion:
            raise AIServiceError("All AI providers failed") from last_error
        logger.error("All configured AI providers failed. Returning mock analysis.")
        return self._mock_result(diff)

    def _mock_result(self, diff: str) -> AnalysisResult:
        return AnalysisResult(raw_text=self.mock.analyze(diff), provider=self.mock.NAME, model=self.mock.model)
