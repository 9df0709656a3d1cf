from __future__ import annotations

from anthropic import Anthropic
from anthropic.types import TextBlock

from codesage_core.providers.base import BaseProvider


class AnthropicProvider(BaseProvider):
    NAME = "Claude"
    TEMPERATURE = 0.3

    def __init__(self, api_key: str, model: str = "claude-sonnet-4-20250514", **kwargs):
        super().__init__(model=model, **kwargs)
        self.client = Anthropic(api_key=api_key, timeout=self.timeout, max_retries=0)

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        response = self.client.messages.create(
            model=self.model,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
        )
        text_blocks = [block.text for block in response.content if isinstance(block, TextBlock)]
        text = "".join(text_blocks).strip()
        if not text:
            raise ValueError("Claude returned no text content")
        return text
