from __future__ import annotations

from openai import OpenAI

from codesage_core.providers.base import BaseProvider


class OpenAIProvider(BaseProvider):
    NAME = "OpenAI"
    TEMPERATURE = 0.3

    def __init__(self, api_key: str, model: str = "gpt-4o", **kwargs):
        super().__init__(model=model, **kwargs)
        # BaseProvider owns the retry budget.
        self.client = OpenAI(api_key=api_key, timeout=self.timeout, max_retries=0)

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
        )
        content = response.choices[0].message.content
        if not content:
            raise ValueError("OpenAI returned an empty message")
        return content
