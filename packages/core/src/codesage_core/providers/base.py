"""Base provider implementing the Template Method pattern.

All providers share the same analysis algorithm:
    analyze() → build_analysis_prompt()
              → call_with_retry(_call_api)   ← only _call_api differs per provider

Subclasses implement two things only:
  - __init__: build the SDK client with the per-call timeout
  - _call_api: make one raw API call and return the text response

Parsing the reply is not the provider's job; ResponseParser does that once
for whichever provider answered.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from codesage_core.exceptions import ProviderExhaustedError
from codesage_core.utils.retry import DEFAULT_ATTEMPTS, DEFAULT_BASE_DELAY, call_with_retry

logger = logging.getLogger(__name__)

_MAX_TOKENS = 2000
_DEFAULT_TIMEOUT = 30

SYSTEM_PROMPT = (
    "You are an expert code reviewer. Analyze code and provide structured feedback in JSON format."
)


def build_analysis_prompt(diff: str) -> str:
    """Build the user prompt asking for the JSON analysis document."""
    return f"""Analyze the following code diff and provide a structured code review.

Return your analysis in JSON format with this structure:
{{
  "qualityScore": <number 0-10>,
  "summary": "<brief overall assessment>",
  "issues": [
    {{
      "type": "<SECURITY|PERFORMANCE|BUG|CODE_QUALITY|DOCUMENTATION|BEST_PRACTICE>",
      "severity": "<CRITICAL|HIGH|MEDIUM|LOW|INFO>",
      "file": "<file path>",
      "line": <line number or null>,
      "title": "<short title>",
      "description": "<detailed description>",
      "suggestion": "<how to fix>"
    }}
  ],
  "strengths": ["<positive aspect 1>", "<positive aspect 2>"]
}}

Code Diff:
```
{diff}
```

Focus on:
- Security vulnerabilities
- Performance issues
- Potential bugs
- Code quality and maintainability
- Best practices
- Documentation

Be concise but thorough. Provide actionable suggestions.
Do not return any text outside the JSON document."""


class BaseProvider(ABC):
    NAME: str = ""
    MAX_TOKENS: int = _MAX_TOKENS

    def __init__(
        self,
        model: str,
        timeout: float = _DEFAULT_TIMEOUT,
        attempts: int = DEFAULT_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
    ):
        self.model = model
        self.timeout = timeout
        self.attempts = attempts
        self.base_delay = base_delay

    def analyze(self, diff: str) -> str:
        """Return the provider's raw reply for a diff.

        Raises ProviderExhaustedError when every attempt failed; a timeout or
        a non-2xx response from the SDK counts as one failed attempt.
        """
        logger.info("Calling %s API with model: %s", self.NAME, self.model)
        user_prompt = build_analysis_prompt(diff)
        try:
            return call_with_retry(
                lambda: self._call_api(SYSTEM_PROMPT, user_prompt),
                attempts=self.attempts,
                base_delay=self.base_delay,
                label=f"{self.NAME} API",
            )
        except Exception as e:
            raise ProviderExhaustedError(self.NAME, self.attempts, e) from e

    @abstractmethod
    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        """Make a single API call and return the raw text response.

        This is the only method subclasses must implement. It should raise
        on failure; analyze() handles retries and logging.
        """
