"""Deterministic stand-in used when no real provider is configured.

The reply is a fixed, valid analysis document, so the pipeline runs end to
end without any credentials and tests can assert on its exact content.
"""

from __future__ import annotations

from codesage_core.providers.base import BaseProvider

MOCK_ANALYSIS = """\
{
  "qualityScore": 8.5,
  "summary": "Overall good code quality with minor improvements needed",
  "issues": [
    {
      "type": "CODE_QUALITY",
      "severity": "MEDIUM",
      "file": "src/example/db.py",
      "line": 12,
      "title": "Consider extracting method",
      "description": "This method is doing too many things. Consider extracting logic into separate methods.",
      "suggestion": "Break down into smaller, focused methods for better maintainability"
    }
  ],
  "strengths": ["Good test coverage", "Clear variable naming", "Proper error handling"]
}
"""


class MockProvider(BaseProvider):
    NAME = "Mock"

    def __init__(self, model: str = "mock-analysis"):
        super().__init__(model=model, attempts=1)

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        return MOCK_ANALYSIS
