"""Turn a provider's free-text reply into a structured analysis.

Only a reply that cannot be read as a JSON object at all is rejected. Every
field-level problem degrades to a default instead: a missing score becomes
7.0, an unknown issue type CODE_QUALITY, an unknown severity MEDIUM, and a
missing file "unknown". One bad issue never sinks the whole document.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any

from codesage_core.exceptions import ParseError
from codesage_store.models import IssueSeverity, IssueType, ReviewIssue, clamp_score

logger = logging.getLogger(__name__)

DEFAULT_SCORE = 7.0
DEFAULT_SUMMARY = "Code review completed"
UNKNOWN_FILE = "unknown"
MAX_LINE_NUMBER = 2**31 - 1

_OPEN_FENCE = re.compile(r"^```[\w+-]*[ \t]*\n?")
_CLOSE_FENCE = re.compile(r"\n?```\s*$")


@dataclass
class ParsedAnalysis:
    quality_score: float
    summary: str
    issues: list[ReviewIssue] = field(default_factory=list)
    strengths: list[str] = field(default_factory=list)


def strip_code_fence(text: str) -> str:
    """Remove one outer ``` fence (optionally with a language tag), leaving inner fences alone."""
    cleaned = text.strip()
    cleaned = _OPEN_FENCE.sub("", cleaned, count=1)
    cleaned = _CLOSE_FENCE.sub("", cleaned, count=1)
    return cleaned.strip()


def _load_object(text: str) -> dict:
    cleaned = strip_code_fence(text)
    try:
        document = json.loads(cleaned)
    except json.JSONDecodeError:
        # Some models wrap the JSON in a sentence; try the outermost braces.
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            raise ParseError(f"AI response is not JSON: {text[:200]!r}")
        try:
            document = json.loads(cleaned[start : end + 1])
        except json.JSONDecodeError as e:
            raise ParseError(f"AI response is not valid JSON: {e}") from e

    if not isinstance(document, dict):
        raise ParseError(f"AI response is a JSON {type(document).__name__}, expected an object")
    return document


def _number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return None if math.isnan(number) else number


def _text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return value if isinstance(value, str) else str(value)


def _enum_key(value: Any) -> str:
    return re.sub(r"[\s-]+", "_", _text(value).strip()).upper()


def _issue_type(value: Any) -> IssueType:
    try:
        return IssueType(_enum_key(value))
    except ValueError:
        logger.debug("Unknown issue type %r; using CODE_QUALITY", value)
        return IssueType.CODE_QUALITY


def _severity(value: Any) -> IssueSeverity:
    try:
        return IssueSeverity(_enum_key(value))
    except ValueError:
        logger.debug("Unknown severity %r; using MEDIUM", value)
        return IssueSeverity.MEDIUM


def _line_number(value: Any) -> int | None:
    number = _number(value)
    # Anything outside 1..MAX_LINE_NUMBER is treated as a file-level issue.
    if number is None or not 1 <= number <= MAX_LINE_NUMBER:
        return None
    return int(number)


def _parse_issue(node: dict) -> ReviewIssue:
    file_path = _text(node.get("file")).strip() or UNKNOWN_FILE
    snippet = node.get("codeSnippet", node.get("code_snippet"))
    return ReviewIssue(
        type=_issue_type(node.get("type")),
        severity=_severity(node.get("severity")),
        file_path=file_path,
        line_number=_line_number(node.get("line")),
        title=_text(node.get("title")),
        description=_text(node.get("description")),
        suggestion=_text(node.get("suggestion")),
        code_snippet=_text(snippet) if snippet is not None else None,
    )


def parse(raw_text: str) -> ParsedAnalysis:
    """Parse a provider reply.

    Raises ParseError only when the reply is not a JSON object.
    """
    if not raw_text or not raw_text.strip():
        raise ParseError("AI response is empty")

    document = _load_object(raw_text)

    score = _number(document.get("qualityScore"))
    if score is None:
        score = DEFAULT_SCORE

    summary = document.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        summary = DEFAULT_SUMMARY

    issues: list[ReviewIssue] = []
    issue_nodes = document.get("issues")
    if isinstance(issue_nodes, list):
        for index, node in enumerate(issue_nodes):
            if not isinstance(node, dict):
                logger.warning("Skipping issue %d: expected an object, got %s", index, type(node).__name__)
                continue
            issues.append(_parse_issue(node))
    elif issue_nodes is not None:
        logger.warning("Ignoring 'issues' field of type %s", type(issue_nodes).__name__)

    strengths = document.get("strengths")
    if not isinstance(strengths, list):
        strengths = []

    return ParsedAnalysis(
        quality_score=clamp_score(score),
        summary=summary,
        issues=issues,
        strengths=[_text(s) for s in strengths if s is not None],
    )
