"""Tests for the analysis reply parser."""

import json

import pytest

from codesage_core.exceptions import ParseError
from codesage_core.parser import parse, strip_code_fence
from codesage_core.providers.mock import MOCK_ANALYSIS
from codesage_store.models import IssueSeverity, IssueType


def _doc(**fields):
    document = {
        "qualityScore": 8,
        "summary": "Solid change",
        "issues": [
            {
                "type": "SECURITY",
                "severity": "HIGH",
                "file": "app.py",
                "line": 10,
                "title": "SQL injection",
                "description": "User input reaches the query.",
                "suggestion": "Use parameters.",
            }
        ],
        "strengths": ["Small diff"],
    }
    document.update(fields)
    return json.dumps(document)


class TestStripCodeFence:
    def test_json_fence(self):
        assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_bare_fence(self):
        assert strip_code_fence('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_unfenced_text_unchanged(self):
        assert strip_code_fence('  {"a": 1}  ') == '{"a": 1}'

    def test_inner_fences_preserved(self):
        inner = '{"s": "```py\\nx\\n```"}'
        assert strip_code_fence(f"```json\n{inner}\n```") == inner


class TestParse:
    def test_well_formed_document(self):
        result = parse(_doc())
        assert result.quality_score == 8.0
        assert result.summary == "Solid change"
        assert result.strengths == ["Small diff"]
        issue = result.issues[0]
        assert issue.type is IssueType.SECURITY
        assert issue.severity is IssueSeverity.HIGH
        assert issue.file_path == "app.py"
        assert issue.line_number == 10
        assert issue.title == "SQL injection"

    def test_fenced_document(self):
        assert parse(f"```json\n{_doc()}\n```").quality_score == 8.0

    def test_json_embedded_in_prose(self):
        result = parse(f"Here is my review:\n{_doc()}\nHope this helps!")
        assert result.summary == "Solid change"

    def test_mock_analysis_parses(self):
        result = parse(MOCK_ANALYSIS)
        assert result.quality_score == 8.5
        assert len(result.issues) == 1
        assert result.issues[0].type is IssueType.CODE_QUALITY
        assert result.issues[0].severity is IssueSeverity.MEDIUM

    @pytest.mark.parametrize("score,expected", [(15, 10.0), (-3, 0.0), ("6.5", 6.5), (10, 10.0)])
    def test_score_clamped(self, score, expected):
        assert parse(_doc(qualityScore=score)).quality_score == expected

    @pytest.mark.parametrize("score", [None, "great", True, [7]])
    def test_unusable_score_defaults(self, score):
        assert parse(_doc(qualityScore=score)).quality_score == 7.0

    def test_missing_score_and_summary_default(self):
        result = parse('{"issues": []}')
        assert result.quality_score == 7.0
        assert result.summary == "Code review completed"
        assert result.issues == []

    def test_unknown_type_and_severity_fall_back(self):
        issues = [{"type": "NOT_A_TYPE", "severity": "WUT", "file": "a.py", "line": 1}]
        issue = parse(_doc(issues=issues)).issues[0]
        assert issue.type is IssueType.CODE_QUALITY
        assert issue.severity is IssueSeverity.MEDIUM

    def test_enum_values_normalized(self):
        issues = [{"type": "best practice", "severity": "critical", "file": "a.py"}]
        issue = parse(_doc(issues=issues)).issues[0]
        assert issue.type is IssueType.BEST_PRACTICE
        assert issue.severity is IssueSeverity.CRITICAL

    def test_null_line_and_missing_file(self):
        issue = parse(_doc(issues=[{"type": "BUG", "severity": "LOW", "line": None}])).issues[0]
        assert issue.line_number is None
        assert issue.file_path == "unknown"

    @pytest.mark.parametrize("line", [1e20, 2**31, 0, -5, float("-inf")])
    def test_out_of_range_line_is_file_level(self, line):
        issues = [{"type": "BUG", "severity": "LOW", "file": "a.py", "line": line}]
        issue = parse(_doc(issues=issues)).issues[0]
        assert issue.line_number is None

    @pytest.mark.parametrize("line, expected", [(1, 1), (12, 12), ("7", 7), (2**31 - 1, 2**31 - 1)])
    def test_line_number_kept(self, line, expected):
        issues = [{"type": "BUG", "severity": "LOW", "file": "a.py", "line": line}]
        issue = parse(_doc(issues=issues)).issues[0]
        assert issue.line_number == expected

    def test_code_snippet_carried(self):
        issues = [{"type": "BUG", "severity": "LOW", "file": "a.py", "codeSnippet": "x = 1"}]
        assert parse(_doc(issues=issues)).issues[0].code_snippet == "x = 1"

    def test_non_object_issues_skipped(self):
        issues = ["oops", {"type": "BUG", "severity": "LOW", "file": "a.py"}, 3]
        result = parse(_doc(issues=issues))
        assert len(result.issues) == 1
        assert result.issues[0].type is IssueType.BUG

    def test_issue_order_preserved(self):
        issues = [{"title": t, "file": "a.py"} for t in ("one", "two", "three")]
        assert [i.title for i in parse(_doc(issues=issues)).issues] == ["one", "two", "three"]

    @pytest.mark.parametrize("raw", ["", "   ", "not json at all", "[1, 2, 3]", "{broken"])
    def test_unreadable_reply_raises(self, raw):
        with pytest.raises(ParseError):
            parse(raw)
