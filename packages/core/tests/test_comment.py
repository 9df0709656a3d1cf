"""Tests for PR comment rendering."""

from codesage_core.gh.comment import format_review_comment
from codesage_store.models import IssueSeverity, IssueType, ReviewIssue, complete_review, new_pending_review


def _review(issues, score=6.0):
    pending = new_pending_review("acme", "demo", 42, "Fix query", "octocat", "")
    return complete_review(pending, score, "Needs work", "OpenAI", "gpt-4o", issues)


def _issue(severity, title, line=None, snippet=None):
    return ReviewIssue(
        type=IssueType.BUG,
        severity=severity,
        file_path="app.py",
        title=title,
        description=f"{title} description",
        suggestion=f"Fix {title}",
        line_number=line,
        code_snippet=snippet,
    )


def test_header_score_summary_and_trailer():
    body = format_review_comment(_review([], score=8.5))
    assert body.startswith("## 🤖 CodeSage Review")
    assert "**Quality Score:** 8.5/10" in body
    assert "**Summary:** Needs work" in body
    assert body.rstrip().endswith("*Powered by OpenAI (gpt-4o)*")
    assert "### Issues Found" not in body


def test_issues_rendered_in_order_with_glyphs():
    body = format_review_comment(
        _review([_issue(IssueSeverity.CRITICAL, "Injection", line=12), _issue(IssueSeverity.LOW, "Naming")])
    )
    critical = body.index("🚨 **CRITICAL** - Injection")
    low = body.index("ℹ️ **LOW** - Naming")
    assert critical < low
    assert "- **File:** `app.py` (Line 12)" in body
    assert "- **Suggestion:** Fix Injection" in body


def test_file_level_issue_has_no_line():
    body = format_review_comment(_review([_issue(IssueSeverity.INFO, "Docs")]))
    assert "📝 **INFO** - Docs" in body
    assert "- **File:** `app.py`\n" in body


def test_code_snippet_fenced():
    body = format_review_comment(_review([_issue(IssueSeverity.HIGH, "Bad", snippet="x = eval(s)")]))
    assert "⚠️ **HIGH** - Bad" in body
    assert "```\nx = eval(s)\n```" in body


def test_rendering_is_deterministic():
    review = _review([_issue(IssueSeverity.MEDIUM, "Split")])
    assert format_review_comment(review) == format_review_comment(review)
