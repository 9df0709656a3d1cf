"""Markdown rendering of a completed review as a PR comment."""

from __future__ import annotations

from codesage_store.models import IssueSeverity, Review, ReviewIssue

SEVERITY_GLYPHS = {
    IssueSeverity.CRITICAL: "🚨",
    IssueSeverity.HIGH: "⚠️",
    IssueSeverity.MEDIUM: "💡",
    IssueSeverity.LOW: "ℹ️",
    IssueSeverity.INFO: "📝",
}


def _render_issue(issue: ReviewIssue) -> list[str]:
    glyph = SEVERITY_GLYPHS[issue.severity]
    location = f"- **File:** `{issue.file_path}`"
    if issue.line_number is not None:
        location += f" (Line {issue.line_number})"

    lines = [
        f"{glyph} **{issue.severity.value}** - {issue.title}",
        location,
        f"- **Description:** {issue.description}",
    ]
    if issue.suggestion:
        lines.append(f"- **Suggestion:** {issue.suggestion}")
    if issue.code_snippet:
        lines.append("")
        lines.append("```")
        lines.append(issue.code_snippet.strip("\n"))
        lines.append("```")
    lines.append("")
    return lines


def format_review_comment(review: Review) -> str:
    """Render score, summary, one block per issue (in stored order) and a provider trailer.

    The output depends only on the review, so re-rendering a stored review
    reproduces the posted comment exactly.
    """
    lines = [
        "## 🤖 CodeSage Review",
        "",
        f"**Quality Score:** {review.quality_score:.1f}/10",
        "",
        f"**Summary:** {review.summary}",
        "",
    ]

    if review.issues:
        lines.append("### Issues Found")
        lines.append("")
        for issue in review.issues:
            lines.extend(_render_issue(issue))

    lines.append("---")
    lines.append(f"*Powered by {review.ai_provider} ({review.ai_model})*")
    return "\n".join(lines)
