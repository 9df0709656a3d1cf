"""Review data models.

A Review is identified by (repository_owner, repository_name, pr_number) and
owns an ordered list of ReviewIssue. Lifecycle changes go through the factory
functions at the bottom of this module so timestamps are stamped explicitly
rather than by the persistence layer.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

PENDING_PLACEHOLDER = "Pending"
FAILED_PLACEHOLDER = "N/A"


class ReviewStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class IssueType(str, Enum):
    SECURITY = "SECURITY"
    PERFORMANCE = "PERFORMANCE"
    BUG = "BUG"
    CODE_QUALITY = "CODE_QUALITY"
    DOCUMENTATION = "DOCUMENTATION"
    BEST_PRACTICE = "BEST_PRACTICE"


class IssueSeverity(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    INFO = "INFO"


class InvalidTransitionError(ValueError):
    """Raised when a Review that already reached a terminal state is moved again."""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ReviewIssue:
    """A single finding attached to a Review.

    line_number is None for file-level findings.
    """

    type: IssueType
    severity: IssueSeverity
    file_path: str
    title: str = ""
    description: str = ""
    suggestion: str = ""
    line_number: int | None = None
    code_snippet: str | None = None


@dataclass
class Review:
    repository_owner: str
    repository_name: str
    pr_number: int
    pr_title: str = ""
    pr_author: str = ""
    pr_url: str = ""
    quality_score: float = 0.0
    summary: str = ""
    ai_provider: str = PENDING_PLACEHOLDER
    ai_model: str = PENDING_PLACEHOLDER
    status: ReviewStatus = ReviewStatus.PENDING
    error_message: str | None = None
    issues: list[ReviewIssue] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    id: int | None = None

    @property
    def key(self) -> tuple[str, str, int]:
        return (self.repository_owner, self.repository_name, self.pr_number)

    @property
    def full_repository_name(self) -> str:
        return f"{self.repository_owner}/{self.repository_name}"

    @property
    def is_terminal(self) -> bool:
        return self.status is not ReviewStatus.PENDING


@dataclass
class Page:
    """One page of a newest-first review listing."""

    items: list[Review]
    total: int
    page: int
    size: int

    @property
    def total_pages(self) -> int:
        if self.size <= 0:
            return 0
        return (self.total + self.size - 1) // self.size


@dataclass
class DashboardStats:
    total_reviews: int = 0
    active_reviews: int = 0
    avg_quality_score: float = 0.0
    issues_found: int = 0
    critical_issues: int = 0
    high_issues: int = 0
    medium_issues: int = 0
    low_issues: int = 0
    info_issues: int = 0


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


def clamp_score(score: float) -> float:
    return max(0.0, min(10.0, float(score)))


def new_pending_review(
    owner: str,
    name: str,
    pr_number: int,
    pr_title: str = "",
    pr_author: str = "",
    pr_url: str = "",
) -> Review:
    """Build the PENDING placeholder written before any external call is made."""
    now = utcnow()
    return Review(
        repository_owner=owner,
        repository_name=name,
        pr_number=pr_number,
        pr_title=pr_title,
        pr_author=pr_author,
        pr_url=pr_url,
        quality_score=0.0,
        ai_provider=PENDING_PLACEHOLDER,
        ai_model=PENDING_PLACEHOLDER,
        status=ReviewStatus.PENDING,
        created_at=now,
        updated_at=now,
    )


def _require_pending(review: Review, target: ReviewStatus) -> None:
    if review.status is not ReviewStatus.PENDING:
        raise InvalidTransitionError(
            f"Review {review.full_repository_name}#{review.pr_number} is {review.status.value}; "
            f"cannot move to {target.value}"
        )


def complete_review(
    review: Review,
    quality_score: float,
    summary: str,
    ai_provider: str,
    ai_model: str,
    issues: list[ReviewIssue],
) -> Review:
    """Return a COMPLETED copy of a PENDING review carrying the analysis result."""
    _require_pending(review, ReviewStatus.COMPLETED)
    return dataclasses.replace(
        review,
        quality_score=clamp_score(quality_score),
        summary=summary,
        ai_provider=ai_provider,
        ai_model=ai_model,
        status=ReviewStatus.COMPLETED,
        error_message=None,
        issues=list(issues),
        updated_at=utcnow(),
    )


def fail_review(review: Review, error_message: str) -> Review:
    """Return a FAILED copy of a PENDING review."""
    _require_pending(review, ReviewStatus.FAILED)
    return dataclasses.replace(
        review,
        quality_score=0.0,
        ai_provider=FAILED_PLACEHOLDER,
        ai_model=FAILED_PLACEHOLDER,
        status=ReviewStatus.FAILED,
        error_message=error_message,
        issues=[],
        updated_at=utcnow(),
    )
