"""Abstract store interface.

The pipeline depends on BaseStore, not on a concrete backend, so the in-memory
store used by tests and the SQLite store used by the CLI are interchangeable.

The uniqueness of (owner, name, pr_number) is enforced by the backend itself:
create() raises DuplicateReviewError when the key already exists. That is the
only guard against two workers racing on the same event.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING

from codesage_store.models import DashboardStats, IssueSeverity, ReviewStatus

if TYPE_CHECKING:
    from codesage_store.models import Page, Review


class DuplicateReviewError(Exception):
    """A review for the same (owner, name, pr_number) already exists."""

    def __init__(self, owner: str, name: str, pr_number: int):
        super().__init__(f"Review already exists for {owner}/{name}#{pr_number}")
        self.key = (owner, name, pr_number)


class ReviewNotFoundError(LookupError):
    pass


class BaseStore(ABC):
    """Durable persistence for reviews and their issues.

    Implementations must be safe to call from several worker threads at once.
    """

    @abstractmethod
    def create(self, review: Review) -> Review:
        """Insert a new review and return it with its id assigned.

        Raises DuplicateReviewError if the key is already taken.
        """

    @abstractmethod
    def save(self, review: Review) -> Review:
        """Update an existing review, replacing its issue list."""

    @abstractmethod
    def get(self, review_id: int) -> Review | None: ...

    @abstractmethod
    def find_by_key(self, owner: str, name: str, pr_number: int) -> Review | None: ...

    @abstractmethod
    def delete(self, review_id: int) -> None:
        """Delete a review together with all of its issues."""

    @abstractmethod
    def list_reviews(
        self,
        owner: str | None = None,
        name: str | None = None,
        status: ReviewStatus | None = None,
        page: int = 0,
        size: int = 10,
    ) -> Page:
        """Return one page of reviews, newest first."""

    @abstractmethod
    def find_recent_since(self, since: datetime) -> list[Review]: ...

    @abstractmethod
    def count_by_status(self, status: ReviewStatus) -> int: ...

    @abstractmethod
    def count_issues_by_severity(self) -> dict[IssueSeverity, int]:
        """Count issues of COMPLETED reviews, keyed by severity."""

    @abstractmethod
    def average_quality_score(self) -> float | None:
        """Average score of COMPLETED reviews, or None when there are none."""

    def count_all(self) -> int:
        return sum(self.count_by_status(s) for s in ReviewStatus)

    def stats(self) -> DashboardStats:
        by_severity = self.count_issues_by_severity()
        avg = self.average_quality_score()
        return DashboardStats(
            total_reviews=self.count_all(),
            active_reviews=self.count_by_status(ReviewStatus.PENDING),
            avg_quality_score=avg if avg is not None else 0.0,
            issues_found=sum(by_severity.values()),
            critical_issues=by_severity.get(IssueSeverity.CRITICAL, 0),
            high_issues=by_severity.get(IssueSeverity.HIGH, 0),
            medium_issues=by_severity.get(IssueSeverity.MEDIUM, 0),
            low_issues=by_severity.get(IssueSeverity.LOW, 0),
            info_issues=by_severity.get(IssueSeverity.INFO, 0),
        )

    def close(self) -> None:
        """Release any resources held by the store (connections, file handles).

        Optional; the default is a no-op so callers can always call close().
        """
