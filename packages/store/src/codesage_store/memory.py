"""In-process store used by tests and throwaway CLI runs.

Nothing survives the process. Records are deep-copied on the way in and out
so callers never share mutable state with the store.
"""

from __future__ import annotations

import copy
import itertools
import threading
from datetime import datetime

from codesage_store.base import BaseStore, DuplicateReviewError, ReviewNotFoundError
from codesage_store.models import IssueSeverity, Page, Review, ReviewStatus


class MemoryStore(BaseStore):
    def __init__(self):
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._by_id: dict[int, Review] = {}
        self._by_key: dict[tuple[str, str, int], int] = {}

    def create(self, review: Review) -> Review:
        with self._lock:
            if review.key in self._by_key:
                raise DuplicateReviewError(*review.key)
            stored = copy.deepcopy(review)
            stored.id = next(self._ids)
            self._by_id[stored.id] = stored
            self._by_key[stored.key] = stored.id
            return copy.deepcopy(stored)

    def save(self, review: Review) -> Review:
        with self._lock:
            review_id = review.id if review.id is not None else self._by_key.get(review.key)
            if review_id is None or review_id not in self._by_id:
                raise ReviewNotFoundError(f"No stored review for {review.full_repository_name}#{review.pr_number}")
            stored = copy.deepcopy(review)
            stored.id = review_id
            # created_at is immutable once persisted.
            stored.created_at = self._by_id[review_id].created_at
            self._by_id[review_id] = stored
            return copy.deepcopy(stored)

    def get(self, review_id: int) -> Review | None:
        with self._lock:
            review = self._by_id.get(review_id)
            return copy.deepcopy(review) if review else None

    def find_by_key(self, owner: str, name: str, pr_number: int) -> Review | None:
        with self._lock:
            review_id = self._by_key.get((owner, name, pr_number))
            return copy.deepcopy(self._by_id[review_id]) if review_id is not None else None

    def delete(self, review_id: int) -> None:
        with self._lock:
            review = self._by_id.pop(review_id, None)
            if review is not None:
                del self._by_key[review.key]

    def list_reviews(
        self,
        owner: str | None = None,
        name: str | None = None,
        status: ReviewStatus | None = None,
        page: int = 0,
        size: int = 10,
    ) -> Page:
        with self._lock:
            matches = [
                r
                for r in self._newest_first()
                if (owner is None or r.repository_owner == owner)
                and (name is None or r.repository_name == name)
                and (status is None or r.status is status)
            ]
        start = max(page, 0) * size
        items = [copy.deepcopy(r) for r in matches[start : start + size]]
        return Page(items=items, total=len(matches), page=page, size=size)

    def find_recent_since(self, since: datetime) -> list[Review]:
        with self._lock:
            return [copy.deepcopy(r) for r in self._newest_first() if r.created_at >= since]

    def count_by_status(self, status: ReviewStatus) -> int:
        with self._lock:
            return sum(1 for r in self._by_id.values() if r.status is status)

    def count_issues_by_severity(self) -> dict[IssueSeverity, int]:
        counts = {s: 0 for s in IssueSeverity}
        with self._lock:
            for review in self._by_id.values():
                if review.status is not ReviewStatus.COMPLETED:
                    continue
                for issue in review.issues:
                    counts[issue.severity] += 1
        return counts

    def average_quality_score(self) -> float | None:
        with self._lock:
            scores = [r.quality_score for r in self._by_id.values() if r.status is ReviewStatus.COMPLETED]
        if not scores:
            return None
        return sum(scores) / len(scores)

    def _newest_first(self) -> list[Review]:
        return sorted(self._by_id.values(), key=lambda r: (r.created_at, r.id), reverse=True)
