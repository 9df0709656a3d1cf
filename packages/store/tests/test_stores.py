"""Tests for codesage-store implementations and review lifecycle helpers."""

from __future__ import annotations

import sqlite3
import threading
from datetime import datetime, timedelta, timezone

import pytest

from codesage_store.base import DuplicateReviewError, ReviewNotFoundError
from codesage_store.memory import MemoryStore
from codesage_store.models import (
    InvalidTransitionError,
    IssueSeverity,
    IssueType,
    Page,
    ReviewIssue,
    ReviewStatus,
    clamp_score,
    complete_review,
    fail_review,
    new_pending_review,
)
from codesage_store.sqlite import SQLiteStore


def _issue(severity=IssueSeverity.MEDIUM, line=12, title="Use parameterized queries"):
    return ReviewIssue(
        type=IssueType.CODE_QUALITY,
        severity=severity,
        file_path="src/example/db.py",
        title=title,
        description="String formatting builds SQL.",
        suggestion="Pass parameters to execute().",
        line_number=line,
    )


def _pending(owner="acme", name="demo", pr_number=42):
    return new_pending_review(
        owner=owner,
        name=name,
        pr_number=pr_number,
        pr_title="Fix query",
        pr_author="octocat",
        pr_url=f"https://github.com/{owner}/{name}/pull/{pr_number}",
    )


def _completed(store, score=8.5, issues=None, **kwargs):
    pending = store.create(_pending(**kwargs))
    done = complete_review(
        pending,
        quality_score=score,
        summary="Looks fine",
        ai_provider="Mock",
        ai_model="mock-analysis",
        issues=issues if issues is not None else [_issue()],
    )
    return store.save(done)


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        s = MemoryStore()
    else:
        s = SQLiteStore(db_path=str(tmp_path / "reviews.db"))
    yield s
    s.close()


# ---------------------------------------------------------------------------
# Lifecycle helpers
# ---------------------------------------------------------------------------


class TestLifecycle:
    def test_new_pending_review_placeholders(self):
        review = _pending()
        assert review.status is ReviewStatus.PENDING
        assert review.ai_provider == "Pending"
        assert review.ai_model == "Pending"
        assert review.quality_score == 0.0
        assert review.issues == []
        assert review.created_at == review.updated_at

    def test_complete_clamps_score(self):
        high = complete_review(_pending(), 15, "s", "Mock", "m", [])
        low = complete_review(_pending(), -3, "s", "Mock", "m", [])
        assert high.quality_score == 10.0
        assert low.quality_score == 0.0

    def test_complete_returns_copy(self):
        pending = _pending()
        done = complete_review(pending, 7, "s", "Mock", "m", [_issue()])
        assert pending.status is ReviewStatus.PENDING
        assert done.status is ReviewStatus.COMPLETED
        assert len(done.issues) == 1

    def test_fail_sets_placeholders_and_message(self):
        failed = fail_review(_pending(), "boom")
        assert failed.status is ReviewStatus.FAILED
        assert failed.ai_provider == "N/A"
        assert failed.ai_model == "N/A"
        assert failed.quality_score == 0.0
        assert failed.error_message == "boom"

    def test_terminal_review_cannot_transition(self):
        done = complete_review(_pending(), 7, "s", "Mock", "m", [])
        with pytest.raises(InvalidTransitionError):
            fail_review(done, "late failure")
        with pytest.raises(InvalidTransitionError):
            complete_review(fail_review(_pending(), "x"), 7, "s", "Mock", "m", [])

    def test_clamp_score(self):
        assert clamp_score(5) == 5.0
        assert clamp_score(10.5) == 10.0
        assert clamp_score(-0.1) == 0.0

    def test_page_total_pages(self):
        assert Page(items=[], total=21, page=0, size=10).total_pages == 3
        assert Page(items=[], total=0, page=0, size=10).total_pages == 0


# ---------------------------------------------------------------------------
# Behaviour shared by every backend
# ---------------------------------------------------------------------------


class TestStoreContract:
    def test_create_assigns_id(self, store):
        review = store.create(_pending())
        assert review.id is not None
        assert store.get(review.id).key == ("acme", "demo", 42)

    def test_duplicate_key_rejected(self, store):
        store.create(_pending())
        with pytest.raises(DuplicateReviewError) as exc_info:
            store.create(_pending())
        assert exc_info.value.key == ("acme", "demo", 42)

    def test_same_number_in_other_repo_allowed(self, store):
        store.create(_pending(name="demo"))
        store.create(_pending(name="other"))
        assert store.count_all() == 2

    def test_find_by_key(self, store):
        created = store.create(_pending())
        assert store.find_by_key("acme", "demo", 42).id == created.id
        assert store.find_by_key("acme", "demo", 43) is None

    def test_get_missing_returns_none(self, store):
        assert store.get(999) is None

    def test_save_persists_issues_in_order(self, store):
        issues = [_issue(IssueSeverity.CRITICAL, 1, "first"), _issue(IssueSeverity.LOW, None, "second")]
        saved = _completed(store, issues=issues)

        loaded = store.get(saved.id)
        assert loaded.status is ReviewStatus.COMPLETED
        assert [i.title for i in loaded.issues] == ["first", "second"]
        assert loaded.issues[0].severity is IssueSeverity.CRITICAL
        assert loaded.issues[1].line_number is None
        assert loaded.ai_provider == "Mock"

    def test_save_keeps_created_at(self, store):
        pending = store.create(_pending())
        done = complete_review(pending, 7, "s", "Mock", "m", [])
        done.created_at = pending.created_at + timedelta(days=3)
        store.save(done)
        assert store.get(pending.id).created_at == pending.created_at

    def test_save_unknown_review_raises(self, store):
        with pytest.raises(ReviewNotFoundError):
            store.save(_pending())

    def test_delete_removes_review_and_issues(self, store):
        saved = _completed(store)
        store.delete(saved.id)
        assert store.get(saved.id) is None
        assert store.count_issues_by_severity()[IssueSeverity.MEDIUM] == 0
        # The key is free again.
        store.create(_pending())

    def test_list_newest_first_with_pagination(self, store):
        for n in range(1, 6):
            store.create(_pending(pr_number=n))

        first = store.list_reviews(page=0, size=2)
        assert first.total == 5
        assert first.total_pages == 3
        assert [r.pr_number for r in first.items] == [5, 4]
        last = store.list_reviews(page=2, size=2)
        assert [r.pr_number for r in last.items] == [1]

    def test_list_filters(self, store):
        _completed(store, pr_number=1)
        store.create(_pending(pr_number=2))
        store.create(_pending(name="other", pr_number=3))

        by_repo = store.list_reviews(owner="acme", name="demo")
        assert {r.pr_number for r in by_repo.items} == {1, 2}
        by_status = store.list_reviews(status=ReviewStatus.PENDING)
        assert {r.pr_number for r in by_status.items} == {2, 3}

    def test_find_recent_since(self, store):
        store.create(_pending())
        future = datetime.now(timezone.utc) + timedelta(hours=1)
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        assert store.find_recent_since(future) == []
        assert len(store.find_recent_since(past)) == 1

    def test_stats_only_count_completed(self, store):
        _completed(store, score=8.0, issues=[_issue(IssueSeverity.HIGH), _issue(IssueSeverity.LOW)], pr_number=1)
        _completed(store, score=6.0, issues=[_issue(IssueSeverity.HIGH)], pr_number=2)
        store.create(_pending(pr_number=3))
        failed = store.create(_pending(pr_number=4))
        store.save(fail_review(failed, "no diff"))

        stats = store.stats()
        assert stats.total_reviews == 4
        assert stats.active_reviews == 1
        assert stats.avg_quality_score == pytest.approx(7.0)
        assert stats.issues_found == 3
        assert stats.high_issues == 2
        assert stats.low_issues == 1
        assert stats.critical_issues == 0

    def test_average_none_without_completed(self, store):
        store.create(_pending())
        assert store.average_quality_score() is None
        assert store.stats().avg_quality_score == 0.0

    def test_concurrent_create_single_winner(self, store):
        errors = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            try:
                store.create(_pending())
            except DuplicateReviewError as e:
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(errors) == 7
        assert store.count_all() == 1


# ---------------------------------------------------------------------------
# Backend specifics
# ---------------------------------------------------------------------------


class TestMemoryStore:
    def test_returned_records_are_copies(self):
        store = MemoryStore()
        created = store.create(_pending())
        created.pr_title = "mutated"
        assert store.get(created.id).pr_title == "Fix query"


class TestSQLiteStore:
    def test_persists_across_instances(self, tmp_path):
        path = str(tmp_path / "reviews.db")
        first = SQLiteStore(db_path=path)
        saved = _completed(first)
        first.close()

        second = SQLiteStore(db_path=path)
        loaded = second.get(saved.id)
        assert loaded.status is ReviewStatus.COMPLETED
        assert len(loaded.issues) == 1
        assert loaded.created_at.tzinfo is not None
        second.close()

    def test_deleting_review_cascades_to_issues(self, tmp_path):
        path = str(tmp_path / "reviews.db")
        store = SQLiteStore(db_path=path)
        saved = _completed(store)
        store.delete(saved.id)
        store.close()

        conn = sqlite3.connect(path)
        try:
            (count,) = conn.execute("SELECT COUNT(*) FROM review_issues").fetchone()
        finally:
            conn.close()
        assert count == 0
