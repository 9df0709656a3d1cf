"""SQLiteStore: local file-based store for the pipeline and the dashboard commands.

Schema:
  reviews        one row per (repository_owner, repository_name, pr_number);
                 the UNIQUE constraint is what makes duplicate deliveries safe.
  review_issues  ordered issues of a review, deleted with it (ON DELETE CASCADE).

Timestamps are stored as ISO-8601 UTC strings with microsecond precision so
that string comparison matches chronological order.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import datetime, timezone

from codesage_store.base import BaseStore, DuplicateReviewError, ReviewNotFoundError
from codesage_store.models import IssueSeverity, IssueType, Page, Review, ReviewIssue, ReviewStatus

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS reviews (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    repository_owner  TEXT NOT NULL,
    repository_name   TEXT NOT NULL,
    pr_number         INTEGER NOT NULL,
    pr_title          TEXT,
    pr_author         TEXT,
    pr_url            TEXT,
    quality_score     REAL NOT NULL DEFAULT 0.0,
    summary           TEXT,
    ai_provider       TEXT NOT NULL,
    ai_model          TEXT NOT NULL,
    status            TEXT NOT NULL,
    error_message     TEXT,
    created_at        TEXT NOT NULL,
    updated_at        TEXT NOT NULL,
    UNIQUE (repository_owner, repository_name, pr_number)
);
CREATE INDEX IF NOT EXISTS idx_reviews_created_at ON reviews (created_at);
CREATE INDEX IF NOT EXISTS idx_reviews_status     ON reviews (status);

CREATE TABLE IF NOT EXISTS review_issues (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    review_id     INTEGER NOT NULL REFERENCES reviews (id) ON DELETE CASCADE,
    position      INTEGER NOT NULL,
    type          TEXT NOT NULL,
    severity      TEXT NOT NULL,
    file_path     TEXT NOT NULL,
    line_number   INTEGER,
    title         TEXT,
    description   TEXT,
    suggestion    TEXT,
    code_snippet  TEXT
);
CREATE INDEX IF NOT EXISTS idx_issues_review ON review_issues (review_id, position);
"""


def _ts(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


class SQLiteStore(BaseStore):
    """Stores reviews in a local SQLite database file.

    One connection is shared by all worker threads; every statement runs
    under a lock, and multi-statement writes run in a single transaction.
    """

    def __init__(self, db_path: str = ".codesage.db"):
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    # ------------------------------------------------------------------ #
    # Writes                                                               #
    # ------------------------------------------------------------------ #

    def create(self, review: Review) -> Review:
        with self._lock:
            try:
                with self._conn:
                    cursor = self._conn.execute(
                        """
                        INSERT INTO reviews
                          (repository_owner, repository_name, pr_number, pr_title, pr_author, pr_url,
                           quality_score, summary, ai_provider, ai_model, status, error_message,
                           created_at, updated_at)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            review.repository_owner,
                            review.repository_name,
                            review.pr_number,
                            review.pr_title,
                            review.pr_author,
                            review.pr_url,
                            review.quality_score,
                            review.summary,
                            review.ai_provider,
                            review.ai_model,
                            review.status.value,
                            review.error_message,
                            _ts(review.created_at),
                            _ts(review.updated_at),
                        ),
                    )
                    review_id = cursor.lastrowid
                    self._insert_issues(review_id, review.issues)
            except sqlite3.IntegrityError as e:
                logger.debug("Insert rejected by unique constraint: %s", e)
                raise DuplicateReviewError(*review.key) from e
            return self._load(review_id)

    def save(self, review: Review) -> Review:
        with self._lock:
            with self._conn:
                review_id = review.id if review.id is not None else self._id_for_key(*review.key)
                cursor = self._conn.execute(
                    """
                    UPDATE reviews SET
                      pr_title=?, pr_author=?, pr_url=?, quality_score=?, summary=?,
                      ai_provider=?, ai_model=?, status=?, error_message=?, updated_at=?
                    WHERE id=?
                    """,
                    (
                        review.pr_title,
                        review.pr_author,
                        review.pr_url,
                        review.quality_score,
                        review.summary,
                        review.ai_provider,
                        review.ai_model,
                        review.status.value,
                        review.error_message,
                        _ts(review.updated_at),
                        review_id,
                    ),
                )
                if review_id is None or cursor.rowcount == 0:
                    raise ReviewNotFoundError(
                        f"No stored review for {review.full_repository_name}#{review.pr_number}"
                    )
                self._conn.execute("DELETE FROM review_issues WHERE review_id=?", (review_id,))
                self._insert_issues(review_id, review.issues)
            return self._load(review_id)

    def delete(self, review_id: int) -> None:
        with self._lock:
            with self._conn:
                self._conn.execute("DELETE FROM reviews WHERE id=?", (review_id,))

    # ------------------------------------------------------------------ #
    # Reads                                                                #
    # ------------------------------------------------------------------ #

    def get(self, review_id: int) -> Review | None:
        with self._lock:
            return self._load(review_id)

    def find_by_key(self, owner: str, name: str, pr_number: int) -> Review | None:
        with self._lock:
            review_id = self._id_for_key(owner, name, pr_number)
            return self._load(review_id) if review_id is not None else None

    def list_reviews(
        self,
        owner: str | None = None,
        name: str | None = None,
        status: ReviewStatus | None = None,
        page: int = 0,
        size: int = 10,
    ) -> Page:
        clauses, params = [], []
        if owner is not None:
            clauses.append("repository_owner=?")
            params.append(owner)
        if name is not None:
            clauses.append("repository_name=?")
            params.append(name)
        if status is not None:
            clauses.append("status=?")
            params.append(status.value)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        with self._lock:
            total = self._conn.execute(f"SELECT COUNT(*) FROM reviews {where}", params).fetchone()[0]
            rows = self._conn.execute(
                f"SELECT * FROM reviews {where} ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
                (*params, size, max(page, 0) * size),
            ).fetchall()
            items = [self._row_to_review(r) for r in rows]
        return Page(items=items, total=total, page=page, size=size)

    def find_recent_since(self, since: datetime) -> list[Review]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM reviews WHERE created_at >= ? ORDER BY created_at DESC, id DESC",
                (_ts(since),),
            ).fetchall()
            return [self._row_to_review(r) for r in rows]

    def count_by_status(self, status: ReviewStatus) -> int:
        with self._lock:
            return self._conn.execute("SELECT COUNT(*) FROM reviews WHERE status=?", (status.value,)).fetchone()[0]

    def count_issues_by_severity(self) -> dict[IssueSeverity, int]:
        counts = {s: 0 for s in IssueSeverity}
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT i.severity, COUNT(*) FROM review_issues i
                JOIN reviews r ON r.id = i.review_id
                WHERE r.status = ?
                GROUP BY i.severity
                """,
                (ReviewStatus.COMPLETED.value,),
            ).fetchall()
        for severity, count in rows:
            counts[IssueSeverity(severity)] = count
        return counts

    def average_quality_score(self) -> float | None:
        with self._lock:
            return self._conn.execute(
                "SELECT AVG(quality_score) FROM reviews WHERE status=?",
                (ReviewStatus.COMPLETED.value,),
            ).fetchone()[0]

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------ #
    # Helpers (caller holds the lock)                                      #
    # ------------------------------------------------------------------ #

    def _id_for_key(self, owner: str, name: str, pr_number: int) -> int | None:
        row = self._conn.execute(
            "SELECT id FROM reviews WHERE repository_owner=? AND repository_name=? AND pr_number=?",
            (owner, name, pr_number),
        ).fetchone()
        return row["id"] if row else None

    def _insert_issues(self, review_id: int, issues: list[ReviewIssue]) -> None:
        self._conn.executemany(
            """
            INSERT INTO review_issues
              (review_id, position, type, severity, file_path, line_number,
               title, description, suggestion, code_snippet)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    review_id,
                    position,
                    issue.type.value,
                    issue.severity.value,
                    issue.file_path,
                    issue.line_number,
                    issue.title,
                    issue.description,
                    issue.suggestion,
                    issue.code_snippet,
                )
                for position, issue in enumerate(issues)
            ],
        )

    def _load(self, review_id: int) -> Review | None:
        row = self._conn.execute("SELECT * FROM reviews WHERE id=?", (review_id,)).fetchone()
        return self._row_to_review(row) if row else None

    def _row_to_review(self, row: sqlite3.Row) -> Review:
        issue_rows = self._conn.execute(
            "SELECT * FROM review_issues WHERE review_id=? ORDER BY position",
            (row["id"],),
        ).fetchall()
        return Review(
            id=row["id"],
            repository_owner=row["repository_owner"],
            repository_name=row["repository_name"],
            pr_number=row["pr_number"],
            pr_title=row["pr_title"] or "",
            pr_author=row["pr_author"] or "",
            pr_url=row["pr_url"] or "",
            quality_score=row["quality_score"],
            summary=row["summary"] or "",
            ai_provider=row["ai_provider"],
            ai_model=row["ai_model"],
            status=ReviewStatus(row["status"]),
            error_message=row["error_message"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            issues=[
                ReviewIssue(
                    type=IssueType(i["type"]),
                    severity=IssueSeverity(i["severity"]),
                    file_path=i["file_path"],
                    line_number=i["line_number"],
                    title=i["title"] or "",
                    description=i["description"] or "",
                    suggestion=i["suggestion"] or "",
                    code_snippet=i["code_snippet"],
                )
                for i in issue_rows
            ],
        )
