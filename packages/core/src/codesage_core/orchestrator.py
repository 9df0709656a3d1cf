"""Queue consumer driving one pull request through the analysis pipeline.

    extract event → dedupe → create PENDING → fetch diff → analyze → parse
                  → save COMPLETED → post comment

handle() never raises. Once the PENDING row exists, every failure ends in a
FAILED write-back so no review is left pending. Duplicate deliveries are
absorbed by the lookup before creation and, for the race between two workers,
by the store's unique key. No lock is involved.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from codesage_core.events import AnalysisEvent, extract_event
from codesage_core.exceptions import MalformedEventError
from codesage_core.gh.client import SourceControlClient
from codesage_core.gh.comment import format_review_comment
from codesage_core.parser import ParsedAnalysis, parse
from codesage_core.providers.gateway import AIProviderGateway
from codesage_store.base import BaseStore, DuplicateReviewError
from codesage_store.models import Review, complete_review, fail_review, new_pending_review

logger = logging.getLogger(__name__)


class AnalysisOrchestrator:
    def __init__(
        self,
        store: BaseStore,
        scm: SourceControlClient,
        gateway: AIProviderGateway,
        parser: Callable[[str], ParsedAnalysis] = parse,
    ):
        self.store = store
        self.scm = scm
        self.gateway = gateway
        self.parser = parser

    def handle(self, payload: Any) -> Review | None:
        """Process one queued webhook payload to a terminal state.

        Returns the review in its final stored state, or None when the
        payload was ignored, malformed, or a duplicate.
        """
        try:
            event = extract_event(payload)
        except MalformedEventError as e:
            logger.warning("Dropping malformed pull request event: %s", e)
            return None
        except Exception:
            logger.exception("Dropping unreadable event")
            return None

        if event is None:
            action = payload.get("action") if isinstance(payload, dict) else None
            logger.info("Ignoring event with action: %s", action)
            return None

        logger.info("Processing PR: %s - %s", event.describe(), event.pr_title)

        try:
            pending = self._claim(event)
        except Exception:
            logger.exception("Could not create a pending review for %s", event.describe())
            return None
        if pending is None:
            return None

        try:
            return self._run(event, pending)
        except Exception as e:
            logger.exception("Unexpected failure analysing %s", event.describe())
            return self._record_failure(pending, f"Unexpected error: {e}")

    def _claim(self, event: AnalysisEvent) -> Review | None:
        """Create the PENDING row, or return None if another delivery got there first."""
        if self.store.find_by_key(*event.key) is not None:
            logger.info("Review already exists for %s, skipping", event.describe())
            return None

        review = new_pending_review(
            owner=event.owner,
            name=event.name,
            pr_number=event.pr_number,
            pr_title=event.pr_title,
            pr_author=event.pr_author,
            pr_url=event.pr_url,
        )
        try:
            review = self.store.create(review)
        except DuplicateReviewError:
            logger.info("Review for %s was created concurrently, skipping", event.describe())
            return None
        logger.info("Created pending review with ID: %s", review.id)
        return review

    def _run(self, event: AnalysisEvent, pending: Review) -> Review:
        try:
            diff = self.scm.fetch_diff(event.owner, event.name, event.pr_number)
        except Exception as e:
            logger.error("Diff fetch failed for %s: %s", event.describe(), e)
            return self._record_failure(pending, str(e))

        try:
            result = self.gateway.analyze(diff)
            analysis = self.parser(result.raw_text)
        except Exception as e:
            logger.error("AI analysis failed for %s: %s", event.describe(), e)
            return self._record_failure(pending, str(e))

        completed = complete_review(
            pending,
            quality_score=analysis.quality_score,
            summary=analysis.summary,
            ai_provider=result.provider,
            ai_model=result.model,
            issues=analysis.issues,
        )
        completed = self.store.save(completed)
        logger.info("Saved completed review with %d issues", len(completed.issues))

        # A failed post leaves the review COMPLETED.
        try:
            self.scm.post_comment(event.owner, event.name, event.pr_number, format_review_comment(completed))
        except Exception as e:
            logger.error("Could not post review comment for %s: %s", event.describe(), e)
        else:
            logger.info("Successfully completed analysis for %s", event.describe())
        return completed

    def _record_failure(self, pending: Review, message: str) -> Review:
        failed = fail_review(pending, message)
        try:
            failed = self.store.save(failed)
            logger.info("Saved failed review for PR #%d", failed.pr_number)
        except Exception:
            logger.exception("Failed to save error review for PR #%d", failed.pr_number)
        return failed
