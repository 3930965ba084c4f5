"""
Progress ledger: best score per chapter, kept on the device.

The ledger is the authoritative record of a learner's progress. A
chapter's best-score fields only change when an attempt beats the best
number of correct answers; attempts and the running average count every
attempt, including ones that did not improve the best.
"""

import logging
from datetime import datetime

from chapterquiz.errors import InvalidInputError
from chapterquiz.models import ChapterProgress
from chapterquiz.persistence import PersistenceManager
from chapterquiz.scoring import adjusted_percentage, percentage

logger = logging.getLogger(__name__)


class ProgressLedger:
    """Read-modify-write access to the progress record."""

    def __init__(self, pm: PersistenceManager):
        self._pm = pm

    def all(self) -> dict[int, ChapterProgress]:
        return self._pm.get_progress()

    def get(self, chapter_id: int) -> ChapterProgress | None:
        return self.all().get(chapter_id)

    def snapshot(self) -> dict[str, dict]:
        """JSON-ready copy of the whole ledger, keyed by chapter number string."""
        return {str(cid): progress.to_dict() for cid, progress in self.all().items()}

    def record(
        self,
        chapter_id: int,
        correct: int,
        total: int,
        hints_used: int = 0,
        now: datetime | None = None,
    ) -> ChapterProgress:
        """
        Fold one completed attempt into the ledger.

        Args:
            chapter_id: The chapter attempted.
            correct: Number of questions answered correctly.
            total: Number of questions in the attempt.
            hints_used: Hints revealed during the attempt.
            now: Completion time (defaults to the current time).

        Returns:
            The updated ChapterProgress.
        """
        if total <= 0 or not 0 <= correct <= total:
            raise InvalidInputError(f"Invalid score {correct}/{total}")

        now = now or datetime.now()
        pct = percentage(correct, total)
        progress = self.all()
        existing = progress.get(chapter_id)

        if existing is None:
            entry = ChapterProgress(
                chapter_id=chapter_id,
                best_score=correct,
                total=total,
                percentage=pct,
                adjusted_percentage=adjusted_percentage(pct, hints_used),
                attempts=1,
                average_score=pct,
                completed_at=now,
                hints_used=hints_used,
                last_attempt_at=now,
                percentage_sum=pct,
            )
        elif correct > existing.best_score:
            entry = existing
            entry.best_score = correct
            entry.total = total
            entry.percentage = pct
            entry.adjusted_percentage = adjusted_percentage(pct, hints_used)
            entry.hints_used = hints_used
            entry.completed_at = now
            entry.last_attempt_at = now
            entry.add_attempt_percentage(pct)
        else:
            entry = existing
            entry.last_attempt_at = now
            entry.add_attempt_percentage(pct)

        progress[chapter_id] = entry
        self._pm.save_progress(progress)
        logger.info(
            f"Recorded chapter {chapter_id}: {correct}/{total} ({pct}%), "
            f"best={entry.best_score}, attempts={entry.attempts}, average={entry.average_score}"
        )
        return entry
