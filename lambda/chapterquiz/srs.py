"""
Spaced Repetition System (SRS) for chapter reviews.

This module implements a variant of the SM-2 algorithm, keyed by chapter.
Every completed attempt is a review whose quality (0-5) comes from the
attempt percentage.

SM-2 update:
- quality >= 3 (pass): repetitions + 1; interval 1 day after the first
  pass, 6 after the second, then previous interval x previous ease
- quality < 3 (fail): repetitions back to 0, interval 1 day
- ease += 0.1 - (5 - q) * (0.08 + (5 - q) * 0.02), never below 1.3
"""

import logging
from datetime import datetime, timedelta

from chapterquiz.models import SpacedRepetitionEntry
from chapterquiz.persistence import PersistenceManager
from chapterquiz.scoring import round_half_up

logger = logging.getLogger(__name__)

INITIAL_EASE = 2.5
MIN_EASE = 1.3
PASSING_QUALITY = 3
MAX_QUALITY = 5


def quality_from_percentage(pct: int) -> int:
    """Map a 0-100 percentage onto the 0-5 SM-2 quality scale."""
    return round_half_up(pct * MAX_QUALITY / 100)


def next_entry(
    previous: SpacedRepetitionEntry | None,
    chapter_id: int,
    quality: int,
    now: datetime,
) -> SpacedRepetitionEntry:
    """
    Compute the review state after one more review.

    Pure: the previous entry is not modified.
    """
    if previous is None:
        ease, interval, repetitions = INITIAL_EASE, 1, 0
    else:
        ease, interval, repetitions = previous.ease_factor, previous.interval, previous.repetitions

    if quality >= PASSING_QUALITY:
        repetitions += 1
        if repetitions == 1:
            new_interval = 1
        elif repetitions == 2:
            new_interval = 6
        else:
            new_interval = round_half_up(interval * ease)
    else:
        repetitions = 0
        new_interval = 1

    lapse = MAX_QUALITY - quality
    new_ease = max(MIN_EASE, ease + (0.1 - lapse * (0.08 + lapse * 0.02)))

    return SpacedRepetitionEntry(
        chapter_id=chapter_id,
        ease_factor=new_ease,
        interval=max(1, new_interval),
        repetitions=repetitions,
        next_review=now + timedelta(days=max(1, new_interval)),
    )


class ReviewScheduler:
    """Keeps the per-chapter review schedule in the device store."""

    def __init__(self, pm: PersistenceManager):
        self._pm = pm

    @property
    def schedule(self) -> dict[int, SpacedRepetitionEntry]:
        return self._pm.get_review_schedule()

    def get(self, chapter_id: int) -> SpacedRepetitionEntry | None:
        return self.schedule.get(chapter_id)

    def update(self, chapter_id: int, pct: int, now: datetime | None = None) -> SpacedRepetitionEntry:
        """
        Record a completed attempt as a review.

        Args:
            chapter_id: The chapter reviewed.
            pct: Attempt percentage (0-100).
            now: Review time (defaults to the current time).

        Returns:
            The new SpacedRepetitionEntry for the chapter.
        """
        now = now or datetime.now()
        schedule = self.schedule
        quality = quality_from_percentage(pct)
        entry = next_entry(schedule.get(chapter_id), chapter_id, quality, now)
        schedule[chapter_id] = entry
        self._pm.save_review_schedule(schedule)
        logger.info(
            f"Chapter {chapter_id} review: quality={quality}, interval={entry.interval}d, "
            f"ease={entry.ease_factor:.2f}, repetitions={entry.repetitions}"
        )
        return entry

    def due_reviews(self, now: datetime | None = None) -> list[SpacedRepetitionEntry]:
        """Chapters due for review, earliest first."""
        now = now or datetime.now()
        due = [entry for entry in self.schedule.values() if entry.is_due(now)]
        return sorted(due, key=lambda entry: entry.next_review)
