"""
Achievement rules.

Achievements are derived from the full progress ledger after every
recorded attempt. Derivation is idempotent: an unlocked achievement is
never unlocked twice and never revoked.
"""

import logging
from datetime import date, datetime

from chapterquiz.models import AchievementLedger, ChapterProgress
from chapterquiz.persistence import PersistenceManager
from chapterquiz.questions import LAST_CHAPTER

logger = logging.getLogger(__name__)

FIRST_STEPS = "first-steps"
PERFECT_SCORE = "perfect-score"
SCHOLAR = "scholar"
PHILOSOPHER = "philosopher"
STREAK_MASTER = "streak-master"

TOTAL_CHAPTERS = LAST_CHAPTER
SCHOLAR_CHAPTERS = 10
STREAK_DAYS = 7

ACHIEVEMENT_INFO: dict[str, dict[str, str]] = {
    FIRST_STEPS: {
        "title": "First Steps",
        "description": "You completed your first quiz!",
    },
    PERFECT_SCORE: {
        "title": "Perfect Score",
        "description": "100 percent on a chapter quiz. Flawless.",
    },
    SCHOLAR: {
        "title": "Scholar",
        "description": "You have mastered 10 chapters.",
    },
    PHILOSOPHER: {
        "title": "Philosopher",
        "description": "All 20 chapters mastered. You have earned the philosopher's crown.",
    },
    STREAK_MASTER: {
        "title": "Streak Master",
        "description": "A 7-day study streak!",
    },
}


def mastered_chapter_count(progress: dict[int, ChapterProgress]) -> int:
    """Chapters with a best of 90% or more and at least two attempts."""
    return sum(1 for entry in progress.values() if entry.is_mastered)


def update_streak(ledger: AchievementLedger, today: date) -> None:
    """
    Advance the consecutive-day study streak.

    Studying the day after the last study date extends the streak, a gap
    resets it to 1, and studying again on the same day leaves it alone.
    """
    if ledger.last_study_date is None:
        ledger.current_streak = 1
    else:
        gap = (today - ledger.last_study_date).days
        if gap == 1:
            ledger.current_streak += 1
        elif gap > 1:
            ledger.current_streak = 1
        elif gap == 0 and ledger.current_streak == 0:
            ledger.current_streak = 1
    ledger.last_study_date = today


def derive(
    progress: dict[int, ChapterProgress],
    ledger: AchievementLedger,
    pct: int,
    today: date,
    now: datetime,
) -> tuple[AchievementLedger, list[str]]:
    """
    Evaluate every rule after an attempt.

    Args:
        progress: The full progress ledger, including the new attempt.
        ledger: Achievements unlocked so far (not modified).
        pct: Percentage of the attempt just recorded.
        today: Calendar date of the attempt (for the streak).
        now: Timestamp stored with newly unlocked achievements.

    Returns:
        Tuple of (updated AchievementLedger, newly unlocked ids).
    """
    updated = ledger.copy()
    earned: list[str] = []

    def award(achievement_id: str) -> None:
        if updated.unlock(achievement_id, now):
            earned.append(achievement_id)

    if progress:
        award(FIRST_STEPS)

    if pct == 100:
        award(PERFECT_SCORE)

    mastered = mastered_chapter_count(progress)
    if mastered >= SCHOLAR_CHAPTERS:
        award(SCHOLAR)
    if mastered >= TOTAL_CHAPTERS:
        award(PHILOSOPHER)

    update_streak(updated, today)
    if updated.current_streak >= STREAK_DAYS:
        award(STREAK_MASTER)

    return updated, earned


class AchievementTracker:
    """Applies the achievement rules to the stored achievement ledger."""

    def __init__(self, pm: PersistenceManager):
        self._pm = pm

    @property
    def ledger(self) -> AchievementLedger:
        return self._pm.get_achievements()

    def evaluate(
        self,
        progress: dict[int, ChapterProgress],
        pct: int,
        now: datetime | None = None,
    ) -> list[str]:
        """Run the rules, store the result, and return newly unlocked ids."""
        now = now or datetime.now()
        updated, earned = derive(progress, self.ledger, pct, now.date(), now)
        self._pm.save_achievements(updated)
        for achievement_id in earned:
            logger.info(f"Achievement unlocked: {achievement_id}")
        return earned
