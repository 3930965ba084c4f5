"""
Quiz engine: the command API used by any front end.

The engine combines the session reducer with the device ledgers. A front
end keeps the SessionState between requests and passes it back in; the
engine returns the next state. When an attempt completes, the engine
records it in the progress ledger, updates the review schedule, derives
achievements, and queues the attempt for the remote store.
"""

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from chapterquiz import session
from chapterquiz.achievements import AchievementTracker
from chapterquiz.content import QuizContentSource
from chapterquiz.errors import SessionStateError
from chapterquiz.ledger import ProgressLedger
from chapterquiz.models import AttemptResult, ChapterProgress, SpacedRepetitionEntry
from chapterquiz.persistence import PersistenceManager
from chapterquiz.questions import QuizDefinition
from chapterquiz.reconcile import Reconciler
from chapterquiz.scoring import is_passing
from chapterquiz.session import Phase, SessionState
from chapterquiz.srs import ReviewScheduler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionSummary:
    """Everything that changed when an attempt completed."""

    result: AttemptResult
    progress: ChapterProgress
    review: SpacedRepetitionEntry
    new_achievements: tuple[str, ...]
    passed: bool

    @property
    def adjusted_percentage(self) -> int:
        return self.result.adjusted_percentage


class QuizEngine:
    """Presentation-agnostic command API for chapter quizzes."""

    def __init__(
        self,
        pm: PersistenceManager,
        content: QuizContentSource,
        reconciler: Reconciler | None = None,
        clock: Callable[[], datetime] = datetime.now,
        rng: random.Random | None = None,
    ):
        self._pm = pm
        self._content = content
        self._reconciler = reconciler
        self._clock = clock
        self._rng = rng
        self.ledger = ProgressLedger(pm)
        self.scheduler = ReviewScheduler(pm)
        self.achievements = AchievementTracker(pm)

    def quiz_for(self, state: SessionState) -> QuizDefinition:
        quiz = self._content.load(state.chapter_id)
        if quiz is None:
            raise SessionStateError(f"Quiz for chapter {state.chapter_id} is no longer available")
        return quiz

    # Commands

    def start(self, chapter_id: int, immediate_feedback: bool = True) -> SessionState | None:
        """
        Start an attempt.

        Returns:
            The active SessionState, or None if the chapter has no quiz.
        """
        quiz = self._content.load(chapter_id)
        if quiz is None:
            return None
        state = session.new_session(chapter_id, immediate_feedback=immediate_feedback)
        return session.start(state, quiz, self._rng)

    def retry(self, state: SessionState) -> SessionState:
        return session.retry(state, self.quiz_for(state), self._rng)

    def answer(self, state: SessionState, response: Any) -> SessionState:
        return session.answer(state, self.quiz_for(state), response)

    def hint(self, state: SessionState) -> SessionState:
        return session.hint(state, self.quiz_for(state))

    def prev(self, state: SessionState) -> SessionState:
        return session.prev(state)

    def continue_(self, state: SessionState) -> tuple[SessionState, CompletionSummary | None]:
        """Dismiss feedback. Returns the new state and, on completion, its summary."""
        quiz = self.quiz_for(state)
        updated = session.continue_(state, quiz, self._clock())
        return updated, self._finish_if_complete(updated, quiz)

    def next_question(self, state: SessionState) -> tuple[SessionState, CompletionSummary | None]:
        quiz = self.quiz_for(state)
        updated = session.next_question(state, quiz, self._clock())
        return updated, self._finish_if_complete(updated, quiz)

    # Completion

    def _finish_if_complete(self, state: SessionState, quiz: QuizDefinition) -> CompletionSummary | None:
        if state.phase != Phase.COMPLETE or state.result is None:
            return None
        return self.finish(state.result, quiz.passing_score)

    def finish(self, result: AttemptResult, passing_score: int) -> CompletionSummary:
        """
        Fold a completed attempt into the device ledgers.

        Local records are committed before the remote submission is queued,
        so a remote failure can never lose the attempt.
        """
        now = result.completed_at
        progress = self.ledger.record(
            result.chapter_id, result.correct, result.total, result.hints_used, now
        )
        review = self.scheduler.update(result.chapter_id, result.percentage, now)
        earned = self.achievements.evaluate(self.ledger.all(), result.percentage, now)
        self._pm.commit()

        if self._reconciler is not None:
            self._reconciler.submit_attempt(self.reporting_identity(), result, self._pm.get_email())
            self._pm.commit()

        logger.info(
            f"Chapter {result.chapter_id} complete: {result.correct}/{result.total} "
            f"({result.percentage}%, adjusted {result.adjusted_percentage}%)"
        )
        return CompletionSummary(
            result=result,
            progress=progress,
            review=review,
            new_achievements=tuple(earned),
            passed=is_passing(result.percentage, passing_score),
        )

    # Queries

    def reporting_identity(self) -> str:
        """The linked account once identity merge has succeeded, else the anonymous id."""
        return self._pm.get_linked_identity() or self._pm.get_anonymous_id()

    def due_reviews(self) -> list[SpacedRepetitionEntry]:
        return self.scheduler.due_reviews(self._clock())

    def chapter_progress(self, chapter_id: int) -> ChapterProgress | None:
        return self.ledger.get(chapter_id)

    def available_chapters(self) -> list[int]:
        return self._content.available_chapters()
