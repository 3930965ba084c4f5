"""
Data models for the Chapter Quiz skill.

This module defines the records produced by a quiz session and the
per-device ledgers that track progress, spaced repetition and
achievements. Every model round-trips through plain dictionaries so it
can be stored as JSON.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from chapterquiz.scoring import adjusted_percentage, round_half_up


def _parse_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _format_datetime(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class QuestionResponse:
    """Outcome of a single question within a completed attempt."""

    question_index: int  # Index in the quiz definition, not the display order
    kind: str
    prompt: str
    user_answer: Any
    correct_answer: Any
    is_correct: bool
    hints_used: int = 0

    def to_dict(self) -> dict:
        return {
            "question_index": self.question_index,
            "kind": self.kind,
            "prompt": self.prompt,
            "user_answer": self.user_answer,
            "correct_answer": self.correct_answer,
            "is_correct": self.is_correct,
            "hints_used": self.hints_used,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "QuestionResponse":
        return cls(
            question_index=int(data["question_index"]),
            kind=data.get("kind", "unknown"),
            prompt=data.get("prompt", ""),
            user_answer=data.get("user_answer"),
            correct_answer=data.get("correct_answer"),
            is_correct=bool(data.get("is_correct", False)),
            hints_used=int(data.get("hints_used", 0)),
        )


@dataclass(frozen=True)
class AttemptResult:
    """
    Result of one completed chapter attempt.

    Produced once when a session completes. It is folded into the local
    ledger and submitted to the remote store.
    """

    chapter_id: int
    correct: int
    total: int
    percentage: int
    hints_used: int
    responses: tuple[QuestionResponse, ...] = ()
    completed_at: datetime = field(default_factory=datetime.now)

    @property
    def adjusted_percentage(self) -> int:
        """Percentage after the hint penalty (display only)."""
        return adjusted_percentage(self.percentage, self.hints_used)

    def to_dict(self) -> dict:
        return {
            "chapter_id": self.chapter_id,
            "correct": self.correct,
            "total": self.total,
            "percentage": self.percentage,
            "hints_used": self.hints_used,
            "responses": [r.to_dict() for r in self.responses],
            "completed_at": self.completed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AttemptResult":
        return cls(
            chapter_id=int(data["chapter_id"]),
            correct=int(data["correct"]),
            total=int(data["total"]),
            percentage=int(data["percentage"]),
            hints_used=int(data.get("hints_used", 0)),
            responses=tuple(QuestionResponse.from_dict(r) for r in data.get("responses", [])),
            completed_at=_parse_datetime(data.get("completed_at")) or datetime.now(),
        )


@dataclass
class ChapterProgress:
    """
    Best-score record for one chapter.

    The best-score fields (best_score, total, percentage,
    adjusted_percentage, hints_used, completed_at) always describe the
    single best attempt. attempts and average_score cover every attempt.
    """

    chapter_id: int
    best_score: int
    total: int
    percentage: int
    adjusted_percentage: int
    attempts: int = 1
    average_score: int = 0
    completed_at: datetime = field(default_factory=datetime.now)
    hints_used: int = 0
    last_attempt_at: datetime | None = None
    percentage_sum: int = 0  # Sum of every attempt's percentage

    @property
    def is_mastered(self) -> bool:
        """90% or better on the best attempt with at least two attempts."""
        return self.percentage >= 90 and self.attempts >= 2

    def add_attempt_percentage(self, pct: int) -> None:
        """Count one more attempt toward the history fields."""
        self.attempts += 1
        self.percentage_sum += pct
        self.average_score = round_half_up(self.percentage_sum / self.attempts)

    def to_dict(self) -> dict:
        """Convert to dictionary for persistence."""
        return {
            "chapter_id": self.chapter_id,
            "best_score": self.best_score,
            "total": self.total,
            "percentage": self.percentage,
            "adjusted_percentage": self.adjusted_percentage,
            "attempts": self.attempts,
            "average_score": self.average_score,
            "completed_at": self.completed_at.isoformat(),
            "hints_used": self.hints_used,
            "last_attempt_at": _format_datetime(self.last_attempt_at),
            "percentage_sum": self.percentage_sum,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChapterProgress":
        """Create from dictionary (from persistence)."""
        attempts = int(data.get("attempts", 1))
        average = int(data.get("average_score", data.get("percentage", 0)))
        return cls(
            chapter_id=int(data["chapter_id"]),
            best_score=int(data["best_score"]),
            total=int(data["total"]),
            percentage=int(data["percentage"]),
            adjusted_percentage=int(data.get("adjusted_percentage", data["percentage"])),
            attempts=attempts,
            average_score=average,
            completed_at=_parse_datetime(data.get("completed_at")) or datetime.now(),
            hints_used=int(data.get("hints_used", 0)),
            last_attempt_at=_parse_datetime(data.get("last_attempt_at")),
            # Records written without the sum fall back to average * attempts
            percentage_sum=int(data.get("percentage_sum", average * attempts)),
        )


@dataclass
class SpacedRepetitionEntry:
    """
    SM-2 review state for one chapter.

    Ease never drops below 1.3; repetitions reset to 0 on a failing review.
    """

    chapter_id: int
    ease_factor: float = 2.5
    interval: int = 1  # Days
    repetitions: int = 0
    next_review: datetime = field(default_factory=datetime.now)

    def is_due(self, now: datetime) -> bool:
        return self.next_review <= now

    def to_dict(self) -> dict:
        return {
            "chapter_id": self.chapter_id,
            "ease_factor": self.ease_factor,
            "interval": self.interval,
            "repetitions": self.repetitions,
            "next_review": self.next_review.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SpacedRepetitionEntry":
        return cls(
            chapter_id=int(data["chapter_id"]),
            ease_factor=float(data.get("ease_factor", 2.5)),
            interval=int(data.get("interval", 1)),
            repetitions=int(data.get("repetitions", 0)),
            next_review=_parse_datetime(data.get("next_review")) or datetime.now(),
        )


@dataclass
class AchievementLedger:
    """
    Unlocked achievements plus the study streak.

    The unlocked list has set semantics and only ever grows.
    """

    unlocked: list[str] = field(default_factory=list)
    stats: dict[str, dict] = field(default_factory=dict)
    last_study_date: date | None = None
    current_streak: int = 0

    def is_unlocked(self, achievement_id: str) -> bool:
        return achievement_id in self.unlocked

    def unlock(self, achievement_id: str, now: datetime) -> bool:
        """Unlock an achievement. Returns False if it was already unlocked."""
        if achievement_id in self.unlocked:
            return False
        self.unlocked.append(achievement_id)
        self.stats[achievement_id] = {"unlocked_at": now.isoformat()}
        return True

    def copy(self) -> "AchievementLedger":
        return AchievementLedger(
            unlocked=list(self.unlocked),
            stats={k: dict(v) for k, v in self.stats.items()},
            last_study_date=self.last_study_date,
            current_streak=self.current_streak,
        )

    def to_dict(self) -> dict:
        return {
            "unlocked": list(self.unlocked),
            "stats": self.stats,
            "last_study_date": self.last_study_date.isoformat() if self.last_study_date else None,
            "current_streak": self.current_streak,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AchievementLedger":
        last_study = data.get("last_study_date")
        unlocked: list[str] = []
        for achievement_id in data.get("unlocked", []):
            if achievement_id not in unlocked:
                unlocked.append(achievement_id)
        return cls(
            unlocked=unlocked,
            stats=dict(data.get("stats", {})),
            last_study_date=date.fromisoformat(last_study) if last_study else None,
            current_streak=int(data.get("current_streak", 0)),
        )
