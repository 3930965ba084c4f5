"""
Quiz session state machine.

One chapter attempt moves through NOT_STARTED -> ACTIVE -> COMPLETE.
The machine is a reducer: every command takes the current SessionState
and returns a new one, so any front end can hold the state wherever it
likes (the voice layer keeps it in session attributes) and re-render
from snapshots.

Commands:
- start / retry: fresh question and option order, position 0
- answer: record a response for the current question and, in immediate
  feedback mode, reveal whether it was right
- continue_: dismiss feedback and move on, completing after the last question
- hint: reveal the next hint for the current question
- prev: go back one question while no feedback is showing
- next_question: move on without the feedback step (or reveal feedback
  for an already recorded response in immediate mode)

A command issued in a state that does not accept it raises
SessionStateError and leaves the state untouched.
"""

import random
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any

from chapterquiz.errors import SessionStateError
from chapterquiz.evaluator import (
    correct_display_index,
    is_correct,
    normalized_correct_answer,
    normalized_user_answer,
)
from chapterquiz.models import AttemptResult, QuestionResponse
from chapterquiz.questions import Question, QuestionKind, QuizDefinition, shuffle_indices
from chapterquiz.scoring import percentage


class Phase(Enum):
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    COMPLETE = "complete"


@dataclass(frozen=True)
class Feedback:
    """What is shown after answering in immediate feedback mode."""

    question_index: int
    is_correct: bool
    explanation: str
    correct_display_index: int | None = None
    selected_display_index: int | None = None

    def to_dict(self) -> dict:
        return {
            "question_index": self.question_index,
            "is_correct": self.is_correct,
            "explanation": self.explanation,
            "correct_display_index": self.correct_display_index,
            "selected_display_index": self.selected_display_index,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Feedback":
        return cls(
            question_index=int(data["question_index"]),
            is_correct=bool(data["is_correct"]),
            explanation=data.get("explanation", ""),
            correct_display_index=data.get("correct_display_index"),
            selected_display_index=data.get("selected_display_index"),
        )


@dataclass(frozen=True)
class SessionState:
    """
    Snapshot of one quiz attempt.

    question_order maps display position to question index. option_orders,
    hint_levels and hints_used are keyed by question index; responses are
    keyed by display position.
    """

    chapter_id: int
    phase: Phase = Phase.NOT_STARTED
    question_order: tuple[int, ...] = ()
    option_orders: Mapping[int, tuple[int, ...]] = field(default_factory=dict)
    position: int = 0
    responses: Mapping[int, Any] = field(default_factory=dict)
    hint_levels: Mapping[int, int] = field(default_factory=dict)
    hints_used: Mapping[int, int] = field(default_factory=dict)
    feedback_shown: bool = False
    immediate_feedback: bool = True
    feedback: Feedback | None = None
    result: AttemptResult | None = None

    @property
    def question_count(self) -> int:
        return len(self.question_order)

    @property
    def current_index(self) -> int:
        """Question index (in the quiz definition) at the current position."""
        return self.question_order[self.position]

    @property
    def is_last_question(self) -> bool:
        return self.position == self.question_count - 1

    @property
    def total_hints_used(self) -> int:
        return sum(self.hints_used.values())

    @property
    def current_response(self) -> Any:
        return self.responses.get(self.position)

    def option_order(self, question_index: int) -> tuple[int, ...] | None:
        return self.option_orders.get(question_index)

    def to_dict(self) -> dict:
        """Convert to a JSON-safe dictionary (all mapping keys become strings)."""
        return {
            "chapter_id": self.chapter_id,
            "phase": self.phase.value,
            "question_order": list(self.question_order),
            "option_orders": {str(k): list(v) for k, v in self.option_orders.items()},
            "position": self.position,
            "responses": {str(k): v for k, v in self.responses.items()},
            "hint_levels": {str(k): v for k, v in self.hint_levels.items()},
            "hints_used": {str(k): v for k, v in self.hints_used.items()},
            "feedback_shown": self.feedback_shown,
            "immediate_feedback": self.immediate_feedback,
            "feedback": self.feedback.to_dict() if self.feedback else None,
            "result": self.result.to_dict() if self.result else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SessionState":
        feedback = data.get("feedback")
        result = data.get("result")
        return cls(
            chapter_id=int(data["chapter_id"]),
            phase=Phase(data.get("phase", Phase.NOT_STARTED.value)),
            question_order=tuple(data.get("question_order", [])),
            option_orders={int(k): tuple(v) for k, v in data.get("option_orders", {}).items()},
            position=int(data.get("position", 0)),
            responses={int(k): v for k, v in data.get("responses", {}).items()},
            hint_levels={int(k): int(v) for k, v in data.get("hint_levels", {}).items()},
            hints_used={int(k): int(v) for k, v in data.get("hints_used", {}).items()},
            feedback_shown=bool(data.get("feedback_shown", False)),
            immediate_feedback=bool(data.get("immediate_feedback", True)),
            feedback=Feedback.from_dict(feedback) if feedback else None,
            result=AttemptResult.from_dict(result) if result else None,
        )


def new_session(chapter_id: int, immediate_feedback: bool = True) -> SessionState:
    """A session that has not been started yet."""
    return SessionState(chapter_id=chapter_id, immediate_feedback=immediate_feedback)


def current_question(state: SessionState, quiz: QuizDefinition) -> Question:
    _require_active(state)
    return quiz.questions[state.current_index]


def hints_remaining(state: SessionState, quiz: QuizDefinition) -> int:
    question = current_question(state, quiz)
    return len(question.hints) - state.hint_levels.get(state.current_index, 0)


def revealed_hints(state: SessionState, quiz: QuizDefinition) -> list[str]:
    question = current_question(state, quiz)
    level = state.hint_levels.get(state.current_index, 0)
    return list(question.hints[:level])


def _require_active(state: SessionState) -> None:
    if state.phase != Phase.ACTIVE:
        raise SessionStateError(f"Session for chapter {state.chapter_id} is not active")


def _require_input_open(state: SessionState) -> None:
    _require_active(state)
    if state.feedback_shown:
        raise SessionStateError("Feedback is showing; continue first")


def start(state: SessionState, quiz: QuizDefinition, rng: random.Random | None = None) -> SessionState:
    """Begin an attempt with a fresh question and option order."""
    if not quiz.questions:
        raise SessionStateError(f"Chapter {quiz.chapter_id} has no questions")

    option_orders = {
        index: tuple(shuffle_indices(len(question.options), rng))
        for index, question in enumerate(quiz.questions)
        if question.has_options
    }
    return SessionState(
        chapter_id=quiz.chapter_id,
        phase=Phase.ACTIVE,
        question_order=tuple(shuffle_indices(len(quiz.questions), rng)),
        option_orders=option_orders,
        immediate_feedback=state.immediate_feedback,
    )


def retry(state: SessionState, quiz: QuizDefinition, rng: random.Random | None = None) -> SessionState:
    """Start over with a new order. Only valid once the session has been started."""
    if state.phase == Phase.NOT_STARTED:
        raise SessionStateError("Nothing to retry; start the quiz first")
    return start(state, quiz, rng)


def _reveal_feedback(state: SessionState, quiz: QuizDefinition) -> SessionState:
    index = state.current_index
    question = quiz.questions[index]
    order = state.option_order(index)
    response = state.current_response
    selected = response if question.has_options or question.kind == QuestionKind.TRUE_FALSE else None
    feedback = Feedback(
        question_index=index,
        is_correct=is_correct(question, response, order),
        explanation=question.explanation,
        correct_display_index=correct_display_index(question, order),
        selected_display_index=selected,
    )
    return replace(state, feedback_shown=True, feedback=feedback)


def answer(state: SessionState, quiz: QuizDefinition, response: Any) -> SessionState:
    """Record the response for the current question."""
    _require_input_open(state)
    updated = replace(state, responses={**state.responses, state.position: response})
    if updated.immediate_feedback:
        return _reveal_feedback(updated, quiz)
    return updated


def hint(state: SessionState, quiz: QuizDefinition) -> SessionState:
    """Reveal one more hint for the current question."""
    _require_input_open(state)
    if hints_remaining(state, quiz) <= 0:
        raise SessionStateError("No hints left for this question")
    index = state.current_index
    return replace(
        state,
        hint_levels={**state.hint_levels, index: state.hint_levels.get(index, 0) + 1},
        hints_used={**state.hints_used, index: state.hints_used.get(index, 0) + 1},
    )


def prev(state: SessionState) -> SessionState:
    """Go back one question, keeping every recorded response."""
    _require_input_open(state)
    if state.position == 0:
        raise SessionStateError("Already at the first question")
    return replace(state, position=state.position - 1, feedback=None)


def continue_(state: SessionState, quiz: QuizDefinition, now: datetime | None = None) -> SessionState:
    """Dismiss feedback and advance, completing the attempt after the last question."""
    _require_active(state)
    if not state.feedback_shown:
        raise SessionStateError("Nothing to continue from; answer the question first")
    if state.is_last_question:
        return complete(state, quiz, now)
    return replace(state, position=state.position + 1, feedback_shown=False, feedback=None)


def next_question(state: SessionState, quiz: QuizDefinition, now: datetime | None = None) -> SessionState:
    """
    Move past an answered question without the answer step.

    In immediate feedback mode this reveals feedback for a response that
    was recorded earlier (after going back with prev). Otherwise it moves
    forward, completing the attempt on the last question.
    """
    _require_input_open(state)
    if state.position not in state.responses:
        raise SessionStateError("Answer the question first")
    if state.immediate_feedback:
        return _reveal_feedback(state, quiz)
    if state.is_last_question:
        return complete(state, quiz, now)
    return replace(state, position=state.position + 1)


def build_result(state: SessionState, quiz: QuizDefinition, now: datetime | None = None) -> AttemptResult:
    """Score every question in definition order."""
    display_positions = {index: pos for pos, index in enumerate(state.question_order)}
    responses = []
    correct = 0

    for index, question in enumerate(quiz.questions):
        response = state.responses.get(display_positions.get(index, -1))
        order = state.option_order(index)
        right = is_correct(question, response, order)
        if right:
            correct += 1
        responses.append(
            QuestionResponse(
                question_index=index,
                kind=question.kind.value,
                prompt=question.prompt,
                user_answer=normalized_user_answer(question, response, order),
                correct_answer=normalized_correct_answer(question),
                is_correct=right,
                hints_used=state.hints_used.get(index, 0),
            )
        )

    total = len(quiz.questions)
    return AttemptResult(
        chapter_id=quiz.chapter_id,
        correct=correct,
        total=total,
        percentage=percentage(correct, total),
        hints_used=state.total_hints_used,
        responses=tuple(responses),
        completed_at=now or datetime.now(),
    )


def complete(state: SessionState, quiz: QuizDefinition, now: datetime | None = None) -> SessionState:
    _require_active(state)
    return replace(
        state,
        phase=Phase.COMPLETE,
        feedback_shown=False,
        feedback=None,
        result=build_result(state, quiz, now),
    )
