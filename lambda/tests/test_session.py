"""
Tests for the quiz session state machine.
"""

import json
import random
from datetime import datetime

import pytest

from chapterquiz import session
from chapterquiz.errors import SessionStateError
from chapterquiz.session import Phase, SessionState

NOW = datetime(2026, 3, 14, 9, 30)


@pytest.fixture
def rng():
    return random.Random(7)


@pytest.fixture
def started(ten_quiz, rng):
    return session.start(session.new_session(1), ten_quiz, rng)


def run_through(state, quiz, answer_key, correct_positions, hinted_positions=()):
    """Answer every question, asking for one hint at the given positions."""
    for position in range(state.question_count):
        if position in hinted_positions:
            state = session.hint(state, quiz)
        state = session.answer(state, quiz, answer_key(state, quiz, correct=position in correct_positions))
        state = session.continue_(state, quiz, NOW)
    return state


# ============================================================================
# Start and retry
# ============================================================================


class TestStart:
    """Tests for starting an attempt."""

    def test_new_session_is_not_started(self):
        state = session.new_session(3)

        assert state.phase == Phase.NOT_STARTED
        assert state.chapter_id == 3

    def test_start_creates_permutations(self, started, ten_quiz):
        assert started.phase == Phase.ACTIVE
        assert started.position == 0
        assert sorted(started.question_order) == list(range(10))
        for index in range(10):
            assert sorted(started.option_order(index)) == [0, 1, 2, 3]

    def test_only_option_questions_get_option_orders(self, kinds_quiz, rng):
        state = session.start(session.new_session(2), kinds_quiz, rng)

        assert set(state.option_orders) == {0, 2}

    def test_retry_clears_responses_and_hints(self, started, ten_quiz, answer_key, rng):
        state = session.hint(started, ten_quiz)
        state = session.answer(state, ten_quiz, answer_key(state, ten_quiz))

        retried = session.retry(state, ten_quiz, rng)

        assert retried.phase == Phase.ACTIVE
        assert retried.position == 0
        assert retried.responses == {}
        assert retried.total_hints_used == 0
        assert not retried.feedback_shown

    def test_retry_before_start_is_rejected(self, ten_quiz):
        with pytest.raises(SessionStateError):
            session.retry(session.new_session(1), ten_quiz)

    def test_retry_after_completion_starts_over(self, started, ten_quiz, answer_key, rng):
        done = run_through(started, ten_quiz, answer_key, correct_positions=range(10))

        retried = session.retry(done, ten_quiz, rng)

        assert retried.phase == Phase.ACTIVE
        assert retried.result is None


# ============================================================================
# Answering and feedback
# ============================================================================


class TestAnswer:
    """Tests for answering and the feedback gate."""

    def test_answer_shows_feedback_in_immediate_mode(self, started, ten_quiz, answer_key):
        state = session.answer(started, ten_quiz, answer_key(started, ten_quiz))

        assert state.feedback_shown
        assert state.feedback.is_correct
        assert state.feedback.question_index == started.current_index
        assert state.feedback.explanation.startswith("Explanation")
        assert state.feedback.selected_display_index == state.feedback.correct_display_index

    def test_wrong_answer_feedback(self, started, ten_quiz, answer_key):
        state = session.answer(started, ten_quiz, answer_key(started, ten_quiz, correct=False))

        assert not state.feedback.is_correct
        assert state.feedback.selected_display_index != state.feedback.correct_display_index

    def test_input_is_blocked_while_feedback_shows(self, started, ten_quiz, answer_key):
        state = session.answer(started, ten_quiz, answer_key(started, ten_quiz))

        with pytest.raises(SessionStateError):
            session.answer(state, ten_quiz, 0)
        with pytest.raises(SessionStateError):
            session.hint(state, ten_quiz)
        with pytest.raises(SessionStateError):
            session.prev(state)

    def test_rejected_command_leaves_state_unchanged(self, started, ten_quiz, answer_key):
        state = session.answer(started, ten_quiz, answer_key(started, ten_quiz))
        snapshot = state.to_dict()

        with pytest.raises(SessionStateError):
            session.answer(state, ten_quiz, 1)

        assert state.to_dict() == snapshot

    def test_continue_requires_feedback(self, started, ten_quiz):
        with pytest.raises(SessionStateError):
            session.continue_(started, ten_quiz)

    def test_continue_advances(self, started, ten_quiz, answer_key):
        state = session.answer(started, ten_quiz, answer_key(started, ten_quiz))
        state = session.continue_(state, ten_quiz)

        assert state.position == 1
        assert not state.feedback_shown
        assert state.feedback is None

    def test_commands_before_start_are_rejected(self, ten_quiz):
        state = session.new_session(1)

        with pytest.raises(SessionStateError):
            session.answer(state, ten_quiz, 0)
        with pytest.raises(SessionStateError):
            session.hint(state, ten_quiz)


class TestDeferredFeedback:
    """Tests for sessions without immediate feedback."""

    def test_answer_then_next(self, ten_quiz, answer_key, rng):
        state = session.start(session.new_session(1, immediate_feedback=False), ten_quiz, rng)

        state = session.answer(state, ten_quiz, answer_key(state, ten_quiz))

        assert not state.feedback_shown
        state = session.next_question(state, ten_quiz)
        assert state.position == 1

    def test_next_requires_an_answer(self, ten_quiz, rng):
        state = session.start(session.new_session(1, immediate_feedback=False), ten_quiz, rng)

        with pytest.raises(SessionStateError):
            session.next_question(state, ten_quiz)

    def test_next_on_last_question_completes(self, ten_quiz, answer_key, rng):
        state = session.start(session.new_session(1, immediate_feedback=False), ten_quiz, rng)
        for _ in range(10):
            state = session.answer(state, ten_quiz, answer_key(state, ten_quiz))
            state = session.next_question(state, ten_quiz, NOW)

        assert state.phase == Phase.COMPLETE
        assert state.result.correct == 10


# ============================================================================
# Hints and navigation
# ============================================================================


class TestHints:
    """Tests for progressive hints."""

    def test_hint_reveals_one_at_a_time(self, started, ten_quiz):
        state = session.hint(started, ten_quiz)

        assert len(session.revealed_hints(state, ten_quiz)) == 1
        assert session.hints_remaining(state, ten_quiz) == 1
        assert state.total_hints_used == 1

        state = session.hint(state, ten_quiz)
        assert session.hints_remaining(state, ten_quiz) == 0

    def test_no_hints_left(self, started, ten_quiz):
        state = session.hint(session.hint(started, ten_quiz), ten_quiz)

        with pytest.raises(SessionStateError):
            session.hint(state, ten_quiz)

    def test_hint_does_not_change_correctness(self, started, ten_quiz, answer_key):
        state = session.hint(started, ten_quiz)
        state = session.answer(state, ten_quiz, answer_key(state, ten_quiz))

        assert state.feedback.is_correct


class TestPrev:
    """Tests for going back."""

    def test_prev_at_first_question_is_rejected(self, started):
        with pytest.raises(SessionStateError):
            session.prev(started)

    def test_prev_keeps_responses(self, started, ten_quiz, answer_key):
        first = answer_key(started, ten_quiz)
        state = session.continue_(session.answer(started, ten_quiz, first), ten_quiz)

        state = session.prev(state)

        assert state.position == 0
        assert state.current_response == first

    def test_next_after_prev_reveals_feedback_again(self, started, ten_quiz, answer_key):
        state = session.continue_(session.answer(started, ten_quiz, answer_key(started, ten_quiz)), ten_quiz)
        state = session.prev(state)

        state = session.next_question(state, ten_quiz)

        assert state.feedback_shown
        assert state.feedback.is_correct

    def test_reanswer_after_prev_replaces_response(self, started, ten_quiz, answer_key):
        state = session.continue_(
            session.answer(started, ten_quiz, answer_key(started, ten_quiz, correct=False)), ten_quiz
        )
        state = session.prev(state)

        state = session.answer(state, ten_quiz, answer_key(state, ten_quiz))

        assert state.feedback.is_correct


# ============================================================================
# Completion
# ============================================================================


class TestCompletion:
    """Tests for completing an attempt and building the result."""

    def test_scoring_with_hints(self, started, ten_quiz, answer_key):
        # 8 of 10 correct, one hint on each of two different questions
        state = run_through(started, ten_quiz, answer_key, correct_positions=range(8), hinted_positions=(0, 5))

        result = state.result
        assert state.phase == Phase.COMPLETE
        assert result.correct == 8
        assert result.total == 10
        assert result.percentage == 80
        assert result.hints_used == 2
        assert result.adjusted_percentage == 70
        assert result.completed_at == NOW

    def test_result_responses_in_definition_order(self, started, ten_quiz, answer_key):
        state = run_through(started, ten_quiz, answer_key, correct_positions=range(10), hinted_positions=(3,))

        responses = state.result.responses
        assert [r.question_index for r in responses] == list(range(10))
        assert all(r.is_correct for r in responses)
        assert sum(r.hints_used for r in responses) == 1
        hinted = responses[started.question_order[3]]
        assert hinted.hints_used == 1

    def test_every_kind_scores(self, kinds_quiz, answer_key, rng):
        state = session.start(session.new_session(2), kinds_quiz, rng)
        state = run_through(state, kinds_quiz, answer_key, correct_positions=range(6))

        assert state.result.correct == 6
        assert state.result.percentage == 100

    def test_unanswered_question_counts_wrong(self, ten_quiz, rng):
        state = session.start(session.new_session(1), ten_quiz, rng)

        result = session.build_result(state, ten_quiz, NOW)

        assert result.correct == 0
        assert all(r.user_answer is None for r in result.responses)

    def test_completed_session_rejects_commands(self, started, ten_quiz, answer_key):
        state = run_through(started, ten_quiz, answer_key, correct_positions=())

        with pytest.raises(SessionStateError):
            session.answer(state, ten_quiz, 0)
        with pytest.raises(SessionStateError):
            session.continue_(state, ten_quiz)


class TestSerialization:
    """Tests for storing the session in session attributes."""

    def test_survives_json_round_trip(self, kinds_quiz, answer_key, rng):
        state = session.start(session.new_session(2), kinds_quiz, rng)
        for _ in range(4):
            state = session.hint(state, kinds_quiz) if session.hints_remaining(state, kinds_quiz) else state
            state = session.continue_(session.answer(state, kinds_quiz, answer_key(state, kinds_quiz)), kinds_quiz)

        restored = SessionState.from_dict(json.loads(json.dumps(state.to_dict())))

        # Matching responses come back with string keys, so compare the stored form
        assert json.dumps(restored.to_dict(), sort_keys=True) == json.dumps(state.to_dict(), sort_keys=True)
        assert restored.question_order == state.question_order
        assert restored.option_orders == state.option_orders
        assert restored.hints_used == state.hints_used

    def test_completed_state_round_trips(self, started, ten_quiz, answer_key):
        state = run_through(started, ten_quiz, answer_key, correct_positions=range(5))

        restored = SessionState.from_dict(json.loads(json.dumps(state.to_dict())))

        assert restored.phase == Phase.COMPLETE
        assert restored.result.percentage == 50
