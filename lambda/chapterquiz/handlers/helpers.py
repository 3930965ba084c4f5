"""Helper functions for Alexa skill handlers."""

import logging
import random
import re
from functools import lru_cache
from typing import Any

from chapterquiz import data
from chapterquiz.achievements import ACHIEVEMENT_INFO
from chapterquiz.config import get_settings
from chapterquiz.content import QuizContentSource
from chapterquiz.engine import CompletionSummary, QuizEngine
from chapterquiz.errors import InvalidInputError
from chapterquiz.evaluator import FALSE_RESPONSE, TRUE_RESPONSE, validate_response
from chapterquiz.persistence import get_persistence_manager
from chapterquiz.questions import Question, QuestionKind, QuizDefinition, shuffle_indices
from chapterquiz.reconcile import Reconciler
from chapterquiz.remote import RemoteProgressStore
from chapterquiz.session import Phase, SessionState, current_question

logger = logging.getLogger(__name__)

SESSION_KEY = "quiz_session"
MATCHING_ORDERS_KEY = "matching_orders"


# ============================================================================
# Process-wide collaborators
# ============================================================================


@lru_cache(maxsize=1)
def get_content_source() -> QuizContentSource:
    return QuizContentSource(get_settings().content_dir)


@lru_cache(maxsize=1)
def get_reconciler() -> Reconciler | None:
    """
    The reconciler for this Lambda container, or None if remote sync is off.

    Kept for the life of the container so a bulk sync runs at most once
    per device per container.
    """
    settings = get_settings()
    if not settings.remote_sync_enabled:
        logger.info("Remote sync disabled")
        return None
    remote = RemoteProgressStore(
        settings.progress_table_name,
        endpoint_url=settings.aws_endpoint_url,
        region_name=settings.aws_region,
    )
    return Reconciler(remote)


def get_quiz_engine(handler_input) -> QuizEngine:
    return QuizEngine(
        get_persistence_manager(handler_input),
        get_content_source(),
        get_reconciler(),
    )


# ============================================================================
# Session state
# ============================================================================


def load_session_state(handler_input) -> SessionState | None:
    """Restore the quiz session from session attributes, if there is one."""
    session_attr = handler_input.attributes_manager.session_attributes
    stored = session_attr.get(SESSION_KEY)
    if not stored:
        return None
    try:
        return SessionState.from_dict(stored)
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"Discarding unreadable quiz session: {e}")
        clear_session_state(handler_input)
        return None


def save_session_state(handler_input, state: SessionState) -> None:
    session_attr = handler_input.attributes_manager.session_attributes
    session_attr[SESSION_KEY] = state.to_dict()
    session_attr["state"] = data.STATE_QUIZ if state.phase == Phase.ACTIVE else data.STATE_RESULTS


def clear_session_state(handler_input) -> None:
    session_attr = handler_input.attributes_manager.session_attributes
    session_attr.pop(SESSION_KEY, None)
    session_attr.pop(MATCHING_ORDERS_KEY, None)
    session_attr["state"] = data.STATE_NONE


def matching_order(session_attr: dict, question_index: int, size: int) -> list[int]:
    """
    Order in which the right-hand column of a matching question is read out.

    Created once per question and kept in session attributes so the spoken
    numbers stay stable across repeats.
    """
    orders = session_attr.setdefault(MATCHING_ORDERS_KEY, {})
    key = str(question_index)
    if key not in orders or len(orders[key]) != size:
        orders[key] = shuffle_indices(size)
    return orders[key]


# ============================================================================
# Slot parsing
# ============================================================================


def get_slot_value(handler_input, name: str) -> str | None:
    slots = handler_input.request_envelope.request.intent.slots or {}
    slot = slots.get(name)
    value = getattr(slot, "value", None) if slot else None
    return value if isinstance(value, str) and value.strip() else None


def parse_number(value: str | None) -> int | None:
    """Parse "3", "three" or "third" into an int."""
    if value is None:
        return None
    value = value.strip().lower()
    if value.isdigit():
        return int(value)
    return data.NUMBER_WORDS.get(value)


def parse_number_sequence(value: str | None) -> list[int] | None:
    """Parse "two one three" or "2, 1, 3" into [2, 1, 3]."""
    if value is None:
        return None
    tokens = [t for t in re.split(r"[\s,;]+", value.strip().lower()) if t and t != "and"]
    # A bare digit run like "213" is read one digit at a time
    if len(tokens) == 1 and tokens[0].isdigit() and len(tokens[0]) > 1:
        tokens = list(tokens[0])
    numbers = [parse_number(token) for token in tokens]
    if not numbers or any(n is None for n in numbers):
        return None
    return numbers


def parse_true_false(value: str | None) -> int | None:
    if value is None:
        return None
    value = value.strip().lower()
    if value in data.TRUE_WORDS:
        return TRUE_RESPONSE
    if value in data.FALSE_WORDS:
        return FALSE_RESPONSE
    return None


def parse_response(
    question: Question,
    state: SessionState,
    session_attr: dict,
    number: str | None,
    text: str | None,
) -> Any:
    """
    Turn spoken slot values into an engine response for the current question.

    Returns:
        The response, or None if nothing usable was said.
    """
    kind = question.kind
    spoken = text or number

    if question.has_options:
        choice = parse_number(number) if number else parse_number(text)
        response = choice - 1 if choice is not None else None
    elif kind == QuestionKind.TRUE_FALSE:
        response = parse_true_false(spoken)
    elif kind == QuestionKind.ORDERING:
        sequence = parse_number_sequence(spoken)
        response = [n - 1 for n in sequence] if sequence is not None else None
    elif kind == QuestionKind.MATCHING:
        sequence = parse_number_sequence(spoken)
        size = len(question.pairs)
        order = matching_order(session_attr, state.current_index, size)
        if sequence is None or len(sequence) != size or not all(1 <= n <= size for n in sequence):
            response = None
        else:
            response = {left: order[n - 1] for left, n in enumerate(sequence)}
    else:
        response = spoken

    if response is None:
        return None
    try:
        validate_response(question, response, state.option_order(state.current_index))
    except InvalidInputError as e:
        logger.info(f"Rejected response {response!r}: {e}")
        return None
    return response


# ============================================================================
# Speech rendering
# ============================================================================


def render_question(state: SessionState, quiz: QuizDefinition, session_attr: dict) -> str:
    """Speech for the current question, including its options."""
    question = current_question(state, quiz)
    speech = data.QUESTION_NUMBER.format(number=state.position + 1, total=state.question_count)

    if question.scenario:
        speech += data.SCENARIO_INTRO.format(scenario=question.scenario)
    speech += question.prompt + " "

    if question.has_options:
        order = state.option_order(state.current_index) or range(len(question.options))
        for number, original in enumerate(order, start=1):
            speech += data.OPTION_LINE.format(number=number, option=question.options[original])
    elif question.kind == QuestionKind.TRUE_FALSE:
        speech += data.TRUE_FALSE_PROMPT
    elif question.kind == QuestionKind.MATCHING:
        speech += data.MATCHING_LEFT_INTRO
        for number, pair in enumerate(question.pairs, start=1):
            speech += data.OPTION_LINE.format(number=number, option=pair.left)
        speech += data.MATCHING_RIGHT_INTRO
        order = matching_order(session_attr, state.current_index, len(question.pairs))
        for number, original in enumerate(order, start=1):
            speech += data.OPTION_LINE.format(number=number, option=question.pairs[original].right)
        speech += data.MATCHING_INSTRUCTIONS
    elif question.kind == QuestionKind.ORDERING:
        speech += data.ORDERING_INTRO
        for number, item in enumerate(question.items, start=1):
            speech += data.OPTION_LINE.format(number=number, option=item)
        speech += data.ORDERING_INSTRUCTIONS
    else:
        speech += data.FILL_BLANK_PROMPT

    return speech.strip()


def render_feedback(state: SessionState, quiz: QuizDefinition) -> str:
    """Speech for the feedback step after an answer."""
    feedback = state.feedback
    if feedback is None:
        return data.ANSWER_RECORDED

    question = quiz.questions[feedback.question_index]
    if feedback.is_correct:
        speech = random.choice(data.CORRECT_ANSWER_TEMPLATES) + " "
    else:
        speech = random.choice(data.WRONG_ANSWER_TEMPLATES) + " "
        if question.has_options and feedback.correct_display_index is not None:
            order = state.option_order(feedback.question_index)
            original = order[feedback.correct_display_index] if order else feedback.correct_display_index
            speech += data.CORRECT_OPTION.format(
                number=feedback.correct_display_index + 1, option=question.options[original]
            )
        elif question.kind == QuestionKind.TRUE_FALSE:
            speech += data.CORRECT_TRUE_FALSE.format(value="true" if question.correct_bool else "false")

    if feedback.explanation:
        speech += feedback.explanation + " "
    speech += data.CONTINUE_PROMPT_LAST if state.is_last_question else data.CONTINUE_PROMPT
    return speech


def render_available_chapters(chapters: list[int]) -> str:
    """Speech listing the chapters that have a quiz, e.g. "1, 2 or 5"."""
    if not chapters:
        return data.NO_QUIZZES_AVAILABLE
    names = [str(c) for c in chapters]
    listed = names[0] if len(names) == 1 else ", ".join(names[:-1]) + " or " + names[-1]
    return data.QUIZZES_AVAILABLE.format(chapters=listed)


def render_completion(summary: CompletionSummary, quiz: QuizDefinition) -> str:
    """Speech for the results screen."""
    result = summary.result
    speech = data.QUIZ_END_SCORE.format(
        correct=result.correct, total=result.total, percentage=result.percentage
    )
    if result.hints_used:
        speech += data.QUIZ_END_ADJUSTED.format(
            hints=result.hints_used, adjusted=summary.adjusted_percentage
        )

    if summary.passed:
        speech += data.QUIZ_END_PASSED.format(chapter=result.chapter_id)
    else:
        speech += data.QUIZ_END_FAILED.format(passing=quiz.passing_score)

    if summary.review.interval == 1:
        speech += data.QUIZ_END_NEXT_REVIEW_ONE_DAY
    else:
        speech += data.QUIZ_END_NEXT_REVIEW.format(days=summary.review.interval)

    for achievement_id in summary.new_achievements:
        info = ACHIEVEMENT_INFO.get(achievement_id)
        if info:
            speech += data.ACHIEVEMENT_UNLOCKED.format(**info)

    return speech + data.REPROMPT_AFTER_QUIZ
