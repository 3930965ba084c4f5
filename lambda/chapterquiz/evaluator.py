"""
Answer evaluation for every question kind.

``is_correct`` is a pure function: it never raises and treats a missing
or wrongly shaped response as incorrect. There is no partial credit.

Response shapes:
- multiple-choice / scenario: display index of the chosen option
- true-false: 0 for true, 1 for false
- matching: mapping of left index to chosen right index
- ordering: list of item indices in the chosen order
- fill-blank: free text
"""

from collections.abc import Mapping, Sequence
from typing import Any

from chapterquiz.errors import InvalidInputError
from chapterquiz.questions import Question, QuestionKind

TRUE_RESPONSE = 0
FALSE_RESPONSE = 1

ALL_MATCHED = "all-matched"


def normalize_text(value: str) -> str:
    return value.strip().lower()


def _is_index(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def to_original_option(display_index: int, option_order: Sequence[int] | None) -> int | None:
    """Map a display index back through the session's option permutation."""
    if option_order is None:
        return display_index
    if not 0 <= display_index < len(option_order):
        return None
    return option_order[display_index]


def to_display_option(original_index: int, option_order: Sequence[int] | None) -> int:
    if option_order is None:
        return original_index
    return list(option_order).index(original_index)


def _matching_map(response: Any) -> dict[int, int] | None:
    # Keys arrive as strings after a JSON round trip through session storage
    if not isinstance(response, Mapping):
        return None
    try:
        return {int(k): int(v) for k, v in response.items()}
    except (TypeError, ValueError):
        return None


def is_correct(question: Question, response: Any, option_order: Sequence[int] | None = None) -> bool:
    """Judge a raw response against the question's reference answer."""
    if response is None:
        return False

    kind = question.kind

    if kind in (QuestionKind.MULTIPLE_CHOICE, QuestionKind.SCENARIO):
        if not _is_index(response):
            return False
        return to_original_option(response, option_order) == question.correct_index

    if kind == QuestionKind.TRUE_FALSE:
        expected = TRUE_RESPONSE if question.correct_bool else FALSE_RESPONSE
        return _is_index(response) and response == expected

    if kind == QuestionKind.MATCHING:
        matches = _matching_map(response)
        if matches is None:
            return False
        return all(matches.get(index) == index for index in range(len(question.pairs)))

    if kind == QuestionKind.ORDERING:
        if isinstance(response, (str, bytes)) or not isinstance(response, Sequence):
            return False
        return list(response) == list(question.correct_order)

    if kind == QuestionKind.FILL_BLANK:
        if not isinstance(response, str):
            return False
        return normalize_text(response) in question.expected_answer

    return False


def correct_display_index(question: Question, option_order: Sequence[int] | None = None) -> int | None:
    """Display index of the right option, used to mark options after answering."""
    if question.kind == QuestionKind.TRUE_FALSE:
        return TRUE_RESPONSE if question.correct_bool else FALSE_RESPONSE
    if question.has_options:
        return to_display_option(question.correct_index, option_order)
    return None


def normalized_user_answer(
    question: Question, response: Any, option_order: Sequence[int] | None = None
) -> Any:
    """User answer in a display-independent form for telemetry."""
    if response is None:
        return None
    if question.has_options:
        if not _is_index(response):
            return None
        original = to_original_option(response, option_order)
        if original is None or not 0 <= original < len(question.options):
            return None
        return question.options[original]
    if question.kind == QuestionKind.TRUE_FALSE:
        return response == TRUE_RESPONSE
    if question.kind == QuestionKind.MATCHING:
        matches = _matching_map(response)
        return {str(k): v for k, v in sorted(matches.items())} if matches is not None else None
    if question.kind == QuestionKind.ORDERING:
        if isinstance(response, (str, bytes)) or not isinstance(response, Sequence):
            return None
        return list(response)
    return normalize_text(response) if isinstance(response, str) else None


def normalized_correct_answer(question: Question) -> Any:
    """Reference answer in the same form as ``normalized_user_answer``."""
    if question.has_options:
        return question.options[question.correct_index]
    if question.kind == QuestionKind.TRUE_FALSE:
        return question.correct_bool
    if question.kind == QuestionKind.MATCHING:
        return ALL_MATCHED
    if question.kind == QuestionKind.ORDERING:
        return list(question.correct_order)
    return question.answer


def validate_response(
    question: Question, response: Any, option_order: Sequence[int] | None = None
) -> None:
    """
    Reject a response whose shape does not fit the question kind.

    Raises:
        InvalidInputError: If the response cannot be an answer to this question.
    """
    kind = question.kind

    if kind in (QuestionKind.MULTIPLE_CHOICE, QuestionKind.SCENARIO):
        count = len(option_order) if option_order is not None else len(question.options)
        if not _is_index(response) or not 0 <= response < count:
            raise InvalidInputError(f"Choose an option between 1 and {count}")
        return

    if kind == QuestionKind.TRUE_FALSE:
        if response not in (TRUE_RESPONSE, FALSE_RESPONSE) or isinstance(response, bool):
            raise InvalidInputError("Answer true or false")
        return

    if kind == QuestionKind.MATCHING:
        matches = _matching_map(response)
        size = len(question.pairs)
        if matches is None or set(matches) != set(range(size)):
            raise InvalidInputError(f"Match each of the {size} items")
        if any(not 0 <= right < size for right in matches.values()):
            raise InvalidInputError(f"Matches must be between 1 and {size}")
        return

    if kind == QuestionKind.ORDERING:
        size = len(question.items)
        if (
            isinstance(response, (str, bytes))
            or not isinstance(response, Sequence)
            or not all(_is_index(item) for item in response)
            or sorted(response) != list(range(size))
        ):
            raise InvalidInputError(f"Put all {size} items in order")
        return

    if not isinstance(response, str) or not response.strip():
        raise InvalidInputError("Say the missing word")
