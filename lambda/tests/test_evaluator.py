"""
Unit tests for answer evaluation.
"""

import pytest

from chapterquiz.errors import InvalidInputError
from chapterquiz.evaluator import (
    ALL_MATCHED,
    FALSE_RESPONSE,
    TRUE_RESPONSE,
    correct_display_index,
    is_correct,
    normalized_correct_answer,
    normalized_user_answer,
    to_display_option,
    to_original_option,
    validate_response,
)


@pytest.fixture
def questions(kinds_quiz):
    mc, tf, scenario, matching, ordering, fill = kinds_quiz.questions
    return {
        "mc": mc,
        "tf": tf,
        "scenario": scenario,
        "matching": matching,
        "ordering": ordering,
        "fill": fill,
    }


class TestOptionMapping:
    """Tests for display/original option index mapping."""

    def test_round_trip_through_permutation(self):
        order = (3, 0, 2, 1)
        for display in range(4):
            assert to_display_option(to_original_option(display, order), order) == display

    def test_without_permutation_indices_are_unchanged(self):
        assert to_original_option(2, None) == 2
        assert to_display_option(2, None) == 2

    def test_out_of_range_display_index(self):
        assert to_original_option(7, (0, 1)) is None


class TestIsCorrect:
    """Tests for the pure correctness check."""

    def test_multiple_choice_maps_through_option_order(self, questions):
        # correct original index is 2; it is shown at display position 0
        order = (2, 0, 1, 3)

        assert is_correct(questions["mc"], 0, order)
        assert not is_correct(questions["mc"], 2, order)

    def test_scenario_without_order(self, questions):
        assert is_correct(questions["scenario"], 1)
        assert not is_correct(questions["scenario"], 0)

    def test_true_false(self, questions):
        # The statement is false
        assert is_correct(questions["tf"], FALSE_RESPONSE)
        assert not is_correct(questions["tf"], TRUE_RESPONSE)

    def test_matching_requires_every_pair(self, questions):
        assert is_correct(questions["matching"], {0: 0, 1: 1, 2: 2})
        assert not is_correct(questions["matching"], {0: 0, 1: 2, 2: 1})
        assert not is_correct(questions["matching"], {0: 0, 1: 1})

    def test_matching_accepts_string_keys(self, questions):
        assert is_correct(questions["matching"], {"0": 0, "1": 1, "2": 2})

    def test_ordering_requires_exact_sequence(self, questions):
        assert is_correct(questions["ordering"], [1, 2, 0])
        assert not is_correct(questions["ordering"], [0, 1, 2])

    def test_fill_blank_is_case_and_space_insensitive(self, questions):
        assert is_correct(questions["fill"], "  Motion ")
        assert is_correct(questions["fill"], "RESOLUTION")
        assert not is_correct(questions["fill"], "topic")

    @pytest.mark.parametrize("response", [None, "zero", 1.5, True, [0], {"a": "b"}])
    def test_malformed_responses_are_incorrect_not_errors(self, questions, response):
        for question in questions.values():
            assert is_correct(question, response) in (True, False)
        assert not is_correct(questions["mc"], response)

    def test_ordering_rejects_strings(self, questions):
        assert not is_correct(questions["ordering"], "120")


class TestNormalizedAnswers:
    """Tests for the display-independent answer forms."""

    def test_option_answer_is_the_option_text(self, questions):
        order = (2, 0, 1, 3)

        assert normalized_user_answer(questions["mc"], 0, order) == "Option 1-2"
        assert normalized_correct_answer(questions["mc"]) == "Option 1-2"

    def test_true_false_answers_are_booleans(self, questions):
        assert normalized_user_answer(questions["tf"], TRUE_RESPONSE) is True
        assert normalized_correct_answer(questions["tf"]) is False

    def test_matching_correct_answer_is_marker(self, questions):
        assert normalized_correct_answer(questions["matching"]) == ALL_MATCHED
        assert normalized_user_answer(questions["matching"], {1: 1, 0: 2}) == {"0": 2, "1": 1}

    def test_ordering_answer_is_a_list(self, questions):
        assert normalized_user_answer(questions["ordering"], (1, 2, 0)) == [1, 2, 0]
        assert normalized_user_answer(questions["ordering"], "120") is None

    def test_missing_response(self, questions):
        assert normalized_user_answer(questions["fill"], None) is None

    def test_correct_display_index(self, questions):
        assert correct_display_index(questions["mc"], (2, 0, 1, 3)) == 0
        assert correct_display_index(questions["tf"]) == FALSE_RESPONSE
        assert correct_display_index(questions["ordering"]) is None


class TestValidateResponse:
    """Tests for input validation at the command boundary."""

    def test_valid_responses_pass(self, questions):
        validate_response(questions["mc"], 3)
        validate_response(questions["tf"], TRUE_RESPONSE)
        validate_response(questions["matching"], {0: 2, 1: 1, 2: 0})
        validate_response(questions["ordering"], [2, 1, 0])
        validate_response(questions["fill"], "anything")

    @pytest.mark.parametrize(
        "key, response",
        [
            ("mc", 4),
            ("mc", -1),
            ("mc", "1"),
            ("tf", 2),
            ("tf", True),
            ("matching", {0: 0, 1: 1}),
            ("matching", {0: 0, 1: 1, 2: 5}),
            ("ordering", [0, 1]),
            ("ordering", [0, 0, 1]),
            ("ordering", ["a", "b", "c"]),
            ("fill", "   "),
            ("fill", 3),
        ],
    )
    def test_invalid_responses_raise(self, questions, key, response):
        with pytest.raises(InvalidInputError):
            validate_response(questions[key], response)
