"""
Question model and randomizer for chapter quizzes.

A chapter quiz is an ordered list of questions of six kinds. Question
definitions are loaded from JSON content and never mutated. Every session
presents them in a fresh random order, and choice questions also get a
fresh random option order.
"""

import random
from dataclasses import dataclass
from enum import Enum
from typing import Any

from chapterquiz.errors import InvalidQuestionError

DEFAULT_PASSING_SCORE = 70

# Chapters are numbered 1-20
FIRST_CHAPTER = 1
LAST_CHAPTER = 20


class QuestionKind(Enum):
    """Supported question kinds."""

    MULTIPLE_CHOICE = "multiple-choice"
    TRUE_FALSE = "true-false"
    SCENARIO = "scenario"
    MATCHING = "matching"
    ORDERING = "ordering"
    FILL_BLANK = "fill-blank"


# Kinds whose options are shuffled per session
OPTION_KINDS = (QuestionKind.MULTIPLE_CHOICE, QuestionKind.SCENARIO)


@dataclass(frozen=True)
class MatchingPair:
    left: str
    right: str


@dataclass(frozen=True)
class Question:
    """
    One quiz question.

    Only the payload fields relevant to ``kind`` are populated:
    - multiple-choice / scenario: ``options`` and ``correct_index``
    - true-false: ``correct_bool``
    - matching: ``pairs`` (each left item matches the right item of its own pair)
    - ordering: ``items`` and ``correct_order``
    - fill-blank: ``answer`` and ``accepted_answers``
    """

    kind: QuestionKind
    prompt: str
    explanation: str = ""
    hints: tuple[str, ...] = ()
    scenario: str | None = None
    options: tuple[str, ...] = ()
    correct_index: int | None = None
    correct_bool: bool | None = None
    pairs: tuple[MatchingPair, ...] = ()
    items: tuple[str, ...] = ()
    correct_order: tuple[int, ...] = ()
    answer: str | None = None
    accepted_answers: tuple[str, ...] = ()

    @property
    def has_options(self) -> bool:
        return self.kind in OPTION_KINDS

    @property
    def expected_answer(self) -> Any:
        """The reference answer in original (unshuffled) index space."""
        if self.kind in OPTION_KINDS:
            return self.correct_index
        if self.kind == QuestionKind.TRUE_FALSE:
            return self.correct_bool
        if self.kind == QuestionKind.MATCHING:
            return tuple(range(len(self.pairs)))
        if self.kind == QuestionKind.ORDERING:
            return self.correct_order
        return frozenset(a.strip().lower() for a in self.accepted_answers)

    @classmethod
    def from_dict(cls, data: dict) -> "Question":
        """Create from a content definition."""
        try:
            kind = QuestionKind(data.get("type", QuestionKind.MULTIPLE_CHOICE.value))
        except ValueError:
            raise InvalidQuestionError(f"Unknown question type: {data.get('type')!r}")

        prompt = data.get("question")
        if not prompt:
            raise InvalidQuestionError("Question is missing its prompt text")

        common = {
            "kind": kind,
            "prompt": prompt,
            "explanation": data.get("explanation", ""),
            "hints": tuple(data.get("hints") or ()),
        }

        if kind in OPTION_KINDS:
            options = tuple(data.get("options") or ())
            correct = data.get("correct")
            if len(options) < 2:
                raise InvalidQuestionError(f"{kind.value} question needs at least two options")
            if not isinstance(correct, int) or isinstance(correct, bool):
                raise InvalidQuestionError(f"{kind.value} question needs an integer 'correct'")
            if not 0 <= correct < len(options):
                raise InvalidQuestionError(f"Correct option {correct} is out of range")
            return cls(
                scenario=data.get("scenario") if kind == QuestionKind.SCENARIO else None,
                options=options,
                correct_index=correct,
                **common,
            )

        if kind == QuestionKind.TRUE_FALSE:
            correct = data.get("correct")
            if not isinstance(correct, bool):
                raise InvalidQuestionError("true-false question needs a boolean 'correct'")
            return cls(correct_bool=correct, **common)

        if kind == QuestionKind.MATCHING:
            raw_pairs = data.get("pairs") or []
            if not raw_pairs:
                raise InvalidQuestionError("matching question needs pairs")
            try:
                pairs = tuple(MatchingPair(left=p["left"], right=p["right"]) for p in raw_pairs)
            except (KeyError, TypeError):
                raise InvalidQuestionError("matching pairs need 'left' and 'right'")
            return cls(pairs=pairs, **common)

        if kind == QuestionKind.ORDERING:
            items = tuple(data.get("items") or ())
            correct_order = tuple(data.get("correctOrder") or range(len(items)))
            if not items:
                raise InvalidQuestionError("ordering question needs items")
            if not all(isinstance(i, int) and not isinstance(i, bool) for i in correct_order):
                raise InvalidQuestionError("correctOrder must contain only item indices")
            if sorted(correct_order) != list(range(len(items))):
                raise InvalidQuestionError("correctOrder must be a permutation of the item indices")
            return cls(items=items, correct_order=correct_order, **common)

        answer = data.get("answer")
        accepted = tuple(data.get("acceptableAnswers") or ([answer] if answer else []))
        if not accepted:
            raise InvalidQuestionError("fill-blank question needs an answer")
        if not all(isinstance(a, str) for a in accepted) or not isinstance(answer or "", str):
            raise InvalidQuestionError("fill-blank answers must be text")
        return cls(answer=answer or accepted[0], accepted_answers=accepted, **common)


@dataclass(frozen=True)
class QuizDefinition:
    """All questions for one chapter plus the pass mark."""

    chapter_id: int
    questions: tuple[Question, ...]
    passing_score: int = DEFAULT_PASSING_SCORE
    title: str = ""

    def __len__(self) -> int:
        return len(self.questions)

    @classmethod
    def from_dict(cls, data: dict, chapter_id: int | None = None) -> "QuizDefinition":
        chapter = chapter_id if chapter_id is not None else data.get("chapter")
        if chapter is None:
            raise InvalidQuestionError("Quiz definition has no chapter number")

        questions = tuple(Question.from_dict(q) for q in data.get("questions") or [])
        if not questions:
            raise InvalidQuestionError(f"Quiz for chapter {chapter} has no questions")

        passing_score = int(data.get("passingScore", DEFAULT_PASSING_SCORE))
        if not 0 <= passing_score <= 100:
            raise InvalidQuestionError(f"Passing score {passing_score} is outside 0-100")

        return cls(
            chapter_id=int(chapter),
            questions=questions,
            passing_score=passing_score,
            title=data.get("title", ""),
        )


def shuffle_indices(n: int, rng: random.Random | None = None) -> list[int]:
    """
    Return a uniformly random permutation of ``range(n)``.

    Fisher-Yates: walk i from n-1 down to 1 and swap with a j drawn
    uniformly from [0, i].
    """
    rng = rng or random
    indices = list(range(n))
    for i in range(n - 1, 0, -1):
        j = rng.randint(0, i)
        indices[i], indices[j] = indices[j], indices[i]
    return indices


def chapter_slug(chapter_id: int) -> str:
    """Zero-padded chapter number used to key quiz content, e.g. ``07``."""
    return f"{int(chapter_id):02d}"
