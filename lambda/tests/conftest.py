"""
Shared fixtures for the Chapter Quiz tests.

The fakes mimic the parts of the ASK SDK handler input and of the remote
progress store that the engine touches, keeping everything in memory.
"""

import json
from collections.abc import Mapping

import boto3
import pytest
from testcontainers.localstack import LocalStackContainer

from chapterquiz.content import QuizContentSource
from chapterquiz.evaluator import FALSE_RESPONSE, TRUE_RESPONSE, to_display_option
from chapterquiz.merge import plan_identity_merge
from chapterquiz.persistence import PersistenceManager
from chapterquiz.questions import QuestionKind, QuizDefinition
from chapterquiz.remote import LinkResult, SyncResult

# ============================================================================
# Fake ASK SDK objects
# ============================================================================


class FakeAttributesManager:
    """An AttributesManager whose persistent attributes live in a dict."""

    def __init__(self, persistent_attributes: dict | None = None):
        self._persistent_attributes = persistent_attributes if persistent_attributes is not None else {}
        self.session_attributes: dict = {}
        self.save_count = 0
        self.saved: dict = {}

    @property
    def persistent_attributes(self) -> dict:
        return self._persistent_attributes

    @persistent_attributes.setter
    def persistent_attributes(self, value: dict) -> None:
        self._persistent_attributes = value

    def save_persistent_attributes(self) -> None:
        self.save_count += 1
        self.saved = json.loads(json.dumps(self._persistent_attributes))


class FakeHandlerInput:
    """A HandlerInput carrying only an attributes manager."""

    def __init__(self, persistent_attributes: dict | None = None):
        self.attributes_manager = FakeAttributesManager(persistent_attributes)


@pytest.fixture
def handler_input():
    return FakeHandlerInput()


@pytest.fixture
def make_handler_input():
    """Factory for handler inputs over given persistent attributes."""
    return FakeHandlerInput


@pytest.fixture
def pm(handler_input):
    return PersistenceManager(handler_input)


# ============================================================================
# Quiz content
# ============================================================================


def multiple_choice(number: int, correct: int = 0, hints: int = 2) -> dict:
    return {
        "type": "multiple-choice",
        "question": f"Question {number}?",
        "options": [f"Option {number}-{i}" for i in range(4)],
        "correct": correct,
        "explanation": f"Explanation {number}.",
        "hints": [f"Hint {number}-{i}" for i in range(hints)],
    }


MIXED_QUESTIONS = [
    multiple_choice(1, correct=2),
    {
        "type": "true-false",
        "question": "Rebuttal comes before the introduction.",
        "correct": False,
        "explanation": "The introduction comes first.",
        "hints": ["Think about where a speech starts."],
    },
    {
        "type": "scenario",
        "scenario": "Your opponent cites no evidence.",
        "question": "What do you do?",
        "options": ["Agree", "Point out the missing evidence", "Change topic"],
        "correct": 1,
        "explanation": "Challenge unsupported claims.",
    },
    {
        "type": "matching",
        "question": "Match the terms.",
        "pairs": [
            {"left": "Claim", "right": "What you assert"},
            {"left": "Evidence", "right": "Facts and examples"},
            {"left": "Impact", "right": "Why it matters"},
        ],
        "explanation": "Claim, evidence, impact.",
    },
    {
        "type": "ordering",
        "question": "Order the speech.",
        "items": ["Conclusion", "Introduction", "Arguments"],
        "correctOrder": [1, 2, 0],
        "explanation": "Introduce, argue, conclude.",
    },
    {
        "type": "fill-blank",
        "question": "The proposition being debated is the ____.",
        "answer": "motion",
        "acceptableAnswers": ["motion", "resolution"],
        "explanation": "Also called the resolution.",
    },
]


def ten_question_quiz(chapter: int = 1) -> dict:
    return {
        "chapter": chapter,
        "title": "Ten questions",
        "passingScore": 70,
        "questions": [multiple_choice(n, correct=n % 4) for n in range(1, 11)],
    }


def mixed_quiz(chapter: int = 2) -> dict:
    return {"chapter": chapter, "title": "Every kind", "passingScore": 70, "questions": MIXED_QUESTIONS}


@pytest.fixture
def ten_quiz() -> QuizDefinition:
    return QuizDefinition.from_dict(ten_question_quiz())


@pytest.fixture
def kinds_quiz() -> QuizDefinition:
    return QuizDefinition.from_dict(mixed_quiz())


@pytest.fixture
def quiz_dir(tmp_path):
    """A content directory with chapter 1 (ten questions) and chapter 2 (every kind)."""
    (tmp_path / "chapter-01.json").write_text(json.dumps(ten_question_quiz(1)), encoding="utf-8")
    (tmp_path / "chapter-02.json").write_text(json.dumps(mixed_quiz(2)), encoding="utf-8")
    return tmp_path


@pytest.fixture
def content(quiz_dir) -> QuizContentSource:
    return QuizContentSource(quiz_dir)


@pytest.fixture
def answer_key():
    """
    Build right or wrong responses for the current question of a session.

    Usage: answer_key(state, quiz, correct=True)
    """

    def build(state, quiz, correct=True):
        index = state.current_index
        question = quiz.questions[index]
        kind = question.kind

        if question.has_options:
            display = to_display_option(question.correct_index, state.option_order(index))
            return display if correct else (display + 1) % len(question.options)
        if kind == QuestionKind.TRUE_FALSE:
            right = TRUE_RESPONSE if question.correct_bool else FALSE_RESPONSE
            return right if correct else 1 - right
        if kind == QuestionKind.MATCHING:
            size = len(question.pairs)
            if correct:
                return {i: i for i in range(size)}
            return {i: (i + 1) % size for i in range(size)}
        if kind == QuestionKind.ORDERING:
            order = list(question.correct_order)
            return order if correct else list(reversed(order))
        return question.answer if correct else "definitely wrong"

    return build


# ============================================================================
# In-memory remote store
# ============================================================================


class InMemoryRemoteStore:
    """
    Stand-in for RemoteProgressStore keeping attempts in a dict.

    Applies the same "higher percentage wins, ties keep existing" rule.
    Set ``fail`` to an exception to make every call raise it.
    """

    def __init__(self):
        self.attempts: dict[str, list[dict]] = {}
        self.submissions = []
        self.fail: Exception | None = None

    def _check(self):
        if self.fail is not None:
            raise self.fail

    def best_percentages(self, identity: str) -> dict[int, int]:
        self._check()
        best: dict[int, int] = {}
        for attempt in self.attempts.get(identity, []):
            chapter = attempt["chapter_number"]
            best[chapter] = max(best.get(chapter, -1), attempt["percentage"])
        return best

    def submit_attempt(self, submission) -> str:
        self._check()
        submission.validate()
        self.submissions.append(submission)
        self.attempts.setdefault(submission.identity, []).append(
            {"chapter_number": submission.chapter_number, "percentage": submission.percentage}
        )
        return f"attempt-{len(self.submissions)}"

    def sync_progress(self, identity: str, progress: Mapping[str, Mapping]) -> SyncResult:
        self._check()
        best = self.best_percentages(identity)
        synced = skipped = 0
        for key, entry in progress.items():
            chapter, pct = int(key), int(entry["percentage"])
            if chapter in best and best[chapter] >= pct:
                skipped += 1
                continue
            self.attempts.setdefault(identity, []).append({"chapter_number": chapter, "percentage": pct})
            best[chapter] = pct
            synced += 1
        return SyncResult(synced=synced, skipped=skipped)

    def link_identity(self, anonymous_id: str, user_id: str, email=None) -> LinkResult:
        self._check()
        if anonymous_id not in self.attempts:
            return LinkResult(linked=False, merged=False, message="No anonymous progress found to link")
        anonymous = self.attempts.pop(anonymous_id)
        if user_id not in self.attempts:
            self.attempts[user_id] = anonymous
            return LinkResult(linked=True, merged=False, message="Linked")
        anonymous_best: dict[int, int] = {}
        for attempt in anonymous:
            chapter = attempt["chapter_number"]
            anonymous_best[chapter] = max(anonymous_best.get(chapter, -1), attempt["percentage"])
        for chapter in plan_identity_merge(anonymous_best, self.best_percentages(user_id)):
            self.attempts[user_id].append({"chapter_number": chapter, "percentage": anonymous_best[chapter]})
        return LinkResult(linked=True, merged=True, message="Merged")


@pytest.fixture
def remote_store():
    return InMemoryRemoteStore()


# ============================================================================
# LocalStack
# ============================================================================


@pytest.fixture(scope="session")
def localstack_container():
    """Start one LocalStack container for the whole run, or skip without Docker."""
    try:
        container = LocalStackContainer(image="localstack/localstack:3.0")
        container.start()
    except Exception as e:
        pytest.skip(f"LocalStack is not available: {e}")
    yield container
    container.stop()


@pytest.fixture(scope="session")
def dynamodb_resource(localstack_container):
    """A DynamoDB resource connected to LocalStack."""
    return boto3.resource(
        "dynamodb",
        endpoint_url=localstack_container.get_url(),
        region_name="us-east-1",
        aws_access_key_id="test",
        aws_secret_access_key="test",
    )
