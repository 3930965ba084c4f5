"""Quiz content loading."""

import json
import logging
from pathlib import Path

from chapterquiz.questions import QuizDefinition, chapter_slug

logger = logging.getLogger(__name__)


class QuizContentSource:
    """
    Read-only source of chapter quizzes.

    Quizzes live in ``chapter-NN.json`` files under ``base_dir``. A chapter
    without a file simply has no quiz.
    """

    def __init__(self, base_dir: Path):
        self._base_dir = Path(base_dir)
        self._cache: dict[int, QuizDefinition | None] = {}

    def path_for(self, chapter_id: int) -> Path:
        return self._base_dir / f"chapter-{chapter_slug(chapter_id)}.json"

    def load(self, chapter_id: int) -> QuizDefinition | None:
        """
        Load the quiz for a chapter.

        Returns:
            The QuizDefinition, or None if the chapter has no usable quiz.
        """
        if chapter_id in self._cache:
            return self._cache[chapter_id]

        path = self.path_for(chapter_id)
        quiz = None
        if not path.is_file():
            logger.info(f"No quiz available for chapter {chapter_id}")
        else:
            try:
                with path.open(encoding="utf-8") as f:
                    quiz = QuizDefinition.from_dict(json.load(f), chapter_id=chapter_id)
            except (OSError, TypeError, ValueError) as e:
                # InvalidQuestionError is a ValueError; TypeError covers mistyped fields
                logger.error(f"Failed to load quiz for chapter {chapter_id} from {path}: {e}")

        self._cache[chapter_id] = quiz
        return quiz

    def available_chapters(self) -> list[int]:
        chapters = []
        for path in sorted(self._base_dir.glob("chapter-*.json")):
            try:
                chapters.append(int(path.stem.split("-", 1)[1]))
            except (IndexError, ValueError):
                continue
        return chapters
