"""Progress, achievement and review reporting handlers."""

import logging

from ask_sdk_core.dispatch_components import AbstractRequestHandler
from ask_sdk_core.utils import is_intent_name

from chapterquiz import data
from chapterquiz.achievements import ACHIEVEMENT_INFO, mastered_chapter_count
from chapterquiz.handlers.helpers import get_quiz_engine, get_slot_value, parse_number

logger = logging.getLogger(__name__)


class ProgressHandler(AbstractRequestHandler):
    """
    Handler for reporting the user's learning progress.

    Responds to "How am I doing?" with an overview, or to
    "How did I do on chapter three?" with that chapter's record.
    """

    def can_handle(self, handler_input):
        return is_intent_name("ProgressIntent")(handler_input)

    def handle(self, handler_input):
        logger.info("In ProgressHandler")

        engine = get_quiz_engine(handler_input)
        progress = engine.ledger.all()
        chapter = parse_number(get_slot_value(handler_input, "chapter"))

        if chapter is not None:
            entry = progress.get(chapter)
            if entry is None:
                speech = data.PROGRESS_CHAPTER_NONE.format(chapter=chapter)
            else:
                speech = data.PROGRESS_CHAPTER.format(
                    chapter=chapter,
                    best=entry.best_score,
                    total=entry.total,
                    percentage=entry.percentage,
                    attempts=entry.attempts,
                    average=entry.average_score,
                )
        elif not progress:
            speech = data.PROGRESS_NO_DATA
        else:
            speech = data.PROGRESS_SUMMARY.format(
                completed=len(progress), mastered=mastered_chapter_count(progress)
            )
            streak = engine.achievements.ledger.current_streak
            if streak > 1:
                speech += data.PROGRESS_STREAK.format(streak=streak)

        speech += " " + data.REPROMPT_GENERAL
        handler_input.response_builder.speak(speech).ask(data.REPROMPT_GENERAL)
        return handler_input.response_builder.response


class AchievementsHandler(AbstractRequestHandler):
    """Handler for listing unlocked achievements."""

    def can_handle(self, handler_input):
        return is_intent_name("AchievementsIntent")(handler_input)

    def handle(self, handler_input):
        logger.info("In AchievementsHandler")

        ledger = get_quiz_engine(handler_input).achievements.ledger
        titles = [
            ACHIEVEMENT_INFO[achievement_id]["title"]
            for achievement_id in ledger.unlocked
            if achievement_id in ACHIEVEMENT_INFO
        ]
        if titles:
            speech = data.ACHIEVEMENTS_LIST.format(titles=", ".join(titles))
        else:
            speech = data.ACHIEVEMENTS_NONE

        speech += data.REPROMPT_GENERAL
        handler_input.response_builder.speak(speech).ask(data.REPROMPT_GENERAL)
        return handler_input.response_builder.response


class ReviewHandler(AbstractRequestHandler):
    """Handler for "What should I review?"."""

    def can_handle(self, handler_input):
        return is_intent_name("ReviewIntent")(handler_input)

    def handle(self, handler_input):
        logger.info("In ReviewHandler")

        due = get_quiz_engine(handler_input).due_reviews()
        if due:
            chapters = ", ".join(str(entry.chapter_id) for entry in due)
            speech = data.REVIEWS_DUE.format(chapters=chapters)
        else:
            speech = data.REVIEWS_NONE

        speech += data.REPROMPT_GENERAL
        handler_input.response_builder.speak(speech).ask(data.REPROMPT_GENERAL)
        return handler_input.response_builder.response
