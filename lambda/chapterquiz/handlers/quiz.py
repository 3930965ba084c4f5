"""Quiz handlers for starting quizzes, answering and navigating questions."""

import logging

from ask_sdk_core.dispatch_components import AbstractRequestHandler
from ask_sdk_core.utils import is_intent_name

from chapterquiz import data
from chapterquiz.errors import SessionStateError
from chapterquiz.handlers.helpers import (
    clear_session_state,
    get_quiz_engine,
    get_slot_value,
    load_session_state,
    parse_number,
    parse_response,
    render_available_chapters,
    render_completion,
    render_feedback,
    render_question,
    save_session_state,
)
from chapterquiz.questions import FIRST_CHAPTER, LAST_CHAPTER, QuestionKind
from chapterquiz.session import Phase, current_question, revealed_hints

logger = logging.getLogger(__name__)


def _in_quiz(handler_input) -> bool:
    session_attr = handler_input.attributes_manager.session_attributes
    return session_attr.get("state") == data.STATE_QUIZ


def _no_quiz_response(handler_input):
    handler_input.response_builder.speak(data.NO_QUIZ_RUNNING).ask(data.REPROMPT_GENERAL)
    return handler_input.response_builder.response


def _ask_current_question(handler_input, engine, state, prefix: str = ""):
    session_attr = handler_input.attributes_manager.session_attributes
    question_speech = render_question(state, engine.quiz_for(state), session_attr)
    handler_input.response_builder.speak(prefix + question_speech).ask(question_speech)
    return handler_input.response_builder.response


class StartQuizHandler(AbstractRequestHandler):
    """
    Handler for starting the quiz of a chapter.

    "Quiz me on chapter three" starts a fresh attempt with a new
    question and option order.
    """

    def can_handle(self, handler_input):
        return is_intent_name("StartQuizIntent")(handler_input)

    def handle(self, handler_input):
        chapter = parse_number(get_slot_value(handler_input, "chapter"))
        logger.info(f"StartQuizHandler: chapter={chapter}")

        if chapter is None:
            handler_input.response_builder.speak(data.ASK_CHAPTER).ask(data.ASK_CHAPTER)
            return handler_input.response_builder.response

        if not FIRST_CHAPTER <= chapter <= LAST_CHAPTER:
            handler_input.response_builder.speak(data.INVALID_CHAPTER).ask(data.ASK_CHAPTER)
            return handler_input.response_builder.response

        engine = get_quiz_engine(handler_input)
        state = engine.start(chapter)
        if state is None:
            speech = data.QUIZ_NOT_AVAILABLE.format(chapter=chapter)
            speech += render_available_chapters(engine.available_chapters())
            handler_input.response_builder.speak(speech).ask(data.ASK_CHAPTER)
            return handler_input.response_builder.response

        clear_session_state(handler_input)
        save_session_state(handler_input, state)
        intro = data.START_QUIZ_MESSAGE.format(chapter=chapter, count=state.question_count)
        return _ask_current_question(handler_input, engine, state, intro)


class RetryQuizHandler(AbstractRequestHandler):
    """Handler for retrying the current chapter from the beginning."""

    def can_handle(self, handler_input):
        return is_intent_name("RetryIntent")(handler_input) or is_intent_name(
            "AMAZON.StartOverIntent"
        )(handler_input)

    def handle(self, handler_input):
        logger.info("In RetryQuizHandler")

        state = load_session_state(handler_input)
        if state is None:
            return _no_quiz_response(handler_input)

        engine = get_quiz_engine(handler_input)
        state = engine.retry(state)
        clear_session_state(handler_input)
        save_session_state(handler_input, state)
        intro = data.START_QUIZ_MESSAGE.format(chapter=state.chapter_id, count=state.question_count)
        return _ask_current_question(handler_input, engine, state, intro)


class AnswerIntentHandler(AbstractRequestHandler):
    """
    Handler for answers during a quiz.

    Accepts option numbers, true/false, number sequences for matching
    and ordering questions, and free text for fill-in-the-blank.
    """

    def can_handle(self, handler_input):
        return is_intent_name("AnswerIntent")(handler_input) and _in_quiz(handler_input)

    def handle(self, handler_input):
        number = get_slot_value(handler_input, "number")
        text = get_slot_value(handler_input, "text")
        logger.info(f"AnswerIntentHandler: number={number!r}, text={text!r}")
        return answer_current_question(handler_input, number, text)


class TrueFalseAnswerHandler(AbstractRequestHandler):
    """Handler for yes/no as the answer to a true-false question."""

    def can_handle(self, handler_input):
        if not _in_quiz(handler_input):
            return False
        if not (
            is_intent_name("AMAZON.YesIntent")(handler_input)
            or is_intent_name("AMAZON.NoIntent")(handler_input)
        ):
            return False
        state = load_session_state(handler_input)
        if state is None or state.phase != Phase.ACTIVE or state.feedback_shown:
            return False
        engine = get_quiz_engine(handler_input)
        return current_question(state, engine.quiz_for(state)).kind == QuestionKind.TRUE_FALSE

    def handle(self, handler_input):
        text = "yes" if is_intent_name("AMAZON.YesIntent")(handler_input) else "no"
        logger.info(f"TrueFalseAnswerHandler: {text}")
        return answer_current_question(handler_input, None, text)


def answer_current_question(handler_input, number: str | None, text: str | None):
    """Record a spoken answer and speak the feedback."""
    state = load_session_state(handler_input)
    if state is None or state.phase != Phase.ACTIVE:
        return _no_quiz_response(handler_input)

    engine = get_quiz_engine(handler_input)
    if state.feedback_shown:
        handler_input.response_builder.speak(data.FEEDBACK_SHOWING).ask(data.REPROMPT_CONTINUE)
        return handler_input.response_builder.response

    quiz = engine.quiz_for(state)
    session_attr = handler_input.attributes_manager.session_attributes
    response = parse_response(current_question(state, quiz), state, session_attr, number, text)
    if response is None:
        return _ask_current_question(handler_input, engine, state, data.NOT_UNDERSTOOD_DURING_QUIZ)

    state = engine.answer(state, response)
    save_session_state(handler_input, state)

    if state.feedback_shown:
        speech = render_feedback(state, quiz)
    elif state.is_last_question:
        speech = data.ANSWER_RECORDED + data.CONTINUE_PROMPT_LAST
    else:
        speech = data.ANSWER_RECORDED + data.CONTINUE_PROMPT
    handler_input.response_builder.speak(speech).ask(data.REPROMPT_CONTINUE)
    return handler_input.response_builder.response


class HintHandler(AbstractRequestHandler):
    """Handler for revealing the next hint of the current question."""

    def can_handle(self, handler_input):
        return is_intent_name("HintIntent")(handler_input) and _in_quiz(handler_input)

    def handle(self, handler_input):
        logger.info("In HintHandler")

        state = load_session_state(handler_input)
        if state is None or state.phase != Phase.ACTIVE:
            return _no_quiz_response(handler_input)
        if state.feedback_shown:
            handler_input.response_builder.speak(data.FEEDBACK_SHOWING).ask(data.REPROMPT_CONTINUE)
            return handler_input.response_builder.response

        engine = get_quiz_engine(handler_input)
        try:
            state = engine.hint(state)
        except SessionStateError:
            return _ask_current_question(handler_input, engine, state, data.NO_HINTS_LEFT)

        save_session_state(handler_input, state)
        hint = revealed_hints(state, engine.quiz_for(state))[-1]
        speech = data.HINT_MESSAGE.format(hint=hint)
        if state.total_hints_used == 1:
            speech += data.HINT_PENALTY_NOTE
        handler_input.response_builder.speak(speech + data.REPROMPT_QUIZ).ask(data.REPROMPT_QUIZ)
        return handler_input.response_builder.response


class NextQuestionHandler(AbstractRequestHandler):
    """
    Handler for moving on.

    Dismisses the feedback after an answer, or moves past an answered
    question. After the last question the results are spoken.
    """

    def can_handle(self, handler_input):
        return (
            is_intent_name("AMAZON.NextIntent")(handler_input)
            or is_intent_name("ContinueIntent")(handler_input)
        ) and _in_quiz(handler_input)

    def handle(self, handler_input):
        logger.info("In NextQuestionHandler")

        state = load_session_state(handler_input)
        if state is None or state.phase != Phase.ACTIVE:
            return _no_quiz_response(handler_input)

        engine = get_quiz_engine(handler_input)
        try:
            if state.feedback_shown:
                state, summary = engine.continue_(state)
            else:
                state, summary = engine.next_question(state)
        except SessionStateError:
            return _ask_current_question(handler_input, engine, state, data.ANSWER_FIRST)

        save_session_state(handler_input, state)

        if summary is not None:
            speech = render_completion(summary, engine.quiz_for(state))
            handler_input.response_builder.speak(speech).ask(data.REPROMPT_AFTER_QUIZ)
            return handler_input.response_builder.response

        if state.feedback_shown:
            quiz = engine.quiz_for(state)
            handler_input.response_builder.speak(render_feedback(state, quiz)).ask(data.REPROMPT_CONTINUE)
            return handler_input.response_builder.response

        return _ask_current_question(handler_input, engine, state)


class PreviousQuestionHandler(AbstractRequestHandler):
    """Handler for going back one question."""

    def can_handle(self, handler_input):
        return is_intent_name("AMAZON.PreviousIntent")(handler_input) and _in_quiz(handler_input)

    def handle(self, handler_input):
        logger.info("In PreviousQuestionHandler")

        state = load_session_state(handler_input)
        if state is None or state.phase != Phase.ACTIVE:
            return _no_quiz_response(handler_input)
        if state.feedback_shown:
            handler_input.response_builder.speak(data.FEEDBACK_SHOWING).ask(data.REPROMPT_CONTINUE)
            return handler_input.response_builder.response

        engine = get_quiz_engine(handler_input)
        try:
            state = engine.prev(state)
        except SessionStateError:
            return _ask_current_question(handler_input, engine, state, data.ALREADY_FIRST_QUESTION)

        save_session_state(handler_input, state)
        return _ask_current_question(handler_input, engine, state, data.PREVIOUS_QUESTION)
