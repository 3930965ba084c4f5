"""Standard Alexa intent handlers (Help, Exit, Repeat, Fallback, etc.)."""

import json
import logging

from ask_sdk_core.dispatch_components import AbstractRequestHandler
from ask_sdk_core.serialize import DefaultSerializer
from ask_sdk_core.utils import get_intent_name, is_intent_name, is_request_type
from ask_sdk_model import Response

from chapterquiz import data
from chapterquiz.handlers.helpers import (
    get_quiz_engine,
    load_session_state,
    render_feedback,
    render_question,
)
from chapterquiz.session import Phase

logger = logging.getLogger(__name__)


def _current_question_speech(handler_input) -> str | None:
    """The current question (or its feedback) if a quiz is running."""
    session_attr = handler_input.attributes_manager.session_attributes
    if session_attr.get("state") != data.STATE_QUIZ:
        return None
    state = load_session_state(handler_input)
    if state is None or state.phase != Phase.ACTIVE:
        return None
    quiz = get_quiz_engine(handler_input).quiz_for(state)
    if state.feedback_shown:
        return render_feedback(state, quiz)
    return render_question(state, quiz, session_attr)


class RepeatHandler(AbstractRequestHandler):
    """
    Handler for repeating the current question.

    During a quiz, repeats the current question.
    Outside a quiz, repeats the last response.
    """

    def can_handle(self, handler_input):
        return is_intent_name("AMAZON.RepeatIntent")(handler_input)

    def handle(self, handler_input):
        logger.info("In RepeatHandler")

        session_attr = handler_input.attributes_manager.session_attributes
        question_speech = _current_question_speech(handler_input)

        if question_speech:
            speech = data.REPEAT_QUESTION.format(question=question_speech)
            reprompt = question_speech
        elif "recent_response" in session_attr:
            cached_response_str = json.dumps(session_attr["recent_response"])
            return DefaultSerializer().deserialize(cached_response_str, Response)
        else:
            speech = data.HELP_MESSAGE
            reprompt = data.REPROMPT_GENERAL

        handler_input.response_builder.speak(speech).ask(reprompt)
        return handler_input.response_builder.response


class HelpIntentHandler(AbstractRequestHandler):
    """
    Handler for help intent.

    Provides context-appropriate help messages.
    """

    def can_handle(self, handler_input):
        return is_intent_name("AMAZON.HelpIntent")(handler_input)

    def handle(self, handler_input):
        logger.info("In HelpIntentHandler")

        question_speech = _current_question_speech(handler_input)
        if question_speech:
            speech = data.HELP_DURING_QUIZ + " " + question_speech
            reprompt = question_speech
        else:
            speech = data.HELP_MESSAGE
            reprompt = data.REPROMPT_GENERAL

        handler_input.response_builder.speak(speech).ask(reprompt)
        return handler_input.response_builder.response


class YesIntentHandler(AbstractRequestHandler):
    """Handler for "yes" outside a true-false question: pick another chapter."""

    def can_handle(self, handler_input):
        return is_intent_name("AMAZON.YesIntent")(handler_input)

    def handle(self, handler_input):
        logger.info("In YesIntentHandler")
        handler_input.response_builder.speak(data.ASK_CHAPTER).ask(data.ASK_CHAPTER)
        return handler_input.response_builder.response


class NoIntentHandler(AbstractRequestHandler):
    """Handler for "no" outside a true-false question: say goodbye."""

    def can_handle(self, handler_input):
        return is_intent_name("AMAZON.NoIntent")(handler_input)

    def handle(self, handler_input):
        logger.info("In NoIntentHandler")
        handler_input.response_builder.speak(data.EXIT_SKILL_MESSAGE).set_should_end_session(True)
        return handler_input.response_builder.response


class ExitIntentHandler(AbstractRequestHandler):
    """
    Handler for Cancel, Stop, and Pause intents.

    An unfinished attempt is discarded; only completed quizzes are recorded.
    """

    def can_handle(self, handler_input):
        return (
            is_intent_name("AMAZON.CancelIntent")(handler_input)
            or is_intent_name("AMAZON.StopIntent")(handler_input)
            or is_intent_name("AMAZON.PauseIntent")(handler_input)
        )

    def handle(self, handler_input):
        logger.info("In ExitIntentHandler")

        session_attr = handler_input.attributes_manager.session_attributes
        state = load_session_state(handler_input)

        if session_attr.get("state") == data.STATE_QUIZ and state is not None:
            speech = data.EXIT_DURING_QUIZ.format(
                answered=len(state.responses), total=state.question_count
            )
        else:
            speech = data.EXIT_SKILL_MESSAGE

        handler_input.response_builder.speak(speech).set_should_end_session(True)
        return handler_input.response_builder.response


class SessionEndedRequestHandler(AbstractRequestHandler):
    """Handler for session end."""

    def can_handle(self, handler_input):
        return is_request_type("SessionEndedRequest")(handler_input)

    def handle(self, handler_input):
        logger.info("In SessionEndedRequestHandler")
        logger.info(f"Session ended with reason: {handler_input.request_envelope.request.reason}")
        return handler_input.response_builder.response


class FallbackIntentHandler(AbstractRequestHandler):
    """
    Handler for fallback intent.

    Triggered when Alexa doesn't understand the user's input.
    """

    def can_handle(self, handler_input):
        return is_intent_name("AMAZON.FallbackIntent")(handler_input)

    def handle(self, handler_input):
        logger.info("In FallbackIntentHandler")

        question_speech = _current_question_speech(handler_input)
        if question_speech:
            speech = data.FALLBACK_MESSAGE + " " + question_speech
            reprompt = question_speech
        else:
            speech = data.FALLBACK_MESSAGE
            reprompt = data.REPROMPT_GENERAL

        handler_input.response_builder.speak(speech).ask(reprompt)
        return handler_input.response_builder.response


class IntentReflectorHandler(AbstractRequestHandler):
    """
    Handler for any intent no other handler took.

    Registered last so it only sees intents that arrive in the wrong
    state, for example an answer when no quiz is running.
    """

    def can_handle(self, handler_input):
        return is_request_type("IntentRequest")(handler_input)

    def handle(self, handler_input):
        intent_name = get_intent_name(handler_input)
        logger.info(f"In IntentReflectorHandler: {intent_name}")

        handler_input.response_builder.speak(data.NO_QUIZ_RUNNING).ask(data.REPROMPT_GENERAL)
        return handler_input.response_builder.response
