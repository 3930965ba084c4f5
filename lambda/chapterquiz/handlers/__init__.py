"""Alexa skill request handlers."""

from chapterquiz.handlers.launch import LaunchRequestHandler
from chapterquiz.handlers.progress import AchievementsHandler, ProgressHandler, ReviewHandler
from chapterquiz.handlers.quiz import (
    AnswerIntentHandler,
    HintHandler,
    NextQuestionHandler,
    PreviousQuestionHandler,
    RetryQuizHandler,
    StartQuizHandler,
    TrueFalseAnswerHandler,
)
from chapterquiz.handlers.standard import (
    ExitIntentHandler,
    FallbackIntentHandler,
    HelpIntentHandler,
    IntentReflectorHandler,
    NoIntentHandler,
    RepeatHandler,
    SessionEndedRequestHandler,
    YesIntentHandler,
)

__all__ = [
    "LaunchRequestHandler",
    "StartQuizHandler",
    "RetryQuizHandler",
    "AnswerIntentHandler",
    "TrueFalseAnswerHandler",
    "HintHandler",
    "NextQuestionHandler",
    "PreviousQuestionHandler",
    "ProgressHandler",
    "AchievementsHandler",
    "ReviewHandler",
    "RepeatHandler",
    "HelpIntentHandler",
    "YesIntentHandler",
    "NoIntentHandler",
    "ExitIntentHandler",
    "SessionEndedRequestHandler",
    "FallbackIntentHandler",
    "IntentReflectorHandler",
]
