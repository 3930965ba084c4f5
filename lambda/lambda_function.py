"""
Chapter Quiz Alexa Skill - Lambda Function.

This module configures and exports the Alexa skill lambda handler.
All request handlers are defined in chapterquiz.handlers.
"""

import logging

from ask_sdk_core.api_client import DefaultApiClient
from ask_sdk_core.skill_builder import CustomSkillBuilder
from ask_sdk_dynamodb.adapter import DynamoDbAdapter

from chapterquiz.config import get_settings
from chapterquiz.handlers import (
    AchievementsHandler,
    AnswerIntentHandler,
    ExitIntentHandler,
    FallbackIntentHandler,
    HelpIntentHandler,
    HintHandler,
    IntentReflectorHandler,
    LaunchRequestHandler,
    NextQuestionHandler,
    NoIntentHandler,
    PreviousQuestionHandler,
    ProgressHandler,
    RepeatHandler,
    RetryQuizHandler,
    ReviewHandler,
    SessionEndedRequestHandler,
    StartQuizHandler,
    TrueFalseAnswerHandler,
    YesIntentHandler,
)
from chapterquiz.interceptors import (
    CacheResponseForRepeatInterceptor,
    CatchAllExceptionHandler,
    DrainBackgroundChannelInterceptor,
    RequestLogger,
    ResponseLogger,
)

settings = get_settings()

# Configure logging
logging.getLogger().setLevel(settings.log_level)
logger = logging.getLogger(__name__)

# Persistence adapter for storing per-device data in DynamoDB
persistence_adapter = DynamoDbAdapter(
    table_name=settings.device_table_name,
    partition_key_name="id",
    attribute_name="attributes",
    create_table=False,
)

# Skill Builder with persistence adapter and an API client for the profile service
sb = CustomSkillBuilder(persistence_adapter=persistence_adapter, api_client=DefaultApiClient())

# Add request handlers (order matters - more specific handlers first)
sb.add_request_handler(LaunchRequestHandler())
sb.add_request_handler(StartQuizHandler())
sb.add_request_handler(RetryQuizHandler())
sb.add_request_handler(TrueFalseAnswerHandler())
sb.add_request_handler(AnswerIntentHandler())
sb.add_request_handler(HintHandler())
sb.add_request_handler(NextQuestionHandler())
sb.add_request_handler(PreviousQuestionHandler())
sb.add_request_handler(ProgressHandler())
sb.add_request_handler(AchievementsHandler())
sb.add_request_handler(ReviewHandler())
sb.add_request_handler(RepeatHandler())
sb.add_request_handler(HelpIntentHandler())
sb.add_request_handler(YesIntentHandler())
sb.add_request_handler(NoIntentHandler())
sb.add_request_handler(ExitIntentHandler())
sb.add_request_handler(SessionEndedRequestHandler())
sb.add_request_handler(FallbackIntentHandler())
sb.add_request_handler(IntentReflectorHandler())  # Must be last - catches any unhandled intents

# Add exception handler
sb.add_exception_handler(CatchAllExceptionHandler())

# Add interceptors
sb.add_global_request_interceptor(RequestLogger())
sb.add_global_response_interceptor(CacheResponseForRepeatInterceptor())
sb.add_global_response_interceptor(ResponseLogger())
sb.add_global_response_interceptor(DrainBackgroundChannelInterceptor())

# Expose the lambda handler
lambda_handler = sb.lambda_handler()
