"""Launch request handler."""

import logging

from ask_sdk_core.dispatch_components import AbstractRequestHandler
from ask_sdk_core.utils import is_request_type
from ask_sdk_model.services import ServiceException

from chapterquiz import data
from chapterquiz.handlers.helpers import clear_session_state, get_quiz_engine, get_reconciler
from chapterquiz.persistence import PersistenceManager, get_persistence_manager
from chapterquiz.reconcile import Reconciler

logger = logging.getLogger(__name__)


def get_recognized_person(handler_input) -> str | None:
    """Person id of the recognised speaker, if Alexa identified one."""
    person = handler_input.request_envelope.context.system.person
    person_id = getattr(person, "person_id", None) if person else None
    return person_id if isinstance(person_id, str) and person_id else None


def fetch_profile_email(handler_input) -> str | None:
    """
    Email from the customer profile API.

    Best effort: without the permission (or without a service client)
    there is simply no email.
    """
    factory = handler_input.service_client_factory
    if factory is None:
        return None
    try:
        email = factory.get_ups_service().get_profile_email()
    except (ServiceException, ValueError) as e:
        logger.info(f"Profile email not available: {e}")
        return None
    return email if isinstance(email, str) and email else None


def link_recognized_person(
    handler_input, pm: PersistenceManager, reconciler: Reconciler, person_id: str
) -> bool:
    """
    Merge this device's anonymous record into the recognised person's record.

    Runs once per device and person. The link is only remembered when the
    remote store answered, so a failed merge is tried again next launch.
    """
    if pm.get_linked_identity() == person_id:
        return False

    email = fetch_profile_email(handler_input)
    if email:
        pm.set_email(email)

    result = reconciler.merge_identity(pm.get_anonymous_id(), person_id, pm.get_email())
    if result is None:
        return False
    pm.set_linked_identity(person_id)
    return True


class LaunchRequestHandler(AbstractRequestHandler):
    """
    Handler for skill launch.

    Greets first-time and returning users, mentions chapters due for
    review, and starts the background reconciliation with the remote
    progress store.
    """

    def can_handle(self, handler_input):
        return is_request_type("LaunchRequest")(handler_input)

    def handle(self, handler_input):
        logger.info("In LaunchRequestHandler")

        pm = get_persistence_manager(handler_input)
        engine = get_quiz_engine(handler_input)
        clear_session_state(handler_input)

        speech = ""
        reconciler = get_reconciler()
        if reconciler is not None:
            person_id = get_recognized_person(handler_input)
            if person_id and link_recognized_person(handler_input, pm, reconciler, person_id):
                speech += data.WELCOME_SIGNED_IN
            reconciler.schedule_bulk_sync(engine.reporting_identity(), engine.ledger.snapshot())

        if pm.is_first_time_user():
            speech += data.WELCOME_MESSAGE_FIRST_TIME
            reprompt = data.ASK_CHAPTER
        else:
            due = engine.due_reviews()
            if len(due) == 1:
                speech += data.WELCOME_REVIEW_DUE.format(chapter=due[0].chapter_id)
            elif due:
                speech += data.WELCOME_REVIEWS_DUE.format(count=len(due), chapter=due[0].chapter_id)
            speech += data.WELCOME_MESSAGE_RETURNING.format(completed=len(engine.ledger.all()))
            reprompt = data.REPROMPT_GENERAL

        pm.commit()
        handler_input.response_builder.speak(speech).ask(reprompt)
        return handler_input.response_builder.response
