"""
Device-local persistence for the Chapter Quiz skill.

This module wraps the ASK SDK persistent attributes (a DynamoDB item per
device via the DynamoDB persistence adapter) as a small key-value store
with get/set/remove on JSON values. It holds four independent records:
- the progress ledger (best score per chapter)
- the achievement ledger
- the spaced-repetition ledger
- the anonymous identifier

Each record is stored as a JSON string wrapped in a versioned envelope,
read in full and written in full on every change. Unreadable records are
logged and treated as empty; they never raise to the caller.
"""

import json
import logging
import uuid
from typing import TYPE_CHECKING, Any

from chapterquiz.models import AchievementLedger, ChapterProgress, SpacedRepetitionEntry

if TYPE_CHECKING:
    from ask_sdk_core.handler_input import HandlerInput

logger = logging.getLogger(__name__)

# Attribute keys in the persistent store
ATTR_PROGRESS = "quiz_progress"
ATTR_ACHIEVEMENTS = "achievements"
ATTR_SPACED_REPETITION = "spaced_repetition"
ATTR_ANONYMOUS_ID = "anonymous_id"
ATTR_EMAIL = "email"
ATTR_LINKED_IDENTITY = "linked_identity"

# Version written into every record envelope
RECORD_VERSION = 1

_MISSING = object()


class PersistenceManager:
    """
    Manages the per-device records of the quiz skill.

    Changes are kept in memory and written to DynamoDB by commit(),
    which handlers call once the request's state changes are complete.
    """

    def __init__(self, handler_input: "HandlerInput"):
        """
        Initialize the persistence manager.

        Args:
            handler_input: The ASK SDK handler input containing
                          the attributes manager.
        """
        self._handler_input = handler_input
        self._attributes_manager = handler_input.attributes_manager
        self._persistent_attrs: dict | None = None
        self._dirty = False  # Track if we have unsaved changes

    def _load_persistent_attributes(self) -> dict:
        """Lazy-load persistent attributes from DynamoDB."""
        if self._persistent_attrs is None:
            self._persistent_attrs = self._attributes_manager.persistent_attributes
        return self._persistent_attrs

    # Generic key-value access

    def get(self, key: str, default: Any = None) -> Any:
        """
        Read a JSON record.

        Returns ``default`` when the record is absent, unparseable, or
        written by a newer record version.
        """
        attrs = self._load_persistent_attributes()
        raw = attrs.get(key, _MISSING)
        if raw is _MISSING or raw is None:
            return default

        try:
            envelope = json.loads(raw) if isinstance(raw, str) else raw
        except (TypeError, ValueError):
            logger.warning(f"Discarding malformed record '{key}'")
            return default

        # Records written before envelopes existed hold the bare value
        if not isinstance(envelope, dict) or "version" not in envelope or "data" not in envelope:
            return envelope

        version = envelope["version"]
        if not isinstance(version, int) or version > RECORD_VERSION:
            logger.warning(f"Ignoring record '{key}' with unsupported version {version!r}")
            return default
        return envelope["data"]

    def set(self, key: str, value: Any) -> None:
        """Replace a JSON record in full."""
        attrs = self._load_persistent_attributes()
        attrs[key] = json.dumps({"version": RECORD_VERSION, "data": value})
        self._dirty = True

    def remove(self, key: str) -> None:
        attrs = self._load_persistent_attributes()
        if key in attrs:
            del attrs[key]
            self._dirty = True

    # Typed records

    def get_progress(self) -> dict[int, ChapterProgress]:
        """
        Load the progress ledger.

        Returns:
            Dictionary mapping chapter id to ChapterProgress.
        """
        data = self.get(ATTR_PROGRESS, {})
        if not isinstance(data, dict):
            logger.warning("Progress ledger has an unexpected shape; starting empty")
            return {}

        result = {}
        for chapter_key, entry in data.items():
            try:
                entry = {"chapter_id": int(chapter_key), **entry}
                progress = ChapterProgress.from_dict(entry)
            except (KeyError, TypeError, ValueError):
                logger.warning(f"Skipping malformed progress entry for chapter {chapter_key!r}")
                continue
            result[progress.chapter_id] = progress
        return result

    def save_progress(self, progress: dict[int, ChapterProgress]) -> None:
        self.set(ATTR_PROGRESS, {str(cid): p.to_dict() for cid, p in progress.items()})

    def get_achievements(self) -> AchievementLedger:
        data = self.get(ATTR_ACHIEVEMENTS, {})
        try:
            return AchievementLedger.from_dict(data)
        except (AttributeError, TypeError, ValueError):
            logger.warning("Achievement ledger is malformed; starting empty")
            return AchievementLedger()

    def save_achievements(self, ledger: AchievementLedger) -> None:
        self.set(ATTR_ACHIEVEMENTS, ledger.to_dict())

    def get_review_schedule(self) -> dict[int, SpacedRepetitionEntry]:
        data = self.get(ATTR_SPACED_REPETITION, {})
        if not isinstance(data, dict):
            return {}

        result = {}
        for chapter_key, entry in data.items():
            try:
                item = SpacedRepetitionEntry.from_dict({"chapter_id": int(chapter_key), **entry})
            except (KeyError, TypeError, ValueError):
                logger.warning(f"Skipping malformed review entry for chapter {chapter_key!r}")
                continue
            result[item.chapter_id] = item
        return result

    def save_review_schedule(self, schedule: dict[int, SpacedRepetitionEntry]) -> None:
        self.set(ATTR_SPACED_REPETITION, {str(cid): e.to_dict() for cid, e in schedule.items()})

    def get_anonymous_id(self) -> str:
        """
        Return this device's anonymous identifier, minting it on first use.

        The identifier is never regenerated once stored.
        """
        anonymous_id = self.get(ATTR_ANONYMOUS_ID)
        if isinstance(anonymous_id, str) and anonymous_id:
            return anonymous_id

        anonymous_id = f"anon_{uuid.uuid4().hex}"
        self.set(ATTR_ANONYMOUS_ID, anonymous_id)
        logger.info(f"Minted anonymous id {anonymous_id}")
        return anonymous_id

    def get_email(self) -> str | None:
        email = self.get(ATTR_EMAIL)
        return email if isinstance(email, str) else None

    def set_email(self, email: str) -> None:
        self.set(ATTR_EMAIL, email.strip().lower())

    def get_linked_identity(self) -> str | None:
        identity = self.get(ATTR_LINKED_IDENTITY)
        return identity if isinstance(identity, str) else None

    def set_linked_identity(self, identity: str) -> None:
        self.set(ATTR_LINKED_IDENTITY, identity)

    def commit(self) -> None:
        """
        Commit all pending changes to DynamoDB.

        Should be called at the end of request handling to
        persist any changes made during the request.
        """
        if self._dirty and self._persistent_attrs is not None:
            self._attributes_manager.persistent_attributes = self._persistent_attrs
            self._attributes_manager.save_persistent_attributes()
            self._dirty = False

    def is_first_time_user(self) -> bool:
        """True if no quiz has been recorded on this device yet."""
        attrs = self._load_persistent_attributes()
        return ATTR_PROGRESS not in attrs


def get_persistence_manager(handler_input: "HandlerInput") -> PersistenceManager:
    """
    Return the PersistenceManager for this request.

    The manager is cached on the handler input so every component in a
    request shares one view of the records and one commit.
    """
    pm = getattr(handler_input, "_chapterquiz_pm", None)
    if not isinstance(pm, PersistenceManager):
        pm = PersistenceManager(handler_input)
        handler_input._chapterquiz_pm = pm
    return pm
