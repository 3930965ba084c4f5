"""
Reconciliation between the device ledger and the remote store.

Two merges keep the remote store in step with the device:
- bulk sync: push every chapter whose local best beats the remote best
- identity merge: when a recognised account appears, absorb the
  device's anonymous record into the account's record

Both are best effort. The device ledger stays authoritative: a failed
remote call is logged and dropped, never retried, and never undoes or
blocks a local change.
"""

import logging
from collections import deque
from collections.abc import Callable, Mapping
from typing import Any

from chapterquiz.errors import InvalidInputError, RemoteStoreError
from chapterquiz.merge import plan_bulk_sync
from chapterquiz.models import AttemptResult
from chapterquiz.remote import AttemptSubmission, LinkResult, RemoteProgressStore, SyncResult

logger = logging.getLogger(__name__)


class BackgroundChannel:
    """
    Fire-and-forget queue for remote calls.

    Contract:
    - submit() only enqueues; it never runs the task and never raises
    - drain() runs every queued task once, in submission order
    - a failing task is logged and dropped: no retry, no backpressure,
      no cancellation of queued or running tasks

    The skill drains the channel after the response for a request has
    been built, so nothing in the quiz flow waits on the remote store.
    """

    def __init__(self):
        self._tasks: deque[tuple[str, Callable[[], Any]]] = deque()

    def __len__(self) -> int:
        return len(self._tasks)

    def submit(self, description: str, task: Callable[[], Any]) -> None:
        self._tasks.append((description, task))

    def drain(self) -> int:
        """Run all queued tasks. Returns how many completed without error."""
        completed = 0
        while self._tasks:
            description, task = self._tasks.popleft()
            try:
                task()
            except Exception as e:
                logger.warning(f"Background task '{description}' failed: {e}", exc_info=True)
                continue
            completed += 1
        return completed


def best_percentages(snapshot: Mapping[str, Mapping]) -> dict[int, int]:
    """Chapter number to best percentage for a ledger snapshot."""
    result = {}
    for chapter_key, entry in snapshot.items():
        try:
            result[int(chapter_key)] = int(entry["percentage"])
        except (KeyError, TypeError, ValueError):
            logger.debug(f"Ignoring malformed ledger entry {chapter_key!r}")
    return result


class Reconciler:
    """Client side of the reconciliation protocol."""

    def __init__(self, remote: RemoteProgressStore, channel: BackgroundChannel | None = None):
        self._remote = remote
        self._channel = channel or BackgroundChannel()
        self._bulk_synced: set[str] = set()

    @property
    def channel(self) -> BackgroundChannel:
        return self._channel

    def submit_attempt(self, anonymous_id: str, result: AttemptResult, email: str | None = None) -> None:
        """Queue one completed attempt for the remote store."""
        submission = AttemptSubmission.from_result(anonymous_id, result, email)
        self._channel.submit(
            f"submit chapter {result.chapter_id} for {anonymous_id}",
            lambda: self._remote.submit_attempt(submission),
        )

    def bulk_sync(self, anonymous_id: str, snapshot: Mapping[str, Mapping]) -> SyncResult:
        """
        Push every chapter whose local best beats the remote best.

        Running it again with no new local attempts submits nothing.

        Raises:
            RemoteStoreError: If the remote store cannot be read or written.
        """
        local_best = best_percentages(snapshot)
        remote_best = self._remote.best_percentages(anonymous_id)
        chapters = plan_bulk_sync(local_best, remote_best)
        if not chapters:
            logger.info(f"Bulk sync for {anonymous_id}: remote already up to date")
            return SyncResult(synced=0, skipped=len(local_best))

        outcome = self._remote.sync_progress(
            anonymous_id, {str(chapter): snapshot[str(chapter)] for chapter in chapters}
        )
        return SyncResult(synced=outcome.synced, skipped=len(local_best) - outcome.synced)

    def schedule_bulk_sync(self, anonymous_id: str, snapshot: Mapping[str, Mapping]) -> bool:
        """
        Queue a bulk sync, at most once per anonymous id for this process.

        Returns:
            True if a sync was queued.
        """
        if not snapshot or anonymous_id in self._bulk_synced:
            return False
        self._bulk_synced.add(anonymous_id)
        frozen = {key: dict(entry) for key, entry in snapshot.items()}
        self._channel.submit(
            f"bulk sync for {anonymous_id}",
            lambda: self.bulk_sync(anonymous_id, frozen),
        )
        return True

    def merge_identity(self, anonymous_id: str, user_id: str, email: str | None = None) -> LinkResult | None:
        """
        Absorb the anonymous record into the account. Called once at sign-in.

        Returns:
            The LinkResult, or None if the remote store could not be reached.
        """
        try:
            result = self._remote.link_identity(anonymous_id, user_id, email)
        except (RemoteStoreError, InvalidInputError) as e:
            logger.warning(f"Identity merge {anonymous_id} -> {user_id} failed: {e}")
            return None
        logger.info(f"Identity merge {anonymous_id} -> {user_id}: {result.message}")
        return result
