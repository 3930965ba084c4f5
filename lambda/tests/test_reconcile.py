"""
Tests for the reconciliation client and its background channel.
"""

import logging
from datetime import datetime

import pytest

from chapterquiz.errors import RemoteStoreError
from chapterquiz.models import AttemptResult
from chapterquiz.reconcile import BackgroundChannel, Reconciler, best_percentages


def entry(pct: int, total: int = 10) -> dict:
    return {"best_score": pct * total // 100, "total": total, "percentage": pct}


@pytest.fixture
def reconciler(remote_store):
    return Reconciler(remote_store)


class TestBackgroundChannel:
    """Tests for the fire-and-forget queue."""

    def test_submit_does_not_run_task(self):
        channel = BackgroundChannel()
        calls = []

        channel.submit("task", lambda: calls.append(1))

        assert calls == []
        assert len(channel) == 1

    def test_drain_runs_in_submission_order(self):
        channel = BackgroundChannel()
        calls = []
        for n in range(3):
            channel.submit(f"task {n}", lambda n=n: calls.append(n))

        assert channel.drain() == 3
        assert calls == [0, 1, 2]
        assert len(channel) == 0

    def test_failed_task_is_dropped_and_logged(self, caplog):
        channel = BackgroundChannel()
        calls = []

        def boom():
            raise RemoteStoreError("unreachable")

        channel.submit("first", boom)
        channel.submit("second", lambda: calls.append("second"))

        with caplog.at_level(logging.WARNING):
            completed = channel.drain()

        assert completed == 1
        assert calls == ["second"]
        assert "first" in caplog.text
        assert channel.drain() == 0


def test_best_percentages_ignores_malformed_entries():
    snapshot = {"1": entry(80), "2": {"total": 10}, "x": entry(50), "3": None}

    assert best_percentages(snapshot) == {1: 80}


class TestBulkSync:
    """Tests for pushing the device ledger to the remote store."""

    def test_only_better_chapters_are_sent(self, reconciler, remote_store):
        remote_store.attempts["anon_1"] = [
            {"chapter_number": 1, "percentage": 90},
            {"chapter_number": 2, "percentage": 40},
        ]

        result = reconciler.bulk_sync("anon_1", {"1": entry(80), "2": entry(60), "3": entry(70)})

        assert (result.synced, result.skipped) == (2, 1)
        assert remote_store.best_percentages("anon_1") == {1: 90, 2: 60, 3: 70}

    def test_second_run_sends_nothing(self, reconciler, remote_store):
        snapshot = {"1": entry(80), "2": entry(60)}
        reconciler.bulk_sync("anon_1", snapshot)
        stored = len(remote_store.attempts["anon_1"])

        result = reconciler.bulk_sync("anon_1", snapshot)

        assert result.synced == 0
        assert len(remote_store.attempts["anon_1"]) == stored

    def test_remote_failure_propagates(self, reconciler, remote_store):
        remote_store.fail = RemoteStoreError("down")

        with pytest.raises(RemoteStoreError):
            reconciler.bulk_sync("anon_1", {"1": entry(80)})


class TestScheduleBulkSync:
    """Tests for queueing the bulk sync once per identity."""

    def test_queued_once_per_identity(self, reconciler, remote_store):
        assert reconciler.schedule_bulk_sync("anon_1", {"1": entry(80)})
        assert not reconciler.schedule_bulk_sync("anon_1", {"1": entry(90)})
        assert reconciler.schedule_bulk_sync("anon_2", {"1": entry(70)})

        assert remote_store.attempts == {}
        assert reconciler.channel.drain() == 2
        assert remote_store.best_percentages("anon_1") == {1: 80}
        assert remote_store.best_percentages("anon_2") == {1: 70}

    def test_empty_ledger_is_not_queued(self, reconciler):
        assert not reconciler.schedule_bulk_sync("anon_1", {})
        assert len(reconciler.channel) == 0

    def test_snapshot_is_copied_when_queued(self, reconciler, remote_store):
        snapshot = {"1": entry(80)}
        reconciler.schedule_bulk_sync("anon_1", snapshot)
        snapshot["1"]["percentage"] = 10

        reconciler.channel.drain()

        assert remote_store.best_percentages("anon_1") == {1: 80}

    def test_failure_does_not_escape_drain(self, reconciler, remote_store):
        remote_store.fail = RemoteStoreError("down")
        reconciler.schedule_bulk_sync("anon_1", {"1": entry(80)})

        assert reconciler.channel.drain() == 0


class TestSubmitAttempt:
    """Tests for queueing completed attempts."""

    def test_attempt_waits_for_drain(self, reconciler, remote_store):
        result = AttemptResult(
            chapter_id=4, correct=7, total=10, percentage=70, hints_used=1, completed_at=datetime(2026, 1, 1)
        )

        reconciler.submit_attempt("anon_1", result, "a@example.com")

        assert remote_store.submissions == []
        reconciler.channel.drain()
        [submission] = remote_store.submissions
        assert submission.identity == "anon_1"
        assert submission.chapter_number == 4
        assert submission.percentage == 70
        assert submission.email == "a@example.com"

    def test_invalid_attempt_is_dropped(self, reconciler, remote_store):
        result = AttemptResult(chapter_id=30, correct=1, total=1, percentage=100, hints_used=0)

        reconciler.submit_attempt("anon_1", result)

        assert reconciler.channel.drain() == 0
        assert remote_store.submissions == []


class TestMergeIdentity:
    """Tests for absorbing the anonymous record into an account."""

    def test_merge_keeps_higher_best(self, reconciler, remote_store):
        remote_store.attempts["anon_1"] = [{"chapter_number": 1, "percentage": 85}]
        remote_store.attempts["user_1"] = [{"chapter_number": 1, "percentage": 60}]

        result = reconciler.merge_identity("anon_1", "user_1")

        assert result.merged
        assert remote_store.best_percentages("user_1") == {1: 85}
        assert "anon_1" not in remote_store.attempts

    def test_remote_failure_returns_none(self, reconciler, remote_store):
        remote_store.fail = RemoteStoreError("down")

        assert reconciler.merge_identity("anon_1", "user_1") is None
