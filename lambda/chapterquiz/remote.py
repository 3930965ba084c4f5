"""
Remote progress store backed by DynamoDB.

The remote store mirrors every device's ledger so progress survives
across devices and can be merged into an account. It uses a single-table
design keyed by identity (an anonymous device id or an account id):

- ``pk = USER#<identity>, sk = PROFILE``: last seen time and email
- ``pk = USER#<identity>, sk = ATTEMPT#<NN>#<completed_at>#<id>``: one
  quiz attempt with its question responses

The store applies "higher percentage wins, ties keep existing" on its
own, independent of any filtering the device already did. It also
exposes the read-only aggregates used by the admin dashboard.
"""

import json
import logging
import uuid
from collections import defaultdict
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from functools import wraps

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError

from chapterquiz.errors import InvalidInputError, RemoteStoreError
from chapterquiz.merge import plan_identity_merge
from chapterquiz.models import AttemptResult
from chapterquiz.questions import DEFAULT_PASSING_SCORE, FIRST_CHAPTER, LAST_CHAPTER, chapter_slug
from chapterquiz.scoring import round_half_up

logger = logging.getLogger(__name__)

PARTITION_KEY = "pk"
SORT_KEY = "sk"
PROFILE_SK = "PROFILE"
ATTEMPT_PREFIX = "ATTEMPT#"


def _user_pk(identity: str) -> str:
    return f"USER#{identity}"


def _looks_like_email(email: str | None) -> bool:
    return isinstance(email, str) and "@" in email


def _remote_errors(method):
    """Wrap AWS client failures in RemoteStoreError."""

    @wraps(method)
    def wrapper(*args, **kwargs):
        try:
            return method(*args, **kwargs)
        except (BotoCoreError, ClientError) as e:
            raise RemoteStoreError(f"{method.__name__} failed: {e}") from e

    return wrapper


@dataclass(frozen=True)
class AttemptSubmission:
    """One attempt as sent to the remote store."""

    identity: str
    chapter_number: int
    score: int
    total_questions: int
    percentage: int
    hints_used: int = 0
    email: str | None = None
    responses: tuple[dict, ...] = ()
    completed_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_result(cls, identity: str, result: AttemptResult, email: str | None = None) -> "AttemptSubmission":
        return cls(
            identity=identity,
            chapter_number=result.chapter_id,
            score=result.correct,
            total_questions=result.total,
            percentage=result.percentage,
            hints_used=result.hints_used,
            email=email,
            responses=tuple(r.to_dict() for r in result.responses),
            completed_at=result.completed_at,
        )

    def validate(self) -> None:
        """
        Check the submission against the store's constraints.

        Raises:
            InvalidInputError: If a field is missing or out of range.
        """
        if not self.identity:
            raise InvalidInputError("Missing identity")
        if not FIRST_CHAPTER <= self.chapter_number <= LAST_CHAPTER:
            raise InvalidInputError(
                f"Invalid chapter number {self.chapter_number} "
                f"(must be {FIRST_CHAPTER}-{LAST_CHAPTER})"
            )
        if self.score < 0:
            raise InvalidInputError("Score cannot be negative")
        if self.total_questions <= 0:
            raise InvalidInputError("Total questions must be positive")
        if not 0 <= self.percentage <= 100:
            raise InvalidInputError("Percentage must be between 0 and 100")
        if self.hints_used < 0:
            raise InvalidInputError("Hints used cannot be negative")


@dataclass(frozen=True)
class RemoteChapterBest:
    """Best remote attempt for one chapter."""

    chapter_number: int
    best_score: int
    total: int
    percentage: int
    hints_used: int
    completed_at: str
    attempts: int


@dataclass(frozen=True)
class SyncResult:
    synced: int
    skipped: int


@dataclass(frozen=True)
class LinkResult:
    linked: bool
    merged: bool
    message: str


class RemoteProgressStore:
    """
    DynamoDB-backed store of attempts per identity.

    All public methods raise RemoteStoreError when DynamoDB cannot be
    reached or rejects a request.
    """

    def __init__(
        self,
        table_name: str,
        dynamodb_resource=None,
        endpoint_url: str | None = None,
        region_name: str | None = None,
    ):
        """
        Initialize the store.

        Args:
            table_name: Name of the progress table.
            dynamodb_resource: A boto3 DynamoDB resource. Created from
                              endpoint_url and region_name if omitted.
            endpoint_url: Optional endpoint override (e.g. LocalStack).
            region_name: AWS region for a newly created resource.
        """
        if dynamodb_resource is None:
            dynamodb_resource = boto3.resource(
                "dynamodb", endpoint_url=endpoint_url, region_name=region_name
            )
        self._table = dynamodb_resource.Table(table_name)

    @property
    def table(self):
        return self._table

    # Low-level helpers

    @_remote_errors
    def _query_items(self, identity: str, sk_prefix: str | None = None) -> list[dict]:
        condition = Key(PARTITION_KEY).eq(_user_pk(identity))
        if sk_prefix:
            condition = condition & Key(SORT_KEY).begins_with(sk_prefix)

        items: list[dict] = []
        kwargs = {"KeyConditionExpression": condition}
        while True:
            response = self._table.query(**kwargs)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return items
            kwargs["ExclusiveStartKey"] = last_key

    @_remote_errors
    def _scan_items(self) -> list[dict]:
        items: list[dict] = []
        kwargs: dict = {}
        while True:
            response = self._table.scan(**kwargs)
            items.extend(response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return items
            kwargs["ExclusiveStartKey"] = last_key

    @_remote_errors
    def _touch_profile(self, identity: str, email: str | None = None) -> None:
        """Create the profile item if needed and refresh last_seen_at."""
        now = datetime.now().isoformat()
        update = "SET #seen = :now, #created = if_not_exists(#created, :now), #identity = :id"
        names = {"#seen": "last_seen_at", "#created": "created_at", "#identity": "identity"}
        values = {":now": now, ":id": identity}
        if _looks_like_email(email):
            update += ", #email = :email"
            names["#email"] = "email"
            values[":email"] = email.strip().lower()
        self._table.update_item(
            Key={PARTITION_KEY: _user_pk(identity), SORT_KEY: PROFILE_SK},
            UpdateExpression=update,
            ExpressionAttributeNames=names,
            ExpressionAttributeValues=values,
        )

    @_remote_errors
    def _put_attempt(self, identity: str, attempt: Mapping) -> str:
        completed_at = attempt.get("completed_at") or datetime.now().isoformat()
        chapter = int(attempt["chapter_number"])
        sk = f"{ATTEMPT_PREFIX}{chapter_slug(chapter)}#{completed_at}#{uuid.uuid4().hex[:8]}"
        item = {
            PARTITION_KEY: _user_pk(identity),
            SORT_KEY: sk,
            "chapter_number": chapter,
            "score": int(attempt["score"]),
            "total_questions": int(attempt["total_questions"]),
            "percentage": int(attempt["percentage"]),
            "hints_used": int(attempt.get("hints_used") or 0),
            "completed_at": completed_at,
        }
        responses = attempt.get("responses") or []
        if responses:
            item["responses"] = [
                {
                    "question_index": int(r["question_index"]),
                    "kind": r.get("kind", "unknown"),
                    "prompt": r.get("prompt") or "",
                    # Answers vary in shape by kind, store them as JSON text
                    "user_answer": json.dumps(r.get("user_answer")),
                    "correct_answer": json.dumps(r.get("correct_answer")),
                    "is_correct": r.get("is_correct") is True,
                    "hints_used": int(r.get("hints_used") or 0),
                }
                for r in responses
            ]
        self._table.put_item(Item=item)
        return sk

    # Records

    @_remote_errors
    def has_record(self, identity: str) -> bool:
        return self.get_profile(identity) is not None

    @_remote_errors
    def get_profile(self, identity: str) -> dict | None:
        response = self._table.get_item(Key={PARTITION_KEY: _user_pk(identity), SORT_KEY: PROFILE_SK})
        return response.get("Item")

    @_remote_errors
    def submit_attempt(self, submission: AttemptSubmission) -> str:
        """
        Store one attempt.

        Returns:
            The attempt's sort key.

        Raises:
            InvalidInputError: If the submission fails validation.
        """
        submission.validate()
        self._touch_profile(submission.identity, submission.email)
        attempt_id = self._put_attempt(
            submission.identity,
            {
                "chapter_number": submission.chapter_number,
                "score": submission.score,
                "total_questions": submission.total_questions,
                "percentage": submission.percentage,
                "hints_used": submission.hints_used,
                "completed_at": submission.completed_at.isoformat(),
                "responses": submission.responses,
            },
        )
        logger.info(
            f"Stored attempt {attempt_id} for {submission.identity}: "
            f"chapter {submission.chapter_number} at {submission.percentage}%"
        )
        return attempt_id

    @_remote_errors
    def list_attempts(self, identity: str) -> list[dict]:
        return self._query_items(identity, ATTEMPT_PREFIX)

    def get_progress(self, identity: str) -> dict[int, RemoteChapterBest]:
        """
        Best attempt per chapter for an identity.

        Returns:
            Dictionary mapping chapter number to RemoteChapterBest
            (empty if the identity has no record).
        """
        best: dict[int, dict] = {}
        counts: dict[int, int] = defaultdict(int)
        for attempt in self.list_attempts(identity):
            chapter = int(attempt["chapter_number"])
            counts[chapter] += 1
            if chapter not in best or int(attempt["percentage"]) > int(best[chapter]["percentage"]):
                best[chapter] = attempt

        return {
            chapter: RemoteChapterBest(
                chapter_number=chapter,
                best_score=int(a["score"]),
                total=int(a["total_questions"]),
                percentage=int(a["percentage"]),
                hints_used=int(a.get("hints_used", 0)),
                completed_at=a.get("completed_at", ""),
                attempts=counts[chapter],
            )
            for chapter, a in best.items()
        }

    def best_percentages(self, identity: str) -> dict[int, int]:
        return {chapter: best.percentage for chapter, best in self.get_progress(identity).items()}

    @_remote_errors
    def delete_record(self, identity: str) -> int:
        """Delete the profile and every attempt of an identity. Returns items deleted."""
        items = self._query_items(identity)
        with self._table.batch_writer() as batch:
            for item in items:
                batch.delete_item(Key={PARTITION_KEY: item[PARTITION_KEY], SORT_KEY: item[SORT_KEY]})
        return len(items)

    # Reconciliation

    def sync_progress(self, identity: str, progress: Mapping[str, Mapping]) -> SyncResult:
        """
        Apply a device's full ledger snapshot.

        A chapter is stored as a new attempt only when its percentage beats
        the best already held for the identity. Chapters outside 1-20 or
        with malformed entries are skipped. Replaying the same snapshot
        stores nothing new.
        """
        remote_best = self.best_percentages(identity)
        self._touch_profile(identity)

        synced = 0
        skipped = 0
        for chapter_key, entry in progress.items():
            try:
                chapter = int(chapter_key)
                pct = int(entry["percentage"])
                total = int(entry.get("total", 0))
            except (KeyError, TypeError, ValueError, AttributeError):
                skipped += 1
                continue

            if not FIRST_CHAPTER <= chapter <= LAST_CHAPTER or total <= 0 or not 0 <= pct <= 100:
                skipped += 1
                continue
            if chapter in remote_best and remote_best[chapter] >= pct:
                skipped += 1
                continue

            self._put_synced_attempt(identity, chapter, entry)
            remote_best[chapter] = pct
            synced += 1

        logger.info(f"Synced {synced} chapters for {identity}, skipped {skipped}")
        return SyncResult(synced=synced, skipped=skipped)

    def _put_synced_attempt(self, identity: str, chapter: int, entry: Mapping) -> None:
        self._put_attempt(
            identity,
            {
                "chapter_number": chapter,
                "score": entry.get("best_score", 0),
                "total_questions": entry.get("total", 0),
                "percentage": entry["percentage"],
                "hints_used": entry.get("hints_used", 0),
                "completed_at": entry.get("completed_at"),
            },
        )

    @_remote_errors
    def _rekey(self, old_identity: str, new_identity: str, email: str | None) -> None:
        items = self._query_items(old_identity)
        with self._table.batch_writer() as batch:
            for item in items:
                moved = dict(item)
                moved[PARTITION_KEY] = _user_pk(new_identity)
                if item[SORT_KEY] == PROFILE_SK:
                    moved["identity"] = new_identity
                    moved["anonymous_id"] = old_identity
                    moved["last_seen_at"] = datetime.now().isoformat()
                    if _looks_like_email(email):
                        moved["email"] = email.strip().lower()
                batch.put_item(Item=moved)
        with self._table.batch_writer() as batch:
            for item in items:
                batch.delete_item(Key={PARTITION_KEY: item[PARTITION_KEY], SORT_KEY: item[SORT_KEY]})

    def link_identity(self, anonymous_id: str, user_id: str, email: str | None = None) -> LinkResult:
        """
        Absorb an anonymous record into an account.

        If the account has no record yet, the anonymous record is moved to
        the account identity. Otherwise each chapter's anonymous best is
        copied over only if it beats the account's best, and the anonymous
        record is deleted. The anonymous record never survives.
        """
        if not anonymous_id or not user_id:
            raise InvalidInputError("Missing anonymous id or user id")
        if anonymous_id == user_id:
            return LinkResult(linked=False, merged=False, message="Identities are the same")

        if not self.has_record(anonymous_id):
            return LinkResult(linked=False, merged=False, message="No anonymous progress found to link")

        if not self.has_record(user_id):
            self._rekey(anonymous_id, user_id, email)
            logger.info(f"Moved anonymous record {anonymous_id} to {user_id}")
            return LinkResult(linked=True, merged=False, message="Linked anonymous progress to account")

        anonymous_attempts = self.list_attempts(anonymous_id)
        anonymous_best: dict[int, dict] = {}
        for attempt in anonymous_attempts:
            chapter = int(attempt["chapter_number"])
            if chapter not in anonymous_best or int(attempt["percentage"]) > int(
                anonymous_best[chapter]["percentage"]
            ):
                anonymous_best[chapter] = attempt

        account_best = self.best_percentages(user_id)
        to_copy = plan_identity_merge(
            {chapter: int(a["percentage"]) for chapter, a in anonymous_best.items()},
            account_best,
        )
        for chapter in to_copy:
            self._copy_attempt(user_id, anonymous_best[chapter])

        self._touch_profile(user_id, email)
        self.delete_record(anonymous_id)
        logger.info(f"Merged {len(to_copy)} chapters from {anonymous_id} into {user_id}")
        return LinkResult(linked=True, merged=True, message="Merged anonymous progress into existing account")

    def _copy_attempt(self, identity: str, attempt: Mapping) -> None:
        self._put_attempt(
            identity,
            {
                "chapter_number": attempt["chapter_number"],
                "score": attempt["score"],
                "total_questions": attempt["total_questions"],
                "percentage": attempt["percentage"],
                "hints_used": attempt.get("hints_used", 0),
                "completed_at": attempt.get("completed_at"),
            },
        )

    # Admin reads

    def _all_attempts(self) -> tuple[list[dict], int]:
        attempts = []
        users = 0
        for item in self._scan_items():
            if item[SORT_KEY] == PROFILE_SK:
                users += 1
            elif item[SORT_KEY].startswith(ATTEMPT_PREFIX):
                attempts.append(item)
        return attempts, users

    def overall_stats(self, days: int = 30, now: datetime | None = None) -> dict:
        """
        Dashboard totals plus a daily trend for the last ``days`` days.

        Returns:
            Dictionary with total_users, total_attempts, average_score,
            pass_rate and daily_trend.
        """
        attempts, users = self._all_attempts()
        percentages = [int(a["percentage"]) for a in attempts]
        passes = sum(1 for p in percentages if p >= DEFAULT_PASSING_SCORE)

        now = now or datetime.now()
        cutoff = (now - timedelta(days=days)).isoformat()
        daily: dict[str, list[int]] = defaultdict(list)
        for attempt in attempts:
            completed_at = attempt.get("completed_at", "")
            if completed_at >= cutoff:
                daily[completed_at[:10]].append(int(attempt["percentage"]))

        return {
            "total_users": users,
            "total_attempts": len(attempts),
            "average_score": round_half_up(sum(percentages) / len(percentages)) if percentages else None,
            "pass_rate": round_half_up(passes / len(percentages) * 100) if percentages else None,
            "daily_trend": [
                {
                    "date": day,
                    "attempts": len(scores),
                    "avg_score": round_half_up(sum(scores) / len(scores)),
                    "pass_rate": round_half_up(
                        sum(1 for s in scores if s >= DEFAULT_PASSING_SCORE) / len(scores) * 100
                    ),
                }
                for day, scores in sorted(daily.items())
            ],
        }

    def chapter_stats(self) -> list[dict]:
        """Per-chapter aggregates for chapters 1-20, zero-filled."""
        attempts, _ = self._all_attempts()
        by_chapter: dict[int, list[dict]] = defaultdict(list)
        for attempt in attempts:
            by_chapter[int(attempt["chapter_number"])].append(attempt)

        stats = []
        for chapter in range(FIRST_CHAPTER, LAST_CHAPTER + 1):
            rows = by_chapter.get(chapter, [])
            scores = [int(r["percentage"]) for r in rows]
            stats.append(
                {
                    "chapter_number": chapter,
                    "attempts": len(rows),
                    "unique_users": len({r[PARTITION_KEY] for r in rows}),
                    "avg_score": round_half_up(sum(scores) / len(scores)) if scores else None,
                    "pass_rate": (
                        round_half_up(sum(1 for s in scores if s >= DEFAULT_PASSING_SCORE) / len(scores) * 100)
                        if scores
                        else None
                    ),
                    "min_score": min(scores) if scores else None,
                    "max_score": max(scores) if scores else None,
                }
            )
        return stats
