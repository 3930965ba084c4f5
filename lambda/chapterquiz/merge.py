"""
Merge planning shared by the device and the remote store.

Both reconciliation paths key by chapter number and use the same rule:
the higher percentage wins and a tie keeps what is already there.
"""

from collections.abc import Mapping


def better_chapters(candidate: Mapping[int, int], existing: Mapping[int, int]) -> list[int]:
    """Chapters where ``candidate`` strictly beats ``existing`` (or existing has none)."""
    return sorted(
        chapter
        for chapter, pct in candidate.items()
        if chapter not in existing or pct > existing[chapter]
    )


def plan_bulk_sync(local_best: Mapping[int, int], remote_best: Mapping[int, int]) -> list[int]:
    """Chapters whose local best must be submitted to the remote store."""
    return better_chapters(local_best, remote_best)


def plan_identity_merge(anonymous_best: Mapping[int, int], account_best: Mapping[int, int]) -> list[int]:
    """Chapters whose anonymous attempt should be copied into the account."""
    return better_chapters(anonymous_best, account_best)
