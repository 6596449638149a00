"""Submission persistence."""

from clearance.kernel.store.submission_store import (
    REMOVE,
    SubmissionStore,
    normalize_group_members,
)

__all__ = [
    "REMOVE",
    "SubmissionStore",
    "normalize_group_members",
]
