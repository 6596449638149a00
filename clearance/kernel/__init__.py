"""
Kernel Layer

The pieces every other layer builds on:
- Submission model and its store adapter
- Blob storage for submission bundles
- Tracking codes, document descriptors and domain errors
- Admin identity (identity-provider tokens)

Invariants:
- Records are never deleted; only bundles are
- A tracking code is assigned once and never changes
"""

from clearance.kernel.models import (
    Level,
    ResearchType,
    Submission,
    SubmissionStatus,
)

__all__ = [
    "Level",
    "ResearchType",
    "Submission",
    "SubmissionStatus",
]
