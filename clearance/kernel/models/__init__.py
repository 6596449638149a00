"""
Kernel Data Models

SQLAlchemy models for submission records.
"""

from clearance.kernel.models.base import Base, TimestampMixin
from clearance.kernel.models.submission import (
    Level,
    ResearchType,
    Submission,
    SubmissionStatus,
)

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    # Submission
    "Level",
    "ResearchType",
    "Submission",
    "SubmissionStatus",
]
