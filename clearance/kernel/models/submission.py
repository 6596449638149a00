"""
Submission model - one student's clearance record, keyed by tracking code.

The record is never deleted. Only its bundle in blob storage is removed
when an administrator exports it.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, Index, JSON, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from clearance.kernel.models.base import Base, TimestampMixin


class Level(str, Enum):
    """Academic level of the submitting student."""

    UNDERGRADUATE = "undergrad"
    GRADUATE = "grad"


class ResearchType(str, Enum):
    THESIS = "Thesis"
    CAPSTONE = "Capstone"
    DISSERTATION = "Dissertation"


class SubmissionStatus(str, Enum):
    """Review status. Administrators may toggle it in both directions."""

    SUBMITTED = "Submitted"
    CLEARED = "Cleared"


class Submission(Base, TimestampMixin):
    """
    A clearance submission.

    group_members is NULL unless level is undergrad and at least one member
    has both name and student ID. zip_file is written once at creation.
    exported_at is set together with is_exported.
    """

    __tablename__ = "submissions"

    id: Mapped[str] = mapped_column(
        String(32),
        primary_key=True,
    )
    level: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
    )
    research_type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
    )

    # Descriptive fields (editable by administrators)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    student_id: Mapped[str] = mapped_column(String(64), nullable=False)
    adviser: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    course: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    graduation_month: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    graduation_year: Mapped[str] = mapped_column(String(8), nullable=False, default="")
    research_title: Mapped[str] = mapped_column(Text, nullable=False)

    # [{"name": ..., "student_id": ...}, ...]
    group_members: Mapped[Optional[list]] = mapped_column(
        JSON(none_as_null=True),
        nullable=True,
    )

    zip_file: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(16),
        default=SubmissionStatus.SUBMITTED.value,
        nullable=False,
    )

    # Export sub-state
    is_exported: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    exported_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    export_link: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_submissions_level_status", "level", "status"),
        Index("ix_submissions_course", "course"),
        Index("ix_submissions_submitted_at", "submitted_at"),
    )

    @property
    def members(self) -> List[dict]:
        """Group members for display; always empty for graduate submissions."""
        if self.level != Level.UNDERGRADUATE.value:
            return []
        return list(self.group_members or [])

    def __repr__(self) -> str:
        return f"<Submission {self.id} {self.status}>"
