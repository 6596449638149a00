"""
Submission schemas.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, EmailStr, Field, field_validator

from clearance.kernel.models.submission import Level, ResearchType, SubmissionStatus


class GroupMember(BaseModel):
    """One member of an undergraduate research group."""

    name: str = ""
    student_id: str = Field("", validation_alias=AliasChoices("student_id", "studentID"))


class SubmissionCreate(BaseModel):
    """Form fields of a public submission (documents travel as files)."""

    level: Level
    research_type: ResearchType
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    student_id: str = Field(..., min_length=1, max_length=64)
    adviser: str = Field("", max_length=255)
    course: str = Field("", max_length=255)
    graduation_month: str = Field("", max_length=32)
    graduation_year: str = Field("", max_length=8)
    research_title: str = Field(..., min_length=1)
    group_members: Optional[List[GroupMember]] = None

    @field_validator("name", "student_id", "research_title")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("This field is required")
        return v


class SubmissionReceipt(BaseModel):
    """Returned to the student after a successful submission."""

    id: str
    status: str
    submitted_at: datetime


class PublicSubmissionView(BaseModel):
    """What the tracking page shows to anyone holding the code."""

    id: str
    level: str
    research_type: str
    name: str
    student_id: str
    adviser: str
    course: str
    research_title: str
    group_members: List[GroupMember] = []
    status: str
    submitted_at: datetime

    @classmethod
    def from_record(cls, record) -> "PublicSubmissionView":
        return cls(
            id=record.id,
            level=record.level,
            research_type=record.research_type,
            name=record.name,
            student_id=record.student_id,
            adviser=record.adviser,
            course=record.course,
            research_title=record.research_title,
            group_members=[GroupMember(**m) for m in record.members],
            status=record.status,
            submitted_at=record.submitted_at,
        )


class SubmissionResponse(BaseModel):
    """Full record as shown on the admin dashboard."""

    id: str
    level: str
    research_type: str
    name: str
    email: str
    student_id: str
    adviser: str
    course: str
    graduation_month: str
    graduation_year: str
    research_title: str
    group_members: Optional[List[GroupMember]] = None
    # None once exported; the bundle is gone from storage
    zip_file: Optional[str] = None
    status: str
    is_exported: bool
    exported_at: Optional[datetime] = None
    export_link: Optional[str] = None
    submitted_at: datetime
    updated_at: datetime
    # False once exported; the bundle may no longer exist
    can_download: bool = True

    class Config:
        from_attributes = True

    @classmethod
    def from_record(cls, record) -> "SubmissionResponse":
        response = cls.model_validate(record)
        response.can_download = not record.is_exported
        if record.is_exported:
            response.zip_file = None
        if record.level != Level.UNDERGRADUATE.value:
            response.group_members = None
        return response


class SubmissionDetailsUpdate(BaseModel):
    """Admin edit of descriptive fields. Omitted fields are left unchanged."""

    level: Optional[Level] = None
    research_type: Optional[ResearchType] = None
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    student_id: Optional[str] = Field(None, min_length=1, max_length=64)
    adviser: Optional[str] = Field(None, max_length=255)
    course: Optional[str] = Field(None, max_length=255)
    graduation_month: Optional[str] = Field(None, max_length=32)
    graduation_year: Optional[str] = Field(None, max_length=8)
    research_title: Optional[str] = Field(None, min_length=1)
    group_members: Optional[List[GroupMember]] = None


class SubmissionStatusUpdate(BaseModel):
    """Request to change review status."""

    status: SubmissionStatus


class ExportLinkUpdate(BaseModel):
    """Attach an external link to an exported submission."""

    url: str = Field(..., min_length=1, max_length=2048)


class SubmissionStats(BaseModel):
    """Dashboard counters."""

    total: int
    submitted: int
    cleared: int
    undergrad: int
    grad: int
    exported: int
