"""Admin submission endpoints: listing, dashboard counts, edits, status and export links."""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from clearance.api.deps import AdminUser, SubmissionStoreDep
from clearance.engines.query.filters import FilterCriteria, summarize
from clearance.logging_config import get_logger
from clearance.schemas.submission import (
    ExportLinkUpdate,
    SubmissionDetailsUpdate,
    SubmissionResponse,
    SubmissionStats,
    SubmissionStatusUpdate,
)

logger = get_logger(__name__)

router = APIRouter()


@router.get("", response_model=list[SubmissionResponse])
async def list_submissions(
    admin: AdminUser,
    store: SubmissionStoreDep,
    level: Optional[str] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    course: Optional[str] = None,
    search: Optional[str] = None,
):
    """
    List submissions, newest first.

    level/status/course are equality filters ('all' or omitted = any).
    search is a case-insensitive substring match over name, student ID,
    research title and email, applied after the query.
    """
    criteria = FilterCriteria(level=level, status=status_filter, course=course, search_term=search)
    records = await store.query_all(criteria)
    return [SubmissionResponse.from_record(r) for r in records]


@router.get("/stats", response_model=SubmissionStats)
async def submission_stats(admin: AdminUser, store: SubmissionStoreDep):
    """Dashboard counters over all submissions."""
    return SubmissionStats(**summarize(await store.query_all()))


@router.get("/{submission_id}", response_model=SubmissionResponse)
async def get_submission(submission_id: str, admin: AdminUser, store: SubmissionStoreDep):
    record = await store.get_by_id(submission_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Submission not found")
    return SubmissionResponse.from_record(record)


@router.patch("/{submission_id}", response_model=SubmissionResponse)
async def edit_submission(
    submission_id: str,
    data: SubmissionDetailsUpdate,
    admin: AdminUser,
    store: SubmissionStoreDep,
):
    """Edit descriptive fields. Only fields present in the body change."""
    details = data.model_dump(exclude_unset=True)
    # null only means something for group_members
    details = {k: v for k, v in details.items() if v is not None or k == "group_members"}
    record = await store.update_details(submission_id, details)
    logger.info(
        "Submission edited by admin",
        extra={"submission_id": submission_id, "admin": admin.email, "fields": sorted(details)},
    )
    return SubmissionResponse.from_record(record)


@router.patch("/{submission_id}/status", response_model=SubmissionResponse)
async def update_submission_status(
    submission_id: str,
    data: SubmissionStatusUpdate,
    admin: AdminUser,
    store: SubmissionStoreDep,
):
    """Set review status (Submitted or Cleared, either direction)."""
    record = await store.update_status(submission_id, data.status.value)
    logger.info(
        "Submission status changed",
        extra={"submission_id": submission_id, "admin": admin.email, "status": data.status.value},
    )
    return SubmissionResponse.from_record(record)


@router.put("/{submission_id}/export-link", response_model=SubmissionResponse)
async def set_export_link(
    submission_id: str,
    data: ExportLinkUpdate,
    admin: AdminUser,
    store: SubmissionStoreDep,
):
    """Attach an external link (e.g. the archived copy) to a submission."""
    record = await store.set_export_link(submission_id, data.url.strip())
    return SubmissionResponse.from_record(record)


@router.delete("/{submission_id}/export-link", response_model=SubmissionResponse)
async def clear_export_link(submission_id: str, admin: AdminUser, store: SubmissionStoreDep):
    record = await store.clear_export_link(submission_id)
    return SubmissionResponse.from_record(record)
