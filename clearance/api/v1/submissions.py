"""Public endpoints: submit documents, track a submission, fetch a local bundle."""

import json
from typing import Annotated, Optional

from fastapi import APIRouter, File, Form, HTTPException, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse
from pydantic import ValidationError

from clearance.api.deps import BlobStoreDep, IntakeServiceDep, SubmissionStoreDep, get_client_ip
from clearance.engines.archive.naming import is_bundle_filename, storage_key_for_filename
from clearance.kernel.documents import DocumentKey
from clearance.kernel.errors import InvalidTrackingId
from clearance.kernel.identifiers import validate_tracking_id
from clearance.kernel.storage.blob_store import ZIP_CONTENT_TYPE, LocalBlobStore
from clearance.logging_config import get_logger
from clearance.schemas.submission import PublicSubmissionView, SubmissionCreate, SubmissionReceipt

logger = get_logger(__name__)

router = APIRouter()


def _present(upload: Optional[UploadFile]) -> Optional[UploadFile]:
    # Browsers send an empty part for an untouched file input
    if upload is None or not upload.filename:
        return None
    return upload


def _parse_group_members(raw: Optional[str]):
    if raw is None or not raw.strip():
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise RequestValidationError([
            {
                "loc": ("body", "group_members"),
                "msg": f"Invalid JSON: {exc.msg}",
                "type": "json_invalid",
            }
        ]) from exc


@router.post("", response_model=SubmissionReceipt, status_code=status.HTTP_201_CREATED)
async def submit_clearance(
    request: Request,
    intake: IntakeServiceDep,
    level: Annotated[str, Form()],
    research_type: Annotated[str, Form()],
    name: Annotated[str, Form()],
    email: Annotated[str, Form()],
    student_id: Annotated[str, Form()],
    research_title: Annotated[str, Form()],
    adviser: Annotated[str, Form()] = "",
    course: Annotated[str, Form()] = "",
    graduation_month: Annotated[str, Form()] = "",
    graduation_year: Annotated[str, Form()] = "",
    group_members: Annotated[Optional[str], Form()] = None,
    approval_sheet: Annotated[Optional[UploadFile], File()] = None,
    full_paper: Annotated[Optional[UploadFile], File()] = None,
    long_abstract: Annotated[Optional[UploadFile], File()] = None,
    journal_format: Annotated[Optional[UploadFile], File()] = None,
):
    """
    Submit a clearance request.

    Form fields describe the student and research; the four documents are
    uploaded as files. group_members is a JSON array of {name, student_id}
    and is only kept for undergraduate submissions.
    """
    try:
        data = SubmissionCreate.model_validate({
            "level": level,
            "research_type": research_type,
            "name": name,
            "email": email,
            "student_id": student_id,
            "adviser": adviser,
            "course": course,
            "graduation_month": graduation_month,
            "graduation_year": graduation_year,
            "research_title": research_title,
            "group_members": _parse_group_members(group_members),
        })
    except ValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False, include_context=False)) from exc

    documents = {
        DocumentKey.APPROVAL_SHEET: _present(approval_sheet),
        DocumentKey.FULL_PAPER: _present(full_paper),
        DocumentKey.LONG_ABSTRACT: _present(long_abstract),
        DocumentKey.JOURNAL_FORMAT: _present(journal_format),
    }

    fields = data.model_dump()
    record = await intake.submit(fields, documents)
    logger.info(
        "Clearance submitted",
        extra={"submission_id": record.id, "client_ip": get_client_ip(request)},
    )
    return SubmissionReceipt(id=record.id, status=record.status, submitted_at=record.submitted_at)


@router.get("/{tracking_id}", response_model=PublicSubmissionView)
async def track_submission(tracking_id: str, store: SubmissionStoreDep):
    """Look up a submission by its tracking code."""
    if not validate_tracking_id(tracking_id):
        raise InvalidTrackingId(tracking_id)
    record = await store.get_by_id(tracking_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Submission not found. Please check your submission ID and try again.",
        )
    return PublicSubmissionView.from_record(record)


bundles_router = APIRouter()


@bundles_router.get("/{filename}", response_class=FileResponse)
async def download_bundle(filename: str, blobs: BlobStoreDep):
    """Serve a bundle from the local storage backend. Gone once exported."""
    if not isinstance(blobs, LocalBlobStore) or not is_bundle_filename(filename):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bundle not found")
    key = storage_key_for_filename(filename)
    if not await blobs.exists(key):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bundle not found")
    return FileResponse(blobs.path_for(key), media_type=ZIP_CONTENT_TYPE, filename=filename)
