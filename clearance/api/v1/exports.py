"""
Admin export endpoints.

Single export: POST /{id}/download returns the bundle URL for the browser
to fetch plus a short-lived session token; POST /{id}/confirm carries that
token and the operator's answer to "delete the cloud copy?". Bulk export:
POST /prepare resolves every selected bundle and returns the pacing delays
the client must honour between downloads; POST /mark-exported is the
separate destructive step.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter

from clearance.api.deps import AdminUser, ExportServiceDep, SubmissionStoreDep
from clearance.kernel.errors import InvalidExportTransition, NothingToExport
from clearance.kernel.identity.jwt import create_export_session_token, verify_export_session_token
from clearance.logging_config import get_logger
from clearance.orchestration.export_state_machine import ExportState
from clearance.schemas.export import (
    BulkIdsRequest,
    BulkMarkExportedRequest,
    BulkMarkExportedResponse,
    BulkPrepareResponse,
    ExportConfirmRequest,
    ExportSessionResponse,
    PreparedDownloadResponse,
)
from clearance.schemas.submission import SubmissionResponse

logger = get_logger(__name__)

router = APIRouter()


def _session_response(session, session_token: Optional[str] = None) -> ExportSessionResponse:
    return ExportSessionResponse(
        submission_id=session.submission_id,
        filename=session.filename,
        download_url=session.download_url,
        state=session.state,
        session_token=session_token,
    )


@router.get("", response_model=list[SubmissionResponse])
async def list_exportable(
    admin: AdminUser,
    exports: ExportServiceDep,
    include_exported: bool = False,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
):
    """Cleared submissions awaiting export, newest first."""
    records = await exports.list_exportable(
        include_exported=include_exported,
        date_from=date_from,
        date_to=date_to,
    )
    return [SubmissionResponse.from_record(r) for r in records]


@router.post("/prepare", response_model=BulkPrepareResponse)
async def prepare_bulk_download(
    data: BulkIdsRequest,
    admin: AdminUser,
    store: SubmissionStoreDep,
    exports: ExportServiceDep,
):
    """Resolve download URLs for the selected submissions."""
    records = []
    for submission_id in data.ids:
        record = await store.get_by_id(submission_id)
        if record is not None:
            records.append(record)

    prepared = await exports.prepare_bulk_download(records)
    if not prepared:
        raise NothingToExport("No files could be prepared for download")

    last = len(prepared) - 1
    items = [
        PreparedDownloadResponse(
            submission_id=p.submission_id,
            filename=p.filename,
            url=p.url,
            delay_after_seconds=exports.pacing_delay(i) if i < last else 0.0,
        )
        for i, p in enumerate(prepared)
    ]
    prepared_ids = {p.submission_id for p in prepared}
    return BulkPrepareResponse(
        items=items,
        attempted=len(items),
        skipped=[i for i in data.ids if i not in prepared_ids],
    )


@router.post("/mark-exported", response_model=BulkMarkExportedResponse)
async def bulk_mark_exported(
    data: BulkMarkExportedRequest,
    admin: AdminUser,
    exports: ExportServiceDep,
):
    """Mark submissions exported, deleting their bundles unless delete_files is false."""
    result = await exports.bulk_mark_exported(data.ids, delete_files=data.delete_files)
    logger.info(
        "Bulk mark exported",
        extra={"admin": admin.email, "success": len(result.success), "failed": len(result.failed)},
    )
    return BulkMarkExportedResponse(success=result.success, failed=result.failed)


@router.post("/{submission_id}/download", response_model=ExportSessionResponse)
async def start_download(submission_id: str, admin: AdminUser, exports: ExportServiceDep):
    """Start a single export. Rejected with 409 once the submission is exported."""
    session = await exports.start_download(submission_id)
    return _session_response(session, create_export_session_token(submission_id))


@router.post("/{submission_id}/confirm", response_model=ExportSessionResponse)
async def confirm_download(
    submission_id: str,
    data: ExportConfirmRequest,
    admin: AdminUser,
    exports: ExportServiceDep,
):
    """
    Delete the cloud copy and mark exported, or keep the bundle.

    Needs the session token returned by the download call for this
    submission; without one there is no initiated download to confirm.
    """
    if verify_export_session_token(data.session_token) != submission_id:
        raise InvalidExportTransition(f"No download in progress for {submission_id}")
    session = await exports.resume_session(submission_id, ExportState.DOWNLOAD_INITIATED)
    session = await exports.finish_download(session, delete_cloud_copy=data.delete_cloud_copy)
    logger.info(
        "Export confirmation",
        extra={
            "submission_id": submission_id,
            "admin": admin.email,
            "delete_cloud_copy": data.delete_cloud_copy,
        },
    )
    return _session_response(session)
