"""
Export schemas.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from clearance.orchestration.export_state_machine import ExportState


class ExportSessionResponse(BaseModel):
    """State of a single export after download start or confirmation."""

    submission_id: str
    filename: str
    download_url: Optional[str] = None
    state: ExportState
    # Present only while a download is initiated; required by the confirm call
    session_token: Optional[str] = None


class ExportConfirmRequest(BaseModel):
    """Operator's answer to the delete prompt shown after a download."""

    session_token: str = Field(..., min_length=1)
    delete_cloud_copy: bool


class BulkIdsRequest(BaseModel):
    ids: List[str] = Field(..., min_length=1)


class BulkMarkExportedRequest(BulkIdsRequest):
    delete_files: bool = True


class PreparedDownloadResponse(BaseModel):
    submission_id: str
    filename: str
    url: str
    # Seconds the client should wait after triggering this download
    delay_after_seconds: float = 0.0


class BulkPrepareResponse(BaseModel):
    """Resolved bundles for a bulk download, in trigger order."""

    items: List[PreparedDownloadResponse]
    attempted: int
    skipped: List[str] = []


class BulkMarkExportedResponse(BaseModel):
    success: List[str]
    failed: List[str]
