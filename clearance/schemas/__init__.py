"""
Pydantic schemas for API request/response validation.
"""

from clearance.schemas.common import ErrorResponse, HealthResponse
from clearance.schemas.export import (
    BulkIdsRequest,
    BulkMarkExportedRequest,
    BulkMarkExportedResponse,
    BulkPrepareResponse,
    ExportConfirmRequest,
    ExportSessionResponse,
    PreparedDownloadResponse,
)
from clearance.schemas.submission import (
    ExportLinkUpdate,
    GroupMember,
    PublicSubmissionView,
    SubmissionCreate,
    SubmissionDetailsUpdate,
    SubmissionReceipt,
    SubmissionResponse,
    SubmissionStats,
    SubmissionStatusUpdate,
)

__all__ = [
    "ErrorResponse",
    "HealthResponse",
    "BulkIdsRequest",
    "BulkMarkExportedRequest",
    "BulkMarkExportedResponse",
    "BulkPrepareResponse",
    "ExportConfirmRequest",
    "ExportSessionResponse",
    "PreparedDownloadResponse",
    "ExportLinkUpdate",
    "GroupMember",
    "PublicSubmissionView",
    "SubmissionCreate",
    "SubmissionDetailsUpdate",
    "SubmissionReceipt",
    "SubmissionResponse",
    "SubmissionStats",
    "SubmissionStatusUpdate",
]
