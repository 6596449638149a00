"""
Domain exceptions.

Services raise these; the API layer maps them to HTTP responses in
clearance.main. Lookups that find nothing return None instead of raising.
"""

from typing import Dict, Optional


class ClearanceError(Exception):
    """Base class for all clearance service errors."""


class DocumentValidationError(ClearanceError):
    """Submitted documents failed presence, type or size checks."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        super().__init__("; ".join(f"{k}: {v}" for k, v in self.errors.items()))


class InvalidTrackingId(ClearanceError):
    """A tracking code does not match the public format."""


class SubmissionNotFound(ClearanceError):
    """A mutation targeted a submission that does not exist."""

    def __init__(self, submission_id: str):
        self.submission_id = submission_id
        super().__init__(f"Submission not found: {submission_id}")


class DuplicateKey(ClearanceError):
    """A record already exists under the given tracking code."""

    def __init__(self, submission_id: str):
        self.submission_id = submission_id
        super().__init__(f"Submission already exists: {submission_id}")


class StoreUnavailable(ClearanceError):
    """The backing database failed; the caller must retry manually."""


class BlobStoreUnavailable(StoreUnavailable):
    """The blob store failed for a reason other than a missing key."""


class BlobNotFound(ClearanceError):
    """No bundle exists under the requested storage key."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Bundle not found: {key}")


class ArchiveBuildError(ClearanceError):
    """At least one document could not be read; no archive was produced."""

    def __init__(self, document_key: str, cause: Optional[BaseException] = None):
        self.document_key = document_key
        self.cause = cause
        super().__init__(f"Failed to read document '{document_key}': {cause}")


class AlreadyExported(ClearanceError):
    """The submission's bundle was already exported and may be gone."""

    def __init__(self, submission_id: str):
        self.submission_id = submission_id
        super().__init__(f"Submission {submission_id} has already been exported")


class InvalidExportTransition(ClearanceError):
    """An export event is not allowed from the current export state."""


class ExportCancelled(ClearanceError):
    """The operator declined the aggregate download confirmation."""


class NothingToExport(ClearanceError):
    """No selected submission had a downloadable bundle."""
