"""
Document validation - runs before any network call on the intake path.
"""

from enum import Enum
from typing import Dict, List, Mapping, Optional

from pydantic import BaseModel

from clearance.kernel.documents import (
    REQUIRED_DOCUMENTS,
    DocumentKey,
    DocumentPayload,
    RequiredDocument,
    file_extension,
)


class ValidationStatus(str, Enum):
    """Validation status."""
    VALID = "valid"
    INVALID = "invalid"


class ValidationResult(BaseModel):
    """Result of checking one document slot."""

    status: ValidationStatus
    field: str
    message: str = ""


class DocumentValidator:
    """
    Checks the four required documents.

    Every slot must be filled, carry an accepted extension, and stay under
    the per-document size limit. Size is only checked when the payload
    reports one (UploadFile.size, InMemoryDocument.size).
    """

    def __init__(self, max_bytes: int, required: tuple = REQUIRED_DOCUMENTS):
        self.max_bytes = max_bytes
        self.required: tuple[RequiredDocument, ...] = required

    def validate_one(
        self,
        spec: RequiredDocument,
        payload: Optional[DocumentPayload],
    ) -> ValidationResult:
        field = spec.key.value
        if payload is None:
            return ValidationResult(
                status=ValidationStatus.INVALID,
                field=field,
                message="This document is required",
            )

        ext = "." + file_extension(payload.filename)
        if ext not in spec.accept:
            return ValidationResult(
                status=ValidationStatus.INVALID,
                field=field,
                message=f"File must be {', '.join(spec.accept)} format",
            )

        size = getattr(payload, "size", None)
        if size is not None and size > self.max_bytes:
            max_mb = self.max_bytes / (1024 * 1024)
            return ValidationResult(
                status=ValidationStatus.INVALID,
                field=field,
                message=f"File size must not exceed {max_mb:.0f}MB",
            )

        return ValidationResult(status=ValidationStatus.VALID, field=field)

    def validate(
        self,
        documents: Mapping[DocumentKey, Optional[DocumentPayload]],
    ) -> List[ValidationResult]:
        return [self.validate_one(spec, documents.get(spec.key)) for spec in self.required]

    def errors(
        self,
        documents: Mapping[DocumentKey, Optional[DocumentPayload]],
    ) -> Dict[str, str]:
        """Field -> message for every failing slot; empty when all pass."""
        return {
            r.field: r.message
            for r in self.validate(documents)
            if r.status == ValidationStatus.INVALID
        }
