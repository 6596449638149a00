"""
Validation Engine - intake preconditions checked before any network call.
"""

from clearance.engines.validation.documents import (
    DocumentValidator,
    ValidationResult,
    ValidationStatus,
)

__all__ = [
    "DocumentValidator",
    "ValidationResult",
    "ValidationStatus",
]
