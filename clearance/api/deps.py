"""
FastAPI dependencies for admin authorization, storage adapters and services.
"""

from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clearance.config import Settings, get_settings
from clearance.database import get_session_factory
from clearance.kernel.identity.jwt import AccessTokenPayload, verify_access_token
from clearance.kernel.storage.blob_store import BlobStore, create_blob_store
from clearance.kernel.store.submission_store import SubmissionStore
from clearance.orchestration.export_service import ExportService
from clearance.orchestration.intake import IntakeService


# Security scheme
security = HTTPBearer(auto_error=False)

SettingsDep = Annotated[Settings, Depends(get_settings)]
SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]


def get_submission_store(session_factory: SessionFactory) -> SubmissionStore:
    return SubmissionStore(session_factory)


def get_blob_store(request: Request, settings: SettingsDep) -> BlobStore:
    """Blob store created once per app (see lifespan) and reused."""
    blobs = getattr(request.app.state, "blob_store", None)
    if blobs is None:
        blobs = create_blob_store(settings)
        request.app.state.blob_store = blobs
    return blobs


SubmissionStoreDep = Annotated[SubmissionStore, Depends(get_submission_store)]
BlobStoreDep = Annotated[BlobStore, Depends(get_blob_store)]


def get_export_service(store: SubmissionStoreDep, blobs: BlobStoreDep, settings: SettingsDep) -> ExportService:
    return ExportService.from_settings(store, blobs, settings)


def get_intake_service(store: SubmissionStoreDep, blobs: BlobStoreDep, settings: SettingsDep) -> IntakeService:
    return IntakeService.from_settings(store, blobs, settings)


ExportServiceDep = Annotated[ExportService, Depends(get_export_service)]
IntakeServiceDep = Annotated[IntakeService, Depends(get_intake_service)]


async def require_admin(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    settings: SettingsDep,
) -> AccessTokenPayload:
    """Require a valid identity-provider token whose email is an admin email."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_access_token(credentials.credentials)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    admins = {e.strip().lower() for e in settings.admin_emails}
    if payload.email.strip().lower() not in admins:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Admin privileges required.",
        )
    return payload


AdminUser = Annotated[AccessTokenPayload, Depends(require_admin)]


def get_client_ip(request: Request) -> Optional[str]:
    """Extract client IP from request."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None
