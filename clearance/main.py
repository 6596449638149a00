"""
SPUP Research Clearance

FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from clearance.api.middleware.rate_limit import RateLimitMiddleware
from clearance.api.middleware.request_id import RequestIdMiddleware
from clearance.api.v1 import router as api_v1_router
from clearance.config import get_settings
from clearance.database import close_db, init_db
from clearance.kernel.errors import (
    AlreadyExported,
    ArchiveBuildError,
    BlobNotFound,
    ClearanceError,
    DocumentValidationError,
    DuplicateKey,
    ExportCancelled,
    InvalidExportTransition,
    InvalidTrackingId,
    NothingToExport,
    StoreUnavailable,
    SubmissionNotFound,
)
from clearance.kernel.storage.blob_store import create_blob_store
from clearance.logging_config import configure_logging, get_logger
from clearance.schemas.common import HealthResponse

settings = get_settings()
logger = get_logger(__name__)

TRACKING_ID_HINT = "Invalid submission ID format. It should be like: SPUP_Clearance_2025_ABC123"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan handler.

    Runs startup and shutdown tasks.
    """
    configure_logging(
        log_level=settings.log_level,
        environment=settings.environment,
        debug=settings.debug,
    )

    logger.info("Starting %s v%s", settings.project_name, settings.version)
    await init_db()
    logger.info("Database initialized")
    if getattr(app.state, "blob_store", None) is None:
        app.state.blob_store = create_blob_store(settings)
    logger.info("Blob storage ready", extra={"backend": settings.storage_backend})

    yield

    logger.info("Shutting down...")
    await close_db()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.project_name,
    description="""
    SPUP Research Clearance

    Students upload their approval sheet, full paper, long abstract and
    journal format and receive a tracking code. Administrators review,
    clear and export submissions.

    ## Export

    Exporting downloads a submission's bundle and then, after explicit
    confirmation, deletes it from storage. The record is kept.
    """,
    version=settings.version,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# add_middleware stacks innermost-first; CORS is added last so it wraps everything
_cors_origins = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
]
if not (settings.debug or settings.environment == "development"):
    _cors_origins = ["https://clearance.spup.edu.ph"] + _cors_origins

app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


def _cors_headers(request: Request) -> dict:
    """CORS headers for error responses (500s often bypass CORS middleware)."""
    origin = request.headers.get("origin") or ""
    allow_origin = origin if origin in _cors_origins else _cors_origins[0]
    return {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": "*",
        "Access-Control-Allow-Headers": "*",
    }


def _error_response(
    request: Request,
    status_code: int,
    detail: str,
    code: Optional[str] = None,
    **extra,
) -> JSONResponse:
    headers = _cors_headers(request)
    req_id = getattr(request.state, "request_id", None)
    if req_id:
        headers["X-Request-ID"] = req_id
    content = {"detail": detail}
    if code:
        content["code"] = code
    content.update(extra)
    if req_id and status_code >= 500:
        content["request_id"] = req_id
    return JSONResponse(status_code=status_code, content=content, headers=headers)


# Domain errors -> (status, code)
_DOMAIN_ERRORS = (
    (InvalidTrackingId, status.HTTP_400_BAD_REQUEST, "invalid_tracking_id"),
    (ArchiveBuildError, status.HTTP_400_BAD_REQUEST, "unreadable_document"),
    (SubmissionNotFound, status.HTTP_404_NOT_FOUND, "not_found"),
    (BlobNotFound, status.HTTP_404_NOT_FOUND, "bundle_not_found"),
    (NothingToExport, status.HTTP_404_NOT_FOUND, "nothing_to_export"),
    (AlreadyExported, status.HTTP_409_CONFLICT, "already_exported"),
    (InvalidExportTransition, status.HTTP_409_CONFLICT, "invalid_export_transition"),
    (ExportCancelled, status.HTTP_409_CONFLICT, "export_cancelled"),
    (DuplicateKey, status.HTTP_503_SERVICE_UNAVAILABLE, "duplicate_key"),
    (StoreUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE, "store_unavailable"),
)


@app.exception_handler(DocumentValidationError)
async def document_validation_handler(request: Request, exc: DocumentValidationError):
    """Per-document errors so the form can show them inline."""
    return _error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Document validation failed",
        code="invalid_documents",
        errors=exc.errors,
    )


@app.exception_handler(ClearanceError)
async def clearance_error_handler(request: Request, exc: ClearanceError):
    for error_type, status_code, code in _DOMAIN_ERRORS:
        if isinstance(exc, error_type):
            if status_code >= 500:
                logger.error("Backend unavailable: %s", exc)
                detail = "Service temporarily unavailable. Please try again."
            elif isinstance(exc, InvalidTrackingId):
                detail = TRACKING_ID_HINT
            else:
                detail = str(exc)
            return _error_response(request, status_code, detail, code=code)
    logger.exception("Unhandled clearance error: %s", exc)
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Ensure 401/403/404 etc. responses have CORS headers."""
    response = _error_response(request, exc.status_code, exc.detail)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })
    return _error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error",
        errors=errors,
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception("Unhandled exception: %s", exc)
    if settings.debug:
        return _error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            str(exc),
            type=type(exc).__name__,
        )
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Check application health."""
    return HealthResponse(
        status="ok",
        version=settings.version,
        database="connected",
        storage=settings.storage_backend,
    )


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.project_name,
        "version": settings.version,
        "docs": "/docs" if settings.debug else "disabled",
        "api": {
            "v1": settings.api_v1_prefix,
        },
    }


app.include_router(
    api_v1_router,
    prefix=settings.api_v1_prefix,
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "clearance.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
