"""
Rate limiting - per IP for public endpoints, per admin (or IP) elsewhere.

Scopes:
- intake:   POST /submissions        per IP, RATE_LIMIT_INTAKE_PER_MINUTE
- tracking: GET  /submissions/{id}   per IP, RATE_LIMIT_TRACKING_PER_MINUTE
- api:      everything else          per admin subject or IP, RATE_LIMIT_API_PER_MINUTE
"""

import time
from typing import Callable, Optional, Tuple

from fastapi import Request, Response, status
from jose import JWTError, jwt
from starlette.middleware.base import BaseHTTPMiddleware

from clearance.config import Settings, get_settings

WINDOW_SECONDS = 60


def _get_client_ip(request: Request) -> str:
    """Get client IP from request (X-Forwarded-For or direct)."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _get_subject_from_jwt(request: Request) -> Optional[str]:
    """Subject of a Bearer JWT if it decodes. Authorization itself runs later."""
    auth = request.headers.get("authorization")
    if not auth or not auth.lower().startswith("bearer "):
        return None
    token = auth[7:].strip()
    if not token:
        return None
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    subject = payload.get("sub") or payload.get("email")
    return str(subject) if subject else None


class InMemoryRateLimitStore:
    """Fixed-window in-memory store. Key -> (count, window_start_ts)."""

    def __init__(self):
        self._data: dict[str, Tuple[int, float]] = {}

    def check_and_incr(
        self,
        scope: str,
        identifier: str,
        limit: int,
        window_seconds: int = WINDOW_SECONDS,
    ) -> bool:
        """Returns True if under limit (and increments). False if over limit (no increment)."""
        key = f"{scope}:{identifier}"
        now = time.monotonic()
        count, start = self._data.get(key, (0, now))
        if now - start >= window_seconds:
            count, start = 0, now
        if count >= limit:
            return False
        self._data[key] = (count + 1, start)
        return True

    def cleanup_old(self, max_age_seconds: int = 3600):
        """Drop windows older than max_age_seconds."""
        now = time.monotonic()
        stale = [k for k, (_, start) in self._data.items() if now - start > max_age_seconds]
        for k in stale:
            self._data.pop(k, None)

    def reset(self):
        self._data.clear()


# Module-level store (single process)
_store: Optional[InMemoryRateLimitStore] = None


def get_store() -> InMemoryRateLimitStore:
    global _store
    if _store is None:
        _store = InMemoryRateLimitStore()
    return _store


def classify(request: Request, settings: Settings) -> Tuple[str, str, int]:
    """(scope, identifier, limit) for a request under the API prefix."""
    submissions_path = f"{settings.api_v1_prefix}/submissions"
    path = request.url.path.rstrip("/")
    if path == submissions_path and request.method == "POST":
        return "intake", _get_client_ip(request), settings.rate_limit_intake_per_minute
    if path.startswith(submissions_path + "/") and request.method == "GET":
        return "tracking", _get_client_ip(request), settings.rate_limit_tracking_per_minute
    subject = _get_subject_from_jwt(request)
    return "api", subject or _get_client_ip(request), settings.rate_limit_api_per_minute


class RateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        settings = get_settings()
        if not settings.rate_limit_enabled:
            return await call_next(request)
        if not (request.url.path or "").startswith(settings.api_v1_prefix):
            return await call_next(request)

        store = get_store()
        store.cleanup_old(max_age_seconds=7200)

        scope, identifier, limit = classify(request, settings)
        if not store.check_and_incr(scope, identifier, limit):
            return Response(
                content='{"detail":"Too many requests. Please try again later."}',
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                media_type="application/json",
                headers={"Retry-After": str(WINDOW_SECONDS)},
            )
        return await call_next(request)
