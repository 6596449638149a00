"""
JWT verification for administrator requests.

Admin sign-in happens at the identity provider; this service only checks
the bearer token it issued (shared secret, SECRET_KEY / ALGORITHM) and
reads the email claim. create_access_token exists for operator scripts and
tests that need a token without going through the provider.

Export session tokens are issued by the download endpoint and must be
presented to the confirm endpoint. They bind one submission id to the
download_initiated state, so a bundle cannot be deleted unless a download
was started for it first.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from pydantic import BaseModel

from clearance.config import get_settings

# Only state an export session token can carry
EXPORT_SESSION_STATE = "download_initiated"


class AccessTokenPayload(BaseModel):
    """JWT access token payload."""

    sub: str  # Subject at the identity provider
    email: str
    exp: datetime
    iat: Optional[datetime] = None
    jti: Optional[str] = None

    class Config:
        from_attributes = True


class JWTManager:
    """
    JWT token creation and verification.
    """

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        access_token_expire_minutes: Optional[int] = None,
    ):
        settings = get_settings()
        self.secret_key = secret_key or settings.secret_key
        self.algorithm = algorithm or settings.algorithm
        self.access_token_expire_minutes = access_token_expire_minutes or settings.access_token_expire_minutes
        self.export_session_expire_minutes = settings.export_session_expire_minutes

    def create_access_token(
        self,
        subject: str,
        email: str,
        expires_delta: Optional[timedelta] = None,
    ) -> tuple[str, datetime]:
        """
        Create a new access token.

        Args:
            subject: Identity provider user id
            email: Account email, checked against ADMIN_EMAILS
            expires_delta: Optional custom expiration time

        Returns:
            Tuple of (token, expiration_datetime)
        """
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or timedelta(minutes=self.access_token_expire_minutes))
        payload = {
            "sub": subject,
            "email": email,
            "exp": expire,
            "iat": now,
            "jti": str(uuid.uuid4()),
            "type": "access",
        }
        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        return token, expire

    def verify_access_token(self, token: str) -> Optional[AccessTokenPayload]:
        """
        Verify and decode an access token.

        Returns:
            AccessTokenPayload if valid, None otherwise
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
            )
        except JWTError:
            return None

        if payload.get("type", "access") != "access":
            return None
        if not payload.get("sub") or not payload.get("email") or "exp" not in payload:
            return None

        iat = payload.get("iat")
        return AccessTokenPayload(
            sub=str(payload["sub"]),
            email=payload["email"],
            exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            iat=datetime.fromtimestamp(iat, tz=timezone.utc) if iat is not None else None,
            jti=payload.get("jti"),
        )

    def create_export_session_token(
        self,
        submission_id: str,
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        """Token proving a download was initiated for submission_id."""
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or timedelta(minutes=self.export_session_expire_minutes))
        payload = {
            "sub": submission_id,
            "state": EXPORT_SESSION_STATE,
            "exp": expire,
            "iat": now,
            "jti": str(uuid.uuid4()),
            "type": "export_session",
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify_export_session_token(self, token: str) -> Optional[str]:
        """Submission id bound to a valid export session token, else None."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            return None
        if payload.get("type") != "export_session" or payload.get("state") != EXPORT_SESSION_STATE:
            return None
        subject = payload.get("sub")
        return str(subject) if subject else None


def get_jwt_manager() -> JWTManager:
    """JWT manager bound to the current settings."""
    return JWTManager()


# Convenience functions
def create_access_token(
    subject: str,
    email: str,
    expires_delta: Optional[timedelta] = None,
) -> tuple[str, datetime]:
    """Create an access token."""
    return get_jwt_manager().create_access_token(subject, email, expires_delta)


def verify_access_token(token: str) -> Optional[AccessTokenPayload]:
    """Verify an access token."""
    return get_jwt_manager().verify_access_token(token)


def create_export_session_token(submission_id: str) -> str:
    """Issue an export session token."""
    return get_jwt_manager().create_export_session_token(submission_id)


def verify_export_session_token(token: str) -> Optional[str]:
    """Verify an export session token."""
    return get_jwt_manager().verify_export_session_token(token)
