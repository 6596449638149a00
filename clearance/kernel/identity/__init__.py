"""
Identity Core - admin token verification.
"""

from clearance.kernel.identity.jwt import (
    JWTManager,
    AccessTokenPayload,
    create_access_token,
    create_export_session_token,
    verify_access_token,
    verify_export_session_token,
)

__all__ = [
    "JWTManager",
    "AccessTokenPayload",
    "create_access_token",
    "create_export_session_token",
    "verify_access_token",
    "verify_export_session_token",
]
