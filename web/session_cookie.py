"""
Wizard Session Cookie - Signed Session IDs

The browser only holds a random session ID, signed with HMAC-SHA256 so it
cannot be forged. Form data stays on the server.

Format: <session_id>.<signature>
"""

from __future__ import annotations

import hashlib
import hmac
import os
import secrets
from typing import Final, Optional

from fastapi import Request, Response

from utils.config import Config


# =============================================================================
# Configuration
# =============================================================================

SESSION_COOKIE_NAME: Final[str] = "onboarding_session"
SESSION_COOKIE_MAX_AGE_HOURS: Final[int] = 8

_ephemeral_secret: Optional[str] = None


def get_session_secret() -> str:
    """Get session secret key from configuration."""
    global _ephemeral_secret
    secret = Config.load().session_secret
    if secret:
        return secret
    # Ephemeral secret for development (sessions won't survive restarts)
    if _ephemeral_secret is None:
        _ephemeral_secret = secrets.token_hex(32)
    return _ephemeral_secret


# =============================================================================
# Signing
# =============================================================================


def _signature(session_id: str, secret: str) -> str:
    return hmac.new(
        secret.encode(),
        session_id.encode(),
        hashlib.sha256,
    ).hexdigest()


def sign_session_id(session_id: str, secret: str) -> str:
    """Sign a session ID for cookie storage."""
    return f"{session_id}.{_signature(session_id, secret)}"


def verify_session_id(token: str, secret: str) -> Optional[str]:
    """
    Verify a signed cookie value.

    Returns the session ID if the signature matches, None otherwise.
    """
    try:
        session_id, signature = token.rsplit(".", 1)
    except (ValueError, AttributeError):
        return None

    if not session_id:
        return None
    if not hmac.compare_digest(signature, _signature(session_id, secret)):
        return None
    return session_id


# =============================================================================
# Request / Response Helpers
# =============================================================================


def read_session_id(request: Request) -> Optional[str]:
    """Get the verified session ID from request cookies."""
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if not token:
        return None
    return verify_session_id(token, get_session_secret())


def set_session_cookie(response: Response, session_id: str) -> None:
    """Set the session cookie on a response."""
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=sign_session_id(session_id, get_session_secret()),
        max_age=SESSION_COOKIE_MAX_AGE_HOURS * 3600,
        httponly=True,
        secure=os.getenv("RAILWAY_ENVIRONMENT") is not None,  # Secure in production
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    """Clear the session cookie on a response."""
    response.delete_cookie(key=SESSION_COOKIE_NAME)
