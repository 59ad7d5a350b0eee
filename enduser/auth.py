"""Admin access checks for the HTTP API."""

import hmac

from fastapi import Depends, HTTPException, status
from fastapi.security import (
    HTTPAuthorizationCredentials,
    HTTPBasic,
    HTTPBasicCredentials,
    HTTPBearer,
)

from enduser.config import Settings, get_settings

basic_security = HTTPBasic(auto_error=False, realm="GPT Enduser Admin")
bearer_security = HTTPBearer(auto_error=False)


def _same(given: str, expected: str) -> bool:
    return hmac.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))


def require_admin_basic(
    credentials: HTTPBasicCredentials | None = Depends(basic_security),
    settings: Settings = Depends(get_settings),
) -> None:
    """Basic auth for admin pages; open when no credentials are configured."""
    if not settings.admin_username or not settings.admin_password:
        return

    if (
        credentials is None
        or not _same(credentials.username, settings.admin_username)
        or not _same(credentials.password, settings.admin_password)
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": 'Basic realm="GPT Enduser Admin"'},
        )


def require_admin_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_security),
    settings: Settings = Depends(get_settings),
) -> None:
    """Bearer token for manual post triggers; always required."""
    if (
        not settings.admin_token
        or credentials is None
        or not _same(credentials.credentials, settings.admin_token)
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token",
            headers={"WWW-Authenticate": "Bearer"},
        )
