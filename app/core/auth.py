"""Admin token dependency.

- require_admin_token: protects /api/admin endpoints. Accepts
  ``Authorization: Bearer <token>`` or ``X-Admin-Token: <token>``.
"""
import logging
import secrets
from typing import Optional

from fastapi import HTTPException, Request, Security
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer

from app.core.config import settings
from app.core.errors import ConfigError

logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)
_admin_token_header = APIKeyHeader(name="X-Admin-Token", auto_error=False)


async def require_admin_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(_bearer),
    header_token: Optional[str] = Security(_admin_token_header),
) -> str:
    """
    Dependency: require the configured ADMIN_TOKEN.
    A missing server-side secret is a configuration error (500), never open access.
    """
    configured = settings.admin_token
    if not configured:
        raise ConfigError("Missing env: ADMIN_TOKEN")

    supplied = credentials.credentials if credentials else header_token
    if not supplied:
        raise HTTPException(
            status_code=401,
            detail="UNAUTHORIZED",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not secrets.compare_digest(supplied.encode("utf-8"), configured.encode("utf-8")):
        logger.warning("Invalid admin token attempt from %s", request.client.host if request.client else "unknown")
        raise HTTPException(status_code=401, detail="UNAUTHORIZED")

    return supplied
