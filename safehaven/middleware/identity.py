"""Caller identity dependencies.

Respondent identity arrives as an opaque ``X-Respondent-Id`` header set by
the upstream gateway after authentication. Administrator endpoints require
the shared ``X-Admin-Token``.

Security:
    - Admin tokens are compared in constant time
    - Token values and full respondent ids are never logged
"""

import hmac
from typing import Annotated, Optional

from fastapi import Header, HTTPException, Request

from safehaven.config import get_settings
from safehaven.logging_config import get_logger

logger = get_logger(__name__)

RESPONDENT_HEADER = "X-Respondent-Id"
ADMIN_TOKEN_HEADER = "X-Admin-Token"

MAX_RESPONDENT_ID_LENGTH = 64


async def get_respondent_id(
    x_respondent_id: Annotated[Optional[str], Header()] = None
) -> Optional[str]:
    """FastAPI dependency for optional respondent identity.

    Returns:
        Respondent id, or None for anonymous callers

    Raises:
        HTTPException(400): If the header value is blank or too long
    """
    if x_respondent_id is None:
        return None

    respondent_id = x_respondent_id.strip()
    if not respondent_id or len(respondent_id) > MAX_RESPONDENT_ID_LENGTH:
        raise HTTPException(status_code=400, detail=f"Invalid {RESPONDENT_HEADER} header")
    return respondent_id


async def require_respondent_id(
    x_respondent_id: Annotated[Optional[str], Header()] = None
) -> str:
    """FastAPI dependency for routes that need an identified respondent.

    Raises:
        HTTPException(401): If the header is missing
    """
    respondent_id = await get_respondent_id(x_respondent_id)
    if respondent_id is None:
        raise HTTPException(status_code=401, detail=f"Missing {RESPONDENT_HEADER} header")
    return respondent_id


async def verify_admin_token(
    request: Request,
    x_admin_token: Annotated[Optional[str], Header()] = None
) -> None:
    """FastAPI dependency for administrator endpoints.

    Usage:
        @router.post("/api/surveys", dependencies=[Depends(verify_admin_token)])

    Raises:
        HTTPException(403): If the token is missing or does not match
    """
    client_ip = request.client.host if request.client else "unknown"

    if not x_admin_token:
        logger.warning(
            f"Missing {ADMIN_TOKEN_HEADER} header from IP: {client_ip}",
            extra={"client_ip": client_ip}
        )
        raise HTTPException(status_code=403, detail="Missing admin token")

    expected = get_settings().admin_token
    if not hmac.compare_digest(x_admin_token.encode("utf-8"), expected.encode("utf-8")):
        logger.warning(
            f"Invalid admin token from IP: {client_ip}",
            extra={"client_ip": client_ip, "path": request.url.path}
        )
        raise HTTPException(status_code=403, detail="Invalid admin token")

    logger.debug("Admin token verification passed")
