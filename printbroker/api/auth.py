"""
API key authentication.
"""

import hmac
import logging
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader

from printbroker.config import get_settings
from printbroker.constants import API_KEY_HEADER

logger = logging.getLogger(__name__)

# Security scheme
api_key_header = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)


def validate_api_key(provided: str | None, expected: str | None) -> bool:
    """
    Validate an API key.

    When no key is configured every request is accepted.

    Args:
        provided: The key sent by the caller.
        expected: The configured key.

    Returns:
        True if the request may proceed.
    """
    if not expected:
        return True
    if provided is None:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


async def require_api_key(
    provided: Annotated[str | None, Depends(api_key_header)],
) -> str | None:
    """
    FastAPI dependency enforcing the configured API key.

    Returns:
        The accepted key, or None when authentication is disabled.

    Raises:
        HTTPException: If a key is configured and the request's key differs.
    """
    expected = get_settings().api_key

    if not expected:
        logger.warning("API_KEY not set; allowing unauthenticated request")
        return None

    if not validate_api_key(provided, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )

    return provided


# Type alias for dependency injection
ApiKey = Annotated[str | None, Depends(require_api_key)]
