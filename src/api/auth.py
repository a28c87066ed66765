"""
API authentication using X-API-KEY and X-Admin-Secret headers.
"""

import hmac

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

from src.config.settings import get_settings

# API key header scheme
api_key_header = APIKeyHeader(name="X-API-KEY", auto_error=False)

# Admin secret header scheme for batch job endpoints
admin_secret_header = APIKeyHeader(name="X-Admin-Secret", auto_error=False)


async def verify_api_key(api_key: str | None = Security(api_key_header)) -> str:
    """
    Verify API key from X-API-KEY header.

    Args:
        api_key: API key from header

    Returns:
        The validated API key

    Raises:
        HTTPException: If API key is missing or invalid
    """
    settings = get_settings()

    # If no API keys configured, allow all requests (dev mode)
    if not settings.api_keys:
        return "dev-mode"

    if api_key is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key. Provide X-API-KEY header.",
        )

    valid_keys = [k.strip() for k in settings.api_keys.split(",") if k.strip()]
    if not valid_keys or api_key not in valid_keys:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
        )

    return api_key


async def verify_admin_secret(secret: str | None = Security(admin_secret_header)) -> None:
    """
    Verify the X-Admin-Secret header for administrative endpoints.

    Unlike API keys there is no dev-mode bypass: an unset ADMIN_SECRET
    disables the admin endpoints entirely.

    Raises:
        HTTPException: 503 if no admin secret is configured, 401 if the
            header is missing or does not match.
    """
    settings = get_settings()

    if not settings.admin_configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin endpoints not configured. Set ADMIN_SECRET to enable.",
        )

    if secret is None or not hmac.compare_digest(
        secret.encode("utf-8"),
        settings.admin_secret.encode("utf-8"),
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing admin secret",
        )
