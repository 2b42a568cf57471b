from __future__ import annotations

from typing import List, Optional

from fastapi import Depends, Header, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from src.medverify.config import Settings
from src.medverify.container import ServiceContainer, get_container

# API key presented by the identity gateway when ENABLE_API_AUTH is true.
_api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def _parse_api_keys(settings: Settings) -> List[str]:
    """Return the configured API keys as a normalized list.

    API_KEYS is treated as a comma-separated list. Whitespace is stripped and
    empty entries are ignored.
    """

    if not settings.api_keys:
        return []
    return [key.strip() for key in settings.api_keys.split(",") if key.strip()]


async def get_api_key(
    api_key: Optional[str] = Security(_api_key_header),
    container: ServiceContainer = Depends(get_container),
) -> str:
    """FastAPI dependency guarding the dashboard API.

    - If ENABLE_API_AUTH is false (development/tests), this is a no-op.
    - If ENABLE_API_AUTH is true, a valid API key must be supplied in the
      X-API-Key header and match the configured API_KEYS list.
    """

    settings = container.settings
    if not settings.enable_api_auth:
        return ""

    allowed_keys = _parse_api_keys(settings)
    if not allowed_keys:
        # Misconfiguration: auth is enabled but no keys are configured.
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API authentication is enabled but no API keys are configured.",
        )

    if not api_key or api_key not in allowed_keys:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key.",
        )

    return api_key


async def get_current_subject(
    x_auth_subject: Optional[str] = Header(None, alias="X-Auth-Subject"),
    api_key: str = Depends(get_api_key),
) -> str:
    """Return the identity-provider subject of the calling clinician.

    The identity gateway authenticates the clinician session and forwards the
    verified subject id. Requests without one are unauthenticated.
    """

    subject = (x_auth_subject or "").strip()
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return subject


def ensure_same_subject(subject: str, claimed: Optional[str]) -> None:
    """Raise HTTP 401 unless the caller acts on their own clinician record."""

    if not claimed or claimed != subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
