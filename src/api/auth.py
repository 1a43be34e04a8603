"""
Session resolution against the auth service.

The access token comes from the `Authorization: Bearer` header or the
`sb-access-token` cookie and is exchanged for the user id at
`{SUPABASE_URL}/auth/v1/user`.
"""
from typing import Callable, Optional

import requests
from fastapi import Depends, Request

from config.settings import Settings, get_settings
from src.utils.constants import API_TIMEOUT_SHORT
from src.utils.logging import get_logger

logger = get_logger(__name__)

ACCESS_TOKEN_COOKIE = 'sb-access-token'

def extract_access_token(request: Request) -> Optional[str]:
    header = request.headers.get('authorization', '')
    if header.lower().startswith('bearer '):
        token = header[7:].strip()
        if token:
            return token
    return request.cookies.get(ACCESS_TOKEN_COOKIE) or None

def resolve_user_id(token: str, settings: Settings) -> Optional[str]:
    """User id for an access token, or None when it cannot be resolved."""
    if not settings.SUPABASE_URL or not settings.SUPABASE_ANON_KEY:
        logger.warning("Auth service is not configured; cannot resolve session")
        return None

    try:
        response = requests.get(
            f"{settings.SUPABASE_URL.rstrip('/')}/auth/v1/user",
            headers={
                'apikey': settings.SUPABASE_ANON_KEY,
                'Authorization': f"Bearer {token}",
            },
            timeout=API_TIMEOUT_SHORT
        )
    except requests.RequestException as e:
        logger.error(f"Session lookup failed: {e}")
        return None

    if response.status_code != 200:
        logger.info("Session rejected by auth service", status=response.status_code)
        return None

    try:
        return response.json().get('id')
    except ValueError:
        logger.error("Auth service returned a malformed user payload")
        return None

def get_session_resolver(settings: Settings = Depends(get_settings)) -> Callable[[Request], Optional[str]]:
    """
    FastAPI dependency: a callable resolving the session user of a request.

    Resolution is deferred so requests that name a user explicitly never
    reach the auth service.
    """
    def resolve(request: Request) -> Optional[str]:
        token = extract_access_token(request)
        if not token:
            return None
        return resolve_user_id(token, settings)

    return resolve
