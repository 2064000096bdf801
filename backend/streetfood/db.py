"""Supabase client construction and session identity."""

import logging
from typing import Optional

from supabase import AsyncClient, acreate_client

from .config import SUPABASE_KEY, SUPABASE_URL
from .errors import NotAuthenticated, StoreUnavailable

logger = logging.getLogger(__name__)

_client: AsyncClient | None = None


async def get_supabase() -> AsyncClient | None:
    """Get or create the process-wide Supabase client."""
    global _client
    if _client is None:
        if SUPABASE_URL and SUPABASE_KEY:
            _client = await acreate_client(SUPABASE_URL, SUPABASE_KEY)
            logger.info(f"Connected to Supabase at {SUPABASE_URL}")
    return _client


def set_supabase_client(client: AsyncClient | None) -> None:
    """Replace the shared client (used by tests and embedding applications)."""
    global _client
    _client = client


async def get_current_author_id(client: AsyncClient) -> Optional[str]:
    """Return the signed-in user's id, or None when there is no session."""
    try:
        response = await client.auth.get_user()
    except Exception as e:
        logger.info(f"No active session: {e}")
        return None
    if response is None or response.user is None:
        return None
    return str(response.user.id)


async def sign_in(client: AsyncClient, email: str, password: str) -> str:
    """Sign in with email and password and return the author id."""
    if not email or not password:
        raise NotAuthenticated("Please enter both email and password")
    try:
        response = await client.auth.sign_in_with_password({"email": email, "password": password})
    except Exception as e:
        raise StoreUnavailable(f"Sign in failed: {e}") from e
    if response.user is None:
        raise NotAuthenticated(f"Sign in failed for {email}")
    logger.info(f"Signed in as {email}")
    return str(response.user.id)
