"""Shared Supabase client used by the store implementations by default."""

from functools import lru_cache

from supabase import Client, ClientOptions, create_client

from app.core.config import get_settings
from app.core.logging import get_logger

logger = get_logger(__name__)


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """
    Service-role Supabase client, created on first use.

    Stores take an explicit client in their constructor; this is only their
    fallback, so tests never reach it.

    Raises:
        RuntimeError: If client initialization fails
    """
    settings = get_settings()
    try:
        client = create_client(
            settings.SUPABASE_URL,
            settings.SUPABASE_SERVICE_ROLE_KEY,
            options=ClientOptions(postgrest_client_timeout=settings.SUPABASE_TIMEOUT_SECONDS),
        )
    except Exception as e:
        raise RuntimeError(f"Failed to initialize Supabase client: {e}") from e

    logger.info(f"Supabase client ready for {settings.SUPABASE_URL}")
    return client
