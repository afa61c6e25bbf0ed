"""Supabase client for the Python backend."""

import logging
from functools import lru_cache

from supabase import Client, create_client

from ..config import settings


@lru_cache()
def get_supabase_client() -> Client | None:
    """Get cached Supabase client instance.

    Returns:
        Supabase Client instance if configured, None otherwise.
        Note: This does not test the connection - actual queries may fail with network errors.
    """
    if not settings.supabase_url or not settings.supabase_key:
        logging.warning("Supabase credentials not configured (missing URL or key)")
        return None

    try:
        return create_client(settings.supabase_url, settings.supabase_key)
    except Exception as e:
        logging.error(f"Failed to create Supabase client: {e}")
        return None


def require_supabase_client() -> Client:
    """Return the Supabase client or fail loudly when it is not configured."""
    client = get_supabase_client()
    if client is None:
        raise RuntimeError(
            "Supabase is not configured. Set DESPACHOS_SUPABASE_URL and DESPACHOS_SUPABASE_KEY."
        )
    return client
