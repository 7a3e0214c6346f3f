"""Supabase client and store construction."""

import logfire
from supabase import Client, create_client

from localsearch.config import Settings, get_settings
from localsearch.db.memory_store import InMemoryStore
from localsearch.db.store import SearchStore
from localsearch.db.supabase_store import SupabaseStore


def create_supabase_client(settings: Settings | None = None) -> Client:
    """Create a Supabase client from settings.

    Raises:
        ValueError: If Supabase credentials are not configured
    """
    settings = settings or get_settings()
    if not settings.uses_supabase:
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")
    return create_client(settings.supabase_url, settings.supabase_service_key)


def create_store(settings: Settings | None = None) -> SearchStore:
    """Build the store once for the process.

    Uses Supabase when credentials are configured and falls back to the
    in-memory store otherwise (local development, tests).
    """
    settings = settings or get_settings()
    if settings.uses_supabase:
        logfire.info("Using Supabase store", supabase_url=settings.supabase_url)
        return SupabaseStore(create_supabase_client(settings))

    logfire.warning(
        "Supabase is not configured, using in-memory store (data is not persisted)",
        environment=settings.env,
    )
    return InMemoryStore()
