"""Store protocol, implementations and query timing."""

from localsearch.db.memory_store import InMemoryStore
from localsearch.db.query_executor import timed_query
from localsearch.db.store import SearchStore
from localsearch.db.supabase_store import SupabaseStore

__all__ = [
    "InMemoryStore",
    "SearchStore",
    "SupabaseStore",
    "timed_query",
]
