"""Persistence backends for repositories and analysis results."""

from .base import RiskStore
from .memory import InMemoryStore
from .supabase_store import SupabaseStore

__all__ = [
    "RiskStore",
    "InMemoryStore",
    "SupabaseStore",
]
