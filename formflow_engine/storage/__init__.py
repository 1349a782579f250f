"""Persistence backends for workflows, cache entries and profile data."""

from .kv_store import InMemoryStore, JsonFileStore

__all__ = ["InMemoryStore", "JsonFileStore"]
