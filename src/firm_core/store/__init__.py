"""
Persistence layer for the firm core.

Provides the abstract store interface plus in-memory and SQLite
implementations.
"""

from firm_core.store.base import PortfolioStore, StorageError
from firm_core.store.memory import InMemoryStore
from firm_core.store.sqlite import SqliteStore, connect, provision_schema

__all__ = [
    "PortfolioStore",
    "StorageError",
    "InMemoryStore",
    "SqliteStore",
    "connect",
    "provision_schema",
]
