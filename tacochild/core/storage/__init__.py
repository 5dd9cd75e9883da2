"""
Persistent Storage Module.

Provides SQLite-backed persistence for:
- Staking provider records and operator bindings
- Registry metadata
- Committed notifications
"""

from tacochild.core.storage.sqlite_adapter import SQLiteAdapter
from tacochild.core.storage.storage_manager import StorageManager

__all__ = ["SQLiteAdapter", "StorageManager"]
