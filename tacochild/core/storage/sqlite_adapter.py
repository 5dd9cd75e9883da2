import json
import sqlite3
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from tacochild.utils.logger import get_logger

logger = get_logger("storage.sqlite")


class SQLiteAdapter:
    """
    SQLite backend for persistent registry storage.

    Provides:
    1. Staking provider records and the operator reverse index.
    2. Registry metadata (coordinator binding).
    3. An append-only log of committed notifications.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn_local = threading.local()

        if not db_path.parent.exists():
            db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create connection for current thread."""
        if not hasattr(self._conn_local, "conn"):
            self._conn_local.conn = sqlite3.connect(
                self.db_path,
                timeout=30.0,
                check_same_thread=False
            )
            self._conn_local.conn.row_factory = sqlite3.Row
            self._conn_local.conn.execute("PRAGMA journal_mode=WAL;")
            self._conn_local.conn.execute("PRAGMA synchronous=NORMAL;")
        return self._conn_local.conn

    def _init_schema(self):
        """Initialize database schema."""
        conn = self._get_conn()
        with conn:
            # Amounts are TEXT: uint96 overflows SQLite INTEGER
            conn.execute("""
                CREATE TABLE IF NOT EXISTS staking_providers (
                    staking_provider TEXT PRIMARY KEY,
                    operator TEXT NOT NULL,
                    authorized TEXT NOT NULL,
                    operator_confirmed INTEGER NOT NULL,
                    enum_index INTEGER NOT NULL,
                    deauthorizing TEXT NOT NULL,
                    end_deauthorization TEXT NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_provider_index ON staking_providers(enum_index);")

            conn.execute("""
                CREATE TABLE IF NOT EXISTS operators (
                    operator TEXT PRIMARY KEY,
                    staking_provider TEXT NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS chain_state (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    staking_provider TEXT NOT NULL,
                    payload TEXT NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_event_provider ON events(staking_provider);")

    # =========================================================================
    # Chain State Operations
    # =========================================================================

    def set_chain_meta(self, key: str, value: str):
        conn = self._get_conn()
        with conn:
            conn.execute("INSERT OR REPLACE INTO chain_state (key, value) VALUES (?, ?)", (key, value))

    def get_chain_meta(self, key: str) -> Optional[str]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT value FROM chain_state WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row['value'] if row else None

    # =========================================================================
    # Registry Operations
    # =========================================================================

    def get_all_providers(self) -> List[Tuple]:
        """Get all provider rows ordered by enumeration index."""
        conn = self._get_conn()
        cursor = conn.execute("""
            SELECT staking_provider, operator, authorized, operator_confirmed,
                   enum_index, deauthorizing, end_deauthorization
            FROM staking_providers ORDER BY enum_index ASC
        """)
        return [tuple(row) for row in cursor]

    def get_all_operators(self) -> List[Tuple[str, str]]:
        """Get all (operator, staking_provider) pairs."""
        conn = self._get_conn()
        cursor = conn.execute("SELECT operator, staking_provider FROM operators")
        return [(row['operator'], row['staking_provider']) for row in cursor]

    def get_events(self, staking_provider: Optional[str] = None) -> List[Dict[str, Any]]:
        """Get committed events in emission order."""
        conn = self._get_conn()
        if staking_provider is None:
            cursor = conn.execute("SELECT payload FROM events ORDER BY seq ASC")
        else:
            cursor = conn.execute(
                "SELECT payload FROM events WHERE staking_provider = ? ORDER BY seq ASC",
                (staking_provider,)
            )
        return [json.loads(row['payload']) for row in cursor]

    def persist_registry_update(
        self,
        providers: List[Tuple],
        set_operators: List[Tuple[str, str]],
        removed_operators: List[str],
        coordinator: Optional[str],
        events: List[Dict[str, Any]],
    ):
        """
        Atomically write the effects of one registry operation.

        Args:
            providers: Provider rows to upsert
            set_operators: (operator, staking_provider) pairs to upsert
            removed_operators: Operators whose reverse entry was cleared
            coordinator: New coordinator, or None if unchanged
            events: Event dicts emitted by the operation
        """
        conn = self._get_conn()
        with conn:
            conn.executemany(
                """INSERT OR REPLACE INTO staking_providers (
                       staking_provider, operator, authorized, operator_confirmed,
                       enum_index, deauthorizing, end_deauthorization
                   ) VALUES (?, ?, ?, ?, ?, ?, ?)""",
                providers
            )

            for operator in removed_operators:
                conn.execute("DELETE FROM operators WHERE operator = ?", (operator,))
            conn.executemany(
                "INSERT OR REPLACE INTO operators (operator, staking_provider) VALUES (?, ?)",
                set_operators
            )

            if coordinator is not None:
                conn.execute(
                    "INSERT OR REPLACE INTO chain_state (key, value) VALUES (?, ?)",
                    ("coordinator", coordinator)
                )

            conn.executemany(
                "INSERT INTO events (name, staking_provider, payload) VALUES (?, ?, ?)",
                [(e["event"], e["staking_provider"], json.dumps(e)) for e in events]
            )

    def close(self):
        conn = getattr(self._conn_local, "conn", None)
        if conn is not None:
            conn.close()
            del self._conn_local.conn
