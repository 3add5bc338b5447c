"""
Storage Backend Module

Document storage for loan terms, ledgers and audit events. Every record is a
JSON document keyed by id inside a named table. Ledger documents carry a
`version` field, and ledger writes go through compare_and_swap so that two
submissions based on the same snapshot can never both be stored.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import json
import sqlite3
import threading


VERSION_FIELD = "version"

Document = Dict[str, Any]


def _encode(data: Document) -> str:
    return json.dumps(data, default=str)


def _matches(document: Document, filters: Document) -> bool:
    return all(key in document and document[key] == value for key, value in filters.items())


class StorageInterface(ABC):
    """Abstract interface for storage backends"""

    @abstractmethod
    def save(self, table: str, record_id: str, data: Document) -> None:
        """Insert or overwrite a document"""

    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Document]:
        """Load a document, or None if absent"""

    @abstractmethod
    def load_all(self, table: str) -> List[Document]:
        """Load every document of a table in insertion order"""

    @abstractmethod
    def compare_and_swap(
        self,
        table: str,
        record_id: str,
        data: Document,
        expected_version: Optional[int]
    ) -> bool:
        """
        Write a document only if its stored version is still `expected_version`.

        `expected_version=None` means the document must not exist yet.
        Returns True if the write happened.
        """

    @abstractmethod
    def close(self) -> None:
        """Release the backend"""

    def exists(self, table: str, record_id: str) -> bool:
        return self.load(table, record_id) is not None

    def find(self, table: str, filters: Document) -> List[Document]:
        """Documents whose top-level keys equal every filter value"""
        return [doc for doc in self.load_all(table) if _matches(doc, filters)]

    def count(self, table: str) -> int:
        return len(self.load_all(table))

    def begin_transaction(self) -> None:
        pass

    def commit(self) -> None:
        pass

    def rollback(self) -> None:
        pass

    @contextmanager
    def atomic(self):
        """Group writes; all of them are discarded if the block raises"""
        self.begin_transaction()
        try:
            yield self
        except Exception:
            self.rollback()
            raise
        self.commit()


class InMemoryStorage(StorageInterface):
    """
    In-memory storage for tests and single-process use.

    Documents are kept as encoded JSON so callers always get fresh copies.
    """

    def __init__(self):
        self._tables: Dict[str, Dict[str, str]] = {}
        self._lock = threading.RLock()

    def _table(self, table: str) -> Dict[str, str]:
        return self._tables.setdefault(table, {})

    def save(self, table: str, record_id: str, data: Document) -> None:
        with self._lock:
            self._table(table)[record_id] = _encode(data)

    def load(self, table: str, record_id: str) -> Optional[Document]:
        with self._lock:
            encoded = self._table(table).get(record_id)
        return json.loads(encoded) if encoded is not None else None

    def load_all(self, table: str) -> List[Document]:
        with self._lock:
            encoded = list(self._table(table).values())
        return [json.loads(item) for item in encoded]

    def exists(self, table: str, record_id: str) -> bool:
        with self._lock:
            return record_id in self._table(table)

    def count(self, table: str) -> int:
        with self._lock:
            return len(self._table(table))

    def compare_and_swap(
        self,
        table: str,
        record_id: str,
        data: Document,
        expected_version: Optional[int]
    ) -> bool:
        with self._lock:
            documents = self._table(table)
            current = documents.get(record_id)
            if expected_version is None:
                if current is not None:
                    return False
            elif current is None or json.loads(current).get(VERSION_FIELD) != expected_version:
                return False
            documents[record_id] = _encode(data)
            return True

    def close(self) -> None:
        pass


class SQLiteStorage(StorageInterface):
    """
    SQLite storage for persistence.

    Each table holds (id, data, version, created_at, updated_at). The version
    column mirrors the document's version field so that compare_and_swap is a
    single conditional statement.
    """

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level='DEFERRED')
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._in_transaction = False
        self._known_tables = set()

        if self.db_path != ":memory:":
            with self._lock:
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
                self._connection.commit()

    def _ensure_table(self, table: str) -> None:
        if table in self._known_tables:
            return
        self._connection.execute(f"""
            CREATE TABLE IF NOT EXISTS "{table}" (
                id TEXT PRIMARY KEY,
                data TEXT NOT NULL,
                version INTEGER,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        self._known_tables.add(table)

    def _execute(self, table: str, sql: str, params=()) -> sqlite3.Cursor:
        with self._lock:
            self._ensure_table(table)
            cursor = self._connection.execute(sql, params)
            if not self._in_transaction:
                self._connection.commit()
            return cursor

    def save(self, table: str, record_id: str, data: Document) -> None:
        now = datetime.now(timezone.utc).isoformat()
        self._execute(table, f"""
            INSERT INTO "{table}" (id, data, version, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                data = excluded.data,
                version = excluded.version,
                updated_at = excluded.updated_at
        """, (record_id, _encode(data), data.get(VERSION_FIELD), now, now))

    def load(self, table: str, record_id: str) -> Optional[Document]:
        with self._lock:
            row = self._execute(table, f'SELECT data FROM "{table}" WHERE id = ?', (record_id,)).fetchone()
        return json.loads(row['data']) if row else None

    def load_all(self, table: str) -> List[Document]:
        with self._lock:
            rows = self._execute(table, f'SELECT data FROM "{table}" ORDER BY rowid').fetchall()
        return [json.loads(row['data']) for row in rows]

    def count(self, table: str) -> int:
        with self._lock:
            return self._execute(table, f'SELECT COUNT(*) FROM "{table}"').fetchone()[0]

    def compare_and_swap(
        self,
        table: str,
        record_id: str,
        data: Document,
        expected_version: Optional[int]
    ) -> bool:
        now = datetime.now(timezone.utc).isoformat()
        encoded = _encode(data)
        version = data.get(VERSION_FIELD)

        if expected_version is None:
            cursor = self._execute(table, f"""
                INSERT OR IGNORE INTO "{table}" (id, data, version, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
            """, (record_id, encoded, version, now, now))
        else:
            cursor = self._execute(table, f"""
                UPDATE "{table}" SET data = ?, version = ?, updated_at = ?
                WHERE id = ? AND version = ?
            """, (encoded, version, now, record_id, expected_version))

        return cursor.rowcount == 1

    @contextmanager
    def atomic(self):
        """Group writes on the shared connection; other threads wait until the block ends"""
        with self._lock:
            with super().atomic():
                yield self

    def begin_transaction(self) -> None:
        # The sqlite3 module opens the transaction on the first write
        with self._lock:
            self._in_transaction = True

    def commit(self) -> None:
        with self._lock:
            if self._in_transaction:
                self._connection.commit()
                self._in_transaction = False

    def rollback(self) -> None:
        with self._lock:
            if self._in_transaction:
                self._connection.rollback()
                self._in_transaction = False
                # Tables created inside the transaction are gone too
                self._known_tables.clear()

    def close(self) -> None:
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


def create_storage(backend: str, sqlite_path: Union[str, Path] = ":memory:") -> StorageInterface:
    """Build the storage backend named in configuration"""
    if backend == "memory":
        return InMemoryStorage()
    if backend == "sqlite":
        return SQLiteStorage(sqlite_path)
    raise ValueError(f"Unknown storage backend '{backend}'")
