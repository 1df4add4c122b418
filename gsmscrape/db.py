"""SQLite-backed document store.

Each collection is a table of JSON documents keyed by one field
(detail_id for phones). Upserts merge into the stored document and
maintain first_seen_at, last_updated_at and version.
"""

import json
import re
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Generator, List, Optional

from gsmscrape.config import DB_PATH
from gsmscrape.errors import PersistenceError

__all__ = [
    "DEFAULT_DB_PATH",
    "get_connection",
    "utc_now",
    "DocumentStore",
]

DEFAULT_DB_PATH = DB_PATH

# Collection and key names become table/index identifiers
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@contextmanager
def get_connection(db_path: str = DEFAULT_DB_PATH) -> Generator[sqlite3.Connection, None, None]:
    """Context manager for database connections."""
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _check_identifier(name: str, what: str) -> str:
    if not _IDENTIFIER_RE.match(name or ""):
        raise PersistenceError(f"Invalid {what} name: {name!r}")
    return name


class DocumentStore:
    """Key-based upsert store over one SQLite file.

    Every call opens its own connection, so one store can be shared by
    worker threads. Writes are serialised by a store-level lock.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH, clock: Callable[[], str] = utc_now):
        self.db_path = db_path
        self.clock = clock
        self._lock = threading.Lock()

    @contextmanager
    def _connect(self) -> Generator[sqlite3.Connection, None, None]:
        try:
            with get_connection(self.db_path) as conn:
                yield conn
        except sqlite3.Error as e:
            raise PersistenceError(f"Database error ({self.db_path}): {e}") from e

    def _ensure_table(self, conn: sqlite3.Connection, collection: str) -> None:
        conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {collection} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                key_value TEXT NOT NULL,
                document TEXT NOT NULL,
                first_seen_at TEXT NOT NULL,
                last_updated_at TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 1
            )
        """)

    def ensure_index(self, collection: str, key_field: str) -> None:
        """Create the collection and a unique index on its key (idempotent)."""
        _check_identifier(collection, "collection")
        _check_identifier(key_field, "key field")
        with self._connect() as conn:
            self._ensure_table(conn, collection)
            conn.execute(
                f"CREATE UNIQUE INDEX IF NOT EXISTS idx_{collection}_{key_field} "
                f"ON {collection} (key_value)"
            )
            conn.commit()

    def upsert(
        self,
        collection: str,
        key_field: str,
        key_value: str,
        document: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Insert or update the document stored under key_value.

        Returns:
            The stored document, including lifecycle fields
        """
        _check_identifier(collection, "collection")
        _check_identifier(key_field, "key field")
        now = self.clock()

        with self._lock, self._connect() as conn:
            self._ensure_table(conn, collection)
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT document, first_seen_at, version FROM {collection} WHERE key_value = ?",
                (key_value,),
            )
            existing = cursor.fetchone()

            if existing:
                stored = json.loads(existing["document"])
                stored.update(document)
                first_seen_at = existing["first_seen_at"]
                version = int(existing["version"]) + 1
            else:
                stored = dict(document)
                first_seen_at = now
                version = 1

            stored[key_field] = key_value
            stored["first_seen_at"] = first_seen_at
            stored["last_updated_at"] = now
            stored["version"] = version
            payload = json.dumps(stored, ensure_ascii=False)

            if existing:
                cursor.execute(f"""
                    UPDATE {collection} SET
                        document = ?,
                        last_updated_at = ?,
                        version = ?
                    WHERE key_value = ?
                """, (payload, now, version, key_value))
            else:
                cursor.execute(f"""
                    INSERT INTO {collection} (key_value, document, first_seen_at, last_updated_at, version)
                    VALUES (?, ?, ?, ?, ?)
                """, (key_value, payload, first_seen_at, now, version))

            conn.commit()
            return stored

    def set_fields(
        self,
        collection: str,
        key_value: str,
        fields: Dict[str, Any],
    ) -> bool:
        """Merge fields into a stored document without bumping its version.

        Returns:
            False if no document has that key
        """
        _check_identifier(collection, "collection")
        with self._lock, self._connect() as conn:
            self._ensure_table(conn, collection)
            cursor = conn.cursor()
            cursor.execute(f"SELECT document FROM {collection} WHERE key_value = ?", (key_value,))
            row = cursor.fetchone()
            if not row:
                return False

            stored = json.loads(row["document"])
            stored.update(fields)
            cursor.execute(
                f"UPDATE {collection} SET document = ? WHERE key_value = ?",
                (json.dumps(stored, ensure_ascii=False), key_value),
            )
            conn.commit()
            return True

    def exists(self, collection: str, key_field: str, key_value: str) -> bool:
        _check_identifier(collection, "collection")
        _check_identifier(key_field, "key field")
        with self._connect() as conn:
            self._ensure_table(conn, collection)
            cursor = conn.execute(
                f"SELECT 1 FROM {collection} WHERE key_value = ? LIMIT 1", (key_value,)
            )
            return cursor.fetchone() is not None

    def get(self, collection: str, key_value: str) -> Optional[Dict[str, Any]]:
        _check_identifier(collection, "collection")
        with self._connect() as conn:
            self._ensure_table(conn, collection)
            row = conn.execute(
                f"SELECT document FROM {collection} WHERE key_value = ?", (key_value,)
            ).fetchone()
            return json.loads(row["document"]) if row else None

    def count(self, collection: str) -> int:
        _check_identifier(collection, "collection")
        with self._connect() as conn:
            self._ensure_table(conn, collection)
            row = conn.execute(f"SELECT COUNT(*) AS n FROM {collection}").fetchone()
            return int(row["n"])

    def find(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """All documents whose fields equal every value in filters, in insert order."""
        _check_identifier(collection, "collection")
        with self._connect() as conn:
            self._ensure_table(conn, collection)
            rows = conn.execute(f"SELECT document FROM {collection} ORDER BY id").fetchall()

        documents = [json.loads(row["document"]) for row in rows]
        if not filters:
            return documents
        return [
            doc for doc in documents
            if all(doc.get(k) == v for k, v in filters.items())
        ]

    def collections(self) -> List[str]:
        """Names of the collections present in the file."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' "
                "AND name NOT LIKE 'sqlite_%' ORDER BY name"
            ).fetchall()
            return [row["name"] for row in rows]
