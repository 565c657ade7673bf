"""
Content-Addressed Store (CAS)

The foundational storage layer. File bytes and commit snapshot manifests
are stored exactly once, addressed by their SHA-256 hash. This gives us:

- Automatic deduplication (re-uploading unchanged files costs nothing)
- Integrity verification (a FileEntry hash is its blob address)
- Cheap commits (snapshots share unchanged blobs)

The same digest is what callers see as ``FileEntry.hash``, so the hash
reported for a file is always the address of the bytes actually stored.
"""

import hashlib
import json
import logging
import sqlite3
import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"


class ObjectType(Enum):
    BLOB = "blob"  # Raw file content
    TREE = "tree"  # Snapshot manifest: path -> (blob hash, last modified)
    COMMIT = "commit"  # Commit identity record


@dataclass(frozen=True)
class CASObject:
    """An immutable content-addressed object."""

    hash: str
    type: ObjectType
    data: bytes
    size: int


def hash_content(content: bytes, obj_type: ObjectType) -> str:
    """
    Hash content with type prefix (like git does) to prevent
    collisions between different object types with same content.
    """
    header = f"{obj_type.value}:{len(content)}:".encode()
    return hashlib.sha256(header + bytes(content)).hexdigest()


def hash_blob(content: bytes) -> str:
    """Digest of raw file bytes, as reported in ``FileEntry.hash``."""
    return hash_content(content, ObjectType.BLOB)


class ContentStore:
    """
    SQLite-backed content-addressed store.

    The connection is shared with the rest of the store (files, branches,
    commits, proposals), so ``batch()`` doubles as the transaction
    boundary for every mutating operation.

    Thread Safety:
        This class is NOT safe for concurrent use from multiple threads.
        RepositoryStore serializes every call behind its own lock.
    """

    def __init__(self, db_path: Path | str = MEMORY_DB):
        self.db_path = db_path
        # check_same_thread=False: the owning RepositoryStore may be called
        # from worker threads; it holds a lock around every use.
        self.conn = sqlite3.connect(str(db_path), check_same_thread=False, isolation_level=None)
        if str(db_path) != MEMORY_DB:
            self.conn.execute("PRAGMA journal_mode=WAL")
            self.conn.execute("PRAGMA busy_timeout = 30000")
            self.conn.execute("PRAGMA synchronous=NORMAL")
        self._in_batch = False
        self._closed = False
        self._init_tables()

    def _init_tables(self):
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS objects (
                hash TEXT PRIMARY KEY,
                type TEXT NOT NULL,
                data BLOB NOT NULL,
                size INTEGER NOT NULL,
                created_at REAL NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_objects_type
                ON objects(type);
        """)

    # ── Batch Transactions ────────────────────────────────────────

    @contextmanager
    def batch(self):
        """Context manager for batched writes, committed once at the end."""
        if self._in_batch:
            yield  # nested, pass through
            return
        self._in_batch = True
        self.conn.execute("BEGIN IMMEDIATE")
        try:
            yield
            self.conn.execute("COMMIT")
        except BaseException:
            self.conn.execute("ROLLBACK")
            raise
        finally:
            self._in_batch = False

    @property
    def in_batch(self) -> bool:
        return self._in_batch

    # ── Core Operations ───────────────────────────────────────────

    def hash_content(self, content: bytes, obj_type: ObjectType) -> str:
        return hash_content(content, obj_type)

    def store(self, content: bytes, obj_type: ObjectType) -> str:
        """
        Store content and return its hash. Idempotent: storing
        the same content twice is a no-op that returns the same hash.
        """
        content = bytes(content)
        content_hash = hash_content(content, obj_type)

        existing = self.conn.execute(
            "SELECT hash FROM objects WHERE hash = ?", (content_hash,)
        ).fetchone()
        if existing is not None:
            return content_hash

        self.conn.execute(
            """INSERT OR IGNORE INTO objects
               (hash, type, data, size, created_at) VALUES (?, ?, ?, ?, ?)""",
            (content_hash, obj_type.value, content, len(content), time.time()),
        )
        return content_hash

    def retrieve(self, content_hash: str) -> CASObject | None:
        """Retrieve an object by its hash."""
        row = self.conn.execute(
            "SELECT hash, type, data, size FROM objects WHERE hash = ?", (content_hash,)
        ).fetchone()

        if row is None:
            return None

        return CASObject(
            hash=row[0],
            type=ObjectType(row[1]),
            data=bytes(row[2]),
            size=row[3],
        )

    def exists(self, content_hash: str) -> bool:
        row = self.conn.execute("SELECT 1 FROM objects WHERE hash = ?", (content_hash,)).fetchone()
        return row is not None

    def store_blob(self, content: bytes) -> str:
        """Store raw file content."""
        return self.store(content, ObjectType.BLOB)

    def read_blob(self, blob_hash: str) -> bytes:
        obj = self.retrieve(blob_hash)
        if obj is None or obj.type != ObjectType.BLOB:
            raise ValueError(f"Not a blob: {blob_hash}")
        return obj.data

    def store_tree(self, entries: dict) -> str:
        """
        Store a snapshot manifest.

        entries: {path: (blob_hash, last_modified)}

        Entries are sorted for deterministic hashing; the same working
        set always produces the same tree hash regardless of insertion order.
        """
        sorted_entries = sorted((path, list(entry)) for path, entry in entries.items())
        data = json.dumps(sorted_entries).encode()
        return self.store(data, ObjectType.TREE)

    def read_tree(self, tree_hash: str) -> dict[str, tuple]:
        """Read a manifest back into ``{path: (blob_hash, last_modified)}``."""
        obj = self.retrieve(tree_hash)
        if obj is None or obj.type != ObjectType.TREE:
            raise ValueError(f"Not a tree: {tree_hash}")
        return {path: (entry[0], entry[1]) for path, entry in json.loads(obj.data.decode())}

    # ── Statistics ────────────────────────────────────────────────

    def stats(self) -> dict:
        """Storage statistics."""
        row = self.conn.execute("SELECT COUNT(*), COALESCE(SUM(size), 0) FROM objects").fetchone()
        by_type = {}
        for row2 in self.conn.execute(
            "SELECT type, COUNT(*), COALESCE(SUM(size), 0) FROM objects GROUP BY type"
        ):
            by_type[row2[0]] = {"count": row2[1], "bytes": row2[2]}

        return {
            "total_objects": row[0],
            "total_bytes": row[1],
            "by_type": by_type,
        }

    def close(self):
        """Close the SQLite connection. Safe to call multiple times."""
        if self._closed:
            return
        self._closed = True
        try:
            self.conn.close()
        except sqlite3.Error:
            logger.debug("Error closing content store", exc_info=True)

    def __del__(self):
        """Safety net: close if the user forgot to call close()."""
        try:
            if not self._closed:
                self.close()
        except Exception:
            pass
