"""
File Store

The working set of a repository: one FileEntry per path. Content goes
into the CAS, the working set keeps only ``path -> (blob hash, mtime)``.
Because the blob hash is computed from the bytes at write time, the
reported digest can never go stale.

The working set is repository-global. Branches do not own files, and
switching branches does not check anything out.
"""

import logging

from .cas import ContentStore
from .errors import ValidationError
from .models import FileEntry

logger = logging.getLogger(__name__)


class FileStore:
    def __init__(self, store: ContentStore):
        self.store = store
        self.conn = store.conn
        self._init_tables()

    def _init_tables(self):
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS files (
                repo_id TEXT NOT NULL,
                path TEXT NOT NULL,
                blob_hash TEXT NOT NULL,
                last_modified INTEGER NOT NULL,
                PRIMARY KEY (repo_id, path)
            );
        """)

    @staticmethod
    def validate_path(path: str):
        if not isinstance(path, str) or not path.strip():
            raise ValidationError("File path cannot be empty")
        if "\0" in path:
            raise ValidationError(f"File path contains null byte: {path!r}")

    @staticmethod
    def validate_content(content) -> bytes:
        if not isinstance(content, (bytes, bytearray, memoryview)):
            raise ValidationError(
                f"File content must be bytes, got {type(content).__name__}"
            )
        return bytes(content)

    def put(self, repo_id: str, path: str, content: bytes, now: int) -> FileEntry:
        """Insert or replace the entry at *path*."""
        blob_hash = self.store.store_blob(content)
        self.conn.execute(
            """INSERT OR REPLACE INTO files (repo_id, path, blob_hash, last_modified)
               VALUES (?, ?, ?, ?)""",
            (repo_id, path, blob_hash, now),
        )
        logger.debug("Stored %s in %s (%d bytes, %s)", path, repo_id, len(content), blob_hash[:12])
        return FileEntry(path=path, content=content, hash=blob_hash, last_modified=now)

    def get(self, repo_id: str, path: str) -> FileEntry | None:
        row = self.conn.execute(
            "SELECT blob_hash, last_modified FROM files WHERE repo_id = ? AND path = ?",
            (repo_id, path),
        ).fetchone()
        if row is None:
            return None
        return self._entry(path, row[0], row[1])

    def remove(self, repo_id: str, path: str) -> bool:
        cur = self.conn.execute(
            "DELETE FROM files WHERE repo_id = ? AND path = ?", (repo_id, path)
        )
        return cur.rowcount > 0

    def paths(self, repo_id: str) -> list[str]:
        rows = self.conn.execute(
            "SELECT path FROM files WHERE repo_id = ? ORDER BY path", (repo_id,)
        ).fetchall()
        return [r[0] for r in rows]

    def manifest(self, repo_id: str) -> dict[str, tuple]:
        """The working set as ``{path: (blob_hash, last_modified)}``."""
        rows = self.conn.execute(
            "SELECT path, blob_hash, last_modified FROM files WHERE repo_id = ? ORDER BY path",
            (repo_id,),
        ).fetchall()
        return {r[0]: (r[1], r[2]) for r in rows}

    def entries(self, repo_id: str) -> list[FileEntry]:
        return [
            self._entry(path, blob_hash, mtime)
            for path, (blob_hash, mtime) in self.manifest(repo_id).items()
        ]

    def drop_repository(self, repo_id: str):
        self.conn.execute("DELETE FROM files WHERE repo_id = ?", (repo_id,))

    def _entry(self, path: str, blob_hash: str, last_modified: int) -> FileEntry:
        return FileEntry(
            path=path,
            content=self.store.read_blob(blob_hash),
            hash=blob_hash,
            last_modified=last_modified,
        )
