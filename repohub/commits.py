"""
Commit Engine

A commit is a complete, immutable snapshot of a repository's working set
at one point in time. The snapshot is stored as a manifest tree in the
CAS (``path -> (blob hash, last modified)``), so two commits of the same
files share every blob and even the manifest itself.

Commits are append-only. Nothing here updates or deletes a commit row
except dropping a whole repository.

Reading a file "as of" a commit goes through the manifest, never the
live working set, so later uploads and deletes cannot rewrite history.
"""

import json
import logging
import uuid

from .cas import ContentStore, ObjectType
from .errors import ValidationError
from .models import Commit, FileEntry

logger = logging.getLogger(__name__)


class CommitEngine:
    def __init__(self, store: ContentStore):
        self.store = store
        self.conn = store.conn
        self._init_tables()

    def _init_tables(self):
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS commits (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                repo_id TEXT NOT NULL,
                branch TEXT NOT NULL,
                message TEXT NOT NULL,
                root_tree TEXT NOT NULL,
                timestamp INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_commits_repo
                ON commits(repo_id);
        """)

    @staticmethod
    def validate_message(message: str):
        if not isinstance(message, str) or not message.strip():
            raise ValidationError("Commit message cannot be empty")

    def create(
        self,
        repo_id: str,
        branch: str,
        manifest: dict[str, tuple],
        message: str,
        now: int,
    ) -> str:
        """Record a commit of *manifest* and return its id.

        The id hashes (tree, repository, branch, timestamp, nonce) so two
        commits of identical content made in the same clock tick still
        get distinct ids.
        """
        root_tree = self.store.store_tree(manifest)
        commit_content = json.dumps({
            "root_tree": root_tree,
            "repo_id": repo_id,
            "branch": branch,
            "timestamp": now,
            "nonce": str(uuid.uuid4()),
        }).encode()
        commit_id = self.store.hash_content(commit_content, ObjectType.COMMIT)

        self.conn.execute(
            """INSERT INTO commits (id, repo_id, branch, message, root_tree, timestamp)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (commit_id, repo_id, branch, message, root_tree, now),
        )
        logger.info(
            "Commit %s on %s/%s (%d files)", commit_id[:12], repo_id, branch, len(manifest)
        )
        return commit_id

    def exists(self, repo_id: str, commit_id: str) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM commits WHERE repo_id = ? AND id = ?", (repo_id, commit_id)
        ).fetchone()
        return row is not None

    def get(self, repo_id: str, commit_id: str) -> Commit | None:
        row = self.conn.execute(
            """SELECT id, message, timestamp, root_tree FROM commits
               WHERE repo_id = ? AND id = ?""",
            (repo_id, commit_id),
        ).fetchone()
        return self._load(row) if row else None

    def history(self, repo_id: str) -> list[Commit]:
        """All commits of a repository, oldest first."""
        rows = self.conn.execute(
            """SELECT id, message, timestamp, root_tree FROM commits
               WHERE repo_id = ? ORDER BY seq""",
            (repo_id,),
        ).fetchall()
        return [self._load(r) for r in rows]

    def load_many(self, repo_id: str, commit_ids: list[str]) -> list[Commit]:
        """Load commits in the order given (used for branch sequences)."""
        commits = []
        for commit_id in commit_ids:
            commit = self.get(repo_id, commit_id)
            if commit is not None:
                commits.append(commit)
        return commits

    def file_at(self, repo_id: str, commit_id: str, path: str) -> FileEntry | None:
        """The entry for *path* as recorded in the commit's snapshot."""
        row = self.conn.execute(
            "SELECT root_tree FROM commits WHERE repo_id = ? AND id = ?",
            (repo_id, commit_id),
        ).fetchone()
        if row is None:
            return None
        entry = self.store.read_tree(row[0]).get(path)
        if entry is None:
            return None
        blob_hash, last_modified = entry
        return FileEntry(
            path=path,
            content=self.store.read_blob(blob_hash),
            hash=blob_hash,
            last_modified=last_modified,
        )

    def drop_repository(self, repo_id: str):
        self.conn.execute("DELETE FROM commits WHERE repo_id = ?", (repo_id,))

    def _load(self, row) -> Commit:
        commit_id, message, timestamp, root_tree = row
        files = [
            FileEntry(
                path=path,
                content=self.store.read_blob(blob_hash),
                hash=blob_hash,
                last_modified=last_modified,
            )
            for path, (blob_hash, last_modified) in sorted(self.store.read_tree(root_tree).items())
        ]
        return Commit(id=commit_id, message=message, timestamp=timestamp, files=files)
