"""
Branch Graph

A branch is a named, ordered sequence of commit ids. Creating a branch
copies the source branch's sequence at that moment (the fork point);
after that the two sequences evolve independently. Copying ids is cheap
because the commits themselves are shared, immutable rows.

Branches never own files. The working set belongs to the repository.
"""

import logging

from .cas import ContentStore
from .errors import ValidationError

logger = logging.getLogger(__name__)


class BranchGraph:
    def __init__(self, store: ContentStore):
        self.store = store
        self.conn = store.conn
        self._init_tables()

    def _init_tables(self):
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS branches (
                repo_id TEXT NOT NULL,
                name TEXT NOT NULL,
                position INTEGER NOT NULL,
                fork_of TEXT,
                created_at INTEGER NOT NULL,
                PRIMARY KEY (repo_id, name)
            );

            CREATE TABLE IF NOT EXISTS branch_commits (
                repo_id TEXT NOT NULL,
                branch TEXT NOT NULL,
                seq INTEGER NOT NULL,
                commit_id TEXT NOT NULL,
                PRIMARY KEY (repo_id, branch, seq)
            );
        """)

    @staticmethod
    def validate_name(name: str):
        """Validate branch name."""
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Branch name cannot be empty")
        if "\0" in name:
            raise ValidationError(f"Branch name contains null byte: {name!r}")

    def exists(self, repo_id: str, name: str) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM branches WHERE repo_id = ? AND name = ?", (repo_id, name)
        ).fetchone()
        return row is not None

    def create(self, repo_id: str, name: str, now: int, from_branch: str | None = None) -> str:
        """
        Create a branch, copying *from_branch*'s commit sequence if given.

        Callers check for duplicates and a missing source first, so the
        inserts below cannot fail halfway through.
        """
        (position,) = self.conn.execute(
            "SELECT COALESCE(MAX(position), -1) + 1 FROM branches WHERE repo_id = ?",
            (repo_id,),
        ).fetchone()
        self.conn.execute(
            """INSERT INTO branches (repo_id, name, position, fork_of, created_at)
               VALUES (?, ?, ?, ?, ?)""",
            (repo_id, name, position, from_branch, now),
        )
        if from_branch is not None:
            self.conn.execute(
                """INSERT INTO branch_commits (repo_id, branch, seq, commit_id)
                   SELECT repo_id, ?, seq, commit_id FROM branch_commits
                   WHERE repo_id = ? AND branch = ?""",
                (name, repo_id, from_branch),
            )
        logger.info("Created branch %s/%s (from %s)", repo_id, name, from_branch or "nothing")
        return name

    def append(self, repo_id: str, branch: str, commit_id: str):
        (seq,) = self.conn.execute(
            """SELECT COALESCE(MAX(seq), -1) + 1 FROM branch_commits
               WHERE repo_id = ? AND branch = ?""",
            (repo_id, branch),
        ).fetchone()
        self.conn.execute(
            "INSERT INTO branch_commits (repo_id, branch, seq, commit_id) VALUES (?, ?, ?, ?)",
            (repo_id, branch, seq, commit_id),
        )

    def names(self, repo_id: str) -> list[str]:
        """Branch names in creation order."""
        rows = self.conn.execute(
            "SELECT name FROM branches WHERE repo_id = ? ORDER BY position", (repo_id,)
        ).fetchall()
        return [r[0] for r in rows]

    def commit_ids(self, repo_id: str, branch: str) -> list[str]:
        rows = self.conn.execute(
            """SELECT commit_id FROM branch_commits
               WHERE repo_id = ? AND branch = ? ORDER BY seq""",
            (repo_id, branch),
        ).fetchall()
        return [r[0] for r in rows]

    def drop_repository(self, repo_id: str):
        self.conn.execute("DELETE FROM branch_commits WHERE repo_id = ?", (repo_id,))
        self.conn.execute("DELETE FROM branches WHERE repo_id = ?", (repo_id,))
