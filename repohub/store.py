"""
Repository Store

The single entry point callers use. It owns every repository aggregate
and ties together the content store, working sets, branch graph,
commit engine, proposal ledger and chain anchors.

    store = RepositoryStore()
    repo_id = store.create_repository("alice", "demo")
    store.upload_file("alice", repo_id, "README.md", b"hello")
    store.commit_changes("alice", repo_id, "init")

Every method takes the caller's principal first. The principal comes
from whatever identity layer sits in front of the store and is taken at
face value.

Execution model: one re-entrant lock serializes every call, and every
mutation runs inside a single SQLite transaction. Existence,
authorization and validation checks all happen before the first write,
and any exception rolls the transaction back, so a failed call leaves
nothing behind.
"""

import functools
import logging
import threading
import time
import uuid
from pathlib import Path

from .access import Operation, RepositoryAccess, can_read, require
from .anchors import ChainAnchor
from .branches import BranchGraph
from .cas import MEMORY_DB, ContentStore
from .commits import CommitEngine
from .config import StoreConfig
from .errors import Conflict, NotFound, ValidationError
from .files import FileStore
from .gc import GCResult, collect_garbage
from .models import Branch, Commit, CommitMetadata, FileEntry, Proposal, Repository
from .proposals import ProposalLedger

logger = logging.getLogger(__name__)


def _reader(method):
    """Run *method* under the store lock."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper


def _writer(method):
    """Run *method* under the store lock inside one transaction."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock, self.cas.batch():
            return method(self, *args, **kwargs)

    return wrapper


class RepositoryStore:
    """
    Registry of all repositories, indexed by id and by owner/collaborator.

    Starts empty. State lives as long as the database does: the process
    for ``:memory:``, the file otherwise.
    """

    def __init__(
        self,
        db_path: Path | str = MEMORY_DB,
        default_branch: str = "main",
        clock=None,
        id_factory=None,
    ):
        BranchGraph.validate_name(default_branch)
        self.default_branch = default_branch
        self.cas = ContentStore(db_path)
        self.conn = self.cas.conn
        self.files = FileStore(self.cas)
        self.branches = BranchGraph(self.cas)
        self.commits = CommitEngine(self.cas)
        self.proposals = ProposalLedger(self.cas)
        self.anchors = ChainAnchor(self.cas)
        self._clock = clock or time.time_ns
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self._lock = threading.RLock()
        self._last_timestamp = 0
        self._init_tables()

    @classmethod
    def from_config(cls, config: StoreConfig, **kwargs) -> "RepositoryStore":
        return cls(config.db_path, default_branch=config.default_branch, **kwargs)

    def _init_tables(self):
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS repositories (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                id TEXT NOT NULL UNIQUE,
                owner TEXT NOT NULL,
                name TEXT NOT NULL,
                description TEXT,
                is_private INTEGER NOT NULL DEFAULT 0,
                current_branch TEXT NOT NULL,
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS collaborators (
                repo_id TEXT NOT NULL,
                principal TEXT NOT NULL,
                added_at INTEGER NOT NULL,
                PRIMARY KEY (repo_id, principal)
            );

            CREATE TABLE IF NOT EXISTS deleted_repositories (
                id TEXT PRIMARY KEY,
                deleted_at INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_repositories_owner
                ON repositories(owner);
            CREATE INDEX IF NOT EXISTS idx_collaborators_principal
                ON collaborators(principal);
        """)

    # ── Lifecycle ─────────────────────────────────────────────────

    def close(self):
        with self._lock:
            self.cas.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # ── Helpers ───────────────────────────────────────────────────

    def _now(self) -> int:
        """Clock reading in nanoseconds, never lower than one already issued."""
        now = max(int(self._clock()), self._last_timestamp)
        self._last_timestamp = now
        return now

    def _touch(self, repo_id: str, now: int):
        self.conn.execute(
            "UPDATE repositories SET updated_at = MAX(updated_at, ?) WHERE id = ?",
            (now, repo_id),
        )

    def _access(self, repo_id: str) -> RepositoryAccess:
        """Resolve a repository id or raise NotFound."""
        row = self.conn.execute(
            "SELECT owner, is_private FROM repositories WHERE id = ?", (repo_id,)
        ).fetchone()
        if row is None:
            raise NotFound(f"Repository not found: {repo_id}")
        collaborators = frozenset(
            r[0]
            for r in self.conn.execute(
                "SELECT principal FROM collaborators WHERE repo_id = ?", (repo_id,)
            )
        )
        return RepositoryAccess(
            repo_id=repo_id, owner=row[0], collaborators=collaborators, is_private=bool(row[1])
        )

    def _authorized(self, caller: str, repo_id: str, operation: Operation) -> RepositoryAccess:
        access = self._access(repo_id)
        require(caller, access, operation)
        return access

    def _current_branch(self, repo_id: str) -> str:
        row = self.conn.execute(
            "SELECT current_branch FROM repositories WHERE id = ?", (repo_id,)
        ).fetchone()
        return row[0]

    def _assemble(self, repo_id: str) -> Repository:
        row = self.conn.execute(
            """SELECT id, owner, name, description, is_private, current_branch,
                      created_at, updated_at
               FROM repositories WHERE id = ?""",
            (repo_id,),
        ).fetchone()
        collaborators = [
            r[0]
            for r in self.conn.execute(
                "SELECT principal FROM collaborators WHERE repo_id = ? ORDER BY added_at, principal",
                (repo_id,),
            )
        ]
        commits = self.commits.history(repo_id)
        by_id = {c.id: c for c in commits}
        branches = [
            Branch(
                name=name,
                commits=[by_id[cid] for cid in self.branches.commit_ids(repo_id, name)],
            )
            for name in self.branches.names(repo_id)
        ]
        return Repository(
            id=row[0],
            owner=row[1],
            name=row[2],
            description=row[3],
            is_private=bool(row[4]),
            collaborators=collaborators,
            files=self.files.entries(repo_id),
            branches=branches,
            current_branch=row[5],
            commits=commits,
            chain_metadata=self.anchors.for_repository(repo_id),
            created_at=row[6],
            updated_at=row[7],
        )

    # ── Repositories ──────────────────────────────────────────────

    @_writer
    def create_repository(
        self,
        caller: str,
        name: str,
        description: str | None = None,
        is_private: bool = False,
    ) -> str:
        """Create a repository owned by *caller* and return its id."""
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Repository name cannot be empty")
        if description is not None:
            if not isinstance(description, str):
                raise ValidationError(
                    f"Repository description must be a string, got {type(description).__name__}"
                )
            if not description.strip():
                description = None

        repo_id = self._id_factory()
        exists = self.conn.execute(
            "SELECT 1 FROM repositories WHERE id = ?", (repo_id,)
        ).fetchone()
        if exists:
            raise Conflict(f"Repository id already exists: {repo_id}")
        retired = self.conn.execute(
            "SELECT 1 FROM deleted_repositories WHERE id = ?", (repo_id,)
        ).fetchone()
        if retired:
            raise Conflict(f"Repository id belonged to a deleted repository: {repo_id}")

        now = self._now()
        self.conn.execute(
            """INSERT INTO repositories
               (id, owner, name, description, is_private, current_branch, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (repo_id, caller, name, description, int(bool(is_private)),
             self.default_branch, now, now),
        )
        self.branches.create(repo_id, self.default_branch, now)
        logger.info("Created repository %s (%s) for %s", repo_id, name, caller)
        return repo_id

    @_writer
    def delete_repository(self, caller: str, repo_id: str) -> str:
        self._authorized(caller, repo_id, Operation.ADMIN)
        self.files.drop_repository(repo_id)
        self.branches.drop_repository(repo_id)
        self.commits.drop_repository(repo_id)
        self.anchors.drop_repository(repo_id)
        self.conn.execute("DELETE FROM collaborators WHERE repo_id = ?", (repo_id,))
        self.conn.execute("DELETE FROM repositories WHERE id = ?", (repo_id,))
        self.conn.execute(
            "INSERT INTO deleted_repositories (id, deleted_at) VALUES (?, ?)",
            (repo_id, self._now()),
        )
        swept = collect_garbage(self.cas)
        logger.info(
            "Deleted repository %s (%d objects reclaimed)", repo_id, swept.deleted_objects
        )
        return "Repository deleted"

    @_writer
    def add_collaborator(self, caller: str, repo_id: str, principal: str) -> str:
        access = self._authorized(caller, repo_id, Operation.ADMIN)
        if not isinstance(principal, str) or not principal.strip():
            raise ValidationError("Collaborator principal cannot be empty")
        if access.is_member(principal):
            return "Collaborator already present"

        now = self._now()
        self.conn.execute(
            "INSERT INTO collaborators (repo_id, principal, added_at) VALUES (?, ?, ?)",
            (repo_id, principal, now),
        )
        self._touch(repo_id, now)
        logger.info("Added collaborator %s to %s", principal, repo_id)
        return "Collaborator added"

    @_reader
    def get_repository(self, caller: str, repo_id: str) -> Repository | None:
        """The full aggregate, or None if no such repository exists."""
        try:
            self._authorized(caller, repo_id, Operation.READ)
        except NotFound:
            return None
        return self._assemble(repo_id)

    @_reader
    def get_user_repositories(self, caller: str) -> list[Repository]:
        rows = self.conn.execute(
            "SELECT id FROM repositories WHERE owner = ? ORDER BY seq", (caller,)
        ).fetchall()
        return [self._assemble(r[0]) for r in rows]

    @_reader
    def get_collaborator_repositories(self, caller: str) -> list[Repository]:
        rows = self.conn.execute(
            """SELECT r.id FROM repositories r
               JOIN collaborators c ON c.repo_id = r.id
               WHERE c.principal = ? AND r.owner != ?
               ORDER BY r.seq""",
            (caller, caller),
        ).fetchall()
        return [self._assemble(r[0]) for r in rows]

    # ── Files ─────────────────────────────────────────────────────

    @_writer
    def upload_file(self, caller: str, repo_id: str, path: str, content: bytes) -> str:
        self._authorized(caller, repo_id, Operation.WRITE)
        FileStore.validate_path(path)
        content = FileStore.validate_content(content)

        now = self._now()
        self.files.put(repo_id, path, content, now)
        self._touch(repo_id, now)
        return "File uploaded"

    @_writer
    def delete_file(self, caller: str, repo_id: str, path: str) -> str:
        self._authorized(caller, repo_id, Operation.WRITE)
        if not self.files.remove(repo_id, path):
            raise NotFound(f"File not found: {path}")
        self._touch(repo_id, self._now())
        logger.debug("Deleted %s from %s", path, repo_id)
        return "File deleted"

    @_reader
    def get_file(self, caller: str, repo_id: str, path: str) -> FileEntry | None:
        self._authorized(caller, repo_id, Operation.READ)
        return self.files.get(repo_id, path)

    @_reader
    def list_files(self, caller: str, repo_id: str) -> list[str]:
        self._authorized(caller, repo_id, Operation.READ)
        return self.files.paths(repo_id)

    # ── Commits ───────────────────────────────────────────────────

    @_writer
    def commit_changes(self, caller: str, repo_id: str, message: str) -> str:
        """Snapshot the working set onto the current branch."""
        self._authorized(caller, repo_id, Operation.WRITE)
        CommitEngine.validate_message(message)

        now = self._now()
        branch = self._current_branch(repo_id)
        commit_id = self.commits.create(
            repo_id, branch, self.files.manifest(repo_id), message, now
        )
        self.branches.append(repo_id, branch, commit_id)
        self._touch(repo_id, now)
        return f"Committed {commit_id} to branch '{branch}'"

    @_reader
    def get_commit(self, caller: str, repo_id: str, commit_id: str) -> Commit | None:
        self._authorized(caller, repo_id, Operation.READ)
        return self.commits.get(repo_id, commit_id)

    @_reader
    def list_commits(self, caller: str, repo_id: str) -> list[Commit]:
        self._authorized(caller, repo_id, Operation.READ)
        return self.commits.history(repo_id)

    @_reader
    def get_commit_file_content(
        self, caller: str, repo_id: str, commit_id: str, path: str
    ) -> FileEntry | None:
        self._authorized(caller, repo_id, Operation.READ)
        return self.commits.file_at(repo_id, commit_id, path)

    # ── Branches ──────────────────────────────────────────────────

    @_writer
    def create_branch(self, caller: str, repo_id: str, new_name: str, from_branch: str) -> str:
        self._authorized(caller, repo_id, Operation.WRITE)
        BranchGraph.validate_name(new_name)
        if self.branches.exists(repo_id, new_name):
            raise Conflict(f"Branch already exists: {new_name}")
        if not self.branches.exists(repo_id, from_branch):
            raise NotFound(f"Branch not found: {from_branch}")

        now = self._now()
        self.branches.create(repo_id, new_name, now, from_branch=from_branch)
        self._touch(repo_id, now)
        return f"Branch '{new_name}' created from '{from_branch}'"

    @_writer
    def switch_branch(self, caller: str, repo_id: str, name: str) -> str:
        """Change where future commits go. The working set is left alone."""
        self._authorized(caller, repo_id, Operation.WRITE)
        if not self.branches.exists(repo_id, name):
            raise NotFound(f"Branch not found: {name}")

        self.conn.execute(
            "UPDATE repositories SET current_branch = ? WHERE id = ?", (name, repo_id)
        )
        self._touch(repo_id, self._now())
        return f"Switched to branch '{name}'"

    @_reader
    def list_branches(self, caller: str, repo_id: str) -> list[str]:
        self._authorized(caller, repo_id, Operation.READ)
        return self.branches.names(repo_id)

    @_reader
    def get_current_branch(self, caller: str, repo_id: str) -> str | None:
        self._authorized(caller, repo_id, Operation.READ)
        return self._current_branch(repo_id)

    @_reader
    def list_branch_commits(self, caller: str, repo_id: str, branch: str) -> list[Commit]:
        """The commit sequence of one branch, oldest first."""
        self._authorized(caller, repo_id, Operation.READ)
        if not self.branches.exists(repo_id, branch):
            raise NotFound(f"Branch not found: {branch}")
        return self.commits.load_many(repo_id, self.branches.commit_ids(repo_id, branch))

    # ── Proposals ─────────────────────────────────────────────────

    @_writer
    def create_proposal(self, caller: str, repo_id: str, message: str) -> int:
        """Anyone who can see the repository may propose against it."""
        self._authorized(caller, repo_id, Operation.READ)
        ProposalLedger.validate_message(message)
        return self.proposals.record(repo_id, caller, message, self._now())

    @_reader
    def list_proposals(self, caller: str) -> list[Proposal]:
        """Proposals on repositories *caller* can currently read."""
        visible: dict[str, bool] = {}
        result = []
        for proposal in self.proposals.all():
            repo_id = proposal.repository_id
            if repo_id not in visible:
                try:
                    visible[repo_id] = can_read(caller, self._access(repo_id))
                except NotFound:
                    visible[repo_id] = False
            if visible[repo_id]:
                result.append(proposal)
        return result

    @_writer
    def approve_proposal(self, caller: str, proposal_id: int) -> str:
        """Owner of the target repository marks a proposal approved."""
        proposal = self.proposals.get(proposal_id)
        if proposal is None:
            raise NotFound(f"Proposal not found: {proposal_id}")
        self._authorized(caller, proposal.repository_id, Operation.ADMIN)
        if not self.proposals.approve(proposal_id, caller, self._now()):
            return "Proposal already approved"
        logger.info("Proposal %d approved by %s", proposal_id, caller)
        return "Proposal approved"

    # ── Chain Anchors ─────────────────────────────────────────────

    @_writer
    def anchor_commit(
        self,
        caller: str,
        repo_id: str,
        commit_id: str,
        eth_tx: str | None = None,
        btc_tx: str | None = None,
    ) -> str:
        """Attach external transaction references to a commit."""
        self._authorized(caller, repo_id, Operation.WRITE)
        if not self.commits.exists(repo_id, commit_id):
            raise NotFound(f"Commit not found: {commit_id}")
        chain = ChainAnchor.normalize(eth_tx, btc_tx)

        now = self._now()
        self.anchors.record(repo_id, commit_id, chain, now)
        self._touch(repo_id, now)
        return "Commit anchored"

    @_reader
    def list_chain_metadata(self, caller: str, repo_id: str) -> list[CommitMetadata]:
        self._authorized(caller, repo_id, Operation.READ)
        return self.anchors.for_repository(repo_id)

    # ── Statistics ────────────────────────────────────────────────

    @_reader
    def stats(self) -> dict:
        (repositories,) = self.conn.execute("SELECT COUNT(*) FROM repositories").fetchone()
        (commits,) = self.conn.execute("SELECT COUNT(*) FROM commits").fetchone()
        (proposals,) = self.conn.execute("SELECT COUNT(*) FROM proposals").fetchone()
        return {
            "repositories": repositories,
            "commits": commits,
            "proposals": proposals,
            "storage": self.cas.stats(),
        }

    # ── Garbage Collection ────────────────────────────────────────

    @_writer
    def gc(self, dry_run: bool = False) -> GCResult:
        """Sweep stored content that no working set or commit references."""
        return collect_garbage(self.cas, dry_run=dry_run)
