"""
Data model

Plain dataclasses describing what the store hands back to callers.
They are built fresh from the database on every read, so mutating a
returned object never changes stored state.

Timestamps are integer nanoseconds.
"""

from dataclasses import dataclass, field

from .serializable import Serializable


@dataclass(frozen=True)
class FileEntry(Serializable):
    """A path-keyed record of file bytes plus their digest."""

    path: str
    content: bytes
    hash: str
    last_modified: int


@dataclass
class Commit(Serializable):
    """An immutable snapshot of the whole working set."""

    id: str
    message: str
    timestamp: int
    files: list[FileEntry] = field(default_factory=list)

    def file(self, path: str) -> FileEntry | None:
        for entry in self.files:
            if entry.path == path:
                return entry
        return None


@dataclass
class Branch(Serializable):
    name: str
    commits: list[Commit] = field(default_factory=list)


@dataclass
class ChainMetadata(Serializable):
    """External-ledger transaction references. Never verified."""

    eth_tx: str | None = None
    btc_tx: str | None = None


@dataclass
class CommitMetadata(Serializable):
    commit_id: str
    chain: ChainMetadata = field(default_factory=ChainMetadata)


@dataclass
class Proposal(Serializable):
    """A governance record; carries intent, not file changes."""

    id: int
    repository_id: str
    proposer: str
    message: str
    timestamp: int
    approved: bool = False


@dataclass
class Repository(Serializable):
    """The full repository aggregate."""

    id: str
    owner: str
    name: str
    description: str | None = None
    is_private: bool = False
    collaborators: list[str] = field(default_factory=list)
    files: list[FileEntry] = field(default_factory=list)
    branches: list[Branch] = field(default_factory=list)
    current_branch: str = "main"
    commits: list[Commit] = field(default_factory=list)
    chain_metadata: list[CommitMetadata] = field(default_factory=list)
    created_at: int = 0
    updated_at: int = 0

    def branch(self, name: str) -> Branch | None:
        for b in self.branches:
            if b.name == name:
                return b
        return None
