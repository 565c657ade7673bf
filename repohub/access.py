"""
Access Control

A single capability check, ``authorize(caller, repository, operation)``,
gates every mutating call and every read of a private repository. The
store invokes it before touching any state, so a denied call never
leaves a partial write behind.

Roles:
    owner         : everything, including ADMIN operations
    collaborator  : READ and WRITE
    anyone else   : READ on public repositories only
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from .errors import Unauthorized

logger = logging.getLogger(__name__)


class Operation(Enum):
    READ = "read"  # Files, commits, branches, proposals
    WRITE = "write"  # Upload/delete files, commit, branch, anchor
    ADMIN = "admin"  # Delete repository, add collaborator, approve proposal


class Decision(Enum):
    ALLOW = "allow"
    DENY = "deny"


@dataclass(frozen=True)
class RepositoryAccess:
    """The slice of a repository that authorization depends on."""

    repo_id: str
    owner: str
    collaborators: frozenset = field(default_factory=frozenset)
    is_private: bool = False

    def is_member(self, principal: str) -> bool:
        """Owner counts as a collaborator."""
        return principal == self.owner or principal in self.collaborators


def authorize(caller: str, repository: RepositoryAccess, operation: Operation) -> Decision:
    if operation is Operation.ADMIN:
        allowed = caller == repository.owner
    elif operation is Operation.WRITE:
        allowed = repository.is_member(caller)
    else:
        allowed = not repository.is_private or repository.is_member(caller)
    return Decision.ALLOW if allowed else Decision.DENY


def can_read(caller: str, repository: RepositoryAccess) -> bool:
    return authorize(caller, repository, Operation.READ) is Decision.ALLOW


def require(caller: str, repository: RepositoryAccess, operation: Operation) -> None:
    """Raise Unauthorized unless *caller* may perform *operation*."""
    if authorize(caller, repository, operation) is Decision.DENY:
        logger.info(
            "Denied %s on repository %s for %s", operation.value, repository.repo_id, caller
        )
        raise Unauthorized(
            f"{caller!r} is not allowed to {operation.value} repository {repository.repo_id}"
        )
