"""
Error taxonomy for repohub.

Every failure the store reports is one of four kinds. Each also derives
from the closest builtin so callers that already catch ``LookupError``,
``PermissionError`` or ``ValueError`` keep working.
"""


class RepoHubError(Exception):
    """Base class for all repohub errors."""


class NotFound(RepoHubError, LookupError):
    """A repository, branch, commit, file or proposal reference does not resolve."""


class Unauthorized(RepoHubError, PermissionError):
    """The caller lacks owner/collaborator standing for the operation."""


class Conflict(RepoHubError):
    """Raised on a duplicate branch name or repository id."""


class ValidationError(RepoHubError, ValueError):
    """A required field is empty or malformed."""
