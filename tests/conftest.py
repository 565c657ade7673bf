"""
Shared pytest configuration and fixtures.

``store`` is an in-memory RepositoryStore driven by a fake clock that
advances one microsecond per reading, so timestamps are deterministic
and strictly increasing within a test.
"""

import itertools

import pytest

from repohub.store import RepositoryStore

OWNER = "alice"
COLLABORATOR = "bob"
OUTSIDER = "mallory"


class FakeClock:
    def __init__(self, start: int = 1_700_000_000_000_000_000, step: int = 1_000):
        self._counter = itertools.count(start, step)
        self.last = None

    def __call__(self) -> int:
        self.last = next(self._counter)
        return self.last


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    s = RepositoryStore(clock=clock)
    yield s
    s.close()


@pytest.fixture
def repo_id(store):
    """A public repository owned by OWNER."""
    return store.create_repository(OWNER, "demo", "A demo repository", is_private=False)


@pytest.fixture
def private_repo_id(store):
    """A private repository owned by OWNER with COLLABORATOR added."""
    rid = store.create_repository(OWNER, "secret", is_private=True)
    store.add_collaborator(OWNER, rid, COLLABORATOR)
    return rid
