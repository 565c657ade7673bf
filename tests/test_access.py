"""AccessControl unit tests plus all-or-nothing checks through the store."""

import pytest

from repohub.access import (
    Decision,
    Operation,
    RepositoryAccess,
    authorize,
    can_read,
    require,
)
from repohub.errors import Unauthorized

from conftest import COLLABORATOR, OUTSIDER, OWNER


def _access(is_private):
    return RepositoryAccess(
        repo_id="r1",
        owner=OWNER,
        collaborators=frozenset({COLLABORATOR}),
        is_private=is_private,
    )


class TestAuthorize:
    @pytest.mark.parametrize(
        "caller, operation, is_private, expected",
        [
            (OWNER, Operation.ADMIN, True, Decision.ALLOW),
            (COLLABORATOR, Operation.ADMIN, True, Decision.DENY),
            (OUTSIDER, Operation.ADMIN, False, Decision.DENY),
            (OWNER, Operation.WRITE, True, Decision.ALLOW),
            (COLLABORATOR, Operation.WRITE, True, Decision.ALLOW),
            (OUTSIDER, Operation.WRITE, False, Decision.DENY),
            (OUTSIDER, Operation.READ, False, Decision.ALLOW),
            (OUTSIDER, Operation.READ, True, Decision.DENY),
            (COLLABORATOR, Operation.READ, True, Decision.ALLOW),
        ],
    )
    def test_matrix(self, caller, operation, is_private, expected):
        assert authorize(caller, _access(is_private), operation) is expected

    def test_owner_is_implicit_member(self):
        access = RepositoryAccess(repo_id="r1", owner=OWNER)
        assert access.is_member(OWNER)
        assert not access.is_member(COLLABORATOR)

    def test_require_raises(self):
        with pytest.raises(Unauthorized, match="mallory"):
            require(OUTSIDER, _access(True), Operation.READ)
        require(OWNER, _access(True), Operation.ADMIN)

    def test_can_read(self):
        assert can_read(OUTSIDER, _access(False))
        assert not can_read(OUTSIDER, _access(True))

    def test_unauthorized_is_permission_error(self):
        with pytest.raises(PermissionError):
            require(OUTSIDER, _access(False), Operation.WRITE)


class TestDeniedCallsLeaveStateUnchanged:
    @pytest.fixture
    def seeded(self, store, private_repo_id):
        store.upload_file(OWNER, private_repo_id, "a.txt", b"a")
        store.commit_changes(OWNER, private_repo_id, "init")
        return private_repo_id

    def _snapshot(self, store, repo_id):
        return store.get_repository(OWNER, repo_id).to_dict()

    @pytest.mark.parametrize(
        "call",
        [
            lambda s, r: s.upload_file(OUTSIDER, r, "x.txt", b"x"),
            lambda s, r: s.upload_file(OUTSIDER, r, "a.txt", b"overwrite"),
            lambda s, r: s.delete_file(OUTSIDER, r, "a.txt"),
            lambda s, r: s.commit_changes(OUTSIDER, r, "sneaky"),
            lambda s, r: s.delete_repository(OUTSIDER, r),
            lambda s, r: s.create_branch(OUTSIDER, r, "x", "main"),
            lambda s, r: s.add_collaborator(OUTSIDER, r, OUTSIDER),
            lambda s, r: s.create_proposal(OUTSIDER, r, "peek"),
        ],
    )
    def test_outsider_mutations(self, store, seeded, call):
        before = self._snapshot(store, seeded)
        with pytest.raises(Unauthorized):
            call(store, seeded)
        assert self._snapshot(store, seeded) == before
        assert store.list_proposals(OWNER) == []
