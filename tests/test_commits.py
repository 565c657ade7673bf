"""CommitEngine tests: snapshots, immutability and lookups."""

import pytest

from repohub.errors import NotFound, Unauthorized, ValidationError

from conftest import COLLABORATOR, OUTSIDER, OWNER


def _commit(store, repo_id, message, caller=OWNER):
    store.commit_changes(caller, repo_id, message)
    return store.list_commits(OWNER, repo_id)[-1]


class TestCommitChanges:
    def test_status_message_names_commit_and_branch(self, store, repo_id):
        msg = store.commit_changes(OWNER, repo_id, "first")
        commit = store.list_commits(OWNER, repo_id)[0]
        assert commit.id in msg
        assert "'main'" in msg

    def test_snapshot_contents(self, store, repo_id, clock):
        store.upload_file(OWNER, repo_id, "b.txt", b"B")
        store.upload_file(OWNER, repo_id, "a.txt", b"A")
        commit = _commit(store, repo_id, "two files")
        assert commit.message == "two files"
        assert commit.timestamp == clock.last
        assert [f.path for f in commit.files] == ["a.txt", "b.txt"]
        assert commit.file("b.txt").content == b"B"

    def test_empty_commit_allowed(self, store, repo_id):
        commit = _commit(store, repo_id, "empty")
        assert commit.files == []

    @pytest.mark.parametrize("message", ["", "  \n"])
    def test_empty_message_rejected(self, store, repo_id, message):
        with pytest.raises(ValidationError):
            store.commit_changes(OWNER, repo_id, message)
        assert store.list_commits(OWNER, repo_id) == []
        assert store.list_branch_commits(OWNER, repo_id, "main") == []

    def test_ids_unique_for_identical_snapshots(self, store, repo_id):
        store.upload_file(OWNER, repo_id, "a.txt", b"a")
        c1 = _commit(store, repo_id, "same")
        c2 = _commit(store, repo_id, "same")
        assert c1.id != c2.id
        assert c1.files == c2.files

    def test_history_in_creation_order(self, store, repo_id):
        for i in range(3):
            store.commit_changes(OWNER, repo_id, f"c{i}")
        assert [c.message for c in store.list_commits(OWNER, repo_id)] == ["c0", "c1", "c2"]

    def test_collaborator_commits(self, store, private_repo_id):
        _commit(store, private_repo_id, "by bob", caller=COLLABORATOR)
        assert len(store.list_commits(OWNER, private_repo_id)) == 1

    def test_outsider_cannot_commit(self, store, private_repo_id):
        with pytest.raises(Unauthorized):
            store.commit_changes(OUTSIDER, private_repo_id, "nope")
        assert store.list_commits(OWNER, private_repo_id) == []

    def test_unknown_repository(self, store):
        with pytest.raises(NotFound):
            store.commit_changes(OWNER, "missing", "msg")


class TestImmutability:
    def test_snapshot_unaffected_by_later_writes(self, store, repo_id):
        store.upload_file(OWNER, repo_id, "a.txt", b"original")
        store.upload_file(OWNER, repo_id, "b.txt", b"doomed")
        c1 = _commit(store, repo_id, "m1")

        store.upload_file(OWNER, repo_id, "a.txt", b"rewritten")
        store.delete_file(OWNER, repo_id, "b.txt")
        store.upload_file(OWNER, repo_id, "c.txt", b"new")

        a = store.get_commit_file_content(OWNER, repo_id, c1.id, "a.txt")
        b = store.get_commit_file_content(OWNER, repo_id, c1.id, "b.txt")
        assert a.content == b"original"
        assert b.content == b"doomed"
        assert store.get_commit_file_content(OWNER, repo_id, c1.id, "c.txt") is None
        assert store.get_commit(OWNER, repo_id, c1.id) == c1

    def test_returned_commit_copies_do_not_leak(self, store, repo_id):
        store.upload_file(OWNER, repo_id, "a.txt", b"a")
        commit = _commit(store, repo_id, "m1")
        commit.files.clear()
        assert len(store.get_commit(OWNER, repo_id, commit.id).files) == 1


class TestLookups:
    def test_get_unknown_commit(self, store, repo_id):
        assert store.get_commit(OWNER, repo_id, "deadbeef") is None
        assert store.get_commit_file_content(OWNER, repo_id, "deadbeef", "a.txt") is None

    def test_commit_scoped_to_repository(self, store, repo_id):
        other = store.create_repository(OWNER, "other")
        commit = _commit(store, repo_id, "m1")
        assert store.get_commit(OWNER, other, commit.id) is None

    def test_private_history_hidden(self, store, private_repo_id):
        commit = _commit(store, private_repo_id, "m1")
        with pytest.raises(Unauthorized):
            store.list_commits(OUTSIDER, private_repo_id)
        with pytest.raises(Unauthorized):
            store.get_commit(OUTSIDER, private_repo_id, commit.id)
        with pytest.raises(Unauthorized):
            store.get_commit_file_content(OUTSIDER, private_repo_id, commit.id, "a.txt")

    def test_public_history_readable(self, store, repo_id):
        store.upload_file(OWNER, repo_id, "a.txt", b"a")
        commit = _commit(store, repo_id, "m1")
        entry = store.get_commit_file_content(OUTSIDER, repo_id, commit.id, "a.txt")
        assert entry.content == b"a"


class TestReturnedCommits:
    def test_editing_a_returned_commit_leaves_history_alone(self, store, repo_id):
        store.upload_file(OWNER, repo_id, "a.txt", b"A")
        commit = _commit(store, repo_id, "init")
        commit.message = "rewritten"
        commit.files.clear()

        (stored,) = store.list_commits(OWNER, repo_id)
        assert stored.message == "init"
        assert [f.path for f in stored.files] == ["a.txt"]
