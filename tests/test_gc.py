"""Garbage collection tests: sweeps on repository deletion and on demand."""

import pytest

from repohub.cas import hash_blob
from repohub.errors import Unauthorized

from conftest import COLLABORATOR, OWNER


def _object_count(store):
    return store.stats()["storage"]["total_objects"]


class TestDeleteReclaimsContent:
    def test_deleted_private_repository_leaves_no_objects(self, store):
        rid = store.create_repository(OWNER, "vault", is_private=True)
        store.upload_file(OWNER, rid, "key.pem", b"TOP SECRET")
        store.commit_changes(OWNER, rid, "add key")
        assert _object_count(store) == 2  # blob + manifest

        store.delete_repository(OWNER, rid)

        assert _object_count(store) == 0
        assert not store.cas.exists(hash_blob(b"TOP SECRET"))

    def test_shared_blobs_survive(self, store, repo_id):
        other = store.create_repository(OWNER, "other")
        store.upload_file(OWNER, repo_id, "same.txt", b"shared")
        store.upload_file(OWNER, other, "copy.txt", b"shared")
        store.commit_changes(OWNER, repo_id, "init")

        store.delete_repository(OWNER, repo_id)

        assert store.get_file(OWNER, other, "copy.txt").content == b"shared"
        assert _object_count(store) == 1

    def test_committed_blob_of_surviving_repository_kept(self, store, repo_id):
        doomed = store.create_repository(OWNER, "doomed")
        store.upload_file(OWNER, repo_id, "old.txt", b"v1")
        store.commit_changes(OWNER, repo_id, "v1")
        store.delete_file(OWNER, repo_id, "old.txt")

        store.delete_repository(OWNER, doomed)

        (commit,) = store.list_commits(OWNER, repo_id)
        entry = store.get_commit_file_content(OWNER, repo_id, commit.id, "old.txt")
        assert entry.content == b"v1"

    def test_denied_delete_sweeps_nothing(self, store, private_repo_id):
        store.upload_file(OWNER, private_repo_id, "a.txt", b"a")
        store.upload_file(OWNER, private_repo_id, "a.txt", b"b")  # orphans the first blob
        before = _object_count(store)
        with pytest.raises(Unauthorized):
            store.delete_repository(COLLABORATOR, private_repo_id)
        assert _object_count(store) == before


class TestManualSweep:
    def test_replaced_upload_orphan_reclaimed(self, store, repo_id):
        store.upload_file(OWNER, repo_id, "a.txt", b"first")
        store.upload_file(OWNER, repo_id, "a.txt", b"second")
        assert _object_count(store) == 2

        result = store.gc()

        assert result.deleted_objects == 1
        assert result.deleted_bytes == len(b"first")
        assert result.reachable_objects == 1
        assert not store.cas.exists(hash_blob(b"first"))
        assert store.get_file(OWNER, repo_id, "a.txt").content == b"second"

    def test_dry_run_deletes_nothing(self, store, repo_id):
        store.upload_file(OWNER, repo_id, "a.txt", b"first")
        store.delete_file(OWNER, repo_id, "a.txt")

        result = store.gc(dry_run=True)

        assert result.dry_run is True
        assert result.deleted_objects == 1
        assert _object_count(store) == 1

    def test_clean_store_is_noop(self, store, repo_id):
        store.upload_file(OWNER, repo_id, "a.txt", b"a")
        store.commit_changes(OWNER, repo_id, "init")
        assert store.gc().deleted_objects == 0
        assert _object_count(store) == 2

    def test_result_serializes(self, store):
        d = store.gc().to_dict()
        assert d["deleted_objects"] == 0
        assert d["dry_run"] is False
