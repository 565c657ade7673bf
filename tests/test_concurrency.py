"""
Concurrent caller tests.

Many threads hammer one RepositoryStore. The store serializes every
call, so each commit must see a complete working set and branch
sequences must never interleave partially.

Run with: pytest tests/test_concurrency.py -v
"""

from concurrent.futures import ThreadPoolExecutor, as_completed

import pytest

from repohub.errors import Conflict
from repohub.store import RepositoryStore

from conftest import OWNER


@pytest.fixture
def shared_store():
    s = RepositoryStore()
    yield s
    s.close()


def test_concurrent_uploads_and_commits(shared_store):
    rid = shared_store.create_repository(OWNER, "busy")
    workers = 8
    per_worker = 10

    def worker(n):
        for i in range(per_worker):
            shared_store.upload_file(OWNER, rid, f"w{n}/f{i}.txt", f"{n}:{i}".encode())
        shared_store.commit_changes(OWNER, rid, f"worker {n}")
        return n

    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(worker, n) for n in range(workers)]
        done = sorted(f.result() for f in as_completed(futures))

    assert done == list(range(workers))
    assert len(shared_store.list_files(OWNER, rid)) == workers * per_worker

    commits = shared_store.list_commits(OWNER, rid)
    assert len(commits) == workers
    assert len({c.id for c in commits}) == workers
    # Each worker committed only after finishing its own uploads
    for commit in commits:
        n = int(commit.message.split()[1])
        paths = {f.path for f in commit.files}
        assert {f"w{n}/f{i}.txt" for i in range(per_worker)} <= paths
    # Commit timestamps never go backwards
    stamps = [c.timestamp for c in commits]
    assert stamps == sorted(stamps)


def test_concurrent_branch_creation_conflicts_once(shared_store):
    rid = shared_store.create_repository(OWNER, "race")
    shared_store.commit_changes(OWNER, rid, "init")

    def create():
        try:
            shared_store.create_branch(OWNER, rid, "feature", "main")
            return "created"
        except Conflict:
            return "conflict"

    with ThreadPoolExecutor(max_workers=6) as pool:
        outcomes = [f.result() for f in [pool.submit(create) for _ in range(6)]]

    assert outcomes.count("created") == 1
    assert outcomes.count("conflict") == 5
    assert shared_store.list_branches(OWNER, rid) == ["main", "feature"]


def test_concurrent_proposals_get_distinct_ids(shared_store):
    rid = shared_store.create_repository(OWNER, "ideas")

    with ThreadPoolExecutor(max_workers=8) as pool:
        ids = list(pool.map(lambda i: shared_store.create_proposal(f"p{i}", rid, f"idea {i}"),
                            range(40)))

    assert len(set(ids)) == 40
    assert [p.id for p in shared_store.list_proposals(OWNER)] == sorted(ids)
