"""
Garbage Collector

Mark-and-sweep collection for the repohub content store. An object is
reachable if a working set points at it, a commit uses it as its
snapshot manifest, or it is a blob listed in such a manifest. Everything
else is swept.

RepositoryStore sweeps whenever a repository is deleted, so the deleted
repository's bytes do not outlive it. Blobs orphaned by replaced or
removed uploads stay until the next sweep, which ``RepositoryStore.gc()``
runs on demand.
"""

import logging
import time
from dataclasses import dataclass

from .cas import ContentStore, ObjectType
from .serializable import Serializable

logger = logging.getLogger(__name__)


@dataclass
class GCResult(Serializable):
    reachable_objects: int
    deleted_objects: int
    deleted_bytes: int
    dry_run: bool
    elapsed_ms: float


def _mark_phase(store: ContentStore) -> set[str]:
    """Collect every reachable object hash.

    Caller is responsible for holding a transaction around this call.
    """
    conn = store.conn
    reachable = {row[0] for row in conn.execute("SELECT blob_hash FROM files")}

    root_trees = {row[0] for row in conn.execute("SELECT root_tree FROM commits")}
    for tree_hash in root_trees:
        reachable.add(tree_hash)
        obj = store.retrieve(tree_hash)
        if obj is None or obj.type != ObjectType.TREE:
            continue
        for blob_hash, _last_modified in store.read_tree(tree_hash).values():
            reachable.add(blob_hash)

    return reachable


def collect_garbage(store: ContentStore, dry_run: bool = False) -> GCResult:
    """
    Run mark-and-sweep garbage collection.

    Runs inside ``store.batch()``: on its own it is one transaction, and
    called from a mutating store operation it joins that operation's
    transaction and rolls back with it.
    """
    start = time.monotonic()
    conn = store.conn

    with store.batch():
        reachable = _mark_phase(store)
        unreachable = [
            (obj_hash, size)
            for obj_hash, size in conn.execute("SELECT hash, size FROM objects").fetchall()
            if obj_hash not in reachable
        ]
        if not dry_run and unreachable:
            conn.executemany(
                "DELETE FROM objects WHERE hash = ?", [(h,) for h, _size in unreachable]
            )

    result = GCResult(
        reachable_objects=len(reachable),
        deleted_objects=len(unreachable),
        deleted_bytes=sum(size for _h, size in unreachable),
        dry_run=dry_run,
        elapsed_ms=(time.monotonic() - start) * 1000,
    )
    if unreachable:
        logger.info(
            "GC %s %d objects (%d bytes)",
            "would delete" if dry_run else "deleted",
            result.deleted_objects,
            result.deleted_bytes,
        )
    return result
