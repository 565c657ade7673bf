"""
Chain Anchors

An append-only side table linking commit ids to external ledger
transactions (an Ethereum tx hash, a Bitcoin txid, or both). The
references are annotations only: nothing here checks that the
transactions exist, let alone that they are final.
"""

import logging

from .cas import ContentStore
from .errors import ValidationError
from .models import ChainMetadata, CommitMetadata

logger = logging.getLogger(__name__)


class ChainAnchor:
    def __init__(self, store: ContentStore):
        self.store = store
        self.conn = store.conn
        self._init_tables()

    def _init_tables(self):
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS chain_metadata (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                repo_id TEXT NOT NULL,
                commit_id TEXT NOT NULL,
                eth_tx TEXT,
                btc_tx TEXT,
                recorded_at INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_chain_metadata_repo
                ON chain_metadata(repo_id);
        """)

    @staticmethod
    def normalize(eth_tx: str | None, btc_tx: str | None) -> ChainMetadata:
        """Blank references become None; at least one must remain."""
        eth_tx = eth_tx.strip() if eth_tx and eth_tx.strip() else None
        btc_tx = btc_tx.strip() if btc_tx and btc_tx.strip() else None
        if eth_tx is None and btc_tx is None:
            raise ValidationError("At least one of eth_tx or btc_tx is required")
        return ChainMetadata(eth_tx=eth_tx, btc_tx=btc_tx)

    def record(self, repo_id: str, commit_id: str, chain: ChainMetadata, now: int):
        self.conn.execute(
            """INSERT INTO chain_metadata (repo_id, commit_id, eth_tx, btc_tx, recorded_at)
               VALUES (?, ?, ?, ?, ?)""",
            (repo_id, commit_id, chain.eth_tx, chain.btc_tx, now),
        )
        logger.info(
            "Anchored commit %s (eth=%s, btc=%s)", commit_id[:12], chain.eth_tx, chain.btc_tx
        )

    def for_repository(self, repo_id: str) -> list[CommitMetadata]:
        rows = self.conn.execute(
            """SELECT commit_id, eth_tx, btc_tx FROM chain_metadata
               WHERE repo_id = ? ORDER BY seq""",
            (repo_id,),
        ).fetchall()
        return [
            CommitMetadata(commit_id=r[0], chain=ChainMetadata(eth_tx=r[1], btc_tx=r[2]))
            for r in rows
        ]

    def drop_repository(self, repo_id: str):
        self.conn.execute("DELETE FROM chain_metadata WHERE repo_id = ?", (repo_id,))
