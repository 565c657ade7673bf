"""
Proposal Ledger

An append-only record of change proposals. Proposals express intent
("please add a license file") and are independent of commit access:
anyone who can see a repository may propose against it.

Proposal ids come from SQLite AUTOINCREMENT, so they are strictly
increasing across the whole store and never reused, even after the
referenced repository is deleted.

The ledger references repositories by id only. Callers revalidate that
reference on every read instead of trusting it.
"""

import logging

from .cas import ContentStore
from .errors import ValidationError
from .models import Proposal

logger = logging.getLogger(__name__)


class ProposalLedger:
    def __init__(self, store: ContentStore):
        self.store = store
        self.conn = store.conn
        self._init_tables()

    def _init_tables(self):
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS proposals (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                repository_id TEXT NOT NULL,
                proposer TEXT NOT NULL,
                message TEXT NOT NULL,
                timestamp INTEGER NOT NULL,
                approved INTEGER NOT NULL DEFAULT 0,
                approved_by TEXT,
                approved_at INTEGER
            );

            CREATE INDEX IF NOT EXISTS idx_proposals_repository
                ON proposals(repository_id);
        """)

    @staticmethod
    def validate_message(message: str):
        if not isinstance(message, str) or not message.strip():
            raise ValidationError("Proposal message cannot be empty")

    def record(self, repository_id: str, proposer: str, message: str, now: int) -> int:
        cur = self.conn.execute(
            """INSERT INTO proposals (repository_id, proposer, message, timestamp)
               VALUES (?, ?, ?, ?)""",
            (repository_id, proposer, message, now),
        )
        proposal_id = cur.lastrowid
        logger.info("Proposal %d on %s by %s", proposal_id, repository_id, proposer)
        return proposal_id

    def get(self, proposal_id: int) -> Proposal | None:
        row = self.conn.execute(
            """SELECT id, repository_id, proposer, message, timestamp, approved
               FROM proposals WHERE id = ?""",
            (proposal_id,),
        ).fetchone()
        return self._proposal(row) if row else None

    def all(self) -> list[Proposal]:
        rows = self.conn.execute(
            """SELECT id, repository_id, proposer, message, timestamp, approved
               FROM proposals ORDER BY id"""
        ).fetchall()
        return [self._proposal(r) for r in rows]

    def approve(self, proposal_id: int, approver: str, now: int) -> bool:
        """Mark a proposal approved. Returns False if it already was."""
        cur = self.conn.execute(
            """UPDATE proposals SET approved = 1, approved_by = ?, approved_at = ?
               WHERE id = ? AND approved = 0""",
            (approver, now, proposal_id),
        )
        return cur.rowcount > 0

    @staticmethod
    def _proposal(row) -> Proposal:
        return Proposal(
            id=row[0],
            repository_id=row[1],
            proposer=row[2],
            message=row[3],
            timestamp=row[4],
            approved=bool(row[5]),
        )
