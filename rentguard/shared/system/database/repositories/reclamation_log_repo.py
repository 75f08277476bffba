"""
Reclamation Log Repository
==========================
Append-only audit trail of confirmed reclamations.
Rows are inserted once and never updated or deleted.
"""

import time
from typing import List, Dict, Any

from rentguard.shared.models.accounts import ReclamationLogEntry
from rentguard.shared.system.database.repositories.base import BaseRepository
from rentguard.shared.system.logging import Logger


class ReclamationLogRepository(BaseRepository):

    def init_table(self):
        """Initialize reclamation_logs table."""
        with self.db.cursor(commit=True) as c:
            c.execute("""
            CREATE TABLE IF NOT EXISTS reclamation_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                account_address TEXT NOT NULL,
                amount_reclaimed INTEGER NOT NULL,
                transaction_signature TEXT NOT NULL,
                timestamp REAL NOT NULL,
                reason TEXT
            )
            """)

            c.execute("""
            CREATE INDEX IF NOT EXISTS idx_reclamation_account
            ON reclamation_logs(account_address)
            """)

        Logger.debug("[DB] reclamation_logs initialized")

    def append(
        self,
        account_address: str,
        amount_reclaimed: int,
        transaction_signature: str,
        reason: str = "Automated Reclaim",
        timestamp: float = None,
    ) -> int:
        """Append an entry and return its id."""
        with self.db.cursor(commit=True) as c:
            c.execute("""
            INSERT INTO reclamation_logs (
                account_address, amount_reclaimed, transaction_signature, timestamp, reason
            ) VALUES (?, ?, ?, ?, ?)
            """, (
                account_address,
                int(amount_reclaimed),
                transaction_signature,
                timestamp if timestamp is not None else time.time(),
                reason,
            ))
            return c.lastrowid

    def list_entries(self, limit: int = 100) -> List[ReclamationLogEntry]:
        rows = self._fetchall(
            "SELECT * FROM reclamation_logs ORDER BY id DESC LIMIT ?",
            (limit,)
        )
        return [ReclamationLogEntry.from_row(r) for r in rows]

    def list_for_account(self, account_address: str) -> List[ReclamationLogEntry]:
        rows = self._fetchall(
            "SELECT * FROM reclamation_logs WHERE account_address = ? ORDER BY id ASC",
            (account_address,)
        )
        return [ReclamationLogEntry.from_row(r) for r in rows]

    def get_statistics(self) -> Dict[str, Any]:
        row = self._fetchone("""
        SELECT COUNT(*) as count, SUM(amount_reclaimed) as total
        FROM reclamation_logs
        """)
        return {
            'reclamations': row['count'] or 0,
            'total_reclaimed_lamports': row['total'] or 0,
        }
