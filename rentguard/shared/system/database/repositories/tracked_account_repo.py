"""
Tracked Account Repository
==========================
Registry of operator-sponsored accounts.

Schema Workflow: Active → Reclaimable → Reclaimed (or Active → Reclaimed)

Every status write is a single conditional UPDATE guarded by the allowed
source states, so a stale caller can never move a row backwards.
"""

import time
from typing import List, Optional, Dict, Any

from rentguard.shared.models.accounts import (
    ALLOWED_TRANSITIONS,
    AccountKind,
    AccountStatus,
    TrackedAccount,
)
from rentguard.shared.system.database.repositories.base import BaseRepository
from rentguard.shared.system.logging import Logger


class TrackedAccountRepository(BaseRepository):
    """
    Repository for sponsored account tracking.

    Core writes are limited to:
    - insert-if-absent (discovery)
    - conditional update-by-address (analysis, execution)
    Rows are never deleted.
    """

    def init_table(self):
        """Initialize tracked_accounts table."""
        with self.db.cursor(commit=True) as c:
            c.execute("""
            CREATE TABLE IF NOT EXISTS tracked_accounts (
                address TEXT PRIMARY KEY,
                account_kind TEXT NOT NULL CHECK(account_kind IN ('Seed', 'WrappedNative', 'AssociatedTokenAccount')),
                seed_material TEXT,
                close_authority TEXT NOT NULL,
                status TEXT NOT NULL CHECK(status IN ('Active', 'Reclaimable', 'Reclaimed')) DEFAULT 'Active',
                recorded_balance INTEGER NOT NULL DEFAULT 0 CHECK(recorded_balance >= 0),
                created_at REAL NOT NULL,
                last_checked REAL,
                last_activity REAL,
                whitelisted INTEGER NOT NULL DEFAULT 0
            )
            """)

            c.execute("""
            CREATE INDEX IF NOT EXISTS idx_tracked_status
            ON tracked_accounts(status)
            """)

        Logger.debug("[DB] tracked_accounts initialized")

    # =========================================================================
    # DISCOVERY
    # =========================================================================

    def insert_if_absent(
        self,
        address: str,
        account_kind: AccountKind,
        close_authority: str,
        recorded_balance: int,
        seed_material: Optional[str] = None,
        created_at: Optional[float] = None,
    ) -> bool:
        """
        Register a newly discovered account.

        Returns:
            True if a row was inserted, False if the address was already tracked.
            An existing row's kind, authority and status are never touched.
        """
        now = time.time()
        inserted = self._execute("""
        INSERT OR IGNORE INTO tracked_accounts (
            address, account_kind, seed_material, close_authority,
            status, recorded_balance, created_at, last_checked
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            address,
            account_kind.value,
            seed_material,
            close_authority,
            AccountStatus.ACTIVE.value,
            max(0, int(recorded_balance)),
            created_at if created_at is not None else now,
            now,
        ), commit=True)
        return inserted == 1

    # =========================================================================
    # READS
    # =========================================================================

    def get(self, address: str) -> Optional[TrackedAccount]:
        row = self._fetchone("SELECT * FROM tracked_accounts WHERE address = ?", (address,))
        return TrackedAccount.from_row(row) if row else None

    def list_by_status(self, status: AccountStatus) -> List[TrackedAccount]:
        rows = self._fetchall(
            "SELECT * FROM tracked_accounts WHERE status = ? ORDER BY created_at ASC",
            (status.value,)
        )
        return [TrackedAccount.from_row(r) for r in rows]

    def list_all(self) -> List[TrackedAccount]:
        rows = self._fetchall("SELECT * FROM tracked_accounts ORDER BY created_at ASC")
        return [TrackedAccount.from_row(r) for r in rows]

    # =========================================================================
    # CONDITIONAL UPDATES
    # =========================================================================

    def _transition(self, address: str, target: AccountStatus, extra_sql: str = "", extra_params: tuple = ()) -> bool:
        sources = ALLOWED_TRANSITIONS[target]
        placeholders = ", ".join("?" for _ in sources)
        query = f"""
        UPDATE tracked_accounts
        SET status = ?{extra_sql}
        WHERE address = ? AND status IN ({placeholders})
        """
        params = (target.value,) + extra_params + (address,) + tuple(s.value for s in sources)
        return self._execute(query, params, commit=True) == 1

    def mark_reclaimable(self, address: str) -> bool:
        """Active → Reclaimable. Returns False if the row was not Active."""
        return self._transition(address, AccountStatus.RECLAIMABLE)

    def mark_reclaimed(self, address: str, checked_at: Optional[float] = None) -> bool:
        """Active|Reclaimable → Reclaimed with balance zeroed."""
        return self._transition(
            address,
            AccountStatus.RECLAIMED,
            extra_sql=", recorded_balance = 0, last_checked = ?",
            extra_params=(checked_at if checked_at is not None else time.time(),),
        )

    def record_activity(self, address: str, balance: int, at: float) -> None:
        """Balance drift observed: store the live balance and stamp activity."""
        self._execute("""
        UPDATE tracked_accounts
        SET recorded_balance = ?, last_activity = ?
        WHERE address = ? AND status != 'Reclaimed'
        """, (max(0, int(balance)), at, address), commit=True)

    def touch_checked(self, address: str, at: float) -> None:
        self._execute(
            "UPDATE tracked_accounts SET last_checked = ? WHERE address = ?",
            (at, address),
            commit=True
        )

    def set_whitelisted(self, address: str, whitelisted: bool = True) -> bool:
        """
        Manual operator override. Never called by the pipeline itself.
        """
        changed = self._execute(
            "UPDATE tracked_accounts SET whitelisted = ? WHERE address = ?",
            (1 if whitelisted else 0, address),
            commit=True
        )
        if changed:
            Logger.info(f"[DB] Whitelist {'enabled' if whitelisted else 'disabled'} for {address[:8]}...")
        return changed == 1

    # =========================================================================
    # STATISTICS
    # =========================================================================

    def get_statistics(self) -> Dict[str, Any]:
        """
        Aggregate counts for CLI / Telegram status.

        Returns:
            {
                'total': int,
                'active': int,
                'reclaimable': int,
                'reclaimed': int,
                'whitelisted': int,
                'idle_rent_lamports': int  (Active + Reclaimable balances)
            }
        """
        with self.db.cursor() as c:
            c.execute("""
            SELECT
                COUNT(*) as total,
                SUM(CASE WHEN status = 'Active' THEN 1 ELSE 0 END) as active,
                SUM(CASE WHEN status = 'Reclaimable' THEN 1 ELSE 0 END) as reclaimable,
                SUM(CASE WHEN status = 'Reclaimed' THEN 1 ELSE 0 END) as reclaimed,
                SUM(CASE WHEN whitelisted = 1 THEN 1 ELSE 0 END) as whitelisted,
                SUM(CASE WHEN status IN ('Active', 'Reclaimable') THEN recorded_balance ELSE 0 END) as idle_rent
            FROM tracked_accounts
            """)
            row = c.fetchone()

            return {
                'total': row['total'] or 0,
                'active': row['active'] or 0,
                'reclaimable': row['reclaimable'] or 0,
                'reclaimed': row['reclaimed'] or 0,
                'whitelisted': row['whitelisted'] or 0,
                'idle_rent_lamports': row['idle_rent'] or 0,
            }
