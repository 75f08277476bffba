"""
Monitor - Sponsored Account Discovery
=====================================
Walks the operator's recent transaction history and registers every
account the operator sponsored.

Workflow:
1. Fetch the N most recent operator signatures (fatal if this fails)
2. Decode each successful transaction (per-transaction failures are skipped)
3. Classify instructions via the pure instruction matcher
4. Insert-if-absent into tracked_accounts
"""

import time
from typing import Callable

from rentguard.modules.reclaim.config import ReclaimConfig
from rentguard.modules.reclaim.instruction_matcher import classify_instructions
from rentguard.shared.errors import DecodeError, LedgerUnavailableError
from rentguard.shared.infrastructure.ledger_client import LedgerClient
from rentguard.shared.system.database.repositories.tracked_account_repo import TrackedAccountRepository
from rentguard.shared.system.logging import Logger


class Monitor:
    """
    Discovery stage of the rent pipeline.

    Usage:
        monitor = Monitor(ledger, repo, operator_address)
        inserted = monitor.discover(limit=100)
    """

    def __init__(
        self,
        ledger: LedgerClient,
        repo: TrackedAccountRepository,
        operator: str,
        config: ReclaimConfig = None,
        clock: Callable[[], float] = time.time,
    ):
        self.ledger = ledger
        self.repo = repo
        self.operator = operator
        self.config = config or ReclaimConfig()
        self.clock = clock

    def discover(self, limit: int) -> int:
        """
        Scan up to `limit` recent operator transactions.

        Returns:
            Number of newly tracked accounts.

        Raises:
            ValueError: limit is not a positive integer.
            LedgerUnavailableError: history could not be retrieved.
        """
        if not isinstance(limit, int) or limit <= 0:
            raise ValueError(f"limit must be a positive integer, got {limit!r}")

        Logger.info(f"[MONITOR] Scanning last {limit} transactions for {self.operator[:8]}...")
        history = self.ledger.get_history(self.operator, limit)
        Logger.info(f"[MONITOR] Found {len(history)} transactions")

        inserted = 0
        skipped = 0

        for record in history:
            if record.failed:
                continue

            try:
                tx = self.ledger.decode_transaction(record)
            except (DecodeError, LedgerUnavailableError) as e:
                Logger.warning(f"[MONITOR] Skipping {record.signature[:12]}...: {e}")
                skipped += 1
                continue

            discoveries = classify_instructions(
                tx.instructions,
                self.operator,
                wrapped_mint=self.config.WRAPPED_NATIVE_MINT,
            )

            created_at = float(tx.block_time) if tx.block_time else self.clock()

            for found in discoveries:
                is_new = self.repo.insert_if_absent(
                    address=found.address,
                    account_kind=found.kind,
                    close_authority=found.close_authority,
                    recorded_balance=found.lamports,
                    seed_material=found.seed,
                    created_at=created_at,
                )
                if is_new:
                    inserted += 1
                    Logger.success(
                        f"[MONITOR] Tracking {found.kind.value} account {found.address} "
                        f"({found.lamports} lamports)"
                    )
                else:
                    Logger.debug(f"[MONITOR] Already tracked: {found.address}")

        Logger.info(f"[MONITOR] Discovery complete: {inserted} new, {skipped} undecodable")
        return inserted
