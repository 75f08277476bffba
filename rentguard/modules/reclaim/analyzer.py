"""
Analyzer - Eligibility & Safety Gates
=====================================
Re-derives the live status of every Active account and promotes the
ones that are provably pure rent to Reclaimable.

Gate sequence (per account, order-agnostic across accounts):
1. Existence      - gone on-chain      -> Reclaimed, balance 0, stop
2. Whitelist      - manual override    -> stop (stays Active)
3. Activity       - balance drift      -> record balance + last_activity
4. Grace Period   - younger than 30d   -> stop (stays Active)
5. Eligibility    - token: raw amount == 0
                    seed: balance <= min_rent + dust AND zero data
6. Promote        - Active -> Reclaimable; stamp last_checked
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from rentguard.modules.reclaim.config import SECONDS_PER_DAY, ReclaimConfig
from rentguard.modules.reclaim.token_layout import decode_token_account
from rentguard.shared.errors import LedgerUnavailableError, ReclaimError
from rentguard.shared.infrastructure.ledger_client import AccountInfo, LedgerClient
from rentguard.shared.models.accounts import AccountKind, AccountStatus, TrackedAccount
from rentguard.shared.system.database.repositories.tracked_account_repo import TrackedAccountRepository
from rentguard.shared.system.logging import Logger


@dataclass
class ReconcileSummary:
    """Counters for one reconcile pass."""
    checked: int = 0
    promoted: int = 0
    closed_externally: int = 0
    whitelisted: int = 0
    in_grace: int = 0
    activity: int = 0
    errors: int = 0

    def as_dict(self) -> Dict[str, int]:
        return dict(self.__dict__)


class Analyzer:
    """
    Analysis stage of the rent pipeline.

    Usage:
        analyzer = Analyzer(ledger, repo)
        summary = analyzer.reconcile()
    """

    def __init__(
        self,
        ledger: LedgerClient,
        repo: TrackedAccountRepository,
        config: ReclaimConfig = None,
        clock: Callable[[], float] = time.time,
    ):
        self.ledger = ledger
        self.repo = repo
        self.config = config or ReclaimConfig()
        self.clock = clock
        self._min_rent: Optional[int] = None

    def reconcile(self) -> ReconcileSummary:
        """Evaluate every Active account once."""
        accounts = self.repo.list_by_status(AccountStatus.ACTIVE)
        Logger.info(f"[ANALYZER] Evaluating {len(accounts)} active accounts")

        summary = ReconcileSummary()
        self._min_rent = None  # refresh once per pass

        for account in accounts:
            summary.checked += 1
            try:
                self._evaluate(account, summary)
            except ReclaimError as e:
                summary.errors += 1
                Logger.error(f"[ANALYZER] Skipping {account.address}: {e}")

        Logger.success(
            f"[ANALYZER] Reconcile complete: {summary.promoted} promoted, "
            f"{summary.closed_externally} closed externally, {summary.errors} errors"
        )
        return summary

    # =========================================================================
    # GATES
    # =========================================================================

    def _evaluate(self, account: TrackedAccount, summary: ReconcileSummary) -> None:
        now = self.clock()
        info = self.ledger.get_account_info(account.address)

        # 1. Existence
        if info is None:
            if self.repo.mark_reclaimed(account.address, checked_at=now):
                summary.closed_externally += 1
                Logger.info(f"[ANALYZER] {account.address} no longer exists. Marking Reclaimed.")
            return

        # 2. Whitelist
        if account.whitelisted:
            summary.whitelisted += 1
            Logger.info(f"[ANALYZER] {account.address} is whitelisted. Skipping.")
            self.repo.touch_checked(account.address, now)
            return

        # 3. Activity bookkeeping
        if info.lamports != account.recorded_balance:
            summary.activity += 1
            Logger.info(
                f"[ANALYZER] Activity on {account.address}: "
                f"{account.recorded_balance} -> {info.lamports} lamports"
            )
            self.repo.record_activity(account.address, info.lamports, now)
            account.recorded_balance = info.lamports
            account.last_activity = now

        # 4. Grace period
        age = account.age_seconds(now)
        if age < self.config.grace_period_seconds:
            summary.in_grace += 1
            Logger.debug(f"[ANALYZER] {account.address} in grace period ({age / SECONDS_PER_DAY:.1f} days old)")
            self.repo.touch_checked(account.address, now)
            return

        # 5. Kind-specific eligibility
        eligible = self.is_eligible(account, info)

        # 6. Promote
        if eligible and self.repo.mark_reclaimable(account.address):
            summary.promoted += 1
            Logger.success(f"[ANALYZER] {account.address} ({account.account_kind.value}) marked Reclaimable")

        self.repo.touch_checked(account.address, now)

    def is_eligible(self, account: TrackedAccount, info: AccountInfo) -> bool:
        if account.account_kind.is_token:
            return self._token_is_empty(account, info)
        if account.account_kind is AccountKind.SEED:
            return self._seed_is_pure_rent(account, info)
        return False

    def _token_is_empty(self, account: TrackedAccount, info: AccountInfo) -> bool:
        decoded = decode_token_account(info.data).require()
        # Raw u64 only; UI amounts round tiny balances to zero
        if decoded.amount != 0:
            Logger.debug(f"[ANALYZER] {account.address} still holds {decoded.amount} base units")
            return False
        return True

    def _seed_is_pure_rent(self, account: TrackedAccount, info: AccountInfo) -> bool:
        ceiling = self.config.seed_ceiling(self._minimum_rent())
        if info.lamports > ceiling:
            Logger.info(
                f"[ANALYZER] {account.address} holds excess funds "
                f"({info.lamports} > {ceiling}). Skipping."
            )
            return False
        return info.data_len == 0

    def _minimum_rent(self) -> int:
        if self._min_rent is None:
            self._min_rent = self.ledger.get_minimum_rent_exemption(self.config.SEED_ACCOUNT_DATA_SIZE)
            if self._min_rent is None:
                raise LedgerUnavailableError("Minimum rent exemption unavailable")
        return self._min_rent
