"""
Reclaimer - Rent Recovery Execution
===================================
Turns every Reclaimable account into a confirmed on-chain reclamation.

Workflow per account:
1. Token kinds: re-verify on-chain (close authority == operator, amount == 0)
   then closeAccount -> operator
2. Seed kind: re-verify on-chain (balance <= minRent + dust, no data)
   then transferWithSeed full balance -> operator
3. Memo instruction alongside the reclaim instruction (one atomic tx)
4. On confirmation: Reclaimed + reclamation_logs row + audit.log line

Whitelisted rows are skipped even when already Reclaimable.

Dry run performs no ledger calls and no state changes, only a marked audit line.
"""

import time
from typing import Callable, List, Optional

from solders.instruction import Instruction
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.system_program import TransferWithSeedParams, transfer_with_seed
from spl.memo.constants import MEMO_PROGRAM_ID
from spl.memo.instructions import MemoParams, create_memo
from spl.token.constants import TOKEN_2022_PROGRAM_ID, TOKEN_PROGRAM_ID
from spl.token.instructions import CloseAccountParams, close_account

from rentguard.modules.reclaim.audit_trail import DRY_RUN_SIGNATURE, AuditTrail
from rentguard.modules.reclaim.config import ReclaimConfig
from rentguard.modules.reclaim.token_layout import decode_token_account
from rentguard.shared.errors import DecodeError, LedgerUnavailableError, ReclaimError, SubmissionError
from rentguard.shared.execution.wallet import OperatorWallet
from rentguard.shared.infrastructure.ledger_client import AccountInfo, LedgerClient
from rentguard.shared.models.accounts import AccountKind, AccountStatus, TrackedAccount
from rentguard.shared.system.database.repositories.reclamation_log_repo import ReclamationLogRepository
from rentguard.shared.system.database.repositories.tracked_account_repo import TrackedAccountRepository
from rentguard.shared.system.logging import Logger

TOKEN_PROGRAM_IDS = {
    str(TOKEN_PROGRAM_ID): TOKEN_PROGRAM_ID,
    str(TOKEN_2022_PROGRAM_ID): TOKEN_2022_PROGRAM_ID,
}


class Reclaimer:
    """
    Execution stage of the rent pipeline.

    Usage:
        reclaimer = Reclaimer(ledger, tracked_repo, log_repo, wallet, AuditTrail())
        count = reclaimer.execute(dry_run=True)
    """

    def __init__(
        self,
        ledger: LedgerClient,
        tracked_repo: TrackedAccountRepository,
        log_repo: ReclamationLogRepository,
        wallet: OperatorWallet,
        audit_trail: AuditTrail = None,
        config: ReclaimConfig = None,
        clock: Callable[[], float] = time.time,
    ):
        self.ledger = ledger
        self.tracked_repo = tracked_repo
        self.log_repo = log_repo
        self.wallet = wallet
        self.config = config or ReclaimConfig()
        self.audit_trail = audit_trail or AuditTrail(self.config.AUDIT_LOG_PATH)
        self.clock = clock
        self._min_rent: Optional[int] = None

    def execute(self, dry_run: bool = False) -> int:
        """
        Reclaim every Reclaimable account.

        Returns:
            Accounts reclaimed (or that would be, when dry_run).
        """
        candidates = self.tracked_repo.list_by_status(AccountStatus.RECLAIMABLE)
        mode = "DRY RUN" if dry_run else "LIVE"
        Logger.info(f"[RECLAIMER] {len(candidates)} reclaimable accounts ({mode})")

        self._min_rent = None  # refresh once per pass
        reclaimed = 0
        for account in candidates:
            if account.whitelisted:
                Logger.warning(f"[RECLAIMER] {account.address} is whitelisted. Skipping.")
                continue

            if dry_run:
                self._simulate(account)
                reclaimed += 1
                continue

            try:
                if self._reclaim(account):
                    reclaimed += 1
            except SubmissionError as e:
                Logger.error(f"[RECLAIMER] Submission failed for {account.address}: {e}")
            except ReclaimError as e:
                Logger.error(f"[RECLAIMER] Skipping {account.address}: {e}")

        Logger.success(f"[RECLAIMER] Reclaimed {reclaimed}/{len(candidates)} accounts ({mode})")
        return reclaimed

    # =========================================================================
    # EXECUTION
    # =========================================================================

    def _simulate(self, account: TrackedAccount) -> None:
        Logger.info(
            f"[RECLAIMER] [DRY RUN] Would reclaim {account.account_kind.value} "
            f"{account.address} ({account.recorded_balance} lamports)"
        )
        self.audit_trail.record(account.address, account.recorded_balance, DRY_RUN_SIGNATURE, dry_run=True)

    def _reclaim(self, account: TrackedAccount) -> bool:
        info = self.ledger.get_account_info(account.address)
        if info is None:
            # Closed by someone else after promotion; nothing left to recover
            Logger.warning(f"[RECLAIMER] {account.address} no longer exists. Marking Reclaimed without a transfer.")
            self.tracked_repo.mark_reclaimed(account.address, checked_at=self.clock())
            return False

        if account.account_kind.is_token:
            instructions = self._build_token_close(account, info)
            if instructions is None:
                return False
        elif account.account_kind is AccountKind.SEED:
            instructions = self._build_seed_transfer(account, info)
            if instructions is None:
                return False
        else:
            raise DecodeError(f"Unsupported account kind {account.account_kind}")

        amount = info.lamports
        signature = self.ledger.submit_and_confirm(instructions, [self.wallet.keypair])
        self._finalize(account, amount, signature)
        return True

    def _build_token_close(self, account: TrackedAccount, info: AccountInfo):
        decoded = decode_token_account(info.data).require()

        authority = decoded.effective_close_authority
        if authority != self.wallet.address:
            Logger.warning(
                f"[RECLAIMER] Close authority for {account.address} is {authority}, "
                f"not the operator. Leaving Reclaimable."
            )
            return None
        if decoded.amount != 0:
            Logger.warning(
                f"[RECLAIMER] {account.address} now holds {decoded.amount} base units. Leaving Reclaimable."
            )
            return None

        program_id = TOKEN_PROGRAM_IDS.get(info.owner)
        if program_id is None:
            raise DecodeError(f"{account.address} is owned by {info.owner}, not a token program")

        close_ix = close_account(
            CloseAccountParams(
                account=Pubkey.from_string(account.address),
                dest=self.wallet.pubkey,
                owner=self.wallet.pubkey,
                program_id=program_id,
                signers=[],
            )
        )
        memo = f"RentGuard: closing idle {account.account_kind.value} account {account.address}"
        return [close_ix, self._memo(memo)]

    def _build_seed_transfer(self, account: TrackedAccount, info: AccountInfo) -> Optional[List[Instruction]]:
        if not account.seed_material:
            raise DecodeError(f"Seed account {account.address} has no recorded seed")
        if info.lamports <= 0:
            raise DecodeError(f"Seed account {account.address} has nothing to transfer")

        ceiling = self.config.seed_ceiling(self._minimum_rent())
        if info.lamports > ceiling:
            Logger.warning(
                f"[RECLAIMER] {account.address} now holds {info.lamports} lamports "
                f"(ceiling {ceiling}). Leaving Reclaimable."
            )
            return None
        if info.data_len != 0:
            Logger.warning(
                f"[RECLAIMER] {account.address} now holds {info.data_len} bytes of data. Leaving Reclaimable."
            )
            return None

        transfer_ix = transfer_with_seed(
            TransferWithSeedParams(
                from_pubkey=Pubkey.from_string(account.address),
                from_base=self.wallet.pubkey,
                from_seed=account.seed_material,
                from_owner=SYSTEM_PROGRAM_ID,
                to_pubkey=self.wallet.pubkey,
                lamports=info.lamports,
            )
        )
        return [transfer_ix, self._memo("RentGuard: recovering seed account rent")]

    def _minimum_rent(self) -> int:
        if self._min_rent is None:
            self._min_rent = self.ledger.get_minimum_rent_exemption(self.config.SEED_ACCOUNT_DATA_SIZE)
            if self._min_rent is None:
                raise LedgerUnavailableError("Minimum rent exemption unavailable")
        return self._min_rent

    def _memo(self, message: str) -> Instruction:
        return create_memo(
            MemoParams(
                program_id=MEMO_PROGRAM_ID,
                signer=self.wallet.pubkey,
                message=message.encode("utf-8"),
            )
        )

    def _finalize(self, account: TrackedAccount, amount: int, signature: str) -> None:
        now = self.clock()
        if not self.tracked_repo.mark_reclaimed(account.address, checked_at=now):
            Logger.warning(f"[RECLAIMER] {account.address} changed status during reclaim")

        self.log_repo.append(
            account_address=account.address,
            amount_reclaimed=amount,
            transaction_signature=signature,
            reason=self.config.RECLAIM_REASON,
            timestamp=now,
        )
        try:
            self.audit_trail.record(account.address, amount, signature)
        except OSError as e:
            Logger.error(f"[RECLAIMER] Audit write failed for {account.address} (Tx: {signature}): {e}")
        Logger.success(f"[RECLAIMER] Reclaimed {amount} lamports from {account.address} | Tx: {signature}")
