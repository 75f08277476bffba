"""
Sponsored Account Data Model
============================
Registry rows for accounts whose rent the operator paid.

Lifecycle:
    ACTIVE ──(all gates pass)──► RECLAIMABLE ──(tx confirmed)──► RECLAIMED
       └──────────(account gone)───────────────────────────────────┘

RECLAIMED is terminal. No transition moves backwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple


class AccountKind(Enum):
    """The three sponsored account shapes we know how to reclaim."""

    SEED = "Seed"  # createAccountWithSeed, base = operator
    WRAPPED_NATIVE = "WrappedNative"  # wSOL token account owned by operator
    ASSOCIATED_TOKEN = "AssociatedTokenAccount"  # token account closable by operator

    @property
    def is_token(self) -> bool:
        return self is not AccountKind.SEED


class AccountStatus(Enum):
    """Reclamation lifecycle state."""

    ACTIVE = "Active"
    RECLAIMABLE = "Reclaimable"
    RECLAIMED = "Reclaimed"


# Allowed source states for each target state
ALLOWED_TRANSITIONS: Dict[AccountStatus, Tuple[AccountStatus, ...]] = {
    AccountStatus.RECLAIMABLE: (AccountStatus.ACTIVE,),
    AccountStatus.RECLAIMED: (AccountStatus.ACTIVE, AccountStatus.RECLAIMABLE),
}


@dataclass
class TrackedAccount:
    """One row of `tracked_accounts`."""

    address: str
    account_kind: AccountKind
    close_authority: str
    status: AccountStatus = AccountStatus.ACTIVE
    recorded_balance: int = 0
    seed_material: Optional[str] = None
    created_at: float = 0.0
    last_checked: Optional[float] = None
    last_activity: Optional[float] = None
    whitelisted: bool = False

    @classmethod
    def from_row(cls, row: dict) -> "TrackedAccount":
        return cls(
            address=row["address"],
            account_kind=AccountKind(row["account_kind"]),
            close_authority=row["close_authority"],
            status=AccountStatus(row["status"]),
            recorded_balance=int(row["recorded_balance"] or 0),
            seed_material=row.get("seed_material"),
            created_at=float(row["created_at"] or 0.0),
            last_checked=row.get("last_checked"),
            last_activity=row.get("last_activity"),
            whitelisted=bool(row.get("whitelisted")),
        )

    def age_seconds(self, now: float) -> float:
        return now - self.created_at


@dataclass(frozen=True)
class ReclamationLogEntry:
    """One row of the append-only `reclamation_logs` table."""

    id: int
    account_address: str
    amount_reclaimed: int
    transaction_signature: str
    timestamp: float
    reason: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> "ReclamationLogEntry":
        return cls(
            id=row["id"],
            account_address=row["account_address"],
            amount_reclaimed=int(row["amount_reclaimed"]),
            transaction_signature=row["transaction_signature"],
            timestamp=float(row["timestamp"]),
            reason=row.get("reason"),
        )
