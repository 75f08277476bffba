"""
Unit Test Configuration
=======================
Fixtures for pure logic tests - NO NETWORK ALLOWED.

Unit tests are isolated from:
- Network (RPC, HTTP)
- Database (SQLite; repositories are MagicMocks here)
- File system (except tmp_path)
"""

import pytest
from unittest.mock import MagicMock

from rentguard.shared.models.accounts import AccountKind, AccountStatus, TrackedAccount


# ============================================================================
# AUTOUSE: ENFORCE I/O ISOLATION
# ============================================================================


@pytest.fixture(autouse=True)
def isolate_unit_tests(monkeypatch):
    """
    Automatically disable all network I/O for unit tests.
    Any test that accidentally tries to make a network call will fail.
    """
    def block_network(*args, **kwargs):
        raise RuntimeError(
            "Network I/O detected in unit test! "
            "Use MockLedgerClient or patch the transport explicitly."
        )

    monkeypatch.setattr("requests.post", block_network)
    monkeypatch.setattr("requests.Session.request", block_network)


# ============================================================================
# REPOSITORY FIXTURES
# ============================================================================


@pytest.fixture
def tracked_repo():
    """MagicMock TrackedAccountRepository; status writes succeed by default."""
    repo = MagicMock()
    repo.list_by_status.return_value = []
    repo.mark_reclaimable.return_value = True
    repo.mark_reclaimed.return_value = True
    repo.insert_if_absent.return_value = True
    repo.get_statistics.return_value = {
        "total": 0,
        "active": 0,
        "reclaimable": 0,
        "reclaimed": 0,
        "whitelisted": 0,
        "idle_rent_lamports": 0,
    }
    return repo


@pytest.fixture
def log_repo():
    repo = MagicMock()
    repo.append.return_value = 1
    return repo


@pytest.fixture
def make_account(new_address, days_ago):
    """Factory for TrackedAccount rows."""
    def _make(
        kind: AccountKind = AccountKind.SEED,
        status: AccountStatus = AccountStatus.ACTIVE,
        balance: int = 890_880,
        age_days: float = 31,
        whitelisted: bool = False,
        address: str = None,
        close_authority: str = None,
        seed: str = None,
    ) -> TrackedAccount:
        return TrackedAccount(
            address=address or new_address(),
            account_kind=kind,
            close_authority=close_authority or new_address(),
            status=status,
            recorded_balance=balance,
            seed_material=seed if seed is not None else ("vault-1" if kind is AccountKind.SEED else None),
            created_at=days_ago(age_days),
            whitelisted=whitelisted,
        )
    return _make
