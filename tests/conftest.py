"""
RentGuard Test Configuration
============================
Shared fixtures and pytest markers for the test suite.
"""

import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from rentguard.modules.reclaim.config import SECONDS_PER_DAY, ReclaimConfig
from rentguard.shared.execution.wallet import OperatorWallet

NOW = 1_750_000_000.0


# ============================================================================
# PYTEST MARKERS
# ============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks integration tests"
    )


# ============================================================================
# SHARED FIXTURES
# ============================================================================

@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    """Frozen clock injected into pipeline stages."""
    return lambda: NOW


@pytest.fixture
def days_ago():
    """Epoch timestamp `n` days before NOW."""
    return lambda n: NOW - n * SECONDS_PER_DAY


@pytest.fixture
def new_address():
    """Factory for fresh, valid base58 addresses."""
    return lambda: str(Pubkey.new_unique())


@pytest.fixture
def operator_wallet():
    return OperatorWallet(Keypair())


@pytest.fixture
def mock_ledger():
    from tests.mocks.mock_ledger import MockLedgerClient
    return MockLedgerClient()


@pytest.fixture
def reclaim_config(tmp_path):
    return ReclaimConfig(AUDIT_LOG_PATH=str(tmp_path / "audit.log"))
