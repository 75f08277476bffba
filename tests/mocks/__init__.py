"""
RentGuard Test Mocks
====================
Reusable mock classes for isolated testing.
"""

from tests.mocks.mock_ledger import MockLedgerClient, UnavailableLedgerClient
from tests.mocks.token_accounts import encode_token_account

__all__ = [
    "MockLedgerClient",
    "UnavailableLedgerClient",
    "encode_token_account",
]
