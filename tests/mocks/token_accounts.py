"""
Token Account Fixtures
======================
Builds raw SPL token account buffers for the mock ledger.
"""

import struct
from typing import Optional

from solders.pubkey import Pubkey

from rentguard.modules.reclaim.token_layout import TOKEN_ACCOUNT_LEN


def encode_token_account(
    mint: str,
    owner: str,
    amount: int,
    close_authority: Optional[str] = None,
    is_native: Optional[int] = None,
    state: int = 1,
) -> bytes:
    """Build a base-layout token account buffer (inverse of decode_token_account)."""
    buf = bytearray(TOKEN_ACCOUNT_LEN)
    buf[0:32] = bytes(Pubkey.from_string(mint))
    buf[32:64] = bytes(Pubkey.from_string(owner))
    struct.pack_into("<Q", buf, 64, amount)
    buf[108] = state
    if is_native is not None:
        struct.pack_into("<IQ", buf, 109, 1, is_native)
    if close_authority is not None:
        struct.pack_into("<I", buf, 129, 1)
        buf[133:165] = bytes(Pubkey.from_string(close_authority))
    return bytes(buf)
