"""
SPL Token Account Layout Decoder
================================
Tagged-variant decoder for the 165-byte SPL token account
(Token and Token-2022 base layout).

    offset  size  field
    0       32    mint
    32      32    owner
    64      8     amount (u64 LE)
    72      36    delegate          COption<Pubkey>
    108     1     state             0=uninit 1=init 2=frozen
    109     12    is_native         COption<u64>
    121     8     delegated_amount  u64
    129     36    close_authority   COption<Pubkey>
    165     1     account_type      (Token-2022 with extensions only, 2 = Account)

The decoder never guesses: a COption tag other than 0/1 yields
AuthorityTag.UNKNOWN, and an unrecognized buffer yields
DecodeOutcome.UNKNOWN_FORMAT rather than a default.
"""

import struct
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from solders.pubkey import Pubkey

from rentguard.shared.errors import DecodeError

TOKEN_ACCOUNT_LEN = 165
TOKEN_2022_ACCOUNT_TYPE_OFFSET = 165
TOKEN_2022_ACCOUNT_TYPE_ACCOUNT = 2

_STATE_UNINITIALIZED = 0
_KNOWN_STATES = (1, 2)


class DecodeOutcome(Enum):
    DECODED = "decoded"
    UNKNOWN_FORMAT = "unknown_format"


class AuthorityTag(Enum):
    SET = "set"
    NONE = "none"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class CloseAuthority:
    tag: AuthorityTag
    address: Optional[str] = None


@dataclass(frozen=True)
class TokenAccountDecode:
    """Result of decoding raw token account bytes."""

    outcome: DecodeOutcome
    reason: str = ""
    mint: Optional[str] = None
    owner: Optional[str] = None
    amount: Optional[int] = None  # raw base units, never a UI amount
    is_native: bool = False
    frozen: bool = False
    close_authority: CloseAuthority = CloseAuthority(AuthorityTag.UNKNOWN)

    @property
    def ok(self) -> bool:
        return self.outcome is DecodeOutcome.DECODED

    @property
    def effective_close_authority(self) -> Optional[str]:
        """
        Who may close this account: the close authority if set, else the owner.
        None when the authority field could not be read.
        """
        if self.close_authority.tag is AuthorityTag.SET:
            return self.close_authority.address
        if self.close_authority.tag is AuthorityTag.NONE:
            return self.owner
        return None

    def require(self) -> "TokenAccountDecode":
        if not self.ok:
            raise DecodeError(f"Unrecognized token account layout: {self.reason}")
        return self


def _unknown(reason: str) -> TokenAccountDecode:
    return TokenAccountDecode(outcome=DecodeOutcome.UNKNOWN_FORMAT, reason=reason)


def _read_pubkey(data: bytes, offset: int) -> str:
    return str(Pubkey.from_bytes(data[offset:offset + 32]))


def _read_coption_pubkey(data: bytes, offset: int) -> CloseAuthority:
    (tag,) = struct.unpack_from("<I", data, offset)
    if tag == 0:
        return CloseAuthority(AuthorityTag.NONE)
    if tag == 1:
        return CloseAuthority(AuthorityTag.SET, _read_pubkey(data, offset + 4))
    return CloseAuthority(AuthorityTag.UNKNOWN)


def decode_token_account(data: bytes) -> TokenAccountDecode:
    """Decode raw account bytes; never raises on malformed input."""
    if data is None or len(data) < TOKEN_ACCOUNT_LEN:
        return _unknown(f"expected >= {TOKEN_ACCOUNT_LEN} bytes, got {0 if data is None else len(data)}")

    if len(data) > TOKEN_ACCOUNT_LEN:
        account_type = data[TOKEN_2022_ACCOUNT_TYPE_OFFSET]
        if account_type != TOKEN_2022_ACCOUNT_TYPE_ACCOUNT:
            return _unknown(f"extended buffer with account_type={account_type}")

    state = data[108]
    if state == _STATE_UNINITIALIZED:
        return _unknown("account is uninitialized")
    if state not in _KNOWN_STATES:
        return _unknown(f"unknown account state {state}")

    (amount,) = struct.unpack_from("<Q", data, 64)
    (native_tag,) = struct.unpack_from("<I", data, 109)
    if native_tag not in (0, 1):
        return _unknown(f"bad is_native tag {native_tag}")

    return TokenAccountDecode(
        outcome=DecodeOutcome.DECODED,
        mint=_read_pubkey(data, 0),
        owner=_read_pubkey(data, 32),
        amount=amount,
        is_native=native_tag == 1,
        frozen=state == 2,
        close_authority=_read_coption_pubkey(data, 129),
    )
