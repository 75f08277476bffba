"""
Instruction Matcher
===================
Pure classification of a transaction's parsed instructions into
sponsored-account discoveries. No RPC, no database.

Recognized shapes:
1. system/createAccountWithSeed with base == operator          -> Seed
2. system/createAccount + token initializeAccount* for the new
   address with owner == operator                              -> WrappedNative | AssociatedTokenAccount
3. token setAuthority(closeAccount) with newAuthority == operator -> AssociatedTokenAccount (balance 0)
"""

from dataclasses import dataclass
from typing import List, Optional

from rentguard.shared.infrastructure.ledger_client import ParsedInstruction
from rentguard.shared.models.accounts import AccountKind

SYSTEM_PROGRAM = "system"
TOKEN_PROGRAMS = ("spl-token", "spl-token-2022")
TOKEN_INIT_TYPES = ("initializeAccount", "initializeAccount2", "initializeAccount3")
CLOSE_AUTHORITY_TYPES = ("closeAccount", "CloseAccount")

WRAPPED_NATIVE_MINT = "So11111111111111111111111111111111111111112"


@dataclass(frozen=True)
class Discovery:
    """A sponsored account found in one transaction."""
    address: str
    kind: AccountKind
    close_authority: str
    lamports: int = 0
    seed: Optional[str] = None


def _is_system(ix: ParsedInstruction, ix_type: str) -> bool:
    return ix.program == SYSTEM_PROGRAM and ix.type == ix_type


def _is_token(ix: ParsedInstruction, types: tuple) -> bool:
    return ix.program in TOKEN_PROGRAMS and ix.type in types


def match_seed_creation(ix: ParsedInstruction, operator: str) -> Optional[Discovery]:
    if not _is_system(ix, "createAccountWithSeed"):
        return None
    info = ix.info
    if info.get("base") != operator or not info.get("newAccount"):
        return None
    return Discovery(
        address=info["newAccount"],
        kind=AccountKind.SEED,
        close_authority=info["base"],
        lamports=int(info.get("lamports", 0)),
        seed=info.get("seed"),
    )


def match_token_creation(
    ix: ParsedInstruction,
    instructions: List[ParsedInstruction],
    operator: str,
    wrapped_mint: str = WRAPPED_NATIVE_MINT,
) -> Optional[Discovery]:
    if not _is_system(ix, "createAccount"):
        return None
    new_account = ix.info.get("newAccount")
    if not new_account:
        return None

    init = next(
        (
            other for other in instructions
            if _is_token(other, TOKEN_INIT_TYPES) and other.info.get("account") == new_account
        ),
        None,
    )
    if init is None or init.info.get("owner") != operator:
        return None

    kind = AccountKind.WRAPPED_NATIVE if init.info.get("mint") == wrapped_mint else AccountKind.ASSOCIATED_TOKEN
    return Discovery(
        address=new_account,
        kind=kind,
        close_authority=operator,
        lamports=int(ix.info.get("lamports", 0)),
    )


def match_close_authority_delegation(ix: ParsedInstruction, operator: str) -> Optional[Discovery]:
    if not _is_token(ix, ("setAuthority",)):
        return None
    info = ix.info
    if info.get("authorityType") not in CLOSE_AUTHORITY_TYPES:
        return None
    if info.get("newAuthority") != operator or not info.get("account"):
        return None
    # Rent unknown from the instruction alone; the Analyzer corrects it
    return Discovery(
        address=info["account"],
        kind=AccountKind.ASSOCIATED_TOKEN,
        close_authority=operator,
        lamports=0,
    )


def classify_instructions(
    instructions: List[ParsedInstruction],
    operator: str,
    wrapped_mint: str = WRAPPED_NATIVE_MINT,
) -> List[Discovery]:
    """
    Classify every top-level instruction of one transaction.

    Returns discoveries in instruction order, first match per address wins.
    """
    found: List[Discovery] = []
    seen = set()

    for ix in instructions:
        discovery = (
            match_seed_creation(ix, operator)
            or match_token_creation(ix, instructions, operator, wrapped_mint)
            or match_close_authority_delegation(ix, operator)
        )
        if discovery and discovery.address not in seen:
            seen.add(discovery.address)
            found.append(discovery)

    return found
