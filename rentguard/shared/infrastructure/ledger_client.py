"""
Ledger Client
=============
Everything RentGuard needs from Solana, behind one narrow surface.

Reads go over raw JSON-RPC through RpcConnectionManager (provider failover).
Writes are compiled with solders and submitted via solana-py's Client.

Capabilities:
- get_account_info(address)         -> AccountInfo | None
- get_balance(address)              -> lamports
- get_minimum_rent_exemption(size)  -> lamports
- get_history(address, limit)       -> [HistoryRecord]
- decode_transaction(record)        -> DecodedTransaction
- submit_and_confirm(ixs, signers)  -> signature
"""

import base64
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from solana.rpc.api import Client
from solana.rpc.commitment import Confirmed
from solana.rpc.types import TxOpts
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.transaction import VersionedTransaction

from config.settings import Settings
from rentguard.shared.errors import DecodeError, LedgerUnavailableError, SubmissionError
from rentguard.shared.infrastructure.rpc_manager import RpcConnectionManager
from rentguard.shared.system.logging import Logger


@dataclass(frozen=True)
class AccountInfo:
    """Live on-chain account snapshot."""
    address: str
    lamports: int
    data: bytes
    owner: str
    executable: bool = False

    @property
    def data_len(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class HistoryRecord:
    """Signature entry from getSignaturesForAddress."""
    signature: str
    block_time: Optional[int] = None
    failed: bool = False


@dataclass(frozen=True)
class ParsedInstruction:
    """
    A top-level instruction in jsonParsed form.

    `type` is None when the node could not parse the instruction
    (unknown program); `info` is then empty.
    """
    program: str
    program_id: str
    type: Optional[str] = None
    info: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DecodedTransaction:
    signature: str
    block_time: Optional[int]
    instructions: List[ParsedInstruction]


class LedgerClient:
    """
    Read/write capability over the Solana ledger.

    Usage:
        ledger = LedgerClient()
        info = ledger.get_account_info(address)
        sig = ledger.submit_and_confirm([ix], [keypair])
    """

    def __init__(self, rpc_manager: RpcConnectionManager = None, confirm_timeout: int = None):
        self.rpc = rpc_manager or RpcConnectionManager()
        self.confirm_timeout = confirm_timeout or Settings.CONFIRM_TIMEOUT_SECONDS

    # =========================================================================
    # READS
    # =========================================================================

    def get_account_info(self, address: str) -> Optional[AccountInfo]:
        result = self.rpc.call("getAccountInfo", [
            address,
            {"encoding": "base64", "commitment": "confirmed"}
        ])
        value = (result or {}).get("value")
        if not value:
            return None

        raw = value.get("data") or ["", "base64"]
        encoded = raw[0] if isinstance(raw, list) else raw
        try:
            data = base64.b64decode(encoded) if encoded else b""
        except (ValueError, TypeError) as e:
            raise DecodeError(f"Account {address} returned undecodable data") from e

        return AccountInfo(
            address=address,
            lamports=int(value.get("lamports", 0)),
            data=data,
            owner=value.get("owner", ""),
            executable=bool(value.get("executable", False)),
        )

    def get_balance(self, address: str) -> int:
        result = self.rpc.call("getBalance", [address, {"commitment": "confirmed"}])
        return int((result or {}).get("value", 0))

    def get_minimum_rent_exemption(self, data_size: int) -> int:
        result = self.rpc.call("getMinimumBalanceForRentExemption", [data_size])
        if result is None:
            raise LedgerUnavailableError("getMinimumBalanceForRentExemption returned no result")
        return int(result)

    def get_history(self, address: str, limit: int) -> List[HistoryRecord]:
        """Most-recent-first signatures touching `address`."""
        result = self.rpc.call("getSignaturesForAddress", [address, {"limit": limit}])
        if result is None:
            raise LedgerUnavailableError("getSignaturesForAddress returned no result")

        return [
            HistoryRecord(
                signature=entry["signature"],
                block_time=entry.get("blockTime"),
                failed=entry.get("err") is not None,
            )
            for entry in result
        ]

    def decode_transaction(self, record: HistoryRecord) -> DecodedTransaction:
        result = self.rpc.call("getTransaction", [
            record.signature,
            {"encoding": "jsonParsed", "maxSupportedTransactionVersion": 0, "commitment": "confirmed"}
        ])
        if not result:
            raise DecodeError(f"Transaction {record.signature} not found")

        try:
            raw_instructions = result["transaction"]["message"]["instructions"]
        except (KeyError, TypeError) as e:
            raise DecodeError(f"Transaction {record.signature} has no parsed message") from e

        return DecodedTransaction(
            signature=record.signature,
            block_time=result.get("blockTime", record.block_time),
            instructions=[self._parse_instruction(ix) for ix in raw_instructions],
        )

    @staticmethod
    def _parse_instruction(ix: Dict[str, Any]) -> ParsedInstruction:
        program_id = ix.get("programId", "")
        program = ix.get("program", program_id)
        parsed = ix.get("parsed")

        # Memo and friends parse to a bare string; treat as untyped
        if isinstance(parsed, dict):
            return ParsedInstruction(
                program=program,
                program_id=program_id,
                type=parsed.get("type"),
                info=parsed.get("info") or {},
            )
        return ParsedInstruction(program=program, program_id=program_id)

    # =========================================================================
    # WRITES
    # =========================================================================

    def submit_and_confirm(self, instructions: List[Instruction], signers: List[Keypair]) -> str:
        """
        Compile, sign, send and wait for confirmation.
        The first signer pays fees.

        Raises:
            SubmissionError: rejected, expired, or failed on-chain.
        """
        if not signers:
            raise SubmissionError("At least one signer is required")

        url = self.rpc.get_active_url()
        client = Client(url, commitment=Confirmed, timeout=self.confirm_timeout)
        sig = None

        try:
            blockhash_resp = client.get_latest_blockhash(commitment=Confirmed).value

            msg = MessageV0.try_compile(
                payer=signers[0].pubkey(),
                instructions=instructions,
                address_lookup_table_accounts=[],
                recent_blockhash=blockhash_resp.blockhash,
            )
            tx = VersionedTransaction(msg, signers)

            sig = client.send_transaction(
                tx,
                opts=TxOpts(skip_preflight=False, preflight_commitment=Confirmed)
            ).value
            Logger.info(f"[LEDGER] Transaction sent: {sig}")

            status_resp = client.confirm_transaction(
                sig,
                commitment=Confirmed,
                last_valid_block_height=blockhash_resp.last_valid_block_height,
            )
        except Exception as e:
            raise SubmissionError(f"Submission failed: {e}", signature=str(sig) if sig else None) from e

        status = status_resp.value[0] if status_resp.value else None
        if status is None:
            raise SubmissionError("Transaction was not confirmed", signature=str(sig))
        if status.err is not None:
            raise SubmissionError(f"Transaction failed on-chain: {status.err}", signature=str(sig))

        return str(sig)
