"""
Ledger Client Unit Tests
========================
JSON-RPC response parsing with a MagicMock RpcConnectionManager.
"""

import base64

import pytest
from unittest.mock import MagicMock, patch

from rentguard.shared.errors import DecodeError, LedgerUnavailableError, SubmissionError
from rentguard.shared.infrastructure.ledger_client import HistoryRecord, LedgerClient


@pytest.fixture
def rpc():
    rpc = MagicMock()
    rpc.get_active_url.return_value = "https://rpc.test"
    return rpc


@pytest.fixture
def ledger(rpc):
    return LedgerClient(rpc_manager=rpc, confirm_timeout=5)


class TestReads:

    def test_account_info_decodes_base64(self, ledger, rpc):
        rpc.call.return_value = {
            "value": {
                "lamports": 2039280,
                "data": [base64.b64encode(b"\x01\x02").decode(), "base64"],
                "owner": "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA",
                "executable": False,
            }
        }

        info = ledger.get_account_info("Acct")

        assert info.lamports == 2039280
        assert info.data == b"\x01\x02"
        assert info.data_len == 2
        assert info.owner == "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"

    def test_missing_account_is_none(self, ledger, rpc):
        rpc.call.return_value = {"context": {"slot": 1}, "value": None}
        assert ledger.get_account_info("Gone") is None

    def test_bad_base64_is_decode_error(self, ledger, rpc):
        rpc.call.return_value = {"value": {"lamports": 1, "data": ["!!!notbase64", "base64"], "owner": "x"}}

        with pytest.raises(DecodeError):
            ledger.get_account_info("Acct")

    def test_history_marks_failed(self, ledger, rpc):
        rpc.call.return_value = [
            {"signature": "ok", "blockTime": 100, "err": None},
            {"signature": "bad", "blockTime": 101, "err": {"InstructionError": [0, "Custom"]}},
        ]

        history = ledger.get_history("Op", 2)

        assert [h.failed for h in history] == [False, True]
        rpc.call.assert_called_once_with("getSignaturesForAddress", ["Op", {"limit": 2}])

    def test_rent_exemption_without_result(self, ledger, rpc):
        rpc.call.return_value = None
        with pytest.raises(LedgerUnavailableError):
            ledger.get_minimum_rent_exemption(0)

    def test_rpc_failure_propagates(self, ledger, rpc):
        rpc.call.side_effect = LedgerUnavailableError("getBalance failed: HTTP 503")
        with pytest.raises(LedgerUnavailableError):
            ledger.get_balance("Op")


class TestDecodeTransaction:

    def test_parsed_and_unparsed_instructions(self, ledger, rpc):
        rpc.call.return_value = {
            "blockTime": 1_700_000_000,
            "transaction": {"message": {"instructions": [
                {
                    "program": "system",
                    "programId": "11111111111111111111111111111111",
                    "parsed": {"type": "createAccountWithSeed", "info": {"base": "Op", "newAccount": "New"}},
                },
                {"program": "spl-memo", "programId": "Memo", "parsed": "hello"},
                {"programId": "Unknown111", "accounts": [], "data": "3Bxs"},
            ]}},
        }

        tx = ledger.decode_transaction(HistoryRecord(signature="sig"))

        assert tx.block_time == 1_700_000_000
        first, memo, raw = tx.instructions
        assert first.type == "createAccountWithSeed"
        assert first.info["newAccount"] == "New"
        assert memo.type is None
        assert raw.program == "Unknown111"
        assert raw.type is None

    def test_not_found(self, ledger, rpc):
        rpc.call.return_value = None
        with pytest.raises(DecodeError):
            ledger.decode_transaction(HistoryRecord(signature="sig"))

    def test_malformed_message(self, ledger, rpc):
        rpc.call.return_value = {"transaction": {}}
        with pytest.raises(DecodeError):
            ledger.decode_transaction(HistoryRecord(signature="sig"))


class TestSubmit:

    def test_requires_signer(self, ledger):
        with pytest.raises(SubmissionError):
            ledger.submit_and_confirm([], [])

    def test_client_failure_wrapped(self, ledger, operator_wallet):
        with patch("rentguard.shared.infrastructure.ledger_client.Client") as client_cls:
            client_cls.return_value.get_latest_blockhash.side_effect = RuntimeError("connection refused")

            with pytest.raises(SubmissionError) as exc:
                ledger.submit_and_confirm([], [operator_wallet.keypair])

        assert "connection refused" in str(exc.value)
        assert exc.value.signature is None
