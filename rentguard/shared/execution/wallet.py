import json
import os
from typing import Optional

import base58
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from config.settings import Settings
from rentguard.shared.errors import ConfigurationError
from rentguard.shared.system.logging import Logger

LAMPORTS_PER_SOL = 1_000_000_000


class OperatorWallet:
    """
    Operator keypair holder.
    Responsibility: load credentials once at startup and expose the signer.
    """

    def __init__(self, keypair: Keypair):
        self.keypair = keypair

    @classmethod
    def from_settings(cls, secret: Optional[str] = None) -> "OperatorWallet":
        """
        Load the operator keypair.

        Accepted formats for OPERATOR_KEYPAIR:
        - JSON array of secret key bytes: "[12, 34, ...]"
        - Path to a keypair file containing such an array
        - Base58 secret key string

        Raises:
            ConfigurationError: missing or unparseable key (startup-fatal).
        """
        secret = secret if secret is not None else Settings.OPERATOR_KEYPAIR
        secret = (secret or "").strip()
        if not secret:
            raise ConfigurationError("OPERATOR_KEYPAIR not set (JSON array, keypair file path, or base58 secret)")

        keypair = cls._parse_secret(secret)
        Logger.info(f"[WALLET] Operator loaded: {keypair.pubkey()}")
        return cls(keypair)

    @staticmethod
    def _parse_secret(secret: str) -> Keypair:
        if secret.startswith("["):
            return OperatorWallet._from_byte_array(secret)

        if os.path.isfile(secret):
            with open(secret, "r", encoding="utf-8") as f:
                return OperatorWallet._from_byte_array(f.read())

        try:
            return Keypair.from_bytes(base58.b58decode(secret))
        except ValueError as e:
            raise ConfigurationError(f"Invalid OPERATOR_KEYPAIR format: {e}") from e

    @staticmethod
    def _from_byte_array(raw: str) -> Keypair:
        try:
            values = json.loads(raw)
            if not isinstance(values, list):
                raise ConfigurationError("Keypair JSON must be an array of bytes")
            return Keypair.from_bytes(bytes(values))
        except (json.JSONDecodeError, ValueError) as e:
            raise ConfigurationError(f"Invalid keypair byte array: {e}") from e

    @property
    def pubkey(self) -> Pubkey:
        return self.keypair.pubkey()

    @property
    def address(self) -> str:
        return str(self.keypair.pubkey())
