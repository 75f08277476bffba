"""
Append-only plain-text audit trail of reclamations.
"""

import os
from datetime import datetime, timezone
from typing import Optional

from rentguard.shared.system.logging import Logger

DRY_RUN_SIGNATURE = "DRY_RUN"


class AuditTrail:
    def __init__(self, path: str = "audit.log"):
        self.path = path

    @staticmethod
    def format_line(
        address: str,
        amount: int,
        signature: str,
        dry_run: bool = False,
        at: Optional[datetime] = None,
    ) -> str:
        stamp = (at or datetime.now(timezone.utc)).isoformat()
        marker = "[DRY RUN] " if dry_run else ""
        return f"[{stamp}] {marker}RECLAIMED | Address: {address} | Amount: {amount} | Tx: {signature}\n"

    def record(self, address: str, amount: int, signature: str, dry_run: bool = False) -> str:
        line = self.format_line(address, amount, signature, dry_run)

        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(self.path, "a", encoding="utf-8") as f:
            f.write(line)

        Logger.debug(f"[RECLAIMER] Audit: {line.strip()}")
        return line
