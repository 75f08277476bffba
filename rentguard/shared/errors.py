"""
Reclaim Error Taxonomy
======================
Every failure the pipeline can raise, grouped by blast radius.

- LedgerUnavailableError: RPC/network failure. Cycle-fatal, retried next cycle.
- DecodeError: malformed or unrecognized account/instruction data. Account-scoped.
- SubmissionError: rejected or unconfirmed transaction. Account-scoped,
  the account stays Reclaimable.
- ConfigurationError: missing/invalid operator credentials. Startup-fatal.
- CycleInFlightError: a trigger arrived while another cycle holds the run guard.
"""


class ReclaimError(Exception):
    """Base class for all RentGuard errors."""


class LedgerUnavailableError(ReclaimError):
    """The ledger could not be reached or returned an RPC error."""


class DecodeError(ReclaimError):
    """Account or transaction data did not match any known layout."""


class SubmissionError(ReclaimError):
    """A transaction was rejected, timed out, or failed on-chain."""

    def __init__(self, message: str, signature: str = None):
        super().__init__(message)
        self.signature = signature


class ConfigurationError(ReclaimError):
    """Operator credentials or settings are missing or invalid."""


class CycleInFlightError(ReclaimError):
    """Raised when a cycle is triggered while another one is running."""

    def __init__(self, running: str):
        super().__init__(f"Cycle '{running}' is already running")
        self.running = running
