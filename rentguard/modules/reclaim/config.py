"""
Reclaim Configuration
=====================
Safety thresholds and program constants for the rent pipeline.
"""

from dataclasses import dataclass

from config.settings import Settings

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass
class ReclaimConfig:
    """Configuration for discovery, analysis and reclamation."""

    # Safety Gates
    GRACE_PERIOD_DAYS: int = 30  # New accounts are untouchable for this long
    DUST_TOLERANCE_LAMPORTS: int = 10_000  # Above min rent but still "empty"
    SEED_ACCOUNT_DATA_SIZE: int = 0  # Seed accounts hold no data

    # Discovery
    SCAN_LIMIT: int = 20

    # Alerts
    ALERT_THRESHOLD_SOL: float = 1.0

    # Programs / Mints
    WRAPPED_NATIVE_MINT: str = "So11111111111111111111111111111111111111112"

    # Audit
    RECLAIM_REASON: str = "Automated Reclaim"
    AUDIT_LOG_PATH: str = "audit.log"

    @classmethod
    def from_settings(cls) -> "ReclaimConfig":
        return cls(
            GRACE_PERIOD_DAYS=Settings.GRACE_PERIOD_DAYS,
            DUST_TOLERANCE_LAMPORTS=Settings.DUST_TOLERANCE_LAMPORTS,
            SCAN_LIMIT=Settings.SCAN_LIMIT,
            ALERT_THRESHOLD_SOL=Settings.ALERT_THRESHOLD_SOL,
            AUDIT_LOG_PATH=Settings.AUDIT_LOG_PATH,
        )

    @property
    def grace_period_seconds(self) -> float:
        return self.GRACE_PERIOD_DAYS * SECONDS_PER_DAY

    def seed_ceiling(self, min_rent_lamports: int) -> int:
        """Largest seed balance still treated as pure rent."""
        return min_rent_lamports + self.DUST_TOLERANCE_LAMPORTS
