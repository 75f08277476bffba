"""
Reclaim Scheduler
=================
Drives the pipeline on two cadences and serialises every trigger
(timer, CLI, Telegram) through a single RunGuard.

- Scan cycle:    Monitor.discover(SCAN_LIMIT) + Analyzer.reconcile() + idle-rent alert
- Reclaim cycle: Reclaimer.execute(dry_run)

Cycle failures are logged and forwarded to the notifier; they never
stop the loop. A trigger arriving while a cycle runs is rejected.
"""

import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Optional

from config.settings import Settings
from rentguard.modules.reclaim.analyzer import Analyzer
from rentguard.modules.reclaim.config import ReclaimConfig
from rentguard.modules.reclaim.monitor import Monitor
from rentguard.modules.reclaim.reclaimer import Reclaimer
from rentguard.shared.errors import CycleInFlightError
from rentguard.shared.execution.wallet import LAMPORTS_PER_SOL
from rentguard.shared.system.database.repositories.reclamation_log_repo import ReclamationLogRepository
from rentguard.shared.system.database.repositories.tracked_account_repo import TrackedAccountRepository
from rentguard.shared.system.logging import Logger


class RunGuard:
    """Single-slot mutual exclusion for pipeline cycles."""

    def __init__(self):
        self._lock = threading.Lock()
        self.running: Optional[str] = None

    @contextmanager
    def hold(self, name: str):
        if not self._lock.acquire(blocking=False):
            raise CycleInFlightError(self.running or "unknown")
        self.running = name
        try:
            yield
        finally:
            self.running = None
            self._lock.release()

    @property
    def busy(self) -> bool:
        return self._lock.locked()


class ReclaimScheduler:
    """
    Owns the RunGuard and both cadences.

    Usage:
        scheduler = ReclaimScheduler(monitor, analyzer, reclaimer, tracked_repo, log_repo, notifier)
        scheduler.run_forever()      # blocks until stop()
    """

    def __init__(
        self,
        monitor: Monitor,
        analyzer: Analyzer,
        reclaimer: Reclaimer,
        tracked_repo: TrackedAccountRepository,
        log_repo: ReclamationLogRepository = None,
        notifier=None,
        config: ReclaimConfig = None,
        scan_interval: float = None,
        reclaim_interval: float = None,
        dry_run: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.monitor = monitor
        self.analyzer = analyzer
        self.reclaimer = reclaimer
        self.tracked_repo = tracked_repo
        self.log_repo = log_repo
        self.notifier = notifier
        self.config = config or ReclaimConfig()
        self.scan_interval = scan_interval or Settings.SCAN_INTERVAL_SECONDS
        self.reclaim_interval = reclaim_interval or Settings.RECLAIM_INTERVAL_SECONDS
        self.dry_run = dry_run
        self.clock = clock

        self.guard = RunGuard()
        self._stop = threading.Event()

    # =========================================================================
    # CYCLES
    # =========================================================================

    def run_scan_cycle(self, limit: int = None) -> Optional[Dict[str, Any]]:
        """
        Discover + reconcile, then check the idle-rent threshold.

        Returns:
            Cycle summary, or None if the cycle failed.

        Raises:
            CycleInFlightError: another cycle holds the guard.
        """
        limit = limit or self.config.SCAN_LIMIT
        with self.guard.hold("scan"):
            Logger.section("Scan Cycle")
            try:
                inserted = self.monitor.discover(limit)
                summary = self.analyzer.reconcile()
                self.check_idle_rent()
            except Exception as e:
                self._report_failure("Scan", e)
                return None

        result = {"discovered": inserted, **summary.as_dict()}
        self._notify(
            f"🔍 Scan complete\n"
            f"New accounts: {inserted}\n"
            f"Checked: {summary.checked} | Promoted: {summary.promoted} | "
            f"Closed externally: {summary.closed_externally}"
        )
        return result

    def run_reclaim_cycle(self, dry_run: bool = None) -> Optional[int]:
        """
        Execute reclamation for every Reclaimable account.

        Returns:
            Number reclaimed, or None if the cycle failed.

        Raises:
            CycleInFlightError: another cycle holds the guard.
        """
        dry_run = self.dry_run if dry_run is None else dry_run
        with self.guard.hold("reclaim"):
            Logger.section("Reclaim Cycle" + (" (DRY RUN)" if dry_run else ""))
            try:
                count = self.reclaimer.execute(dry_run=dry_run)
            except Exception as e:
                self._report_failure("Reclaim", e)
                return None

        if count:
            prefix = "[DRY RUN] Would reclaim" if dry_run else "💰 Reclaimed"
            self._notify(f"{prefix} {count} account(s)")
        return count

    def check_idle_rent(self) -> bool:
        """Alert when locked rent (Active + Reclaimable) exceeds the threshold."""
        stats = self.tracked_repo.get_statistics()
        idle_sol = stats["idle_rent_lamports"] / LAMPORTS_PER_SOL
        if idle_sol <= self.config.ALERT_THRESHOLD_SOL:
            return False

        Logger.warning(f"[SCHEDULER] Idle rent {idle_sol:.4f} SOL exceeds {self.config.ALERT_THRESHOLD_SOL} SOL")
        self._notify(
            f"⚠️ High idle rent detected!\n"
            f"Total locked: {idle_sol:.4f} SOL across "
            f"{stats['active'] + stats['reclaimable']} accounts"
        )
        return True

    # =========================================================================
    # READ MODEL (CLI / Telegram)
    # =========================================================================

    def status_snapshot(self) -> Dict[str, Any]:
        snapshot = dict(self.tracked_repo.get_statistics())
        if self.log_repo is not None:
            snapshot.update(self.log_repo.get_statistics())
        snapshot["cycle_running"] = self.guard.running
        return snapshot

    def operator_balance(self) -> int:
        return self.reclaimer.ledger.get_balance(self.reclaimer.wallet.address)

    # =========================================================================
    # LOOP
    # =========================================================================

    def run_forever(self):
        """Blocking loop: scan now, then on each cadence until stop()."""
        Logger.info(
            f"[SCHEDULER] Started (scan every {self.scan_interval}s, "
            f"reclaim every {self.reclaim_interval}s{', DRY RUN' if self.dry_run else ''})"
        )
        next_scan = self.clock()
        next_reclaim = self.clock() + self.reclaim_interval

        while not self._stop.is_set():
            now = self.clock()

            if now >= next_scan:
                self._trigger(self.run_scan_cycle)
                next_scan = now + self.scan_interval

            if now >= next_reclaim:
                self._trigger(self.run_reclaim_cycle)
                next_reclaim = now + self.reclaim_interval

            wait = max(0.0, min(next_scan, next_reclaim) - self.clock())
            self._stop.wait(timeout=wait)

        Logger.info("[SCHEDULER] Stopped")

    def stop(self):
        self._stop.set()

    def _trigger(self, cycle: Callable[[], Any]):
        try:
            cycle()
        except CycleInFlightError as e:
            Logger.warning(f"[SCHEDULER] {e}. Skipping this tick.")

    def _report_failure(self, name: str, error: Exception):
        Logger.error(f"[SCHEDULER] {name} cycle failed: {error}")
        self._notify(f"❌ {name} cycle failed: {str(error)[:200]}")

    def _notify(self, message: str):
        if self.notifier is not None:
            self.notifier.send_alert(message)
