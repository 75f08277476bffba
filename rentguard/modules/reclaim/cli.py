"""
RentGuard CLI
=============
Command-line interface using Typer + Rich.

Commands:
    rentguard monitor [--limit 20]      Discover sponsored accounts
    rentguard analyze                   Run the safety gates over Active accounts
    rentguard reclaim [--dry-run]       Reclaim every Reclaimable account
    rentguard status                    Registry counts and recent reclamations
    rentguard balance                   Operator SOL balance
    rentguard run [--dry-run]           Scheduler daemon (+ Telegram if configured)
    rentguard whitelist ADDRESS [--off] Manual whitelist override
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from config.settings import Settings
from rentguard.modules.reclaim.analyzer import Analyzer
from rentguard.modules.reclaim.audit_trail import AuditTrail
from rentguard.modules.reclaim.config import ReclaimConfig
from rentguard.modules.reclaim.monitor import Monitor
from rentguard.modules.reclaim.reclaimer import Reclaimer
from rentguard.modules.reclaim.scheduler import ReclaimScheduler
from rentguard.shared.errors import ConfigurationError, LedgerUnavailableError
from rentguard.shared.execution.wallet import LAMPORTS_PER_SOL, OperatorWallet
from rentguard.shared.infrastructure.ledger_client import LedgerClient
from rentguard.shared.notification.telegram_manager import TelegramManager
from rentguard.shared.system.db_manager import DBManager
from rentguard.shared.system.logging import Logger

app = typer.Typer(
    name="rentguard",
    help="RentGuard - Automated Solana rent reclamation for sponsored accounts",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()


@dataclass
class Pipeline:
    db: DBManager
    ledger: LedgerClient
    wallet: OperatorWallet
    config: ReclaimConfig
    monitor: Monitor
    analyzer: Analyzer
    reclaimer: Reclaimer


def build_pipeline(db_path: str = None) -> Pipeline:
    """Wire every pipeline stage. Raises ConfigurationError without a key."""
    wallet = OperatorWallet.from_settings()
    config = ReclaimConfig.from_settings()
    db = DBManager(db_path)
    ledger = LedgerClient()

    return Pipeline(
        db=db,
        ledger=ledger,
        wallet=wallet,
        config=config,
        monitor=Monitor(ledger, db.accounts, wallet.address, config),
        analyzer=Analyzer(ledger, db.accounts, config),
        reclaimer=Reclaimer(
            ledger,
            db.accounts,
            db.reclamations,
            wallet,
            AuditTrail(config.AUDIT_LOG_PATH),
            config,
        ),
    )


def _load_pipeline() -> Pipeline:
    try:
        return build_pipeline()
    except ConfigurationError as e:
        console.print(f"[bold red]❌ Configuration error: {escape(str(e))}[/bold red]")
        raise typer.Exit(1)


def _fail(message: str):
    console.print(f"[bold red]❌ {escape(message)}[/bold red]")
    raise typer.Exit(1)


# ═══════════════════════════════════════════════════════════════════════════════
# PIPELINE COMMANDS
# ═══════════════════════════════════════════════════════════════════════════════

@app.command()
def monitor(
    limit: Optional[int] = typer.Option(
        None,
        "--limit",
        help="Number of recent operator transactions to scan (default: SCAN_LIMIT)",
        min=1,
    ),
):
    """
    Scan recent operator transactions for sponsored accounts.
    """
    pipeline = _load_pipeline()
    limit = limit or pipeline.config.SCAN_LIMIT

    console.print(Panel.fit(
        f"[bold cyan]🔍 Monitor[/bold cyan]\n"
        f"Operator: {pipeline.wallet.address} | Limit: {limit}",
        border_style="cyan"
    ))

    try:
        inserted = pipeline.monitor.discover(limit)
    except LedgerUnavailableError as e:
        _fail(f"Ledger unavailable: {e}")

    console.print(f"[green]✅ {inserted} new account(s) tracked[/green]")


@app.command()
def analyze():
    """
    Run the safety gates and promote eligible accounts to Reclaimable.
    """
    pipeline = _load_pipeline()
    console.print(Panel.fit("[bold magenta]🧪 Analyzer[/bold magenta]", border_style="magenta"))

    summary = pipeline.analyzer.reconcile()

    table = Table(title="Reconcile Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right")
    for key, value in summary.as_dict().items():
        table.add_row(key.replace("_", " ").title(), str(value))
    console.print(table)


@app.command()
def reclaim(
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Simulate: no transactions, no status changes, audit line only"
    ),
):
    """
    Reclaim rent from every Reclaimable account.

    \b
    Examples:
        rentguard reclaim --dry-run
        rentguard reclaim
    """
    pipeline = _load_pipeline()
    mode = "[green]DRY RUN[/green]" if dry_run else "[bold red]LIVE[/bold red]"
    console.print(Panel.fit(f"[bold yellow]♻️ Reclaimer[/bold yellow]\nMode: {mode}", border_style="yellow"))

    count = pipeline.reclaimer.execute(dry_run=dry_run)
    verb = "would be reclaimed" if dry_run else "reclaimed"
    console.print(f"[green]✅ {count} account(s) {verb}[/green]")


# ═══════════════════════════════════════════════════════════════════════════════
# READ COMMANDS
# ═══════════════════════════════════════════════════════════════════════════════

@app.command()
def status(
    recent: int = typer.Option(5, "--recent", help="Recent reclamations to show", min=0),
):
    """
    Show registry counts, idle rent and recent reclamations.
    """
    db = DBManager()
    stats = db.get_statistics()

    table = Table(title="RentGuard Registry")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Tracked", str(stats["total"]))
    table.add_row("Active", str(stats["active"]))
    table.add_row("Reclaimable", str(stats["reclaimable"]))
    table.add_row("Reclaimed", str(stats["reclaimed"]))
    table.add_row("Whitelisted", str(stats["whitelisted"]))
    table.add_row("Idle Rent", f"{stats['idle_rent_lamports'] / LAMPORTS_PER_SOL:.6f} SOL")
    table.add_row("Total Reclaimed", f"{stats['total_reclaimed_lamports'] / LAMPORTS_PER_SOL:.6f} SOL")
    console.print(table)

    if recent:
        entries = db.reclamations.list_entries(limit=recent)
        if entries:
            log_table = Table(title="Recent Reclamations")
            log_table.add_column("When")
            log_table.add_column("Address")
            log_table.add_column("Lamports", justify="right")
            log_table.add_column("Tx")
            for entry in entries:
                log_table.add_row(
                    datetime.fromtimestamp(entry.timestamp).strftime("%Y-%m-%d %H:%M"),
                    entry.account_address,
                    str(entry.amount_reclaimed),
                    entry.transaction_signature[:16] + "...",
                )
            console.print(log_table)


@app.command()
def balance():
    """
    Show the operator's SOL balance.
    """
    try:
        wallet = OperatorWallet.from_settings()
    except ConfigurationError as e:
        _fail(f"Configuration error: {e}")

    try:
        lamports = LedgerClient().get_balance(wallet.address)
    except LedgerUnavailableError as e:
        _fail(f"Ledger unavailable: {e}")

    console.print(Panel.fit(
        f"[bold green]💰 {lamports / LAMPORTS_PER_SOL:.6f} SOL[/bold green]\n{wallet.address}",
        border_style="green"
    ))


@app.command()
def whitelist(
    address: str = typer.Argument(..., help="Tracked account address"),
    off: bool = typer.Option(False, "--off", help="Remove the whitelist flag"),
):
    """
    Manually whitelist (or un-whitelist) a tracked account.
    """
    db = DBManager()
    if db.accounts.get(address) is None:
        _fail(f"{address} is not tracked")

    db.accounts.set_whitelisted(address, not off)
    state = "removed from" if off else "added to"
    console.print(f"[green]✅ {address} {state} whitelist[/green]")


# ═══════════════════════════════════════════════════════════════════════════════
# DAEMON
# ═══════════════════════════════════════════════════════════════════════════════

@app.command()
def run(
    dry_run: bool = typer.Option(False, "--dry-run", help="Reclaim cycles simulate only"),
    scan_interval: Optional[int] = typer.Option(None, "--scan-interval", help="Seconds between scans", min=1),
    reclaim_interval: Optional[int] = typer.Option(None, "--reclaim-interval", help="Seconds between reclaims", min=1),
):
    """
    Run the scheduler: hourly scan + analyze, daily reclaim.
    """
    pipeline = _load_pipeline()

    try:
        telegram = TelegramManager()
    except ConfigurationError as e:
        _fail(f"Configuration error: {e}")

    scheduler = ReclaimScheduler(
        pipeline.monitor,
        pipeline.analyzer,
        pipeline.reclaimer,
        pipeline.db.accounts,
        pipeline.db.reclamations,
        notifier=telegram,
        config=pipeline.config,
        scan_interval=scan_interval,
        reclaim_interval=reclaim_interval,
        dry_run=dry_run,
    )
    telegram.bind(scheduler)

    console.print(Panel.fit(
        f"[bold cyan]⏰ RentGuard Daemon[/bold cyan]\n"
        f"Operator: {pipeline.wallet.address}\n"
        f"RPC: {Settings.RPC_URL} | Telegram: {'on' if telegram.enabled else 'off'} | "
        f"Dry run: {'yes' if dry_run else 'no'}",
        border_style="cyan"
    ))

    telegram.start()
    try:
        scheduler.run_forever()
    except KeyboardInterrupt:
        console.print("\n[yellow]Shutdown requested.[/yellow]")
        scheduler.stop()
    finally:
        telegram.stop()
        Logger.info("[SYSTEM] RentGuard stopped")


if __name__ == "__main__":
    app()
