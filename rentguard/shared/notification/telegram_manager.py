"""
Telegram Manager
================
Handles all Telegram interactions for RentGuard:
1. Alert Sending (thread-safe bridge into the bot's event loop)
2. Command Listening (/status, /scan, /reclaim, /balance)

Commands are accepted only from the configured TELEGRAM_CHAT_ID.
Pipeline work triggered from Telegram goes through the scheduler's
RunGuard, so it can never overlap a timed cycle.
"""

import asyncio
import logging
import threading
import time
from typing import Optional

from telegram import Update
from telegram.ext import ApplicationBuilder, CommandHandler, ContextTypes, filters

from config.settings import Settings
from rentguard.shared.errors import ConfigurationError, CycleInFlightError
from rentguard.shared.execution.wallet import LAMPORTS_PER_SOL
from rentguard.shared.system.logging import Logger

TELEGRAM_SCAN_LIMIT = 50


class TelegramManager:
    """
    Unified manager for Telegram interactions.
    """

    def __init__(self, token: Optional[str] = None, chat_id: Optional[str] = None):
        self.token = token if token is not None else Settings.TELEGRAM_BOT_TOKEN
        raw_chat_id = chat_id if chat_id is not None else Settings.TELEGRAM_CHAT_ID

        self.enabled = bool(self.token and raw_chat_id)
        self.chat_id: Optional[int] = None
        if self.enabled:
            try:
                self.chat_id = int(raw_chat_id)
            except ValueError as e:
                raise ConfigurationError(f"TELEGRAM_CHAT_ID must be numeric, got {raw_chat_id!r}") from e

        self.scheduler = None
        self.running = False

        # Async Loop for Bot
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self.application = None
        self.thread: Optional[threading.Thread] = None

        if not self.enabled:
            Logger.warning("[TG] No token or chat id. Telegram disabled.")

    def bind(self, scheduler):
        """Attach the scheduler that command handlers delegate to."""
        self.scheduler = scheduler

    def start(self):
        """Start the async bot thread."""
        if not self.enabled or self.thread:
            return

        self.running = True
        self.thread = threading.Thread(
            target=self._run_async_loop,
            name="TelegramManager"
        )
        self.thread.daemon = True
        self.thread.start()
        Logger.info("[TG] Manager Started (Commands + Alerts)")

    def stop(self):
        """Clean shutdown of the bot."""
        if not self.enabled:
            return

        Logger.info("[TG] Manager Stopping...")
        self.running = False

        if self.loop and self.loop.is_running() and self.application:
            future_stop = asyncio.run_coroutine_threadsafe(self.application.stop(), self.loop)
            try:
                future_stop.result(timeout=2)
            except Exception as e:
                Logger.debug(f"[TG] Stop Error: {e}")

        if self.thread and self.thread.is_alive():
            self.thread.join(timeout=2)

        self.thread = None
        Logger.info("[TG] Manager Stopped.")

    def _run_async_loop(self):
        """Main async loop running in background thread."""
        self.loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.loop)

        self.application = ApplicationBuilder().token(self.token).build()
        self._register_commands()

        # Suppress httpx logs
        logging.getLogger("httpx").setLevel(logging.WARNING)

        backoff = 5

        while self.running:
            try:
                Logger.info("[TG] Polling for commands")
                self.application.run_polling(
                    stop_signals=None,
                    drop_pending_updates=True,
                    close_loop=False
                )
                break
            except Exception as e:
                if not self.running:
                    break
                Logger.error(f"[TG] Connection Error: {e}. Retrying in {backoff}s...")
                time.sleep(backoff)
                backoff = min(backoff * 2, 60)

        try:
            pending = asyncio.all_tasks(self.loop)
            for task in pending:
                task.cancel()
            if pending:
                self.loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            self.loop.close()
        except RuntimeError as e:
            Logger.debug(f"[TG] Cleanup error: {e}")

    def _register_commands(self):
        """Register command handlers, restricted to the operator chat."""
        app = self.application
        operator_chat = filters.Chat(chat_id=self.chat_id)
        app.add_handler(CommandHandler("status", self._cmd_status, filters=operator_chat))
        app.add_handler(CommandHandler("scan", self._cmd_scan, filters=operator_chat))
        app.add_handler(CommandHandler("reclaim", self._cmd_reclaim, filters=operator_chat))
        app.add_handler(CommandHandler("balance", self._cmd_balance, filters=operator_chat))
        app.add_handler(CommandHandler("help", self._cmd_help, filters=operator_chat))

    # ═══════════════════════════════════════════════════════════════════
    # PUBLIC METHODS (Thread-Safe Bridge)
    # ═══════════════════════════════════════════════════════════════════

    def send_alert(self, message: str):
        """Send a new message (Thread-safe)."""
        if not self.enabled or not self.loop:
            Logger.debug(f"[TG] (not sent) {message}")
            return
        asyncio.run_coroutine_threadsafe(self._async_send(message), self.loop)

    async def _async_send(self, message: str):
        try:
            await self.application.bot.send_message(chat_id=self.chat_id, text=message)
        except Exception as e:
            Logger.warning(f"[TG] Send Error: {e}")

    # ═══════════════════════════════════════════════════════════════════
    # COMMAND HANDLERS
    # ═══════════════════════════════════════════════════════════════════

    async def _run_blocking(self, fn, *args):
        return await asyncio.get_running_loop().run_in_executor(None, fn, *args)

    async def _cmd_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        await update.message.reply_text(
            "🤖 RENTGUARD COMMANDS\n"
            "/status - Registry counts and idle rent\n"
            f"/scan - Scan last {TELEGRAM_SCAN_LIMIT} transactions and analyze\n"
            "/reclaim - Reclaim all Reclaimable accounts\n"
            "/balance - Operator SOL balance"
        )

    async def _cmd_status(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not self.scheduler:
            await update.message.reply_text("❌ Pipeline not attached")
            return

        stats = await self._run_blocking(self.scheduler.status_snapshot)
        running = stats.get("cycle_running") or "idle"
        await update.message.reply_text(
            "📊 RentGuard Status\n"
            f"Tracked: {stats['total']}\n"
            f"Active: {stats['active']} | Reclaimable: {stats['reclaimable']} | Reclaimed: {stats['reclaimed']}\n"
            f"Whitelisted: {stats['whitelisted']}\n"
            f"Idle rent: {stats['idle_rent_lamports'] / LAMPORTS_PER_SOL:.4f} SOL\n"
            f"Total reclaimed: {stats.get('total_reclaimed_lamports', 0) / LAMPORTS_PER_SOL:.4f} SOL\n"
            f"Cycle: {running}"
        )

    async def _cmd_scan(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not self.scheduler:
            await update.message.reply_text("❌ Pipeline not attached")
            return

        await update.message.reply_text(f"🔍 Scanning last {TELEGRAM_SCAN_LIMIT} transactions...")
        try:
            result = await self._run_blocking(self.scheduler.run_scan_cycle, TELEGRAM_SCAN_LIMIT)
        except CycleInFlightError as e:
            await update.message.reply_text(f"⏳ {e}. Try again later.")
            return

        if result is None:
            await update.message.reply_text("❌ Scan failed. Check logs.")
            return
        await update.message.reply_text(
            f"✅ Scan done: {result['discovered']} new, {result['promoted']} now reclaimable"
        )

    async def _cmd_reclaim(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not self.scheduler:
            await update.message.reply_text("❌ Pipeline not attached")
            return

        await update.message.reply_text("♻️ Reclaiming...")
        try:
            count = await self._run_blocking(self.scheduler.run_reclaim_cycle)
        except CycleInFlightError as e:
            await update.message.reply_text(f"⏳ {e}. Try again later.")
            return

        if count is None:
            await update.message.reply_text("❌ Reclaim failed. Check logs.")
            return
        await update.message.reply_text(f"✅ Reclaim done: {count} account(s)")

    async def _cmd_balance(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        if not self.scheduler:
            await update.message.reply_text("❌ Pipeline not attached")
            return

        try:
            lamports = await self._run_blocking(self.scheduler.operator_balance)
        except Exception as e:
            Logger.error(f"[TG] Balance lookup failed: {e}")
            await update.message.reply_text(f"❌ Balance unavailable: {str(e)[:100]}")
            return
        await update.message.reply_text(f"💰 Operator balance: {lamports / LAMPORTS_PER_SOL:.4f} SOL")
