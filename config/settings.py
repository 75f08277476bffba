import os
from dotenv import load_dotenv

# Load Environment Variables from project root .env
env_path = os.path.join(os.path.dirname(__file__), "../.env")
load_dotenv(env_path)

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


def _env_list(name: str) -> list:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings:
    # ═══════════════════════════════════════════════════════════════════
    # RENTGUARD CONFIGURATION (Environment-Based)
    # ═══════════════════════════════════════════════════════════════════

    SILENT_MODE = os.getenv("SILENT_MODE", "false").lower() == "true"

    # --- Ledger ---
    RPC_URL = os.getenv("RPC_URL", "https://api.devnet.solana.com")
    RPC_FALLBACK_URLS = _env_list("RPC_FALLBACK_URLS")
    CONFIRM_TIMEOUT_SECONDS = int(os.getenv("CONFIRM_TIMEOUT_SECONDS", "60"))

    # --- Operator ---
    # JSON array of secret key bytes, path to a keypair file, or base58 secret
    OPERATOR_KEYPAIR = os.getenv("OPERATOR_KEYPAIR")

    # --- Paths ---
    DATA_DIR = os.path.join(PROJECT_ROOT, "data")
    DB_PATH = os.getenv("DB_PATH", os.path.join(DATA_DIR, "rentguard.db"))
    AUDIT_LOG_PATH = os.getenv("AUDIT_LOG_PATH", os.path.join(PROJECT_ROOT, "audit.log"))
    LOG_DIR = os.getenv("LOG_DIR", os.path.join(PROJECT_ROOT, "logs"))

    # --- Cadence ---
    SCAN_LIMIT = int(os.getenv("SCAN_LIMIT", "20"))
    SCAN_INTERVAL_SECONDS = int(os.getenv("SCAN_INTERVAL_SECONDS", "3600"))  # hourly
    RECLAIM_INTERVAL_SECONDS = int(os.getenv("RECLAIM_INTERVAL_SECONDS", "86400"))  # daily

    # --- Safety Gates ---
    GRACE_PERIOD_DAYS = int(os.getenv("GRACE_PERIOD_DAYS", "30"))
    DUST_TOLERANCE_LAMPORTS = int(os.getenv("DUST_TOLERANCE_LAMPORTS", "10000"))

    # --- Alerts ---
    ALERT_THRESHOLD_SOL = float(os.getenv("ALERT_THRESHOLD_SOL", "1.0"))
    TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN")
    TELEGRAM_CHAT_ID = os.getenv("TELEGRAM_CHAT_ID")

    @staticmethod
    def rpc_urls() -> list:
        """Primary RPC first, then fallbacks (deduplicated)."""
        urls = [Settings.RPC_URL] + Settings.RPC_FALLBACK_URLS
        return list(dict.fromkeys([u for u in urls if u]))
