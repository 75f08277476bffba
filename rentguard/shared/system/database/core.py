import sqlite3
import os
from contextlib import contextmanager

from config.settings import Settings
from rentguard.shared.system.logging import Logger


class DatabaseCore:
    """
    Core Database Connection Manager.
    Handles WAL mode and hands out short-lived connections.
    Every statement commits on its own; callers rely on per-statement atomicity.
    """

    def __init__(self, db_path: str = None):
        self.db_path = db_path or Settings.DB_PATH
        self._ensure_data_dir()
        self._init_wal_mode()

    def _ensure_data_dir(self):
        directory = os.path.dirname(self.db_path)
        if directory and not os.path.exists(directory):
            os.makedirs(directory, exist_ok=True)

    def _init_wal_mode(self):
        """Enable Write-Ahead Logging for concurrent readers."""
        try:
            with self.cursor(commit=True) as c:
                c.execute("PRAGMA journal_mode=WAL;")
                c.execute("PRAGMA synchronous=NORMAL;")
        except sqlite3.Error as e:
            Logger.warning(f"[DB] Failed to enable WAL mode: {e}")

    def get_connection(self):
        """Get a configured SQLite connection."""
        conn = sqlite3.connect(self.db_path, timeout=10.0)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def cursor(self, commit=False):
        """Context manager for database interaction."""
        conn = self.get_connection()
        cursor = conn.cursor()
        try:
            yield cursor
            if commit:
                conn.commit()
        except Exception as e:
            if commit:
                conn.rollback()
            Logger.error(f"[DB] Error: {e}")
            raise
        finally:
            conn.close()
