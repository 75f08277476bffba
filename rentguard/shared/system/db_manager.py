from typing import Any, Dict

from rentguard.shared.system.database.core import DatabaseCore
from rentguard.shared.system.database.repositories.reclamation_log_repo import ReclamationLogRepository
from rentguard.shared.system.database.repositories.tracked_account_repo import TrackedAccountRepository


class DBManager:
    """
    Database Manager Facade.
    Builds the core connection manager, the repositories and their schemas.
    """

    def __init__(self, db_path: str = None):
        # 1. Initialize Core (Connection, WAL)
        self.core = DatabaseCore(db_path)

        # 2. Initialize Repositories
        self.accounts = TrackedAccountRepository(self.core)
        self.reclamations = ReclamationLogRepository(self.core)

        # 3. Initialize Schemas
        self.accounts.init_table()
        self.reclamations.init_table()

    def get_statistics(self) -> Dict[str, Any]:
        stats = dict(self.accounts.get_statistics())
        stats.update(self.reclamations.get_statistics())
        return stats
