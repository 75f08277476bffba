"""
Integration Test Configuration
==============================
Real SQLite databases on tmp_path, mock ledger.
"""

import pytest

from rentguard.shared.system.db_manager import DBManager


@pytest.fixture
def db(tmp_path):
    """Fresh schema-initialized database per test."""
    return DBManager(str(tmp_path / "rentguard_test.db"))


@pytest.fixture
def accounts(db):
    return db.accounts


@pytest.fixture
def reclamations(db):
    return db.reclamations
