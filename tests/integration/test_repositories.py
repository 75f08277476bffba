"""
Repository Integration Tests
============================
Schema constraints, insert-if-absent and the status DAG on real SQLite.
"""

import sqlite3

import pytest

from rentguard.shared.models.accounts import ALLOWED_TRANSITIONS, AccountKind, AccountStatus

pytestmark = pytest.mark.integration


def track(repo, address="Acct1", kind=AccountKind.SEED, balance=890880, created_at=1000.0, seed="s"):
    return repo.insert_if_absent(
        address=address,
        account_kind=kind,
        close_authority="Operator",
        recorded_balance=balance,
        seed_material=seed,
        created_at=created_at,
    )


class TestInsertIfAbsent:

    def test_new_row_defaults(self, accounts):
        assert track(accounts) is True

        row = accounts.get("Acct1")
        assert row.status is AccountStatus.ACTIVE
        assert row.account_kind is AccountKind.SEED
        assert row.recorded_balance == 890880
        assert row.seed_material == "s"
        assert row.whitelisted is False

    def test_discovery_is_idempotent(self, accounts):
        track(accounts)
        accounts.mark_reclaimable("Acct1")

        assert track(accounts, kind=AccountKind.ASSOCIATED_TOKEN, balance=5) is False

        row = accounts.get("Acct1")
        assert row.account_kind is AccountKind.SEED
        assert row.status is AccountStatus.RECLAIMABLE
        assert row.recorded_balance == 890880
        assert len(accounts.list_all()) == 1

    def test_negative_balance_clamped(self, accounts):
        track(accounts, balance=-1)
        assert accounts.get("Acct1").recorded_balance == 0

    def test_unknown_kind_rejected_by_schema(self, db):
        with pytest.raises(sqlite3.IntegrityError):
            with db.core.cursor(commit=True) as c:
                c.execute(
                    "INSERT INTO tracked_accounts (address, account_kind, close_authority, created_at) "
                    "VALUES (?, ?, ?, ?)",
                    ("X", "Stake", "Operator", 1.0),
                )


class TestStatusTransitions:

    def test_active_to_reclaimable_to_reclaimed(self, accounts):
        track(accounts)

        assert accounts.mark_reclaimable("Acct1") is True
        assert accounts.mark_reclaimed("Acct1", checked_at=2000.0) is True

        row = accounts.get("Acct1")
        assert row.status is AccountStatus.RECLAIMED
        assert row.recorded_balance == 0
        assert row.last_checked == 2000.0

    def test_active_to_reclaimed(self, accounts):
        track(accounts)
        assert accounts.mark_reclaimed("Acct1") is True

    def test_reclaimed_is_terminal(self, accounts):
        track(accounts)
        accounts.mark_reclaimed("Acct1")

        assert accounts.mark_reclaimable("Acct1") is False
        assert accounts.mark_reclaimed("Acct1") is False
        assert accounts.get("Acct1").status is AccountStatus.RECLAIMED

    def test_reclaimable_cannot_be_promoted_again(self, accounts):
        track(accounts)
        accounts.mark_reclaimable("Acct1")
        assert accounts.mark_reclaimable("Acct1") is False

    def test_unknown_address(self, accounts):
        assert accounts.mark_reclaimable("Nope") is False

    def test_transition_table_has_no_backward_edges(self):
        assert ALLOWED_TRANSITIONS[AccountStatus.RECLAIMABLE] == (AccountStatus.ACTIVE,)
        assert AccountStatus.RECLAIMED not in ALLOWED_TRANSITIONS[AccountStatus.RECLAIMED]
        assert AccountStatus.ACTIVE not in ALLOWED_TRANSITIONS


class TestBookkeeping:

    def test_record_activity(self, accounts):
        track(accounts)
        accounts.record_activity("Acct1", 5_000_000, at=3000.0)

        row = accounts.get("Acct1")
        assert row.recorded_balance == 5_000_000
        assert row.last_activity == 3000.0

    def test_activity_ignored_after_reclaim(self, accounts):
        track(accounts)
        accounts.mark_reclaimed("Acct1")
        accounts.record_activity("Acct1", 5_000_000, at=3000.0)

        assert accounts.get("Acct1").recorded_balance == 0

    def test_whitelist_toggle(self, accounts):
        track(accounts)

        assert accounts.set_whitelisted("Acct1") is True
        assert accounts.get("Acct1").whitelisted is True
        accounts.set_whitelisted("Acct1", False)
        assert accounts.get("Acct1").whitelisted is False

    def test_list_by_status(self, accounts):
        track(accounts, address="A")
        track(accounts, address="B")
        accounts.mark_reclaimable("B")

        assert [a.address for a in accounts.list_by_status(AccountStatus.ACTIVE)] == ["A"]
        assert [a.address for a in accounts.list_by_status(AccountStatus.RECLAIMABLE)] == ["B"]


class TestStatistics:

    def test_empty(self, accounts, reclamations):
        assert accounts.get_statistics()["total"] == 0
        assert reclamations.get_statistics() == {"reclamations": 0, "total_reclaimed_lamports": 0}

    def test_idle_rent_excludes_reclaimed(self, accounts):
        track(accounts, address="A", balance=100)
        track(accounts, address="B", balance=200)
        track(accounts, address="C", balance=300)
        accounts.mark_reclaimable("B")
        accounts.mark_reclaimed("C")
        accounts.set_whitelisted("A")

        stats = accounts.get_statistics()

        assert stats == {
            "total": 3,
            "active": 1,
            "reclaimable": 1,
            "reclaimed": 1,
            "whitelisted": 1,
            "idle_rent_lamports": 300,
        }


class TestReclamationLog:

    def test_append_and_list(self, reclamations):
        first = reclamations.append("A", 890880, "SIG1", timestamp=10.0)
        second = reclamations.append("B", 2039280, "SIG2", timestamp=20.0)

        assert second > first
        latest = reclamations.list_entries(limit=1)
        assert latest[0].transaction_signature == "SIG2"
        assert latest[0].reason == "Automated Reclaim"

        stats = reclamations.get_statistics()
        assert stats["reclamations"] == 2
        assert stats["total_reclaimed_lamports"] == 890880 + 2039280

    def test_list_for_account(self, reclamations):
        reclamations.append("A", 1, "SIG1")
        reclamations.append("B", 2, "SIG2")

        entries = reclamations.list_for_account("A")

        assert len(entries) == 1
        assert entries[0].amount_reclaimed == 1
