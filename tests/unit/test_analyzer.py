"""
Analyzer Unit Tests
===================
Safety gates: existence, whitelist, activity, grace period, eligibility.
"""

from solders.pubkey import Pubkey

from rentguard.modules.reclaim.analyzer import Analyzer
from rentguard.shared.models.accounts import AccountKind
from tests.mocks.mock_ledger import MIN_RENT_ZERO_DATA, TOKEN_PROGRAM, UnavailableLedgerClient
from tests.mocks.token_accounts import encode_token_account


def token_data(owner: str, amount: int = 0) -> bytes:
    return encode_token_account(str(Pubkey.new_unique()), owner, amount=amount)


class TestExistenceGate:

    def test_missing_account_marked_reclaimed(self, mock_ledger, tracked_repo, make_account, clock, now):
        account = make_account()
        tracked_repo.list_by_status.return_value = [account]

        summary = Analyzer(mock_ledger, tracked_repo, clock=clock).reconcile()

        tracked_repo.mark_reclaimed.assert_called_once_with(account.address, checked_at=now)
        tracked_repo.mark_reclaimable.assert_not_called()
        assert summary.closed_externally == 1


class TestWhitelistGate:

    def test_whitelisted_never_promoted(self, mock_ledger, tracked_repo, make_account, clock):
        account = make_account(age_days=40, balance=0, whitelisted=True)
        mock_ledger.set_account(account.address, lamports=0)
        tracked_repo.list_by_status.return_value = [account]

        analyzer = Analyzer(mock_ledger, tracked_repo, clock=clock)
        for _ in range(3):
            summary = analyzer.reconcile()

        tracked_repo.mark_reclaimable.assert_not_called()
        tracked_repo.record_activity.assert_not_called()
        assert summary.whitelisted == 1

    def test_whitelisted_still_stamped_checked(self, mock_ledger, tracked_repo, make_account, clock, now):
        account = make_account(whitelisted=True)
        mock_ledger.set_account(account.address, lamports=account.recorded_balance)
        tracked_repo.list_by_status.return_value = [account]

        Analyzer(mock_ledger, tracked_repo, clock=clock).reconcile()

        tracked_repo.touch_checked.assert_called_once_with(account.address, now)


class TestActivityGate:

    def test_balance_change_recorded(self, mock_ledger, tracked_repo, make_account, clock, now):
        account = make_account(balance=1_000_000)
        mock_ledger.set_account(account.address, lamports=MIN_RENT_ZERO_DATA)
        tracked_repo.list_by_status.return_value = [account]

        summary = Analyzer(mock_ledger, tracked_repo, clock=clock).reconcile()

        tracked_repo.record_activity.assert_called_once_with(account.address, MIN_RENT_ZERO_DATA, now)
        assert summary.activity == 1

    def test_activity_does_not_block_promotion(self, mock_ledger, tracked_repo, make_account, clock):
        """Drained down to rent after the grace period: still reclaimable."""
        account = make_account(balance=5_000_000, age_days=45)
        mock_ledger.set_account(account.address, lamports=MIN_RENT_ZERO_DATA)
        tracked_repo.list_by_status.return_value = [account]

        Analyzer(mock_ledger, tracked_repo, clock=clock).reconcile()

        tracked_repo.mark_reclaimable.assert_called_once_with(account.address)


class TestGracePeriodGate:

    def test_created_now_never_promoted(self, mock_ledger, tracked_repo, make_account, clock):
        account = make_account(age_days=0)
        mock_ledger.set_account(account.address, lamports=account.recorded_balance)
        tracked_repo.list_by_status.return_value = [account]

        summary = Analyzer(mock_ledger, tracked_repo, clock=clock).reconcile()

        tracked_repo.mark_reclaimable.assert_not_called()
        assert summary.in_grace == 1

    def test_29_days_still_in_grace(self, mock_ledger, tracked_repo, make_account, clock):
        account = make_account(age_days=29.9)
        mock_ledger.set_account(account.address, lamports=account.recorded_balance)
        tracked_repo.list_by_status.return_value = [account]

        Analyzer(mock_ledger, tracked_repo, clock=clock).reconcile()

        tracked_repo.mark_reclaimable.assert_not_called()

    def test_exactly_30_days_leaves_grace(self, mock_ledger, tracked_repo, make_account, clock):
        account = make_account(age_days=30)
        mock_ledger.set_account(account.address, lamports=account.recorded_balance)
        tracked_repo.list_by_status.return_value = [account]

        Analyzer(mock_ledger, tracked_repo, clock=clock).reconcile()

        tracked_repo.mark_reclaimable.assert_called_once()


class TestSeedEligibility:

    def _run(self, ledger, repo, account, lamports, clock, data=b""):
        ledger.set_account(account.address, lamports=lamports, data=data)
        repo.list_by_status.return_value = [account]
        return Analyzer(ledger, repo, clock=clock).reconcile()

    def test_exact_min_rent_promoted(self, mock_ledger, tracked_repo, make_account, clock):
        account = make_account(balance=MIN_RENT_ZERO_DATA)
        self._run(mock_ledger, tracked_repo, account, MIN_RENT_ZERO_DATA, clock)
        tracked_repo.mark_reclaimable.assert_called_once_with(account.address)

    def test_dust_below_tolerance_promoted(self, mock_ledger, tracked_repo, make_account, clock):
        lamports = MIN_RENT_ZERO_DATA + 9_999
        account = make_account(balance=lamports)
        self._run(mock_ledger, tracked_repo, account, lamports, clock)
        tracked_repo.mark_reclaimable.assert_called_once_with(account.address)

    def test_dust_above_tolerance_not_promoted(self, mock_ledger, tracked_repo, make_account, clock):
        lamports = MIN_RENT_ZERO_DATA + 10_001
        account = make_account(balance=lamports)
        self._run(mock_ledger, tracked_repo, account, lamports, clock)
        tracked_repo.mark_reclaimable.assert_not_called()

    def test_seed_with_data_not_promoted(self, mock_ledger, tracked_repo, make_account, clock):
        account = make_account(balance=MIN_RENT_ZERO_DATA)
        self._run(mock_ledger, tracked_repo, account, MIN_RENT_ZERO_DATA, clock, data=b"\x01" * 8)
        tracked_repo.mark_reclaimable.assert_not_called()

    def test_min_rent_fetched_once_per_pass(self, mock_ledger, tracked_repo, make_account, clock):
        accounts = [make_account(balance=MIN_RENT_ZERO_DATA) for _ in range(3)]
        for a in accounts:
            mock_ledger.set_account(a.address, lamports=MIN_RENT_ZERO_DATA)
        tracked_repo.list_by_status.return_value = accounts

        analyzer = Analyzer(mock_ledger, tracked_repo, clock=clock)
        calls_before = mock_ledger.call_count
        analyzer.reconcile()

        # 3 getAccountInfo + 1 rent lookup
        assert mock_ledger.call_count - calls_before == 4


class TestTokenEligibility:

    def _run(self, ledger, repo, account, data, clock):
        ledger.set_account(account.address, lamports=account.recorded_balance, data=data, owner=TOKEN_PROGRAM)
        repo.list_by_status.return_value = [account]
        return Analyzer(ledger, repo, clock=clock).reconcile()

    def test_zero_amount_promoted(self, mock_ledger, tracked_repo, make_account, clock):
        account = make_account(kind=AccountKind.ASSOCIATED_TOKEN, balance=2_039_280)
        self._run(mock_ledger, tracked_repo, account, token_data(account.close_authority, amount=0), clock)
        tracked_repo.mark_reclaimable.assert_called_once_with(account.address)

    def test_one_base_unit_not_promoted(self, mock_ledger, tracked_repo, make_account, clock):
        account = make_account(kind=AccountKind.ASSOCIATED_TOKEN, balance=2_039_280)
        self._run(mock_ledger, tracked_repo, account, token_data(account.close_authority, amount=1), clock)
        tracked_repo.mark_reclaimable.assert_not_called()

    def test_wrapped_native_zero_amount_promoted(self, mock_ledger, tracked_repo, make_account, clock):
        account = make_account(kind=AccountKind.WRAPPED_NATIVE, balance=2_039_280)
        self._run(mock_ledger, tracked_repo, account, token_data(account.close_authority), clock)
        tracked_repo.mark_reclaimable.assert_called_once()

    def test_undecodable_data_skipped_with_error(self, mock_ledger, tracked_repo, make_account, clock):
        account = make_account(kind=AccountKind.ASSOCIATED_TOKEN, balance=2_039_280)

        summary = self._run(mock_ledger, tracked_repo, account, b"\x00" * 40, clock)

        tracked_repo.mark_reclaimable.assert_not_called()
        assert summary.errors == 1


class TestReconcileResilience:

    def test_one_bad_account_does_not_stop_the_pass(self, mock_ledger, tracked_repo, make_account, clock):
        bad = make_account(kind=AccountKind.ASSOCIATED_TOKEN, balance=2_039_280)
        good = make_account(balance=MIN_RENT_ZERO_DATA)
        mock_ledger.set_account(bad.address, lamports=2_039_280, data=b"garbage", owner=TOKEN_PROGRAM)
        mock_ledger.set_account(good.address, lamports=MIN_RENT_ZERO_DATA)
        tracked_repo.list_by_status.return_value = [bad, good]

        summary = Analyzer(mock_ledger, tracked_repo, clock=clock).reconcile()

        tracked_repo.mark_reclaimable.assert_called_once_with(good.address)
        assert summary.errors == 1
        assert summary.promoted == 1

    def test_ledger_outage_counts_errors(self, tracked_repo, make_account, clock):
        tracked_repo.list_by_status.return_value = [make_account(), make_account()]

        summary = Analyzer(UnavailableLedgerClient(), tracked_repo, clock=clock).reconcile()

        assert summary.errors == 2
        tracked_repo.mark_reclaimed.assert_not_called()
