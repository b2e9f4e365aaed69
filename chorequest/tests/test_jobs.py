"""Tests for background jobs and the scheduler."""

import pytest
from unittest.mock import patch, MagicMock
from sqlalchemy import text

from chorequest.jobs.chore_generation import generate_chores
from chorequest.jobs.ledger_audit import audit_wallet_balances
from chorequest.models import Wallet, Assignment
from chorequest.schemas import ManualGiftMeta
from chorequest.services.ledger_service import LedgerService


class TestChoreGenerationJob:

    def test_returns_report(self, app, db_session, family, child_a, daily_chore):
        report = generate_chores()

        assert report.dry_run is False
        assert report.families_processed == 1
        assert report.chores_generated == 1
        assert Assignment.query.filter_by(child_id=child_a.id, chore_id=daily_chore.id).count() == 1

    def test_dry_run_leaves_no_rows(self, app, db_session, family, child_a, daily_chore):
        report = generate_chores(family_id=family.id, dry_run=True)

        assert report.dry_run is True
        assert report.chores_generated == 1
        assert Assignment.query.count() == 0

    def test_errors_from_cycle_are_reraised(self, app, db_session):
        with patch('chorequest.services.generation_service.run_generation_cycle',
                   side_effect=RuntimeError('boom')):
            with pytest.raises(RuntimeError):
                generate_chores()


class TestLedgerAuditJob:

    def test_no_discrepancy_when_balanced(self, app, db_session, family, child_a, child_b):
        LedgerService.credit(family.id, child_a.id, 120, 4, ManualGiftMeta())
        LedgerService.credit(family.id, child_b.id, 30, 0, ManualGiftMeta())
        db_session.commit()

        assert audit_wallet_balances() == []
        assert Wallet.query.filter_by(frozen=True).count() == 0

    def test_detects_discrepancy_and_freezes(self, app, db_session, family, child_a):
        LedgerService.credit(family.id, child_a.id, 100, 2, ManualGiftMeta())
        db_session.commit()
        wallet_id = LedgerService.get_wallet(family.id, child_a.id).id
        db_session.execute(
            text('UPDATE wallets SET stars = stars + 3 WHERE id = :id'),
            {'id': wallet_id}
        )
        db_session.commit()

        discrepancies = audit_wallet_balances()

        assert len(discrepancies) == 1
        assert discrepancies[0]['wallet_id'] == wallet_id
        assert discrepancies[0]['stored'] == (100, 5)
        assert discrepancies[0]['calculated'] == (100, 2)
        assert discrepancies[0]['diff_stars'] == 3
        db_session.expire_all()
        assert db_session.get(Wallet, wallet_id).frozen is True

    def test_handles_no_wallets(self, app, db_session):
        assert audit_wallet_balances() == []


class TestScheduler:

    def test_scheduler_disabled_in_testing(self, app):
        from chorequest.scheduler import init_scheduler

        with patch('chorequest.scheduler.scheduler') as mock_scheduler:
            init_scheduler(app)

        mock_scheduler.add_job.assert_not_called()
        mock_scheduler.start.assert_not_called()

    def test_registers_both_jobs(self, app):
        from chorequest.scheduler import init_scheduler

        app.config['TESTING'] = False
        app.config['SCHEDULER_ENABLED'] = True
        mock_scheduler = MagicMock(running=False)
        try:
            with patch('chorequest.scheduler.scheduler', mock_scheduler), \
                    patch('chorequest.scheduler.atexit'):
                init_scheduler(app)
        finally:
            app.config['TESTING'] = True

        job_ids = [c.kwargs['id'] for c in mock_scheduler.add_job.call_args_list]
        assert job_ids == ['daily_chore_generation', 'ledger_audit']
        mock_scheduler.start.assert_called_once()

    def test_run_unknown_job(self, app):
        from chorequest.scheduler import run_job_now

        assert run_job_now('no_such_job') is False

    def test_get_job_status(self, app):
        from chorequest.scheduler import get_job_status

        assert isinstance(get_job_status(), list)
