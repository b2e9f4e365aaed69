"""Tests for the completion workflow."""

import pytest
from datetime import date, datetime, time, timedelta
from unittest.mock import patch
from sqlalchemy import text

from chorequest.models import Completion, Transaction
from chorequest.schemas import ChoreRewardMeta, ManualGiftMeta, StreakBonusMeta, load_meta
from chorequest.services.completion_service import CompletionService
from chorequest.services.errors import (
    AlreadyProcessedError,
    ConcurrencyConflictError,
    ForbiddenError,
    NotFoundError,
    WalletFrozenError,
)
from chorequest.services.ledger_service import LedgerService
from chorequest.services.streak_service import StreakService

MONDAY = date(2026, 3, 2)


def noon(d):
    return datetime.combine(d, time(12, 0))


class TestSubmit:

    def test_submit_creates_pending(self, db_session, family, child_a, daily_chore, make_assignment):
        assignment = make_assignment(daily_chore, child_a)

        completion = CompletionService.submit(assignment.id, family.id, child_a.id, 'All done',
                                              now=noon(MONDAY))

        assert completion.status == 'pending'
        assert completion.submitted_on == MONDAY
        assert completion.note == 'All done'
        assert assignment.status == 'claimed'

    def test_submit_advances_streak(self, db_session, family, child_a, daily_chore, make_assignment):
        assignment = make_assignment(daily_chore, child_a)

        CompletionService.submit(assignment.id, family.id, child_a.id, now=noon(MONDAY))

        streak = StreakService.get_streak(family.id, child_a.id, daily_chore.id)
        assert streak.current == 1
        assert streak.last_period == MONDAY

    def test_submitted_on_uses_local_calendar(self, db_session, family, child_a, daily_chore, make_assignment):
        """23:30 UTC in British summer time is already the next day."""
        assignment = make_assignment(daily_chore, child_a, period_start=date(2026, 6, 1))

        completion = CompletionService.submit(assignment.id, family.id, child_a.id,
                                              now=datetime(2026, 6, 1, 23, 30))

        assert completion.submitted_on == date(2026, 6, 2)

    def test_cannot_submit_siblings_assignment(self, db_session, family, child_a, child_b,
                                               daily_chore, make_assignment):
        assignment = make_assignment(daily_chore, child_a)

        with pytest.raises(ForbiddenError):
            CompletionService.submit(assignment.id, family.id, child_b.id)

    def test_duplicate_submission(self, db_session, family, child_a, daily_chore, make_assignment):
        assignment = make_assignment(daily_chore, child_a)
        CompletionService.submit(assignment.id, family.id, child_a.id)

        with pytest.raises(AlreadyProcessedError):
            CompletionService.submit(assignment.id, family.id, child_a.id)

    def test_resubmit_after_rejection(self, db_session, family, child_a, daily_chore, make_assignment):
        assignment = make_assignment(daily_chore, child_a)
        first = CompletionService.submit(assignment.id, family.id, child_a.id)
        CompletionService.reject(first.id, family.id)

        second = CompletionService.submit(assignment.id, family.id, child_a.id)

        assert second.status == 'pending'
        assert assignment.status == 'claimed'

    def test_assignment_in_other_family(self, db_session, family, other_family, child_a,
                                        daily_chore, make_assignment):
        assignment = make_assignment(daily_chore, child_a)

        with pytest.raises(NotFoundError):
            CompletionService.submit(assignment.id, other_family.id, child_a.id)


class TestApprove:

    def test_approve_pays_base_reward(self, db_session, family, child_a, daily_chore, make_assignment):
        assignment = make_assignment(daily_chore, child_a)
        completion = CompletionService.submit(assignment.id, family.id, child_a.id)

        result = CompletionService.approve(completion.id, family.id)

        assert result.credited_pence == 50
        assert result.credited_stars == 0
        assert result.rivalry_bonus is None
        assert result.streak_bonus is None
        assert completion.status == 'approved'
        assert completion.decided_at is not None
        assert completion.credited_pence == 50
        assert LedgerService.get_balance(family.id, child_a.id) == (50, 0)

        txn = LedgerService.find_transaction(f'completion:{completion.id}')
        assert isinstance(load_meta(txn.meta), ChoreRewardMeta)
        assert txn.source == 'system'

    def test_chore_stars_credited(self, db_session, family, child_a, weekly_chore, make_assignment):
        assignment = make_assignment(weekly_chore, child_a)
        completion = CompletionService.submit(assignment.id, family.id, child_a.id)

        result = CompletionService.approve(completion.id, family.id)

        assert (result.credited_pence, result.credited_stars) == (100, 2)

    def test_approve_twice_pays_once(self, db_session, family, child_a, daily_chore, make_assignment):
        assignment = make_assignment(daily_chore, child_a)
        completion = CompletionService.submit(assignment.id, family.id, child_a.id)
        CompletionService.approve(completion.id, family.id)

        with pytest.raises(AlreadyProcessedError):
            CompletionService.approve(completion.id, family.id)

        assert Transaction.query.count() == 1
        assert LedgerService.get_balance(family.id, child_a.id) == (50, 0)

    def test_concurrent_approval_conflicts(self, db_session, family, child_a, daily_chore, make_assignment):
        """A rejection committed after we read the completion beats our approval."""
        assignment = make_assignment(daily_chore, child_a)
        completion = CompletionService.submit(assignment.id, family.id, child_a.id)
        assert completion.status == 'pending'
        db_session.expunge(completion)

        db_session.execute(
            text("UPDATE completions SET status = 'rejected', version_id = version_id + 1 WHERE id = :id"),
            {'id': completion.id}
        )
        db_session.commit()
        db_session.add(completion)

        with pytest.raises(ConcurrencyConflictError):
            CompletionService.approve(completion.id, family.id)

        assert Transaction.query.count() == 0
        assert LedgerService.get_balance(family.id, child_a.id) == (0, 0)
        assert db_session.get(Completion, completion.id).status == 'rejected'

    def test_frozen_wallet_blocks_approval(self, db_session, family, child_a, daily_chore, make_assignment):
        LedgerService.credit(family.id, child_a.id, 10, 0, ManualGiftMeta())
        LedgerService.freeze_wallet(LedgerService.get_wallet(family.id, child_a.id), 'manual check')
        db_session.commit()
        assignment = make_assignment(daily_chore, child_a)
        completion = CompletionService.submit(assignment.id, family.id, child_a.id)

        with pytest.raises(WalletFrozenError):
            CompletionService.approve(completion.id, family.id)

        assert completion.status == 'pending'

    def test_streak_milestone_bonus(self, db_session, family, child_a, daily_chore, make_assignment):
        completions = []
        for n in range(3):
            assignment = make_assignment(daily_chore, child_a, MONDAY + timedelta(days=n))
            completions.append(CompletionService.submit(assignment.id, family.id, child_a.id,
                                                        now=noon(MONDAY + timedelta(days=n))))

        result = CompletionService.approve(completions[2].id, family.id)

        assert result.streak_bonus == 5
        assert result.credited_pence == 50
        assert result.credited_stars == 5
        bonus = Transaction.query.filter_by(reason='streak_bonus').one()
        meta = load_meta(bonus.meta)
        assert isinstance(meta, StreakBonusMeta)
        assert meta.milestone == 3
        assert meta.streak_length == 3

        # Milestone already paid: later approvals earn only the base reward
        again = CompletionService.approve(completions[0].id, family.id)
        assert again.streak_bonus is None
        assert LedgerService.get_balance(family.id, child_a.id) == (100, 5)

    def test_streak_bonus_disabled(self, db_session, family, child_a, daily_chore, make_assignment):
        family.streak_bonus_enabled = False
        db_session.commit()
        completions = []
        for n in range(3):
            assignment = make_assignment(daily_chore, child_a, MONDAY + timedelta(days=n))
            completions.append(CompletionService.submit(assignment.id, family.id, child_a.id,
                                                        now=noon(MONDAY + timedelta(days=n))))

        result = CompletionService.approve(completions[2].id, family.id)

        assert result.streak_bonus is None
        assert Transaction.query.filter_by(reason='streak_bonus').count() == 0

    def test_approval_fires_webhook(self, db_session, family, child_a, daily_chore, make_assignment):
        assignment = make_assignment(daily_chore, child_a)
        completion = CompletionService.submit(assignment.id, family.id, child_a.id)

        with patch('chorequest.services.completion_service.fire_webhook') as mock_fire:
            CompletionService.approve(completion.id, family.id)

        mock_fire.assert_called_once()
        assert mock_fire.call_args[0][0] == 'completion_approved'
        assert mock_fire.call_args[1]['credited_pence'] == 50


class TestReject:

    def test_reject_has_no_ledger_effect(self, db_session, family, child_a, daily_chore, make_assignment):
        assignment = make_assignment(daily_chore, child_a)
        completion = CompletionService.submit(assignment.id, family.id, child_a.id)

        CompletionService.reject(completion.id, family.id, 'Bed still messy')

        assert completion.status == 'rejected'
        assert completion.rejection_reason == 'Bed still messy'
        assert Transaction.query.count() == 0

    def test_reject_keeps_streak(self, db_session, family, child_a, daily_chore, make_assignment):
        """Streaks follow submissions, so a rejection does not undo the count."""
        assignment = make_assignment(daily_chore, child_a)
        completion = CompletionService.submit(assignment.id, family.id, child_a.id, now=noon(MONDAY))

        CompletionService.reject(completion.id, family.id)

        assert StreakService.get_streak(family.id, child_a.id, daily_chore.id).current == 1

    def test_cannot_reject_approved(self, db_session, family, child_a, daily_chore, make_assignment):
        assignment = make_assignment(daily_chore, child_a)
        completion = CompletionService.submit(assignment.id, family.id, child_a.id)
        CompletionService.approve(completion.id, family.id)

        with pytest.raises(AlreadyProcessedError):
            CompletionService.reject(completion.id, family.id)

    def test_unknown_completion(self, db_session, family):
        with pytest.raises(NotFoundError):
            CompletionService.reject(9999, family.id)


class TestList:

    def test_filter_by_status(self, db_session, family, child_a, child_b, daily_chore, make_assignment):
        first = CompletionService.submit(make_assignment(daily_chore, child_a).id, family.id, child_a.id)
        CompletionService.submit(make_assignment(daily_chore, child_b).id, family.id, child_b.id)
        CompletionService.approve(first.id, family.id)

        assert len(CompletionService.list_completions(family.id)) == 2
        assert [c.id for c in CompletionService.list_completions(family.id, status='approved')] == [first.id]
        assert len(CompletionService.list_completions(family.id, child_id=child_b.id)) == 1
