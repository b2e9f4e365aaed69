"""Tests for penalty evaluation and application."""

import pytest
from datetime import date

from chorequest.models import Transaction
from chorequest.schemas import ManualGiftMeta, StreakPenaltyMeta, load_meta
from chorequest.services.ledger_service import LedgerService
from chorequest.services.penalty_policy import (
    PenaltyDecision,
    apply_mode,
    apply_penalty,
    evaluate_penalty,
    penalty_key,
    penalty_tier,
)

MISSED = date(2026, 3, 2)


@pytest.fixture
def strict_family(db_session, family):
    """Penalties on with three escalating tiers."""
    family.penalty_enabled = True
    family.streak_protection_days = 1
    family.first_miss_pence, family.first_miss_stars = 5, 1
    family.second_miss_pence, family.second_miss_stars = 10, 2
    family.third_miss_pence, family.third_miss_stars = 20, 3
    db_session.commit()
    return family


class TestEvaluate:

    @pytest.mark.parametrize('misses,protection,expected', [
        (1, 0, 1),
        (1, 1, 0),
        (2, 1, 1),
        (5, 2, 3),
        (0, 0, 0),
    ])
    def test_penalty_tier(self, misses, protection, expected):
        assert penalty_tier(misses, protection) == expected

    def test_within_protection_is_protected(self, db_session, strict_family):
        decision = evaluate_penalty(strict_family, 1)

        assert decision.protected
        assert not decision.has_amount

    def test_tiers_escalate(self, db_session, strict_family):
        assert (evaluate_penalty(strict_family, 2).pence, evaluate_penalty(strict_family, 2).stars) == (5, 1)
        assert (evaluate_penalty(strict_family, 3).pence, evaluate_penalty(strict_family, 3).stars) == (10, 2)
        assert (evaluate_penalty(strict_family, 4).pence, evaluate_penalty(strict_family, 4).stars) == (20, 3)
        assert (evaluate_penalty(strict_family, 9).pence, evaluate_penalty(strict_family, 9).stars) == (20, 3)

    def test_disabled_penalties_have_no_amount(self, db_session, strict_family):
        strict_family.penalty_enabled = False

        decision = evaluate_penalty(strict_family, 3)

        assert decision.tier == 2
        assert not decision.protected
        assert not decision.has_amount

    @pytest.mark.parametrize('mode,expected', [
        ('money', (10, 0)),
        ('stars', (0, 2)),
        ('both', (10, 2)),
    ])
    def test_apply_mode(self, mode, expected):
        assert apply_mode(mode, 10, 2) == expected

    def test_mode_applied_in_evaluation(self, db_session, strict_family):
        strict_family.penalty_mode = 'stars'

        decision = evaluate_penalty(strict_family, 2)

        assert (decision.pence, decision.stars) == (0, 1)


class TestApply:

    def test_penalty_debits_wallet_with_metadata(self, db_session, strict_family, child_a, daily_chore):
        LedgerService.credit(strict_family.id, child_a.id, 100, 10, ManualGiftMeta())
        db_session.commit()

        txn = apply_penalty(strict_family, child_a, daily_chore, MISSED, evaluate_penalty(strict_family, 2))
        db_session.commit()

        assert txn is not None
        assert txn.type == 'debit'
        assert txn.reason == 'streak_penalty'
        assert txn.idempotency_key == penalty_key(child_a.id, daily_chore.id, MISSED)

        meta = load_meta(txn.meta)
        assert isinstance(meta, StreakPenaltyMeta)
        assert meta.chore_id == daily_chore.id
        assert meta.tier == 1
        assert meta.penalty_tier == 'first'
        assert meta.consecutive_misses == 2
        assert meta.penalty_reason == 'missed_daily_chore'
        assert LedgerService.get_balance(strict_family.id, child_a.id) == (95, 9)

    def test_penalty_applied_once_per_period(self, db_session, strict_family, child_a, daily_chore):
        LedgerService.credit(strict_family.id, child_a.id, 100, 0, ManualGiftMeta())
        decision = evaluate_penalty(strict_family, 2)

        first = apply_penalty(strict_family, child_a, daily_chore, MISSED, decision)
        second = apply_penalty(strict_family, child_a, daily_chore, MISSED, decision)
        db_session.commit()

        assert first is not None
        assert second is None
        assert Transaction.query.filter_by(reason='streak_penalty').count() == 1

    def test_penalty_clamped_to_floor(self, db_session, strict_family, child_a, daily_chore):
        strict_family.min_balance_pence = 97
        LedgerService.credit(strict_family.id, child_a.id, 100, 0, ManualGiftMeta())

        txn = apply_penalty(strict_family, child_a, daily_chore, MISSED, evaluate_penalty(strict_family, 4))

        assert txn.amount_pence == 3
        assert txn.stars == 0
        assert LedgerService.get_balance(strict_family.id, child_a.id) == (97, 0)

    def test_floor_blocking_penalty_is_skipped(self, db_session, strict_family, child_a, daily_chore):
        strict_family.min_balance_pence = 100
        strict_family.penalty_mode = 'money'
        LedgerService.credit(strict_family.id, child_a.id, 100, 0, ManualGiftMeta())

        txn = apply_penalty(strict_family, child_a, daily_chore, MISSED, evaluate_penalty(strict_family, 2))

        assert txn is None
        assert Transaction.query.filter_by(reason='streak_penalty').count() == 0

    def test_no_amount_no_transaction(self, db_session, strict_family, child_a, daily_chore):
        txn = apply_penalty(strict_family, child_a, daily_chore, MISSED, PenaltyDecision(2, 1, 0, 0))

        assert txn is None
        assert Transaction.query.count() == 0

    def test_weekly_reason_tag(self, db_session, strict_family, child_a, weekly_chore):
        LedgerService.credit(strict_family.id, child_a.id, 100, 10, ManualGiftMeta())

        txn = apply_penalty(strict_family, child_a, weekly_chore, MISSED, evaluate_penalty(strict_family, 2))

        assert load_meta(txn.meta).penalty_reason == 'missed_weekly_chore'

    def test_floor_scenario_ends_exactly_at_floor(self, db_session, strict_family, child_a, daily_chore):
        """Wallet at 60p, floor 50p, 100p penalty: ends at 50p."""
        strict_family.min_balance_pence = 50
        strict_family.penalty_mode = 'money'
        strict_family.first_miss_pence = 100
        LedgerService.credit(strict_family.id, child_a.id, 60, 0, ManualGiftMeta())
        db_session.commit()

        txn = apply_penalty(strict_family, child_a, daily_chore, MISSED, evaluate_penalty(strict_family, 2))
        db_session.commit()

        assert txn.amount_pence == 10
        assert LedgerService.get_balance(strict_family.id, child_a.id) == (50, 0)
