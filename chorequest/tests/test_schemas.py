"""Tests for transaction metadata and request validators."""

import pytest

from chorequest.schemas import (
    ChoreRewardMeta,
    ManualGiftMeta,
    RivalryBonusMeta,
    StreakPenaltyMeta,
    dump_meta,
    load_meta,
    tier_name,
    validate_bid_payload,
    validate_completion_payload,
    validate_wallet_adjustment,
)


class TestTransactionMeta:

    def test_dump_includes_reason(self):
        data = dump_meta(ChoreRewardMeta(completion_id=1, assignment_id=2, chore_id=3))

        assert data == {'reason': 'chore_reward', 'completion_id': 1, 'assignment_id': 2, 'chore_id': 3}

    def test_load_picks_type_from_reason(self):
        stored = dump_meta(RivalryBonusMeta(completion_id=1, assignment_id=2, chore_id=3, bid_id=4,
                                            bid_amount_pence=35, base_reward_pence=50, bonus_stars=1))

        meta = load_meta(stored)

        assert isinstance(meta, RivalryBonusMeta)
        assert meta.bid_amount_pence == 35

    def test_optional_fields_default(self):
        meta = load_meta({'reason': 'manual_gift'})

        assert meta == ManualGiftMeta()

    def test_penalty_meta_keeps_tier_detail(self):
        meta = StreakPenaltyMeta(chore_id=1, chore_title='Make bed', missed_period='2026-03-02',
                                 penalty_reason='missed_daily_chore', consecutive_misses=4,
                                 tier=3, penalty_tier='third_plus', requested_pence=20, requested_stars=3)

        assert load_meta(dump_meta(meta)) == meta

    def test_unknown_reason(self):
        with pytest.raises(ValueError):
            load_meta({'reason': 'pocket_money'})

    def test_missing_field(self):
        with pytest.raises(ValueError):
            load_meta({'reason': 'chore_reward', 'completion_id': 1})

    @pytest.mark.parametrize('tier,name', [(1, 'first'), (2, 'second'), (3, 'third_plus'), (7, 'third_plus')])
    def test_tier_name(self, tier, name):
        assert tier_name(tier) == name


class TestValidators:

    @pytest.mark.parametrize('payload,valid', [
        ({'assignment_id': 1, 'amount_pence': 30}, True),
        ({'assignment_id': 1, 'amount_pence': -5}, True),  # range checked by the service
        ({'assignment_id': 1}, False),
        ({'assignment_id': 0, 'amount_pence': 30}, False),
        ({'assignment_id': 1, 'amount_pence': '30'}, False),
        ({'assignment_id': 1, 'amount_pence': True}, False),
        ({}, False),
    ])
    def test_bid_payload(self, payload, valid):
        is_valid, error = validate_bid_payload(payload)

        assert is_valid is valid
        assert (error is None) is valid

    @pytest.mark.parametrize('payload,valid', [
        ({'assignment_id': 3}, True),
        ({'assignment_id': 3, 'note': 'done'}, True),
        ({'assignment_id': 3, 'note': 12}, False),
        ({'assignment_id': 'x'}, False),
        (None, False),
    ])
    def test_completion_payload(self, payload, valid):
        assert validate_completion_payload(payload)[0] is valid

    @pytest.mark.parametrize('payload,valid', [
        ({'amount_pence': 100}, True),
        ({'stars': 2}, True),
        ({'amount_pence': 0, 'stars': 0}, False),
        ({'amount_pence': -1}, False),
        ({'amount_pence': 1.5}, False),
        ({'amount_pence': 10, 'note': ['x']}, False),
    ])
    def test_wallet_adjustment(self, payload, valid):
        assert validate_wallet_adjustment(payload)[0] is valid
