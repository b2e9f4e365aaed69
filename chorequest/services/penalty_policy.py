"""Penalty policy for missed chores.

evaluate_penalty() is a pure function of the miss count and the family's
settings. apply_penalty() posts the result through the ledger, clamped to the
family's minimum-balance floor.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from chorequest.models import Family, Child, Chore, Transaction
from chorequest.schemas import StreakPenaltyMeta, tier_name
from chorequest.services.errors import InsufficientFloorError
from chorequest.services.ledger_service import LedgerService
from chorequest.utils.periods import WEEKLY

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PenaltyDecision:
    """Outcome of evaluating a run of consecutive misses."""
    consecutive_misses: int
    tier: int
    pence: int
    stars: int

    @property
    def protected(self) -> bool:
        """Within the protection window: no penalty, streak is protected."""
        return self.tier <= 0

    @property
    def has_amount(self) -> bool:
        return self.pence > 0 or self.stars > 0


def penalty_tier(consecutive_misses: int, protection_days: int) -> int:
    return consecutive_misses - (protection_days or 0)


def apply_mode(mode: str, pence: int, stars: int):
    """Zero out the channel the family's penalty mode does not use."""
    if mode == 'money':
        return pence, 0
    if mode == 'stars':
        return 0, stars
    return pence, stars


def evaluate_penalty(family: Family, consecutive_misses: int) -> PenaltyDecision:
    """
    Work out the penalty for a run of misses.

    Args:
        family: Family settings (protection days, tiers, mode, toggle)
        consecutive_misses: Uninterrupted missed periods, including the latest

    Returns:
        PenaltyDecision with amounts zeroed when penalties are disabled
    """
    tier = penalty_tier(consecutive_misses, family.streak_protection_days)

    if tier <= 0 or not family.penalty_enabled:
        return PenaltyDecision(consecutive_misses, tier, 0, 0)

    pence, stars = family.miss_tier_amounts(tier)
    pence, stars = apply_mode(family.penalty_mode or 'both', pence, stars)
    return PenaltyDecision(consecutive_misses, tier, pence, stars)


def penalty_key(child_id: int, chore_id: int, missed_period: date) -> str:
    return f'streak_penalty:{child_id}:{chore_id}:{missed_period.isoformat()}'


def apply_penalty(family: Family, child: Child, chore: Chore, missed_period: date,
                  decision: PenaltyDecision) -> Optional[Transaction]:
    """
    Debit the penalty for a missed period.

    At most one penalty is written per child, chore and missed period, so
    re-running a cycle is safe. A floor that blocks the whole penalty is
    logged and skipped.

    Returns:
        The debit Transaction, or None if nothing was applied
    """
    if not decision.has_amount:
        logger.info(f"No penalty configured for {child.nickname} (tier {decision.tier})")
        return None

    key = penalty_key(child.id, chore.id, missed_period)
    if LedgerService.find_transaction(key) is not None:
        logger.debug(f"Penalty already applied for {child.nickname} on '{chore.title}' ({missed_period})")
        return None

    meta = StreakPenaltyMeta(
        chore_id=chore.id,
        chore_title=chore.title,
        missed_period=missed_period.isoformat(),
        penalty_reason='missed_weekly_chore' if chore.frequency == WEEKLY else 'missed_daily_chore',
        consecutive_misses=decision.consecutive_misses,
        tier=decision.tier,
        penalty_tier=tier_name(decision.tier),
        requested_pence=decision.pence,
        requested_stars=decision.stars
    )

    try:
        txn = LedgerService.debit(
            family.id,
            child.id,
            decision.pence,
            decision.stars,
            meta,
            source='system',
            floor_pence=family.min_balance_pence,
            floor_stars=family.min_balance_stars,
            clamp=True,
            idempotency_key=key
        )
    except InsufficientFloorError as e:
        logger.info(f"{child.nickname} protected by minimum balance - no penalty applied ({e.message})")
        return None

    logger.info(
        f"Penalty applied to {child.nickname} for '{chore.title}': {txn.amount_pence}p "
        f"{txn.stars} stars ({tier_name(decision.tier)} miss, {decision.consecutive_misses} in a row)"
    )
    return txn
