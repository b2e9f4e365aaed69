"""
Transaction metadata and request validation for ChoreQuest.

Each ledger transaction carries a metadata payload whose shape depends on
why it was written. The payloads are small frozen dataclasses tagged by
their `reason`; load_meta() turns a stored JSON dict back into the right one.
"""

from dataclasses import dataclass, asdict, fields
from typing import Any, ClassVar, Dict, Optional, Tuple, Union

# Penalty tier names, indexed by tier (1, 2, 3+)
TIER_NAMES = {1: 'first', 2: 'second', 3: 'third_plus'}


def tier_name(tier: int) -> str:
    return TIER_NAMES[min(tier, 3)]


@dataclass(frozen=True)
class ChoreRewardMeta:
    reason: ClassVar[str] = 'chore_reward'
    completion_id: int
    assignment_id: int
    chore_id: int


@dataclass(frozen=True)
class RivalryBonusMeta:
    reason: ClassVar[str] = 'rivalry_bonus'
    completion_id: int
    assignment_id: int
    chore_id: int
    bid_id: int
    bid_amount_pence: int
    base_reward_pence: int
    bonus_stars: int


@dataclass(frozen=True)
class StreakBonusMeta:
    reason: ClassVar[str] = 'streak_bonus'
    completion_id: int
    chore_id: int
    streak_length: int
    milestone: int


@dataclass(frozen=True)
class StreakPenaltyMeta:
    reason: ClassVar[str] = 'streak_penalty'
    chore_id: int
    chore_title: str
    missed_period: str  # ISO date of the missed period's first day
    penalty_reason: str  # missed_daily_chore / missed_weekly_chore
    consecutive_misses: int
    tier: int
    penalty_tier: str
    requested_pence: int
    requested_stars: int


@dataclass(frozen=True)
class ManualGiftMeta:
    reason: ClassVar[str] = 'manual_gift'
    note: Optional[str] = None


@dataclass(frozen=True)
class PayoutMeta:
    reason: ClassVar[str] = 'payout'
    note: Optional[str] = None


TransactionMeta = Union[ChoreRewardMeta, RivalryBonusMeta, StreakBonusMeta,
                        StreakPenaltyMeta, ManualGiftMeta, PayoutMeta]

META_TYPES = {
    cls.reason: cls
    for cls in (ChoreRewardMeta, RivalryBonusMeta, StreakBonusMeta,
                StreakPenaltyMeta, ManualGiftMeta, PayoutMeta)
}


def dump_meta(meta: TransactionMeta) -> Dict[str, Any]:
    """Serialize a metadata payload to the JSON stored on the transaction."""
    data = asdict(meta)
    data['reason'] = meta.reason
    return data


def load_meta(data: Dict[str, Any]) -> TransactionMeta:
    """
    Rebuild the typed payload from stored JSON.

    Raises:
        ValueError: Unknown reason or missing fields
    """
    reason = data.get('reason')
    cls = META_TYPES.get(reason)
    if cls is None:
        raise ValueError(f"Unknown transaction reason: {reason}")

    names = {f.name for f in fields(cls)}
    try:
        return cls(**{k: v for k, v in data.items() if k in names})
    except TypeError as e:
        raise ValueError(f"Invalid metadata for {reason}: {e}") from e


# Request validation

def _positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def validate_bid_payload(data: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate a placeBid request body.

    Returns:
        tuple: (is_valid: bool, error_message: str if invalid)
    """
    if not data:
        return False, "Request body is required"

    if 'assignment_id' not in data or 'amount_pence' not in data:
        return False, "Missing required fields: assignment_id, amount_pence"

    if not _positive_int(data['assignment_id']):
        return False, "assignment_id must be a positive integer"

    amount = data['amount_pence']
    if not isinstance(amount, int) or isinstance(amount, bool):
        return False, "amount_pence must be an integer"

    return True, None


def validate_completion_payload(data: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """Validate a submitCompletion request body."""
    if not data or 'assignment_id' not in data:
        return False, "Missing required field: assignment_id"

    if not _positive_int(data['assignment_id']):
        return False, "assignment_id must be a positive integer"

    note = data.get('note')
    if note is not None and not isinstance(note, str):
        return False, "note must be a string"

    return True, None


def validate_wallet_adjustment(data: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """Validate a manual credit/debit request body."""
    if not data:
        return False, "Request body is required"

    pence = data.get('amount_pence', 0)
    stars = data.get('stars', 0)

    for name, value in (('amount_pence', pence), ('stars', stars)):
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            return False, f"{name} must be a non-negative integer"

    if pence == 0 and stars == 0:
        return False, "Amount cannot be zero"

    note = data.get('note')
    if note is not None and not isinstance(note, str):
        return False, "note must be a string"

    return True, None
