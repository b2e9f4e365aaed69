"""Completion workflow service.

This module contains the business logic for completions:
- Submitting a completion (child action, advances the streak)
- Approving a completion (guardian action, the only path that pays rewards)
- Rejecting a completion (no ledger effect)

Routes should delegate to this service and handle HTTP responses.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from flask import current_app
from sqlalchemy.orm.exc import StaleDataError

from chorequest.models import db, Assignment, Child, Completion
from chorequest.schemas import ChoreRewardMeta, RivalryBonusMeta, StreakBonusMeta
from chorequest.services.bidding_service import BiddingService
from chorequest.services.errors import (
    AlreadyProcessedError,
    BiddingClosedError,
    ConcurrencyConflictError,
    ForbiddenError,
    NotChampionError,
    NotFoundError,
)
from chorequest.services.ledger_service import LedgerService
from chorequest.services.streak_service import StreakService
from chorequest.utils.periods import ONCE, period_start
from chorequest.utils.timezone import to_local_date, utc_now
from chorequest.utils.webhooks import fire_webhook

logger = logging.getLogger(__name__)


@dataclass
class ApprovalResult:
    """What an approval paid out. Bonus fields are None when not earned."""
    completion: Completion
    credited_pence: int
    credited_stars: int
    streak_bonus: Optional[int] = None
    rivalry_bonus: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            'completion': self.completion.to_dict(),
            'credited_pence': self.credited_pence,
            'credited_stars': self.credited_stars,
            'streak_bonus': self.streak_bonus,
            'rivalry_bonus': self.rivalry_bonus,
        }


def reward_key(completion_id: int) -> str:
    return f'completion:{completion_id}'


class CompletionService:
    """Service for submitting and deciding completions."""

    @staticmethod
    def get_completion(completion_id: int, family_id: int) -> Completion:
        """Get a completion in the family or raise NotFoundError."""
        completion = Completion.query.filter_by(id=completion_id, family_id=family_id).first()
        if not completion:
            raise NotFoundError(f'Completion {completion_id} not found')
        return completion

    @staticmethod
    def list_completions(family_id: int, status: Optional[str] = None,
                         child_id: Optional[int] = None) -> List[Completion]:
        query = Completion.query.filter_by(family_id=family_id)
        if status:
            query = query.filter_by(status=status)
        if child_id:
            query = query.filter_by(child_id=child_id)
        return query.order_by(Completion.submitted_at.desc(), Completion.id.desc()).all()

    @staticmethod
    def submit(assignment_id: int, family_id: int, child_id: int, note: Optional[str] = None,
               now: Optional[datetime] = None) -> Completion:
        """Submit a completion for an assignment.

        The submission, not the approval, counts towards the child's streak.

        Args:
            assignment_id: Assignment being completed
            family_id: Caller's family
            child_id: Submitting child
            note: Optional free text for the guardian
            now: Submission time (naive UTC), defaults to now

        Returns:
            The pending Completion

        Raises:
            NotFoundError: Assignment or child not found
            ForbiddenError: Assignment belongs to another child
            AlreadyProcessedError: A pending or approved completion already exists
            BiddingClosedError: Competitive assignment already rejected
            NotChampionError: Competitive assignment and the child is not the champion
        """
        assignment = Assignment.query.filter_by(id=assignment_id, family_id=family_id).first()
        if not assignment:
            raise NotFoundError(f'Assignment {assignment_id} not found')

        child = Child.query.filter_by(id=child_id, family_id=family_id).first()
        if not child:
            raise NotFoundError(f'Child {child_id} not found')

        logger.info(f"Submit request: assignment={assignment_id}, child={child_id}, status={assignment.status}")

        if not assignment.competitive and assignment.child_id != child_id:
            raise ForbiddenError('This chore is assigned to another child')

        if assignment.active_completion() is not None:
            raise AlreadyProcessedError(
                f'Assignment {assignment_id} already has a {assignment.active_completion().status} completion'
            )

        bid = None
        if assignment.competitive:
            if assignment.status == 'rejected':
                raise BiddingClosedError('This contest has already been decided')
            bid = BiddingService.get_champion(assignment)
            if bid is None or bid.child_id != child_id:
                raise NotChampionError('Only the current champion can complete this chore')

        now = now or utc_now()
        submitted_on = to_local_date(now)

        completion = Completion(
            assignment_id=assignment.id,
            family_id=family_id,
            child_id=child_id,
            status='pending',
            submitted_at=now,
            submitted_on=submitted_on,
            note=note,
            bid_id=bid.id if bid else None,
            bid_amount_pence=bid.amount_pence if bid else None
        )
        db.session.add(completion)

        chore = assignment.chore
        if chore.frequency != ONCE:
            StreakService.record_completion(
                family_id, child_id, chore.id, chore.frequency,
                period_start(chore.frequency, submitted_on)
            )

        db.session.commit()
        logger.info(f"Completion {completion.id} submitted for assignment {assignment.id}")

        try:
            fire_webhook('completion_submitted', completion)
        except Exception as e:
            logger.error(f"Failed to fire webhook: {e}")

        return completion

    @staticmethod
    def approve(completion_id: int, family_id: int, now: Optional[datetime] = None) -> ApprovalResult:
        """Approve a pending completion and pay the rewards.

        A champion's completion earns the bid amount instead of the base
        reward, plus the rivalry bonus stars. Streak milestone bonuses reached
        since the last payout are added when the family has them enabled.
        The status change and every ledger entry commit together.

        Raises:
            NotFoundError: Completion not found
            AlreadyProcessedError: Completion is not pending
            ConcurrencyConflictError: Completion or wallet changed concurrently
            WalletFrozenError: The child's wallet is frozen
        """
        completion = CompletionService.get_completion(completion_id, family_id)

        if completion.status != 'pending':
            raise AlreadyProcessedError(
                f'Cannot approve completion with status "{completion.status}". '
                'Only "pending" completions can be approved.'
            )

        assignment = completion.assignment
        chore = assignment.chore
        family = chore.family

        credited_pence = 0
        credited_stars = 0
        rivalry_bonus = None
        streak_bonus = None

        if completion.bid_id is not None:
            rivalry_bonus = current_app.config.get('RIVALRY_BONUS_STARS', 1)
            meta = RivalryBonusMeta(
                completion_id=completion.id,
                assignment_id=assignment.id,
                chore_id=chore.id,
                bid_id=completion.bid_id,
                bid_amount_pence=completion.bid_amount_pence,
                base_reward_pence=chore.base_reward_pence,
                bonus_stars=rivalry_bonus
            )
            pence = completion.bid_amount_pence
            stars = (chore.reward_stars or 0) + rivalry_bonus
        else:
            meta = ChoreRewardMeta(
                completion_id=completion.id,
                assignment_id=assignment.id,
                chore_id=chore.id
            )
            pence = chore.base_reward_pence or 0
            stars = chore.reward_stars or 0

        if pence > 0 or stars > 0:
            LedgerService.credit(family_id, completion.child_id, pence, stars, meta,
                                 source='system', idempotency_key=reward_key(completion.id))
            credited_pence += pence
            credited_stars += stars

        if family.streak_bonus_enabled:
            bonus = CompletionService._pay_streak_milestones(completion, chore.id)
            if bonus:
                streak_bonus = bonus
                credited_stars += bonus

        completion.status = 'approved'
        completion.decided_at = now or utc_now()
        completion.credited_pence = credited_pence
        completion.credited_stars = credited_stars

        try:
            db.session.commit()
        except StaleDataError as e:
            db.session.rollback()
            raise ConcurrencyConflictError('Completion was modified concurrently, retry the operation') from e

        logger.info(
            f"Completion {completion.id} approved: {credited_pence}p {credited_stars} stars "
            f"(rivalry={rivalry_bonus}, streak={streak_bonus})"
        )

        result = ApprovalResult(completion, credited_pence, credited_stars, streak_bonus, rivalry_bonus)
        try:
            fire_webhook('completion_approved', completion, **{
                k: v for k, v in result.to_dict().items() if k != 'completion'
            })
        except Exception as e:
            logger.error(f"Failed to fire webhook: {e}")

        return result

    @staticmethod
    def _pay_streak_milestones(completion: Completion, chore_id: int) -> int:
        """Credit each milestone reached and not yet paid in the current run."""
        streak = StreakService.get_streak(completion.family_id, completion.child_id, chore_id)
        if streak is None:
            return 0

        milestones = current_app.config.get('STREAK_MILESTONES', {})
        total = 0
        for milestone in StreakService.unpaid_milestones(streak, milestones):
            stars = milestones[milestone]
            meta = StreakBonusMeta(
                completion_id=completion.id,
                chore_id=chore_id,
                streak_length=streak.current,
                milestone=milestone
            )
            LedgerService.credit(completion.family_id, completion.child_id, 0, stars, meta,
                                 idempotency_key=f'streak_bonus:{completion.child_id}:{chore_id}:'
                                                 f'{streak.last_period.isoformat()}:{milestone}')
            streak.last_milestone = milestone
            total += stars
            logger.info(f"Streak milestone {milestone} reached by child {completion.child_id}: +{stars} stars")

        return total

    @staticmethod
    def reject(completion_id: int, family_id: int, reason: Optional[str] = None,
               now: Optional[datetime] = None) -> Completion:
        """Reject a pending completion. Nothing is written to the ledger.

        Raises:
            NotFoundError: Completion not found
            AlreadyProcessedError: Completion is not pending
        """
        completion = CompletionService.get_completion(completion_id, family_id)

        if completion.status != 'pending':
            raise AlreadyProcessedError(
                f'Cannot reject completion with status "{completion.status}". '
                'Only "pending" completions can be rejected.'
            )

        completion.status = 'rejected'
        completion.rejection_reason = reason
        completion.decided_at = now or utc_now()

        try:
            db.session.commit()
        except StaleDataError as e:
            db.session.rollback()
            raise ConcurrencyConflictError('Completion was modified concurrently, retry the operation') from e

        logger.info(f"Completion {completion.id} rejected")

        try:
            fire_webhook('completion_rejected', completion)
        except Exception as e:
            logger.error(f"Failed to fire webhook: {e}")

        return completion
