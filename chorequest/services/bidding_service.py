"""Rivalry bidding service.

Competitive assignments are open to every sibling in the family. Children
underbid each other for the right to do the chore; the lowest active bid
(earliest wins a tie) is the champion, and only the champion may submit a
completion. Bids are never withdrawn by later bids, they stay as history.

State machine: open → contested → claimed → approved/rejected
"""

import logging
from datetime import datetime
from typing import List, Optional

from chorequest.models import db, Assignment, Bid, Child, Chore
from chorequest.services.errors import (
    BiddingClosedError,
    ForbiddenError,
    InvalidBidAmountError,
    NotFoundError,
)
from chorequest.utils.periods import period_start
from chorequest.utils.timezone import to_local_date, utc_now
from chorequest.utils.webhooks import fire_webhook

logger = logging.getLogger(__name__)

OPEN_STATES = ('open', 'contested')


class BiddingService:
    """Service for competitive assignments and their bids."""

    @staticmethod
    def get_assignment(assignment_id: int, family_id: int) -> Assignment:
        """Get an assignment in the family or raise NotFoundError."""
        assignment = Assignment.query.filter_by(id=assignment_id, family_id=family_id).first()
        if not assignment:
            raise NotFoundError(f'Assignment {assignment_id} not found')
        return assignment

    @staticmethod
    def open_contest(chore_id: int, family_id: int, now: Optional[datetime] = None) -> Assignment:
        """Open a competitive assignment for a chore (guardian action).

        Raises:
            NotFoundError: Chore not found or inactive
        """
        chore = Chore.query.filter_by(id=chore_id, family_id=family_id).first()
        if not chore or not chore.active:
            raise NotFoundError(f'Chore {chore_id} not found')

        now = now or utc_now()
        assignment = Assignment(
            chore_id=chore.id,
            family_id=family_id,
            child_id=None,
            period_start=period_start(chore.frequency, to_local_date(now)),
            competitive=True,
            created_at=now
        )
        db.session.add(assignment)
        db.session.commit()

        logger.info(f"Rivalry contest opened for chore '{chore.title}' (assignment {assignment.id})")
        return assignment

    @staticmethod
    def get_champion(assignment: Assignment) -> Optional[Bid]:
        """The active bid with the lowest amount; ties go to the earliest bid."""
        return Bid.query.filter_by(
            assignment_id=assignment.id,
            active=True
        ).order_by(Bid.amount_pence.asc(), Bid.created_at.asc(), Bid.id.asc()).first()

    @staticmethod
    def list_bids(assignment: Assignment) -> List[Bid]:
        """Bid history, lowest offer first."""
        return Bid.query.filter_by(assignment_id=assignment.id).order_by(
            Bid.amount_pence.asc(), Bid.created_at.asc(), Bid.id.asc()
        ).all()

    @staticmethod
    def place_bid(assignment_id: int, family_id: int, child_id: int, amount_pence: int,
                  now: Optional[datetime] = None) -> Bid:
        """Place a bid on a competitive assignment.

        With no champion the amount must be in (0, base reward]. Otherwise it
        must be strictly lower than the champion's amount.

        Concurrent bids validated against the same champion are both kept;
        whichever is lowest becomes champion and the other is plain history.

        Args:
            assignment_id: Competitive assignment to bid on
            family_id: Caller's family
            child_id: Bidding child
            amount_pence: Offered amount

        Returns:
            The new Bid

        Raises:
            NotFoundError: Assignment or child not found
            ForbiddenError: Child is paused
            BiddingClosedError: Not competitive, or already claimed/decided
            InvalidBidAmountError: Amount out of range or not below the champion
        """
        assignment = BiddingService.get_assignment(assignment_id, family_id)

        child = Child.query.filter_by(id=child_id, family_id=family_id).first()
        if not child:
            raise NotFoundError(f'Child {child_id} not found')
        if child.paused:
            raise ForbiddenError('Paused children cannot bid')

        if not assignment.competitive:
            raise BiddingClosedError('Bidding is not enabled for this assignment')

        state = assignment.status
        if state not in OPEN_STATES:
            raise BiddingClosedError(f'Bidding is closed (assignment is {state})')

        base_reward = assignment.chore.base_reward_pence
        champion = BiddingService.get_champion(assignment)

        if amount_pence <= 0:
            raise InvalidBidAmountError('Bid must be more than 0p')

        if champion is None:
            if amount_pence > base_reward:
                raise InvalidBidAmountError(f'Bid cannot exceed the base reward of {base_reward}p')
        elif amount_pence >= champion.amount_pence:
            raise InvalidBidAmountError(
                f'Bid must be lower than the current champion bid of {champion.amount_pence}p'
            )

        stolen_from = champion.child_id if champion and champion.child_id != child_id else None

        bid = Bid(
            assignment_id=assignment.id,
            family_id=family_id,
            child_id=child_id,
            amount_pence=amount_pence,
            active=True,
            target_child_id=stolen_from,
            created_at=now or utc_now()
        )
        db.session.add(bid)
        db.session.commit()

        new_champion = BiddingService.get_champion(assignment)
        logger.info(
            f"Bid {bid.id}: child {child_id} offered {amount_pence}p on assignment {assignment.id}"
            f" (champion now {new_champion.child_id if new_champion else None})"
        )

        try:
            fire_webhook('bid_placed', bid,
                         champion_child_id=new_champion.child_id if new_champion else None,
                         stolen_from_child_id=stolen_from)
        except Exception as e:
            logger.error(f"Failed to fire webhook: {e}")

        return bid

    @staticmethod
    def rivalry_feed(family_id: int, limit: int = 20) -> List[Bid]:
        """Most recent bids across the family's competitive assignments, newest first."""
        return Bid.query.join(Assignment, Bid.assignment_id == Assignment.id).filter(
            Bid.family_id == family_id,
            Assignment.competitive.is_(True)
        ).order_by(Bid.created_at.desc(), Bid.id.desc()).limit(limit).all()
