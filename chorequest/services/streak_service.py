"""Streak tracking per child and chore.

A streak counts consecutive periods with a submitted completion. Submission,
not approval, is the qualifying event so a slow guardian never costs a child
their streak. Milestone bonuses are paid later, at approval time.
"""

import logging
from datetime import date
from typing import List, Optional

from chorequest.models import db, Streak
from chorequest.utils.periods import previous_period

logger = logging.getLogger(__name__)


class StreakService:
    """Service for streak state transitions."""

    @staticmethod
    def get_streak(family_id: int, child_id: int, chore_id: int) -> Optional[Streak]:
        return Streak.query.filter_by(
            family_id=family_id,
            child_id=child_id,
            chore_id=chore_id
        ).first()

    @staticmethod
    def list_for_child(family_id: int, child_id: int) -> List[Streak]:
        return Streak.query.filter_by(family_id=family_id, child_id=child_id).order_by(Streak.chore_id).all()

    @staticmethod
    def record_completion(family_id: int, child_id: int, chore_id: int,
                          frequency: str, period: date) -> Streak:
        """
        Count a submitted completion for the period.

        Consecutive when the last counted period is the one immediately
        before; otherwise the streak restarts at 1. A second submission in an
        already counted period changes nothing.

        Args:
            family_id: Family of the child
            child_id: Child who submitted
            chore_id: Chore submitted for
            frequency: Chore frequency (decides what "previous period" means)
            period: Key of the period the submission falls in

        Returns:
            The created or updated Streak
        """
        streak = StreakService.get_streak(family_id, child_id, chore_id)

        if streak is None:
            streak = Streak(
                family_id=family_id,
                child_id=child_id,
                chore_id=chore_id,
                current=1,
                best=1,
                last_period=period,
                disrupted=False,
                last_milestone=0
            )
            db.session.add(streak)
            logger.debug(f"Started streak for child {child_id} on chore {chore_id}")
            return streak

        if streak.last_period is not None and streak.last_period >= period:
            # Already counted (or protected) for this period
            return streak

        if streak.last_period is not None and streak.last_period == previous_period(frequency, period):
            streak.current += 1
        else:
            streak.current = 1
            streak.last_milestone = 0

        streak.best = max(streak.best, streak.current)
        streak.last_period = period
        streak.disrupted = False

        logger.debug(f"Streak for child {child_id} on chore {chore_id} now {streak.current}")
        return streak

    @staticmethod
    def protect(family_id: int, child_id: int, chore_id: int, period: date) -> bool:
        """
        Excuse a missed period without counting it.

        Moves last_period forward to the missed period so the next genuine
        completion still reads as consecutive. No-op if there is no streak yet
        or the streak has already moved past this period.

        Returns:
            bool: True if the streak was changed
        """
        streak = StreakService.get_streak(family_id, child_id, chore_id)

        if streak is None:
            return False

        if streak.last_period is not None and streak.last_period >= period:
            return False

        streak.last_period = period

        logger.info(f"Streak protected for child {child_id} on chore {chore_id} - continues at {streak.current}")
        return True

    @staticmethod
    def break_streak(family_id: int, child_id: int, chore_id: int, missed_period: date) -> bool:
        """
        Reset the streak after a miss beyond the protection window.

        Skipped when a later period has already been counted, so re-running a
        cycle after the child has started again does not wipe the new run.

        Returns:
            bool: True if the streak was changed
        """
        streak = StreakService.get_streak(family_id, child_id, chore_id)

        if streak is None:
            return False

        if streak.last_period is not None and streak.last_period >= missed_period:
            return False

        if streak.current == 0 and streak.disrupted:
            return False

        streak.current = 0
        streak.disrupted = True
        streak.last_milestone = 0

        logger.info(f"Streak broken for child {child_id} on chore {chore_id} (missed {missed_period})")
        return True

    @staticmethod
    def unpaid_milestones(streak: Streak, milestones: dict) -> List[int]:
        """Milestones reached in the current run that have not been paid yet."""
        return sorted(
            m for m in milestones
            if streak.last_milestone < m <= streak.current
        )
