"""Assignment generation cycle.

Runs once per local calendar day. For every non-paused child and every active
chore due on that day it:

1. Skips the chore if an unapproved assignment already exists for the
   current period, so re-running a cycle never creates duplicates.
2. Otherwise evaluates the previous period: a period with a submission is
   fine, a period covered by holiday mode protects the streak, and any other
   miss goes to the penalty policy.
3. Creates the assignment for the current period.

Families are processed one at a time under a per-family advisory lock and in
their own database transaction, so one failing family never affects another.
A dry run executes exactly the same code and rolls the transaction back.
"""

import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta
from typing import List, Optional

from flask import current_app
from sqlalchemy import or_, update

from chorequest.models import db, Assignment, Child, Chore, Completion, Family
from chorequest.services.errors import ConcurrencyConflictError, NotFoundError
from chorequest.services.penalty_policy import apply_penalty, evaluate_penalty
from chorequest.services.streak_service import StreakService
from chorequest.utils.exemptions import is_exempt, is_exempt_during
from chorequest.utils.periods import (
    ONCE,
    WEEKLY,
    days_in_period,
    is_weekly_trigger,
    period_end,
    period_start,
    previous_period,
)
from chorequest.utils.timezone import local_today, utc_now
from chorequest.utils.webhooks import fire_webhook

logger = logging.getLogger(__name__)

SUBMITTED_STATES = ('pending', 'approved')


@dataclass
class GenerationReport:
    """Summary of one generation cycle.

    bonuses_awarded is always 0 here: milestone bonuses are paid when a
    completion is approved, not by the cycle.
    """
    run_date: date
    dry_run: bool = False
    families_processed: int = 0
    chores_generated: int = 0
    streaks_updated: int = 0
    penalties_applied: int = 0
    bonuses_awarded: int = 0
    paused_children_skipped: int = 0
    errors: List[str] = field(default_factory=list)

    def merge(self, other: 'GenerationReport') -> None:
        self.families_processed += other.families_processed
        self.chores_generated += other.chores_generated
        self.streaks_updated += other.streaks_updated
        self.penalties_applied += other.penalties_applied
        self.bonuses_awarded += other.bonuses_awarded
        self.paused_children_skipped += other.paused_children_skipped
        self.errors.extend(other.errors)

    def to_dict(self) -> dict:
        data = asdict(self)
        data['run_date'] = self.run_date.isoformat()
        return data


# Advisory lock

def acquire_family_lock(family_id: int, token: str, now: Optional[datetime] = None) -> bool:
    """
    Take the family's generation lock.

    The lock is a conditional UPDATE on the family row, so only one writer can
    win it. A lock older than GENERATION_LOCK_TIMEOUT_MINUTES is treated as
    abandoned and may be taken over.

    Returns:
        bool: True if this caller now holds the lock
    """
    now = now or utc_now()
    timeout = current_app.config.get('GENERATION_LOCK_TIMEOUT_MINUTES', 30)
    stale_before = now - timedelta(minutes=timeout)

    result = db.session.execute(
        update(Family)
        .where(Family.id == family_id)
        .where(or_(Family.generation_lock.is_(None), Family.generation_locked_at < stale_before))
        .values(generation_lock=token, generation_locked_at=now)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return result.rowcount == 1


def release_family_lock(family_id: int, token: str) -> None:
    """Release the lock if this caller still holds it."""
    db.session.execute(
        update(Family)
        .where(Family.id == family_id)
        .where(Family.generation_lock == token)
        .values(generation_lock=None, generation_locked_at=None)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()


# Period evaluation helpers

def submitted_during(child_id: int, chore_id: int, start: date, end: date) -> bool:
    """True if the child submitted the chore on a day in [start, end)."""
    return db.session.query(Completion.id).join(
        Assignment, Completion.assignment_id == Assignment.id
    ).filter(
        Assignment.chore_id == chore_id,
        Completion.child_id == child_id,
        Completion.status.in_(SUBMITTED_STATES),
        Completion.submitted_on >= start,
        Completion.submitted_on < end
    ).first() is not None


def count_consecutive_daily_misses(family: Family, child: Child, chore: Chore,
                                   missed_day: date, lookback_days: int) -> int:
    """
    Count uninterrupted missed days ending at missed_day.

    Walks backwards one day at a time and stops at a day with a submission,
    a day the child was exempt, a day with no assignment, or the end of the
    lookback window.
    """
    window_start = missed_day - timedelta(days=max(lookback_days, 1) - 1)

    assigned_days = {
        row.period_start for row in db.session.query(Assignment.period_start).filter(
            Assignment.chore_id == chore.id,
            Assignment.child_id == child.id,
            Assignment.competitive.is_(False),
            Assignment.period_start >= window_start,
            Assignment.period_start <= missed_day
        )
    }
    submitted_days = {
        row.submitted_on for row in db.session.query(Completion.submitted_on).join(
            Assignment, Completion.assignment_id == Assignment.id
        ).filter(
            Assignment.chore_id == chore.id,
            Completion.child_id == child.id,
            Completion.status.in_(SUBMITTED_STATES),
            Completion.submitted_on >= window_start,
            Completion.submitted_on <= missed_day
        )
    }

    misses = 0
    day = missed_day
    while day >= window_start:
        if day in submitted_days or day not in assigned_days or is_exempt(family, child, day):
            break
        misses += 1
        day -= timedelta(days=1)
    return misses


def _find_assignment(chore_id: int, child_id: int, start: date) -> List[Assignment]:
    return Assignment.query.filter_by(
        chore_id=chore_id,
        child_id=child_id,
        period_start=start,
        competitive=False
    ).order_by(Assignment.id).all()


def _evaluate_previous_period(family: Family, child: Child, chore: Chore, current: date,
                              report: GenerationReport, events: list) -> None:
    prev = previous_period(chore.frequency, current)

    if not _find_assignment(chore.id, child.id, prev):
        # Chore is new to this child: nothing to evaluate
        return

    if submitted_during(child.id, chore.id, prev, period_end(chore.frequency, prev)):
        return

    if is_exempt_during(family, child, days_in_period(chore.frequency, prev)):
        if StreakService.protect(family.id, child.id, chore.id, prev):
            report.streaks_updated += 1
        logger.debug(f"{child.nickname} missed '{chore.title}' ({prev}) on holiday - streak protected")
        return

    if chore.frequency == WEEKLY:
        misses = 1
    else:
        misses = count_consecutive_daily_misses(
            family, child, chore, prev, current_app.config.get('MISS_LOOKBACK_DAYS', 30)
        )

    decision = evaluate_penalty(family, misses)

    if decision.protected:
        if StreakService.protect(family.id, child.id, chore.id, prev):
            report.streaks_updated += 1
        logger.debug(
            f"{child.nickname} missed '{chore.title}' ({prev}) within protection window "
            f"({misses} of {family.streak_protection_days}) - streak protected"
        )
        return

    if StreakService.break_streak(family.id, child.id, chore.id, prev):
        report.streaks_updated += 1

    if not family.penalty_enabled:
        logger.debug(f"Penalties disabled for family {family.id} - skipping penalty")
        return

    txn = apply_penalty(family, child, chore, prev, decision)
    if txn is not None:
        report.penalties_applied += 1
        events.append(('streak_penalty_applied', txn, {
            'child_id': child.id,
            'chore_id': chore.id,
            'missed_period': prev.isoformat(),
            'consecutive_misses': decision.consecutive_misses,
        }))


def _create_assignment(family: Family, child: Child, chore: Chore, start: date,
                       report: GenerationReport) -> Assignment:
    assignment = Assignment(
        chore_id=chore.id,
        family_id=family.id,
        child_id=child.id,
        period_start=start,
        competitive=False,
        created_at=utc_now()
    )
    db.session.add(assignment)
    report.chores_generated += 1
    logger.debug(f"Generated '{chore.title}' for {child.nickname} ({start})")
    return assignment


def _process_chore(family: Family, child: Child, chore: Chore, today: date,
                   report: GenerationReport, events: list) -> None:
    if chore.frequency == ONCE:
        existing = Assignment.query.filter_by(
            chore_id=chore.id, child_id=child.id, competitive=False
        ).first()
        if existing is None:
            _create_assignment(family, child, chore, today, report)
        return

    current = period_start(chore.frequency, today)
    existing = _find_assignment(chore.id, child.id, current)

    if any(not a.is_approved() for a in existing):
        logger.debug(f"'{chore.title}' already open for {child.nickname} ({current})")
        return

    _evaluate_previous_period(family, child, chore, current, report, events)
    _create_assignment(family, child, chore, current, report)


def _process_family(family: Family, today: date, report: GenerationReport, events: list) -> None:
    chores = [c for c in family.chores if c.active]
    weekly_trigger = is_weekly_trigger(today)

    for child in family.children:
        if child.paused:
            report.paused_children_skipped += 1
            logger.debug(f"Skipping paused child {child.nickname}")
            continue

        for chore in chores:
            if chore.frequency == WEEKLY and not weekly_trigger:
                continue
            _process_chore(family, child, chore, today, report, events)

    # Make flush errors surface inside the family's error boundary
    db.session.flush()


def run_generation_cycle(family_id: Optional[int] = None, dry_run: bool = False,
                         today: Optional[date] = None) -> GenerationReport:
    """
    Run the generation cycle for one family or for all of them.

    Args:
        family_id: Only process this family (manual reprocessing)
        dry_run: Simulate everything, then roll back; no notifications
        today: Local date to run for, defaults to today

    Returns:
        GenerationReport with counts and per-family errors

    Raises:
        NotFoundError: family_id given but no such family
    """
    today = today or local_today()
    report = GenerationReport(run_date=today, dry_run=dry_run)

    if family_id is not None:
        if db.session.get(Family, family_id) is None:
            raise NotFoundError(f'Family {family_id} not found')
        family_ids = [family_id]
    else:
        family_ids = [row.id for row in db.session.query(Family.id).order_by(Family.id)]

    logger.info(f"Starting generation cycle for {today} ({len(family_ids)} families, dry_run={dry_run})")

    for fid in family_ids:
        token = uuid.uuid4().hex
        if not acquire_family_lock(fid, token):
            error = ConcurrencyConflictError(f'Generation already in progress for family {fid}')
            report.errors.append(f'Failed to process family {fid}: {error.message}')
            logger.warning(error.message)
            continue

        partial = GenerationReport(run_date=today, dry_run=dry_run)
        events = []
        try:
            family = db.session.get(Family, fid)
            _process_family(family, today, partial, events)

            if dry_run:
                db.session.rollback()
            else:
                db.session.commit()

            partial.families_processed = 1
            report.merge(partial)

        except Exception as e:
            db.session.rollback()
            logger.error(f"Error processing family {fid}: {e}", exc_info=True)
            report.errors.append(f'Failed to process family {fid}: {e}')
            continue

        finally:
            release_family_lock(fid, token)

        if not dry_run:
            for event_name, obj, extra in events:
                try:
                    fire_webhook(event_name, obj, **extra)
                except Exception as e:
                    logger.error(f"Failed to fire webhook: {e}")

    logger.info(
        f"Generation cycle complete: {report.families_processed} families, "
        f"{report.chores_generated} chores generated, {report.streaks_updated} streaks updated, "
        f"{report.penalties_applied} penalties applied, {len(report.errors)} errors"
    )

    if not dry_run:
        try:
            fire_webhook('generation_cycle_complete', report.to_dict())
        except Exception as e:
            logger.error(f"Failed to fire webhook: {e}")

    return report
