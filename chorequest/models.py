"""
SQLAlchemy models for ChoreQuest.

This module defines the database models for the chore lifecycle engine.
Uses Flask-SQLAlchemy for ORM integration with Flask.

Wallet balances are a cache over the append-only transactions table; they are
only ever changed by services.ledger_service.
"""

from datetime import datetime
from typing import Optional, Tuple
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import CheckConstraint, UniqueConstraint, Index
from sqlalchemy.orm import relationship

db = SQLAlchemy()


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


class Family(db.Model):
    """Family with the guardian-controlled settings consumed by the engine."""

    __tablename__ = 'families'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    name = db.Column(db.String(255), nullable=False)

    # Holiday window
    holiday_mode = db.Column(db.Boolean, default=False, nullable=False)
    holiday_start_date = db.Column(db.Date)
    holiday_end_date = db.Column(db.Date)

    # Streak and penalty settings
    streak_protection_days = db.Column(db.Integer, default=0, nullable=False)
    penalty_enabled = db.Column(db.Boolean, default=False, nullable=False)
    first_miss_pence = db.Column(db.Integer, default=0, nullable=False)
    first_miss_stars = db.Column(db.Integer, default=0, nullable=False)
    second_miss_pence = db.Column(db.Integer, default=0, nullable=False)
    second_miss_stars = db.Column(db.Integer, default=0, nullable=False)
    third_miss_pence = db.Column(db.Integer, default=0, nullable=False)
    third_miss_stars = db.Column(db.Integer, default=0, nullable=False)
    penalty_mode = db.Column(db.String(10), default='both', nullable=False)
    min_balance_pence = db.Column(db.Integer, default=0, nullable=False)
    min_balance_stars = db.Column(db.Integer, default=0, nullable=False)
    streak_bonus_enabled = db.Column(db.Boolean, default=True, nullable=False)

    # Advisory lock for the generation cycle
    generation_lock = db.Column(db.String(64))
    generation_locked_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    children = relationship('Child', back_populates='family', order_by='Child.id')
    chores = relationship('Chore', back_populates='family', order_by='Chore.id')

    __table_args__ = (
        CheckConstraint("penalty_mode IN ('money', 'stars', 'both')", name='check_penalty_mode'),
    )

    def __repr__(self):
        return f'<Family {self.name}>'

    def miss_tier_amounts(self, tier: int) -> Tuple[int, int]:
        """Return the configured (pence, stars) for the 1st, 2nd or 3rd+ miss."""
        if tier == 1:
            return self.first_miss_pence or 0, self.first_miss_stars or 0
        if tier == 2:
            return self.second_miss_pence or 0, self.second_miss_stars or 0
        return self.third_miss_pence or 0, self.third_miss_stars or 0

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'holiday_mode': self.holiday_mode,
            'holiday_start_date': _iso(self.holiday_start_date),
            'holiday_end_date': _iso(self.holiday_end_date),
            'streak_protection_days': self.streak_protection_days,
            'penalty_enabled': self.penalty_enabled,
            'penalty_mode': self.penalty_mode,
            'min_balance_pence': self.min_balance_pence,
            'min_balance_stars': self.min_balance_stars,
            'streak_bonus_enabled': self.streak_bonus_enabled,
        }


class Child(db.Model):
    """A child profile belonging to a family."""

    __tablename__ = 'children'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    family_id = db.Column(db.Integer, db.ForeignKey('families.id'), nullable=False, index=True)
    nickname = db.Column(db.String(255), nullable=False)
    paused = db.Column(db.Boolean, default=False, nullable=False)

    holiday_mode = db.Column(db.Boolean, default=False, nullable=False)
    holiday_start_date = db.Column(db.Date)
    holiday_end_date = db.Column(db.Date)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    family = relationship('Family', back_populates='children')

    def __repr__(self):
        return f'<Child {self.nickname}>'

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'family_id': self.family_id,
            'nickname': self.nickname,
            'paused': self.paused,
            'holiday_mode': self.holiday_mode,
            'holiday_start_date': _iso(self.holiday_start_date),
            'holiday_end_date': _iso(self.holiday_end_date),
        }


class Chore(db.Model):
    """Chore template; assignments are generated from it per child and period."""

    __tablename__ = 'chores'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    family_id = db.Column(db.Integer, db.ForeignKey('families.id'), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    frequency = db.Column(db.String(10), nullable=False)
    base_reward_pence = db.Column(db.Integer, default=0, nullable=False)
    reward_stars = db.Column(db.Integer, default=0, nullable=False)
    active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    family = relationship('Family', back_populates='chores')
    assignments = relationship('Assignment', back_populates='chore')

    __table_args__ = (
        CheckConstraint("frequency IN ('daily', 'weekly', 'once')", name='check_chore_frequency'),
        CheckConstraint("base_reward_pence >= 0", name='check_chore_reward'),
    )

    def __repr__(self):
        return f'<Chore {self.title} ({self.frequency})>'

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'family_id': self.family_id,
            'title': self.title,
            'frequency': self.frequency,
            'base_reward_pence': self.base_reward_pence,
            'reward_stars': self.reward_stars,
            'active': self.active,
        }


class Assignment(db.Model):
    """One expected completion of a chore in a period.

    child_id is NULL for competitive (rivalry) assignments, which any sibling
    may bid on.
    """

    __tablename__ = 'assignments'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    chore_id = db.Column(db.Integer, db.ForeignKey('chores.id'), nullable=False)
    family_id = db.Column(db.Integer, db.ForeignKey('families.id'), nullable=False)
    child_id = db.Column(db.Integer, db.ForeignKey('children.id'), nullable=True)
    period_start = db.Column(db.Date, nullable=False)
    competitive = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    chore = relationship('Chore', back_populates='assignments')
    child = relationship('Child')
    completions = relationship('Completion', back_populates='assignment', order_by='Completion.id')
    bids = relationship('Bid', back_populates='assignment', order_by='Bid.id')

    __table_args__ = (
        Index('idx_assignments_chore_child_period', 'chore_id', 'child_id', 'period_start'),
        Index('idx_assignments_family', 'family_id'),
    )

    def __repr__(self):
        return f'<Assignment chore_id={self.chore_id} child_id={self.child_id} period={self.period_start}>'

    def is_approved(self) -> bool:
        return any(c.status == 'approved' for c in self.completions)

    def active_completion(self) -> Optional['Completion']:
        """The pending or approved completion, if any."""
        for completion in self.completions:
            if completion.status in ('pending', 'approved'):
                return completion
        return None

    @property
    def status(self) -> str:
        """Lifecycle state: open, contested, claimed, approved or rejected."""
        if self.is_approved():
            return 'approved'
        if self.active_completion() is not None:
            return 'claimed'
        if self.competitive and any(c.status == 'rejected' for c in self.completions):
            return 'rejected'
        if self.competitive and any(b.active for b in self.bids):
            return 'contested'
        return 'open'

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'chore_id': self.chore_id,
            'chore_title': self.chore.title if self.chore else None,
            'family_id': self.family_id,
            'child_id': self.child_id,
            'period_start': _iso(self.period_start),
            'competitive': self.competitive,
            'status': self.status,
            'created_at': _iso(self.created_at),
        }


class Completion(db.Model):
    """A child's submission for an assignment, decided once by a guardian."""

    __tablename__ = 'completions'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    assignment_id = db.Column(db.Integer, db.ForeignKey('assignments.id'), nullable=False)
    family_id = db.Column(db.Integer, db.ForeignKey('families.id'), nullable=False)
    child_id = db.Column(db.Integer, db.ForeignKey('children.id'), nullable=False)
    status = db.Column(db.String(20), default='pending', nullable=False)

    submitted_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    submitted_on = db.Column(db.Date, nullable=False)  # Local calendar date of submission
    note = db.Column(db.Text)

    # Winning bid this completion was submitted under
    bid_id = db.Column(db.Integer, db.ForeignKey('bids.id'))
    bid_amount_pence = db.Column(db.Integer)

    decided_at = db.Column(db.DateTime)
    rejection_reason = db.Column(db.Text)
    credited_pence = db.Column(db.Integer)
    credited_stars = db.Column(db.Integer)

    version_id = db.Column(db.Integer, nullable=False)

    assignment = relationship('Assignment', back_populates='completions')
    child = relationship('Child')
    bid = relationship('Bid')

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'approved', 'rejected')", name='check_completion_status'),
        Index('idx_completions_child_submitted', 'child_id', 'submitted_on'),
        Index('idx_completions_status', 'status'),
    )

    __mapper_args__ = {'version_id_col': version_id}

    def __repr__(self):
        return f'<Completion assignment_id={self.assignment_id} child_id={self.child_id} status={self.status}>'

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'completion_id': self.id,  # Alias for clarity in notifications
            'assignment_id': self.assignment_id,
            'chore_id': self.assignment.chore_id if self.assignment else None,
            'family_id': self.family_id,
            'child_id': self.child_id,
            'status': self.status,
            'submitted_at': _iso(self.submitted_at),
            'submitted_on': _iso(self.submitted_on),
            'note': self.note,
            'bid_id': self.bid_id,
            'bid_amount_pence': self.bid_amount_pence,
            'decided_at': _iso(self.decided_at),
            'rejection_reason': self.rejection_reason,
            'credited_pence': self.credited_pence,
            'credited_stars': self.credited_stars,
        }


class Bid(db.Model):
    """An offer to do a competitive assignment for less than the base reward."""

    __tablename__ = 'bids'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    assignment_id = db.Column(db.Integer, db.ForeignKey('assignments.id'), nullable=False)
    family_id = db.Column(db.Integer, db.ForeignKey('families.id'), nullable=False)
    child_id = db.Column(db.Integer, db.ForeignKey('children.id'), nullable=False)
    amount_pence = db.Column(db.Integer, nullable=False)
    active = db.Column(db.Boolean, default=True, nullable=False)
    # Champion this bid undercut, if it took the lead from a sibling
    target_child_id = db.Column(db.Integer, db.ForeignKey('children.id'))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    assignment = relationship('Assignment', back_populates='bids')
    child = relationship('Child', foreign_keys=[child_id])

    __table_args__ = (
        CheckConstraint("amount_pence > 0", name='check_bid_amount'),
        Index('idx_bids_assignment_amount', 'assignment_id', 'amount_pence'),
    )

    def __repr__(self):
        return f'<Bid assignment_id={self.assignment_id} child_id={self.child_id} {self.amount_pence}p>'

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'assignment_id': self.assignment_id,
            'child_id': self.child_id,
            'child_nickname': self.child.nickname if self.child else None,
            'amount_pence': self.amount_pence,
            'active': self.active,
            'target_child_id': self.target_child_id,
            'created_at': _iso(self.created_at),
        }

    def to_feed_dict(self) -> dict:
        """Rivalry feed entry: who bid, whom they undercut and for how much."""
        return {
            'id': self.id,
            'type': 'underbid' if self.target_child_id else 'bid',
            'assignment_id': self.assignment_id,
            'chore_id': self.assignment.chore_id if self.assignment else None,
            'actor_child_id': self.child_id,
            'target_child_id': self.target_child_id,
            'amount_pence': self.amount_pence,
            'created_at': _iso(self.created_at),
        }


class Streak(db.Model):
    """Consecutive-period completion record for one child and chore."""

    __tablename__ = 'streaks'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    family_id = db.Column(db.Integer, db.ForeignKey('families.id'), nullable=False)
    child_id = db.Column(db.Integer, db.ForeignKey('children.id'), nullable=False)
    chore_id = db.Column(db.Integer, db.ForeignKey('chores.id'), nullable=False)
    current = db.Column(db.Integer, default=0, nullable=False)
    best = db.Column(db.Integer, default=0, nullable=False)
    last_period = db.Column(db.Date)
    disrupted = db.Column(db.Boolean, default=False, nullable=False)
    last_milestone = db.Column(db.Integer, default=0, nullable=False)  # Highest milestone paid in this run
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    chore = relationship('Chore')

    __table_args__ = (
        UniqueConstraint('family_id', 'child_id', 'chore_id', name='unique_streak_child_chore'),
    )

    def __repr__(self):
        return f'<Streak child_id={self.child_id} chore_id={self.chore_id} current={self.current}>'

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'child_id': self.child_id,
            'chore_id': self.chore_id,
            'chore_title': self.chore.title if self.chore else None,
            'current': self.current,
            'best': self.best,
            'last_period': _iso(self.last_period),
            'disrupted': self.disrupted,
        }


class Wallet(db.Model):
    """Cached balance for one child; mutated only through transactions."""

    __tablename__ = 'wallets'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    family_id = db.Column(db.Integer, db.ForeignKey('families.id'), nullable=False)
    child_id = db.Column(db.Integer, db.ForeignKey('children.id'), nullable=False)
    balance_pence = db.Column(db.Integer, default=0, nullable=False)
    stars = db.Column(db.Integer, default=0, nullable=False)

    # Set when the cached balance disagrees with the transaction log
    frozen = db.Column(db.Boolean, default=False, nullable=False)
    frozen_reason = db.Column(db.Text)

    version_id = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    transactions = relationship('Transaction', back_populates='wallet', order_by='Transaction.id')

    __table_args__ = (
        UniqueConstraint('family_id', 'child_id', name='unique_wallet_child'),
    )

    __mapper_args__ = {'version_id_col': version_id}

    def __repr__(self):
        return f'<Wallet child_id={self.child_id} {self.balance_pence}p {self.stars} stars>'

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'family_id': self.family_id,
            'child_id': self.child_id,
            'balance_pence': self.balance_pence,
            'stars': self.stars,
            'frozen': self.frozen,
            'frozen_reason': self.frozen_reason,
        }


class Transaction(db.Model):
    """Append-only ledger entry. Amounts are non-negative; type gives the sign."""

    __tablename__ = 'transactions'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    wallet_id = db.Column(db.Integer, db.ForeignKey('wallets.id'), nullable=False)
    family_id = db.Column(db.Integer, db.ForeignKey('families.id'), nullable=False)
    type = db.Column(db.String(10), nullable=False)
    amount_pence = db.Column(db.Integer, default=0, nullable=False)
    stars = db.Column(db.Integer, default=0, nullable=False)
    source = db.Column(db.String(20), default='system', nullable=False)
    reason = db.Column(db.String(40), nullable=False)  # Metadata discriminator, e.g. streak_penalty
    meta = db.Column(db.JSON, nullable=False)
    idempotency_key = db.Column(db.String(255), unique=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    wallet = relationship('Wallet', back_populates='transactions')

    __table_args__ = (
        CheckConstraint("type IN ('credit', 'debit')", name='check_transaction_type'),
        CheckConstraint("source IN ('system', 'guardian', 'relative')", name='check_transaction_source'),
        CheckConstraint("amount_pence >= 0 AND stars >= 0", name='check_transaction_amounts'),
        Index('idx_transactions_wallet', 'wallet_id'),
        Index('idx_transactions_created_at', 'created_at'),
    )

    def __repr__(self):
        return f'<Transaction {self.type} {self.amount_pence}p {self.stars} stars ({self.reason})>'

    @property
    def pence_delta(self) -> int:
        return self.amount_pence if self.type == 'credit' else -self.amount_pence

    @property
    def star_delta(self) -> int:
        return self.stars if self.type == 'credit' else -self.stars

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'wallet_id': self.wallet_id,
            'type': self.type,
            'amount_pence': self.amount_pence,
            'stars': self.stars,
            'pence_delta': self.pence_delta,
            'star_delta': self.star_delta,
            'source': self.source,
            'reason': self.reason,
            'meta': self.meta,
            'created_at': _iso(self.created_at),
        }
