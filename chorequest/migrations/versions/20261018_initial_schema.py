"""Initial chore lifecycle schema

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'families',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('holiday_mode', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('holiday_start_date', sa.Date(), nullable=True),
        sa.Column('holiday_end_date', sa.Date(), nullable=True),
        sa.Column('streak_protection_days', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('penalty_enabled', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('first_miss_pence', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('first_miss_stars', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('second_miss_pence', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('second_miss_stars', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('third_miss_pence', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('third_miss_stars', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('penalty_mode', sa.String(length=10), nullable=False, server_default='both'),
        sa.Column('min_balance_pence', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('min_balance_stars', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('streak_bonus_enabled', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('generation_lock', sa.String(length=64), nullable=True),
        sa.Column('generation_locked_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint("penalty_mode IN ('money', 'stars', 'both')", name='check_penalty_mode'),
    )

    op.create_table(
        'children',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('family_id', sa.Integer(), nullable=False),
        sa.Column('nickname', sa.String(length=255), nullable=False),
        sa.Column('paused', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('holiday_mode', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('holiday_start_date', sa.Date(), nullable=True),
        sa.Column('holiday_end_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['family_id'], ['families.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_children_family_id', 'children', ['family_id'])

    op.create_table(
        'chores',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('family_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('frequency', sa.String(length=10), nullable=False),
        sa.Column('base_reward_pence', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reward_stars', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['family_id'], ['families.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint("frequency IN ('daily', 'weekly', 'once')", name='check_chore_frequency'),
        sa.CheckConstraint("base_reward_pence >= 0", name='check_chore_reward'),
    )
    op.create_index('ix_chores_family_id', 'chores', ['family_id'])

    op.create_table(
        'assignments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('chore_id', sa.Integer(), nullable=False),
        sa.Column('family_id', sa.Integer(), nullable=False),
        sa.Column('child_id', sa.Integer(), nullable=True),
        sa.Column('period_start', sa.Date(), nullable=False),
        sa.Column('competitive', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['chore_id'], ['chores.id'], ),
        sa.ForeignKeyConstraint(['family_id'], ['families.id'], ),
        sa.ForeignKeyConstraint(['child_id'], ['children.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_assignments_chore_child_period', 'assignments', ['chore_id', 'child_id', 'period_start'])
    op.create_index('idx_assignments_family', 'assignments', ['family_id'])

    op.create_table(
        'bids',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('assignment_id', sa.Integer(), nullable=False),
        sa.Column('family_id', sa.Integer(), nullable=False),
        sa.Column('child_id', sa.Integer(), nullable=False),
        sa.Column('amount_pence', sa.Integer(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('target_child_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['assignment_id'], ['assignments.id'], ),
        sa.ForeignKeyConstraint(['family_id'], ['families.id'], ),
        sa.ForeignKeyConstraint(['child_id'], ['children.id'], ),
        sa.ForeignKeyConstraint(['target_child_id'], ['children.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint("amount_pence > 0", name='check_bid_amount'),
    )
    op.create_index('idx_bids_assignment_amount', 'bids', ['assignment_id', 'amount_pence'])

    op.create_table(
        'completions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('assignment_id', sa.Integer(), nullable=False),
        sa.Column('family_id', sa.Integer(), nullable=False),
        sa.Column('child_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('submitted_at', sa.DateTime(), nullable=False),
        sa.Column('submitted_on', sa.Date(), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('bid_id', sa.Integer(), nullable=True),
        sa.Column('bid_amount_pence', sa.Integer(), nullable=True),
        sa.Column('decided_at', sa.DateTime(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('credited_pence', sa.Integer(), nullable=True),
        sa.Column('credited_stars', sa.Integer(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['assignment_id'], ['assignments.id'], ),
        sa.ForeignKeyConstraint(['family_id'], ['families.id'], ),
        sa.ForeignKeyConstraint(['child_id'], ['children.id'], ),
        sa.ForeignKeyConstraint(['bid_id'], ['bids.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name='check_completion_status'),
    )
    op.create_index('idx_completions_child_submitted', 'completions', ['child_id', 'submitted_on'])
    op.create_index('idx_completions_status', 'completions', ['status'])

    op.create_table(
        'streaks',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('family_id', sa.Integer(), nullable=False),
        sa.Column('child_id', sa.Integer(), nullable=False),
        sa.Column('chore_id', sa.Integer(), nullable=False),
        sa.Column('current', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('best', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_period', sa.Date(), nullable=True),
        sa.Column('disrupted', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('last_milestone', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['family_id'], ['families.id'], ),
        sa.ForeignKeyConstraint(['child_id'], ['children.id'], ),
        sa.ForeignKeyConstraint(['chore_id'], ['chores.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('family_id', 'child_id', 'chore_id', name='unique_streak_child_chore'),
    )

    op.create_table(
        'wallets',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('family_id', sa.Integer(), nullable=False),
        sa.Column('child_id', sa.Integer(), nullable=False),
        sa.Column('balance_pence', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stars', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('frozen', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('frozen_reason', sa.Text(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['family_id'], ['families.id'], ),
        sa.ForeignKeyConstraint(['child_id'], ['children.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('family_id', 'child_id', name='unique_wallet_child'),
    )

    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('wallet_id', sa.Integer(), nullable=False),
        sa.Column('family_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=10), nullable=False),
        sa.Column('amount_pence', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stars', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('source', sa.String(length=20), nullable=False, server_default='system'),
        sa.Column('reason', sa.String(length=40), nullable=False),
        sa.Column('meta', sa.JSON(), nullable=False),
        sa.Column('idempotency_key', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['wallet_id'], ['wallets.id'], ),
        sa.ForeignKeyConstraint(['family_id'], ['families.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('idempotency_key'),
        sa.CheckConstraint("type IN ('credit', 'debit')", name='check_transaction_type'),
        sa.CheckConstraint("source IN ('system', 'guardian', 'relative')", name='check_transaction_source'),
        sa.CheckConstraint("amount_pence >= 0 AND stars >= 0", name='check_transaction_amounts'),
    )
    op.create_index('idx_transactions_wallet', 'transactions', ['wallet_id'])
    op.create_index('idx_transactions_created_at', 'transactions', ['created_at'])


def downgrade():
    op.drop_index('idx_transactions_created_at', table_name='transactions')
    op.drop_index('idx_transactions_wallet', table_name='transactions')
    op.drop_table('transactions')
    op.drop_table('wallets')
    op.drop_table('streaks')
    op.drop_index('idx_completions_status', table_name='completions')
    op.drop_index('idx_completions_child_submitted', table_name='completions')
    op.drop_table('completions')
    op.drop_index('idx_bids_assignment_amount', table_name='bids')
    op.drop_table('bids')
    op.drop_index('idx_assignments_family', table_name='assignments')
    op.drop_index('idx_assignments_chore_child_period', table_name='assignments')
    op.drop_table('assignments')
    op.drop_index('ix_chores_family_id', table_name='chores')
    op.drop_table('chores')
    op.drop_index('ix_children_family_id', table_name='children')
    op.drop_table('children')
    op.drop_table('families')
