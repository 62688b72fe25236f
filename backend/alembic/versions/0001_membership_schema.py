"""Membership schema: users, plans, subscriptions, subscription periods

Revision ID: 0001_membership_schema
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_membership_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the membership tables and seed the plan catalog."""

    op.create_table(
        'users',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('username', sa.String(100), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='user'),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.CheckConstraint("role IN ('user', 'admin')", name='ck_users_role'),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    plans = op.create_table(
        'plans',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(20), nullable=False, unique=True),
        sa.Column('duration_months', sa.Integer, nullable=False, server_default='12'),
        sa.CheckConstraint("name IN ('Standard', 'Pro')", name='ck_plans_name'),
    )

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column(
            'user_id',
            sa.Integer,
            sa.ForeignKey('users.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('plan_id', sa.Integer, sa.ForeignKey('plans.id'), nullable=False),
        sa.Column('start_date', sa.DateTime, nullable=False),
        sa.UniqueConstraint(
            'user_id', 'plan_id', 'start_date',
            name='uq_subscriptions_user_plan_start',
        ),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_subscriptions_user_id', 'subscriptions', ['user_id'])

    op.create_table(
        'subscription_periods',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column(
            'subscription_id',
            sa.Integer,
            sa.ForeignKey('subscriptions.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('start_date', sa.DateTime, nullable=False),
        sa.Column('end_date', sa.DateTime, nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.CheckConstraint(
            "status IN ('active', 'paused')",
            name='ck_subscription_periods_status',
        ),
        sqlite_autoincrement=True,
    )
    op.create_index(
        'ix_subscription_periods_subscription_id',
        'subscription_periods',
        ['subscription_id'],
    )
    # Lookup of the open period during pause/resume
    op.create_index(
        'ix_subscription_periods_open',
        'subscription_periods',
        ['subscription_id', 'status', 'end_date'],
    )

    op.bulk_insert(
        plans,
        [
            {'name': 'Standard', 'duration_months': 12},
            {'name': 'Pro', 'duration_months': 12},
        ],
    )


def downgrade() -> None:
    """Drop the membership tables."""
    op.drop_index('ix_subscription_periods_open', table_name='subscription_periods')
    op.drop_index('ix_subscription_periods_subscription_id', table_name='subscription_periods')
    op.drop_table('subscription_periods')

    op.drop_index('ix_subscriptions_user_id', table_name='subscriptions')
    op.drop_table('subscriptions')

    op.drop_table('plans')

    op.drop_index('ix_users_username', table_name='users')
    op.drop_table('users')
