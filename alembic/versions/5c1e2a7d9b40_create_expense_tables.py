"""create expense and exchange rate tables

Revision ID: 5c1e2a7d9b40
Revises:
Create Date: 2026-10-19 10:12:41.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5c1e2a7d9b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'expenses',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('trip_id', sa.String(length=64), nullable=False),
        sa.Column('title', sa.String(length=100), nullable=False),
        sa.Column('amount', sa.Numeric(14, 4), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('category', sa.String(length=20), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('paid_by', sa.String(length=64), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('receipt', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_expenses_trip_id', 'expenses', ['trip_id'])

    op.create_table(
        'expense_splits',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('expense_id', sa.String(), sa.ForeignKey('expenses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('participant_id', sa.String(length=64), nullable=False),
        sa.Column('amount', sa.Numeric(14, 4), nullable=False),
        sa.Column('settled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.UniqueConstraint('expense_id', 'participant_id'),
    )

    op.create_table(
        'exchange_rates',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('base_currency', sa.String(length=3), nullable=False),
        sa.Column('target_currency', sa.String(length=3), nullable=False),
        sa.Column('rate', sa.Numeric(18, 8), nullable=False),
        sa.Column('fetched_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('date', 'base_currency', 'target_currency'),
    )


def downgrade() -> None:
    op.drop_table('exchange_rates')
    op.drop_table('expense_splits')
    op.drop_index('ix_expenses_trip_id', table_name='expenses')
    op.drop_table('expenses')
