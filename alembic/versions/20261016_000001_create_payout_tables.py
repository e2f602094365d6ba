"""Create weekly payout tables.

Revision ID: 20261016_000001
Revises:
Create Date: 2026-10-16 00:00:00.000000

Adds commission records, weekly settlements and settlement batch meta,
and the expiry timestamp on ghost volumes. Participants, ledger, binary
tree, binary volume and rank cap tables already exist.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261016_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create payout tables."""

    op.create_table(
        'commission_records',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('source_user_id', sa.Integer(), nullable=True),
        sa.Column('source_count', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('period_key', sa.String(length=10), nullable=False),
        sa.Column('commission_type', sa.String(length=20), nullable=False),
        sa.Column('tier', sa.Integer(), nullable=False),
        sa.Column('basis', sa.DECIMAL(18, 8), nullable=False),
        sa.Column('rate', sa.DECIMAL(10, 8), nullable=False),
        sa.Column('base_amount', sa.DECIMAL(18, 8), nullable=False, comment='Unscaled amount (basis * rate)'),
        sa.Column('pool_factor', sa.DECIMAL(20, 18), nullable=False, server_default='1'),
        sa.Column('global_factor', sa.DECIMAL(20, 18), nullable=False, server_default='1'),
        sa.Column('scaled_amount', sa.DECIMAL(18, 8), nullable=False, comment='base_amount * pool_factor * global_factor'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['user_id'], ['participants.id']),
        sa.ForeignKeyConstraint(['source_user_id'], ['participants.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'user_id', 'period_key', 'commission_type', 'tier',
            name='uq_commission_records_user_period_type_tier',
        ),
    )
    op.create_index('ix_commission_records_user_id', 'commission_records', ['user_id'])
    op.create_index('idx_commission_records_period', 'commission_records', ['period_key'])

    op.create_table(
        'weekly_settlements',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('period_key', sa.String(length=10), nullable=False),
        sa.Column('period_end', sa.Date(), nullable=False),
        sa.Column('direct_total', sa.DECIMAL(18, 8), nullable=False, server_default='0'),
        sa.Column('binary_total', sa.DECIMAL(18, 8), nullable=False, server_default='0'),
        sa.Column('override_total', sa.DECIMAL(18, 8), nullable=False, server_default='0'),
        sa.Column('grand_total', sa.DECIMAL(18, 8), nullable=False, server_default='0'),
        sa.Column('direct_factor', sa.DECIMAL(20, 18), nullable=False, server_default='1'),
        sa.Column('binary_factor', sa.DECIMAL(20, 18), nullable=False, server_default='1'),
        sa.Column('override_factor', sa.DECIMAL(20, 18), nullable=False, server_default='1'),
        sa.Column('global_factor', sa.DECIMAL(20, 18), nullable=False, server_default='1'),
        sa.Column('cap_applied', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('uncapped_total', sa.DECIMAL(18, 8), nullable=True, comment='grand_total before the hard-cap backstop'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('wallet_address', sa.String(length=42), nullable=True),
        sa.Column('leaf_hash', sa.String(length=66), nullable=True),
        sa.Column('merkle_proof', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('claimed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['participants.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'period_key', name='uq_weekly_settlements_user_period'),
    )
    op.create_index('ix_weekly_settlements_user_id', 'weekly_settlements', ['user_id'])
    op.create_index(
        'idx_weekly_settlements_period_status', 'weekly_settlements', ['period_key', 'status']
    )

    op.create_table(
        'settlement_batch_meta',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('period_key', sa.String(length=10), nullable=False),
        sa.Column('merkle_root', sa.String(length=66), nullable=False),
        sa.Column('total_users', sa.Integer(), nullable=False),
        sa.Column('total_amount', sa.DECIMAL(18, 8), nullable=False),
        sa.Column('token_decimals', sa.Integer(), nullable=False),
        sa.Column('period_timestamp', sa.BigInteger(), nullable=False, comment='Unix seconds committed in every leaf'),
        sa.Column('contract_status', sa.String(length=20), nullable=False, server_default='ready'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('period_key'),
    )

    # Safety valve marks expired ghost volume
    op.add_column(
        'ghost_volumes',
        sa.Column('expired_at', sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    """Drop payout tables."""

    op.drop_column('ghost_volumes', 'expired_at')

    op.drop_table('settlement_batch_meta')

    op.drop_index('idx_weekly_settlements_period_status', 'weekly_settlements')
    op.drop_index('ix_weekly_settlements_user_id', 'weekly_settlements')
    op.drop_table('weekly_settlements')

    op.drop_index('idx_commission_records_period', 'commission_records')
    op.drop_index('ix_commission_records_user_id', 'commission_records')
    op.drop_table('commission_records')
