"""Create claims and referral_bonuses tables

Revision ID: a1c4e7f2b9d0
Revises:
Create Date: 2026-10-18 09:00:00.000000+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1c4e7f2b9d0'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create claim tables with constraints and indexes."""

    # =================================================================
    # TABLE: claims
    # =================================================================
    op.create_table(
        'claims',
        sa.Column('address', sa.String(length=42), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('transaction_id', sa.String(length=66), nullable=True),
        sa.Column('mint_amount', sa.DECIMAL(precision=36, scale=18), nullable=False),
        sa.Column('submitted_at', sa.DateTime(), nullable=True),
        sa.Column('confirmed_at', sa.DateTime(), nullable=True),
        sa.Column('referrer_address', sa.String(length=42), nullable=True),
        sa.Column('referrer_code', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('address'),
        sa.CheckConstraint(
            'address = lower(address)',
            name='ck_claims_address_lower'
        ),
        sa.CheckConstraint(
            "status IN ('unclaimed', 'pending', 'confirmed', 'failed', 'timeout')",
            name='ck_claims_status'
        ),
    )
    op.create_index('ix_claims_status', 'claims', ['status'])
    op.create_index('ix_claims_transaction_id', 'claims', ['transaction_id'])

    # =================================================================
    # TABLE: referral_bonuses
    # =================================================================
    op.create_table(
        'referral_bonuses',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('referral_code', sa.String(length=32), nullable=True),
        sa.Column('referrer_address', sa.String(length=42), nullable=False),
        sa.Column('referred_address', sa.String(length=42), nullable=False),
        sa.Column('bonus_amount', sa.DECIMAL(precision=36, scale=18), nullable=False),
        sa.Column('tx_hash', sa.String(length=66), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_referral_bonuses_referral_code', 'referral_bonuses', ['referral_code']
    )
    op.create_index(
        'ix_referral_bonuses_referrer_address', 'referral_bonuses', ['referrer_address']
    )


def downgrade() -> None:
    """Drop claim tables."""
    op.drop_index('ix_referral_bonuses_referrer_address', table_name='referral_bonuses')
    op.drop_index('ix_referral_bonuses_referral_code', table_name='referral_bonuses')
    op.drop_table('referral_bonuses')

    op.drop_index('ix_claims_transaction_id', table_name='claims')
    op.drop_index('ix_claims_status', table_name='claims')
    op.drop_table('claims')
