"""Create affiliate program tables.

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261019_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


IN_FLIGHT_PREDICATE = sa.text("status IN ('pending', 'approved')")


def upgrade() -> None:
    """Create affiliates, referrals and payout_requests."""

    op.create_table(
        'affiliates',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('referral_code', sa.String(32), nullable=False),
        sa.Column('commission_rate', sa.Integer(), nullable=False),
        sa.Column('payout_destination_id', sa.String(255), nullable=True, comment='Stripe Connect account ID'),
        sa.Column('payout_onboarded', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('total_earned', sa.BigInteger(), nullable=False, server_default='0', comment='Cents'),
        sa.Column('total_paid', sa.BigInteger(), nullable=False, server_default='0', comment='Cents'),
        sa.Column('referral_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('onboarded_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('commission_rate >= 0 AND commission_rate <= 100', name='ck_affiliates_commission_rate_range'),
        sa.CheckConstraint('total_earned >= 0', name='ck_affiliates_total_earned_non_negative'),
        sa.CheckConstraint('total_paid >= 0', name='ck_affiliates_total_paid_non_negative'),
        sa.CheckConstraint('referral_count >= 0', name='ck_affiliates_referral_count_non_negative'),
        sa.PrimaryKeyConstraint('id', name='pk_affiliates'),
    )
    op.create_index('ix_affiliates_user_id', 'affiliates', ['user_id'], unique=True)
    op.create_index('ix_affiliates_referral_code', 'affiliates', ['referral_code'], unique=True)

    op.create_table(
        'referrals',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('affiliate_id', sa.Integer(), nullable=False),
        sa.Column('referred_user_id', sa.String(64), nullable=False),
        sa.Column('subscription_charge_id', sa.String(255), nullable=False, comment='Billing event ID, idempotency key'),
        sa.Column('charge_amount', sa.BigInteger(), nullable=False, comment='Cents'),
        sa.Column('commission_amount', sa.BigInteger(), nullable=False, comment='Cents'),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('charge_amount >= 0', name='ck_referrals_charge_amount_non_negative'),
        sa.CheckConstraint('commission_amount >= 0', name='ck_referrals_commission_amount_non_negative'),
        sa.ForeignKeyConstraint(['affiliate_id'], ['affiliates.id'], name='fk_referrals_affiliate_id_affiliates', ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id', name='pk_referrals'),
        sa.UniqueConstraint('subscription_charge_id', name='uq_referrals_subscription_charge_id'),
    )
    op.create_index('ix_referrals_affiliate_id', 'referrals', ['affiliate_id'])
    op.create_index('ix_referrals_referred_user_id', 'referrals', ['referred_user_id'])
    op.create_index('idx_referrals_affiliate_status', 'referrals', ['affiliate_id', 'status'])

    op.create_table(
        'payout_requests',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('affiliate_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False, comment='Quoted cleared sum in cents'),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('transfer_reference', sa.String(255), nullable=True, comment='Stripe transfer ID'),
        sa.Column('requested_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('settled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('processed_by', sa.String(64), nullable=True),
        sa.CheckConstraint('amount > 0', name='ck_payout_requests_amount_positive'),
        sa.ForeignKeyConstraint(['affiliate_id'], ['affiliates.id'], name='fk_payout_requests_affiliate_id_affiliates', ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id', name='pk_payout_requests'),
        sa.UniqueConstraint('transfer_reference', name='uq_payout_requests_transfer_reference'),
    )
    op.create_index('ix_payout_requests_affiliate_id', 'payout_requests', ['affiliate_id'])
    op.create_index('idx_payout_requests_status', 'payout_requests', ['status'])
    # At most one pending or approved request per affiliate
    op.create_index(
        'uq_payout_requests_in_flight_affiliate',
        'payout_requests',
        ['affiliate_id'],
        unique=True,
        postgresql_where=IN_FLIGHT_PREDICATE,
    )


def downgrade() -> None:
    """Drop affiliate program tables."""
    op.drop_index('uq_payout_requests_in_flight_affiliate', table_name='payout_requests')
    op.drop_index('idx_payout_requests_status', table_name='payout_requests')
    op.drop_index('ix_payout_requests_affiliate_id', table_name='payout_requests')
    op.drop_table('payout_requests')

    op.drop_index('idx_referrals_affiliate_status', table_name='referrals')
    op.drop_index('ix_referrals_referred_user_id', table_name='referrals')
    op.drop_index('ix_referrals_affiliate_id', table_name='referrals')
    op.drop_table('referrals')

    op.drop_index('ix_affiliates_referral_code', table_name='affiliates')
    op.drop_index('ix_affiliates_user_id', table_name='affiliates')
    op.drop_table('affiliates')
