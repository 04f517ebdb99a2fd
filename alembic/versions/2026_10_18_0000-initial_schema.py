"""initial schema

Revision ID: 2026_10_18_0000
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID


# revision identifiers, used by Alembic.
revision: str = '2026_10_18_0000'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users, generations, credit_logs and payments."""

    # ========================================================================
    # Create users table
    # ========================================================================
    op.create_table(
        'users',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('email', sa.String(320), nullable=False),
        sa.Column('credits', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        sa.CheckConstraint('credits >= 0', name='ck_users_credits_non_negative'),
        sa.UniqueConstraint('email', name='uq_users_email'),
    )

    # ========================================================================
    # Create generations table
    # ========================================================================
    op.create_table(
        'generations',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', UUID(as_uuid=True), nullable=False),
        sa.Column('style', sa.String(255), nullable=False),
        sa.Column('role', sa.String(255), nullable=False),
        sa.Column('image_url', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_generations_user', ondelete='RESTRICT'),
    )
    op.create_index('idx_generations_user_id', 'generations', ['user_id'])
    op.create_index('idx_generations_created_at', 'generations', ['created_at'])

    # ========================================================================
    # Create credit_logs table
    # ========================================================================
    op.create_table(
        'credit_logs',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', UUID(as_uuid=True), nullable=False),
        sa.Column('change', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        sa.CheckConstraint('change <> 0', name='ck_credit_logs_change_non_zero'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_credit_logs_user', ondelete='RESTRICT'),
    )
    op.create_index('idx_credit_logs_user_id', 'credit_logs', ['user_id'])

    # ========================================================================
    # Create payments table
    # ========================================================================
    op.create_table(
        'payments',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', UUID(as_uuid=True), nullable=False),
        sa.Column('payment_id', sa.String(255), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('provider', sa.String(32), nullable=False, server_default='razorpay'),
        sa.Column('credits_added', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(32), nullable=False, server_default='success'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        sa.CheckConstraint('amount >= 0', name='ck_payments_amount_non_negative'),
        sa.CheckConstraint('credits_added >= 0', name='ck_payments_credits_non_negative'),
        sa.UniqueConstraint('provider', 'payment_id', name='uq_payments_provider_payment'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_payments_user', ondelete='RESTRICT'),
    )
    op.create_index('idx_payments_user_id', 'payments', ['user_id'])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('payments')
    op.drop_table('credit_logs')
    op.drop_table('generations')
    op.drop_table('users')
