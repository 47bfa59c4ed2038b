"""create_leads_schema

Revision ID: a1c4e2f9b301
Revises:
Create Date: 2026-09-28 10:12:41.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = 'a1c4e2f9b301'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')

ENUMS = {
    'city': ('Chandigarh', 'Mohali', 'Zirakpur', 'Panchkula', 'Other'),
    'property_type': ('Apartment', 'Villa', 'Plot', 'Office', 'Retail'),
    'bhk': ('1', '2', '3', '4', 'Studio'),
    'purpose': ('Buy', 'Rent'),
    'timeline': ('0-3m', '3-6m', '>6m', 'Exploring'),
    'source': ('Website', 'Referral', 'Walk-in', 'Call', 'Other'),
    'status': ('New', 'Qualified', 'Contacted', 'Visited', 'Negotiation', 'Converted', 'Dropped'),
}


def _enum(name: str) -> sa.Enum:
    return sa.Enum(*ENUMS[name], name=name)


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('email_verified', sa.DateTime(timezone=True), nullable=True),
        sa.Column('image', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'accounts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('type', sa.String(length=255), nullable=False),
        sa.Column('provider', sa.String(length=255), nullable=False),
        sa.Column('provider_account_id', sa.String(length=255), nullable=False),
        sa.Column('refresh_token', sa.Text(), nullable=True),
        sa.Column('access_token', sa.Text(), nullable=True),
        sa.Column('expires_at', sa.Integer(), nullable=True),
        sa.Column('token_type', sa.String(length=255), nullable=True),
        sa.Column('scope', sa.String(length=255), nullable=True),
        sa.Column('id_token', sa.Text(), nullable=True),
        sa.Column('session_state', sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('provider', 'provider_account_id', name='uq_account_provider'),
    )
    op.create_index('ix_accounts_user_id', 'accounts', ['user_id'])

    op.create_table(
        'sessions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('session_token', sa.String(length=255), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('expires', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_token'),
    )
    op.create_index('ix_sessions_user_id', 'sessions', ['user_id'])

    op.create_table(
        'verification_tokens',
        sa.Column('identifier', sa.String(length=255), nullable=False),
        sa.Column('token', sa.String(length=255), nullable=False),
        sa.Column('expires', sa.DateTime(timezone=True), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint('identifier', 'token'),
        sa.UniqueConstraint('token'),
    )

    op.create_table(
        'buyers',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('full_name', sa.String(length=80), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=15), nullable=False),
        sa.Column('city', _enum('city'), nullable=False),
        sa.Column('property_type', _enum('property_type'), nullable=False),
        sa.Column('bhk', _enum('bhk'), nullable=True),
        sa.Column('purpose', _enum('purpose'), nullable=False),
        sa.Column('budget_min', sa.Integer(), nullable=True),
        sa.Column('budget_max', sa.Integer(), nullable=True),
        sa.Column('timeline', _enum('timeline'), nullable=False),
        sa.Column('source', _enum('source'), nullable=False),
        sa.Column('status', _enum('status'), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('tags', JSON, nullable=False),
        sa.Column('owner_id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('buyers_owner_idx', 'buyers', ['owner_id'])
    op.create_index('buyers_status_idx', 'buyers', ['status'])
    op.create_index('buyers_city_idx', 'buyers', ['city'])
    op.create_index('buyers_property_type_idx', 'buyers', ['property_type'])
    op.create_index('buyers_updated_at_idx', 'buyers', ['updated_at'])
    op.create_index('buyers_phone_idx', 'buyers', ['phone'])

    op.create_table(
        'buyer_history',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('buyer_id', sa.Uuid(), nullable=False),
        sa.Column('changed_by', sa.Uuid(), nullable=False),
        sa.Column('changed_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('diff', JSON, nullable=False),
        sa.ForeignKeyConstraint(['buyer_id'], ['buyers.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['changed_by'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('buyer_history_buyer_idx', 'buyer_history', ['buyer_id'])
    op.create_index('buyer_history_changed_at_idx', 'buyer_history', ['changed_at'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('buyer_history')
    op.drop_table('buyers')
    op.drop_table('verification_tokens')
    op.drop_table('sessions')
    op.drop_table('accounts')
    op.drop_table('users')
    for name in ENUMS:
        sa.Enum(name=name).drop(op.get_bind(), checkfirst=True)
