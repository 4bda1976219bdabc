"""initial schema: users, oauth credentials, contacts, call records, leases

Revision ID: 20261016_0001
Revises: 
Create Date: 2026-10-16
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '20261016_0001'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table('users',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('email', sa.String(), nullable=False, unique=True),
        sa.Column('hashed_password', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False)
    )
    op.create_table('oauth_credentials',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('provider', sa.String(), nullable=False, server_default='google'),
        sa.Column('access_token_encrypted', sa.String(), nullable=False),
        sa.Column('refresh_token_encrypted', sa.String(), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('calendar_id', sa.String(), nullable=False, server_default='primary'),
        sa.Column('scopes', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False)
    )
    op.create_table('contacts',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True, index=True),
        sa.Column('firm', sa.String(), nullable=True),
        sa.Column('position', sa.String(), nullable=True),
        sa.Column('connection_type', sa.String(), nullable=False, server_default='cold'),
        sa.Column('stage', sa.String(), nullable=False, server_default='researching', index=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False)
    )
    op.create_table('call_records',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('contact_id', sa.String(), sa.ForeignKey('contacts.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('start_at', sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column('end_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('location', sa.String(), nullable=True),
        sa.Column('notes', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='scheduled', index=True),
        sa.Column('external_provider', sa.String(), nullable=True),
        sa.Column('external_event_id', sa.String(), nullable=True, index=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('user_id', 'external_provider', 'external_event_id', name='uq_call_records_external')
    )
    op.create_table('sync_leases',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('scope', sa.String(), nullable=False),
        sa.Column('owner_key', sa.String(), nullable=False),
        sa.Column('holder', sa.String(), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False, index=True),
        sa.UniqueConstraint('scope', 'owner_key', name='uq_sync_leases_scope_owner')
    )


def downgrade():
    op.drop_table('sync_leases')
    op.drop_table('call_records')
    op.drop_table('contacts')
    op.drop_table('oauth_credentials')
    op.drop_table('users')
