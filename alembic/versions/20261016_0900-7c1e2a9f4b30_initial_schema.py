"""initial_schema

Revision ID: 7c1e2a9f4b30
Revises:
Create Date: 2026-10-16 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '7c1e2a9f4b30'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Create users, sessions, the friendship graph, conversations and messages.

    Two partial/unique constraints carry domain rules:
    - friendships.user_id_1 < user_id_2 keeps one row per unordered pair
    - at most one OWNER row per conversation
    """
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False, unique=True),
        sa.Column('email_verified', sa.DateTime(timezone=True), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('image', sa.String(length=500), nullable=True),
        sa.Column('status_message', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'accounts',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(length=50), nullable=False),
        sa.Column('provider', sa.String(length=50), nullable=False),
        sa.Column('provider_account_id', sa.String(length=255), nullable=False),
        sa.Column('access_token', sa.Text(), nullable=True),
        sa.Column('refresh_token', sa.Text(), nullable=True),
        sa.Column('id_token', sa.Text(), nullable=True),
        sa.Column('scope', sa.String(length=500), nullable=True),
        sa.UniqueConstraint('provider', 'provider_account_id', name='uq_accounts_provider_account'),
    )
    op.create_index('ix_accounts_user_id', 'accounts', ['user_id'])

    op.create_table(
        'sessions',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('token', sa.String(length=255), nullable=False, unique=True),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('user_agent', sa.String(length=500), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
    )
    op.create_index('idx_sessions_user', 'sessions', ['user_id'])

    op.create_table(
        'friendships',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('user_id_1', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id_2', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', sa.String(length=8), nullable=False),
        sa.Column('requested_by', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('user_id_1', 'user_id_2', name='uq_friendships_pair'),
        sa.CheckConstraint('user_id_1 < user_id_2', name='ck_friendships_ordered_pair'),
    )
    op.create_index('idx_friendships_user1_status', 'friendships', ['user_id_1', 'status'])
    op.create_index('idx_friendships_user2_status', 'friendships', ['user_id_2', 'status'])

    op.create_table(
        'blacklist',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('blocker_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('blocked_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.UniqueConstraint('blocker_id', 'blocked_id', name='uq_blacklist_pair'),
    )
    op.create_index('idx_blacklist_blocker', 'blacklist', ['blocker_id'])

    op.create_table(
        'conversations',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('type', sa.String(length=10), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('direct_key', sa.String(length=80), nullable=True, unique=True),
        sa.Column('pinned_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('only_owner_can_invite', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('only_owner_can_kick', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('only_owner_can_edit', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('idx_conversations_type', 'conversations', ['type'])

    op.create_table(
        'conversation_participants',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column(
            'conversation_id',
            sa.String(length=36),
            sa.ForeignKey('conversations.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', sa.String(length=6), nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('last_read_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('conversation_id', 'user_id', name='uq_conversation_participants_member'),
    )
    op.create_index('idx_conversation_participants_user', 'conversation_participants', ['user_id'])
    op.create_index(
        'uq_conversation_participants_owner',
        'conversation_participants',
        ['conversation_id'],
        unique=True,
        postgresql_where=sa.text("role = 'OWNER'"),
    )

    op.create_table(
        'messages',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column(
            'conversation_id',
            sa.String(length=36),
            sa.ForeignKey('conversations.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('sender_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('message_type', sa.String(length=5), nullable=False),
        sa.Column('image_url', sa.String(length=500), nullable=True),
        sa.Column('status', sa.String(length=9), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        'idx_messages_conversation_created',
        'messages',
        ['conversation_id', 'created_at', 'id'],
    )
    op.create_index('idx_messages_sender', 'messages', ['sender_id'])


def downgrade() -> None:
    """Drop everything created in upgrade()."""
    op.drop_table('messages')
    op.drop_index('uq_conversation_participants_owner', table_name='conversation_participants')
    op.drop_table('conversation_participants')
    op.drop_table('conversations')
    op.drop_table('blacklist')
    op.drop_table('friendships')
    op.drop_table('sessions')
    op.drop_table('accounts')
    op.drop_table('users')
