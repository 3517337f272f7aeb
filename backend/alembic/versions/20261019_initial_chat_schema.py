"""Initial chat schema

Revision ID: initial_chat_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision: str = 'initial_chat_schema'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(table_name: str) -> bool:
    """Check if a table already exists (handles dev auto-create)."""
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    return table_name in inspector.get_table_names()


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name, sa.DateTime(timezone=True),
        server_default=sa.text('now()'), nullable=False,
    )


def upgrade() -> None:
    """Upgrade schema."""
    if not _table_exists('users'):
        op.create_table(
            'users',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('email', sa.String(length=255), nullable=False),
            sa.Column('name', sa.String(length=255), nullable=True),
            sa.Column('subject', sa.String(length=255), nullable=False),
            sa.Column('instructions', sa.Text(), nullable=True),
            _timestamp('created_at'),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_users_email', 'users', ['email'], unique=True)
        op.create_index('ix_users_subject', 'users', ['subject'], unique=True)

    if not _table_exists('chats'):
        op.create_table(
            'chats',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('user_id', sa.String(length=36), nullable=False),
            sa.Column('title', sa.String(length=255), nullable=False),
            _timestamp('created_at'),
            _timestamp('updated_at'),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_chats_user_id', 'chats', ['user_id'])
        op.create_index('ix_chats_user_updated', 'chats', ['user_id', 'updated_at'])

    if not _table_exists('messages'):
        op.create_table(
            'messages',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('chat_id', sa.String(length=36), nullable=False),
            sa.Column('role', sa.String(length=20), nullable=False),
            sa.Column('content', sa.Text(), nullable=False),
            sa.Column('attachments', sa.JSON(), nullable=False),
            _timestamp('created_at'),
            sa.ForeignKeyConstraint(['chat_id'], ['chats.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_messages_chat_id', 'messages', ['chat_id'])
        op.create_index('ix_messages_chat_created', 'messages', ['chat_id', 'created_at'])

    if not _table_exists('attachment_texts'):
        op.create_table(
            'attachment_texts',
            sa.Column('attachment_id', sa.String(length=36), nullable=False),
            sa.Column('chat_id', sa.String(length=36), nullable=False),
            sa.Column('message_id', sa.String(length=36), nullable=False),
            sa.Column('user_id', sa.String(length=36), nullable=False),
            sa.Column('storage_path', sa.String(length=500), nullable=False),
            sa.Column('extracted_text', sa.Text(), nullable=False),
            _timestamp('created_at'),
            sa.ForeignKeyConstraint(['chat_id'], ['chats.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['message_id'], ['messages.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('attachment_id'),
        )
        op.create_index('ix_attachment_texts_chat_id', 'attachment_texts', ['chat_id'])
        op.create_index('ix_attachment_texts_message_id', 'attachment_texts', ['message_id'])
        op.create_index('ix_attachment_texts_user_id', 'attachment_texts', ['user_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('attachment_texts')
    op.drop_table('messages')
    op.drop_table('chats')
    op.drop_index('ix_users_subject', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
