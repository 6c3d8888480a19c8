"""Board schema: users, revoked sessions, lists, cards, comments

Revision ID: a1f0c3d5e7b9
Revises:
Create Date: 2026-10-19T09:00:00.000000
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = 'a1f0c3d5e7b9'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- users ---
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('username', sa.String(), nullable=False),
        sa.Column('password_hash', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    # --- revoked_sessions ---
    op.create_table(
        'revoked_sessions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('jti', sa.String(), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_revoked_sessions_jti', 'revoked_sessions', ['jti'], unique=True)

    # --- lists ---
    op.create_table(
        'lists',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )

    # --- cards ---
    op.create_table(
        'cards',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('list_id', sa.Integer(), sa.ForeignKey('lists.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('priority', sa.Enum('low', 'medium', 'high', name='cardpriority'), nullable=False, server_default='medium'),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('assignee', sa.String(), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_cards_list_id', 'cards', ['list_id'])
    op.create_index('idx_card_list_position', 'cards', ['list_id', 'position'])

    # --- comments ---
    op.create_table(
        'comments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('card_id', sa.Integer(), sa.ForeignKey('cards.id', ondelete='CASCADE'), nullable=False),
        sa.Column('author', sa.String(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_comments_card_id', 'comments', ['card_id'])


def downgrade() -> None:
    op.drop_index('ix_comments_card_id', table_name='comments')
    op.drop_table('comments')
    op.drop_index('idx_card_list_position', table_name='cards')
    op.drop_index('ix_cards_list_id', table_name='cards')
    op.drop_table('cards')
    sa.Enum('low', 'medium', 'high', name='cardpriority').drop(op.get_bind(), checkfirst=True)
    op.drop_table('lists')
    op.drop_index('ix_revoked_sessions_jti', table_name='revoked_sessions')
    op.drop_table('revoked_sessions')
    op.drop_index('ix_users_username', table_name='users')
    op.drop_table('users')
