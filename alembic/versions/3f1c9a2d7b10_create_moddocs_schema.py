"""Create moddocs schema

Revision ID: 3f1c9a2d7b10
Revises:
Create Date: 2026-02-26 13:12:19.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '3f1c9a2d7b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def soft_delete():
    return [
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True, nullable=False),
        *timestamps(),
        sa.Column('email', sa.String(255), nullable=False, comment="User's email address (unique)"),
        sa.Column('username', sa.String(50), nullable=False, comment="User's username (unique)"),
        sa.Column('full_name', sa.String(255), nullable=True),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    op.create_table(
        'mods',
        sa.Column('id', sa.Uuid(), primary_key=True, nullable=False),
        *timestamps(),
        *soft_delete(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(255), nullable=False, comment="Globally unique URL slug, fixed at creation"),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('owner_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('visibility', sa.String(20), nullable=False, server_default='private'),
        sa.Column('storage_driver', sa.String(20), nullable=False, server_default='local'),
    )
    op.create_index('ix_mods_slug', 'mods', ['slug'], unique=True)
    op.create_index('ix_mods_owner_id', 'mods', ['owner_id'])
    op.create_index('ix_mods_is_deleted', 'mods', ['is_deleted'])

    op.create_table(
        'mod_members',
        sa.Column('id', sa.Uuid(), primary_key=True, nullable=False),
        *timestamps(),
        sa.Column('mod_id', sa.Uuid(), sa.ForeignKey('mods.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='viewer'),
        sa.Column('invited_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.UniqueConstraint('mod_id', 'user_id', name='uq_mod_member'),
    )
    op.create_index('ix_mod_members_mod_id', 'mod_members', ['mod_id'])
    op.create_index('ix_mod_members_user_id', 'mod_members', ['user_id'])

    op.create_table(
        'mod_invitations',
        sa.Column('id', sa.Uuid(), primary_key=True, nullable=False),
        *timestamps(),
        sa.Column('mod_id', sa.Uuid(), sa.ForeignKey('mods.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('invited_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('token', sa.String(64), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('mod_id', 'user_id', name='uq_mod_invitation'),
    )
    op.create_index('ix_mod_invitations_token', 'mod_invitations', ['token'], unique=True)

    op.create_table(
        'pages',
        sa.Column('id', sa.Uuid(), primary_key=True, nullable=False),
        *timestamps(),
        *soft_delete(),
        sa.Column('mod_id', sa.Uuid(), sa.ForeignKey('mods.id', ondelete='CASCADE'), nullable=False),
        sa.Column('parent_id', sa.Uuid(), sa.ForeignKey('pages.id', ondelete='CASCADE'), nullable=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(255), nullable=False),
        sa.Column('content', sa.Text(), nullable=False, server_default=''),
        sa.Column('order_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_index', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('published', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('updated_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.UniqueConstraint('mod_id', 'slug', name='uq_page_mod_slug'),
    )
    op.create_index('ix_pages_mod_parent_order', 'pages', ['mod_id', 'parent_id', 'order_index'])
    op.create_index('ix_pages_is_deleted', 'pages', ['is_deleted'])

    op.create_table(
        'files',
        sa.Column('id', sa.Uuid(), primary_key=True, nullable=False),
        *timestamps(),
        *soft_delete(),
        sa.Column('mod_id', sa.Uuid(), sa.ForeignKey('mods.id', ondelete='CASCADE'), nullable=False),
        sa.Column('page_id', sa.Uuid(), sa.ForeignKey('pages.id', ondelete='SET NULL'), nullable=True),
        sa.Column('original_name', sa.String(255), nullable=False),
        sa.Column('filename', sa.String(255), nullable=False),
        sa.Column('path', sa.String(500), nullable=False),
        sa.Column('mime_type', sa.String(255), nullable=False),
        sa.Column('size', sa.BigInteger(), nullable=False),
        sa.Column('storage_driver', sa.String(20), nullable=False),
        sa.Column('url', sa.String(1000), nullable=False),
        sa.Column('uploaded_by', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
    )
    op.create_index('ix_files_mod_created', 'files', ['mod_id', 'created_at'])
    op.create_index('ix_files_page_id', 'files', ['page_id'])
    op.create_index('ix_files_is_deleted', 'files', ['is_deleted'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('files')
    op.drop_table('pages')
    op.drop_table('mod_invitations')
    op.drop_table('mod_members')
    op.drop_table('mods')
    op.drop_index('ix_users_username', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
