"""initial authorization tables

Revision ID: 0001_initial_authz
Revises: 
Create Date: 2026-10-18
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_initial_authz'
down_revision = None
branch_labels = None
depends_on = None


def _updated_at():
    return sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'))


def upgrade():
    op.create_table('locations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False, unique=True),
        sa.Column('parent_id', sa.Integer(), sa.ForeignKey('locations.id', ondelete='SET NULL'), nullable=True),
        sa.Column('is_standalone', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        _updated_at(),
    )
    op.create_index('ix_locations_code', 'locations', ['code'])
    op.create_index('ix_locations_parent_id', 'locations', ['parent_id'])

    op.create_table('legacy_permissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('codename', sa.String(length=96), nullable=False, unique=True),
        sa.Column('app_label', sa.String(length=32), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False, server_default=''),
        _updated_at(),
    )
    op.create_index('ix_legacy_permissions_codename', 'legacy_permissions', ['codename'])

    op.create_table('groups',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=64), nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=True),
        _updated_at(),
    )

    op.create_table('group_permissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('group_id', sa.Integer(), sa.ForeignKey('groups.id', ondelete='CASCADE'), nullable=False),
        sa.Column('permission_id', sa.Integer(), sa.ForeignKey('legacy_permissions.id', ondelete='CASCADE'), nullable=False)
    )
    # unique constraint handled via batch for sqlite
    with op.batch_alter_table('group_permissions') as batch_op:
        batch_op.create_unique_constraint('uq_group_permission', ['group_id', 'permission_id'])

    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=128), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('is_superuser', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('role', sa.String(length=32), nullable=True),
        sa.Column('responsible_location_id', sa.Integer(), sa.ForeignKey('locations.id', ondelete='SET NULL'), nullable=True),
        sa.Column('is_main_store_incharge', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('locale', sa.String(length=8), nullable=False, server_default='en'),
        _updated_at(),
    )
    op.create_index('ix_users_email', 'users', ['email'])

    op.create_table('user_groups',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('group_id', sa.Integer(), sa.ForeignKey('groups.id', ondelete='CASCADE'), nullable=False)
    )
    with op.batch_alter_table('user_groups') as batch_op:
        batch_op.create_unique_constraint('uq_user_group', ['user_id', 'group_id'])

    op.create_table('user_permissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('permission_id', sa.Integer(), sa.ForeignKey('legacy_permissions.id', ondelete='CASCADE'), nullable=False)
    )
    with op.batch_alter_table('user_permissions') as batch_op:
        batch_op.create_unique_constraint('uq_user_permission', ['user_id', 'permission_id'])

    op.create_table('custom_roles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('location_id', sa.Integer(), sa.ForeignKey('locations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('requires_base_role', sa.String(length=32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('created_by', sa.Integer(), nullable=True),
        _updated_at(),
    )
    op.create_index('ix_custom_roles_location_id', 'custom_roles', ['location_id'])
    op.create_index('ix_custom_roles_is_active', 'custom_roles', ['is_active'])

    op.create_table('custom_role_permissions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('custom_role_id', sa.Integer(), sa.ForeignKey('custom_roles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('permission_key', sa.String(length=64), nullable=False)
    )
    with op.batch_alter_table('custom_role_permissions') as batch_op:
        batch_op.create_unique_constraint('uq_custom_role_permission', ['custom_role_id', 'permission_key'])

    op.create_table('user_custom_roles',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('custom_role_id', sa.Integer(), sa.ForeignKey('custom_roles.id', ondelete='CASCADE'), nullable=False)
    )
    with op.batch_alter_table('user_custom_roles') as batch_op:
        batch_op.create_unique_constraint('uq_user_custom_role', ['user_id', 'custom_role_id'])

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_user_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('entity', sa.String(length=64)),
        sa.Column('entity_id', sa.String(length=64)),
        sa.Column('facts_snapshot', sa.JSON(), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'))
    )
    op.create_index('ix_audit_actor', 'audit_logs', ['actor_user_id'])
    op.create_index('ix_audit_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_entity', 'audit_logs', ['entity', 'entity_id'])


def downgrade():
    for tbl in [
        'audit_logs', 'user_custom_roles', 'custom_role_permissions', 'custom_roles',
        'user_permissions', 'user_groups', 'users', 'group_permissions', 'groups',
        'legacy_permissions', 'locations',
    ]:
        op.drop_table(tbl)
