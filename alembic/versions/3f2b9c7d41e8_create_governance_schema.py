"""create_governance_schema

Revision ID: 3f2b9c7d41e8
Revises:
Create Date: 2026-10-19 09:12:44.518203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f2b9c7d41e8'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Create the governance schema.

    Creates:
    - users table (principals from the external auth service)
    - tenants table (organizations, unique slug)
    - tenant_memberships table (one row per tenant/user, soft removal, version counter)
    - invitations table (hashed single-use tokens)
    - audit_entries table (append-only, no foreign keys so entries outlive their subjects)
    """
    # 1. Create users table
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('auth_user_id', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_auth_user_id', 'users', ['auth_user_id'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # 2. Create tenants table
    op.create_table(
        'tenants',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=100), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_tenants_slug', 'tenants', ['slug'], unique=True)

    # 3. Create tenant_memberships table
    op.create_table(
        'tenant_memberships',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('role', sa.String(length=18), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('term_start', sa.Date(), nullable=True),
        sa.Column('term_end', sa.Date(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'user_id', name='uq_tenant_user'),
    )
    op.create_index('ix_tenant_memberships_tenant_id', 'tenant_memberships', ['tenant_id'])
    op.create_index('ix_tenant_memberships_user_id', 'tenant_memberships', ['user_id'])

    # 4. Create invitations table
    op.create_table(
        'invitations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('role', sa.String(length=18), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('issued_by', sa.Integer(), nullable=True),
        sa.Column('issued_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('accepted_by', sa.Integer(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('term_start', sa.Date(), nullable=True),
        sa.Column('term_end', sa.Date(), nullable=True),
        sa.CheckConstraint(
            'accepted_at IS NULL OR cancelled_at IS NULL',
            name='ck_invitation_single_terminal_state',
        ),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['issued_by'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['accepted_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token_hash'),
    )
    op.create_index('ix_invitations_tenant_id', 'invitations', ['tenant_id'])
    op.create_index('ix_invitations_tenant_email', 'invitations', ['tenant_id', 'email'])
    # At most one open invitation per (tenant, email)
    op.create_index(
        'uq_invitations_open_tenant_email',
        'invitations',
        ['tenant_id', 'email'],
        unique=True,
        sqlite_where=sa.text('accepted_at IS NULL AND cancelled_at IS NULL'),
        postgresql_where=sa.text('accepted_at IS NULL AND cancelled_at IS NULL'),
    )
    op.create_index('ix_invitations_expires_at', 'invitations', ['expires_at'])

    # 5. Create audit_entries table
    op.create_table(
        'audit_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=True),
        sa.Column('principal_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('resource_type', sa.String(length=64), nullable=False),
        sa.Column('resource_id', sa.String(length=64), nullable=True),
        sa.Column('details', sa.JSON(), nullable=False),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_entries_tenant_id', 'audit_entries', ['tenant_id'])
    op.create_index('ix_audit_entries_principal_id', 'audit_entries', ['principal_id'])
    op.create_index('ix_audit_entries_occurred_at', 'audit_entries', ['occurred_at'])
    op.create_index('ix_audit_entries_resource', 'audit_entries', ['resource_type', 'resource_id'])


def downgrade() -> None:
    """
    Drop the governance schema.

    WARNING: This deletes every organization, membership, invitation and audit entry.
    """
    op.drop_index('ix_audit_entries_resource', table_name='audit_entries')
    op.drop_index('ix_audit_entries_occurred_at', table_name='audit_entries')
    op.drop_index('ix_audit_entries_principal_id', table_name='audit_entries')
    op.drop_index('ix_audit_entries_tenant_id', table_name='audit_entries')
    op.drop_table('audit_entries')

    op.drop_index('ix_invitations_expires_at', table_name='invitations')
    op.drop_index('uq_invitations_open_tenant_email', table_name='invitations')
    op.drop_index('ix_invitations_tenant_email', table_name='invitations')
    op.drop_index('ix_invitations_tenant_id', table_name='invitations')
    op.drop_table('invitations')

    op.drop_index('ix_tenant_memberships_user_id', table_name='tenant_memberships')
    op.drop_index('ix_tenant_memberships_tenant_id', table_name='tenant_memberships')
    op.drop_table('tenant_memberships')

    op.drop_index('ix_tenants_slug', table_name='tenants')
    op.drop_table('tenants')

    op.drop_index('ix_users_email', table_name='users')
    op.drop_index('ix_users_auth_user_id', table_name='users')
    op.drop_table('users')
