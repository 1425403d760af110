"""Initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

Tables:
  - users: Deployment owners and their API key credentials
  - deployments: Deployment records and their lifecycle state
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    schema = 'code_deployer'

    # =========================================================================
    # 1. users
    # =========================================================================
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=False, server_default=''),
        sa.Column('api_key_prefix', sa.String(16), nullable=True),
        sa.Column('api_key_hash', sa.String(255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('last_used_at', sa.DateTime(), nullable=True),
        schema=schema,
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True, schema=schema)
    op.create_index('ix_users_api_key_prefix', 'users', ['api_key_prefix'], unique=True, schema=schema)

    # =========================================================================
    # 2. deployments
    # =========================================================================
    op.create_table(
        'deployments',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('project_name', sa.String(255), nullable=False),
        sa.Column('platform', sa.String(20), nullable=False),
        sa.Column('source_type', sa.String(20), nullable=False),
        sa.Column('source_url', sa.String(2048), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('preview_url', sa.String(500), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(
            ['user_id'], [f'{schema}.users.id'],
            name='deployments_user_id_fkey', ondelete='CASCADE',
        ),
        sa.CheckConstraint("platform IN ('vercel', 'netlify')", name='ck_deployments_platform'),
        sa.CheckConstraint("source_type IN ('upload', 'repository')", name='ck_deployments_source_type'),
        sa.CheckConstraint(
            "status IN ('pending', 'in_progress', 'success', 'failed')",
            name='ck_deployments_status',
        ),
        sa.CheckConstraint(
            "(preview_url IS NOT NULL) = (status = 'success')",
            name='ck_deployments_preview_url',
        ),
        sa.CheckConstraint(
            "(error_message IS NOT NULL) = (status = 'failed')",
            name='ck_deployments_error_message',
        ),
        schema=schema,
    )
    op.create_index('ix_deployments_user_id', 'deployments', ['user_id'], schema=schema)
    op.create_index('ix_deployments_platform', 'deployments', ['platform'], schema=schema)
    op.create_index('ix_deployments_status', 'deployments', ['status'], schema=schema)
    op.create_index('ix_deployments_created_at', 'deployments', ['created_at'], schema=schema)
    op.create_index('ix_deployments_user_created', 'deployments', ['user_id', 'created_at'], schema=schema)


def downgrade() -> None:
    schema = 'code_deployer'

    # Drop in reverse dependency order
    op.drop_table('deployments', schema=schema)
    op.drop_table('users', schema=schema)
