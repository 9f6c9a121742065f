"""create users and signing_keys

Revision ID: 4b1d2f6a9c3e
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""
import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = '4b1d2f6a9c3e'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('username', sa.String(length=50), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_users')),
        sa.UniqueConstraint('username', name='uq_users_username'),
    )
    op.create_table(
        'signing_keys',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('secret', sa.String(length=128), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.Column('retired_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_signing_keys')),
    )
    op.create_index(
        'uq_signing_keys_active',
        'signing_keys',
        ['active'],
        unique=True,
        sqlite_where=sa.text('active = 1'),
        postgresql_where=sa.text('active'),
    )


def downgrade():
    op.drop_index('uq_signing_keys_active', table_name='signing_keys')
    op.drop_table('signing_keys')
    op.drop_table('users')
