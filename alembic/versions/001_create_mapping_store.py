"""create_mapping_store

Revision ID: 001
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not inspector.has_table('mapping_tools'):
        op.create_table('mapping_tools',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('domain', sa.String(length=255), nullable=False),
        sa.Column('page_type', sa.String(length=64), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('config', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('domain', 'page_type', 'version', name='uq_mapping_tools_domain_type_version')
        )
        op.create_index(op.f('ix_mapping_tools_id'), 'mapping_tools', ['id'], unique=False)
        op.create_index('ix_mapping_tools_domain_type', 'mapping_tools', ['domain', 'page_type'], unique=False)

    if not inspector.has_table('mapping_table_settings'):
        op.create_table('mapping_table_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('domain', sa.String(length=255), nullable=False),
        sa.Column('page_type', sa.String(length=64), nullable=False),
        sa.Column('table_name', sa.String(length=128), nullable=False),
        sa.Column('settings', sa.JSON(), nullable=True),
        sa.Column('mapping', sa.JSON(), nullable=True),
        sa.Column('columns', sa.JSON(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('domain', 'page_type', 'table_name', name='uq_table_settings_domain_type_table')
        )
        op.create_index(op.f('ix_mapping_table_settings_id'), 'mapping_table_settings', ['id'], unique=False)
        op.create_index(op.f('ix_mapping_table_settings_domain'), 'mapping_table_settings', ['domain'], unique=False)

    if not inspector.has_table('db_profiles'):
        op.create_table('db_profiles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('host', sa.String(length=255), nullable=False),
        sa.Column('port', sa.Integer(), nullable=False),
        sa.Column('database', sa.String(length=255), nullable=False),
        sa.Column('user', sa.String(length=255), nullable=False),
        sa.Column('password', sa.String(length=255), nullable=False),
        sa.Column('ssl', sa.Boolean(), nullable=True),
        sa.Column('driver', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_db_profiles_id'), 'db_profiles', ['id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    for table in ('db_profiles', 'mapping_table_settings', 'mapping_tools'):
        if inspector.has_table(table):
            op.drop_table(table)
