"""Billing resources schema

Revision ID: 001
Revises: 
Create Date: 2025-12-15 03:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Per-user resource limits; users is owned by the panel
    op.create_table(
        'billingresources_user_resources',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('memory_limit', sa.Integer(), nullable=False, server_default='0', comment='Memory limit in MB'),
        sa.Column('cpu_limit', sa.Integer(), nullable=False, server_default='0', comment='CPU limit in percentage'),
        sa.Column('disk_limit', sa.Integer(), nullable=False, server_default='0', comment='Disk limit in MB'),
        sa.Column('server_limit', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('database_limit', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('backup_limit', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('allocation_limit', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.Column('updated_at', sa.TIMESTAMP(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(
            ['user_id'], ['users.id'],
            name='billingresources_user_resources_user_id_foreign',
            ondelete='CASCADE'
        ),
        sa.UniqueConstraint('user_id', name='uk_billingresources_user'),
        mysql_engine='InnoDB',
        mysql_charset='utf8mb4',
        mysql_collate='utf8mb4_unicode_ci'
    )

    op.create_table(
        'plugin_settings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('namespace', sa.String(100), nullable=False),
        sa.Column('key', sa.String(191), nullable=False),
        sa.Column('value', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.Column('updated_at', sa.TIMESTAMP(), nullable=False, server_default=sa.func.current_timestamp()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('namespace', 'key', name='uk_plugin_setting'),
        mysql_engine='InnoDB',
        mysql_charset='utf8mb4',
        mysql_collate='utf8mb4_unicode_ci'
    )


def downgrade() -> None:
    op.drop_table('plugin_settings')
    op.drop_table('billingresources_user_resources')
