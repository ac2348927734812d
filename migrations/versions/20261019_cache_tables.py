"""cache tables

Revision ID: 20261019_cache_tables
Revises: None
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_cache_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "cache_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("cache_key", sa.String(length=512), nullable=False),
        sa.Column("cache_data", sa.Text(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_cache_entries_id", "cache_entries", ["id"])
    op.create_index("ix_cache_entries_cache_key", "cache_entries", ["cache_key"], unique=True)
    op.create_index("ix_cache_entries_expires_at", "cache_entries", ["expires_at"])

    op.create_table(
        "cache_entry_dependencies",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("cache_key", sa.String(length=512), nullable=False),
        sa.Column("dependency_type", sa.String(length=32), nullable=False),
        sa.Column("dependency_id", sa.String(length=255), nullable=False),
    )
    op.create_index("ix_cache_entry_dependencies_id", "cache_entry_dependencies", ["id"])
    op.create_index(
        "ix_cache_entry_dependencies_cache_key", "cache_entry_dependencies", ["cache_key"]
    )
    op.create_index(
        "ix_cache_entry_dependencies_dependency",
        "cache_entry_dependencies",
        ["dependency_type", "dependency_id"],
    )

    op.create_table(
        "cache_config",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("cache_key", sa.String(length=512), nullable=False),
        sa.Column("ttl_minutes", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_cache_config_id", "cache_config", ["id"])
    op.create_index("ix_cache_config_cache_key", "cache_config", ["cache_key"], unique=True)


def downgrade():
    op.drop_index("ix_cache_config_cache_key", table_name="cache_config")
    op.drop_index("ix_cache_config_id", table_name="cache_config")
    op.drop_table("cache_config")

    op.drop_index("ix_cache_entry_dependencies_dependency", table_name="cache_entry_dependencies")
    op.drop_index("ix_cache_entry_dependencies_cache_key", table_name="cache_entry_dependencies")
    op.drop_index("ix_cache_entry_dependencies_id", table_name="cache_entry_dependencies")
    op.drop_table("cache_entry_dependencies")

    op.drop_index("ix_cache_entries_expires_at", table_name="cache_entries")
    op.drop_index("ix_cache_entries_cache_key", table_name="cache_entries")
    op.drop_index("ix_cache_entries_id", table_name="cache_entries")
    op.drop_table("cache_entries")
