"""create site_settings and site_schemas

Revision ID: 5c1e9a7d2b40
Revises:
Create Date: 2026-10-18 09:30:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
import sqlmodel

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5c1e9a7d2b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "site_settings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("setting_key", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("setting_value", sa.Text(), nullable=True),
        sa.Column("setting_type", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("setting_category", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("is_public", sa.Boolean(), nullable=False),
        sa.Column("tenant_id", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("theme_id", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_site_settings_setting_key"), "site_settings", ["setting_key"], unique=False)
    op.create_index(op.f("ix_site_settings_setting_category"), "site_settings", ["setting_category"], unique=False)
    op.create_index(op.f("ix_site_settings_tenant_id"), "site_settings", ["tenant_id"], unique=False)
    # NULL-aware uniqueness per (key, tenant, theme)
    op.execute(
        "CREATE UNIQUE INDEX uq_site_settings_key_scope "
        "ON site_settings (setting_key, COALESCE(tenant_id, ''), COALESCE(theme_id, ''))"
    )

    op.create_table(
        "site_schemas",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("schema_key", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("language", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("tenant_id", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("schema_value", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_site_schemas_schema_key"), "site_schemas", ["schema_key"], unique=False)
    op.create_index(op.f("ix_site_schemas_language"), "site_schemas", ["language"], unique=False)
    op.create_index(op.f("ix_site_schemas_tenant_id"), "site_schemas", ["tenant_id"], unique=False)
    op.create_index(
        "uq_site_schemas_key_tenant_language", "site_schemas", ["schema_key", "tenant_id", "language"], unique=True
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("uq_site_schemas_key_tenant_language", table_name="site_schemas")
    op.drop_index(op.f("ix_site_schemas_tenant_id"), table_name="site_schemas")
    op.drop_index(op.f("ix_site_schemas_language"), table_name="site_schemas")
    op.drop_index(op.f("ix_site_schemas_schema_key"), table_name="site_schemas")
    op.drop_table("site_schemas")

    op.drop_index("uq_site_settings_key_scope", table_name="site_settings")
    op.drop_index(op.f("ix_site_settings_tenant_id"), table_name="site_settings")
    op.drop_index(op.f("ix_site_settings_setting_category"), table_name="site_settings")
    op.drop_index(op.f("ix_site_settings_setting_key"), table_name="site_settings")
    op.drop_table("site_settings")
