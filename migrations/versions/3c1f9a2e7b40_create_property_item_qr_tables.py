"""Create properties, items, qr_codes and qr_scans tables

Revision ID: 3c1f9a2e7b40
Revises:
Create Date: 2026-10-18 09:40:00.000000
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# Revision identifiers
revision: str = "3c1f9a2e7b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# ─────────────────────────────────────────────
# ✅ UPGRADE
# ─────────────────────────────────────────────
def upgrade() -> None:
    op.create_table(
        "properties",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("address", sa.String(length=500), nullable=True),
        sa.Column("property_type", sa.String(length=50), nullable=False, server_default="residential"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_properties_user_id"), "properties", ["user_id"], unique=False)

    op.create_table(
        "items",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("property_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("media_url", sa.String(length=500), nullable=True),
        sa.Column("media_type", sa.String(length=20), nullable=False, server_default="image"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["property_id"], ["properties.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_items_property_id"), "items", ["property_id"], unique=False)

    op.create_table(
        "qr_codes",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("qr_identifier", sa.String(length=255), nullable=False),
        sa.Column("item_reference", sa.String(length=36), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("scan_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_scanned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("image_reference", sa.String(length=255), nullable=True),
        sa.Column("download_url", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("scan_count >= 0", name="ck_qr_codes_scan_count"),
        sa.ForeignKeyConstraint(["item_reference"], ["items.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_qr_codes_qr_identifier"), "qr_codes", ["qr_identifier"], unique=True)
    op.create_index(op.f("ix_qr_codes_item_reference"), "qr_codes", ["item_reference"], unique=False)

    op.create_table(
        "qr_scans",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("qr_code_id", sa.String(length=36), nullable=False),
        sa.Column("qr_identifier", sa.String(length=255), nullable=False),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("scanned_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["qr_code_id"], ["qr_codes.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_qr_scans_qr_code_id"), "qr_scans", ["qr_code_id"], unique=False)
    op.create_index(op.f("ix_qr_scans_qr_identifier"), "qr_scans", ["qr_identifier"], unique=False)


# ─────────────────────────────────────────────
# 🔙 DOWNGRADE
# ─────────────────────────────────────────────
def downgrade() -> None:
    op.drop_index(op.f("ix_qr_scans_qr_identifier"), table_name="qr_scans")
    op.drop_index(op.f("ix_qr_scans_qr_code_id"), table_name="qr_scans")
    op.drop_table("qr_scans")
    op.drop_index(op.f("ix_qr_codes_item_reference"), table_name="qr_codes")
    op.drop_index(op.f("ix_qr_codes_qr_identifier"), table_name="qr_codes")
    op.drop_table("qr_codes")
    op.drop_index(op.f("ix_items_property_id"), table_name="items")
    op.drop_table("items")
    op.drop_index(op.f("ix_properties_user_id"), table_name="properties")
    op.drop_table("properties")
