"""Vehicles, inspection checklists and per-dealership inspection settings.

Revision ID: b7d3f2a80c15
Revises: 4a1e0c7b9d21
Create Date: 2026-09-14
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "b7d3f2a80c15"
down_revision: Union[str, Sequence[str], None] = "4a1e0c7b9d21"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_DOC = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    bind = op.get_bind()
    insp = inspect(bind)

    if not insp.has_table("vehicles"):
        op.create_table(
            "vehicles",
            sa.Column("id", sa.String(36), primary_key=True, nullable=False),
            sa.Column("dealership_id", sa.String(36), nullable=False),
            sa.Column("vin", sa.String(32), nullable=False),
            sa.Column("year", sa.Integer(), nullable=False),
            sa.Column("make", sa.String(128), nullable=False),
            sa.Column("model", sa.String(128), nullable=False),
            sa.Column("trim", sa.String(128), nullable=True),
            sa.Column("color", sa.String(64), nullable=False),
            sa.Column("mileage", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("price", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
            sa.Column("date_acquired", sa.Date(), nullable=False),
            sa.Column("location_name", sa.Text(), nullable=False),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("inspection_data", JSON_DOC, nullable=False),
            sa.Column("team_notes", JSON_DOC, nullable=False),
            sa.Column("is_sold", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("is_pending", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=False), nullable=False),
            sa.ForeignKeyConstraint(["dealership_id"], ["dealerships.id"], ondelete="CASCADE"),
        )
        op.create_index("idx_vehicles_dealership_id", "vehicles", ["dealership_id"])
        op.create_index("idx_vehicles_vin", "vehicles", ["vin"], unique=True)

    if not insp.has_table("inspection_checklists"):
        op.create_table(
            "inspection_checklists",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("vehicle_id", sa.String(36), nullable=False),
            sa.Column("inspector_id", sa.Integer(), nullable=True),
            sa.Column("checklist_data", JSON_DOC, nullable=False),
            sa.Column("status", sa.String(32), nullable=False, server_default="in-progress"),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("completed_at", sa.DateTime(timezone=False), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=False), nullable=False),
            sa.ForeignKeyConstraint(["vehicle_id"], ["vehicles.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["inspector_id"], ["users.id"], ondelete="SET NULL"),
        )
        op.create_index("idx_inspection_checklists_vehicle_id", "inspection_checklists", ["vehicle_id"], unique=True)
        op.create_index("idx_inspection_checklists_status", "inspection_checklists", ["status"])

    if not insp.has_table("inspection_settings"):
        op.create_table(
            "inspection_settings",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("dealership_id", sa.String(36), nullable=False),
            sa.Column("settings", JSON_DOC, nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=False), nullable=False),
            sa.ForeignKeyConstraint(["dealership_id"], ["dealerships.id"], ondelete="CASCADE"),
        )
        op.create_index("idx_inspection_settings_dealership_id", "inspection_settings", ["dealership_id"], unique=True)


def downgrade() -> None:
    op.drop_index("idx_inspection_settings_dealership_id", table_name="inspection_settings")
    op.drop_table("inspection_settings")
    op.drop_index("idx_inspection_checklists_status", table_name="inspection_checklists")
    op.drop_index("idx_inspection_checklists_vehicle_id", table_name="inspection_checklists")
    op.drop_table("inspection_checklists")
    op.drop_index("idx_vehicles_vin", table_name="vehicles")
    op.drop_index("idx_vehicles_dealership_id", table_name="vehicles")
    op.drop_table("vehicles")
