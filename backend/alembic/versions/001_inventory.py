"""parking_lots, parking_spots (unique lot+index) and lifts (unique current booking)

Revision ID: 001
Revises:
Create Date: (run alembic upgrade head)

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "parking_lots",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("block_code", sa.String(32), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("address", sa.String(255), nullable=True),
        sa.Column("pin_code", sa.String(10), nullable=True),
        sa.Column("price_per_hour", sa.Float(), nullable=False, server_default="0"),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("capacity >= 0", name="ck_parking_lots_capacity"),
        sa.CheckConstraint("price_per_hour >= 0", name="ck_parking_lots_price"),
    )
    op.create_index("ix_parking_lots_block_code", "parking_lots", ["block_code"], unique=True)

    # One row per (lot, index); lazy fill relies on this constraint for idempotence.
    op.create_table(
        "parking_spots",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("lot_id", sa.String(32), sa.ForeignKey("parking_lots.id", ondelete="CASCADE"), nullable=False),
        sa.Column("spot_index", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(1), nullable=False, server_default="A"),
        sa.Column("label", sa.String(32), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("lot_id", "spot_index", name="uq_parking_spots_lot_index"),
    )
    op.create_index("ix_parking_spots_lot_id", "parking_spots", ["lot_id"])

    op.create_table(
        "lifts",
        sa.Column("id", sa.String(48), primary_key=True),
        sa.Column("lot_id", sa.String(32), sa.ForeignKey("parking_lots.id", ondelete="CASCADE"), nullable=False),
        sa.Column("block_code", sa.String(32), nullable=False),
        sa.Column("lift_number", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="available"),
        sa.Column("current_booking_id", sa.String(32), nullable=True, unique=True),
        sa.Column("current_vehicle_number", sa.String(20), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("released_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sensor_status", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("floor", sa.String(16), nullable=False, server_default="Ground"),
        sa.Column("last_activity", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("block_code", "lift_number", name="uq_lifts_block_number"),
    )
    op.create_index("ix_lifts_lot_id", "lifts", ["lot_id"])
    op.create_index("ix_lifts_block_code", "lifts", ["block_code"])


def downgrade() -> None:
    op.drop_index("ix_lifts_block_code", table_name="lifts")
    op.drop_index("ix_lifts_lot_id", table_name="lifts")
    op.drop_table("lifts")
    op.drop_index("ix_parking_spots_lot_id", table_name="parking_spots")
    op.drop_table("parking_spots")
    op.drop_index("ix_parking_lots_block_code", table_name="parking_lots")
    op.drop_table("parking_lots")
