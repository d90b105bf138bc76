"""bookings + partial unique indexes (one active booking per vehicle and per spot)."""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_ACTIVE = sa.text("status IN ('payment_pending', 'paid', 'parked')")


def upgrade() -> None:
    op.create_table(
        "bookings",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("vehicle_number", sa.String(20), nullable=False),
        sa.Column("vehicle_type", sa.String(8), nullable=False, server_default="CAR"),
        sa.Column("lot_id", sa.String(32), sa.ForeignKey("parking_lots.id", ondelete="CASCADE"), nullable=False),
        sa.Column("block_code", sa.String(32), nullable=False),
        sa.Column("spot_id", sa.String(32), sa.ForeignKey("parking_spots.id", ondelete="SET NULL"), nullable=True),
        sa.Column("slot_number", sa.String(32), nullable=True),
        sa.Column("floor", sa.String(16), nullable=False, server_default="2"),
        sa.Column("status", sa.String(16), nullable=False, server_default="payment_pending"),
        sa.Column("payment_status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("transaction_id", sa.String(128), nullable=True),
        sa.Column("booking_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("entry_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("exit_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("parking_cost", sa.Float(), nullable=False, server_default="0"),
        sa.Column("duration_hours", sa.Float(), nullable=True),
        sa.Column("assigned_lift_id", sa.String(48), nullable=True),
        sa.Column("lift_assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("lift_released_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_lot_id", "bookings", ["lot_id"])
    op.create_index("ix_bookings_user_status", "bookings", ["user_id", "status"])
    op.create_index("ix_bookings_lot_status", "bookings", ["lot_id", "status"])
    op.create_index(
        "uq_bookings_active_vehicle", "bookings", ["vehicle_number"], unique=True,
        postgresql_where=_ACTIVE, sqlite_where=_ACTIVE,
    )
    op.create_index(
        "uq_bookings_active_spot", "bookings", ["spot_id"], unique=True,
        postgresql_where=_ACTIVE, sqlite_where=_ACTIVE,
    )


def downgrade() -> None:
    op.drop_index("uq_bookings_active_spot", table_name="bookings")
    op.drop_index("uq_bookings_active_vehicle", table_name="bookings")
    op.drop_index("ix_bookings_lot_status", table_name="bookings")
    op.drop_index("ix_bookings_user_status", table_name="bookings")
    op.drop_index("ix_bookings_lot_id", table_name="bookings")
    op.drop_index("ix_bookings_user_id", table_name="bookings")
    op.drop_table("bookings")
