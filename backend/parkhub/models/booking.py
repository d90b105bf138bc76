"""
Booking: one vehicle holding one spot from creation until completed/cancelled.

status: payment_pending -> paid -> parked -> completed; cancelled from any active state.
parking_cost is written exactly once, on completion.
Partial unique indexes: one active booking per vehicle and per spot.
"""
from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, String, text
from sqlalchemy.sql import func

from parkhub.db.base import Base

_ACTIVE = text("status IN ('payment_pending', 'paid', 'parked')")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(32), primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    vehicle_number = Column(String(20), nullable=False)
    vehicle_type = Column(String(8), nullable=False, default="CAR")  # CAR | BIKE
    lot_id = Column(String(32), ForeignKey("parking_lots.id", ondelete="CASCADE"), nullable=False, index=True)
    block_code = Column(String(32), nullable=False)
    spot_id = Column(String(32), ForeignKey("parking_spots.id", ondelete="SET NULL"), nullable=True)
    slot_number = Column(String(32), nullable=True)  # spot label at booking time
    floor = Column(String(16), nullable=False, default="2")
    status = Column(String(16), nullable=False, default="payment_pending")
    payment_status = Column(String(16), nullable=False, default="pending")  # pending | paid | failed
    transaction_id = Column(String(128), nullable=True)
    booking_time = Column(DateTime(timezone=True), nullable=False)
    entry_time = Column(DateTime(timezone=True), nullable=True)
    exit_time = Column(DateTime(timezone=True), nullable=True)
    parking_cost = Column(Float, nullable=False, default=0.0)
    duration_hours = Column(Float, nullable=True)
    assigned_lift_id = Column(String(48), nullable=True)
    lift_assigned_at = Column(DateTime(timezone=True), nullable=True)
    lift_released_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_bookings_user_status", "user_id", "status"),
        Index("ix_bookings_lot_status", "lot_id", "status"),
        Index(
            "uq_bookings_active_vehicle",
            "vehicle_number",
            unique=True,
            postgresql_where=_ACTIVE,
            sqlite_where=_ACTIVE,
        ),
        Index(
            "uq_bookings_active_spot",
            "spot_id",
            unique=True,
            postgresql_where=_ACTIVE,
            sqlite_where=_ACTIVE,
        ),
    )
