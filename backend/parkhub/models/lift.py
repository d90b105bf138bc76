"""Vehicle lift in a block. current_booking_id is set only while occupied; unique so one lift per booking."""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from parkhub.db.base import Base


class Lift(Base):
    __tablename__ = "lifts"

    id = Column(String(48), primary_key=True)  # <BLOCK>-LIFT-<n>
    lot_id = Column(String(32), ForeignKey("parking_lots.id", ondelete="CASCADE"), nullable=False, index=True)
    block_code = Column(String(32), nullable=False, index=True)
    lift_number = Column(Integer, nullable=False)
    status = Column(String(16), nullable=False, default="available")  # available | occupied | in_transit | maintenance
    current_booking_id = Column(String(32), nullable=True, unique=True)
    current_vehicle_number = Column(String(20), nullable=True)
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    released_at = Column(DateTime(timezone=True), nullable=True)
    sensor_status = Column(Boolean, nullable=False, default=False)  # True = car present
    floor = Column(String(16), nullable=False, default="Ground")
    last_activity = Column(DateTime(timezone=True), nullable=False)  # fairness: oldest wins
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (UniqueConstraint("block_code", "lift_number", name="uq_lifts_block_number"),)
