"""One spot per (lot_id, spot_index). status A = available, O = occupied; version bumps on every claim/release."""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from parkhub.db.base import Base


class ParkingSpot(Base):
    __tablename__ = "parking_spots"

    id = Column(String(32), primary_key=True)
    lot_id = Column(String(32), ForeignKey("parking_lots.id", ondelete="CASCADE"), nullable=False, index=True)
    spot_index = Column(Integer, nullable=False)  # 1-based, <= lot.capacity
    status = Column(String(1), nullable=False, default="A")
    label = Column(String(32), nullable=False)  # lot initial + index, e.g. "A-1"
    version = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (UniqueConstraint("lot_id", "spot_index", name="uq_parking_spots_lot_index"),)
