"""Parking lot (= block in a multi-block garage). Capacity is the max number of spots; spots are filled lazily."""
from sqlalchemy import CheckConstraint, Column, DateTime, Float, Integer, String
from sqlalchemy.sql import func

from parkhub.db.base import Base


class ParkingLot(Base):
    __tablename__ = "parking_lots"

    id = Column(String(32), primary_key=True)
    block_code = Column(String(32), nullable=False, unique=True, index=True)  # e.g. BLOCK-A (upper-case)
    name = Column(String(100), nullable=False)
    address = Column(String(255), nullable=True)
    pin_code = Column(String(10), nullable=True)
    price_per_hour = Column(Float, nullable=False, default=0.0)
    capacity = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("capacity >= 0", name="ck_parking_lots_capacity"),
        CheckConstraint("price_per_hour >= 0", name="ck_parking_lots_price"),
    )
