from parkhub.models.booking import Booking
from parkhub.models.lift import Lift
from parkhub.models.parking_lot import ParkingLot
from parkhub.models.parking_spot import ParkingSpot

__all__ = [
    "Booking",
    "Lift",
    "ParkingLot",
    "ParkingSpot",
]
