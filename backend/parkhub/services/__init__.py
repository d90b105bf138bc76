from parkhub.services.allocation_service import allocate_spot, ensure_spots, lot_availability, release_spot
from parkhub.services.booking_service import cancel_booking, complete_booking, create_booking, mark_paid, park
from parkhub.services.lift_service import assign_lift, release_lift, update_lift_sensor, update_lift_status

__all__ = [
    "allocate_spot",
    "ensure_spots",
    "lot_availability",
    "release_spot",
    "create_booking",
    "mark_paid",
    "park",
    "complete_booking",
    "cancel_booking",
    "assign_lift",
    "release_lift",
    "update_lift_status",
    "update_lift_sensor",
]
