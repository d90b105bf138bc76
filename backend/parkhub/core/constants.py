"""
Centralized domain constants (Encapsulate What Changes).

Status values are stored as-is in the database; change them here and in a migration together.
Site layout and tariffs are env-driven (see parkhub.config), not constants.
"""
import re

# Spot status (single-letter codes, as stored)
SPOT_AVAILABLE = "A"
SPOT_OCCUPIED = "O"

# Booking lifecycle
BOOKING_PAYMENT_PENDING = "payment_pending"
BOOKING_PAID = "paid"
BOOKING_PARKED = "parked"
BOOKING_COMPLETED = "completed"
BOOKING_CANCELLED = "cancelled"
BOOKING_STATUSES = (
    BOOKING_PAYMENT_PENDING,
    BOOKING_PAID,
    BOOKING_PARKED,
    BOOKING_COMPLETED,
    BOOKING_CANCELLED,
)
# A booking in one of these holds a spot (and possibly a lift)
ACTIVE_BOOKING_STATUSES = (BOOKING_PAYMENT_PENDING, BOOKING_PAID, BOOKING_PARKED)

PAYMENT_PENDING = "pending"
PAYMENT_PAID = "paid"
PAYMENT_FAILED = "failed"

# Lift status
LIFT_AVAILABLE = "available"
LIFT_OCCUPIED = "occupied"
LIFT_IN_TRANSIT = "in_transit"
LIFT_MAINTENANCE = "maintenance"
LIFT_STATUSES = (LIFT_AVAILABLE, LIFT_OCCUPIED, LIFT_IN_TRANSIT, LIFT_MAINTENANCE)
LIFT_DEFAULT_FLOOR = "Ground"

VEHICLE_CAR = "CAR"
VEHICLE_BIKE = "BIKE"
VEHICLE_TYPES = (VEHICLE_CAR, VEHICLE_BIKE)

DEFAULT_FLOOR = "2"

# Indian registration plates, e.g. KA01AB1234 / DL3CAF0001
VEHICLE_NUMBER_RE = re.compile(r"^[A-Z]{2}\d{1,2}[A-Z]{1,2}\d{4}$")

# Claim loop bound: retries after a lost compare-and-set before giving up
MAX_CLAIM_ATTEMPTS = 64

# Listing caps so responses stay bounded
BOOKINGS_LIST_LIMIT = 500

# parking_lots.block_code column width
BLOCK_CODE_MAX_LEN = 32
