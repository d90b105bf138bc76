"""
Single source of truth for database tables that exist after migrations (001–002).

Use these names when writing raw SQL (e.g. TRUNCATE). alembic env asserts the registered
models match ALL_TABLE_NAMES.
"""
# All tables that exist in the DB. Must match models and migrations.
ALL_TABLE_NAMES = (
    "parking_lots",
    "parking_spots",
    "lifts",
    "bookings",
)

# Tables cleared when resetting runtime state (bookings only; inventory stays).
# Order matters for FK.
RUNTIME_TABLE_NAMES = ("bookings",)
