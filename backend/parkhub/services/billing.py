"""
Parking cost on exit.

cost = base + ceil(max(0, hours - 1) * 2) * extension_rate

The base charge covers the first hour; every started half hour after that costs one extension.
Elapsed time is clamped to min_billed_minutes (default 1) so a near-instant release still bills
the base charge. Exit before entry is rejected, never clamped.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta

from parkhub.config import Tariff, get_tariffs, settings
from parkhub.core.constants import VEHICLE_TYPES
from parkhub.core.errors import InvalidArgument
from parkhub.core.timeutil import as_utc

FIRST_HOUR = timedelta(hours=1)
HALF_HOUR = timedelta(minutes=30)


@dataclass(frozen=True)
class Charge:
    cost: int
    duration_hours: float
    billed: timedelta
    extension_slots: int


def normalize_vehicle_type(vehicle_type: str | None, default: str = "CAR") -> str:
    vt = (vehicle_type or default).strip().upper()
    if vt not in VEHICLE_TYPES:
        raise InvalidArgument(f"vehicle_type must be one of {', '.join(VEHICLE_TYPES)}", vehicle_type=vehicle_type)
    return vt


def compute_charge(
    entry_time: datetime,
    exit_time: datetime,
    vehicle_type: str,
    tariffs: dict[str, Tariff] | None = None,
    min_billed_minutes: int | None = None,
) -> Charge:
    entry, exit_ = as_utc(entry_time), as_utc(exit_time)
    if exit_ < entry:
        raise InvalidArgument("exit_time is before entry_time", entry_time=entry.isoformat(), exit_time=exit_.isoformat())
    tariff = (tariffs or get_tariffs())[normalize_vehicle_type(vehicle_type)]
    floor_minutes = settings.min_billed_minutes if min_billed_minutes is None else min_billed_minutes
    billed = max(exit_ - entry, timedelta(minutes=floor_minutes))
    extra = max(billed - FIRST_HOUR, timedelta(0))
    # ceil on timedeltas: no float rounding at half-hour boundaries
    slots = -(-extra // HALF_HOUR)
    return Charge(
        cost=tariff.base_charge + slots * tariff.extension_rate,
        duration_hours=round(billed.total_seconds() / 3600, 2),
        billed=billed,
        extension_slots=slots,
    )
