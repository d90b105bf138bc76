from datetime import timedelta

import pytest

from parkhub.config import Tariff
from parkhub.core.errors import InvalidArgument
from parkhub.services.billing import compute_charge, normalize_vehicle_type
from tests.conftest import T0


@pytest.mark.parametrize(
    "elapsed, vehicle_type, expected",
    [
        (timedelta(hours=2, minutes=15), "CAR", 140),
        (timedelta(minutes=90), "CAR", 80),
        (timedelta(hours=1), "CAR", 50),
        (timedelta(hours=1, seconds=1), "CAR", 80),
        (timedelta(hours=2), "BIKE", 55),
        (timedelta(minutes=20), "BIKE", 25),
    ],
)
def test_tariff_table(elapsed, vehicle_type, expected):
    assert compute_charge(T0, T0 + elapsed, vehicle_type).cost == expected


def test_near_instant_release_bills_base_charge():
    charge = compute_charge(T0, T0 + timedelta(seconds=10), "CAR")
    assert charge.cost == 50
    assert charge.billed == timedelta(minutes=1)
    assert charge.extension_slots == 0


def test_duration_hours_is_rounded():
    charge = compute_charge(T0, T0 + timedelta(hours=2, minutes=15), "car")
    assert charge.duration_hours == 2.25
    assert charge.extension_slots == 3


def test_exit_before_entry_is_rejected():
    with pytest.raises(InvalidArgument):
        compute_charge(T0, T0 - timedelta(minutes=5), "CAR")


def test_naive_timestamps_are_treated_as_utc():
    entry = T0.replace(tzinfo=None)
    assert compute_charge(entry, T0 + timedelta(minutes=90), "CAR").cost == 80


def test_custom_tariffs():
    tariffs = {"CAR": Tariff(100, 10), "BIKE": Tariff(10, 5)}
    assert compute_charge(T0, T0 + timedelta(hours=3), "CAR", tariffs=tariffs).cost == 140


def test_normalize_vehicle_type():
    assert normalize_vehicle_type(" bike ") == "BIKE"
    assert normalize_vehicle_type(None) == "CAR"
    assert normalize_vehicle_type(None, default="BIKE") == "BIKE"
    with pytest.raises(InvalidArgument):
        normalize_vehicle_type("truck")
