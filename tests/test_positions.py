from __future__ import annotations

import math

import pytest

from tourcore.errors import ValidationError
from tourcore.positions import PositionTracker
from tourcore.storage import InMemoryStorage


@pytest.fixture
def tracker() -> PositionTracker:
    return PositionTracker(InMemoryStorage())


def test_unknown_tourist_has_no_position(tracker: PositionTracker) -> None:
    assert tracker.get_position("tourist-1") is None


def test_set_position_overwrites_previous_value(tracker: PositionTracker) -> None:
    first = tracker.set_position("tourist-1", 44.8176, 20.4569)
    second = tracker.set_position("tourist-1", 45.0, 21.0)

    current = tracker.get_position("tourist-1")
    assert current == second
    assert (current.latitude, current.longitude) == (45.0, 21.0)
    assert current.updated_at >= first.updated_at


@pytest.mark.parametrize("lat, lon", [(90.0, 180.0), (-90.0, -180.0), (0.0, 0.0)])
def test_boundary_coordinates_are_accepted(tracker: PositionTracker, lat: float, lon: float) -> None:
    position = tracker.set_position("tourist-1", lat, lon)
    assert (position.latitude, position.longitude) == (lat, lon)


@pytest.mark.parametrize(
    "lat, lon, field",
    [
        (90.5, 0.0, "latitude"),
        (-91.0, 0.0, "latitude"),
        (0.0, 180.1, "longitude"),
        (0.0, -200.0, "longitude"),
        (math.nan, 0.0, "latitude"),
        (0.0, math.inf, "longitude"),
    ],
)
def test_invalid_coordinates_are_rejected_without_mutation(
    tracker: PositionTracker, lat: float, lon: float, field: str
) -> None:
    tracker.set_position("tourist-1", 10.0, 10.0)

    with pytest.raises(ValidationError) as exc_info:
        tracker.set_position("tourist-1", lat, lon)

    assert exc_info.value.field == field
    current = tracker.get_position("tourist-1")
    assert (current.latitude, current.longitude) == (10.0, 10.0)


def test_missing_tourist_id_is_rejected(tracker: PositionTracker) -> None:
    with pytest.raises(ValidationError):
        tracker.set_position("", 10.0, 10.0)
