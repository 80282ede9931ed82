from __future__ import annotations

from typing import Callable, Iterable, Tuple

import pytest

from tourcore.config import Settings
from tourcore.engine import TourEngine
from tourcore.models import Tour
from tourcore.storage import InMemoryStorage


@pytest.fixture
def engine() -> TourEngine:
    return TourEngine(storage=InMemoryStorage(), settings=Settings())


@pytest.fixture
def make_tour(engine: TourEngine) -> Callable[..., Tour]:
    def _make(
        name: str = "Historic Belgrade",
        price: float = 10.0,
        *,
        guide_id: str = "guide-1",
        published: bool = True,
        key_points: Iterable[Tuple[float, float]] = (),
    ) -> Tour:
        tour = engine.catalog.create_tour(guide_id=guide_id, name=name)
        for index, (lat, lon) in enumerate(key_points, start=1):
            engine.catalog.add_key_point(
                tour.id, guide_id=guide_id, latitude=lat, longitude=lon, name=f"Stop {index}", order=index
            )
        if published:
            engine.catalog.publish_tour(tour.id, guide_id=guide_id, price=price)
        return tour

    return _make


@pytest.fixture
def buy(engine: TourEngine) -> Callable[[str, str], None]:
    def _buy(tourist_id: str, tour_id: str) -> None:
        engine.cart.add_item(tourist_id, tour_id)
        engine.cart.checkout(tourist_id)

    return _buy
