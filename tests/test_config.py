from __future__ import annotations

import pydantic
import pytest

from tourcore.config import Settings, load_settings
from tourcore.engine import TourEngine
from tourcore.storage import InMemoryStorage


def test_defaults() -> None:
    settings = Settings()

    assert settings.proximity_threshold_m == 50.0
    assert settings.preview_key_points == 1
    assert settings.log_level == "INFO"


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TOURCORE_PROXIMITY_THRESHOLD_M", "75")
    monkeypatch.setenv("TOURCORE_PREVIEW_KEY_POINTS", "0")
    monkeypatch.setenv("TOURCORE_LOG_LEVEL", "debug")

    settings = load_settings()

    assert settings.proximity_threshold_m == 75.0
    assert settings.preview_key_points == 0
    assert settings.log_level == "debug"


def test_invalid_threshold_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TOURCORE_PROXIMITY_THRESHOLD_M", "-5")

    with pytest.raises(pydantic.ValidationError):
        load_settings()


def test_engine_uses_configured_threshold() -> None:
    engine = TourEngine(storage=InMemoryStorage(), settings=Settings(proximity_threshold_m=100.0))
    tour = engine.catalog.create_tour(guide_id="guide-1", name="Fortress")
    engine.catalog.add_key_point(tour.id, guide_id="guide-1", latitude=44.8240, longitude=20.4500, name="Gate")
    engine.catalog.publish_tour(tour.id, guide_id="guide-1", price=5.0)
    engine.add_to_cart("tourist-1", tour.id)
    engine.checkout("tourist-1")
    engine.set_position("tourist-1", 44.8232, 20.4500)
    execution = engine.start_execution("tourist-1", tour.id).payload

    # About 89 m away: outside the default threshold, inside this one.
    result = engine.check_proximity(execution.id, "tourist-1", 44.8232, 20.4500)

    assert result.payload.near_key_point is True
