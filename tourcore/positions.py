from __future__ import annotations

import logging
from math import isfinite
from typing import Optional

from .errors import ValidationError
from .models import Position, utcnow
from .storage import InMemoryStorage

logger = logging.getLogger(__name__)


def ensure_coordinates(latitude: float, longitude: float) -> None:
    if not (isfinite(latitude) and -90.0 <= latitude <= 90.0):
        raise ValidationError("latitude must be within [-90, 90]", field="latitude")
    if not (isfinite(longitude) and -180.0 <= longitude <= 180.0):
        raise ValidationError("longitude must be within [-180, 180]", field="longitude")


class PositionTracker:
    """Last known simulated location per tourist. No history is kept."""

    def __init__(self, storage: InMemoryStorage) -> None:
        self._storage = storage

    def set_position(self, tourist_id: str, latitude: float, longitude: float) -> Position:
        if not tourist_id:
            raise ValidationError("tourist_id is required", field="tourist_id")
        ensure_coordinates(latitude, longitude)
        with self._storage.locks.hold(("position", tourist_id)):
            position = Position(tourist_id=tourist_id, latitude=latitude, longitude=longitude, updated_at=utcnow())
            self._storage.save_position(position)
        logger.debug("Position updated", extra={"tourist_id": tourist_id, "lat": latitude, "lon": longitude})
        return position

    def get_position(self, tourist_id: str) -> Optional[Position]:
        return self._storage.get_position(tourist_id)
