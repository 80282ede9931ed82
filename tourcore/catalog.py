from __future__ import annotations

import logging
from typing import List, Optional
from uuid import uuid4

from .errors import ForbiddenError, NotFoundError, ValidationError
from .models import KeyPoint, Tour
from .positions import ensure_coordinates
from .storage import InMemoryStorage

logger = logging.getLogger(__name__)


class TourCatalog:
    """Tour and key point catalog.

    The execution and commerce services only read from it (``get_tour`` and
    ``get_key_points``); the authoring calls exist so tours can be created and
    published in the first place.
    """

    def __init__(self, storage: InMemoryStorage) -> None:
        self._storage = storage

    def get_tour(self, tour_id: str) -> Optional[Tour]:
        return self._storage.get_tour(tour_id)

    def require_tour(self, tour_id: str) -> Tour:
        tour = self._storage.get_tour(tour_id)
        if not tour:
            raise NotFoundError("tour not found")
        return tour

    def get_key_points(self, tour_id: str) -> List[KeyPoint]:
        key_points = self._storage.list_key_points(tour_id)
        key_points.sort(key=lambda kp: (kp.order, kp.id))
        return key_points

    def list_tours(self, *, published_only: bool = True, guide_id: Optional[str] = None) -> List[Tour]:
        tours = self._storage.list_tours()
        if guide_id:
            tours = [tour for tour in tours if tour.guide_id == guide_id]
        elif published_only:
            tours = [tour for tour in tours if tour.is_published]
        tours.sort(key=lambda t: t.created_at)
        return tours

    def create_tour(
        self,
        *,
        guide_id: str,
        name: str,
        description: str = "",
        difficulty: str = "",
        tags: Optional[List[str]] = None,
    ) -> Tour:
        if not name.strip():
            raise ValidationError("tour name is required", field="name")
        tour = Tour(
            id=f"tour_{uuid4().hex[:12]}",
            guide_id=guide_id,
            name=name,
            description=description,
            difficulty=difficulty,
            tags=list(tags or []),
        )
        self._storage.save_tour(tour)
        logger.info("Tour created", extra={"tour_id": tour.id, "guide_id": guide_id})
        return tour

    def publish_tour(self, tour_id: str, *, guide_id: str, price: float) -> Tour:
        if price < 0:
            raise ValidationError("price must not be negative", field="price")
        with self._storage.locks.hold(("tour", tour_id)):
            tour = self._require_owned(tour_id, guide_id)
            tour.publish(price)
            self._storage.save_tour(tour)
        logger.info("Tour published", extra={"tour_id": tour_id, "price": price})
        return tour

    def unpublish_tour(self, tour_id: str, *, guide_id: str) -> Tour:
        """Withdraw a tour from sale. Purchase tokens already granted stay valid."""
        with self._storage.locks.hold(("tour", tour_id)):
            tour = self._require_owned(tour_id, guide_id)
            tour.unpublish()
            self._storage.save_tour(tour)
        logger.info("Tour unpublished", extra={"tour_id": tour_id})
        return tour

    def add_key_point(
        self,
        tour_id: str,
        *,
        guide_id: str,
        latitude: float,
        longitude: float,
        name: str,
        description: str = "",
        image: str = "",
        order: int = 0,
    ) -> KeyPoint:
        ensure_coordinates(latitude, longitude)
        self._require_owned(tour_id, guide_id)
        key_point = KeyPoint(
            id=f"kp_{uuid4().hex[:12]}",
            tour_id=tour_id,
            latitude=latitude,
            longitude=longitude,
            name=name,
            description=description,
            image=image,
            order=order,
        )
        self._storage.add_key_point(key_point)
        logger.info("Key point added", extra={"tour_id": tour_id, "key_point_id": key_point.id})
        return key_point

    def _require_owned(self, tour_id: str, guide_id: str) -> Tour:
        tour = self.require_tour(tour_id)
        if tour.guide_id != guide_id:
            raise ForbiddenError("you don't own this tour")
        return tour
