from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TourStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class ExecutionStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


@dataclass
class Tour:
    id: str
    guide_id: str
    name: str
    description: str = ""
    difficulty: str = ""
    tags: List[str] = field(default_factory=list)
    price: float = 0.0
    is_published: bool = False
    status: TourStatus = TourStatus.DRAFT
    published_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)

    def publish(self, price: float) -> None:
        self.price = price
        self.is_published = True
        self.status = TourStatus.PUBLISHED
        self.published_at = utcnow()

    def unpublish(self) -> None:
        self.is_published = False
        self.status = TourStatus.DRAFT


@dataclass
class KeyPoint:
    id: str
    tour_id: str
    latitude: float
    longitude: float
    name: str
    description: str = ""
    image: str = ""
    order: int = 0


@dataclass
class CartItem:
    tour_id: str
    tour_name: str
    price: float


@dataclass
class ShoppingCart:
    tourist_id: str
    items: Dict[str, CartItem] = field(default_factory=dict)

    @property
    def total_price(self) -> float:
        return sum(item.price for item in self.items.values())

    def put(self, item: CartItem) -> None:
        self.items[item.tour_id] = item

    def discard(self, tour_id: str) -> bool:
        return self.items.pop(tour_id, None) is not None

    def snapshot(self) -> "ShoppingCart":
        return ShoppingCart(
            tourist_id=self.tourist_id,
            items={tour_id: replace(item) for tour_id, item in self.items.items()},
        )


@dataclass(frozen=True)
class PurchaseToken:
    tourist_id: str
    tour_id: str
    token: str
    purchased_at: datetime


@dataclass(frozen=True)
class Position:
    tourist_id: str
    latitude: float
    longitude: float
    updated_at: datetime


@dataclass(frozen=True)
class CompletedKeyPoint:
    key_point_id: str
    completed_at: datetime


@dataclass
class TourExecution:
    id: str
    tourist_id: str
    tour_id: str
    start_position: Position
    status: ExecutionStatus = ExecutionStatus.ACTIVE
    started_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    last_activity_at: datetime = field(default_factory=utcnow)
    completed_key_points: Dict[str, CompletedKeyPoint] = field(default_factory=dict)

    @property
    def is_active(self) -> bool:
        return self.status == ExecutionStatus.ACTIVE

    def has_completed(self, key_point_id: str) -> bool:
        return key_point_id in self.completed_key_points

    def record_key_point(self, key_point_id: str, at: datetime) -> bool:
        """Record a visited key point; returns False if it was already recorded."""
        if key_point_id in self.completed_key_points:
            return False
        self.completed_key_points[key_point_id] = CompletedKeyPoint(key_point_id=key_point_id, completed_at=at)
        self.last_activity_at = at
        return True

    def touch(self, at: datetime) -> None:
        self.last_activity_at = at

    def finish(self, status: ExecutionStatus, at: datetime) -> None:
        self.status = status
        self.completed_at = at
        self.last_activity_at = at

    def snapshot(self) -> "TourExecution":
        return replace(self, completed_key_points=dict(self.completed_key_points))


@dataclass
class CheckoutResult:
    tokens: List[PurchaseToken]
    failed_items: List[CartItem]
    cart: ShoppingCart

    @property
    def complete(self) -> bool:
        return not self.failed_items


@dataclass
class ProximityResult:
    near_key_point: bool
    nearby_key_point: Optional[KeyPoint] = None
    distance_m: Optional[float] = None
    completed_count: int = 0
    total_key_points: int = 0


@dataclass
class KeyPointsView:
    tour_id: str
    key_points: List[KeyPoint]
    is_purchased: bool
    is_owner: bool
    total_key_points: int
