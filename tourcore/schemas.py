from __future__ import annotations

from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

from .models import (
    CartItem,
    CheckoutResult,
    KeyPoint,
    KeyPointsView,
    Position,
    ProximityResult,
    PurchaseToken,
    ShoppingCart,
    Tour,
    TourExecution,
)

DataT = TypeVar("DataT")


class ApiResponse(BaseModel, Generic[DataT]):
    success: bool
    message: str
    code: Optional[str] = None
    field: Optional[str] = None
    data: Optional[DataT] = None


# requests


class TourCreateRequest(BaseModel):
    guide_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: str = ""
    difficulty: str = ""
    tags: List[str] = Field(default_factory=list)


class PublishTourRequest(BaseModel):
    guide_id: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)


class GuideRequest(BaseModel):
    guide_id: str = Field(..., min_length=1)


class KeyPointCreateRequest(BaseModel):
    guide_id: str = Field(..., min_length=1)
    latitude: float
    longitude: float
    name: str = Field(..., min_length=1)
    description: str = ""
    image: str = ""
    order: int = 0


class TouristRequest(BaseModel):
    tourist_id: str = Field(..., min_length=1)


class CartItemRequest(BaseModel):
    tour_id: str = Field(..., min_length=1)


class PositionUpdateRequest(BaseModel):
    tourist_id: str = Field(..., min_length=1)
    latitude: float
    longitude: float


class ProximityRequest(PositionUpdateRequest):
    pass


# responses


class TourResponse(BaseModel):
    id: str
    guide_id: str
    name: str
    description: str
    difficulty: str
    tags: List[str]
    price: float
    is_published: bool
    status: str
    published_at: Optional[datetime]
    created_at: datetime

    @classmethod
    def from_domain(cls, tour: Tour) -> "TourResponse":
        return cls(
            id=tour.id,
            guide_id=tour.guide_id,
            name=tour.name,
            description=tour.description,
            difficulty=tour.difficulty,
            tags=list(tour.tags),
            price=tour.price,
            is_published=tour.is_published,
            status=tour.status.value,
            published_at=tour.published_at,
            created_at=tour.created_at,
        )


class KeyPointResponse(BaseModel):
    id: str
    tour_id: str
    latitude: float
    longitude: float
    name: str
    description: str
    image: str
    order: int

    @classmethod
    def from_domain(cls, key_point: KeyPoint) -> "KeyPointResponse":
        return cls(
            id=key_point.id,
            tour_id=key_point.tour_id,
            latitude=key_point.latitude,
            longitude=key_point.longitude,
            name=key_point.name,
            description=key_point.description,
            image=key_point.image,
            order=key_point.order,
        )


class KeyPointsResponse(BaseModel):
    tour_id: str
    key_points: List[KeyPointResponse]
    is_purchased: bool
    is_owner: bool
    total_key_points: int

    @classmethod
    def from_domain(cls, view: KeyPointsView) -> "KeyPointsResponse":
        return cls(
            tour_id=view.tour_id,
            key_points=[KeyPointResponse.from_domain(kp) for kp in view.key_points],
            is_purchased=view.is_purchased,
            is_owner=view.is_owner,
            total_key_points=view.total_key_points,
        )


class CartItemResponse(BaseModel):
    tour_id: str
    tour_name: str
    price: float

    @classmethod
    def from_domain(cls, item: CartItem) -> "CartItemResponse":
        return cls(tour_id=item.tour_id, tour_name=item.tour_name, price=item.price)


class CartResponse(BaseModel):
    tourist_id: str
    items: List[CartItemResponse]
    total_price: float

    @classmethod
    def from_domain(cls, cart: ShoppingCart) -> "CartResponse":
        return cls(
            tourist_id=cart.tourist_id,
            items=[CartItemResponse.from_domain(item) for item in cart.items.values()],
            total_price=cart.total_price,
        )


class PurchaseTokenResponse(BaseModel):
    tour_id: str
    token: str
    purchased_at: datetime

    @classmethod
    def from_domain(cls, token: PurchaseToken) -> "PurchaseTokenResponse":
        return cls(tour_id=token.tour_id, token=token.token, purchased_at=token.purchased_at)


class CheckoutResponse(BaseModel):
    tokens: List[PurchaseTokenResponse]
    failed_items: List[CartItemResponse]
    cart: CartResponse

    @classmethod
    def from_domain(cls, result: CheckoutResult) -> "CheckoutResponse":
        return cls(
            tokens=[PurchaseTokenResponse.from_domain(token) for token in result.tokens],
            failed_items=[CartItemResponse.from_domain(item) for item in result.failed_items],
            cart=CartResponse.from_domain(result.cart),
        )


class OwnedToursResponse(BaseModel):
    tourist_id: str
    tour_ids: List[str]


class PositionResponse(BaseModel):
    tourist_id: str
    latitude: float
    longitude: float
    updated_at: datetime

    @classmethod
    def from_domain(cls, position: Position) -> "PositionResponse":
        return cls(
            tourist_id=position.tourist_id,
            latitude=position.latitude,
            longitude=position.longitude,
            updated_at=position.updated_at,
        )


class CompletedKeyPointResponse(BaseModel):
    key_point_id: str
    completed_at: datetime


class ExecutionResponse(BaseModel):
    id: str
    tourist_id: str
    tour_id: str
    status: str
    started_at: datetime
    completed_at: Optional[datetime]
    last_activity_at: datetime
    start_position: PositionResponse
    completed_key_points: List[CompletedKeyPointResponse]

    @classmethod
    def from_domain(cls, execution: TourExecution) -> "ExecutionResponse":
        return cls(
            id=execution.id,
            tourist_id=execution.tourist_id,
            tour_id=execution.tour_id,
            status=execution.status.value,
            started_at=execution.started_at,
            completed_at=execution.completed_at,
            last_activity_at=execution.last_activity_at,
            start_position=PositionResponse.from_domain(execution.start_position),
            completed_key_points=[
                CompletedKeyPointResponse(key_point_id=done.key_point_id, completed_at=done.completed_at)
                for done in execution.completed_key_points.values()
            ],
        )


class ProximityResponse(BaseModel):
    near_key_point: bool
    nearby_key_point: Optional[KeyPointResponse] = None
    distance_m: Optional[float] = None
    completed_count: int
    total_key_points: int

    @classmethod
    def from_domain(cls, result: ProximityResult) -> "ProximityResponse":
        nearby = KeyPointResponse.from_domain(result.nearby_key_point) if result.nearby_key_point else None
        return cls(
            near_key_point=result.near_key_point,
            nearby_key_point=nearby,
            distance_m=result.distance_m,
            completed_count=result.completed_count,
            total_key_points=result.total_key_points,
        )


class ExecutionsResponse(BaseModel):
    items: List[ExecutionResponse]
