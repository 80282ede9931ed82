"""
Core contract of the commerce and execution engine.

Every operation returns an :class:`OperationResult` carrying a success flag, a
human-readable message and a payload. Business rejections (not entitled, no
position, incomplete tour and so on) come back as failed results; only
unexpected faults propagate as exceptions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, List, Optional, TypeVar

from .cart import CartManager
from .catalog import TourCatalog
from .config import Settings, get_settings
from .entitlements import EntitlementStore
from .errors import AppError, NoPositionError, TourNotPurchasableError
from .executions import ExecutionEngine
from .models import CheckoutResult, KeyPointsView, Position, ProximityResult, ShoppingCart, TourExecution
from .positions import PositionTracker
from .storage import InMemoryStorage

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class OperationResult(Generic[T]):
    success: bool
    message: str
    payload: Optional[T] = None
    code: Optional[str] = None
    status_code: int = 200
    field: Optional[str] = None

    @classmethod
    def ok(cls, message: str, payload: Optional[T] = None, status_code: int = 200) -> "OperationResult[T]":
        return cls(success=True, message=message, payload=payload, status_code=status_code)

    @classmethod
    def from_error(cls, exc: AppError, payload: Optional[T] = None) -> "OperationResult[T]":
        return cls(
            success=False,
            message=exc.message,
            payload=payload,
            code=exc.code,
            status_code=exc.status_code,
            field=exc.field,
        )


class TourEngine:
    def __init__(self, storage: Optional[InMemoryStorage] = None, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self.storage = storage or InMemoryStorage()
        self.catalog = TourCatalog(self.storage)
        self.entitlements = EntitlementStore(self.storage)
        self.positions = PositionTracker(self.storage)
        self.cart = CartManager(self.storage, self.catalog, self.entitlements)
        self.executions = ExecutionEngine(
            self.storage,
            self.catalog,
            self.entitlements,
            self.positions,
            proximity_threshold_m=self.settings.proximity_threshold_m,
        )

    # cart

    def add_to_cart(self, tourist_id: str, tour_id: str) -> OperationResult[ShoppingCart]:
        return self._attempt(
            "add_to_cart",
            lambda: OperationResult.ok("Tour added to cart", self.cart.add_item(tourist_id, tour_id)),
        )

    def remove_from_cart(self, tourist_id: str, tour_id: str) -> OperationResult[ShoppingCart]:
        return self._attempt(
            "remove_from_cart",
            lambda: OperationResult.ok("Tour removed from cart", self.cart.remove_item(tourist_id, tour_id)),
        )

    def get_cart(self, tourist_id: str) -> OperationResult[ShoppingCart]:
        return self._attempt("get_cart", lambda: OperationResult.ok("Cart retrieved successfully", self.cart.get_cart(tourist_id)))

    def checkout(self, tourist_id: str) -> OperationResult[CheckoutResult]:
        return self._attempt("checkout", lambda: self._checkout(tourist_id))

    def _checkout(self, tourist_id: str) -> OperationResult[CheckoutResult]:
        result = self.cart.checkout(tourist_id)
        purchased = len(result.tokens)
        if result.complete:
            if not purchased:
                return OperationResult.ok("Cart is empty, nothing to purchase", result)
            return OperationResult.ok(f"Successfully purchased {purchased} tours", result)
        names = ", ".join(item.tour_name for item in result.failed_items)
        error = TourNotPurchasableError(
            f"Purchased {purchased} tours; these are no longer published and stay in your cart: {names}"
        )
        logger.warning("Partial checkout", extra={"tourist_id": tourist_id, "failed": len(result.failed_items)})
        return OperationResult.from_error(error, result)

    def list_owned(self, tourist_id: str) -> OperationResult[List[str]]:
        return self._attempt(
            "list_owned",
            lambda: OperationResult.ok("Purchased tours retrieved", sorted(self.entitlements.list_owned(tourist_id))),
        )

    # content access

    def get_key_points(self, tour_id: str, user_id: Optional[str] = None) -> OperationResult[KeyPointsView]:
        return self._attempt(
            "get_key_points",
            lambda: OperationResult.ok("Keypoints retrieved successfully", self._key_points_view(tour_id, user_id or "")),
        )

    def _key_points_view(self, tour_id: str, user_id: str) -> KeyPointsView:
        tour = self.catalog.require_tour(tour_id)
        all_key_points = self.catalog.get_key_points(tour_id)
        key_points = all_key_points
        is_owner = bool(user_id) and tour.guide_id == user_id
        is_purchased = bool(user_id) and self.entitlements.is_entitled(user_id, tour_id)
        if not self.entitlements.can_access(user_id, tour_id, owner_override=is_owner):
            key_points = all_key_points[: self.settings.preview_key_points]
        return KeyPointsView(
            tour_id=tour_id,
            key_points=key_points,
            is_purchased=is_purchased,
            is_owner=is_owner,
            total_key_points=len(all_key_points),
        )

    # positions

    def set_position(self, tourist_id: str, latitude: float, longitude: float) -> OperationResult[Position]:
        return self._attempt(
            "set_position",
            lambda: OperationResult.ok("Position updated successfully", self.positions.set_position(tourist_id, latitude, longitude)),
        )

    def get_position(self, tourist_id: str) -> OperationResult[Position]:
        position = self.positions.get_position(tourist_id)
        if position is None:
            return OperationResult.from_error(NoPositionError("no position set yet, use the position simulator first"))
        return OperationResult.ok("Position retrieved successfully", position)

    # executions

    def start_execution(self, tourist_id: str, tour_id: str) -> OperationResult[TourExecution]:
        return self._attempt("start_execution", lambda: self._start(tourist_id, tour_id))

    def _start(self, tourist_id: str, tour_id: str) -> OperationResult[TourExecution]:
        execution, created = self.executions.start(tourist_id, tour_id)
        if created:
            return OperationResult.ok("Tour execution started", execution, status_code=201)
        return OperationResult.ok("Continuing existing tour execution", execution)

    def check_proximity(
        self, execution_id: str, tourist_id: str, latitude: float, longitude: float
    ) -> OperationResult[ProximityResult]:
        return self._attempt("check_proximity", lambda: self._proximity(execution_id, tourist_id, latitude, longitude))

    def _proximity(self, execution_id: str, tourist_id: str, latitude: float, longitude: float) -> OperationResult[ProximityResult]:
        result = self.executions.check_proximity(execution_id, tourist_id, latitude, longitude)
        if result.near_key_point:
            return OperationResult.ok("Near keypoint", result)
        return OperationResult.ok("No nearby keypoints", result)

    def complete_execution(self, execution_id: str, tourist_id: str) -> OperationResult[TourExecution]:
        return self._attempt(
            "complete_execution",
            lambda: OperationResult.ok("Tour completed successfully", self.executions.complete(execution_id, tourist_id)),
        )

    def abandon_execution(self, execution_id: str, tourist_id: str) -> OperationResult[TourExecution]:
        return self._attempt(
            "abandon_execution",
            lambda: OperationResult.ok("Tour abandoned", self.executions.abandon(execution_id, tourist_id)),
        )

    def get_execution(self, execution_id: str, tourist_id: str) -> OperationResult[TourExecution]:
        return self._attempt(
            "get_execution",
            lambda: OperationResult.ok("Execution retrieved successfully", self.executions.get_execution(execution_id, tourist_id)),
        )

    def list_executions(self, tourist_id: str) -> OperationResult[List[TourExecution]]:
        return self._attempt(
            "list_executions",
            lambda: OperationResult.ok("Executions retrieved successfully", self.executions.list_executions(tourist_id)),
        )

    def _attempt(self, operation: str, action: Callable[[], OperationResult[Any]]) -> OperationResult[Any]:
        try:
            return action()
        except AppError as exc:
            logger.warning("Operation rejected", extra={"operation": operation, "code": exc.code, "reason": exc.message})
            return OperationResult.from_error(exc)
