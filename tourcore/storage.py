from __future__ import annotations

from contextlib import contextmanager
from threading import Lock, RLock
from typing import Dict, Hashable, Iterator, List, Optional

from .models import KeyPoint, Position, PurchaseToken, ShoppingCart, Tour, TourExecution


class KeyedLocks:
    """Hands out one re-entrant lock per key so unrelated keys never contend."""

    def __init__(self) -> None:
        self._registry_lock = Lock()
        self._locks: Dict[Hashable, RLock] = {}

    def get(self, key: Hashable) -> RLock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self.get(key):
            yield

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)


class InMemoryStorage:
    """Thread-safe keyed in-memory storage for the catalog, carts, entitlements, positions and executions.

    The internal lock only guards individual dictionary reads and writes. Callers
    serialize read-modify-write sequences on a record through ``locks``.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._locks = KeyedLocks()
        self._tours: Dict[str, Tour] = {}
        self._key_points: Dict[str, List[KeyPoint]] = {}
        self._carts: Dict[str, ShoppingCart] = {}
        self._tokens: Dict[tuple[str, str], PurchaseToken] = {}
        self._positions: Dict[str, Position] = {}
        self._executions: Dict[str, TourExecution] = {}
        self._active_executions: Dict[tuple[str, str], str] = {}

    @property
    def locks(self) -> KeyedLocks:
        return self._locks

    # catalog

    def get_tour(self, tour_id: str) -> Optional[Tour]:
        with self._lock:
            return self._tours.get(tour_id)

    def save_tour(self, tour: Tour) -> None:
        with self._lock:
            self._tours[tour.id] = tour

    def list_tours(self) -> list[Tour]:
        with self._lock:
            return list(self._tours.values())

    def add_key_point(self, key_point: KeyPoint) -> None:
        with self._lock:
            self._key_points.setdefault(key_point.tour_id, []).append(key_point)

    def list_key_points(self, tour_id: str) -> list[KeyPoint]:
        with self._lock:
            return list(self._key_points.get(tour_id, []))

    # carts

    def get_cart(self, tourist_id: str) -> Optional[ShoppingCart]:
        with self._lock:
            return self._carts.get(tourist_id)

    def save_cart(self, cart: ShoppingCart) -> None:
        with self._lock:
            self._carts[cart.tourist_id] = cart

    # entitlements

    def get_token(self, tourist_id: str, tour_id: str) -> Optional[PurchaseToken]:
        with self._lock:
            return self._tokens.get((tourist_id, tour_id))

    def save_token(self, token: PurchaseToken) -> None:
        with self._lock:
            self._tokens[(token.tourist_id, token.tour_id)] = token

    def list_tokens(self, tourist_id: str) -> list[PurchaseToken]:
        with self._lock:
            return [token for key, token in self._tokens.items() if key[0] == tourist_id]

    # positions

    def get_position(self, tourist_id: str) -> Optional[Position]:
        with self._lock:
            return self._positions.get(tourist_id)

    def save_position(self, position: Position) -> None:
        with self._lock:
            self._positions[position.tourist_id] = position

    # executions

    def get_execution(self, execution_id: str) -> Optional[TourExecution]:
        with self._lock:
            return self._executions.get(execution_id)

    def get_active_execution(self, tourist_id: str, tour_id: str) -> Optional[TourExecution]:
        with self._lock:
            execution_id = self._active_executions.get((tourist_id, tour_id))
            if execution_id is None:
                return None
            return self._executions.get(execution_id)

    def save_execution(self, execution: TourExecution) -> None:
        key = (execution.tourist_id, execution.tour_id)
        with self._lock:
            self._executions[execution.id] = execution
            if execution.is_active:
                self._active_executions[key] = execution.id
            elif self._active_executions.get(key) == execution.id:
                del self._active_executions[key]

    def list_executions(self, tourist_id: str) -> list[TourExecution]:
        with self._lock:
            return [execution for execution in self._executions.values() if execution.tourist_id == tourist_id]
