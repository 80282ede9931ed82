from __future__ import annotations

import logging
from typing import List, Tuple
from uuid import uuid4

from .catalog import TourCatalog
from .entitlements import EntitlementStore
from .errors import IncompleteTourError, InvalidStateError, NoPositionError, NotEntitledError, NotFoundError
from .geo import PROXIMITY_THRESHOLD_M, GeoPoint, haversine_m, within_threshold
from .models import ExecutionStatus, ProximityResult, TourExecution, utcnow
from .positions import PositionTracker, ensure_coordinates
from .storage import InMemoryStorage

logger = logging.getLogger(__name__)


class ExecutionEngine:
    """Drives a tourist's walk through a purchased tour.

    An execution starts ``active`` and ends either ``completed`` (every key
    point visited) or ``abandoned``. Both end states are final. Key points are
    marked visited by proximity polls; recording is keyed by key point id so
    repeated or concurrent polls never record the same key point twice.

    Locks: ``("execution-pair", tourist_id, tour_id)`` serializes starts for a
    pair, ``("execution", execution_id)`` serializes every change to one
    execution. The pair lock is always taken before the execution lock.
    """

    def __init__(
        self,
        storage: InMemoryStorage,
        catalog: TourCatalog,
        entitlements: EntitlementStore,
        positions: PositionTracker,
        *,
        proximity_threshold_m: float = PROXIMITY_THRESHOLD_M,
    ) -> None:
        self._storage = storage
        self._catalog = catalog
        self._entitlements = entitlements
        self._positions = positions
        self._threshold_m = proximity_threshold_m

    def start(self, tourist_id: str, tour_id: str) -> Tuple[TourExecution, bool]:
        """Start a tour, or continue the active execution for the same tour.

        Returns the execution and whether it was newly created.
        """
        self._catalog.require_tour(tour_id)
        if not self._entitlements.is_entitled(tourist_id, tour_id):
            raise NotEntitledError()
        position = self._positions.get_position(tourist_id)
        if position is None:
            raise NoPositionError()

        with self._storage.locks.hold(("execution-pair", tourist_id, tour_id)):
            existing = self._storage.get_active_execution(tourist_id, tour_id)
            if existing:
                with self._execution_lock(existing.id):
                    if existing.is_active:
                        logger.info(
                            "Continuing active execution",
                            extra={"execution_id": existing.id, "tourist_id": tourist_id, "tour_id": tour_id},
                        )
                        return existing.snapshot(), False

            now = utcnow()
            execution = TourExecution(
                id=f"exec_{uuid4().hex[:12]}",
                tourist_id=tourist_id,
                tour_id=tour_id,
                start_position=position,
                started_at=now,
                last_activity_at=now,
            )
            self._storage.save_execution(execution)

        logger.info(
            "Execution started",
            extra={"execution_id": execution.id, "tourist_id": tourist_id, "tour_id": tour_id},
        )
        return execution.snapshot(), True

    def check_proximity(self, execution_id: str, tourist_id: str, latitude: float, longitude: float) -> ProximityResult:
        ensure_coordinates(latitude, longitude)
        if self._storage.get_execution(execution_id) is None:
            raise NotFoundError("execution not found")

        with self._execution_lock(execution_id):
            execution = self._storage.get_execution(execution_id)
            if execution is None or execution.tourist_id != tourist_id:
                return ProximityResult(near_key_point=False)

            key_points = self._catalog.get_key_points(execution.tour_id)
            if not execution.is_active:
                return ProximityResult(
                    near_key_point=False,
                    completed_count=len(execution.completed_key_points),
                    total_key_points=len(key_points),
                )

            here = GeoPoint(latitude, longitude)
            candidates = []
            for kp in key_points:
                if execution.has_completed(kp.id):
                    continue
                distance = haversine_m(here, GeoPoint(kp.latitude, kp.longitude))
                logger.debug(
                    "Distance check",
                    extra={"execution_id": execution_id, "key_point_id": kp.id, "distance_m": round(distance, 2)},
                )
                if within_threshold(distance, self._threshold_m):
                    candidates.append((distance, kp.order, kp.id, kp))

            now = utcnow()
            if not candidates:
                execution.touch(now)
                self._storage.save_execution(execution)
                return ProximityResult(
                    near_key_point=False,
                    completed_count=len(execution.completed_key_points),
                    total_key_points=len(key_points),
                )

            distance, _, _, nearest = min(candidates, key=lambda c: c[:3])
            execution.record_key_point(nearest.id, now)
            self._storage.save_execution(execution)
            logger.info(
                "Key point reached",
                extra={"execution_id": execution_id, "key_point_id": nearest.id, "distance_m": round(distance, 2)},
            )
            return ProximityResult(
                near_key_point=True,
                nearby_key_point=nearest,
                distance_m=distance,
                completed_count=len(execution.completed_key_points),
                total_key_points=len(key_points),
            )

    def complete(self, execution_id: str, tourist_id: str) -> TourExecution:
        self._require_owned(execution_id, tourist_id)
        with self._execution_lock(execution_id):
            execution = self._require_owned(execution_id, tourist_id)
            self._ensure_active(execution)
            total = len(self._catalog.get_key_points(execution.tour_id))
            visited = len(execution.completed_key_points)
            if visited < total:
                raise IncompleteTourError(f"visited {visited} of {total} key points, visit them all to complete the tour")
            execution.finish(ExecutionStatus.COMPLETED, utcnow())
            self._storage.save_execution(execution)
            logger.info("Execution completed", extra={"execution_id": execution_id, "tourist_id": tourist_id})
            return execution.snapshot()

    def abandon(self, execution_id: str, tourist_id: str) -> TourExecution:
        self._require_owned(execution_id, tourist_id)
        with self._execution_lock(execution_id):
            execution = self._require_owned(execution_id, tourist_id)
            self._ensure_active(execution)
            execution.finish(ExecutionStatus.ABANDONED, utcnow())
            self._storage.save_execution(execution)
            logger.info("Execution abandoned", extra={"execution_id": execution_id, "tourist_id": tourist_id})
            return execution.snapshot()

    def get_execution(self, execution_id: str, tourist_id: str) -> TourExecution:
        self._require_owned(execution_id, tourist_id)
        with self._execution_lock(execution_id):
            return self._require_owned(execution_id, tourist_id).snapshot()

    def list_executions(self, tourist_id: str) -> List[TourExecution]:
        executions = []
        for execution in self._storage.list_executions(tourist_id):
            with self._execution_lock(execution.id):
                executions.append(execution.snapshot())
        executions.sort(key=lambda e: e.started_at, reverse=True)
        return executions

    def _require_owned(self, execution_id: str, tourist_id: str) -> TourExecution:
        execution = self._storage.get_execution(execution_id)
        # Executions of other tourists are reported as missing. Checked before
        # locking so unknown ids never register a lock.
        if not execution or execution.tourist_id != tourist_id:
            raise NotFoundError("execution not found")
        return execution

    def _ensure_active(self, execution: TourExecution) -> None:
        if not execution.is_active:
            raise InvalidStateError(f"execution is already {execution.status.value}")

    def _execution_lock(self, execution_id: str):
        return self._storage.locks.hold(("execution", execution_id))
