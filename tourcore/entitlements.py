from __future__ import annotations

import logging
from typing import Optional, Set, Tuple
from uuid import uuid4

from .models import PurchaseToken, utcnow
from .storage import InMemoryStorage

logger = logging.getLogger(__name__)


class EntitlementStore:
    """Durable (tourist, tour) -> purchase token mapping."""

    def __init__(self, storage: InMemoryStorage) -> None:
        self._storage = storage

    def is_entitled(self, tourist_id: str, tour_id: str) -> bool:
        return self.get_token(tourist_id, tour_id) is not None

    def can_access(self, tourist_id: str, tour_id: str, *, owner_override: bool = False) -> bool:
        # The tour's guide is identified by the caller; ownership implies access.
        if owner_override:
            return True
        return self.is_entitled(tourist_id, tour_id)

    def get_token(self, tourist_id: str, tour_id: str) -> Optional[PurchaseToken]:
        return self._storage.get_token(tourist_id, tour_id)

    def grant(self, tourist_id: str, tour_id: str) -> Tuple[PurchaseToken, bool]:
        """Issue a token, or return the one already held. The flag tells whether a new token was created."""
        with self._storage.locks.hold(("entitlement", tourist_id, tour_id)):
            existing = self._storage.get_token(tourist_id, tour_id)
            if existing:
                return existing, False
            token = PurchaseToken(
                tourist_id=tourist_id,
                tour_id=tour_id,
                token=str(uuid4()),
                purchased_at=utcnow(),
            )
            self._storage.save_token(token)
        logger.info("Purchase token granted", extra={"tourist_id": tourist_id, "tour_id": tour_id})
        return token, True

    def list_owned(self, tourist_id: str) -> Set[str]:
        return {token.tour_id for token in self._storage.list_tokens(tourist_id)}
