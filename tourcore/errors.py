from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class AppError(Exception):
    code: str
    message: str
    status_code: int
    field: Optional[str] = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"success": False, "code": self.code, "message": self.message}
        if self.field:
            payload["field"] = self.field
        return payload


class ValidationError(AppError):
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(code="BAD_REQUEST", message=message, status_code=400, field=field)


class ForbiddenError(AppError):
    def __init__(self, message: str):
        super().__init__(code="FORBIDDEN", message=message, status_code=403)


class NotFoundError(AppError):
    def __init__(self, message: str):
        super().__init__(code="NOT_FOUND", message=message, status_code=404)


class NotEntitledError(AppError):
    def __init__(self, message: str = "tour not purchased, buy the tour first"):
        super().__init__(code="NOT_ENTITLED", message=message, status_code=403)


class NoPositionError(AppError):
    def __init__(self, message: str = "no position known, set your position first"):
        super().__init__(code="NO_POSITION", message=message, status_code=409)


class TourNotPurchasableError(AppError):
    def __init__(self, message: str = "tour is not published and cannot be purchased"):
        super().__init__(code="TOUR_NOT_PURCHASABLE", message=message, status_code=409)


class IncompleteTourError(AppError):
    def __init__(self, message: str):
        super().__init__(code="INCOMPLETE_TOUR", message=message, status_code=409)


class InvalidStateError(AppError):
    def __init__(self, message: str):
        super().__init__(code="INVALID_STATE", message=message, status_code=409)
