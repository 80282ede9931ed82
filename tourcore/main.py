from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .config import get_settings
from .engine import OperationResult, TourEngine
from .errors import AppError
from .schemas import (
    ApiResponse,
    CartItemRequest,
    CartResponse,
    CheckoutResponse,
    ExecutionResponse,
    ExecutionsResponse,
    GuideRequest,
    KeyPointCreateRequest,
    KeyPointResponse,
    KeyPointsResponse,
    OwnedToursResponse,
    PositionResponse,
    PositionUpdateRequest,
    ProximityRequest,
    ProximityResponse,
    PublishTourRequest,
    TourCreateRequest,
    TouristRequest,
    TourResponse,
)

logging.basicConfig(level=get_settings().log_level.upper())

app = FastAPI(title=get_settings().app_name, version="1.0.0")


def get_engine() -> TourEngine:
    if not hasattr(get_engine, "_instance"):
        get_engine._instance = TourEngine()  # type: ignore[attr-defined]
    return get_engine._instance  # type: ignore[attr-defined]


@app.exception_handler(AppError)
async def handle_app_error(_: Request, exc: AppError) -> JSONResponse:
    logging.getLogger(__name__).warning("Request failed", extra={"code": exc.code, "reason": exc.message})
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def _respond(result: OperationResult[Any], render: Callable[[Any], BaseModel]) -> JSONResponse:
    content: dict[str, Any] = {
        "success": result.success,
        "message": result.message,
        "code": result.code,
        "data": render(result.payload).model_dump(mode="json") if result.payload is not None else None,
    }
    if result.field:
        content["field"] = result.field
    return JSONResponse(status_code=result.status_code, content=content)


# tour authoring


@app.post("/v1/tours", response_model=ApiResponse[TourResponse], status_code=status.HTTP_201_CREATED)
async def create_tour(payload: TourCreateRequest, engine: TourEngine = Depends(get_engine)) -> ApiResponse[TourResponse]:
    tour = engine.catalog.create_tour(
        guide_id=payload.guide_id,
        name=payload.name,
        description=payload.description,
        difficulty=payload.difficulty,
        tags=payload.tags,
    )
    return ApiResponse[TourResponse](success=True, message="Tour created successfully", data=TourResponse.from_domain(tour))


@app.get("/v1/tours", response_model=ApiResponse[List[TourResponse]])
async def list_tours(
    published_only: bool = True,
    guide_id: Optional[str] = None,
    engine: TourEngine = Depends(get_engine),
) -> ApiResponse[List[TourResponse]]:
    tours = engine.catalog.list_tours(published_only=published_only, guide_id=guide_id)
    items = [TourResponse.from_domain(tour) for tour in tours]
    return ApiResponse[List[TourResponse]](success=True, message="Tours retrieved successfully", data=items)


@app.get("/v1/tours/{tour_id}", response_model=ApiResponse[TourResponse])
async def get_tour(tour_id: str, engine: TourEngine = Depends(get_engine)) -> ApiResponse[TourResponse]:
    tour = engine.catalog.require_tour(tour_id)
    return ApiResponse[TourResponse](success=True, message="Tour retrieved successfully", data=TourResponse.from_domain(tour))


@app.put("/v1/tours/{tour_id}/publish", response_model=ApiResponse[TourResponse])
async def publish_tour(
    tour_id: str, payload: PublishTourRequest, engine: TourEngine = Depends(get_engine)
) -> ApiResponse[TourResponse]:
    tour = engine.catalog.publish_tour(tour_id, guide_id=payload.guide_id, price=payload.price)
    return ApiResponse[TourResponse](success=True, message="Tour published successfully", data=TourResponse.from_domain(tour))


@app.put("/v1/tours/{tour_id}/unpublish", response_model=ApiResponse[TourResponse])
async def unpublish_tour(
    tour_id: str, payload: GuideRequest, engine: TourEngine = Depends(get_engine)
) -> ApiResponse[TourResponse]:
    tour = engine.catalog.unpublish_tour(tour_id, guide_id=payload.guide_id)
    return ApiResponse[TourResponse](success=True, message="Tour unpublished successfully", data=TourResponse.from_domain(tour))


@app.post(
    "/v1/tours/{tour_id}/keypoints",
    response_model=ApiResponse[KeyPointResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_key_point(
    tour_id: str, payload: KeyPointCreateRequest, engine: TourEngine = Depends(get_engine)
) -> ApiResponse[KeyPointResponse]:
    key_point = engine.catalog.add_key_point(
        tour_id,
        guide_id=payload.guide_id,
        latitude=payload.latitude,
        longitude=payload.longitude,
        name=payload.name,
        description=payload.description,
        image=payload.image,
        order=payload.order,
    )
    return ApiResponse[KeyPointResponse](
        success=True, message="Keypoint added successfully", data=KeyPointResponse.from_domain(key_point)
    )


@app.get("/v1/tours/{tour_id}/keypoints", response_model=ApiResponse[KeyPointsResponse])
async def get_key_points(
    tour_id: str, user_id: Optional[str] = None, engine: TourEngine = Depends(get_engine)
) -> JSONResponse:
    return _respond(engine.get_key_points(tour_id, user_id), KeyPointsResponse.from_domain)


# cart and purchases


@app.get("/v1/cart/{tourist_id}", response_model=ApiResponse[CartResponse])
async def get_cart(tourist_id: str, engine: TourEngine = Depends(get_engine)) -> JSONResponse:
    return _respond(engine.get_cart(tourist_id), CartResponse.from_domain)


@app.post("/v1/cart/{tourist_id}/items", response_model=ApiResponse[CartResponse])
async def add_to_cart(tourist_id: str, payload: CartItemRequest, engine: TourEngine = Depends(get_engine)) -> JSONResponse:
    return _respond(engine.add_to_cart(tourist_id, payload.tour_id), CartResponse.from_domain)


@app.delete("/v1/cart/{tourist_id}/items/{tour_id}", response_model=ApiResponse[CartResponse])
async def remove_from_cart(tourist_id: str, tour_id: str, engine: TourEngine = Depends(get_engine)) -> JSONResponse:
    return _respond(engine.remove_from_cart(tourist_id, tour_id), CartResponse.from_domain)


@app.post("/v1/cart/{tourist_id}/checkout", response_model=ApiResponse[CheckoutResponse])
async def checkout(tourist_id: str, engine: TourEngine = Depends(get_engine)) -> JSONResponse:
    return _respond(engine.checkout(tourist_id), CheckoutResponse.from_domain)


@app.get("/v1/purchases/{tourist_id}", response_model=ApiResponse[OwnedToursResponse])
async def list_purchases(tourist_id: str, engine: TourEngine = Depends(get_engine)) -> JSONResponse:
    return _respond(
        engine.list_owned(tourist_id),
        lambda tour_ids: OwnedToursResponse(tourist_id=tourist_id, tour_ids=tour_ids),
    )


# position simulator


@app.post("/v1/positions", response_model=ApiResponse[PositionResponse])
async def set_position(payload: PositionUpdateRequest, engine: TourEngine = Depends(get_engine)) -> JSONResponse:
    result = engine.set_position(payload.tourist_id, payload.latitude, payload.longitude)
    return _respond(result, PositionResponse.from_domain)


@app.get("/v1/positions/{tourist_id}", response_model=ApiResponse[PositionResponse])
async def get_position(tourist_id: str, engine: TourEngine = Depends(get_engine)) -> JSONResponse:
    return _respond(engine.get_position(tourist_id), PositionResponse.from_domain)


# executions


@app.post("/v1/tours/{tour_id}/executions", response_model=ApiResponse[ExecutionResponse])
async def start_execution(tour_id: str, payload: TouristRequest, engine: TourEngine = Depends(get_engine)) -> JSONResponse:
    return _respond(engine.start_execution(payload.tourist_id, tour_id), ExecutionResponse.from_domain)


@app.get("/v1/executions", response_model=ApiResponse[ExecutionsResponse])
async def list_executions(tourist_id: str = Query(..., min_length=1), engine: TourEngine = Depends(get_engine)) -> JSONResponse:
    return _respond(
        engine.list_executions(tourist_id),
        lambda executions: ExecutionsResponse(items=[ExecutionResponse.from_domain(e) for e in executions]),
    )


@app.get("/v1/executions/{execution_id}", response_model=ApiResponse[ExecutionResponse])
async def get_execution(
    execution_id: str, tourist_id: str = Query(..., min_length=1), engine: TourEngine = Depends(get_engine)
) -> JSONResponse:
    return _respond(engine.get_execution(execution_id, tourist_id), ExecutionResponse.from_domain)


@app.post("/v1/executions/{execution_id}/proximity", response_model=ApiResponse[ProximityResponse])
async def check_proximity(
    execution_id: str, payload: ProximityRequest, engine: TourEngine = Depends(get_engine)
) -> JSONResponse:
    result = engine.check_proximity(execution_id, payload.tourist_id, payload.latitude, payload.longitude)
    return _respond(result, ProximityResponse.from_domain)


@app.post("/v1/executions/{execution_id}/complete", response_model=ApiResponse[ExecutionResponse])
async def complete_execution(
    execution_id: str, payload: TouristRequest, engine: TourEngine = Depends(get_engine)
) -> JSONResponse:
    return _respond(engine.complete_execution(execution_id, payload.tourist_id), ExecutionResponse.from_domain)


@app.post("/v1/executions/{execution_id}/abandon", response_model=ApiResponse[ExecutionResponse])
async def abandon_execution(
    execution_id: str, payload: TouristRequest, engine: TourEngine = Depends(get_engine)
) -> JSONResponse:
    return _respond(engine.abandon_execution(execution_id, payload.tourist_id), ExecutionResponse.from_domain)
