from fastapi import APIRouter, Depends, HTTPException, status
from typing import List, Optional
import logging

from routers.auth import get_current_user
from schemas.user import UserResponse
from schemas.tracking import (
    DeliveryTracking,
    PositionUpdateRequest,
    RecalculateRouteRequest,
    RecalculationResult,
    StartTrackingRequest,
    StatusUpdateRequest,
    StoredPosition,
    TrackingEvent
)
from services.geo import GeoService, get_geo_service
from services.routing import RouteOrchestrator, normalize_coordinates
from services.tracking import TrackingStore
from models.user import UserRole
from core.config import settings
from core.response import health_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tracking", tags=["Tracking"])

_tracking_store: Optional[TrackingStore] = None
_orchestrator: Optional[RouteOrchestrator] = None

def get_tracking_store(geo_service: GeoService = Depends(get_geo_service)) -> TrackingStore:
    global _tracking_store
    if _tracking_store is None:
        _tracking_store = TrackingStore(geo_service)
    return _tracking_store

def get_route_orchestrator(
    geo_service: GeoService = Depends(get_geo_service),
    store: TrackingStore = Depends(get_tracking_store)
) -> RouteOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = RouteOrchestrator(geo_service, store)
    return _orchestrator

def _check_delivery_person_access(current_user: UserResponse, delivery_person_id: int) -> None:
    """Delivery persons act only on themselves; other staff roles may act on anyone."""
    if current_user.role == UserRole.DELIVERY_PERSON and current_user.id != delivery_person_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only access your own tracking"
        )
    if current_user.role == UserRole.MERCHANT:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions"
        )

@router.get("/health")
def tracking_health():
    return health_response("tracking-service", settings.ENVIRONMENT)

@router.post("/delivery-person/{delivery_person_id}/position", response_model=List[TrackingEvent])
def update_position(
    delivery_person_id: int,
    position: PositionUpdateRequest,
    current_user: UserResponse = Depends(get_current_user),
    store: TrackingStore = Depends(get_tracking_store)
):
    """Report the latest position of a delivery person."""
    _check_delivery_person_access(current_user, delivery_person_id)
    return store.update_position(delivery_person_id, normalize_coordinates(position), position)

@router.get("/delivery-person/{delivery_person_id}/position", response_model=StoredPosition)
def get_position(
    delivery_person_id: int,
    current_user: UserResponse = Depends(get_current_user),
    store: TrackingStore = Depends(get_tracking_store)
):
    _check_delivery_person_access(current_user, delivery_person_id)
    position = store.get_position(delivery_person_id)
    if position is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No position recorded for this delivery person"
        )
    return position

@router.get("/delivery-person/{delivery_person_id}/orders", response_model=List[DeliveryTracking])
def get_delivery_person_trackings(
    delivery_person_id: int,
    current_user: UserResponse = Depends(get_current_user),
    store: TrackingStore = Depends(get_tracking_store)
):
    _check_delivery_person_access(current_user, delivery_person_id)
    return store.get_for_delivery_person(delivery_person_id)

@router.post("/order/{order_id}/start", response_model=DeliveryTracking, status_code=status.HTTP_201_CREATED)
def start_tracking(
    order_id: int,
    request: StartTrackingRequest,
    current_user: UserResponse = Depends(get_current_user),
    orchestrator: RouteOrchestrator = Depends(get_route_orchestrator)
):
    """Begin live tracking of an order, heading to the pickup first."""
    _check_delivery_person_access(current_user, request.delivery_person_id)
    return orchestrator.start_tracking(
        order_id,
        request.delivery_person_id,
        request.pickup_location,
        request.delivery_location,
        current_position=request.current_position
    )

@router.put("/order/{order_id}/status", response_model=TrackingEvent)
def update_tracking_status(
    order_id: int,
    request: StatusUpdateRequest,
    current_user: UserResponse = Depends(get_current_user),
    store: TrackingStore = Depends(get_tracking_store)
):
    tracking = store.find(order_id, request.delivery_person_id)
    if tracking is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Tracking not found for this order"
        )
    _check_delivery_person_access(current_user, tracking.delivery_person_id)

    return store.update_status(order_id, request.status, tracking.delivery_person_id)

@router.post("/order/{order_id}/recalculate-route", response_model=RecalculationResult)
def recalculate_route(
    order_id: int,
    request: RecalculateRouteRequest,
    current_user: UserResponse = Depends(get_current_user),
    orchestrator: RouteOrchestrator = Depends(get_route_orchestrator)
):
    tracking = orchestrator.store.find(order_id, request.delivery_person_id)
    if tracking is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Tracking not found for this order"
        )
    _check_delivery_person_access(current_user, tracking.delivery_person_id)

    return orchestrator.recalculate_route(
        order_id,
        request.pickup_location,
        request.delivery_location,
        delivery_person_id=tracking.delivery_person_id
    )

@router.get("/order/{order_id}", response_model=DeliveryTracking)
def get_order_tracking(
    order_id: int,
    current_user: UserResponse = Depends(get_current_user),
    store: TrackingStore = Depends(get_tracking_store)
):
    tracking = store.get(order_id)
    if tracking is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Tracking not found for this order"
        )
    _check_delivery_person_access(current_user, tracking.delivery_person_id)
    return tracking
