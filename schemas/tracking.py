from pydantic import BaseModel
from typing import Any, Dict, Optional
from datetime import datetime
import enum

from schemas.geo import Coordinates, LooseCoordinates

class DeliveryStatus(str, enum.Enum):
    EN_ROUTE_TO_PICKUP = "en_route_to_pickup"
    AT_PICKUP = "at_pickup"
    PICKED_UP = "picked_up"
    EN_ROUTE_TO_DELIVERY = "en_route_to_delivery"
    AT_DELIVERY = "at_delivery"
    DELIVERED = "delivered"

DELIVERY_STATUS_SEQUENCE = list(DeliveryStatus)

class TrackingEventType(str, enum.Enum):
    POSITION_UPDATE = "position_update"
    STATUS_CHANGE = "status_change"
    ROUTE_RECALCULATED = "route_recalculated"

class DeliveryTracking(BaseModel):
    order_id: int
    delivery_person_id: int
    current_position: Coordinates
    pickup_location: Optional[Coordinates] = None
    delivery_location: Optional[Coordinates] = None
    route: Optional[Dict[str, Any]] = None
    estimated_arrival_time: Optional[datetime] = None
    distance_to_destination: Optional[int] = None  # metres
    status: DeliveryStatus = DeliveryStatus.EN_ROUTE_TO_PICKUP
    last_updated: datetime
    last_route_calculated_at: Optional[datetime] = None
    last_route_attempt_at: Optional[datetime] = None

class TrackingEvent(BaseModel):
    type: TrackingEventType
    order_id: int
    delivery_person_id: int
    timestamp: datetime
    data: Dict[str, Any] = {}

class PositionUpdateRequest(LooseCoordinates):
    accuracy: Optional[float] = None
    heading: Optional[float] = None
    speed: Optional[float] = None

class StoredPosition(BaseModel):
    delivery_person_id: int
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    heading: Optional[float] = None
    speed: Optional[float] = None
    timestamp: datetime

class StartTrackingRequest(BaseModel):
    delivery_person_id: int
    pickup_location: LooseCoordinates
    delivery_location: LooseCoordinates
    current_position: Optional[LooseCoordinates] = None

class StatusUpdateRequest(BaseModel):
    status: DeliveryStatus
    delivery_person_id: Optional[int] = None

class RecalculateRouteRequest(BaseModel):
    pickup_location: LooseCoordinates
    delivery_location: LooseCoordinates
    delivery_person_id: Optional[int] = None

class RecalculationResult(BaseModel):
    order_id: int
    debounced: bool = False
    tracking: Optional[DeliveryTracking] = None
    event: Optional[TrackingEvent] = None
