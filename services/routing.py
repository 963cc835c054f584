"""
Route orchestration for live deliveries.

Routes come from the geo provider only; when it fails the caller gets
RouteUnavailableError and tracking carries on without a route.
"""
import logging
from datetime import timedelta
from typing import Any, Dict, Optional, Tuple

from core.config import settings
from core.exceptions import GeoProviderError, ResourceNotFoundError, RouteUnavailableError
from core.validators import is_valid_coordinate_pair
from schemas.geo import Coordinates
from schemas.tracking import (
    DeliveryStatus,
    DeliveryTracking,
    RecalculationResult,
    TrackingEvent,
    TrackingEventType,
)
from services.tracking import TrackingStore, current_destination

logger = logging.getLogger(__name__)


def default_coordinates() -> Coordinates:
    return Coordinates(latitude=settings.DEFAULT_LATITUDE, longitude=settings.DEFAULT_LONGITUDE)


def normalize_coordinates(value: Any) -> Coordinates:
    """Return valid coordinates, or the default map centre for anything malformed."""
    if isinstance(value, dict):
        latitude, longitude = value.get("latitude"), value.get("longitude")
    else:
        latitude = getattr(value, "latitude", None)
        longitude = getattr(value, "longitude", None)

    if is_valid_coordinate_pair(latitude, longitude):
        return Coordinates(latitude=float(latitude), longitude=float(longitude))

    logger.warning(f"Invalid coordinates {latitude!r}, {longitude!r}; using default position")
    return default_coordinates()


def format_distance(meters: float) -> str:
    if meters < 1000:
        return f"{round(meters)} m"
    return f"{meters / 1000:.1f} km"


def format_duration(seconds: float) -> str:
    minutes = round(seconds / 60)
    if minutes < 60:
        return f"{minutes} min"
    return f"{minutes // 60}h {minutes % 60}min"


def summarize_route(route: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Totals over every leg of a provider route."""
    distance = 0
    duration = 0
    duration_in_traffic = 0
    for leg in (route or {}).get("legs", []):
        distance += leg.get("distance", {}).get("value", 0)
        duration += leg.get("duration", {}).get("value", 0)
        duration_in_traffic += leg.get("duration_in_traffic", leg.get("duration", {})).get("value", 0)

    return {
        "distance_meters": distance,
        "duration_seconds": duration,
        "duration_in_traffic_seconds": duration_in_traffic,
        "distance_text": format_distance(distance),
        "duration_text": format_duration(duration),
    }


def _first_leg(route: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    legs = (route or {}).get("legs") or [{}]
    return legs[0]


class RouteOrchestrator:
    def __init__(self, geo_service, store: TrackingStore, debounce_seconds: float = None):
        self.geo_service = geo_service
        self.store = store
        self.debounce_seconds = settings.ROUTE_RECALC_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds

    def plan_delivery_route(self, current_position: Coordinates, pickup: Coordinates,
                            delivery: Coordinates) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """First provider route from current position to delivery via pickup, with its summary."""
        try:
            result = self.geo_service.calculate_optimized_delivery_route(current_position, pickup, delivery)
        except GeoProviderError as e:
            logger.error(f"Delivery route planning failed: {e.message}")
            raise RouteUnavailableError(e.message)

        routes = result.get("routes") or []
        if not routes:
            logger.error("Delivery route planning returned no routes")
            raise RouteUnavailableError("Provider returned no routes")

        route = routes[0]
        return route, summarize_route(route)

    def _resolve_position(self, delivery_person_id: int, current_position: Any) -> Coordinates:
        if current_position is not None:
            return normalize_coordinates(current_position)

        stored = self.store.get_position(delivery_person_id)
        if stored is not None:
            return Coordinates(latitude=stored.latitude, longitude=stored.longitude)

        logger.warning(f"No known position for delivery person {delivery_person_id}; using default position")
        return default_coordinates()

    def start_tracking(self, order_id: int, delivery_person_id: int, pickup: Any, delivery: Any,
                       current_position: Any = None) -> DeliveryTracking:
        """Register live tracking for an order, heading to the pickup first."""
        position = self._resolve_position(delivery_person_id, current_position)
        pickup = normalize_coordinates(pickup)
        delivery = normalize_coordinates(delivery)
        now = self.store.now()

        route = None
        estimated_arrival = None
        distance = None
        try:
            route, _ = self.plan_delivery_route(position, pickup, delivery)
            leg = _first_leg(route)
            estimated_arrival = self.store.estimated_arrival(leg.get("duration", {}).get("value"))
            distance = leg.get("distance", {}).get("value")
        except RouteUnavailableError:
            logger.warning(f"Tracking for order {order_id} started without a route")

        tracking = DeliveryTracking(
            order_id=order_id,
            delivery_person_id=delivery_person_id,
            current_position=position,
            pickup_location=pickup,
            delivery_location=delivery,
            route=route,
            estimated_arrival_time=estimated_arrival,
            distance_to_destination=distance,
            status=DeliveryStatus.EN_ROUTE_TO_PICKUP,
            last_updated=now,
            last_route_calculated_at=now if route else None,
            last_route_attempt_at=now,
        )
        self.store.save(tracking)

        logger.info(f"Tracking started for order {order_id} with delivery person {delivery_person_id}")
        return tracking

    def recalculate_route(self, order_id: int, pickup: Any, delivery: Any,
                          delivery_person_id: Optional[int] = None) -> RecalculationResult:
        """Recompute the route towards the current destination unless one was just attempted."""
        tracking = self.store.find(order_id, delivery_person_id)
        if tracking is None:
            raise ResourceNotFoundError("Tracking for order", order_id)

        now = self.store.now()
        # Failed attempts count towards the debounce window
        if tracking.last_route_attempt_at is not None and \
                now - tracking.last_route_attempt_at < timedelta(seconds=self.debounce_seconds):
            logger.debug(f"Route recalculation for order {order_id} debounced")
            return RecalculationResult(order_id=order_id, debounced=True, tracking=tracking)

        tracking.pickup_location = normalize_coordinates(pickup)
        tracking.delivery_location = normalize_coordinates(delivery)
        tracking.last_route_attempt_at = now
        self.store.save(tracking)
        destination = current_destination(tracking)

        try:
            result = self.geo_service.calculate_route(tracking.current_position, destination, travel_mode="driving")
        except GeoProviderError as e:
            logger.error(f"Route recalculation failed for order {order_id}: {e.message}")
            return RecalculationResult(order_id=order_id, tracking=tracking)

        routes = result.get("routes") or []
        if not routes:
            logger.error(f"Route recalculation for order {order_id} returned no routes")
            return RecalculationResult(order_id=order_id, tracking=tracking)

        route = routes[0]
        summary = summarize_route(route)
        updated = self.store.update_route(
            tracking.order_id,
            tracking.delivery_person_id,
            route,
            self.store.estimated_arrival(summary["duration_seconds"]),
            summary["distance_meters"],
        )

        event = TrackingEvent(
            type=TrackingEventType.ROUTE_RECALCULATED,
            order_id=tracking.order_id,
            delivery_person_id=tracking.delivery_person_id,
            timestamp=now,
            data=summary,
        )
        logger.info(f"Route recalculated for order {order_id}: {summary['distance_text']}, {summary['duration_text']}")
        return RecalculationResult(order_id=order_id, tracking=updated or tracking, event=event)
