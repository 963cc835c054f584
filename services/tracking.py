"""
In-memory store of live delivery tracking.

Snapshots are keyed by (order_id, delivery_person_id). The lock only keeps
the dictionaries consistent; concurrent writers follow last-write-wins.
"""
import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from core.exceptions import BusinessLogicError, GeoProviderError
from schemas.geo import Coordinates
from schemas.tracking import (
    DELIVERY_STATUS_SEQUENCE,
    DeliveryStatus,
    DeliveryTracking,
    PositionUpdateRequest,
    StoredPosition,
    TrackingEvent,
    TrackingEventType,
)

logger = logging.getLogger(__name__)

TrackingKey = Tuple[int, int]


def current_destination(tracking: DeliveryTracking) -> Optional[Coordinates]:
    """Pickup while heading there, delivery location afterwards."""
    if tracking.status == DeliveryStatus.EN_ROUTE_TO_PICKUP:
        return tracking.pickup_location
    return tracking.delivery_location


class TrackingStore:
    def __init__(self, geo_service=None, now: Callable[[], datetime] = datetime.utcnow):
        self.geo_service = geo_service
        self._now = now
        self._trackings: Dict[TrackingKey, DeliveryTracking] = {}
        self._positions: Dict[int, StoredPosition] = {}
        self._lock = threading.Lock()

    def save(self, tracking: DeliveryTracking) -> DeliveryTracking:
        with self._lock:
            self._trackings[(tracking.order_id, tracking.delivery_person_id)] = tracking.copy(deep=True)
        return tracking

    def _find_key(self, order_id: int, delivery_person_id: Optional[int] = None) -> Optional[TrackingKey]:
        if delivery_person_id is not None:
            key = (order_id, delivery_person_id)
            return key if key in self._trackings else None

        # Most recently updated tracking wins when an order was reassigned
        candidates = [t for k, t in self._trackings.items() if k[0] == order_id]
        if not candidates:
            return None
        latest = max(candidates, key=lambda t: t.last_updated)
        return (latest.order_id, latest.delivery_person_id)

    def find(self, order_id: int, delivery_person_id: Optional[int] = None) -> Optional[DeliveryTracking]:
        with self._lock:
            key = self._find_key(order_id, delivery_person_id)
            return self._trackings[key].copy(deep=True) if key else None

    def get(self, order_id: int) -> Optional[DeliveryTracking]:
        return self.find(order_id)

    def get_for_delivery_person(self, delivery_person_id: int) -> List[DeliveryTracking]:
        with self._lock:
            trackings = [
                t.copy(deep=True) for (_, dp_id), t in self._trackings.items()
                if dp_id == delivery_person_id
            ]
        return sorted(trackings, key=lambda t: t.order_id)

    def get_position(self, delivery_person_id: int) -> Optional[StoredPosition]:
        with self._lock:
            position = self._positions.get(delivery_person_id)
            return position.copy() if position else None

    def update_route(
        self,
        order_id: int,
        delivery_person_id: int,
        route: Optional[dict],
        estimated_arrival_time: Optional[datetime],
        distance_to_destination: Optional[int],
    ) -> Optional[DeliveryTracking]:
        now = self._now()
        with self._lock:
            tracking = self._trackings.get((order_id, delivery_person_id))
            if tracking is None:
                return None
            tracking.route = route
            tracking.estimated_arrival_time = estimated_arrival_time
            tracking.distance_to_destination = distance_to_destination
            tracking.last_route_calculated_at = now
            tracking.last_updated = now
            return tracking.copy(deep=True)

    def update_position(self, delivery_person_id: int, position: Coordinates,
                        details: Optional[PositionUpdateRequest] = None) -> List[TrackingEvent]:
        """Record the latest position and refresh ETA on every tracking of that person."""
        now = self._now()
        stored = StoredPosition(
            delivery_person_id=delivery_person_id,
            latitude=position.latitude,
            longitude=position.longitude,
            accuracy=details.accuracy if details else None,
            heading=details.heading if details else None,
            speed=details.speed if details else None,
            timestamp=now,
        )

        with self._lock:
            self._positions[delivery_person_id] = stored
            trackings = []
            for (_, dp_id), tracking in self._trackings.items():
                if dp_id != delivery_person_id:
                    continue
                tracking.current_position = position.copy()
                tracking.last_updated = now
                trackings.append(tracking.copy(deep=True))

        events = []
        for tracking in trackings:
            data = {"position": position.dict()}
            eta = self._refresh_eta(tracking, position)
            if eta:
                data.update(eta)
            events.append(TrackingEvent(
                type=TrackingEventType.POSITION_UPDATE,
                order_id=tracking.order_id,
                delivery_person_id=delivery_person_id,
                timestamp=now,
                data=data,
            ))

        logger.debug(f"Position of delivery person {delivery_person_id} updated, {len(events)} tracking(s) notified")
        return events

    def _refresh_eta(self, tracking: DeliveryTracking, position: Coordinates) -> Optional[dict]:
        destination = current_destination(tracking)
        if self.geo_service is None or destination is None or tracking.status == DeliveryStatus.DELIVERED:
            return None

        try:
            eta = self.geo_service.calculate_eta(position, destination)
        except GeoProviderError as e:
            logger.warning(f"ETA refresh failed for order {tracking.order_id}: {e.message}")
            return None

        arrival = self.estimated_arrival(eta["duration_seconds"])
        with self._lock:
            stored = self._trackings.get((tracking.order_id, tracking.delivery_person_id))
            if stored is not None:
                stored.estimated_arrival_time = arrival
                stored.distance_to_destination = eta["distance_meters"]

        return {
            "estimated_arrival_time": arrival.isoformat(),
            "distance_to_destination": eta["distance_meters"],
        }

    def update_status(self, order_id: int, status: DeliveryStatus,
                      delivery_person_id: Optional[int] = None) -> Optional[TrackingEvent]:
        """Move a tracking forward; returns None when nothing is tracked for the order."""
        status = DeliveryStatus(status)
        now = self._now()

        with self._lock:
            key = self._find_key(order_id, delivery_person_id)
            if key is None:
                return None
            tracking = self._trackings[key]
            previous = tracking.status

            if DELIVERY_STATUS_SEQUENCE.index(status) < DELIVERY_STATUS_SEQUENCE.index(previous):
                raise BusinessLogicError(
                    f"Invalid tracking status transition from {previous.value} to {status.value}",
                    details={"current_status": previous.value, "requested_status": status.value}
                )

            if status != previous:
                tracking.status = status
                tracking.last_updated = now

        if status != previous:
            logger.info(f"Tracking for order {order_id} moved from {previous.value} to {status.value}")

        return TrackingEvent(
            type=TrackingEventType.STATUS_CHANGE,
            order_id=key[0],
            delivery_person_id=key[1],
            timestamp=now,
            data={"previous_status": previous.value, "status": status.value},
        )

    def estimated_arrival(self, duration_seconds: Optional[int]) -> Optional[datetime]:
        if duration_seconds is None:
            return None
        return self._now() + timedelta(seconds=duration_seconds)

    def now(self) -> datetime:
        return self._now()
