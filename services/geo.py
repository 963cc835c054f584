"""
Geo service: routing, geocoding and distance lookups against Google Maps.

Provider responses are passed through as-is; only geocoding results are
reshaped and cached.
"""
import logging
import threading
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

import googlemaps
from googlemaps import exceptions as gmaps_exceptions

from core.config import settings
from core.exceptions import GeoProviderError
from core.metrics import CacheMetrics
from schemas.geo import Coordinates

logger = logging.getLogger(__name__)

PROVIDER_ERRORS = (
    gmaps_exceptions.ApiError,
    gmaps_exceptions.HTTPError,
    gmaps_exceptions.Timeout,
    gmaps_exceptions.TransportError,
)


def to_provider_location(location: Any):
    """Coordinates become a (lat, lng) tuple; addresses are passed as text."""
    if isinstance(location, Coordinates):
        return (location.latitude, location.longitude)
    if isinstance(location, dict) and "latitude" in location and "longitude" in location:
        return (location["latitude"], location["longitude"])
    return location


class GeoService:
    def __init__(
        self,
        client: Optional[Any] = None,
        cache_ttl_seconds: int = None,
        cache_max_entries: int = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._client = client
        self.cache_ttl_seconds = settings.GEOCODE_CACHE_TTL_SECONDS if cache_ttl_seconds is None else cache_ttl_seconds
        self.cache_max_entries = settings.GEOCODE_CACHE_MAX_ENTRIES if cache_max_entries is None else cache_max_entries
        self._clock = clock
        self._geocode_cache: Dict[str, Tuple[float, List[Dict[str, Any]]]] = {}
        self._cache_lock = threading.Lock()
        self.cache_metrics = CacheMetrics("geocode")

    @property
    def client(self):
        if self._client is None:
            if not settings.GOOGLE_MAPS_API_KEY:
                raise GeoProviderError("Geo provider", "Google Maps API key is not configured")
            try:
                self._client = googlemaps.Client(
                    key=settings.GOOGLE_MAPS_API_KEY,
                    timeout=settings.GEO_PROVIDER_TIMEOUT_SECONDS,
                    retry_timeout=settings.GEO_PROVIDER_TIMEOUT_SECONDS,
                    base_url=settings.GOOGLE_MAPS_BASE_URL,
                )
            except ValueError as e:
                raise GeoProviderError("Geo provider", str(e))
        return self._client

    def _call(self, operation: str, method: str, *args, **kwargs):
        try:
            return getattr(self.client, method)(*args, **kwargs)
        except PROVIDER_ERRORS as e:
            logger.error(f"{operation} failed at provider: {str(e)}")
            raise GeoProviderError(operation, str(e))

    # Routing

    def calculate_route(
        self,
        origin,
        destination,
        waypoints: Optional[List[Any]] = None,
        optimize_waypoints: bool = False,
        travel_mode: str = "driving",
        departure_time: Optional[datetime] = None,
        avoid: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """Directions between two locations, all alternatives returned."""
        kwargs = {
            "mode": travel_mode,
            "departure_time": departure_time or "now",
        }
        if waypoints:
            kwargs["waypoints"] = [to_provider_location(w) for w in waypoints]
            kwargs["optimize_waypoints"] = optimize_waypoints
        if avoid:
            kwargs["avoid"] = avoid

        routes = self._call(
            "Route calculation",
            "directions",
            to_provider_location(origin),
            to_provider_location(destination),
            **kwargs
        )
        logger.info(f"Route calculated with {len(routes or [])} candidate(s)")
        return {"routes": routes or []}

    def calculate_optimized_delivery_route(self, current_position, pickup, delivery) -> Dict[str, Any]:
        """Driving route current position -> pickup -> delivery, pickup as optimised waypoint."""
        return self.calculate_route(
            current_position,
            delivery,
            waypoints=[pickup],
            optimize_waypoints=True,
            travel_mode="driving",
        )

    # Geocoding

    def _cache_get(self, key: str) -> Optional[List[Dict[str, Any]]]:
        with self._cache_lock:
            entry = self._geocode_cache.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if self._clock() - stored_at > self.cache_ttl_seconds:
                del self._geocode_cache[key]
                return None
            return value

    def _cache_set(self, key: str, value: List[Dict[str, Any]]) -> None:
        now = self._clock()
        with self._cache_lock:
            self._geocode_cache.pop(key, None)

            # Insertion order is storage order, so the oldest entries come first
            while self._geocode_cache:
                oldest = next(iter(self._geocode_cache))
                stored_at, _ = self._geocode_cache[oldest]
                if now - stored_at <= self.cache_ttl_seconds and len(self._geocode_cache) < self.cache_max_entries:
                    break
                del self._geocode_cache[oldest]

            self._geocode_cache[key] = (now, value)

    def _cached(self, key: str, operation: str, loader: Callable[[], List[Dict[str, Any]]]):
        cached = self._cache_get(key)
        if cached is not None:
            self.cache_metrics.record_hit()
            return cached

        self.cache_metrics.record_miss()
        value = loader()
        self._cache_set(key, value)
        logger.debug(f"{operation} result cached for key {key}")
        return value

    @staticmethod
    def _simplify(results) -> List[Dict[str, Any]]:
        simplified = []
        for result in results or []:
            location = result.get("geometry", {}).get("location", {})
            simplified.append({
                "formatted_address": result.get("formatted_address", ""),
                "latitude": location.get("lat"),
                "longitude": location.get("lng"),
                "place_id": result.get("place_id"),
                "types": result.get("types", []),
                "partial_match": bool(result.get("partial_match", False)),
            })
        return simplified

    def geocode(self, address: str) -> List[Dict[str, Any]]:
        key = f"address:{address.strip().lower()}"
        return self._cached(
            key,
            "Geocoding",
            lambda: self._simplify(self._call("Geocoding", "geocode", address.strip()))
        )

    def reverse_geocode(self, latitude: float, longitude: float) -> List[Dict[str, Any]]:
        key = f"latlng:{latitude:.6f},{longitude:.6f}"
        return self._cached(
            key,
            "Reverse geocoding",
            lambda: self._simplify(self._call("Reverse geocoding", "reverse_geocode", (latitude, longitude)))
        )

    def validate_address(self, address: str) -> Dict[str, Any]:
        results = self.geocode(address)
        if not results:
            return {"valid": False, "formatted_address": None, "coordinates": None, "partial_match": False}

        best = results[0]
        return {
            "valid": True,
            "formatted_address": best["formatted_address"],
            "coordinates": {"latitude": best["latitude"], "longitude": best["longitude"]},
            "partial_match": best["partial_match"],
        }

    # Distances

    def distance_matrix(
        self,
        origins: List[Any],
        destinations: List[Any],
        travel_mode: str = "driving",
        departure_time: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        return self._call(
            "Distance matrix calculation",
            "distance_matrix",
            [to_provider_location(o) for o in origins],
            [to_provider_location(d) for d in destinations],
            mode=travel_mode,
            departure_time=departure_time or "now",
        )

    def calculate_eta(self, origin, destination, departure_time: Optional[datetime] = None) -> Dict[str, Any]:
        """Driving ETA for a single origin/destination pair, traffic-aware when available."""
        matrix = self.distance_matrix([origin], [destination], departure_time=departure_time)

        try:
            element = matrix["rows"][0]["elements"][0]
        except (KeyError, IndexError, TypeError):
            raise GeoProviderError("ETA calculation", "Provider returned an empty distance matrix")

        if element.get("status") != "OK":
            raise GeoProviderError("ETA calculation", f"No result for this origin/destination ({element.get('status')})")

        duration = element.get("duration_in_traffic") or element["duration"]
        distance = element["distance"]
        start = departure_time or datetime.utcnow()

        return {
            "duration_seconds": int(duration["value"]),
            "duration_minutes": int(round(duration["value"] / 60)),
            "duration_text": duration.get("text", ""),
            "distance_meters": int(distance["value"]),
            "distance_km": round(distance["value"] / 1000, 1),
            "distance_text": distance.get("text", ""),
            "estimated_arrival_time": start + timedelta(seconds=duration["value"]),
        }

    # Cache management

    def cache_stats(self) -> Dict[str, Any]:
        with self._cache_lock:
            size = len(self._geocode_cache)
        stats = self.cache_metrics.snapshot()
        stats.update({
            "cache_size": size,
            "max_entries": self.cache_max_entries,
            "ttl_seconds": self.cache_ttl_seconds,
        })
        return stats


_geo_service: Optional[GeoService] = None


def get_geo_service() -> GeoService:
    """Process-wide geo service; override this dependency in tests."""
    global _geo_service
    if _geo_service is None:
        _geo_service = GeoService()
    return _geo_service
