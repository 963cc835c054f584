from fastapi import APIRouter, Depends, Query
from typing import List
import logging

from routers.auth import get_current_user
from schemas.user import UserResponse
from schemas.geo import (
    RouteRequest,
    OptimizedRouteRequest,
    GeocodeRequest,
    DistanceMatrixRequest,
    EtaRequest,
    GeocodeResult,
    AddressValidationResponse,
    EtaResponse
)
from services.geo import GeoService, get_geo_service
from services.routing import RouteOrchestrator
from routers.tracking import get_route_orchestrator
from core.config import settings
from core.response import health_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/geo", tags=["Geo"])

@router.get("/health")
def geo_health(geo_service: GeoService = Depends(get_geo_service)):
    return health_response(
        "geo-service",
        settings.ENVIRONMENT,
        provider="google_maps",
        provider_configured=bool(settings.GOOGLE_MAPS_API_KEY),
        cache=geo_service.cache_stats()
    )

@router.post("/route")
def calculate_route(
    request: RouteRequest,
    current_user: UserResponse = Depends(get_current_user),
    geo_service: GeoService = Depends(get_geo_service)
):
    """Directions between two locations; provider routes are returned unchanged."""
    return geo_service.calculate_route(
        request.origin,
        request.destination,
        waypoints=request.waypoints,
        optimize_waypoints=request.optimize_waypoints,
        travel_mode=request.travel_mode,
        departure_time=request.departure_time,
        avoid=request.avoid
    )

@router.post("/route/optimized")
def optimized_delivery_route(
    request: OptimizedRouteRequest,
    current_user: UserResponse = Depends(get_current_user),
    orchestrator: RouteOrchestrator = Depends(get_route_orchestrator)
):
    """Best route from the current position to the delivery, via the pickup."""
    route, summary = orchestrator.plan_delivery_route(
        request.current_position,
        request.pickup_location,
        request.delivery_location
    )
    return {"route": route, "summary": summary}

@router.post("/geocode", response_model=List[GeocodeResult])
def geocode(
    request: GeocodeRequest,
    current_user: UserResponse = Depends(get_current_user),
    geo_service: GeoService = Depends(get_geo_service)
):
    return geo_service.geocode(request.address)

@router.get("/geocode/address", response_model=List[GeocodeResult])
def geocode_address(
    address: str = Query(..., min_length=1, max_length=500),
    current_user: UserResponse = Depends(get_current_user),
    geo_service: GeoService = Depends(get_geo_service)
):
    return geo_service.geocode(address)

@router.get("/geocode/coordinates", response_model=List[GeocodeResult])
def reverse_geocode(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    current_user: UserResponse = Depends(get_current_user),
    geo_service: GeoService = Depends(get_geo_service)
):
    """Addresses at a coordinate pair."""
    return geo_service.reverse_geocode(lat, lng)

@router.post("/distance-matrix")
def distance_matrix(
    request: DistanceMatrixRequest,
    current_user: UserResponse = Depends(get_current_user),
    geo_service: GeoService = Depends(get_geo_service)
):
    return geo_service.distance_matrix(
        request.origins,
        request.destinations,
        travel_mode=request.travel_mode,
        departure_time=request.departure_time
    )

@router.post("/validate-address", response_model=AddressValidationResponse)
def validate_address(
    request: GeocodeRequest,
    current_user: UserResponse = Depends(get_current_user),
    geo_service: GeoService = Depends(get_geo_service)
):
    return geo_service.validate_address(request.address)

@router.post("/eta", response_model=EtaResponse)
def calculate_eta(
    request: EtaRequest,
    current_user: UserResponse = Depends(get_current_user),
    geo_service: GeoService = Depends(get_geo_service)
):
    return geo_service.calculate_eta(request.origin, request.destination, request.departure_time)

@router.get("/cache/stats")
def cache_stats(
    current_user: UserResponse = Depends(get_current_user),
    geo_service: GeoService = Depends(get_geo_service)
):
    return geo_service.cache_stats()
