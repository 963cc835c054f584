from pydantic import BaseModel, Field, validator
from typing import Any, List, Optional, Union
from datetime import datetime

TRAVEL_MODES = {"driving", "walking", "bicycling", "transit"}

class Coordinates(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

class LooseCoordinates(BaseModel):
    """Position as reported by clients; validated later with a city-centre fallback."""
    latitude: Any = None
    longitude: Any = None

# Either a coordinate pair or a free-form address
Location = Union[Coordinates, str]

def _check_mode(v):
    if v not in TRAVEL_MODES:
        raise ValueError(f"travel_mode must be one of: {', '.join(sorted(TRAVEL_MODES))}")
    return v

class RouteRequest(BaseModel):
    origin: Location
    destination: Location
    waypoints: List[Location] = []
    optimize_waypoints: bool = False
    travel_mode: str = "driving"
    departure_time: Optional[datetime] = None
    avoid: List[str] = []

    @validator('travel_mode')
    def validate_mode(cls, v):
        return _check_mode(v)

class OptimizedRouteRequest(BaseModel):
    current_position: Coordinates
    pickup_location: Coordinates
    delivery_location: Coordinates

class GeocodeRequest(BaseModel):
    address: str = Field(..., min_length=1, max_length=500)

class DistanceMatrixRequest(BaseModel):
    origins: List[Location] = Field(..., min_length=1)
    destinations: List[Location] = Field(..., min_length=1)
    travel_mode: str = "driving"
    departure_time: Optional[datetime] = None

    @validator('travel_mode')
    def validate_mode(cls, v):
        return _check_mode(v)

class EtaRequest(BaseModel):
    origin: Location
    destination: Location
    departure_time: Optional[datetime] = None

class GeocodeResult(BaseModel):
    formatted_address: str
    latitude: float
    longitude: float
    place_id: Optional[str] = None
    types: List[str] = []

class AddressValidationResponse(BaseModel):
    valid: bool
    formatted_address: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    partial_match: bool = False

class EtaResponse(BaseModel):
    duration_seconds: int
    duration_minutes: int
    duration_text: str
    distance_meters: int
    distance_km: float
    distance_text: str
    estimated_arrival_time: datetime
