import os

# Configure before any application module reads settings
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_CALLS", "100000")
os.environ.setdefault("LOGIN_RATE_LIMIT_CALLS", "100000")
os.environ.setdefault("REGISTER_RATE_LIMIT_CALLS", "100000")
os.environ.setdefault("SENTRY_DSN", "")
os.environ.setdefault("GOOGLE_MAPS_API_KEY", "")

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database.base import Base
from database.connection import get_db
import models.user  # noqa: F401
import models.order  # noqa: F401
import models.refresh_token  # noqa: F401
from models.user import UserRole
from services.auth import create_access_token, create_user
from services.geo import GeoService, get_geo_service
from services.routing import RouteOrchestrator
from services.tracking import TrackingStore
from routers.tracking import get_route_orchestrator, get_tracking_store

STRONG_PASSWORD = "Sup3r$ecretPass"

engine = create_engine(
    "sqlite://",
    poolclass=StaticPool,
    connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def make_leg(distance, duration, traffic=None):
    leg = {
        "distance": {"value": distance, "text": f"{distance} m"},
        "duration": {"value": duration, "text": f"{duration} s"},
        "start_location": {"lat": 48.85, "lng": 2.35},
        "end_location": {"lat": 48.86, "lng": 2.36},
        "steps": [],
    }
    if traffic is not None:
        leg["duration_in_traffic"] = {"value": traffic, "text": f"{traffic} s"}
    return leg


def make_route(*legs):
    return {
        "summary": "Test route",
        "legs": list(legs),
        "overview_polyline": {"points": "_p~iF~ps|U_ulLnnqC"},
        "bounds": {},
    }


class FakeGoogleMapsClient:
    """Stands in for googlemaps.Client; records calls and replays canned answers."""

    def __init__(self):
        self.calls = []
        self.routes = [make_route(make_leg(1200, 300), make_leg(3400, 600))]
        self.geocode_results = [{
            "formatted_address": "1 Rue de Rivoli, 75001 Paris, France",
            "geometry": {"location": {"lat": 48.8556, "lng": 2.3601}},
            "place_id": "place-1",
            "types": ["street_address"],
        }]
        self.matrix_element = {
            "status": "OK",
            "distance": {"value": 2500, "text": "2.5 km"},
            "duration": {"value": 620, "text": "10 mins"},
        }
        self.error = None

    def _record(self, name, *args, **kwargs):
        self.calls.append((name, args, kwargs))
        if self.error is not None:
            raise self.error

    def directions(self, origin, destination, **kwargs):
        self._record("directions", origin, destination, **kwargs)
        return self.routes

    def geocode(self, address):
        self._record("geocode", address)
        return self.geocode_results

    def reverse_geocode(self, latlng):
        self._record("reverse_geocode", latlng)
        return self.geocode_results

    def distance_matrix(self, origins, destinations, **kwargs):
        self._record("distance_matrix", origins, destinations, **kwargs)
        return {
            "status": "OK",
            "origin_addresses": ["origin"],
            "destination_addresses": ["destination"],
            "rows": [{"elements": [self.matrix_element]}],
        }

    def count(self, name):
        return len([c for c in self.calls if c[0] == name])


class FakeClock:
    def __init__(self, start=None):
        self.current = start or datetime(2026, 1, 1, 12, 0, 0)

    def __call__(self):
        return self.current

    def advance(self, seconds):
        self.current = self.current + timedelta(seconds=seconds)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def google_client():
    return FakeGoogleMapsClient()


@pytest.fixture
def geo_service(google_client):
    return GeoService(client=google_client)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tracking_store(geo_service, clock):
    return TrackingStore(geo_service, now=clock)


@pytest.fixture
def orchestrator(geo_service, tracking_store):
    return RouteOrchestrator(geo_service, tracking_store)


@pytest.fixture
def app(db, geo_service, tracking_store, orchestrator):
    from full_main import app as backend_app

    def override_get_db():
        yield db

    backend_app.dependency_overrides[get_db] = override_get_db
    backend_app.dependency_overrides[get_geo_service] = lambda: geo_service
    backend_app.dependency_overrides[get_tracking_store] = lambda: tracking_store
    backend_app.dependency_overrides[get_route_orchestrator] = lambda: orchestrator
    yield backend_app
    backend_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(role=UserRole.DELIVERY_PERSON, email=None, name="Test User", password=STRONG_PASSWORD):
        counter["n"] += 1
        email = email or f"{role.value}{counter['n']}@example.com"
        return create_user(db, email=email, password=password, name=name, role=role)

    return _make_user


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN, name="Admin")


@pytest.fixture
def merchant(make_user):
    return make_user(UserRole.MERCHANT, name="Merchant")


@pytest.fixture
def courier(make_user):
    return make_user(UserRole.DELIVERY_PERSON, name="Courier")


@pytest.fixture
def technician(make_user):
    return make_user(UserRole.LOGISTICS_TECHNICIAN, name="Technician")
