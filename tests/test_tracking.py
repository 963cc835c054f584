from datetime import timedelta

import pytest
from googlemaps.exceptions import ApiError

from conftest import auth_headers, make_leg, make_route
from core.config import settings
from core.exceptions import BusinessLogicError, GeoProviderError, ResourceNotFoundError, RouteUnavailableError
from schemas.geo import Coordinates
from schemas.tracking import DeliveryStatus, TrackingEventType

CURRENT = {"latitude": 48.8606, "longitude": 2.3376}
PICKUP = {"latitude": 48.8738, "longitude": 2.2950}
DELIVERY = {"latitude": 48.8867, "longitude": 2.3431}


def start(orchestrator, order_id=1, delivery_person_id=7, current=CURRENT):
    return orchestrator.start_tracking(order_id, delivery_person_id, PICKUP, DELIVERY, current_position=current)


def test_start_tracking_uses_first_leg_for_eta(orchestrator, clock):
    tracking = start(orchestrator)

    assert tracking.status == DeliveryStatus.EN_ROUTE_TO_PICKUP
    assert tracking.current_position == Coordinates(**CURRENT)
    assert tracking.distance_to_destination == 1200
    assert tracking.estimated_arrival_time == clock() + timedelta(seconds=300)
    assert tracking.route["summary"] == "Test route"
    assert tracking.last_route_calculated_at == clock()


def test_start_tracking_plans_via_pickup(orchestrator, google_client):
    start(orchestrator)

    name, args, kwargs = google_client.calls[-1]
    assert name == "directions"
    assert args == ((CURRENT["latitude"], CURRENT["longitude"]), (DELIVERY["latitude"], DELIVERY["longitude"]))
    assert kwargs["waypoints"] == [(PICKUP["latitude"], PICKUP["longitude"])]
    assert kwargs["optimize_waypoints"] is True


def test_start_tracking_without_position_uses_last_known(orchestrator, tracking_store):
    tracking_store.update_position(7, Coordinates(latitude=48.85, longitude=2.30))

    tracking = start(orchestrator, current=None)

    assert tracking.current_position == Coordinates(latitude=48.85, longitude=2.30)


def test_start_tracking_without_any_position_uses_default(orchestrator):
    tracking = start(orchestrator, current=None)
    assert tracking.current_position.latitude == settings.DEFAULT_LATITUDE
    assert tracking.current_position.longitude == settings.DEFAULT_LONGITUDE


def test_malformed_position_falls_back_to_default(orchestrator):
    tracking = start(orchestrator, current={"latitude": "north", "longitude": 999})
    assert tracking.current_position.latitude == settings.DEFAULT_LATITUDE


def test_tracking_starts_without_route_when_provider_fails(orchestrator, google_client):
    google_client.error = GeoProviderError("Route calculation", "OVER_QUERY_LIMIT")

    tracking = start(orchestrator)

    assert tracking.route is None
    assert tracking.estimated_arrival_time is None
    assert tracking.last_route_calculated_at is None


def test_plan_without_routes_is_unavailable(orchestrator, google_client):
    google_client.routes = []
    with pytest.raises(RouteUnavailableError):
        orchestrator.plan_delivery_route(Coordinates(**CURRENT), Coordinates(**PICKUP), Coordinates(**DELIVERY))


def test_status_moves_forward(orchestrator, tracking_store):
    start(orchestrator)

    event = tracking_store.update_status(1, DeliveryStatus.PICKED_UP)

    assert event.type == TrackingEventType.STATUS_CHANGE
    assert event.data == {"previous_status": "en_route_to_pickup", "status": "picked_up"}
    assert tracking_store.get(1).status == DeliveryStatus.PICKED_UP


def test_status_cannot_move_backwards(orchestrator, tracking_store):
    start(orchestrator)
    tracking_store.update_status(1, DeliveryStatus.AT_DELIVERY)

    with pytest.raises(BusinessLogicError):
        tracking_store.update_status(1, DeliveryStatus.AT_PICKUP)


def test_status_of_unknown_order(tracking_store):
    assert tracking_store.update_status(99, DeliveryStatus.AT_PICKUP) is None


def test_delivered_tracking_is_kept(orchestrator, tracking_store):
    start(orchestrator)
    tracking_store.update_status(1, DeliveryStatus.DELIVERED)
    assert tracking_store.get(1).status == DeliveryStatus.DELIVERED


def test_position_update_refreshes_every_tracking(orchestrator, tracking_store, google_client, clock):
    start(orchestrator, order_id=1)
    start(orchestrator, order_id=2)
    start(orchestrator, order_id=3, delivery_person_id=8)

    events = tracking_store.update_position(7, Coordinates(latitude=48.87, longitude=2.31))

    assert sorted(e.order_id for e in events) == [1, 2]
    assert all(e.type == TrackingEventType.POSITION_UPDATE for e in events)
    assert tracking_store.get(1).current_position == Coordinates(latitude=48.87, longitude=2.31)
    assert tracking_store.get(1).distance_to_destination == 2500
    assert tracking_store.get(1).estimated_arrival_time == clock() + timedelta(seconds=620)
    assert tracking_store.get(3).current_position == Coordinates(**CURRENT)
    assert tracking_store.get_position(7).latitude == 48.87


def test_position_update_survives_eta_failure(orchestrator, tracking_store, google_client):
    start(orchestrator)
    google_client.error = GeoProviderError("Distance matrix calculation", "UNKNOWN_ERROR")

    events = tracking_store.update_position(7, Coordinates(latitude=48.87, longitude=2.31))

    assert len(events) == 1
    assert tracking_store.get(1).current_position.latitude == 48.87


def test_recalculation_is_debounced(orchestrator, google_client, clock):
    start(orchestrator)
    calls_before = google_client.count("directions")

    clock.advance(settings.ROUTE_RECALC_DEBOUNCE_SECONDS / 2)
    result = orchestrator.recalculate_route(1, PICKUP, DELIVERY)

    assert result.debounced
    assert result.event is None
    assert google_client.count("directions") == calls_before


def test_recalculation_heads_to_pickup_first(orchestrator, google_client, clock):
    start(orchestrator)
    clock.advance(settings.ROUTE_RECALC_DEBOUNCE_SECONDS + 1)
    google_client.routes = [make_route(make_leg(4000, 700))]

    result = orchestrator.recalculate_route(1, PICKUP, DELIVERY)

    _, args, _ = google_client.calls[-1]
    assert args[1] == (PICKUP["latitude"], PICKUP["longitude"])
    assert not result.debounced
    assert result.event.type == TrackingEventType.ROUTE_RECALCULATED
    assert result.event.data["distance_meters"] == 4000
    assert result.tracking.distance_to_destination == 4000
    assert result.tracking.estimated_arrival_time == clock() + timedelta(seconds=700)


def test_recalculation_heads_to_delivery_after_pickup(orchestrator, tracking_store, google_client, clock):
    start(orchestrator)
    tracking_store.update_status(1, DeliveryStatus.PICKED_UP)
    clock.advance(settings.ROUTE_RECALC_DEBOUNCE_SECONDS + 1)

    orchestrator.recalculate_route(1, PICKUP, DELIVERY)

    _, args, _ = google_client.calls[-1]
    assert args[1] == (DELIVERY["latitude"], DELIVERY["longitude"])


def test_failed_recalculation_emits_no_event(orchestrator, google_client, clock):
    start(orchestrator)
    clock.advance(settings.ROUTE_RECALC_DEBOUNCE_SECONDS + 1)
    google_client.error = GeoProviderError("Route calculation", "ZERO_RESULTS")

    result = orchestrator.recalculate_route(1, PICKUP, DELIVERY)

    assert result.event is None
    assert not result.debounced


def test_recalculation_is_debounced_while_provider_fails(orchestrator, google_client, clock):
    google_client.error = ApiError("OVER_QUERY_LIMIT")
    tracking = start(orchestrator)
    assert tracking.last_route_attempt_at == clock()

    clock.advance(settings.ROUTE_RECALC_DEBOUNCE_SECONDS + 1)
    calls_before = google_client.count("directions")
    results = [orchestrator.recalculate_route(1, PICKUP, DELIVERY) for _ in range(5)]

    assert google_client.count("directions") == calls_before + 1
    assert not results[0].debounced
    assert all(r.debounced for r in results[1:])


def test_recalculation_of_untracked_order(orchestrator):
    with pytest.raises(ResourceNotFoundError):
        orchestrator.recalculate_route(42, PICKUP, DELIVERY)


def test_tracking_endpoints_flow(client, courier):
    headers = auth_headers(courier)

    started = client.post(
        "/tracking/order/10/start",
        json={"delivery_person_id": courier.id, "pickup_location": PICKUP, "delivery_location": DELIVERY, "current_position": CURRENT},
        headers=headers
    )
    assert started.status_code == 201
    assert started.json()["status"] == "en_route_to_pickup"

    moved = client.post(f"/tracking/delivery-person/{courier.id}/position", json={"latitude": 48.87, "longitude": 2.31, "speed": 8.5}, headers=headers)
    assert moved.status_code == 200
    assert moved.json()[0]["type"] == "position_update"

    position = client.get(f"/tracking/delivery-person/{courier.id}/position", headers=headers).json()
    assert position["latitude"] == 48.87
    assert position["speed"] == 8.5

    status = client.put("/tracking/order/10/status", json={"status": "at_pickup"}, headers=headers)
    assert status.status_code == 200
    assert status.json()["data"]["status"] == "at_pickup"

    recalculated = client.post("/tracking/order/10/recalculate-route", json={"pickup_location": PICKUP, "delivery_location": DELIVERY}, headers=headers)
    assert recalculated.status_code == 200

    tracking = client.get("/tracking/order/10", headers=headers).json()
    assert tracking["status"] == "at_pickup"

    orders = client.get(f"/tracking/delivery-person/{courier.id}/orders", headers=headers).json()
    assert [t["order_id"] for t in orders] == [10]


def test_backwards_status_endpoint(client, courier):
    headers = auth_headers(courier)
    client.post(
        "/tracking/order/11/start",
        json={"delivery_person_id": courier.id, "pickup_location": PICKUP, "delivery_location": DELIVERY},
        headers=headers
    )
    client.put("/tracking/order/11/status", json={"status": "picked_up"}, headers=headers)

    response = client.put("/tracking/order/11/status", json={"status": "at_pickup"}, headers=headers)
    assert response.status_code == 400


def test_courier_cannot_report_for_someone_else(client, courier):
    response = client.post(
        f"/tracking/delivery-person/{courier.id + 100}/position",
        json={"latitude": 48.87, "longitude": 2.31},
        headers=auth_headers(courier)
    )
    assert response.status_code == 403


def test_unknown_tracking_endpoints(client, courier):
    headers = auth_headers(courier)
    assert client.get("/tracking/order/404", headers=headers).status_code == 404
    assert client.put("/tracking/order/404/status", json={"status": "at_pickup"}, headers=headers).status_code == 404
    assert client.get(f"/tracking/delivery-person/{courier.id}/position", headers=headers).status_code == 404


@pytest.fixture
def tracked_order(client, courier):
    client.post(
        "/tracking/order/7/start",
        json={"delivery_person_id": courier.id, "pickup_location": PICKUP, "delivery_location": DELIVERY, "current_position": CURRENT},
        headers=auth_headers(courier)
    )
    client.post(f"/tracking/delivery-person/{courier.id}/position", json=CURRENT, headers=auth_headers(courier))
    return 7


def test_merchant_cannot_reroute_or_read_tracking(client, merchant, courier, tracked_order, tracking_store):
    headers = auth_headers(merchant)
    moved = {"latitude": 48.80, "longitude": 2.20}

    assert client.post(
        f"/tracking/order/{tracked_order}/recalculate-route",
        json={"pickup_location": moved, "delivery_location": moved},
        headers=headers
    ).status_code == 403
    assert client.get(f"/tracking/order/{tracked_order}", headers=headers).status_code == 403
    assert client.get(f"/tracking/delivery-person/{courier.id}/position", headers=headers).status_code == 403

    assert tracking_store.get(tracked_order).pickup_location == Coordinates(**PICKUP)


def test_other_courier_cannot_reach_foreign_tracking(client, make_user, courier, tracked_order):
    headers = auth_headers(make_user())

    assert client.post(
        f"/tracking/order/{tracked_order}/recalculate-route",
        json={"pickup_location": PICKUP, "delivery_location": DELIVERY},
        headers=headers
    ).status_code == 403
    assert client.get(f"/tracking/order/{tracked_order}", headers=headers).status_code == 403
    assert client.get(f"/tracking/delivery-person/{courier.id}/position", headers=headers).status_code == 403


def test_staff_can_read_any_tracking(client, admin, technician, courier, tracked_order):
    for user in (admin, technician):
        headers = auth_headers(user)
        assert client.get(f"/tracking/order/{tracked_order}", headers=headers).status_code == 200
        assert client.get(f"/tracking/delivery-person/{courier.id}/position", headers=headers).status_code == 200


def test_recalculating_unknown_tracking(client, courier):
    response = client.post(
        "/tracking/order/404/recalculate-route",
        json={"pickup_location": PICKUP, "delivery_location": DELIVERY},
        headers=auth_headers(courier)
    )
    assert response.status_code == 404
