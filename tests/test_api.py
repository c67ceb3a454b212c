import pytest
from fastapi.testclient import TestClient

from delivery.config.dependencies import build_context
from delivery.config.settings import OrderSettings
from delivery.main import create_app
from delivery.orders.events import OrderEvent, OrderEventType

ORDER_BODY = {
    "restaurant_id": "r1",
    "items": [{"menu_id": "m1", "quantity": 2}, {"menu_id": "m2", "quantity": 1}],
}


@pytest.fixture
def context(settings, redis_client, event_log, catalog_store):
    return build_context(
        settings=settings,
        redis_client=redis_client,
        publisher=event_log,
        catalog_store=catalog_store,
    )


@pytest.fixture
def client(context):
    app = create_app(context=context, start_relay=False)
    with TestClient(app) as client:
        yield client


def order_events(event_log):
    return [OrderEvent.from_bytes(r.value) for r in event_log.records("orders")]


def test_get_menu_is_cached(client, catalog_store):
    first = client.get("/menu", params={"restaurant_id": "r1"})
    second = client.get("/menu", params={"restaurant_id": "r1"})

    assert first.status_code == 200
    assert first.json() == second.json()
    assert first.json()["restaurant_id"] == "r1"
    assert [item["id"] for item in first.json()["menu"]] == ["m1", "m2"]
    assert catalog_store.loads["r1"] == 1


def test_get_menu_requires_restaurant_id(client):
    response = client.get("/menu")
    assert response.status_code == 400
    assert "error" in response.json()


def test_get_menu_unknown_restaurant(client):
    response = client.get("/menu", params={"restaurant_id": "r404"})
    assert response.status_code == 500
    assert "r404" in response.json()["error"]


def test_list_restaurants_and_riders(client):
    assert client.get("/restaurant").json() == {"restaurant": [{"id": "r1", "name": "Bangkok Street Kitchen"}]}
    assert client.get("/rider").json() == {"rider": [{"id": "rd1", "name": "Somchai"}]}


def test_place_order(client, event_log):
    response = client.post("/order", json=ORDER_BODY)

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "created"

    [event] = order_events(event_log)
    assert event.order_id == body["order_id"]
    assert event.details["total_amount"] == 25.0


def test_place_order_with_unknown_item_keeps_total(client, event_log):
    body = {**ORDER_BODY, "items": ORDER_BODY["items"] + [{"menu_id": "m9", "quantity": 3}]}
    assert client.post("/order", json=body).status_code == 200

    [event] = order_events(event_log)
    assert event.details["total_amount"] == 25.0


@pytest.mark.parametrize(
    "body",
    [
        {"items": ORDER_BODY["items"]},
        {"restaurant_id": "r1"},
        {"restaurant_id": "r1", "items": [{"menu_id": "m1", "quantity": 0}]},
    ],
)
def test_place_order_rejects_bad_input(client, event_log, catalog_store, body):
    response = client.post("/order", json=body)

    assert response.status_code == 400
    assert event_log.records("orders") == []
    assert sum(catalog_store.loads.values()) == 0


def test_order_walks_through_lifecycle(client, event_log):
    order_id = client.post("/order", json=ORDER_BODY).json()["order_id"]

    accept = client.post("/restaurant/order/accept", json={"order_id": order_id, "restaurant_id": "r1"})
    pickup = client.post("/rider/order/pickup", json={"order_id": order_id, "rider_id": "rd1"})
    deliver = client.post("/rider/order/deliver", json={"order_id": order_id, "rider_id": "rd1"})

    assert accept.json() == {"status": "accepted"}
    assert pickup.json() == {"status": "picked_up"}
    assert deliver.json() == {"status": "Delivered"}
    assert [e.event_type for e in order_events(event_log)] == [
        OrderEventType.CREATED,
        OrderEventType.ACCEPTED,
        OrderEventType.PICKED_UP,
        OrderEventType.DELIVERED,
    ]


def test_out_of_order_transition_conflicts(client):
    order_id = client.post("/order", json=ORDER_BODY).json()["order_id"]

    response = client.post("/rider/order/deliver", json={"order_id": order_id, "rider_id": "rd1"})
    assert response.status_code == 409


def test_unknown_order_not_found(client):
    response = client.post("/restaurant/order/accept", json={"order_id": "o404", "restaurant_id": "r1"})
    assert response.status_code == 404


def test_missing_fields_rejected(client, event_log):
    response = client.post("/rider/order/deliver", json={"order_id": "o1"})

    assert response.status_code == 400
    assert response.json()["error"] == "Missing rider_id"
    assert event_log.records("orders") == []


def test_deliver_without_transition_checks(settings, redis_client, event_log, catalog_store):
    settings.orders = OrderSettings(enforce_transitions=False)
    context = build_context(
        settings=settings, redis_client=redis_client, publisher=event_log, catalog_store=catalog_store
    )

    with TestClient(create_app(context=context, start_relay=False)) as client:
        response = client.post("/rider/order/deliver", json={"order_id": "o1", "rider_id": "rd1"})

    assert response.status_code == 200
    assert response.json() == {"status": "Delivered"}
    [event] = order_events(event_log)
    assert event.order_id == "o1"
    assert event.details == {"rider_id": "rd1"}


def test_send_notification(client):
    response = client.post(
        "/notification/send", json={"recipient": "customer", "order_id": "o1", "message": "On the way"}
    )
    assert response.json() == {"status": "sent"}


def test_send_notification_invalid_recipient(client):
    response = client.post("/notification/send", json={"recipient": "chef", "order_id": "o1", "message": "hi"})

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid recipient"}


def test_health_endpoints(client):
    assert client.get("/health/redis").json()["redis"]["status"] == "healthy"
    assert client.get("/health/kafka").json()["kafka"]["status"] == "skipped"

    summary = client.get("/health").json()["summary"]
    assert summary == {"total": 2, "healthy": 2, "unhealthy": 0}


def test_pickup_without_order_id_is_not_found(client, event_log):
    response = client.post("/rider/order/pickup", json={"rider_id": "rd1"})

    assert response.status_code == 404
    assert event_log.records("orders") == []


@pytest.mark.parametrize("restaurant_id", ["restaurant-list", "rider-list"])
def test_get_menu_rejects_list_keys(client, restaurant_id):
    client.get("/restaurant")
    client.get("/rider")

    response = client.get("/menu", params={"restaurant_id": restaurant_id})
    assert response.status_code == 400
