"""
HTTP API Tests

Drive the FastAPI app through TestClient with in-memory collaborators and
check status codes, the common error body and the staff key gate.
"""

import pytest
from fastapi.testclient import TestClient

from orderflow.core.config import OrderStoreBackend, Settings
from orderflow.main import create_app
from orderflow.services.establishment import InMemoryEstablishmentProvider
from orderflow.services.order_store import InMemoryOrderStore
from tests.conftest import STAFF_KEY, RecordingNotifier, hours_every_day, make_catalog, order_payload

STAFF = {"X-Staff-Key": STAFF_KEY}


def build_client(tmp_path, is_open: bool = True, notifier=None, **overrides) -> TestClient:
    settings = Settings(
        order_store_backend=OrderStoreBackend.MEMORY,
        staff_api_key=STAFF_KEY,
        notifications_enabled=False,
        upload_directory=str(tmp_path / "uploads"),
        sse_ping_interval_seconds=3600,
        **overrides,
    )
    establishment = InMemoryEstablishmentProvider(
        business_hours=hours_every_day(is_open=is_open),
        catalog=make_catalog(),
        delivery_fees={"Centro": 5.0},
    )
    app = create_app(
        settings=settings,
        order_store=InMemoryOrderStore(),
        establishment=establishment,
        notifier=notifier,
    )
    return TestClient(app)


@pytest.fixture
def client(tmp_path):
    with build_client(tmp_path) as client:
        yield client


def place_order(client, **overrides) -> str:
    response = client.post("/api/orders", json=order_payload(**overrides))
    assert response.status_code == 201, response.text
    return response.json()["order_id"]


# ============================================================================
# ROOT & STATUS
# ============================================================================

class TestRoot:

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["health"] == "/health"

    def test_establishment_status(self, client):
        body = client.get("/api/status").json()

        assert body["is_open"] is True
        assert body["timezone"] == "America/Sao_Paulo"
        assert body["reason"] == "open"


# ============================================================================
# ORDER INTAKE
# ============================================================================

class TestCreateOrder:

    def test_created(self, client):
        response = client.post("/api/orders", json=order_payload())

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["total"] == 58.0
        assert body["status"] == "pending"

    def test_closed_establishment(self, tmp_path):
        with build_client(tmp_path, is_open=False) as client:
            response = client.post("/api/orders", json=order_payload())

            assert response.status_code == 403
            body = response.json()
            assert body["success"] is False
            assert body["error"] == "establishment_closed"
            assert body["reason"] == "day marked closed"
            assert client.get("/api/orders", headers=STAFF).json()["total"] == 0

    def test_schema_violation_uses_error_body(self, client):
        response = client.post("/api/orders", json=order_payload(items=[]))

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "validation_error"
        assert body["errors"]

    def test_unknown_item(self, client):
        response = client.post("/api/orders", json=order_payload(items=[{"name": "Sushi", "quantity": 1}]))

        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"


# ============================================================================
# QUERIES
# ============================================================================

class TestQueries:

    def test_get_order(self, client):
        order_id = place_order(client)

        response = client.get(f"/api/orders/{order_id}")

        assert response.status_code == 200
        assert response.json()["id"] == order_id
        assert response.json()["items"][0]["unit_price"] == 53.0

    def test_get_missing_order(self, client):
        response = client.get("/api/orders/missing")

        assert response.status_code == 404
        assert response.json() == {
            "success": False,
            "error": "not_found",
            "detail": "Order missing not found",
        }

    def test_list_by_phone_is_public(self, client):
        order_id = place_order(client)

        body = client.get("/api/orders", params={"phone": "11987654321"}).json()

        assert body["total"] == 1
        assert body["orders"][0]["id"] == order_id

    def test_unfiltered_list_requires_staff(self, client):
        place_order(client)

        assert client.get("/api/orders").status_code == 401
        assert client.get("/api/orders", headers={"X-Staff-Key": "wrong"}).status_code == 401
        assert client.get("/api/orders", headers=STAFF).json()["total"] == 1

    @pytest.mark.parametrize("params", [{"phone": " "}, {"order_id": "  "}, {"phone": "\t", "order_id": ""}])
    def test_blank_filters_still_require_staff(self, client, params):
        place_order(client)
        place_order(client, customer={"name": "Bruna", "phone": "21912345678"})

        assert client.get("/api/orders", params=params).status_code == 401
        assert client.get("/api/orders", params=params, headers=STAFF).json()["total"] == 2


# ============================================================================
# STAFF OPERATIONS
# ============================================================================

class TestStatusUpdates:

    def test_requires_staff_key(self, client):
        order_id = place_order(client)

        response = client.patch(f"/api/orders/{order_id}/status", json={"status": "preparing"})

        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"

    def test_advance(self, client):
        order_id = place_order(client)

        response = client.patch(f"/api/orders/{order_id}/status", json={"status": "preparing"}, headers=STAFF)

        assert response.status_code == 200
        assert response.json()["status"] == "preparing"

    def test_invalid_transition(self, client):
        order_id = place_order(client)

        response = client.patch(f"/api/orders/{order_id}/status", json={"status": "delivered"}, headers=STAFF)

        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "invalid_transition"
        assert body["current_status"] == "pending"
        assert body["target_status"] == "delivered"

    def test_notifier_called_on_transition(self, tmp_path):
        notifier = RecordingNotifier()
        with build_client(tmp_path, notifier=notifier) as client:
            order_id = place_order(client)
            client.patch(f"/api/orders/{order_id}/status", json={"status": "canceled"}, headers=STAFF)

        assert [call[2].value for call in notifier.calls] == ["canceled"]

    def test_delete(self, client):
        order_id = place_order(client)

        assert client.delete(f"/api/orders/{order_id}").status_code == 401
        assert client.delete(f"/api/orders/{order_id}", headers=STAFF).json() == {"success": True}
        assert client.get(f"/api/orders/{order_id}").status_code == 404

    def test_event_stream_requires_staff_key(self, client):
        assert client.get("/api/events").status_code == 401


# ============================================================================
# CUSTOMER UPLOADS
# ============================================================================

class TestUploads:

    def test_upload_proof_and_serve_it(self, client):
        order_id = place_order(client)

        response = client.post(
            f"/api/orders/{order_id}/proof",
            files={"file": ("receipt.png", b"\x89PNG-bytes", "image/png")},
        )

        assert response.status_code == 200
        url = response.json()["url"]
        assert url.startswith(f"/uploads/proofs/{order_id}-")
        assert client.get(url).content == b"\x89PNG-bytes"
        assert client.get(f"/api/orders/{order_id}").json()["proof_of_payment"]["url"] == url

    def test_upload_rejects_non_image(self, client):
        order_id = place_order(client)

        response = client.post(
            f"/api/orders/{order_id}/proof",
            files={"file": ("notes.txt", b"hello", "text/plain")},
        )

        assert response.status_code == 422

    def test_upload_over_size_limit_is_rejected(self, tmp_path):
        with build_client(tmp_path, proof_max_bytes=8) as client:
            order_id = place_order(client)

            response = client.post(
                f"/api/orders/{order_id}/proof",
                files={"file": ("receipt.png", b"\x89PNG" + b"0" * 64, "image/png")},
            )

            assert response.status_code == 422
            assert client.get(f"/api/orders/{order_id}").json()["proof_of_payment"] is None

    def test_push_subscription(self, client):
        order_id = place_order(client)
        subscription = {"endpoint": "https://push.example/abc", "keys": {"auth": "a"}}

        response = client.post(
            f"/api/orders/{order_id}/push-subscription",
            json={"subscription": subscription},
        )

        assert response.status_code == 200
        assert client.get(f"/api/orders/{order_id}").json()["push_subscription"] == subscription
