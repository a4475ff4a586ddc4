from __future__ import annotations

import pytest

from payment import GatewayError
from qr import QrFetchError
from server import create_app
from tests.conftest import FakeGateway, png_bytes

ORIGIN = "http://localhost:8501"


@pytest.fixture
def fetched():
    return {"calls": [], "result": ("image/png", png_bytes())}


@pytest.fixture
def client(gateway, fetched):
    def fetch(url):
        fetched["calls"].append(url)
        result = fetched["result"]
        if isinstance(result, Exception):
            raise result
        return result

    app = create_app(gateway=gateway, fetch=fetch)
    app.testing = True
    return app.test_client()


def _create_body(**overrides):
    body = {"amount": 2000, "currency": "THB", "description": "Membership", "source": {"type": "promptpay"}}
    body.update(overrides)
    return body


def test_create_payment_returns_gateway_charge(client, gateway):
    resp = client.post("/api/create-payment", json=_create_body(), headers={"Origin": ORIGIN})

    assert resp.status_code == 200
    data = resp.get_json()
    assert data["id"] == gateway.created[0]["id"]
    assert data["status"] == "pending"
    assert data["source"]["scannable_code"]["image"]["download_uri"]
    assert resp.headers["Access-Control-Allow-Origin"] in ("*", ORIGIN)


@pytest.mark.parametrize(
    "body",
    [
        _create_body(amount=0),
        _create_body(amount="2000"),
        _create_body(currency=""),
        _create_body(currency=5),
        _create_body(currency="   "),
        _create_body(description=["not", "text"]),
        [_create_body()],
        _create_body(source=None),
        _create_body(source={}),
    ],
)
def test_create_payment_rejects_invalid_body(client, gateway, body):
    resp = client.post("/api/create-payment", json=body)

    assert resp.status_code == 400
    assert "error" in resp.get_json()
    assert gateway.created == []


def test_create_payment_gateway_failure(client, gateway):
    gateway.fail_create = True
    resp = client.post("/api/create-payment", json=_create_body())

    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Failed to create payment"}


def test_check_payment_returns_current_status():
    gateway = FakeGateway(statuses=["successful"])
    app = create_app(gateway=gateway, fetch=lambda url: ("image/png", b""))
    client = app.test_client()
    charge_id = gateway.create_charge(2000, "THB", "x", {"type": "promptpay"})["id"]

    resp = client.get(f"/api/check-payment/{charge_id}")

    assert resp.status_code == 200
    assert resp.get_json()["status"] == "successful"
    assert resp.get_json()["id"] == charge_id


def test_check_payment_propagates_gateway_errors(client, gateway):
    gateway.statuses = [GatewayError("boom")]
    charge_id = gateway.create_charge(2000, "THB", "x", {"type": "promptpay"})["id"]

    resp = client.get(f"/api/check-payment/{charge_id}")

    assert resp.status_code == 502
    assert "error" in resp.get_json()
    assert "status" not in resp.get_json()


def test_download_qr_requires_url(client):
    assert client.get("/api/download-qr").status_code == 400
    assert client.get("/api/download-qr?url=file:///etc/passwd").status_code == 400


def test_download_qr_png(client, fetched):
    url = "https://api.omise.co/charges/chrg_1/documents/qr.png"
    resp = client.get("/api/download-qr", query_string={"url": url})

    assert resp.status_code == 200
    assert resp.headers["Content-Type"].startswith("image/png")
    assert resp.headers["Content-Disposition"] == 'attachment; filename="qr-code.png"'
    assert resp.data == fetched["result"][1]
    assert fetched["calls"] == [url]


def test_download_qr_svg(client, fetched):
    svg = b'<svg xmlns="http://www.w3.org/2000/svg" width="10" height="10"/>'
    fetched["result"] = ("image/svg+xml; charset=utf-8", svg)

    resp = client.get("/api/download-qr", query_string={"url": "https://example.com/qr.svg"})

    assert resp.status_code == 200
    assert resp.headers["Content-Type"].startswith("image/svg+xml")
    assert resp.headers["Content-Disposition"] == 'attachment; filename="qr-code.svg"'
    assert resp.data == svg


def test_download_qr_upstream_failure(client, fetched):
    fetched["result"] = QrFetchError("403")

    resp = client.get("/api/download-qr", query_string={"url": "https://example.com/qr.svg"})

    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Failed to download QR code"}


def test_healthz(client):
    resp = client.get("/healthz", headers={"Origin": ORIGIN})
    assert resp.get_json() == {"status": "ok"}
    assert "Access-Control-Allow-Origin" not in resp.headers
