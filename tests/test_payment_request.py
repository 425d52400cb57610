"""POST /api/payapp/request and GET /api/payapp/status/{orderId}."""
import logging
from urllib.error import URLError

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, select

from payapp.core.exceptions import PersistenceError
from payapp.models import Order
from payapp.services import store

from conftest import FakeTransport, payapp_answer

WIDGET = {"amount": 10000, "phone": "01012345678", "productName": "Widget"}


def _orders(db: Session) -> list[Order]:
    return list(db.exec(select(Order)).all())


def test_request_success_stores_pending_order(client: TestClient, transport: FakeTransport, db: Session):
    transport.queue(payapp_answer(mul_no="555", payurl="https://pay.example/555"))
    r = client.post("/api/payapp/request", json=WIDGET)
    assert r.status_code == 200
    j = r.json()
    assert j["success"] is True
    assert j["payUrl"] == "https://pay.example/555"
    assert j["mulNo"] == "555"
    assert j["orderId"].startswith("ORDER_")
    assert "qrUrl" not in j

    orders = _orders(db)
    assert len(orders) == 1
    assert orders[0].id == j["orderId"]
    assert orders[0].status == "pending"
    assert orders[0].mul_no == "555"
    assert orders[0].amount == 10000
    # No caller var1: our order id is the correlation value PayApp echoes back
    assert transport.calls[0]["var1"] == j["orderId"]


def test_request_rejected_stores_nothing(client: TestClient, transport: FakeTransport, db: Session):
    transport.queue(payapp_answer(state="0", errorMessage="insufficient info"))
    r = client.post("/api/payapp/request", json=WIDGET)
    assert r.status_code == 400
    j = r.json()
    assert j["success"] is False
    assert j["message"] == "insufficient info"
    assert _orders(db) == []


def test_request_rejected_with_errno(client: TestClient, transport: FakeTransport):
    transport.queue(payapp_answer(state="0", errorMessage="bad phone", errno="70040"))
    r = client.post("/api/payapp/request", json=WIDGET)
    assert r.status_code == 400
    assert r.json()["errorCode"] == "70040"


def test_request_gateway_unreachable(client: TestClient, transport: FakeTransport, db: Session):
    transport.queue(URLError("timed out"))
    r = client.post("/api/payapp/request", json=WIDGET)
    assert r.status_code == 500
    assert r.json()["success"] is False
    assert _orders(db) == []


@pytest.mark.parametrize(
    "body",
    [
        {"phone": "01012345678", "productName": "Widget"},
        {"amount": 0, "phone": "01012345678", "productName": "Widget"},
        {"amount": -100, "phone": "01012345678", "productName": "Widget"},
        {"amount": 10000, "productName": "Widget"},
        {"amount": 10000, "phone": "   ", "productName": "Widget"},
        {"amount": 10000, "phone": "01012345678"},
        {"amount": 10000, "phone": "01012345678", "productName": ""},
        {"amount": "lots", "phone": "01012345678", "productName": "Widget"},
    ],
)
def test_invalid_request_makes_no_gateway_call(client: TestClient, transport: FakeTransport, db: Session, body):
    r = client.post("/api/payapp/request", json=body)
    assert r.status_code == 400
    j = r.json()
    assert j["success"] is False
    assert j["message"]
    assert transport.calls == []
    assert _orders(db) == []


def test_request_passes_caller_fields(client: TestClient, transport: FakeTransport, db: Session):
    transport.queue(payapp_answer(mul_no="600", payurl="https://pay.example/600", qrurl="https://pay.example/qr/600"))
    r = client.post(
        "/api/payapp/request",
        json={
            "amount": "2500",
            "phone": "010-1234-5678",
            "productName": "Notion template",
            "memo": "gift",
            "var1": "framer_order",
            "var2": "user-42",
            "skip_cstpage": "y",
        },
    )
    assert r.status_code == 200
    assert r.json()["qrUrl"] == "https://pay.example/qr/600"
    sent = transport.calls[0]
    assert sent["price"] == "2500"
    assert sent["recvphone"] == "01012345678"
    assert sent["var1"] == "framer_order"
    assert sent["var2"] == "user-42"
    assert sent["memo"] == "gift"
    assert sent["skip_cstpage"] == "y"
    order = _orders(db)[0]
    assert order.var1 == "framer_order"
    assert order.var2 == "user-42"
    assert order.qr_url == "https://pay.example/qr/600"


def test_each_request_gets_its_own_order_id(client: TestClient, transport: FakeTransport):
    transport.queue(payapp_answer(mul_no="1", payurl="https://pay.example/1"))
    transport.queue(payapp_answer(mul_no="2", payurl="https://pay.example/2"))
    a = client.post("/api/payapp/request", json=WIDGET).json()["orderId"]
    b = client.post("/api/payapp/request", json=WIDGET).json()["orderId"]
    assert a != b


def test_status_by_order_id_and_mul_no(client: TestClient, transport: FakeTransport):
    transport.queue(payapp_answer(mul_no="555", payurl="https://pay.example/555"))
    order_id = client.post("/api/payapp/request", json=WIDGET).json()["orderId"]

    for key in (order_id, "555"):
        r = client.get(f"/api/payapp/status/{key}")
        assert r.status_code == 200
        j = r.json()
        assert j["orderId"] == order_id
        assert j["status"] == "pending"
        assert j["payState"] is None
        assert j["amount"] == 10000
        assert j["phone"] == "01012345678"
        assert j["productName"] == "Widget"
        assert j["createdAt"]
        assert j["updatedAt"]


def test_status_unknown_order(client: TestClient):
    r = client.get("/api/payapp/status/ORDER_0_missing")
    assert r.status_code == 404
    assert r.json()["success"] is False


def test_saved_nowhere_when_store_fails_after_gateway(
    client: TestClient, transport: FakeTransport, db: Session, monkeypatch, caplog
):
    def broken(*args, **kwargs):
        raise PersistenceError()

    monkeypatch.setattr(store, "create_order", broken)
    transport.queue(payapp_answer(mul_no="555", payurl="https://pay.example/555"))
    with caplog.at_level(logging.ERROR, logger="payapp"):
        r = client.post("/api/payapp/request", json=WIDGET)
    assert r.status_code == 500
    assert r.json()["success"] is False
    assert _orders(db) == []
    assert len(transport.calls) == 1
    reconcile = [rec for rec in caplog.records if rec.getMessage().startswith("RECONCILE:")]
    assert len(reconcile) == 1
    assert "mul_no=555" in reconcile[0].getMessage()
