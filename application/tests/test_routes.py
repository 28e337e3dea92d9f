"""
HTTP surface: app, admin, webhook and health routes.
"""

import json

import pytest
from fastapi.testclient import TestClient

from conftest import THOUSAND_RUPEE_ITEMS, checkout_payload, sign_payment, sign_webhook
from kitchen_oms.events.dispatcher import EventDispatcher
from kitchen_oms.main import app
from kitchen_oms.routes.dependencies import get_event_dispatcher, get_payment_processor


@pytest.fixture
def client(processor, notifier):
    app.dependency_overrides[get_payment_processor] = lambda: processor
    app.dependency_overrides[get_event_dispatcher] = lambda: EventDispatcher(notifier)
    yield TestClient(app)
    app.dependency_overrides.clear()


def place(client, **kwargs) -> str:
    resp = client.post("/app/v1/checkout", json=checkout_payload(**kwargs))
    assert resp.status_code == 201
    return resp.json()["order"]["order_number"]


def captured_webhook(intent_id: str, payment_id: str, amount: int) -> str:
    return json.dumps({
        "event": "payment.captured",
        "payload": {"payment": {"entity": {"id": payment_id, "order_id": intent_id, "amount": amount}}},
    })


class TestHealth:

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"


class TestCheckoutRoutes:

    def test_checkout_and_lookup(self, client, notifier):
        order_number = place(client)

        resp = client.get(f"/app/v1/orders/{order_number}")
        assert resp.status_code == 200
        order = resp.json()["order"]
        assert order["status"] == "pending"
        assert order["total_amount"] == 26250
        assert notifier.sent[0]["status"] == "pending"

    def test_order_history(self, client):
        place(client)
        place(client, customer_phone="9123456780")

        resp = client.get("/app/v1/orders", params={"phone": "9876543210"})
        assert resp.status_code == 200
        assert resp.json()["count"] == 1

    def test_order_history_bad_phone(self, client):
        resp = client.get("/app/v1/orders", params={"phone": "12345"})
        assert resp.status_code == 422
        assert resp.json()["error"] == "VALIDATION_ERROR"

    def test_invalid_body(self, client):
        resp = client.post("/app/v1/checkout", json={"customer_name": "Asha"})
        assert resp.status_code == 422
        assert resp.json() == {"success": False, "error": "VALIDATION_ERROR", "message": "Invalid request data"}

    def test_advance_over_bound(self, client):
        resp = client.post("/app/v1/checkout", json=checkout_payload(items=THOUSAND_RUPEE_ITEMS, advance_payment=100000))
        assert resp.status_code == 422
        assert resp.json()["error"] == "INVALID_AMOUNT"

    def test_unknown_order(self, client):
        resp = client.get("/app/v1/orders/ORDXXXX00001")
        assert resp.status_code == 404
        assert resp.json()["error"] == "ORDER_NOT_FOUND"

    def test_unknown_route(self, client):
        resp = client.get("/app/v1/nothing-here")
        assert resp.status_code == 404
        assert resp.json()["error"] == "HTTP_ERROR"


class TestPaymentFlow:

    def test_advance_then_remaining(self, client, notifier):
        order_number = place(client, items=THOUSAND_RUPEE_ITEMS)
        assert client.post(f"/admin/v1/orders/{order_number}/confirm").status_code == 200
        assert client.post(f"/admin/v1/orders/{order_number}/invoice").status_code == 201

        quote = client.get(f"/app/v1/orders/{order_number}/payments/quote").json()
        assert quote["default"] == 50000
        assert quote["maximum"] == 99999

        intent = client.post(f"/app/v1/orders/{order_number}/payments/intent", json={"payment_type": "advance", "amount": 30000})
        assert intent.status_code == 201
        intent_id = intent.json()["intent_id"]

        verify_body = {
            "razorpay_order_id": intent_id,
            "razorpay_payment_id": "pay_adv",
            "razorpay_signature": sign_payment(intent_id, "pay_adv"),
        }
        verified = client.post("/app/v1/payments/verify", json=verify_body)
        assert verified.status_code == 200
        assert verified.json()["order"]["remaining_amount"] == 70000

        replay = client.post("/app/v1/payments/verify", json=verify_body)
        assert replay.status_code == 200
        assert replay.json()["duplicate"] is True
        assert replay.json()["order"]["received_amount"] == 30000

        remaining = client.post(f"/app/v1/orders/{order_number}/payments/intent", json={"payment_type": "remaining"})
        remaining_id = remaining.json()["intent_id"]
        assert remaining.json()["amount"] == 70000
        settled = client.post("/app/v1/payments/verify", json={
            "razorpay_order_id": remaining_id,
            "razorpay_payment_id": "pay_rem",
            "razorpay_signature": sign_payment(remaining_id, "pay_rem"),
        })
        assert settled.json()["order"]["remaining_amount"] == 0

        invoice = client.get(f"/admin/v1/orders/{order_number}/invoice").json()["invoice"]
        assert invoice["payment_status"] == "paid"
        ledger = client.get(f"/admin/v1/orders/{order_number}/payments").json()
        assert ledger["summary"]["succeeded_count"] == 2
        assert any(sent["message"].startswith("Payment of") for sent in notifier.sent)

    def test_bad_signature(self, client):
        order_number = place(client, items=THOUSAND_RUPEE_ITEMS)
        intent_id = client.post(f"/app/v1/orders/{order_number}/payments/intent", json={"payment_type": "full"}).json()["intent_id"]

        resp = client.post("/app/v1/payments/verify", json={
            "razorpay_order_id": intent_id,
            "razorpay_payment_id": "pay_1",
            "razorpay_signature": "forged",
        })
        assert resp.status_code == 400
        assert resp.json()["error"] == "SIGNATURE_MISMATCH"

    def test_reported_failure(self, client):
        order_number = place(client, items=THOUSAND_RUPEE_ITEMS)
        intent_id = client.post(f"/app/v1/orders/{order_number}/payments/intent", json={"payment_type": "full"}).json()["intent_id"]

        resp = client.post("/app/v1/payments/failure", json={"razorpay_order_id": intent_id, "cancelled": True})
        assert resp.status_code == 200
        assert resp.json()["payment"]["outcome"] == "cancelled"

    def test_gateway_down(self, client, processor):
        order_number = place(client, items=THOUSAND_RUPEE_ITEMS)
        processor.fail_next = True
        resp = client.post(f"/app/v1/orders/{order_number}/payments/intent", json={"payment_type": "full"})
        assert resp.status_code == 502
        assert resp.json()["error"] == "PAYMENT_GATEWAY_ERROR"


class TestAdminRoutes:

    def test_lifecycle(self, client):
        order_number = place(client)
        assert client.post(f"/admin/v1/orders/{order_number}/confirm").json()["order"]["status"] == "confirmed"
        assert client.post(f"/admin/v1/orders/{order_number}/status", json={"status": "preparing"}).status_code == 200

        backwards = client.post(f"/admin/v1/orders/{order_number}/status", json={"status": "confirmed"})
        assert backwards.status_code == 409
        assert backwards.json()["error"] == "INVALID_TRANSITION"

        active_delete = client.delete(f"/admin/v1/orders/{order_number}")
        assert active_delete.status_code == 409

        cancelled = client.post(f"/admin/v1/orders/{order_number}/cancel", json={"reason": "kitchen closed"})
        assert cancelled.json()["order"]["status"] == "cancelled"

        deleted = client.delete(f"/admin/v1/orders/{order_number}")
        assert deleted.status_code == 200
        assert deleted.json()["payments_deleted"] == 0

    def test_deny_needs_reason(self, client):
        order_number = place(client)
        resp = client.post(f"/admin/v1/orders/{order_number}/deny", json={"reason": ""})
        assert resp.status_code == 422

        denied = client.post(f"/admin/v1/orders/{order_number}/deny", json={"reason": "out of stock"})
        assert denied.json()["order"]["cancel_reason"] == "out of stock"

    def test_list_orders_by_status(self, client):
        place(client)
        confirmed = place(client)
        client.post(f"/admin/v1/orders/{confirmed}/confirm")

        resp = client.get("/admin/v1/orders", params={"status": "confirmed"})
        assert [order["order_number"] for order in resp.json()["orders"]] == [confirmed]
        assert client.get("/admin/v1/orders", params={"status": "lost"}).status_code == 422

    def test_invoice_routes(self, client):
        order_number = place(client)
        client.post(f"/admin/v1/orders/{order_number}/confirm")
        generated = client.post(f"/admin/v1/orders/{order_number}/invoice", json={"notes": "Thanks"})
        invoice_number = generated.json()["invoice"]["invoice_number"]

        again = client.post(f"/admin/v1/orders/{order_number}/invoice")
        assert again.status_code == 409
        assert again.json()["error"] == "ALREADY_GENERATED"

        assert client.get(f"/admin/v1/invoices/{invoice_number}").json()["invoice"]["notes"] == "Thanks"
        assert client.get(f"/admin/v1/invoices/{invoice_number}/render").json()["total_amount"] == 26250
        assert client.post(f"/admin/v1/invoices/{invoice_number}/send").json()["invoice"]["status"] == "sent"
        assert client.get("/admin/v1/invoices", params={"status": "sent"}).json()["count"] == 1

        early_delete = client.delete(f"/admin/v1/invoices/{invoice_number}")
        assert early_delete.status_code == 409
        assert client.post(f"/admin/v1/invoices/{invoice_number}/cancel").json()["invoice"]["status"] == "cancelled"

    def test_ledger_summary(self, client):
        order_number = place(client, items=THOUSAND_RUPEE_ITEMS, advance_payment=30000)

        resp = client.get(f"/admin/v1/orders/{order_number}/payments/summary")
        assert resp.status_code == 200
        summary = resp.json()
        assert summary["order_number"] == order_number
        assert summary["received_amount"] == 30000
        assert summary["remaining_amount"] == 70000
        assert summary["succeeded_count"] == 1
        assert summary["pending_count"] == 0

        assert client.get("/admin/v1/orders/ORDXXXX00001/payments/summary").status_code == 404

    def test_expire_abandoned(self, client):
        resp = client.post("/admin/v1/payments/expire-abandoned")
        assert resp.status_code == 200
        assert resp.json()["expired_count"] == 0


class TestRazorpayWebhook:

    def test_captured_credits_order(self, client):
        order_number = place(client, items=THOUSAND_RUPEE_ITEMS)
        intent_id = client.post(f"/app/v1/orders/{order_number}/payments/intent", json={"payment_type": "full"}).json()["intent_id"]
        body = captured_webhook(intent_id, "pay_hook", 100000)

        resp = client.post("/razorpay/webhook", content=body, headers={"X-Razorpay-Signature": sign_webhook(body)})
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

        replay = client.post("/razorpay/webhook", content=body, headers={"X-Razorpay-Signature": sign_webhook(body)})
        assert replay.status_code == 200
        order = client.get(f"/app/v1/orders/{order_number}").json()["order"]
        assert order["received_amount"] == 100000

    def test_missing_and_invalid_signature(self, client):
        body = captured_webhook("order_x", "pay_x", 100)
        assert client.post("/razorpay/webhook", content=body).status_code == 400
        assert client.post("/razorpay/webhook", content=body, headers={"X-Razorpay-Signature": "forged"}).status_code == 400

    def test_unhandled_event(self, client):
        body = json.dumps({"event": "refund.created", "payload": {}})
        resp = client.post("/razorpay/webhook", content=body, headers={"X-Razorpay-Signature": sign_webhook(body)})
        assert resp.json() == {"status": "ok", "event": "refund.created"}

    def test_cancelled_order_is_acknowledged(self, client):
        order_number = place(client, items=THOUSAND_RUPEE_ITEMS)
        client.post(f"/admin/v1/orders/{order_number}/confirm")
        intent_id = client.post(f"/app/v1/orders/{order_number}/payments/intent", json={"payment_type": "full"}).json()["intent_id"]
        client.post(f"/admin/v1/orders/{order_number}/cancel", json={"reason": "kitchen closed"})
        body = captured_webhook(intent_id, "pay_late", 100000)

        resp = client.post("/razorpay/webhook", content=body, headers={"X-Razorpay-Signature": sign_webhook(body)})
        assert resp.status_code == 200
        assert resp.json()["status"] == "ignored"
        assert resp.json()["error"] == "ORDER_CANCELLED"

    def test_malformed_payment_entity(self, client):
        missing_id = json.dumps({
            "event": "payment.captured",
            "payload": {"payment": {"entity": {"order_id": "order_x", "amount": 100}}},
        })
        numeric_id = json.dumps({
            "event": "payment.captured",
            "payload": {"payment": {"entity": {"id": 12345, "order_id": "order_x", "amount": 100}}},
        })
        for body in (missing_id, numeric_id, "[]"):
            resp = client.post("/razorpay/webhook", content=body, headers={"X-Razorpay-Signature": sign_webhook(body)})
            assert resp.status_code == 400

    def test_payload_without_entity_is_acknowledged(self, client):
        body = json.dumps({"event": "payment.captured", "payload": {"payment": "gone"}})
        resp = client.post("/razorpay/webhook", content=body, headers={"X-Razorpay-Signature": sign_webhook(body)})
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"
