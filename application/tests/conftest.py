"""
Shared fixtures for the Kitchen OMS test suite.

Settings are read from the environment when modules are imported, so the
test environment is fixed here before anything from kitchen_oms loads.
"""

import os
import tempfile

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DATABASE_READ_URL"] = "sqlite://"
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="kitchen_oms_logs_")
os.environ["DEBUG"] = "false"
os.environ["FIREHOSE_ENABLED"] = "false"
os.environ["AUDIT_LOGGING_ENABLED"] = "false"
os.environ["SENTRY_ENABLED"] = "false"
os.environ["SLACK_WEBHOOK_URL"] = ""
os.environ["CHECKOUT_LOCK_ENABLED"] = "false"
os.environ["ADMIN_API_TOKEN"] = ""
os.environ["NOTIFICATION_ENABLED"] = "false"
os.environ["PRICE_CHECK_ENABLED"] = "false"
os.environ["TAX_RATE_PERCENT"] = "5"
os.environ["TAX_SPLIT_MODE"] = "cgst_sgst"
os.environ["MIN_ADVANCE_PERCENTAGE"] = "0"
os.environ["RAZORPAY_INTEGRATION_ENABLED"] = "true"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "test_key_secret"
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "test_webhook_secret"

import itertools
from typing import Any, Dict

import pytest

from kitchen_oms.connections.database import Base, engine
import kitchen_oms.models  # noqa: F401
from kitchen_oms.dto.cart import CheckoutRequest
from kitchen_oms.integrations.notification_service import NotificationResult
from kitchen_oms.integrations.payment_gateway import IntentResult
from kitchen_oms.integrations.razorpay_service import compute_signature
from kitchen_oms.services.checkout_service import CheckoutService

KEY_SECRET = os.environ["RAZORPAY_KEY_SECRET"]
WEBHOOK_SECRET = os.environ["RAZORPAY_WEBHOOK_SECRET"]


def sign_payment(intent_id: str, confirmation_id: str) -> str:
    return compute_signature(KEY_SECRET, f"{intent_id}|{confirmation_id}")


def sign_webhook(body: str) -> str:
    return compute_signature(WEBHOOK_SECRET, body)


class FakeProcessor:
    """PaymentProcessor double: in-memory intents, real HMAC signatures"""

    def __init__(self):
        self._ids = itertools.count(1)
        self.created = []
        self.fail_next = False

    async def create_intent(self, amount: int, currency: str, metadata: Dict[str, Any]) -> IntentResult:
        if self.fail_next:
            self.fail_next = False
            return IntentResult(success=False, message="gateway down")
        intent_id = f"order_test{next(self._ids):04d}"
        self.created.append({"intent_id": intent_id, "amount": amount, "currency": currency, "metadata": metadata})
        return IntentResult(success=True, message="created", intent_id=intent_id, amount=amount, currency=currency, key_id="rzp_test_key")

    async def verify_payment_signature(self, intent_id: str, confirmation_id: str, signature: str) -> bool:
        return sign_payment(intent_id, confirmation_id) == signature

    async def verify_webhook_signature(self, payload: str, signature: str) -> bool:
        return sign_webhook(payload) == signature


class FakeNotifier:

    def __init__(self, success: bool = True):
        self.success = success
        self.sent = []

    async def notify(self, phone: str, order_number: str, status: str, message: str) -> NotificationResult:
        self.sent.append({"phone": phone, "order_number": order_number, "status": status, "message": message})
        if self.success:
            return NotificationResult(success=True, message="sent", status_code=202)
        return NotificationResult(success=False, message="notification_api_500", status_code=500)


@pytest.fixture(autouse=True)
def database():
    """Fresh schema per test on the shared in-memory SQLite connection"""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def processor():
    return FakeProcessor()


@pytest.fixture
def notifier():
    return FakeNotifier()


def checkout_payload(items=None, advance_payment: int = 0, **overrides) -> Dict[str, Any]:
    payload = {
        "customer_name": "Asha Verma",
        "customer_phone": "9876543210",
        "delivery_address": {
            "full_name": "Asha Verma",
            "line1": "12 MG Road",
            "city": "Bengaluru",
            "state": "Karnataka",
            "pincode": "560001",
        },
        "items": items if items is not None else [
            {"item_id": "paneer-tikka", "name": "Paneer Tikka", "unit_price": 10000, "quantity": 2},
            {"item_id": "lassi", "name": "Sweet Lassi", "unit_price": 5000, "quantity": 1},
        ],
        "advance_payment": advance_payment,
    }
    payload.update(overrides)
    return payload


# subtotal 95238 + 5% tax (4762) = 100000 paise
THOUSAND_RUPEE_ITEMS = [{"item_id": "party-platter", "name": "Party Platter", "unit_price": 95238, "quantity": 1}]


@pytest.fixture
def place_order():
    """Async factory placing an order through the checkout service"""
    async def _place(items=None, advance_payment: int = 0, **overrides):
        request = CheckoutRequest(**checkout_payload(items=items, advance_payment=advance_payment, **overrides))
        result = await CheckoutService().place_order(request)
        return result.order
    return _place
