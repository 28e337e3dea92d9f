"""
Razorpay gateway integration.

Creates gateway orders (payment intents) and verifies checkout and webhook
signatures. Amounts are passed through in paise, the unit Razorpay expects.
"""

import hashlib
import hmac
from functools import lru_cache
from typing import Any, Dict

import razorpay
from razorpay.errors import BadRequestError, GatewayError, ServerError
from requests.exceptions import RequestException

from kitchen_oms.integrations.payment_gateway import IntentResult

# Logger
from kitchen_oms.logging.utils import get_app_logger
logger = get_app_logger("kitchen_oms.razorpay_service")

# Settings
from kitchen_oms.config.settings import OMSConfigs
configs = OMSConfigs()


def compute_signature(secret: str, message: str) -> str:
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()


class RazorpayService:
    """Razorpay-backed PaymentProcessor"""

    def __init__(self, client=None):
        self.key_id = configs.RAZORPAY_KEY_ID
        self.key_secret = configs.RAZORPAY_KEY_SECRET
        self.webhook_secret = configs.RAZORPAY_WEBHOOK_SECRET
        self.timeout = configs.RAZORPAY_TIMEOUT

        if not configs.RAZORPAY_INTEGRATION_ENABLED:
            logger.error("razorpay_disabled")
            raise ValueError("Razorpay integration is disabled")

        if not self.key_id or not self.key_secret or not self.webhook_secret:
            logger.error("razorpay_not_configured | key id, key secret and webhook secret are required")
            raise ValueError("Razorpay key ID, key secret, and webhook secret are required")

        self.client = client or razorpay.Client(auth=(self.key_id, self.key_secret))
        logger.info(f"razorpay_client_initialized | key_id={self.key_id}")

    async def create_intent(self, amount: int, currency: str, metadata: Dict[str, Any]) -> IntentResult:
        """
        Create a Razorpay order for `amount` paise.

        Args:
            amount: Amount in paise
            currency: ISO currency code
            metadata: Must carry `receipt`; everything is also sent as notes
        """
        order_data = {
            "amount": amount,
            "currency": currency,
            "receipt": str(metadata.get("receipt", "")),
            "notes": {k: str(v) for k, v in metadata.items()},
        }
        try:
            razorpay_order = self.client.order.create(data=order_data)
        except (BadRequestError, GatewayError, ServerError, RequestException) as e:
            logger.error(f"razorpay_order_create_error | receipt={order_data['receipt']} amount={amount} error={e}", exc_info=True)
            return IntentResult(success=False, message=f"Failed to create Razorpay order: {e}")

        logger.info(f"razorpay_order_created | receipt={order_data['receipt']} razorpay_order_id={razorpay_order.get('id')} amount={amount} currency={currency}")
        return IntentResult(
            success=True,
            message="Razorpay order created",
            intent_id=razorpay_order["id"],
            amount=razorpay_order.get("amount", amount),
            currency=razorpay_order.get("currency", currency),
            key_id=self.key_id,
        )

    async def verify_payment_signature(self, intent_id: str, confirmation_id: str, signature: str) -> bool:
        """HMAC-SHA256 of "order_id|payment_id" keyed with the API secret"""
        expected_signature = compute_signature(self.key_secret, f"{intent_id}|{confirmation_id}")
        is_valid = hmac.compare_digest(expected_signature, signature or "")
        if is_valid:
            logger.info(f"razorpay_signature_verified | razorpay_order_id={intent_id} razorpay_payment_id={confirmation_id}")
        else:
            logger.warning(f"razorpay_signature_invalid | razorpay_order_id={intent_id} razorpay_payment_id={confirmation_id}")
        return is_valid

    async def verify_webhook_signature(self, payload: str, signature: str) -> bool:
        expected_signature = compute_signature(self.webhook_secret, payload)
        return hmac.compare_digest(expected_signature, signature or "")


@lru_cache(maxsize=1)
def get_razorpay_service() -> RazorpayService:
    return RazorpayService()
