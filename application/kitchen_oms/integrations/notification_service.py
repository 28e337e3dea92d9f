"""
Customer notification client.

Best-effort: transport retries are handled by httpx-retry, and every
failure is turned into a NotificationResult instead of an exception.
"""

from typing import Optional

import httpx
from httpx_retry import AsyncRetryTransport, RetryPolicy
from pydantic import BaseModel

# Logger
from kitchen_oms.logging.utils import get_app_logger
logger = get_app_logger("kitchen_oms.notification_service")

# Settings
from kitchen_oms.config.settings import OMSConfigs
configs = OMSConfigs()


class NotificationResult(BaseModel):
    success: bool
    skipped: bool = False
    message: str
    status_code: Optional[int] = None


class NotificationService:
    """Sends order updates to the messaging provider"""

    def __init__(self, client: httpx.AsyncClient | None = None):
        self.enabled = configs.NOTIFICATION_ENABLED and bool(configs.NOTIFICATION_BASE_URL)
        self.base_url = configs.NOTIFICATION_BASE_URL.rstrip("/")
        self.api_key = configs.NOTIFICATION_API_KEY

        if client is None:
            retry_policy = RetryPolicy(
                max_retries=configs.NOTIFICATION_MAX_RETRIES,
                initial_delay=0.5,
                multiplier=2.0,
                retry_on=[429, 500, 502, 503, 504]
            )
            client = httpx.AsyncClient(transport=AsyncRetryTransport(policy=retry_policy), timeout=configs.NOTIFICATION_TIMEOUT)
        self.client = client

    async def close(self):
        await self.client.aclose()

    async def notify(self, phone: str, order_number: str, status: str, message: str) -> NotificationResult:
        if not self.enabled:
            logger.info(f"notification_skipped | order_number={order_number} status={status} reason=disabled")
            return NotificationResult(success=True, skipped=True, message="Notifications are disabled")

        payload = {
            "to": phone,
            "order_number": order_number,
            "status": status,
            "message": message,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        try:
            resp = await self.client.post(f"{self.base_url}/messages", json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.warning(f"notification_request_error | order_number={order_number} status={status} error={e}")
            return NotificationResult(success=False, message=f"notification_request_error: {e}")

        if resp.status_code in (200, 201, 202):
            logger.info(f"notification_sent | order_number={order_number} status={status}")
            return NotificationResult(success=True, message="sent", status_code=resp.status_code)

        logger.warning(f"notification_failed | order_number={order_number} status={status} status_code={resp.status_code}")
        return NotificationResult(success=False, message=f"notification_api_{resp.status_code}", status_code=resp.status_code)
