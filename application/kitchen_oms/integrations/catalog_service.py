"""
Catalog lookup client used to re-price checkout lines.
"""

from typing import Dict, List

import httpx
from httpx_retry import AsyncRetryTransport, RetryPolicy

from kitchen_oms.cart.cart import CatalogItem
from kitchen_oms.core.exceptions import ValidationError
from kitchen_oms.core.money import Money

# Logger
from kitchen_oms.logging.utils import get_app_logger
logger = get_app_logger("kitchen_oms.catalog_service")

# Settings
from kitchen_oms.config.settings import OMSConfigs
configs = OMSConfigs()


class CatalogUnavailableError(ValidationError):
    """Catalog could not be reached."""

    error_code = "CATALOG_UNAVAILABLE"
    http_status = 503


class CatalogService:
    """Resolves catalog item ids to name, price (paise) and availability"""

    def __init__(self, client: httpx.AsyncClient | None = None):
        self.base_url = configs.CATALOG_BASE_URL.rstrip("/")
        if client is None:
            retry_policy = RetryPolicy(
                max_retries=3,
                initial_delay=0.5,
                multiplier=2.0,
                retry_on=[429, 500, 502, 503, 504]
            )
            client = httpx.AsyncClient(transport=AsyncRetryTransport(policy=retry_policy), timeout=configs.CATALOG_TIMEOUT)
        self.client = client

    async def lookup(self, item_ids: List[str]) -> Dict[str, CatalogItem]:
        """
        Fetch catalog entries for the given ids.

        Raises:
            CatalogUnavailableError: the catalog call failed
        """
        try:
            resp = await self.client.get(f"{self.base_url}/items", params={"ids": ",".join(item_ids)})
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"catalog_lookup_failed | ids={item_ids} error={e}")
            raise CatalogUnavailableError("Catalog is unavailable, try again")

        items = {}
        for entry in resp.json().get("items", []):
            items[str(entry["id"])] = CatalogItem(
                item_id=str(entry["id"]),
                name=entry["name"],
                price=Money(int(entry["price"])),
                available=bool(entry.get("available", True)),
            )
        return items
