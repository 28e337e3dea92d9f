from typing import List, Optional

from kitchen_oms.connections.database import get_db_session
from kitchen_oms.core.constants import APIConstants
from kitchen_oms.core.exceptions import ValidationError
from kitchen_oms.dto.orders import OrderView
from kitchen_oms.repository.orders import OrdersRepository

# Logger
from kitchen_oms.logging.utils import get_app_logger
logger = get_app_logger("kitchen_oms.order_queries")


def _page(limit: int, offset: int) -> tuple[int, int]:
    if limit < 1 or offset < 0:
        raise ValidationError("limit must be positive and offset non-negative")
    return min(limit, APIConstants.MAX_PAGE_SIZE), offset


class OrderQueryService:
    """Read-side lookups; served from the read replica when one is configured"""

    def __init__(self, db_session=get_db_session):
        self.db_session = db_session

    async def get_order(self, order_number: str) -> OrderView:
        with self.db_session(read_only=True) as session:
            return OrderView.model_validate(OrdersRepository(session).get_by_number_or_raise(order_number))

    async def list_orders(self, status: Optional[str] = None, limit: int = APIConstants.DEFAULT_PAGE_SIZE, offset: int = 0) -> List[OrderView]:
        limit, offset = _page(limit, offset)
        with self.db_session(read_only=True) as session:
            orders = OrdersRepository(session).list_orders(status=status, limit=limit, offset=offset)
            views = [OrderView.model_validate(order) for order in orders]
        logger.info(f"orders_listed | status={status} count={len(views)}")
        return views

    async def order_history(self, phone: str, limit: int = APIConstants.DEFAULT_PAGE_SIZE, offset: int = 0) -> List[OrderView]:
        """Orders placed from one phone number, newest first"""
        limit, offset = _page(limit, offset)
        with self.db_session(read_only=True) as session:
            orders = OrdersRepository(session).list_orders(phone=phone, limit=limit, offset=offset)
            return [OrderView.model_validate(order) for order in orders]
