"""
Order queries (SQLAlchemy ORM). Callers own the session and the transaction.
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from kitchen_oms.core.exceptions import OrderNotFoundError
from kitchen_oms.models.orders import Order


class OrdersRepository:

    def __init__(self, session: Session):
        self.session = session

    def get_by_number(self, order_number: str) -> Optional[Order]:
        return self.session.execute(
            select(Order).options(selectinload(Order.items)).where(Order.order_number == order_number)
        ).scalar_one_or_none()

    def get_by_number_or_raise(self, order_number: str) -> Order:
        order = self.get_by_number(order_number)
        if order is None:
            raise OrderNotFoundError(order_number)
        return order

    def list_orders(self, status: Optional[str] = None, phone: Optional[str] = None, limit: int = 20, offset: int = 0) -> List[Order]:
        query = select(Order).options(selectinload(Order.items))
        if status:
            query = query.where(Order.status == status)
        if phone:
            query = query.where(Order.customer_phone == phone)
        query = query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).offset(offset)
        return list(self.session.execute(query).scalars().all())
