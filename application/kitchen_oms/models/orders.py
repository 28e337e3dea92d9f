"""
Order and order item models.

Money columns hold integer paise. `version` is the optimistic concurrency
counter: every UPDATE of an order row bumps it, and a stale write raises
StaleDataError.
"""

from sqlalchemy import Column, Integer, BigInteger, String, Numeric, TIMESTAMP, ForeignKey, Index, Boolean, JSON, text
from sqlalchemy.orm import relationship
from kitchen_oms.models.common import CommonModel
from kitchen_oms.core.constants import OrderStatus


class Order(CommonModel):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    random_prefix = Column(String(4), nullable=False)
    # assigned right after the first flush, from the row id
    order_number = Column(String(32), unique=True, nullable=True, index=True)

    customer_name = Column(String(100), nullable=False)
    customer_phone = Column(String(15), nullable=False, index=True)
    customer_email = Column(String(255), nullable=True)
    customer_gstin = Column(String(20), nullable=True)
    delivery_address = Column(JSON, nullable=True)
    billing_address = Column(JSON, nullable=True)
    scheduled_for = Column(TIMESTAMP(timezone=True), nullable=True)
    instructions = Column(String(500), nullable=False, default="", server_default=text("''"))

    status = Column(String(20), nullable=False, default=OrderStatus.PENDING, index=True)

    subtotal_amount = Column(BigInteger, nullable=False)
    tax_rate = Column(Numeric(5, 2), nullable=False)
    tax_amount = Column(BigInteger, nullable=False)
    total_amount = Column(BigInteger, nullable=False)
    advance_payment = Column(BigInteger, nullable=False, default=0, server_default="0")
    received_amount = Column(BigInteger, nullable=False, default=0, server_default="0")
    remaining_amount = Column(BigInteger, nullable=False)
    excess_amount = Column(BigInteger, nullable=False, default=0, server_default="0")

    invoice_generated = Column(Boolean, nullable=False, default=False)
    cancel_reason = Column(String(255), nullable=False, default="", server_default=text("''"))
    confirmed_at = Column(TIMESTAMP(timezone=True), nullable=True)
    delivered_at = Column(TIMESTAMP(timezone=True), nullable=True)
    cancelled_at = Column(TIMESTAMP(timezone=True), nullable=True)

    version = Column(Integer, nullable=False)

    items = relationship("OrderItem", back_populates="order", order_by="OrderItem.position", cascade="all, delete-orphan")
    payments = relationship("PaymentDetails", back_populates="order", order_by="PaymentDetails.id", cascade="all, delete-orphan")
    invoice = relationship("InvoiceDetails", back_populates="order", uselist=False, cascade="all, delete-orphan")

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index('idx_orders_status_created', 'status', 'created_at'),
        Index('idx_orders_phone_created', 'customer_phone', 'created_at'),
    )

    def __repr__(self):
        return f"<Order(id={self.id}, order_number='{self.order_number}', status='{self.status}', total={self.total_amount}, received={self.received_amount})>"

    def is_terminal(self) -> bool:
        return OrderStatus.is_terminal(self.status)


class OrderItem(CommonModel):
    """Point-in-time copy of a catalog item, immutable once the order exists"""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    catalog_item_id = Column(String(64), nullable=False)
    name = Column(String(200), nullable=False)
    unit_price = Column(BigInteger, nullable=False)
    quantity = Column(Integer, nullable=False)
    subtotal = Column(BigInteger, nullable=False)

    order = relationship("Order", back_populates="items")

    def __repr__(self):
        return f"<OrderItem(order_id={self.order_id}, catalog_item_id='{self.catalog_item_id}', quantity={self.quantity})>"
