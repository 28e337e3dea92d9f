"""
Domain events.

Facts recorded by order, payment and invoice transitions. They are collected
while a transition runs and dispatched only after it commits.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from kitchen_oms.utils.datetime_helpers import get_ist_now


class DomainEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_number: str
    customer_name: str
    customer_phone: str
    occurred_at: datetime = Field(default_factory=get_ist_now)

    @property
    def name(self) -> str:
        return type(self).__name__


class OrderPlaced(DomainEvent):
    """An order was admitted as pending"""
    total_amount: int
    advance_payment: int


class OrderConfirmed(DomainEvent):
    total_amount: int
    remaining_amount: int


class OrderDenied(DomainEvent):
    reason: str


class OrderCancelled(DomainEvent):
    reason: str
    previous_status: str


class OrderStatusChanged(DomainEvent):
    previous_status: str
    status: str


class PaymentReceived(DomainEvent):
    confirmation_id: str
    amount: int
    received_amount: int
    remaining_amount: int
    payment_type: str


class PaymentFailed(DomainEvent):
    intent_id: str
    outcome: str
    reason: Optional[str] = None


class InvoiceGenerated(DomainEvent):
    invoice_number: str
    total_amount: int
    balance: int
