"""
Customer-facing message templates, one per event type.
"""

from kitchen_oms.core.constants import OrderStatus
from kitchen_oms.core.money import format_inr
from kitchen_oms.events.domain_events import (
    DomainEvent,
    InvoiceGenerated,
    OrderCancelled,
    OrderConfirmed,
    OrderDenied,
    OrderPlaced,
    OrderStatusChanged,
    PaymentReceived,
)

# Settings
from kitchen_oms.config.settings import OMSConfigs
configs = OMSConfigs()


def _order_placed(event: OrderPlaced) -> str:
    return (
        f"Hi {event.customer_name}, your order {event.order_number} for {format_inr(event.total_amount)} "
        f"has been placed with {configs.MERCHANT_NAME}. We will confirm it shortly."
    )


def _order_confirmed(event: OrderConfirmed) -> str:
    message = f"Your order {event.order_number} from {configs.MERCHANT_NAME} has been confirmed!"
    if event.remaining_amount > 0:
        message += f" Balance due: {format_inr(event.remaining_amount)}."
    return message


def _order_denied(event: OrderDenied) -> str:
    return f"Sorry, we could not accept your order {event.order_number}. Reason: {event.reason}"


def _order_cancelled(event: OrderCancelled) -> str:
    return f"Your order {event.order_number} has been cancelled. Reason: {event.reason}"


def _status_changed(event: OrderStatusChanged) -> str:
    return f"Your order {event.order_number} is now {OrderStatus.get_description(event.status)}."


def _payment_received(event: PaymentReceived) -> str:
    return (
        f"Payment of {format_inr(event.amount)} received for order {event.order_number}. "
        f"Paid: {format_inr(event.received_amount)}, Balance: {format_inr(event.remaining_amount)}."
    )


def _invoice_generated(event: InvoiceGenerated) -> str:
    return f"Invoice {event.invoice_number} for {format_inr(event.total_amount)} is ready for order {event.order_number}."


TEMPLATES = {
    OrderPlaced: _order_placed,
    OrderConfirmed: _order_confirmed,
    OrderDenied: _order_denied,
    OrderCancelled: _order_cancelled,
    OrderStatusChanged: _status_changed,
    PaymentReceived: _payment_received,
    InvoiceGenerated: _invoice_generated,
}


def render_message(event: DomainEvent) -> str | None:
    """Customer message for the event, None when the customer is not told"""
    template = TEMPLATES.get(type(event))
    return template(event) if template else None


def status_for(event: DomainEvent) -> str:
    """Status tag sent alongside the message"""
    if isinstance(event, OrderStatusChanged):
        return event.status
    if isinstance(event, (OrderDenied, OrderCancelled)):
        return OrderStatus.CANCELLED
    if isinstance(event, OrderConfirmed):
        return OrderStatus.CONFIRMED
    if isinstance(event, OrderPlaced):
        return OrderStatus.PENDING
    return event.name
