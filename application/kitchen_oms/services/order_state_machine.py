"""
Order lifecycle transitions.

pending -> confirmed -> preparing -> ready -> delivered
pending -> cancelled (deny), confirmed|preparing|ready -> cancelled (cancel)

Each transition runs under the per-order lock and commits as one update.
Events are returned to the caller and dispatched after the commit, so a
failed notification never undoes a transition.
"""
from kitchen_oms.connections.database import get_db_session
from kitchen_oms.core.constants import InvoiceStatus, OrderStatus, PaymentFailureReasons, PaymentOutcome
from kitchen_oms.core.exceptions import InvalidTransitionError, PreconditionError, ValidationError
from kitchen_oms.core.order_lock import locked_order
from kitchen_oms.dto.orders import OrderView
from kitchen_oms.events.domain_events import OrderCancelled, OrderConfirmed, OrderDenied, OrderStatusChanged
from kitchen_oms.models.orders import Order
from kitchen_oms.services.results import DeletionResult, TransitionResult
from kitchen_oms.utils.datetime_helpers import get_ist_now

# Logger
from kitchen_oms.logging.utils import get_app_logger
logger = get_app_logger("kitchen_oms.order_state_machine")


def _reject_terminal(order: Order, target: str) -> None:
    if order.is_terminal():
        raise InvalidTransitionError(order.status, target, f"Order {order.order_number} is {order.status} and cannot change")


def _block_inflight(order: Order) -> int:
    """Close pending payment intents and the invoice of an order that is being cancelled"""
    now = get_ist_now()
    blocked = 0
    for payment in order.payments:
        if payment.outcome == PaymentOutcome.PENDING:
            payment.outcome = PaymentOutcome.CANCELLED
            payment.error_reason = PaymentFailureReasons.ORDER_CANCELLED
            payment.settled_at = now
            blocked += 1
    if order.invoice is not None and order.invoice.status != InvoiceStatus.CANCELLED:
        order.invoice.status = InvoiceStatus.CANCELLED
        order.invoice.cancelled_at = now
    return blocked


def _required_reason(reason: str | None) -> str:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A reason is required")
    return reason


class OrderStateMachine:

    def __init__(self, db_session=get_db_session):
        self.db_session = db_session

    async def confirm(self, order_number: str) -> TransitionResult:
        with locked_order(order_number, self.db_session) as (session, order):
            _reject_terminal(order, OrderStatus.CONFIRMED)
            if order.status != OrderStatus.PENDING:
                raise InvalidTransitionError(order.status, OrderStatus.CONFIRMED)

            order.status = OrderStatus.CONFIRMED
            order.confirmed_at = get_ist_now()
            session.flush()
            view = OrderView.model_validate(order)
            event = OrderConfirmed(
                order_number=order_number,
                customer_name=order.customer_name,
                customer_phone=order.customer_phone,
                total_amount=order.total_amount,
                remaining_amount=order.remaining_amount,
            )

        logger.info(f"order_confirmed | order_number={order_number} total={view.total_amount} remaining={view.remaining_amount}")
        return TransitionResult(order=view, message=f"Order {order_number} confirmed", events=[event])

    async def deny(self, order_number: str, reason: str) -> TransitionResult:
        """
        Reject a pending order.

        Raises:
            ValidationError: empty reason
            InvalidTransitionError: the order is no longer pending
        """
        reason = _required_reason(reason)
        with locked_order(order_number, self.db_session) as (session, order):
            _reject_terminal(order, OrderStatus.CANCELLED)
            if order.status != OrderStatus.PENDING:
                raise InvalidTransitionError(order.status, OrderStatus.CANCELLED, "Only pending orders can be denied, cancel the order instead")

            order.status = OrderStatus.CANCELLED
            order.cancel_reason = reason
            order.cancelled_at = get_ist_now()
            blocked = _block_inflight(order)
            session.flush()
            view = OrderView.model_validate(order)
            event = OrderDenied(
                order_number=order_number,
                customer_name=order.customer_name,
                customer_phone=order.customer_phone,
                reason=reason,
            )

        logger.info(f"order_denied | order_number={order_number} reason={reason} intents_blocked={blocked}")
        return TransitionResult(order=view, message=f"Order {order_number} denied", events=[event])

    async def advance(self, order_number: str, new_status: str) -> TransitionResult:
        """Move a confirmed order strictly forward along the fulfillment path"""
        target_rank = OrderStatus.fulfillment_rank(new_status)
        with locked_order(order_number, self.db_session) as (session, order):
            _reject_terminal(order, new_status)
            current_rank = OrderStatus.fulfillment_rank(order.status)
            if target_rank < 0 or current_rank < 0:
                raise InvalidTransitionError(order.status, new_status, f"Status {new_status} is not reachable from {order.status} by advancing")
            if target_rank <= current_rank:
                raise InvalidTransitionError(order.status, new_status, f"Order {order_number} can only move forward from {order.status}")

            previous = order.status
            order.status = new_status
            if new_status == OrderStatus.DELIVERED:
                order.delivered_at = get_ist_now()
            session.flush()
            view = OrderView.model_validate(order)
            event = OrderStatusChanged(
                order_number=order_number,
                customer_name=order.customer_name,
                customer_phone=order.customer_phone,
                previous_status=previous,
                status=new_status,
            )

        logger.info(f"order_status_advanced | order_number={order_number} from={previous} to={new_status}")
        return TransitionResult(order=view, message=f"Order {order_number} is now {OrderStatus.get_description(new_status).lower()}", events=[event])

    async def cancel(self, order_number: str, reason: str) -> TransitionResult:
        reason = _required_reason(reason)
        with locked_order(order_number, self.db_session) as (session, order):
            _reject_terminal(order, OrderStatus.CANCELLED)
            if order.status not in OrderStatus.CANCELLABLE:
                raise InvalidTransitionError(order.status, OrderStatus.CANCELLED, "Pending orders are denied, not cancelled")

            previous = order.status
            order.status = OrderStatus.CANCELLED
            order.cancel_reason = reason
            order.cancelled_at = get_ist_now()
            blocked = _block_inflight(order)
            session.flush()
            view = OrderView.model_validate(order)
            event = OrderCancelled(
                order_number=order_number,
                customer_name=order.customer_name,
                customer_phone=order.customer_phone,
                reason=reason,
                previous_status=previous,
            )

        logger.info(f"order_cancelled | order_number={order_number} from={previous} reason={reason} intents_blocked={blocked}")
        return TransitionResult(order=view, message=f"Order {order_number} cancelled", events=[event])

    async def delete(self, order_number: str) -> DeletionResult:
        """
        Remove a finished order together with its invoice and payment records.

        Raises:
            PreconditionError: the order is still active
        """
        with locked_order(order_number, self.db_session) as (session, order):
            if order.status not in OrderStatus.DELETABLE:
                raise PreconditionError(f"Order {order_number} is {order.status}; only delivered or cancelled orders can be deleted")

            result = DeletionResult(
                order_number=order_number,
                invoice_deleted=order.invoice is not None,
                payments_deleted=len(order.payments),
            )
            session.delete(order)

        logger.info(f"order_deleted | order_number={order_number} invoice_deleted={result.invoice_deleted} payments_deleted={result.payments_deleted}")
        return result
