"""
Payment reconciliation.

Turns processor intents and confirmations into ledger movements on the
order: only a verified, first-seen confirmation id increments
received_amount, and the invoice mirror is resynced in the same
transaction. Gateway calls happen outside the per-order lock.
"""
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError

from kitchen_oms.connections.database import get_db_session
from kitchen_oms.core.constants import OrderStatus, PaymentFailureReasons, PaymentMode, PaymentOutcome
from kitchen_oms.core.exceptions import (
    DuplicateConfirmationError,
    OrderCancelledError,
    PaymentGatewayError,
    PaymentNotFoundError,
    PreconditionError,
    SignatureMismatchError,
)
from kitchen_oms.core.order_lock import locked_order
from kitchen_oms.dto.orders import OrderView
from kitchen_oms.dto.payments import (
    AdvanceQuote,
    CancelledCallback,
    FailedCallback,
    LedgerSummary,
    PaymentErrorInfo,
    PaymentView,
    SucceededCallback,
)
from kitchen_oms.events.domain_events import PaymentFailed, PaymentReceived
from kitchen_oms.integrations.payment_gateway import PaymentProcessor
from kitchen_oms.middlewares.request_context import request_context
from kitchen_oms.models.orders import Order
from kitchen_oms.models.payments import PaymentDetails
from kitchen_oms.repository.orders import OrdersRepository
from kitchen_oms.repository.payments import PaymentsRepository
from kitchen_oms.services.invoice_binder import resync_invoice
from kitchen_oms.services.payments.quotes import advance_quote, quote_amount
from kitchen_oms.services.results import ExpiryResult, IntentCreated, PaymentFailureResult, ReconciliationResult
from kitchen_oms.utils.datetime_helpers import as_ist, get_ist_now

# Logger
from kitchen_oms.logging.utils import get_app_logger
logger = get_app_logger("kitchen_oms.payment_reconciliation")

# Settings
from kitchen_oms.config.settings import OMSConfigs
configs = OMSConfigs()


def _is_expired(payment: PaymentDetails, now: datetime) -> bool:
    return payment.expires_at is not None and as_ist(payment.expires_at) <= now


def _abandon(payment: PaymentDetails, now: datetime) -> None:
    payment.outcome = PaymentOutcome.CANCELLED
    payment.error_reason = PaymentFailureReasons.ABANDONED
    payment.settled_at = now


class PaymentReconciliationService:

    def __init__(self, processor: Optional[PaymentProcessor] = None, db_session=get_db_session):
        self.processor = processor
        self.db_session = db_session

    def _require_processor(self) -> PaymentProcessor:
        if self.processor is None:
            raise PaymentGatewayError("Payment processor is not configured")
        return self.processor

    def _order_number_for_intent(self, intent_id: str) -> str:
        with self.db_session() as session:
            payment = PaymentsRepository(session).get_by_intent(intent_id)
            if payment is None:
                raise PaymentNotFoundError(intent_id)
            return payment.order.order_number

    async def quote(self, order_number: str) -> AdvanceQuote:
        with self.db_session(read_only=True) as session:
            order = OrdersRepository(session).get_by_number_or_raise(order_number)
            return advance_quote(order.total_amount, order.received_amount, order.remaining_amount)

    async def create_intent(self, order_number: str, payment_type: str, amount: Optional[int] = None) -> IntentCreated:
        """
        Register a pending payment with the processor.

        The amount is decided and the pending row written under the order
        lock; the processor call happens after that commit and the returned
        intent id is recorded under the lock again.

        Raises:
            OrderCancelledError: the order is cancelled
            PreconditionError: the payment type is not available, or another
                intent for the order is still open
            InvalidAmountError: advance outside its bounds
            PaymentGatewayError: the processor refused the intent
        """
        processor = self._require_processor()

        with locked_order(order_number, self.db_session) as (session, order):
            if order.status == OrderStatus.CANCELLED:
                raise OrderCancelledError(order_number)

            now = get_ist_now()
            for pending in PaymentsRepository(session).pending_for_order(order.id):
                if _is_expired(pending, now):
                    _abandon(pending, now)
                    logger.info(f"payment_intent_abandoned | order_number={order_number} intent_id={pending.intent_id}")
                else:
                    raise PreconditionError(f"A payment for order {order_number} is already in progress, complete it or retry after it expires")

            charge = quote_amount(payment_type, order.total_amount, order.received_amount, order.remaining_amount, amount)
            payment = PaymentDetails(
                order=order,
                payment_amount=charge,
                payment_type=payment_type,
                payment_mode=PaymentMode.RAZORPAY,
                outcome=PaymentOutcome.PENDING,
                currency=configs.CURRENCY,
                expires_at=now + timedelta(seconds=configs.PAYMENT_INTENT_TTL_SECONDS),
            )
            session.add(payment)
            session.flush()
            payment_id = payment.id

        metadata = {
            "receipt": order_number,
            "order_number": order_number,
            "payment_type": payment_type,
            "payment_ref": payment_id,
        }
        result = await processor.create_intent(charge, configs.CURRENCY, metadata)

        with locked_order(order_number, self.db_session) as (session, order):
            payment = session.get(PaymentDetails, payment_id)
            if payment is None or payment.outcome != PaymentOutcome.PENDING:
                # order was cancelled while the processor call was in flight
                raise OrderCancelledError(order_number)

            if not result.success or not result.intent_id:
                payment.outcome = PaymentOutcome.FAILED
                payment.error_code = "INTENT_CREATE_FAILED"
                payment.error_reason = PaymentFailureReasons.GATEWAY_ERROR
                payment.settled_at = get_ist_now()
                failed = True
            else:
                payment.intent_id = result.intent_id
                failed = False
            session.flush()
            payment_view = PaymentView.model_validate(payment)
            order_view = OrderView.model_validate(order)

        if failed:
            logger.error(f"payment_intent_failed | order_number={order_number} payment_type={payment_type} amount={charge} message={result.message}")
            raise PaymentGatewayError(result.message)

        request_context.payment_ref = result.intent_id
        logger.info(f"payment_intent_created | order_number={order_number} intent_id={result.intent_id} payment_type={payment_type} amount={charge}")
        return IntentCreated(order=order_view, payment=payment_view, key_id=result.key_id)

    def _duplicate_result(self, confirmation_id: str) -> ReconciliationResult:
        with self.db_session() as session:
            payment = PaymentsRepository(session).get_by_confirmation(confirmation_id)
            if payment is None:
                raise PaymentNotFoundError(confirmation_id)
            order_view = OrderView.model_validate(payment.order)
            payment_view = PaymentView.model_validate(payment)

        logger.info(f"payment_duplicate_confirmation | order_number={order_view.order_number} confirmation_id={confirmation_id}")
        return ReconciliationResult(
            order=order_view,
            payment=payment_view,
            message="Payment already processed",
            duplicate=True,
        )

    async def verify(
        self,
        intent_id: str,
        confirmation_id: str,
        signature: Optional[str] = None,
        signature_verified: bool = False,
        amount: Optional[int] = None,
    ) -> ReconciliationResult:
        """
        Credit a confirmed payment to its order.

        A confirmation id is credited at most once; replays come back with
        duplicate=True and no ledger change. The credit is clamped to the
        remaining balance and any excess is kept on the order.

        Args:
            signature_verified: the caller already authenticated the payload
                (webhooks check their own signature)
            amount: amount reported by the gateway, compared for logging only

        Raises:
            SignatureMismatchError: signature does not match
            OrderCancelledError: the order was cancelled
            PreconditionError: the intent already settled another way
        """
        request_context.payment_ref = intent_id
        if not signature_verified:
            if not await self._require_processor().verify_payment_signature(intent_id, confirmation_id, signature):
                logger.warning(f"payment_signature_mismatch | intent_id={intent_id} confirmation_id={confirmation_id}")
                raise SignatureMismatchError("Payment signature verification failed")

        order_number = self._order_number_for_intent(intent_id)
        try:
            with locked_order(order_number, self.db_session) as (session, order):
                payments = PaymentsRepository(session)
                if payments.get_by_confirmation(confirmation_id) is not None:
                    raise DuplicateConfirmationError(confirmation_id)

                payment = payments.get_by_intent(intent_id)
                self._check_creditable(order, payment)

                if amount is not None and amount != payment.payment_amount:
                    logger.warning(f"payment_amount_mismatch | order_number={order_number} intent_id={intent_id} expected={payment.payment_amount} reported={amount}")

                now = get_ist_now()
                credited = min(payment.payment_amount, order.remaining_amount)
                excess = payment.payment_amount - credited

                payment.outcome = PaymentOutcome.SUCCEEDED
                payment.confirmation_id = confirmation_id
                payment.signature = signature
                payment.credited_amount = credited
                payment.error_code = None
                payment.error_reason = None
                payment.settled_at = now

                order.received_amount += credited
                order.remaining_amount = order.total_amount - order.received_amount
                order.excess_amount += excess
                if order.invoice is not None:
                    resync_invoice(order.invoice, order)
                session.flush()

                order_view = OrderView.model_validate(order)
                payment_view = PaymentView.model_validate(payment)
                events = []
                if credited > 0:
                    events.append(PaymentReceived(
                        order_number=order_number,
                        customer_name=order.customer_name,
                        customer_phone=order.customer_phone,
                        confirmation_id=confirmation_id,
                        amount=credited,
                        received_amount=order.received_amount,
                        remaining_amount=order.remaining_amount,
                        payment_type=payment.payment_type,
                    ))
        except (DuplicateConfirmationError, IntegrityError):
            return self._duplicate_result(confirmation_id)

        if excess:
            logger.warning(f"payment_overdraw | order_number={order_number} confirmation_id={confirmation_id} credited={credited} excess={excess}")
        logger.info(f"payment_verified | order_number={order_number} intent_id={intent_id} confirmation_id={confirmation_id} credited={credited} received={order_view.received_amount} remaining={order_view.remaining_amount}")
        return ReconciliationResult(
            order=order_view,
            payment=payment_view,
            message="Payment verified",
            credited_amount=credited,
            excess_amount=excess,
            events=events,
        )

    def _check_creditable(self, order: Order, payment: Optional[PaymentDetails]) -> None:
        if payment is None or payment.order_id != order.id:
            raise PaymentNotFoundError(order.order_number)
        if order.status == OrderStatus.CANCELLED:
            raise OrderCancelledError(order.order_number)
        if payment.outcome == PaymentOutcome.SUCCEEDED:
            raise PreconditionError(f"Payment {payment.intent_id} was already settled with another confirmation")
        if payment.outcome == PaymentOutcome.CANCELLED:
            # the gateway took the money after the intent was abandoned or
            # closed; it is credited like any capture, clamped to the balance
            logger.warning(f"payment_late_capture | order_number={order.order_number} intent_id={payment.intent_id} reason={payment.error_reason}")
        # a failed attempt can still be followed by a successful retry on the
        # same gateway order

    async def fail(self, intent_id: str, error: Optional[PaymentErrorInfo] = None, cancelled: bool = False) -> PaymentFailureResult:
        """Record a failed or customer-cancelled attempt. received_amount is never touched."""
        request_context.payment_ref = intent_id
        error = error or PaymentErrorInfo()
        order_number = self._order_number_for_intent(intent_id)

        with locked_order(order_number, self.db_session) as (session, order):
            payment = PaymentsRepository(session).get_by_intent(intent_id)
            if payment is None:
                raise PaymentNotFoundError(intent_id)
            if payment.outcome == PaymentOutcome.SUCCEEDED:
                raise PreconditionError(f"Payment {intent_id} already succeeded")

            if PaymentOutcome.is_final(payment.outcome):
                return PaymentFailureResult(
                    payment=PaymentView.model_validate(payment),
                    message=f"Payment already {payment.outcome}",
                    changed=False,
                )

            payment.outcome = PaymentOutcome.CANCELLED if cancelled else PaymentOutcome.FAILED
            payment.error_code = error.code
            payment.error_reason = error.reason or error.description or (PaymentFailureReasons.USER_CANCELLED if cancelled else None)
            payment.settled_at = get_ist_now()
            session.flush()
            payment_view = PaymentView.model_validate(payment)
            event = PaymentFailed(
                order_number=order_number,
                customer_name=order.customer_name,
                customer_phone=order.customer_phone,
                intent_id=intent_id,
                outcome=payment.outcome,
                reason=payment.error_reason,
            )

        logger.warning(f"payment_failed | order_number={order_number} intent_id={intent_id} outcome={payment_view.outcome} code={error.code} reason={payment_view.error_reason}")
        return PaymentFailureResult(payment=payment_view, message=f"Payment marked {payment_view.outcome}", events=[event])

    async def handle_callback(self, callback):
        """Route a normalized gateway callback to verify or fail"""
        if isinstance(callback, SucceededCallback):
            return await self.verify(
                callback.intent_id,
                callback.confirmation_id,
                signature=callback.signature,
                signature_verified=True,
                amount=callback.amount,
            )
        if isinstance(callback, FailedCallback):
            error = PaymentErrorInfo(code=callback.error_code, description=callback.error_description)
            return await self.fail(callback.intent_id, error)
        if isinstance(callback, CancelledCallback):
            return await self.fail(callback.intent_id, PaymentErrorInfo(reason=callback.reason), cancelled=True)
        raise TypeError(f"Unsupported gateway callback: {type(callback).__name__}")

    async def expire_abandoned_intents(self, now: Optional[datetime] = None, limit: int = 500) -> ExpiryResult:
        """Cancel pending intents whose window has passed, one order lock at a time"""
        now = now or get_ist_now()
        with self.db_session(read_only=True) as session:
            candidates = PaymentsRepository(session).expired_pending(now, limit)
            order_numbers = sorted({payment.order.order_number for payment in candidates})

        result = ExpiryResult()
        for order_number in order_numbers:
            with locked_order(order_number, self.db_session) as (session, order):
                for payment in PaymentsRepository(session).pending_for_order(order.id):
                    if _is_expired(payment, now):
                        _abandon(payment, now)
                        result.expired_count += 1
                        if payment.intent_id:
                            result.intent_ids.append(payment.intent_id)

        logger.info(f"payment_intents_expired | count={result.expired_count} orders={len(order_numbers)}")
        return result

    async def list_payments(self, order_number: str) -> Tuple[List[PaymentView], LedgerSummary]:
        with self.db_session(read_only=True) as session:
            order = OrdersRepository(session).get_by_number_or_raise(order_number)
            payments = PaymentsRepository(session).list_for_order(order.id)
            views = [PaymentView.model_validate(payment) for payment in payments]
            counts = {outcome: 0 for outcome in (PaymentOutcome.SUCCEEDED, PaymentOutcome.FAILED, PaymentOutcome.PENDING, PaymentOutcome.CANCELLED)}
            for payment in payments:
                counts[payment.outcome] = counts.get(payment.outcome, 0) + 1
            summary = LedgerSummary(
                order_number=order_number,
                total_amount=order.total_amount,
                received_amount=order.received_amount,
                remaining_amount=order.remaining_amount,
                excess_amount=order.excess_amount,
                succeeded_count=counts[PaymentOutcome.SUCCEEDED],
                failed_count=counts[PaymentOutcome.FAILED],
                pending_count=counts[PaymentOutcome.PENDING],
                cancelled_count=counts[PaymentOutcome.CANCELLED],
            )
        return views, summary

    async def ledger_summary(self, order_number: str) -> LedgerSummary:
        _, summary = await self.list_payments(order_number)
        return summary
