"""
Customer payment routes: quotes, Razorpay intent creation, checkout
verification and client-reported failures.
"""

from fastapi import APIRouter, BackgroundTasks, Depends

from kitchen_oms.dto.payments import (
    AdvanceQuote,
    CreateIntentRequest,
    IntentResponse,
    PaymentFailureRequest,
    PaymentFailureResponse,
    ReconciliationResponse,
    VerifyPaymentRequest,
)
from kitchen_oms.events.dispatcher import EventDispatcher
from kitchen_oms.integrations.payment_gateway import PaymentProcessor
from kitchen_oms.routes.dependencies import get_event_dispatcher, get_payment_processor
from kitchen_oms.services.payments.reconciliation_service import PaymentReconciliationService

# Request context
from kitchen_oms.middlewares.request_context import request_context

# Logger
from kitchen_oms.logging.utils import get_app_logger
logger = get_app_logger("kitchen_oms.routes.payments")

payment_router = APIRouter(tags=["payments"])


@payment_router.get("/orders/{order_number}/payments/quote", response_model=AdvanceQuote)
async def payment_quote(order_number: str):
    """Advance bounds, default and quick picks for the current balance."""
    request_context.module_name = 'route_payments'
    return await PaymentReconciliationService().quote(order_number)


@payment_router.post("/orders/{order_number}/payments/intent", response_model=IntentResponse, status_code=201)
async def create_payment_intent(
    order_number: str,
    intent_request: CreateIntentRequest,
    processor: PaymentProcessor = Depends(get_payment_processor),
):
    """Create a Razorpay order the app opens checkout with."""
    request_context.module_name = 'route_payments'
    created = await PaymentReconciliationService(processor).create_intent(order_number, intent_request.payment_type, intent_request.amount)
    return IntentResponse(
        order_number=order_number,
        intent_id=created.payment.intent_id,
        amount=created.payment.payment_amount,
        currency=created.payment.currency,
        payment_type=created.payment.payment_type,
        key_id=created.key_id,
        expires_at=created.payment.expires_at,
    )


@payment_router.post("/payments/verify", response_model=ReconciliationResponse)
async def verify_payment(
    verification: VerifyPaymentRequest,
    background_tasks: BackgroundTasks,
    processor: PaymentProcessor = Depends(get_payment_processor),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    """
    Verify the checkout signature and credit the payment.
    A replayed confirmation answers 200 with duplicate=true.
    """
    request_context.module_name = 'route_payments'
    result = await PaymentReconciliationService(processor).verify(
        verification.razorpay_order_id,
        verification.razorpay_payment_id,
        verification.razorpay_signature,
    )
    if result.events:
        background_tasks.add_task(dispatcher.dispatch, result.events)
    return ReconciliationResponse(
        duplicate=result.duplicate,
        message=result.message,
        credited_amount=result.credited_amount,
        excess_amount=result.excess_amount,
        payment=result.payment,
        order=result.order,
    )


@payment_router.post("/payments/failure", response_model=PaymentFailureResponse)
async def report_payment_failure(
    failure: PaymentFailureRequest,
    background_tasks: BackgroundTasks,
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    """Checkout reported an error, or the customer closed it."""
    request_context.module_name = 'route_payments'
    result = await PaymentReconciliationService().fail(failure.razorpay_order_id, failure.error, cancelled=failure.cancelled)
    if result.events:
        background_tasks.add_task(dispatcher.dispatch, result.events)
    return PaymentFailureResponse(message=result.message, payment=result.payment)
