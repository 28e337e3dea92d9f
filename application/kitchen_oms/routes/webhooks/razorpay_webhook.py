"""
Razorpay webhook routes.
Handles payment webhooks at /razorpay/webhook path.
"""

import json
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from pydantic import ValidationError

from kitchen_oms.core.exceptions import ConcurrentModificationError, OMSError
from kitchen_oms.dto.payments import parse_razorpay_webhook
from kitchen_oms.events.dispatcher import EventDispatcher
from kitchen_oms.integrations.payment_gateway import PaymentProcessor
from kitchen_oms.routes.dependencies import get_event_dispatcher, get_payment_processor
from kitchen_oms.services.payments.reconciliation_service import PaymentReconciliationService

# Request context
from kitchen_oms.middlewares.request_context import request_context

# Logger
from kitchen_oms.logging.utils import get_app_logger
logger = get_app_logger('kitchen_oms.razorpay_webhook')

razorpay_webhook_router = APIRouter(prefix="", tags=["razorpay-webhook"])


@razorpay_webhook_router.post("/webhook")
async def razorpay_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    processor: PaymentProcessor = Depends(get_payment_processor),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    """
    Handle Razorpay payment webhooks.
    payment.captured credits the payment, payment.failed records the failure;
    other events are acknowledged and ignored.
    """
    request_context.module_name = 'razorpay_webhook'
    raw_body = await request.body()
    signature = request.headers.get('X-Razorpay-Signature')

    if not signature:
        logger.warning("razorpay_webhook_missing_signature")
        raise HTTPException(status_code=400, detail="Missing X-Razorpay-Signature header")

    if not await processor.verify_webhook_signature(raw_body.decode('utf-8'), signature):
        logger.warning("razorpay_webhook_invalid_signature")
        raise HTTPException(status_code=400, detail="Invalid signature")

    try:
        webhook_data = json.loads(raw_body.decode('utf-8'))
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")

    if not isinstance(webhook_data, dict):
        raise HTTPException(status_code=400, detail="Invalid webhook payload")

    event = webhook_data.get("event")
    try:
        callback = parse_razorpay_webhook(webhook_data)
    except ValidationError as e:
        logger.warning(f"razorpay_webhook_invalid_payload | event={event} errors={e.errors()}")
        raise HTTPException(status_code=400, detail="Invalid webhook payload")
    if callback is None:
        logger.info(f"razorpay_webhook_ignored | event={event}")
        return {"status": "ok", "event": event}

    logger.info(f"razorpay_webhook_received | event={event} intent_id={callback.intent_id} outcome={callback.outcome}")
    try:
        result = await PaymentReconciliationService(processor).handle_callback(callback)
    except ConcurrentModificationError:
        raise
    except OMSError as e:
        # domain rejections are final, a retry from Razorpay would not change them
        logger.warning(f"razorpay_webhook_rejected | event={event} intent_id={callback.intent_id} error={e.error_code} message={e.message}")
        return {"status": "ignored", "event": event, "error": e.error_code}

    if result.events:
        background_tasks.add_task(dispatcher.dispatch, result.events)
    return {"status": "ok", "event": event, "message": result.message}
