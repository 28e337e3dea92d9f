from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query

from kitchen_oms.core.constants import OrderStatus
from kitchen_oms.core.exceptions import ValidationError
from kitchen_oms.dto.orders import (
    CancelRequest,
    DenyRequest,
    OrderActionResponse,
    OrderDeleteResponse,
    OrderListResponse,
    StatusUpdateRequest,
)
from kitchen_oms.dto.payments import ExpireIntentsResponse, LedgerSummary, PaymentListResponse
from kitchen_oms.events.dispatcher import EventDispatcher
from kitchen_oms.routes.dependencies import get_event_dispatcher
from kitchen_oms.services.order_queries import OrderQueryService
from kitchen_oms.services.order_state_machine import OrderStateMachine
from kitchen_oms.services.payments.reconciliation_service import PaymentReconciliationService

# Request context
from kitchen_oms.middlewares.request_context import request_context

admin_orders_router = APIRouter(tags=["admin"])


@admin_orders_router.get("/orders", response_model=OrderListResponse)
async def list_orders(
    status: Optional[str] = Query(None, description="Filter by order status"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    request_context.module_name = 'route_admin_orders'
    if status and not OrderStatus.is_valid(status):
        raise ValidationError(f"Unknown order status: {status}")
    orders = await OrderQueryService().list_orders(status=status, limit=limit, offset=offset)
    return OrderListResponse(count=len(orders), orders=orders)


@admin_orders_router.get("/orders/{order_number}", response_model=OrderActionResponse)
async def get_order(order_number: str):
    request_context.module_name = 'route_admin_orders'
    order = await OrderQueryService().get_order(order_number)
    return OrderActionResponse(message="Order found", order=order)


@admin_orders_router.post("/orders/{order_number}/confirm", response_model=OrderActionResponse)
async def confirm_order(order_number: str, background_tasks: BackgroundTasks, dispatcher: EventDispatcher = Depends(get_event_dispatcher)):
    """Accept a pending order. The customer is notified after the change commits."""
    request_context.module_name = 'route_admin_orders'
    result = await OrderStateMachine().confirm(order_number)
    background_tasks.add_task(dispatcher.dispatch, result.events)
    return OrderActionResponse(message=result.message, order=result.order)


@admin_orders_router.post("/orders/{order_number}/deny", response_model=OrderActionResponse)
async def deny_order(order_number: str, deny_request: DenyRequest, background_tasks: BackgroundTasks, dispatcher: EventDispatcher = Depends(get_event_dispatcher)):
    request_context.module_name = 'route_admin_orders'
    result = await OrderStateMachine().deny(order_number, deny_request.reason)
    background_tasks.add_task(dispatcher.dispatch, result.events)
    return OrderActionResponse(message=result.message, order=result.order)


@admin_orders_router.post("/orders/{order_number}/status", response_model=OrderActionResponse)
async def advance_order_status(order_number: str, status_update: StatusUpdateRequest, background_tasks: BackgroundTasks, dispatcher: EventDispatcher = Depends(get_event_dispatcher)):
    request_context.module_name = 'route_admin_orders'
    result = await OrderStateMachine().advance(order_number, status_update.status)
    background_tasks.add_task(dispatcher.dispatch, result.events)
    return OrderActionResponse(message=result.message, order=result.order)


@admin_orders_router.post("/orders/{order_number}/cancel", response_model=OrderActionResponse)
async def cancel_order(order_number: str, cancel_request: CancelRequest, background_tasks: BackgroundTasks, dispatcher: EventDispatcher = Depends(get_event_dispatcher)):
    request_context.module_name = 'route_admin_orders'
    result = await OrderStateMachine().cancel(order_number, cancel_request.reason)
    background_tasks.add_task(dispatcher.dispatch, result.events)
    return OrderActionResponse(message=result.message, order=result.order)


@admin_orders_router.delete("/orders/{order_number}", response_model=OrderDeleteResponse)
async def delete_order(order_number: str):
    """Delete a delivered or cancelled order with its invoice and payments."""
    request_context.module_name = 'route_admin_orders'
    result = await OrderStateMachine().delete(order_number)
    return OrderDeleteResponse(
        message=f"Order {order_number} deleted",
        order_number=result.order_number,
        invoice_deleted=result.invoice_deleted,
        payments_deleted=result.payments_deleted,
    )


@admin_orders_router.get("/orders/{order_number}/payments", response_model=PaymentListResponse)
async def list_order_payments(order_number: str):
    request_context.module_name = 'route_admin_payments'
    payments, summary = await PaymentReconciliationService().list_payments(order_number)
    return PaymentListResponse(order_number=order_number, payments=payments, summary=summary)


@admin_orders_router.get("/orders/{order_number}/payments/summary", response_model=LedgerSummary)
async def order_ledger_summary(order_number: str):
    request_context.module_name = 'route_admin_payments'
    return await PaymentReconciliationService().ledger_summary(order_number)


@admin_orders_router.post("/payments/expire-abandoned", response_model=ExpireIntentsResponse)
async def expire_abandoned_intents():
    """Cancel pending intents older than the payment window."""
    request_context.module_name = 'route_admin_payments'
    result = await PaymentReconciliationService().expire_abandoned_intents()
    return ExpireIntentsResponse(expired_count=result.expired_count, intent_ids=result.intent_ids)
