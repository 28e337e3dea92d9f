from fastapi import APIRouter, BackgroundTasks, Depends, Query

from kitchen_oms.dto.cart import CheckoutRequest, PHONE_PATTERN
from kitchen_oms.dto.orders import OrderActionResponse, OrderListResponse
from kitchen_oms.core.exceptions import ValidationError
from kitchen_oms.events.dispatcher import EventDispatcher
from kitchen_oms.routes.dependencies import get_event_dispatcher
from kitchen_oms.services.checkout_service import CheckoutService
from kitchen_oms.services.order_queries import OrderQueryService

# Request context
from kitchen_oms.middlewares.request_context import request_context

app_router = APIRouter(tags=["app"])


@app_router.post("/checkout", response_model=OrderActionResponse, status_code=201)
async def checkout(
    checkout_request: CheckoutRequest,
    background_tasks: BackgroundTasks,
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    """Place a pending order from the customer's cart."""
    request_context.module_name = 'route_checkout'
    result = await CheckoutService().place_order(checkout_request)
    background_tasks.add_task(dispatcher.dispatch, result.events)
    return OrderActionResponse(message=result.message, order=result.order)


@app_router.get("/orders/{order_number}", response_model=OrderActionResponse)
async def get_order(order_number: str):
    request_context.module_name = 'route_orders'
    order = await OrderQueryService().get_order(order_number)
    return OrderActionResponse(message="Order found", order=order)


@app_router.get("/orders", response_model=OrderListResponse)
async def order_history(
    phone: str = Query(..., description="Customer phone number"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    """Orders placed from a phone number, newest first."""
    request_context.module_name = 'route_orders'
    if not PHONE_PATTERN.match(phone):
        raise ValidationError("Phone must be a valid 10 digit mobile number")
    orders = await OrderQueryService().order_history(phone, limit=limit, offset=offset)
    return OrderListResponse(count=len(orders), orders=orders)
