from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query

from kitchen_oms.dto.invoices import (
    InvoiceDeleteResponse,
    InvoiceGenerateRequest,
    InvoiceListResponse,
    InvoiceResponse,
    InvoiceView,
)
from kitchen_oms.events.dispatcher import EventDispatcher
from kitchen_oms.routes.dependencies import get_event_dispatcher
from kitchen_oms.services.invoice_binder import InvoiceBinder

# Request context
from kitchen_oms.middlewares.request_context import request_context

admin_invoices_router = APIRouter(tags=["admin-invoices"])


@admin_invoices_router.post("/orders/{order_number}/invoice", response_model=InvoiceResponse, status_code=201)
async def generate_invoice(
    order_number: str,
    background_tasks: BackgroundTasks,
    generate_request: Optional[InvoiceGenerateRequest] = None,
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
):
    """Snapshot a confirmed order into its invoice, once."""
    request_context.module_name = 'route_admin_invoices'
    generate_request = generate_request or InvoiceGenerateRequest()
    result = await InvoiceBinder().generate(order_number, notes=generate_request.notes, customer_gstin=generate_request.customer_gstin)
    background_tasks.add_task(dispatcher.dispatch, result.events)
    return InvoiceResponse(message=result.message, invoice=result.invoice)


@admin_invoices_router.get("/orders/{order_number}/invoice", response_model=InvoiceResponse)
async def get_order_invoice(order_number: str):
    request_context.module_name = 'route_admin_invoices'
    invoice = await InvoiceBinder().get_for_order(order_number)
    return InvoiceResponse(message="Invoice found", invoice=invoice)


@admin_invoices_router.get("/invoices", response_model=InvoiceListResponse)
async def list_invoices(
    payment_status: Optional[str] = Query(None, description="unpaid, partial or paid"),
    status: Optional[str] = Query(None, description="draft, sent, paid or cancelled"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    request_context.module_name = 'route_admin_invoices'
    invoices = await InvoiceBinder().list_invoices(payment_status=payment_status, status=status, limit=limit, offset=offset)
    return InvoiceListResponse(count=len(invoices), invoices=invoices)


@admin_invoices_router.get("/invoices/{invoice_number}", response_model=InvoiceResponse)
async def get_invoice(invoice_number: str):
    request_context.module_name = 'route_admin_invoices'
    invoice = await InvoiceBinder().get(invoice_number)
    return InvoiceResponse(message="Invoice found", invoice=invoice)


@admin_invoices_router.get("/invoices/{invoice_number}/render", response_model=InvoiceView)
async def render_invoice(invoice_number: str):
    """Consistent snapshot handed to the invoice renderer."""
    request_context.module_name = 'route_admin_invoices'
    return await InvoiceBinder().render_payload(invoice_number)


@admin_invoices_router.post("/invoices/{invoice_number}/send", response_model=InvoiceResponse)
async def mark_invoice_sent(invoice_number: str):
    request_context.module_name = 'route_admin_invoices'
    result = await InvoiceBinder().mark_sent(invoice_number)
    return InvoiceResponse(message=result.message, invoice=result.invoice)


@admin_invoices_router.post("/invoices/{invoice_number}/cancel", response_model=InvoiceResponse)
async def cancel_invoice(invoice_number: str):
    request_context.module_name = 'route_admin_invoices'
    result = await InvoiceBinder().cancel(invoice_number)
    return InvoiceResponse(message=result.message, invoice=result.invoice)


@admin_invoices_router.delete("/invoices/{invoice_number}", response_model=InvoiceDeleteResponse)
async def delete_invoice(invoice_number: str):
    """Only allowed once the order is delivered."""
    request_context.module_name = 'route_admin_invoices'
    order_number = await InvoiceBinder().delete(invoice_number)
    return InvoiceDeleteResponse(
        message=f"Invoice {invoice_number} deleted",
        invoice_number=invoice_number,
        order_number=order_number,
    )
