"""
Invoice binding.

An invoice is a snapshot of a confirmed order taken once. Afterwards only
the received/balance mirror and the lifecycle fields move, and they move
under the same per-order lock as the order itself so both stay consistent.
"""
from decimal import Decimal
from typing import List, Optional

from kitchen_oms.connections.database import get_db_session
from kitchen_oms.core.constants import InvoicePaymentStatus, InvoiceStatus, OrderStatus, TaxSplitMode
from kitchen_oms.core.exceptions import AlreadyGeneratedError, InvoiceNotFoundError, PreconditionError
from kitchen_oms.core.money import split_half
from kitchen_oms.core.order_lock import locked_order
from kitchen_oms.dto.invoices import InvoiceView
from kitchen_oms.events.domain_events import InvoiceGenerated
from kitchen_oms.models.invoices import InvoiceDetails
from kitchen_oms.models.orders import Order
from kitchen_oms.repository.invoices import InvoicesRepository
from kitchen_oms.services.results import InvoiceResult
from kitchen_oms.utils.datetime_helpers import get_ist_now
from kitchen_oms.utils.order_utils import build_invoice_number

# Logger
from kitchen_oms.logging.utils import get_app_logger
logger = get_app_logger("kitchen_oms.invoice_binder")

# Settings
from kitchen_oms.config.settings import OMSConfigs
configs = OMSConfigs()


def split_tax(tax_amount: int, tax_rate: Decimal, mode: str) -> dict:
    """CGST/SGST halves (odd paisa to CGST) or the whole amount as IGST"""
    tax_rate = Decimal(tax_rate)
    if mode == TaxSplitMode.IGST:
        return {
            "cgst_rate": Decimal(0), "cgst_amount": 0,
            "sgst_rate": Decimal(0), "sgst_amount": 0,
            "igst_rate": tax_rate, "igst_amount": tax_amount,
        }
    cgst, sgst = split_half(tax_amount)
    half_rate = tax_rate / 2
    return {
        "cgst_rate": half_rate, "cgst_amount": cgst,
        "sgst_rate": half_rate, "sgst_amount": sgst,
        "igst_rate": Decimal(0), "igst_amount": 0,
    }


def resync_invoice(invoice: InvoiceDetails, order: Order) -> bool:
    """Mirror the order's received/remaining onto the invoice. Returns True when anything changed."""
    payment_status = InvoicePaymentStatus.derive(order.received_amount, order.remaining_amount)
    changed = (
        invoice.received_amount != order.received_amount
        or invoice.balance != order.remaining_amount
        or invoice.payment_status != payment_status
    )
    invoice.received_amount = order.received_amount
    invoice.balance = order.remaining_amount
    invoice.payment_status = payment_status
    if payment_status == InvoicePaymentStatus.PAID and invoice.status in (InvoiceStatus.DRAFT, InvoiceStatus.SENT):
        invoice.status = InvoiceStatus.PAID
        changed = True
    return changed


def consistency_errors(invoice: InvoiceDetails, order: Order) -> List[str]:
    errors = []
    if sum(item["subtotal"] for item in invoice.items) != invoice.subtotal_amount:
        errors.append("item subtotals do not add up to the invoice subtotal")
    if invoice.cgst_amount + invoice.sgst_amount + invoice.igst_amount != invoice.total_tax:
        errors.append("tax lines do not add up to the total tax")
    if invoice.subtotal_amount + invoice.total_tax != invoice.total_amount:
        errors.append("subtotal plus tax does not equal the invoice total")
    if invoice.total_amount != order.total_amount:
        errors.append("invoice total differs from the order total")
    if invoice.balance != order.remaining_amount:
        errors.append("invoice balance differs from the order balance")
    return errors


class InvoiceBinder:

    def __init__(self, db_session=get_db_session):
        self.db_session = db_session

    def _order_number_for(self, invoice_number: str) -> str:
        with self.db_session() as session:
            invoice = InvoicesRepository(session).get_by_number_or_raise(invoice_number)
            return invoice.order.order_number

    def _invoice_of(self, order: Order, invoice_number: str) -> InvoiceDetails:
        invoice = order.invoice
        if invoice is None or invoice.invoice_number != invoice_number:
            raise InvoiceNotFoundError(invoice_number)
        return invoice

    async def generate(self, order_number: str, notes: Optional[str] = None, customer_gstin: Optional[str] = None) -> InvoiceResult:
        """
        Snapshot a confirmed order into its invoice.

        Raises:
            AlreadyGeneratedError: the order already has an invoice
            PreconditionError: the order is not confirmed
        """
        with locked_order(order_number, self.db_session) as (session, order):
            if order.invoice_generated or order.invoice is not None:
                existing = order.invoice.invoice_number if order.invoice is not None else None
                raise AlreadyGeneratedError(order_number, existing)
            if order.status != OrderStatus.CONFIRMED:
                raise PreconditionError(f"Invoice can only be generated for confirmed orders, order {order_number} is {order.status}")

            now = get_ist_now()
            mode = configs.TAX_SPLIT_MODE if configs.TAX_SPLIT_MODE in (TaxSplitMode.CGST_SGST, TaxSplitMode.IGST) else TaxSplitMode.CGST_SGST
            invoice = InvoiceDetails(
                order=order,
                items=[
                    {
                        "catalog_item_id": item.catalog_item_id,
                        "name": item.name,
                        "unit_price": item.unit_price,
                        "quantity": item.quantity,
                        "subtotal": item.subtotal,
                    }
                    for item in order.items
                ],
                customer_name=order.customer_name,
                customer_phone=order.customer_phone,
                customer_gstin=customer_gstin or order.customer_gstin,
                billing_address=order.billing_address or order.delivery_address,
                shipping_address=order.delivery_address,
                notes=notes if notes is not None else configs.DEFAULT_INVOICE_NOTES,
                merchant_name=configs.MERCHANT_NAME,
                merchant_gstin=configs.MERCHANT_GSTIN or None,
                subtotal_amount=order.subtotal_amount,
                tax_split_mode=mode,
                total_tax=order.tax_amount,
                total_amount=order.total_amount,
                issued_at=now,
                status=InvoiceStatus.DRAFT,
                **split_tax(order.tax_amount, order.tax_rate, mode),
            )
            resync_invoice(invoice, order)
            session.add(invoice)
            session.flush()

            invoice.invoice_number = build_invoice_number(invoice.id, now.year)
            order.invoice_generated = True
            session.flush()

            errors = consistency_errors(invoice, order)
            if errors:
                raise PreconditionError(f"Invoice snapshot for {order_number} is inconsistent: {'; '.join(errors)}")

            view = InvoiceView.from_model(invoice)
            event = InvoiceGenerated(
                order_number=order_number,
                customer_name=order.customer_name,
                customer_phone=order.customer_phone,
                invoice_number=invoice.invoice_number,
                total_amount=invoice.total_amount,
                balance=invoice.balance,
            )

        logger.info(f"invoice_generated | order_number={order_number} invoice_number={view.invoice_number} total={view.total_amount} mode={mode}")
        return InvoiceResult(invoice=view, message="Invoice generated", events=[event])

    async def resync(self, order_number: str) -> InvoiceView:
        with locked_order(order_number, self.db_session) as (session, order):
            if order.invoice is None:
                raise InvoiceNotFoundError(f"for order {order_number}")
            if resync_invoice(order.invoice, order):
                logger.info(f"invoice_resynced | order_number={order_number} invoice_number={order.invoice.invoice_number}")
            session.flush()
            return InvoiceView.from_model(order.invoice)

    async def delete(self, invoice_number: str) -> str:
        """Delete an invoice. Only allowed once the order is delivered. Returns the order number."""
        order_number = self._order_number_for(invoice_number)
        with locked_order(order_number, self.db_session) as (session, order):
            invoice = self._invoice_of(order, invoice_number)
            if order.status != OrderStatus.DELIVERED:
                raise PreconditionError(f"Invoice can only be deleted once the order is delivered, order {order_number} is {order.status}")
            order.invoice = None
            session.delete(invoice)
            order.invoice_generated = False

        logger.info(f"invoice_deleted | order_number={order_number} invoice_number={invoice_number}")
        return order_number

    async def mark_sent(self, invoice_number: str) -> InvoiceResult:
        order_number = self._order_number_for(invoice_number)
        with locked_order(order_number, self.db_session) as (session, order):
            invoice = self._invoice_of(order, invoice_number)
            if invoice.status == InvoiceStatus.CANCELLED:
                raise PreconditionError(f"Invoice {invoice_number} is cancelled")
            if invoice.status == InvoiceStatus.DRAFT:
                invoice.status = InvoiceStatus.SENT
            invoice.sent_at = get_ist_now()
            session.flush()
            view = InvoiceView.from_model(invoice)

        logger.info(f"invoice_sent | invoice_number={invoice_number} status={view.status}")
        return InvoiceResult(invoice=view, message="Invoice marked as sent")

    async def cancel(self, invoice_number: str) -> InvoiceResult:
        order_number = self._order_number_for(invoice_number)
        with locked_order(order_number, self.db_session) as (session, order):
            invoice = self._invoice_of(order, invoice_number)
            if invoice.status == InvoiceStatus.CANCELLED:
                return InvoiceResult(invoice=InvoiceView.from_model(invoice), message="Invoice already cancelled")
            if invoice.payment_status == InvoicePaymentStatus.PAID:
                raise PreconditionError(f"Invoice {invoice_number} is paid and cannot be cancelled")
            invoice.status = InvoiceStatus.CANCELLED
            invoice.cancelled_at = get_ist_now()
            session.flush()
            view = InvoiceView.from_model(invoice)

        logger.info(f"invoice_cancelled | invoice_number={invoice_number} order_number={order_number}")
        return InvoiceResult(invoice=view, message="Invoice cancelled")

    async def render_payload(self, invoice_number: str) -> InvoiceView:
        """Complete, internally consistent snapshot for the renderer"""
        order_number = self._order_number_for(invoice_number)
        with locked_order(order_number, self.db_session) as (session, order):
            invoice = self._invoice_of(order, invoice_number)
            resync_invoice(invoice, order)
            errors = consistency_errors(invoice, order)
            if errors:
                logger.error(f"invoice_inconsistent | invoice_number={invoice_number} errors={errors}")
                raise PreconditionError(f"Invoice {invoice_number} is inconsistent: {'; '.join(errors)}")
            session.flush()
            return InvoiceView.from_model(invoice)

    async def get(self, invoice_number: str) -> InvoiceView:
        with self.db_session() as session:
            return InvoiceView.from_model(InvoicesRepository(session).get_by_number_or_raise(invoice_number))

    async def get_for_order(self, order_number: str) -> InvoiceView:
        with self.db_session() as session:
            invoice = InvoicesRepository(session).get_for_order_number(order_number)
            if invoice is None:
                raise InvoiceNotFoundError(f"for order {order_number}")
            return InvoiceView.from_model(invoice)

    async def list_invoices(self, payment_status: Optional[str] = None, status: Optional[str] = None, limit: int = 20, offset: int = 0) -> List[InvoiceView]:
        with self.db_session() as session:
            invoices = InvoicesRepository(session).list_invoices(payment_status=payment_status, status=status, limit=limit, offset=offset)
            return [InvoiceView.from_model(invoice) for invoice in invoices]
