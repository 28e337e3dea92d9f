"""
Invoice queries (SQLAlchemy ORM).
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from kitchen_oms.core.exceptions import InvoiceNotFoundError
from kitchen_oms.models.invoices import InvoiceDetails
from kitchen_oms.models.orders import Order


class InvoicesRepository:

    def __init__(self, session: Session):
        self.session = session

    def get_by_number(self, invoice_number: str) -> Optional[InvoiceDetails]:
        return self.session.execute(
            select(InvoiceDetails).options(joinedload(InvoiceDetails.order)).where(InvoiceDetails.invoice_number == invoice_number)
        ).scalar_one_or_none()

    def get_by_number_or_raise(self, invoice_number: str) -> InvoiceDetails:
        invoice = self.get_by_number(invoice_number)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_number)
        return invoice

    def get_for_order_number(self, order_number: str) -> Optional[InvoiceDetails]:
        return self.session.execute(
            select(InvoiceDetails).join(Order, InvoiceDetails.order_id == Order.id)
            .options(joinedload(InvoiceDetails.order))
            .where(Order.order_number == order_number)
        ).scalar_one_or_none()

    def list_invoices(self, payment_status: Optional[str] = None, status: Optional[str] = None, limit: int = 20, offset: int = 0) -> List[InvoiceDetails]:
        query = select(InvoiceDetails).options(joinedload(InvoiceDetails.order))
        if payment_status:
            query = query.where(InvoiceDetails.payment_status == payment_status)
        if status:
            query = query.where(InvoiceDetails.status == status)
        query = query.order_by(InvoiceDetails.issued_at.desc(), InvoiceDetails.id.desc()).limit(limit).offset(offset)
        return list(self.session.execute(query).scalars().all())
