from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class TaxLine(BaseModel):
    rate: Decimal
    amount: int


class TaxDetails(BaseModel):
    cgst: TaxLine
    sgst: TaxLine
    igst: TaxLine
    total_tax: int


class InvoiceView(BaseModel):
    """Invoice projection. Amounts in paise."""

    invoice_number: str
    order_number: Optional[str] = None
    items: List[Dict[str, Any]]
    customer_name: str
    customer_phone: str
    customer_gstin: Optional[str] = None
    billing_address: Optional[Dict[str, Any]] = None
    shipping_address: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    merchant_name: str
    merchant_gstin: Optional[str] = None
    subtotal_amount: int
    tax_split_mode: str
    tax_details: TaxDetails
    total_amount: int
    received_amount: int
    balance: int
    payment_status: str
    status: str
    issued_at: datetime
    sent_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, invoice) -> "InvoiceView":
        return cls(
            invoice_number=invoice.invoice_number,
            order_number=invoice.order.order_number if invoice.order is not None else None,
            items=invoice.items,
            customer_name=invoice.customer_name,
            customer_phone=invoice.customer_phone,
            customer_gstin=invoice.customer_gstin,
            billing_address=invoice.billing_address,
            shipping_address=invoice.shipping_address,
            notes=invoice.notes,
            merchant_name=invoice.merchant_name,
            merchant_gstin=invoice.merchant_gstin,
            subtotal_amount=invoice.subtotal_amount,
            tax_split_mode=invoice.tax_split_mode,
            tax_details=TaxDetails(
                cgst=TaxLine(rate=invoice.cgst_rate, amount=invoice.cgst_amount),
                sgst=TaxLine(rate=invoice.sgst_rate, amount=invoice.sgst_amount),
                igst=TaxLine(rate=invoice.igst_rate, amount=invoice.igst_amount),
                total_tax=invoice.total_tax,
            ),
            total_amount=invoice.total_amount,
            received_amount=invoice.received_amount,
            balance=invoice.balance,
            payment_status=invoice.payment_status,
            status=invoice.status,
            issued_at=invoice.issued_at,
            sent_at=invoice.sent_at,
            cancelled_at=invoice.cancelled_at,
        )


class InvoiceGenerateRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=500)
    customer_gstin: Optional[str] = Field(None, max_length=20)


class InvoiceResponse(BaseModel):
    success: bool = True
    message: str
    invoice: InvoiceView


class InvoiceListResponse(BaseModel):
    success: bool = True
    count: int
    invoices: List[InvoiceView]


class InvoiceDeleteResponse(BaseModel):
    success: bool = True
    message: str
    invoice_number: str
    order_number: str
