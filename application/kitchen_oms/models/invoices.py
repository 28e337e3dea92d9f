"""
Invoice snapshot model. Everything except the received/balance mirror and
the lifecycle fields is frozen at generation time.
"""

from sqlalchemy import Column, Integer, BigInteger, String, Numeric, TIMESTAMP, ForeignKey, JSON
from sqlalchemy.orm import relationship
from kitchen_oms.models.common import CommonModel
from kitchen_oms.core.constants import InvoicePaymentStatus, InvoiceStatus


class InvoiceDetails(CommonModel):
    __tablename__ = "invoice_details"

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String(32), unique=True, nullable=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, unique=True)

    items = Column(JSON, nullable=False)
    customer_name = Column(String(100), nullable=False)
    customer_phone = Column(String(15), nullable=False)
    customer_gstin = Column(String(20), nullable=True)
    billing_address = Column(JSON, nullable=True)
    shipping_address = Column(JSON, nullable=True)
    notes = Column(String(500), nullable=True)
    merchant_name = Column(String(100), nullable=False)
    merchant_gstin = Column(String(20), nullable=True)

    subtotal_amount = Column(BigInteger, nullable=False)
    tax_split_mode = Column(String(12), nullable=False)
    cgst_rate = Column(Numeric(5, 2), nullable=False, default=0)
    cgst_amount = Column(BigInteger, nullable=False, default=0)
    sgst_rate = Column(Numeric(5, 2), nullable=False, default=0)
    sgst_amount = Column(BigInteger, nullable=False, default=0)
    igst_rate = Column(Numeric(5, 2), nullable=False, default=0)
    igst_amount = Column(BigInteger, nullable=False, default=0)
    total_tax = Column(BigInteger, nullable=False)
    total_amount = Column(BigInteger, nullable=False)

    received_amount = Column(BigInteger, nullable=False, default=0)
    balance = Column(BigInteger, nullable=False)
    payment_status = Column(String(10), nullable=False, default=InvoicePaymentStatus.UNPAID, index=True)
    status = Column(String(10), nullable=False, default=InvoiceStatus.DRAFT, index=True)

    issued_at = Column(TIMESTAMP(timezone=True), nullable=False)
    sent_at = Column(TIMESTAMP(timezone=True), nullable=True)
    cancelled_at = Column(TIMESTAMP(timezone=True), nullable=True)

    order = relationship("Order", back_populates="invoice")

    def __repr__(self):
        return f"<InvoiceDetails(id={self.id}, invoice_number='{self.invoice_number}', order_id={self.order_id}, payment_status='{self.payment_status}')>"
