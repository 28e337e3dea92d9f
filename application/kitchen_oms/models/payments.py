from sqlalchemy import Column, Integer, BigInteger, String, TIMESTAMP, ForeignKey, Index
from sqlalchemy.orm import relationship
from kitchen_oms.models.common import CommonModel
from kitchen_oms.core.constants import PaymentOutcome


class PaymentDetails(CommonModel):
    """
    One payment attempt against an order.

    intent_id is the gateway order reference handed to the checkout UI;
    confirmation_id is the gateway payment id reported back on success and is
    unique so a confirmation can be credited only once.
    """
    __tablename__ = "payment_details"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    intent_id = Column(String(64), unique=True, nullable=True)
    confirmation_id = Column(String(64), unique=True, nullable=True)
    signature = Column(String(256), nullable=True)
    payment_amount = Column(BigInteger, nullable=False)
    # what the order ledger actually took, can be lower than payment_amount on overdraw
    credited_amount = Column(BigInteger, nullable=False, default=0, server_default="0")
    payment_type = Column(String(20), nullable=False)
    payment_mode = Column(String(20), nullable=False)
    outcome = Column(String(20), nullable=False, default=PaymentOutcome.PENDING, index=True)
    currency = Column(String(3), nullable=False, default="INR", server_default="INR")
    error_code = Column(String(64), nullable=True)
    error_reason = Column(String(255), nullable=True)
    expires_at = Column(TIMESTAMP(timezone=True), nullable=True)
    settled_at = Column(TIMESTAMP(timezone=True), nullable=True)

    order = relationship("Order", back_populates="payments")

    __table_args__ = (
        Index('idx_payment_details_outcome_expires', 'outcome', 'expires_at'),
    )

    def __repr__(self):
        return f"<PaymentDetails(id={self.id}, order_id={self.order_id}, intent_id='{self.intent_id}', outcome='{self.outcome}')>"
