"""
Payment record queries (SQLAlchemy ORM).
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from kitchen_oms.core.constants import PaymentOutcome
from kitchen_oms.models.payments import PaymentDetails


class PaymentsRepository:

    def __init__(self, session: Session):
        self.session = session

    def get_by_intent(self, intent_id: str) -> Optional[PaymentDetails]:
        return self.session.execute(
            select(PaymentDetails).where(PaymentDetails.intent_id == intent_id)
        ).scalar_one_or_none()

    def get_by_confirmation(self, confirmation_id: str) -> Optional[PaymentDetails]:
        return self.session.execute(
            select(PaymentDetails).where(PaymentDetails.confirmation_id == confirmation_id)
        ).scalar_one_or_none()

    def list_for_order(self, order_id: int) -> List[PaymentDetails]:
        return list(self.session.execute(
            select(PaymentDetails).where(PaymentDetails.order_id == order_id).order_by(PaymentDetails.id)
        ).scalars().all())

    def pending_for_order(self, order_id: int) -> List[PaymentDetails]:
        return list(self.session.execute(
            select(PaymentDetails).where(
                PaymentDetails.order_id == order_id,
                PaymentDetails.outcome == PaymentOutcome.PENDING,
            )
        ).scalars().all())

    def expired_pending(self, now: datetime, limit: int = 500) -> List[PaymentDetails]:
        return list(self.session.execute(
            select(PaymentDetails).where(
                PaymentDetails.outcome == PaymentOutcome.PENDING,
                PaymentDetails.expires_at.is_not(None),
                PaymentDetails.expires_at <= now,
            ).order_by(PaymentDetails.id).limit(limit)
        ).scalars().all())
