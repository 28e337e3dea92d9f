"""
Payment processor boundary.

The reconciliation service only talks to an object satisfying
PaymentProcessor; RazorpayService is the production implementation.
"""

from typing import Any, Dict, Optional, Protocol

from pydantic import BaseModel


class IntentResult(BaseModel):
    success: bool
    message: str
    intent_id: Optional[str] = None
    amount: Optional[int] = None
    currency: Optional[str] = None
    key_id: Optional[str] = None


class PaymentProcessor(Protocol):

    async def create_intent(self, amount: int, currency: str, metadata: Dict[str, Any]) -> IntentResult:
        ...

    async def verify_payment_signature(self, intent_id: str, confirmation_id: str, signature: str) -> bool:
        ...

    async def verify_webhook_signature(self, payload: str, signature: str) -> bool:
        ...
