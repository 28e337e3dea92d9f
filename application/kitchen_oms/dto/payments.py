"""
Payment DTOs: intent creation, verification, gateway callbacks.

Gateway payloads are normalized into one GatewayCallback variant per outcome
before they reach the reconciliation service. Amounts are integer paise.
"""

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

from kitchen_oms.core.constants import PaymentType
from kitchen_oms.dto.orders import OrderView


class CreateIntentRequest(BaseModel):
    payment_type: Literal["full", "advance", "remaining"]
    amount: Optional[int] = Field(None, gt=0, description="Required for advance payments, in paise")

    @model_validator(mode="after")
    def validate_amount(self):
        if self.payment_type == PaymentType.ADVANCE and self.amount is None:
            raise ValueError("amount is required for advance payments")
        return self


class IntentResponse(BaseModel):
    success: bool = True
    order_number: str
    intent_id: str
    amount: int
    currency: str
    payment_type: str
    key_id: Optional[str] = None
    expires_at: Optional[datetime] = None


class VerifyPaymentRequest(BaseModel):
    razorpay_order_id: str = Field(..., min_length=1, description="Intent reference")
    razorpay_payment_id: str = Field(..., min_length=1, description="Confirmation id")
    razorpay_signature: str = Field(..., min_length=1)


class PaymentErrorInfo(BaseModel):
    code: Optional[str] = None
    description: Optional[str] = None
    reason: Optional[str] = None


class PaymentFailureRequest(BaseModel):
    razorpay_order_id: str = Field(..., min_length=1)
    error: PaymentErrorInfo = Field(default_factory=PaymentErrorInfo)
    cancelled: bool = Field(False, description="Customer closed the checkout")


class PaymentView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    intent_id: Optional[str] = None
    confirmation_id: Optional[str] = None
    payment_amount: int
    credited_amount: int
    payment_type: str
    payment_mode: str
    outcome: str
    currency: str
    error_code: Optional[str] = None
    error_reason: Optional[str] = None
    expires_at: Optional[datetime] = None
    settled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ReconciliationResponse(BaseModel):
    success: bool = True
    duplicate: bool = False
    message: str
    credited_amount: int = 0
    excess_amount: int = 0
    payment: PaymentView
    order: OrderView


class PaymentFailureResponse(BaseModel):
    success: bool = True
    message: str
    payment: PaymentView


class AdvanceQuote(BaseModel):
    remaining_amount: int
    minimum: int
    maximum: int
    default: int
    quick_picks: Dict[int, int] = Field(default_factory=dict, description="percentage -> amount")
    full_available: bool
    remaining_available: bool


class LedgerSummary(BaseModel):
    order_number: str
    total_amount: int
    received_amount: int
    remaining_amount: int
    excess_amount: int
    succeeded_count: int
    failed_count: int
    pending_count: int
    cancelled_count: int


class PaymentListResponse(BaseModel):
    success: bool = True
    order_number: str
    payments: List[PaymentView]
    summary: LedgerSummary


class ExpireIntentsResponse(BaseModel):
    success: bool = True
    expired_count: int
    intent_ids: List[str]


class SucceededCallback(BaseModel):
    outcome: Literal["succeeded"] = "succeeded"
    intent_id: str
    confirmation_id: str
    signature: Optional[str] = None
    amount: Optional[int] = None


class FailedCallback(BaseModel):
    outcome: Literal["failed"] = "failed"
    intent_id: str
    confirmation_id: Optional[str] = None
    error_code: Optional[str] = None
    error_description: Optional[str] = None


class CancelledCallback(BaseModel):
    outcome: Literal["cancelled"] = "cancelled"
    intent_id: str
    reason: Optional[str] = None


GatewayCallback = Annotated[Union[SucceededCallback, FailedCallback, CancelledCallback], Field(discriminator="outcome")]
gateway_callback_adapter = TypeAdapter(GatewayCallback)

RAZORPAY_EVENT_OUTCOMES = {
    "payment.captured": "succeeded",
    "payment.failed": "failed",
}


def parse_gateway_callback(data: Dict[str, Any]):
    """Validate a normalized callback dict into its outcome variant"""
    return gateway_callback_adapter.validate_python(data)


def parse_razorpay_webhook(payload: Dict[str, Any]):
    """
    Map a Razorpay webhook body onto a GatewayCallback.

    Returns None for events this service does not act on, or payments that
    are not tied to a gateway order.
    """
    event = payload.get("event")
    outcome = RAZORPAY_EVENT_OUTCOMES.get(event) if isinstance(event, str) else None
    if outcome is None:
        return None

    entity = payload
    for key in ("payload", "payment", "entity"):
        entity = entity.get(key) if isinstance(entity, dict) else None
    if not isinstance(entity, dict):
        return None

    intent_id = entity.get("order_id")
    if not intent_id:
        return None

    if outcome == "succeeded":
        return parse_gateway_callback({
            "outcome": outcome,
            "intent_id": intent_id,
            "confirmation_id": entity.get("id"),
            "amount": entity.get("amount"),
        })
    return parse_gateway_callback({
        "outcome": outcome,
        "intent_id": intent_id,
        "confirmation_id": entity.get("id"),
        "error_code": entity.get("error_code"),
        "error_description": entity.get("error_description"),
    })
