from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from kitchen_oms.core.constants import OrderStatus


class OrderItemView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    catalog_item_id: str
    name: str
    unit_price: int
    quantity: int
    subtotal: int


class OrderView(BaseModel):
    """Order projection returned by every order endpoint. Amounts in paise."""
    model_config = ConfigDict(from_attributes=True)

    order_number: str
    status: str
    customer_name: str
    customer_phone: str
    customer_email: Optional[str] = None
    customer_gstin: Optional[str] = None
    delivery_address: Optional[Dict[str, Any]] = None
    billing_address: Optional[Dict[str, Any]] = None
    scheduled_for: Optional[datetime] = None
    instructions: str = ""
    items: List[OrderItemView] = Field(default_factory=list)
    subtotal_amount: int
    tax_rate: Decimal
    tax_amount: int
    total_amount: int
    advance_payment: int
    received_amount: int
    remaining_amount: int
    excess_amount: int = 0
    invoice_generated: bool
    cancel_reason: str = ""
    created_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    version: int


class OrderActionResponse(BaseModel):
    success: bool = True
    message: str
    order: OrderView


class OrderDeleteResponse(BaseModel):
    success: bool = True
    message: str
    order_number: str
    invoice_deleted: bool
    payments_deleted: int


class OrderListResponse(BaseModel):
    success: bool = True
    count: int
    orders: List[OrderView]


class DenyRequest(BaseModel):
    # emptiness is a domain rule, checked by the state machine
    reason: str = Field("", max_length=255)


class CancelRequest(BaseModel):
    reason: str = Field("", max_length=255)


class StatusUpdateRequest(BaseModel):
    status: str = Field(..., description="Target status on the fulfillment path")

    @field_validator("status", mode="before")
    def validate_status(cls, status):
        status = str(status).strip().lower()
        if not OrderStatus.is_valid(status):
            raise ValueError(f"Unknown order status: {status}")
        return status
