"""
Checkout request DTOs. All amounts are integer paise.
"""

from datetime import datetime
from typing import List, Optional
import re

from pydantic import BaseModel, Field, field_validator

from kitchen_oms.logging.utils import get_app_logger

logger = get_app_logger('kitchen_oms.cart_dto')

PHONE_PATTERN = re.compile(r"^[6-9]\d{9}$")
GSTIN_PATTERN = re.compile(r"^[0-9]{2}[A-Z0-9]{13}$")


class Address(BaseModel):
    full_name: Optional[str] = Field(None, max_length=100)
    line1: str = Field(..., min_length=1, max_length=255)
    line2: Optional[str] = Field(None, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    pincode: str = Field(..., min_length=6, max_length=6, pattern=r"^\d{6}$")
    landmark: Optional[str] = Field(None, max_length=255)


class CheckoutLine(BaseModel):
    item_id: str = Field(..., min_length=1, max_length=64, description="Catalog item id")
    name: Optional[str] = Field(None, max_length=200, description="Used when price checks are off")
    unit_price: Optional[int] = Field(None, ge=0, description="Unit price in paise, used when price checks are off")
    quantity: int = Field(..., gt=0)


class CheckoutRequest(BaseModel):
    customer_name: str = Field(..., min_length=1, max_length=100)
    customer_phone: str = Field(..., description="10 digit Indian mobile number")
    customer_email: Optional[str] = Field(None, max_length=255)
    customer_gstin: Optional[str] = Field(None, max_length=20)
    delivery_address: Optional[Address] = None
    billing_address: Optional[Address] = None
    scheduled_for: Optional[datetime] = Field(None, description="Requested fulfillment time")
    instructions: str = Field("", max_length=500)
    items: List[CheckoutLine] = Field(default_factory=list)
    advance_payment: int = Field(0, ge=0, description="Advance collected at checkout, in paise")

    @field_validator("customer_phone", mode="before")
    def validate_phone(cls, phone):
        phone = str(phone).strip()
        if not PHONE_PATTERN.match(phone):
            logger.warning(f"checkout_invalid_phone | phone={phone[-4:]}")
            raise ValueError("Phone must be a valid 10 digit mobile number")
        return phone

    @field_validator("customer_gstin", mode="before")
    def validate_gstin(cls, gstin):
        if gstin in (None, ""):
            return None
        gstin = str(gstin).strip().upper()
        if not GSTIN_PATTERN.match(gstin):
            raise ValueError("GSTIN must be 15 alphanumeric characters")
        return gstin
