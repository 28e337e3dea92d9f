"""
Core constants for Kitchen OMS

Order and payment lifecycle values, invoice states and shared limits.
Statuses are stored as strings in the database.
"""

class OrderStatus:
    """Order status constants for lifecycle management"""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    # forward fulfillment path after admission
    FULFILLMENT_SEQUENCE = [CONFIRMED, PREPARING, READY, DELIVERED]
    TERMINAL = {DELIVERED, CANCELLED}
    # pending orders leave through deny
    CANCELLABLE = {CONFIRMED, PREPARING, READY}
    DELETABLE = {DELIVERED, CANCELLED}

    STATUS_DESCRIPTIONS = {
        PENDING: "Awaiting Confirmation",
        CONFIRMED: "Confirmed",
        PREPARING: "Preparing",
        READY: "Ready",
        DELIVERED: "Delivered",
        CANCELLED: "Cancelled",
    }

    @classmethod
    def all(cls) -> list[str]:
        return [cls.PENDING, *cls.FULFILLMENT_SEQUENCE, cls.CANCELLED]

    @classmethod
    def is_valid(cls, status: str) -> bool:
        return status in cls.STATUS_DESCRIPTIONS

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return status in cls.TERMINAL

    @classmethod
    def fulfillment_rank(cls, status: str) -> int:
        """Position on the fulfillment path, -1 when off the path"""
        if status in cls.FULFILLMENT_SEQUENCE:
            return cls.FULFILLMENT_SEQUENCE.index(status)
        return -1

    @classmethod
    def get_description(cls, status: str) -> str:
        return cls.STATUS_DESCRIPTIONS.get(status, status)


class PaymentType:
    FULL = "full"
    ADVANCE = "advance"
    REMAINING = "remaining"

    @classmethod
    def all(cls) -> list[str]:
        return [cls.FULL, cls.ADVANCE, cls.REMAINING]


class PaymentOutcome:
    """Payment outcome constants. Only SUCCEEDED contributes to received amounts."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    FINAL = {SUCCEEDED, FAILED, CANCELLED}

    @classmethod
    def is_final(cls, outcome: str) -> bool:
        return outcome in cls.FINAL


class PaymentMode:
    RAZORPAY = "razorpay"
    COUNTER = "counter"


class InvoicePaymentStatus:
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"

    @classmethod
    def derive(cls, received: int, balance: int) -> str:
        if received == 0:
            return cls.UNPAID
        if balance == 0:
            return cls.PAID
        return cls.PARTIAL


class InvoiceStatus:
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    CANCELLED = "cancelled"


class TaxSplitMode:
    CGST_SGST = "cgst_sgst"
    IGST = "igst"


class PaymentFailureReasons:
    ABANDONED = "abandoned"
    ORDER_CANCELLED = "order_cancelled"
    USER_CANCELLED = "user_cancelled"
    GATEWAY_ERROR = "gateway_error"


class SystemConstants:
    """System-wide constants"""

    # Random segment length in order numbers
    ORDER_NUMBER_PREFIX_LENGTH = 4

    # Confirmation id recorded for an advance collected at checkout
    COUNTER_CONFIRMATION_PREFIX = "ADV-"

    # Advance quick-pick percentages offered to the customer
    ADVANCE_QUICK_PICKS = (30, 50, 75)


class APIConstants:
    DEFAULT_PAGE_SIZE = 20
    MAX_PAGE_SIZE = 100
