"""
Domain exceptions.

Every error the order, payment and invoice services raise derives from
OMSError and carries a stable error code and the HTTP status the API layer
answers with.
"""


class OMSError(Exception):
    """Base exception for all order management errors."""

    error_code = "OMS_ERROR"
    http_status = 400

    def __init__(self, message: str | None = None):
        self.message = message or self.__class__.__doc__ or self.error_code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"success": False, "error": self.error_code, "message": self.message}


class ValidationError(OMSError):
    """Invalid input."""

    error_code = "VALIDATION_ERROR"
    http_status = 422


class EmptyCartError(ValidationError):
    """Cart has no items."""

    error_code = "EMPTY_CART"


class InvalidAmountError(OMSError):
    """Amount outside the permitted range."""

    error_code = "INVALID_AMOUNT"
    http_status = 422

    def __init__(self, amount: int, minimum: int | None = None, maximum: int | None = None, message: str | None = None):
        self.amount = amount
        self.minimum = minimum
        self.maximum = maximum
        if message is None:
            message = f"Amount {amount} is outside the allowed range [{minimum}, {maximum}]"
        super().__init__(message)


class InvalidTransitionError(OMSError):
    """Order status transition not permitted."""

    error_code = "INVALID_TRANSITION"
    http_status = 409

    def __init__(self, current: str, target: str, message: str | None = None):
        self.current = current
        self.target = target
        super().__init__(message or f"Cannot move order from '{current}' to '{target}'")


class PreconditionError(OMSError):
    """Operation not allowed in the current state."""

    error_code = "PRECONDITION_FAILED"
    http_status = 409


class AlreadyGeneratedError(OMSError):
    """Invoice already generated for this order."""

    error_code = "ALREADY_GENERATED"
    http_status = 409

    def __init__(self, order_number: str, invoice_number: str | None = None):
        self.order_number = order_number
        self.invoice_number = invoice_number
        if invoice_number:
            super().__init__(f"Invoice {invoice_number} already exists for order {order_number}")
        else:
            super().__init__(f"Invoice already exists for order {order_number}")


class OrderCancelledError(OMSError):
    """Order is cancelled."""

    error_code = "ORDER_CANCELLED"
    http_status = 409

    def __init__(self, order_number: str):
        self.order_number = order_number
        super().__init__(f"Order {order_number} is cancelled")


class SignatureMismatchError(OMSError):
    """Payment signature verification failed."""

    error_code = "SIGNATURE_MISMATCH"
    http_status = 400


class DuplicateConfirmationError(OMSError):
    """Confirmation id was already credited."""

    error_code = "DUPLICATE_CONFIRMATION"
    http_status = 200

    def __init__(self, confirmation_id: str):
        self.confirmation_id = confirmation_id
        super().__init__(f"Confirmation {confirmation_id} was already processed")


class NotFoundError(OMSError):
    error_code = "NOT_FOUND"
    http_status = 404

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"{self.entity} {identifier} not found")


class OrderNotFoundError(NotFoundError):
    error_code = "ORDER_NOT_FOUND"
    entity = "Order"


class InvoiceNotFoundError(NotFoundError):
    error_code = "INVOICE_NOT_FOUND"
    entity = "Invoice"


class PaymentNotFoundError(NotFoundError):
    error_code = "PAYMENT_NOT_FOUND"
    entity = "Payment"


class ConcurrentModificationError(OMSError):
    """Order was modified concurrently, retry the request."""

    error_code = "CONCURRENT_MODIFICATION"
    http_status = 409


class PaymentGatewayError(OMSError):
    """Payment gateway request failed."""

    error_code = "PAYMENT_GATEWAY_ERROR"
    http_status = 502
