from kitchen_oms.models.orders import Order, OrderItem
from kitchen_oms.models.payments import PaymentDetails
from kitchen_oms.models.invoices import InvoiceDetails

__all__ = ["Order", "OrderItem", "PaymentDetails", "InvoiceDetails"]
