"""
FastAPI dependencies shared by the route modules. Tests override these
through app.dependency_overrides.
"""
from functools import lru_cache

from kitchen_oms.core.exceptions import PaymentGatewayError
from kitchen_oms.events.dispatcher import EventDispatcher
from kitchen_oms.integrations.payment_gateway import PaymentProcessor
from kitchen_oms.integrations.razorpay_service import get_razorpay_service

# Logger
from kitchen_oms.logging.utils import get_app_logger
logger = get_app_logger("kitchen_oms.dependencies")


def get_payment_processor() -> PaymentProcessor:
    try:
        return get_razorpay_service()
    except ValueError as e:
        logger.error(f"payment_processor_unavailable | error={e}")
        raise PaymentGatewayError(f"Payment processor unavailable: {e}")


@lru_cache(maxsize=1)
def get_event_dispatcher() -> EventDispatcher:
    return EventDispatcher()
