import random
import string

# Settings
from kitchen_oms.config.settings import OMSConfigs
configs = OMSConfigs()

RESERVED_PREFIXES = ('ORD', 'INV', 'ADV')


def generate_random_prefix(length: int = 4) -> str:
    """Random uppercase alphanumeric segment for order numbers (e.g. 'A2K4')"""
    characters = string.ascii_uppercase + string.digits
    while True:
        prefix = ''.join(random.choices(characters, k=length))
        if not prefix.startswith(RESERVED_PREFIXES):
            return prefix


def build_order_number(random_prefix: str, order_id: int) -> str:
    return f"{configs.ORDER_NUMBER_PREFIX}{random_prefix}{order_id:05d}"


def build_invoice_number(invoice_id: int, year: int) -> str:
    return f"{configs.INVOICE_NUMBER_PREFIX}-{year}-{invoice_id:06d}"
