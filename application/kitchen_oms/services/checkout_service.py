"""
Checkout: turns a checkout request into a pending order.

Lines are aggregated through a Cart, optionally re-priced against the
catalog, and frozen into order items. An advance collected at checkout is
recorded as a settled counter payment so the ledger always adds up from its
payment rows.
"""
from typing import Dict, Optional

from kitchen_oms.cart.cart import Cart, CatalogItem
from kitchen_oms.connections.database import get_db_session
from kitchen_oms.core.constants import OrderStatus, PaymentMode, PaymentOutcome, PaymentType, SystemConstants
from kitchen_oms.core.exceptions import ValidationError
from kitchen_oms.core.money import Money
from kitchen_oms.dto.cart import CheckoutRequest
from kitchen_oms.dto.orders import OrderView
from kitchen_oms.events.domain_events import OrderPlaced
from kitchen_oms.integrations.catalog_service import CatalogService
from kitchen_oms.middlewares.request_context import request_context
from kitchen_oms.models.orders import Order, OrderItem
from kitchen_oms.models.payments import PaymentDetails
from kitchen_oms.services.payments.quotes import validate_advance
from kitchen_oms.services.results import TransitionResult
from kitchen_oms.utils.datetime_helpers import get_ist_now
from kitchen_oms.utils.order_utils import build_order_number, generate_random_prefix

# Logger
from kitchen_oms.logging.utils import get_app_logger
logger = get_app_logger("kitchen_oms.checkout_service")

# Settings
from kitchen_oms.config.settings import OMSConfigs
configs = OMSConfigs()


class CheckoutService:

    def __init__(self, catalog: Optional[CatalogService] = None, db_session=get_db_session):
        self.catalog = catalog
        self.db_session = db_session

    async def _resolve_items(self, request: CheckoutRequest) -> Dict[str, CatalogItem]:
        if configs.PRICE_CHECK_ENABLED:
            catalog = self.catalog or CatalogService()
            item_ids = list(dict.fromkeys(line.item_id for line in request.items))
            found = await catalog.lookup(item_ids)
            missing = [item_id for item_id in item_ids if item_id not in found]
            if missing:
                raise ValidationError(f"Unknown catalog items: {', '.join(missing)}")
            return found

        resolved = {}
        for line in request.items:
            if not line.name or line.unit_price is None:
                raise ValidationError(f"Item {line.item_id} needs a name and unit price")
            resolved[line.item_id] = CatalogItem(item_id=line.item_id, name=line.name, price=Money(line.unit_price))
        return resolved

    async def build_cart(self, request: CheckoutRequest) -> Cart:
        cart = Cart()
        if not request.items:
            return cart
        catalog_items = await self._resolve_items(request)
        for line in request.items:
            cart.add_item(catalog_items[line.item_id])
            # add_item counted one unit of this line already
            cart.set_quantity(line.item_id, cart.quantity_of(line.item_id) - 1 + line.quantity)
        return cart

    async def place_order(self, request: CheckoutRequest) -> TransitionResult:
        """
        Create a pending order from the request.

        Raises:
            EmptyCartError: no items
            ValidationError: unknown or unavailable items
            InvalidAmountError: advance outside the allowed range
        """
        cart = await self.build_cart(request)
        snapshot = cart.snapshot_for_checkout(configs.TAX_RATE_PERCENT)
        total = snapshot.total.minor

        advance = request.advance_payment
        if advance:
            validate_advance(advance, total, total)

        with self.db_session() as session:
            order = Order(
                random_prefix=generate_random_prefix(SystemConstants.ORDER_NUMBER_PREFIX_LENGTH),
                customer_name=request.customer_name.strip(),
                customer_phone=request.customer_phone,
                customer_email=request.customer_email,
                customer_gstin=request.customer_gstin,
                delivery_address=request.delivery_address.model_dump() if request.delivery_address else None,
                billing_address=request.billing_address.model_dump() if request.billing_address else None,
                scheduled_for=request.scheduled_for,
                instructions=request.instructions,
                status=OrderStatus.PENDING,
                subtotal_amount=snapshot.subtotal.minor,
                tax_rate=snapshot.tax_rate,
                tax_amount=snapshot.tax.minor,
                total_amount=total,
                advance_payment=advance,
                received_amount=advance,
                remaining_amount=total - advance,
                excess_amount=0,
                invoice_generated=False,
            )
            order.items = [
                OrderItem(
                    position=position,
                    catalog_item_id=item.catalog_item_id,
                    name=item.name,
                    unit_price=item.unit_price.minor,
                    quantity=item.quantity,
                    subtotal=item.subtotal.minor,
                )
                for position, item in enumerate(snapshot.items, start=1)
            ]
            session.add(order)
            session.flush()

            order.order_number = build_order_number(order.random_prefix, order.id)
            request_context.order_number = order.order_number

            if advance:
                order.payments.append(PaymentDetails(
                    confirmation_id=f"{SystemConstants.COUNTER_CONFIRMATION_PREFIX}{order.order_number}",
                    payment_amount=advance,
                    credited_amount=advance,
                    payment_type=PaymentType.ADVANCE,
                    payment_mode=PaymentMode.COUNTER,
                    outcome=PaymentOutcome.SUCCEEDED,
                    currency=configs.CURRENCY,
                    settled_at=get_ist_now(),
                ))
            session.flush()

            view = OrderView.model_validate(order)
            event = OrderPlaced(
                order_number=order.order_number,
                customer_name=order.customer_name,
                customer_phone=order.customer_phone,
                total_amount=total,
                advance_payment=advance,
            )

        logger.info(f"order_placed | order_number={view.order_number} items={cart.item_count()} subtotal={view.subtotal_amount} tax={view.tax_amount} total={view.total_amount} advance={advance}")
        return TransitionResult(order=view, message=f"Order {view.order_number} placed", events=[event])
