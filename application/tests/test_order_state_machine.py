"""
Order lifecycle transitions.
"""

import pytest

from conftest import THOUSAND_RUPEE_ITEMS
from kitchen_oms.core.exceptions import InvalidTransitionError, OrderNotFoundError, PreconditionError, ValidationError
from kitchen_oms.events.domain_events import OrderCancelled, OrderConfirmed, OrderDenied, OrderStatusChanged
from kitchen_oms.services.invoice_binder import InvoiceBinder
from kitchen_oms.services.order_queries import OrderQueryService
from kitchen_oms.services.order_state_machine import OrderStateMachine
from kitchen_oms.services.payments.reconciliation_service import PaymentReconciliationService


async def deliver(order_number: str):
    machine = OrderStateMachine()
    await machine.confirm(order_number)
    for status in ("preparing", "ready", "delivered"):
        await machine.advance(order_number, status)


class TestConfirm:

    async def test_pending_to_confirmed(self, place_order):
        order = await place_order()
        result = await OrderStateMachine().confirm(order.order_number)

        assert result.order.status == "confirmed"
        assert result.order.confirmed_at is not None
        assert result.order.version > order.version
        assert isinstance(result.events[0], OrderConfirmed)

    async def test_confirm_twice(self, place_order):
        order = await place_order()
        await OrderStateMachine().confirm(order.order_number)
        with pytest.raises(InvalidTransitionError):
            await OrderStateMachine().confirm(order.order_number)

    async def test_unknown_order(self):
        with pytest.raises(OrderNotFoundError):
            await OrderStateMachine().confirm("ORDXXXX99999")


class TestDeny:

    async def test_empty_reason_rejected(self, place_order):
        order = await place_order()
        with pytest.raises(ValidationError):
            await OrderStateMachine().deny(order.order_number, "")
        with pytest.raises(ValidationError):
            await OrderStateMachine().deny(order.order_number, "   ")

        unchanged = await OrderQueryService().get_order(order.order_number)
        assert unchanged.status == "pending"

    async def test_deny_with_reason(self, place_order):
        order = await place_order()
        result = await OrderStateMachine().deny(order.order_number, "out of stock")

        assert result.order.status == "cancelled"
        assert result.order.cancel_reason == "out of stock"
        assert isinstance(result.events[0], OrderDenied)
        assert result.events[0].reason == "out of stock"

    async def test_only_pending_orders_are_denied(self, place_order):
        order = await place_order()
        await OrderStateMachine().confirm(order.order_number)
        with pytest.raises(InvalidTransitionError):
            await OrderStateMachine().deny(order.order_number, "kitchen closed")


class TestAdvance:

    async def test_forward_path(self, place_order):
        order = await place_order()
        await deliver(order.order_number)

        final = await OrderQueryService().get_order(order.order_number)
        assert final.status == "delivered"
        assert final.delivered_at is not None

    async def test_skipping_ahead_is_allowed(self, place_order):
        order = await place_order()
        await OrderStateMachine().confirm(order.order_number)
        result = await OrderStateMachine().advance(order.order_number, "ready")

        assert result.order.status == "ready"
        assert isinstance(result.events[0], OrderStatusChanged)
        assert result.events[0].previous_status == "confirmed"

    @pytest.mark.parametrize("target", ["confirmed", "preparing"])
    async def test_same_or_backward_rejected(self, place_order, target):
        order = await place_order()
        machine = OrderStateMachine()
        await machine.confirm(order.order_number)
        await machine.advance(order.order_number, "preparing")
        with pytest.raises(InvalidTransitionError):
            await machine.advance(order.order_number, target)

    async def test_pending_cannot_advance(self, place_order):
        order = await place_order()
        with pytest.raises(InvalidTransitionError):
            await OrderStateMachine().advance(order.order_number, "preparing")

    async def test_cancelled_is_not_an_advance_target(self, place_order):
        order = await place_order()
        await OrderStateMachine().confirm(order.order_number)
        with pytest.raises(InvalidTransitionError):
            await OrderStateMachine().advance(order.order_number, "cancelled")


class TestTerminalStates:

    async def test_delivered_rejects_everything(self, place_order):
        order = await place_order()
        await deliver(order.order_number)
        machine = OrderStateMachine()

        with pytest.raises(InvalidTransitionError):
            await machine.confirm(order.order_number)
        with pytest.raises(InvalidTransitionError):
            await machine.deny(order.order_number, "late")
        with pytest.raises(InvalidTransitionError):
            await machine.advance(order.order_number, "delivered")
        with pytest.raises(InvalidTransitionError):
            await machine.cancel(order.order_number, "late")

    async def test_cancelled_rejects_everything(self, place_order):
        order = await place_order()
        machine = OrderStateMachine()
        await machine.deny(order.order_number, "out of stock")

        with pytest.raises(InvalidTransitionError):
            await machine.confirm(order.order_number)
        with pytest.raises(InvalidTransitionError):
            await machine.advance(order.order_number, "preparing")
        with pytest.raises(InvalidTransitionError):
            await machine.cancel(order.order_number, "again")


class TestCancel:

    async def test_cancel_confirmed_order(self, place_order):
        order = await place_order()
        machine = OrderStateMachine()
        await machine.confirm(order.order_number)
        result = await machine.cancel(order.order_number, "customer request")

        assert result.order.status == "cancelled"
        assert result.order.cancelled_at is not None
        assert isinstance(result.events[0], OrderCancelled)
        assert result.events[0].previous_status == "confirmed"

    async def test_pending_orders_are_denied_not_cancelled(self, place_order):
        order = await place_order()
        with pytest.raises(InvalidTransitionError):
            await OrderStateMachine().cancel(order.order_number, "customer request")

    async def test_cancel_requires_reason(self, place_order):
        order = await place_order()
        await OrderStateMachine().confirm(order.order_number)
        with pytest.raises(ValidationError):
            await OrderStateMachine().cancel(order.order_number, "")

    async def test_cancel_closes_open_intents_and_invoice(self, place_order, processor):
        order = await place_order(items=THOUSAND_RUPEE_ITEMS)
        await OrderStateMachine().confirm(order.order_number)
        await InvoiceBinder().generate(order.order_number)
        await PaymentReconciliationService(processor).create_intent(order.order_number, "full")

        await OrderStateMachine().cancel(order.order_number, "kitchen closed")

        payments, summary = await PaymentReconciliationService().list_payments(order.order_number)
        assert payments[0].outcome == "cancelled"
        assert payments[0].error_reason == "order_cancelled"
        assert summary.pending_count == 0
        invoice = await InvoiceBinder().get_for_order(order.order_number)
        assert invoice.status == "cancelled"


class TestDelete:

    async def test_active_order_cannot_be_deleted(self, place_order):
        order = await place_order()
        await OrderStateMachine().confirm(order.order_number)
        with pytest.raises(PreconditionError):
            await OrderStateMachine().delete(order.order_number)

    async def test_delete_cascades_invoice_and_payments(self, place_order):
        order = await place_order(items=THOUSAND_RUPEE_ITEMS, advance_payment=30000)
        await OrderStateMachine().confirm(order.order_number)
        await InvoiceBinder().generate(order.order_number)
        for status in ("preparing", "ready", "delivered"):
            await OrderStateMachine().advance(order.order_number, status)

        result = await OrderStateMachine().delete(order.order_number)

        assert result.invoice_deleted is True
        assert result.payments_deleted == 1
        with pytest.raises(OrderNotFoundError):
            await OrderQueryService().get_order(order.order_number)
        assert await InvoiceBinder().list_invoices() == []

    async def test_delete_denied_order(self, place_order):
        order = await place_order()
        await OrderStateMachine().deny(order.order_number, "out of stock")
        result = await OrderStateMachine().delete(order.order_number)
        assert result.invoice_deleted is False
        assert result.payments_deleted == 0
