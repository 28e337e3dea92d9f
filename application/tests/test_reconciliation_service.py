"""
Payment reconciliation: intents, verification, failures and the ledger.
"""

import asyncio
import threading
from contextlib import contextmanager
from datetime import timedelta

import pytest

from conftest import THOUSAND_RUPEE_ITEMS, sign_payment
from kitchen_oms.connections.database import get_db_session
from kitchen_oms.core.exceptions import (
    InvalidAmountError,
    OrderCancelledError,
    PaymentGatewayError,
    PaymentNotFoundError,
    PreconditionError,
    SignatureMismatchError,
)
from kitchen_oms.dto.payments import CancelledCallback, FailedCallback, PaymentErrorInfo, SucceededCallback
from kitchen_oms.events.domain_events import PaymentFailed, PaymentReceived
from kitchen_oms.repository.payments import PaymentsRepository
from kitchen_oms.services.invoice_binder import InvoiceBinder
from kitchen_oms.services.order_queries import OrderQueryService
from kitchen_oms.services.order_state_machine import OrderStateMachine
from kitchen_oms.services.payments.reconciliation_service import PaymentReconciliationService
from kitchen_oms.utils.datetime_helpers import get_ist_now


@pytest.fixture
def confirmed_order(place_order):
    async def _confirmed(advance_payment: int = 0, with_invoice: bool = True):
        order = await place_order(items=THOUSAND_RUPEE_ITEMS, advance_payment=advance_payment)
        await OrderStateMachine().confirm(order.order_number)
        if with_invoice:
            await InvoiceBinder().generate(order.order_number)
        return order.order_number
    return _confirmed


async def pay(service: PaymentReconciliationService, order_number: str, payment_type: str, amount=None, confirmation_id: str = "pay_0001"):
    created = await service.create_intent(order_number, payment_type, amount)
    intent_id = created.payment.intent_id
    return await service.verify(intent_id, confirmation_id, signature=sign_payment(intent_id, confirmation_id))


class TestCreateIntent:

    async def test_full_payment_intent(self, confirmed_order, processor):
        order_number = await confirmed_order()
        created = await PaymentReconciliationService(processor).create_intent(order_number, "full")

        assert created.payment.intent_id == "order_test0001"
        assert created.payment.payment_amount == 100000
        assert created.payment.outcome == "pending"
        assert created.payment.expires_at is not None
        assert created.key_id == "rzp_test_key"
        assert processor.created[0]["amount"] == 100000
        assert processor.created[0]["metadata"]["receipt"] == order_number

    async def test_intent_does_not_touch_ledger(self, confirmed_order, processor):
        order_number = await confirmed_order()
        await PaymentReconciliationService(processor).create_intent(order_number, "advance", 30000)

        order = await OrderQueryService().get_order(order_number)
        assert order.received_amount == 0
        assert order.remaining_amount == 100000

    async def test_advance_bounds(self, confirmed_order, processor):
        order_number = await confirmed_order()
        service = PaymentReconciliationService(processor)
        with pytest.raises(InvalidAmountError):
            await service.create_intent(order_number, "advance", 100000)
        with pytest.raises(InvalidAmountError):
            await service.create_intent(order_number, "advance", 0)
        assert processor.created == []

    async def test_full_unavailable_after_payment(self, confirmed_order, processor):
        order_number = await confirmed_order(advance_payment=30000)
        with pytest.raises(PreconditionError):
            await PaymentReconciliationService(processor).create_intent(order_number, "full")

    async def test_open_intent_blocks_another(self, confirmed_order, processor):
        order_number = await confirmed_order()
        service = PaymentReconciliationService(processor)
        await service.create_intent(order_number, "advance", 30000)
        with pytest.raises(PreconditionError):
            await service.create_intent(order_number, "remaining")

    async def test_cancelled_order_rejected(self, place_order, processor):
        order = await place_order()
        await OrderStateMachine().deny(order.order_number, "out of stock")
        with pytest.raises(OrderCancelledError):
            await PaymentReconciliationService(processor).create_intent(order.order_number, "full")

    async def test_gateway_refusal(self, confirmed_order, processor):
        order_number = await confirmed_order()
        service = PaymentReconciliationService(processor)
        processor.fail_next = True
        with pytest.raises(PaymentGatewayError):
            await service.create_intent(order_number, "full")

        payments, summary = await service.list_payments(order_number)
        assert payments[0].outcome == "failed"
        assert payments[0].error_code == "INTENT_CREATE_FAILED"
        assert summary.failed_count == 1

        # a failed attempt does not block a new one
        created = await service.create_intent(order_number, "full")
        assert created.payment.outcome == "pending"

    async def test_without_processor(self, confirmed_order):
        order_number = await confirmed_order()
        with pytest.raises(PaymentGatewayError):
            await PaymentReconciliationService().create_intent(order_number, "full")


class TestVerify:

    async def test_credits_once(self, confirmed_order, processor):
        order_number = await confirmed_order()
        service = PaymentReconciliationService(processor)
        created = await service.create_intent(order_number, "advance", 30000)
        intent_id = created.payment.intent_id
        signature = sign_payment(intent_id, "pay_0001")

        first = await service.verify(intent_id, "pay_0001", signature=signature)
        replay = await service.verify(intent_id, "pay_0001", signature=signature)

        assert first.duplicate is False
        assert first.credited_amount == 30000
        assert first.order.received_amount == 30000
        assert first.order.remaining_amount == 70000
        assert isinstance(first.events[0], PaymentReceived)

        assert replay.duplicate is True
        assert replay.events == []
        order = await OrderQueryService().get_order(order_number)
        assert order.received_amount == 30000

    async def test_concurrent_verification_credits_once(self, confirmed_order, processor):
        order_number = await confirmed_order()
        created = await PaymentReconciliationService(processor).create_intent(order_number, "full")
        intent_id = created.payment.intent_id
        signature = sign_payment(intent_id, "pay_dup")

        # the in-memory database is one shared connection, sessions take turns on it
        turn = threading.RLock()

        @contextmanager
        def shared_connection_session(read_only: bool = False):
            with turn:
                with get_db_session(read_only) as session:
                    yield session

        barrier = threading.Barrier(4)
        results, errors = [], []

        def verify():
            service = PaymentReconciliationService(processor, db_session=shared_connection_session)
            barrier.wait()
            try:
                results.append(asyncio.run(service.verify(intent_id, "pay_dup", signature=signature)))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=verify) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert [result.duplicate for result in results].count(False) == 1
        assert sum(result.credited_amount for result in results) == 100000
        order = await OrderQueryService().get_order(order_number)
        assert order.received_amount == 100000

    async def test_unique_confirmation_conflict_is_a_duplicate(self, confirmed_order, processor, monkeypatch):
        order_number = await confirmed_order()
        service = PaymentReconciliationService(processor)
        await pay(service, order_number, "advance", 30000, confirmation_id="pay_dup")
        created = await service.create_intent(order_number, "remaining")
        intent_id = created.payment.intent_id

        # the lookup misses the row, so only the unique constraint catches the replay
        original = PaymentsRepository.get_by_confirmation
        calls = []

        def stale_lookup(self, confirmation_id):
            calls.append(confirmation_id)
            if len(calls) == 1:
                return None
            return original(self, confirmation_id)

        monkeypatch.setattr(PaymentsRepository, "get_by_confirmation", stale_lookup)

        result = await service.verify(intent_id, "pay_dup", signature=sign_payment(intent_id, "pay_dup"))

        assert result.duplicate is True
        assert result.credited_amount == 0
        assert result.payment.payment_amount == 30000
        assert result.order.received_amount == 30000

        _, summary = await service.list_payments(order_number)
        assert summary.received_amount == 30000
        assert summary.pending_count == 1

    async def test_advance_then_remaining_settles_invoice(self, confirmed_order, processor):
        order_number = await confirmed_order()
        service = PaymentReconciliationService(processor)

        advance = await pay(service, order_number, "advance", 30000, confirmation_id="pay_adv")
        invoice = await InvoiceBinder().get_for_order(order_number)
        assert advance.order.remaining_amount == 70000
        assert invoice.payment_status == "partial"
        assert invoice.balance == 70000

        quote = await service.quote(order_number)
        assert quote.full_available is False
        assert quote.remaining_amount == 70000

        remaining = await pay(service, order_number, "remaining", confirmation_id="pay_rem")
        assert remaining.payment.payment_amount == 70000
        assert remaining.order.received_amount == 100000
        assert remaining.order.remaining_amount == 0

        invoice = await InvoiceBinder().get_for_order(order_number)
        assert invoice.payment_status == "paid"
        assert invoice.status == "paid"
        assert invoice.received_amount == 100000
        assert invoice.balance == 0

    async def test_checkout_advance_then_remaining(self, confirmed_order, processor):
        order_number = await confirmed_order(advance_payment=30000)
        service = PaymentReconciliationService(processor)

        result = await pay(service, order_number, "remaining", confirmation_id="pay_rem")

        assert result.payment.payment_amount == 70000
        assert result.order.received_amount == 100000
        assert result.order.remaining_amount == 0
        invoice = await InvoiceBinder().get_for_order(order_number)
        assert invoice.payment_status == "paid"

    async def test_signature_mismatch(self, confirmed_order, processor):
        order_number = await confirmed_order()
        service = PaymentReconciliationService(processor)
        created = await service.create_intent(order_number, "full")

        with pytest.raises(SignatureMismatchError):
            await service.verify(created.payment.intent_id, "pay_0001", signature="forged")

        order = await OrderQueryService().get_order(order_number)
        assert order.received_amount == 0

    async def test_unknown_intent(self, processor):
        with pytest.raises(PaymentNotFoundError):
            await PaymentReconciliationService(processor).verify("order_missing", "pay_1", signature_verified=True)

    async def test_cancelled_order_is_not_credited(self, confirmed_order, processor):
        order_number = await confirmed_order()
        service = PaymentReconciliationService(processor)
        created = await service.create_intent(order_number, "full")
        await OrderStateMachine().cancel(order_number, "kitchen closed")

        intent_id = created.payment.intent_id
        with pytest.raises(OrderCancelledError):
            await service.verify(intent_id, "pay_late", signature=sign_payment(intent_id, "pay_late"))

        order = await OrderQueryService().get_order(order_number)
        assert order.received_amount == 0

    async def test_late_capture_on_abandoned_intent_is_credited(self, confirmed_order, processor):
        order_number = await confirmed_order()
        service = PaymentReconciliationService(processor)
        created = await service.create_intent(order_number, "full")
        await service.expire_abandoned_intents(now=get_ist_now() + timedelta(hours=2))

        intent_id = created.payment.intent_id
        result = await service.verify(intent_id, "pay_late", signature=sign_payment(intent_id, "pay_late"))

        assert result.duplicate is False
        assert result.credited_amount == 100000
        assert result.payment.outcome == "succeeded"
        assert result.payment.confirmation_id == "pay_late"
        assert result.payment.error_reason is None
        assert result.order.remaining_amount == 0

    async def test_late_capture_after_settlement_goes_to_excess(self, confirmed_order, processor):
        order_number = await confirmed_order()
        service = PaymentReconciliationService(processor)
        abandoned = await service.create_intent(order_number, "full")
        await service.expire_abandoned_intents(now=get_ist_now() + timedelta(hours=2))
        await pay(service, order_number, "full", confirmation_id="pay_new")

        intent_id = abandoned.payment.intent_id
        late = await service.verify(intent_id, "pay_late", signature=sign_payment(intent_id, "pay_late"))

        assert late.credited_amount == 0
        assert late.excess_amount == 100000
        assert late.payment.confirmation_id == "pay_late"
        assert late.events == []

        order = await OrderQueryService().get_order(order_number)
        assert order.received_amount == 100000
        assert order.excess_amount == 100000

    async def test_retry_after_failure_is_credited(self, confirmed_order, processor):
        order_number = await confirmed_order()
        service = PaymentReconciliationService(processor)
        created = await service.create_intent(order_number, "full")
        intent_id = created.payment.intent_id

        await service.fail(intent_id, PaymentErrorInfo(code="BAD_REQUEST_ERROR", description="card declined"))
        result = await service.verify(intent_id, "pay_retry", signature=sign_payment(intent_id, "pay_retry"))

        assert result.payment.outcome == "succeeded"
        assert result.payment.error_code is None
        assert result.order.remaining_amount == 0

    async def test_overdraw_is_clamped(self, confirmed_order, processor):
        order_number = await confirmed_order()
        service = PaymentReconciliationService(processor)
        first = await service.create_intent(order_number, "full")
        await service.fail(first.payment.intent_id)
        await pay(service, order_number, "remaining", confirmation_id="pay_rem")

        # the earlier attempt is retried successfully at the gateway after the order was settled
        intent_id = first.payment.intent_id
        late = await service.verify(intent_id, "pay_late", signature=sign_payment(intent_id, "pay_late"))

        assert late.credited_amount == 0
        assert late.excess_amount == 100000
        assert late.events == []
        assert late.order.received_amount == 100000
        assert late.order.remaining_amount == 0
        assert late.order.excess_amount == 100000

    async def test_settled_intent_rejects_second_confirmation(self, confirmed_order, processor):
        order_number = await confirmed_order()
        service = PaymentReconciliationService(processor)
        result = await pay(service, order_number, "advance", 30000, confirmation_id="pay_one")

        intent_id = result.payment.intent_id
        with pytest.raises(PreconditionError):
            await service.verify(intent_id, "pay_two", signature=sign_payment(intent_id, "pay_two"))


class TestFail:

    async def test_fail_is_idempotent(self, confirmed_order, processor):
        order_number = await confirmed_order()
        service = PaymentReconciliationService(processor)
        created = await service.create_intent(order_number, "full")
        intent_id = created.payment.intent_id

        first = await service.fail(intent_id, PaymentErrorInfo(code="BAD_REQUEST_ERROR", reason="payment_failed"))
        second = await service.fail(intent_id)

        assert first.changed is True
        assert first.payment.outcome == "failed"
        assert first.payment.error_reason == "payment_failed"
        assert isinstance(first.events[0], PaymentFailed)
        assert second.changed is False
        assert second.events == []

        order = await OrderQueryService().get_order(order_number)
        assert order.received_amount == 0

    async def test_customer_cancel(self, confirmed_order, processor):
        order_number = await confirmed_order()
        service = PaymentReconciliationService(processor)
        created = await service.create_intent(order_number, "full")

        result = await service.fail(created.payment.intent_id, cancelled=True)
        assert result.payment.outcome == "cancelled"
        assert result.payment.error_reason == "user_cancelled"

    async def test_succeeded_payment_cannot_fail(self, confirmed_order, processor):
        order_number = await confirmed_order()
        service = PaymentReconciliationService(processor)
        result = await pay(service, order_number, "full")
        with pytest.raises(PreconditionError):
            await service.fail(result.payment.intent_id)


class TestHandleCallback:

    async def test_succeeded_callback_credits(self, confirmed_order, processor):
        order_number = await confirmed_order()
        created = await PaymentReconciliationService(processor).create_intent(order_number, "full")

        callback = SucceededCallback(intent_id=created.payment.intent_id, confirmation_id="pay_hook", amount=100000)
        result = await PaymentReconciliationService().handle_callback(callback)

        assert result.credited_amount == 100000
        assert result.order.remaining_amount == 0

    async def test_failed_and_cancelled_callbacks(self, confirmed_order, processor):
        order_number = await confirmed_order()
        service = PaymentReconciliationService(processor)
        first = await service.create_intent(order_number, "full")

        failed = await service.handle_callback(FailedCallback(intent_id=first.payment.intent_id, error_code="GATEWAY_ERROR", error_description="timeout"))
        assert failed.payment.outcome == "failed"
        assert failed.payment.error_code == "GATEWAY_ERROR"
        assert failed.payment.error_reason == "timeout"

        second = await service.create_intent(order_number, "full")
        cancelled = await service.handle_callback(CancelledCallback(intent_id=second.payment.intent_id))
        assert cancelled.payment.outcome == "cancelled"

    async def test_unknown_callback_type(self):
        with pytest.raises(TypeError):
            await PaymentReconciliationService().handle_callback(object())


class TestExpireAbandonedIntents:

    async def test_expires_only_stale_intents(self, confirmed_order, processor):
        order_number = await confirmed_order()
        service = PaymentReconciliationService(processor)
        created = await service.create_intent(order_number, "full")

        nothing = await service.expire_abandoned_intents()
        assert nothing.expired_count == 0

        result = await service.expire_abandoned_intents(now=get_ist_now() + timedelta(hours=2))
        assert result.expired_count == 1
        assert result.intent_ids == [created.payment.intent_id]

        payments, summary = await service.list_payments(order_number)
        assert payments[0].outcome == "cancelled"
        assert payments[0].error_reason == "abandoned"
        assert summary.pending_count == 0
        assert summary.cancelled_count == 1


class TestLedgerSummary:

    async def test_counts_and_amounts(self, confirmed_order, processor):
        order_number = await confirmed_order(advance_payment=30000)
        service = PaymentReconciliationService(processor)
        failed = await service.create_intent(order_number, "remaining")
        await service.fail(failed.payment.intent_id)
        await pay(service, order_number, "remaining", confirmation_id="pay_rem")

        summary = await service.ledger_summary(order_number)

        assert summary.total_amount == 100000
        assert summary.received_amount == 100000
        assert summary.remaining_amount == 0
        assert summary.succeeded_count == 2
        assert summary.failed_count == 1
        assert summary.pending_count == 0

    async def test_counter_advance_is_on_the_ledger(self, confirmed_order):
        order_number = await confirmed_order(advance_payment=30000, with_invoice=False)
        payments, summary = await PaymentReconciliationService().list_payments(order_number)

        assert len(payments) == 1
        assert payments[0].payment_mode == "counter"
        assert payments[0].confirmation_id == f"ADV-{order_number}"
        assert summary.received_amount == 30000
