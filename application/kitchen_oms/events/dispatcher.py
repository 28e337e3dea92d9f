"""
Post-commit event dispatch.

Runs after the transition that produced the events has committed (routes
queue it on BackgroundTasks). Nothing raised here reaches the caller: every
failure becomes a logged warning and an entry in the DispatchReport.
"""

from typing import Iterable, List

from pydantic import BaseModel, Field

from kitchen_oms.events.domain_events import DomainEvent, PaymentFailed
from kitchen_oms.events.messages import render_message, status_for
from kitchen_oms.integrations.notification_service import NotificationService

# Logger
from kitchen_oms.logging.utils import get_app_logger
logger = get_app_logger("kitchen_oms.event_dispatcher")


class DispatchReport(BaseModel):
    delivered: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class EventDispatcher:

    def __init__(self, notifier: NotificationService | None = None):
        self.notifier = notifier or NotificationService()

    async def dispatch(self, events: Iterable[DomainEvent]) -> DispatchReport:
        report = DispatchReport()
        for event in events:
            label = f"{event.name}:{event.order_number}"

            if isinstance(event, PaymentFailed):
                # admin-facing only
                logger.warning(f"payment_failed_alert | order_number={event.order_number} intent_id={event.intent_id} outcome={event.outcome} reason={event.reason}")
                report.skipped.append(label)
                continue

            message = render_message(event)
            if message is None:
                report.skipped.append(label)
                continue

            try:
                result = await self.notifier.notify(event.customer_phone, event.order_number, status_for(event), message)
            except Exception as e:
                logger.warning(f"event_dispatch_error | event={event.name} order_number={event.order_number} error={e}", exc_info=True)
                report.failed.append(label)
                continue

            if not result.success:
                logger.warning(f"event_dispatch_failed | event={event.name} order_number={event.order_number} reason={result.message}")
                report.failed.append(label)
            elif result.skipped:
                report.skipped.append(label)
            else:
                report.delivered.append(label)

        logger.info(f"events_dispatched | delivered={len(report.delivered)} skipped={len(report.skipped)} failed={len(report.failed)}")
        return report
