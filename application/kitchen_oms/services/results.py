"""
Service results. Each carries the committed projection plus the events
that still have to be dispatched.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from kitchen_oms.dto.invoices import InvoiceView
from kitchen_oms.dto.orders import OrderView
from kitchen_oms.dto.payments import PaymentView
from kitchen_oms.events.domain_events import DomainEvent


@dataclass
class TransitionResult:
    order: OrderView
    message: str
    events: List[DomainEvent] = field(default_factory=list)


@dataclass
class DeletionResult:
    order_number: str
    invoice_deleted: bool
    payments_deleted: int


@dataclass
class IntentCreated:
    order: OrderView
    payment: PaymentView
    key_id: Optional[str] = None


@dataclass
class ReconciliationResult:
    order: OrderView
    payment: PaymentView
    message: str
    duplicate: bool = False
    credited_amount: int = 0
    excess_amount: int = 0
    events: List[DomainEvent] = field(default_factory=list)


@dataclass
class PaymentFailureResult:
    payment: PaymentView
    message: str
    changed: bool = True
    events: List[DomainEvent] = field(default_factory=list)


@dataclass
class InvoiceResult:
    invoice: InvoiceView
    message: str
    events: List[DomainEvent] = field(default_factory=list)


@dataclass
class ExpiryResult:
    expired_count: int = 0
    intent_ids: List[str] = field(default_factory=list)
