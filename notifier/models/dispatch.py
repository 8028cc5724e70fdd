"""Dispatch events, send results and fan-out reports."""

from dataclasses import dataclass, field
from enum import StrEnum

from notifier.models.order import Order, OrderStatus


class DispatchKind(StrEnum):
    NEW = "new"
    STATUS_CHANGED = "status_changed"


class SendStatus(StrEnum):
    SENT = "SENT"
    NOT_CONNECTED = "NOT_CONNECTED"
    INVALID_RECIPIENT = "INVALID_RECIPIENT"
    FAILED = "FAILED"


class RecipientRole(StrEnum):
    CUSTOMER = "customer"
    STORE = "store"
    COURIER = "courier"


@dataclass(frozen=True)
class DispatchEvent:
    order_id: str
    kind: DispatchKind
    order: Order
    previous_status: OrderStatus | None = None

    @classmethod
    def new(cls, order: Order) -> "DispatchEvent":
        return cls(order_id=order.id, kind=DispatchKind.NEW, order=order)

    @classmethod
    def status_changed(
        cls, order: Order, previous_status: OrderStatus | None
    ) -> "DispatchEvent":
        return cls(
            order_id=order.id,
            kind=DispatchKind.STATUS_CHANGED,
            order=order,
            previous_status=previous_status,
        )


@dataclass(frozen=True)
class SendResult:
    recipient: str
    status: SendStatus
    error_message: str = ""

    @property
    def ok(self) -> bool:
        return self.status == SendStatus.SENT


@dataclass(frozen=True)
class RecipientResult:
    role: RecipientRole
    recipient: str
    status: SendStatus
    error_message: str = ""


@dataclass
class DispatchReport:
    order_id: str
    kind: DispatchKind
    results: list[RecipientResult] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.status == SendStatus.SENT)

    @property
    def failed(self) -> int:
        return self.attempted - self.succeeded


@dataclass
class DispatchStats:
    events: int = 0
    orders_notified: int = 0
    sends_ok: int = 0
    sends_failed: int = 0

    def record(self, report: DispatchReport) -> None:
        self.events += 1
        self.sends_ok += report.succeeded
        self.sends_failed += report.failed
        store_ok = any(
            r.role == RecipientRole.STORE and r.status == SendStatus.SENT
            for r in report.results
        )
        if report.kind == DispatchKind.NEW and store_ok:
            self.orders_notified += 1
