"""Fan-out of order events to the customer, the store and couriers.

Each recipient is independent: a failed send is recorded in the report and
the next recipient is still tried. Nothing is retried and nothing raises.
"""

import logging
import time
from collections.abc import Callable
from typing import Protocol

from notifier.config.schema import DispatchConfig
from notifier.dispatch import messages
from notifier.models.dispatch import (
    DispatchEvent,
    DispatchKind,
    DispatchReport,
    DispatchStats,
    RecipientResult,
    RecipientRole,
    SendResult,
    SendStatus,
)
from notifier.models.order import Courier, Order, OrderStatus, parse_status

logger = logging.getLogger(__name__)

NOTIFY_STATUSES = frozenset({
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
    OrderStatus.COMPLETED,
})


class MessageSender(Protocol):
    def deliver(self, recipient: str, text: str) -> SendResult: ...


class CourierLookup(Protocol):
    def active(self) -> list[Courier]: ...


class NotificationDispatcher:
    def __init__(
        self,
        sender: MessageSender,
        couriers: CourierLookup | None = None,
        config: DispatchConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.sender = sender
        self.couriers = couriers
        self.config = config or DispatchConfig()
        self.sleep = sleep
        self.stats = DispatchStats()

    def handle(self, event: DispatchEvent) -> DispatchReport:
        if event.kind == DispatchKind.NEW:
            return self.dispatch_new(event.order)
        return self.dispatch_status_change(event.order, event.order.status, event.previous_status)

    def dispatch_new(self, order: Order) -> DispatchReport:
        report = DispatchReport(order_id=order.id, kind=DispatchKind.NEW)
        name = self.config.store_name
        logger.info("New order #%s (%s)", order.label, order.order_type.value)

        if order.customer_phone:
            self._send(report, RecipientRole.CUSTOMER, order.customer_phone,
                       lambda: messages.customer_confirmation(order, name))

        self._notify_store(report, lambda: messages.store_new_order(order, name))

        if order.is_delivery:
            couriers = self._active_couriers()
            if not couriers:
                logger.warning("Delivery order #%s but no active couriers", order.label)
            for i, courier in enumerate(couriers):
                if i > 0 and self.config.courier_delay_ms:
                    self.sleep(self.config.courier_delay_ms / 1000)
                self._send(report, RecipientRole.COURIER, courier.phone or "",
                           lambda: messages.courier_new_delivery(order, name))

        self._finish(report)
        return report

    def dispatch_status_change(
        self,
        order: Order,
        new_status: OrderStatus | str,
        previous_status: OrderStatus | None = None,
    ) -> DispatchReport:
        status = new_status if isinstance(new_status, OrderStatus) else parse_status(new_status)
        report = DispatchReport(order_id=order.id, kind=DispatchKind.STATUS_CHANGED)
        if status not in NOTIFY_STATUSES:
            logger.debug("Order #%s moved to %s, nothing to send", order.label, status.value)
            self._finish(report)
            return report

        logger.info(
            "Order #%s status %s -> %s",
            order.label, previous_status.value if previous_status else "?", status.value,
        )
        name = self.config.store_name

        def build() -> str:
            return messages.status_update(order, status, name)

        self._notify_store(report, build)
        if status == OrderStatus.READY and order.customer_phone:
            self._send(report, RecipientRole.CUSTOMER, order.customer_phone, build)

        self._finish(report)
        return report

    def _notify_store(self, report: DispatchReport, build: Callable[[], str]) -> None:
        if not self.config.store_number:
            logger.warning("Store number not configured, skipping store notification")
            return
        self._send(report, RecipientRole.STORE, self.config.store_number, build)

    def _send(
        self,
        report: DispatchReport,
        role: RecipientRole,
        recipient: str,
        build: Callable[[], str],
    ) -> None:
        try:
            text = build()
        except Exception as e:
            logger.exception("Could not build %s message for order %s", role.value, report.order_id)
            report.results.append(RecipientResult(role, recipient, SendStatus.FAILED, str(e)))
            return

        try:
            result = self.sender.deliver(recipient, text)
        except Exception as e:
            logger.exception("Sending %s message for order %s raised", role.value, report.order_id)
            report.results.append(RecipientResult(role, recipient, SendStatus.FAILED, str(e)))
            return
        report.results.append(
            RecipientResult(role, recipient, result.status, result.error_message)
        )
        if not result.ok:
            logger.warning(
                "%s notification for order %s failed: %s %s",
                role.value, report.order_id, result.status.value, result.error_message,
            )

    def _active_couriers(self) -> list[Courier]:
        if self.couriers is None:
            return []
        try:
            couriers = self.couriers.active()
        except Exception:
            logger.exception("Could not load active couriers")
            return []
        return [c for c in couriers if c.phone]

    def _finish(self, report: DispatchReport) -> None:
        self.stats.record(report)
        if report.failed:
            logger.warning(
                "Order %s: %d/%d notifications failed",
                report.order_id, report.failed, report.attempted,
            )
