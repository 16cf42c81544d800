"""Order entry that never leaves the process.

Used when orders are not routed to the venue: every action is accepted at
once and reported on `order_update` exactly as the real gateway would.
"""

from __future__ import annotations

import logging
import uuid

from observability.recorder import ObservabilityRecorder

from ..bus import EventBus
from ..models import (
    BrokeredCancel,
    BrokeredOrder,
    BrokeredReplace,
    ClientOrderId,
    ConnectivityStatus,
    OrderGatewayActionReport,
    OrderStatusReport,
)
from .base import OrderEntryGateway

logger = logging.getLogger(__name__)


class NullOrderGateway(OrderEntryGateway):
    cancels_by_client_order_id = True

    def __init__(self, *, recorder: ObservabilityRecorder | None = None) -> None:
        self.order_update: EventBus[OrderStatusReport] = EventBus("null.order_update", recorder=recorder)
        self.connect_changed: EventBus[ConnectivityStatus] = EventBus("null.connect_changed", recorder=recorder)
        self.connect_changed.publish("connected")

    def generate_client_order_id(self) -> ClientOrderId:
        return uuid.uuid4().hex[:16]

    def send_order(self, order: BrokeredOrder) -> OrderGatewayActionReport:
        logger.info("null gateway accepting order %s", order.order_id)
        self.order_update.publish(
            OrderStatusReport(
                order_id=order.order_id,
                exchange_id=order.order_id,
                order_status="working",
                side=order.side,
                price=order.price,
                quantity=order.quantity,
                type=order.type,
            )
        )
        return OrderGatewayActionReport()

    def cancel_order(self, cancel: BrokeredCancel) -> OrderGatewayActionReport:
        logger.info("null gateway cancelling order %s", cancel.order_id)
        self.order_update.publish(
            OrderStatusReport(order_id=cancel.order_id, exchange_id=cancel.exchange_id, order_status="cancelled")
        )
        return OrderGatewayActionReport()

    def replace_order(self, replace: BrokeredReplace) -> OrderGatewayActionReport:
        self.cancel_order(
            BrokeredCancel(
                order_id=replace.orig_order_id,
                request_id=replace.order_id,
                side=replace.side,
                exchange_id=replace.exchange_id,
            )
        )
        return self.send_order(replace)
