"""Gateway interfaces.

The trading engine depends on these four small interfaces so a venue (or a
disabled stand-in for part of one) can be swapped without touching the engine.
Every outward stream is an `EventBus` the engine subscribes to.
"""

from __future__ import annotations

from typing import Protocol

from ..bus import EventBus
from ..models import (
    BrokeredCancel,
    BrokeredOrder,
    BrokeredReplace,
    ClientOrderId,
    ConnectivityStatus,
    CurrencyPair,
    CurrencyPosition,
    Exchange,
    Market,
    MarketTrade,
    OrderGatewayActionReport,
    OrderStatusReport,
)


class MarketDataGateway(Protocol):
    connect_changed: EventBus[ConnectivityStatus]
    market_data: EventBus[Market]
    market_trade: EventBus[MarketTrade]


class OrderEntryGateway(Protocol):
    connect_changed: EventBus[ConnectivityStatus]
    order_update: EventBus[OrderStatusReport]

    # False means cancels must carry the venue-assigned exchange id.
    cancels_by_client_order_id: bool

    def generate_client_order_id(self) -> ClientOrderId:
        """Return a fresh id to put on a new order before it is sent."""

    def send_order(self, order: BrokeredOrder) -> OrderGatewayActionReport:
        """Hand an order to the wire; the verdict arrives on `order_update`."""

    def cancel_order(self, cancel: BrokeredCancel) -> OrderGatewayActionReport:
        """Hand a cancel to the wire; the verdict arrives on `order_update`."""

    def replace_order(self, replace: BrokeredReplace) -> OrderGatewayActionReport:
        """Replace an order; may be implemented as cancel + send."""


class PositionGateway(Protocol):
    position_update: EventBus[CurrencyPosition]


class ExchangeDetailsGateway(Protocol):
    @property
    def has_self_trade_prevention(self) -> bool: ...

    @property
    def supported_currency_pairs(self) -> list[CurrencyPair]: ...

    def name(self) -> str: ...

    def make_fee(self) -> float: ...

    def take_fee(self) -> float: ...

    def exchange(self) -> Exchange: ...


class CombinedGateway:
    """The four gateways of one venue, handed to the engine as a unit."""

    def __init__(
        self,
        md: MarketDataGateway,
        oe: OrderEntryGateway,
        pg: PositionGateway,
        base: ExchangeDetailsGateway,
    ) -> None:
        self.md = md
        self.oe = oe
        self.pg = pg
        self.base = base

    async def start(self) -> None:
        """Open connections and start timers. No-op unless a venue needs it."""

    async def aclose(self) -> None:
        """Stop timers and close connections. No-op unless a venue needs it."""
