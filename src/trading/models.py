"""Venue-neutral models shared between gateways and the trading engine.

These are the canonical vocabulary every gateway translates into:
- connectivity, market data and trade prints
- brokered orders/cancels/replaces coming from the engine
- order status reports and currency positions going back to it
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field

ClientOrderId: TypeAlias = str
VenueOrderId: TypeAlias = str

Exchange = Literal["coinsetter", "null"]
Currency = Literal["BTC", "USD"]

ConnectivityStatus = Literal["connected", "disconnected"]
Side = Literal["bid", "ask", "unknown"]
OrderType = Literal["market", "limit"]
OrderStatus = Literal["working", "cancelled", "rejected", "other"]


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


class _Model(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class Timestamped(_Model):
    """A decoded venue payload plus the time it was received."""

    data: Any
    time: datetime


class CurrencyPair(_Model):
    base: Currency
    quote: Currency


class MarketSide(_Model):
    price: float
    size: float


class Market(_Model):
    """Full order book snapshot. Each one replaces the previous."""

    bids: list[MarketSide]
    asks: list[MarketSide]
    time: datetime


class MarketTrade(_Model):
    price: float
    size: float
    time: datetime
    maker: bool = False
    side: Side = "unknown"


class CurrencyPosition(_Model):
    currency: Currency
    amount: float
    held_amount: float = 0.0


class BrokeredOrder(_Model):
    """An order the engine wants on the venue, keyed by a client order id."""

    order_id: ClientOrderId
    side: Side
    type: OrderType
    price: float
    quantity: float


class BrokeredCancel(_Model):
    order_id: ClientOrderId
    request_id: ClientOrderId
    side: Side
    exchange_id: VenueOrderId


class BrokeredReplace(BrokeredOrder):
    # The order being replaced; the venue can only cancel it by exchange id.
    orig_order_id: ClientOrderId
    exchange_id: VenueOrderId


class OrderGatewayActionReport(_Model):
    """Receipt for an order action handed to the wire. Not the venue's verdict."""

    sent_time: datetime = Field(default_factory=utc_now)


class OrderStatusReport(_Model):
    order_id: ClientOrderId
    exchange_id: VenueOrderId | None = None
    time: datetime = Field(default_factory=utc_now)
    order_status: OrderStatus

    cum_quantity: float | None = None
    partially_filled: bool = False

    # Only set on ack-path rejections.
    cancel_rejected: bool | None = None
    reject_message: str | None = None

    side: Side | None = None
    price: float | None = None
    quantity: float | None = None
    type: OrderType | None = None
