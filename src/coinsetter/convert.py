"""Translation between Coinsetter wire values and the canonical trading model."""

from __future__ import annotations

from datetime import datetime, timezone

from trading.models import Market, MarketSide, MarketTrade, OrderStatus, OrderType, Side, utc_now

from .models import CoinsetterLast, DepthLevel, SideLevel

_STAGE_TO_STATUS: dict[str, OrderStatus] = {
    "NEW": "working",
    "PENDING": "working",
    "OPEN": "working",
    "PARTIAL_FILL": "working",
    "EXT_ROUTED": "working",
    "EXPIRED": "cancelled",
    "CLOSED": "cancelled",
    "REJECTED": "rejected",
}


def to_market_side(level: SideLevel) -> MarketSide:
    return MarketSide(price=level.price, size=level.size)


def to_market(depth: list[DepthLevel]) -> Market:
    """Build a full book snapshot, stamped now rather than with venue times."""
    t = utc_now()
    return Market(
        bids=[to_market_side(d.bid) for d in depth],
        asks=[to_market_side(d.ask) for d in depth],
        time=t,
    )


def to_market_trade(last: CoinsetterLast) -> MarketTrade:
    # The trade feed does not say who was the aggressor.
    return MarketTrade(
        price=last.price,
        size=last.size,
        time=datetime.fromtimestamp(last.timeStamp, tz=timezone.utc),
        maker=False,
        side="unknown",
    )


def to_side(s: str | None) -> Side:
    if s == "BUY":
        return "bid"
    if s == "SELL":
        return "ask"
    return "unknown"


def from_side(side: Side) -> str:
    if side == "bid":
        return "BUY"
    if side == "ask":
        return "SELL"
    raise ValueError(f"Coinsetter does not support side {side!r}")


def to_order_type(s: str | None) -> OrderType | None:
    """Unknown venue order types decode to None."""
    if s == "MARKET":
        return "market"
    if s == "LIMIT":
        return "limit"
    return None


def from_order_type(t: OrderType) -> str:
    if t == "market":
        return "MARKET"
    if t == "limit":
        return "LIMIT"
    raise ValueError(f"Coinsetter does not support order type {t!r}")


def to_order_status(stage: str) -> OrderStatus:
    return _STAGE_TO_STATUS.get(stage, "other")
