"""Coinsetter wire models.

Field names follow the venue's camelCase JSON so payloads validate as-is.
Only the fields the gateways read (or must send) are declared; everything else
in a payload is ignored.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class _Model(BaseModel):
    # Venue payloads carry many more fields than we use.
    model_config = ConfigDict(extra="ignore", frozen=True)


class CoinsetterLast(_Model):
    """Most recent trade print from the `last` channel."""

    price: float
    size: float
    exchangeId: str | None = None
    tickId: int | None = None
    timeStamp: float
    volume: float | None = None
    volume24: float | None = None

    @classmethod
    def from_push(cls, payload: Any) -> "CoinsetterLast":
        return cls.model_validate(payload)


class SideLevel(_Model):
    price: float
    size: float
    exchangeId: str | None = None
    timeStamp: float | None = None


class DepthLevel(_Model):
    """One index position of the `depth` channel: a bid level and an ask level."""

    bid: SideLevel
    ask: SideLevel

    @classmethod
    def list_from_push(cls, payload: Any) -> list["DepthLevel"]:
        """Parse the full depth array, keeping index order."""
        return [cls.model_validate(item) for item in payload or []]


class CoinsetterOrderStatus(_Model):
    """Order lifecycle push from the per-customer `orders` channel."""

    uuid: str
    customerUuid: str | None = None
    clientOrderId: str
    filledQuantity: float = 0.0
    orderType: str | None = None
    stage: str
    requestedQuantity: float | None = None
    requestedPrice: float | None = None
    side: str | None = None
    symbol: str | None = None
    exchId: str | None = None

    @classmethod
    def from_push(cls, payload: Any) -> "CoinsetterOrderStatus":
        return cls.model_validate(payload)


class CoinsetterOrder(_Model):
    """Body of `POST order`."""

    accountUuid: str
    customerUuid: str
    orderType: str
    requestedQuantity: float
    requestedPrice: float
    side: str
    symbol: str
    routingMethod: int
    clientOrderId: str | None = None
    quantityDenomination: str | None = None

    def to_body(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class CoinsetterOrderAck(_Model):
    """Reply to both `POST order` and `DELETE cancel/{uuid}`."""

    uuid: str | None = None
    message: str | None = None
    requestStatus: str
    orderNumber: str | None = None
    clientOrderId: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.requestStatus == "SUCCESS"

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "CoinsetterOrderAck":
        return cls.model_validate(payload)


class CoinsetterAccountResponse(_Model):
    """Reply to `GET customer/account/{accountUuid}`."""

    accountUuid: str
    customerUuid: str | None = None
    accountNumber: str | None = None
    name: str | None = None
    description: str | None = None
    btcBalance: float
    usdBalance: float
    accountClass: str | None = None
    activeStatus: str | None = None
    approvedMarginRatio: float | None = None
    createDate: str | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "CoinsetterAccountResponse":
        return cls.model_validate(payload)
