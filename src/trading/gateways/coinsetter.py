"""Coinsetter gateways.

One `CoinsetterRealtimeConnection` feeds market data and order status pushes;
one `CoinsetterHttp` carries order entry and balance polling. Order status
reports come from two independent producers, the HTTP acks and the `orders`
push channel, and are not ordered or deduplicated against each other.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable
from typing import Any, Final

from pydantic import ValidationError

from coinsetter.client import CoinsetterHttp, CoinsetterHttpError
from coinsetter.convert import (
    from_order_type,
    from_side,
    to_market,
    to_market_trade,
    to_order_status,
    to_order_type,
    to_side,
)
from coinsetter.models import (
    CoinsetterAccountResponse,
    CoinsetterLast,
    CoinsetterOrder,
    CoinsetterOrderAck,
    CoinsetterOrderStatus,
    DepthLevel,
)
from coinsetter.realtime import CoinsetterRealtimeConnection
from config import CoinsetterConfig
from observability.recorder import ObservabilityRecorder

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
    OrderStatus,
    OrderStatusReport,
    Timestamped,
    utc_now,
)
from .base import (
    CombinedGateway,
    ExchangeDetailsGateway,
    MarketDataGateway,
    OrderEntryGateway,
    PositionGateway,
)
from .null import NullOrderGateway

logger = logging.getLogger(__name__)

# Venue routing method for orders placed through the API.
ROUTING_METHOD: Final[int] = 2


class CoinsetterSymbolProvider:
    def __init__(self, symbol: str = "BTCUSD") -> None:
        self.symbol = symbol


class CoinsetterMarketDataGateway(MarketDataGateway):
    """Maps `depth` and `last` pushes 1:1 onto market snapshots and trade prints."""

    def __init__(
        self,
        socket: CoinsetterRealtimeConnection,
        *,
        recorder: ObservabilityRecorder | None = None,
    ) -> None:
        self.connect_changed: EventBus[ConnectivityStatus] = EventBus(
            "coinsetter.md.connect_changed", recorder=recorder
        )
        self.market_data: EventBus[Market] = EventBus("coinsetter.md.market_data", recorder=recorder)
        self.market_trade: EventBus[MarketTrade] = EventBus("coinsetter.md.market_trade", recorder=recorder)

        socket.connect_changed.listen(self.connect_changed.publish)
        self.connect_changed.publish(socket.connect_status)

        socket.subscribe("depth", self._on_depth)
        socket.subscribe("last", self._on_last)

    def _on_depth(self, data: Any) -> None:
        try:
            depth = DepthLevel.list_from_push(data)
        except ValidationError as exc:
            logger.warning("dropping malformed depth push: %s", exc)
            return
        self.market_data.publish(to_market(depth))

    def _on_last(self, data: Any) -> None:
        try:
            trade = to_market_trade(CoinsetterLast.from_push(data))
        except (ValidationError, ValueError, OverflowError, OSError) as exc:
            # Includes timestamps outside the platform's datetime range.
            logger.warning("dropping malformed last push: %s", exc)
            return
        self.market_trade.publish(trade)


class CoinsetterOrderEntryGateway(OrderEntryGateway):
    """Places and cancels orders over REST and reconciles `orders` pushes.

    `send_order` / `cancel_order` return as soon as the request is scheduled;
    the venue's verdict arrives later on `order_update`. Replace is a cancel
    followed by a send, so it produces two independent reports.
    """

    cancels_by_client_order_id = False

    def __init__(
        self,
        socket: CoinsetterRealtimeConnection,
        http: CoinsetterHttp,
        symbol: CoinsetterSymbolProvider,
        *,
        recorder: ObservabilityRecorder | None = None,
    ) -> None:
        self._http = http
        self._symbol = symbol
        self._acks: set[asyncio.Task[None]] = set()

        self.order_update: EventBus[OrderStatusReport] = EventBus("coinsetter.oe.order_update", recorder=recorder)
        self.connect_changed: EventBus[ConnectivityStatus] = EventBus(
            "coinsetter.oe.connect_changed", recorder=recorder
        )

        socket.connect_changed.listen(self.connect_changed.publish)
        self.connect_changed.publish(socket.connect_status)

        socket.subscribe("orders", self._on_order_status_update, self._http.customer_uuid)

    def generate_client_order_id(self) -> ClientOrderId:
        return uuid.uuid4().hex[:16]

    def send_order(self, order: BrokeredOrder) -> OrderGatewayActionReport:
        # Encoding errors surface here, before anything is scheduled.
        body = self._encode_order(order)
        return self._post_order(body, order.order_id)

    def cancel_order(self, cancel: BrokeredCancel) -> OrderGatewayActionReport:
        self._track(self._await_ack(self._http.delete(f"cancel/{cancel.exchange_id}"), "cancelled", cancel.order_id))
        return OrderGatewayActionReport(sent_time=utc_now())

    def replace_order(self, replace: BrokeredReplace) -> OrderGatewayActionReport:
        # An unencodable replacement must not cost the original order.
        body = self._encode_order(replace)
        self.cancel_order(
            BrokeredCancel(
                order_id=replace.orig_order_id,
                request_id=replace.order_id,
                side=replace.side,
                exchange_id=replace.exchange_id,
            )
        )
        return self._post_order(body, replace.order_id)

    def _encode_order(self, order: BrokeredOrder) -> dict[str, Any]:
        return CoinsetterOrder(
            accountUuid=self._http.account_uuid,
            customerUuid=self._http.customer_uuid,
            orderType=from_order_type(order.type),
            requestedQuantity=order.quantity,
            requestedPrice=order.price,
            side=from_side(order.side),
            symbol=self._symbol.symbol,
            routingMethod=ROUTING_METHOD,
            clientOrderId=order.order_id,
        ).to_body()

    def _post_order(self, body: dict[str, Any], order_id: ClientOrderId) -> OrderGatewayActionReport:
        self._track(self._await_ack(self._http.post("order", body), "working", order_id))
        return OrderGatewayActionReport(sent_time=utc_now())

    async def aclose(self) -> None:
        """Wait for acks still in flight."""
        if self._acks:
            await asyncio.gather(*self._acks, return_exceptions=True)

    def _track(self, coro: Awaitable[None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._acks.add(task)
        task.add_done_callback(self._acks.discard)

    async def _await_ack(
        self,
        request: Awaitable[Timestamped],
        success_status: OrderStatus,
        order_id: ClientOrderId,
    ) -> None:
        try:
            resp = await request
            ack = CoinsetterOrderAck.from_api(resp.data)
        except (CoinsetterHttpError, ValidationError) as exc:
            logger.error("no %s ack for order %s: %s", success_status, order_id, exc)
            return
        self._handle_order_ack(ack, resp, success_status, order_id)

    def _handle_order_ack(
        self,
        ack: CoinsetterOrderAck,
        resp: Timestamped,
        success_status: OrderStatus,
        order_id: ClientOrderId,
    ) -> None:
        if ack.succeeded:
            report = OrderStatusReport(
                order_id=ack.clientOrderId or order_id,
                exchange_id=ack.uuid,
                time=resp.time,
                order_status=success_status,
            )
        else:
            report = OrderStatusReport(
                order_id=ack.clientOrderId or order_id,
                exchange_id=ack.uuid,
                time=resp.time,
                order_status="rejected",
                reject_message=ack.message,
                cancel_rejected=success_status == "cancelled",
            )
        self.order_update.publish(report)

    def _on_order_status_update(self, data: Any) -> None:
        try:
            status = CoinsetterOrderStatus.from_push(data)
        except ValidationError as exc:
            logger.warning("dropping malformed orders push: %s", exc)
            return

        self.order_update.publish(
            OrderStatusReport(
                order_id=status.clientOrderId,
                exchange_id=status.uuid,
                time=utc_now(),
                order_status=to_order_status(status.stage),
                cum_quantity=status.filledQuantity,
                partially_filled=status.stage == "PARTIAL_FILL",
                side=to_side(status.side),
                price=status.requestedPrice,
                quantity=status.requestedQuantity,
                type=to_order_type(status.orderType),
            )
        )


class CoinsetterPositionGateway(PositionGateway):
    """Polls the account balance and republishes it per currency.

    A failed poll is logged and skipped; the next tick is the retry.
    """

    def __init__(
        self,
        http: CoinsetterHttp,
        *,
        poll_interval_s: float = 15.0,
        recorder: ObservabilityRecorder | None = None,
    ) -> None:
        self._http = http
        self._poll_interval_s = poll_interval_s
        self._task: asyncio.Task[None] | None = None
        self.position_update: EventBus[CurrencyPosition] = EventBus(
            "coinsetter.pg.position_update", recorder=recorder
        )

    def start(self) -> None:
        """Start polling; the first poll happens immediately."""
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.get_running_loop().create_task(self._poll_loop(), name="coinsetter-position-poll")

    async def aclose(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _poll_loop(self) -> None:
        # Ticks are a fixed period apart, however long each refresh takes.
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while True:
            await self.refresh_positions()
            next_tick += self._poll_interval_s
            now = loop.time()
            if next_tick < now:
                # Skip ticks missed while a refresh overran the period.
                next_tick = now
            await asyncio.sleep(next_tick - now)

    async def refresh_positions(self) -> None:
        try:
            resp = await self._http.get(f"customer/account/{self._http.account_uuid}")
            account = CoinsetterAccountResponse.from_api(resp.data)
        except (CoinsetterHttpError, ValidationError) as exc:
            logger.warning("position refresh failed: %s", exc)
            return

        self.position_update.publish_many(
            [
                CurrencyPosition(currency="BTC", amount=account.btcBalance, held_amount=0),
                CurrencyPosition(currency="USD", amount=account.usdBalance, held_amount=0),
            ]
        )


class CoinsetterBaseGateway(ExchangeDetailsGateway):
    _ALL_PAIRS: Final[list[CurrencyPair]] = [CurrencyPair(base="BTC", quote="USD")]

    @property
    def has_self_trade_prevention(self) -> bool:
        return False

    @property
    def supported_currency_pairs(self) -> list[CurrencyPair]:
        return list(self._ALL_PAIRS)

    def name(self) -> str:
        return "Coinsetter"

    def make_fee(self) -> float:
        return 0.001

    def take_fee(self) -> float:
        return 0.002

    def exchange(self) -> Exchange:
        return "coinsetter"


class Coinsetter(CombinedGateway):
    """Coinsetter wired up from config.

    Orders go to the venue only when `order_destination` is `"Coinsetter"`;
    otherwise a `NullOrderGateway` stands in.
    """

    def __init__(
        self,
        config: CoinsetterConfig,
        *,
        transport: Any | None = None,
        recorder: ObservabilityRecorder | None = None,
    ) -> None:
        symbol = CoinsetterSymbolProvider(config.symbol)
        self.socket = CoinsetterRealtimeConnection(config, transport=transport, recorder=recorder)
        self.http = CoinsetterHttp(config)

        oe: OrderEntryGateway
        if config.order_destination == "Coinsetter":
            oe = CoinsetterOrderEntryGateway(self.socket, self.http, symbol, recorder=recorder)
        else:
            oe = NullOrderGateway(recorder=recorder)

        self._positions = CoinsetterPositionGateway(
            self.http, poll_interval_s=config.position_poll_interval_s, recorder=recorder
        )
        super().__init__(
            CoinsetterMarketDataGateway(self.socket, recorder=recorder),
            oe,
            self._positions,
            CoinsetterBaseGateway(),
        )

    async def start(self) -> None:
        self._positions.start()
        await self.socket.connect()

    async def aclose(self) -> None:
        await self._positions.aclose()
        await self.socket.disconnect()
        if isinstance(self.oe, CoinsetterOrderEntryGateway):
            await self.oe.aclose()
