"""Socket.IO push connection to Coinsetter.

Channels are joined by emitting `"<channel> room"` with a subscription payload.
The transport reconnects by itself; this class only has to notice each
transition and, on every connect, join every registered channel again.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

import socketio
from socketio.exceptions import SocketIOError

from config import CoinsetterConfig
from observability.recorder import ObservabilityRecorder
from trading.bus import EventBus
from trading.models import ConnectivityStatus

logger = logging.getLogger(__name__)

PushHandler = Callable[[Any], Any]


class DuplicateSubscriptionError(RuntimeError):
    """A channel already has a subscriber on this connection."""

    def __init__(self, channel: str):
        self.channel = channel
        super().__init__(f"Already have subscriber for {channel}")


class CoinsetterRealtimeConnection:
    """One long-lived push session shared by the market data and order gateways.

    Members:
    - Connectivity broadcast: `connect_changed`
    - Current connectivity: `connect_status`
    - Registered channels: `subscriptions` (channel -> payload)
    """

    def __init__(
        self,
        config: CoinsetterConfig,
        *,
        transport: Any | None = None,
        recorder: ObservabilityRecorder | None = None,
    ) -> None:
        """Create the connection; nothing is sent until `connect()`.

        `transport` defaults to a reconnecting `socketio.AsyncClient`. Anything
        with the same `on` / `emit` / `connect` / `disconnect` surface works.
        """
        self._url = config.socket_io_url
        self._sio = transport if transport is not None else socketio.AsyncClient(reconnection=True)
        self.connect_changed: EventBus[ConnectivityStatus] = EventBus(
            "coinsetter.socket.connect_changed", recorder=recorder
        )

        self._connected = False
        self._session = 0
        self._subscriptions: dict[str, tuple[PushHandler, str]] = {}
        self._pending_joins: set[asyncio.Task[None]] = set()

        self._sio.on("connect", self._on_connect)
        self._sio.on("disconnect", self._on_disconnect)
        self._sio.on("connect_error", self._on_connect_error)

    @property
    def connect_status(self) -> ConnectivityStatus:
        return "connected" if self._connected else "disconnected"

    @property
    def subscriptions(self) -> dict[str, str]:
        return {channel: payload for channel, (_handler, payload) in self._subscriptions.items()}

    def subscribe(self, channel: str, handler: PushHandler, payload: str = "") -> None:
        """Register the one handler for `channel` and join it now or on connect."""
        if channel in self._subscriptions:
            raise DuplicateSubscriptionError(channel)

        # Fails without a running loop before anything is registered.
        loop = asyncio.get_running_loop() if self._connected else None

        logger.info("subscribing for %s data: %r", channel, payload)
        self._sio.on(channel, handler)
        self._subscriptions[channel] = (handler, payload)

        # A replay in progress iterates a snapshot taken before this entry
        # existed, so joining here cannot double up with it.
        if loop is not None:
            task = loop.create_task(self._join(channel, payload))
            self._pending_joins.add(task)
            task.add_done_callback(self._pending_joins.discard)

    async def connect(self) -> None:
        """Open the session; returns once connected (the transport keeps retrying)."""
        logger.info("connecting to %s", self._url)
        await self._sio.connect(self._url, retry=True)

    async def disconnect(self) -> None:
        await self._sio.disconnect()
        if self._pending_joins:
            await asyncio.gather(*self._pending_joins, return_exceptions=True)

    async def _join(self, channel: str, payload: str) -> None:
        try:
            await self._sio.emit(f"{channel} room", payload)
        except SocketIOError as exc:
            # The next connect replays every registered channel anyway.
            logger.warning("joining %s failed: %s", channel, exc)

    async def _on_connect(self) -> None:
        logger.info("connected to %s", self._url)
        self._connected = True
        self._session += 1
        session = self._session
        self.connect_changed.publish("connected")
        for channel, (_handler, payload) in list(self._subscriptions.items()):
            if not self._connected or session != self._session:
                # Dropped mid-replay; the next connect replays everything.
                return
            await self._join(channel, payload)

    async def _on_disconnect(self, reason: Any = None) -> None:
        logger.warning("disconnected from %s (%s)", self._url, reason)
        self._connected = False
        self.connect_changed.publish("disconnected")

    async def _on_connect_error(self, err: Any = None) -> None:
        logger.warning("connect error for %s: %s. Disconnected.", self._url, err)
        self._connected = False
        self.connect_changed.publish("disconnected")
