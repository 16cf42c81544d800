from __future__ import annotations

import asyncio
from typing import Any, Callable

import pytest
import requests

from coinsetter.client import CoinsetterHttp
from coinsetter.realtime import CoinsetterRealtimeConnection
from config import CoinsetterConfig
from trading.gateways.coinsetter import CoinsetterOrderEntryGateway, CoinsetterSymbolProvider
from trading.models import BrokeredCancel, BrokeredOrder, BrokeredReplace, OrderStatusReport


class _FakeSocket:
    def __init__(self) -> None:
        self.handlers: dict[str, Callable[..., Any]] = {}
        self.emitted: list[tuple[str, Any]] = []

    def on(self, event: str, handler: Callable[..., Any] | None = None) -> None:
        self.handlers[event] = handler

    async def emit(self, event: str, data: Any = None) -> None:
        self.emitted.append((event, data))


class _FakeResponse:
    def __init__(self, payload: Any) -> None:
        self._payload = payload
        self.status_code = 200
        self.text = repr(payload)

    def json(self) -> Any:
        return self._payload


class _FakeVenue:
    """Answers `POST order` and `DELETE cancel/<uuid>` like Coinsetter does."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, Any]] = []
        self.reject_with: str | None = None
        self._next = 1

    def request(self, method: str, url: str, *, headers: dict[str, str], json: Any, timeout: float) -> _FakeResponse:
        self.calls.append((method, url, json))
        if self.reject_with is not None:
            return _FakeResponse({"requestStatus": "FAILURE", "message": self.reject_with, "uuid": None})
        if method == "POST":
            uuid = f"V{self._next}"
            self._next += 1
            return _FakeResponse(
                {"uuid": uuid, "requestStatus": "SUCCESS", "clientOrderId": json["clientOrderId"], "message": "Order accepted"}
            )
        uuid = url.rsplit("/", 1)[-1]
        return _FakeResponse({"uuid": uuid, "requestStatus": "SUCCESS", "message": "Cancel accepted"})


def _make_gateway(monkeypatch: pytest.MonkeyPatch) -> tuple[_FakeVenue, _FakeSocket, CoinsetterOrderEntryGateway]:
    venue = _FakeVenue()
    monkeypatch.setattr("coinsetter.client.requests.request", venue.request)

    cfg = CoinsetterConfig(
        customer_uuid="cust-1",
        account_uuid="acct-1",
        client_session_id="sess-1",
        http_url="https://api.test/v1",
        order_destination="Coinsetter",
    )
    sock = _FakeSocket()
    conn = CoinsetterRealtimeConnection(cfg, transport=sock)
    oe = CoinsetterOrderEntryGateway(conn, CoinsetterHttp(cfg), CoinsetterSymbolProvider("BTCUSD"))
    return venue, sock, oe


def _order(order_id: str = "c1", **overrides: Any) -> BrokeredOrder:
    fields: dict[str, Any] = {"order_id": order_id, "side": "bid", "type": "limit", "price": 250.0, "quantity": 0.5}
    fields.update(overrides)
    return BrokeredOrder(**fields)


def _drain(q: asyncio.Queue[OrderStatusReport]) -> list[OrderStatusReport]:
    return [q.get_nowait() for _ in range(q.qsize())]


@pytest.mark.asyncio
async def test_send_order_posts_venue_order_and_reports_working(monkeypatch: pytest.MonkeyPatch) -> None:
    venue, _sock, oe = _make_gateway(monkeypatch)
    q = oe.order_update.subscribe()

    receipt = oe.send_order(_order("c1"))
    # Nothing has resolved yet: the receipt only means "scheduled".
    assert q.empty()
    assert receipt.sent_time is not None

    await oe.aclose()

    method, url, body = venue.calls[0]
    assert (method, url) == ("POST", "https://api.test/v1/order")
    assert body == {
        "accountUuid": "acct-1",
        "customerUuid": "cust-1",
        "orderType": "LIMIT",
        "requestedQuantity": 0.5,
        "requestedPrice": 250.0,
        "side": "BUY",
        "symbol": "BTCUSD",
        "routingMethod": 2,
        "clientOrderId": "c1",
    }

    (report,) = _drain(q)
    assert report.order_id == "c1"
    assert report.exchange_id == "V1"
    assert report.order_status == "working"
    assert report.cancel_rejected is None


@pytest.mark.asyncio
async def test_rejected_send_carries_venue_message(monkeypatch: pytest.MonkeyPatch) -> None:
    venue, _sock, oe = _make_gateway(monkeypatch)
    venue.reject_with = "Insufficient funds"
    q = oe.order_update.subscribe()

    oe.send_order(_order("c1", side="ask", type="market"))
    await oe.aclose()

    assert venue.calls[0][2]["side"] == "SELL"
    assert venue.calls[0][2]["orderType"] == "MARKET"
    (report,) = _drain(q)
    assert report.order_id == "c1"
    assert report.order_status == "rejected"
    assert report.reject_message == "Insufficient funds"
    assert report.cancel_rejected is False


@pytest.mark.asyncio
async def test_send_then_cancel_gives_two_independent_reports(monkeypatch: pytest.MonkeyPatch) -> None:
    venue, _sock, oe = _make_gateway(monkeypatch)
    q = oe.order_update.subscribe()

    oe.send_order(_order("c1"))
    oe.cancel_order(BrokeredCancel(order_id="c1", request_id="c1-cxl", side="bid", exchange_id="V1"))
    await oe.aclose()

    assert [(m, u) for m, u, _ in venue.calls] == [
        ("POST", "https://api.test/v1/order"),
        ("DELETE", "https://api.test/v1/cancel/V1"),
    ]
    reports = _drain(q)
    assert len(reports) == 2
    assert sorted(r.order_status for r in reports) == ["cancelled", "working"]
    assert all(r.order_id == "c1" and r.exchange_id == "V1" for r in reports)


@pytest.mark.asyncio
async def test_rejected_cancel_sets_cancel_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    venue, _sock, oe = _make_gateway(monkeypatch)
    venue.reject_with = "Order already closed"
    q = oe.order_update.subscribe()

    oe.cancel_order(BrokeredCancel(order_id="c1", request_id="c1-cxl", side="bid", exchange_id="V9"))
    await oe.aclose()

    (report,) = _drain(q)
    assert report.order_id == "c1"
    assert report.order_status == "rejected"
    assert report.cancel_rejected is True
    assert report.reject_message == "Order already closed"


@pytest.mark.asyncio
async def test_replace_is_one_cancel_and_one_send(monkeypatch: pytest.MonkeyPatch) -> None:
    venue, _sock, oe = _make_gateway(monkeypatch)
    q = oe.order_update.subscribe()

    oe.replace_order(
        BrokeredReplace(
            order_id="c2",
            orig_order_id="c1",
            exchange_id="V-ORIG",
            side="bid",
            type="limit",
            price=249.0,
            quantity=0.25,
        )
    )
    await oe.aclose()

    deletes = [c for c in venue.calls if c[0] == "DELETE"]
    posts = [c for c in venue.calls if c[0] == "POST"]
    assert [u for _, u, _ in deletes] == ["https://api.test/v1/cancel/V-ORIG"]
    assert len(posts) == 1
    assert posts[0][2]["clientOrderId"] == "c2"
    assert posts[0][2]["requestedPrice"] == 249.0

    by_status = {r.order_status: r for r in _drain(q)}
    assert by_status["cancelled"].order_id == "c1"
    assert by_status["working"].order_id == "c2"


@pytest.mark.asyncio
async def test_unsupported_side_raises_before_any_request(monkeypatch: pytest.MonkeyPatch) -> None:
    venue, _sock, oe = _make_gateway(monkeypatch)

    with pytest.raises(ValueError, match="side"):
        oe.send_order(_order("c1", side="unknown"))
    await oe.aclose()

    assert venue.calls == []


@pytest.mark.asyncio
async def test_unencodable_replace_keeps_the_original_order(monkeypatch: pytest.MonkeyPatch) -> None:
    venue, _sock, oe = _make_gateway(monkeypatch)
    q = oe.order_update.subscribe()

    with pytest.raises(ValueError, match="side"):
        oe.replace_order(
            BrokeredReplace(
                order_id="c2",
                orig_order_id="c1",
                exchange_id="V-ORIG",
                side="unknown",
                type="limit",
                price=249.0,
                quantity=0.25,
            )
        )
    await oe.aclose()

    assert venue.calls == []
    assert q.empty()


@pytest.mark.asyncio
async def test_failed_ack_is_logged_without_report_or_retry(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    _venue, _sock, oe = _make_gateway(monkeypatch)
    calls = 0

    def failing_request(*args: Any, **kwargs: Any) -> _FakeResponse:
        nonlocal calls
        calls += 1
        raise requests.Timeout("timed out")

    monkeypatch.setattr("coinsetter.client.requests.request", failing_request)
    q = oe.order_update.subscribe()

    with caplog.at_level("ERROR"):
        oe.send_order(_order("c1"))
        await oe.aclose()

    assert calls == 1
    assert q.empty()
    assert "c1" in caplog.text


def test_orders_channel_is_scoped_to_customer(monkeypatch: pytest.MonkeyPatch) -> None:
    _venue, sock, oe = _make_gateway(monkeypatch)

    assert "orders" in sock.handlers
    assert oe.cancels_by_client_order_id is False
    assert oe.connect_changed.latest == "disconnected"


def test_generated_client_order_ids_are_unique(monkeypatch: pytest.MonkeyPatch) -> None:
    _venue, _sock, oe = _make_gateway(monkeypatch)

    ids = {oe.generate_client_order_id() for _ in range(1000)}
    assert len(ids) == 1000
    assert all(isinstance(i, str) and 0 < len(i) <= 16 for i in ids)


def _status_push(stage: str, **overrides: Any) -> dict[str, Any]:
    push: dict[str, Any] = {
        "uuid": "V1",
        "customerUuid": "cust-1",
        "clientOrderId": "c1",
        "filledQuantity": 0.0,
        "orderType": "LIMIT",
        "stage": stage,
        "requestedQuantity": 0.5,
        "requestedPrice": 250.0,
        "side": "BUY",
        "symbol": "BTCUSD",
        "exchId": "COINSETTER",
    }
    push.update(overrides)
    return push


@pytest.mark.parametrize(
    ("stage", "status", "partial"),
    [
        ("NEW", "working", False),
        ("PARTIAL_FILL", "working", True),
        ("EXPIRED", "cancelled", False),
        ("REJECTED", "rejected", False),
        ("WAT", "other", False),
    ],
)
def test_status_push_maps_stage(monkeypatch: pytest.MonkeyPatch, stage: str, status: str, partial: bool) -> None:
    _venue, sock, oe = _make_gateway(monkeypatch)
    q = oe.order_update.subscribe()

    sock.handlers["orders"](_status_push(stage, filledQuantity=0.2 if partial else 0.0))

    (report,) = _drain(q)
    assert report.order_status == status
    assert report.partially_filled is partial
    assert report.order_id == "c1"
    assert report.exchange_id == "V1"


def test_status_push_carries_order_details(monkeypatch: pytest.MonkeyPatch) -> None:
    _venue, sock, oe = _make_gateway(monkeypatch)
    q = oe.order_update.subscribe()

    sock.handlers["orders"](_status_push("OPEN", side="SELL", orderType="STOP", filledQuantity=0.1))

    (report,) = _drain(q)
    assert report.cum_quantity == 0.1
    assert report.side == "ask"
    assert report.type is None
    assert report.price == 250.0
    assert report.quantity == 0.5
    assert report.cancel_rejected is None
