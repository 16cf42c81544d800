"""Recorder that writes observability records without blocking the event loop."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any

from .models import ObservabilityRecord, RecordKind, utc_now
from .sinks import ObservabilitySink

logger = logging.getLogger(__name__)


def _extract_str(message: Any, name: str) -> str | None:
    value = getattr(message, name, None)
    if isinstance(value, str) and value:
        return value
    return None


def _extract_occurred_at(message: Any) -> datetime:
    """Use the event's own `time` (or `sent_time`), falling back to now."""
    for name in ("time", "sent_time"):
        ts = getattr(message, name, None)
        if isinstance(ts, datetime):
            return ts
    return utc_now()


def _extract_summary(message: Any) -> dict[str, Any]:
    """Build a small summary payload for a message.

    Order book snapshots are reduced to their depth and top of book so a busy
    depth channel does not bloat the store.
    """
    if hasattr(message, "model_dump"):
        data = message.model_dump()
    elif isinstance(message, dict):
        data = dict(message)
    else:
        data = {"value": message if isinstance(message, (str, int, float, bool)) else repr(message)}

    for side in ("bids", "asks"):
        levels = data.pop(side, None)
        if isinstance(levels, list):
            data[f"{side}_depth"] = len(levels)
            data[f"best_{side[:-1]}"] = levels[0] if levels else None
    return data


class ObservabilityRecorder:
    """Queues records and writes them in a background task."""

    def __init__(self, *, sink: ObservabilitySink, max_queue_size: int = 10000) -> None:
        """Create a recorder backed by a synchronous sink.

        Args:
            sink: Storage backend used by the background writer.
            max_queue_size: Bound for in-memory buffering; records are dropped
                when full so publishing never blocks.
        """
        self._sink = sink
        self._queue: asyncio.Queue[ObservabilityRecord | None] = asyncio.Queue(maxsize=max_queue_size)
        self._worker: asyncio.Task[None] | None = None
        self._closed = False

        self._write_failures = 0
        self._first_failure_at: datetime | None = None
        self._last_failure_at: datetime | None = None

    def _ensure_started(self) -> None:
        """Start the background writer once an event loop is running."""
        if self._worker is not None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Records published before the loop starts wait in the queue.
            return
        self._worker = loop.create_task(self._run_worker(), name="observability-writer")

    def _note_failure(self) -> None:
        now = utc_now()
        self._write_failures += 1
        self._first_failure_at = self._first_failure_at or now
        self._last_failure_at = now

    def record_message(
        self,
        message: Any,
        *,
        kind: RecordKind,
        stage: str,
        correlation_id: str | None = None,
    ) -> None:
        """Record a message by enqueueing an ObservabilityRecord (non-blocking)."""
        if self._closed:
            return

        self._ensure_started()

        order_id = _extract_str(message, "order_id")
        exchange_id = _extract_str(message, "exchange_id")

        record = ObservabilityRecord(
            kind=kind,
            event_type=type(message).__name__,
            stage=stage,
            correlation_id=correlation_id or order_id or exchange_id,
            order_id=order_id,
            exchange_id=exchange_id,
            occurred_at=_extract_occurred_at(message),
            logged_at=utc_now(),
            summary=_extract_summary(message),
        )

        try:
            self._queue.put_nowait(record)
        except asyncio.QueueFull:
            self._note_failure()

    async def aclose(self) -> None:
        """Flush and close the recorder.

        Safe to call multiple times.
        """
        if self._closed:
            return
        self._closed = True
        self._ensure_started()
        if self._worker is not None:
            await self._queue.put(None)
            await self._worker
        await asyncio.to_thread(self._sink.close)

    async def _run_worker(self) -> None:
        """Background loop that drains the queue and writes to the sink."""
        while True:
            item = await self._queue.get()
            try:
                if item is None:
                    return
                await asyncio.to_thread(self._sink.write, item)
            except Exception:  # noqa: BLE001 - observability must not crash trading
                logger.exception("Failed writing observability record")
                self._note_failure()
            finally:
                self._queue.task_done()

    def degraded_status(self) -> dict[str, Any]:
        """Return a minimal degraded-status snapshot."""
        return {
            "write_failures": self._write_failures,
            "first_failure_at": self._first_failure_at,
            "last_failure_at": self._last_failure_at,
        }
