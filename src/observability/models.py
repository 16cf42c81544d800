"""Observability record models.

A record is a flattened, append-only view of one gateway event:
- linkable across the ack and push paths via the client order id
- stamped with both the event's own time and the time it was recorded
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(tz=timezone.utc)


RecordKind = Literal["event", "error"]


class ObservabilityRecord(BaseModel):
    """A durable, structured record derived from a published gateway event."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    kind: RecordKind

    # Model class name, e.g. "OrderStatusReport" or "Market".
    event_type: str

    # Bus the event was published on, e.g. "coinsetter.order_update".
    stage: str

    correlation_id: str | None = None
    order_id: str | None = None
    exchange_id: str | None = None

    occurred_at: datetime
    logged_at: datetime = Field(default_factory=utc_now)

    summary: dict[str, Any] = Field(default_factory=dict)
