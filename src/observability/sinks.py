"""Where gateway event records end up.

A sink is written to from the recorder's worker thread, one record at a time.
Both sinks can answer the question operators ask most: what happened to a
given client order id, across the ack path and the push path.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Protocol

import duckdb

from .models import ObservabilityRecord


class ObservabilitySink(Protocol):
    def write(self, record: ObservabilityRecord) -> None:
        """Persist one record. May block."""

    def close(self) -> None:
        """Release the underlying store."""


class InMemoryObservabilitySink:
    """Keeps records in a list; used by tests."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: list[ObservabilityRecord] = []

    def write(self, record: ObservabilityRecord) -> None:
        with self._lock:
            self._records.append(record)

    def close(self) -> None:
        pass

    def snapshot(self) -> Sequence[ObservabilityRecord]:
        with self._lock:
            return list(self._records)

    def order_trail(self, order_id: str) -> list[ObservabilityRecord]:
        """Records for one client order id, oldest first."""
        trail = [r for r in self.snapshot() if r.order_id == order_id]
        return sorted(trail, key=lambda r: r.occurred_at)


_COLUMNS = (
    "logged_at",
    "occurred_at",
    "kind",
    "event_type",
    "stage",
    "correlation_id",
    "order_id",
    "exchange_id",
    "summary_json",
)


class DuckDBObservabilitySink:
    """Embedded DuckDB table with one row per published gateway event.

    The book summary and the rest of each event go into `summary_json`; the
    ids used for correlation get their own columns so they can be queried.
    """

    def __init__(self, *, path: str | Path, table: str = "gateway_events") -> None:
        self.path = Path(path)
        self.table = table
        self._lock = threading.Lock()
        self._conn = duckdb.connect(str(self.path))
        with self._lock:
            self._conn.execute(
                f"""
                create table if not exists {table} (
                  logged_at timestamptz not null,
                  occurred_at timestamptz not null,
                  kind varchar not null,
                  event_type varchar not null,
                  stage varchar not null,
                  correlation_id varchar,
                  order_id varchar,
                  exchange_id varchar,
                  summary_json varchar not null
                )
                """
            )

    def write(self, record: ObservabilityRecord) -> None:
        row = [
            record.logged_at,
            record.occurred_at,
            record.kind,
            record.event_type,
            record.stage,
            record.correlation_id,
            record.order_id,
            record.exchange_id,
            json.dumps(record.summary, separators=(",", ":"), sort_keys=True, default=str),
        ]
        placeholders = ", ".join("?" for _ in _COLUMNS)
        with self._lock:
            self._conn.execute(
                f"insert into {self.table} ({', '.join(_COLUMNS)}) values ({placeholders})",
                row,
            )

    def count_by_stage(self) -> dict[str, int]:
        """Number of stored records per bus name."""
        with self._lock:
            rows = self._conn.execute(f"select stage, count(*) from {self.table} group by stage").fetchall()
        return {stage: int(n) for stage, n in rows}

    def order_trail(self, order_id: str) -> list[dict[str, Any]]:
        """Rows for one client order id, oldest first, summary decoded."""
        with self._lock:
            rows = self._conn.execute(
                f"select occurred_at, stage, event_type, exchange_id, summary_json "
                f"from {self.table} where order_id = ? order by occurred_at, logged_at",
                [order_id],
            ).fetchall()
        return [
            {
                "occurred_at": occurred_at,
                "stage": stage,
                "event_type": event_type,
                "exchange_id": exchange_id,
                "summary": json.loads(summary_json),
            }
            for occurred_at, stage, event_type, exchange_id, summary_json in rows
        ]

    def close(self) -> None:
        with self._lock:
            self._conn.close()
