"""Demo entrypoint wiring the Coinsetter gateway.

This module is a small manual harness that:

- Loads configuration from environment.
- Builds the combined Coinsetter gateway (orders go to the null gateway unless
  COINSETTER_ORDER_DESTINATION=Coinsetter).
- Logs every event published on every gateway stream until interrupted.

It is **not** a trading engine; it only shows what the engine would observe.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

from config import load_config
from observability import DuckDBObservabilitySink, ObservabilityRecorder
from trading.bus import EventBus
from trading.gateways.coinsetter import Coinsetter

logger = logging.getLogger(__name__)


async def _log_events(bus: EventBus) -> None:
    """Continuously log events observed on the given bus."""
    q = bus.subscribe()
    try:
        while True:
            event = await q.get()
            logger.info("[%s] %s", bus.name, event)
    finally:
        bus.unsubscribe(q)


async def run_demo() -> None:
    """Run the gateway until cancelled."""
    cfg = load_config()

    repo_root = Path(__file__).resolve().parent.parent
    db_path = cfg.observability_db_path or str(repo_root / "observability.duckdb")
    recorder = ObservabilityRecorder(sink=DuckDBObservabilitySink(path=db_path))

    gateway = Coinsetter(cfg.coinsetter, recorder=recorder)
    buses: list[EventBus] = [
        gateway.md.connect_changed,
        gateway.md.market_data,
        gateway.md.market_trade,
        gateway.oe.connect_changed,
        gateway.oe.order_update,
        gateway.pg.position_update,
    ]
    log_tasks = [asyncio.create_task(_log_events(bus), name=f"log-{bus.name}") for bus in buses]

    logger.info(
        "%s: pairs=%s make_fee=%s take_fee=%s",
        gateway.base.name(),
        gateway.base.supported_currency_pairs,
        gateway.base.make_fee(),
        gateway.base.take_fee(),
    )
    try:
        await gateway.start()
        await asyncio.Event().wait()
    finally:
        for t in log_tasks:
            t.cancel()
        await asyncio.gather(*log_tasks, return_exceptions=True)
        await gateway.aclose()
        await recorder.aclose()


def main() -> None:
    """CLI entrypoint for running the demo with `python src/main.py`."""
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        asyncio.run(run_demo())
    except KeyboardInterrupt:
        logger.info("interrupted; gateway closed")


if __name__ == "__main__":
    main()
