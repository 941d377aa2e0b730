"""Application entry point for the Lightning Charge engine."""

from __future__ import annotations

import asyncio
import logging
import signal

from prometheus_client import start_http_server

from lightning_charge.config.settings import AppConfig
from lightning_charge.engine.client import ChargeEngine

logger = logging.getLogger(__name__)


async def run(config: AppConfig) -> None:
    """Run the engine until SIGINT/SIGTERM."""
    engine = ChargeEngine(config)
    await engine.initialize()
    logger.info("Lightning Charge engine started (node %s)", config.node.url)

    if config.metrics.enabled and engine.metrics is not None:
        start_http_server(config.metrics.port, registry=engine.metrics.registry)
        logger.info("Metrics exposed on :%d", config.metrics.port)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    try:
        await stop.wait()
    finally:
        logger.info("Shutting down")
        await engine.close()


def main() -> None:
    """Start the Lightning Charge engine."""
    config = AppConfig()
    logging.basicConfig(
        level=logging.DEBUG if config.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(run(config))


if __name__ == "__main__":
    main()
