"""Entry point: python -m gigaclaw"""

from __future__ import annotations

import asyncio
import signal
import sys

from gigaclaw.infrastructure.logger import logger


async def main() -> None:
    from gigaclaw.app import Orchestrator

    orchestrator = Orchestrator()

    # Handle graceful shutdown
    shutdown_event = asyncio.Event()

    def signal_handler(sig: signal.Signals) -> None:
        logger.info("Received shutdown signal", signal=sig.name)
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler, sig)

    try:
        await orchestrator.start()
        await shutdown_event.wait()
    finally:
        await orchestrator.shutdown()


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
    except RuntimeError as err:
        logger.error("Failed to start GigaClaw", error=str(err))
        sys.exit(1)


if __name__ == "__main__":
    run()
