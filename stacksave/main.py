"""
Main entry point for the standalone listener service.
Runs the event listener and reconciliation without the HTTP server.
"""

import asyncio
import signal
from typing import List, Optional

import structlog

from stacksave.core.config import settings
from stacksave.core.database import close_database
from stacksave.core.exceptions import SubscriptionError
from stacksave.core.logging import setup_logging
from stacksave.sync.container import SyncContainer, get_sync_container, shutdown_sync_container


logger = structlog.get_logger(__name__)


class ListenerService:
    """
    Listener service coordinator.

    Starts the subscription supervisor, logs its status periodically and
    shuts everything down on SIGINT/SIGTERM.
    """

    def __init__(self, status_interval: Optional[float] = None):
        self.container: Optional[SyncContainer] = None
        self.status_interval = (
            settings.listener_status_interval if status_interval is None else status_interval
        )
        self.running = False
        self.tasks: List[asyncio.Task] = []
        self.stop_task: Optional[asyncio.Task] = None
        self._stopped = asyncio.Event()

    async def initialize(self, container: Optional[SyncContainer] = None):
        """Build the sync container, or adopt one that is passed in."""
        try:
            logger.info("🚀 Initializing listener service")
            self.container = container or await get_sync_container()
            logger.info("✅ Listener service initialized")
        except Exception as e:
            logger.error("❌ Failed to initialize listener service", error=str(e))
            raise

    async def start(self):
        """Start listening and block until stop() is called."""
        logger.info(
            "🚀 Starting listener service",
            contract=settings.stacksave_contract_address,
            rpc_url=settings.rpc_url
        )
        self.running = True

        try:
            await self.container.supervisor.start_listening()
        except SubscriptionError as e:
            # Supervisor keeps retrying in the background
            logger.error("❌ Initial subscription failed", error=str(e))

        self.tasks.append(asyncio.create_task(self._periodic_status_log()))
        logger.info("✅ Listener service started")

        await self._stopped.wait()

    async def stop(self):
        """Stop the listener service."""
        if not self.running:
            return
        logger.info("⏹️ Stopping listener service")
        self.running = False

        for task in self.tasks:
            if not task.done():
                task.cancel()
        if self.tasks:
            await asyncio.gather(*self.tasks, return_exceptions=True)
        self.tasks.clear()

        if self.container is not None:
            await self.container.supervisor.stop_listening()

        self._stopped.set()
        logger.info("✅ Listener service stopped")

    def request_stop(self) -> asyncio.Task:
        """Schedule stop() from a synchronous callback such as a signal handler."""
        if self.stop_task is None or self.stop_task.done():
            self.stop_task = asyncio.create_task(self.stop())
        return self.stop_task

    async def _periodic_status_log(self):
        """Log listener status every status_interval seconds."""
        while self.running:
            try:
                await asyncio.sleep(self.status_interval)
                if not self.running:
                    break

                status = self.container.supervisor.get_status()
                logger.info("📊 Listener status", **status.to_dict())

                if status.stats.get("events_dropped", 0) > 0:
                    logger.warning("⚠️ Events dropped", events_dropped=status.stats["events_dropped"])

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("❌ Status check error", error=str(e))


async def main():
    """Run the listener service until signalled."""
    setup_logging(settings.log_file)

    service = ListenerService()
    loop = asyncio.get_running_loop()

    def signal_handler(signum):
        logger.info("Received signal, shutting down...", signal=signum)
        service.request_stop()

    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, signal_handler, signum)

    try:
        await service.initialize()
        await service.start()
    except Exception as e:
        logger.error("Listener service failed", error=str(e))
        raise
    finally:
        await service.stop()
        await shutdown_sync_container()
        await close_database()


def run():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
