"""
ITP Monitor Main Entry Point

Builds the telemetry context once and hands it to every component:
- ConsumptionAnalyzer: on-demand building health reports
- ContinuousTelemetryGenerator: synthetic meters when none are attached
- WebServer: REST API for dashboards and operators
"""
__version__ = "0.1.0"

import asyncio
import logging
import os

from interfaces import TelemetryStore
from metering import (
    ConsumptionAnalyzer, ContinuousTelemetryGenerator, HistoricalBackfill,
    InMemoryTelemetryStore, SqliteTelemetryStore, TelemetryContext, TelemetryStoreError,
    seed_demo_buildings,
)
from web import EventFeed, WebServer

# Configure Logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=logging.INFO
)
logger = logging.getLogger("Main")


def env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).lower() == "true"


def create_store() -> TelemetryStore:
    """SQLite when ITP_DB_PATH is set, otherwise a process-local store."""
    db_path = os.environ.get("ITP_DB_PATH")
    if db_path:
        return SqliteTelemetryStore(db_path)
    logger.warning("ITP_DB_PATH not set, telemetry is kept in memory only")
    return InMemoryTelemetryStore()


class MonitorService:
    """
    Main orchestrator (SRP - only coordinates components).
    Dependencies are injected (DIP).
    """

    def __init__(self,
                 context: TelemetryContext,
                 analyzer: ConsumptionAnalyzer,
                 generator: ContinuousTelemetryGenerator,
                 web_server: WebServer = None):
        self._context = context
        self._analyzer = analyzer
        self._generator = generator
        self._web = web_server
        self._stopped = False

    def initialize(self, fill_initial_data: bool = False, history_days: int = 7,
                   enable_generation: bool = False) -> None:
        """Seed data if asked, then start the generator and web server."""
        logger.info("Initializing ITP Monitor...")

        if fill_initial_data:
            try:
                seed_demo_buildings(self._context.store, self._context.clock)
                HistoricalBackfill(self._context).generate(history_days)
                logger.info("Initial data filled successfully")
            except (TelemetryStoreError, ValueError) as e:
                logger.warning(f"Could not fill initial data: {e}")

        if enable_generation:
            self._generator.start()
            logger.info("Continuous data generation enabled")

        if self._web:
            self._web.start()

        logger.info("ITP Monitor initialized")

    async def run(self) -> None:
        """Idle until stopped; all work happens on component threads."""
        logger.info("Entering main loop")
        while not self._stopped:
            await asyncio.sleep(1)

    def stop(self) -> None:
        """Stop all components."""
        logger.info("Stopping ITP Monitor...")
        self._stopped = True
        self._generator.stop()
        if self._web:
            self._web.stop()
        logger.info("ITP Monitor stopped")


async def main():
    """Application entry point."""
    feed = EventFeed()
    context = TelemetryContext.create(
        create_store(),
        notifier=feed,
        config_path=os.environ.get("ITP_CONFIG"),
    )
    analyzer = ConsumptionAnalyzer(context)
    generator = ContinuousTelemetryGenerator(context)
    web = WebServer(
        context, analyzer, generator, feed,
        host=os.environ.get("WEB_HOST", "0.0.0.0"),
        port=int(os.environ.get("WEB_PORT", "8080")),
    )

    service = MonitorService(context, analyzer, generator, web)
    try:
        service.initialize(
            fill_initial_data=env_flag("FILL_INITIAL_DATA"),
            history_days=int(os.environ.get("HISTORY_DAYS", "7")),
            enable_generation=env_flag("ENABLE_DATA_GENERATION"),
        )
        await service.run()
    finally:
        service.stop()


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    run()
