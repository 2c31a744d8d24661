"""Main application entry point for shortstash."""

import asyncio
import logging
import signal
import sys
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from batch_driver import BatchDriver
from models.job import BatchReport
from utils.config import AppConfig, load_config, setup_logging, validate_config
from utils.database import CursorStore
from utils.errors import StoreUnavailable

logger = logging.getLogger(__name__)


class ShortstashApp:
    """Main application class for shortstash."""

    def __init__(self, config: Optional[AppConfig] = None):
        self.config = config
        self.driver: Optional[BatchDriver] = None
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.running = False

    def setup(self) -> None:
        """Load configuration and open the store.

        Raises:
            ValueError: If the configuration is invalid
            StoreUnavailable: If the database cannot be opened
        """
        if self.config is None:
            self.config = load_config()
        setup_logging(self.config.log_level)

        config_errors = validate_config(self.config)
        if config_errors:
            raise ValueError("Configuration errors: " + "; ".join(config_errors))

        store = CursorStore(self.config.database_path)
        self.driver = BatchDriver(self.config, store)

    async def run_batch(self) -> BatchReport:
        """Run one reconcile-and-run pass."""
        return await self.driver.reconcile_and_run()

    async def run_once(self) -> BatchReport:
        logger.info("Scheduler is disabled. Running a one-time check...")
        return await self.run_batch()

    async def run_scheduled(self) -> None:
        """Run the batch on the configured cron hours until a shutdown signal."""
        self.scheduler = AsyncIOScheduler(
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": 300,
            }
        )
        self.scheduler.add_job(
            self.run_batch,
            CronTrigger(hour=self.config.schedule_hours, minute=0),
            id="shortstash-batch",
            replace_existing=True,
        )
        self.scheduler.start()
        self.running = True

        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

        logger.info(f"Scheduler is active. Checks run daily at hour(s) {self.config.schedule_hours}.")

        try:
            while self.running:
                await asyncio.sleep(1)
        finally:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler shutdown complete.")

    async def start(self) -> None:
        self.setup()
        if self.config.scheduler_enabled:
            await self.run_scheduled()
        else:
            await self.run_once()

    def _signal_handler(self, signum, _):
        """Handle shutdown signals gracefully."""
        logger.info(f"Received signal {signum}, shutting down gracefully...")
        self.running = False


def main():
    """Main entry point."""
    app = ShortstashApp()

    try:
        asyncio.run(app.start())
    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
        sys.exit(0)
    except StoreUnavailable as e:
        logger.error(f"A fatal error occurred: {e}")
        sys.exit(1)
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)
    except Exception as e:
        logger.error(f"Application error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
