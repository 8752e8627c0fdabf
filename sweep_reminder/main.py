"""Main entry point for the street cleaning reminder service"""
import asyncio
import signal
import sys

from .config import Config
from .storage.database import Database
from .services.segment_cache import SegmentCache
from .services.sms_client import SMSClient
from .services.notification_service import NotificationService
from .services.subscription_service import SubscriptionService
from .utils.logger import setup_logger
from .utils.timezone import now_utc

logger = setup_logger(__name__)

# Seconds between retention cleanups
PRUNE_INTERVAL = 24 * 60 * 60


class ReminderService:
    """Main service orchestrator"""

    def __init__(self):
        """Initialize service components"""
        self.config = Config()
        self.database = Database(db_path=self.config.database_path)
        self.running = False

        # Shared by everything that reads segment data
        self.segment_cache = SegmentCache(
            self.config.segments_source,
            ttl_seconds=self.config.segments_cache_ttl
        )
        # Entry point for the user-facing layer (selections, overview, SMS
        # replies); shares the database and cache with the notifier
        self.subscription_service = SubscriptionService(
            database=self.database,
            segment_cache=self.segment_cache,
            tz=self.config.civil_timezone
        )
        self.sms_client = SMSClient(
            account_sid=self.config.twilio_account_sid,
            auth_token=self.config.twilio_auth_token,
            from_number=self.config.twilio_from_number
        )
        self.notification_service = NotificationService(
            database=self.database,
            sms_client=self.sms_client,
            check_interval=self.config.check_interval,
            alerts_url=self.config.alerts_base_url,
            tz=self.config.civil_timezone
        )

        # Setup signal handlers for graceful shutdown
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals"""
        logger.info(f"Received signal {signum}, shutting down gracefully...")
        self.running = False

    async def start(self):
        """Start the service"""
        self.running = True
        logger.info("Starting street cleaning reminder service...")

        self._prune()

        notification_task = asyncio.create_task(self.notification_service.start())
        prune_task = asyncio.create_task(self._prune_loop())

        try:
            # Run until stopped
            while self.running:
                await asyncio.sleep(1)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            logger.info("Stopping services...")
            self.notification_service.stop()
            notification_task.cancel()
            prune_task.cancel()
            logger.info("Service stopped")

    async def _prune_loop(self):
        """Background loop for retention cleanup"""
        while self.running:
            try:
                await asyncio.sleep(PRUNE_INTERVAL)
                if self.running:
                    self._prune()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in prune loop: {e}")

    def _prune(self):
        removed = self.database.prune_old_records(
            now_utc(), days=self.config.record_retention_days
        )
        if removed:
            logger.info(f"Pruned {removed} old stage record(s)")


async def main():
    """Main entry point"""
    try:
        service = ReminderService()
        await service.start()
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
