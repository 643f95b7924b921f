"""Entry point: python -m r2backup"""
import logging
import signal
import sys

from r2backup import create_service
from r2backup.config import ConfigurationError
from r2backup.backup.storage import StorageError
from r2backup.scheduler import ScheduleRegistrationError

logger = logging.getLogger('r2backup')


def main():
    try:
        service = create_service()
    except ConfigurationError as e:
        # Logging is not configured yet
        print(f"Failed to load configuration: {e}", file=sys.stderr)
        return 1
    except StorageError as e:
        logger.error(f"Failed to create storage client: {e}")
        return 1

    def handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, shutting down")
        service.stop(wait=False)

    signal.signal(signal.SIGTERM, handle_signal)
    signal.signal(signal.SIGINT, handle_signal)

    try:
        logger.info("Running initial backup...")
        service.start()
    except ScheduleRegistrationError as e:
        logger.error(f"Failed to schedule backup: {e}")
        return 1

    logger.info("Backup service started successfully. Waiting for scheduled backups...")
    service.wait()
    return 0


if __name__ == '__main__':
    sys.exit(main())
