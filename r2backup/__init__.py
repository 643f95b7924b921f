import os
import logging
from logging.handlers import RotatingFileHandler


__version__ = '1.0.0'


def configure_logging(config):
    """Configure application logging"""

    # Set log level based on environment
    log_level = logging.DEBUG if config.debug else logging.INFO

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_formatter = logging.Formatter(
        '[%(asctime)s] %(levelname)s in %(module)s: %(message)s'
    )
    console_handler.setFormatter(console_formatter)
    handlers = [console_handler]

    # File handler, only when a log directory is configured
    if config.log_dir:
        os.makedirs(config.log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(config.log_dir, 'r2backup.log'),
            maxBytes=10485760,  # 10MB
            backupCount=10
        )
        file_handler.setLevel(log_level)
        file_formatter = logging.Formatter(
            '[%(asctime)s] %(levelname)s [%(name)s.%(funcName)s:%(lineno)d] %(message)s'
        )
        file_handler.setFormatter(file_formatter)
        handlers.append(file_handler)

    # Configure root logger
    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    # APScheduler is chatty at DEBUG/INFO
    logging.getLogger('apscheduler').setLevel(logging.WARNING)
    # Keep request signing details out of the log
    logging.getLogger('botocore').setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configured (level: {logging.getLevelName(log_level)})")


def create_service(config_name=None):
    """
    Backup service factory.

    Loads and validates configuration, configures logging and builds the
    scheduler around an S3Storage for the configured bucket. Nothing is
    scheduled until start() is called on the returned scheduler.

    Raises:
        ConfigurationError: If the environment is incomplete or malformed
        StorageError: If the storage client cannot be created
    """
    from r2backup.config import load_config
    from r2backup.backup.storage import S3Storage
    from r2backup.scheduler import BackupScheduler

    config = load_config(config_name)

    configure_logging(config)
    logger = logging.getLogger(__name__)
    logger.info(f"Starting backup service in timezone: {config.timezone}")

    # Ensure the staging directory exists
    os.makedirs(config.backup_dir, exist_ok=True)

    store = S3Storage.from_config(config)
    logger.info(f"Using bucket {config.bucket} at {config.resolved_endpoint_url}")

    return BackupScheduler(config, store)
