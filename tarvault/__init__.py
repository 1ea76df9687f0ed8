import os
import logging
from logging.handlers import RotatingFileHandler
from typing import Optional


def configure_logging(debug: bool = False, log_dir: Optional[str] = None):
    """
    Configure process-wide logging.

    Args:
        debug: Log at DEBUG level instead of INFO
        log_dir: Directory for the rotating log file; None or '' disables it
    """
    log_level = logging.DEBUG if debug else logging.INFO

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_formatter = logging.Formatter(
        '[%(asctime)s] %(levelname)s in %(module)s: %(message)s'
    )
    console_handler.setFormatter(console_formatter)
    handlers = [console_handler]

    # File handler
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, 'tarvault.log'),
            maxBytes=10485760,  # 10MB
            backupCount=10
        )
        file_handler.setLevel(log_level)
        file_formatter = logging.Formatter(
            '[%(asctime)s] %(levelname)s [%(name)s.%(funcName)s:%(lineno)d] %(message)s'
        )
        file_handler.setFormatter(file_formatter)
        handlers.append(file_handler)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    # Library chatter stays at INFO even in debug mode
    for noisy in ('botocore', 'boto3', 's3transfer', 'urllib3'):
        logging.getLogger(noisy).setLevel(logging.INFO)

    logging.getLogger(__name__).info(f"Logging configured (level: {logging.getLevelName(log_level)})")


def create_agent(config_name=None, environ=None):
    """
    Backup agent factory.

    Loads configuration, configures logging, prepares working directories
    and builds the storage client.

    Returns:
        Tuple of (config, storage)

    Raises:
        ConfigError: If the configuration profile is unknown
        StorageError: If the storage client cannot be created or the
            S3 bucket is missing or not accessible
    """
    from tarvault.config import load_config
    from tarvault.backup.storage import S3Storage, create_storage

    config = load_config(config_name, environ)

    configure_logging(config.DEBUG, config.LOG_DIR)

    # Ensure required directories exist
    os.makedirs(config.TEMP_DIR, exist_ok=True)

    storage = create_storage(config)

    # Fail at startup on a missing or forbidden bucket
    if isinstance(storage, S3Storage):
        storage.test_connection()
        logging.getLogger(__name__).info(f"Connected to S3 bucket {storage.bucket_name}")

    logging.getLogger(__name__).info(
        f"Agent ready (storage: {config.STORAGE_BACKEND}, "
        f"destination: {config.BACKUP_PREFIX or '<root>'}, "
        f"retention: {config.RETENTION_DAYS} days)"
    )

    return config, storage
