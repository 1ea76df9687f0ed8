import logging
import os
from typing import List, Mapping, Optional

from tarvault.backup.sizes import parse_size_setting
from tarvault.utils.timestamps import load_timezone


logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 30


class ConfigError(Exception):
    """Raised when the configuration cannot be loaded."""
    pass


def _flag(value: Optional[str], default: bool = False) -> bool:
    if value is None or value == '':
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _retention_days(value: Optional[str]) -> int:
    if value is None or value == '':
        return DEFAULT_RETENTION_DAYS
    try:
        days = int(value)
    except ValueError:
        days = -1
    if days < 0:
        logger.warning(f"Invalid RETENTION_DAYS value: {value}, using {DEFAULT_RETENTION_DAYS}")
        return DEFAULT_RETENTION_DAYS
    return days


def _patterns(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [p.strip() for p in value.split(',') if p.strip()]


class Config:
    """Base configuration"""

    DEBUG = False

    # Filesystem
    BACKUP_DIR = '/backup'
    TEMP_DIR = '/app/backup/tmp'
    LOG_DIR = '/data/logs'

    # Storage
    STORAGE_BACKEND = 's3'
    LOCAL_STORAGE_DIR = '/data/remote'

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        env = os.environ if environ is None else environ

        self.DEBUG = _flag(env.get('DEBUG'), self.DEBUG)

        # Filesystem
        self.BACKUP_DIR = env.get('BACKUP_DIR') or self.BACKUP_DIR
        self.TEMP_DIR = env.get('TEMP_DIR') or self.TEMP_DIR
        # An explicitly empty LOG_DIR turns file logging off
        self.LOG_DIR = env.get('LOG_DIR', self.LOG_DIR)
        self.EXCLUDE_PATTERNS = _patterns(env.get('EXCLUDE_PATTERNS'))

        # Storage
        self.STORAGE_BACKEND = (env.get('STORAGE_BACKEND') or self.STORAGE_BACKEND).lower()
        self.S3_BUCKET = env.get('S3_BUCKET')
        self.AWS_REGION = env.get('AWS_REGION') or 'us-east-1'
        self.AWS_ACCESS_KEY_ID = env.get('AWS_ACCESS_KEY_ID')
        self.AWS_SECRET_ACCESS_KEY = env.get('AWS_SECRET_ACCESS_KEY')
        self.S3_ENDPOINT_URL = env.get('S3_ENDPOINT_URL')
        self.LOCAL_STORAGE_DIR = env.get('LOCAL_STORAGE_DIR') or self.LOCAL_STORAGE_DIR
        self.BACKUP_PREFIX = env.get('BACKUP_PREFIX', '')

        # Backup behaviour
        self.RETENTION_DAYS = _retention_days(env.get('RETENTION_DAYS'))
        self.UPLOAD_CHUNK_SIZE = env.get('UPLOAD_CHUNK_SIZE')
        self.UPLOAD_SPLIT_SIZE = env.get('UPLOAD_SPLIT_SIZE')
        self.FILENAME_SAFE_TIMESTAMP = _flag(env.get('FILENAME_SAFE_TIMESTAMP'))
        self.TZ = env.get('TZ')

        # Scheduler
        self.BACKUP_SCHEDULE = env.get('BACKUP_SCHEDULE') or None

    @property
    def split_size(self) -> Optional[int]:
        """UPLOAD_SPLIT_SIZE in bytes; None when unset or invalid."""
        return parse_size_setting(self.UPLOAD_SPLIT_SIZE, 'UPLOAD_SPLIT_SIZE')

    @property
    def chunk_size(self) -> Optional[int]:
        """UPLOAD_CHUNK_SIZE in bytes; None when unset or invalid."""
        return parse_size_setting(self.UPLOAD_CHUNK_SIZE, 'UPLOAD_CHUNK_SIZE')

    @property
    def timezone(self):
        """Time zone used for archive timestamps."""
        return load_timezone(self.TZ)


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True

    # Use local data directory for development
    BASE_DIR = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
    DATA_DIR = os.path.join(BASE_DIR, 'data')
    BACKUP_DIR = os.path.join(DATA_DIR, 'backup')
    TEMP_DIR = os.path.join(DATA_DIR, 'temp')
    LOG_DIR = os.path.join(DATA_DIR, 'logs')
    STORAGE_BACKEND = 'local'
    LOCAL_STORAGE_DIR = os.path.join(DATA_DIR, 'remote')


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'default': ProductionConfig
}


def load_config(config_name: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> Config:
    """
    Build a Config for the named profile.

    Args:
        config_name: Profile name; defaults to TARVAULT_ENV or 'production'
        environ: Environment mapping (defaults to os.environ)

    Raises:
        ConfigError: If the profile is unknown
    """
    env = os.environ if environ is None else environ

    if config_name is None:
        config_name = env.get('TARVAULT_ENV', 'production')

    if config_name not in config:
        raise ConfigError(f"Unknown configuration profile: {config_name}")

    return config[config_name](env)
