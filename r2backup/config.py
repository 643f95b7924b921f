import os
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


class ConfigurationError(Exception):
    """Raised when the environment does not describe a usable backup job."""
    pass


class Config:
    """Base configuration"""

    # Cloudflare R2 credentials
    R2_ACCESS_KEY_ID = ''
    R2_SECRET_ACCESS_KEY = ''
    R2_ACCOUNT_ID = ''
    R2_BUCKET = ''
    R2_ENDPOINT_URL = ''
    R2_REGION = 'auto'

    # Source file
    DB_PATH = ''
    HOST_DB_PATH = ''

    # Staging
    BACKUP_DIR = '/backups'
    COMPRESSION_LEVEL = '9'

    # Retention
    RETENTION_DAYS = '30'

    # Scheduler
    BACKUP_SCHEDULE = '0 2 * * *'
    BACKUP_TIMEZONE = 'UTC'

    # Logging
    LOG_DIR = ''
    DEBUG = False


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True

    # Use local data directory for development
    BASE_DIR = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
    DATA_DIR = os.path.join(BASE_DIR, 'data')
    BACKUP_DIR = os.path.join(DATA_DIR, 'backups')


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'default': ProductionConfig
}


@dataclass(frozen=True)
class BackupConfig:
    """
    Validated, read-only settings shared by every backup run.

    Built once at startup by load_config() and never mutated afterwards.
    """

    access_key_id: str
    secret_access_key: str = field(repr=False)
    account_id: str
    bucket: str
    db_path: str
    host_db_path: str
    backup_dir: str = '/backups'
    retention_days: int = 30
    endpoint_url: str = ''
    region: str = 'auto'
    schedule: str = '0 2 * * *'
    timezone: str = 'UTC'
    compression_level: int = 9
    log_dir: str = ''
    debug: bool = False

    @property
    def backup_name(self) -> str:
        """Logical backup name: the host-side file name without its extension."""
        base = os.path.basename(self.host_db_path)
        return os.path.splitext(base)[0]

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def resolved_endpoint_url(self) -> str:
        if self.endpoint_url:
            return self.endpoint_url
        return f"https://{self.account_id}.r2.cloudflarestorage.com"


def _parse_int(name, raw, minimum, maximum, problems):
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        problems.append(f"{name} must be an integer (got {raw!r})")
        return None

    if value < minimum or (maximum is not None and value > maximum):
        bound = f"between {minimum} and {maximum}" if maximum is not None else f">= {minimum}"
        problems.append(f"{name} must be {bound} (got {value})")
        return None

    return value


def load_config(config_name: str = None, environ=None) -> BackupConfig:
    """
    Build the validated backup configuration.

    Args:
        config_name: Key into the config dict ('development', 'production').
            Defaults to the BACKUP_ENV environment variable.
        environ: Mapping the settings are read from (default: os.environ).
            It is the only source of environment values; anything missing
            falls back to the literal class defaults.

    Returns:
        BackupConfig record

    Raises:
        ConfigurationError: Listing every missing or malformed setting
    """
    environ = os.environ if environ is None else environ

    if config_name is None:
        config_name = environ.get('BACKUP_ENV', 'production')

    if config_name not in config:
        raise ConfigurationError(
            f"Unknown configuration: {config_name}. Valid options: {list(config.keys())}"
        )
    cls = config[config_name]

    def setting(name):
        value = environ.get(name)
        if value:
            return value
        return getattr(cls, name)

    timezone = environ.get('BACKUP_TIMEZONE') or environ.get('TZ') or cls.BACKUP_TIMEZONE

    # Checked in a fixed order so the error message is stable
    required = [
        ('R2_ACCESS_KEY_ID', setting('R2_ACCESS_KEY_ID')),
        ('R2_SECRET_ACCESS_KEY', setting('R2_SECRET_ACCESS_KEY')),
        ('R2_ACCOUNT_ID', setting('R2_ACCOUNT_ID')),
        ('R2_BUCKET', setting('R2_BUCKET')),
        ('DB_PATH', setting('DB_PATH')),
        ('HOST_DB_PATH', setting('HOST_DB_PATH')),
    ]

    problems = [
        f"required environment variable {name} is not set"
        for name, value in required
        if not value
    ]

    retention_days = _parse_int('RETENTION_DAYS', setting('RETENTION_DAYS'), 1, None, problems)
    compression_level = _parse_int('COMPRESSION_LEVEL', setting('COMPRESSION_LEVEL'), 1, 9, problems)

    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        problems.append(f"unknown timezone: {timezone}")

    if problems:
        raise ConfigurationError("Invalid configuration: " + "; ".join(problems))

    return BackupConfig(
        access_key_id=setting('R2_ACCESS_KEY_ID'),
        secret_access_key=setting('R2_SECRET_ACCESS_KEY'),
        account_id=setting('R2_ACCOUNT_ID'),
        bucket=setting('R2_BUCKET'),
        db_path=setting('DB_PATH'),
        host_db_path=setting('HOST_DB_PATH'),
        backup_dir=setting('BACKUP_DIR'),
        retention_days=retention_days,
        endpoint_url=setting('R2_ENDPOINT_URL'),
        region=setting('R2_REGION'),
        schedule=setting('BACKUP_SCHEDULE'),
        timezone=timezone,
        compression_level=compression_level,
        log_dir=setting('LOG_DIR'),
        debug=cls.DEBUG,
    )
