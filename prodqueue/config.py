import os
from dotenv import load_dotenv

load_dotenv()


# Calendar used for an owner that has never saved production settings
DEFAULT_PRODUCTION_SETTINGS = {
    "items": [
        {"id": "1", "name": "Item 1", "production_time_per_unit": 10},
        {"id": "2", "name": "Item 2", "production_time_per_unit": 15},
    ],
    "working_hours_per_day": 8,
    "start_time": "09:00",
    "end_time": "17:00",
    "working_days": [1, 2, 3, 4, 5],  # Monday to Friday
}


class Config:
    """Base configuration class with common settings."""
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key")

    # CORS configuration
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Logging
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_FILE = os.environ.get("LOG_FILE", "logs/app.log")

    # Seconds a request waits for the per-order guard before giving up
    ORDER_LOCK_TIMEOUT_SECONDS = int(os.environ.get("ORDER_LOCK_TIMEOUT_SECONDS", "5"))

    # Background scan that repairs gapped/duplicated queue positions
    QUEUE_INTEGRITY_SCAN_MINUTES = int(os.environ.get("QUEUE_INTEGRITY_SCAN_MINUTES", "15"))

    DEFAULT_PRODUCTION_SETTINGS = DEFAULT_PRODUCTION_SETTINGS


class LocalConfig(Config):
    """Configuration for local development."""
    ENV = "local"
    DEBUG = True
    AUTO_CREATE_TABLES = True


class SandboxConfig(Config):
    """Configuration for sandbox/staging environment."""
    ENV = "sandbox"
    DEBUG = False


class ProductionConfig(Config):
    """Configuration for production environment."""
    ENV = "production"
    DEBUG = False


class TestingConfig(Config):
    """Configuration for the pytest suite (in-memory SQLite, no file logging)."""
    ENV = "testing"
    DEBUG = False
    TESTING = True
    LOG_FILE = None
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"


def get_config():
    """Get the appropriate configuration class based on environment variable.

    Environment is determined by FLASK_ENV or ENVIRONMENT variable:
    - 'local' or 'development' -> LocalConfig
    - 'sandbox' or 'staging' -> SandboxConfig
    - 'production' or 'prod' -> ProductionConfig
    - 'testing' or 'test' -> TestingConfig

    Defaults to LocalConfig if not set.
    """
    env = (os.environ.get("FLASK_ENV") or os.environ.get("ENVIRONMENT", "local")).lower()

    if env in ["local", "development", "dev"]:
        return LocalConfig
    elif env in ["sandbox", "staging", "stage"]:
        return SandboxConfig
    elif env in ["production", "prod"]:
        return ProductionConfig
    elif env in ["testing", "test"]:
        return TestingConfig
    else:
        # Default to local for safety
        return LocalConfig
