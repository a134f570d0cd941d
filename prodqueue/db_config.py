"""Per-environment database URI and engine options."""
import os

from sqlalchemy.pool import QueuePool

LOCAL_SQLITE_URI = "sqlite:///orders.sqlite"

# Which env vars hold the URI, tried in order, per environment
DATABASE_URL_VARS = {
    "local": ("LOCAL_DATABASE_URL",),
    "sandbox": ("SANDBOX_DATABASE_URL",),
    "production": ("PRODUCTION_DATABASE_URL", "DATABASE_URL"),
}

ENV_ALIASES = {
    "development": "local",
    "dev": "local",
    "staging": "sandbox",
    "stage": "sandbox",
    "prod": "production",
    "test": "testing",
}


def postgres_engine_options():
    """Pooled, SSL-only engine options for the hosted PostgreSQL databases."""
    return {
        "poolclass": QueuePool,
        "pool_pre_ping": True,
        "pool_recycle": 280,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_timeout": 30,
        "connect_args": {
            "sslmode": "require",
            "connect_timeout": 10,
            "application_name": "prodqueue",
            "options": "-c statement_timeout=30000",
        },
    }


def resolve_database(environment):
    """
    Database URI and engine options for an environment name.

    Unknown names fall back to the local SQLite file.

    Returns:
        tuple: (database_uri, engine_options or None)

    Raises:
        ValueError: If a sandbox/production URL is not configured
    """
    env = ENV_ALIASES.get((environment or "local").lower(), (environment or "local").lower())

    if env == "testing":
        return "sqlite:///:memory:", None
    if env not in DATABASE_URL_VARS:
        env = "local"

    url = next((os.environ[var] for var in DATABASE_URL_VARS[env] if os.environ.get(var)), None)
    if url and url.startswith("postgres://"):
        # SQLAlchemy only accepts the postgresql:// scheme
        url = url.replace("postgres://", "postgresql://", 1)

    if env == "local":
        return url or LOCAL_SQLITE_URI, None
    if not url:
        raise ValueError(f"{' or '.join(DATABASE_URL_VARS[env])} must be set for the {env} environment")
    return url, postgres_engine_options()


def configure_database(app):
    """
    Set SQLALCHEMY_* config for the app's ENV.

    A URI already carried by the config class (TestingConfig) is kept.
    """
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

    if app.config.get("SQLALCHEMY_DATABASE_URI"):
        return

    database_uri, engine_options = resolve_database(app.config.get("ENV"))
    app.config["SQLALCHEMY_DATABASE_URI"] = database_uri
    if engine_options:
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options
