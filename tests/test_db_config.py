"""
Tests for per-environment database resolution.
"""
import pytest
from flask import Flask

from prodqueue.db_config import LOCAL_SQLITE_URI, configure_database, resolve_database


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ("LOCAL_DATABASE_URL", "SANDBOX_DATABASE_URL", "PRODUCTION_DATABASE_URL", "DATABASE_URL"):
        monkeypatch.delenv(var, raising=False)


def test_testing_uses_memory():
    assert resolve_database("testing") == ("sqlite:///:memory:", None)
    assert resolve_database("test") == ("sqlite:///:memory:", None)


def test_local_defaults_to_sqlite_file():
    assert resolve_database("local") == (LOCAL_SQLITE_URI, None)
    assert resolve_database("development") == (LOCAL_SQLITE_URI, None)
    assert resolve_database(None) == (LOCAL_SQLITE_URI, None)


def test_unknown_environment_falls_back_to_local():
    assert resolve_database("qa-box") == (LOCAL_SQLITE_URI, None)


def test_production_reads_database_url_and_fixes_scheme(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgres://u:p@db.example.com/orders")

    uri, options = resolve_database("prod")

    assert uri == "postgresql://u:p@db.example.com/orders"
    assert options["pool_pre_ping"] is True
    assert options["connect_args"]["sslmode"] == "require"


def test_production_prefers_specific_variable(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://fallback/orders")
    monkeypatch.setenv("PRODUCTION_DATABASE_URL", "postgresql://primary/orders")

    assert resolve_database("production")[0] == "postgresql://primary/orders"


def test_sandbox_without_url_raises():
    with pytest.raises(ValueError, match="SANDBOX_DATABASE_URL"):
        resolve_database("staging")


def test_configure_database_keeps_preset_uri():
    app = Flask(__name__)
    app.config["ENV"] = "production"
    app.config["SQLALCHEMY_DATABASE_URI"] = "sqlite:///:memory:"

    configure_database(app)

    assert app.config["SQLALCHEMY_DATABASE_URI"] == "sqlite:///:memory:"
    assert app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] is False
    assert "SQLALCHEMY_ENGINE_OPTIONS" not in app.config


def test_configure_database_resolves_by_env(monkeypatch):
    monkeypatch.setenv("SANDBOX_DATABASE_URL", "postgresql://sandbox/orders")
    app = Flask(__name__)
    app.config["ENV"] = "sandbox"

    configure_database(app)

    assert app.config["SQLALCHEMY_DATABASE_URI"] == "postgresql://sandbox/orders"
    assert app.config["SQLALCHEMY_ENGINE_OPTIONS"]["connect_args"]["application_name"] == "prodqueue"
