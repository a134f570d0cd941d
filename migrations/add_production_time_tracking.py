"""
Add production time tracking columns to the orders table.

Usage:
    python migrations/add_production_time_tracking.py [--database-url URL]

Adds orders.production_start_time and orders.production_time_accumulated,
backfills the accumulator with 0, and stamps a start time on in-progress orders
that have none (their updated_at is the best available guess).

The script is idempotent and safe to run multiple times. It inspects the current
schema before attempting to alter the table.
"""

import argparse
import os
import sys

from dotenv import load_dotenv

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import OperationalError, ProgrammingError

ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DEFAULT_SQLITE_PATH = os.path.join(ROOT_DIR, "orders.sqlite")

# Load environment variables from a .env file if present
load_dotenv()


def normalize_sqlite_path(path: str) -> str:
    """Return a SQLAlchemy-friendly SQLite URL for the given path."""
    if not os.path.isabs(path):
        path = os.path.join(ROOT_DIR, path)
    return f"sqlite:///{path}"


def infer_database_url(cli_url: str = None) -> str:
    """Figure out which database to hit, honoring CLI and environment defaults."""
    candidates = [
        cli_url,
        os.environ.get("DATABASE_URL"),
        os.environ.get("SQLALCHEMY_DATABASE_URI"),
        os.environ.get("LOCAL_DATABASE_URL"),
    ]

    for value in candidates:
        if not value:
            continue

        value = value.strip()
        if value.startswith("postgres://"):
            return value.replace("postgres://", "postgresql://", 1)

        if value.startswith(("postgresql://", "mysql://", "mariadb://", "sqlite://")):
            return value

        # Anything else is a filesystem path to a SQLite DB
        return normalize_sqlite_path(value)

    return normalize_sqlite_path(DEFAULT_SQLITE_PATH)


def column_exists(engine, table_name: str, column_name: str) -> bool:
    """Check if a given column exists on the specified table."""
    inspector = inspect(engine)
    columns = inspector.get_columns(table_name)
    return any(col["name"] == column_name for col in columns)


COLUMNS = [
    ("production_start_time", "TIMESTAMP NULL"),
    ("production_time_accumulated", "INTEGER NOT NULL DEFAULT 0"),
]


def migrate(database_url: str = None) -> bool:
    """Perform the migration against the resolved database."""
    url = infer_database_url(database_url)
    print(f"Using database: {url.split('@')[-1]}")
    engine = create_engine(url)

    try:
        if not inspect(engine).has_table("orders"):
            print("✗ Table 'orders' does not exist. Start the app once to create the schema.")
            return False

        for column_name, ddl in COLUMNS:
            if column_exists(engine, "orders", column_name):
                print(f"✓ Column '{column_name}' already exists on 'orders'.")
                continue

            print(f"Adding column '{column_name}' to 'orders' table...")
            with engine.begin() as conn:
                conn.execute(text(f"ALTER TABLE orders ADD COLUMN {column_name} {ddl}"))

            if not column_exists(engine, "orders", column_name):
                print(f"✗ Column '{column_name}' was not added. Please verify manually.")
                return False
            print(f"✓ Successfully added '{column_name}' to 'orders'.")

        with engine.begin() as conn:
            zeroed = conn.execute(text(
                "UPDATE orders SET production_time_accumulated = 0 "
                "WHERE production_time_accumulated IS NULL"
            )).rowcount
            stamped = conn.execute(text(
                "UPDATE orders SET production_start_time = updated_at "
                "WHERE status = 'in-progress' AND production_start_time IS NULL"
            )).rowcount

        print(f"✓ Backfilled accumulator on {zeroed} orders.")
        print(f"✓ Stamped start time on {stamped} in-progress orders.")
        print("✓ Migration completed successfully.")
        return True

    except (OperationalError, ProgrammingError) as exc:
        print(f"✗ Database error: {exc}")
        return False
    finally:
        engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Add production time tracking columns to orders.")
    parser.add_argument(
        "--database-url",
        help="Override database URL (otherwise inferred from env or defaults).",
    )
    args = parser.parse_args()

    success = migrate(args.database_url)
    sys.exit(0 if success else 1)
