#!/usr/bin/env python3
"""
Create the gateway audit tables in Postgres: gateway_transactions,
gateway_callback_attempts, gateway_callback_events, exception_track.

Uses DATABASE_URL environment variable. Does NOT drop existing tables.
"""

from __future__ import annotations
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
load_dotenv()

# Make sure src is on sys.path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import OperationalError

# Import all models so SQLAlchemy knows about them
from src.database.models import (  # noqa: F401
    Base,
    CallbackAttempt,
    CallbackEvent,
    ExceptionTrack,
    TransactionRecord,
)
from src.database.postgres_real import _normalize_connection_string


def main() -> int:
    url = os.environ.get("DATABASE_URL")
    if not url:
        print("DATABASE_URL is not set", file=sys.stderr)
        return 1

    url = _normalize_connection_string(url)

    try:
        engine = create_engine(url, pool_pre_ping=True, pool_size=5, max_overflow=10)

        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("Database connection OK")

        # Only missing tables are created
        Base.metadata.create_all(bind=engine)
        tables = inspect(engine).get_table_names()
        print("Audit tables now exist:", sorted(tables))
        return 0

    except OperationalError as e:
        print(f"Failed to connect to database: {e}", file=sys.stderr)
        return 2
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        return 3


if __name__ == "__main__":
    sys.exit(main())
