#!/usr/bin/env python3
"""
Run one calendar-mirror batch without going through HTTP.

Usage:
  python scripts/run_gcal_sync.py [--limit 50]

Environment:
  - SQLALCHEMY_DATABASE_URL (from app config)
  - GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET for token refresh
  - GCAL_SYNC_BATCH_SIZE (default 50) when --limit is omitted

Prints the batch summary as JSON. Safe to run while the API is serving; the
cron endpoint and this script process the same pending users.
"""
from __future__ import annotations

import argparse
import os
import sys

# Reuse the app's DB session factory for configuration parity
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "backend")))

from calmirror import models  # noqa: E402,F401
from calmirror.core.observability import setup_logging  # noqa: E402
from calmirror.database import Base, engine, get_db_session  # noqa: E402
from calmirror.services.batch_driver import run_batch  # noqa: E402
from calmirror.utils.json import dumps  # noqa: E402


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--limit", type=int, default=None, help="max users to process")
    args = parser.parse_args(argv)

    setup_logging()
    Base.metadata.create_all(bind=engine)
    with get_db_session() as db:
        result = run_batch(db, limit=args.limit)
    print(dumps({"processed": result.processed, "synced": result.synced, "errors": result.errors}))
    return 0


if __name__ == "__main__":
    sys.exit(main())
