#!/usr/bin/env python3
"""
Export revenue of bills older than the retention window and remove those bills.

Usage:
  python -m backend.scripts.export_revenue [--days 30] [--output path.csv]
"""

import argparse
import sys

from backend.app.config import Config
from backend.data.database import SessionLocal, create_tables
from backend.services.errors import CakeRaftError
from backend.services.revenue_service import CsvRevenueSink, export_aged_revenue


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Export aged CakeRaft revenue to CSV")
    parser.add_argument("--days", type=int, default=Config.REVENUE_RETENTION_DAYS,
                        help="export bills older than this many days")
    parser.add_argument("--output", default=Config.REVENUE_EXPORT_PATH, help="CSV file to append to")
    args = parser.parse_args(argv)

    create_tables()
    session = SessionLocal()
    try:
        result = export_aged_revenue(session, CsvRevenueSink(args.output), retention_days=args.days)
    except CakeRaftError as exc:
        print(f"❌ {exc.message}")
        return 1
    finally:
        session.close()

    if not result.exported_days:
        print("No old revenue data found to export")
    else:
        print(f"✅ Exported {result.exported_days} day(s) to {args.output}, deleted {result.deleted_bills} bills")
    return 0


if __name__ == "__main__":
    sys.exit(main())
