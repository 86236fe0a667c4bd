#!/usr/bin/env python3
"""
Inspect the CakeRaft database: print the catalog, today's bills and the
bill-number counters.

Usage:
  python -m backend.scripts.inspect_db [--all] [--config]

Notes:
- Uses the existing SQLAlchemy session and models.
- Safe read‑only inspection; makes no writes.
"""

from __future__ import annotations

import argparse
from datetime import datetime, timedelta

from backend.app.config import Config
from backend.data.database import SessionLocal
from backend.data.models import Bill, BillItem, BillSequence, Category, Product
from backend.utils.security import mask_phone


def line(ch: str = "-", width: int = 60) -> str:
    return ch * width


def print_catalog(session):
    print(line("="))
    print("Catalog")
    print(line("="))
    for category in session.query(Category).order_by(Category.name).all():
        state = "" if category.is_active else " (inactive)"
        print(f"{category.name}{state}")
        for p in session.query(Product).filter(Product.category_id == category.id).order_by(Product.name).all():
            unit = "/kg" if p.price_type.value == "per_kg" else ""
            active = "" if p.is_active else " [inactive]"
            print(f"  - #{p.id} {p.name} | ₹{p.price:.2f}{unit}{active}")
    print()


def print_bills(session, show_all: bool):
    print(line("="))
    print("Bills" if show_all else "Bills (today)")
    print(line("="))
    query = session.query(Bill)
    if not show_all:
        today = datetime.now().replace(hour=0, minute=0, second=0, microsecond=0)
        query = query.filter(Bill.created_at >= today, Bill.created_at < today + timedelta(days=1))
    bills = query.order_by(Bill.created_at).all()
    print(f"Total bills: {len(bills)}")
    for b in bills:
        loyalty = f" | loyalty -₹{b.loyalty_discount_amount:.2f}" if b.loyalty_applied else ""
        print(
            f"\n{b.bill_number} | {b.created_at.strftime('%Y-%m-%d %I:%M %p')} | "
            f"{b.customer_name} ({mask_phone(b.customer_phone)}) | total=₹{b.total:.2f}{loyalty}"
        )
        print(f"  Archive: {b.archive_url or 'N/A'}")
        items = session.query(BillItem).filter(BillItem.bill_id == b.id).order_by(BillItem.position).all()
        for it in items:
            print(f"    - {it.quantity} x {it.name} @ ₹{it.price:.2f} = ₹{it.line_total:.2f}")
    print()


def print_sequences(session):
    print(line("="))
    print("Bill number counters")
    print(line("="))
    for seq in session.query(BillSequence).order_by(BillSequence.day.desc()).limit(10).all():
        print(f"- {seq.day}: {seq.last_value}")
    print()


def main():
    parser = argparse.ArgumentParser(description="Read-only dump of the CakeRaft database")
    parser.add_argument("--all", action="store_true", help="show every bill, not just today's")
    parser.add_argument("--config", action="store_true", help="print the effective configuration first")
    args = parser.parse_args()

    if args.config:
        Config.debug_print()

    session = SessionLocal()
    try:
        print(f"DB Inspection — {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        print_catalog(session)
        print_bills(session, args.all)
        print_sequences(session)
        print(line("="))
        print("End of database inspection")
        print(line("="))
    finally:
        session.close()


if __name__ == "__main__":
    main()
