"""Reporting over committed bills: lookups, sales summary, revenue windows and
the export of aged revenue to an external sheet.
"""
import csv
import datetime
import os
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..app.config import Config
from ..data.models import Bill, BillItem
from ..utils.logger import get_logger
from .errors import ExportError, NotFoundError, TransactionError

logger = get_logger("revenue")

EXPORT_HEADER = ["Date", "Total Revenue (₹)", "Total Orders"]


def start_of_day(moment: datetime.datetime) -> datetime.datetime:
    return datetime.datetime(moment.year, moment.month, moment.day)


def revenue_between(db: Session, start: datetime.datetime, end: datetime.datetime) -> Tuple[float, int]:
    total, count = (
        db.query(func.coalesce(func.sum(Bill.total), 0.0), func.count(Bill.id))
        .filter(Bill.created_at >= start, Bill.created_at < end)
        .one()
    )
    return round(float(total), 2), int(count)


def _daily_totals(bills) -> "OrderedDict[str, Dict[str, float]]":
    days: "OrderedDict[str, Dict[str, float]]" = OrderedDict()
    for created_at, total in bills:
        key = created_at.strftime("%Y-%m-%d")
        day = days.setdefault(key, {"total_revenue": 0.0, "total_bills": 0})
        day["total_revenue"] = round(day["total_revenue"] + total, 2)
        day["total_bills"] += 1
    return days


# --- Bills -----------------------------------------------------------------

def get_bill(db: Session, bill_id: int) -> Bill:
    bill = db.query(Bill).options(selectinload(Bill.items)).filter(Bill.id == bill_id).first()
    if bill is None:
        raise NotFoundError("Bill not found")
    return bill


def list_bills(
    db: Session,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    start_date: Optional[datetime.datetime] = None,
    end_date: Optional[datetime.datetime] = None,
) -> Tuple[List[Bill], int]:
    """Newest first. Returns the page of bills and the total matching count."""
    query = db.query(Bill)
    if search:
        pattern = f"%{search.lower()}%"
        query = query.filter(
            or_(func.lower(Bill.customer_name).like(pattern), func.lower(Bill.bill_number).like(pattern))
        )
    if start_date:
        query = query.filter(Bill.created_at >= start_date)
    if end_date:
        query = query.filter(Bill.created_at <= end_date)

    total = query.count()
    bills = (
        query.options(selectinload(Bill.items))
        .order_by(Bill.created_at.desc(), Bill.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return bills, total


def sales_summary(db: Session, now: Optional[datetime.datetime] = None) -> Dict[str, float]:
    start = start_of_day(now or datetime.datetime.now())
    end = start + datetime.timedelta(days=1)
    in_day = (Bill.created_at >= start, Bill.created_at < end)

    total_sales, total_orders = revenue_between(db, start, end)
    total_discount = db.query(func.coalesce(func.sum(Bill.total_discount), 0.0)).filter(*in_day).scalar()
    total_items = (
        db.query(func.coalesce(func.sum(BillItem.quantity), 0)).join(Bill, BillItem.bill_id == Bill.id).filter(*in_day).scalar()
    )
    return {
        "total_sales": total_sales,
        "total_orders": total_orders,
        "total_items": int(total_items),
        "total_discount": round(float(total_discount), 2),
    }


# --- Revenue windows -------------------------------------------------------

def today_revenue(db: Session, now: Optional[datetime.datetime] = None) -> Dict:
    now = now or datetime.datetime.now()
    today = start_of_day(now)
    yesterday = today - datetime.timedelta(days=1)

    today_total, today_bills = revenue_between(db, today, today + datetime.timedelta(days=1))
    yesterday_total, _ = revenue_between(db, yesterday, today)

    if yesterday_total > 0:
        change = (today_total - yesterday_total) / yesterday_total * 100
    elif today_total > 0:
        change = 100.0
    else:
        change = 0.0

    return {
        "date": today.strftime("%Y-%m-%d"),
        "total_revenue": today_total,
        "total_bills": today_bills,
        "comparison": {
            "yesterday": yesterday_total,
            "percentage_change": round(change, 2),
            "trend": "up" if change > 0 else "down" if change < 0 else "same",
        },
    }


def weekly_revenue(db: Session, now: Optional[datetime.datetime] = None) -> Dict:
    """Revenue for the week starting on Sunday."""
    today = start_of_day(now or datetime.datetime.now())
    week_start = today - datetime.timedelta(days=(today.weekday() + 1) % 7)
    week_end = week_start + datetime.timedelta(days=7)
    total, bills = revenue_between(db, week_start, week_end)
    return {
        "week_start": week_start.strftime("%Y-%m-%d"),
        "week_end": week_end.strftime("%Y-%m-%d"),
        "total_revenue": total,
        "total_bills": bills,
    }


def last_30_days_revenue(db: Session, now: Optional[datetime.datetime] = None, days: int = 30) -> Dict:
    now = now or datetime.datetime.now()
    today = start_of_day(now)
    start = today - datetime.timedelta(days=days)

    rows = db.query(Bill.created_at, Bill.total).filter(Bill.created_at >= start).order_by(Bill.created_at).all()
    totals = _daily_totals(rows)

    daily = []
    current = start
    while current <= today:
        key = current.strftime("%Y-%m-%d")
        day = totals.get(key, {"total_revenue": 0.0, "total_bills": 0})
        daily.append({"date": key, "total_revenue": day["total_revenue"], "total_bills": day["total_bills"]})
        current += datetime.timedelta(days=1)

    return {
        "period": f"{days} days",
        "start_date": start.strftime("%Y-%m-%d"),
        "end_date": today.strftime("%Y-%m-%d"),
        "total_revenue": round(sum(d["total_revenue"] for d in daily), 2),
        "total_bills": sum(d["total_bills"] for d in daily),
        "daily_data": daily,
    }


# --- Export ----------------------------------------------------------------

class RevenueSink(ABC):
    """External spreadsheet that receives one row per exported day."""

    @abstractmethod
    def append_rows(self, rows: Sequence[Sequence]) -> None:
        ...


class CsvRevenueSink(RevenueSink):
    def __init__(self, path: Optional[str] = None):
        self.path = path or Config.REVENUE_EXPORT_PATH

    def append_rows(self, rows: Sequence[Sequence]) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        write_header = not os.path.exists(self.path) or os.path.getsize(self.path) == 0
        with open(self.path, "a", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            if write_header:
                writer.writerow(EXPORT_HEADER)
            writer.writerows(rows)


@dataclass
class ExportResult:
    exported_days: int = 0
    deleted_bills: int = 0
    rows: List[List] = field(default_factory=list)


def export_aged_revenue(
    db: Session,
    sink: Optional[RevenueSink] = None,
    now: Optional[datetime.datetime] = None,
    retention_days: Optional[int] = None,
) -> ExportResult:
    """Move per-day revenue of bills older than the retention window to the sink,
    then delete those bills. Nothing is deleted unless the export succeeded.
    """
    sink = sink or CsvRevenueSink()
    retention_days = retention_days or Config.REVENUE_RETENTION_DAYS
    cutoff = start_of_day(now or datetime.datetime.now()) - datetime.timedelta(days=retention_days)
    logger.info("Starting revenue export for bills older than %s", cutoff.isoformat())

    aged = db.query(Bill.id, Bill.created_at, Bill.total).filter(Bill.created_at < cutoff).order_by(Bill.created_at).all()
    if not aged:
        logger.info("No aged revenue to export")
        return ExportResult()

    totals = _daily_totals((created_at, total) for _, created_at, total in aged)
    rows = [[day, values["total_revenue"], values["total_bills"]] for day, values in totals.items()]

    try:
        sink.append_rows(rows)
    except Exception as exc:
        logger.error("Revenue export failed, keeping %d bills: %s", len(aged), exc)
        raise ExportError(f"Revenue export failed: {exc}") from exc

    bill_ids = [bill_id for bill_id, _, _ in aged]
    try:
        for bill in db.query(Bill).filter(Bill.id.in_(bill_ids)).all():
            db.delete(bill)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Exported %d day(s) but could not delete the bills: %s", len(rows), exc)
        raise TransactionError("Revenue was exported but old bills could not be removed, please retry") from exc

    logger.info("Exported %d day(s) of revenue and deleted %d bills", len(rows), len(bill_ids))
    return ExportResult(exported_days=len(rows), deleted_bills=len(bill_ids), rows=rows)
