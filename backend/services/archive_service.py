"""Post-commit bill archival.

After a checkout commits, a durable copy of the bill is rendered and handed to
an archive sink; the URL the sink returns is patched onto the bill. None of
this may fail a checkout: every problem is logged as an ``ArchivalError`` and
dropped.
"""
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional

from sqlalchemy.orm import Session, selectinload

from ..app.config import Config
from ..data.models import Bill
from ..utils.logger import get_logger
from .errors import ArchivalError

logger = get_logger("archive")


def build_receipt(bill: Bill, shop_name: Optional[str] = None) -> str:
    lines = []
    lines.append(f"{shop_name or Config.SHOP_NAME} — Bill Receipt")
    lines.append(f"{bill.created_at.strftime('%Y-%m-%d %H:%M')}  •  {bill.bill_number}")
    lines.append("")
    lines.append("Items:")
    for item in bill.items:
        line = f"- {item.quantity} x {item.name} — ₹{item.price:.2f}"
        line += " /kg" if item.weight else " ea"
        line += f"  = ₹{item.line_subtotal:.2f}"
        if item.discount_amount:
            line += f"  (-₹{item.discount_amount:.2f})"
        lines.append(line)
    lines.append("")
    lines.append(f"Subtotal: ₹{bill.subtotal:.2f}")
    if bill.loyalty_applied:
        lines.append(
            f"Loyalty discount ({bill.loyalty_discount_percentage:g}% on cakes): -₹{bill.loyalty_discount_amount:.2f}"
        )
    lines.append(f"Total discount: ₹{bill.total_discount:.2f}")
    lines.append(f"Total: ₹{bill.total:.2f}")
    lines.append("")
    lines.append(f"Customer: {bill.customer_name}")
    lines.append(f"Phone: {bill.customer_phone}")
    if bill.loyalty_message:
        lines.append(bill.loyalty_message)
    return "\n".join(lines)


class ArchiveSink(ABC):
    """Somewhere durable to keep rendered bills."""

    @abstractmethod
    def store(self, bill_number: str, document: str) -> str:
        """Store the rendered bill and return a URL for it."""
        ...


class LocalArchiveSink(ArchiveSink):
    """Writes receipts to ``<directory>/<bill number>.txt``."""

    def __init__(self, directory: Optional[str] = None):
        self.directory = Path(directory or Config.ARCHIVE_DIR)

    def store(self, bill_number: str, document: str) -> str:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / f"{bill_number}.txt"
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(document, encoding="utf-8")
        os.replace(tmp_path, path)
        return path.resolve().as_uri()


class BillArchiver:
    def __init__(self, session_factory: Callable[[], Session], sink: Optional[ArchiveSink] = None):
        self.session_factory = session_factory
        self.sink = sink or LocalArchiveSink()

    def archive(self, bill_id: int) -> str:
        """Render, store and record the archive URL. Raises ``ArchivalError``."""
        db = self.session_factory()
        try:
            bill = db.query(Bill).options(selectinload(Bill.items)).filter(Bill.id == bill_id).first()
            if bill is None:
                raise ArchivalError(f"Bill {bill_id} disappeared before it could be archived")
            url = self.sink.store(bill.bill_number, build_receipt(bill))
            bill.archive_url = url
            db.commit()
            logger.info("Archived %s to %s", bill.bill_number, url)
            return url
        except ArchivalError:
            db.rollback()
            raise
        except Exception as exc:
            db.rollback()
            raise ArchivalError(f"Could not archive bill {bill_id}: {exc}") from exc
        finally:
            db.close()

    def archive_safely(self, bill_id: int) -> Optional[str]:
        """Archive without ever raising; used once the checkout response is out."""
        if not Config.ARCHIVE_ENABLED:
            return None
        try:
            return self.archive(bill_id)
        except ArchivalError as exc:
            logger.error("Archival failed for bill %s: %s", bill_id, exc.message, exc_info=True)
            return None
