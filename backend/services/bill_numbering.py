"""Day-scoped, human readable bill numbers.

Numbers look like ``BILL-20250114-0007``. The sequence part comes from an
atomic per-day counter row that is seeded from the number of bills already
created that day. Every candidate is checked against existing bills and a
collision moves the counter on after a short randomized pause. When the
attempts run out a timestamp based number is used instead so checkout
can still make progress; the UNIQUE constraint on ``bills.bill_number`` is the
final guard.
"""
import datetime
import random
import time
from typing import Callable, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..app.config import Config
from ..data.models import Bill, BillSequence
from ..utils.logger import get_logger
from .errors import TransactionError

logger = get_logger("bill_numbering")


def day_string(moment: datetime.datetime) -> str:
    return moment.strftime("%Y%m%d")


def day_bounds(moment: datetime.datetime) -> Tuple[datetime.datetime, datetime.datetime]:
    """Return ``[start_of_day, start_of_next_day)`` for the given moment."""
    start = datetime.datetime(moment.year, moment.month, moment.day)
    return start, start + datetime.timedelta(days=1)


def format_bill_number(day: str, sequence: int) -> str:
    return f"BILL-{day}-{sequence:04d}"


def fallback_bill_number(day: str, epoch_ms: int) -> str:
    return f"BILL-{day}-{str(epoch_ms)[-6:]}"


class BillNumberAllocator:
    """Hands out bill numbers inside the caller's open transaction."""

    def __init__(
        self,
        db: Session,
        max_attempts: Optional[int] = None,
        max_backoff_ms: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock_ms: Optional[Callable[[], int]] = None,
    ):
        self.db = db
        self.max_attempts = max_attempts if max_attempts is not None else Config.BILL_NUMBER_MAX_ATTEMPTS
        self.max_backoff_ms = max_backoff_ms if max_backoff_ms is not None else Config.BILL_NUMBER_MAX_BACKOFF_MS
        self.sleep = sleep
        self.clock_ms = clock_ms or (lambda: int(time.time() * 1000))

    def allocate(self, moment: datetime.datetime) -> str:
        day = day_string(moment)
        start, end = day_bounds(moment)

        for attempt in range(1, self.max_attempts + 1):
            sequence = self._next_sequence(day, start, end)
            candidate = format_bill_number(day, sequence)
            if not self._is_taken(candidate):
                logger.debug("Allocated bill number %s (attempt %d)", candidate, attempt)
                return candidate

            logger.warning("Bill number %s already taken (attempt %d/%d)", candidate, attempt, self.max_attempts)
            if attempt < self.max_attempts:
                self.sleep(random.uniform(0, self.max_backoff_ms) / 1000.0)

        candidate = fallback_bill_number(day, self.clock_ms())
        if self._is_taken(candidate):
            raise TransactionError("Could not allocate a bill number, please retry")
        logger.warning("Sequence allocation did not converge, using fallback bill number %s", candidate)
        return candidate

    def _next_sequence(self, day: str, start: datetime.datetime, end: datetime.datetime) -> int:
        result = self.db.execute(
            update(BillSequence)
            .where(BillSequence.day == day)
            .values(last_value=BillSequence.last_value + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            return self.db.query(BillSequence.last_value).filter(BillSequence.day == day).scalar()

        # First bill of the day: start the counter after whatever already exists
        existing = self.db.query(Bill).filter(Bill.created_at >= start, Bill.created_at < end).count()
        self.db.add(BillSequence(day=day, last_value=existing + 1))
        try:
            self.db.flush()
        except IntegrityError as exc:
            raise TransactionError("Bill sequence was started concurrently, please retry") from exc
        return existing + 1

    def _is_taken(self, bill_number: str) -> bool:
        return self.db.query(Bill.id).filter(Bill.bill_number == bill_number).first() is not None
