"""Loyalty engine: every Nth cake purchase earns a percentage off the cakes.

The purchase counter is not stored anywhere. It is derived from the bills a
phone number already has with ``has_cake_items`` set, so it can never drift
from the bill history.
"""
from dataclasses import dataclass, asdict, field
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy.orm import Session

from ..app.config import Config
from ..data.models import Bill
from ..utils.logger import get_logger
from ..utils.security import mask_phone

logger = get_logger("loyalty")

LOYALTY_LEVELS = [
    (50, "Cake Royalty"),
    (30, "Sweet Champion"),
    (15, "Loyal Baker"),
    (5, "Cake Lover"),
    (1, "Sweet Friend"),
    (0, "New Customer"),
]


@dataclass
class LoyaltyStatus:
    is_loyalty_customer: bool
    purchase_count: int
    next_purchase_number: int
    next_discount_at: int
    purchases_until_reward: int
    qualifies_for_discount: bool
    discount_percentage: float
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class LoyaltyDiscountResult:
    loyalty_applied: bool
    discount_amount: float
    discount_percentage: float
    message: str
    purchase_number: int
    next_discount_at: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class LoyaltyPurchase:
    bill_id: int
    bill_number: str
    created_at: Any
    total: float
    loyalty_applied: bool
    loyalty_discount_amount: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class LoyaltyHistory:
    customer_phone: str
    total_purchases: int
    total_spent: float
    loyalty_discounts_received: int
    next_discount_at: int
    loyalty_level: str
    recent_bills: List[LoyaltyPurchase] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def ordinal(num: int) -> str:
    if 10 <= num % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(num % 10, "th")
    return f"{num}{suffix}"


def loyalty_level(purchase_count: int) -> str:
    for threshold, name in LOYALTY_LEVELS:
        if purchase_count >= threshold:
            return name
    return LOYALTY_LEVELS[-1][1]


def _format_percentage(value: float) -> str:
    return f"{value:g}%"


class LoyaltyService:
    """Reads a customer's cake purchase history and decides milestone discounts."""

    def __init__(self, db: Session, frequency: Optional[int] = None, discount_percentage: Optional[float] = None):
        self.db = db
        self.frequency = frequency if frequency is not None else Config.LOYALTY_FREQUENCY
        self.discount_percentage = (
            discount_percentage if discount_percentage is not None else Config.LOYALTY_DISCOUNT_PERCENTAGE
        )

    def _qualifying_bills(self, phone: str):
        return self.db.query(Bill).filter(Bill.customer_phone == phone, Bill.has_cake_items.is_(True))

    def count_qualifying_purchases(self, phone: str) -> int:
        if not phone:
            return 0
        return self._qualifying_bills(phone).count()

    def check_loyalty_status(self, phone: str) -> LoyaltyStatus:
        """Where the customer stands before their next cake purchase. Read only."""
        if not phone:
            return LoyaltyStatus(
                is_loyalty_customer=False,
                purchase_count=0,
                next_purchase_number=1,
                next_discount_at=self.frequency,
                purchases_until_reward=self.frequency,
                qualifies_for_discount=False,
                discount_percentage=0.0,
                message="Phone number required for loyalty rewards",
            )

        purchase_count = self.count_qualifying_purchases(phone)
        next_purchase_number = purchase_count + 1
        qualifies = next_purchase_number % self.frequency == 0
        next_discount_at = next_purchase_number + (self.frequency - next_purchase_number % self.frequency) % self.frequency
        status = LoyaltyStatus(
            is_loyalty_customer=purchase_count > 0,
            purchase_count=purchase_count,
            next_purchase_number=next_purchase_number,
            next_discount_at=next_discount_at,
            purchases_until_reward=next_discount_at - purchase_count,
            qualifies_for_discount=qualifies,
            discount_percentage=self.discount_percentage if qualifies else 0.0,
            message=self.loyalty_message(next_purchase_number, qualifies),
        )
        logger.info(
            "Loyalty check for %s: %d cake purchases, next #%d qualifies=%s",
            mask_phone(phone), purchase_count, next_purchase_number, qualifies,
        )
        return status

    def calculate_loyalty_discount(self, qualifying_subtotal: float, phone: str) -> LoyaltyDiscountResult:
        """Discount on the cake-only subtotal for the upcoming purchase, if it is a milestone."""
        status = self.check_loyalty_status(phone)

        if qualifying_subtotal is None or qualifying_subtotal <= 0:
            return LoyaltyDiscountResult(
                loyalty_applied=False,
                discount_amount=0.0,
                discount_percentage=0.0,
                message="No cake items to apply a loyalty discount to",
                purchase_number=status.next_purchase_number,
                next_discount_at=status.next_discount_at,
            )

        if not status.qualifies_for_discount:
            return LoyaltyDiscountResult(
                loyalty_applied=False,
                discount_amount=0.0,
                discount_percentage=0.0,
                message=status.message,
                purchase_number=status.next_purchase_number,
                next_discount_at=status.next_discount_at,
            )

        discount_amount = round(qualifying_subtotal * self.discount_percentage / 100.0, 2)
        result = LoyaltyDiscountResult(
            loyalty_applied=True,
            discount_amount=discount_amount,
            discount_percentage=self.discount_percentage,
            message=status.message,
            purchase_number=status.next_purchase_number,
            next_discount_at=status.next_discount_at,
        )
        logger.info(
            "Loyalty discount for %s: %.2f off %.2f (purchase #%d)",
            mask_phone(phone), discount_amount, qualifying_subtotal, status.next_purchase_number,
        )
        return result

    def iter_loyalty_history(self, phone: str) -> Iterator[LoyaltyPurchase]:
        """Cake purchases for a phone number, newest first.

        Each call runs a fresh query, so the sequence can be restarted by
        simply calling again.
        """
        if not phone:
            return
        query = self._qualifying_bills(phone).order_by(Bill.created_at.desc(), Bill.id.desc())
        for bill in query.yield_per(100):
            yield LoyaltyPurchase(
                bill_id=bill.id,
                bill_number=bill.bill_number,
                created_at=bill.created_at,
                total=bill.total,
                loyalty_applied=bill.loyalty_applied,
                loyalty_discount_amount=bill.loyalty_discount_amount,
            )

    def get_loyalty_history(self, phone: str, recent: int = 5) -> LoyaltyHistory:
        purchases = list(self.iter_loyalty_history(phone))
        status = self.check_loyalty_status(phone)
        return LoyaltyHistory(
            customer_phone=phone,
            total_purchases=len(purchases),
            total_spent=round(sum(p.total for p in purchases), 2),
            loyalty_discounts_received=sum(1 for p in purchases if p.loyalty_applied),
            next_discount_at=status.next_discount_at,
            loyalty_level=loyalty_level(len(purchases)),
            recent_bills=purchases[:recent],
        )

    def loyalty_message(self, purchase_number: int, qualifies: bool) -> str:
        percentage = _format_percentage(self.discount_percentage)
        if qualifies:
            return (
                f"Congratulations! You get {percentage} off on cake items "
                f"for your {ordinal(purchase_number)} cake purchase!"
            )

        remaining = self.frequency - purchase_number % self.frequency
        lead = "Next" if remaining == 1 else f"{remaining} more"
        plural = "s" if remaining > 1 else ""
        return f"{lead} cake purchase{plural} until your {percentage} loyalty discount on cakes!"
