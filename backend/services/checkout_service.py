"""Checkout: turn a submitted cart into a committed, server-priced bill.

Prices always come from the catalog at the time of checkout; whatever the
client thinks an item costs is ignored. One checkout is one transaction:
pricing, the loyalty decision and the bill number allocation all happen
before the single commit, and any failure rolls everything back.
"""
import datetime
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..app.config import Config
from ..data.models import Bill, BillItem, DiscountType, PriceType, Product
from ..schemas.checkout_models import CartItemIn, CheckoutRequest
from ..utils.logger import get_logger
from ..utils.security import mask_pii, mask_phone
from .bill_numbering import BillNumberAllocator
from .errors import NotFoundError, TransactionError, ValidationError
from .loyalty_service import LoyaltyDiscountResult, LoyaltyService

logger = get_logger("checkout")


@dataclass
class PricedItem:
    product_id: int
    name: str
    quantity: int
    weight: Optional[float]
    unit_price: float
    price_type: PriceType
    discount: float
    discount_type: DiscountType
    discount_amount: float
    line_subtotal: float
    is_cake: bool

    @property
    def line_total(self) -> float:
        return round(self.line_subtotal - self.discount_amount, 2)


@dataclass
class PricedCart:
    items: List[PricedItem] = field(default_factory=list)
    subtotal: float = 0.0
    item_discounts: float = 0.0
    qualifying_subtotal: float = 0.0

    @property
    def has_cake_items(self) -> bool:
        return any(item.is_cake for item in self.items)


@dataclass
class CheckoutResult:
    bill: Bill
    loyalty: Dict[str, Any]


def item_discount(line_subtotal: float, discount: float, discount_type: DiscountType) -> float:
    """Per-item discount, always within ``[0, line_subtotal]``."""
    if not discount or discount <= 0:
        return 0.0
    if discount_type == DiscountType.percentage:
        amount = line_subtotal * discount / 100.0
    else:
        amount = discount
    return round(min(max(amount, 0.0), line_subtotal), 2)


def price_item(product: Product, cart_item: CartItemIn) -> PricedItem:
    unit_price = float(product.price)
    if product.price_type == PriceType.per_kg:
        if cart_item.weight is None:
            raise ValidationError(f"Weight is required for {product.name} (priced per kg)")
        weight = cart_item.weight
        line_subtotal = round(unit_price * weight * cart_item.quantity, 2)
        name = f"{product.name} ({weight:g}kg)"
    else:
        weight = None
        line_subtotal = round(unit_price * cart_item.quantity, 2)
        name = product.name

    return PricedItem(
        product_id=product.id,
        name=name,
        quantity=cart_item.quantity,
        weight=weight,
        unit_price=unit_price,
        price_type=product.price_type,
        discount=cart_item.discount,
        discount_type=cart_item.discount_type,
        discount_amount=item_discount(line_subtotal, cart_item.discount, cart_item.discount_type),
        line_subtotal=line_subtotal,
        is_cake=product.is_cake,
    )


def price_cart(products: Mapping[int, Product], cart_items: Sequence[CartItemIn]) -> PricedCart:
    """Price a cart against a catalog snapshot. No I/O; same input, same totals."""
    cart = PricedCart()
    for cart_item in cart_items:
        priced = price_item(products[cart_item.product_id], cart_item)
        cart.items.append(priced)
        cart.subtotal += priced.line_subtotal
        cart.item_discounts += priced.discount_amount
        if priced.is_cake:
            cart.qualifying_subtotal += priced.line_subtotal

    cart.subtotal = round(cart.subtotal, 2)
    cart.item_discounts = round(cart.item_discounts, 2)
    cart.qualifying_subtotal = round(cart.qualifying_subtotal, 2)
    return cart


def parse_checkout_request(items, customer_info) -> CheckoutRequest:
    if not items:
        raise ValidationError("Cart items are required")
    if not customer_info:
        raise ValidationError("Customer information is required")
    try:
        return CheckoutRequest.model_validate({"items": list(items), "customerInfo": customer_info})
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise ValidationError(f"Invalid checkout request ({location}): {first.get('msg')}") from exc


NO_CAKE_LOYALTY_MESSAGE = "No cake items in this purchase"


class CheckoutService:
    """Runs one checkout against a request-scoped session."""

    def __init__(
        self,
        db: Session,
        loyalty: Optional[LoyaltyService] = None,
        numbering: Optional[BillNumberAllocator] = None,
        now: Optional[Callable[[], datetime.datetime]] = None,
        clamp_total_at_zero: Optional[bool] = None,
    ):
        self.db = db
        self.loyalty = loyalty or LoyaltyService(db)
        self.numbering = numbering or BillNumberAllocator(db)
        self.now = now or datetime.datetime.now
        self.clamp_total_at_zero = (
            clamp_total_at_zero if clamp_total_at_zero is not None else Config.CLAMP_TOTAL_AT_ZERO
        )

    def create_checkout(self, items, customer_info) -> CheckoutResult:
        request = parse_checkout_request(items, customer_info)
        customer = request.customer_info
        logger.info("Checkout started: %d item(s) for %s", len(request.items), mask_phone(customer.phone))

        try:
            products = self._load_products(request.items)
            priced = price_cart(products, request.items)
            loyalty = self._loyalty_for(priced, customer.phone)
            bill = self._assemble_bill(priced, loyalty, customer.name, customer.phone)
            bill.bill_number = self.numbering.allocate(bill.created_at)
            self.db.add(bill)
            self.db.commit()
        except (ValidationError, NotFoundError, TransactionError):
            self.db.rollback()
            raise
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("Checkout transaction failed: %s", mask_pii(str(exc)))
            raise TransactionError() from exc

        logger.info(
            "Checkout committed: %s subtotal=%.2f discount=%.2f total=%.2f loyalty=%s",
            bill.bill_number, bill.subtotal, bill.total_discount, bill.total, bill.loyalty_applied,
        )
        return CheckoutResult(bill=bill, loyalty=self._loyalty_summary(bill, loyalty))

    def _load_products(self, cart_items: Sequence[CartItemIn]) -> Dict[int, Product]:
        ids = {item.product_id for item in cart_items}
        rows = (
            self.db.query(Product)
            .options(joinedload(Product.category))
            .filter(Product.id.in_(ids), Product.is_active.is_(True))
            .all()
        )
        products = {product.id: product for product in rows}
        for item in cart_items:
            if item.product_id not in products:
                raise NotFoundError(f"Product not found: {item.product_id}")
        return products

    def _loyalty_for(self, priced: PricedCart, phone: str) -> Optional[LoyaltyDiscountResult]:
        if not priced.has_cake_items:
            logger.info("No cake items, loyalty not applicable")
            return None
        return self.loyalty.calculate_loyalty_discount(priced.qualifying_subtotal, phone)

    def _assemble_bill(self, priced: PricedCart, loyalty: Optional[LoyaltyDiscountResult], name: str, phone: str) -> Bill:
        loyalty_amount = loyalty.discount_amount if loyalty and loyalty.loyalty_applied else 0.0
        total_discount = round(priced.item_discounts + loyalty_amount, 2)
        total = round(priced.subtotal - total_discount, 2)
        if self.clamp_total_at_zero:
            total = max(total, 0.0)

        bill = Bill(
            subtotal=priced.subtotal,
            total_discount=total_discount,
            total=total,
            customer_name=name,
            customer_phone=phone,
            has_cake_items=priced.has_cake_items,
            loyalty_applied=bool(loyalty and loyalty.loyalty_applied),
            loyalty_discount_amount=loyalty_amount,
            loyalty_discount_percentage=loyalty.discount_percentage if loyalty else 0.0,
            loyalty_message=loyalty.message if loyalty else NO_CAKE_LOYALTY_MESSAGE,
            loyalty_purchase_number=loyalty.purchase_number if loyalty else 0,
            created_at=self.now(),
        )
        for position, item in enumerate(priced.items):
            bill.items.append(
                BillItem(
                    position=position,
                    product_id=item.product_id,
                    name=item.name,
                    quantity=item.quantity,
                    weight=item.weight,
                    price=item.unit_price,
                    price_type=item.price_type,
                    discount=item.discount,
                    discount_type=item.discount_type,
                    discount_amount=item.discount_amount,
                    line_subtotal=item.line_subtotal,
                )
            )
        return bill

    def _loyalty_summary(self, bill: Bill, loyalty: Optional[LoyaltyDiscountResult]) -> Dict[str, Any]:
        # The bill is already committed, so a failed status read must not fail the checkout
        try:
            status = self.loyalty.check_loyalty_status(bill.customer_phone)
            next_milestone_at = status.next_discount_at
            next_purchase_number = status.next_purchase_number
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning("Could not refresh loyalty status after %s: %s", bill.bill_number, exc)
            next_milestone_at = loyalty.next_discount_at if loyalty else 0
            next_purchase_number = 0

        return {
            "applied": bill.loyalty_applied,
            "discount_amount": bill.loyalty_discount_amount,
            "discount_percentage": bill.loyalty_discount_percentage,
            "message": bill.loyalty_message,
            "next_milestone_at": next_milestone_at,
            "purchase_number": bill.loyalty_purchase_number or next_purchase_number,
        }
