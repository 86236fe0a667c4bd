from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Enum, Boolean, event, inspect
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .database import Base
import datetime
import enum

class PriceType(str, enum.Enum):
    fixed = "fixed"
    per_kg = "per_kg"

class DiscountType(str, enum.Enum):
    percentage = "percentage"
    fixed = "fixed"

class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), unique=True, index=True, nullable=False)
    description = Column(String(200), nullable=False, default="")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    products = relationship("Product", back_populates="category")

class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), index=True, nullable=False)
    description = Column(String(500), nullable=False, default="")
    price = Column(Float, nullable=False)
    price_type = Column(Enum(PriceType), nullable=False, default=PriceType.fixed)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=True, onupdate=datetime.datetime.now)

    category = relationship("Category", back_populates="products")

    @property
    def category_name(self) -> str:
        return self.category.name if self.category is not None else ""

    @property
    def is_cake(self) -> bool:
        """Cake-category products are the only ones that count toward loyalty."""
        return "cake" in self.category_name.lower()

class Bill(Base):
    __tablename__ = "bills"

    id = Column(Integer, primary_key=True, index=True)
    bill_number = Column(String(32), unique=True, index=True, nullable=False)
    subtotal = Column(Float, nullable=False)
    total_discount = Column(Float, nullable=False, default=0.0)
    total = Column(Float, nullable=False)
    customer_name = Column(String, nullable=False)
    customer_phone = Column(String, nullable=False, index=True)
    has_cake_items = Column(Boolean, nullable=False, default=False, index=True)

    # Snapshot of the loyalty decision taken at checkout
    loyalty_applied = Column(Boolean, nullable=False, default=False)
    loyalty_discount_amount = Column(Float, nullable=False, default=0.0)
    loyalty_discount_percentage = Column(Float, nullable=False, default=0.0)
    loyalty_message = Column(String, nullable=False, default="")
    loyalty_purchase_number = Column(Integer, nullable=False, default=0)

    archive_url = Column(String, nullable=True)  # Patched after commit, may stay empty
    created_at = Column(DateTime, nullable=False, index=True)

    items = relationship(
        "BillItem",
        back_populates="bill",
        order_by="BillItem.position",
        cascade="all, delete-orphan",
    )

    @property
    def customer_info(self):
        return {"name": self.customer_name, "phone": self.customer_phone}

    @property
    def loyalty_info(self):
        return {
            "applied": self.loyalty_applied,
            "discount_amount": self.loyalty_discount_amount,
            "discount_percentage": self.loyalty_discount_percentage,
            "message": self.loyalty_message,
            "purchase_number": self.loyalty_purchase_number,
        }

class BillItem(Base):
    __tablename__ = "bill_items"

    id = Column(Integer, primary_key=True, index=True)
    bill_id = Column(Integer, ForeignKey("bills.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    name = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    weight = Column(Float, nullable=True)
    price = Column(Float, nullable=False)  # unit price at time of checkout
    price_type = Column(Enum(PriceType), nullable=False, default=PriceType.fixed)
    discount = Column(Float, nullable=False, default=0.0)
    discount_type = Column(Enum(DiscountType), nullable=False, default=DiscountType.percentage)
    discount_amount = Column(Float, nullable=False, default=0.0)
    line_subtotal = Column(Float, nullable=False)

    bill = relationship("Bill", back_populates="items")

    @property
    def line_total(self) -> float:
        return round(self.line_subtotal - self.discount_amount, 2)

class BillSequence(Base):
    """Last bill sequence handed out per business day (YYYYMMDD)."""
    __tablename__ = "bill_sequences"

    day = Column(String(8), primary_key=True)
    last_value = Column(Integer, nullable=False, default=0)


_MUTABLE_BILL_ATTRIBUTES = {"archive_url"}


@event.listens_for(Bill, "before_update")
def _reject_bill_changes(mapper, connection, target):
    """Committed bills are business records; only the archive URL may be filled in later."""
    state = inspect(target)
    changed = [
        attr.key
        for attr in state.attrs
        if attr.key not in _MUTABLE_BILL_ATTRIBUTES and attr.history.has_changes()
    ]
    if changed:
        raise ValueError(f"Bill {target.bill_number} is immutable; refused change to {', '.join(changed)}")
