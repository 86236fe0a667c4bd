"""Checkout, bill and loyalty pydantic models.

- Requests accept the camelCase field names the POS frontend sends as well as
  the snake_case attribute names.
- Responses are dumped by alias so clients get camelCase back.
"""
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, List, Optional

from ..data.models import DiscountType, PriceType


class CartItemIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: int = Field(alias="productId")
    quantity: int = Field(ge=1)
    weight: Optional[float] = Field(default=None, gt=0)
    discount: float = Field(default=0, ge=0)
    discount_type: DiscountType = Field(default=DiscountType.percentage, alias="discountType")


class CustomerInfoIn(BaseModel):
    name: str
    phone: str

    @field_validator("name", "phone")
    @classmethod
    def _strip_required(cls, value: str, info) -> str:
        value = value.strip()
        if not value:
            raise ValueError(f"customer {info.field_name} is required")
        return value


class CheckoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: List[CartItemIn] = Field(min_length=1)
    customer_info: CustomerInfoIn = Field(alias="customerInfo")


class LoyaltyCheckRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    customer_phone: str = Field(alias="customerPhone")
    subtotal: Optional[float] = None

    @field_validator("customer_phone")
    @classmethod
    def _strip_phone(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Customer phone number is required")
        return value


class _ResponseModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class BillItemOut(_ResponseModel):
    product_id: int = Field(serialization_alias="productId")
    name: str
    quantity: int
    weight: Optional[float] = None
    price: float
    price_type: PriceType = Field(serialization_alias="priceType")
    discount: float
    discount_type: DiscountType = Field(serialization_alias="discountType")
    discount_amount: float = Field(serialization_alias="discountAmount")
    line_subtotal: float = Field(serialization_alias="lineSubtotal")
    line_total: float = Field(serialization_alias="lineTotal")


class CustomerInfoOut(_ResponseModel):
    name: str
    phone: str


class LoyaltyInfoOut(_ResponseModel):
    applied: bool
    discount_amount: float = Field(serialization_alias="discountAmount")
    discount_percentage: float = Field(serialization_alias="discountPercentage")
    message: str
    purchase_number: int = Field(serialization_alias="purchaseNumber")


class BillOut(_ResponseModel):
    id: int
    bill_number: str = Field(serialization_alias="billNumber")
    items: List[BillItemOut]
    subtotal: float
    total_discount: float = Field(serialization_alias="totalDiscount")
    total: float
    customer_info: CustomerInfoOut = Field(serialization_alias="customerInfo")
    loyalty_info: LoyaltyInfoOut = Field(serialization_alias="loyaltyInfo")
    has_cake_items: bool = Field(serialization_alias="hasCakeItems")
    archive_url: Optional[str] = Field(default=None, serialization_alias="archiveUrl")
    created_at: datetime = Field(serialization_alias="createdAt")


class LoyaltySummaryOut(BaseModel):
    applied: bool
    discount_amount: float = Field(serialization_alias="discountAmount")
    discount_percentage: float = Field(serialization_alias="discountPercentage")
    message: str
    next_milestone_at: int = Field(serialization_alias="nextMilestoneAt")
    purchase_number: int = Field(serialization_alias="purchaseNumber")


def dump(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)
