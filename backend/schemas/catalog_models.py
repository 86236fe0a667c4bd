"""Category and product pydantic models."""
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional

from ..data.models import PriceType


class CategoryIn(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    description: str = Field(default="", max_length=200)
    is_active: bool = Field(default=True, alias="isActive")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("name", "description")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    description: Optional[str] = Field(default=None, max_length=200)
    is_active: Optional[bool] = Field(default=None, alias="isActive")

    model_config = ConfigDict(populate_by_name=True)


class CategoryOut(BaseModel):
    id: int
    name: str
    description: str
    is_active: bool = Field(serialization_alias="isActive")

    model_config = ConfigDict(from_attributes=True)


class ProductIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    price: float = Field(ge=0)
    price_type: PriceType = Field(default=PriceType.fixed, alias="priceType")
    category_id: int = Field(alias="categoryId")
    is_active: bool = Field(default=True, alias="isActive")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("name")
    @classmethod
    def _capitalize(cls, value: str) -> str:
        value = value.strip()
        return value[:1].upper() + value[1:]

    @field_validator("price")
    @classmethod
    def _two_places(cls, value: float) -> float:
        return round(value, 2)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    price: Optional[float] = Field(default=None, ge=0)
    price_type: Optional[PriceType] = Field(default=None, alias="priceType")
    category_id: Optional[int] = Field(default=None, alias="categoryId")
    is_active: Optional[bool] = Field(default=None, alias="isActive")

    model_config = ConfigDict(populate_by_name=True)


class ProductOut(BaseModel):
    id: int
    name: str
    description: str
    price: float
    price_type: PriceType = Field(serialization_alias="priceType")
    category_id: int = Field(serialization_alias="categoryId")
    category_name: str = Field(serialization_alias="categoryName")
    is_active: bool = Field(serialization_alias="isActive")
    created_at: Optional[datetime] = Field(default=None, serialization_alias="createdAt")

    model_config = ConfigDict(from_attributes=True)
