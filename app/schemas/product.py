from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, computed_field, model_validator

from app.schemas.common import CategoryRef, LocationRef, SupplierRef, VariantRef
from app.services.stock_status import StockStatus, aggregate, classify

THRESHOLD_ORDER_MESSAGE = "warning_stock_level must be greater than or equal to min_stock_level"


# --- Category schemas ---

class CategoryCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None


class CategoryOut(BaseModel):
    id: str
    name: str
    description: str | None = None

    model_config = {"from_attributes": True}


# --- Variant schemas ---

class VariantCreate(BaseModel):
    variant_name: str = Field(min_length=1)
    attributes: dict[str, Any] = {}
    is_active: bool = True


class VariantOut(BaseModel):
    id: str
    product_id: str
    variant_name: str
    attributes: dict[str, Any] = {}
    is_active: bool

    model_config = {"from_attributes": True}


# --- Product schemas ---

class ProductCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    sku: str | None = None
    barcode: str | None = None
    unit_of_measure: str = "unité"
    min_stock_level: int = Field(0, ge=0)
    warning_stock_level: int = Field(0, ge=0)
    has_expiry: bool = False
    category_id: str | None = None

    @model_validator(mode="after")
    def check_thresholds(self):
        if self.warning_stock_level < self.min_stock_level:
            raise ValueError(THRESHOLD_ORDER_MESSAGE)
        return self


class ProductUpdate(BaseModel):
    name: str | None = Field(None, min_length=1)
    description: str | None = None
    sku: str | None = None
    barcode: str | None = None
    unit_of_measure: str | None = None
    min_stock_level: int | None = Field(None, ge=0)
    warning_stock_level: int | None = Field(None, ge=0)
    has_expiry: bool | None = None
    category_id: str | None = None


class ProductOut(BaseModel):
    id: str
    name: str
    description: str | None = None
    sku: str | None = None
    barcode: str | None = None
    unit_of_measure: str
    min_stock_level: int
    warning_stock_level: int
    has_expiry: bool
    category: CategoryRef | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProductStockRow(BaseModel):
    """Stock of a product at one location."""

    location: LocationRef
    variant: VariantRef | None = None
    quantity: int
    reserved_quantity: int
    last_counted_at: datetime | None = None
    min_stock_level: int
    warning_stock_level: int

    @computed_field
    @property
    def status(self) -> StockStatus:
        return classify(self.quantity, self.min_stock_level, self.warning_stock_level)


class ProductSupplierOut(BaseModel):
    id: str
    product_id: str
    supplier: SupplierRef
    variant: VariantRef | None = None
    supplier_reference: str | None = None
    unit_price: float | None = None
    is_preferred: bool
    lead_time_days: int | None = None

    model_config = {"from_attributes": True}


class ProductDetailOut(ProductOut):
    variants: list[VariantOut] = []
    stock: list[ProductStockRow] = []
    suppliers: list[ProductSupplierOut] = []

    @computed_field
    @property
    def total_quantity(self) -> int:
        return sum(row.quantity for row in self.stock)

    @computed_field
    @property
    def status(self) -> StockStatus:
        return aggregate(row.status for row in self.stock)
