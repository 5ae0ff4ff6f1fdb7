from datetime import datetime

from pydantic import BaseModel, Field, computed_field

from app.schemas.common import VariantRef
from app.services import stock_status
from app.services.stock_status import StockStatus


class LocationCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    address: str | None = None
    is_active: bool = True


class LocationUpdate(BaseModel):
    name: str | None = Field(None, min_length=1)
    description: str | None = None
    address: str | None = None
    is_active: bool | None = None


class LocationOut(BaseModel):
    id: str
    name: str
    description: str | None = None
    address: str | None = None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class LocationProduct(BaseModel):
    """A product as stocked at a location (one inventory row)."""

    id: str
    name: str
    sku: str | None = None
    description: str | None = None
    unit_of_measure: str
    category: str | None = None
    quantity: int
    reserved_quantity: int = 0
    min_stock_level: int
    warning_stock_level: int
    variant: VariantRef | None = None
    details: str | None = None

    @computed_field
    @property
    def status(self) -> StockStatus:
        return stock_status.classify(self.quantity, self.min_stock_level, self.warning_stock_level)


class LocationWithProducts(LocationOut):
    products: list[LocationProduct] = []

    @computed_field
    @property
    def status(self) -> StockStatus:
        return stock_status.aggregate(p.status for p in self.products)


class LocationDetailOut(LocationWithProducts):
    @computed_field
    @property
    def total_items(self) -> int:
        return stock_status.count_statuses(self.products).total_items

    @computed_field
    @property
    def critical_items(self) -> int:
        return stock_status.count_statuses(self.products).critical_items

    @computed_field
    @property
    def warning_items(self) -> int:
        return stock_status.count_statuses(self.products).warning_items
