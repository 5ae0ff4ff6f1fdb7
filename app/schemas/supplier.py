from datetime import datetime

from pydantic import BaseModel, Field

from app.schemas.common import ProductRef, VariantRef


class SupplierCreate(BaseModel):
    name: str = Field(min_length=1)
    contact_name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    notes: str | None = None
    is_active: bool = True


class SupplierUpdate(BaseModel):
    name: str | None = Field(None, min_length=1)
    contact_name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    notes: str | None = None
    is_active: bool | None = None


class SupplierOut(BaseModel):
    id: str
    name: str
    contact_name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    notes: str | None = None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class SuppliedProductOut(BaseModel):
    id: str
    product: ProductRef
    variant: VariantRef | None = None
    supplier_reference: str | None = None
    unit_price: float | None = None
    is_preferred: bool
    lead_time_days: int | None = None

    model_config = {"from_attributes": True}


class SupplierDetailOut(SupplierOut):
    products: list[SuppliedProductOut] = []


class ProductSupplierCreate(BaseModel):
    supplier_id: str
    variant_id: str | None = None
    supplier_reference: str | None = None
    unit_price: float | None = Field(None, ge=0)
    is_preferred: bool = False
    lead_time_days: int | None = Field(None, ge=0)
