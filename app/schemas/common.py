"""Small embedded views of related rows, shared by the response models."""

from pydantic import BaseModel, Field


class CategoryRef(BaseModel):
    id: str
    name: str

    model_config = {"from_attributes": True}


class ProductRef(BaseModel):
    id: str
    name: str
    sku: str | None = None
    unit_of_measure: str | None = None

    model_config = {"from_attributes": True}


class VariantRef(BaseModel):
    id: str
    name: str = Field(validation_alias="variant_name")

    model_config = {"from_attributes": True, "populate_by_name": True}


class LocationRef(BaseModel):
    id: str
    name: str

    model_config = {"from_attributes": True}


class SupplierRef(BaseModel):
    id: str
    name: str

    model_config = {"from_attributes": True}


class UserRef(BaseModel):
    id: str
    name: str = Field(validation_alias="display_name")
    email: str

    model_config = {"from_attributes": True, "populate_by_name": True}
