from datetime import datetime

from pydantic import BaseModel, Field

from app.models.inventory_movement import MovementType
from app.schemas.common import LocationRef, ProductRef, UserRef, VariantRef


class MovementCreate(BaseModel):
    type: MovementType = MovementType.IN
    product_id: str = ""
    variant_id: str | None = None
    batch_id: str | None = None
    quantity: int = 1
    source_location_id: str | None = None
    destination_location_id: str | None = None
    reference_number: str | None = None
    notes: str | None = None


class MovementOut(BaseModel):
    id: str
    type: MovementType = Field(validation_alias="movement_type")
    product_id: str
    variant_id: str | None = None
    batch_id: str | None = None
    source_location_id: str | None = None
    destination_location_id: str | None = None
    quantity: int
    moved_by: str
    reference_number: str | None = None
    notes: str | None = None
    created_at: datetime
    product: ProductRef
    variant: VariantRef | None = None
    source_location: LocationRef | None = None
    destination_location: LocationRef | None = None
    moved_by_user: UserRef

    model_config = {"from_attributes": True, "populate_by_name": True}
