from datetime import datetime

from pydantic import BaseModel, Field, computed_field

from app.models.order import OrderStatus
from app.schemas.common import LocationRef, ProductRef, SupplierRef, UserRef, VariantRef
from app.services import order_lifecycle


class OrderItemCreate(BaseModel):
    product_id: str = ""
    variant_id: str | None = None
    quantity: int = 1
    unit_price: float | None = None
    destination_location_id: str = ""
    notes: str | None = None


class OrderCreate(BaseModel):
    reference_number: str = ""  # empty = generate one
    supplier_id: str = ""
    status: OrderStatus = OrderStatus.ORDERED
    expected_delivery_date: datetime | None = None
    notes: str | None = None
    items: list[OrderItemCreate] = []


class OrderUpdate(BaseModel):
    supplier_id: str | None = None
    expected_delivery_date: datetime | None = None
    notes: str | None = None
    items: list[OrderItemCreate] | None = None


class ReceiptLine(BaseModel):
    item_id: str
    quantity: int  # received now, added to what was already received


class OrderReceive(BaseModel):
    items: list[ReceiptLine]


class OrderItemOut(BaseModel):
    id: str
    order_id: str
    product_id: str
    variant_id: str | None = None
    quantity: int
    received_quantity: int
    unit_price: float | None = None
    destination_location_id: str
    notes: str | None = None
    product: ProductRef
    variant: VariantRef | None = None
    destination: LocationRef

    model_config = {"from_attributes": True}


class OrderOut(BaseModel):
    id: str
    reference_number: str
    status: OrderStatus
    supplier: SupplierRef
    ordered_by: UserRef = Field(validation_alias="ordered_by_user")
    ordered_date: datetime | None = None
    expected_delivery_date: datetime | None = None
    received_date: datetime | None = None
    notes: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True, "populate_by_name": True}


class OrderDetailOut(OrderOut):
    items: list[OrderItemOut] = []

    @computed_field
    @property
    def total_quantity(self) -> int:
        return sum(i.quantity for i in self.items)

    @computed_field
    @property
    def received_quantity(self) -> int:
        return sum(i.received_quantity for i in self.items)

    @computed_field
    @property
    def completion_percent(self) -> int:
        return order_lifecycle.completion_percentage(self.received_quantity, self.total_quantity)

    @computed_field
    @property
    def actions(self) -> list[str]:
        return order_lifecycle.allowed_actions(self.status)
