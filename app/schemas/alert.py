from datetime import datetime

from pydantic import BaseModel, Field, computed_field

from app.models.alert import AlertSeverity, AlertType
from app.schemas.common import LocationRef, ProductRef, VariantRef


class AlertCreate(BaseModel):
    type: AlertType
    message: str = Field(min_length=1)
    severity: AlertSeverity = AlertSeverity.INFO
    product_id: str | None = None
    variant_id: str | None = None
    batch_id: str | None = None
    location_id: str | None = None


class AlertOut(BaseModel):
    id: str
    type: AlertType = Field(validation_alias="alert_type")
    message: str
    severity: AlertSeverity
    is_read: bool
    created_at: datetime
    product: ProductRef | None = None
    variant: VariantRef | None = None
    location: LocationRef | None = None

    model_config = {"from_attributes": True, "populate_by_name": True}


class UnreadAlertsOut(BaseModel):
    alerts: list[AlertOut]
    critical_count: int

    @computed_field
    @property
    def unread_count(self) -> int:
        return len(self.alerts)
