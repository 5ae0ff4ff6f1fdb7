from pydantic import BaseModel

from app.schemas.location import LocationWithProducts


class InventorySummary(BaseModel):
    total_items: int
    items_to_order: int
    estimated_order_value: float | None = None
    locations_count: int


class DashboardOut(BaseModel):
    summary: InventorySummary
    locations: list[LocationWithProducts]
    critical_alerts_count: int
    pending_orders_count: int
    expired_products_count: int
