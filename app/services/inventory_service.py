from sqlalchemy.orm import Session, joinedload

from app.models.location import InventoryItem, Location
from app.models.product import Product
from app.schemas.dashboard import DashboardOut, InventorySummary
from app.schemas.location import LocationProduct, LocationWithProducts
from app.services import alert_service, location_service, order_service, report_service, stock_status


def active_stock(db: Session) -> list[LocationProduct]:
    """Every inventory row of every active location."""
    rows = (
        db.query(InventoryItem)
        .join(Location, Location.id == InventoryItem.location_id)
        .options(
            joinedload(InventoryItem.product).joinedload(Product.category),
            joinedload(InventoryItem.variant),
        )
        .filter(Location.is_active == True)  # noqa: E712
        .all()
    )
    return [location_service.to_location_product(r) for r in rows]


def inventory_summary(db: Session) -> InventorySummary:
    stock = active_stock(db)
    return InventorySummary(
        total_items=stock_status.count_statuses(stock).total_items,
        items_to_order=stock_status.items_to_order(stock),
        estimated_order_value=report_service.estimated_order_value(db),
        locations_count=db.query(Location).filter(Location.is_active == True).count(),  # noqa: E712
    )


def dashboard(db: Session, search: str = "") -> DashboardOut:
    locations = location_service.list_active_with_preview(db)
    return DashboardOut(
        summary=inventory_summary(db),
        locations=location_service.search_locations(locations, search),
        critical_alerts_count=alert_service.unread_summary(db).critical_count,
        pending_orders_count=order_service.count_active_orders(db),
        expired_products_count=report_service.expired_products_count(db),
    )


def stock_by_location(
    db: Session, status: stock_status.StockStatus | None = None, search: str = ""
) -> list[LocationWithProducts]:
    """Full stock of every active location, optionally narrowed to one stock status."""
    locations = [
        location_service.with_products(loc, location_service.inventory_rows(db, loc.id))
        for loc in location_service.list_locations(db, active_only=True)
    ]
    locations = location_service.search_locations(locations, search)
    if status is None:
        return locations
    narrowed = []
    for loc in locations:
        products = [p for p in loc.products if p.status == status]
        if products:
            narrowed.append(loc.model_copy(update={"products": products}))
    return narrowed
