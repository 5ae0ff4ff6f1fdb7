from sqlalchemy.orm import Session, joinedload

from app.config import settings
from app.models.location import InventoryItem, Location
from app.models.product import Product
from app.schemas.common import VariantRef
from app.schemas.location import (
    LocationCreate,
    LocationDetailOut,
    LocationProduct,
    LocationUpdate,
    LocationWithProducts,
)


def create_location(db: Session, data: LocationCreate) -> Location:
    location = Location(**data.model_dump())
    db.add(location)
    db.commit()
    db.refresh(location)
    return location


def get_location(db: Session, location_id: str) -> Location | None:
    return db.query(Location).filter(Location.id == location_id).first()


def list_locations(db: Session, active_only: bool = False) -> list[Location]:
    q = db.query(Location)
    if active_only:
        q = q.filter(Location.is_active == True)  # noqa: E712
    return q.order_by(Location.name).all()


def update_location(db: Session, location_id: str, data: LocationUpdate) -> Location | None:
    location = get_location(db, location_id)
    if not location:
        return None
    for field, value in data.model_dump(exclude_unset=True).items():
        if field in ("name", "is_active") and value is None:
            continue
        setattr(location, field, value)
    db.commit()
    db.refresh(location)
    return location


def inventory_rows(db: Session, location_id: str, limit: int | None = None) -> list[InventoryItem]:
    q = (
        db.query(InventoryItem)
        .options(
            joinedload(InventoryItem.product).joinedload(Product.category),
            joinedload(InventoryItem.variant),
        )
        .filter(InventoryItem.location_id == location_id)
        .order_by(InventoryItem.quantity.desc())
    )
    if limit:
        q = q.limit(limit)
    return q.all()


def to_location_product(item: InventoryItem) -> LocationProduct:
    product = item.product
    variant = item.variant
    return LocationProduct(
        id=product.id,
        name=product.name,
        sku=product.sku,
        description=product.description,
        unit_of_measure=product.unit_of_measure,
        category=product.category.name if product.category else None,
        quantity=item.quantity,
        reserved_quantity=item.reserved_quantity,
        min_stock_level=product.min_stock_level,
        warning_stock_level=product.warning_stock_level,
        variant=VariantRef.model_validate(variant) if variant else None,
        details=f"{product.sku} - {variant.variant_name}" if variant else product.sku,
    )


def with_products(location: Location, rows: list[InventoryItem], model=LocationWithProducts):
    return model(
        id=location.id,
        name=location.name,
        description=location.description,
        address=location.address,
        is_active=location.is_active,
        created_at=location.created_at,
        products=[to_location_product(r) for r in rows],
    )


def list_active_with_preview(db: Session, limit: int | None = None) -> list[LocationWithProducts]:
    """Active locations, each with its best-stocked products."""
    limit = limit or settings.LOCATION_PREVIEW_LIMIT
    return [with_products(loc, inventory_rows(db, loc.id, limit)) for loc in list_locations(db, active_only=True)]


def get_location_detail(db: Session, location_id: str) -> LocationDetailOut | None:
    location = get_location(db, location_id)
    if not location:
        return None
    return with_products(location, inventory_rows(db, location_id), model=LocationDetailOut)


def search_locations(locations: list[LocationWithProducts], query: str) -> list[LocationWithProducts]:
    """Match on the location name or the name of any product it holds."""
    needle = query.strip().lower()
    if not needle:
        return locations
    return [
        loc for loc in locations
        if needle in loc.name.lower() or any(needle in p.name.lower() for p in loc.products)
    ]
