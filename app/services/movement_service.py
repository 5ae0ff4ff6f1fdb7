import logging
from datetime import datetime, timezone

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from app.config import settings
from app.models.batch import Batch
from app.models.inventory_movement import InventoryMovement, MovementType
from app.models.location import InventoryItem, Location
from app.models.product import Product, ProductVariant
from app.schemas.movement import MovementCreate
from app.services.validation import FieldValidationError

logger = logging.getLogger(__name__)

# Which location fields each movement type reads
USES_SOURCE = frozenset({MovementType.OUT, MovementType.TRANSFER, MovementType.ADJUSTMENT, MovementType.CONSUMPTION})
USES_DESTINATION = frozenset({MovementType.IN, MovementType.TRANSFER})

_SOURCE_MESSAGES = {
    MovementType.OUT: "Select a source location for the stock exit",
    MovementType.TRANSFER: "Select a source location for the transfer",
    MovementType.ADJUSTMENT: "Select the location being adjusted",
    MovementType.CONSUMPTION: "Select the location the stock is consumed from",
}
_DESTINATION_MESSAGES = {
    MovementType.IN: "Select a destination location for the stock entry",
    MovementType.TRANSFER: "Select a destination location for the transfer",
}


def validate_movement(data: MovementCreate) -> dict[str, str]:
    """Return field -> message for every problem; empty means valid."""
    errors: dict[str, str] = {}

    if not data.product_id:
        errors["product_id"] = "Select a product"
    if data.quantity <= 0:
        errors["quantity"] = "Quantity must be greater than 0"

    if data.type in USES_SOURCE and not data.source_location_id:
        errors["source_location_id"] = _SOURCE_MESSAGES[data.type]
    if data.type in USES_DESTINATION and not data.destination_location_id:
        errors["destination_location_id"] = _DESTINATION_MESSAGES[data.type]
    if (
        data.type == MovementType.TRANSFER
        and "destination_location_id" not in errors
        and data.source_location_id == data.destination_location_id
    ):
        errors["destination_location_id"] = "Source and destination must be different"

    return errors


def _get_or_create_slot(db: Session, location_id: str, product_id: str, variant_id: str | None) -> InventoryItem:
    slot = (
        db.query(InventoryItem)
        .filter(
            InventoryItem.location_id == location_id,
            InventoryItem.product_id == product_id,
            InventoryItem.variant_id.is_(None) if variant_id is None else InventoryItem.variant_id == variant_id,
        )
        .first()
    )
    if not slot:
        slot = InventoryItem(location_id=location_id, product_id=product_id, variant_id=variant_id, quantity=0)
        db.add(slot)
        db.flush()
    return slot


def _take(slot: InventoryItem, quantity: int) -> None:
    if slot.quantity < quantity:
        raise ValueError(f"Insufficient stock. Available: {slot.quantity}, requested: {quantity}")
    slot.quantity -= quantity


def apply_movement(db: Session, movement: InventoryMovement) -> None:
    """Update current inventory for a movement. Does not commit."""
    mtype = movement.movement_type
    qty = movement.quantity
    product_id, variant_id = movement.product_id, movement.variant_id

    if mtype == MovementType.IN:
        _get_or_create_slot(db, movement.destination_location_id, product_id, variant_id).quantity += qty
    elif mtype in (MovementType.OUT, MovementType.CONSUMPTION):
        _take(_get_or_create_slot(db, movement.source_location_id, product_id, variant_id), qty)
    elif mtype == MovementType.TRANSFER:
        _take(_get_or_create_slot(db, movement.source_location_id, product_id, variant_id), qty)
        _get_or_create_slot(db, movement.destination_location_id, product_id, variant_id).quantity += qty
    elif mtype == MovementType.ADJUSTMENT:
        # An adjustment records a physical count
        slot = _get_or_create_slot(db, movement.source_location_id, product_id, variant_id)
        slot.quantity = qty
        slot.last_counted_at = datetime.now(timezone.utc)


def check_references(db: Session, data: MovementCreate) -> None:
    """Every id on the movement must exist, and variant and batch must belong to the product."""
    if not db.query(Product).filter(Product.id == data.product_id).first():
        raise FieldValidationError({"product_id": f"Product {data.product_id} not found"})
    errors: dict[str, str] = {}
    for field in ("source_location_id", "destination_location_id"):
        location_id = getattr(data, field)
        if location_id and not db.query(Location).filter(Location.id == location_id).first():
            errors[field] = f"Location {location_id} not found"
    if data.variant_id:
        variant = db.query(ProductVariant).filter(ProductVariant.id == data.variant_id).first()
        if not variant or variant.product_id != data.product_id:
            errors["variant_id"] = f"Variant {data.variant_id} not found for this product"
    if data.batch_id:
        batch = db.query(Batch).filter(Batch.id == data.batch_id).first()
        if not batch or batch.product_id != data.product_id:
            errors["batch_id"] = f"Batch {data.batch_id} not found for this product"
        elif (batch.variant_id or None) != (data.variant_id or None):
            errors["batch_id"] = "Batch does not match the selected variant"
    if errors:
        raise FieldValidationError(errors)


def record_movement(db: Session, data: MovementCreate, moved_by: str, commit: bool = True) -> InventoryMovement:
    errors = validate_movement(data)
    if errors:
        raise FieldValidationError(errors)

    check_references(db, data)

    movement = InventoryMovement(
        movement_type=data.type,
        product_id=data.product_id,
        variant_id=data.variant_id or None,
        batch_id=data.batch_id or None,
        source_location_id=data.source_location_id if data.type in USES_SOURCE else None,
        destination_location_id=data.destination_location_id if data.type in USES_DESTINATION else None,
        quantity=data.quantity,
        moved_by=moved_by,
        reference_number=data.reference_number or None,
        notes=data.notes or None,
    )
    db.add(movement)
    apply_movement(db, movement)

    if commit:
        db.commit()
        db.refresh(movement)
        logger.info("Recorded %s movement of %d for product %s", data.type.value, data.quantity, data.product_id)
    return movement


def get_movement(db: Session, movement_id: str) -> InventoryMovement | None:
    return db.query(InventoryMovement).filter(InventoryMovement.id == movement_id).first()


def list_movements(
    db: Session,
    product_id: str | None = None,
    location_id: str | None = None,
    movement_type: MovementType | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    limit: int | None = None,
) -> list[InventoryMovement]:
    q = db.query(InventoryMovement).options(
        joinedload(InventoryMovement.product),
        joinedload(InventoryMovement.variant),
        joinedload(InventoryMovement.source_location),
        joinedload(InventoryMovement.destination_location),
        joinedload(InventoryMovement.moved_by_user),
    )
    if product_id:
        q = q.filter(InventoryMovement.product_id == product_id)
    if location_id:
        q = q.filter(
            or_(
                InventoryMovement.source_location_id == location_id,
                InventoryMovement.destination_location_id == location_id,
            )
        )
    if movement_type:
        q = q.filter(InventoryMovement.movement_type == movement_type)
    if start_date:
        q = q.filter(InventoryMovement.created_at >= start_date)
    if end_date:
        q = q.filter(InventoryMovement.created_at <= end_date)
    return q.order_by(InventoryMovement.created_at.desc()).limit(limit or settings.MOVEMENTS_PAGE_LIMIT).all()
