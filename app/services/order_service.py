import logging
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from app.models.inventory_movement import MovementType
from app.models.location import Location
from app.models.order import Order, OrderItem, OrderStatus
from app.models.product import Product, ProductVariant
from app.models.supplier import Supplier
from app.schemas.movement import MovementCreate
from app.schemas.order import OrderCreate, OrderItemCreate, OrderReceive, OrderUpdate
from app.services import movement_service, order_lifecycle
from app.services.validation import FieldValidationError

logger = logging.getLogger(__name__)

REFERENCE_ATTEMPTS = 5


def _now() -> datetime:
    return datetime.now(timezone.utc)


def validate_items(items: list[OrderItemCreate]) -> dict[str, str]:
    errors: dict[str, str] = {}
    if not items:
        errors["items"] = "Add at least one item to the order"
    for i, item in enumerate(items):
        if not item.product_id:
            errors[f"items.{i}.product_id"] = "Select a product"
        if item.quantity <= 0:
            errors[f"items.{i}.quantity"] = "Quantity must be greater than 0"
        if not item.destination_location_id:
            errors[f"items.{i}.destination_location_id"] = "Select a destination location"
        if item.unit_price is not None and item.unit_price < 0:
            errors[f"items.{i}.unit_price"] = "Unit price cannot be negative"
    return errors


def validate_order(data: OrderCreate) -> dict[str, str]:
    errors: dict[str, str] = {}
    if not data.supplier_id:
        errors["supplier_id"] = "Select a supplier"
    if data.status not in order_lifecycle.INITIAL:
        errors["status"] = "An order is created as a draft or as ordered"
    errors.update(validate_items(data.items))
    return errors


def _check_references(db: Session, supplier_id: str | None, items: list[OrderItemCreate]) -> None:
    errors: dict[str, str] = {}
    if supplier_id and not db.query(Supplier).filter(Supplier.id == supplier_id).first():
        errors["supplier_id"] = f"Supplier {supplier_id} not found"
    for i, item in enumerate(items):
        if not db.query(Product).filter(Product.id == item.product_id).first():
            errors[f"items.{i}.product_id"] = f"Product {item.product_id} not found"
        elif item.variant_id:
            variant = db.query(ProductVariant).filter(ProductVariant.id == item.variant_id).first()
            if not variant or variant.product_id != item.product_id:
                errors[f"items.{i}.variant_id"] = f"Variant {item.variant_id} not found for this product"
        if not db.query(Location).filter(Location.id == item.destination_location_id).first():
            errors[f"items.{i}.destination_location_id"] = f"Location {item.destination_location_id} not found"
    if errors:
        raise FieldValidationError(errors)


def _reference_taken(db: Session, reference_number: str) -> bool:
    return db.query(Order.id).filter(Order.reference_number == reference_number).first() is not None


def _new_reference_number(db: Session) -> str:
    for _ in range(REFERENCE_ATTEMPTS):
        reference = order_lifecycle.generate_reference_number()
        if not _reference_taken(db, reference):
            return reference
    raise ValueError("Could not generate a free reference number, enter one manually")


def _build_items(items: list[OrderItemCreate]) -> list[OrderItem]:
    return [
        OrderItem(
            product_id=item.product_id,
            variant_id=item.variant_id or None,
            quantity=item.quantity,
            received_quantity=0,
            unit_price=item.unit_price,
            destination_location_id=item.destination_location_id,
            notes=item.notes or None,
        )
        for item in items
    ]


def create_order(db: Session, data: OrderCreate, ordered_by: str) -> Order:
    """Create the header and its items in a single transaction."""
    errors = validate_order(data)
    if errors:
        raise FieldValidationError(errors)
    _check_references(db, data.supplier_id, data.items)

    reference = data.reference_number.strip()
    if reference and _reference_taken(db, reference):
        raise FieldValidationError({"reference_number": f"Reference {reference} is already used"})

    order = Order(
        reference_number=reference or _new_reference_number(db),
        supplier_id=data.supplier_id,
        status=data.status,
        ordered_by=ordered_by,
        ordered_date=_now() if data.status == OrderStatus.ORDERED else None,
        expected_delivery_date=data.expected_delivery_date,
        notes=data.notes or None,
    )
    try:
        db.add(order)
        db.flush()
        for item in _build_items(data.items):
            item.order_id = order.id
            db.add(item)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.error("Order %s could not be saved, nothing was written", order.reference_number)
        raise

    logger.info("Order %s created as %s", order.reference_number, data.status.value)
    return get_order(db, order.id)


def get_order(db: Session, order_id: str) -> Order | None:
    return (
        db.query(Order)
        .options(
            joinedload(Order.supplier),
            joinedload(Order.ordered_by_user),
            joinedload(Order.items).joinedload(OrderItem.product),
            joinedload(Order.items).joinedload(OrderItem.variant),
            joinedload(Order.items).joinedload(OrderItem.destination),
        )
        .filter(Order.id == order_id)
        .first()
    )


def list_orders(
    db: Session,
    status: OrderStatus | None = None,
    supplier_id: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> list[Order]:
    q = db.query(Order).options(joinedload(Order.supplier), joinedload(Order.ordered_by_user))
    if status:
        q = q.filter(Order.status == status)
    if supplier_id:
        q = q.filter(Order.supplier_id == supplier_id)
    if start_date:
        q = q.filter(Order.created_at >= start_date)
    if end_date:
        q = q.filter(Order.created_at <= end_date)
    return q.order_by(Order.created_at.desc()).all()


def list_active_orders(db: Session) -> list[Order]:
    return (
        db.query(Order)
        .options(joinedload(Order.supplier), joinedload(Order.ordered_by_user))
        .filter(Order.status.in_(order_lifecycle.ACTIVE))
        .order_by(Order.created_at.desc())
        .all()
    )


def count_active_orders(db: Session) -> int:
    return db.query(Order).filter(Order.status.in_(order_lifecycle.ACTIVE)).count()


def update_order(db: Session, order_id: str, data: OrderUpdate) -> Order | None:
    order = get_order(db, order_id)
    if not order:
        return None
    if not order_lifecycle.can_edit(order.status):
        raise ValueError(f"Cannot edit order in {order.status.value} status")

    if data.items is not None:
        errors = validate_items(data.items)
        if errors:
            raise FieldValidationError(errors)
    _check_references(db, data.supplier_id, data.items or [])

    fields = data.model_dump(exclude_unset=True, exclude={"items"})
    for field, value in fields.items():
        if field == "supplier_id" and not value:
            continue
        setattr(order, field, value)
    if data.items is not None:
        order.items = _build_items(data.items)

    db.commit()
    return get_order(db, order.id)


def place_order(db: Session, order_id: str) -> Order | None:
    order = get_order(db, order_id)
    if not order:
        return None
    if not order_lifecycle.can_edit(order.status):
        raise ValueError(f"Cannot place order in {order.status.value} status")
    if not order.items:
        raise ValueError("Cannot place an order without items")
    order.status = OrderStatus.ORDERED
    order.ordered_date = _now()
    db.commit()
    logger.info("Order %s placed", order.reference_number)
    return get_order(db, order.id)


def cancel_order(db: Session, order_id: str) -> Order | None:
    """Cancel without touching stock; goods already received stay booked."""
    order = get_order(db, order_id)
    if not order:
        return None
    if not order_lifecycle.can_cancel(order.status):
        raise ValueError(f"Cannot cancel order in {order.status.value} status")
    order.status = OrderStatus.CANCELLED
    db.commit()
    logger.info("Order %s cancelled", order.reference_number)
    return get_order(db, order.id)


def receive_order(db: Session, order_id: str, data: OrderReceive, received_by: str) -> Order | None:
    order = get_order(db, order_id)
    if not order:
        return None
    if not order_lifecycle.can_receive(order.status):
        raise ValueError(f"Cannot receive order in {order.status.value} status")

    items = {item.id: item for item in order.items}
    booked: dict[str, int] = {}
    errors: dict[str, str] = {}
    for i, line in enumerate(data.items):
        item = items.get(line.item_id)
        if not item:
            errors[f"items.{i}.item_id"] = f"Item {line.item_id} is not part of this order"
        elif line.quantity <= 0:
            errors[f"items.{i}.quantity"] = "Quantity must be greater than 0"
        elif item.received_quantity + booked.get(item.id, 0) + line.quantity > item.quantity:
            errors[f"items.{i}.quantity"] = (
                f"Only {item.quantity - item.received_quantity} left to receive for this item"
            )
        else:
            booked[item.id] = booked.get(item.id, 0) + line.quantity
    if not data.items:
        errors["items"] = "Nothing to receive"
    if errors:
        raise FieldValidationError(errors)

    try:
        for line in data.items:
            item = items[line.item_id]
            item.received_quantity += line.quantity
            movement_service.record_movement(
                db,
                MovementCreate(
                    type=MovementType.IN,
                    product_id=item.product_id,
                    variant_id=item.variant_id,
                    quantity=line.quantity,
                    destination_location_id=item.destination_location_id,
                    reference_number=order.reference_number,
                    notes=f"Receipt for order {order.reference_number}",
                ),
                moved_by=received_by,
                commit=False,
            )
        order.status = order_lifecycle.status_after_receipt((i.quantity, i.received_quantity) for i in order.items)
        if order.status == OrderStatus.RECEIVED:
            order.received_date = _now()
        db.commit()
    except (SQLAlchemyError, ValueError):
        db.rollback()
        raise

    logger.info("Order %s now %s", order.reference_number, order.status.value)
    return get_order(db, order.id)
