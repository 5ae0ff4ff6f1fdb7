from datetime import date, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from app.config import settings
from app.models.batch import Batch, BatchInventory
from app.models.location import InventoryItem
from app.models.product import Product
from app.models.supplier import ProductSupplier


def _stock_by_product(db: Session) -> dict[str, int]:
    rows = (
        db.query(InventoryItem.product_id, func.sum(InventoryItem.quantity))
        .group_by(InventoryItem.product_id)
        .all()
    )
    return {product_id: int(total or 0) for product_id, total in rows}


def _preferred_link(product: Product) -> ProductSupplier | None:
    # Several links may be flagged preferred; take the cheapest of those
    preferred = [s for s in product.suppliers if s.is_preferred] or list(product.suppliers)
    if not preferred:
        return None
    return min(preferred, key=lambda s: (s.unit_price is None, s.unit_price or 0))


def products_to_order(db: Session) -> list[dict]:
    """Products whose total stock is at or below their minimum level."""
    stock = _stock_by_product(db)
    products = (
        db.query(Product)
        .options(joinedload(Product.suppliers).joinedload(ProductSupplier.supplier))
        .order_by(Product.name)
        .all()
    )

    result = []
    for p in products:
        quantity = stock.get(p.id, 0)
        if quantity > p.min_stock_level:
            continue
        suggested = max(p.warning_stock_level - quantity, 1)
        link = _preferred_link(p)
        unit_price = link.unit_price if link else None
        result.append({
            "product_id": p.id,
            "sku": p.sku,
            "name": p.name,
            "unit_of_measure": p.unit_of_measure,
            "quantity": quantity,
            "min_stock_level": p.min_stock_level,
            "warning_stock_level": p.warning_stock_level,
            "suggested_quantity": suggested,
            "supplier": {"id": link.supplier.id, "name": link.supplier.name} if link else None,
            "supplier_reference": link.supplier_reference if link else None,
            "unit_price": unit_price,
            "lead_time_days": link.lead_time_days if link else None,
            "estimated_cost": round(unit_price * suggested, 2) if unit_price is not None else None,
        })
    return result


def estimated_order_value(db: Session) -> float | None:
    costs = [r["estimated_cost"] for r in products_to_order(db) if r["estimated_cost"] is not None]
    if not costs:
        return None
    return round(sum(costs), 2)


def near_expiry(db: Session, days: int | None = None, today: date | None = None) -> list[dict]:
    """Batches still in stock that expire within ``days`` (already expired ones included)."""
    today = today or date.today()
    days = settings.NEAR_EXPIRY_DAYS if days is None else days
    horizon = today + timedelta(days=days)

    in_stock = (
        db.query(BatchInventory.batch_id, func.sum(BatchInventory.quantity).label("quantity"))
        .group_by(BatchInventory.batch_id)
        .having(func.sum(BatchInventory.quantity) > 0)
        .subquery()
    )
    rows = (
        db.query(Batch, in_stock.c.quantity)
        .join(in_stock, in_stock.c.batch_id == Batch.id)
        .options(joinedload(Batch.product))
        .filter(Batch.expiry_date.is_not(None), Batch.expiry_date <= horizon)
        .order_by(Batch.expiry_date)
        .all()
    )
    return [
        {
            "batch_id": batch.id,
            "batch_number": batch.batch_number,
            "product_id": batch.product_id,
            "product_name": batch.product.name,
            "sku": batch.product.sku,
            "expiry_date": batch.expiry_date.isoformat(),
            "days_left": (batch.expiry_date - today).days,
            "expired": batch.expiry_date < today,
            "quantity": int(quantity),
        }
        for batch, quantity in rows
    ]


def expired_products_count(db: Session, today: date | None = None) -> int:
    """Distinct products holding stock of at least one expired batch."""
    today = today or date.today()
    return (
        db.query(func.count(func.distinct(Batch.product_id)))
        .join(BatchInventory, BatchInventory.batch_id == Batch.id)
        .filter(Batch.expiry_date < today, BatchInventory.quantity > 0)
        .scalar()
        or 0
    )
