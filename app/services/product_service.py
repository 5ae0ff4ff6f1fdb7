import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from app.models.alert import Alert
from app.models.batch import Batch
from app.models.inventory_movement import InventoryMovement
from app.models.location import InventoryItem
from app.models.order import OrderItem
from app.models.product import Category, Product, ProductVariant
from app.models.supplier import ProductSupplier, Supplier
from app.schemas.common import LocationRef, VariantRef
from app.schemas.product import (
    THRESHOLD_ORDER_MESSAGE,
    CategoryCreate,
    ProductCreate,
    ProductDetailOut,
    ProductStockRow,
    ProductUpdate,
    VariantCreate,
)
from app.schemas.supplier import ProductSupplierCreate

logger = logging.getLogger(__name__)


# --- Categories ---

def list_categories(db: Session) -> list[Category]:
    return db.query(Category).order_by(Category.name).all()


def get_category(db: Session, category_id: str) -> Category | None:
    return db.query(Category).filter(Category.id == category_id).first()


def create_category(db: Session, data: CategoryCreate) -> Category:
    if db.query(Category).filter(Category.name == data.name).first():
        raise ValueError(f"Category '{data.name}' already exists")
    category = Category(name=data.name, description=data.description)
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


def get_or_create_category(db: Session, name: str) -> Category:
    category = db.query(Category).filter(Category.name == name).first()
    if not category:
        category = Category(name=name)
        db.add(category)
        db.commit()
        db.refresh(category)
    return category


# --- Products ---

def _check_category(db: Session, category_id: str | None) -> None:
    if category_id and not get_category(db, category_id):
        raise ValueError(f"Category {category_id} not found")


def create_product(db: Session, data: ProductCreate) -> Product:
    if data.sku and get_product_by_sku(db, data.sku):
        raise ValueError(f"Product with SKU {data.sku} already exists")
    _check_category(db, data.category_id)
    product = Product(**data.model_dump())
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def get_product(db: Session, product_id: str) -> Product | None:
    return db.query(Product).filter(Product.id == product_id).first()


def get_product_by_sku(db: Session, sku: str) -> Product | None:
    return db.query(Product).filter(Product.sku == sku).first()


def list_products(
    db: Session,
    skip: int = 0,
    limit: int | None = 100,
    category_id: str | None = None,
    search: str | None = None,
) -> list[Product]:
    q = db.query(Product).outerjoin(Category, Product.category_id == Category.id).options(joinedload(Product.category))
    if category_id:
        q = q.filter(Product.category_id == category_id)
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(
            or_(
                Product.name.ilike(pattern),
                Product.description.ilike(pattern),
                Product.sku.ilike(pattern),
                Product.barcode.ilike(pattern),
                Category.name.ilike(pattern),
            )
        )
    return q.order_by(Product.name).offset(skip).limit(limit).all()


def get_product_detail(db: Session, product_id: str) -> ProductDetailOut | None:
    product = (
        db.query(Product)
        .options(
            joinedload(Product.category),
            joinedload(Product.variants),
            joinedload(Product.inventory).joinedload(InventoryItem.location),
            joinedload(Product.inventory).joinedload(InventoryItem.variant),
            joinedload(Product.suppliers).joinedload(ProductSupplier.supplier),
        )
        .filter(Product.id == product_id)
        .first()
    )
    if not product:
        return None
    stock = [
        ProductStockRow(
            location=LocationRef.model_validate(item.location),
            variant=VariantRef.model_validate(item.variant) if item.variant else None,
            quantity=item.quantity,
            reserved_quantity=item.reserved_quantity,
            last_counted_at=item.last_counted_at,
            min_stock_level=product.min_stock_level,
            warning_stock_level=product.warning_stock_level,
        )
        for item in sorted(product.inventory, key=lambda i: i.location.name)
    ]
    detail = ProductDetailOut.model_validate(product)
    detail.stock = stock
    return detail


def update_product(db: Session, product_id: str, data: ProductUpdate) -> Product | None:
    product = get_product(db, product_id)
    if not product:
        return None
    update_data = data.model_dump(exclude_unset=True)

    # Thresholds are checked on the merged values
    min_level = update_data.get("min_stock_level", product.min_stock_level)
    warning_level = update_data.get("warning_stock_level", product.warning_stock_level)
    if min_level is not None and warning_level is not None and warning_level < min_level:
        raise ValueError(THRESHOLD_ORDER_MESSAGE)

    sku = update_data.get("sku")
    if sku and sku != product.sku and get_product_by_sku(db, sku):
        raise ValueError(f"Product with SKU {sku} already exists")
    _check_category(db, update_data.get("category_id"))

    for field, value in update_data.items():
        if value is None and field in ("name", "unit_of_measure", "min_stock_level", "warning_stock_level", "has_expiry"):
            continue
        setattr(product, field, value)
    db.commit()
    db.refresh(product)
    return product


def delete_product(db: Session, product_id: str) -> bool:
    """Delete a product and everything that only exists for it.

    Products still referenced by supplier orders are kept.
    """
    product = get_product(db, product_id)
    if not product:
        return False
    if db.query(OrderItem.id).filter(OrderItem.product_id == product_id).first():
        raise ValueError("Product is used in supplier orders and cannot be deleted")

    db.query(InventoryMovement).filter(InventoryMovement.product_id == product_id).delete(synchronize_session=False)
    db.query(Alert).filter(Alert.product_id == product_id).delete(synchronize_session=False)
    for batch in db.query(Batch).filter(Batch.product_id == product_id).all():
        db.delete(batch)
    db.delete(product)
    db.commit()
    logger.info("Product %s deleted", product_id)
    return True


# --- Variants ---

def get_variant(db: Session, variant_id: str) -> ProductVariant | None:
    return db.query(ProductVariant).filter(ProductVariant.id == variant_id).first()


def create_variant(db: Session, product_id: str, data: VariantCreate) -> ProductVariant | None:
    product = get_product(db, product_id)
    if not product:
        return None
    existing = (
        db.query(ProductVariant)
        .filter(ProductVariant.product_id == product_id, ProductVariant.variant_name == data.variant_name)
        .first()
    )
    if existing:
        raise ValueError(f"Variant '{data.variant_name}' already exists for this product")
    variant = ProductVariant(product_id=product_id, **data.model_dump())
    db.add(variant)
    db.commit()
    db.refresh(variant)
    return variant


def delete_variant(db: Session, variant_id: str) -> bool:
    variant = get_variant(db, variant_id)
    if not variant:
        return False
    in_use = (
        db.query(InventoryItem.id).filter(InventoryItem.variant_id == variant_id, InventoryItem.quantity > 0).first()
        or db.query(OrderItem.id).filter(OrderItem.variant_id == variant_id).first()
    )
    if in_use:
        raise ValueError("Variant has stock or orders and cannot be deleted")
    db.delete(variant)
    db.commit()
    return True


# --- Supplier links ---

def add_supplier_link(db: Session, product_id: str, data: ProductSupplierCreate) -> ProductSupplier | None:
    product = get_product(db, product_id)
    if not product:
        return None
    if not db.query(Supplier).filter(Supplier.id == data.supplier_id).first():
        raise ValueError(f"Supplier {data.supplier_id} not found")
    if data.variant_id:
        variant = get_variant(db, data.variant_id)
        if not variant or variant.product_id != product_id:
            raise ValueError(f"Variant {data.variant_id} not found for this product")
    link = ProductSupplier(product_id=product_id, **data.model_dump())
    db.add(link)
    db.commit()
    db.refresh(link)
    return link


def remove_supplier_link(db: Session, product_id: str, link_id: str) -> bool:
    link = (
        db.query(ProductSupplier)
        .filter(ProductSupplier.id == link_id, ProductSupplier.product_id == product_id)
        .first()
    )
    if not link:
        return False
    db.delete(link)
    db.commit()
    return True
