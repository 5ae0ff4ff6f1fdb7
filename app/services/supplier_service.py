from sqlalchemy.orm import Session, joinedload

from app.models.order import Order
from app.models.supplier import ProductSupplier, Supplier
from app.schemas.supplier import SupplierCreate, SupplierUpdate


def create_supplier(db: Session, data: SupplierCreate) -> Supplier:
    supplier = Supplier(**data.model_dump())
    db.add(supplier)
    db.commit()
    db.refresh(supplier)
    return supplier


def get_supplier(db: Session, supplier_id: str) -> Supplier | None:
    return db.query(Supplier).filter(Supplier.id == supplier_id).first()


def get_supplier_detail(db: Session, supplier_id: str) -> Supplier | None:
    return (
        db.query(Supplier)
        .options(
            joinedload(Supplier.products).joinedload(ProductSupplier.product),
            joinedload(Supplier.products).joinedload(ProductSupplier.variant),
        )
        .filter(Supplier.id == supplier_id)
        .first()
    )


def list_suppliers(db: Session, active_only: bool = False, search: str | None = None) -> list[Supplier]:
    q = db.query(Supplier)
    if active_only:
        q = q.filter(Supplier.is_active == True)  # noqa: E712
    if search:
        q = q.filter(Supplier.name.ilike(f"%{search.strip()}%"))
    return q.order_by(Supplier.name).all()


def update_supplier(db: Session, supplier_id: str, data: SupplierUpdate) -> Supplier | None:
    supplier = get_supplier(db, supplier_id)
    if not supplier:
        return None
    for field, value in data.model_dump(exclude_unset=True).items():
        if field in ("name", "is_active") and value is None:
            continue
        setattr(supplier, field, value)
    db.commit()
    db.refresh(supplier)
    return supplier


def delete_supplier(db: Session, supplier_id: str) -> bool:
    supplier = get_supplier(db, supplier_id)
    if not supplier:
        return False
    if db.query(Order.id).filter(Order.supplier_id == supplier_id).first():
        raise ValueError("Supplier has orders; deactivate it instead")
    db.delete(supplier)
    db.commit()
    return True
