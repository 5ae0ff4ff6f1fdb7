from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.auth import get_current_user
from app.api.errors import bad_request
from app.database import get_db
from app.schemas.supplier import SupplierCreate, SupplierDetailOut, SupplierOut, SupplierUpdate
from app.services import supplier_service

router = APIRouter(prefix="/suppliers", tags=["Suppliers"], dependencies=[Depends(get_current_user)])


@router.get("", response_model=list[SupplierOut])
def list_suppliers(active_only: bool = False, search: str | None = None, db: Session = Depends(get_db)):
    return supplier_service.list_suppliers(db, active_only=active_only, search=search)


@router.post("", response_model=SupplierOut, status_code=201)
def create_supplier(data: SupplierCreate, db: Session = Depends(get_db)):
    return supplier_service.create_supplier(db, data)


@router.get("/{supplier_id}", response_model=SupplierDetailOut)
def get_supplier(supplier_id: str, db: Session = Depends(get_db)):
    supplier = supplier_service.get_supplier_detail(db, supplier_id)
    if not supplier:
        raise HTTPException(404, "Supplier not found")
    return supplier


@router.patch("/{supplier_id}", response_model=SupplierOut)
def update_supplier(supplier_id: str, data: SupplierUpdate, db: Session = Depends(get_db)):
    supplier = supplier_service.update_supplier(db, supplier_id, data)
    if not supplier:
        raise HTTPException(404, "Supplier not found")
    return supplier


@router.delete("/{supplier_id}", status_code=204)
def delete_supplier(supplier_id: str, db: Session = Depends(get_db)):
    try:
        deleted = supplier_service.delete_supplier(db, supplier_id)
    except ValueError as e:
        raise bad_request(e)
    if not deleted:
        raise HTTPException(404, "Supplier not found")
