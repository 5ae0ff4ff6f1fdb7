import csv
import io

from fastapi import APIRouter, Depends, HTTPException, UploadFile
from fastapi.responses import Response, StreamingResponse
from sqlalchemy.orm import Session

from app.api.auth import get_current_user
from app.api.errors import bad_request
from app.database import get_db
from app.schemas.product import (
    ProductCreate,
    ProductDetailOut,
    ProductOut,
    ProductSupplierOut,
    ProductUpdate,
    VariantCreate,
    VariantOut,
)
from app.schemas.supplier import ProductSupplierCreate
from app.services import label_service, product_service

router = APIRouter(prefix="/products", tags=["Products"], dependencies=[Depends(get_current_user)])

CSV_COLUMNS = [
    "sku", "name", "description", "barcode", "category", "unit_of_measure",
    "min_stock_level", "warning_stock_level", "has_expiry",
]

TRUE_VALUES = {"1", "true", "yes", "oui", "y"}


def _csv_response(buf: io.StringIO, filename: str) -> StreamingResponse:
    buf.seek(0)
    return StreamingResponse(
        iter([buf.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.post("", response_model=ProductOut, status_code=201)
def create_product(data: ProductCreate, db: Session = Depends(get_db)):
    try:
        return product_service.create_product(db, data)
    except ValueError as e:
        raise bad_request(e)


@router.get("", response_model=list[ProductOut])
def list_products(
    skip: int = 0,
    limit: int = 100,
    category_id: str | None = None,
    search: str | None = None,
    db: Session = Depends(get_db),
):
    return product_service.list_products(db, skip=skip, limit=limit, category_id=category_id, search=search)


@router.get("/export")
def export_products(db: Session = Depends(get_db)):
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(CSV_COLUMNS)
    for p in product_service.list_products(db, limit=None):
        writer.writerow([
            p.sku or "", p.name, p.description or "", p.barcode or "",
            p.category.name if p.category else "", p.unit_of_measure,
            p.min_stock_level, p.warning_stock_level, "yes" if p.has_expiry else "no",
        ])
    return _csv_response(buf, "products.csv")


@router.get("/import-template")
def download_import_template():
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(CSV_COLUMNS)
    writer.writerow(["GANT-NIT-M", "Gants nitrile M", "Boîte de 100", "3401234567890", "Protection", "boîte", "5", "10", "no"])
    writer.writerow(["SERUM-PHY", "Sérum physiologique 5ml", "", "", "Soins", "unité", "50", "100", "yes"])
    return _csv_response(buf, "product_import_template.csv")


@router.post("/import")
def import_products(file: UploadFile, db: Session = Depends(get_db)):
    if not file.filename or not file.filename.endswith(".csv"):
        raise HTTPException(400, "Only CSV files are supported")

    content = file.file.read().decode("utf-8-sig")
    reader = csv.DictReader(io.StringIO(content))

    created = 0
    updated = 0
    errors = []

    for row_num, row in enumerate(reader, start=2):
        sku = (row.get("sku") or "").strip()
        category_name = (row.get("category") or "").strip()
        try:
            data = ProductCreate(
                sku=sku or None,
                name=(row.get("name") or "").strip(),
                description=(row.get("description") or "").strip() or None,
                barcode=(row.get("barcode") or "").strip() or None,
                unit_of_measure=(row.get("unit_of_measure") or "").strip() or "unité",
                min_stock_level=int(row.get("min_stock_level") or 0),
                warning_stock_level=int(row.get("warning_stock_level") or 0),
                has_expiry=(row.get("has_expiry") or "").strip().lower() in TRUE_VALUES,
            )
            if category_name:
                data.category_id = product_service.get_or_create_category(db, category_name).id

            existing = product_service.get_product_by_sku(db, sku) if sku else None
            if existing:
                product_service.update_product(db, existing.id, ProductUpdate(**data.model_dump(exclude={"sku"})))
                updated += 1
            else:
                product_service.create_product(db, data)
                created += 1
        except (ValueError, TypeError) as e:
            errors.append({"row": row_num, "sku": sku, "error": str(e)})

    return {"created": created, "updated": updated, "errors": errors}


@router.get("/{product_id}", response_model=ProductDetailOut)
def get_product(product_id: str, db: Session = Depends(get_db)):
    product = product_service.get_product_detail(db, product_id)
    if not product:
        raise HTTPException(404, "Product not found")
    return product


@router.patch("/{product_id}", response_model=ProductOut)
def update_product(product_id: str, data: ProductUpdate, db: Session = Depends(get_db)):
    try:
        product = product_service.update_product(db, product_id, data)
    except ValueError as e:
        raise bad_request(e)
    if not product:
        raise HTTPException(404, "Product not found")
    return product


@router.delete("/{product_id}", status_code=204)
def delete_product(product_id: str, db: Session = Depends(get_db)):
    try:
        deleted = product_service.delete_product(db, product_id)
    except ValueError as e:
        raise bad_request(e)
    if not deleted:
        raise HTTPException(404, "Product not found")


@router.get("/{product_id}/label")
def get_label(product_id: str, db: Session = Depends(get_db)):
    """Printable QR label pointing at the product page."""
    product = product_service.get_product(db, product_id)
    if not product:
        raise HTTPException(404, "Product not found")
    return Response(content=label_service.render_product_label(product), media_type="image/png")


# --- Variants ---

@router.post("/{product_id}/variants", response_model=VariantOut, status_code=201)
def create_variant(product_id: str, data: VariantCreate, db: Session = Depends(get_db)):
    try:
        variant = product_service.create_variant(db, product_id, data)
    except ValueError as e:
        raise bad_request(e)
    if not variant:
        raise HTTPException(404, "Product not found")
    return variant


@router.delete("/variants/{variant_id}", status_code=204)
def delete_variant(variant_id: str, db: Session = Depends(get_db)):
    try:
        deleted = product_service.delete_variant(db, variant_id)
    except ValueError as e:
        raise bad_request(e)
    if not deleted:
        raise HTTPException(404, "Variant not found")


# --- Supplier links ---

@router.post("/{product_id}/suppliers", response_model=ProductSupplierOut, status_code=201)
def add_supplier(product_id: str, data: ProductSupplierCreate, db: Session = Depends(get_db)):
    try:
        link = product_service.add_supplier_link(db, product_id, data)
    except ValueError as e:
        raise bad_request(e)
    if not link:
        raise HTTPException(404, "Product not found")
    return link


@router.delete("/{product_id}/suppliers/{link_id}", status_code=204)
def remove_supplier(product_id: str, link_id: str, db: Session = Depends(get_db)):
    if not product_service.remove_supplier_link(db, product_id, link_id):
        raise HTTPException(404, "Supplier link not found")
