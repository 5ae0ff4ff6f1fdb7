from datetime import date, timedelta

from conftest import make_location, make_product, make_stock, make_supplier

from app.models.alert import AlertSeverity, AlertType
from app.models.batch import Batch, BatchInventory
from app.models.order import Order, OrderStatus
from app.models.supplier import ProductSupplier
from app.schemas.alert import AlertCreate
from app.services import alert_service, report_service


def _batch(db, product, location, expiry, quantity, number="LOT-1"):
    batch = Batch(product_id=product.id, batch_number=number, expiry_date=expiry)
    batch.stock.append(BatchInventory(location_id=location.id, product_id=product.id, quantity=quantity))
    db.add(batch)
    db.commit()
    return batch


def test_dashboard_summary_and_counters(operator_client, db, operator):
    store = make_location(db, "Réserve")
    bag = make_location(db, "Sac")
    make_location(db, "Ancien local", is_active=False)
    gloves = make_product(db, "Gants", min_stock_level=5, warning_stock_level=10)
    serum = make_product(db, "Sérum", min_stock_level=20, warning_stock_level=40)
    make_stock(db, store, gloves, 50)
    make_stock(db, store, serum, 8)
    make_stock(db, bag, gloves, 4)

    alert_service.create_alert(db, AlertCreate(type=AlertType.LOW_STOCK, message="Sérum", severity=AlertSeverity.CRITICAL))
    alert_service.create_alert(db, AlertCreate(type=AlertType.SYSTEM, message="Info", severity=AlertSeverity.INFO))
    supplier = make_supplier(db)
    for ref, status in (("CMD-1", OrderStatus.ORDERED), ("CMD-2", OrderStatus.DRAFT), ("CMD-3", OrderStatus.RECEIVED)):
        db.add(Order(reference_number=ref, supplier_id=supplier.id, status=status, ordered_by=operator.id))
    db.commit()
    _batch(db, serum, store, date.today() - timedelta(days=1), 2)

    body = operator_client.get("/api/v1/dashboard").json()
    assert body["summary"]["total_items"] == 62
    assert body["summary"]["items_to_order"] == 2
    assert body["summary"]["locations_count"] == 2
    assert body["summary"]["estimated_order_value"] is None
    assert body["critical_alerts_count"] == 1
    assert body["pending_orders_count"] == 1
    assert body["expired_products_count"] == 1

    statuses = {loc["name"]: loc["status"] for loc in body["locations"]}
    assert statuses == {"Réserve": "critical", "Sac": "critical"}
    store_products = next(loc for loc in body["locations"] if loc["name"] == "Réserve")["products"]
    assert [p["name"] for p in store_products] == ["Gants", "Sérum"]


def test_dashboard_search(operator_client, db):
    store = make_location(db, "Réserve")
    make_location(db, "Ambulance")
    make_stock(db, store, make_product(db, "Couverture de survie"), 3)

    def names(search):
        return [loc["name"] for loc in operator_client.get("/api/v1/dashboard", params={"search": search}).json()["locations"]]

    assert names("ambu") == ["Ambulance"]
    assert names("COUVERTURE") == ["Réserve"]
    assert sorted(names("")) == ["Ambulance", "Réserve"]


def test_location_preview_is_limited(operator_client, db):
    store = make_location(db)
    for i in range(12):
        make_stock(db, store, make_product(db, f"Produit {i:02d}"), i + 1)
    overview = operator_client.get("/api/v1/locations/overview").json()
    quantities = [p["quantity"] for p in overview[0]["products"]]
    assert quantities == list(range(12, 2, -1))

    detail = operator_client.get(f"/api/v1/locations/{store.id}").json()
    assert len(detail["products"]) == 12
    assert detail["total_items"] == sum(range(1, 13))


def test_expired_count_ignores_empty_and_future_batches(db):
    store = make_location(db)
    serum = make_product(db, "Sérum")
    gauze = make_product(db, "Compresses")
    _batch(db, serum, store, date.today() - timedelta(days=3), 0, "LOT-A")
    _batch(db, gauze, store, date.today() + timedelta(days=3), 5, "LOT-B")
    assert report_service.expired_products_count(db) == 0
    _batch(db, serum, store, date.today() - timedelta(days=1), 1, "LOT-C")
    assert report_service.expired_products_count(db) == 1


def test_near_expiry_report(operator_client, db):
    store = make_location(db)
    serum = make_product(db, "Sérum")
    _batch(db, serum, store, date.today() + timedelta(days=10), 4, "SOON")
    _batch(db, serum, store, date.today() + timedelta(days=90), 4, "LATER")
    _batch(db, serum, store, date.today() - timedelta(days=2), 1, "GONE")

    rows = operator_client.get("/api/v1/reports/near-expiry").json()
    assert [r["batch_number"] for r in rows] == ["GONE", "SOON"]
    assert rows[0]["expired"] is True
    assert rows[1]["days_left"] == 10


def test_products_to_order_uses_preferred_supplier(operator_client, db):
    store = make_location(db)
    gloves = make_product(db, "Gants", min_stock_level=5, warning_stock_level=10)
    make_product(db, "Masques", min_stock_level=0, warning_stock_level=0)
    make_stock(db, store, gloves, 4)
    cheap = make_supplier(db, "Grossiste")
    usual = make_supplier(db, "MedSupply")
    db.add(ProductSupplier(product_id=gloves.id, supplier_id=cheap.id, unit_price=1.0))
    db.add(ProductSupplier(product_id=gloves.id, supplier_id=usual.id, unit_price=2.5, is_preferred=True))
    db.commit()

    rows = operator_client.get("/api/v1/reports/to-order").json()
    assert [r["name"] for r in rows] == ["Gants", "Masques"]
    assert rows[0]["supplier"]["name"] == "MedSupply"
    assert rows[0]["suggested_quantity"] == 6
    assert rows[0]["estimated_cost"] == 15.0
    assert rows[1]["supplier"] is None

    summary = operator_client.get("/api/v1/dashboard/summary").json()
    assert summary["estimated_order_value"] == 15.0


def test_inventory_lists_full_stock_and_filters_by_status(operator_client, db):
    store = make_location(db, "Réserve")
    bag = make_location(db, "Sac")
    for i in range(12):
        make_stock(db, store, make_product(db, f"Produit {i:02d}", min_stock_level=0, warning_stock_level=0), i + 1)
    make_stock(db, bag, make_product(db, "Gants", min_stock_level=5, warning_stock_level=10), 2)

    body = operator_client.get("/api/v1/inventory").json()
    assert {loc["name"]: len(loc["products"]) for loc in body} == {"Réserve": 12, "Sac": 1}

    critical = operator_client.get("/api/v1/inventory", params={"status": "critical"}).json()
    assert [loc["name"] for loc in critical] == ["Sac"]
    assert [p["name"] for p in critical[0]["products"]] == ["Gants"]

    assert operator_client.get("/api/v1/inventory", params={"status": "bogus"}).status_code == 422
