import re

import pytest
from conftest import make_location, make_product, make_supplier

from app.models.location import InventoryItem
from app.models.order import Order, OrderItem
from app.models.product import ProductVariant


@pytest.fixture
def catalogue(db):
    return {
        "supplier": make_supplier(db),
        "gloves": make_product(db, "Gants nitrile", sku="GANT-M"),
        "masks": make_product(db, "Masques FFP2", sku="FFP2"),
        "store": make_location(db, "Réserve"),
    }


def _order_payload(catalogue, status="ordered", **kwargs):
    payload = {
        "supplier_id": catalogue["supplier"].id,
        "status": status,
        "items": [
            {"product_id": catalogue["gloves"].id, "quantity": 10, "destination_location_id": catalogue["store"].id},
            {"product_id": catalogue["masks"].id, "quantity": 5, "destination_location_id": catalogue["store"].id,
             "unit_price": 1.5},
        ],
    }
    payload.update(kwargs)
    return payload


def test_create_ordered_stamps_ordered_date(operator_client, catalogue):
    resp = operator_client.post("/api/v1/orders", json=_order_payload(catalogue))
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["status"] == "ordered"
    assert body["ordered_date"] is not None
    assert re.fullmatch(r"CMD-\d{8}-\d{3}", body["reference_number"])
    assert body["total_quantity"] == 15
    assert body["completion_percent"] == 0
    assert body["actions"] == ["receive", "cancel"]
    assert body["ordered_by"]["email"] == "operator@example.com"


def test_create_draft_has_no_ordered_date(operator_client, catalogue):
    resp = operator_client.post("/api/v1/orders", json=_order_payload(catalogue, status="draft"))
    assert resp.status_code == 201
    assert resp.json()["ordered_date"] is None
    assert resp.json()["actions"] == ["edit", "place", "cancel"]


def test_create_rejects_other_initial_status(operator_client, catalogue, db):
    resp = operator_client.post("/api/v1/orders", json=_order_payload(catalogue, status="received"))
    assert resp.status_code == 422
    assert "status" in resp.json()["detail"]["errors"]
    assert db.query(Order).count() == 0


def test_invalid_items_leave_no_orphan_header(operator_client, catalogue, db):
    payload = _order_payload(catalogue)
    payload["items"][1]["product_id"] = "does-not-exist"
    resp = operator_client.post("/api/v1/orders", json=payload)
    assert resp.status_code == 422
    assert "items.1.product_id" in resp.json()["detail"]["errors"]
    assert db.query(Order).count() == 0
    assert db.query(OrderItem).count() == 0


def test_empty_order_rejected(operator_client, catalogue):
    resp = operator_client.post("/api/v1/orders", json=_order_payload(catalogue, items=[]))
    assert resp.status_code == 422
    assert "items" in resp.json()["detail"]["errors"]


def test_duplicate_reference_rejected(operator_client, catalogue):
    first = operator_client.post("/api/v1/orders", json=_order_payload(catalogue, reference_number="CMD-20240101-001"))
    assert first.status_code == 201
    second = operator_client.post("/api/v1/orders", json=_order_payload(catalogue, reference_number="CMD-20240101-001"))
    assert second.status_code == 422
    assert "reference_number" in second.json()["detail"]["errors"]


def _create(client, catalogue, **kwargs):
    resp = client.post("/api/v1/orders", json=_order_payload(catalogue, **kwargs))
    assert resp.status_code == 201, resp.text
    return resp.json()


def _lines(order, catalogue):
    by_product = {i["product_id"]: i for i in order["items"]}
    return {"gloves": by_product[catalogue["gloves"].id], "masks": by_product[catalogue["masks"].id]}


def test_receive_partially_then_fully(operator_client, catalogue, db):
    order = _create(operator_client, catalogue)
    lines = _lines(order, catalogue)
    gloves_line, masks_line = lines["gloves"], lines["masks"]

    resp = operator_client.post(f"/api/v1/orders/{order['id']}/receive", json={
        "items": [{"item_id": gloves_line["id"], "quantity": 4}],
    })
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["status"] == "partially_received"
    assert body["received_quantity"] == 4
    assert body["completion_percent"] == 27
    assert body["received_date"] is None

    resp = operator_client.post(f"/api/v1/orders/{order['id']}/receive", json={
        "items": [
            {"item_id": gloves_line["id"], "quantity": 6},
            {"item_id": masks_line["id"], "quantity": 5},
        ],
    })
    body = resp.json()
    assert body["status"] == "received"
    assert body["completion_percent"] == 100
    assert body["received_date"] is not None
    assert body["actions"] == []

    db.expire_all()
    stock = {i.product_id: i.quantity for i in db.query(InventoryItem).all()}
    assert stock == {catalogue["gloves"].id: 10, catalogue["masks"].id: 5}


def test_cannot_receive_more_than_ordered(operator_client, catalogue, db):
    order = _create(operator_client, catalogue)
    line = _lines(order, catalogue)["masks"]
    resp = operator_client.post(f"/api/v1/orders/{order['id']}/receive", json={
        "items": [{"item_id": line["id"], "quantity": 3}, {"item_id": line["id"], "quantity": 3}],
    })
    assert resp.status_code == 422
    db.expire_all()
    assert db.query(OrderItem).filter_by(id=line["id"]).one().received_quantity == 0
    assert db.query(InventoryItem).count() == 0


def test_draft_cannot_be_received(operator_client, catalogue):
    order = _create(operator_client, catalogue, status="draft")
    resp = operator_client.post(f"/api/v1/orders/{order['id']}/receive", json={
        "items": [{"item_id": order["items"][0]["id"], "quantity": 1}],
    })
    assert resp.status_code == 400


def test_edit_and_place_draft(operator_client, catalogue):
    order = _create(operator_client, catalogue, status="draft")
    resp = operator_client.patch(f"/api/v1/orders/{order['id']}", json={
        "notes": "Livraison le matin",
        "items": [{"product_id": catalogue["gloves"].id, "quantity": 20,
                   "destination_location_id": catalogue["store"].id}],
    })
    assert resp.status_code == 200, resp.text
    assert resp.json()["notes"] == "Livraison le matin"
    assert resp.json()["total_quantity"] == 20

    resp = operator_client.post(f"/api/v1/orders/{order['id']}/place")
    assert resp.json()["status"] == "ordered"
    assert resp.json()["ordered_date"] is not None

    assert operator_client.patch(f"/api/v1/orders/{order['id']}", json={"notes": "trop tard"}).status_code == 400


def test_cancel_rules(operator_client, catalogue):
    order = _create(operator_client, catalogue)
    line = order["items"][0]
    operator_client.post(f"/api/v1/orders/{order['id']}/receive", json={
        "items": [{"item_id": line["id"], "quantity": 1}],
    })
    assert operator_client.post(f"/api/v1/orders/{order['id']}/cancel").status_code == 400

    other = _create(operator_client, catalogue)
    resp = operator_client.post(f"/api/v1/orders/{other['id']}/cancel")
    assert resp.status_code == 200
    assert resp.json()["status"] == "cancelled"
    assert operator_client.post(f"/api/v1/orders/{other['id']}/cancel").status_code == 400


def test_list_filters_and_active(operator_client, catalogue, db):
    _create(operator_client, catalogue)
    draft = _create(operator_client, catalogue, status="draft")
    cancelled = _create(operator_client, catalogue)
    operator_client.post(f"/api/v1/orders/{cancelled['id']}/cancel")

    assert len(operator_client.get("/api/v1/orders").json()) == 3
    drafts = operator_client.get("/api/v1/orders", params={"status": "draft"}).json()
    assert [o["id"] for o in drafts] == [draft["id"]]
    active = operator_client.get("/api/v1/orders/active").json()
    assert len(active) == 1


def test_unknown_order_is_404(operator_client, catalogue):
    assert operator_client.get("/api/v1/orders/nope").status_code == 404


def test_item_variant_must_belong_to_its_product(operator_client, catalogue, db):
    other_size = ProductVariant(product_id=catalogue["masks"].id, variant_name="L")
    db.add(other_size)
    db.commit()

    payload = _order_payload(catalogue)
    payload["items"][0]["variant_id"] = other_size.id
    payload["items"][1]["variant_id"] = "no-such-variant"
    resp = operator_client.post("/api/v1/orders", json=payload)
    assert resp.status_code == 422
    assert set(resp.json()["detail"]["errors"]) == {"items.0.variant_id", "items.1.variant_id"}
    assert db.query(Order).count() == 0
