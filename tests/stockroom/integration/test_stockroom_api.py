"""Integration tests for the Stockroom API endpoints via TestClient."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from protean import current_domain
from stockroom.api import (
    company_router,
    customer_router,
    movement_router,
    product_router,
    purchase_order_router,
    receipt_router,
    sales_order_router,
)
from stockroom.api.errors import register_exception_handlers
from stockroom.catalog.product import Product

TENANT = "tenant-acme"
ACTOR = {"acting_user": "clerk@acme.test"}


@pytest.fixture()
def client():
    app = FastAPI()
    for router in (
        product_router,
        company_router,
        customer_router,
        movement_router,
        purchase_order_router,
        receipt_router,
        sales_order_router,
    ):
        app.include_router(router)
    register_exception_handlers(app)
    return TestClient(app)


def _url(path, tenant_id=TENANT):
    return f"/tenants/{tenant_id}{path}"


def _create(client, path, payload, tenant_id=TENANT):
    response = client.post(_url(path, tenant_id), json=payload)
    assert response.status_code == 201, response.json()
    return response.json()["id"]


def _put(client, path, payload=None):
    return client.put(_url(path), json={**ACTOR, **(payload or {})})


def _product(client, sku="BOLT-M8", opening_stock=0, tenant_id=TENANT):
    return _create(
        client,
        "/products",
        {"name": f"Product {sku}", "sku": sku, "opening_stock": opening_stock, "cost_per_unit": 10, **ACTOR},
        tenant_id,
    )


def _confirmed_po(client, product_id, quantity=100, unit_price=10):
    supplier_id = _create(client, "/companies", {"name": "Fasteners Ltd", "is_supplier": True})
    po_id = _create(
        client,
        "/purchase-orders",
        {
            "supplier_id": supplier_id,
            "lines": [{"product_id": product_id, "quantity": quantity, "unit_price": unit_price}],
            **ACTOR,
        },
    )
    assert _put(client, f"/purchase-orders/{po_id}/submit").status_code == 200
    assert _put(client, f"/purchase-orders/{po_id}/confirm").status_code == 200
    return po_id


def _packed_so(client, product_id, quantity):
    so_id = _create(
        client,
        "/sales-orders",
        {
            "lines": [{"product_id": product_id, "quantity": quantity, "unit_price": 20}],
            "ship_to": {"name": "Jane Doe"},
            **ACTOR,
        },
    )
    for step in ("submit", "confirm", "start-picking"):
        assert _put(client, f"/sales-orders/{so_id}/{step}").status_code == 200

    line_id = client.get(_url(f"/sales-orders/{so_id}")).json()["lines"][0]["id"]
    response = _put(
        client,
        f"/sales-orders/{so_id}/complete-picking",
        {"picks": [{"line_id": line_id, "quantity_picked": quantity}]},
    )
    assert response.status_code == 200
    for step in ("start-packing", "complete-packing"):
        assert _put(client, f"/sales-orders/{so_id}/{step}").status_code == 200
    return so_id


class TestProductEndpoints:
    def test_register_product(self, client):
        product_id = _product(client, opening_stock=25)

        product = current_domain.repository_for(Product).get(product_id)
        assert product.current_stock == 25.0
        assert product.tenant_id == TENANT

    def test_movements_endpoint_lists_opening_balance(self, client):
        product_id = _product(client, opening_stock=25)
        response = client.get(_url(f"/products/{product_id}/movements"))
        assert response.status_code == 200
        assert [m["reason"] for m in response.json()] == ["Opening balance"]

    def test_duplicate_sku_is_a_validation_error(self, client):
        _product(client)
        response = client.post(_url("/products"), json={"name": "Again", "sku": "BOLT-M8", **ACTOR})
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "validation"
        assert body["message"] == "A product with SKU BOLT-M8 already exists"

    def test_other_tenant_sees_not_found(self, client):
        product_id = _product(client)
        response = client.get(_url(f"/products/{product_id}", "tenant-globex"))
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"


class TestStockMovementEndpoints:
    def test_record_movement(self, client):
        product_id = _product(client, opening_stock=10)
        _create(
            client,
            "/stock-movements",
            {"product_id": product_id, "movement_type": "StockOut", "quantity": 4, "reason": "Sample", **ACTOR},
        )
        assert client.get(_url(f"/products/{product_id}")).json()["current_stock"] == 6.0

    def test_insufficient_stock_is_an_invariant_error(self, client):
        product_id = _product(client, opening_stock=3)
        response = client.post(
            _url("/stock-movements"),
            json={"product_id": product_id, "movement_type": "StockOut", "quantity": 4, "reason": "Sample", **ACTOR},
        )
        assert response.status_code == 409
        assert response.json()["error"] == "invariant"
        assert response.json()["message"] == "Insufficient stock available"


class TestPurchasingAndReceivingEndpoints:
    def test_receipt_completion_updates_stock_and_order(self, client):
        product_id = _product(client)
        po_id = _confirmed_po(client, product_id)
        line_id = client.get(_url(f"/purchase-orders/{po_id}")).json()["lines"][0]["id"]

        receipt_id = _create(
            client,
            "/receipts",
            {"purchase_order_id": po_id, "lines": [{"purchase_order_line_id": line_id, "quantity_received": 100}], **ACTOR},
        )
        assert _put(client, f"/receipts/{receipt_id}/complete").status_code == 200

        assert client.get(_url(f"/products/{product_id}")).json()["current_stock"] == 100.0
        assert client.get(_url(f"/purchase-orders/{po_id}")).json()["status"] == "Completed"
        assert client.get(_url(f"/receipts/{receipt_id}")).json()["status"] == "Completed"

    def test_variance_report_endpoint(self, client):
        product_id = _product(client)
        po_id = _confirmed_po(client, product_id)
        line_id = client.get(_url(f"/purchase-orders/{po_id}")).json()["lines"][0]["id"]
        receipt_id = _create(
            client,
            "/receipts",
            {"purchase_order_id": po_id, "lines": [{"purchase_order_line_id": line_id, "quantity_received": 80}], **ACTOR},
        )

        report = client.get(_url(f"/receipts/{receipt_id}/variance-report")).json()
        assert report["has_variances"] is True
        assert report["lines"][0]["quantity_variance"] == -20.0

    def test_completing_pending_receipt_is_a_state_error(self, client):
        product_id = _product(client)
        po_id = _confirmed_po(client, product_id)
        line_id = client.get(_url(f"/purchase-orders/{po_id}")).json()["lines"][0]["id"]
        receipt_id = _create(
            client,
            "/receipts",
            {"purchase_order_id": po_id, "lines": [{"purchase_order_line_id": line_id, "quantity_received": 80}], **ACTOR},
        )

        response = _put(client, f"/receipts/{receipt_id}/complete")
        assert response.status_code == 409
        assert response.json()["error"] == "state"
        assert response.json()["message"] == "Only validated receipts can be completed"

    def test_delete_purchase_order_uses_acting_user_header(self, client):
        product_id = _product(client)
        supplier_id = _create(client, "/companies", {"name": "Fasteners Ltd", "is_supplier": True})
        po_id = _create(
            client,
            "/purchase-orders",
            {"supplier_id": supplier_id, "lines": [{"product_id": product_id, "quantity": 1}], **ACTOR},
        )
        response = client.delete(_url(f"/purchase-orders/{po_id}"), headers={"X-Acting-User": "buyer@acme.test"})
        assert response.status_code == 200
        assert client.get(_url(f"/purchase-orders/{po_id}")).status_code == 404


class TestSalesOrderEndpoints:
    def test_ship_takes_stock_out(self, client):
        product_id = _product(client, opening_stock=30)
        so_id = _packed_so(client, product_id, 10)

        response = _put(client, f"/sales-orders/{so_id}/ship", {"carrier": "DHL", "tracking_number": "JD0001"})
        assert response.status_code == 200
        assert client.get(_url(f"/products/{product_id}")).json()["current_stock"] == 20.0
        assert client.get(_url(f"/sales-orders/{so_id}")).json()["status"] == "Shipped"

    def test_ship_beyond_stock_is_refused(self, client):
        product_id = _product(client, opening_stock=5)
        so_id = _packed_so(client, product_id, 10)

        response = _put(client, f"/sales-orders/{so_id}/ship")
        assert response.status_code == 409
        assert response.json()["error"] == "invariant"
        assert response.json()["message"].startswith("Failed to create stock movements: Product BOLT-M8")
        assert client.get(_url(f"/products/{product_id}")).json()["current_stock"] == 5.0
        assert client.get(_url(f"/sales-orders/{so_id}")).json()["status"] == "Packed"

    def test_submit_twice_is_a_state_error(self, client):
        product_id = _product(client)
        so_id = _create(
            client, "/sales-orders", {"lines": [{"product_id": product_id, "quantity": 1}], **ACTOR}
        )
        assert _put(client, f"/sales-orders/{so_id}/submit").status_code == 200

        response = _put(client, f"/sales-orders/{so_id}/submit")
        assert response.status_code == 409
        assert response.json()["details"] == {"status": ["Only draft orders can be submitted"]}

    def test_hold_without_reason_is_a_validation_error(self, client):
        product_id = _product(client)
        so_id = _create(
            client, "/sales-orders", {"lines": [{"product_id": product_id, "quantity": 1}], **ACTOR}
        )
        response = _put(client, f"/sales-orders/{so_id}/hold", {"reason": ""})
        assert response.status_code == 400
        assert response.json()["message"] == "Hold reason is required"
