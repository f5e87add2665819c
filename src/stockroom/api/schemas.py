"""Pydantic request/response schemas for the Stockroom API."""

from __future__ import annotations

from pydantic import BaseModel, Field

# --- Catalog Request Schemas ---


class RegisterProductRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "name": "Steel Bolt M8",
                    "sku": "BOLT-M8",
                    "cost_per_unit": 0.35,
                    "opening_stock": 500,
                    "location": "A-01",
                    "minimum_stock_level": 100,
                    "acting_user": "warehouse@acme.test",
                }
            ]
        }
    }

    name: str = Field(..., max_length=255)
    sku: str = Field(..., max_length=100)
    cost_per_unit: float = 0.0
    opening_stock: float = 0.0
    location: str | None = Field(None, max_length=100)
    minimum_stock_level: float = 0.0
    acting_user: str = Field(..., max_length=255)


class RegisterCompanyRequest(BaseModel):
    name: str = Field(..., max_length=255)
    is_supplier: bool = False
    is_customer: bool = False
    email: str | None = Field(None, max_length=254)
    phone: str | None = Field(None, max_length=30)


class RegisterCustomerRequest(BaseModel):
    name: str = Field(..., max_length=255)
    email: str | None = Field(None, max_length=254)
    phone: str | None = Field(None, max_length=30)


# --- Stock Movement Request Schemas ---


class RecordStockMovementRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "product_id": "a1b2c3d4-e5f6-7890-abcd-ef1234567890",
                    "movement_type": "StockAdjustment",
                    "quantity": -3,
                    "reason": "Cycle count correction",
                    "acting_user": "warehouse@acme.test",
                }
            ]
        }
    }

    product_id: str
    movement_type: str = Field(..., max_length=20)
    quantity: float
    reason: str = Field(..., max_length=500)
    notes: str | None = None
    from_location: str | None = Field(None, max_length=100)
    to_location: str | None = Field(None, max_length=100)
    acting_user: str = Field(..., max_length=255)


# --- Purchase Order Request Schemas ---


class PurchaseOrderLineRequest(BaseModel):
    product_id: str
    quantity: float
    unit_price: float = 0.0
    notes: str | None = None


class CreatePurchaseOrderRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "supplier_id": "b2c3d4e5-f6a7-8901-bcde-f12345678901",
                    "lines": [{"product_id": "a1b2c3d4-e5f6-7890-abcd-ef1234567890", "quantity": 100, "unit_price": 10}],
                    "shipping_cost": 25.0,
                    "expected_delivery_date": "2026-11-02",
                    "acting_user": "buyer@acme.test",
                }
            ]
        }
    }

    supplier_id: str
    lines: list[PurchaseOrderLineRequest]
    tax_amount: float = 0.0
    shipping_cost: float = 0.0
    expected_delivery_date: str | None = Field(None, max_length=10)
    supplier_reference: str | None = Field(None, max_length=100)
    notes: str | None = None
    acting_user: str = Field(..., max_length=255)


class UpdatePurchaseOrderRequest(BaseModel):
    lines: list[PurchaseOrderLineRequest] | None = None
    tax_amount: float | None = None
    shipping_cost: float | None = None
    expected_delivery_date: str | None = Field(None, max_length=10)
    confirmed_delivery_date: str | None = Field(None, max_length=10)
    supplier_reference: str | None = Field(None, max_length=100)
    notes: str | None = None
    acting_user: str = Field(..., max_length=255)


class ConfirmPurchaseOrderRequest(BaseModel):
    confirmed_delivery_date: str | None = Field(None, max_length=10)
    acting_user: str = Field(..., max_length=255)


class ReasonRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)
    acting_user: str = Field(..., max_length=255)


class ActingUserRequest(BaseModel):
    notes: str | None = None
    acting_user: str = Field(..., max_length=255)


# --- Receipt Request Schemas ---


class ReceiptLineRequest(BaseModel):
    purchase_order_line_id: str
    quantity_received: float
    unit_price_received: float | None = None
    condition: str = "Good"
    damage_notes: str | None = None
    location: str | None = Field(None, max_length=100)
    batch_number: str | None = Field(None, max_length=100)
    expiry_date: str | None = Field(None, max_length=10)
    notes: str | None = None


class CreateReceiptRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "purchase_order_id": "c3d4e5f6-a7b8-9012-cdef-123456789012",
                    "lines": [
                        {
                            "purchase_order_line_id": "d4e5f6a7-b8c9-0123-def0-234567890123",
                            "quantity_received": 50,
                            "unit_price_received": 12,
                            "condition": "Good",
                        }
                    ],
                    "supplier_delivery_note": "DN-88121",
                    "acting_user": "dock@acme.test",
                }
            ]
        }
    }

    purchase_order_id: str
    lines: list[ReceiptLineRequest]
    supplier_delivery_note: str | None = Field(None, max_length=100)
    notes: str | None = None
    acting_user: str = Field(..., max_length=255)


class ApproveReceiptRequest(BaseModel):
    variance_notes: str | None = None
    acting_user: str = Field(..., max_length=255)


# --- Sales Order Request Schemas ---


class SalesOrderLineRequest(BaseModel):
    product_id: str
    quantity: float
    unit_price: float = 0.0
    discount_percent: float = 0.0
    notes: str | None = None


class ShipToRequest(BaseModel):
    name: str | None = Field(None, max_length=255)
    address: str | None = Field(None, max_length=500)
    city: str | None = Field(None, max_length=100)
    state: str | None = Field(None, max_length=100)
    postal_code: str | None = Field(None, max_length=20)
    country: str | None = Field(None, max_length=100)
    phone: str | None = Field(None, max_length=30)


class CreateSalesOrderRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer_id": "e5f6a7b8-c9d0-1234-ef01-345678901234",
                    "lines": [{"product_id": "a1b2c3d4-e5f6-7890-abcd-ef1234567890", "quantity": 10, "unit_price": 20}],
                    "ship_to": {"name": "Jane Doe", "city": "Portland", "country": "US"},
                    "tax_rate": 8.5,
                    "acting_user": "sales@acme.test",
                }
            ]
        }
    }

    customer_id: str | None = None
    lines: list[SalesOrderLineRequest]
    ship_to: ShipToRequest | None = None
    priority: str | None = Field(None, max_length=10)
    required_date: str | None = Field(None, max_length=10)
    promised_date: str | None = Field(None, max_length=10)
    shipping_method: str | None = Field(None, max_length=100)
    tax_rate: float = 0.0
    shipping_cost: float = 0.0
    discount_amount: float = 0.0
    customer_reference: str | None = Field(None, max_length=100)
    notes: str | None = None
    internal_notes: str | None = None
    acting_user: str = Field(..., max_length=255)


class UpdateSalesOrderRequest(BaseModel):
    lines: list[SalesOrderLineRequest] | None = None
    ship_to: ShipToRequest | None = None
    priority: str | None = Field(None, max_length=10)
    required_date: str | None = Field(None, max_length=10)
    shipping_method: str | None = Field(None, max_length=100)
    tax_rate: float | None = None
    shipping_cost: float | None = None
    discount_amount: float | None = None
    customer_reference: str | None = Field(None, max_length=100)
    notes: str | None = None
    acting_user: str = Field(..., max_length=255)


class ConfirmSalesOrderRequest(BaseModel):
    promised_date: str | None = Field(None, max_length=10)
    notes: str | None = None
    acting_user: str = Field(..., max_length=255)


class PickRequest(BaseModel):
    line_id: str
    quantity_picked: float
    location: str | None = Field(None, max_length=100)


class CompletePickingRequest(BaseModel):
    picks: list[PickRequest]
    notes: str | None = None
    acting_user: str = Field(..., max_length=255)


class ShipSalesOrderRequest(BaseModel):
    carrier: str | None = Field(None, max_length=100)
    tracking_number: str | None = Field(None, max_length=100)
    notes: str | None = None
    acting_user: str = Field(..., max_length=255)


class DeliverSalesOrderRequest(BaseModel):
    received_by: str | None = Field(None, max_length=255)
    notes: str | None = None
    acting_user: str = Field(..., max_length=255)


# --- Response Schemas ---


class IdResponse(BaseModel):
    model_config = {"json_schema_extra": {"examples": [{"id": "b2c3d4e5-f6a7-8901-bcde-f12345678901"}]}}

    id: str


class StatusResponse(BaseModel):
    model_config = {"json_schema_extra": {"examples": [{"status": "ok"}]}}

    status: str = "ok"


class ErrorResponse(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "success": False,
                    "error": "state",
                    "message": "Only draft orders can be submitted",
                    "details": {"status": ["Only draft orders can be submitted"]},
                }
            ]
        }
    }

    success: bool = False
    error: str
    message: str
    details: dict = {}
