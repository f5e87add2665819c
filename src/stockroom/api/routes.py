"""FastAPI endpoints for the Stockroom domain.

Thin adapters: request body → command → ``current_domain.process``. Line
lists travel to the commands as JSON text. Reads are tenant-scoped loads
rendered with ``to_dict()``.
"""

import json

from fastapi import APIRouter, Header
from protean.utils.globals import current_domain

from stockroom.api.schemas import (
    ActingUserRequest,
    ApproveReceiptRequest,
    CompletePickingRequest,
    ConfirmPurchaseOrderRequest,
    ConfirmSalesOrderRequest,
    CreatePurchaseOrderRequest,
    CreateReceiptRequest,
    CreateSalesOrderRequest,
    DeliverSalesOrderRequest,
    IdResponse,
    ReasonRequest,
    RecordStockMovementRequest,
    RegisterCompanyRequest,
    RegisterCustomerRequest,
    RegisterProductRequest,
    ShipSalesOrderRequest,
    StatusResponse,
    UpdatePurchaseOrderRequest,
    UpdateSalesOrderRequest,
)
from stockroom.catalog.company import Company
from stockroom.catalog.customer import Customer
from stockroom.catalog.product import Product
from stockroom.catalog.registration import RegisterCompany, RegisterCustomer, RegisterProduct
from stockroom.ledger.movement import StockMovement
from stockroom.ledger.recording import RecordStockMovement, movements_for_product
from stockroom.purchasing.creation import CreatePurchaseOrder
from stockroom.purchasing.lifecycle import (
    CancelPurchaseOrder,
    ConfirmPurchaseOrder,
    DeletePurchaseOrder,
    SubmitPurchaseOrder,
    UpdatePurchaseOrder,
)
from stockroom.purchasing.purchase_order import PurchaseOrder
from stockroom.receiving.completion import CompleteReceipt
from stockroom.receiving.creation import CreateReceipt
from stockroom.receiving.receipt import Receipt
from stockroom.receiving.review import ApproveReceipt, DeleteReceipt, RejectReceipt, variance_report
from stockroom.receiving.rollback import RollbackReceipt
from stockroom.sales.creation import CreateSalesOrder, DeleteSalesOrder, UpdateSalesOrder
from stockroom.sales.sales_order import SalesOrder
from stockroom.sales.shipping import ShipSalesOrder
from stockroom.sales.workflow import (
    CancelSalesOrder,
    CompletePacking,
    CompletePicking,
    ConfirmSalesOrder,
    DeliverSalesOrder,
    HoldSalesOrder,
    MarkReadyForPickup,
    ReleaseSalesOrder,
    StartPacking,
    StartPicking,
    SubmitSalesOrder,
)
from stockroom.shared.tenancy import load_for_tenant

product_router = APIRouter(prefix="/tenants/{tenant_id}/products", tags=["products"])
company_router = APIRouter(prefix="/tenants/{tenant_id}/companies", tags=["companies"])
customer_router = APIRouter(prefix="/tenants/{tenant_id}/customers", tags=["customers"])
movement_router = APIRouter(prefix="/tenants/{tenant_id}/stock-movements", tags=["stock-movements"])
purchase_order_router = APIRouter(prefix="/tenants/{tenant_id}/purchase-orders", tags=["purchase-orders"])
receipt_router = APIRouter(prefix="/tenants/{tenant_id}/receipts", tags=["receipts"])
sales_order_router = APIRouter(prefix="/tenants/{tenant_id}/sales-orders", tags=["sales-orders"])


def _lines_json(lines) -> str | None:
    if lines is None:
        return None
    return json.dumps([line.model_dump(exclude_none=True) for line in lines])


def _process(command):
    return current_domain.process(command, asynchronous=False)


# --- Catalog endpoints ---


@product_router.post("", status_code=201, response_model=IdResponse)
async def register_product(tenant_id: str, body: RegisterProductRequest) -> IdResponse:
    command = RegisterProduct(
        tenant_id=tenant_id,
        name=body.name,
        sku=body.sku,
        cost_per_unit=body.cost_per_unit,
        opening_stock=body.opening_stock,
        location=body.location,
        minimum_stock_level=body.minimum_stock_level,
        acting_user=body.acting_user,
    )
    return IdResponse(id=_process(command))


@product_router.get("")
async def list_products(tenant_id: str) -> list[dict]:
    return [product.to_dict() for product in current_domain.repository_for(Product).for_tenant(tenant_id)]


@product_router.get("/{product_id}")
async def get_product(tenant_id: str, product_id: str) -> dict:
    return load_for_tenant(Product, product_id, tenant_id, "Product not found").to_dict()


@product_router.get("/{product_id}/movements")
async def list_product_movements(tenant_id: str, product_id: str) -> list[dict]:
    load_for_tenant(Product, product_id, tenant_id, "Product not found")
    return [movement.to_dict() for movement in movements_for_product(tenant_id, product_id)]


@company_router.post("", status_code=201, response_model=IdResponse)
async def register_company(tenant_id: str, body: RegisterCompanyRequest) -> IdResponse:
    command = RegisterCompany(
        tenant_id=tenant_id,
        name=body.name,
        is_supplier=body.is_supplier,
        is_customer=body.is_customer,
        email=body.email,
        phone=body.phone,
    )
    return IdResponse(id=_process(command))


@company_router.get("/{company_id}")
async def get_company(tenant_id: str, company_id: str) -> dict:
    return load_for_tenant(Company, company_id, tenant_id, "Company not found").to_dict()


@customer_router.post("", status_code=201, response_model=IdResponse)
async def register_customer(tenant_id: str, body: RegisterCustomerRequest) -> IdResponse:
    command = RegisterCustomer(tenant_id=tenant_id, name=body.name, email=body.email, phone=body.phone)
    return IdResponse(id=_process(command))


@customer_router.get("/{customer_id}")
async def get_customer(tenant_id: str, customer_id: str) -> dict:
    return load_for_tenant(Customer, customer_id, tenant_id, "Customer not found").to_dict()


# --- Stock movement endpoints ---


@movement_router.post("", status_code=201, response_model=IdResponse)
async def record_stock_movement(tenant_id: str, body: RecordStockMovementRequest) -> IdResponse:
    command = RecordStockMovement(
        tenant_id=tenant_id,
        product_id=body.product_id,
        movement_type=body.movement_type,
        quantity=body.quantity,
        reason=body.reason,
        notes=body.notes,
        from_location=body.from_location,
        to_location=body.to_location,
        acting_user=body.acting_user,
    )
    return IdResponse(id=_process(command))


@movement_router.get("")
async def list_stock_movements(tenant_id: str) -> list[dict]:
    return [movement.to_dict() for movement in current_domain.repository_for(StockMovement).for_tenant(tenant_id)]


# --- Purchase order endpoints ---


@purchase_order_router.post("", status_code=201, response_model=IdResponse)
async def create_purchase_order(tenant_id: str, body: CreatePurchaseOrderRequest) -> IdResponse:
    command = CreatePurchaseOrder(
        tenant_id=tenant_id,
        supplier_id=body.supplier_id,
        lines=_lines_json(body.lines),
        tax_amount=body.tax_amount,
        shipping_cost=body.shipping_cost,
        expected_delivery_date=body.expected_delivery_date,
        supplier_reference=body.supplier_reference,
        notes=body.notes,
        acting_user=body.acting_user,
    )
    return IdResponse(id=_process(command))


@purchase_order_router.get("")
async def list_purchase_orders(tenant_id: str, status: str | None = None) -> list[dict]:
    repo = current_domain.repository_for(PurchaseOrder)
    return [po.to_dict() for po in repo.for_tenant(tenant_id, status=status)]


@purchase_order_router.get("/{purchase_order_id}")
async def get_purchase_order(tenant_id: str, purchase_order_id: str) -> dict:
    return load_for_tenant(PurchaseOrder, purchase_order_id, tenant_id, "Purchase order not found").to_dict()


@purchase_order_router.put("/{purchase_order_id}", response_model=StatusResponse)
async def update_purchase_order(tenant_id: str, purchase_order_id: str, body: UpdatePurchaseOrderRequest) -> StatusResponse:
    command = UpdatePurchaseOrder(
        tenant_id=tenant_id,
        purchase_order_id=purchase_order_id,
        lines=_lines_json(body.lines),
        tax_amount=body.tax_amount,
        shipping_cost=body.shipping_cost,
        expected_delivery_date=body.expected_delivery_date,
        confirmed_delivery_date=body.confirmed_delivery_date,
        supplier_reference=body.supplier_reference,
        notes=body.notes,
        acting_user=body.acting_user,
    )
    _process(command)
    return StatusResponse()


@purchase_order_router.put("/{purchase_order_id}/submit", response_model=StatusResponse)
async def submit_purchase_order(tenant_id: str, purchase_order_id: str, body: ActingUserRequest) -> StatusResponse:
    _process(SubmitPurchaseOrder(tenant_id=tenant_id, purchase_order_id=purchase_order_id, acting_user=body.acting_user))
    return StatusResponse()


@purchase_order_router.put("/{purchase_order_id}/confirm", response_model=StatusResponse)
async def confirm_purchase_order(
    tenant_id: str, purchase_order_id: str, body: ConfirmPurchaseOrderRequest
) -> StatusResponse:
    command = ConfirmPurchaseOrder(
        tenant_id=tenant_id,
        purchase_order_id=purchase_order_id,
        confirmed_delivery_date=body.confirmed_delivery_date,
        acting_user=body.acting_user,
    )
    _process(command)
    return StatusResponse()


@purchase_order_router.put("/{purchase_order_id}/cancel", response_model=StatusResponse)
async def cancel_purchase_order(tenant_id: str, purchase_order_id: str, body: ReasonRequest) -> StatusResponse:
    command = CancelPurchaseOrder(
        tenant_id=tenant_id,
        purchase_order_id=purchase_order_id,
        reason=body.reason,
        acting_user=body.acting_user,
    )
    _process(command)
    return StatusResponse()


@purchase_order_router.delete("/{purchase_order_id}", response_model=StatusResponse)
async def delete_purchase_order(
    tenant_id: str, purchase_order_id: str, acting_user: str = Header(..., alias="X-Acting-User")
) -> StatusResponse:
    _process(DeletePurchaseOrder(tenant_id=tenant_id, purchase_order_id=purchase_order_id, acting_user=acting_user))
    return StatusResponse()


# --- Receipt endpoints ---


@receipt_router.post("", status_code=201, response_model=IdResponse)
async def create_receipt(tenant_id: str, body: CreateReceiptRequest) -> IdResponse:
    command = CreateReceipt(
        tenant_id=tenant_id,
        purchase_order_id=body.purchase_order_id,
        lines=_lines_json(body.lines),
        supplier_delivery_note=body.supplier_delivery_note,
        notes=body.notes,
        acting_user=body.acting_user,
    )
    return IdResponse(id=_process(command))


@receipt_router.get("")
async def list_receipts(tenant_id: str, purchase_order_id: str | None = None) -> list[dict]:
    repo = current_domain.repository_for(Receipt)
    if purchase_order_id:
        receipts = repo.for_purchase_order(tenant_id, purchase_order_id)
    else:
        receipts = repo.for_tenant(tenant_id)
    return [receipt.to_dict() for receipt in receipts]


@receipt_router.get("/{receipt_id}")
async def get_receipt(tenant_id: str, receipt_id: str) -> dict:
    return load_for_tenant(Receipt, receipt_id, tenant_id, "Receipt not found").to_dict()


@receipt_router.get("/{receipt_id}/variance-report")
async def get_variance_report(tenant_id: str, receipt_id: str) -> dict:
    return variance_report(tenant_id, receipt_id)


@receipt_router.put("/{receipt_id}/approve", response_model=StatusResponse)
async def approve_receipt(tenant_id: str, receipt_id: str, body: ApproveReceiptRequest) -> StatusResponse:
    command = ApproveReceipt(
        tenant_id=tenant_id,
        receipt_id=receipt_id,
        variance_notes=body.variance_notes,
        acting_user=body.acting_user,
    )
    _process(command)
    return StatusResponse()


@receipt_router.put("/{receipt_id}/reject", response_model=StatusResponse)
async def reject_receipt(tenant_id: str, receipt_id: str, body: ReasonRequest) -> StatusResponse:
    _process(RejectReceipt(tenant_id=tenant_id, receipt_id=receipt_id, reason=body.reason, acting_user=body.acting_user))
    return StatusResponse()


@receipt_router.put("/{receipt_id}/complete", response_model=StatusResponse)
async def complete_receipt(tenant_id: str, receipt_id: str, body: ActingUserRequest) -> StatusResponse:
    _process(CompleteReceipt(tenant_id=tenant_id, receipt_id=receipt_id, acting_user=body.acting_user))
    return StatusResponse()


@receipt_router.put("/{receipt_id}/rollback", response_model=StatusResponse)
async def rollback_receipt(tenant_id: str, receipt_id: str, body: ActingUserRequest) -> StatusResponse:
    _process(RollbackReceipt(tenant_id=tenant_id, receipt_id=receipt_id, acting_user=body.acting_user))
    return StatusResponse()


@receipt_router.delete("/{receipt_id}", response_model=StatusResponse)
async def delete_receipt(
    tenant_id: str, receipt_id: str, acting_user: str = Header(..., alias="X-Acting-User")
) -> StatusResponse:
    _process(DeleteReceipt(tenant_id=tenant_id, receipt_id=receipt_id, acting_user=acting_user))
    return StatusResponse()


# --- Sales order endpoints ---


@sales_order_router.post("", status_code=201, response_model=IdResponse)
async def create_sales_order(tenant_id: str, body: CreateSalesOrderRequest) -> IdResponse:
    command = CreateSalesOrder(
        tenant_id=tenant_id,
        customer_id=body.customer_id,
        lines=_lines_json(body.lines),
        ship_to=body.ship_to.model_dump_json() if body.ship_to else None,
        priority=body.priority,
        required_date=body.required_date,
        promised_date=body.promised_date,
        shipping_method=body.shipping_method,
        tax_rate=body.tax_rate,
        shipping_cost=body.shipping_cost,
        discount_amount=body.discount_amount,
        customer_reference=body.customer_reference,
        notes=body.notes,
        internal_notes=body.internal_notes,
        acting_user=body.acting_user,
    )
    return IdResponse(id=_process(command))


@sales_order_router.get("")
async def list_sales_orders(tenant_id: str, status: str | None = None) -> list[dict]:
    repo = current_domain.repository_for(SalesOrder)
    return [order.to_dict() for order in repo.for_tenant(tenant_id, status=status)]


@sales_order_router.get("/{sales_order_id}")
async def get_sales_order(tenant_id: str, sales_order_id: str) -> dict:
    return load_for_tenant(SalesOrder, sales_order_id, tenant_id, "Sales order not found").to_dict()


@sales_order_router.put("/{sales_order_id}", response_model=StatusResponse)
async def update_sales_order(tenant_id: str, sales_order_id: str, body: UpdateSalesOrderRequest) -> StatusResponse:
    command = UpdateSalesOrder(
        tenant_id=tenant_id,
        sales_order_id=sales_order_id,
        lines=_lines_json(body.lines),
        ship_to=body.ship_to.model_dump_json() if body.ship_to else None,
        priority=body.priority,
        required_date=body.required_date,
        shipping_method=body.shipping_method,
        tax_rate=body.tax_rate,
        shipping_cost=body.shipping_cost,
        discount_amount=body.discount_amount,
        customer_reference=body.customer_reference,
        notes=body.notes,
        acting_user=body.acting_user,
    )
    _process(command)
    return StatusResponse()


@sales_order_router.delete("/{sales_order_id}", response_model=StatusResponse)
async def delete_sales_order(
    tenant_id: str, sales_order_id: str, acting_user: str = Header(..., alias="X-Acting-User")
) -> StatusResponse:
    _process(DeleteSalesOrder(tenant_id=tenant_id, sales_order_id=sales_order_id, acting_user=acting_user))
    return StatusResponse()


@sales_order_router.put("/{sales_order_id}/submit", response_model=StatusResponse)
async def submit_sales_order(tenant_id: str, sales_order_id: str, body: ActingUserRequest) -> StatusResponse:
    command = SubmitSalesOrder(
        tenant_id=tenant_id, sales_order_id=sales_order_id, notes=body.notes, acting_user=body.acting_user
    )
    _process(command)
    return StatusResponse()


@sales_order_router.put("/{sales_order_id}/confirm", response_model=StatusResponse)
async def confirm_sales_order(tenant_id: str, sales_order_id: str, body: ConfirmSalesOrderRequest) -> StatusResponse:
    command = ConfirmSalesOrder(
        tenant_id=tenant_id,
        sales_order_id=sales_order_id,
        promised_date=body.promised_date,
        notes=body.notes,
        acting_user=body.acting_user,
    )
    _process(command)
    return StatusResponse()


@sales_order_router.put("/{sales_order_id}/ready-for-pickup", response_model=StatusResponse)
async def mark_ready_for_pickup(tenant_id: str, sales_order_id: str, body: ActingUserRequest) -> StatusResponse:
    command = MarkReadyForPickup(
        tenant_id=tenant_id, sales_order_id=sales_order_id, notes=body.notes, acting_user=body.acting_user
    )
    _process(command)
    return StatusResponse()


@sales_order_router.put("/{sales_order_id}/hold", response_model=StatusResponse)
async def hold_sales_order(tenant_id: str, sales_order_id: str, body: ReasonRequest) -> StatusResponse:
    command = HoldSalesOrder(
        tenant_id=tenant_id, sales_order_id=sales_order_id, reason=body.reason, acting_user=body.acting_user
    )
    _process(command)
    return StatusResponse()


@sales_order_router.put("/{sales_order_id}/release", response_model=StatusResponse)
async def release_sales_order(tenant_id: str, sales_order_id: str, body: ActingUserRequest) -> StatusResponse:
    command = ReleaseSalesOrder(
        tenant_id=tenant_id, sales_order_id=sales_order_id, notes=body.notes, acting_user=body.acting_user
    )
    _process(command)
    return StatusResponse()


@sales_order_router.put("/{sales_order_id}/cancel", response_model=StatusResponse)
async def cancel_sales_order(tenant_id: str, sales_order_id: str, body: ReasonRequest) -> StatusResponse:
    command = CancelSalesOrder(
        tenant_id=tenant_id, sales_order_id=sales_order_id, reason=body.reason, acting_user=body.acting_user
    )
    _process(command)
    return StatusResponse()


@sales_order_router.put("/{sales_order_id}/start-picking", response_model=StatusResponse)
async def start_picking(tenant_id: str, sales_order_id: str, body: ActingUserRequest) -> StatusResponse:
    command = StartPicking(
        tenant_id=tenant_id, sales_order_id=sales_order_id, notes=body.notes, acting_user=body.acting_user
    )
    _process(command)
    return StatusResponse()


@sales_order_router.put("/{sales_order_id}/complete-picking", response_model=StatusResponse)
async def complete_picking(tenant_id: str, sales_order_id: str, body: CompletePickingRequest) -> StatusResponse:
    command = CompletePicking(
        tenant_id=tenant_id,
        sales_order_id=sales_order_id,
        picks=_lines_json(body.picks),
        notes=body.notes,
        acting_user=body.acting_user,
    )
    _process(command)
    return StatusResponse()


@sales_order_router.put("/{sales_order_id}/start-packing", response_model=StatusResponse)
async def start_packing(tenant_id: str, sales_order_id: str, body: ActingUserRequest) -> StatusResponse:
    command = StartPacking(
        tenant_id=tenant_id, sales_order_id=sales_order_id, notes=body.notes, acting_user=body.acting_user
    )
    _process(command)
    return StatusResponse()


@sales_order_router.put("/{sales_order_id}/complete-packing", response_model=StatusResponse)
async def complete_packing(tenant_id: str, sales_order_id: str, body: ActingUserRequest) -> StatusResponse:
    command = CompletePacking(
        tenant_id=tenant_id, sales_order_id=sales_order_id, notes=body.notes, acting_user=body.acting_user
    )
    _process(command)
    return StatusResponse()


@sales_order_router.put("/{sales_order_id}/ship", response_model=StatusResponse)
async def ship_sales_order(tenant_id: str, sales_order_id: str, body: ShipSalesOrderRequest) -> StatusResponse:
    command = ShipSalesOrder(
        tenant_id=tenant_id,
        sales_order_id=sales_order_id,
        carrier=body.carrier,
        tracking_number=body.tracking_number,
        notes=body.notes,
        acting_user=body.acting_user,
    )
    _process(command)
    return StatusResponse()


@sales_order_router.put("/{sales_order_id}/deliver", response_model=StatusResponse)
async def deliver_sales_order(tenant_id: str, sales_order_id: str, body: DeliverSalesOrderRequest) -> StatusResponse:
    command = DeliverSalesOrder(
        tenant_id=tenant_id,
        sales_order_id=sales_order_id,
        received_by=body.received_by,
        notes=body.notes,
        acting_user=body.acting_user,
    )
    _process(command)
    return StatusResponse()
