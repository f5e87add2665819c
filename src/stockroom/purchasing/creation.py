"""Purchase order creation — command and handler."""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from stockroom.catalog.company import Company
from stockroom.catalog.product import Product
from stockroom.domain import stockroom
from stockroom.purchasing.purchase_order import PurchaseOrder
from stockroom.shared.dates import parse_iso_date
from stockroom.shared.numbering import PURCHASE_ORDER_PREFIX, next_document_number, yearly_period
from stockroom.shared.tenancy import load_for_tenant

logger = structlog.get_logger(__name__)


@stockroom.command(part_of="PurchaseOrder")
class CreatePurchaseOrder:
    """Raise a draft purchase order against a supplier."""

    tenant_id = Identifier(required=True)
    supplier_id = Identifier(required=True)
    lines = Text(required=True)  # JSON: list of {product_id, quantity, unit_price, notes}
    tax_amount = Float(default=0.0)
    shipping_cost = Float(default=0.0)
    expected_delivery_date = String(max_length=10)  # ISO date
    supplier_reference = String(max_length=100)
    notes = Text()
    acting_user = String(required=True, max_length=255)


def decode_lines(raw):
    lines = json.loads(raw) if isinstance(raw, str) else raw
    if not isinstance(lines, list):
        raise ValidationError({"lines": ["Lines must be a list"]})
    return lines


def snapshot_purchase_lines(tenant_id, lines):
    """Resolve each line's product within the tenant and capture its name and SKU."""
    resolved = []
    for data in lines:
        product = load_for_tenant(
            Product,
            data.get("product_id"),
            tenant_id,
            f"Product {data.get('product_id')} not found",
        )
        resolved.append(
            {
                **data,
                "product_id": str(product.id),
                "product_name": product.name,
                "product_sku": product.sku,
            }
        )
    return resolved


@stockroom.command_handler(part_of=PurchaseOrder)
class CreatePurchaseOrderHandler:
    @handle(CreatePurchaseOrder)
    def create_purchase_order(self, command):
        supplier = load_for_tenant(Company, command.supplier_id, command.tenant_id, "Supplier not found")
        if not supplier.is_supplier:
            raise ValidationError({"supplier_id": ["Selected company is not marked as a supplier"]})

        lines = decode_lines(command.lines)
        if not lines:
            raise ValidationError({"lines": ["Purchase order must have at least one line item"]})
        lines = snapshot_purchase_lines(command.tenant_id, lines)

        po = PurchaseOrder.create(
            tenant_id=command.tenant_id,
            order_number=next_document_number(command.tenant_id, PURCHASE_ORDER_PREFIX, yearly_period()),
            supplier_id=str(supplier.id),
            lines_data=lines,
            tax_amount=command.tax_amount or 0.0,
            shipping_cost=command.shipping_cost or 0.0,
            expected_delivery_date=parse_iso_date(command.expected_delivery_date, "expected_delivery_date"),
            supplier_reference=command.supplier_reference,
            notes=command.notes,
            created_by=command.acting_user,
        )
        current_domain.repository_for(PurchaseOrder).add(po)

        logger.info(
            "Purchase order created",
            tenant_id=str(command.tenant_id),
            purchase_order_id=str(po.id),
            order_number=po.order_number,
            total_amount=po.total_amount,
        )
        return str(po.id)
