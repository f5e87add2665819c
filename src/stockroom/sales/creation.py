"""Sales order entry — create, edit and delete draft orders."""

import json

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from stockroom.catalog.customer import Customer
from stockroom.catalog.product import Product
from stockroom.domain import stockroom
from stockroom.purchasing.creation import decode_lines
from stockroom.sales.sales_order import SalesOrder
from stockroom.shared.dates import parse_iso_date
from stockroom.shared.numbering import SALES_ORDER_PREFIX, daily_period, next_document_number
from stockroom.shared.tenancy import load_for_tenant

logger = structlog.get_logger(__name__)

NOT_FOUND = "Sales order not found"


@stockroom.command(part_of="SalesOrder")
class CreateSalesOrder:
    """Enter a draft sales order, optionally for a registered customer."""

    tenant_id = Identifier(required=True)
    customer_id = Identifier()
    lines = Text(required=True)  # JSON: list of {product_id, quantity, unit_price, discount_percent, notes}
    ship_to = Text()  # JSON: {name, address, city, state, postal_code, country, phone}
    priority = String(max_length=10)
    required_date = String(max_length=10)  # ISO date
    promised_date = String(max_length=10)  # ISO date
    shipping_method = String(max_length=100)
    tax_rate = Float(default=0.0)
    shipping_cost = Float(default=0.0)
    discount_amount = Float(default=0.0)
    customer_reference = String(max_length=100)
    notes = Text()
    internal_notes = Text()
    acting_user = String(required=True, max_length=255)


@stockroom.command(part_of="SalesOrder")
class UpdateSalesOrder:
    """Edit a draft order. Lines, when given, replace the existing ones."""

    tenant_id = Identifier(required=True)
    sales_order_id = Identifier(required=True)
    lines = Text()
    ship_to = Text()
    priority = String(max_length=10)
    required_date = String(max_length=10)
    shipping_method = String(max_length=100)
    tax_rate = Float()
    shipping_cost = Float()
    discount_amount = Float()
    customer_reference = String(max_length=100)
    notes = Text()
    acting_user = String(required=True, max_length=255)


@stockroom.command(part_of="SalesOrder")
class DeleteSalesOrder:
    tenant_id = Identifier(required=True)
    sales_order_id = Identifier(required=True)
    acting_user = String(required=True, max_length=255)


def decode_ship_to(raw):
    if not raw:
        return None
    ship_to = json.loads(raw) if isinstance(raw, str) else raw
    if not isinstance(ship_to, dict):
        raise ValidationError({"ship_to": ["Shipping address must be an object"]})
    return ship_to


def snapshot_sales_lines(tenant_id, lines):
    """Resolve all products in one pass; any miss fails the whole order."""
    products = {}
    for data in lines:
        try:
            product = load_for_tenant(Product, data.get("product_id"), tenant_id)
        except ObjectNotFoundError:
            raise ObjectNotFoundError({"product_id": ["One or more products not found"]}) from None
        products[str(product.id)] = product

    return [
        {
            **data,
            "product_id": str(data["product_id"]),
            "product_name": products[str(data["product_id"])].name,
            "product_sku": products[str(data["product_id"])].sku,
        }
        for data in lines
    ]


@stockroom.command_handler(part_of=SalesOrder)
class SalesOrderEntryHandler:
    @handle(CreateSalesOrder)
    def create_sales_order(self, command):
        if command.customer_id:
            load_for_tenant(Customer, command.customer_id, command.tenant_id, "Customer not found")

        lines = decode_lines(command.lines)
        if not lines:
            raise ValidationError({"lines": ["Sales order must have at least one line item"]})
        lines = snapshot_sales_lines(command.tenant_id, lines)

        order = SalesOrder.create(
            tenant_id=command.tenant_id,
            order_number=next_document_number(command.tenant_id, SALES_ORDER_PREFIX, daily_period()),
            lines_data=lines,
            customer_id=command.customer_id,
            ship_to=decode_ship_to(command.ship_to),
            priority=command.priority,
            required_date=parse_iso_date(command.required_date, "required_date"),
            promised_date=parse_iso_date(command.promised_date, "promised_date"),
            shipping_method=command.shipping_method,
            tax_rate=command.tax_rate or 0.0,
            shipping_cost=command.shipping_cost or 0.0,
            discount_amount=command.discount_amount or 0.0,
            customer_reference=command.customer_reference,
            notes=command.notes,
            internal_notes=command.internal_notes,
            created_by=command.acting_user,
        )
        current_domain.repository_for(SalesOrder).add(order)

        logger.info(
            "Sales order created",
            tenant_id=str(command.tenant_id),
            sales_order_id=str(order.id),
            order_number=order.order_number,
            total_amount=order.total_amount,
        )
        return str(order.id)

    @handle(UpdateSalesOrder)
    def update_sales_order(self, command):
        order = load_for_tenant(SalesOrder, command.sales_order_id, command.tenant_id, NOT_FOUND)
        lines = None
        if command.lines:
            lines = snapshot_sales_lines(command.tenant_id, decode_lines(command.lines))
        order.update_draft(
            lines_data=lines,
            ship_to=decode_ship_to(command.ship_to),
            priority=command.priority,
            required_date=parse_iso_date(command.required_date, "required_date"),
            shipping_method=command.shipping_method,
            tax_rate=command.tax_rate,
            shipping_cost=command.shipping_cost,
            discount_amount=command.discount_amount,
            customer_reference=command.customer_reference,
            notes=command.notes,
        )
        current_domain.repository_for(SalesOrder).add(order)

    @handle(DeleteSalesOrder)
    def delete_sales_order(self, command):
        repo = current_domain.repository_for(SalesOrder)
        order = load_for_tenant(SalesOrder, command.sales_order_id, command.tenant_id, NOT_FOUND)
        order.assert_deletable()
        repo._dao.delete(order)
        logger.info("Sales order deleted", sales_order_id=str(order.id), order_number=order.order_number)
