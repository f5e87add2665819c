"""Shipping — the one sales step that takes goods out of stock.

Every line with a picked quantity becomes a StockOut movement. All of the
movements are attempted before anything is written; a single failure refuses
the whole shipment and the order stays PACKED with stock untouched.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from stockroom.domain import stockroom
from stockroom.ledger.movement import MovementType
from stockroom.ledger.writer import StockLedger
from stockroom.sales.sales_order import SalesOrder
from stockroom.shared.errors import InvariantViolationError, first_message
from stockroom.shared.tenancy import load_for_tenant

logger = structlog.get_logger(__name__)


@stockroom.command(part_of="SalesOrder")
class ShipSalesOrder:
    tenant_id = Identifier(required=True)
    sales_order_id = Identifier(required=True)
    carrier = String(max_length=100)
    tracking_number = String(max_length=100)
    notes = Text()
    acting_user = String(required=True, max_length=255)


def shipment_reason(order_number):
    return f"Sales Order {order_number}"


class SalesOrderShipment:
    def __init__(self, tenant_id, sales_order_id, acting_user):
        self.tenant_id = tenant_id
        self.sales_order_id = sales_order_id
        self.acting_user = acting_user

    def execute(self, carrier=None, tracking_number=None, notes=None) -> SalesOrder:
        order = load_for_tenant(SalesOrder, self.sales_order_id, self.tenant_id, "Sales order not found")
        order.assert_can_ship()

        with StockLedger(self.tenant_id, self.acting_user) as ledger:
            self._take_out_of_stock(ledger, order)
            order.ship(
                shipped_by=self.acting_user,
                carrier=carrier,
                tracking_number=tracking_number,
                notes=notes,
            )

        current_domain.repository_for(SalesOrder).add(order)
        logger.info(
            "Sales order shipped",
            sales_order_id=str(order.id),
            order_number=order.order_number,
            movements=len(ledger.movements),
        )
        return order

    def _take_out_of_stock(self, ledger, order):
        failures = []
        missing_product = False
        recipient = (order.ship_to.name if order.ship_to else None) or "customer"
        for line in order.lines_to_ship:
            try:
                ledger.record(
                    line.product_id,
                    MovementType.STOCK_OUT,
                    line.quantity_picked,
                    reason=shipment_reason(order.order_number),
                    notes=f"Shipped to {recipient}",
                    from_location=line.location,
                )
            except (ValidationError, ObjectNotFoundError) as exc:
                missing_product = missing_product or isinstance(exc, ObjectNotFoundError)
                failures.append(f"Product {line.product_sku or line.product_id}: {first_message(exc)}")

        if failures:
            message = "Failed to create stock movements: " + ", ".join(failures)
            logger.warning(
                "Shipment refused",
                sales_order_id=str(order.id),
                order_number=order.order_number,
                failures=failures,
            )
            if missing_product:
                raise ObjectNotFoundError({"lines": [message]})
            raise InvariantViolationError({"lines": [message]})


@stockroom.command_handler(part_of=SalesOrder)
class ShipSalesOrderHandler:
    @handle(ShipSalesOrder)
    def ship_sales_order(self, command):
        SalesOrderShipment(command.tenant_id, command.sales_order_id, command.acting_user).execute(
            carrier=command.carrier,
            tracking_number=command.tracking_number,
            notes=command.notes,
        )
