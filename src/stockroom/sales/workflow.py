"""Sales order workflow — every status step except shipping.

None of these steps touches stock; see ``stockroom.sales.shipping`` for the
one that does.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from stockroom.domain import stockroom
from stockroom.purchasing.creation import decode_lines
from stockroom.sales.sales_order import SalesOrder
from stockroom.shared.dates import parse_iso_date
from stockroom.shared.tenancy import load_for_tenant

logger = structlog.get_logger(__name__)

NOT_FOUND = "Sales order not found"


@stockroom.command(part_of="SalesOrder")
class SubmitSalesOrder:
    tenant_id = Identifier(required=True)
    sales_order_id = Identifier(required=True)
    notes = Text()
    acting_user = String(required=True, max_length=255)


@stockroom.command(part_of="SalesOrder")
class ConfirmSalesOrder:
    tenant_id = Identifier(required=True)
    sales_order_id = Identifier(required=True)
    promised_date = String(max_length=10)  # ISO date
    notes = Text()
    acting_user = String(required=True, max_length=255)


@stockroom.command(part_of="SalesOrder")
class MarkReadyForPickup:
    tenant_id = Identifier(required=True)
    sales_order_id = Identifier(required=True)
    notes = Text()
    acting_user = String(required=True, max_length=255)


@stockroom.command(part_of="SalesOrder")
class HoldSalesOrder:
    tenant_id = Identifier(required=True)
    sales_order_id = Identifier(required=True)
    reason = String(max_length=500)
    acting_user = String(required=True, max_length=255)


@stockroom.command(part_of="SalesOrder")
class ReleaseSalesOrder:
    tenant_id = Identifier(required=True)
    sales_order_id = Identifier(required=True)
    notes = Text()
    acting_user = String(required=True, max_length=255)


@stockroom.command(part_of="SalesOrder")
class CancelSalesOrder:
    tenant_id = Identifier(required=True)
    sales_order_id = Identifier(required=True)
    reason = String(max_length=500)
    acting_user = String(required=True, max_length=255)


@stockroom.command(part_of="SalesOrder")
class StartPicking:
    tenant_id = Identifier(required=True)
    sales_order_id = Identifier(required=True)
    notes = Text()
    acting_user = String(required=True, max_length=255)


@stockroom.command(part_of="SalesOrder")
class CompletePicking:
    tenant_id = Identifier(required=True)
    sales_order_id = Identifier(required=True)
    picks = Text(required=True)  # JSON: list of {line_id, quantity_picked, location}
    notes = Text()
    acting_user = String(required=True, max_length=255)


@stockroom.command(part_of="SalesOrder")
class StartPacking:
    tenant_id = Identifier(required=True)
    sales_order_id = Identifier(required=True)
    notes = Text()
    acting_user = String(required=True, max_length=255)


@stockroom.command(part_of="SalesOrder")
class CompletePacking:
    tenant_id = Identifier(required=True)
    sales_order_id = Identifier(required=True)
    notes = Text()
    acting_user = String(required=True, max_length=255)


@stockroom.command(part_of="SalesOrder")
class DeliverSalesOrder:
    tenant_id = Identifier(required=True)
    sales_order_id = Identifier(required=True)
    received_by = String(max_length=255)
    notes = Text()
    acting_user = String(required=True, max_length=255)


@stockroom.command_handler(part_of=SalesOrder)
class SalesOrderWorkflowHandler:
    def _load(self, command):
        return load_for_tenant(SalesOrder, command.sales_order_id, command.tenant_id, NOT_FOUND)

    def _save(self, order):
        current_domain.repository_for(SalesOrder).add(order)
        logger.info(
            "Sales order status changed",
            sales_order_id=str(order.id),
            order_number=order.order_number,
            status=order.status,
        )

    @handle(SubmitSalesOrder)
    def submit_sales_order(self, command):
        order = self._load(command)
        order.submit(submitted_by=command.acting_user, notes=command.notes)
        self._save(order)

    @handle(ConfirmSalesOrder)
    def confirm_sales_order(self, command):
        order = self._load(command)
        order.confirm(
            confirmed_by=command.acting_user,
            promised_date=parse_iso_date(command.promised_date, "promised_date"),
            notes=command.notes,
        )
        self._save(order)

    @handle(MarkReadyForPickup)
    def mark_ready_for_pickup(self, command):
        order = self._load(command)
        order.mark_ready_for_pickup(changed_by=command.acting_user, notes=command.notes)
        self._save(order)

    @handle(HoldSalesOrder)
    def hold_sales_order(self, command):
        order = self._load(command)
        order.hold(command.reason, held_by=command.acting_user)
        self._save(order)

    @handle(ReleaseSalesOrder)
    def release_sales_order(self, command):
        order = self._load(command)
        order.release(released_by=command.acting_user, notes=command.notes)
        self._save(order)

    @handle(CancelSalesOrder)
    def cancel_sales_order(self, command):
        order = self._load(command)
        order.cancel(command.reason, cancelled_by=command.acting_user)
        self._save(order)

    @handle(StartPicking)
    def start_picking(self, command):
        order = self._load(command)
        order.start_picking(started_by=command.acting_user, notes=command.notes)
        self._save(order)

    @handle(CompletePicking)
    def complete_picking(self, command):
        order = self._load(command)
        picks = decode_lines(command.picks) if command.picks else []
        order.complete_picking(picks, picked_by=command.acting_user, notes=command.notes)
        self._save(order)

    @handle(StartPacking)
    def start_packing(self, command):
        order = self._load(command)
        order.start_packing(started_by=command.acting_user, notes=command.notes)
        self._save(order)

    @handle(CompletePacking)
    def complete_packing(self, command):
        order = self._load(command)
        order.complete_packing(packed_by=command.acting_user, notes=command.notes)
        self._save(order)

    @handle(DeliverSalesOrder)
    def deliver_sales_order(self, command):
        order = self._load(command)
        order.deliver(
            delivered_by=command.acting_user,
            received_by=command.received_by,
            notes=command.notes,
        )
        self._save(order)
