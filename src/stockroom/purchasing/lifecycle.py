"""Purchase order lifecycle — edit, submit, confirm, cancel and delete."""

import structlog
from protean import handle
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from stockroom.domain import stockroom
from stockroom.purchasing.creation import decode_lines, snapshot_purchase_lines
from stockroom.purchasing.purchase_order import PurchaseOrder
from stockroom.shared.dates import parse_iso_date
from stockroom.shared.tenancy import load_for_tenant

logger = structlog.get_logger(__name__)

NOT_FOUND = "Purchase order not found"


@stockroom.command(part_of="PurchaseOrder")
class UpdatePurchaseOrder:
    """Edit a purchase order; pricing and lines only while it is a draft."""

    tenant_id = Identifier(required=True)
    purchase_order_id = Identifier(required=True)
    lines = Text()  # JSON: replaces every line when present
    tax_amount = Float()
    shipping_cost = Float()
    expected_delivery_date = String(max_length=10)
    confirmed_delivery_date = String(max_length=10)
    supplier_reference = String(max_length=100)
    notes = Text()
    acting_user = String(required=True, max_length=255)


@stockroom.command(part_of="PurchaseOrder")
class SubmitPurchaseOrder:
    tenant_id = Identifier(required=True)
    purchase_order_id = Identifier(required=True)
    acting_user = String(required=True, max_length=255)


@stockroom.command(part_of="PurchaseOrder")
class ConfirmPurchaseOrder:
    tenant_id = Identifier(required=True)
    purchase_order_id = Identifier(required=True)
    confirmed_delivery_date = String(max_length=10)  # ISO date
    acting_user = String(required=True, max_length=255)


@stockroom.command(part_of="PurchaseOrder")
class CancelPurchaseOrder:
    tenant_id = Identifier(required=True)
    purchase_order_id = Identifier(required=True)
    reason = String(max_length=500)
    acting_user = String(required=True, max_length=255)


@stockroom.command(part_of="PurchaseOrder")
class DeletePurchaseOrder:
    tenant_id = Identifier(required=True)
    purchase_order_id = Identifier(required=True)
    acting_user = String(required=True, max_length=255)


@stockroom.command_handler(part_of=PurchaseOrder)
class PurchaseOrderLifecycleHandler:
    @handle(UpdatePurchaseOrder)
    def update_purchase_order(self, command):
        po = load_for_tenant(PurchaseOrder, command.purchase_order_id, command.tenant_id, NOT_FOUND)
        lines = None
        if command.lines:
            lines = snapshot_purchase_lines(command.tenant_id, decode_lines(command.lines))
        po.update_details(
            tax_amount=command.tax_amount,
            shipping_cost=command.shipping_cost,
            expected_delivery_date=parse_iso_date(command.expected_delivery_date, "expected_delivery_date"),
            confirmed_delivery_date=parse_iso_date(command.confirmed_delivery_date, "confirmed_delivery_date"),
            supplier_reference=command.supplier_reference,
            notes=command.notes,
            lines_data=lines,
        )
        current_domain.repository_for(PurchaseOrder).add(po)

    @handle(SubmitPurchaseOrder)
    def submit_purchase_order(self, command):
        po = load_for_tenant(PurchaseOrder, command.purchase_order_id, command.tenant_id, NOT_FOUND)
        po.submit(submitted_by=command.acting_user)
        current_domain.repository_for(PurchaseOrder).add(po)
        logger.info("Purchase order submitted", purchase_order_id=str(po.id), order_number=po.order_number)

    @handle(ConfirmPurchaseOrder)
    def confirm_purchase_order(self, command):
        po = load_for_tenant(PurchaseOrder, command.purchase_order_id, command.tenant_id, NOT_FOUND)
        po.confirm(
            confirmed_delivery_date=parse_iso_date(command.confirmed_delivery_date, "confirmed_delivery_date"),
            confirmed_by=command.acting_user,
        )
        current_domain.repository_for(PurchaseOrder).add(po)

    @handle(CancelPurchaseOrder)
    def cancel_purchase_order(self, command):
        po = load_for_tenant(PurchaseOrder, command.purchase_order_id, command.tenant_id, NOT_FOUND)
        po.cancel(command.reason, cancelled_by=command.acting_user)
        current_domain.repository_for(PurchaseOrder).add(po)
        logger.info(
            "Purchase order cancelled",
            purchase_order_id=str(po.id),
            order_number=po.order_number,
            reason=command.reason,
        )

    @handle(DeletePurchaseOrder)
    def delete_purchase_order(self, command):
        repo = current_domain.repository_for(PurchaseOrder)
        po = load_for_tenant(PurchaseOrder, command.purchase_order_id, command.tenant_id, NOT_FOUND)
        po.assert_deletable()
        repo._dao.delete(po)
        logger.info("Purchase order deleted", purchase_order_id=str(po.id), order_number=po.order_number)
