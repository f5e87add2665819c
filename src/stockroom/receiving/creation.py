"""Receipt creation — command and handler."""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from stockroom.domain import stockroom
from stockroom.purchasing.creation import decode_lines
from stockroom.purchasing.purchase_order import PurchaseOrder
from stockroom.receiving.receipt import Receipt
from stockroom.shared.numbering import RECEIPT_PREFIX, next_document_number, yearly_period
from stockroom.shared.tenancy import load_for_tenant

logger = structlog.get_logger(__name__)


@stockroom.command(part_of="Receipt")
class CreateReceipt:
    """Record goods that arrived against a purchase order."""

    tenant_id = Identifier(required=True)
    purchase_order_id = Identifier(required=True)
    lines = Text(required=True)  # JSON: list of {purchase_order_line_id, quantity_received, ...}
    supplier_delivery_note = String(max_length=100)
    notes = Text()
    acting_user = String(required=True, max_length=255)


@stockroom.command_handler(part_of=Receipt)
class CreateReceiptHandler:
    @handle(CreateReceipt)
    def create_receipt(self, command):
        po = load_for_tenant(
            PurchaseOrder,
            command.purchase_order_id,
            command.tenant_id,
            "Purchase order not found",
        )
        po.assert_can_receive()
        lines = decode_lines(command.lines)
        if not lines:
            raise ValidationError({"lines": ["Receipt must have at least one line item"]})

        receipt = Receipt.create(
            tenant_id=command.tenant_id,
            receipt_number=next_document_number(command.tenant_id, RECEIPT_PREFIX, yearly_period()),
            purchase_order=po,
            lines_data=lines,
            received_by=command.acting_user,
            supplier_delivery_note=command.supplier_delivery_note,
            notes=command.notes,
        )
        po.start_receiving()

        current_domain.repository_for(Receipt).add(receipt)
        current_domain.repository_for(PurchaseOrder).add(po)

        if receipt.has_variances:
            logger.warning(
                "Receipt held for variance review",
                receipt_number=receipt.receipt_number,
                purchase_order_number=po.order_number,
            )
        return str(receipt.id)
