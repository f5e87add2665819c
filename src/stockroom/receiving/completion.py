"""Receipt completion — the use case that posts a validated receipt.

Completing a receipt touches three kinds of aggregate at once:

1. products gain stock (and re-averaged cost) through the ledger,
2. the purchase order's lines absorb the received quantities and the order
   status is recomputed,
3. the receipt itself becomes COMPLETED.

``ReceiptCompletion`` loads all of them, applies every change in memory and
hands them to the repositories only after the last change succeeded. The
command handler's Unit of Work then commits them together; if anything
raises, nothing is written and the receipt stays VALIDATED.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from stockroom.domain import stockroom
from stockroom.ledger.writer import StockLedger
from stockroom.purchasing.purchase_order import PurchaseOrder
from stockroom.receiving.receipt import Receipt
from stockroom.receiving.reconciliation import InventoryReconciliation
from stockroom.shared.tenancy import load_for_tenant

logger = structlog.get_logger(__name__)


class ReceiptCompletion:
    def __init__(self, tenant_id, receipt_id, acting_user):
        self.tenant_id = tenant_id
        self.receipt_id = receipt_id
        self.acting_user = acting_user

    def execute(self) -> Receipt:
        receipt = load_for_tenant(Receipt, self.receipt_id, self.tenant_id, "Receipt not found")
        receipt.assert_can_complete()
        po = load_for_tenant(
            PurchaseOrder,
            receipt.purchase_order_id,
            self.tenant_id,
            "Purchase order not found",
        )

        try:
            with StockLedger(self.tenant_id, self.acting_user) as ledger:
                InventoryReconciliation(ledger).apply_receipt_to_inventory(receipt, po.order_number)
                po.post_receipt(receipt.receipt_number, receipt.received_quantities())
                receipt.complete(self.acting_user)
        except Exception as exc:
            logger.warning(
                "Receipt completion refused",
                receipt_number=receipt.receipt_number,
                purchase_order_number=po.order_number,
                error=str(exc),
            )
            raise

        current_domain.repository_for(PurchaseOrder).add(po)
        current_domain.repository_for(Receipt).add(receipt)

        logger.info(
            "Receipt completed",
            receipt_number=receipt.receipt_number,
            purchase_order_number=po.order_number,
            purchase_order_status=po.status,
        )
        return receipt


@stockroom.command(part_of="Receipt")
class CompleteReceipt:
    tenant_id = Identifier(required=True)
    receipt_id = Identifier(required=True)
    acting_user = String(required=True, max_length=255)


@stockroom.command_handler(part_of=Receipt)
class CompleteReceiptHandler:
    @handle(CompleteReceipt)
    def complete_receipt(self, command):
        ReceiptCompletion(command.tenant_id, command.receipt_id, command.acting_user).execute()
