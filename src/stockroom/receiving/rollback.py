"""Receipt inventory rollback — command and handler.

An internal corrective path: reverses the stock a completed receipt posted.
It is scoped to the caller's tenant like every other operation. Purchase
order quantities are left as they are; the receipt is stamped so the same
stock cannot be reversed twice.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from stockroom.domain import stockroom
from stockroom.ledger.writer import StockLedger
from stockroom.receiving.receipt import Receipt
from stockroom.receiving.reconciliation import InventoryReconciliation
from stockroom.shared.tenancy import load_for_tenant

logger = structlog.get_logger(__name__)


@stockroom.command(part_of="Receipt")
class RollbackReceipt:
    tenant_id = Identifier(required=True)
    receipt_id = Identifier(required=True)
    acting_user = String(required=True, max_length=255)


@stockroom.command_handler(part_of=Receipt)
class RollbackReceiptHandler:
    @handle(RollbackReceipt)
    def rollback_receipt(self, command):
        receipt = load_for_tenant(Receipt, command.receipt_id, command.tenant_id, "Receipt not found")

        with StockLedger(command.tenant_id, command.acting_user) as ledger:
            _, quantity_reversed = InventoryReconciliation(ledger).rollback_receipt_from_inventory(receipt)
            receipt.mark_inventory_rolled_back(command.acting_user, quantity_reversed)

        current_domain.repository_for(Receipt).add(receipt)
        logger.warning(
            "Receipt inventory rolled back",
            receipt_number=receipt.receipt_number,
            quantity_reversed=quantity_reversed,
            acting_user=command.acting_user,
        )
