"""Receipt review — approve, reject, delete, and the variance report reviewers work from."""

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from stockroom.domain import stockroom
from stockroom.receiving.receipt import Receipt
from stockroom.receiving.variance import build_variance_report
from stockroom.shared.tenancy import load_for_tenant

logger = structlog.get_logger(__name__)

NOT_FOUND = "Receipt not found"


@stockroom.command(part_of="Receipt")
class ApproveReceipt:
    tenant_id = Identifier(required=True)
    receipt_id = Identifier(required=True)
    variance_notes = Text()
    acting_user = String(required=True, max_length=255)


@stockroom.command(part_of="Receipt")
class RejectReceipt:
    tenant_id = Identifier(required=True)
    receipt_id = Identifier(required=True)
    reason = String(max_length=500)  # Checked by the aggregate so an empty reason is named
    acting_user = String(required=True, max_length=255)


@stockroom.command(part_of="Receipt")
class DeleteReceipt:
    tenant_id = Identifier(required=True)
    receipt_id = Identifier(required=True)
    acting_user = String(required=True, max_length=255)


@stockroom.command_handler(part_of=Receipt)
class ReceiptReviewHandler:
    @handle(ApproveReceipt)
    def approve_receipt(self, command):
        receipt = load_for_tenant(Receipt, command.receipt_id, command.tenant_id, NOT_FOUND)
        receipt.approve(command.acting_user, variance_notes=command.variance_notes)
        current_domain.repository_for(Receipt).add(receipt)

    @handle(RejectReceipt)
    def reject_receipt(self, command):
        receipt = load_for_tenant(Receipt, command.receipt_id, command.tenant_id, NOT_FOUND)
        receipt.reject(command.reason, rejected_by=command.acting_user)
        current_domain.repository_for(Receipt).add(receipt)
        logger.info("Receipt rejected", receipt_number=receipt.receipt_number, reason=command.reason)

    @handle(DeleteReceipt)
    def delete_receipt(self, command):
        receipt = load_for_tenant(Receipt, command.receipt_id, command.tenant_id, NOT_FOUND)
        receipt.assert_deletable()
        current_domain.repository_for(Receipt)._dao.delete(receipt)


def variance_report(tenant_id, receipt_id) -> dict:
    receipt = load_for_tenant(Receipt, receipt_id, tenant_id, NOT_FOUND)
    return build_variance_report(receipt)
