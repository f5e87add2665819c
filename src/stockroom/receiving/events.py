"""Domain events for the Receipt aggregate."""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from stockroom.domain import stockroom


@stockroom.event(part_of="Receipt")
class ReceiptCreated:
    """Goods arriving against a purchase order were counted and recorded."""

    __version__ = "v1"

    receipt_id = Identifier(required=True)
    tenant_id = Identifier(required=True)
    receipt_number = String(required=True)
    purchase_order_id = Identifier(required=True)
    status = String(required=True)
    has_variances = Boolean(default=False)
    line_count = Integer()
    received_by = String()
    created_at = DateTime(required=True)


@stockroom.event(part_of="Receipt")
class ReceiptApproved:
    """A reviewer accepted the receipt, variances included."""

    __version__ = "v1"

    receipt_id = Identifier(required=True)
    validated_by = String(required=True)
    variance_notes = Text()
    validated_at = DateTime(required=True)


@stockroom.event(part_of="Receipt")
class ReceiptRejected:
    """A reviewer refused the receipt; it will never reach stock."""

    __version__ = "v1"

    receipt_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    rejected_by = String()
    rejected_at = DateTime(required=True)


@stockroom.event(part_of="Receipt")
class ReceiptCompleted:
    """The receipt was posted to stock and to its purchase order."""

    __version__ = "v1"

    receipt_id = Identifier(required=True)
    receipt_number = String(required=True)
    purchase_order_id = Identifier(required=True)
    quantity_stocked = Float()
    completed_by = String()
    completed_at = DateTime(required=True)


@stockroom.event(part_of="Receipt")
class ReceiptInventoryRolledBack:
    """Stock posted by a completed receipt was taken back out of the ledger."""

    __version__ = "v1"

    receipt_id = Identifier(required=True)
    receipt_number = String(required=True)
    quantity_reversed = Float()
    rolled_back_by = String()
    rolled_back_at = DateTime(required=True)
