"""Domain events for the PurchaseOrder aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from stockroom.domain import stockroom


@stockroom.event(part_of="PurchaseOrder")
class PurchaseOrderCreated:
    """A draft purchase order was raised against a supplier."""

    __version__ = "v1"

    purchase_order_id = Identifier(required=True)
    tenant_id = Identifier(required=True)
    order_number = String(required=True)
    supplier_id = Identifier(required=True)
    lines = Text(required=True)  # JSON: list of line dicts
    line_count = Integer()
    subtotal = Float()
    total_amount = Float()
    created_by = String()
    created_at = DateTime(required=True)


@stockroom.event(part_of="PurchaseOrder")
class PurchaseOrderUpdated:
    """Header details or draft lines of a purchase order changed."""

    __version__ = "v1"

    purchase_order_id = Identifier(required=True)
    total_amount = Float()
    updated_at = DateTime(required=True)


@stockroom.event(part_of="PurchaseOrder")
class PurchaseOrderSubmitted:
    """The order was sent to the supplier."""

    __version__ = "v1"

    purchase_order_id = Identifier(required=True)
    order_number = String(required=True)
    submitted_by = String()
    submitted_at = DateTime(required=True)


@stockroom.event(part_of="PurchaseOrder")
class PurchaseOrderConfirmed:
    """The supplier acknowledged the order."""

    __version__ = "v1"

    purchase_order_id = Identifier(required=True)
    confirmed_delivery_date = String(max_length=10)  # ISO date
    confirmed_by = String()
    confirmed_at = DateTime(required=True)


@stockroom.event(part_of="PurchaseOrder")
class PurchaseOrderReceivingStarted:
    """The first receipt was recorded against the order."""

    __version__ = "v1"

    purchase_order_id = Identifier(required=True)
    previous_status = String(required=True)
    started_at = DateTime(required=True)


@stockroom.event(part_of="PurchaseOrder")
class PurchaseOrderReceiptPosted:
    """A completed receipt's quantities were posted to the order lines."""

    __version__ = "v1"

    purchase_order_id = Identifier(required=True)
    receipt_number = String(required=True)
    quantity_posted = Float()
    status = String(required=True)
    posted_at = DateTime(required=True)


@stockroom.event(part_of="PurchaseOrder")
class PurchaseOrderCompleted:
    """Every line has been received in full."""

    __version__ = "v1"

    purchase_order_id = Identifier(required=True)
    order_number = String(required=True)
    completed_at = DateTime(required=True)


@stockroom.event(part_of="PurchaseOrder")
class PurchaseOrderCancelled:
    """The order was cancelled before any goods arrived."""

    __version__ = "v1"

    purchase_order_id = Identifier(required=True)
    order_number = String(required=True)
    reason = String(required=True, max_length=500)
    cancelled_by = String()
    cancelled_at = DateTime(required=True)
