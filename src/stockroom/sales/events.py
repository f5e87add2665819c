"""Domain events for the SalesOrder aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from stockroom.domain import stockroom


@stockroom.event(part_of="SalesOrder")
class SalesOrderCreated:
    """A draft sales order was entered."""

    __version__ = "v1"

    sales_order_id = Identifier(required=True)
    tenant_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier()
    lines = Text(required=True)  # JSON: list of line dicts
    line_count = Integer()
    total_amount = Float()
    created_by = String()
    created_at = DateTime(required=True)


@stockroom.event(part_of="SalesOrder")
class SalesOrderUpdated:
    """A draft order's lines or header details were replaced."""

    __version__ = "v1"

    sales_order_id = Identifier(required=True)
    total_amount = Float()
    updated_at = DateTime(required=True)


@stockroom.event(part_of="SalesOrder")
class SalesOrderStatusChanged:
    """The order moved one step through the fulfillment workflow."""

    __version__ = "v1"

    sales_order_id = Identifier(required=True)
    order_number = String(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    reason = String(max_length=500)
    changed_by = String()
    changed_at = DateTime(required=True)


@stockroom.event(part_of="SalesOrder")
class SalesOrderShipped:
    """Picked goods left the building and were taken out of stock."""

    __version__ = "v1"

    sales_order_id = Identifier(required=True)
    order_number = String(required=True)
    quantity_shipped = Float()
    carrier = String(max_length=100)
    tracking_number = String(max_length=100)
    shipped_by = String()
    shipped_at = DateTime(required=True)
