"""Domain events for the StockMovement ledger."""

from protean.fields import DateTime, Float, Identifier, String

from stockroom.domain import stockroom


@stockroom.event(part_of="StockMovement")
class StockMovementRecorded:
    """A movement was appended to the ledger and the product's stock moved with it."""

    __version__ = "v1"

    movement_id = Identifier(required=True)
    tenant_id = Identifier(required=True)
    product_id = Identifier(required=True)
    movement_type = String(required=True)
    quantity = Float()  # Signed for adjustments; zero never reaches the ledger
    previous_stock = Float()
    new_stock = Float()
    reason = String(max_length=500)
    acting_user = String(max_length=255)
    recorded_at = DateTime(required=True)
