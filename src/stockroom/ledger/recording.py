"""Manual stock movements — command and handler.

Goods-in from suppliers and goods-out to customers are posted by the
receipt and sales workflows; this is the operator's entry point for
everything else (cycle-count corrections, write-offs, transfers).
"""

from protean import handle
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from stockroom.domain import stockroom
from stockroom.ledger.movement import StockMovement
from stockroom.ledger.writer import StockLedger


@stockroom.command(part_of="StockMovement")
class RecordStockMovement:
    tenant_id = Identifier(required=True)
    product_id = Identifier(required=True)
    movement_type = String(required=True, max_length=20)
    quantity = Float()  # Signed for StockAdjustment
    reason = String(required=True, max_length=500)
    notes = Text()
    from_location = String(max_length=100)
    to_location = String(max_length=100)
    acting_user = String(required=True, max_length=255)


@stockroom.command_handler(part_of=StockMovement)
class StockMovementHandler:
    @handle(RecordStockMovement)
    def record_stock_movement(self, command):
        with StockLedger(command.tenant_id, command.acting_user) as ledger:
            movement = ledger.record(
                command.product_id,
                command.movement_type,
                command.quantity or 0,
                reason=command.reason,
                notes=command.notes,
                from_location=command.from_location,
                to_location=command.to_location,
            )
        return str(movement.id)


def movements_for_product(tenant_id, product_id):
    return current_domain.repository_for(StockMovement).for_product(tenant_id, product_id)
