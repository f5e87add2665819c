"""Inventory reconciliation — posting receipts to stock and taking them back out.

Both directions go through a ``StockLedger`` owned by the caller, so the
movements land in the caller's Unit of Work together with the receipt and
purchase order changes that triggered them.
"""

import structlog

from stockroom.ledger.movement import MovementType
from stockroom.shared.errors import InvariantViolationError
from stockroom.shared.quantities import ZERO, round_quantity, to_decimal, weighted_average_cost

logger = structlog.get_logger(__name__)


def receipt_reason(purchase_order_number, receipt_number):
    return f"Receipt from PO {purchase_order_number} - Receipt #{receipt_number}"


def rollback_reason(receipt_number):
    return f"Rollback receipt {receipt_number}"


class InventoryReconciliation:
    def __init__(self, ledger):
        self.ledger = ledger

    def apply_receipt_to_inventory(self, receipt, purchase_order_number=None):
        """Add every Good line to stock, re-averaging product cost on the way.

        Damaged and Defective lines stay out of sellable stock; they are kept on
        the receipt for the variance audit only. Any failing line aborts the
        whole posting.
        """
        order_number = purchase_order_number or receipt.purchase_order_number
        movements = []
        for line in receipt.good_lines:
            quantity = to_decimal(line.quantity_received)
            if quantity <= ZERO:
                continue

            product = self.ledger.product(line.product_id)
            received_price = to_decimal(line.unit_price_received)
            if line.unit_price_received is not None and received_price > ZERO:
                product.revalue(
                    weighted_average_cost(
                        product.current_stock,
                        product.cost_per_unit,
                        quantity,
                        received_price,
                    )
                )

            movements.append(
                self.ledger.record(
                    product.id,
                    MovementType.STOCK_IN,
                    quantity,
                    reason=receipt_reason(order_number, receipt.receipt_number),
                    notes=f"Receipt #{receipt.receipt_number}",
                    to_location=line.location,
                )
            )

        logger.info(
            "Receipt applied to inventory",
            receipt_number=receipt.receipt_number,
            movements=len(movements),
        )
        return movements

    def rollback_receipt_from_inventory(self, receipt):
        """Reverse a completed receipt with negative adjustments, one per Good line.

        Every line is checked before the first adjustment is recorded; if any
        product would go negative nothing is written.
        """
        receipt.assert_can_roll_back()

        reversals = []
        remaining = {}
        for line in receipt.good_lines:
            quantity = to_decimal(line.quantity_received)
            if quantity <= ZERO:
                continue
            product = self.ledger.product(line.product_id)
            key = str(product.id)
            remaining[key] = remaining.get(key, to_decimal(product.current_stock)) - quantity
            if remaining[key] < ZERO:
                raise InvariantViolationError(
                    {"quantity": [f"Cannot rollback receipt: would result in negative stock for {product.name}"]}
                )
            reversals.append((product, quantity))

        movements = [
            self.ledger.record(
                product.id,
                MovementType.STOCK_ADJUSTMENT,
                -quantity,
                reason=rollback_reason(receipt.receipt_number),
                notes=f"Rollback - Receipt #{receipt.receipt_number}",
            )
            for product, quantity in reversals
        ]

        logger.info(
            "Receipt rolled back from inventory",
            receipt_number=receipt.receipt_number,
            movements=len(movements),
        )
        return movements, round_quantity(sum((quantity for _, quantity in reversals), ZERO))
