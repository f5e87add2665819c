"""Receipt variance rules.

A receipt line carries a *material* variance when any of these hold:

* the received quantity is more than 5% away from what was outstanding,
  measured against the quantity ordered;
* the goods did not arrive in Good condition;
* the received unit price differs from the ordered price by more than a cent.

One material line is enough to hold the whole receipt for review.
"""

from dataclasses import dataclass
from decimal import Decimal

from stockroom.shared.quantities import round_money, round_quantity, to_decimal, variance_percent

VARIANCE_TOLERANCE_PERCENT = 5.0
PRICE_TOLERANCE = Decimal("0.01")


@dataclass(frozen=True)
class LineVariance:
    quantity_variance: float
    variance_percent: float
    unit_price_received: float | None
    price_variance: float
    is_material: bool


def compute_line_variance(
    quantity_ordered,
    quantity_outstanding,
    quantity_received,
    unit_price_ordered,
    unit_price_received=None,
    condition_is_good=True,
) -> LineVariance:
    quantity_variance = to_decimal(quantity_received) - to_decimal(quantity_outstanding)
    percent = variance_percent(quantity_variance, quantity_ordered)

    # Without an override the goods are priced as ordered
    price_received = to_decimal(unit_price_ordered if unit_price_received is None else unit_price_received)
    price_variance = price_received - to_decimal(unit_price_ordered)

    is_material = (
        percent > VARIANCE_TOLERANCE_PERCENT or not condition_is_good or abs(price_variance) > PRICE_TOLERANCE
    )
    return LineVariance(
        quantity_variance=round_quantity(quantity_variance),
        variance_percent=round(percent, 2),
        unit_price_received=None if unit_price_received is None else round_money(price_received),
        price_variance=round_money(price_variance),
        is_material=is_material,
    )


def build_variance_report(receipt) -> dict:
    """Summarise the lines of a receipt that differ from their purchase order line."""
    lines = [
        {
            "line_id": str(line.id),
            "purchase_order_line_id": str(line.purchase_order_line_id),
            "product_id": str(line.product_id),
            "product_sku": line.product_sku,
            "quantity_ordered": line.quantity_ordered,
            "quantity_received": line.quantity_received,
            "quantity_variance": line.quantity_variance,
            "unit_price_ordered": line.unit_price_ordered,
            "unit_price_received": line.unit_price_received,
            "price_variance": line.price_variance,
            "condition": line.condition,
            "damage_notes": line.damage_notes,
            "is_material": bool(line.has_variance),
        }
        for line in receipt.sorted_lines
        if (line.quantity_variance or 0) != 0 or (line.price_variance or 0) != 0 or not line.is_good
    ]
    return {
        "receipt_id": str(receipt.id),
        "receipt_number": receipt.receipt_number,
        "status": receipt.status,
        "has_variances": bool(receipt.has_variances),
        "total_quantity_variance": round_quantity(sum(to_decimal(line["quantity_variance"]) for line in lines)),
        "total_price_variance": round_money(
            sum(to_decimal(line["price_variance"]) * to_decimal(line["quantity_received"]) for line in lines)
        ),
        "lines": lines,
    }
