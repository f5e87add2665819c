"""Decimal arithmetic for quantities and money.

Aggregates persist ``Float`` fields; every calculation goes through
``Decimal`` and is rounded before being written back, so repeated
additions do not accumulate binary drift.
"""

from decimal import ROUND_HALF_UP, Decimal

QUANTITY_PLACES = Decimal("0.0001")
MONEY_PLACES = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    # str() keeps 0.1 as 0.1 rather than its binary expansion
    return Decimal(str(value))


def round_quantity(value) -> float:
    return float(to_decimal(value).quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP))


def round_money(value) -> float:
    return float(to_decimal(value).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP))


def line_total(quantity, unit_price, discount_percent=0) -> float:
    """``quantity × price × (1 − discount%/100)`` rounded to cents."""
    gross = to_decimal(quantity) * to_decimal(unit_price)
    discount = to_decimal(discount_percent)
    if discount:
        gross = gross * (Decimal("1") - discount / Decimal("100"))
    return round_money(gross)


def weighted_average_cost(previous_stock, previous_cost, quantity_received, received_price) -> float:
    """Blend standing cost with newly received cost, proportionally to quantity.

    ``(previous_stock × previous_cost + quantity × price) / (previous_stock + quantity)``

    When the resulting stock is zero there is nothing to average over and the
    standing cost is returned unchanged.
    """
    previous_stock = to_decimal(previous_stock)
    previous_cost = to_decimal(previous_cost)
    quantity_received = to_decimal(quantity_received)
    received_price = to_decimal(received_price)

    total_quantity = previous_stock + quantity_received
    if total_quantity <= ZERO or quantity_received == ZERO:
        return float(previous_cost)

    total_value = previous_stock * previous_cost + quantity_received * received_price
    return round_money(total_value / total_quantity)


def variance_percent(quantity_variance, quantity_ordered) -> float:
    """``|variance| / ordered × 100``; zero when nothing was ordered."""
    ordered = to_decimal(quantity_ordered)
    if ordered == ZERO:
        return 0.0
    return float(abs(to_decimal(quantity_variance) / ordered * Decimal("100")))
