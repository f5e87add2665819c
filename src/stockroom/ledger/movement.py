"""StockMovement aggregate — one append-only ledger entry.

A movement captures the stock level on both sides of a change::

    StockIn          new = previous + quantity
    StockOut         new = previous - quantity
    StockTransfer    new = previous - quantity   (same-location placeholder)
    StockAdjustment  new = previous + quantity   (quantity is signed)

Movements expose no mutators and the ledger never deletes them.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, String, Text

from stockroom.domain import stockroom
from stockroom.ledger.events import StockMovementRecorded
from stockroom.shared.errors import InvariantViolationError
from stockroom.shared.quantities import ZERO, round_quantity, to_decimal


class MovementType(Enum):
    STOCK_IN = "StockIn"
    STOCK_OUT = "StockOut"
    STOCK_ADJUSTMENT = "StockAdjustment"
    STOCK_TRANSFER = "StockTransfer"


_DECREMENTING_TYPES = {MovementType.STOCK_OUT, MovementType.STOCK_TRANSFER}

_INSUFFICIENT_STOCK_MESSAGES = {
    MovementType.STOCK_OUT: "Insufficient stock available",
    MovementType.STOCK_TRANSFER: "Insufficient stock available for transfer",
}


def parse_movement_type(value) -> MovementType:
    if isinstance(value, MovementType):
        return value
    try:
        return MovementType(value)
    except ValueError:
        raise ValidationError({"movement_type": [f"Unknown movement type: {value}"]}) from None


def signed_delta(movement_type, quantity):
    """The change a movement applies to stock, as a Decimal."""
    movement_type = parse_movement_type(movement_type)
    quantity = to_decimal(quantity)
    if movement_type in _DECREMENTING_TYPES:
        return -quantity
    return quantity


def next_stock_level(movement_type, previous_stock, quantity) -> float:
    """Compute the stock level after a movement, refusing anything the ledger must not record."""
    movement_type = parse_movement_type(movement_type)
    quantity = to_decimal(quantity)
    previous = to_decimal(previous_stock)

    if movement_type == MovementType.STOCK_ADJUSTMENT:
        if quantity == ZERO:
            raise ValidationError({"quantity": ["Adjustment quantity cannot be zero"]})
        new_stock = previous + quantity
        if new_stock < ZERO:
            raise InvariantViolationError({"quantity": ["Stock cannot be negative after adjustment"]})
        return round_quantity(new_stock)

    if quantity <= ZERO:
        raise ValidationError({"quantity": ["Quantity must be greater than zero"]})

    if movement_type in _DECREMENTING_TYPES and quantity > previous:
        raise InvariantViolationError({"quantity": [_INSUFFICIENT_STOCK_MESSAGES[movement_type]]})

    return round_quantity(previous + signed_delta(movement_type, quantity))


@stockroom.aggregate
class StockMovement:
    tenant_id = Identifier(required=True)
    product_id = Identifier(required=True)
    movement_type = String(required=True, choices=MovementType)
    quantity = Float()
    previous_stock = Float(default=0.0)
    new_stock = Float(default=0.0)
    reason = String(max_length=500)
    notes = Text()
    from_location = String(max_length=100)
    to_location = String(max_length=100)
    acting_user = String(max_length=255)
    recorded_at = DateTime()

    @invariant.post
    def new_stock_follows_from_previous_stock(self):
        expected = round_quantity(to_decimal(self.previous_stock) + signed_delta(self.movement_type, self.quantity))
        if round_quantity(self.new_stock) != expected:
            raise ValidationError({"new_stock": ["New stock does not follow from previous stock and quantity"]})

    @invariant.post
    def new_stock_cannot_be_negative(self):
        if self.new_stock is not None and self.new_stock < 0:
            raise ValidationError({"new_stock": ["Stock cannot be negative"]})

    @classmethod
    def record(
        cls,
        tenant_id,
        product_id,
        movement_type,
        quantity,
        previous_stock,
        new_stock,
        reason,
        acting_user,
        notes=None,
        from_location=None,
        to_location=None,
    ):
        now = datetime.now(UTC)
        movement_type = parse_movement_type(movement_type)
        movement = cls(
            tenant_id=tenant_id,
            product_id=product_id,
            movement_type=movement_type.value,
            quantity=round_quantity(quantity),
            previous_stock=round_quantity(previous_stock),
            new_stock=round_quantity(new_stock),
            reason=reason,
            notes=notes,
            from_location=from_location,
            to_location=to_location,
            acting_user=acting_user,
            recorded_at=now,
        )
        movement.raise_(
            StockMovementRecorded(
                movement_id=str(movement.id),
                tenant_id=str(tenant_id),
                product_id=str(product_id),
                movement_type=movement_type.value,
                quantity=movement.quantity,
                previous_stock=movement.previous_stock,
                new_stock=movement.new_stock,
                reason=reason,
                acting_user=acting_user,
                recorded_at=now,
            )
        )
        return movement

    @property
    def change(self) -> float:
        return round_quantity(to_decimal(self.new_stock) - to_decimal(self.previous_stock))


@stockroom.repository(part_of=StockMovement)
class StockMovementRepository:
    def for_product(self, tenant_id, product_id):
        """Ledger entries for one product, oldest first."""
        movements = self._dao.query.filter(tenant_id=tenant_id, product_id=product_id).all().items
        return sorted(movements, key=lambda m: m.recorded_at)

    def for_tenant(self, tenant_id):
        movements = self._dao.query.filter(tenant_id=tenant_id).all().items
        return sorted(movements, key=lambda m: m.recorded_at)
