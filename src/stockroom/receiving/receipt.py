"""Receipt aggregate (CQRS) — goods counted in against one purchase order.

State Machine:
    IN_PROGRESS → VALIDATED                      (no material variance)
    IN_PROGRESS → PENDING_VALIDATION → VALIDATED (approved by a reviewer)
                                     → REJECTED  (terminal)
    VALIDATED   → COMPLETED                      (posted to stock, terminal)

Each line snapshots the purchase order line it answers (ordered quantity,
outstanding quantity, unit price) so the variance stays explainable after
the order moves on.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, Date, DateTime, Float, HasMany, Identifier, Integer, String, Text

from stockroom.domain import stockroom
from stockroom.receiving.events import (
    ReceiptApproved,
    ReceiptCompleted,
    ReceiptCreated,
    ReceiptInventoryRolledBack,
    ReceiptRejected,
)
from stockroom.receiving.variance import compute_line_variance
from stockroom.shared.dates import parse_iso_date
from stockroom.shared.errors import not_found, state_error
from stockroom.shared.quantities import ZERO, round_money, round_quantity, to_decimal


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ReceiptStatus(Enum):
    IN_PROGRESS = "InProgress"
    PENDING_VALIDATION = "PendingValidation"
    VALIDATED = "Validated"
    COMPLETED = "Completed"
    REJECTED = "Rejected"


class ItemCondition(Enum):
    GOOD = "Good"
    DAMAGED = "Damaged"
    DEFECTIVE = "Defective"


# State machine transition map
_VALID_TRANSITIONS = {
    ReceiptStatus.IN_PROGRESS: {ReceiptStatus.PENDING_VALIDATION, ReceiptStatus.VALIDATED},
    ReceiptStatus.PENDING_VALIDATION: {ReceiptStatus.VALIDATED, ReceiptStatus.REJECTED},
    ReceiptStatus.VALIDATED: {
        ReceiptStatus.VALIDATED,  # Re-approval refreshes the reviewer notes
        ReceiptStatus.COMPLETED,
    },
    ReceiptStatus.COMPLETED: set(),  # Terminal
    ReceiptStatus.REJECTED: set(),  # Terminal
}


def parse_condition(value) -> ItemCondition:
    if value in (None, ""):
        return ItemCondition.GOOD
    try:
        return ItemCondition(value)
    except ValueError:
        raise ValidationError({"condition": [f"Unknown item condition: {value}"]}) from None


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@stockroom.entity(part_of="Receipt")
class ReceiptLine:
    """Quantity of one purchase order line that arrived, and in what shape."""

    line_number = Integer(default=1)
    purchase_order_line_id = Identifier(required=True)
    product_id = Identifier(required=True)
    product_name = String(max_length=255)
    product_sku = String(max_length=100)
    quantity_ordered = Float(default=0.0)
    quantity_outstanding = Float(default=0.0)  # At the time of receipt
    quantity_received = Float(default=0.0)
    quantity_variance = Float(default=0.0)
    unit_price_ordered = Float(default=0.0)
    unit_price_received = Float()  # Override; None means priced as ordered
    price_variance = Float(default=0.0)
    has_variance = Boolean(default=False)
    condition = String(choices=ItemCondition, default=ItemCondition.GOOD.value)
    damage_notes = Text()
    location = String(max_length=100)
    batch_number = String(max_length=100)
    expiry_date = Date()
    notes = Text()

    @property
    def is_good(self) -> bool:
        return self.condition == ItemCondition.GOOD.value


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@stockroom.aggregate
class Receipt:
    tenant_id = Identifier(required=True)
    receipt_number = String(required=True, max_length=30)
    purchase_order_id = Identifier(required=True)
    purchase_order_number = String(max_length=30)
    status = String(choices=ReceiptStatus, default=ReceiptStatus.IN_PROGRESS.value)
    receipt_date = DateTime()
    received_by = String(max_length=255)
    supplier_delivery_note = String(max_length=100)
    notes = Text()
    has_variances = Boolean(default=False)
    variance_notes = Text()
    validated_by = String(max_length=255)
    validated_at = DateTime()
    completed_by = String(max_length=255)
    completed_at = DateTime()
    inventory_rolled_back_by = String(max_length=255)
    inventory_rolled_back_at = DateTime()
    lines = HasMany(ReceiptLine)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def received_quantities_cannot_be_negative(self):
        for line in self.lines or []:
            if (line.quantity_received or 0) < 0:
                raise ValidationError({"quantity_received": ["Received quantity cannot be negative"]})

    @invariant.post
    def variance_flag_reflects_lines(self):
        if bool(self.has_variances) != any(line.has_variance for line in self.lines or []):
            raise ValidationError({"has_variances": ["Variance flag must reflect the receipt lines"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        tenant_id,
        receipt_number,
        purchase_order,
        lines_data,
        received_by=None,
        receipt_date=None,
        supplier_delivery_note=None,
        notes=None,
    ):
        """Record goods received against ``purchase_order``.

        Args:
            lines_data: List of dicts with purchase_order_line_id,
                        quantity_received and optional unit_price_received,
                        condition, damage_notes, location, batch_number,
                        expiry_date, notes.
        """
        purchase_order.assert_can_receive()
        if not lines_data:
            raise ValidationError({"lines": ["Receipt must have at least one line item"]})

        lines = [cls._build_line(number, data, purchase_order) for number, data in enumerate(lines_data, start=1)]

        now = datetime.now(UTC)
        receipt = cls(
            tenant_id=tenant_id,
            receipt_number=receipt_number,
            purchase_order_id=str(purchase_order.id),
            purchase_order_number=purchase_order.order_number,
            status=ReceiptStatus.IN_PROGRESS.value,
            receipt_date=receipt_date or now,
            received_by=received_by,
            supplier_delivery_note=supplier_delivery_note,
            notes=notes,
            has_variances=False,
            created_at=now,
            updated_at=now,
        )
        with atomic_change(receipt):
            for line in lines:
                receipt.add_lines(line)
            receipt.has_variances = any(line.has_variance for line in lines)

        # Material variances hold the receipt for a reviewer
        initial_status = ReceiptStatus.PENDING_VALIDATION if receipt.has_variances else ReceiptStatus.VALIDATED
        receipt._assert_can_transition(initial_status)
        receipt.status = initial_status.value

        receipt.raise_(
            ReceiptCreated(
                receipt_id=str(receipt.id),
                tenant_id=str(tenant_id),
                receipt_number=receipt_number,
                purchase_order_id=str(purchase_order.id),
                status=receipt.status,
                has_variances=receipt.has_variances,
                line_count=len(lines),
                received_by=received_by,
                created_at=now,
            )
        )
        return receipt

    @staticmethod
    def _build_line(number, data, purchase_order):
        line_id = data.get("purchase_order_line_id")
        po_line = purchase_order.line(line_id)
        if po_line is None:
            raise not_found("purchase_order_line_id", f"Purchase order line {line_id} not found")

        quantity_received = to_decimal(data.get("quantity_received"))
        if quantity_received < ZERO:
            raise ValidationError({"quantity_received": ["Received quantity cannot be negative"]})

        unit_price_received = data.get("unit_price_received")
        if unit_price_received is not None and to_decimal(unit_price_received) < ZERO:
            raise ValidationError({"unit_price_received": ["Unit price cannot be negative"]})

        condition = parse_condition(data.get("condition"))
        variance = compute_line_variance(
            quantity_ordered=po_line.quantity_ordered,
            quantity_outstanding=po_line.quantity_outstanding,
            quantity_received=quantity_received,
            unit_price_ordered=po_line.unit_price,
            unit_price_received=unit_price_received,
            condition_is_good=condition == ItemCondition.GOOD,
        )
        return ReceiptLine(
            line_number=number,
            purchase_order_line_id=str(po_line.id),
            product_id=str(po_line.product_id),
            product_name=po_line.product_name,
            product_sku=po_line.product_sku,
            quantity_ordered=po_line.quantity_ordered,
            quantity_outstanding=po_line.quantity_outstanding,
            quantity_received=round_quantity(quantity_received),
            quantity_variance=variance.quantity_variance,
            unit_price_ordered=round_money(po_line.unit_price),
            unit_price_received=variance.unit_price_received,
            price_variance=variance.price_variance,
            has_variance=variance.is_material,
            condition=condition.value,
            damage_notes=data.get("damage_notes"),
            location=data.get("location"),
            batch_number=data.get("batch_number"),
            expiry_date=parse_iso_date(data.get("expiry_date"), "expiry_date"),
            notes=data.get("notes"),
        )

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status, message=None):
        current = ReceiptStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise state_error(message or f"Cannot transition from {current.value} to {target_status.value}")

    @property
    def sorted_lines(self):
        return sorted(self.lines or [], key=lambda line: line.line_number or 0)

    @property
    def good_lines(self):
        return [line for line in self.sorted_lines if line.is_good]

    def received_quantities(self) -> dict:
        """Quantity received per purchase order line, all conditions included."""
        totals = {}
        for line in self.sorted_lines:
            key = str(line.purchase_order_line_id)
            totals[key] = totals.get(key, ZERO) + to_decimal(line.quantity_received)
        return totals

    # -------------------------------------------------------------------
    # Review
    # -------------------------------------------------------------------
    def approve(self, validated_by, variance_notes=None):
        self._assert_can_transition(ReceiptStatus.VALIDATED, "Receipt cannot be approved in current status")

        now = datetime.now(UTC)
        self.status = ReceiptStatus.VALIDATED.value
        self.validated_by = validated_by
        self.validated_at = now
        if variance_notes is not None:
            self.variance_notes = variance_notes
        self.updated_at = now
        self.raise_(
            ReceiptApproved(
                receipt_id=str(self.id),
                validated_by=validated_by,
                variance_notes=variance_notes,
                validated_at=now,
            )
        )

    def reject(self, reason, rejected_by):
        if ReceiptStatus(self.status) != ReceiptStatus.PENDING_VALIDATION:
            raise state_error("Only receipts pending validation can be rejected")
        if not reason or not reason.strip():
            raise ValidationError({"reason": ["Rejection reason is required"]})
        self._assert_can_transition(ReceiptStatus.REJECTED)

        now = datetime.now(UTC)
        rejection = f"REJECTED: {reason}"
        self.status = ReceiptStatus.REJECTED.value
        self.notes = f"{self.notes}\n{rejection}" if self.notes else rejection
        self.validated_by = rejected_by
        self.validated_at = now
        self.updated_at = now
        self.raise_(
            ReceiptRejected(
                receipt_id=str(self.id),
                reason=reason,
                rejected_by=rejected_by,
                rejected_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Completion and rollback (driven by receipt completion use case)
    # -------------------------------------------------------------------
    def assert_can_complete(self):
        if ReceiptStatus(self.status) != ReceiptStatus.VALIDATED:
            raise state_error("Only validated receipts can be completed")

    def complete(self, completed_by):
        self.assert_can_complete()
        self._assert_can_transition(ReceiptStatus.COMPLETED)

        now = datetime.now(UTC)
        self.status = ReceiptStatus.COMPLETED.value
        self.completed_by = completed_by
        self.completed_at = now
        self.updated_at = now
        self.raise_(
            ReceiptCompleted(
                receipt_id=str(self.id),
                receipt_number=self.receipt_number,
                purchase_order_id=str(self.purchase_order_id),
                quantity_stocked=round_quantity(
                    sum((to_decimal(line.quantity_received) for line in self.good_lines), ZERO)
                ),
                completed_by=completed_by,
                completed_at=now,
            )
        )

    def assert_can_roll_back(self):
        if ReceiptStatus(self.status) != ReceiptStatus.COMPLETED:
            raise state_error("Can only rollback completed receipts")
        if self.inventory_rolled_back_at is not None:
            raise state_error("Receipt inventory has already been rolled back")

    def mark_inventory_rolled_back(self, rolled_back_by, quantity_reversed):
        self.assert_can_roll_back()

        now = datetime.now(UTC)
        self.inventory_rolled_back_by = rolled_back_by
        self.inventory_rolled_back_at = now
        self.updated_at = now
        self.raise_(
            ReceiptInventoryRolledBack(
                receipt_id=str(self.id),
                receipt_number=self.receipt_number,
                quantity_reversed=quantity_reversed,
                rolled_back_by=rolled_back_by,
                rolled_back_at=now,
            )
        )

    def assert_deletable(self):
        if ReceiptStatus(self.status) == ReceiptStatus.COMPLETED:
            raise state_error("Cannot delete completed receipts")


@stockroom.repository(part_of=Receipt)
class ReceiptRepository:
    def for_purchase_order(self, tenant_id, purchase_order_id):
        receipts = self._dao.query.filter(tenant_id=tenant_id, purchase_order_id=purchase_order_id).all().items
        return sorted(receipts, key=lambda r: r.created_at)

    def for_tenant(self, tenant_id, status=None):
        filters = {"tenant_id": tenant_id}
        if status:
            filters["status"] = status
        return self._dao.query.filter(**filters).all().items
