"""PurchaseOrder aggregate (CQRS) — goods ordered from a supplier.

State Machine:
    DRAFT → SUBMITTED → CONFIRMED → RECEIVING ⇄ PARTIALLY_RECEIVED → COMPLETED
    DRAFT / SUBMITTED / CONFIRMED → CANCELLED (only while nothing was received)

Receipts drive the second half of the machine: recording a receipt moves a
submitted or confirmed order to RECEIVING, completing one posts quantities to
the lines and recomputes the order status.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Date, DateTime, Float, HasMany, Identifier, Integer, String, Text

from stockroom.domain import stockroom
from stockroom.purchasing.events import (
    PurchaseOrderCancelled,
    PurchaseOrderCompleted,
    PurchaseOrderConfirmed,
    PurchaseOrderCreated,
    PurchaseOrderReceiptPosted,
    PurchaseOrderReceivingStarted,
    PurchaseOrderSubmitted,
    PurchaseOrderUpdated,
)
from stockroom.shared.errors import InvariantViolationError, state_error
from stockroom.shared.quantities import ZERO, line_total, round_money, round_quantity, to_decimal


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class PurchaseOrderStatus(Enum):
    DRAFT = "Draft"
    SUBMITTED = "Submitted"
    CONFIRMED = "Confirmed"
    RECEIVING = "Receiving"
    PARTIALLY_RECEIVED = "PartiallyReceived"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class LineItemStatus(Enum):
    PENDING = "Pending"
    PARTIALLY_RECEIVED = "PartiallyReceived"
    FULLY_RECEIVED = "FullyReceived"
    CANCELLED = "Cancelled"
    SHORT_SHIPPED = "ShortShipped"


# State machine transition map
_VALID_TRANSITIONS = {
    PurchaseOrderStatus.DRAFT: {PurchaseOrderStatus.SUBMITTED, PurchaseOrderStatus.CANCELLED},
    PurchaseOrderStatus.SUBMITTED: {
        PurchaseOrderStatus.CONFIRMED,
        PurchaseOrderStatus.RECEIVING,
        PurchaseOrderStatus.CANCELLED,
    },
    PurchaseOrderStatus.CONFIRMED: {PurchaseOrderStatus.RECEIVING, PurchaseOrderStatus.CANCELLED},
    PurchaseOrderStatus.RECEIVING: {PurchaseOrderStatus.PARTIALLY_RECEIVED, PurchaseOrderStatus.COMPLETED},
    PurchaseOrderStatus.PARTIALLY_RECEIVED: {
        PurchaseOrderStatus.PARTIALLY_RECEIVED,  # Another partial receipt
        PurchaseOrderStatus.RECEIVING,
        PurchaseOrderStatus.COMPLETED,
    },
    PurchaseOrderStatus.COMPLETED: set(),  # Terminal
    PurchaseOrderStatus.CANCELLED: set(),  # Terminal
}

# Orders still expecting goods from the supplier
OUTSTANDING_STATUSES = {
    PurchaseOrderStatus.SUBMITTED,
    PurchaseOrderStatus.CONFIRMED,
    PurchaseOrderStatus.RECEIVING,
    PurchaseOrderStatus.PARTIALLY_RECEIVED,
}


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@stockroom.entity(part_of="PurchaseOrder")
class PurchaseOrderLine:
    """One product on a purchase order, with its receiving progress."""

    line_number = Integer(default=1)
    product_id = Identifier(required=True)
    product_name = String(max_length=255)
    product_sku = String(max_length=100)
    quantity_ordered = Float(required=True)
    unit_price = Float(default=0.0)
    line_total = Float(default=0.0)
    quantity_received = Float(default=0.0)
    quantity_outstanding = Float(default=0.0)
    status = String(choices=LineItemStatus, default=LineItemStatus.PENDING.value)
    notes = Text()

    @property
    def is_fully_received(self) -> bool:
        return (self.quantity_outstanding or 0) <= 0


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@stockroom.aggregate
class PurchaseOrder:
    tenant_id = Identifier(required=True)
    order_number = String(required=True, max_length=30)
    supplier_id = Identifier(required=True)
    status = String(choices=PurchaseOrderStatus, default=PurchaseOrderStatus.DRAFT.value)
    order_date = DateTime()
    expected_delivery_date = Date()
    confirmed_delivery_date = Date()
    supplier_reference = String(max_length=100)
    notes = Text()
    subtotal = Float(default=0.0)
    tax_amount = Float(default=0.0)
    shipping_cost = Float(default=0.0)
    total_amount = Float(default=0.0)
    lines = HasMany(PurchaseOrderLine)
    created_by = String(max_length=255)
    submitted_at = DateTime()
    confirmed_at = DateTime()
    completed_at = DateTime()
    cancelled_at = DateTime()
    cancellation_reason = String(max_length=500)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------
    @invariant.post
    def outstanding_is_ordered_minus_received(self):
        for line in self.lines or []:
            outstanding = round_quantity(line.quantity_outstanding)
            if outstanding < 0:
                raise ValidationError({"lines": ["Outstanding quantity cannot be negative"]})
            expected = round_quantity(to_decimal(line.quantity_ordered) - to_decimal(line.quantity_received))
            if outstanding != expected:
                raise ValidationError({"lines": ["Outstanding quantity must equal ordered minus received"]})

    @invariant.post
    def completed_orders_have_nothing_outstanding(self):
        if self.status != PurchaseOrderStatus.COMPLETED.value:
            return
        if any(not line.is_fully_received for line in self.lines or []):
            raise ValidationError({"status": ["Purchase order cannot be completed while quantities are outstanding"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        tenant_id,
        order_number,
        supplier_id,
        lines_data,
        tax_amount=0.0,
        shipping_cost=0.0,
        expected_delivery_date=None,
        supplier_reference=None,
        notes=None,
        created_by=None,
    ):
        """Raise a draft purchase order.

        Args:
            lines_data: List of dicts with product_id, product_name,
                        product_sku, quantity, unit_price and optional notes.
        """
        lines = cls._build_lines(lines_data)
        now = datetime.now(UTC)
        po = cls(
            tenant_id=tenant_id,
            order_number=order_number,
            supplier_id=supplier_id,
            status=PurchaseOrderStatus.DRAFT.value,
            order_date=now,
            expected_delivery_date=expected_delivery_date,
            supplier_reference=supplier_reference,
            notes=notes,
            tax_amount=round_money(tax_amount or 0),
            shipping_cost=round_money(shipping_cost or 0),
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        for line in lines:
            po.add_lines(line)
        po._recalculate_totals()

        po.raise_(
            PurchaseOrderCreated(
                purchase_order_id=str(po.id),
                tenant_id=str(tenant_id),
                order_number=order_number,
                supplier_id=str(supplier_id),
                lines=json.dumps(
                    [
                        {
                            "product_id": str(line.product_id),
                            "quantity_ordered": line.quantity_ordered,
                            "unit_price": line.unit_price,
                        }
                        for line in lines
                    ]
                ),
                line_count=len(lines),
                subtotal=po.subtotal,
                total_amount=po.total_amount,
                created_by=created_by,
                created_at=now,
            )
        )
        return po

    @staticmethod
    def _build_lines(lines_data):
        if not lines_data:
            raise ValidationError({"lines": ["Purchase order must have at least one line item"]})

        lines = []
        for number, data in enumerate(lines_data, start=1):
            quantity = to_decimal(data.get("quantity"))
            unit_price = to_decimal(data.get("unit_price"))
            if quantity <= ZERO:
                raise ValidationError({"quantity": ["Quantity must be greater than zero"]})
            if unit_price < ZERO:
                raise ValidationError({"unit_price": ["Unit price cannot be negative"]})

            lines.append(
                PurchaseOrderLine(
                    line_number=number,
                    product_id=data["product_id"],
                    product_name=data.get("product_name"),
                    product_sku=data.get("product_sku"),
                    quantity_ordered=round_quantity(quantity),
                    unit_price=round_money(unit_price),
                    line_total=line_total(quantity, unit_price),
                    quantity_received=0.0,
                    quantity_outstanding=round_quantity(quantity),
                    status=LineItemStatus.PENDING.value,
                    notes=data.get("notes"),
                )
            )
        return lines

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status, message=None):
        current = PurchaseOrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise state_error(message or f"Cannot transition from {current.value} to {target_status.value}")

    def _recalculate_totals(self):
        subtotal = sum((to_decimal(line.line_total) for line in self.lines or []), ZERO)
        self.subtotal = round_money(subtotal)
        self.total_amount = round_money(subtotal + to_decimal(self.tax_amount) + to_decimal(self.shipping_cost))

    @property
    def sorted_lines(self):
        return sorted(self.lines or [], key=lambda line: line.line_number or 0)

    @property
    def has_received_items(self) -> bool:
        return any((line.quantity_received or 0) > 0 for line in self.lines or [])

    def line(self, line_id):
        return next((line for line in self.lines or [] if str(line.id) == str(line_id)), None)

    # -------------------------------------------------------------------
    # Editing
    # -------------------------------------------------------------------
    def update_details(
        self,
        tax_amount=None,
        shipping_cost=None,
        expected_delivery_date=None,
        confirmed_delivery_date=None,
        supplier_reference=None,
        notes=None,
        lines_data=None,
    ):
        """Edit header fields; pricing and lines only while the order is still a draft."""
        current = PurchaseOrderStatus(self.status)
        if current in (PurchaseOrderStatus.COMPLETED, PurchaseOrderStatus.CANCELLED):
            raise state_error("Completed or cancelled purchase orders cannot be updated")

        is_draft = current == PurchaseOrderStatus.DRAFT
        if not is_draft and (tax_amount is not None or shipping_cost is not None or lines_data is not None):
            raise state_error("Pricing and lines can only be changed on draft purchase orders")

        new_lines = self._build_lines(lines_data) if lines_data is not None else None
        with atomic_change(self):
            if new_lines is not None:
                # Draft lines are replaced wholesale
                for line in list(self.lines or []):
                    self.remove_lines(line)
                for line in new_lines:
                    self.add_lines(line)
            if tax_amount is not None:
                self.tax_amount = round_money(tax_amount)
            if shipping_cost is not None:
                self.shipping_cost = round_money(shipping_cost)
            if expected_delivery_date is not None:
                self.expected_delivery_date = expected_delivery_date
            if confirmed_delivery_date is not None and not is_draft:
                self.confirmed_delivery_date = confirmed_delivery_date
            if supplier_reference is not None:
                self.supplier_reference = supplier_reference
            if notes is not None:
                self.notes = notes
            self._recalculate_totals()
            self.updated_at = datetime.now(UTC)

        self.raise_(
            PurchaseOrderUpdated(
                purchase_order_id=str(self.id),
                total_amount=self.total_amount,
                updated_at=self.updated_at,
            )
        )

    # -------------------------------------------------------------------
    # Workflow
    # -------------------------------------------------------------------
    def submit(self, submitted_by=None):
        self._assert_can_transition(
            PurchaseOrderStatus.SUBMITTED,
            "Only draft purchase orders can be submitted",
        )
        now = datetime.now(UTC)
        self.status = PurchaseOrderStatus.SUBMITTED.value
        self.submitted_at = now
        self.updated_at = now
        self.raise_(
            PurchaseOrderSubmitted(
                purchase_order_id=str(self.id),
                order_number=self.order_number,
                submitted_by=submitted_by,
                submitted_at=now,
            )
        )

    def confirm(self, confirmed_delivery_date=None, confirmed_by=None):
        if PurchaseOrderStatus(self.status) != PurchaseOrderStatus.SUBMITTED:
            raise state_error("Only submitted purchase orders can be confirmed")
        self._assert_can_transition(PurchaseOrderStatus.CONFIRMED)

        now = datetime.now(UTC)
        self.status = PurchaseOrderStatus.CONFIRMED.value
        self.confirmed_delivery_date = confirmed_delivery_date
        self.confirmed_at = now
        self.updated_at = now
        self.raise_(
            PurchaseOrderConfirmed(
                purchase_order_id=str(self.id),
                confirmed_delivery_date=confirmed_delivery_date.isoformat() if confirmed_delivery_date else None,
                confirmed_by=confirmed_by,
                confirmed_at=now,
            )
        )

    def cancel(self, reason, cancelled_by=None):
        if self.has_received_items:
            raise state_error("Cannot cancel purchase order with received items")
        if PurchaseOrderStatus(self.status) == PurchaseOrderStatus.COMPLETED:
            raise state_error("Cannot cancel a completed purchase order")
        self._assert_can_transition(
            PurchaseOrderStatus.CANCELLED,
            f"Cannot cancel purchase order in {self.status} status",
        )
        if not reason or not reason.strip():
            raise ValidationError({"reason": ["Cancellation reason is required"]})

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = PurchaseOrderStatus.CANCELLED.value
            self.cancellation_reason = reason
            self.cancelled_at = now
            self.updated_at = now
            for line in self.lines or []:
                line.status = LineItemStatus.CANCELLED.value

        self.raise_(
            PurchaseOrderCancelled(
                purchase_order_id=str(self.id),
                order_number=self.order_number,
                reason=reason,
                cancelled_by=cancelled_by,
                cancelled_at=now,
            )
        )

    def assert_deletable(self):
        if PurchaseOrderStatus(self.status) != PurchaseOrderStatus.DRAFT:
            raise state_error("Only draft purchase orders can be deleted")

    # -------------------------------------------------------------------
    # Receiving (driven by the receipt workflow)
    # -------------------------------------------------------------------
    def assert_can_receive(self):
        current = PurchaseOrderStatus(self.status)
        if current == PurchaseOrderStatus.DRAFT:
            raise state_error("Cannot receive goods for draft purchase orders")
        if current in (PurchaseOrderStatus.COMPLETED, PurchaseOrderStatus.CANCELLED):
            raise state_error("Purchase order is already completed or cancelled")

    def start_receiving(self):
        """Move a submitted or confirmed order to RECEIVING; later states stay put."""
        current = PurchaseOrderStatus(self.status)
        if current not in (PurchaseOrderStatus.SUBMITTED, PurchaseOrderStatus.CONFIRMED):
            return
        self._assert_can_transition(PurchaseOrderStatus.RECEIVING)

        now = datetime.now(UTC)
        self.status = PurchaseOrderStatus.RECEIVING.value
        self.updated_at = now
        self.raise_(
            PurchaseOrderReceivingStarted(
                purchase_order_id=str(self.id),
                previous_status=current.value,
                started_at=now,
            )
        )

    def post_receipt(self, receipt_number, quantities):
        """Add received quantities to the lines and recompute the order status.

        Args:
            receipt_number: Number of the receipt being posted.
            quantities: Mapping of purchase order line id to quantity received.

        Receiving more than a line's outstanding quantity is refused: the
        line would end up with negative outstanding.
        """
        current = PurchaseOrderStatus(self.status)
        if current not in (PurchaseOrderStatus.RECEIVING, PurchaseOrderStatus.PARTIALLY_RECEIVED):
            raise state_error(f"Cannot post receipts to a purchase order in {current.value} status")

        pending = []
        for line_id, quantity in quantities.items():
            line = self.line(line_id)
            if line is None:
                raise ValidationError({"purchase_order_line_id": [f"Purchase order line {line_id} not found"]})
            quantity = to_decimal(quantity)
            if quantity > to_decimal(line.quantity_outstanding):
                raise InvariantViolationError(
                    {
                        "quantity_received": [
                            f"Receipt {receipt_number} would over-receive {line.product_sku or line.product_id}: "
                            f"outstanding {line.quantity_outstanding}, received {round_quantity(quantity)}; "
                            "delete the receipt and record no more than the outstanding quantity"
                        ]
                    }
                )
            pending.append((line, quantity))

        now = datetime.now(UTC)
        with atomic_change(self):
            for line, quantity in pending:
                received = to_decimal(line.quantity_received) + quantity
                line.quantity_received = round_quantity(received)
                line.quantity_outstanding = round_quantity(to_decimal(line.quantity_ordered) - received)
                if line.is_fully_received:
                    line.status = LineItemStatus.FULLY_RECEIVED.value
                elif received > ZERO:
                    line.status = LineItemStatus.PARTIALLY_RECEIVED.value

            completed = self._recompute_status(now)
            self.updated_at = now

        self.raise_(
            PurchaseOrderReceiptPosted(
                purchase_order_id=str(self.id),
                receipt_number=receipt_number,
                quantity_posted=round_quantity(sum((q for _, q in pending), ZERO)),
                status=self.status,
                posted_at=now,
            )
        )
        if completed:
            self.raise_(
                PurchaseOrderCompleted(
                    purchase_order_id=str(self.id),
                    order_number=self.order_number,
                    completed_at=now,
                )
            )

    def _recompute_status(self, now) -> bool:
        """COMPLETED when every line is fully received, PARTIALLY_RECEIVED when any has arrived."""
        lines = self.lines or []
        if lines and all(line.is_fully_received for line in lines):
            self._assert_can_transition(PurchaseOrderStatus.COMPLETED)
            self.status = PurchaseOrderStatus.COMPLETED.value
            self.completed_at = now
            return True
        if any((line.quantity_received or 0) > 0 for line in lines):
            self._assert_can_transition(PurchaseOrderStatus.PARTIALLY_RECEIVED)
            self.status = PurchaseOrderStatus.PARTIALLY_RECEIVED.value
        return False


@stockroom.repository(part_of=PurchaseOrder)
class PurchaseOrderRepository:
    def for_tenant(self, tenant_id, status=None):
        filters = {"tenant_id": tenant_id}
        if status:
            filters["status"] = status
        return self._dao.query.filter(**filters).all().items

    def for_supplier(self, tenant_id, supplier_id):
        return self._dao.query.filter(tenant_id=tenant_id, supplier_id=supplier_id).all().items

    def outstanding(self, tenant_id):
        statuses = {status.value for status in OUTSTANDING_STATUSES}
        return [po for po in self.for_tenant(tenant_id) if po.status in statuses]

    def find_by_order_number(self, tenant_id, order_number):
        matches = self._dao.query.filter(tenant_id=tenant_id, order_number=order_number).all().items
        return matches[0] if matches else None
