"""SalesOrder aggregate (CQRS) — goods sold to a customer, from entry to delivery.

State Machine:
    DRAFT → SUBMITTED → CONFIRMED → [AWAITING_PICKUP →] PICKING → PICKED →
    PACKING → PACKED → SHIPPED → DELIVERED

    Any state before SHIPPED → CANCELLED (terminal) or ON_HOLD
    ON_HOLD → CONFIRMED (release)

Stock leaves the ledger only at SHIPPED; everything before that is
warehouse bookkeeping on the lines.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Date, DateTime, Float, HasMany, Identifier, Integer, String, Text, ValueObject

from stockroom.domain import stockroom
from stockroom.sales.events import (
    SalesOrderCreated,
    SalesOrderShipped,
    SalesOrderStatusChanged,
    SalesOrderUpdated,
)
from stockroom.shared.errors import state_error
from stockroom.shared.quantities import ZERO, line_total, round_money, round_quantity, to_decimal


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class SalesOrderStatus(Enum):
    DRAFT = "Draft"
    SUBMITTED = "Submitted"
    CONFIRMED = "Confirmed"
    AWAITING_PICKUP = "AwaitingPickup"
    PICKING = "Picking"
    PICKED = "Picked"
    PACKING = "Packing"
    PACKED = "Packed"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    ON_HOLD = "OnHold"


class SalesOrderLineStatus(Enum):
    PENDING = "Pending"
    ALLOCATED = "Allocated"
    PICKED = "Picked"
    PACKED = "Packed"
    SHIPPED = "Shipped"
    CANCELLED = "Cancelled"


class Priority(Enum):
    LOW = "Low"
    NORMAL = "Normal"
    HIGH = "High"
    URGENT = "Urgent"


_INTERRUPTIBLE = {SalesOrderStatus.CANCELLED, SalesOrderStatus.ON_HOLD}

# State machine transition map
_VALID_TRANSITIONS = {
    SalesOrderStatus.DRAFT: {SalesOrderStatus.SUBMITTED} | _INTERRUPTIBLE,
    SalesOrderStatus.SUBMITTED: {SalesOrderStatus.CONFIRMED} | _INTERRUPTIBLE,
    SalesOrderStatus.CONFIRMED: {SalesOrderStatus.AWAITING_PICKUP, SalesOrderStatus.PICKING} | _INTERRUPTIBLE,
    SalesOrderStatus.AWAITING_PICKUP: {SalesOrderStatus.PICKING} | _INTERRUPTIBLE,
    SalesOrderStatus.PICKING: {SalesOrderStatus.PICKED} | _INTERRUPTIBLE,
    SalesOrderStatus.PICKED: {SalesOrderStatus.PACKING} | _INTERRUPTIBLE,
    SalesOrderStatus.PACKING: {SalesOrderStatus.PACKED} | _INTERRUPTIBLE,
    SalesOrderStatus.PACKED: {SalesOrderStatus.SHIPPED} | _INTERRUPTIBLE,
    SalesOrderStatus.SHIPPED: {SalesOrderStatus.DELIVERED},
    SalesOrderStatus.DELIVERED: set(),  # Terminal
    SalesOrderStatus.CANCELLED: set(),  # Terminal
    SalesOrderStatus.ON_HOLD: {SalesOrderStatus.CONFIRMED, SalesOrderStatus.CANCELLED},
}

# Message for a forward step attempted from the wrong status
_PRECONDITION_MESSAGES = {
    SalesOrderStatus.SUBMITTED: "Only draft orders can be submitted",
    SalesOrderStatus.CONFIRMED: "Only submitted orders can be confirmed",
    SalesOrderStatus.AWAITING_PICKUP: "Only confirmed orders can be marked ready for pickup",
    SalesOrderStatus.PICKING: "Order must be confirmed before picking",
    SalesOrderStatus.PICKED: "Order must be in picking status",
    SalesOrderStatus.PACKING: "Order must be picked before packing",
    SalesOrderStatus.PACKED: "Order must be in packing status",
    SalesOrderStatus.SHIPPED: "Order must be packed before shipping",
    SalesOrderStatus.DELIVERED: "Only shipped orders can be marked as delivered",
}

# Statuses in which line quantities are settled
_CLOSED_LINE_STATUSES = {SalesOrderLineStatus.SHIPPED.value, SalesOrderLineStatus.CANCELLED.value}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@stockroom.value_object(part_of="SalesOrder")
class ShipTo:
    """Where the goods go, captured on the order."""

    name = String(max_length=255)
    address = String(max_length=500)
    city = String(max_length=100)
    state = String(max_length=100)
    postal_code = String(max_length=20)
    country = String(max_length=100)
    phone = String(max_length=30)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@stockroom.entity(part_of="SalesOrder")
class SalesOrderLine:
    line_number = Integer(default=1)
    product_id = Identifier(required=True)
    product_name = String(max_length=255)
    product_sku = String(max_length=100)
    quantity_ordered = Float(required=True)
    quantity_picked = Float(default=0.0)
    quantity_shipped = Float(default=0.0)
    quantity_outstanding = Float(default=0.0)
    unit_price = Float(default=0.0)
    discount_percent = Float(default=0.0)
    line_total = Float(default=0.0)
    status = String(choices=SalesOrderLineStatus, default=SalesOrderLineStatus.PENDING.value)
    location = String(max_length=100)
    picked_by = String(max_length=255)
    picked_at = DateTime()
    notes = Text()


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@stockroom.aggregate
class SalesOrder:
    tenant_id = Identifier(required=True)
    order_number = String(required=True, max_length=30)
    customer_id = Identifier()
    status = String(choices=SalesOrderStatus, default=SalesOrderStatus.DRAFT.value)
    priority = String(choices=Priority, default=Priority.NORMAL.value)
    order_date = DateTime()
    required_date = Date()
    promised_date = Date()
    ship_to = ValueObject(ShipTo)
    shipping_method = String(max_length=100)
    carrier = String(max_length=100)
    tracking_number = String(max_length=100)
    subtotal = Float(default=0.0)
    tax_rate = Float(default=0.0)
    tax_amount = Float(default=0.0)
    shipping_cost = Float(default=0.0)
    discount_amount = Float(default=0.0)
    total_amount = Float(default=0.0)
    customer_reference = String(max_length=100)
    notes = Text()
    internal_notes = Text()
    lines = HasMany(SalesOrderLine)
    created_by = String(max_length=255)
    submitted_at = DateTime()
    confirmed_at = DateTime()
    shipped_date = DateTime()
    shipped_by = String(max_length=255)
    delivered_date = DateTime()
    cancelled_at = DateTime()
    cancellation_reason = String(max_length=500)
    hold_reason = String(max_length=500)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def line_quantities_reconcile(self):
        for line in self.lines or []:
            ordered = to_decimal(line.quantity_ordered)
            picked = to_decimal(line.quantity_picked)
            if picked < ZERO or picked > ordered:
                raise ValidationError({"lines": ["Picked quantity must be between zero and the ordered quantity"]})
            if to_decimal(line.quantity_shipped) > picked:
                raise ValidationError({"lines": ["Shipped quantity cannot exceed picked quantity"]})
            if (line.quantity_outstanding or 0) < 0:
                raise ValidationError({"lines": ["Outstanding quantity cannot be negative"]})
            if line.status not in _CLOSED_LINE_STATUSES:
                if round_quantity(line.quantity_outstanding) != round_quantity(ordered - picked):
                    raise ValidationError({"lines": ["Outstanding quantity must equal ordered minus picked"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        tenant_id,
        order_number,
        lines_data,
        customer_id=None,
        ship_to=None,
        priority=Priority.NORMAL.value,
        required_date=None,
        promised_date=None,
        shipping_method=None,
        tax_rate=0.0,
        shipping_cost=0.0,
        discount_amount=0.0,
        customer_reference=None,
        notes=None,
        internal_notes=None,
        created_by=None,
    ):
        """Enter a draft sales order.

        Args:
            lines_data: List of dicts with product_id, product_name,
                        product_sku, quantity, unit_price and optional
                        discount_percent and notes.
            ship_to: Dict with name, address, city, state, postal_code,
                     country, phone (all optional).
        """
        lines = cls._build_lines(lines_data)
        now = datetime.now(UTC)
        order = cls(
            tenant_id=tenant_id,
            order_number=order_number,
            customer_id=customer_id,
            status=SalesOrderStatus.DRAFT.value,
            priority=priority or Priority.NORMAL.value,
            order_date=now,
            required_date=required_date,
            promised_date=promised_date,
            ship_to=ShipTo(**ship_to) if isinstance(ship_to, dict) else ship_to,
            shipping_method=shipping_method,
            tax_rate=round_quantity(tax_rate or 0),
            shipping_cost=round_money(shipping_cost or 0),
            discount_amount=round_money(discount_amount or 0),
            customer_reference=customer_reference,
            notes=notes,
            internal_notes=internal_notes,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        for line in lines:
            order.add_lines(line)
        order._recalculate_totals()

        order.raise_(
            SalesOrderCreated(
                sales_order_id=str(order.id),
                tenant_id=str(tenant_id),
                order_number=order_number,
                customer_id=str(customer_id) if customer_id else None,
                lines=json.dumps(
                    [
                        {
                            "product_id": str(line.product_id),
                            "quantity_ordered": line.quantity_ordered,
                            "unit_price": line.unit_price,
                            "discount_percent": line.discount_percent,
                        }
                        for line in lines
                    ]
                ),
                line_count=len(lines),
                total_amount=order.total_amount,
                created_by=created_by,
                created_at=now,
            )
        )
        return order

    @staticmethod
    def _build_lines(lines_data):
        if not lines_data:
            raise ValidationError({"lines": ["Sales order must have at least one line item"]})

        lines = []
        for number, data in enumerate(lines_data, start=1):
            quantity = to_decimal(data.get("quantity"))
            unit_price = to_decimal(data.get("unit_price"))
            discount = to_decimal(data.get("discount_percent"))
            if quantity <= ZERO:
                raise ValidationError({"quantity": ["Quantity must be greater than zero"]})
            if unit_price < ZERO:
                raise ValidationError({"unit_price": ["Unit price cannot be negative"]})
            if discount < ZERO or discount > 100:
                raise ValidationError({"discount_percent": ["Discount must be between 0 and 100 percent"]})

            lines.append(
                SalesOrderLine(
                    line_number=number,
                    product_id=data["product_id"],
                    product_name=data.get("product_name"),
                    product_sku=data.get("product_sku"),
                    quantity_ordered=round_quantity(quantity),
                    quantity_outstanding=round_quantity(quantity),
                    unit_price=round_money(unit_price),
                    discount_percent=round_quantity(discount),
                    line_total=line_total(quantity, unit_price, discount),
                    status=SalesOrderLineStatus.PENDING.value,
                    notes=data.get("notes"),
                )
            )
        return lines

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status, message=None, allowed_from=None):
        current = SalesOrderStatus(self.status)
        allowed = target_status in _VALID_TRANSITIONS.get(current, set())
        if allowed_from is not None:
            allowed = allowed and current in allowed_from
        if not allowed:
            raise state_error(
                message
                or _PRECONDITION_MESSAGES.get(target_status)
                or f"Cannot transition from {current.value} to {target_status.value}"
            )

    def _move_to(self, target_status, changed_by=None, reason=None):
        previous = self.status
        now = datetime.now(UTC)
        self.status = target_status.value
        self.updated_at = now
        self.raise_(
            SalesOrderStatusChanged(
                sales_order_id=str(self.id),
                order_number=self.order_number,
                from_status=previous,
                to_status=target_status.value,
                reason=reason,
                changed_by=changed_by,
                changed_at=now,
            )
        )
        return now

    def _append_internal_note(self, note):
        if note:
            self.internal_notes = f"{self.internal_notes}\n{note}" if self.internal_notes else note

    def _recalculate_totals(self):
        subtotal = sum((to_decimal(line.line_total) for line in self.lines or []), ZERO)
        tax = subtotal * to_decimal(self.tax_rate) / 100
        total = subtotal + tax + to_decimal(self.shipping_cost) - to_decimal(self.discount_amount)
        if total < ZERO:
            raise ValidationError({"discount_amount": ["Discount cannot exceed the order value"]})
        self.subtotal = round_money(subtotal)
        self.tax_amount = round_money(tax)
        self.total_amount = round_money(total)

    @property
    def sorted_lines(self):
        return sorted(self.lines or [], key=lambda line: line.line_number or 0)

    @property
    def lines_to_ship(self):
        return [line for line in self.sorted_lines if (line.quantity_picked or 0) > 0]

    def line(self, line_id):
        return next((line for line in self.lines or [] if str(line.id) == str(line_id)), None)

    def _set_line_status(self, status):
        for line in self.lines or []:
            if line.status != SalesOrderLineStatus.CANCELLED.value:
                line.status = status.value

    # -------------------------------------------------------------------
    # Draft editing
    # -------------------------------------------------------------------
    def update_draft(
        self,
        lines_data=None,
        ship_to=None,
        priority=None,
        required_date=None,
        shipping_method=None,
        tax_rate=None,
        shipping_cost=None,
        discount_amount=None,
        customer_reference=None,
        notes=None,
    ):
        if SalesOrderStatus(self.status) != SalesOrderStatus.DRAFT:
            raise state_error("Only draft orders can be updated")

        new_lines = self._build_lines(lines_data) if lines_data is not None else None
        with atomic_change(self):
            if new_lines is not None:
                # Lines are replaced wholesale, never patched
                for line in list(self.lines or []):
                    self.remove_lines(line)
                for line in new_lines:
                    self.add_lines(line)
            if ship_to is not None:
                self.ship_to = ShipTo(**ship_to) if isinstance(ship_to, dict) else ship_to
            if priority is not None:
                self.priority = priority
            if required_date is not None:
                self.required_date = required_date
            if shipping_method is not None:
                self.shipping_method = shipping_method
            if tax_rate is not None:
                self.tax_rate = round_quantity(tax_rate)
            if shipping_cost is not None:
                self.shipping_cost = round_money(shipping_cost)
            if discount_amount is not None:
                self.discount_amount = round_money(discount_amount)
            if customer_reference is not None:
                self.customer_reference = customer_reference
            if notes is not None:
                self.notes = notes
            self._recalculate_totals()
            self.updated_at = datetime.now(UTC)

        self.raise_(
            SalesOrderUpdated(
                sales_order_id=str(self.id),
                total_amount=self.total_amount,
                updated_at=self.updated_at,
            )
        )

    def assert_deletable(self):
        if SalesOrderStatus(self.status) != SalesOrderStatus.DRAFT:
            raise state_error("Only draft orders can be deleted")

    # -------------------------------------------------------------------
    # Order workflow
    # -------------------------------------------------------------------
    def submit(self, submitted_by=None, notes=None):
        self._assert_can_transition(SalesOrderStatus.SUBMITTED)
        if not self.lines:
            raise ValidationError({"lines": ["Cannot submit order without line items"]})
        self.submitted_at = self._move_to(SalesOrderStatus.SUBMITTED, changed_by=submitted_by)
        self._append_internal_note(notes)

    def confirm(self, confirmed_by=None, promised_date=None, notes=None):
        self._assert_can_transition(SalesOrderStatus.CONFIRMED, allowed_from={SalesOrderStatus.SUBMITTED})
        with atomic_change(self):
            self.confirmed_at = self._move_to(SalesOrderStatus.CONFIRMED, changed_by=confirmed_by)
            if promised_date is not None:
                self.promised_date = promised_date
            self._set_line_status(SalesOrderLineStatus.ALLOCATED)
            self._append_internal_note(notes)

    def mark_ready_for_pickup(self, changed_by=None, notes=None):
        self._assert_can_transition(SalesOrderStatus.AWAITING_PICKUP)
        self._move_to(SalesOrderStatus.AWAITING_PICKUP, changed_by=changed_by)
        self._append_internal_note(notes)

    def hold(self, reason, held_by=None):
        current = SalesOrderStatus(self.status)
        if current == SalesOrderStatus.ON_HOLD:
            raise state_error("Order is already on hold")
        self._assert_can_transition(SalesOrderStatus.ON_HOLD, "Cannot hold order in current status")
        if not reason or not reason.strip():
            raise ValidationError({"reason": ["Hold reason is required"]})
        self.hold_reason = reason
        self._move_to(SalesOrderStatus.ON_HOLD, changed_by=held_by, reason=reason)
        self._append_internal_note(f"On hold: {reason}")

    def release(self, released_by=None, notes=None):
        self._assert_can_transition(
            SalesOrderStatus.CONFIRMED,
            "Only orders on hold can be released",
            allowed_from={SalesOrderStatus.ON_HOLD},
        )
        self.hold_reason = None
        self._move_to(SalesOrderStatus.CONFIRMED, changed_by=released_by)
        self._append_internal_note(notes)

    def cancel(self, reason, cancelled_by=None):
        current = SalesOrderStatus(self.status)
        if current == SalesOrderStatus.CANCELLED:
            raise state_error("Order is already cancelled")
        self._assert_can_transition(SalesOrderStatus.CANCELLED, "Cannot cancel shipped or delivered orders")
        if not reason or not reason.strip():
            raise ValidationError({"reason": ["Cancellation reason is required"]})

        with atomic_change(self):
            self.cancellation_reason = reason
            self.cancelled_at = self._move_to(SalesOrderStatus.CANCELLED, changed_by=cancelled_by, reason=reason)
            for line in self.lines or []:
                line.status = SalesOrderLineStatus.CANCELLED.value
            self._append_internal_note(f"Cancelled: {reason}")

    # -------------------------------------------------------------------
    # Warehouse workflow
    # -------------------------------------------------------------------
    def start_picking(self, started_by=None, notes=None):
        self._assert_can_transition(SalesOrderStatus.PICKING)
        self._move_to(SalesOrderStatus.PICKING, changed_by=started_by)
        self._append_internal_note(notes)

    def complete_picking(self, picks, picked_by=None, notes=None):
        """Record what was picked per line and move the order to PICKED.

        Args:
            picks: List of dicts with line_id, quantity_picked and optional location.
        """
        self._assert_can_transition(SalesOrderStatus.PICKED)

        pending = []
        for pick in picks or []:
            line_id = pick.get("line_id")
            line = self.line(line_id)
            if line is None:
                raise ValidationError({"line_id": [f"Line {line_id} not found"]})
            quantity = to_decimal(pick.get("quantity_picked"))
            if quantity < ZERO:
                raise ValidationError({"quantity_picked": ["Picked quantity cannot be negative"]})
            if quantity > to_decimal(line.quantity_ordered):
                raise ValidationError(
                    {"quantity_picked": [f"Picked quantity cannot exceed ordered quantity for line {line_id}"]}
                )
            pending.append((line, quantity, pick.get("location")))

        now = datetime.now(UTC)
        with atomic_change(self):
            for line, quantity, location in pending:
                line.quantity_picked = round_quantity(quantity)
                line.quantity_outstanding = round_quantity(to_decimal(line.quantity_ordered) - quantity)
                if location:
                    line.location = location
                line.picked_by = picked_by
                line.picked_at = now
                line.status = SalesOrderLineStatus.PICKED.value
            self._move_to(SalesOrderStatus.PICKED, changed_by=picked_by)
            self._append_internal_note(notes)

    def start_packing(self, started_by=None, notes=None):
        self._assert_can_transition(SalesOrderStatus.PACKING)
        self._move_to(SalesOrderStatus.PACKING, changed_by=started_by)
        self._append_internal_note(notes)

    def complete_packing(self, packed_by=None, notes=None):
        self._assert_can_transition(SalesOrderStatus.PACKED)
        with atomic_change(self):
            self._move_to(SalesOrderStatus.PACKED, changed_by=packed_by)
            self._set_line_status(SalesOrderLineStatus.PACKED)
            self._append_internal_note(notes)

    def assert_can_ship(self):
        self._assert_can_transition(SalesOrderStatus.SHIPPED)

    def ship(self, shipped_by=None, carrier=None, tracking_number=None, notes=None):
        """Settle every line at its picked quantity.

        Stock is taken out by the shipping handler through the ledger, in the
        same Unit of Work, before this is called.
        """
        self.assert_can_ship()

        with atomic_change(self):
            quantity_shipped = ZERO
            for line in self.lines or []:
                if line.status == SalesOrderLineStatus.CANCELLED.value:
                    continue
                line.quantity_shipped = line.quantity_picked or 0.0
                line.quantity_outstanding = 0.0
                line.status = SalesOrderLineStatus.SHIPPED.value
                quantity_shipped += to_decimal(line.quantity_shipped)

            now = self._move_to(SalesOrderStatus.SHIPPED, changed_by=shipped_by)
            self.shipped_date = now
            self.shipped_by = shipped_by
            if carrier is not None:
                self.carrier = carrier
            if tracking_number is not None:
                self.tracking_number = tracking_number
            self._append_internal_note(notes)

        self.raise_(
            SalesOrderShipped(
                sales_order_id=str(self.id),
                order_number=self.order_number,
                quantity_shipped=round_quantity(quantity_shipped),
                carrier=self.carrier,
                tracking_number=self.tracking_number,
                shipped_by=shipped_by,
                shipped_at=now,
            )
        )

    def deliver(self, delivered_by=None, received_by=None, notes=None):
        self._assert_can_transition(SalesOrderStatus.DELIVERED)
        self.delivered_date = self._move_to(SalesOrderStatus.DELIVERED, changed_by=delivered_by)
        if received_by:
            self._append_internal_note(f"Delivered - Received by: {received_by}")
        self._append_internal_note(notes)


@stockroom.repository(part_of=SalesOrder)
class SalesOrderRepository:
    def for_tenant(self, tenant_id, status=None):
        filters = {"tenant_id": tenant_id}
        if status:
            filters["status"] = status
        return self._dao.query.filter(**filters).all().items

    def for_customer(self, tenant_id, customer_id):
        return self._dao.query.filter(tenant_id=tenant_id, customer_id=customer_id).all().items
