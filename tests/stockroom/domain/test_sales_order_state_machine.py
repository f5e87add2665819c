"""Tests for SalesOrder state machine — valid and invalid transitions."""

import pytest
from protean.exceptions import InvalidOperationError, ValidationError
from stockroom.sales.events import SalesOrderShipped, SalesOrderStatusChanged
from stockroom.sales.sales_order import SalesOrder, SalesOrderLineStatus, SalesOrderStatus


def _make_order(quantity=10):
    return SalesOrder.create(
        tenant_id="tenant-a",
        order_number="SO-20261019-0001",
        lines_data=[
            {
                "product_id": "prod-1",
                "product_name": "Steel Bolt",
                "product_sku": "BOLT-M8",
                "quantity": quantity,
                "unit_price": 2.5,
            }
        ],
        ship_to={"name": "Jane Doe", "city": "Portland"},
    )


def _advance_to_confirmed(order):
    order.submit()
    order.confirm()
    return order


def _advance_to_picking(order):
    _advance_to_confirmed(order)
    order.start_picking()
    return order


def _advance_to_picked(order, quantity=None):
    _advance_to_picking(order)
    line = order.lines[0]
    order.complete_picking([{"line_id": str(line.id), "quantity_picked": quantity or line.quantity_ordered}])
    return order


def _advance_to_packed(order):
    _advance_to_picked(order)
    order.start_packing()
    order.complete_packing()
    return order


def _advance_to_shipped(order):
    _advance_to_packed(order)
    order.ship(shipped_by="dispatch", carrier="UPS", tracking_number="1Z999")
    return order


class TestValidTransitions:
    def test_draft_to_submitted(self):
        order = _make_order()
        order.submit(submitted_by="sales")
        assert order.status == SalesOrderStatus.SUBMITTED.value
        assert order.submitted_at is not None

    def test_confirm_allocates_lines(self):
        order = _advance_to_confirmed(_make_order())
        assert order.status == SalesOrderStatus.CONFIRMED.value
        assert order.lines[0].status == SalesOrderLineStatus.ALLOCATED.value

    def test_confirmed_to_awaiting_pickup_to_picking(self):
        order = _advance_to_confirmed(_make_order())
        order.mark_ready_for_pickup()
        assert order.status == SalesOrderStatus.AWAITING_PICKUP.value
        order.start_picking()
        assert order.status == SalesOrderStatus.PICKING.value

    def test_full_pipeline_to_delivered(self):
        order = _advance_to_shipped(_make_order())
        order.deliver(delivered_by="driver", received_by="Front desk")
        assert order.status == SalesOrderStatus.DELIVERED.value
        assert order.delivered_date is not None
        assert "Delivered - Received by: Front desk" in order.internal_notes

    def test_every_step_raises_status_changed(self):
        order = _advance_to_packed(_make_order())
        changes = [event for event in order._events if isinstance(event, SalesOrderStatusChanged)]
        assert [event.to_status for event in changes] == [
            "Submitted",
            "Confirmed",
            "Picking",
            "Picked",
            "Packing",
            "Packed",
        ]


class TestInvalidTransitions:
    def test_confirm_requires_submitted(self):
        order = _make_order()
        with pytest.raises(InvalidOperationError) as exc:
            order.confirm()
        assert exc.value.messages["status"] == ["Only submitted orders can be confirmed"]

    def test_cannot_submit_twice(self):
        order = _make_order()
        order.submit()
        with pytest.raises(InvalidOperationError) as exc:
            order.submit()
        assert exc.value.messages["status"] == ["Only draft orders can be submitted"]

    def test_picking_requires_confirmation(self):
        order = _make_order()
        order.submit()
        with pytest.raises(InvalidOperationError) as exc:
            order.start_picking()
        assert exc.value.messages["status"] == ["Order must be confirmed before picking"]

    def test_complete_picking_requires_picking(self):
        order = _advance_to_confirmed(_make_order())
        with pytest.raises(InvalidOperationError) as exc:
            order.complete_picking([])
        assert exc.value.messages["status"] == ["Order must be in picking status"]

    def test_packing_requires_picked(self):
        order = _advance_to_picking(_make_order())
        with pytest.raises(InvalidOperationError) as exc:
            order.start_packing()
        assert exc.value.messages["status"] == ["Order must be picked before packing"]

    def test_shipping_requires_packed(self):
        order = _advance_to_picked(_make_order())
        with pytest.raises(InvalidOperationError) as exc:
            order.ship()
        assert exc.value.messages["status"] == ["Order must be packed before shipping"]

    def test_delivery_requires_shipped(self):
        order = _advance_to_packed(_make_order())
        with pytest.raises(InvalidOperationError) as exc:
            order.deliver()
        assert exc.value.messages["status"] == ["Only shipped orders can be marked as delivered"]

    def test_ready_for_pickup_only_from_confirmed(self):
        order = _make_order()
        with pytest.raises(InvalidOperationError):
            order.mark_ready_for_pickup()


class TestHoldAndCancel:
    def test_hold_requires_reason(self):
        order = _advance_to_confirmed(_make_order())
        with pytest.raises(ValidationError):
            order.hold("")

    def test_hold_and_release_returns_to_confirmed(self):
        order = _advance_to_picking(_make_order())
        order.hold("Credit check", held_by="finance")
        assert order.status == SalesOrderStatus.ON_HOLD.value
        assert order.hold_reason == "Credit check"
        order.release(released_by="finance")
        assert order.status == SalesOrderStatus.CONFIRMED.value
        assert order.hold_reason is None

    def test_cannot_hold_twice(self):
        order = _make_order()
        order.hold("Address check")
        with pytest.raises(InvalidOperationError) as exc:
            order.hold("Again")
        assert exc.value.messages["status"] == ["Order is already on hold"]

    def test_release_requires_hold(self):
        order = _advance_to_confirmed(_make_order())
        with pytest.raises(InvalidOperationError) as exc:
            order.release()
        assert exc.value.messages["status"] == ["Only orders on hold can be released"]

    def test_shipped_order_cannot_be_held(self):
        order = _advance_to_shipped(_make_order())
        with pytest.raises(InvalidOperationError) as exc:
            order.hold("Too late")
        assert exc.value.messages["status"] == ["Cannot hold order in current status"]

    def test_cancel_cancels_lines(self):
        order = _advance_to_picking(_make_order())
        order.cancel("Customer changed mind", cancelled_by="sales")
        assert order.status == SalesOrderStatus.CANCELLED.value
        assert order.cancellation_reason == "Customer changed mind"
        assert {line.status for line in order.lines} == {SalesOrderLineStatus.CANCELLED.value}

    def test_cancel_requires_reason(self):
        order = _make_order()
        with pytest.raises(ValidationError) as exc:
            order.cancel(" ")
        assert exc.value.messages["reason"] == ["Cancellation reason is required"]

    def test_cannot_cancel_twice(self):
        order = _make_order()
        order.cancel("Duplicate")
        with pytest.raises(InvalidOperationError) as exc:
            order.cancel("Duplicate")
        assert exc.value.messages["status"] == ["Order is already cancelled"]

    def test_cannot_cancel_shipped_order(self):
        order = _advance_to_shipped(_make_order())
        with pytest.raises(InvalidOperationError) as exc:
            order.cancel("Too late")
        assert exc.value.messages["status"] == ["Cannot cancel shipped or delivered orders"]

    def test_held_order_can_be_cancelled(self):
        order = _make_order()
        order.hold("Fraud review")
        order.cancel("Fraud confirmed")
        assert order.status == SalesOrderStatus.CANCELLED.value


class TestPickingAndShipping:
    def test_partial_pick_leaves_outstanding(self):
        order = _advance_to_picked(_make_order(10), quantity=7)
        line = order.lines[0]
        assert line.quantity_picked == 7.0
        assert line.quantity_outstanding == 3.0
        assert line.status == SalesOrderLineStatus.PICKED.value

    def test_pick_more_than_ordered_is_refused(self):
        order = _advance_to_picking(_make_order(10))
        line_id = str(order.lines[0].id)
        with pytest.raises(ValidationError) as exc:
            order.complete_picking([{"line_id": line_id, "quantity_picked": 11}])
        assert exc.value.messages["quantity_picked"] == [
            f"Picked quantity cannot exceed ordered quantity for line {line_id}"
        ]
        assert order.status == SalesOrderStatus.PICKING.value

    def test_pick_unknown_line(self):
        order = _advance_to_picking(_make_order())
        with pytest.raises(ValidationError) as exc:
            order.complete_picking([{"line_id": "missing", "quantity_picked": 1}])
        assert exc.value.messages["line_id"] == ["Line missing not found"]

    def test_ship_settles_lines(self):
        order = _advance_to_shipped(_make_order(10))
        line = order.lines[0]
        assert order.status == SalesOrderStatus.SHIPPED.value
        assert line.quantity_shipped == 10.0
        assert line.quantity_outstanding == 0.0
        assert line.status == SalesOrderLineStatus.SHIPPED.value
        assert order.carrier == "UPS"
        assert order.tracking_number == "1Z999"
        assert order.shipped_by == "dispatch"

    def test_ship_raises_shipped_event(self):
        order = _advance_to_shipped(_make_order(10))
        shipped = [event for event in order._events if isinstance(event, SalesOrderShipped)]
        assert len(shipped) == 1
        assert shipped[0].quantity_shipped == 10.0

    def test_workflow_notes_are_appended_to_internal_notes(self):
        order = _make_order()
        order.submit(notes="Rush order")
        order.confirm(notes="Stock reserved")
        assert order.internal_notes == "Rush order\nStock reserved"
