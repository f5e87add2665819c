"""Tests for the PurchaseOrder aggregate — lines, state machine and receiving."""

from decimal import Decimal

import pytest
from protean.exceptions import InvalidOperationError, ValidationError
from stockroom.purchasing.events import PurchaseOrderCompleted, PurchaseOrderCreated
from stockroom.purchasing.purchase_order import LineItemStatus, PurchaseOrder, PurchaseOrderStatus
from stockroom.shared.errors import InvariantViolationError


def _make_lines(*quantities, unit_price=10.0):
    return [
        {
            "product_id": f"prod-{i}",
            "product_name": f"Product {i}",
            "product_sku": f"SKU-{i:03d}",
            "quantity": quantity,
            "unit_price": unit_price,
        }
        for i, quantity in enumerate(quantities, start=1)
    ]


def _make_po(*quantities, **kwargs):
    return PurchaseOrder.create(
        tenant_id="tenant-a",
        order_number="PO-2026-0001",
        supplier_id="sup-1",
        lines_data=_make_lines(*(quantities or (100,))),
        **kwargs,
    )


def _receiving_po(*quantities):
    po = _make_po(*quantities)
    po.submit()
    po.confirm()
    po.start_receiving()
    return po


def _line_ids(po):
    return [str(line.id) for line in po.sorted_lines]


class TestPurchaseOrderCreation:
    def test_create_is_draft_with_numbered_lines(self):
        po = _make_po(100, 50)
        assert po.status == PurchaseOrderStatus.DRAFT.value
        assert [line.line_number for line in po.sorted_lines] == [1, 2]

    def test_outstanding_starts_at_ordered(self):
        po = _make_po(100)
        line = po.lines[0]
        assert line.quantity_outstanding == 100.0
        assert line.quantity_received == 0.0
        assert line.status == LineItemStatus.PENDING.value

    def test_totals(self):
        po = _make_po(100, 50, tax_amount=15.0, shipping_cost=25.0)
        assert po.subtotal == 1500.0
        assert po.total_amount == 1540.0

    def test_create_raises_event(self):
        po = _make_po(100)
        assert isinstance(po._events[0], PurchaseOrderCreated)

    def test_requires_lines(self):
        with pytest.raises(ValidationError) as exc:
            PurchaseOrder.create(tenant_id="tenant-a", order_number="PO-1", supplier_id="sup-1", lines_data=[])
        assert exc.value.messages["lines"] == ["Purchase order must have at least one line item"]

    def test_quantity_must_be_positive(self):
        with pytest.raises(ValidationError):
            _make_po(0)

    def test_price_cannot_be_negative(self):
        with pytest.raises(ValidationError):
            PurchaseOrder.create(
                tenant_id="tenant-a",
                order_number="PO-1",
                supplier_id="sup-1",
                lines_data=_make_lines(10, unit_price=-1),
            )


class TestPurchaseOrderStateMachine:
    def test_submit_from_draft(self):
        po = _make_po()
        po.submit(submitted_by="buyer")
        assert po.status == PurchaseOrderStatus.SUBMITTED.value
        assert po.submitted_at is not None

    def test_cannot_submit_twice(self):
        po = _make_po()
        po.submit()
        with pytest.raises(InvalidOperationError) as exc:
            po.submit()
        assert exc.value.messages["status"] == ["Only draft purchase orders can be submitted"]

    def test_confirm_requires_submitted(self):
        po = _make_po()
        with pytest.raises(InvalidOperationError) as exc:
            po.confirm()
        assert exc.value.messages["status"] == ["Only submitted purchase orders can be confirmed"]

    def test_draft_cannot_receive(self):
        po = _make_po()
        with pytest.raises(InvalidOperationError):
            po.assert_can_receive()

    def test_submitted_order_can_start_receiving(self):
        po = _make_po()
        po.submit()
        po.start_receiving()
        assert po.status == PurchaseOrderStatus.RECEIVING.value

    def test_cancel_requires_reason(self):
        po = _make_po()
        with pytest.raises(ValidationError) as exc:
            po.cancel("  ")
        assert exc.value.messages["reason"] == ["Cancellation reason is required"]

    def test_cancel_draft_cancels_lines(self):
        po = _make_po(10, 20)
        po.cancel("Supplier out of business")
        assert po.status == PurchaseOrderStatus.CANCELLED.value
        assert {line.status for line in po.lines} == {LineItemStatus.CANCELLED.value}

    def test_cannot_cancel_with_received_items(self):
        po = _receiving_po(100)
        po.post_receipt("REC-2026-0001", {_line_ids(po)[0]: Decimal("10")})
        with pytest.raises(InvalidOperationError) as exc:
            po.cancel("Changed our mind")
        assert exc.value.messages["status"] == ["Cannot cancel purchase order with received items"]

    def test_received_items_are_reported_before_a_missing_reason(self):
        po = _receiving_po(50)
        po.post_receipt("REC-2026-0001", {_line_ids(po)[0]: Decimal("48")})
        with pytest.raises(InvalidOperationError) as exc:
            po.cancel("")
        assert exc.value.messages["status"] == ["Cannot cancel purchase order with received items"]

    def test_only_drafts_are_deletable(self):
        po = _make_po()
        po.assert_deletable()
        po.submit()
        with pytest.raises(InvalidOperationError):
            po.assert_deletable()


class TestPurchaseOrderUpdate:
    def test_draft_lines_are_replaced(self):
        po = _make_po(100, 50)
        po.update_details(lines_data=_make_lines(5))
        assert len(po.lines) == 1
        assert po.subtotal == 50.0

    def test_pricing_is_frozen_after_submit(self):
        po = _make_po()
        po.submit()
        with pytest.raises(InvalidOperationError):
            po.update_details(shipping_cost=99.0)

    def test_reference_can_change_after_submit(self):
        po = _make_po()
        po.submit()
        po.update_details(supplier_reference="SUP-778")
        assert po.supplier_reference == "SUP-778"


class TestPostReceipt:
    def test_partial_receipt(self):
        po = _receiving_po(100)
        po.post_receipt("REC-2026-0001", {_line_ids(po)[0]: Decimal("40")})
        line = po.lines[0]
        assert line.quantity_received == 40.0
        assert line.quantity_outstanding == 60.0
        assert line.status == LineItemStatus.PARTIALLY_RECEIVED.value
        assert po.status == PurchaseOrderStatus.PARTIALLY_RECEIVED.value

    def test_full_receipt_completes_order(self):
        po = _receiving_po(100, 50)
        first, second = _line_ids(po)
        po.post_receipt("REC-2026-0001", {first: Decimal("100"), second: Decimal("50")})
        assert po.status == PurchaseOrderStatus.COMPLETED.value
        assert po.completed_at is not None
        assert any(isinstance(event, PurchaseOrderCompleted) for event in po._events)

    def test_receipts_accumulate(self):
        po = _receiving_po(100)
        line_id = _line_ids(po)[0]
        po.post_receipt("REC-2026-0001", {line_id: Decimal("60")})
        po.post_receipt("REC-2026-0002", {line_id: Decimal("40")})
        assert po.status == PurchaseOrderStatus.COMPLETED.value
        assert po.lines[0].status == LineItemStatus.FULLY_RECEIVED.value

    def test_outstanding_always_ordered_minus_received(self):
        po = _receiving_po(100, 30)
        first, second = _line_ids(po)
        po.post_receipt("REC-2026-0001", {first: Decimal("12.5"), second: Decimal("30")})
        for line in po.lines:
            assert line.quantity_outstanding == line.quantity_ordered - line.quantity_received
            assert line.quantity_outstanding >= 0

    def test_over_receipt_is_refused(self):
        po = _receiving_po(100)
        with pytest.raises(InvariantViolationError):
            po.post_receipt("REC-2026-0001", {_line_ids(po)[0]: Decimal("101")})
        assert po.lines[0].quantity_received == 0.0
        assert po.status == PurchaseOrderStatus.RECEIVING.value

    def test_cannot_post_to_confirmed_order(self):
        po = _make_po()
        po.submit()
        po.confirm()
        with pytest.raises(InvalidOperationError):
            po.post_receipt("REC-2026-0001", {_line_ids(po)[0]: Decimal("1")})
