"""Shared BDD fixtures and step definitions for the stockroom."""

import pytest
from protean import current_domain
from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError
from pytest_bdd import given, parsers, then
from stockroom.catalog.product import Product
from stockroom.ledger.movement import MovementType
from stockroom.ledger.recording import movements_for_product
from stockroom.purchasing.purchase_order import PurchaseOrder
from stockroom.receiving.receipt import Receipt
from stockroom.sales.sales_order import SalesOrder
from stockroom.shared.errors import InvariantViolationError, first_message

_ERROR_CLASSES = {
    "validation error": ValidationError,
    "state error": InvalidOperationError,
    "not found error": ObjectNotFoundError,
    "invariant violation": InvariantViolationError,
}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def error():
    """Container for the refusal a When step captured."""
    return {"exc": None}


@pytest.fixture()
def world():
    """Ids of the records a scenario has created, keyed by role or SKU."""
    return {"products": {}}


@pytest.fixture()
def attempt(error):
    """Run an action, capturing a domain refusal into ``error`` instead of raising."""

    def _attempt(action, *args, **kwargs):
        try:
            return action(*args, **kwargs)
        except (ValidationError, InvalidOperationError, ObjectNotFoundError) as exc:
            error["exc"] = exc
            return None

    return _attempt


def stock_of(product_id):
    return current_domain.repository_for(Product).get(product_id).current_stock


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a product "{sku}" with {stock:d} units on hand at {cost:f} each'))
def product_on_hand(build, world, sku, stock, cost):
    world["products"][sku] = build.product(sku=sku, opening_stock=stock, cost_per_unit=cost)


@given(parsers.cfparse('a product "{sku}" with {stock:d} units on hand'))
def product_with_stock(build, world, sku, stock):
    world["products"][sku] = build.product(sku=sku, opening_stock=stock)


# ---------------------------------------------------------------------------
# Then steps - outcomes
# ---------------------------------------------------------------------------
@then(parsers.re(r"the action fails with an? (?P<kind>.+)"))
def action_fails(error, kind):
    assert error["exc"] is not None, f"Expected a {kind} but none was raised"
    assert isinstance(error["exc"], _ERROR_CLASSES[kind]), type(error["exc"]).__name__


@then(parsers.cfparse('the error message is "{message}"'))
def error_message_is(error, message):
    assert error["exc"] is not None
    assert first_message(error["exc"]) == message


@then("the action succeeds")
def action_succeeds(error):
    assert error["exc"] is None, f"Unexpected refusal: {error['exc']}"


# ---------------------------------------------------------------------------
# Then steps - stock ledger
# ---------------------------------------------------------------------------
@then(parsers.cfparse('"{sku}" has {stock:g} units on hand'))
def units_on_hand(world, sku, stock):
    assert stock_of(world["products"][sku]) == stock


@then(parsers.cfparse('"{sku}" costs {cost:g} per unit'))
def cost_per_unit(world, sku, cost):
    assert current_domain.repository_for(Product).get(world["products"][sku]).cost_per_unit == cost


@then(parsers.cfparse('"{sku}" has {count:d} {movement_type} movements'))
def movement_count(build, world, sku, count, movement_type):
    movement_type = MovementType(movement_type)
    movements = [
        m
        for m in movements_for_product(build.tenant_id, world["products"][sku])
        if m.movement_type == movement_type.value
    ]
    assert len(movements) == count


# ---------------------------------------------------------------------------
# Then steps - document status
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the purchase order status is "{status}"'))
def purchase_order_status(world, status):
    assert current_domain.repository_for(PurchaseOrder).get(world["purchase_order"]).status == status


@then(parsers.cfparse('the receipt status is "{status}"'))
def receipt_status(world, status):
    assert current_domain.repository_for(Receipt).get(world["receipt"]).status == status


@then(parsers.cfparse('the sales order status is "{status}"'))
def sales_order_status(world, status):
    assert current_domain.repository_for(SalesOrder).get(world["sales_order"]).status == status
