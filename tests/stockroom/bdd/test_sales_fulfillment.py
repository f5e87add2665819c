"""BDD tests for sales order fulfillment."""

import json

from protean import current_domain
from pytest_bdd import given, parsers, scenarios, when
from stockroom.sales.sales_order import SalesOrder
from stockroom.sales.shipping import ShipSalesOrder
from stockroom.sales.workflow import (
    CancelSalesOrder,
    CompletePicking,
    ConfirmSalesOrder,
    HoldSalesOrder,
    ReleaseSalesOrder,
    StartPicking,
    SubmitSalesOrder,
)

scenarios("features/sales_fulfillment.feature")


def _ids(build, world):
    return {"tenant_id": build.tenant_id, "sales_order_id": world["sales_order"], "acting_user": build.acting_user}


def _process(command):
    current_domain.process(command, asynchronous=False)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a packed sales order for {quantity:d} "{sku}" with {picked:d} picked'))
def short_picked_order(build, world, quantity, sku, picked):
    world["sales_order"] = build.packed_sales_order([(world["products"][sku], quantity, 20.0)], picks=[picked])


@given(
    parsers.re(
        r'a packed sales order for (?P<first>\d+) "(?P<first_sku>[^"]+)" and (?P<second>\d+) "(?P<second_sku>[^"]+)"'
    ),
    converters={"first": int, "second": int},
)
def packed_two_line_order(build, world, first, first_sku, second, second_sku):
    world["sales_order"] = build.packed_sales_order(
        [(world["products"][first_sku], first, 1.0), (world["products"][second_sku], second, 1.0)]
    )


@given(parsers.re(r'a packed sales order for (?P<quantity>\d+) "(?P<sku>[^"]+)"'), converters={"quantity": int})
def packed_order(build, world, quantity, sku):
    world["sales_order"] = build.packed_sales_order([(world["products"][sku], quantity, 20.0)])


@given(parsers.cfparse('a draft sales order for {quantity:d} "{sku}"'))
def draft_order(build, world, quantity, sku):
    world["sales_order"] = build.sales_order([(world["products"][sku], quantity, 20.0)])


@given(parsers.cfparse('a sales order for {quantity:d} "{sku}" being picked'))
def order_being_picked(build, world, quantity, sku):
    draft_order(build, world, quantity, sku)
    for command in (SubmitSalesOrder, ConfirmSalesOrder, StartPicking):
        _process(command(**_ids(build, world)))


@given(parsers.cfparse('the sales order is put on hold for "{reason}"'))
def order_on_hold(build, world, reason):
    _process(HoldSalesOrder(reason=reason, **_ids(build, world)))


@given("the sales order was shipped")
def order_shipped(build, world):
    _process(ShipSalesOrder(**_ids(build, world)))


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when("the sales order is shipped")
def ship_order(build, world, attempt):
    attempt(_process, ShipSalesOrder(carrier="DHL", tracking_number="JD0001", **_ids(build, world)))


@when(parsers.cfparse("{quantity:d} units are picked"))
def pick_units(build, world, attempt, quantity):
    order = current_domain.repository_for(SalesOrder).get(world["sales_order"])
    picks = [{"line_id": str(order.sorted_lines[0].id), "quantity_picked": quantity}]
    attempt(_process, CompletePicking(picks=json.dumps(picks), **_ids(build, world)))


@when("the sales order is put on hold without a reason")
def hold_without_reason(build, world, attempt):
    attempt(_process, HoldSalesOrder(reason=None, **_ids(build, world)))


@when("the sales order is released")
def release_order(build, world, attempt):
    attempt(_process, ReleaseSalesOrder(**_ids(build, world)))


@when(parsers.cfparse('the sales order is cancelled for "{reason}"'))
def cancel_order(build, world, attempt, reason):
    attempt(_process, CancelSalesOrder(reason=reason, **_ids(build, world)))
