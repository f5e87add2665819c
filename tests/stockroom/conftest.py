import json
import os

import pytest
from protean import current_domain
from stockroom.catalog.registration import RegisterCompany, RegisterCustomer, RegisterProduct
from stockroom.purchasing.creation import CreatePurchaseOrder
from stockroom.purchasing.lifecycle import ConfirmPurchaseOrder, SubmitPurchaseOrder
from stockroom.purchasing.purchase_order import PurchaseOrder
from stockroom.receiving.completion import CompleteReceipt
from stockroom.receiving.creation import CreateReceipt
from stockroom.sales.creation import CreateSalesOrder
from stockroom.sales.sales_order import SalesOrder
from stockroom.sales.workflow import (
    CompletePacking,
    CompletePicking,
    ConfirmSalesOrder,
    StartPacking,
    StartPicking,
    SubmitSalesOrder,
)

TENANT = "tenant-acme"
ACTOR = "clerk@acme.test"


@pytest.fixture(scope="session")
def _stockroom_domain(request):
    """Initialize the stockroom domain once per session."""
    os.environ["PROTEAN_ENV"] = request.config.option.env

    from stockroom.domain import stockroom

    stockroom.init()
    return stockroom


@pytest.fixture(scope="session", autouse=True)
def setup_db(_stockroom_domain):
    from stockroom.utils.db import drop_db, setup_db

    setup_db(_stockroom_domain)

    yield

    drop_db(_stockroom_domain)


@pytest.fixture(autouse=True)
def run_around_tests(_stockroom_domain):
    """Push domain context before each test, cleanup after."""
    ctx = _stockroom_domain.domain_context()
    ctx.push()

    yield

    for _, provider in current_domain.providers.items():
        provider._data_reset()

    current_domain.event_store.store._data_reset()
    ctx.pop()


class StockroomBuilder:
    """Creates records through their commands, the way a client would."""

    def __init__(self, tenant_id=TENANT, acting_user=ACTOR):
        self.tenant_id = tenant_id
        self.acting_user = acting_user

    def _process(self, command):
        return current_domain.process(command, asynchronous=False)

    def for_tenant(self, tenant_id):
        return StockroomBuilder(tenant_id, self.acting_user)

    def product(self, sku="BOLT-M8", opening_stock=0.0, cost_per_unit=0.0, location="A-01"):
        return self._process(
            RegisterProduct(
                tenant_id=self.tenant_id,
                name=f"Product {sku}",
                sku=sku,
                opening_stock=opening_stock,
                cost_per_unit=cost_per_unit,
                location=location,
                acting_user=self.acting_user,
            )
        )

    def supplier(self, name="Fasteners Ltd", is_supplier=True):
        return self._process(RegisterCompany(tenant_id=self.tenant_id, name=name, is_supplier=is_supplier))

    def customer(self, name="Jane Doe"):
        return self._process(RegisterCustomer(tenant_id=self.tenant_id, name=name))

    def purchase_order(self, supplier_id, lines, confirm=True):
        """``lines`` is a list of ``(product_id, quantity, unit_price)``."""
        po_id = self._process(
            CreatePurchaseOrder(
                tenant_id=self.tenant_id,
                supplier_id=supplier_id,
                lines=json.dumps([{"product_id": p, "quantity": q, "unit_price": u} for p, q, u in lines]),
                acting_user=self.acting_user,
            )
        )
        if confirm:
            ids = {"tenant_id": self.tenant_id, "purchase_order_id": po_id, "acting_user": self.acting_user}
            self._process(SubmitPurchaseOrder(**ids))
            self._process(ConfirmPurchaseOrder(**ids))
        return po_id

    def purchase_order_line_ids(self, po_id):
        po = current_domain.repository_for(PurchaseOrder).get(po_id)
        return [str(line.id) for line in po.sorted_lines]

    def receipt(self, po_id, lines):
        """``lines`` is a list of receipt line dicts."""
        return self._process(
            CreateReceipt(
                tenant_id=self.tenant_id,
                purchase_order_id=po_id,
                lines=json.dumps(lines),
                acting_user=self.acting_user,
            )
        )

    def complete_receipt(self, receipt_id):
        self._process(CompleteReceipt(tenant_id=self.tenant_id, receipt_id=receipt_id, acting_user=self.acting_user))

    def sales_order(self, lines, customer_id=None, ship_to=None):
        """``lines`` is a list of ``(product_id, quantity, unit_price)``."""
        return self._process(
            CreateSalesOrder(
                tenant_id=self.tenant_id,
                customer_id=customer_id,
                lines=json.dumps([{"product_id": p, "quantity": q, "unit_price": u} for p, q, u in lines]),
                ship_to=json.dumps(ship_to) if ship_to else None,
                acting_user=self.acting_user,
            )
        )

    def packed_sales_order(self, lines, picks=None, ship_to=None):
        """Drive a new order to PACKED, picking the ordered quantity unless ``picks`` says otherwise."""
        so_id = self.sales_order(lines, ship_to=ship_to)
        ids = {"tenant_id": self.tenant_id, "sales_order_id": so_id, "acting_user": self.acting_user}
        self._process(SubmitSalesOrder(**ids))
        self._process(ConfirmSalesOrder(**ids))
        self._process(StartPicking(**ids))

        order = current_domain.repository_for(SalesOrder).get(so_id)
        quantities = picks or [line.quantity_ordered for line in order.sorted_lines]
        payload = [
            {"line_id": str(line.id), "quantity_picked": quantity}
            for line, quantity in zip(order.sorted_lines, quantities, strict=True)
        ]
        self._process(CompletePicking(picks=json.dumps(payload), **ids))
        self._process(StartPacking(**ids))
        self._process(CompletePacking(**ids))
        return so_id


@pytest.fixture
def build():
    return StockroomBuilder()
