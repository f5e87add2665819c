"""Product aggregate — the stock-keeping unit the ledger counts.

Catalog maintenance lives outside the stockroom; here a product only carries
what reconciliation needs. ``current_stock`` moves exclusively through
``stockroom.ledger.writer.StockLedger`` and ``cost_per_unit`` exclusively
through receipt reconciliation.
"""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, String

from stockroom.domain import stockroom
from stockroom.shared.quantities import round_money, round_quantity


@stockroom.aggregate
class Product:
    tenant_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    sku = String(required=True, max_length=100)
    current_stock = Float(default=0.0)
    cost_per_unit = Float(default=0.0)
    location = String(max_length=100)
    minimum_stock_level = Float(default=0.0)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def stock_cannot_be_negative(self):
        if self.current_stock is not None and self.current_stock < 0:
            raise ValidationError({"current_stock": ["Stock cannot be negative"]})

    @invariant.post
    def cost_cannot_be_negative(self):
        if self.cost_per_unit is not None and self.cost_per_unit < 0:
            raise ValidationError({"cost_per_unit": ["Cost per unit cannot be negative"]})

    @classmethod
    def register(cls, tenant_id, name, sku, cost_per_unit=0.0, location=None, minimum_stock_level=0.0):
        now = datetime.now(UTC)
        return cls(
            tenant_id=tenant_id,
            name=name,
            sku=sku,
            current_stock=0.0,
            cost_per_unit=round_money(cost_per_unit or 0),
            location=location,
            minimum_stock_level=round_quantity(minimum_stock_level or 0),
            created_at=now,
            updated_at=now,
        )

    @property
    def is_below_minimum(self) -> bool:
        return (self.current_stock or 0) < (self.minimum_stock_level or 0)

    def set_stock_level(self, new_stock):
        self.current_stock = round_quantity(new_stock)
        self.updated_at = datetime.now(UTC)

    def revalue(self, new_cost):
        self.cost_per_unit = round_money(new_cost)
        self.updated_at = datetime.now(UTC)


@stockroom.repository(part_of=Product)
class ProductRepository:
    def find_by_sku(self, tenant_id, sku):
        return self._dao.query.filter(tenant_id=tenant_id, sku=sku).all().items

    def for_tenant(self, tenant_id):
        return self._dao.query.filter(tenant_id=tenant_id).all().items
