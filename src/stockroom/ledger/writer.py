"""StockLedger — the only code path that changes ``Product.current_stock``.

A ledger instance lives for one command. It loads each product at most once
(tenant-scoped), chains consecutive movements on the same product from the
previous movement's ``new_stock``, and writes products and movements to their
repositories only when the surrounding block finishes without error::

    with StockLedger(tenant_id, acting_user) as ledger:
        ledger.record(product_id, MovementType.STOCK_OUT, 10, reason="Sales Order SO-...")

The writes land in the command handler's Unit of Work, so the movement rows,
the product counters and whatever status change triggered them commit
together or not at all.
"""

import structlog
from protean.utils.globals import current_domain

from stockroom.catalog.product import Product
from stockroom.ledger.movement import StockMovement, next_stock_level, parse_movement_type
from stockroom.shared.tenancy import load_for_tenant

logger = structlog.get_logger(__name__)


class StockLedger:
    def __init__(self, tenant_id, acting_user):
        self.tenant_id = tenant_id
        self.acting_user = acting_user
        self._products = {}
        self._touched = []
        self._movements = []
        self._flushed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.flush()
        else:
            logger.warning(
                "Stock ledger batch discarded",
                tenant_id=str(self.tenant_id),
                pending_movements=len(self._movements),
                error=str(exc),
            )
        return False

    @property
    def movements(self) -> list:
        return list(self._movements)

    def product(self, product_id, message=None) -> Product:
        """Load a product once per ledger, scoped to the ledger's tenant."""
        key = str(product_id)
        if key not in self._products:
            self._products[key] = load_for_tenant(
                Product,
                product_id,
                self.tenant_id,
                message or f"Product {product_id} not found",
            )
        return self._products[key]

    def track(self, product: Product):
        """Hand the ledger a product the caller has created or already loaded."""
        if str(product.tenant_id) != str(self.tenant_id):
            raise ValueError("Product belongs to another tenant")
        self._products[str(product.id)] = product

    def record(
        self,
        product_id,
        movement_type,
        quantity,
        reason,
        notes=None,
        from_location=None,
        to_location=None,
    ) -> StockMovement:
        """Append one movement and move the product's stock with it.

        Raises ``ValidationError`` for a non-positive quantity (or a zero
        adjustment) and ``InvariantViolationError`` when the movement would
        leave stock negative. Nothing is recorded in either case.
        """
        if self._flushed:
            raise RuntimeError("StockLedger has already been flushed")

        movement_type = parse_movement_type(movement_type)
        product = self.product(product_id)
        previous_stock = product.current_stock or 0.0
        new_stock = next_stock_level(movement_type, previous_stock, quantity)

        movement = StockMovement.record(
            tenant_id=self.tenant_id,
            product_id=str(product.id),
            movement_type=movement_type,
            quantity=quantity,
            previous_stock=previous_stock,
            new_stock=new_stock,
            reason=reason,
            acting_user=self.acting_user,
            notes=notes,
            from_location=from_location,
            to_location=to_location,
        )
        product.set_stock_level(new_stock)

        if product not in self._touched:
            self._touched.append(product)
        self._movements.append(movement)

        logger.debug(
            "Stock movement recorded",
            product_id=str(product.id),
            movement_type=movement_type.value,
            quantity=quantity,
            previous_stock=previous_stock,
            new_stock=new_stock,
        )
        if product.is_below_minimum:
            logger.info(
                "Product below minimum stock level",
                product_id=str(product.id),
                sku=product.sku,
                current_stock=product.current_stock,
                minimum_stock_level=product.minimum_stock_level,
            )
        return movement

    def flush(self):
        """Persist every touched product and every pending movement."""
        if self._flushed:
            return
        product_repo = current_domain.repository_for(Product)
        movement_repo = current_domain.repository_for(StockMovement)
        for product in self._touched:
            product_repo.add(product)
        for movement in self._movements:
            movement_repo.add(movement)
        self._flushed = True
