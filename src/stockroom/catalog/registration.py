"""Catalog registration — commands and handlers for the records the stockroom depends on.

Full catalog maintenance happens elsewhere; these commands create the
minimum a tenant needs before ordering, receiving and shipping goods.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, Float, Identifier, String
from protean.utils.globals import current_domain

from stockroom.catalog.company import Company
from stockroom.catalog.customer import Customer
from stockroom.catalog.product import Product
from stockroom.domain import stockroom
from stockroom.ledger.movement import MovementType
from stockroom.ledger.writer import StockLedger

OPENING_BALANCE_REASON = "Opening balance"


@stockroom.command(part_of="Product")
class RegisterProduct:
    tenant_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    sku = String(required=True, max_length=100)
    cost_per_unit = Float(default=0.0)
    opening_stock = Float(default=0.0)
    location = String(max_length=100)
    minimum_stock_level = Float(default=0.0)
    acting_user = String(required=True, max_length=255)


@stockroom.command(part_of="Company")
class RegisterCompany:
    tenant_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    is_supplier = Boolean(default=False)
    is_customer = Boolean(default=False)
    email = String(max_length=254)
    phone = String(max_length=30)


@stockroom.command(part_of="Customer")
class RegisterCustomer:
    tenant_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    email = String(max_length=254)
    phone = String(max_length=30)


@stockroom.command_handler(part_of=Product)
class RegisterProductHandler:
    @handle(RegisterProduct)
    def register_product(self, command):
        repo = current_domain.repository_for(Product)
        if repo.find_by_sku(command.tenant_id, command.sku):
            raise ValidationError({"sku": [f"A product with SKU {command.sku} already exists"]})
        if (command.opening_stock or 0) < 0:
            raise ValidationError({"opening_stock": ["Opening stock cannot be negative"]})

        product = Product.register(
            tenant_id=command.tenant_id,
            name=command.name,
            sku=command.sku,
            cost_per_unit=command.cost_per_unit or 0.0,
            location=command.location,
            minimum_stock_level=command.minimum_stock_level or 0.0,
        )
        # Opening stock enters through the ledger like any other movement
        if command.opening_stock:
            with StockLedger(command.tenant_id, command.acting_user) as ledger:
                ledger.track(product)
                ledger.record(
                    product.id,
                    MovementType.STOCK_IN,
                    command.opening_stock,
                    reason=OPENING_BALANCE_REASON,
                    to_location=command.location,
                )
        else:
            repo.add(product)
        return str(product.id)


@stockroom.command_handler(part_of=Company)
class RegisterCompanyHandler:
    @handle(RegisterCompany)
    def register_company(self, command):
        company = Company.register(
            tenant_id=command.tenant_id,
            name=command.name,
            is_supplier=command.is_supplier,
            is_customer=command.is_customer,
            email=command.email,
            phone=command.phone,
        )
        current_domain.repository_for(Company).add(company)
        return str(company.id)


@stockroom.command_handler(part_of=Customer)
class RegisterCustomerHandler:
    @handle(RegisterCustomer)
    def register_customer(self, command):
        customer = Customer.register(
            tenant_id=command.tenant_id,
            name=command.name,
            email=command.email,
            phone=command.phone,
        )
        current_domain.repository_for(Customer).add(customer)
        return str(customer.id)
