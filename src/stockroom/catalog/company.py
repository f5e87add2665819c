"""Company aggregate — a trading partner that may supply goods, buy them, or both."""

from datetime import UTC, datetime

from protean.fields import Boolean, DateTime, Identifier, String

from stockroom.domain import stockroom


@stockroom.aggregate
class Company:
    tenant_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    is_supplier = Boolean(default=False)
    is_customer = Boolean(default=False)
    email = String(max_length=254)
    phone = String(max_length=30)
    created_at = DateTime()

    @classmethod
    def register(cls, tenant_id, name, is_supplier=False, is_customer=False, email=None, phone=None):
        return cls(
            tenant_id=tenant_id,
            name=name,
            is_supplier=bool(is_supplier),
            is_customer=bool(is_customer),
            email=email,
            phone=phone,
            created_at=datetime.now(UTC),
        )
