"""Customer aggregate — the buyer a sales order may be placed for."""

from datetime import UTC, datetime

from protean.fields import DateTime, Identifier, String

from stockroom.domain import stockroom


@stockroom.aggregate
class Customer:
    tenant_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    email = String(max_length=254)
    phone = String(max_length=30)
    created_at = DateTime()

    @classmethod
    def register(cls, tenant_id, name, email=None, phone=None):
        return cls(
            tenant_id=tenant_id,
            name=name,
            email=email,
            phone=phone,
            created_at=datetime.now(UTC),
        )
