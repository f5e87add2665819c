"""Tenant-scoped document numbers: ``PO-2026-0001``, ``REC-2026-0001``, ``SO-20261019-0001``.

Each (tenant, prefix, period) pair owns a ``DocumentSequence`` aggregate. The
sequence is advanced and saved inside the Unit of Work that creates the
document, so a rolled-back creation leaves a gap but never hands the same
number out twice: two transactions advancing the same sequence from the same
version cannot both commit.
"""

from datetime import UTC, datetime

from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from stockroom.domain import stockroom

PURCHASE_ORDER_PREFIX = "PO"
RECEIPT_PREFIX = "REC"
SALES_ORDER_PREFIX = "SO"


@stockroom.aggregate
class DocumentSequence:
    sequence_key = String(identifier=True, max_length=200)
    tenant_id = Identifier(required=True)
    prefix = String(required=True, max_length=10)
    period = String(required=True, max_length=10)
    last_value = Integer(default=0)

    def advance(self) -> int:
        self.last_value = (self.last_value or 0) + 1
        return self.last_value


def sequence_key(tenant_id, prefix, period) -> str:
    return f"{tenant_id}:{prefix}:{period}"


def format_number(prefix, period, value) -> str:
    return f"{prefix}-{period}-{value:04d}"


def yearly_period(now=None) -> str:
    return str((now or datetime.now(UTC)).year)


def daily_period(now=None) -> str:
    return (now or datetime.now(UTC)).strftime("%Y%m%d")


def next_document_number(tenant_id, prefix, period) -> str:
    """Advance the tenant's sequence for ``prefix``/``period`` and format the next number."""
    repo = current_domain.repository_for(DocumentSequence)
    key = sequence_key(tenant_id, prefix, period)
    try:
        sequence = repo.get(key)
    except ObjectNotFoundError:
        sequence = DocumentSequence(
            sequence_key=key,
            tenant_id=tenant_id,
            prefix=prefix,
            period=period,
        )

    value = sequence.advance()
    repo.add(sequence)
    return format_number(prefix, period, value)
