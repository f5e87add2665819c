"""Stockroom bounded context — purchasing, receiving, stock ledger and sales fulfillment.

A single domain so that a command touching several aggregates (receipt
completion, shipment) commits them in one Unit of Work.
"""

import structlog
from protean.domain import Domain

stockroom = Domain(name="stockroom")

logger = structlog.get_logger(__name__)
