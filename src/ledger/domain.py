"""Ledger bounded context — per-warehouse stock records and their audit trail.

Tracks on-hand and reserved quantity for every (product, warehouse) pair,
applies stock movements atomically, and keeps an append-only log of every
change to those quantities.
"""

import structlog
from protean.domain import Domain

ledger = Domain(name="ledger")

logger = structlog.get_logger(__name__)
