"""Ordering bounded context — checkout orders, payment state and refunds.

Orders are persisted in the document store through ``ordering.store``; the
protean domain provides the aggregate model, validation and state machine.
"""

from protean.domain import Domain

ordering = Domain(name="ordering")
