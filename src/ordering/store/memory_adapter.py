"""In-memory order store for development and testing.

Mirrors the Firestore adapter's semantics (merge updates, nested-field charge
lookup, batch cart deletion) without any external calls, and records every
write so tests can assert on side effects.
"""

import copy
from uuid import uuid4

from protean.exceptions import ObjectNotFoundError

from ordering.store.port import CART, ORDERS, PAYMENTS, REFUNDS, USERS, OrderStore
from shared.errors import StoreError


class InMemoryOrderStore(OrderStore):
    """Order store backed by plain dicts."""

    def __init__(self) -> None:
        self.collections: dict[str, dict[str, dict]] = {}
        self.writes: list[dict] = []
        self.failure: StoreError | None = None
        self.failing_operations: set[str] = set()

    def configure(self, failure: StoreError | None = None, operations: set[str] | None = None) -> None:
        """Make the named operations (or all, when ``operations`` is None) raise ``failure``."""
        self.failure = failure
        self.failing_operations = set(operations or ())

    def reset(self) -> None:
        self.collections.clear()
        self.writes.clear()
        self.failure = None
        self.failing_operations = set()

    def _check(self, operation: str) -> None:
        if self.failure is not None and (not self.failing_operations or operation in self.failing_operations):
            raise self.failure

    def _collection(self, name: str) -> dict[str, dict]:
        return self.collections.setdefault(name, {})

    def _record_write(self, operation: str, key: str, data: dict | None = None) -> None:
        self.writes.append({"operation": operation, "key": key, "data": copy.deepcopy(data)})

    # -------------------------------------------------------------------
    # Orders
    # -------------------------------------------------------------------
    async def create_pending_order(self, document: dict, order_id: str | None = None) -> str:
        self._check("create_pending_order")
        order_id = order_id or uuid4().hex[:20]
        self._collection(ORDERS)[order_id] = copy.deepcopy(document)
        self._record_write("create_pending_order", order_id, document)
        return order_id

    async def get_order(self, order_id: str) -> dict | None:
        self._check("get_order")
        document = self._collection(ORDERS).get(order_id)
        return copy.deepcopy(document) if document is not None else None

    async def update_order(self, order_id: str, fields: dict) -> None:
        self._check("update_order")
        orders = self._collection(ORDERS)
        if order_id not in orders:
            raise ObjectNotFoundError({"_entity": f"Order {order_id} not found"})
        orders[order_id].update(copy.deepcopy(fields))
        self._record_write("update_order", order_id, fields)

    async def find_order_by_charge_id(self, charge_id: str) -> tuple[str, dict] | None:
        self._check("find_order_by_charge_id")
        for order_id, document in self._collection(ORDERS).items():
            payment_data = document.get("paymentData") or {}
            if payment_data.get("latest_charge") == charge_id:
                return order_id, copy.deepcopy(document)
        return None

    # -------------------------------------------------------------------
    # Cart, payment and refund records
    # -------------------------------------------------------------------
    def seed_cart(self, user_id: str, items: list[dict]) -> None:
        cart = self._collection(f"{USERS}/{user_id}/{CART}")
        for item in items:
            cart[item.get("id") or uuid4().hex[:12]] = dict(item)

    def cart_items(self, user_id: str) -> list[dict]:
        return list(self._collection(f"{USERS}/{user_id}/{CART}").values())

    async def clear_cart(self, user_id: str) -> int:
        self._check("clear_cart")
        cart = self._collection(f"{USERS}/{user_id}/{CART}")
        count = len(cart)
        cart.clear()
        self._record_write("clear_cart", user_id)
        return count

    async def record_payment(self, order_id: str, record: dict) -> None:
        self._check("record_payment")
        self._collection(PAYMENTS).setdefault(order_id, {}).update(copy.deepcopy(record))
        self._record_write("record_payment", order_id, record)

    async def record_refund(self, key: str, record: dict) -> None:
        self._check("record_refund")
        self._collection(REFUNDS)[key] = copy.deepcopy(record)
        self._record_write("record_refund", key, record)
