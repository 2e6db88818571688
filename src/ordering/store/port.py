"""Order store port (abstract interface).

Defines the contract that document store adapters must implement. Lookups
return ``None`` for a missing document instead of raising; infrastructure
failures raise ``StoreError`` (or ``StoreUnavailableError`` when the store
cannot be reached at all).
"""

from abc import ABC, abstractmethod

ORDERS = "orders"
PAYMENTS = "payments"
REFUNDS = "refunds"
USERS = "users"
CART = "cart"


def refund_record_key(charge_id: str, amount_refunded: int) -> str:
    """Refund records are keyed so a re-delivered event overwrites itself."""
    return f"{charge_id}-{amount_refunded}"


class OrderStore(ABC):
    """Abstract order store interface."""

    @abstractmethod
    async def create_pending_order(self, document: dict, order_id: str | None = None) -> str:
        """Insert a new order document and return its id."""
        ...

    @abstractmethod
    async def get_order(self, order_id: str) -> dict | None:
        ...

    @abstractmethod
    async def update_order(self, order_id: str, fields: dict) -> None:
        """Merge ``fields`` into an existing order; untouched fields survive.

        Raises ``ObjectNotFoundError`` when the order does not exist.
        """
        ...

    @abstractmethod
    async def find_order_by_charge_id(self, charge_id: str) -> tuple[str, dict] | None:
        """Return ``(order_id, document)`` for the order whose captured charge matches."""
        ...

    @abstractmethod
    async def clear_cart(self, user_id: str) -> int:
        """Delete every item in the buyer's cart in one batch; return the count."""
        ...

    @abstractmethod
    async def record_payment(self, order_id: str, record: dict) -> None:
        ...

    @abstractmethod
    async def record_refund(self, key: str, record: dict) -> None:
        ...
