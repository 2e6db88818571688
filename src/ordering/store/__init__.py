"""Order store factory.

``build_store`` picks the adapter from settings once at startup. It never
returns a degraded store: a misconfigured Firestore raises
``StoreUnavailableError`` and the application refuses to start.
"""

from ordering.store.memory_adapter import InMemoryOrderStore
from ordering.store.port import OrderStore
from shared.errors import StoreUnavailableError
from shared.settings import Settings


def build_store(settings: Settings) -> OrderStore:
    if settings.STORE_BACKEND == "memory":
        if settings.is_production:
            raise StoreUnavailableError("The in-memory store cannot be used in production")
        return InMemoryOrderStore()

    from ordering.store.firestore_adapter import FirestoreOrderStore, build_firestore_client

    return FirestoreOrderStore(build_firestore_client(settings))


__all__ = ["OrderStore", "InMemoryOrderStore", "build_store"]
