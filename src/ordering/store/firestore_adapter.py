"""Firestore order store adapter.

Uses the async Firestore client. Google API failures are translated into
``StoreError``; outages (unavailable / deadline exceeded / retries exhausted)
into ``StoreUnavailableError`` so the HTTP layer can answer 503.
"""

import json
from contextlib import contextmanager

import structlog
from google.api_core.exceptions import (
    DeadlineExceeded,
    GoogleAPICallError,
    NotFound,
    RetryError,
    ServiceUnavailable,
)
from google.auth.exceptions import GoogleAuthError
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter
from google.oauth2 import service_account
from protean.exceptions import ObjectNotFoundError

from ordering.store.port import CART, ORDERS, PAYMENTS, REFUNDS, USERS, OrderStore
from shared.errors import StoreError, StoreUnavailableError
from shared.settings import Settings

logger = structlog.get_logger(__name__)


@contextmanager
def translate_errors(operation: str, **context):
    try:
        yield
    except NotFound as exc:
        raise ObjectNotFoundError({"_entity": f"Document not found during {operation}"}) from exc
    except (ServiceUnavailable, DeadlineExceeded, RetryError) as exc:
        logger.error("firestore_unavailable", operation=operation, error=str(exc), **context)
        raise StoreUnavailableError(f"Document store unavailable during {operation}") from exc
    except GoogleAPICallError as exc:
        logger.error("firestore_call_failed", operation=operation, error=str(exc), **context)
        raise StoreError(f"Document store error during {operation}: {exc.message}") from exc


def build_firestore_client(settings: Settings) -> firestore.AsyncClient:
    """Create the async client from inline JSON, a key file, or ambient credentials.

    Raises ``StoreUnavailableError`` instead of returning a degraded client.
    """
    credentials = None
    project = settings.FIREBASE_PROJECT_ID or None
    try:
        if settings.FIREBASE_SERVICE_ACCOUNT:
            info = json.loads(settings.FIREBASE_SERVICE_ACCOUNT)
            credentials = service_account.Credentials.from_service_account_info(info)
            project = project or info.get("project_id")
        elif settings.FIREBASE_SERVICE_ACCOUNT_PATH:
            credentials = service_account.Credentials.from_service_account_file(settings.FIREBASE_SERVICE_ACCOUNT_PATH)
            project = project or credentials.project_id
        return firestore.AsyncClient(project=project, credentials=credentials)
    except (ValueError, OSError, GoogleAuthError) as exc:
        raise StoreUnavailableError(f"Could not initialise Firestore client: {exc}") from exc


class FirestoreOrderStore(OrderStore):
    def __init__(self, client: firestore.AsyncClient) -> None:
        self.client = client

    def _orders(self):
        return self.client.collection(ORDERS)

    async def create_pending_order(self, document: dict, order_id: str | None = None) -> str:
        reference = self._orders().document(order_id) if order_id else self._orders().document()
        with translate_errors("create_pending_order", order_id=reference.id):
            await reference.set(document)
        logger.info("order_document_created", order_id=reference.id)
        return reference.id

    async def get_order(self, order_id: str) -> dict | None:
        with translate_errors("get_order", order_id=order_id):
            snapshot = await self._orders().document(order_id).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict()

    async def update_order(self, order_id: str, fields: dict) -> None:
        # update() merges top-level keys and fails on a missing document
        with translate_errors("update_order", order_id=order_id):
            await self._orders().document(order_id).update(fields)

    async def find_order_by_charge_id(self, charge_id: str) -> tuple[str, dict] | None:
        query = self._orders().where(filter=FieldFilter("paymentData.latest_charge", "==", charge_id)).limit(1)
        with translate_errors("find_order_by_charge_id", charge_id=charge_id):
            async for snapshot in query.stream():
                return snapshot.id, snapshot.to_dict()
        return None

    async def clear_cart(self, user_id: str) -> int:
        cart = self.client.collection(USERS).document(user_id).collection(CART)
        with translate_errors("clear_cart", user_id=user_id):
            batch = self.client.batch()
            count = 0
            async for snapshot in cart.stream():
                batch.delete(snapshot.reference)
                count += 1
            if count:
                await batch.commit()
        return count

    async def record_payment(self, order_id: str, record: dict) -> None:
        with translate_errors("record_payment", order_id=order_id):
            await self.client.collection(PAYMENTS).document(order_id).set(record, merge=True)

    async def record_refund(self, key: str, record: dict) -> None:
        with translate_errors("record_refund", key=key):
            await self.client.collection(REFUNDS).document(key).set(record)
