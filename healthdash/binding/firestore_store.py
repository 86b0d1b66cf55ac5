"""
Firestore-backed document store.

Firestore watches call back on a background thread; every callback is
marshalled onto the owning event loop with ``call_soon_threadsafe`` so
binders only ever see snapshots on the loop thread.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from healthdash.binding.query import CollectionQuery, DocumentQuery
from healthdash.binding.store import DocumentStore, InMemoryStore, OnError, OnNext, Unsubscribe
from healthdash.core.config import config

log = logging.getLogger(__name__)


def create_firestore_client(project_id: str | None = None) -> Any:
    """Initialise firebase-admin once and return a Firestore client."""
    import firebase_admin
    from firebase_admin import firestore

    try:
        firebase_admin.initialize_app(options={"projectId": project_id} if project_id else None)
    except ValueError:
        log.info("Firebase app already initialized")
    return firestore.client()


class FirestoreStore(DocumentStore):
    """Adapter over ``google-cloud-firestore`` ``on_snapshot`` watches."""

    def __init__(
        self,
        client: Any = None,
        project_id: str | None = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self._client = client if client is not None else create_firestore_client(project_id)
        self._loop = loop

    def _owning_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _build_query(self, query: CollectionQuery) -> Any:
        from google.cloud.firestore_v1.base_query import FieldFilter

        ref = self._client.collection(query.path)
        for f in query.filters:
            value = list(f.value) if isinstance(f.value, tuple) else f.value
            ref = ref.where(filter=FieldFilter(f.field, f.op, value))
        return ref

    def _watch(self, target: Any, to_snapshot, on_next: OnNext, on_error: OnError) -> Unsubscribe:
        loop = self._owning_loop()

        def callback(docs, changes, read_time):
            # runs on the Firestore watch thread
            try:
                snapshot = to_snapshot(docs)
            except Exception as exc:
                log.error(f"Error materializing Firestore snapshot: {exc}")
                loop.call_soon_threadsafe(on_error, exc)
                return
            loop.call_soon_threadsafe(on_next, snapshot)

        try:
            watch = target.on_snapshot(callback)
        except Exception as exc:
            log.error(f"Error attaching Firestore listener: {exc}")
            loop.call_soon(on_error, exc)
            return lambda: None
        return watch.unsubscribe

    def subscribe_collection(self, query: CollectionQuery, on_next: OnNext, on_error: OnError) -> Unsubscribe:
        def to_snapshot(docs):
            return [{"id": d.id, **(d.to_dict() or {})} for d in docs]

        return self._watch(self._build_query(query), to_snapshot, on_next, on_error)

    def subscribe_document(self, query: DocumentQuery, on_next: OnNext, on_error: OnError) -> Unsubscribe:
        def to_snapshot(docs):
            doc = docs[0] if docs else None
            if doc is None or not doc.exists:
                return None
            return {"id": doc.id, **(doc.to_dict() or {})}

        return self._watch(self._client.document(query.path), to_snapshot, on_next, on_error)


def open_store(
    backend: str | None = None,
    loop: Optional[asyncio.AbstractEventLoop] = None,
    seed: bool = True,
) -> DocumentStore:
    """Build the store named by ``STORE_BACKEND`` ("memory" or "firestore")."""
    backend = (backend or config.store_backend).lower()
    if backend == "firestore":
        log.info(f"Using Firestore store (project={config.firestore_project_id or 'default'})")
        return FirestoreStore(project_id=config.firestore_project_id or None, loop=loop)
    if backend != "memory":
        raise ValueError(f"Unknown store backend: {backend!r}")

    store = InMemoryStore(loop=loop)
    if seed:
        store.seed_demo_data(config.patient_id)
    return store
