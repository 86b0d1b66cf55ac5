"""
Document/collection store contract and the in-process realtime store.

A store hands out live subscriptions. Each subscription delivers a full
snapshot on every change (no diffs):

  collection query -> list[dict], ordered by document id, each with "id"
  document query   -> dict with "id", or None when the document is absent

Errors are delivered through ``on_error``; a subscription that errored
is dead and delivers nothing further.
"""

from __future__ import annotations

import asyncio
import copy
import itertools
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

from healthdash.binding.query import CollectionQuery, DocumentQuery, QueryIdentity

log = logging.getLogger(__name__)

Snapshot = Any  # list[dict] for collections, dict | None for documents
OnNext = Callable[[Snapshot], None]
OnError = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


class DocumentStore(ABC):
    """Subscribable reads over structured records."""

    @abstractmethod
    def subscribe_collection(self, query: CollectionQuery, on_next: OnNext, on_error: OnError) -> Unsubscribe:
        """Watch a collection. Returns a callable that stops the watch."""

    @abstractmethod
    def subscribe_document(self, query: DocumentQuery, on_next: OnNext, on_error: OnError) -> Unsubscribe:
        """Watch a single document. Returns a callable that stops the watch."""

    def subscribe(self, query: QueryIdentity, on_next: OnNext, on_error: OnError) -> Unsubscribe:
        if isinstance(query, CollectionQuery):
            return self.subscribe_collection(query, on_next, on_error)
        if isinstance(query, DocumentQuery):
            return self.subscribe_document(query, on_next, on_error)
        raise TypeError(f"Not a query identity: {query!r}")


@dataclass
class _Listener:
    listener_id: int
    query: QueryIdentity
    on_next: OnNext
    on_error: OnError
    active: bool = True


class InMemoryStore(DocumentStore):
    """Realtime store kept in process memory.

    Snapshots are delivered asynchronously through the event loop in the
    order writes happen, the way a remote store delivers them. Used for
    local development, the demo and the tests.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._collections: dict[str, dict[str, dict]] = {}
        self._listeners: dict[int, _Listener] = {}
        self._ids = itertools.count(1)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def active_listener_count(self) -> int:
        return sum(1 for listener in self._listeners.values() if listener.active)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _collection_snapshot(self, query: CollectionQuery) -> list[dict]:
        docs = self._collections.get(query.path, {})
        return [
            {"id": doc_id, **copy.deepcopy(data)}
            for doc_id, data in sorted(docs.items())
            if query.matches(data)
        ]

    def _document_snapshot(self, query: DocumentQuery) -> Optional[dict]:
        data = self._collections.get(query.collection_path, {}).get(query.document_id)
        if data is None:
            return None
        return {"id": query.document_id, **copy.deepcopy(data)}

    def _snapshot(self, query: QueryIdentity) -> Snapshot:
        if isinstance(query, CollectionQuery):
            return self._collection_snapshot(query)
        return self._document_snapshot(query)

    def get(self, query: QueryIdentity) -> Snapshot:
        """One-shot read of the current snapshot."""
        return self._snapshot(query)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def _schedule(self, callback: Callable, *args) -> None:
        if self._loop is not None:
            self._loop.call_soon_threadsafe(callback, *args)
            return
        try:
            asyncio.get_running_loop().call_soon(callback, *args)
        except RuntimeError:
            # no loop: deliver inline
            callback(*args)

    def _deliver(self, listener: _Listener) -> None:
        if listener.active:
            listener.on_next(self._snapshot(listener.query))

    def _add_listener(self, query: QueryIdentity, on_next: OnNext, on_error: OnError) -> Unsubscribe:
        listener = _Listener(next(self._ids), query, on_next, on_error)
        self._listeners[listener.listener_id] = listener
        log.debug(f"Listener {listener.listener_id} attached to {query.path}")
        self._schedule(self._deliver, listener)

        def unsubscribe() -> None:
            listener.active = False
            if self._listeners.pop(listener.listener_id, None) is not None:
                log.debug(f"Listener {listener.listener_id} detached from {query.path}")

        return unsubscribe

    def subscribe_collection(self, query: CollectionQuery, on_next: OnNext, on_error: OnError) -> Unsubscribe:
        return self._add_listener(query, on_next, on_error)

    def subscribe_document(self, query: DocumentQuery, on_next: OnNext, on_error: OnError) -> Unsubscribe:
        return self._add_listener(query, on_next, on_error)

    def _notify(self, collection_path: str, doc_id: str) -> None:
        for listener in list(self._listeners.values()):
            query = listener.query
            if isinstance(query, CollectionQuery) and query.path == collection_path:
                self._schedule(self._deliver, listener)
            elif isinstance(query, DocumentQuery) and query.path == f"{collection_path}/{doc_id}":
                self._schedule(self._deliver, listener)

    def fail_listeners(self, exc: Exception, path: Optional[str] = None) -> int:
        """Deliver ``exc`` to every listener (or those on ``path``) and drop them."""
        failed = 0
        for listener in list(self._listeners.values()):
            if path is not None and listener.query.path != path:
                continue
            self._listeners.pop(listener.listener_id, None)

            def _fail(target: _Listener = listener) -> None:
                if target.active:
                    target.active = False
                    target.on_error(exc)

            self._schedule(_fail)
            failed += 1
        return failed

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    def _split_document_path(path: str) -> tuple[str, str]:
        query = DocumentQuery(path)
        return query.collection_path, query.document_id

    def set_document(self, path: str, data: dict, merge: bool = False) -> None:
        collection_path, doc_id = self._split_document_path(path)
        docs = self._collections.setdefault(collection_path, {})
        record = {k: v for k, v in data.items() if k != "id"}
        if merge and doc_id in docs:
            docs[doc_id].update(copy.deepcopy(record))
        else:
            docs[doc_id] = copy.deepcopy(record)
        self._notify(collection_path, doc_id)

    def add_document(self, collection_path: str, data: dict) -> str:
        doc_id = uuid.uuid4().hex[:20]
        self.set_document(f"{CollectionQuery(collection_path).path}/{doc_id}", data)
        return doc_id

    def delete_document(self, path: str) -> bool:
        collection_path, doc_id = self._split_document_path(path)
        removed = self._collections.get(collection_path, {}).pop(doc_id, None) is not None
        if removed:
            self._notify(collection_path, doc_id)
        return removed

    # ------------------------------------------------------------------
    # Demo data
    # ------------------------------------------------------------------

    def seed_demo_data(self, patient_id: str = "jane-doe") -> None:
        self.set_document(f"patientProfiles/{patient_id}", {
            "name": "Jane Doe", "age": 34, "bloodType": "O+",
        })
        for doc_id, med in DEMO_MEDICATIONS.items():
            self.set_document(f"medications/{doc_id}", med)
        for doc_id, metric in DEMO_METRICS.items():
            self.set_document(f"healthMetrics/{doc_id}", metric)
        log.info(f"Seeded demo data for patient '{patient_id}'")


DEMO_MEDICATIONS = {
    "med-1": {"name": "Lisinopril", "dosage": "10 mg", "time": "08:00 AM", "icon": "pill"},
    "med-2": {"name": "Metformin", "dosage": "500 mg", "time": "12:00 PM", "icon": "pill"},
    "med-3": {"name": "Vitamin D", "dosage": "1000 IU", "time": "08:00 PM", "icon": "capsule"},
}

DEMO_METRICS = {
    "heart-rate": {
        "name": "Heart Rate", "value": "72", "unit": "bpm", "icon": "heart",
        "data": [{"time": "08:00", "value": 68}, {"time": "12:00", "value": 75}, {"time": "16:00", "value": 72}],
    },
    "blood-pressure": {
        "name": "Blood Pressure", "value": "120/80", "unit": "mmHg", "icon": "activity",
        "data": [{"time": "08:00", "value": 118}, {"time": "12:00", "value": 122}, {"time": "16:00", "value": 120}],
    },
    "blood-oxygen": {
        "name": "Blood Oxygen", "value": "98", "unit": "%", "icon": "droplet",
        "data": [{"time": "08:00", "value": 97}, {"time": "12:00", "value": 98}, {"time": "16:00", "value": 98}],
    },
}
