"""
Subscription Binder -- keeps a view's ``{data, loading, error}`` snapshot in
step with one live store subscription.

Lifecycle:

  set_query(q)   q equal (by value) to the current query -> no-op
                 otherwise: tear down the old watch, start a new one,
                 loading=True until its first snapshot or error
  set_query(None) / unmount()
                 tear down synchronously, loading=False

Every subscription gets a generation number. Callbacks close over the
generation they were created for and are dropped if the binder has since
moved on, so a snapshot that was already queued when the watch was torn
down cannot overwrite newer state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Generic, Optional, TypeVar

from healthdash.binding.query import CollectionQuery, QueryIdentity
from healthdash.binding.store import DocumentStore, Snapshot, Unsubscribe

log = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class SubscriptionResult(Generic[T]):
    data: Optional[T] = None
    loading: bool = True
    error: Optional[Exception] = None


class SubscriptionBinder(Generic[T]):
    """Binds one query identity at a time to a store.

    ``parse`` turns each raw record dict into a view model (for example a
    pydantic model's ``model_validate``); records that fail to parse are
    logged and skipped.
    """

    def __init__(
        self,
        store: Optional[DocumentStore],
        query: Optional[QueryIdentity] = None,
        parse: Optional[Callable[[dict], Any]] = None,
        on_change: Optional[Callable[[SubscriptionResult], None]] = None,
    ):
        self._store = store
        self._parse = parse
        self._on_change = on_change
        self._query: Optional[QueryIdentity] = None
        self._unsubscribe: Optional[Unsubscribe] = None
        self._generation = 0
        self._mounted = True
        self._state: SubscriptionResult = SubscriptionResult(loading=False)
        self.set_query(query, force=True)

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    @property
    def state(self) -> SubscriptionResult:
        return self._state

    @property
    def data(self):
        return self._state.data

    @property
    def loading(self) -> bool:
        return self._state.loading

    @property
    def error(self) -> Optional[Exception]:
        return self._state.error

    @property
    def query(self) -> Optional[QueryIdentity]:
        return self._query

    @property
    def is_subscribed(self) -> bool:
        return self._unsubscribe is not None

    def set_store(self, store: Optional[DocumentStore]) -> None:
        """Swap the connection handle; resubscribes the current query."""
        if store is self._store:
            return
        self._store = store
        self.set_query(self._query, force=True)

    def set_query(self, query: Optional[QueryIdentity], force: bool = False) -> None:
        if not self._mounted:
            raise RuntimeError("Binder has been unmounted")
        if not force and query == self._query:
            return
        self._teardown()
        self._query = query

        if query is None or self._store is None:
            # nothing to watch yet
            self._set_state(replace(self._state, loading=False))
            return

        self._generation += 1
        generation = self._generation
        self._set_state(replace(self._state, loading=True, error=None))

        def on_next(snapshot: Snapshot) -> None:
            if generation != self._generation:
                log.debug(f"Dropping stale snapshot for {query.path}")
                return
            self._set_state(SubscriptionResult(data=self._materialize(snapshot), loading=False, error=None))

        def on_error(exc: Exception) -> None:
            if generation != self._generation:
                return
            log.error(f"Error fetching {query.path}: {exc}")
            # errored watches are dead; release the handle but keep the data
            self._generation += 1
            unsubscribe, self._unsubscribe = self._unsubscribe, None
            if unsubscribe is not None:
                unsubscribe()
            self._set_state(SubscriptionResult(data=self._state.data, loading=False, error=exc))

        self._unsubscribe = self._store.subscribe(query, on_next, on_error)

    def unmount(self) -> None:
        self._teardown()
        self._mounted = False

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _teardown(self) -> None:
        # bump first so anything already queued for the old watch is stale
        self._generation += 1
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()

    def _materialize(self, snapshot: Snapshot):
        if snapshot is None:
            return None
        if isinstance(self._query, CollectionQuery):
            return [item for item in (self._parse_record(r) for r in snapshot) if item is not None]
        return self._parse_record(snapshot)

    def _parse_record(self, record: dict):
        if self._parse is None:
            return record
        try:
            return self._parse(record)
        except ValueError as exc:
            log.warning(f"Skipping malformed record {record.get('id')!r}: {exc}")
            return None

    def _set_state(self, state: SubscriptionResult) -> None:
        self._state = state
        if self._on_change is not None:
            self._on_change(state)
