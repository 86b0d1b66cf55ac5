"""
Query identities for the Subscription Binder.

A query identity says *what* to watch: a collection (optionally filtered)
or a single document. Identities are frozen dataclasses, so two identities
built separately for the same path and filters compare and hash equal.
That value equality is what lets a binder skip resubscribing when a view
rebuilds an identical query on every render.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

SUPPORTED_OPS = ("==", "!=", "<", "<=", ">", ">=", "in", "not-in", "array-contains")


def _freeze(value: Any) -> Any:
    if isinstance(value, (list, set)):
        return tuple(_freeze(v) for v in value)
    if isinstance(value, dict):
        return tuple(sorted((k, _freeze(v)) for k, v in value.items()))
    return value


def _split_path(path: str) -> list[str]:
    segments = [s for s in path.strip("/").split("/") if s]
    if not segments:
        raise ValueError("Store paths must not be empty")
    return segments


@dataclass(frozen=True)
class FieldFilter:
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in SUPPORTED_OPS:
            raise ValueError(f"Unsupported filter operator {self.op!r}")
        object.__setattr__(self, "value", _freeze(self.value))

    def matches(self, record: dict) -> bool:
        if self.field not in record:
            return False
        actual = record[self.field]
        try:
            if self.op == "==":
                return actual == self.value
            if self.op == "!=":
                return actual != self.value
            if self.op == "<":
                return actual < self.value
            if self.op == "<=":
                return actual <= self.value
            if self.op == ">":
                return actual > self.value
            if self.op == ">=":
                return actual >= self.value
            if self.op == "in":
                return actual in self.value
            if self.op == "not-in":
                return actual not in self.value
            return isinstance(actual, (list, tuple)) and self.value in actual
        except TypeError:
            # mixed types never match, same as the remote store
            return False


@dataclass(frozen=True)
class CollectionQuery:
    path: str
    filters: tuple[FieldFilter, ...] = field(default=())

    def __post_init__(self):
        segments = _split_path(self.path)
        if len(segments) % 2 == 0:
            raise ValueError(f"{self.path!r} is a document path, not a collection path")
        object.__setattr__(self, "path", "/".join(segments))
        object.__setattr__(self, "filters", tuple(self.filters))

    def where(self, field_name: str, op: str, value: Any) -> "CollectionQuery":
        return CollectionQuery(self.path, self.filters + (FieldFilter(field_name, op, value),))

    def matches(self, record: dict) -> bool:
        return all(f.matches(record) for f in self.filters)


@dataclass(frozen=True)
class DocumentQuery:
    path: str

    def __post_init__(self):
        segments = _split_path(self.path)
        if len(segments) % 2 != 0:
            raise ValueError(f"{self.path!r} is a collection path, not a document path")
        object.__setattr__(self, "path", "/".join(segments))

    @property
    def collection_path(self) -> str:
        return self.path.rsplit("/", 1)[0]

    @property
    def document_id(self) -> str:
        return self.path.rsplit("/", 1)[1]


QueryIdentity = Union[CollectionQuery, DocumentQuery]


def collection(path: str) -> CollectionQuery:
    return CollectionQuery(path)


def document(path: str, *more: str) -> DocumentQuery:
    """``document("patientProfiles/jane-doe")`` or ``document("patientProfiles", "jane-doe")``."""
    return DocumentQuery("/".join((path,) + more))
