"""Shared plumbing for the third-party REST wrappers."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from healthdash.core.config import config

JSON_HEADERS = {"Accept": "application/json"}


class LookupClient:
    """Single-shot request/response wrapper around ``httpx.AsyncClient``.

    Pass ``http`` to share a client (or to inject a mock transport in
    tests); otherwise a short-lived client is opened per call.
    """

    def __init__(self, http: Optional[httpx.AsyncClient] = None, timeout: Optional[float] = None):
        self._http = http
        self._timeout = timeout if timeout is not None else config.http_timeout_seconds

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http is not None:
            yield self._http
            return
        async with httpx.AsyncClient(timeout=self._timeout, headers=JSON_HEADERS) as client:
            yield client
