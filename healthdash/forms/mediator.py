"""
Form-Action Mediator -- one form bound to one-shot action calls.

  submit(fields)  required field missing -> error state, action not called
                  otherwise -> pending=True, await action, publish
                  ``{result, error}`` (never both)
  close()         state back to initial, pending cleared; anything still
                  in flight for the old session is dropped when it lands

All state changes go through ``_dispatch`` so listeners see every
transition, and ``pending`` is a real flag rather than something a view
has to infer.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Mapping, Optional

from healthdash.core.errors import HealthDashError, UnexpectedError
from healthdash.core.schemas import FormState

log = logging.getLogger(__name__)

FormAction = Callable[[Mapping[str, object]], Awaitable[FormState]]


def initial_state() -> FormState:
    return FormState(result=None, error=None)


class FormActionMediator:
    def __init__(
        self,
        action: FormAction,
        required: Optional[Mapping[str, str]] = None,
        on_change: Optional[Callable[["FormActionMediator"], None]] = None,
        allow_concurrent: bool = False,
    ):
        """
        Args:
            action: coroutine function taking the field mapping.
            required: field name -> message shown when it is blank.
            on_change: called after every state or pending change.
            allow_concurrent: when False a submit during a pending call is
                ignored; when True calls overlap and the last to settle wins.
        """
        self._action = action
        self._required = dict(required or {})
        self._on_change = on_change
        self._allow_concurrent = allow_concurrent
        self._state = initial_state()
        self._session = 0
        self._in_flight = 0

    @property
    def state(self) -> FormState:
        return self._state

    @property
    def result(self):
        return self._state.result

    @property
    def error(self) -> Optional[str]:
        return self._state.error

    @property
    def pending(self) -> bool:
        return self._in_flight > 0

    def _dispatch(self, state: FormState) -> None:
        if state.error is not None and state.result is not None:
            state = FormState(result=None, error=state.error)
        self._state = state
        if self._on_change is not None:
            self._on_change(self)

    def _missing_field(self, fields: Mapping[str, object]) -> Optional[str]:
        for name, message in self._required.items():
            value = fields.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                return message
        return None

    async def submit(self, fields: Mapping[str, object]) -> FormState:
        if self.pending and not self._allow_concurrent:
            log.debug("Submit ignored: a submission is already pending")
            return self._state

        missing = self._missing_field(fields)
        if missing is not None:
            self._dispatch(FormState(result=None, error=missing))
            return self._state

        session = self._session
        self._in_flight += 1
        self._dispatch(self._state)
        try:
            outcome = await self._action(fields)
        except HealthDashError as exc:
            log.error(f"Form action failed: {exc.message}")
            outcome = FormState(result=None, error=exc.message)
        except Exception as exc:
            log.error(f"Form action raised unexpectedly: {exc}")
            outcome = FormState(result=None, error=UnexpectedError().message)
        except asyncio.CancelledError:
            if session == self._session:
                self._in_flight -= 1
                self._dispatch(self._state)
            raise

        if session != self._session:
            log.info("Dropping form result for a closed dialog")
            return self._state

        self._in_flight -= 1
        self._dispatch(outcome)
        return self._state

    def close(self) -> None:
        self._session += 1
        self._in_flight = 0
        self._dispatch(initial_state())
