"""
Base flow abstraction for the HealthDash generative layer.

Every AI-backed operation is wrapped as an independent flow that
conforms to this interface. The BaseFlow provides:

  - Automatic execution timing and structured telemetry
  - Error boundary isolation (a flow failure never reaches the view layer)
  - Execution counters for observability (runs, failures, total time)
  - Graceful degradation (demo output when no inference backend is set)
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable

from healthdash.core.inference_client import get_inference_backend
from healthdash.core.schemas import FlowResult


class BaseFlow(ABC):
    """Abstract base class for all generative flows.

    Callers interact through:

        await flow.run(input)      -> typed output, raises on failure
        await flow.execute(input)  -> FlowResult envelope, never raises
        flow.telemetry             -> cumulative execution statistics

    Subclasses implement:
        _process(data) -> blocking inference + parsing (runs in a worker thread)
        _demo(data)    -> deterministic output for demo mode
    """

    def __init__(self, name: str, model_id: str, backend: Callable[..., str] | None = None):
        self.name = name
        self.model_id = model_id
        self.logger = logging.getLogger(f"flow.{name}")
        # Injected backend callable; None means "use the inference client"
        self._backend = backend

        # --- Telemetry counters ---
        self._execution_count: int = 0
        self._failure_count: int = 0
        self._total_time_ms: float = 0.0
        self._last_execution_ms: float = 0.0

    @property
    def demo_mode(self) -> bool:
        return self._backend is None and get_inference_backend() == "demo_fallback"

    # ------------------------------------------------------------------
    # Telemetry
    # ------------------------------------------------------------------

    @property
    def telemetry(self) -> dict:
        """Cumulative execution statistics for observability."""
        return {
            "flow_name": self.name,
            "model_id": self.model_id,
            "demo_mode": self.demo_mode,
            "execution_count": self._execution_count,
            "failure_count": self._failure_count,
            "success_rate": (
                round(1 - self._failure_count / self._execution_count, 4)
                if self._execution_count > 0
                else None
            ),
            "total_time_ms": round(self._total_time_ms, 1),
            "avg_time_ms": (
                round(self._total_time_ms / self._execution_count, 1)
                if self._execution_count > 0
                else None
            ),
            "last_execution_ms": round(self._last_execution_ms, 1),
        }

    def _record(self, start: float, failed: bool) -> float:
        elapsed_ms = (time.perf_counter() - start) * 1000
        self._total_time_ms += elapsed_ms
        self._last_execution_ms = elapsed_ms
        if failed:
            self._failure_count += 1
        return elapsed_ms

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    @abstractmethod
    def _process(self, input_data: Any) -> Any:
        """Core processing logic -- override in subclass."""

    @abstractmethod
    def _demo(self, input_data: Any) -> Any:
        """Output returned when no inference backend is configured."""

    def _invoke(self, input_data: Any) -> Any:
        if self.demo_mode:
            self.logger.warning(f"Flow '{self.name}' has no inference backend -- returning demo output.")
            return self._demo(input_data)
        return self._process(input_data)

    async def run(self, input_data: Any) -> Any:
        """Run the flow with timing and telemetry. Failures propagate."""
        self._execution_count += 1
        start = time.perf_counter()
        try:
            result = await asyncio.to_thread(self._invoke, input_data)
        except Exception:
            self._record(start, failed=True)
            raise
        self._record(start, failed=False)
        return result

    async def execute(self, input_data: Any) -> FlowResult:
        """Run the flow behind an error boundary.

        Returns a FlowResult envelope containing:
          - success status
          - output data (or None on failure)
          - error message and exception type (if failed)
          - processing time in milliseconds
          - model identifier
        """
        start = time.perf_counter()
        try:
            result = await self.run(input_data)
        except Exception as exc:
            elapsed_ms = (time.perf_counter() - start) * 1000
            self.logger.error(f"Flow '{self.name}' execution error: {exc}")
            return FlowResult(
                flow_name=self.name,
                success=False,
                error=getattr(exc, "message", None) or str(exc),
                error_type=type(exc).__name__,
                processing_time_ms=round(elapsed_ms, 1),
                model_used=self.model_id,
            )
        elapsed_ms = (time.perf_counter() - start) * 1000
        return FlowResult(
            flow_name=self.name,
            success=True,
            data=result,
            processing_time_ms=round(elapsed_ms, 1),
            model_used=self.model_id,
        )
