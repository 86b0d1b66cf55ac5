"""
Capture-and-Classify workflow for the camera dialog.

Scan states run inside a GRANTED camera session:

  IDLE -> SCANNING      capture(): one frame is grabbed, JPEG-encoded and
                        sent to the classifier
  SCANNING -> SETTLED   the classifier answers or fails, or the ceiling
                        elapses, whichever is first
  SETTLED -> IDLE       immediately after the settled result is published

The classifier call is never cancelled. When it answers after the
ceiling, ``late_result_policy`` decides what happens: ``apply`` replaces
the settled view with the late answer, ``discard`` drops it. Answers for
a closed dialog, or for a capture that has been superseded, are always
dropped.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from healthdash.capture.camera import CameraSession, CameraState
from healthdash.capture.frames import encode_frame
from healthdash.core.config import config
from healthdash.core.errors import HealthDashError, ScanTimeout, UnexpectedError
from healthdash.core.schemas import ClassificationResult, HumanPresence

log = logging.getLogger(__name__)

NO_PERSON_MESSAGE = "The AI could not find a person in the view. Please try again."
CAMERA_UNAVAILABLE_MESSAGE = "Camera is not available. Allow camera access and reopen the dialog."

Classifier = Callable[[str], Awaitable[HumanPresence]]


class ScanState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    SETTLED = "settled"


class LateResultPolicy(str, Enum):
    APPLY = "apply"
    DISCARD = "discard"


class CaptureClassifyWorkflow:
    """Drives one camera dialog: open, capture, classify, close."""

    def __init__(
        self,
        camera: CameraSession,
        classify: Classifier,
        ceiling_seconds: Optional[float] = None,
        jpeg_quality: Optional[float] = None,
        late_result_policy: LateResultPolicy | str | None = None,
        on_change: Optional[Callable[["CaptureClassifyWorkflow"], None]] = None,
    ):
        self.camera = camera
        self._classify = classify
        self.ceiling_seconds = (
            ceiling_seconds if ceiling_seconds is not None else config.capture.scan_ceiling_seconds
        )
        self.jpeg_quality = jpeg_quality if jpeg_quality is not None else config.capture.jpeg_quality
        self.late_result_policy = LateResultPolicy(
            late_result_policy or config.capture.late_result_policy
        )
        self._on_change = on_change

        self._scan_state = ScanState.IDLE
        self._result: Optional[ClassificationResult] = None
        self._error: Optional[str] = None
        # bumped on every open/close; identifies the dialog session
        self._session = 0
        # bumped on every capture; identifies the latest attempt
        self._attempt = 0
        self._pending: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # View-facing state
    # ------------------------------------------------------------------

    @property
    def camera_state(self) -> CameraState:
        return self.camera.state

    @property
    def scan_state(self) -> ScanState:
        return self._scan_state

    @property
    def result(self) -> Optional[ClassificationResult]:
        return self._result

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def can_capture(self) -> bool:
        return self.camera.state == CameraState.GRANTED and self._scan_state != ScanState.SCANNING

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self)

    def _set_scan_state(self, state: ScanState) -> None:
        self._scan_state = state
        self._notify()

    def _reset(self) -> None:
        self._result = None
        self._error = None
        self._scan_state = ScanState.IDLE

    # ------------------------------------------------------------------
    # Dialog lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> CameraState:
        self._session += 1
        self._reset()
        self._notify()
        state = await self.camera.open()
        if state == CameraState.DENIED:
            self._error = self.camera.error
            self._notify()
        return state

    def close(self) -> None:
        self._session += 1
        self.camera.close()
        self._reset()
        self._notify()

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    async def capture(self) -> Optional[ClassificationResult]:
        """Grab a frame and classify it within the ceiling.

        Returns the settled classification, or None when the attempt
        ended without one (error, timeout, dialog closed).
        """
        if self.camera.state != CameraState.GRANTED:
            self._error = CAMERA_UNAVAILABLE_MESSAGE
            self._notify()
            return None
        if self._scan_state == ScanState.SCANNING:
            log.debug("Capture ignored: a scan is already running")
            return None

        session = self._session
        self._attempt += 1
        attempt = self._attempt
        self._result = None
        self._error = None

        self._set_scan_state(ScanState.SCANNING)
        try:
            # camera reads and JPEG encoding block; keep them off the loop
            data_uri = await asyncio.to_thread(self._grab_frame)
        except Exception as exc:
            if session != self._session:
                return None
            log.error(f"Frame capture failed: {exc}")
            self._error = UnexpectedError("Could not capture a frame from the camera.").message
            self._set_scan_state(ScanState.SETTLED)
            self._set_scan_state(ScanState.IDLE)
            return None

        if session != self._session:
            log.info("Dialog closed while grabbing a frame; dropping attempt")
            return None

        task = asyncio.ensure_future(self._classify(data_uri))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        task.add_done_callback(_consume_exception)

        done, _ = await asyncio.wait({task}, timeout=self.ceiling_seconds)

        if session != self._session:
            log.info("Dialog closed during scan; dropping attempt")
            return None

        if task in done:
            self._apply_outcome(task)
        else:
            log.warning(f"Classification exceeded {self.ceiling_seconds}s ceiling; settling without result")
            self._error = ScanTimeout().message
            task.add_done_callback(functools.partial(self._on_late_outcome, session, attempt))

        self._set_scan_state(ScanState.SETTLED)
        self._set_scan_state(ScanState.IDLE)
        return self._result if self._error is None else None

    def _grab_frame(self) -> str:
        return encode_frame(self.camera.read_frame(), self.jpeg_quality)

    def _apply_outcome(self, task: asyncio.Task) -> None:
        if task.cancelled():
            self._error = UnexpectedError().message
            return
        exc = task.exception()
        if exc is None:
            presence = task.result()
            self._result = ClassificationResult(
                detected=presence.present,
                confidence=presence.confidence,
                message=presence.message,
            )
            self._error = None
            return
        if isinstance(exc, HealthDashError):
            log.error(f"Classification failed: {exc.message}")
            self._error = exc.message
        else:
            log.error(f"Classification failed unexpectedly: {exc}")
            self._error = UnexpectedError().message

    def _on_late_outcome(self, session: int, attempt: int, task: asyncio.Task) -> None:
        if session != self._session or attempt != self._attempt:
            log.info("Late classification for a closed dialog or superseded capture; dropped")
            return
        if self.late_result_policy == LateResultPolicy.DISCARD:
            log.info("Late classification discarded by policy")
            return
        log.info("Late classification applied to settled view")
        self._apply_outcome(task)
        self._notify()


def _consume_exception(task: asyncio.Task) -> None:
    # outcomes may be dropped; keep asyncio from reporting them as unretrieved
    if not task.cancelled():
        task.exception()
