"""
Camera devices and the dialog-scoped camera session.

Session states:

  CLOSED -> REQUESTING_PERMISSION      open()
  REQUESTING_PERMISSION -> GRANTED     device acquired, stream bound
  REQUESTING_PERMISSION -> DENIED      refusal or device error
  any -> CLOSED                        close(); every track is stopped

A stream exists only while the session is GRANTED.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Optional

from PIL import Image

from healthdash.core.errors import PermissionDenied

log = logging.getLogger(__name__)


class CameraState(str, Enum):
    CLOSED = "closed"
    REQUESTING_PERMISSION = "requesting_permission"
    GRANTED = "granted"
    DENIED = "denied"


# ---------------------------------------------------------------------------
# Device contract
# ---------------------------------------------------------------------------

class MediaTrack:
    """One track of a media stream; ``stop`` is idempotent."""

    def __init__(self, kind: str = "video", on_stop: Optional[Callable[[], None]] = None):
        self.kind = kind
        self.ready_state = "live"
        self._on_stop = on_stop

    @property
    def stopped(self) -> bool:
        return self.ready_state == "ended"

    def stop(self) -> None:
        if self.stopped:
            return
        self.ready_state = "ended"
        if self._on_stop is not None:
            self._on_stop()


class CameraStream(ABC):
    def __init__(self, tracks: list[MediaTrack]):
        self.tracks = tracks

    @property
    def active(self) -> bool:
        return any(not t.stopped for t in self.tracks)

    @abstractmethod
    def read_frame(self) -> Image.Image:
        """Return the current video frame as an RGB image."""

    def stop(self) -> None:
        for track in self.tracks:
            track.stop()


class CameraDevice(ABC):
    @abstractmethod
    def acquire(self, constraints: Optional[dict] = None) -> CameraStream:
        """Open the device. Raises PermissionDenied on refusal or failure."""


# ---------------------------------------------------------------------------
# Devices
# ---------------------------------------------------------------------------

class StaticImageStream(CameraStream):
    def __init__(self, image: Image.Image):
        super().__init__([MediaTrack("video")])
        self._image = image

    def read_frame(self) -> Image.Image:
        if not self.active:
            raise RuntimeError("Stream has been stopped")
        return self._image.copy()


class StaticImageDevice(CameraDevice):
    """Serves a fixed picture as its video feed. Used by the demo and tests."""

    def __init__(self, image: Optional[Image.Image] = None, deny: bool = False):
        self._image = image if image is not None else Image.new("RGB", (640, 480), (40, 40, 40))
        self._deny = deny
        self.streams: list[StaticImageStream] = []

    def acquire(self, constraints: Optional[dict] = None) -> CameraStream:
        if self._deny:
            raise PermissionDenied()
        stream = StaticImageStream(self._image)
        self.streams.append(stream)
        return stream


class OpenCVStream(CameraStream):
    def __init__(self, capture: Any):
        self._capture = capture
        super().__init__([MediaTrack("video", on_stop=capture.release)])

    def read_frame(self) -> Image.Image:
        import cv2

        ok, frame = self._capture.read()
        if not ok or frame is None:
            raise RuntimeError("Failed to read a frame from the camera")
        return Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))


class OpenCVCameraDevice(CameraDevice):
    """Local webcam through OpenCV (``pip install healthdash[camera]``)."""

    def __init__(self, index: int = 0):
        self.index = index

    def acquire(self, constraints: Optional[dict] = None) -> CameraStream:
        import cv2

        capture = cv2.VideoCapture(self.index)
        if not capture.isOpened():
            capture.release()
            raise PermissionDenied(f"Camera {self.index} could not be opened.")
        constraints = constraints or {}
        if "width" in constraints:
            capture.set(cv2.CAP_PROP_FRAME_WIDTH, constraints["width"])
        if "height" in constraints:
            capture.set(cv2.CAP_PROP_FRAME_HEIGHT, constraints["height"])
        log.info(f"Camera {self.index} opened")
        return OpenCVStream(capture)


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

class CameraSession:
    """Camera ownership for exactly one dialog."""

    def __init__(
        self,
        device: CameraDevice,
        constraints: Optional[dict] = None,
        on_change: Optional[Callable[["CameraSession"], None]] = None,
    ):
        self._device = device
        self._constraints = constraints or {"video": True}
        self._on_change = on_change
        self._state = CameraState.CLOSED
        self._stream: Optional[CameraStream] = None
        self._error: Optional[str] = None
        self._generation = 0

    @property
    def state(self) -> CameraState:
        return self._state

    @property
    def stream(self) -> Optional[CameraStream]:
        return self._stream

    @property
    def error(self) -> Optional[str]:
        return self._error

    def _transition(self, state: CameraState) -> None:
        log.debug(f"Camera {self._state.value} -> {state.value}")
        self._state = state
        if self._on_change is not None:
            self._on_change(self)

    async def open(self) -> CameraState:
        if self._state != CameraState.CLOSED:
            return self._state
        self._generation += 1
        generation = self._generation
        self._error = None
        self._transition(CameraState.REQUESTING_PERMISSION)

        try:
            stream = await asyncio.to_thread(self._device.acquire, self._constraints)
        except PermissionDenied as exc:
            if generation == self._generation:
                log.error(f"Error accessing camera: {exc}")
                self._error = exc.message
                self._transition(CameraState.DENIED)
            return self._state
        except Exception as exc:
            if generation == self._generation:
                log.error(f"Error accessing camera: {exc}")
                self._error = PermissionDenied().message
                self._transition(CameraState.DENIED)
            return self._state

        if generation != self._generation:
            # dialog closed while the permission prompt was up
            stream.stop()
            return self._state
        self._stream = stream
        self._transition(CameraState.GRANTED)
        return self._state

    def read_frame(self) -> Image.Image:
        if self._state != CameraState.GRANTED or self._stream is None:
            raise RuntimeError("Camera is not streaming")
        return self._stream.read_frame()

    def close(self) -> None:
        self._generation += 1
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.stop()
            log.info("Camera stream released")
        self._error = None
        if self._state != CameraState.CLOSED:
            self._transition(CameraState.CLOSED)
