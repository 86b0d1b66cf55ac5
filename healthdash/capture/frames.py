"""Still-frame encoding for classification requests."""

from __future__ import annotations

import io
from typing import Any

from PIL import Image

from healthdash.core.inference_client import encode_data_uri


def to_pil(frame: Any) -> Image.Image:
    """Accept a PIL image or an RGB ndarray (as handed over by Gradio)."""
    if isinstance(frame, Image.Image):
        return frame
    if hasattr(frame, "shape"):
        return Image.fromarray(frame)
    raise TypeError(f"Expected PIL Image or ndarray, got {type(frame)}")


def encode_frame(frame: Any, quality: float = 0.8) -> str:
    """Encode a frame as a JPEG data URI.

    ``quality`` is on the 0..1 scale browsers use for ``toDataURL``.
    """
    image = to_pil(frame)
    if image.mode != "RGB":
        image = image.convert("RGB")
    jpeg_quality = max(1, min(100, round(quality * 100)))
    buf = io.BytesIO()
    image.save(buf, format="JPEG", quality=jpeg_quality)
    return encode_data_uri(buf.getvalue(), "image/jpeg")
