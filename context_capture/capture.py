"""Screen capture and image payload helpers."""

from __future__ import annotations

import base64
import binascii
import io
import logging
from typing import Callable, Optional, Tuple

from PIL import Image, ImageGrab, UnidentifiedImageError

from .types import Region

logger = logging.getLogger(__name__)

MAX_OCR_IMAGE_SIDE = 1024
OCR_JPEG_QUALITY = 80  # 0.8 on the canvas quality scale
DEFAULT_MIME = "image/png"

ScreenGrabber = Callable[[], str]


class CaptureError(Exception):
    """Raised when the visible screen cannot be captured or decoded."""


def split_data_url(image_data: str) -> Tuple[str, str]:
    """Return ``(mime, base64)`` for a data URL; bare base64 is treated as PNG."""
    try:
        header, data = image_data.split(",", 1)
    except ValueError:
        return DEFAULT_MIME, image_data
    mime = DEFAULT_MIME
    if header.startswith("data:"):
        mime = header[len("data:"):].split(";", 1)[0] or DEFAULT_MIME
    return mime, data


def to_data_url(raw: bytes, mime: str = DEFAULT_MIME) -> str:
    return f"data:{mime};base64,{base64.b64encode(raw).decode('ascii')}"


def decode_image(image_data: str) -> Image.Image:
    """Decode a data URL into a loaded Pillow image."""
    _, data = split_data_url(image_data)
    try:
        raw = base64.b64decode(data, validate=False)
        image = Image.open(io.BytesIO(raw))
        image.load()
    except (binascii.Error, UnidentifiedImageError, OSError, ValueError) as exc:
        raise CaptureError("Failed to load captured image") from exc
    return image


def encode_png(image: Image.Image) -> str:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return to_data_url(buffer.getvalue(), "image/png")


def grab_visible_screen() -> str:
    """Grab the visible screen as a PNG data URL."""
    try:
        screenshot = ImageGrab.grab()
    except OSError as exc:
        raise CaptureError(f"Screen grab failed: {exc}") from exc
    return encode_png(screenshot)


class ScreenCapture:
    """Turns a confirmed region into cropped, OCR-ready image data."""

    def __init__(self, grabber: Optional[ScreenGrabber] = None) -> None:
        self._grabber = grabber or grab_visible_screen

    def capture_visible_tab(self, region: Region, image_data: Optional[str] = None) -> str:
        """Crop the full-viewport frame to ``region`` and re-encode losslessly.

        When ``image_data`` is omitted the frame is requested from the
        grabber. The result is always exactly ``region.width`` by
        ``region.height`` pixels; areas outside the frame stay transparent.
        """
        if image_data is None:
            try:
                image_data = self._grabber()
            except CaptureError:
                raise
            except Exception as exc:
                raise CaptureError(f"Screen grab failed: {exc}") from exc

        with decode_image(image_data) as frame:
            source = frame if frame.mode in ("RGB", "RGBA") else frame.convert("RGBA")
            cropped = Image.new("RGBA", (region.width, region.height), (0, 0, 0, 0))
            right = min(region.x + region.width, source.width)
            bottom = min(region.y + region.height, source.height)
            if right > region.x and bottom > region.y:
                cropped.paste(source.crop((region.x, region.y, right, bottom)), (0, 0))
        logger.debug(
            "Cropped %sx%s region at (%s, %s)", region.width, region.height, region.x, region.y
        )
        return encode_png(cropped)

    def optimize_image_for_ocr(self, image_data: str) -> str:
        """Downscale and JPEG-compress an image; return it unchanged on failure."""
        try:
            optimized = _optimize(image_data)
        except Exception as exc:  # noqa: BLE001 - any failure passes the original through
            logger.warning("Image optimization failed, passing original through: %s", exc)
            return image_data
        return optimized


def _optimize(image_data: str) -> str:
    with decode_image(image_data) as image:
        width, height = image.size
        if width > MAX_OCR_IMAGE_SIDE or height > MAX_OCR_IMAGE_SIDE:
            ratio = min(MAX_OCR_IMAGE_SIDE / width, MAX_OCR_IMAGE_SIDE / height)
            width = max(1, round(width * ratio))
            height = max(1, round(height * ratio))
        resized = image.convert("RGB").resize((width, height), Image.LANCZOS)
    buffer = io.BytesIO()
    resized.save(buffer, format="JPEG", quality=OCR_JPEG_QUALITY)
    return to_data_url(buffer.getvalue(), "image/jpeg")


__all__ = [
    "CaptureError",
    "ScreenCapture",
    "ScreenGrabber",
    "decode_image",
    "encode_png",
    "grab_visible_screen",
    "split_data_url",
    "to_data_url",
    "MAX_OCR_IMAGE_SIDE",
]
