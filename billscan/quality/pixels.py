"""Decoded pixel buffers and the Pillow-backed image decoder."""

import io
from dataclasses import dataclass

import numpy as np
from PIL import Image, UnidentifiedImageError

from billscan.errors import InputError
from billscan.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PixelBuffer:
    """An immutable RGBA image, row-major, four bytes per pixel."""

    width: int
    height: int
    rgba: bytes

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise InputError(f"Empty pixel buffer: {self.width}x{self.height}")
        expected = self.width * self.height * 4
        if len(self.rgba) != expected:
            raise InputError(
                f"Pixel buffer holds {len(self.rgba)} bytes, expected {expected}"
            )

    def as_array(self) -> np.ndarray:
        """Return a read-only ``(height, width, 4)`` uint8 view of the pixels."""
        return np.frombuffer(self.rgba, dtype=np.uint8).reshape(
            self.height, self.width, 4
        )

    @classmethod
    def from_array(cls, image: np.ndarray) -> "PixelBuffer":
        """Build a buffer from a grayscale, RGB or RGBA uint8 array."""
        if image.ndim == 2:
            image = np.stack([image, image, image], axis=-1)
        if image.ndim != 3 or image.shape[2] not in (3, 4):
            raise InputError(f"Unsupported image shape: {image.shape}")
        if image.shape[2] == 3:
            alpha = np.full(image.shape[:2] + (1,), 255, dtype=np.uint8)
            image = np.concatenate([image, alpha], axis=-1)
        rgba = np.ascontiguousarray(image, dtype=np.uint8)
        return cls(width=rgba.shape[1], height=rgba.shape[0], rgba=rgba.tobytes())


def decode_image(data: bytes) -> PixelBuffer:
    """Decode PNG/JPEG/TIFF bytes into an RGBA pixel buffer.

    Args:
        data: Raw encoded image bytes.

    Returns:
        Decoded pixel buffer.

    Raises:
        InputError: If the bytes are empty or not a readable image.
    """
    if not data:
        raise InputError("No image data supplied")

    try:
        with Image.open(io.BytesIO(data)) as img:
            rgba = img.convert("RGBA")
    except (UnidentifiedImageError, OSError) as exc:
        raise InputError(f"Could not decode image: {exc}") from exc

    logger.debug("Decoded %dx%d image", rgba.width, rgba.height)
    return PixelBuffer(width=rgba.width, height=rgba.height, rgba=rgba.tobytes())
