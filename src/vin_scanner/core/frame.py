"""
Frame model
===========

A Frame is an immutable RGBA pixel buffer of shape (height, width, 4).
Camera adapters produce them; the pipeline only ever reads them and builds
new frames for every transform.
"""

from dataclasses import dataclass
from typing import Union

import cv2
import numpy as np


@dataclass(frozen=True, eq=False)
class Frame:
    """Read-only RGBA image."""

    pixels: np.ndarray

    def __post_init__(self):
        pixels = self.pixels
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ValueError(f"Frame pixels must have shape (H, W, 4), got {pixels.shape}")
        if pixels.dtype != np.uint8:
            pixels = pixels.astype(np.uint8)
        if pixels.flags.writeable:
            pixels = pixels.copy()
            pixels.flags.writeable = False
        object.__setattr__(self, 'pixels', pixels)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def red(self) -> np.ndarray:
        """Red channel; stands in for luminance once a frame is near-grayscale."""
        return self.pixels[:, :, 0]

    @classmethod
    def from_rgba(cls, data: Union[bytes, bytearray, np.ndarray], width: int, height: int) -> 'Frame':
        """
        Build a frame from a raw RGBA buffer.

        Raises:
            ValueError: If the buffer length does not match width * height * 4
        """
        buffer = np.frombuffer(bytes(data), dtype=np.uint8) if not isinstance(data, np.ndarray) else data.ravel()
        expected = width * height * 4
        if width <= 0 or height <= 0 or buffer.size != expected:
            raise ValueError(
                f"RGBA buffer of {buffer.size} bytes does not match {width}x{height} "
                f"(expected {expected})"
            )
        return cls(buffer.reshape(height, width, 4))

    @classmethod
    def from_gray(cls, gray: np.ndarray) -> 'Frame':
        """Replicate a single channel to R, G and B with an opaque alpha."""
        gray = np.asarray(gray, dtype=np.uint8)
        alpha = np.full_like(gray, 255)
        return cls(np.dstack([gray, gray, gray, alpha]))

    @classmethod
    def from_bgr(cls, image: np.ndarray) -> 'Frame':
        """Build a frame from an OpenCV image (grayscale, BGR or BGRA)."""
        if image is None or image.size == 0:
            raise ValueError("Input image is empty or None")
        if image.ndim == 2:
            return cls.from_gray(image)
        if image.shape[2] == 4:
            return cls(cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA))
        return cls(cv2.cvtColor(image, cv2.COLOR_BGR2RGBA))

    def to_bgr(self) -> np.ndarray:
        """OpenCV BGR copy for engines and cv2.imwrite."""
        return cv2.cvtColor(np.ascontiguousarray(self.pixels), cv2.COLOR_RGBA2BGR)

    def to_gray(self) -> np.ndarray:
        return cv2.cvtColor(np.ascontiguousarray(self.pixels), cv2.COLOR_RGBA2GRAY)

    def crop(self, x: int, y: int, width: int, height: int) -> 'Frame':
        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid crop size {width}x{height}")
        return Frame(self.pixels[y:y + height, x:x + width])


def crop_roi(frame: Frame, width_fraction: float = 0.6, height_fraction: float = 0.4) -> Frame:
    """
    Crop the centred region of interest the scanner overlay points at.

    The default keeps the middle 60% of the width and 40% of the height.
    """
    if not (0 < width_fraction <= 1 and 0 < height_fraction <= 1):
        raise ValueError("ROI fractions must be in (0, 1]")
    x = int(frame.width * (1 - width_fraction) / 2)
    y = int(frame.height * (1 - height_fraction) / 2)
    return frame.crop(
        x, y,
        max(1, int(frame.width * width_fraction)),
        max(1, int(frame.height * height_fraction)),
    )
