"""
VIN Image Preprocessor
======================

Binarizes a region-of-interest frame for single-line VIN recognition.

Frames are first classified as a photo of a screen (moire-prone, many sharp
luminance transitions) or of a document/plate, then run through one of two
pipelines:

- SCREEN:   moire reduction -> brightness/contrast/gamma -> sharpen -> CLAHE -> threshold
- DOCUMENT: CLAHE -> 3x3 mean denoise -> threshold

Key techniques:
- Tiled CLAHE without inter-tile interpolation
- Local-mean adaptive thresholding (31x31 window)
- Gaussian-weighted moire suppression

Every stage returns a new RGBA Frame; the last stage guarantees each colour
channel is exactly 0 or 255.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import cv2
import numpy as np

from ..config import PreprocessingConfig
from ..core.frame import Frame

logger = logging.getLogger(__name__)


class FrameClass(str, Enum):
    """Capture source classification."""
    SCREEN = 'screen'
    DOCUMENT = 'document'


# =============================================================================
# PIXEL HELPERS
# =============================================================================

def _round_half_up(values: np.ndarray) -> np.ndarray:
    return np.floor(values + 0.5)


def _to_rgba(rgb: np.ndarray) -> Frame:
    """Attach an opaque alpha to an (H, W, 3) array."""
    rgb = np.clip(rgb, 0, 255).astype(np.uint8)
    alpha = np.full(rgb.shape[:2], 255, dtype=np.uint8)
    return Frame(np.dstack([rgb, alpha]))


def _window_sum(channel: np.ndarray, radius: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Sum and pixel count over a (2r+1)x(2r+1) window clipped at the borders.

    Uses an integral image, so cost is independent of the radius.
    """
    h, w = channel.shape
    integral = cv2.integral(np.ascontiguousarray(channel), sdepth=cv2.CV_64F)

    y0 = np.clip(np.arange(h) - radius, 0, h)
    y1 = np.clip(np.arange(h) + radius + 1, 0, h)
    x0 = np.clip(np.arange(w) - radius, 0, w)
    x1 = np.clip(np.arange(w) + radius + 1, 0, w)

    sums = (
        integral[y1][:, x1]
        - integral[y0][:, x1]
        - integral[y1][:, x0]
        + integral[y0][:, x0]
    )
    counts = np.outer(y1 - y0, x1 - x0).astype(np.float64)
    return sums, counts


# =============================================================================
# TRANSFORMS
# =============================================================================

def reduce_moire(frame: Frame, radius: int = 3) -> Frame:
    """
    Gaussian-weighted smoothing per colour channel.

    weight(dx, dy) = exp(-(dx^2 + dy^2) / (2 * radius^2)) over a
    (2r+1)x(2r+1) window, normalized by the weights that fall inside the image.
    """
    offsets = np.arange(-radius, radius + 1, dtype=np.float64)
    dx, dy = np.meshgrid(offsets, offsets)
    kernel = np.exp(-(dx ** 2 + dy ** 2) / (2.0 * radius * radius))

    rgb = frame.pixels[:, :, :3].astype(np.float64)
    weighted = cv2.filter2D(rgb, -1, kernel, borderType=cv2.BORDER_CONSTANT)
    norm = cv2.filter2D(
        np.ones(rgb.shape[:2], dtype=np.float64), -1, kernel, borderType=cv2.BORDER_CONSTANT
    )
    return _to_rgba(np.rint(weighted / norm[:, :, None]))


def adjust_image_params(
    frame: Frame,
    brightness: float = 1.2,
    contrast: float = 1.3,
    gamma: float = 0.8,
) -> Frame:
    """Gamma, then brightness, then contrast around mid-grey, per channel."""
    values = np.arange(256, dtype=np.float64) / 255.0
    values = np.power(values, 1.0 / gamma)
    values = values * brightness
    values = (values - 0.5) * contrast + 0.5
    lut = np.clip(_round_half_up(values * 255.0), 0, 255).astype(np.uint8)
    return _to_rgba(lut[frame.pixels[:, :, :3]])


SHARPEN_KERNEL = np.array(
    [[0, -1, 0],
     [-1, 5, -1],
     [0, -1, 0]],
    dtype=np.float64,
)


def sharpen(frame: Frame) -> Frame:
    """
    3x3 sharpen on the red channel, replicated to green and blue.

    The 1-px border keeps its input values.
    """
    out = frame.pixels.copy()
    out[:, :, 3] = 255
    if frame.height < 3 or frame.width < 3:
        return Frame(out)

    red = frame.red.astype(np.float64)
    filtered = cv2.filter2D(red, -1, SHARPEN_KERNEL, borderType=cv2.BORDER_REPLICATE)
    interior = np.clip(filtered[1:-1, 1:-1], 0, 255).astype(np.uint8)
    for channel in range(3):
        out[1:-1, 1:-1, channel] = interior
    return Frame(out)


def apply_clahe(frame: Frame, tile_size: int = 16, clip_factor: float = 4.0) -> Frame:
    """
    Contrast-limited histogram equalization on independent tiles.

    Each tile's 256-bin red histogram is clipped at tile_area * clip_factor / 256,
    the clipped excess is spread evenly over all bins, and the cumulative
    histogram becomes the tile's lookup table. Tiles are not blended.
    """
    red = frame.red
    h, w = red.shape
    out = np.empty((h, w), dtype=np.uint8)

    for y in range(0, h, tile_size):
        for x in range(0, w, tile_size):
            tile = red[y:y + tile_size, x:x + tile_size]
            area = tile.size

            histogram = np.bincount(tile.ravel(), minlength=256).astype(np.float64)
            limit = area * clip_factor / 256
            excess = np.maximum(histogram - limit, 0).sum()
            histogram = np.minimum(histogram, limit)
            histogram += np.floor(excess / 256)

            lut = _round_half_up(np.cumsum(histogram) * 255.0 / area)
            lut = np.clip(lut, 0, 255).astype(np.uint8)
            out[y:y + tile_size, x:x + tile_size] = lut[tile]

    return Frame.from_gray(out)


def adaptive_threshold(frame: Frame, radius: int = 15, offset: int = 5) -> Frame:
    """Pixel -> 255 if brighter than (local mean - offset), else 0."""
    red = frame.red
    sums, counts = _window_sum(red, radius)
    threshold = sums / counts - offset
    binary = np.where(red.astype(np.float64) > threshold, 255, 0).astype(np.uint8)
    return Frame.from_gray(binary)


def reduce_noise(frame: Frame, radius: int = 1) -> Frame:
    """Box-mean filter on the red channel with border-clipped windows."""
    sums, counts = _window_sum(frame.red, radius)
    smoothed = np.clip(_round_half_up(sums / counts), 0, 255).astype(np.uint8)
    return Frame.from_gray(smoothed)


# =============================================================================
# PREPROCESSOR
# =============================================================================

class VINPreprocessor:
    """
    Frame classifier and binarization pipelines for the OCR path.

    Example:
        preprocessor = VINPreprocessor()
        binary = preprocessor.process(frame)

        # Force a pipeline
        binary = preprocessor.process(frame, FrameClass.DOCUMENT)
    """

    def __init__(self, config: Optional[PreprocessingConfig] = None):
        self.config = config or PreprocessingConfig()
        logger.debug(
            f"VINPreprocessor initialized (tile={self.config.clahe_tile_size}, "
            f"threshold_radius={self.config.threshold_radius})"
        )

    def classify(self, frame: Frame) -> FrameClass:
        """
        Detect whether a frame is a photo of a display.

        Every other row is scanned for horizontally adjacent red values that
        differ by more than the delta threshold; too many such transitions
        indicate a pixel grid / moire pattern.
        """
        return FrameClass.SCREEN if self._count_transitions(frame) > self._screen_limit(frame) else FrameClass.DOCUMENT

    def _count_transitions(self, frame: Frame) -> int:
        rows = frame.red[::2].astype(np.int16)
        deltas = np.abs(rows[:, 1:] - rows[:, :-1])
        return int(np.count_nonzero(deltas > self.config.screen_delta_threshold))

    def _screen_limit(self, frame: Frame) -> float:
        return frame.width * frame.height * self.config.screen_pattern_ratio

    def process(self, frame: Frame, frame_class: Optional[FrameClass] = None) -> Frame:
        """
        Binarize a frame for OCR.

        Args:
            frame: RGBA region of interest
            frame_class: Skip classification and force a pipeline

        Returns:
            Frame whose R, G and B channels are 0 or 255 and alpha is 255

        Raises:
            ValueError: If the frame is empty
        """
        if frame.pixels.size == 0:
            raise ValueError("Input frame is empty")

        active = frame_class or self.classify(frame)
        logger.debug(f"Preprocessing {frame.width}x{frame.height} frame as {active.value}")

        if active == FrameClass.SCREEN:
            return self._process_screen(frame)
        return self._process_document(frame)

    def _process_screen(self, frame: Frame) -> Frame:
        """Moire suppression first; order matters."""
        cfg = self.config

        processed = reduce_moire(frame, cfg.moire_radius)
        self._save_debug('screen_01_moire', processed)

        processed = adjust_image_params(processed, cfg.brightness, cfg.contrast, cfg.gamma)
        self._save_debug('screen_02_adjusted', processed)

        processed = sharpen(processed)
        self._save_debug('screen_03_sharpened', processed)

        processed = apply_clahe(processed, cfg.clahe_tile_size, cfg.clahe_clip_limit)
        self._save_debug('screen_04_clahe', processed)

        processed = adaptive_threshold(processed, cfg.threshold_radius, cfg.threshold_offset)
        self._save_debug('screen_05_threshold', processed)
        return processed

    def _process_document(self, frame: Frame) -> Frame:
        cfg = self.config

        processed = apply_clahe(frame, cfg.clahe_tile_size, cfg.clahe_clip_limit)
        self._save_debug('document_01_clahe', processed)

        processed = reduce_noise(processed, cfg.denoise_radius)
        self._save_debug('document_02_denoised', processed)

        processed = adaptive_threshold(processed, cfg.threshold_radius, cfg.threshold_offset)
        self._save_debug('document_03_threshold', processed)
        return processed

    def _save_debug(self, name: str, frame: Frame) -> None:
        """Save intermediate image for debugging."""
        if not self.config.save_intermediate:
            return
        out_dir = Path(self.config.debug_output_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        path = out_dir / f'{name}.png'
        cv2.imwrite(str(path), frame.to_bgr())
        logger.debug(f"Saved debug image: {path}")

    def analyze(self, frame: Frame) -> Dict[str, Any]:
        """
        Analyze frame characteristics for debugging/tuning.

        Returns:
            Dict with classification inputs and basic statistics
        """
        red = frame.red
        transitions = self._count_transitions(frame)
        limit = self._screen_limit(frame)
        return {
            'width': frame.width,
            'height': frame.height,
            'transitions': transitions,
            'screen_limit': limit,
            'frame_class': (FrameClass.SCREEN if transitions > limit else FrameClass.DOCUMENT).value,
            'contrast': float(np.std(red)),
            'brightness': float(np.mean(red)),
        }
