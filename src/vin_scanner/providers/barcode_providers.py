"""
Barcode decoders.

VIN labels carry the number as Code 39 (door jamb stickers), Code 128,
Data Matrix or QR. The decoder returns the raw symbol text; validation is
the scanner's job.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

import cv2
import zxingcpp

from ..config import BarcodeEngineConfig
from ..core.errors import CameraAccessError, EngineInitError, RecognitionError
from ..core.frame import Frame

logger = logging.getLogger(__name__)


class BarcodeDecoder(ABC):
    """Opaque decode(image) -> text capability."""

    def __init__(self, config: Optional[BarcodeEngineConfig] = None):
        self.config = config or BarcodeEngineConfig()

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def decode(self, frame: Frame) -> Optional[str]:
        """
        Decode the first symbol in a frame.

        Returns:
            Symbol text, or None when no symbol is found

        Raises:
            RecognitionError: For any failure other than "no symbol found"
        """
        ...


class ZXingBarcodeDecoder(BarcodeDecoder):
    """zxing-cpp multi-format reader."""

    def __init__(self, config: Optional[BarcodeEngineConfig] = None):
        super().__init__(config)
        try:
            self._formats = zxingcpp.barcode_formats_from_str(",".join(self.config.formats))
        except ValueError as e:
            raise EngineInitError(
                f"Unsupported barcode formats {self.config.formats}", engine=self.name, details=str(e)
            ) from e

    @property
    def name(self) -> str:
        return "zxing-cpp"

    def decode(self, frame: Frame) -> Optional[str]:
        try:
            results = zxingcpp.read_barcodes(
                frame.to_gray(),
                formats=self._formats,
                try_rotate=self.config.try_harder,
                try_downscale=self.config.try_harder,
            )
        except (RuntimeError, ValueError) as e:
            raise RecognitionError(str(e), engine=self.name) from e

        for result in results:
            if result.text:
                logger.debug(f"Decoded {result.format} symbol")
                return result.text
        return None


def probe_video_devices(limit: int = 4) -> List[int]:
    """
    Enumerate OpenCV capture indices that can be opened.

    Raises:
        CameraAccessError: If the capture backend fails
    """
    devices = []
    for index in range(limit):
        try:
            capture = cv2.VideoCapture(index)
            try:
                if capture.isOpened():
                    devices.append(index)
            finally:
                capture.release()
        except cv2.error as e:
            raise CameraAccessError(f"cannot open device {index}", details=str(e)) from e
    return devices
