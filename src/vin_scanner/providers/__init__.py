"""
VIN Scanner Providers Module
============================

Recognition engine adapters and their lifecycle.

Supported engines:
- Tesseract (text, default)
- PaddleOCR (text, optional extra)
- zxing-cpp (barcode: Code 39, Code 128, Data Matrix, QR)

Usage:
    from vin_scanner.providers import ScannerContext

    with ScannerContext() as context:
        lines = context.text.get().recognize(frame)
"""

from .ocr_providers import (
    RecognizedLine,
    TextRecognitionEngine,
    TesseractEngine,
    PaddleTextEngine,
    TextEngineFactory,
)
from .barcode_providers import (
    BarcodeDecoder,
    ZXingBarcodeDecoder,
    probe_video_devices,
)
from .lifecycle import (
    EngineState,
    TextEngineHandle,
    BarcodeEngineHandle,
    ScannerContext,
)

__all__ = [
    # Text engines
    "RecognizedLine",
    "TextRecognitionEngine",
    "TesseractEngine",
    "PaddleTextEngine",
    "TextEngineFactory",
    # Barcode
    "BarcodeDecoder",
    "ZXingBarcodeDecoder",
    "probe_video_devices",
    # Lifecycle
    "EngineState",
    "TextEngineHandle",
    "BarcodeEngineHandle",
    "ScannerContext",
]
