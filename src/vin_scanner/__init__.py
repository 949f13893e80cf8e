"""
VIN Scanner
===========

Camera-frame VIN recognition: barcode decoding and OCR, gated by a
single-flight orchestrator and checked against ISO 3779.

Package Structure:
    vin_scanner/
    ├── core/           # VIN validation, frame model, errors
    ├── preprocessing/  # Screen/document binarization
    ├── segmentation/   # Glyph region finder
    ├── providers/      # Text and barcode engines, lifecycle
    ├── pipeline/       # Candidates, scanners, orchestrator
    ├── config.py       # Dataclass configuration
    └── cli.py          # vin-scanner command

Quick Start:
    from vin_scanner import validate_vin

    result = validate_vin("1HGCM82633A004352")
    print(result.is_valid, result.errors)

    from vin_scanner import FrameOrchestrator, ScannerContext

    with ScannerContext() as context:
        orchestrator = FrameOrchestrator.from_context(context)
        result = orchestrator.submit_frame(frame)
"""

__version__ = "1.0.0"

# Core exports (lightweight, always available)
from .core import (
    VINConstants,
    VIN_LENGTH,
    ValidationResult,
    CheckDigitMismatch,
    validate_vin,
    normalize_vin,
    calculate_check_digit,
    decode_vin,
    VinDetails,
    Frame,
    crop_roi,
    ScannerError,
    CameraAccessError,
    EngineInitError,
    RecognitionError,
    ConfigurationError,
)
from .config import ScannerConfig, get_config, reset_config
from .providers import ScannerContext
from .pipeline import FrameOrchestrator, ScannerMode, ScanResult, ScannerStatus

__all__ = [
    "__version__",
    # Core
    "VINConstants",
    "VIN_LENGTH",
    "ValidationResult",
    "CheckDigitMismatch",
    "validate_vin",
    "normalize_vin",
    "calculate_check_digit",
    "decode_vin",
    "VinDetails",
    "Frame",
    "crop_roi",
    # Errors
    "ScannerError",
    "CameraAccessError",
    "EngineInitError",
    "RecognitionError",
    "ConfigurationError",
    # Config
    "ScannerConfig",
    "get_config",
    "reset_config",
    # Runtime
    "ScannerContext",
    "FrameOrchestrator",
    "ScannerMode",
    "ScanResult",
    "ScannerStatus",
]
