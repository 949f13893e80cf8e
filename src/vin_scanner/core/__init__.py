"""
VIN Scanner Core Module
=======================

Core VIN utilities, frame model and error types.
Single Source of Truth for all VIN-related functionality.
"""

from .errors import (
    ScannerError,
    CameraAccessError,
    EngineInitError,
    RecognitionError,
    ConfigurationError,
)
from .frame import Frame, crop_roi
from .vin_utils import (
    # Constants
    VINConstants,
    VIN_LENGTH,
    VIN_VALID_CHARS,
    VIN_INVALID_CHARS,
    # Validation
    CheckDigitMismatch,
    ValidationResult,
    normalize_vin,
    validate_vin,
    is_plausible_vin,
    # Checksum
    calculate_check_digit,
    # Decoding
    VinDetails,
    decode_vin,
)

__all__ = [
    # Errors
    "ScannerError",
    "CameraAccessError",
    "EngineInitError",
    "RecognitionError",
    "ConfigurationError",
    # Frames
    "Frame",
    "crop_roi",
    # Constants
    "VINConstants",
    "VIN_LENGTH",
    "VIN_VALID_CHARS",
    "VIN_INVALID_CHARS",
    # Validation
    "CheckDigitMismatch",
    "ValidationResult",
    "normalize_vin",
    "validate_vin",
    "is_plausible_vin",
    # Checksum
    "calculate_check_digit",
    # Decoding
    "VinDetails",
    "decode_vin",
]
