"""
Scanner exception hierarchy.

Validation problems are never raised; they travel inside ValidationResult.
Only engine/camera setup failures are meant to reach the caller.
"""

from typing import Any, Dict, Optional


class ScannerError(Exception):
    """
    Base exception for scanner errors.

    Provides structured error information with error codes for programmatic handling.
    """

    def __init__(self, message: str, error_code: str = "SCANNER_ERROR", context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON serialization."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
        }


class CameraAccessError(ScannerError):
    """Raised when camera devices cannot be enumerated or opened."""

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(
            message=f"Camera access failed: {message}",
            error_code="CAMERA_ACCESS_ERROR",
            context={"details": details},
        )
        self.details = details


class EngineInitError(ScannerError):
    """Raised when a recognition engine cannot be constructed."""

    def __init__(self, message: str, engine: str, details: Optional[str] = None):
        super().__init__(
            message=f"Engine initialization failed ({engine}): {message}",
            error_code="ENGINE_INIT_ERROR",
            context={"engine": engine, "details": details},
        )
        self.engine = engine
        self.details = details


class RecognitionError(ScannerError):
    """Raised by an engine when a single frame cannot be recognized."""

    def __init__(self, message: str, engine: str, no_symbol: bool = False):
        super().__init__(
            message=f"Recognition failed ({engine}): {message}",
            error_code="NO_SYMBOL_FOUND" if no_symbol else "RECOGNITION_ERROR",
            context={"engine": engine},
        )
        self.engine = engine
        self.no_symbol = no_symbol


class ConfigurationError(ScannerError):
    """Raised when the scanner is misconfigured."""

    def __init__(self, message: str, config_key: Optional[str] = None, expected: Optional[str] = None):
        super().__init__(
            message=f"Configuration error: {message}",
            error_code="CONFIG_ERROR",
            context={"config_key": config_key, "expected": expected},
        )
        self.config_key = config_key
        self.expected = expected
