"""
Scanner Configuration - Centralized Settings
============================================

All configurable parameters in one place.
Supports environment variable overrides and JSON/YAML config files.

Usage:
    from vin_scanner.config import get_config
    config = get_config()
    print(config.preprocessing.clahe_tile_size)

Environment Variables:
    VIN_LOG_LEVEL=DEBUG
    VIN_SCAN_MODE=text
    VIN_TEXT_ENGINE=tesseract
    VIN_TESSERACT_CMD=/usr/bin/tesseract
    VIN_SAVE_INTERMEDIATE=true
"""

import os
import json
import logging
from dataclasses import dataclass, field, asdict, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from .core.errors import ConfigurationError
from .core.vin_utils import VINConstants

logger = logging.getLogger(__name__)


def _get_env_float(key: str, default: float) -> float:
    """Get float from environment variable."""
    value = os.environ.get(key)
    if value is not None:
        try:
            return float(value)
        except ValueError:
            logger.warning(f"Invalid float for {key}: {value}, using default {default}")
    return default


def _get_env_int(key: str, default: int) -> int:
    """Get int from environment variable."""
    value = os.environ.get(key)
    if value is not None:
        try:
            return int(value)
        except ValueError:
            logger.warning(f"Invalid int for {key}: {value}, using default {default}")
    return default


def _get_env_bool(key: str, default: bool) -> bool:
    """Get bool from environment variable."""
    value = os.environ.get(key)
    if value is not None:
        return value.lower() in ('true', '1', 'yes', 'on')
    return default


def _get_env_str(key: str, default: str) -> str:
    """Get string from environment variable."""
    return os.environ.get(key, default)


@dataclass
class PreprocessingConfig:
    """OCR-path image preprocessing configuration."""

    # Screen/document classification
    screen_delta_threshold: int = 50
    screen_pattern_ratio: float = 0.01

    # Screen pipeline
    moire_radius: int = 3
    brightness: float = 1.2
    contrast: float = 1.3
    gamma: float = 0.8

    # CLAHE
    clahe_tile_size: int = 16
    clahe_clip_limit: float = 4.0

    # Adaptive threshold
    threshold_radius: int = 15
    threshold_offset: int = 5

    # Noise reduction (3x3 mean)
    denoise_radius: int = 1

    # Debug
    save_intermediate: bool = field(
        default_factory=lambda: _get_env_bool('VIN_SAVE_INTERMEDIATE', False)
    )
    debug_output_dir: str = field(
        default_factory=lambda: _get_env_str('VIN_DEBUG_DIR', '/tmp/vin_scanner_debug')
    )


@dataclass
class SegmentationConfig:
    """Character region size limits (single glyph at capture distance)."""

    min_width: int = 20
    max_width: int = 50
    min_height: int = 30
    max_height: int = 100


@dataclass(frozen=True)
class TextEngineConfig:
    """Text recognition engine configuration, fixed at construction."""

    engine: str = field(
        default_factory=lambda: _get_env_str('VIN_TEXT_ENGINE', 'tesseract')
    )
    language: str = 'eng'
    char_whitelist: str = VINConstants.OCR_WHITELIST
    # 7 = single text line, 10 = single character
    page_seg_mode: int = 7
    char_page_seg_mode: int = 10
    # 1 = LSTM neural net only
    engine_mode: int = 1
    tesseract_cmd: Optional[str] = field(
        default_factory=lambda: os.environ.get('VIN_TESSERACT_CMD')
    )


@dataclass(frozen=True)
class BarcodeEngineConfig:
    """Barcode decoder configuration, fixed at construction."""

    formats: Tuple[str, ...] = ('Code39', 'Code128', 'DataMatrix', 'QRCode')
    try_harder: bool = True
    probe_cameras: bool = True
    camera_probe_limit: int = field(
        default_factory=lambda: _get_env_int('VIN_CAMERA_PROBE_LIMIT', 4)
    )


@dataclass
class ScannerSettings:
    """Frame orchestration settings."""

    default_mode: str = field(
        default_factory=lambda: _get_env_str('VIN_SCAN_MODE', 'barcode')
    )
    roi_width_fraction: float = 0.6
    roi_height_fraction: float = 0.4
    # Fall back to per-glyph recognition when whole-line OCR finds nothing
    character_fallback: bool = field(
        default_factory=lambda: _get_env_bool('VIN_CHARACTER_FALLBACK', False)
    )
    min_confidence: float = field(
        default_factory=lambda: _get_env_float('VIN_MIN_CONFIDENCE', 0.0)
    )


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = field(
        default_factory=lambda: _get_env_str('VIN_LOG_LEVEL', 'INFO')
    )
    format: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    date_format: str = '%Y-%m-%d %H:%M:%S'

    # File logging (optional)
    log_file: Optional[str] = field(
        default_factory=lambda: os.environ.get('VIN_LOG_FILE')
    )


_SECTIONS = {
    'preprocessing': PreprocessingConfig,
    'segmentation': SegmentationConfig,
    'text_engine': TextEngineConfig,
    'barcode_engine': BarcodeEngineConfig,
    'scanner': ScannerSettings,
    'logging': LoggingConfig,
}


@dataclass
class ScannerConfig:
    """Complete scanner configuration."""

    preprocessing: PreprocessingConfig = field(default_factory=PreprocessingConfig)
    segmentation: SegmentationConfig = field(default_factory=SegmentationConfig)
    text_engine: TextEngineConfig = field(default_factory=TextEngineConfig)
    barcode_engine: BarcodeEngineConfig = field(default_factory=BarcodeEngineConfig)
    scanner: ScannerSettings = field(default_factory=ScannerSettings)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dictionary (tuples become lists for YAML)."""
        return {
            section: {key: list(value) if isinstance(value, tuple) else value for key, value in values.items()}
            for section, values in asdict(self).items()
        }

    def save(self, path: Union[str, Path]):
        """Save configuration to a JSON or YAML file (by extension)."""
        path = Path(path)
        with open(path, 'w') as f:
            if path.suffix in ('.yaml', '.yml'):
                yaml.safe_dump(self.to_dict(), f, sort_keys=False)
            else:
                json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'ScannerConfig':
        """
        Load configuration from a JSON or YAML file.

        Unknown sections are rejected; unknown keys inside a section are
        logged and ignored.

        Raises:
            ConfigurationError: If the file cannot be parsed
        """
        path = Path(path)
        try:
            with open(path) as f:
                if path.suffix in ('.yaml', '.yml'):
                    data = yaml.safe_load(f) or {}
                else:
                    data = json.load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot read {path}: {e}", config_key=str(path)) from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"{path} must contain a mapping", expected="mapping")

        config = cls()
        for section, values in data.items():
            section_cls = _SECTIONS.get(section)
            if section_cls is None:
                raise ConfigurationError(
                    f"Unknown section '{section}'",
                    config_key=section,
                    expected=", ".join(_SECTIONS),
                )
            known = {f.name for f in fields(section_cls)}
            updates = {}
            for key, value in (values or {}).items():
                if key not in known:
                    logger.warning(f"Ignoring unknown config key {section}.{key}")
                    continue
                updates[key] = tuple(value) if isinstance(value, list) else value
            # Frozen sections are rebuilt rather than mutated
            setattr(config, section, replace(getattr(config, section), **updates))

        return config


# Global configuration instance (singleton pattern)
_config: Optional[ScannerConfig] = None


def get_config() -> ScannerConfig:
    """
    Get the global configuration instance.

    Creates a new instance on first call, returns cached instance thereafter.
    """
    global _config
    if _config is None:
        _config = ScannerConfig()
        setup_logging(_config.logging)
    return _config


def reset_config():
    """Reset configuration to defaults (useful for testing)."""
    global _config
    _config = None


def setup_logging(config: LoggingConfig):
    """
    Configure root logging from a LoggingConfig.

    Replaces any handlers installed by an earlier call, so the CLI's
    --verbose takes effect even after get_config() configured logging.
    """
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file))

    logging.basicConfig(
        level=getattr(logging, config.level.upper(), logging.INFO),
        format=config.format,
        datefmt=config.date_format,
        handlers=handlers,
        force=True,
    )
