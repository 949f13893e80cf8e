"""
Per-mode scanners
=================

One scanner per recognition path. Each turns a single ROI frame into a
ScanOutcome: an accepted ScanResult, a rejected validation, or nothing.

Per-frame recognition failures are logged here and never propagate; engine
initialization failures raised by handle.get() do.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import cv2
import numpy as np

from ..config import TextEngineConfig
from ..core.errors import RecognitionError
from ..core.frame import Frame
from ..core.vin_utils import VIN_LENGTH, ValidationResult, validate_vin
from ..preprocessing import VINPreprocessor
from ..providers.lifecycle import BarcodeEngineHandle, TextEngineHandle
from ..providers.ocr_providers import RecognizedLine
from ..segmentation import Region, RegionSegmenter
from .candidates import CandidateExtractor

logger = logging.getLogger(__name__)


class ScannerMode(str, Enum):
    BARCODE = 'barcode'
    TEXT = 'text'
    MANUAL = 'manual'


@dataclass(frozen=True)
class ScanResult:
    """
    An accepted VIN.

    Only ever built from a string the validator accepted.
    """
    value: str
    confidence: float
    source: str
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'value': self.value,
            'confidence': self.confidence,
            'source': self.source,
            'timestamp': self.timestamp,
        }


@dataclass(frozen=True)
class ScanOutcome:
    result: Optional[ScanResult] = None
    rejection: Optional[ValidationResult] = None


def accept(text: str, confidence: float, source: ScannerMode) -> ScanOutcome:
    """Validate a recognized string and wrap it as an outcome."""
    validation = validate_vin(text)
    if not validation.is_valid:
        return ScanOutcome(rejection=validation)
    return ScanOutcome(result=ScanResult(validation.normalized_vin, confidence, source.value))


class BarcodeScanner:
    """Symbol decoding path; a decoded VIN has confidence 1.0."""

    mode = ScannerMode.BARCODE

    def __init__(self, handle: BarcodeEngineHandle):
        self.handle = handle

    def scan(self, frame: Frame) -> ScanOutcome:
        decoder = self.handle.get()
        try:
            text = decoder.decode(frame)
        except RecognitionError as e:
            if not e.no_symbol:
                logger.warning(e.message)
            return ScanOutcome()

        if not text:
            return ScanOutcome()
        logger.debug(f"Barcode text: {text!r}")
        return accept(text, 1.0, self.mode)


class TextScanner:
    """
    OCR path: preprocess, recognize lines, extract and validate candidates.

    With character_fallback enabled, a frame whose lines yield no candidate
    is segmented into glyphs and each glyph is recognized on its own.
    """

    mode = ScannerMode.TEXT
    glyph_padding = 8

    def __init__(
        self,
        handle: TextEngineHandle,
        preprocessor: Optional[VINPreprocessor] = None,
        extractor: Optional[CandidateExtractor] = None,
        segmenter: Optional[RegionSegmenter] = None,
        engine_config: Optional[TextEngineConfig] = None,
        character_fallback: bool = False,
        min_confidence: float = 0.0,
    ):
        self.handle = handle
        self.preprocessor = preprocessor or VINPreprocessor()
        self.extractor = extractor or CandidateExtractor()
        self.segmenter = segmenter or RegionSegmenter()
        self.engine_config = engine_config or handle.config
        self.character_fallback = character_fallback
        self.min_confidence = min_confidence

    def scan(self, frame: Frame) -> ScanOutcome:
        engine = self.handle.get()
        binary = self.preprocessor.process(frame)

        try:
            lines = engine.recognize(
                binary,
                char_whitelist=self.engine_config.char_whitelist,
                page_seg_mode=self.engine_config.page_seg_mode,
            )
        except RecognitionError as e:
            logger.warning(e.message)
            return ScanOutcome()

        lines = [line for line in lines if line.confidence >= self.min_confidence]
        logger.debug(f"Text engine returned {len(lines)} line(s)")

        match, rejection = self.extractor.select(lines)
        if match is None and self.character_fallback:
            match, rejection = self._scan_characters(engine, binary, rejection)

        if match is not None:
            return ScanOutcome(result=ScanResult(match.vin, match.confidence, self.mode.value))
        return ScanOutcome(rejection=rejection)

    def _scan_characters(self, engine, binary: Frame, rejection: Optional[ValidationResult]):
        regions = sorted(self.segmenter.find_regions(binary), key=lambda r: r.x)
        if len(regions) < VIN_LENGTH:
            logger.debug(f"Character fallback skipped: {len(regions)} glyph region(s)")
            return None, rejection

        chars: List[str] = []
        confidences: List[float] = []
        for region in regions:
            try:
                glyphs = engine.recognize(
                    self._glyph(binary, region),
                    char_whitelist=self.engine_config.char_whitelist,
                    page_seg_mode=self.engine_config.char_page_seg_mode,
                )
            except RecognitionError as e:
                logger.warning(e.message)
                return None, rejection
            text = ''.join(CandidateExtractor.clean_line(g.text) for g in glyphs)
            if text:
                chars.append(text[0])
                confidences.append(max(g.confidence for g in glyphs))

        line = RecognizedLine(''.join(chars), float(np.mean(confidences)) if confidences else 0.0)
        logger.debug(f"Character fallback read {line.text!r}")
        match, char_rejection = self.extractor.select([line])
        return match, rejection or char_rejection

    def _glyph(self, binary: Frame, region: Region) -> Frame:
        """Crop one glyph onto a white margin so the engine sees a lone character."""
        glyph = binary.crop(region.x, region.y, region.width, region.height)
        pad = self.glyph_padding
        padded = cv2.copyMakeBorder(
            np.ascontiguousarray(glyph.pixels), pad, pad, pad, pad,
            cv2.BORDER_CONSTANT, value=(255, 255, 255, 255),
        )
        return Frame(padded)
