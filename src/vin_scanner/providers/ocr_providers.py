"""
OCR Providers - Text Recognition Engine Abstraction
===================================================

Provides a unified interface for the text recognition backends:
- Tesseract (default, local, via pytesseract)
- PaddleOCR (optional extra)

Every engine returns per-line results with a confidence in [0, 1] so the
candidate extractor can attribute a VIN to the line it came from.

Usage:
    from vin_scanner.providers import TextEngineFactory

    engine = TextEngineFactory.create("tesseract")
    engine.initialize()
    lines = engine.recognize(frame)
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Type

import cv2
import numpy as np
import pytesseract

from ..config import TextEngineConfig
from ..core.errors import EngineInitError, RecognitionError
from ..core.frame import Frame

logger = logging.getLogger(__name__)


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class RecognizedLine:
    """
    One line of recognized text.

    Attributes:
        text: Recognized text as returned by the engine
        confidence: Confidence score (0.0 to 1.0)
    """
    text: str
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "confidence": self.confidence}


# =============================================================================
# ABSTRACT BASE CLASS
# =============================================================================

class TextRecognitionEngine(ABC):
    """
    Abstract base class for text recognition engines.

    Engines are constructed and released only by TextEngineHandle; every
    other component receives one per call.
    """

    _initialized: bool = False

    def __init__(self, config: Optional[TextEngineConfig] = None):
        self.config = config or TextEngineConfig()
        self._initialized = False

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the engine name."""
        ...

    @property
    def is_initialized(self) -> bool:
        """Check if the engine has been initialized."""
        return self._initialized

    @abstractmethod
    def initialize(self) -> None:
        """
        Initialize the OCR engine.

        Raises:
            EngineInitError: If initialization fails
        """
        ...

    def terminate(self) -> None:
        """Release engine resources."""
        self._initialized = False

    @abstractmethod
    def recognize(
        self,
        frame: Frame,
        char_whitelist: Optional[str] = None,
        page_seg_mode: Optional[int] = None,
    ) -> List[RecognizedLine]:
        """
        Recognize text lines in a frame.

        Args:
            frame: Frame to read (usually binarized)
            char_whitelist: Allowed characters (config default if None)
            page_seg_mode: Tesseract-style segmentation mode (config default if None)

        Returns:
            Recognized lines in reading order

        Raises:
            RecognitionError: If recognition fails
        """
        ...

    def _settings(self, char_whitelist: Optional[str], page_seg_mode: Optional[int]) -> Tuple[str, int]:
        whitelist = char_whitelist if char_whitelist is not None else self.config.char_whitelist
        psm = page_seg_mode if page_seg_mode is not None else self.config.page_seg_mode
        return whitelist, psm


# =============================================================================
# TESSERACT ENGINE
# =============================================================================

class TesseractEngine(TextRecognitionEngine):
    """
    Tesseract LSTM recognition via pytesseract.

    Features:
    - Character whitelist restricted to the VIN alphabet
    - Single-line page segmentation by default
    - Per-line confidence aggregated from word confidences
    """

    @property
    def name(self) -> str:
        return "Tesseract"

    def initialize(self) -> None:
        """Locate the tesseract binary."""
        if self._initialized:
            return

        if self.config.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.config.tesseract_cmd

        try:
            version = pytesseract.get_tesseract_version()
        except (pytesseract.TesseractNotFoundError, OSError) as e:
            raise EngineInitError(
                "tesseract binary not found. Install tesseract-ocr or set VIN_TESSERACT_CMD",
                engine=self.name,
                details=str(e),
            ) from e

        self._initialized = True
        logger.info(f"Tesseract {version} initialized (psm={self.config.page_seg_mode}, oem={self.config.engine_mode})")

    def _build_config(self, whitelist: str, psm: int) -> str:
        return f"--oem {self.config.engine_mode} --psm {psm} -c tessedit_char_whitelist={whitelist}"

    def recognize(
        self,
        frame: Frame,
        char_whitelist: Optional[str] = None,
        page_seg_mode: Optional[int] = None,
    ) -> List[RecognizedLine]:
        if not self._initialized:
            self.initialize()

        whitelist, psm = self._settings(char_whitelist, page_seg_mode)
        rgb = cv2.cvtColor(np.ascontiguousarray(frame.pixels), cv2.COLOR_RGBA2RGB)

        try:
            data = pytesseract.image_to_data(
                rgb,
                lang=self.config.language,
                config=self._build_config(whitelist, psm),
                output_type=pytesseract.Output.DICT,
            )
        except (pytesseract.TesseractError, RuntimeError) as e:
            raise RecognitionError(str(e), engine=self.name) from e

        return self._parse_result(data)

    def _parse_result(self, data: Dict[str, List[Any]]) -> List[RecognizedLine]:
        """Group word-level output into lines keyed by (block, paragraph, line)."""
        lines: Dict[Tuple[int, int, int], Tuple[List[str], List[float]]] = {}

        for i, word in enumerate(data.get("text", [])):
            word = str(word).strip()
            if not word:
                continue
            key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
            words, confs = lines.setdefault(key, ([], []))
            words.append(word)
            try:
                conf = float(data["conf"][i])
            except (TypeError, ValueError):
                continue
            if conf >= 0:
                confs.append(conf)

        return [
            RecognizedLine(
                text=" ".join(words),
                confidence=float(np.mean(confs)) / 100.0 if confs else 0.0,
            )
            for words, confs in lines.values()
        ]


# =============================================================================
# PADDLEOCR ENGINE
# =============================================================================

class PaddleTextEngine(TextRecognitionEngine):
    """
    PaddleOCR-based text recognition.

    PaddleOCR has no whitelist or page-segmentation controls; the whitelist
    is applied to its output and the segmentation mode is ignored.
    """

    ocr_version: str = "PP-OCRv3"  # PP-OCRv3 works better for VIN plates

    def __init__(self, config: Optional[TextEngineConfig] = None):
        super().__init__(config)
        self._ocr = None

    @property
    def name(self) -> str:
        return "PaddleOCR"

    def initialize(self) -> None:
        """Initialize PaddleOCR engine."""
        if self._initialized:
            return

        try:
            from paddleocr import PaddleOCR
        except ImportError as e:
            raise EngineInitError(
                "PaddleOCR is not installed. Run: pip install 'vin-scanner[paddle]'",
                engine=self.name,
            ) from e

        try:
            logger.info(f"Initializing PaddleOCR with {self.ocr_version}...")
            self._ocr = PaddleOCR(
                lang='en',
                ocr_version=self.ocr_version,
                use_doc_orientation_classify=False,
                use_doc_unwarping=False,
                use_textline_orientation=False,
            )
        except Exception as e:
            raise EngineInitError(f"Failed to initialize PaddleOCR: {e}", engine=self.name, details=str(e)) from e

        self._initialized = True
        logger.info(f"PaddleOCR ({self.ocr_version}) initialized successfully")

    def terminate(self) -> None:
        self._ocr = None
        super().terminate()

    def recognize(
        self,
        frame: Frame,
        char_whitelist: Optional[str] = None,
        page_seg_mode: Optional[int] = None,
    ) -> List[RecognizedLine]:
        if not self._initialized:
            self.initialize()

        whitelist, _ = self._settings(char_whitelist, page_seg_mode)
        try:
            result = self._ocr.predict(frame.to_bgr())
        except Exception as e:
            raise RecognitionError(f"OCR prediction failed: {e}", engine=self.name) from e

        allowed = set(whitelist)
        return [
            RecognizedLine(text=''.join(c for c in line.text.upper() if c in allowed), confidence=line.confidence)
            for line in self._parse_result(result)
        ]

    def _parse_result(self, result: Any) -> List[RecognizedLine]:
        """Parse PaddleOCR v3.x result format (list of dicts)."""
        if not result:
            return []

        if isinstance(result, list):
            result = result[0]

        if not isinstance(result, dict):
            return []

        texts = result.get('rec_texts', [])
        scores = result.get('rec_scores', [])
        return [
            RecognizedLine(text=str(text), confidence=float(scores[i]) if i < len(scores) else 0.0)
            for i, text in enumerate(texts)
        ]


# =============================================================================
# ENGINE FACTORY
# =============================================================================

class TextEngineFactory:
    """
    Factory for creating text recognition engines.

    Usage:
        engine = TextEngineFactory.create("tesseract")
        engine = TextEngineFactory.create("paddleocr", config=TextEngineConfig(engine="paddleocr"))
    """

    _engines: Dict[str, Type[TextRecognitionEngine]] = {
        "tesseract": TesseractEngine,
        "paddleocr": PaddleTextEngine,
    }

    @classmethod
    def create(
        cls,
        engine: Optional[str] = None,
        config: Optional[TextEngineConfig] = None,
    ) -> TextRecognitionEngine:
        """
        Create an engine instance (not yet initialized).

        Raises:
            EngineInitError: If the engine name is not registered
        """
        config = config or TextEngineConfig()
        name = (engine or config.engine).lower()
        engine_class = cls._engines.get(name)
        if engine_class is None:
            raise EngineInitError(
                f"Unknown text engine '{name}'. Available: {cls.list_available()}",
                engine=name,
            )
        return engine_class(config=config)

    @classmethod
    def list_available(cls) -> List[str]:
        """List all registered engine names."""
        return list(cls._engines.keys())

    @classmethod
    def register(cls, name: str, engine_class: type) -> None:
        """
        Register a new engine type.

        Args:
            name: Engine name used in configuration
            engine_class: The engine class to register
        """
        if not issubclass(engine_class, TextRecognitionEngine):
            raise TypeError(
                f"Engine class must inherit from TextRecognitionEngine, "
                f"got {engine_class.__name__}"
            )
        cls._engines[name.lower()] = engine_class
        logger.info(f"Registered text engine: {name}")
