"""
Frame Orchestrator
==================

Gates camera frames into the recognition pipeline.

At most one frame is in flight at any time. A frame that arrives while
another is being recognized is dropped, never queued. The first accepted
ScanResult halts scanning until reset() or set_mode() re-enables it.

Usage:
    from vin_scanner.pipeline import FrameOrchestrator
    from vin_scanner.providers import ScannerContext

    with ScannerContext(config) as context:
        orchestrator = FrameOrchestrator.from_context(context, config)
        for frame in frames:
            result = orchestrator.submit_frame(frame)
            if result:
                break
"""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from ..config import ScannerConfig
from ..core.errors import CameraAccessError, ConfigurationError, EngineInitError
from ..core.frame import Frame
from ..preprocessing import VINPreprocessor
from ..providers.lifecycle import ScannerContext
from ..segmentation import RegionSegmenter
from .candidates import CandidateExtractor
from .scanners import BarcodeScanner, ScannerMode, ScanOutcome, ScanResult, TextScanner, accept

logger = logging.getLogger(__name__)


@contextmanager
def _timer():
    """Context manager for timing operations."""
    start = time.perf_counter()
    elapsed = {'ms': 0.0}
    yield elapsed
    elapsed['ms'] = (time.perf_counter() - start) * 1000


@dataclass(frozen=True)
class ScannerStatus:
    """Snapshot of the orchestrator state for the result consumer."""
    is_scanning: bool
    mode: ScannerMode
    error: Optional[str] = None
    last_result: Optional[ScanResult] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'is_scanning': self.is_scanning,
            'mode': self.mode.value,
            'error': self.error,
            'last_result': self.last_result.to_dict() if self.last_result else None,
        }


def _as_mode(mode: Union[str, ScannerMode]) -> ScannerMode:
    try:
        return ScannerMode(mode)
    except ValueError as e:
        raise ConfigurationError(
            f"Unknown scan mode {mode!r}",
            config_key='scanner.default_mode',
            expected=', '.join(m.value for m in ScannerMode),
        ) from e


class FrameOrchestrator:
    """
    Single-flight frame intake.

    Attributes:
        barcode_scanner: Scanner for ScannerMode.BARCODE
        text_scanner: Scanner for ScannerMode.TEXT
    """

    def __init__(
        self,
        barcode_scanner: Optional[BarcodeScanner] = None,
        text_scanner: Optional[TextScanner] = None,
        mode: Union[str, ScannerMode] = ScannerMode.BARCODE,
    ):
        self.barcode_scanner = barcode_scanner
        self.text_scanner = text_scanner

        self._in_flight = threading.Lock()
        self._state_lock = threading.Lock()
        self._mode = _as_mode(mode)
        self._is_scanning = True
        self._error: Optional[str] = None
        self._last_result: Optional[ScanResult] = None

    @classmethod
    def from_context(cls, context: ScannerContext, config: Optional[ScannerConfig] = None) -> 'FrameOrchestrator':
        """Wire both scanners to the engines owned by a ScannerContext."""
        config = config or ScannerConfig()
        text_scanner = TextScanner(
            context.text,
            preprocessor=VINPreprocessor(config.preprocessing),
            extractor=CandidateExtractor(),
            segmenter=RegionSegmenter(config.segmentation),
            engine_config=config.text_engine,
            character_fallback=config.scanner.character_fallback,
            min_confidence=config.scanner.min_confidence,
        )
        return cls(BarcodeScanner(context.barcode), text_scanner, mode=config.scanner.default_mode)

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def status(self) -> ScannerStatus:
        with self._state_lock:
            return ScannerStatus(self._is_scanning, self._mode, self._error, self._last_result)

    @property
    def in_flight(self) -> bool:
        return self._in_flight.locked()

    def set_mode(self, mode: Union[str, ScannerMode]) -> None:
        """
        Switch recognition path.

        Clears error and result and re-enables scanning. A frame already in
        flight is not cancelled.
        """
        mode = _as_mode(mode)
        with self._state_lock:
            self._mode = mode
            self._clear()
        logger.info(f"Scan mode set to {mode.value}")

    def reset(self) -> None:
        """Re-enable scanning after a result was accepted."""
        with self._state_lock:
            self._clear()
        logger.debug("Scanner reset")

    def stop(self) -> None:
        """Stop admitting frames without touching the frame in flight."""
        with self._state_lock:
            self._is_scanning = False

    def _clear(self) -> None:
        self._is_scanning = True
        self._error = None
        self._last_result = None

    # -------------------------------------------------------------------------
    # Intake
    # -------------------------------------------------------------------------

    def submit_frame(self, frame: Frame, mode: Optional[Union[str, ScannerMode]] = None) -> Optional[ScanResult]:
        """
        Run one ROI frame through the active recognition path.

        Args:
            frame: ROI-cropped RGBA frame
            mode: Override the current mode for this frame only

        Returns:
            The accepted ScanResult, or None (dropped, nothing found, rejected)

        Raises:
            EngineInitError: If the engine for this mode cannot be constructed
            CameraAccessError: If camera access fails fatally
        """
        with self._state_lock:
            if not self._is_scanning:
                return None
            active = _as_mode(mode) if mode is not None else self._mode

        if active == ScannerMode.MANUAL:
            return None

        if not self._in_flight.acquire(blocking=False):
            logger.debug("Frame dropped: recognition already in flight")
            return None

        try:
            logger.debug(f"Scan attempt ({active.value}) on {frame.width}x{frame.height} frame")
            with _timer() as elapsed:
                outcome = self._dispatch(frame, active)
            logger.debug(f"{active.value} pass finished in {elapsed['ms']:.1f}ms")
            return self._apply(outcome)
        except (EngineInitError, CameraAccessError) as e:
            with self._state_lock:
                self._error = e.message
            raise
        except Exception as e:
            logger.exception(f"Frame processing failed: {e}")
            return None
        finally:
            self._in_flight.release()

    def submit_manual(self, text: str) -> Optional[ScanResult]:
        """Validate a typed VIN under the same acceptance rules as scans."""
        with self._state_lock:
            if not self._is_scanning:
                return None
        return self._apply(accept(text, 1.0, ScannerMode.MANUAL))

    def _dispatch(self, frame: Frame, mode: ScannerMode) -> ScanOutcome:
        scanner = self.barcode_scanner if mode == ScannerMode.BARCODE else self.text_scanner
        if scanner is None:
            raise ConfigurationError(f"No scanner configured for mode {mode.value}")
        return scanner.scan(frame)

    def _apply(self, outcome: ScanOutcome) -> Optional[ScanResult]:
        with self._state_lock:
            result = outcome.result
            if result is not None:
                if not self._is_scanning:
                    logger.debug(f"Discarding {result.value}: scanning already stopped")
                    return None
                self._is_scanning = False
                self._last_result = result
                self._error = None
                logger.info(f"Accepted VIN {result.value} from {result.source} (confidence {result.confidence:.2f})")
                return result
            if outcome.rejection is not None:
                self._error = outcome.rejection.first_error
                logger.debug(f"Rejected: {self._error}")
            return None
