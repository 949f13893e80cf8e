"""
Tests for FrameOrchestrator
===========================

Covers single-flight intake, result acceptance, mode switching and error
surfacing. Scanners are replaced with Mocks returning ScanOutcomes.
"""

import threading
from unittest.mock import Mock

import numpy as np
import pytest

from vin_scanner.config import ScannerConfig
from vin_scanner.core.errors import CameraAccessError, ConfigurationError, EngineInitError
from vin_scanner.core.frame import Frame
from vin_scanner.core.vin_utils import validate_vin
from vin_scanner.pipeline import FrameOrchestrator, ScannerMode, ScannerStatus
from vin_scanner.pipeline.scanners import BarcodeScanner, ScanOutcome, ScanResult, TextScanner
from vin_scanner.providers.lifecycle import ScannerContext

VALID_VIN = "1HGCM82633A004352"


@pytest.fixture
def frame():
    return Frame.from_gray(np.full((30, 60), 255, dtype=np.uint8))


def found(value=VALID_VIN, source="barcode"):
    return ScanOutcome(result=ScanResult(value, 1.0, source))


def rejected(text):
    return ScanOutcome(rejection=validate_vin(text))


def scanner_returning(*outcomes):
    return Mock(scan=Mock(side_effect=list(outcomes)))


# =============================================================================
# ACCEPTANCE
# =============================================================================

class TestAcceptance:

    def test_result_stops_scanning(self, frame):
        barcode = scanner_returning(found())
        orchestrator = FrameOrchestrator(barcode_scanner=barcode)

        result = orchestrator.submit_frame(frame)
        assert result.value == VALID_VIN

        status = orchestrator.status
        assert status.is_scanning is False
        assert status.last_result is result
        assert status.error is None

    def test_frames_ignored_after_result(self, frame):
        barcode = scanner_returning(found())
        orchestrator = FrameOrchestrator(barcode_scanner=barcode)
        orchestrator.submit_frame(frame)

        assert orchestrator.submit_frame(frame) is None
        assert barcode.scan.call_count == 1

    def test_empty_outcome_keeps_scanning(self, frame):
        orchestrator = FrameOrchestrator(barcode_scanner=scanner_returning(ScanOutcome()))
        assert orchestrator.submit_frame(frame) is None
        assert orchestrator.status == ScannerStatus(True, ScannerMode.BARCODE)

    def test_rejection_sets_first_error(self, frame):
        orchestrator = FrameOrchestrator(barcode_scanner=scanner_returning(rejected("1HGCM82633A004353")))
        assert orchestrator.submit_frame(frame) is None
        status = orchestrator.status
        assert status.is_scanning is True
        assert status.error == "Invalid check digit at position 9. Expected 5, got 3"

    def test_result_clears_previous_error(self, frame):
        barcode = scanner_returning(rejected("SHORT"), found())
        orchestrator = FrameOrchestrator(barcode_scanner=barcode)
        orchestrator.submit_frame(frame)
        assert orchestrator.status.error is not None
        orchestrator.submit_frame(frame)
        assert orchestrator.status.error is None

    def test_reset_resumes(self, frame):
        barcode = scanner_returning(found(), found("1M8GDM9AXKP042788"))
        orchestrator = FrameOrchestrator(barcode_scanner=barcode)
        orchestrator.submit_frame(frame)
        orchestrator.reset()
        assert orchestrator.status.last_result is None
        assert orchestrator.submit_frame(frame).value == "1M8GDM9AXKP042788"

    def test_stop(self, frame):
        barcode = scanner_returning(found())
        orchestrator = FrameOrchestrator(barcode_scanner=barcode)
        orchestrator.stop()
        assert orchestrator.submit_frame(frame) is None
        barcode.scan.assert_not_called()

    def test_status_to_dict(self, frame):
        orchestrator = FrameOrchestrator(barcode_scanner=scanner_returning(found()))
        orchestrator.submit_frame(frame)
        data = orchestrator.status.to_dict()
        assert data["is_scanning"] is False
        assert data["mode"] == "barcode"
        assert data["last_result"]["value"] == VALID_VIN


# =============================================================================
# MODES
# =============================================================================

class TestModes:

    def test_dispatch_by_mode(self, frame):
        barcode = scanner_returning(ScanOutcome())
        text = scanner_returning(ScanOutcome())
        orchestrator = FrameOrchestrator(barcode, text, mode="text")
        orchestrator.submit_frame(frame)
        text.scan.assert_called_once_with(frame)
        barcode.scan.assert_not_called()

    def test_per_frame_mode_override(self, frame):
        barcode = scanner_returning(ScanOutcome())
        text = scanner_returning(ScanOutcome())
        orchestrator = FrameOrchestrator(barcode, text, mode=ScannerMode.BARCODE)
        orchestrator.submit_frame(frame, ScannerMode.TEXT)
        text.scan.assert_called_once()
        assert orchestrator.status.mode == ScannerMode.BARCODE

    def test_set_mode_clears_state(self, frame):
        barcode = scanner_returning(found())
        orchestrator = FrameOrchestrator(barcode, scanner_returning())
        orchestrator.submit_frame(frame)

        orchestrator.set_mode(ScannerMode.TEXT)
        assert orchestrator.status == ScannerStatus(True, ScannerMode.TEXT)

    def test_unknown_mode(self):
        with pytest.raises(ConfigurationError):
            FrameOrchestrator(mode="infrared")

    def test_manual_mode_ignores_frames(self, frame):
        barcode = scanner_returning(found())
        orchestrator = FrameOrchestrator(barcode, mode=ScannerMode.MANUAL)
        assert orchestrator.submit_frame(frame) is None
        barcode.scan.assert_not_called()

    def test_missing_scanner(self, frame):
        orchestrator = FrameOrchestrator(barcode_scanner=None, mode="barcode")
        assert orchestrator.submit_frame(frame) is None
        assert not orchestrator.in_flight


class TestManualEntry:

    def test_valid_entry(self):
        orchestrator = FrameOrchestrator(mode=ScannerMode.MANUAL)
        result = orchestrator.submit_manual("1hg cm82633a004352")
        assert result.value == VALID_VIN
        assert result.source == "manual"
        assert result.confidence == 1.0
        assert orchestrator.status.is_scanning is False

    def test_invalid_entry(self):
        orchestrator = FrameOrchestrator(mode=ScannerMode.MANUAL)
        assert orchestrator.submit_manual("1HGCM82633A00435") is None
        assert orchestrator.status.error == "VIN must be 17 characters long (got 16)"


# =============================================================================
# ERRORS
# =============================================================================

class TestErrors:

    @pytest.mark.parametrize("error", [
        EngineInitError("tesseract not found", engine="Tesseract"),
        CameraAccessError("permission denied"),
    ])
    def test_fatal_errors_surface(self, frame, error):
        barcode = Mock(scan=Mock(side_effect=error))
        orchestrator = FrameOrchestrator(barcode_scanner=barcode)
        with pytest.raises(type(error)):
            orchestrator.submit_frame(frame)
        assert orchestrator.status.error == error.message
        assert not orchestrator.in_flight

    def test_unexpected_error_swallowed(self, frame):
        barcode = Mock(scan=Mock(side_effect=[RuntimeError("bug"), found()]))
        orchestrator = FrameOrchestrator(barcode_scanner=barcode)
        assert orchestrator.submit_frame(frame) is None
        assert not orchestrator.in_flight
        assert orchestrator.submit_frame(frame).value == VALID_VIN


# =============================================================================
# SINGLE-FLIGHT
# =============================================================================

class TestSingleFlight:

    def test_second_frame_dropped_while_in_flight(self, frame):
        started = threading.Event()
        release = threading.Event()

        def slow_scan(f):
            started.set()
            release.wait(timeout=5)
            return found()

        barcode = Mock(scan=Mock(side_effect=slow_scan))
        orchestrator = FrameOrchestrator(barcode_scanner=barcode)
        results = []
        worker = threading.Thread(target=lambda: results.append(orchestrator.submit_frame(frame)))
        worker.start()
        assert started.wait(timeout=5)

        before = orchestrator.status
        assert orchestrator.in_flight
        assert orchestrator.submit_frame(frame) is None
        assert barcode.scan.call_count == 1
        assert orchestrator.status == before

        release.set()
        worker.join(timeout=5)
        assert results[0].value == VALID_VIN
        assert not orchestrator.in_flight

    def test_mode_switch_does_not_cancel(self, frame):
        started = threading.Event()
        release = threading.Event()

        def slow_scan(f):
            started.set()
            release.wait(timeout=5)
            return ScanOutcome()

        barcode = Mock(scan=Mock(side_effect=slow_scan))
        orchestrator = FrameOrchestrator(barcode, scanner_returning())
        worker = threading.Thread(target=orchestrator.submit_frame, args=(frame,))
        worker.start()
        assert started.wait(timeout=5)

        orchestrator.set_mode(ScannerMode.TEXT)
        assert orchestrator.in_flight
        release.set()
        worker.join(timeout=5)
        assert barcode.scan.call_count == 1
        assert orchestrator.status.mode == ScannerMode.TEXT

    def test_many_threads_one_result(self, frame):
        gate = threading.Barrier(6)
        barcode = Mock(scan=Mock(return_value=found()))
        orchestrator = FrameOrchestrator(barcode_scanner=barcode)
        results = []
        lock = threading.Lock()

        def submit():
            gate.wait(timeout=5)
            result = orchestrator.submit_frame(frame)
            if result is not None:
                with lock:
                    results.append(result)

        threads = [threading.Thread(target=submit) for _ in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)
        assert len(results) == 1


# =============================================================================
# WIRING
# =============================================================================

class TestFromContext:

    def test_builds_scanners(self):
        config = ScannerConfig()
        config.scanner.default_mode = "text"
        config.scanner.character_fallback = True
        context = ScannerContext(config, text_factory=Mock(), barcode_factory=Mock(), device_probe=Mock())

        orchestrator = FrameOrchestrator.from_context(context, config)
        assert isinstance(orchestrator.barcode_scanner, BarcodeScanner)
        assert isinstance(orchestrator.text_scanner, TextScanner)
        assert orchestrator.barcode_scanner.handle is context.barcode
        assert orchestrator.text_scanner.handle is context.text
        assert orchestrator.text_scanner.character_fallback is True
        assert orchestrator.status.mode == ScannerMode.TEXT
