"""
VIN Scanner Pipeline Module
===========================

Frame intake, per-mode scanners and candidate extraction.
"""

from .candidates import CandidateExtractor, CandidateMatch
from .scanners import (
    ScannerMode,
    ScanResult,
    ScanOutcome,
    BarcodeScanner,
    TextScanner,
)
from .orchestrator import FrameOrchestrator, ScannerStatus

__all__ = [
    "CandidateExtractor",
    "CandidateMatch",
    "ScannerMode",
    "ScanResult",
    "ScanOutcome",
    "BarcodeScanner",
    "TextScanner",
    "FrameOrchestrator",
    "ScannerStatus",
]
