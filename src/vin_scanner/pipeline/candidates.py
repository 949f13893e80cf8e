"""
VIN candidate extraction from recognized text lines.

OCR output rarely contains a clean 17-character VIN: labels add prefixes
("VIN:"), separators, and neighbouring text. The extractor collects every
plausible 17-character substring and hands them to the validator in order.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ..core.vin_utils import VIN_LENGTH, ValidationResult, is_plausible_vin, validate_vin
from ..providers.ocr_providers import RecognizedLine

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r'[^A-Z0-9]')
_VIN_RUN = re.compile(r'[A-HJ-NPR-Z0-9]{17}')


@dataclass(frozen=True)
class CandidateMatch:
    """A validated candidate and the confidence of the line it came from."""
    vin: str
    confidence: float
    validation: ValidationResult


class CandidateExtractor:
    """
    Collects and ranks VIN candidates.

    Example:
        extractor = CandidateExtractor()
        match, rejection = extractor.select(engine.recognize(frame))
        if match:
            print(match.vin, match.confidence)
    """

    def __init__(self, validator: Callable[[str], ValidationResult] = validate_vin):
        self.validator = validator

    @staticmethod
    def clean_line(text: str) -> str:
        """Strip everything outside A-Z0-9; lowercase OCR output is noise."""
        return _NON_ALNUM.sub('', text)

    @staticmethod
    def find_candidates(cleaned: str) -> List[str]:
        """
        Candidates in one cleaned line: regex matches first, then every
        sliding window that passes the structural pre-filter.
        """
        if len(cleaned) < VIN_LENGTH:
            return []

        found = [m.group(0) for m in _VIN_RUN.finditer(cleaned)]
        for start in range(len(cleaned) - VIN_LENGTH + 1):
            window = cleaned[start:start + VIN_LENGTH]
            if is_plausible_vin(window):
                found.append(window)
        return found

    def _collect(self, lines: Iterable[RecognizedLine]) -> Dict[str, float]:
        # dict preserves first-seen order; the first line's confidence sticks
        candidates: Dict[str, float] = {}
        for line in lines:
            for candidate in self.find_candidates(self.clean_line(line.text)):
                candidates.setdefault(candidate, line.confidence)
        return candidates

    def extract(self, lines: Iterable[RecognizedLine]) -> List[str]:
        """Ordered, de-duplicated candidates across all lines."""
        return list(self._collect(lines))

    def select(
        self, lines: Iterable[RecognizedLine]
    ) -> Tuple[Optional[CandidateMatch], Optional[ValidationResult]]:
        """
        Validate candidates in collection order.

        Returns:
            (first valid match or None, first rejected ValidationResult or None)
        """
        rejection = None
        for candidate, confidence in self._collect(lines).items():
            result = self.validator(candidate)
            if result.is_valid:
                logger.debug(f"Accepted candidate {result.normalized_vin} (confidence {confidence:.2f})")
                return CandidateMatch(result.normalized_vin, confidence, result), rejection
            if rejection is None:
                rejection = result
            logger.debug(f"Rejected candidate {candidate}: {result.first_error}")
        return None, rejection
