"""
VIN Utilities - Single Source of Truth
======================================

VIN grammar, checksum and structural decoding shared by every scanner path.

The validator is a pure function: it never raises for bad input, it returns
a ValidationResult carrying an ordered list of human-readable reasons and the
normalized VIN so callers can show the first error or all of them.
"""

import re
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

logger = logging.getLogger(__name__)


# =============================================================================
# VIN CONSTANTS
# =============================================================================

class VINConstants:
    """Immutable VIN specification constants per ISO 3779 / NHTSA."""

    LENGTH: int = 17

    # Valid characters (I, O, Q excluded to avoid confusion with 1, 0)
    VALID_CHARS: FrozenSet[str] = frozenset("0123456789ABCDEFGHJKLMNPRSTUVWXYZ")
    INVALID_CHARS: FrozenSet[str] = frozenset("IOQ")

    # Position indices (1-based as per VIN spec)
    CHECK_DIGIT_POSITION: int = 9
    YEAR_POSITION: int = 10
    PLANT_POSITION: int = 11

    # Checksum weights by position (NHTSA standard)
    CHECKSUM_WEIGHTS: Tuple[int, ...] = (8, 7, 6, 5, 4, 3, 2, 10, 0, 9, 8, 7, 6, 5, 4, 3, 2)

    # Character to value mapping for checksum (ISO 3779)
    CHAR_VALUES: Dict[str, int] = {
        'A': 1, 'B': 2, 'C': 3, 'D': 4, 'E': 5, 'F': 6, 'G': 7, 'H': 8,
        'J': 1, 'K': 2, 'L': 3, 'M': 4, 'N': 5, 'P': 7, 'R': 9,
        'S': 2, 'T': 3, 'U': 4, 'V': 5, 'W': 6, 'X': 7, 'Y': 8, 'Z': 9,
        '0': 0, '1': 1, '2': 2, '3': 3, '4': 4, '5': 5, '6': 6, '7': 7, '8': 8, '9': 9
    }

    # A run of this many identical characters is rejected
    MAX_IDENTICAL_RUN: int = 4

    # Tesseract whitelist, same alphabet as VALID_CHARS
    OCR_WHITELIST: str = "ABCDEFGHJKLMNPRSTUVWXYZ0123456789"


VIN_LENGTH = VINConstants.LENGTH
VIN_VALID_CHARS = VINConstants.VALID_CHARS
VIN_INVALID_CHARS = VINConstants.INVALID_CHARS

# Pre-compiled patterns
_NON_VIN_CHARS = re.compile(r'[^A-HJ-NPR-Z0-9]')
_FIRST_CHAR = re.compile(r'^[A-HJ-NPR-Z1-5]$')
_YEAR_CHAR = re.compile(r'^[A-HJ-NPR-TV-Y1-9]$')
_CHECK_CHAR = re.compile(r'^[0-9X]$')
_VIN_BODY = re.compile(r'^[A-HJ-NPR-Z0-9]{17}$')
_IDENTICAL_RUN = re.compile(r'(.)\1{%d}' % (VINConstants.MAX_IDENTICAL_RUN - 1))

# Error messages
ERR_FIRST_CHAR = "First character must be a letter or number 1-5"
ERR_IDENTICAL_RUN = "Invalid pattern: too many consecutive identical characters"
ERR_YEAR_CHAR = "Invalid year character at position 10"


# =============================================================================
# VIN VALIDATION
# =============================================================================

@dataclass(frozen=True)
class CheckDigitMismatch:
    """Diagnostic record for a failed checksum."""
    expected: str
    actual: str


@dataclass
class ValidationResult:
    """Result of VIN validation."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    normalized_vin: str = ""
    check_digit_mismatch: Optional[CheckDigitMismatch] = None

    @property
    def first_error(self) -> Optional[str]:
        return self.errors[0] if self.errors else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'is_valid': self.is_valid,
            'errors': list(self.errors),
            'normalized_vin': self.normalized_vin,
            'check_digit_mismatch': (
                {
                    'expected': self.check_digit_mismatch.expected,
                    'actual': self.check_digit_mismatch.actual,
                }
                if self.check_digit_mismatch else None
            ),
        }


def normalize_vin(text: str) -> str:
    """Uppercase, trim and drop every character outside the VIN alphabet."""
    return _NON_VIN_CHARS.sub('', text.upper().strip())


def validate_vin(vin: str) -> ValidationResult:
    """
    Validate a VIN against the ISO 3779 grammar and mod-11 checksum.

    Checks, in order:
    1. Length (exactly 17 after normalization; returns immediately otherwise)
    2. First character is a letter or a digit 1-5
    3. No run of 4 identical characters
    4. Model year character at position 10
    5. Check digit at position 9

    Args:
        vin: Raw text, may contain separators and lowercase letters

    Returns:
        ValidationResult; normalized_vin is populated even when invalid
    """
    normalized = normalize_vin(vin)
    errors: List[str] = []

    if len(normalized) != VIN_LENGTH:
        errors.append(f"VIN must be {VIN_LENGTH} characters long (got {len(normalized)})")
        return ValidationResult(is_valid=False, errors=errors, normalized_vin=normalized)

    if not _FIRST_CHAR.match(normalized[0]):
        errors.append(ERR_FIRST_CHAR)

    if _IDENTICAL_RUN.search(normalized):
        errors.append(ERR_IDENTICAL_RUN)

    if not _YEAR_CHAR.match(normalized[VINConstants.YEAR_POSITION - 1]):
        errors.append(ERR_YEAR_CHAR)

    invalid_chars = [
        f"{char} at position {i + 1}"
        for i, char in enumerate(normalized)
        if char not in VINConstants.CHAR_VALUES
    ]
    if invalid_chars:
        errors.append(f"Invalid characters found: {', '.join(invalid_chars)}")
        return ValidationResult(is_valid=False, errors=errors, normalized_vin=normalized)

    mismatch = None
    expected = calculate_check_digit(normalized)
    actual = normalized[VINConstants.CHECK_DIGIT_POSITION - 1]
    if actual != expected:
        mismatch = CheckDigitMismatch(expected=expected, actual=actual)
        errors.append(
            f"Invalid check digit at position {VINConstants.CHECK_DIGIT_POSITION}. "
            f"Expected {expected}, got {actual}"
        )

    return ValidationResult(
        is_valid=not errors,
        errors=errors,
        normalized_vin=normalized,
        check_digit_mismatch=mismatch,
    )


def calculate_check_digit(vin: str) -> Optional[str]:
    """
    Calculate the expected check digit for a VIN.

    The check digit (position 9) is calculated by:
    1. Assigning numeric values to each character
    2. Multiplying by position weights (position 9 weighs 0)
    3. Summing and taking mod 11
    4. Result 10 becomes 'X'

    Args:
        vin: 17-character VIN (check digit position is ignored)

    Returns:
        Expected check digit ('0'-'9' or 'X'), or None if a character has no value
    """
    if len(vin) != VIN_LENGTH:
        return None

    total = 0
    for char, weight in zip(vin.upper(), VINConstants.CHECKSUM_WEIGHTS):
        value = VINConstants.CHAR_VALUES.get(char)
        if value is None:
            return None
        total += value * weight

    remainder = total % 11
    return 'X' if remainder == 10 else str(remainder)


def is_plausible_vin(candidate: str) -> bool:
    """
    Cheap structural pre-filter used before full validation.

    Accepts 17 characters from the VIN alphabet whose first character is a
    letter or 1-5, whose check position holds a digit or 'X', and which
    contain no run of identical characters.
    """
    if not _VIN_BODY.match(candidate):
        return False
    if not _FIRST_CHAR.match(candidate[0]):
        return False
    if not _CHECK_CHAR.match(candidate[VINConstants.CHECK_DIGIT_POSITION - 1]):
        return False
    return not _IDENTICAL_RUN.search(candidate)


# =============================================================================
# STRUCTURAL DECODING
# =============================================================================

# Letter codes cycle every 30 years; the modern (2010+) reading is reported
_MODEL_YEAR_CODES: Dict[str, int] = {
    '1': 2001, '2': 2002, '3': 2003, '4': 2004,
    '5': 2005, '6': 2006, '7': 2007, '8': 2008, '9': 2009,
    'A': 2010, 'B': 2011, 'C': 2012, 'D': 2013, 'E': 2014,
    'F': 2015, 'G': 2016, 'H': 2017, 'J': 2018, 'K': 2019,
    'L': 2020, 'M': 2021, 'N': 2022, 'P': 2023, 'R': 2024,
    'S': 2025, 'T': 2026, 'V': 2027, 'W': 2028, 'X': 2029,
    'Y': 2030,
}

# First character -> manufacturing region
_REGIONS: Tuple[Tuple[str, str], ...] = (
    ('ABCDEFGH', 'Africa'),
    ('JKLMNPR', 'Asia'),
    ('STUVWXYZ', 'Europe'),
    ('12345', 'North America'),
    ('67', 'Oceania'),
    ('89', 'South America'),
)


@dataclass
class VinDetails:
    """Decoded VIN structure."""
    vin: str
    wmi: str
    vds: str
    check_digit: str
    model_year_code: str
    model_year: Optional[int]
    plant_code: str
    serial_number: str
    country_code: str
    region: str
    is_valid: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            'vin': self.vin,
            'wmi': self.wmi,
            'vds': self.vds,
            'check_digit': self.check_digit,
            'model_year_code': self.model_year_code,
            'model_year': self.model_year,
            'plant_code': self.plant_code,
            'serial_number': self.serial_number,
            'country_code': self.country_code,
            'region': self.region,
            'is_valid': self.is_valid,
        }


def decode_vin(vin: str) -> VinDetails:
    """
    Decode VIN structure into its component parts.

    VIN Structure (ISO 3779):
    - Position 1-3: WMI (World Manufacturer Identifier)
    - Position 4-8: VDS (Vehicle Descriptor Section)
    - Position 9: Check digit
    - Position 10: Model year
    - Position 11: Plant code
    - Position 12-17: Sequential number

    Raises:
        ValueError: If the normalized VIN is not 17 characters long
    """
    validation = validate_vin(vin)
    normalized = validation.normalized_vin
    if len(normalized) != VIN_LENGTH:
        raise ValueError(f"Invalid VIN length: {len(normalized)} (expected {VIN_LENGTH})")

    region = 'Unknown'
    for prefixes, name in _REGIONS:
        if normalized[0] in prefixes:
            region = name
            break

    year_code = normalized[9]
    return VinDetails(
        vin=normalized,
        wmi=normalized[0:3],
        vds=normalized[3:8],
        check_digit=normalized[8],
        model_year_code=year_code,
        model_year=_MODEL_YEAR_CODES.get(year_code),
        plant_code=normalized[10],
        serial_number=normalized[11:17],
        country_code=normalized[0:2],
        region=region,
        is_valid=validation.is_valid,
    )
