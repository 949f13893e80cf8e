"""
Tests for VIN validation and decoding
=====================================

Covers the ISO 3779 rules, mod-11 checksum, exact error messages and
the structural pre-filter used by candidate extraction.

Run with: pytest tests/test_vin_utils.py -v
"""

import random

import pytest

from vin_scanner.core.vin_utils import (
    ERR_FIRST_CHAR,
    ERR_IDENTICAL_RUN,
    ERR_YEAR_CHAR,
    VIN_LENGTH,
    VINConstants,
    CheckDigitMismatch,
    calculate_check_digit,
    decode_vin,
    is_plausible_vin,
    normalize_vin,
    validate_vin,
)

VALID_VIN = "1HGCM82633A004352"
VALID_VIN_X = "1M8GDM9AXKP042788"

_ALPHABET = "ABCDEFGHJKLMNPRSTUVWXYZ0123456789"
_FIRST_CHARS = "ABCDEFGHJKLMNPRSTUVWXYZ12345"
_YEAR_CHARS = "ABCDEFGHJKLMNPRSTVWXY123456789"


def _random_valid_vin(rng: random.Random) -> str:
    """Random VIN satisfying every structural rule, with a correct check digit."""
    while True:
        chars = [rng.choice(_FIRST_CHARS)]
        while len(chars) < VIN_LENGTH:
            pool = _YEAR_CHARS if len(chars) == 9 else _ALPHABET
            char = rng.choice(pool)
            # Never repeat the previous character so no run can form
            if char != chars[-1]:
                chars.append(char)
        vin = ''.join(chars)
        check = calculate_check_digit(vin)
        candidate = vin[:8] + check + vin[9:]
        if check not in (candidate[7], candidate[9]):
            return candidate


# =============================================================================
# SCENARIOS
# =============================================================================

class TestScenarios:
    """Reference inputs with known outcomes."""

    def test_valid_vin(self):
        result = validate_vin(VALID_VIN)
        assert result.is_valid is True
        assert result.errors == []
        assert result.normalized_vin == VALID_VIN
        assert result.check_digit_mismatch is None

    def test_sixteen_characters(self):
        result = validate_vin("1HGCM82633A00435")
        assert result.is_valid is False
        assert "got 16" in result.errors[0]
        assert result.errors == ["VIN must be 17 characters long (got 16)"]
        assert result.normalized_vin == "1HGCM82633A00435"

    def test_altered_check_digit(self):
        result = validate_vin("1HGCM82633A004353")
        assert result.is_valid is False
        assert result.errors == ["Invalid check digit at position 9. Expected 5, got 3"]
        assert result.check_digit_mismatch == CheckDigitMismatch(expected="5", actual="3")

    def test_lowercase_with_separators(self):
        messy = validate_vin("1hg cm8-2633a004352")
        clean = validate_vin(VALID_VIN)
        assert messy.normalized_vin == VALID_VIN
        assert messy.is_valid == clean.is_valid
        assert messy.errors == clean.errors

    def test_check_digit_x(self):
        result = validate_vin(VALID_VIN_X)
        assert result.is_valid is True


# =============================================================================
# RULES
# =============================================================================

class TestValidationRules:
    """Tests for the individual grammar rules."""

    def test_length_error_returns_immediately(self):
        result = validate_vin("0000")
        assert result.errors == ["VIN must be 17 characters long (got 4)"]

    def test_too_long(self):
        result = validate_vin(VALID_VIN + "1")
        assert result.errors == ["VIN must be 17 characters long (got 18)"]

    def test_empty_string(self):
        result = validate_vin("")
        assert result.is_valid is False
        assert result.normalized_vin == ""
        assert "got 0" in result.errors[0]

    def test_forbidden_letters_are_stripped(self):
        # I, O and Q are removed before the length check
        result = validate_vin("1HGCM82633A00435I")
        assert result.normalized_vin == "1HGCM82633A00435"
        assert "got 16" in result.errors[0]

    def test_first_character(self):
        result = validate_vin("9HGCM82633A004352")
        assert result.errors[0] == ERR_FIRST_CHAR
        # Checksum is still evaluated after rule failures
        assert result.check_digit_mismatch is not None

    def test_run_of_four_rejected(self):
        result = validate_vin("1HGCM82633AAAA352")
        assert ERR_IDENTICAL_RUN in result.errors

    def test_run_of_three_allowed(self):
        result = validate_vin("1HGCM82633A000352")
        assert ERR_IDENTICAL_RUN not in result.errors

    @pytest.mark.parametrize("year_char", ["0", "U", "Z"])
    def test_year_character(self, year_char):
        vin = VALID_VIN[:9] + year_char + VALID_VIN[10:]
        result = validate_vin(vin)
        assert ERR_YEAR_CHAR in result.errors

    def test_error_order(self):
        # Bad first char, run of four, bad year char, wrong checksum
        result = validate_vin("91111111100000000")
        assert result.errors[:3] == [ERR_FIRST_CHAR, ERR_IDENTICAL_RUN, ERR_YEAR_CHAR]

    def test_to_dict(self):
        data = validate_vin("1HGCM82633A004353").to_dict()
        assert data["is_valid"] is False
        assert data["normalized_vin"] == "1HGCM82633A004353"
        assert data["check_digit_mismatch"] == {"expected": "5", "actual": "3"}


class TestCalculateCheckDigit:
    """Tests for check digit calculation."""

    def test_known_values(self):
        assert calculate_check_digit(VALID_VIN) == "3"
        assert calculate_check_digit(VALID_VIN_X) == "X"

    def test_check_position_ignored(self):
        assert calculate_check_digit("1HGCM826X3A004352") == "3"

    def test_wrong_length(self):
        assert calculate_check_digit("SHORT") is None

    def test_untransliterable_character(self):
        assert calculate_check_digit("1HGCM82633A00435I") is None

    def test_deterministic(self):
        assert calculate_check_digit(VALID_VIN) == calculate_check_digit(VALID_VIN)


class TestPlausibility:
    """Tests for the cheap candidate pre-filter."""

    def test_accepts_valid_vin(self):
        assert is_plausible_vin(VALID_VIN)

    def test_rejects_wrong_length(self):
        assert not is_plausible_vin(VALID_VIN[:-1])

    def test_rejects_forbidden_letter(self):
        assert not is_plausible_vin("1HGCM82633A00435O")

    def test_rejects_bad_first_char(self):
        assert not is_plausible_vin("0HGCM82633A004352")

    def test_rejects_letter_check_position(self):
        assert not is_plausible_vin("1HGCM826A3A004352")

    def test_rejects_identical_run(self):
        assert not is_plausible_vin("1HGCM82633AAAA352")

    def test_does_not_verify_checksum(self):
        assert is_plausible_vin("1HGCM82633A004353")


# =============================================================================
# DECODING
# =============================================================================

class TestDecodeVIN:
    """Tests for decode_vin."""

    def test_decode_parts(self):
        details = decode_vin(VALID_VIN)
        assert details.wmi == "1HG"
        assert details.vds == "CM826"
        assert details.check_digit == "3"
        assert details.model_year_code == "3"
        assert details.model_year == 2003
        assert details.plant_code == "A"
        assert details.serial_number == "004352"
        assert details.country_code == "1H"
        assert details.region == "North America"
        assert details.is_valid is True

    def test_decode_normalizes(self):
        assert decode_vin("1hg-cm82633a004352").vin == VALID_VIN

    def test_letter_year(self):
        details = decode_vin(VALID_VIN_X)
        assert details.model_year_code == "K"
        assert details.model_year == 2019

    def test_decode_invalid_length(self):
        with pytest.raises(ValueError):
            decode_vin("SHORT")

    def test_to_dict(self):
        data = decode_vin(VALID_VIN).to_dict()
        assert data["vin"] == VALID_VIN
        assert data["serial_number"] == "004352"


# =============================================================================
# PROPERTY-BASED TESTS
# =============================================================================

class TestPropertyBased:
    """Invariants over generated inputs."""

    @pytest.fixture
    def rng(self):
        return random.Random(3779)

    def test_normalization_idempotent(self, rng):
        inputs = ["", "  1hg cm8-2633a004352 ", "ioq", "VIN: " + VALID_VIN, "***"]
        printable = _ALPHABET + "ioqIOQ -:_.abcxyz"
        inputs += [''.join(rng.choice(printable) for _ in range(rng.randint(0, 30))) for _ in range(200)]
        for text in inputs:
            once = validate_vin(text).normalized_vin
            assert validate_vin(once).normalized_vin == once
            assert once == normalize_vin(text)

    def test_wrong_length_always_invalid(self, rng):
        for _ in range(200):
            length = rng.choice([n for n in range(0, 30) if n != VIN_LENGTH])
            text = ''.join(rng.choice(_ALPHABET) for _ in range(length))
            result = validate_vin(text)
            assert result.is_valid is False
            assert f"(got {length})" in result.errors[0]

    def test_correct_check_digit_is_valid(self, rng):
        for _ in range(200):
            vin = _random_valid_vin(rng)
            result = validate_vin(vin)
            assert result.is_valid, (vin, result.errors)

    def test_every_valid_char_has_value(self):
        assert set(VINConstants.CHAR_VALUES) == set(_ALPHABET)
