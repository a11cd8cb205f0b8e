"""Tests for phone number helpers."""

from servicedesk.utils import normalize_phone, utcnow, validate_phone


class TestNormalizePhone:
    def test_strips_spaces(self):
        assert normalize_phone("95446 54402") == "9544654402"

    def test_strips_country_code_plus(self):
        assert normalize_phone("+91 95446 54402") == "9544654402"

    def test_strips_country_code_without_plus(self):
        assert normalize_phone("919544654402") == "9544654402"

    def test_strips_punctuation(self):
        assert normalize_phone("(954) 465-4402") == "9544654402"
        assert normalize_phone("954.465.4402") == "9544654402"

    def test_keeps_short_91_prefix(self):
        # Only a 12-digit number has a bare 91 country code
        assert normalize_phone("9123456789") == "9123456789"


class TestValidatePhone:
    def test_valid_mobile(self):
        assert validate_phone("9544654402") == "9544654402"

    def test_valid_with_country_code(self):
        assert validate_phone("+91 95446 54402") == "9544654402"

    def test_rejects_wrong_leading_digit(self):
        assert validate_phone("5123456789") is None

    def test_rejects_too_short(self):
        assert validate_phone("954465") is None

    def test_rejects_too_long(self):
        assert validate_phone("95446544021") is None

    def test_rejects_letters(self):
        assert validate_phone("95446abcde") is None

    def test_none_and_empty(self):
        assert validate_phone(None) is None
        assert validate_phone("") is None


class TestUtcNow:
    def test_is_timezone_aware(self):
        assert utcnow().tzinfo is not None
