"""
Проверка курса, разбор текста и определение направления изменения
"""
import math

import pytest

from cambio_hub.core.exceptions import ParseError, ValidationError
from cambio_hub.parser_service.parsing import (
    clean_percent_text,
    direction_from_hint,
    infer_direction,
    is_valid_rate,
    parse_change_text,
    parse_rate_text,
    validate_rate,
)


class TestValidation:
    @pytest.mark.parametrize("rate, expected", [
        (0.5, False),
        (5.2, True),
        (10, False),
        (1, False),
        (1.0001, True),
        (9.9999, True),
    ])
    def test_bounds_are_exclusive(self, rate, expected):
        assert is_valid_rate(rate) is expected

    @pytest.mark.parametrize("rate", [None, "5.2", True, math.nan, math.inf])
    def test_non_numbers_rejected(self, rate):
        assert is_valid_rate(rate) is False

    def test_validate_returns_float(self):
        assert validate_rate(5) == 5.0

    def test_validate_raises_with_rate(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_rate(12.5, source="AwesomeAPI")
        assert exc_info.value.rate == 12.5
        assert "AwesomeAPI" in str(exc_info.value)

    def test_custom_bounds(self):
        assert is_valid_rate(0.5, rate_min=0.1, rate_max=1.0)


class TestRateText:
    def test_decimal_comma(self):
        assert parse_rate_text("5,2534") == pytest.approx(5.2534)

    def test_currency_prefix_with_dot(self):
        assert parse_rate_text("R$ 5.25") == pytest.approx(5.25)

    def test_decimal_comma_wins_over_noise(self):
        assert parse_rate_text("1 USD = 5,31 BRL") == pytest.approx(5.31)

    @pytest.mark.parametrize("text", ["", "n/a", None])
    def test_unparseable(self, text):
        with pytest.raises(ParseError):
            parse_rate_text(text)


class TestChangeText:
    def test_unicode_minus(self):
        assert parse_change_text("−0,0075") == pytest.approx(-0.0075)

    def test_explicit_plus(self):
        assert parse_change_text("+0.0150 hoje") == pytest.approx(0.0150)

    @pytest.mark.parametrize("text", [None, "", "sem dados"])
    def test_missing(self, text):
        assert parse_change_text(text) is None

    def test_percent_cleanup(self):
        assert clean_percent_text("+0,29%") == "0.29%"
        assert clean_percent_text("−1.10%") == "1.10%"
        assert clean_percent_text(None) == "0.00%"


class TestDirection:
    def test_positive_change_is_up(self):
        assert infer_direction(0.0150) == "up"

    def test_negative_change_is_down(self):
        assert infer_direction(-0.0075) == "down"

    def test_zero_or_absent_is_stable(self):
        assert infer_direction(0) == "stable"
        assert infer_direction(None) == "stable"

    def test_hint_used_only_without_change(self):
        assert infer_direction(None, "Diminuiu 0,14%") == "down"
        assert infer_direction(None, "Subiu 0,29%") == "up"
        assert infer_direction(0.01, "Diminuiu 0,14%") == "up"

    def test_unknown_hint_is_stable(self):
        assert direction_from_hint("sem alteração") == "stable"
        assert direction_from_hint(None) == "stable"
