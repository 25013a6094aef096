import logging
import math
import re
from numbers import Real
from typing import Optional

from cambio_hub.core.exceptions import ParseError, ValidationError
from cambio_hub.core.variation import DOWN, STABLE, UP, direction_from_change

logger = logging.getLogger("cambio_hub.parser")

# границы здравого смысла для USD/BRL
RATE_MIN = 1.0
RATE_MAX = 10.0

DECREASE_TERMS = ("diminuiu", "caiu", "queda", "down", "fall", "decrease")
INCREASE_TERMS = ("aumentou", "subiu", "alta", "up", "rise", "increase")

_DECIMAL_COMMA = re.compile(r"(\d+),(\d+)")
_SIGNED_NUMBER = re.compile(r"[-−+]?\d+[,.]?\d*")


def is_valid_rate(rate, rate_min: float = RATE_MIN, rate_max: float = RATE_MAX) -> bool:
    """Курс - конечное число строго между rate_min и rate_max"""
    if isinstance(rate, bool) or not isinstance(rate, Real):
        return False
    if not math.isfinite(rate):
        return False
    return rate_min < rate < rate_max


def validate_rate(rate, source: Optional[str] = None,
                  rate_min: float = RATE_MIN, rate_max: float = RATE_MAX) -> float:
    """
    Проверить курс, при ошибке - ValidationError
    """
    if not is_valid_rate(rate, rate_min, rate_max):
        origin = f" ({source})" if source else ""
        raise ValidationError(f"Некорректный курс{origin}: {rate}", rate=rate)
    return float(rate)


def _parse_decimal_comma(text: str) -> Optional[float]:
    match = _DECIMAL_COMMA.search(text)
    if match:
        return float(f"{match.group(1)}.{match.group(2)}")
    return None


def _parse_cleaned_digits(text: str) -> Optional[float]:
    clean = re.sub(r"[^\d,.]", "", text).replace(",", ".")
    try:
        return float(clean)
    except ValueError:
        return None


_RATE_STRATEGIES = (_parse_decimal_comma, _parse_cleaned_digits)


def parse_rate_text(text: str) -> float:
    """
    Разобрать текст курса ("5,2534", "R$ 5.25", ...).
    Стратегии применяются по порядку, побеждает первое конечное число
    """
    if text is None:
        raise ParseError("")

    for strategy in _RATE_STRATEGIES:
        result = strategy(str(text))
        if result is not None and math.isfinite(result):
            return result

    raise ParseError(text)


def parse_change_text(text: Optional[str]) -> Optional[float]:
    """Абсолютное изменение со знаком ("−0,0075" -> -0.0075)"""
    if not text:
        return None

    match = _SIGNED_NUMBER.search(text)
    if not match:
        return None

    value = match.group(0).replace("−", "-").replace(",", ".")
    try:
        return float(value)
    except ValueError:
        return None


def clean_percent_text(text: Optional[str]) -> str:
    """Процент без знака, с точкой: "+0,29%" -> "0.29%" """
    if not text:
        return "0.00%"
    return re.sub(r"[+−-]", "", text).replace(",", ".").strip() or "0.00%"


def direction_from_hint(hint: Optional[str]) -> str:
    """Направление по описательному тексту (aria-label и т.п.)"""
    if not hint:
        return STABLE

    lowered = hint.lower()
    if any(term in lowered for term in DECREASE_TERMS):
        return DOWN
    if any(term in lowered for term in INCREASE_TERMS):
        return UP
    return STABLE


def infer_direction(absolute_change: Optional[float], hint: Optional[str] = None) -> str:
    """
    Направление изменения.
    Подсказка используется только если величина изменения неизвестна
    """
    if absolute_change is not None:
        return direction_from_change(absolute_change)
    return direction_from_hint(hint)
