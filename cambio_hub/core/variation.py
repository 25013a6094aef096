"""
Расчёт изменения курса между двумя последовательными измерениями.

Направление определяется знаком абсолютного изменения. Если предыдущий
курс неизвестен (первое измерение после запуска процесса), используется
изменение, которое вернул сам источник.
"""

from dataclasses import replace
from typing import Iterable, Optional

from .models import RateSample, Variation

UP = "up"
DOWN = "down"
STABLE = "stable"

DIRECTION_SYMBOLS = {UP: "▲", DOWN: "▼", STABLE: "*"}

# символы для текстового лога (без цветовых кодов)
LOG_SYMBOLS = {UP: "🟢▲", DOWN: "🔴▼", STABLE: "⚪*"}


def stable_variation() -> Variation:
    """Нулевое изменение"""
    return Variation(percent="0.00%", absolute_change=0.0, direction=STABLE)


def direction_from_change(change: Optional[float]) -> str:
    """Знак изменения задаёт направление, ноль или None - stable"""
    if change is None or change == 0:
        return STABLE
    return UP if change > 0 else DOWN


def format_percent(value: float) -> str:
    return f"{abs(value):.2f}%"


def variation_from_rates(previous: float, current: float) -> Variation:
    """Изменение между двумя курсами"""
    change = round(current - previous, 6)
    percent = (change / previous) * 100 if previous else 0.0
    return Variation(
        percent=format_percent(percent),
        absolute_change=change,
        direction=direction_from_change(change),
    )


def get_direction_symbol(direction: str) -> str:
    return DIRECTION_SYMBOLS.get(direction, DIRECTION_SYMBOLS[STABLE])


def format_signed_change(variation: Variation) -> str:
    """Изменение со знаком и 4 знаками после запятой: (+0.0150), (-0.0075), (=)"""
    change = abs(variation.absolute_change)
    # направление может быть известно без величины (только подсказка страницы)
    if change == 0:
        return "(=)"
    if variation.direction == UP:
        return f"(+{change:.4f})"
    if variation.direction == DOWN:
        return f"(-{change:.4f})"
    return "(=)"


class VariationCalculator:
    """
    Хранит предыдущий курс в памяти и пересчитывает изменение
    для каждого нового измерения
    """

    def __init__(self, previous_rate: Optional[float] = None):
        self.previous_rate = previous_rate

    def compute(self, sample: RateSample) -> RateSample:
        # fallback-курс статичен, сравнивать его с реальным бессмысленно
        if sample.is_fallback:
            return sample

        if self.previous_rate is None:
            result = sample
        else:
            result = replace(
                sample,
                variation=variation_from_rates(self.previous_rate, sample.rate)
            )

        self.previous_rate = sample.rate
        return result

    def reset(self):
        self.previous_rate = None


def summarize_samples(samples: Iterable[RateSample], window: int = 10) -> dict:
    """
    Сводка по последним `window` измерениям
    """
    recent = list(samples)[-window:]
    if len(recent) < 2:
        return {"message": "Недостаточно истории"}

    rates = [s.rate for s in recent]
    current_rate = rates[-1]
    initial_rate = rates[0]
    total_change = current_rate - initial_rate
    total_percent = (total_change / initial_rate) * 100
    sign = "+" if total_change > 0 else ""

    return {
        "entries": len(recent),
        "current_rate": current_rate,
        "initial_rate": initial_rate,
        "min_rate": min(rates),
        "max_rate": max(rates),
        "total_change": round(total_change, 4),
        "total_percent_change": f"{sign}{total_percent:.4f}%",
    }
