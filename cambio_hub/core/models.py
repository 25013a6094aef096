from dataclasses import asdict, dataclass, field
from typing import Dict, Optional

from .utils import generate_timestamp

SOURCE_KINDS = ("api", "browser")
FALLBACK_SOURCE = "Fallback"


@dataclass(frozen=True)
class SourceDescriptor:
    """
    Описание внешнего источника курса.
    Только данные, никакой логики получения курса
    """
    name: str
    kind: str
    url: str
    timeout: float = 10.0
    selectors: Dict[str, str] = field(default_factory=dict)
    priority: int = 100
    enabled: bool = True
    # ключ реестра для специализированного клиента (например, "bcb_ptax")
    provider: Optional[str] = None

    def to_dict(self) -> dict:
        # преобразование в словарь для сохранения в JSON
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "SourceDescriptor":
        # создание из словаря конфигурации
        return cls(
            name=data["name"],
            kind=data["kind"],
            url=data["url"],
            timeout=float(data.get("timeout", 10.0)),
            selectors=dict(data.get("selectors") or {}),
            priority=int(data.get("priority", 100)),
            enabled=bool(data.get("enabled", True)),
            provider=data.get("provider"),
        )


@dataclass(frozen=True)
class Variation:
    """Изменение курса: процент, абсолютное изменение и направление"""
    percent: str = "0.00%"
    absolute_change: float = 0.0
    direction: str = "stable"

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class RateSample:
    """
    Одно измерение курса USD/BRL.
    Для всех источников кроме Fallback выполняется 1 < rate < 10
    """
    rate: float
    source: str
    variation: Variation = field(default_factory=Variation)
    captured_at: str = field(default_factory=generate_timestamp)

    @property
    def is_fallback(self) -> bool:
        return self.source == FALLBACK_SOURCE

    @property
    def direction(self) -> str:
        return self.variation.direction

    def to_dict(self) -> dict:
        return {
            "rate": self.rate,
            "source": self.source,
            "variation": self.variation.to_dict(),
            "captured_at": self.captured_at,
        }
