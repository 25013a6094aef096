import os
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from cambio_hub.core.models import SOURCE_KINDS, SourceDescriptor


def _default_sources() -> Tuple[SourceDescriptor, ...]:
    return (
        SourceDescriptor(
            name="Google Finance",
            kind="browser",
            url="https://www.google.com/finance/quote/USD-BRL",
            timeout=30.0,
            selectors={
                "price": ".YMlKec.fxKbKc",
                "container": ".rPF6Lc",
                "percent": ".JwB6zf",
                "change": ".P2Luy.Ebnabc.ZYVHBb, .ZYVHBb, .P2Luy, .Ebnabc",
                "direction": '[jsname="Fe7oBc"]',
            },
            priority=1,
        ),
        SourceDescriptor(
            name="Banco Central API",
            kind="api",
            provider="bcb_ptax",
            url=("https://olinda.bcb.gov.br/olinda/servico/PTAX/versao/v1/odata/"
                 "CotacaoDolarDia(dataCotacao=@dataCotacao)"),
            timeout=15.0,
            priority=2,
        ),
        SourceDescriptor(
            name="AwesomeAPI",
            kind="api",
            url="https://economia.awesomeapi.com.br/json/last/USD-BRL",
            timeout=10.0,
            selectors={
                "rate": "USDBRL.bid",
                "change": "USDBRL.varBid",
                "percent": "USDBRL.pctChange",
            },
            priority=3,
        ),
    )


def _detect_restricted_mode() -> bool:
    """
    Ограниченное окружение (Termux/Android): нет возможности грузить
    тяжёлые страницы, используем только API
    """
    flag = os.getenv("CAMBIO_RESTRICTED_MODE")
    if flag is not None:
        return flag.strip().lower() in ("1", "true", "yes")
    return "com.termux" in os.getenv("PREFIX", "") or "ANDROID_ROOT" in os.environ


@dataclass
class ParserConfig:
    """
    Конфигурация сервиса получения курса USD/BRL.
    Флаг ограниченного окружения загружается из переменных окружения.
    """

    # источники курса (порядок опроса задаётся priority)
    SOURCES: Tuple[SourceDescriptor, ...] = field(default_factory=_default_sources)

    # параметры запросов

    # количество повторных попыток для одного источника (всего попыток = MAX_RETRIES + 1)
    MAX_RETRIES: int = 2

    # задержка между попытками (секунды)
    RETRY_DELAY: float = 1.0

    # user-agent для запросов к API
    USER_AGENT: str = "CambioHub/1.0"

    # user-agent для загрузки страниц
    BROWSER_USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    )

    # статичный курс, если все источники недоступны
    FALLBACK_RATE: float = 5.50

    # допустимые границы курса (строго)
    RATE_MIN: float = 1.0
    RATE_MAX: float = 10.0

    # ограниченное окружение

    RESTRICTED_MODE: bool = field(default_factory=_detect_restricted_mode)

    # самый надёжный API, в ограниченном режиме опрашивается первым
    RESTRICTED_PRIORITY_SOURCE: str = "Banco Central API"

    # Banco Central: сколько дней назад искать котировку (выходные, праздники)
    PTAX_LOOKBACK_DAYS: int = 4

    # пути к файлам

    LOGS_DIR: str = "logs"

    # состояние сессий мониторинга
    SESSION_FILE_PATH: str = "logs/session.json"

    # история в памяти
    HISTORY_MAX_ENTRIES: int = 1000

    # параметры планировщика

    # интервал непрерывного обновления (минуты)
    UPDATE_INTERVAL_MINUTES: float = 5

    def __post_init__(self):
        """Валидация конфигурации после инициализации"""
        self.SOURCES = tuple(
            s if isinstance(s, SourceDescriptor) else SourceDescriptor.from_dict(s)
            for s in self.SOURCES
        )

        names = [s.name for s in self.SOURCES]
        if len(names) != len(set(names)):
            raise ValueError(f"Имена источников должны быть уникальны: {names}")

        for source in self.SOURCES:
            if source.kind not in SOURCE_KINDS:
                raise ValueError(
                    f"Источник {source.name}: неизвестный тип '{source.kind}'"
                )

        if self.MAX_RETRIES < 0:
            raise ValueError("MAX_RETRIES не может быть отрицательным")

    def get_enabled_sources(self) -> List[SourceDescriptor]:
        """
        Включённые источники в порядке приоритета
        """
        enabled = [s for s in self.SOURCES if s.enabled]
        return sorted(enabled, key=lambda s: s.priority)

    def get_source(self, name: str) -> Optional[SourceDescriptor]:
        """
        Найти источник по имени (без учёта регистра)
        """
        for source in self.SOURCES:
            if source.name.lower() == name.lower():
                return source
        return None


# глобальный экземпляр конфигурации
_config_instance = None


def get_parser_config() -> ParserConfig:
    """
    Получить глобальный экземпляр конфигурации.
    Список источников можно переопределить ключом SOURCES в config.json
    """
    global _config_instance
    if _config_instance is None:
        from cambio_hub.infra.settings import SettingsLoader
        _config_instance = ParserConfig(**SettingsLoader().parser_overrides())
    return _config_instance
