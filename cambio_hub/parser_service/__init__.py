"""
Модуль parser_service - получение и мониторинг курса USD/BRL.

Включает:
- config: конфигурация источников и параметров
- parsing: разбор и проверка курса
- fetchers: клиенты источников (API, страница котировки) и их реестр
- resolver: цепочка источников с повторами и fallback-курсом
- storage: сессии (session.json), дневной журнал изменений, история в памяти
- scheduler: планировщик периодического обновления
- updater: монитор непрерывного обновления
"""

from .config import ParserConfig, get_parser_config
from .fetchers import (
    BaseRateFetcher,
    BcbPtaxFetcher,
    JsonApiFetcher,
    PageScrapeFetcher,
    create_fetcher,
    register_fetcher,
)
from .resolver import SourceChainResolver
from .scheduler import RatesScheduler
from .storage import RateHistory, SessionStorage, VariationLogWriter
from .updater import RateMonitor

__all__ = [
    'ParserConfig',
    'get_parser_config',
    'BaseRateFetcher',
    'JsonApiFetcher',
    'BcbPtaxFetcher',
    'PageScrapeFetcher',
    'create_fetcher',
    'register_fetcher',
    'SourceChainResolver',
    'SessionStorage',
    'VariationLogWriter',
    'RateHistory',
    'RatesScheduler',
    'RateMonitor',
]
