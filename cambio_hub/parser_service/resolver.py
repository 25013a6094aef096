"""
Цепочка источников курса с резервированием.

Источники опрашиваются по возрастанию priority. Каждый источник получает
не более MAX_RETRIES + 1 попыток с фиксированной паузой между ними, после
чего резолвер переходит к следующему. Если не ответил ни один источник,
возвращается статичный fallback-курс, поэтому acquire_rate() никогда
не бросает исключений.
"""

import logging
import time
from typing import Callable, Dict, List, Optional

from cambio_hub.core.exceptions import AllSourcesExhaustedError, CambioHubError
from cambio_hub.core.models import FALLBACK_SOURCE, RateSample, SourceDescriptor
from cambio_hub.core.variation import stable_variation
from cambio_hub.parser_service.config import ParserConfig, get_parser_config
from cambio_hub.parser_service.fetchers import BaseRateFetcher, create_fetcher
from cambio_hub.parser_service.parsing import validate_rate

logger = logging.getLogger("cambio_hub.parser")


def order_sources(sources: List[SourceDescriptor],
                  restricted: bool = False,
                  preferred: Optional[str] = None) -> List[SourceDescriptor]:
    """
    Порядок опроса источников.
    В ограниченном окружении страницы не загружаются, а самый надёжный API идёт первым
    """
    ordered = sorted((s for s in sources if s.enabled), key=lambda s: s.priority)

    if not restricted:
        return ordered

    ordered = [s for s in ordered if s.kind != "browser"]
    if preferred:
        ordered.sort(key=lambda s: 0 if s.name == preferred else 1)
    return ordered


class SourceChainResolver:
    """
    Получение курса USD/BRL по цепочке источников
    """

    def __init__(self,
                 config: Optional[ParserConfig] = None,
                 fetchers: Optional[Dict[str, BaseRateFetcher]] = None,
                 sleep: Callable[[float], None] = time.sleep):
        """
        Инициализация резолвера.
        Клиенты создаются один раз, по реестру fetchers.create_fetcher
        """
        self.config = config or get_parser_config()
        self._sleep = sleep

        self.sources = order_sources(
            self.config.get_enabled_sources(),
            restricted=self.config.RESTRICTED_MODE,
            preferred=self.config.RESTRICTED_PRIORITY_SOURCE,
        )

        if fetchers is None:
            fetchers = {s.name: create_fetcher(s, self.config) for s in self.sources}
        self.fetchers = fetchers

        self.last_errors: List[str] = []

        if self.config.RESTRICTED_MODE:
            logger.warning("Ограниченное окружение: используются только API-источники")

        logger.info(
            f"SourceChainResolver инициализирован: "
            f"{[s.name for s in self.sources]}"
        )

    @property
    def max_attempts(self) -> int:
        return self.config.MAX_RETRIES + 1

    def acquire_rate(self, source_filter: Optional[str] = None) -> RateSample:
        """
        Получить курс. Всегда возвращает RateSample (в худшем случае fallback)
        """
        try:
            return self._resolve(source_filter)
        except AllSourcesExhaustedError as e:
            logger.error(f"{e}. Используется fallback-курс {self.config.FALLBACK_RATE}")
            return self.create_fallback_sample()

    def _resolve(self, source_filter: Optional[str] = None) -> RateSample:
        self.last_errors = []
        sources = self.sources

        if source_filter:
            sources = [s for s in sources if s.name.lower() == source_filter.lower()]
            if not sources:
                logger.warning(f"Источник '{source_filter}' не найден среди активных")

        for source in sources:
            sample = self._try_source(source)
            if sample is not None:
                logger.info(f"Курс получен из {source.name}: {sample.rate}")
                return sample
            logger.warning(f"{source.name} не ответил, переходим к следующему источнику")

        raise AllSourcesExhaustedError(self.last_errors)

    def _try_source(self, source: SourceDescriptor) -> Optional[RateSample]:
        """
        Опросить один источник, не более max_attempts раз
        """
        fetcher = self.fetchers.get(source.name)
        if fetcher is None:
            self.last_errors.append(f"{source.name}: клиент не настроен")
            return None

        attempts = self.max_attempts
        for attempt in range(1, attempts + 1):
            try:
                logger.debug(f"Пробуем {source.name} (попытка {attempt}/{attempts})")

                sample = fetcher.fetch()
                validate_rate(
                    sample.rate,
                    source=source.name,
                    rate_min=self.config.RATE_MIN,
                    rate_max=self.config.RATE_MAX,
                )
                return sample

            except CambioHubError as e:
                error_msg = f"{source.name}: {str(e)}"
                logger.warning(f"Попытка {attempt}/{attempts} не удалась: {error_msg}")

            except Exception as e:
                error_msg = f"{source.name}: Неожиданная ошибка: {str(e)}"
                logger.warning(f"Попытка {attempt}/{attempts} не удалась: {error_msg}")

            self.last_errors.append(error_msg)

            if attempt < attempts:
                self._sleep(self.config.RETRY_DELAY)

        logger.error(f"Источник {source.name} не ответил после {attempts} попыток")
        return None

    def create_fallback_sample(self) -> RateSample:
        """Статичный курс на случай отказа всех источников"""
        return RateSample(
            rate=self.config.FALLBACK_RATE,
            source=FALLBACK_SOURCE,
            variation=stable_variation(),
        )

    def close(self):
        """Закрыть все соединения"""
        for fetcher in self.fetchers.values():
            if hasattr(fetcher, "close"):
                fetcher.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
