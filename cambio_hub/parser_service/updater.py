import logging
import threading
from typing import Callable, Dict, List, Optional

from cambio_hub.core.models import RateSample
from cambio_hub.core.utils import parse_timestamp
from cambio_hub.core.variation import (
    VariationCalculator,
    format_signed_change,
    get_direction_symbol,
    summarize_samples,
)
from cambio_hub.parser_service.config import ParserConfig, get_parser_config
from cambio_hub.parser_service.resolver import SourceChainResolver
from cambio_hub.parser_service.scheduler import RatesScheduler
from cambio_hub.parser_service.storage import (
    RateHistory,
    SessionStorage,
    VariationLogWriter,
)

logger = logging.getLogger("cambio_hub.parser")

SampleCallback = Callable[[RateSample, int], None]


class RateMonitor:
    """
    Непрерывный мониторинг курса USD/BRL.
    Периодически получает курс, считает изменение, ведёт сессии и журнал
    """

    def __init__(self,
                 config: Optional[ParserConfig] = None,
                 resolver: Optional[SourceChainResolver] = None,
                 session_storage: Optional[SessionStorage] = None,
                 variation_log: Optional[VariationLogWriter] = None,
                 history: Optional[RateHistory] = None):
        """
        Инициализация монитора
        """
        self.config = config or get_parser_config()
        self.resolver = resolver or SourceChainResolver(self.config)

        # инициализация хранилищ
        self.session_storage = session_storage or SessionStorage(
            self.config.SESSION_FILE_PATH
        )
        self.session_storage.init()
        self.variation_log = variation_log or VariationLogWriter(self.config.LOGS_DIR)
        self.history = history or RateHistory(self.config.HISTORY_MAX_ENTRIES)

        # предыдущий курс живёт только в памяти процесса
        self.calculator = VariationCalculator()

        self._scheduler: Optional[RatesScheduler] = None
        # общий для всех запусков планировщика: тики разных сессий не пересекаются
        self._busy = threading.Lock()
        self._session_number: Optional[int] = None

        logger.info("RateMonitor инициализирован")

    def acquire_rate(self, source_filter: Optional[str] = None) -> RateSample:
        """Получить курс один раз (без записи в сессию)"""
        return self.resolver.acquire_rate(source_filter)

    def start_continuous_update(self,
                                interval_minutes: Optional[float] = None,
                                on_sample: Optional[SampleCallback] = None,
                                source_filter: Optional[str] = None) -> Optional[int]:
        """
        Запустить непрерывное обновление, вернуть номер сессии
        """
        if self.is_running():
            logger.warning("Непрерывное обновление уже запущено")
            return None

        if interval_minutes is None:
            interval_minutes = self.config.UPDATE_INTERVAL_MINUTES
        if interval_minutes <= 0:
            raise ValueError("Интервал обновления должен быть больше нуля")

        self._session_number = self.session_storage.start_session()
        logger.info(
            f"Запуск непрерывного обновления ({interval_minutes} мин) - "
            f"сессия #{self._session_number}"
        )

        session_number = self._session_number
        self._scheduler = RatesScheduler(
            task=lambda: self.perform_update(on_sample, source_filter, session_number),
            interval_seconds=interval_minutes * 60,
            busy_lock=self._busy,
        )
        self._scheduler.start()
        return self._session_number

    def stop_continuous_update(self):
        """
        Остановить непрерывное обновление и закрыть сессию.
        Уже начатое получение курса не прерывается, его результат будет отброшен
        """
        if not self.is_running():
            return

        self._scheduler.stop()
        self._scheduler = None

        session_number, self._session_number = self._session_number, None
        self.session_storage.stop_session(session_number)

        logger.info("Непрерывное обновление остановлено")

    def is_running(self) -> bool:
        """Запущено ли непрерывное обновление"""
        return self._scheduler is not None and self._scheduler.is_running()

    def is_busy(self) -> bool:
        """Выполняется ли сейчас тик обновления"""
        return self._busy.locked()

    def perform_update(self,
                       on_sample: Optional[SampleCallback] = None,
                       source_filter: Optional[str] = None,
                       session_number: Optional[int] = None) -> Optional[RateSample]:
        """
        Выполнить одно обновление.
        session_number задаётся планировщиком в момент запуска тика: если
        к концу запроса активна уже другая сессия, результат отбрасывается
        """
        try:
            logger.info("Получение курса...")
            sample = self.resolver.acquire_rate(source_filter)

            # сессия могла смениться, пока шёл запрос
            if session_number is None:
                session_number = self._session_number
            elif session_number != self._session_number:
                logger.info(
                    f"Сессия #{session_number} уже закрыта, результат обновления отброшен"
                )
                return sample

            sample = self.calculator.compute(sample)
            self.history.add(sample)

            update_number = self.session_storage.log_update(session_number, sample)
            if update_number == 0:
                logger.info("Сессия не активна, результат обновления отброшен")
                return sample

            self.variation_log.append(
                sample, session_number, update_number,
                when=parse_timestamp(sample.captured_at),
            )

            logger.info(
                f"Курс обновлён: {sample.rate} ({sample.source}) "
                f"{get_direction_symbol(sample.direction)} - "
                f"сессия #{session_number} (#{update_number})"
            )

            if on_sample is not None:
                on_sample(sample, update_number)

            return sample

        except Exception as e:
            logger.exception(f"Ошибка при обновлении: {e}")
            return None

    def get_session_info(self) -> Dict:
        """Информация о текущей сессии"""
        return {
            "session_number": self._session_number,
            "is_updating": self.is_running(),
            "stats": self.session_storage.get_session_stats(),
        }

    def get_variation_summary(self) -> Dict:
        """Сводка изменений по последним измерениям"""
        return summarize_samples(self.history.recent())

    def get_formatted_history(self, limit: int = 10) -> List[Dict]:
        """Последние измерения в виде для отображения"""
        return [
            {
                "time": parse_timestamp(s.captured_at).strftime("%H:%M:%S"),
                "rate": f"{s.rate:.4f}",
                "source": s.source,
                "direction": s.direction,
                "symbol": get_direction_symbol(s.direction),
                "change": format_signed_change(s.variation),
                "percent": s.variation.percent,
            }
            for s in self.history.recent(limit)
        ]

    def get_current_status(self) -> Dict:
        """Текущее состояние: последний курс и сводка"""
        current = self.history.latest
        if current is None:
            return {"message": "Нет данных"}

        return {
            "current_rate": current.rate,
            "direction": current.direction,
            "symbol": get_direction_symbol(current.direction),
            "change": current.variation.absolute_change,
            "source": current.source,
            "timestamp": current.captured_at,
            "summary": self.get_variation_summary(),
        }

    def close(self):
        """Остановить обновление и закрыть все соединения"""
        self.stop_continuous_update()
        self.resolver.close()
        self.session_storage.flush()

    def __enter__(self):
        """Поддержка with"""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Закрытие при выходе"""
        self.close()
