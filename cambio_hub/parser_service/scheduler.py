import logging
import threading
from typing import Any, Callable, Optional

logger = logging.getLogger("cambio_hub.parser")


class RatesScheduler:
    """
    Планировщик периодического обновления курса.

    Поток таймера только отсчитывает интервал, сама задача выполняется
    в отдельном рабочем потоке. Если предыдущая задача ещё не завершилась,
    очередной тик пропускается, поэтому тики никогда не пересекаются
    """

    def __init__(self,
                 task: Callable[[], Any],
                 interval_seconds: float,
                 name: str = "RatesScheduler",
                 busy_lock: Optional[threading.Lock] = None):
        """
        Инициализация планировщика.
        busy_lock можно передать снаружи, чтобы несколько запусков
        планировщика не выполняли задачи одновременно
        """
        if interval_seconds <= 0:
            raise ValueError("Интервал должен быть больше нуля")

        self.task = task
        self.interval_seconds = interval_seconds
        self.name = name

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._busy = busy_lock or threading.Lock()
        self._running = False

        self.ticks_started = 0
        self.ticks_skipped = 0

        logger.info(
            f"{self.name} инициализирован "
            f"(интервал: {self.interval_seconds}с)"
        )

    def start(self) -> bool:
        """Запустить планировщик в фоновом потоке"""
        if self._running:
            logger.warning("Планировщик уже запущен")
            return False

        self._running = True
        self._stop_event = threading.Event()

        self._thread = threading.Thread(
            target=self._run_loop,
            args=(self._stop_event,),
            daemon=True,
            name=self.name
        )
        self._thread.start()

        logger.info("Планировщик запущен")
        return True

    def stop(self):
        """
        Остановить планировщик.
        Выполняющаяся задача не прерывается и не ожидается
        """
        if not self._running:
            return

        logger.info("Останавливаем планировщик...")
        self._stop_event.set()
        self._running = False

        if (self._thread and self._thread.is_alive()
                and self._thread is not threading.current_thread()):
            self._thread.join(timeout=5)

        logger.info("Планировщик остановлен")

    def is_running(self) -> bool:
        """Проверить, запущен ли планировщик"""
        return self._running

    def is_busy(self) -> bool:
        """Выполняется ли сейчас задача"""
        return self._busy.locked()

    def _run_loop(self, stop_event: threading.Event):
        """Цикл таймера (выполняется в отдельном потоке)"""
        logger.info(f"Цикл планировщика запущен (интервал: {self.interval_seconds}с)")

        while not stop_event.is_set():
            self._dispatch()

            # ждем до следующего обновления с возможностью прерывания
            if stop_event.wait(self.interval_seconds):
                break

        logger.info("Цикл планировщика завершен")

    def _dispatch(self):
        """Запустить задачу в рабочем потоке, если предыдущая завершена"""
        if not self._busy.acquire(blocking=False):
            self.ticks_skipped += 1
            logger.warning("Предыдущее обновление ещё выполняется, тик пропущен")
            return

        self.ticks_started += 1
        worker = threading.Thread(
            target=self._run_task,
            daemon=True,
            name=f"{self.name}-worker"
        )
        worker.start()

    def _run_task(self):
        try:
            self.task()
        except Exception as e:
            logger.exception(f"Ошибка в задаче планировщика: {e}")
        finally:
            self._busy.release()

    def run_once(self):
        """Запустить задачу один раз (синхронно)"""
        return self.task()

    def __enter__(self):
        """Поддержка context manager"""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Остановка при выходе"""
        self.stop()
