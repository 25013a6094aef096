import json
import logging
from collections import deque
from datetime import datetime
from pathlib import Path
from threading import Lock, RLock
from typing import Deque, List, Optional

from cambio_hub.core.converter import format_brl, format_usd
from cambio_hub.core.exceptions import PersistenceError
from cambio_hub.core.models import RateSample
from cambio_hub.core.utils import (
    format_duration,
    generate_session_id,
    generate_timestamp,
    parse_timestamp,
)
from cambio_hub.core.variation import LOG_SYMBOLS, STABLE, format_signed_change

logger = logging.getLogger("cambio_hub.parser")


def _new_state() -> dict:
    return {
        "session_id": generate_session_id(),
        "created_at": generate_timestamp(),
        "total_updates": 0,
        "sessions": [],
    }


class SessionStorage:
    """
    Хранилище сессий мониторинга (session.json).
    Счётчики сессий и обновлений, полный документ пишется после каждого изменения.
    Ошибки записи логируются на уровне DEBUG и не пробрасываются:
    счётчики в памяти продолжают расти независимо от состояния диска
    """

    def __init__(self, file_path: str = "logs/session.json"):
        """
        Инициализация хранилища. Файл читается в init()
        """
        self.file_path = Path(file_path)
        self._lock = RLock()
        self._state: Optional[dict] = None

    def init(self) -> dict:
        """Загрузить состояние или создать новое"""
        with self._lock:
            if self._state is None:
                self._state = self._read_data()
            return self._state

    @property
    def state(self) -> dict:
        return self.init()

    def _read_data(self) -> dict:
        """
        Прочитать состояние из файла.
        """
        if not self.file_path.exists():
            state = _new_state()
            self._try_write(state)
            return state

        try:
            with open(self.file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict) or not isinstance(data.get("sessions"), list):
                raise ValueError("неверная структура документа")
            data.setdefault("total_updates", 0)
            data.setdefault("session_id", generate_session_id())
            return data
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning(f"Файл {self.file_path} повреждён ({e}), создаём новый")
        except OSError as e:
            logger.error(f"Ошибка чтения {self.file_path}: {e}")

        state = _new_state()
        self._try_write(state)
        return state

    def _write_data(self, data: dict):
        """
        Записать состояние в файл атомарно
        """
        temp_path = self.file_path.with_suffix(".tmp")

        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)

            # атомарная замена
            temp_path.replace(self.file_path)

        except (OSError, TypeError, ValueError) as e:
            if temp_path.exists():
                temp_path.unlink()
            raise PersistenceError(self.file_path, str(e))

    def _try_write(self, data: dict) -> bool:
        try:
            self._write_data(data)
            return True
        except PersistenceError as e:
            logger.debug(f"Состояние не сохранено: {e}")
            return False

    def flush(self) -> bool:
        """Сохранить текущее состояние на диск"""
        with self._lock:
            if self._state is None:
                return False
            return self._try_write(self._state)

    def _find_session(self, session_number) -> Optional[dict]:
        if session_number is None:
            return None
        for session in self.state["sessions"]:
            if session.get("session_number") == session_number:
                return session
        return None

    def start_session(self) -> int:
        """
        Начать новую сессию мониторинга, вернуть её номер
        """
        state = self.state
        with self._lock:
            session_number = len(state["sessions"]) + 1
            state["sessions"].append({
                "session_number": session_number,
                "start_time": generate_timestamp(),
                "update_count": 0,
                "updates": [],
            })
            self._try_write(state)

        logger.info(f"Начата сессия обновления #{session_number}")
        return session_number

    def log_update(self, session_number, sample: RateSample) -> int:
        """
        Записать обновление в сессию.
        Возвращает номер обновления в сессии или 0, если сессия не найдена
        или уже закрыта
        """
        state = self.state
        with self._lock:
            session = self._find_session(session_number)
            if session is None or "end_time" in session:
                return 0

            session["update_count"] = session.get("update_count", 0) + 1
            state["total_updates"] = state.get("total_updates", 0) + 1
            update_number = session["update_count"]

            session.setdefault("updates", []).append({
                "update_number": update_number,
                "timestamp": generate_timestamp(),
                "rate": sample.rate,
                "source": sample.source,
                "variation": sample.variation.to_dict(),
            })
            self._try_write(state)

        return update_number

    def stop_session(self, session_number):
        """
        Завершить сессию: время окончания и длительность
        """
        state = self.state
        with self._lock:
            session = self._find_session(session_number)
            if session is None:
                return

            end_time = datetime.now()
            session["end_time"] = end_time.isoformat()
            session["duration_seconds"] = round(
                (end_time - parse_timestamp(session["start_time"])).total_seconds(), 3
            )
            self._try_write(state)

        logger.info(f"Сессия обновления #{session_number} завершена")
        logger.info(
            f"Статистика: {session['update_count']} обновлений "
            f"за {format_duration(session['duration_seconds'])}"
        )

    def get_session_stats(self) -> dict:
        """
        Статистика текущей (последней) сессии
        """
        state = self.state
        with self._lock:
            sessions = state["sessions"]
            current = sessions[-1] if sessions else None
            return {
                "session_id": state.get("session_id"),
                "session_number": current["session_number"] if current else 0,
                "update_count": current.get("update_count", 0) if current else 0,
                "total_sessions": len(sessions),
                "total_updates": state.get("total_updates", 0),
            }

    def get_sessions(self) -> List[dict]:
        """Все сессии (без списка обновлений)"""
        with self._lock:
            return [
                {k: v for k, v in s.items() if k != "updates"}
                for s in self.state["sessions"]
            ]


class VariationLogWriter:
    """
    Человекочитаемый журнал изменений курса.
    Один файл в день (variation-YYYY-MM-DD.txt), UTF-8, без цветовых кодов
    """

    SEPARATOR = "─" * 45

    def __init__(self, logs_dir: str = "logs"):
        self.logs_dir = Path(logs_dir)

    def get_log_path(self, when: datetime) -> Path:
        return self.logs_dir / f"variation-{when.strftime('%Y-%m-%d')}.txt"

    def format_entry(self, sample: RateSample, session_number: int,
                     update_number: int, when: datetime) -> str:
        """Блок записи для одного обновления"""
        variation = sample.variation
        symbol = LOG_SYMBOLS.get(variation.direction, LOG_SYMBOLS[STABLE])

        lines = [
            f"📡 {sample.source} (Сессия #{session_number} - Обновление #{update_number})",
            self.SEPARATOR,
            f"📅{when.strftime('%d/%m/%Y')} 🕒{when.strftime('%H:%M:%S')}",
            f"💵 {format_usd(1)} = {format_brl(sample.rate)}",
            f"{symbol} {variation.percent} {format_signed_change(variation)}",
            "",
        ]
        return "\n".join(lines) + "\n"

    def append(self, sample: RateSample, session_number: int,
               update_number: int, when: Optional[datetime] = None) -> Optional[Path]:
        """
        Дописать блок в файл за день события. Ошибки не пробрасываются
        """
        when = when or datetime.now()
        log_file = self.get_log_path(when)

        try:
            self.logs_dir.mkdir(parents=True, exist_ok=True)
            with open(log_file, "a", encoding="utf-8") as f:
                f.write(self.format_entry(sample, session_number, update_number, when))
            return log_file
        except OSError as e:
            logger.debug(f"Журнал изменений не сохранён: {PersistenceError(log_file, str(e))}")
            return None


class RateHistory:
    """
    История измерений в памяти (кольцевой буфер).
    Не сохраняется на диск, используется для сводок
    """

    def __init__(self, max_entries: int = 1000):
        self.max_entries = max_entries
        self._entries: Deque[RateSample] = deque(maxlen=max_entries)
        self._lock = Lock()

    def add(self, sample: RateSample):
        with self._lock:
            self._entries.append(sample)

    def recent(self, limit: Optional[int] = None) -> List[RateSample]:
        """Последние limit измерений (старые сначала)"""
        with self._lock:
            entries = list(self._entries)
        if limit is not None:
            entries = entries[-limit:] if limit > 0 else []
        return entries

    @property
    def latest(self) -> Optional[RateSample]:
        with self._lock:
            return self._entries[-1] if self._entries else None

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
