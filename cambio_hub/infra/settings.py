import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

# переменные окружения вида CAMBIO_FALLBACK_RATE перекрывают config.json
ENV_PREFIX = "CAMBIO_"


class SingletonMeta(type):
    """
    Метакласс-одиночка: один экземпляр на класс
    """

    _instances: Dict[type, Any] = {}

    def __call__(cls, *args, **kwargs):
        if cls not in cls._instances:
            cls._instances[cls] = super().__call__(*args, **kwargs)
        return cls._instances[cls]


class SettingsLoader(metaclass=SingletonMeta):
    """
    Настройки монитора курса.
    Значения собираются по слоям: умолчания, config.json (путь можно задать
    переменной CAMBIO_CONFIG), переменные окружения CAMBIO_<КЛЮЧ>.
    Если файла нет, он создаётся с настройками по умолчанию
    """

    DEFAULT_CONFIG = {
        # журнал изменений и сессии
        "LOG_DIR": "logs",
        "SESSION_FILE": "logs/session.json",

        # получение курса
        "FALLBACK_RATE": 5.50,
        "MAX_RETRIES": 2,
        "RETRY_DELAY": 1.0,
        "UPDATE_INTERVAL_MINUTES": 5.0,

        # логирование приложения
        "LOG_FILE": "logs/app.log",
        "LOG_LEVEL": "INFO",
        "LOG_FORMAT": "%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        "LOG_MAX_BYTES": 10485760,  # 10 MB
        "LOG_BACKUP_COUNT": 5,
    }

    # ключ настроек -> поле ParserConfig
    PARSER_FIELDS = {
        "LOG_DIR": "LOGS_DIR",
        "SESSION_FILE": "SESSION_FILE_PATH",
        "FALLBACK_RATE": "FALLBACK_RATE",
        "MAX_RETRIES": "MAX_RETRIES",
        "RETRY_DELAY": "RETRY_DELAY",
        "UPDATE_INTERVAL_MINUTES": "UPDATE_INTERVAL_MINUTES",
        "SOURCES": "SOURCES",
    }

    def __init__(self, config_path: Optional[str] = None):
        # повторный вызов возвращает уже настроенный экземпляр
        if hasattr(self, "_initialized"):
            return

        self.config_path = Path(config_path or os.getenv("CAMBIO_CONFIG", "config.json"))

        self._config: Dict[str, Any] = dict(self.DEFAULT_CONFIG)
        self._config.update(self._read_file())
        self._config.update(self._read_env())
        self._initialized = True

    def _read_file(self) -> Dict[str, Any]:
        """Пользовательские значения из config.json"""
        if not self.config_path.exists():
            self._write_defaults()
            return {}

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            print(f"[WARNING] Не удалось прочитать {self.config_path}: {e}")
            print("[WARNING] Используются настройки по умолчанию")
            return {}

        if not isinstance(data, dict):
            print(f"[WARNING] {self.config_path}: ожидается JSON-объект, "
                  f"используются настройки по умолчанию")
            return {}
        return data

    def _write_defaults(self):
        print(f"[INFO] Файл настроек не найден, создаётся: {self.config_path}")
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, "w", encoding="utf-8") as f:
                json.dump(self.DEFAULT_CONFIG, f, indent=2, ensure_ascii=False)
        except OSError as e:
            print(f"[WARNING] Не удалось создать файл настроек: {e}")

    def _read_env(self) -> Dict[str, Any]:
        """
        Переопределения из окружения, значение приводится к типу умолчания
        """
        overrides = {}
        for key, default in self.DEFAULT_CONFIG.items():
            raw = os.getenv(f"{ENV_PREFIX}{key}")
            if raw is None:
                continue
            try:
                overrides[key] = type(default)(raw)
            except ValueError:
                print(f"[WARNING] Некорректное значение {ENV_PREFIX}{key}={raw!r}, игнорируется")
        return overrides

    def get(self, key: str, default: Any = None) -> Any:
        return self._config.get(key, default)

    def get_all(self) -> Dict[str, Any]:
        return self._config.copy()

    def parser_overrides(self) -> Dict[str, Any]:
        """
        Значения для ParserConfig (ключи - имена полей конфигурации)
        """
        return {
            field: self._config[key]
            for key, field in self.PARSER_FIELDS.items()
            if self._config.get(key) is not None
        }
