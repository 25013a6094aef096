import secrets
import time
from datetime import datetime

def generate_timestamp():
    """Генерация ISO таймпстемпа"""
    return datetime.now().isoformat()

def parse_timestamp(value: str) -> datetime:
    """Разбор ISO таймстемпа (с суффиксом Z или без)"""
    return datetime.fromisoformat(value.rstrip("Z"))

def generate_session_id():
    """Уникальный непрозрачный идентификатор состояния"""
    return f"sess_{int(time.time() * 1000)}_{secrets.token_hex(5)}"

def format_duration(seconds: float) -> str:
    """Длительность в виде '1h 2m 3s'"""
    seconds = int(seconds)
    minutes, secs = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)

    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"
