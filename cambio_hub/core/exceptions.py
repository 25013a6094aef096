class CambioHubError(Exception):
    """Базовое исключение для всех ошибок приложения"""
    pass

class SourceUnavailableError(CambioHubError):
    """
    Исключение при сбое обращения к внешнему источнику курса
    """

    def __init__(self, source: str, reason: str):
        """
        Иницализация экземпляра
        """
        self.source = source
        self.reason = reason
        message = f"✗ Источник '{source}' недоступен: {reason}"
        super().__init__(message)

class ParseError(CambioHubError):
    """
    Исключение при невозможности разобрать текст курса
    """

    def __init__(self, text: str):
        self.text = text
        message = f"✗ Не удалось разобрать курс из текста: '{text}'"
        super().__init__(message)

class ValidationError(CambioHubError):
    """Исключение при ошибках валидации данных (курс вне допустимых границ)"""

    def __init__(self, reason: str, rate=None):
        self.reason = reason
        self.rate = rate
        super().__init__(f"✗ {reason}")

class AllSourcesExhaustedError(CambioHubError):
    """
    Все источники исчерпаны. Наружу не пробрасывается,
    резолвер превращает его в fallback-курс
    """

    def __init__(self, errors):
        self.errors = list(errors)
        message = "✗ Все источники курса исчерпаны"
        if self.errors:
            message += ": " + "; ".join(self.errors)
        super().__init__(message)

class PersistenceError(CambioHubError):
    """Исключение при ошибке записи состояния или логов на диск"""

    def __init__(self, path, reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"✗ Ошибка записи {self.path}: {reason}")
