import functools
from typing import Callable, Any
from datetime import datetime

from cambio_hub.core.exceptions import CambioHubError

# параметры, которые попадают в сообщение лога
_LOGGED_PARAMS = ("source", "amount", "from_currency", "interval_minutes")


def log_action(action_name: str = None, verbose: bool = False):
    """
    Декоратор для логирования операций (RATE/CONVERT/MONITOR)
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            from cambio_hub.logging_config import get_logger
            logger = get_logger("cambio_hub.actions")

            # определяем операцию
            operation = action_name or func.__name__.upper()

            # извлечение параметров для операции
            log_data = {
                "timestamp": datetime.now().isoformat(),
                "action": operation,
                "function": func.__name__,
            }

            # извлекаем важные параметры
            for param in _LOGGED_PARAMS:
                if kwargs.get(param) is not None:
                    log_data[param] = kwargs[param]

            log_message = f"{operation}"
            for param in _LOGGED_PARAMS:
                if param in log_data:
                    log_message += f" {param}={log_data[param]!r}"

            try:
                # выполняем функцию
                result = func(*args, **kwargs)

                # если кортеж - забираем результаты
                if isinstance(result, tuple) and len(result) >= 2:
                    success, message = result[0], result[1]
                    log_data["success"] = success
                    log_data["response_message"] = message[:100] if message else None  # обрезка длинных сообщений
                    log_data["result"] = "OK" if success else "FAIL"
                else:
                    log_data["result"] = "OK"

                logger.info(f"{log_message} result={log_data['result']}", extra=log_data)

                return result

            except Exception as e:
                # логирование ошибки
                log_data["result"] = "ERROR"
                log_data["error_type"] = type(e).__name__
                log_data["error_message"] = str(e)

                log_message += f" result=ERROR error={log_data['error_type']}: {log_data['error_message']}"
                logger.error(log_message, extra=log_data, exc_info=verbose)

                # пробрасываем дальше
                raise

        return wrapper

    return decorator


def handle_command_errors(func: Callable) -> Callable:
    """
    Декоратор для обработчиков CLI: ошибки печатаются, код возврата 1
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> int:
        try:
            return func(*args, **kwargs)
        except CambioHubError as e:
            print(str(e))
            return 1
        except ValueError as e:
            print(f"✗ {e}")
            return 1
        except KeyboardInterrupt:
            print("\nПрервано пользователем")
            return 130

    return wrapper
