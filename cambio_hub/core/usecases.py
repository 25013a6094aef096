import logging

from cambio_hub.core.converter import (
    SUPPORTED_CURRENCIES,
    convert,
    format_currency,
    format_rate,
)
from cambio_hub.core.utils import format_duration, parse_timestamp
from cambio_hub.core.variation import format_signed_change, get_direction_symbol
from cambio_hub.decorators import log_action


# логгер
logger = logging.getLogger("cambio_hub.usecases")


def _check_source(monitor, source):
    """Проверка имени источника, возвращает каноническое имя"""
    if source is None:
        return None

    descriptor = monitor.config.get_source(source)
    if descriptor is None:
        known = ", ".join(s.name for s in monitor.config.SOURCES)
        raise ValueError(f"Неизвестный источник '{source}'. Доступные: {known}")
    return descriptor.name


def _describe_sample(sample) -> str:
    symbol = get_direction_symbol(sample.direction)
    return (f"{symbol} {sample.variation.percent} "
            f"{format_signed_change(sample.variation)}")


@log_action("RATE")
def get_exchange_rate(monitor, source=None):
    """
    Получить текущий курс USD/BRL
    """
    try:
        source = _check_source(monitor, source)
        sample = monitor.acquire_rate(source)

        output = [
            f"✓ Курс USD → BRL: {format_rate(sample.rate)}",
            f"Источник: {sample.source}",
            f"Изменение: {_describe_sample(sample)}",
            f"Время: {parse_timestamp(sample.captured_at).strftime('%d/%m/%Y %H:%M:%S')}",
        ]
        if sample.is_fallback:
            output.append("✗ Все источники недоступны, использован резервный курс")
            logger.warning(f"Использован резервный курс {sample.rate}")

        return True, "\n".join(output)

    except ValueError as e:
        return False, f"✗ {e}"
    except Exception as e:
        return False, f"✗ Ошибка получения курса: {str(e)}"


@log_action("CONVERT")
def convert_amount(monitor, amount, from_currency, source=None):
    """
    Конвертация суммы USD <-> BRL по текущему курсу
    """
    try:
        from_currency = from_currency.upper().strip()
        if from_currency not in SUPPORTED_CURRENCIES:
            raise ValueError(
                f"Неподдерживаемая валюта '{from_currency}'. "
                f"Доступные: {', '.join(SUPPORTED_CURRENCIES)}"
            )
        if amount <= 0:
            raise ValueError("Сумма должна быть больше нуля")

        to_currency = "BRL" if from_currency == "USD" else "USD"

        source = _check_source(monitor, source)
        sample = monitor.acquire_rate(source)
        result = convert(amount, from_currency, to_currency, sample.rate)

        output = [
            f"✓ {format_currency(amount, from_currency)} = "
            f"{format_currency(result, to_currency)}",
            f"Курс: {format_rate(sample.rate)} ({sample.source})",
        ]
        if sample.is_fallback:
            output.append("✗ Использован резервный курс, результат приблизительный")

        return True, "\n".join(output)

    except ValueError as e:
        return False, f"✗ {e}"
    except Exception as e:
        return False, f"✗ Ошибка конвертации: {str(e)}"


@log_action("SESSIONS")
def describe_sessions(monitor):
    """Список сессий мониторинга"""
    sessions = monitor.session_storage.get_sessions()
    stats = monitor.session_storage.get_session_stats()

    if not sessions:
        return True, "Сессий мониторинга пока нет. Запустите команду monitor"

    output = [f"{'#':<5} {'Начало':<20} {'Обновлений':>11} {'Длительность':>14}"]
    output.append("-" * 53)

    for session in sessions:
        started = parse_timestamp(session["start_time"]).strftime("%d/%m/%Y %H:%M:%S")
        if "duration_seconds" in session:
            duration = format_duration(session["duration_seconds"])
        else:
            duration = "-"
        output.append(
            f"{session['session_number']:<5} {started:<20} "
            f"{session.get('update_count', 0):>11} {duration:>14}"
        )

    output.append("")
    output.append(f"Всего сессий: {stats['total_sessions']}, "
                  f"обновлений: {stats['total_updates']}")

    return True, "\n".join(output)


@log_action("SOURCES")
def list_sources(monitor):
    """Источники курса в порядке опроса"""
    config = monitor.config
    output = []

    for position, source in enumerate(monitor.resolver.sources, start=1):
        output.append(f"{position}. {source.name} ({source.kind}) - {source.url}")

    disabled = [s.name for s in config.SOURCES if not s.enabled]
    if disabled:
        output.append(f"Отключены: {', '.join(disabled)}")

    if config.RESTRICTED_MODE:
        output.append("Ограниченный режим: источники-страницы пропускаются")

    output.append(f"Резервный курс: {format_rate(config.FALLBACK_RATE)}")

    return True, "\n".join(output)
