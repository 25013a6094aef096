import argparse
import sys
import time

from cambio_hub.core import usecases
from cambio_hub.core.converter import format_brl, parse_amount
from cambio_hub.core.variation import format_signed_change, get_direction_symbol
from cambio_hub.decorators import handle_command_errors
from cambio_hub.logging_config import setup_logging


def create_parser() -> argparse.ArgumentParser:

    parser = argparse.ArgumentParser(
        prog="cambio-hub",
        description="Мониторинг курса USD/BRL с резервными источниками",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    # создаем subпарсеры для команд
    subparsers = parser.add_subparsers(dest="command", help="Доступные команды")

    # команда rate
    rate_parser = subparsers.add_parser(
        "rate",
        help="Получить текущий курс USD/BRL"
    )
    rate_parser.add_argument(
        "--source",
        help="Опросить только указанный источник"
    )
    # команда convert
    convert_parser = subparsers.add_parser(
        "convert",
        help="Конвертировать сумму USD <-> BRL"
    )
    convert_parser.add_argument(
        "--amount",
        required=True,
        help="Сумма (допускается десятичная запятая)"
    )
    convert_parser.add_argument(
        "--from",
        dest="from_currency",
        default="USD",
        help="Исходная валюта: USD или BRL (по умолчанию USD)"
    )
    convert_parser.add_argument(
        "--source",
        help="Опросить только указанный источник"
    )
    # команда monitor
    monitor_parser = subparsers.add_parser(
        "monitor",
        help="Непрерывное обновление курса (Ctrl+C для остановки)"
    )
    monitor_parser.add_argument(
        "--interval",
        type=float,
        help="Интервал обновления в минутах (по умолчанию из config.json)"
    )
    monitor_parser.add_argument(
        "--source",
        help="Опросить только указанный источник"
    )
    # команда sessions
    subparsers.add_parser(
        "sessions",
        help="Показать сессии мониторинга"
    )
    # команда sources
    subparsers.add_parser(
        "sources",
        help="Показать источники курса в порядке опроса"
    )

    return parser


def _create_monitor():
    from cambio_hub.parser_service.updater import RateMonitor
    return RateMonitor()


@handle_command_errors
def handle_rate(args):
    with _create_monitor() as monitor:
        success, message = usecases.get_exchange_rate(monitor, source=args.source)
    print(message)
    return 0 if success else 1


@handle_command_errors
def handle_convert(args):
    amount = parse_amount(args.amount)
    with _create_monitor() as monitor:
        success, message = usecases.convert_amount(
            monitor,
            amount=amount,
            from_currency=args.from_currency,
            source=args.source,
        )
    print(message)
    return 0 if success else 1


def _print_update(sample, update_number):
    symbol = get_direction_symbol(sample.direction)
    print(
        f"#{update_number} {sample.captured_at[11:19]} "
        f"{format_brl(sample.rate)} {symbol} {sample.variation.percent} "
        f"{format_signed_change(sample.variation)} ({sample.source})"
    )


@handle_command_errors
def handle_monitor(args):
    """
    Обработать команду monitor: обновление до Ctrl+C
    """
    with _create_monitor() as monitor:
        session_number = monitor.start_continuous_update(
            interval_minutes=args.interval,
            on_sample=_print_update,
            source_filter=args.source,
        )
        if session_number is None:
            print("✗ Мониторинг уже запущен")
            return 1

        interval = args.interval or monitor.config.UPDATE_INTERVAL_MINUTES
        print(f"✓ Сессия #{session_number}: обновление каждые {interval} мин")
        print("Нажмите Ctrl+C для остановки")
        print()

        try:
            while monitor.is_running():
                time.sleep(1.0)
        except KeyboardInterrupt:
            print()
            print("Остановка мониторинга...")

        stats = monitor.get_session_info()["stats"]

    print(f"✓ Сессия #{session_number} завершена, "
          f"обновлений: {stats['update_count']}")
    return 0


@handle_command_errors
def handle_sessions(args):
    with _create_monitor() as monitor:
        success, message = usecases.describe_sessions(monitor)
    print(message)
    return 0 if success else 1


@handle_command_errors
def handle_sources(args):
    with _create_monitor() as monitor:
        success, message = usecases.list_sources(monitor)
    print(message)
    return 0 if success else 1


HANDLERS = {
    "rate": handle_rate,
    "convert": handle_convert,
    "monitor": handle_monitor,
    "sessions": handle_sessions,
    "sources": handle_sources,
}


def run(argv=None):

    parser = create_parser()
    argv = sys.argv[1:] if argv is None else argv

    # если нет аргументов - показываем help
    if not argv:
        parser.print_help()
        return 0

    args = parser.parse_args(argv)

    handler = HANDLERS.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    setup_logging()
    return handler(args)
