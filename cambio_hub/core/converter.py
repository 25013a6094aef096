SUPPORTED_CURRENCIES = ("USD", "BRL")


def convert(amount: float, from_currency: str, to_currency: str, rate: float) -> float:
    """
    Конвертация USD <-> BRL по курсу USD/BRL
    """
    from_currency = from_currency.upper().strip()
    to_currency = to_currency.upper().strip()

    if from_currency == "USD" and to_currency == "BRL":
        return amount * rate
    if from_currency == "BRL" and to_currency == "USD":
        return amount / rate
    return amount


def parse_amount(text: str) -> float:
    """Разбор введённой суммы, допускается десятичная запятая"""
    try:
        value = float(str(text).strip().replace(",", "."))
    except ValueError:
        raise ValueError(f"Некорректная сумма: '{text}'")

    if not value > 0:
        raise ValueError("Сумма должна быть больше нуля")
    return value


def format_usd(amount: float) -> str:
    # $1,234.56
    return f"${amount:,.2f}"


def format_brl(amount: float) -> str:
    # R$ 1.234,56
    formatted = f"{amount:,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"R$ {formatted}"


def format_currency(amount: float, currency: str) -> str:
    if currency.upper() == "BRL":
        return format_brl(amount)
    return format_usd(amount)


def format_rate(rate: float) -> str:
    return f"{rate:.4f}"
