from decimal import Decimal, InvalidOperation


def format_brl(value) -> str:
    """Formata valor para BRL (1.234,56) de forma robusta."""
    if value is None:
        return "0,00"

    try:
        if isinstance(value, (float, int)):
            value = Decimal(str(value))
        elif isinstance(value, str):
            value = Decimal(value.replace(",", "."))

        return f"{value:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    except (InvalidOperation, ValueError):
        return str(value)
