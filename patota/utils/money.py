"""
Money helpers. Amounts are integer cents everywhere below the UI.
"""

import re

_AMOUNT_RE = re.compile(r'^(?:R\$\s*)?(\d{1,7})(?:[.,](\d{1,2}))?$')


def format_money(cents: int) -> str:
    """Format cents as Brazilian reais, e.g. 3500 -> 'R$ 35,00'."""
    sign = '-' if cents < 0 else ''
    reais, centavos = divmod(abs(int(cents)), 100)
    whole = f"{reais:,}".replace(',', '.')
    return f"{sign}R$ {whole},{centavos:02d}"


def parse_money(text: str) -> int:
    """
    Parse an amount typed by a user into cents.

    Accepts '35', '35,00', '35.5' and 'R$ 35,00'. Thousands separators are
    not accepted.

    Raises:
        ValueError: If the amount is malformed or not positive
    """
    match = _AMOUNT_RE.match((text or '').strip())
    if not match:
        raise ValueError(f"Invalid amount '{text}'. Use a value like 35 or 35,00")
    reais = int(match.group(1))
    fraction = match.group(2) or '0'
    cents = reais * 100 + int(fraction.ljust(2, '0'))
    if cents <= 0:
        raise ValueError("Amount must be greater than zero")
    return cents
