"""Currency arithmetic and locale-aware formatting.

Amounts are Decimal values rounded to the centavo with ROUND_HALF_UP.
Formatting uses babel with the locale from settings (default es_MX, so MXN).

Example:
    >>> round_currency("10.005")
    Decimal('10.01')
    >>> format_amount(Decimal("1234.5"))
    '$1,234.50'
"""

import logging
from decimal import ROUND_HALF_UP, Decimal

from babel import Locale, UnknownLocaleError
from babel.numbers import format_currency as babel_format_currency
from babel.numbers import format_decimal as babel_format_decimal
from babel.numbers import get_territory_currencies

from sams.config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = "es_MX"
DEFAULT_CURRENCY = "MXN"

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def round_currency(value: int | float | str | Decimal) -> Decimal:
    """Round an amount to the centavo.

    Floats go through str() so 0.1 + 0.2 style artifacts do not leak in.

    Args:
        value: Amount in pesos

    Returns:
        Decimal with exactly two decimal places
    """
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_centavos(value: int | float | str | Decimal) -> int:
    """Convert a peso amount to integer centavos."""
    return int(round_currency(value) * 100)


def from_centavos(centavos: int) -> Decimal:
    """Convert integer centavos to a peso amount."""
    return round_currency(Decimal(centavos) / 100)


def _get_locale() -> str:
    locale_str = get_settings().locale
    try:
        Locale.parse(locale_str)
        return locale_str
    except (UnknownLocaleError, ValueError) as e:
        logger.warning(f"Invalid LOCALE '{locale_str}': {e}. Falling back to '{DEFAULT_LOCALE}'")
        return DEFAULT_LOCALE


def _get_currency_from_locale(locale_str: str) -> str:
    """Derive currency code from locale territory.

    Args:
        locale_str: Locale string (e.g., 'es_MX')

    Returns:
        Currency code (e.g., 'MXN')
    """
    try:
        locale = Locale.parse(locale_str)
        if locale.territory:
            currencies = get_territory_currencies(locale.territory)
            if currencies:
                return currencies[0]
    except (UnknownLocaleError, ValueError) as e:
        logger.warning(f"Could not derive currency from locale '{locale_str}': {e}")
    return DEFAULT_CURRENCY


LOCALE = _get_locale()
CURRENCY = _get_currency_from_locale(LOCALE)


def get_currency_code() -> str:
    """Get currency code derived from locale."""
    return CURRENCY


def format_amount(amount: int | float | Decimal, include_symbol: bool = True) -> str:
    """Format monetary amount according to locale.

    Args:
        amount: Numeric amount to format
        include_symbol: Whether to include currency symbol (default True)

    Returns:
        Formatted currency string (e.g., '$1,234.56')
    """
    value = round_currency(amount)
    if include_symbol:
        return babel_format_currency(value, CURRENCY, locale=LOCALE)
    return babel_format_decimal(value, format="#,##0.00", locale=LOCALE)


__all__ = [
    "CENT",
    "ZERO",
    "round_currency",
    "to_centavos",
    "from_centavos",
    "get_currency_code",
    "format_amount",
]
