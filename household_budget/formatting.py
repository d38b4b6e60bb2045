"""Formatting utilities for currency and month labels."""

from __future__ import annotations

import calendar
from typing import List, Optional, Union

from .config import DEFAULT_CURRENCY, DEFAULT_LOCALE

CURRENCY_SYMBOLS = {
    'DKK': 'kr.',
    'SEK': 'kr',
    'NOK': 'kr',
    'EUR': '€',
    'USD': '$',
    'GBP': '£',
}

# Locales that write 1.234,56 instead of 1,234.56
_COMMA_DECIMAL_LANGUAGES = {'da', 'de', 'nb', 'no', 'sv', 'nl', 'fr', 'es', 'it'}

_DANISH_MONTHS = ['Jan', 'Feb', 'Mar', 'Apr', 'Maj', 'Jun', 'Jul', 'Aug', 'Sep', 'Okt', 'Nov', 'Dec']


def _language(locale: Optional[str]) -> str:
    return (locale or DEFAULT_LOCALE).replace('_', '-').split('-')[0].lower()


def month_labels(locale: Optional[str] = None) -> List[str]:
    """Short month names, January first.

    Example:
        >>> month_labels('en-US')[:3]
        ['Jan', 'Feb', 'Mar']
        >>> month_labels('da-DK')[4]
        'Maj'
    """
    if _language(locale) == 'da':
        return list(_DANISH_MONTHS)
    return [calendar.month_abbr[m] for m in range(1, 13)]


def format_currency(
    amount: Union[float, int],
    currency: Optional[str] = None,
    locale: Optional[str] = None,
) -> str:
    """Format a currency amount for display.

    Symbols follow the amount for comma-decimal locales and precede it
    otherwise.

    Example:
        >>> format_currency(1234.5, 'USD', 'en-US')
        '$1,234.50'
        >>> format_currency(-1234.5, 'DKK', 'da-DK')
        '-1.234,50 kr.'
    """
    code = (currency or DEFAULT_CURRENCY).upper()
    symbol = CURRENCY_SYMBOLS.get(code, code)
    sign = '-' if amount < 0 else ''
    formatted = f"{abs(amount):,.2f}"
    if _language(locale) in _COMMA_DECIMAL_LANGUAGES:
        formatted = formatted.replace(',', '_').replace('.', ',').replace('_', '.')
        return f"{sign}{formatted} {symbol}"
    return f"{sign}{symbol}{formatted}"
