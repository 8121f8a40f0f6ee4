"""
Data Normalizers Module.

This module provides normalization functions for:
    - Date values (to datetime.date)
    - Amount values (to integer cents)
    - Text cleaning

Normalizers never raise on bad input; they return None and leave the
decision to the validators.

Author: ML Engineering Team
"""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional
from dateutil import parser as date_parser

from config import get_config
from invoice_intake.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


class DateNormalizer:
    """
    Normalizes date values to ``datetime.date``.

    The model is asked for ISO dates, but edited records and less
    obedient responses may carry other common formats.

    Attributes:
        input_formats: Explicit format strings tried before dateutil

    Example:
        >>> normalizer = DateNormalizer()
        >>> normalizer.to_date("01/15/2026")
        datetime.date(2026, 1, 15)
        >>> normalizer.to_date("January 15, 2026")
        datetime.date(2026, 1, 15)
        >>> normalizer.to_date("not-a-date") is None
        True
    """

    # Differ in year, month, day and weekday
    _FIRST_DEFAULT = datetime(2000, 1, 1)
    _SECOND_DEFAULT = datetime(2004, 12, 28)

    def __init__(self) -> None:
        """Initialize the date normalizer with configuration."""
        self.input_formats = get_config(
            "postprocessing.date.input_formats",
            [
                "%Y-%m-%d",
                "%m/%d/%Y",
                "%d/%m/%Y",
                "%B %d, %Y",
                "%b %d, %Y",
                "%d %B %Y",
                "%d-%m-%Y",
                "%d.%m.%Y"
            ]
        )

    def to_date(self, value: Any) -> Optional[date]:
        """
        Convert a value to a calendar date.

        Args:
            value: A date, datetime or date string.

        Returns:
            The parsed date, or None if the value is not a date.
        """
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if not isinstance(value, str) or not value.strip():
            return None

        date_str = self._clean_date_string(value)

        parsed = self._try_explicit_formats(date_str)
        if parsed is None:
            parsed = self._try_dateutil_parser(date_str)

        if parsed is None:
            logger.debug(f"Could not parse date: {value!r}")
            return None
        return parsed.date()

    def _clean_date_string(self, date_str: str) -> str:
        date_str = ' '.join(date_str.split())

        # Remove ordinal suffixes (1st, 2nd, 3rd, 4th, etc.)
        date_str = re.sub(r'(\d+)(st|nd|rd|th)\b', r'\1', date_str, flags=re.IGNORECASE)

        return date_str.strip()

    def _try_explicit_formats(self, date_str: str) -> Optional[datetime]:
        for fmt in self.input_formats:
            try:
                return datetime.strptime(date_str, fmt)
            except ValueError:
                continue
        return None

    def _try_dateutil_parser(self, date_str: str) -> Optional[datetime]:
        """
        Try dateutil without fuzzy matching.

        Fuzzy matching would happily pull a date out of "not-a-date 5",
        so anything that is not entirely a date is rejected. dateutil also
        fills a missing year, month or day from its default, so the string
        is parsed against two defaults that differ in every date component
        and only a string that pins all of them gives the same result.
        """
        try:
            first = date_parser.parse(date_str, default=self._FIRST_DEFAULT, fuzzy=False)
            second = date_parser.parse(date_str, default=self._SECOND_DEFAULT, fuzzy=False)
        except (ValueError, OverflowError):
            return None

        if first != second:
            logger.debug(f"Rejected partial date: '{date_str}'")
            return None
        return first


class AmountNormalizer:
    """
    Normalizes amounts to integer cents.

    Two input conventions exist:
        - Model output: amounts are already in cents. Integers and
          integral numeric strings are accepted as is.
        - Display amounts (edited records): currency strings such as
          "$1,234.56" are major units and are converted to cents,
          rounding half up.

    Example:
        >>> normalizer = AmountNormalizer()
        >>> normalizer.cents_from_model(5000)
        5000
        >>> normalizer.cents_from_display("$45.00")
        4500
        >>> normalizer.cents_from_display("€ 1.234,56")
        123456
    """

    CURRENCY_SYMBOLS = ['$', '€', '£', '¥', '₹', '₽', '₿', '฿', '₫', '₴', '₦']
    CURRENCY_CODES = ['USD', 'EUR', 'GBP', 'JPY', 'INR', 'CAD', 'AUD', 'CNY', 'RUB']

    CENT = Decimal("1")
    HUNDRED = Decimal("100")

    def cents_from_model(self, value: Any) -> Optional[int]:
        """
        Read an amount the model reported in cents.

        Args:
            value: int, integral float, or integral numeric string.

        Returns:
            Cents as int (may be negative), or None if not an integral
            number.
        """
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value

        if isinstance(value, float):
            return int(value) if value.is_integer() else None

        if isinstance(value, str):
            number = self._to_decimal(value.strip())
            if number is not None and number == number.to_integral_value():
                return int(number)

        return None

    def cents_from_display(self, value: Any) -> Optional[int]:
        """
        Read an amount given in cents (int) or major units (string/float).

        Args:
            value: int cents, float major units, or a currency string.

        Returns:
            Cents as int (may be negative), or None if unparseable.
        """
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value

        if isinstance(value, float):
            number = self._to_decimal(repr(value))
        elif isinstance(value, str):
            amount_str = self._handle_european_format(self._clean_amount_string(value))
            number = self._to_decimal(amount_str.replace(',', ''))
        else:
            number = None

        if number is None:
            logger.debug(f"Could not parse amount: {value!r}")
            return None

        return int((number * self.HUNDRED).quantize(self.CENT, rounding=ROUND_HALF_UP))

    def _to_decimal(self, text: str) -> Optional[Decimal]:
        if not text:
            return None
        try:
            number = Decimal(text)
        except InvalidOperation:
            return None
        return number if number.is_finite() else None

    def _clean_amount_string(self, amount_str: str) -> str:
        amount_str = ' '.join(amount_str.split())

        for symbol in self.CURRENCY_SYMBOLS:
            amount_str = amount_str.replace(symbol, '')

        for code in self.CURRENCY_CODES:
            amount_str = re.sub(rf'\b{code}\b', '', amount_str, flags=re.IGNORECASE)

        # Keep only digits, comma, dot, and minus
        amount_str = re.sub(r'[^\d,.\-]', '', amount_str)

        return amount_str.strip()

    def _handle_european_format(self, amount_str: str) -> str:
        """
        Convert European format (comma decimal) to US format (dot decimal).

        A single comma followed by at most two digits, and placed after
        the last dot, is taken as the decimal separator.
        """
        if amount_str.count(',') == 1:
            comma_pos = amount_str.rfind(',')
            dot_pos = amount_str.rfind('.')

            if comma_pos > dot_pos:
                after_comma = amount_str[comma_pos + 1:]
                if len(after_comma) <= 2 and after_comma.isdigit():
                    amount_str = amount_str.replace('.', '')
                    amount_str = amount_str.replace(',', '.')

        return amount_str


class TextNormalizer:
    """Collapses whitespace in free-text fields."""

    def clean(self, value: Any) -> Optional[str]:
        """
        Return the value with runs of whitespace collapsed, or None if
        it is missing or blank.

        Example:
            >>> TextNormalizer().clean("  Acme   Corp ")
            'Acme Corp'
        """
        if value is None:
            return None
        text = ' '.join(str(value).split())
        return text or None
