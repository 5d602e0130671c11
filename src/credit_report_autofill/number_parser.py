"""
Number and date helpers shared by the extractor and the document filler.

Spreadsheet cells arrive as raw values (int, float, str or None). Chinese
statements write amounts like "1,234,567元" or "3,500万", so formatting
characters and unit glyphs are stripped before parsing.
"""

import math
import re
from datetime import date, datetime
from numbers import Real
from typing import Any, Optional, Union

Number = Union[int, float]

# Thousands separators (ASCII and fullwidth), whitespace and unit glyphs
_STRIP_PATTERN = re.compile(r'[,，\s元万千百]')
# Leading decimal literal, the same prefix a lenient float parser accepts
_LEADING_NUMBER = re.compile(r'^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?')
_PARENTHESIZED = re.compile(r'^[(（]\s*([\d.]+)\s*[)）]$')


def parse_number(value: Any) -> Optional[Number]:
    """
    Parse a raw cell value into a number.
    Returns None for empty input or anything that is not a number.
    A literal zero is returned as 0; callers decide whether zero counts.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, Real):
        return value if math.isfinite(value) else None

    if not isinstance(value, str):
        return None

    text = _STRIP_PATTERN.sub('', value)
    if not text:
        return None

    # Accounting negatives, e.g. "(1,234)" -> -1234
    match = _PARENTHESIZED.match(text)
    if match:
        text = '-' + match.group(1)

    match = _LEADING_NUMBER.match(text)
    if not match:
        return None

    number = float(match.group(0))
    if not math.isfinite(number):
        return None
    return int(number) if number.is_integer() and abs(number) < 2 ** 53 else number


def format_number(value: Number) -> str:
    """Round half-up to 2 decimals and group thousands: 1234567.5 -> '1,234,567.5'"""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return ''
    rounded = math.floor(value * 100 + 0.5) / 100
    text = f"{rounded:,.2f}"
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return text


def format_date(value: Any) -> str:
    """Format a date as YYYY年MM月DD日. Unparseable strings come back unchanged."""
    if value is None or value == '':
        return ''
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip())
        except ValueError:
            return value
    if isinstance(value, (date, datetime)):
        return f"{value.year}年{value.month:02d}月{value.day:02d}日"
    return str(value)


def to_display_text(value: Any) -> str:
    """Plain text for a context value; integral floats lose their trailing .0"""
    if value is None:
        return ''
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, (date, datetime)):
        return format_date(value)
    if isinstance(value, float):
        if math.isnan(value):
            return ''
        if value.is_integer():
            return str(int(value))
    return str(value)


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()
