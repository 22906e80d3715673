from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Any

EXCEL_EPOCH = date(1899, 12, 30)

# currency symbols and whitespace (including NBSP) around amounts
_CURRENCY_MARKERS = re.compile(r"€|EUR|\s", re.IGNORECASE)
_NUMBER = re.compile(r"^-?[\d.,]*\d[\d.,]*$")

_DATE_PATTERNS = (
    (re.compile(r"^\d{4}-\d{2}-\d{2}"), "%Y-%m-%d", 10),
    (re.compile(r"^\d{1,2}\.\d{1,2}\.\d{4}$"), "%d.%m.%Y", None),
    (re.compile(r"^\d{1,2}/\d{1,2}/\d{4}$"), "%d/%m/%Y", None),
    (re.compile(r"^\d{1,2}\.\d{1,2}\.\d{2}$"), "%d.%m.%y", None),
)


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        text = value.strip()
        return not text or text.lower() == "none"
    return False


def clean_text(value: Any) -> str | None:
    """Return stripped text or None for blank cells."""

    if is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def excel_serial_to_date(serial: float) -> date | None:
    """Convert an Excel day serial (1900 date system) into a date."""

    if serial <= 0 or serial > 2958465:
        return None
    return EXCEL_EPOCH + timedelta(days=int(serial))


def to_date(value: Any) -> date | None:
    if is_blank(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return excel_serial_to_date(float(value))
    text = str(value).strip()
    if re.match(r"^\d+(\.0+)?$", text):
        return excel_serial_to_date(float(text))
    for pattern, fmt, cut in _DATE_PATTERNS:
        if pattern.match(text):
            try:
                return datetime.strptime(text[:cut] if cut else text, fmt).date()
            except ValueError:
                return None
    return None


def to_float(value: Any) -> float | None:
    if is_blank(value):
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = _CURRENCY_MARKERS.sub("", str(value))
    negative = text.startswith("(") and text.endswith(")")
    if negative:
        text = text[1:-1]
    if not _NUMBER.match(text):
        return None
    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "")
            text = text.replace(",", ".")
        else:
            text = text.replace(",", "")
    elif text.count(".") > 1:
        # 1.234.567 thousands grouping without decimals
        text = text.replace(".", "")
    else:
        text = text.replace(",", ".")
    try:
        number = float(text)
    except ValueError:
        return None
    return -abs(number) if negative else number
