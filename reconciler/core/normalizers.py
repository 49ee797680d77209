# reconciler/core/normalizers.py

"""
Row field extraction.

Turns a raw row plus its column schema into the logical fields the
matcher works with: amount, date, references and description text.
Nothing in here raises on bad input; unparseable values come back as None.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional
import math
import re
import unicodedata

from dateutil.parser import parse as parse_free_text_date

from reconciler.models import ColumnDef


# Excel stores dates as days since 1899-12-30
EXCEL_EPOCH = date(1899, 12, 30)
EXCEL_SERIAL_MIN = 20_000   # 1954-10-03
EXCEL_SERIAL_MAX = 80_000   # 2119-01-10

UNIX_SECONDS_MIN = 100_000_000          # 1973-03-03
UNIX_MILLISECONDS_MIN = 100_000_000_000
UNIX_MILLISECONDS_MAX = 100_000_000_000_000

_MDY = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_DMY_DOTTED = re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4})$")
_ISO = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[T ].*)?$")
_NUMERIC = re.compile(r"^-?\d+(?:\.\d+)?$")
_COMPACT_YMD = re.compile(r"^\d{8}$")


# ============================================
# Scalars
# ============================================

def parse_amount(value: Any) -> Optional[float]:
    """
    Parse a monetary value.

    Handles:
    - ints, floats and Decimals
    - strings with currency symbols, thousands separators and whitespace
    - accounting negatives: "(123.45)" -> -123.45
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float, Decimal)):
        number = float(value)
        return number if math.isfinite(number) else None

    text = str(value).strip()
    if not text:
        return None

    cleaned = "".join(
        ch for ch in text
        if not (ch.isspace() or ch == "," or unicodedata.category(ch) == "Sc")
    )

    negative = False
    if cleaned.startswith("(") and cleaned.endswith(")"):
        negative = True
        cleaned = cleaned[1:-1]

    try:
        number = float(cleaned)
    except ValueError:
        return None

    if not math.isfinite(number):
        return None
    return -abs(number) if negative else number


def parse_date(value: Any) -> Optional[date]:
    """
    Parse a date-like value.

    Handles:
    - date and datetime objects
    - Excel serial numbers (1899-12-30 epoch)
    - Unix timestamps in seconds or milliseconds
    - MM/DD/YYYY, DD.MM.YYYY and YYYY-MM-DD strings
    - compact YYYYMMDD strings, as found in OFX exports
    - anything else dateutil can make sense of
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, (int, float, Decimal)):
        return _date_from_number(float(value))

    text = str(value).strip()
    if not text:
        return None

    if _NUMERIC.match(text):
        sniffed = _date_from_number(float(text))
        if sniffed is not None or not _COMPACT_YMD.match(text):
            return sniffed

    for pattern, order in ((_MDY, "mdy"), (_DMY_DOTTED, "dmy"), (_ISO, "ymd")):
        found = pattern.match(text)
        if not found:
            continue
        a, b, c = (int(g) for g in found.groups())
        year, month, day = {
            "mdy": (c, a, b),
            "dmy": (c, b, a),
            "ymd": (a, b, c),
        }[order]
        try:
            return date(year, month, day)
        except ValueError:
            return None

    try:
        return parse_free_text_date(text).date()
    except (ValueError, OverflowError):
        return None


def _date_from_number(number: float) -> Optional[date]:
    """Sniff a numeric date by magnitude."""
    if not math.isfinite(number):
        return None

    if EXCEL_SERIAL_MIN <= number <= EXCEL_SERIAL_MAX:
        return EXCEL_EPOCH + timedelta(days=int(number))

    try:
        if UNIX_SECONDS_MIN <= number < UNIX_MILLISECONDS_MIN:
            return datetime.fromtimestamp(number, tz=timezone.utc).date()
        if UNIX_MILLISECONDS_MIN <= number < UNIX_MILLISECONDS_MAX:
            return datetime.fromtimestamp(number / 1000, tz=timezone.utc).date()
    except (OverflowError, OSError, ValueError):
        return None

    return None


def days_between(a: date, b: date) -> int:
    """Absolute number of days between two dates."""
    return abs((a - b).days)


# ============================================
# Debit / credit netting
# ============================================

@dataclass(frozen=True)
class NettingRule:
    """
    How to net a row that carries several amount columns.

    Columns whose key contains a debit keyword add their absolute value,
    credit keywords subtract it, anything else adds its signed value.
    """
    debit_keywords: tuple[str, ...] = ("debit",)
    credit_keywords: tuple[str, ...] = ("credit",)

    def signed(self, column_key: str, value: float) -> float:
        key = column_key.lower()
        if any(word in key for word in self.debit_keywords):
            return abs(value)
        if any(word in key for word in self.credit_keywords):
            return -abs(value)
        return value


DEFAULT_NETTING_RULE = NettingRule()


# ============================================
# Row fields
# ============================================

def get_amount_from_row(
    row: dict,
    columns: list[ColumnDef],
    netting_rule: NettingRule = DEFAULT_NETTING_RULE,
) -> Optional[float]:
    """
    Logical amount of a row.

    A single amount column is parsed as-is; several are netted with the
    netting rule. Returns None when there is no amount column or nothing
    parses.
    """
    amount_columns = [c for c in columns if c.type == "amount"]
    if not amount_columns:
        return None

    if len(amount_columns) == 1:
        return parse_amount(row.get(amount_columns[0].key))

    total = 0.0
    parsed_any = False
    for column in amount_columns:
        value = parse_amount(row.get(column.key))
        if value is None:
            continue
        parsed_any = True
        total += netting_rule.signed(column.key, value)

    return total if parsed_any else None


def get_raw_date_from_row(row: dict, columns: list[ColumnDef]) -> Any:
    """Raw value of the first date column."""
    for column in columns:
        if column.type == "date":
            return row.get(column.key)
    return None


def get_date_from_row(row: dict, columns: list[ColumnDef]) -> Optional[date]:
    return parse_date(get_raw_date_from_row(row, columns))


def get_description_from_row(row: dict, columns: list[ColumnDef]) -> str:
    """All text columns joined with single spaces."""
    parts = []
    for column in columns:
        if column.type != "text":
            continue
        value = row.get(column.key)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            parts.append(text)
    return " ".join(parts)


def get_reference_from_row(row: dict, columns: list[ColumnDef]) -> list[str]:
    """Non-empty, trimmed values of the reference columns."""
    references = []
    for column in columns:
        if column.type != "reference":
            continue
        value = row.get(column.key)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            references.append(text)
    return references


@dataclass
class RowFields:
    """Logical fields of one row, parsed once per run."""
    amount: Optional[float]
    date: Optional[date]
    references: list[str]
    description: str


def extract_fields(
    row: dict,
    columns: list[ColumnDef],
    netting_rule: NettingRule = DEFAULT_NETTING_RULE,
) -> RowFields:
    return RowFields(
        amount=get_amount_from_row(row, columns, netting_rule),
        date=get_date_from_row(row, columns),
        references=get_reference_from_row(row, columns),
        description=get_description_from_row(row, columns),
    )
