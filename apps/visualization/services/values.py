import datetime
import math
import re
import warnings
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import numpy as np
import pandas as pd

NUMBER_PATTERN = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")

# Full-string date shapes accepted for strict detection
DATE_PATTERNS = [
    re.compile(r"^\d{4}-\d{1,2}-\d{1,2}$"),
    re.compile(r"^\d{1,2}/\d{1,2}/\d{4}$"),
    re.compile(r"^\d{1,2}-\d{1,2}-\d{4}$"),
    re.compile(r"^\d{4}/\d{1,2}/\d{1,2}$"),
    re.compile(r"^\d{4}-\d{1,2}-\d{1,2}[T ]\d{1,2}:\d{1,2}(:\d{1,2})?"),
]

# Prefix shapes used when the column name already suggests a date
LENIENT_DATE_PATTERNS = [
    re.compile(r"^\d{4}-\d{1,2}-\d{1,2}"),
    re.compile(r"^\d{1,2}/\d{1,2}/\d{4}"),
    re.compile(r"^\d{1,2}-\d{1,2}-\d{4}"),
    re.compile(r"^\d{4}/\d{1,2}/\d{1,2}"),
    re.compile(r"^\d{1,2}/\d{1,2}/\d{2}$"),
]

MIN_YEAR = 1900
MAX_YEAR = 2100


class CellKind(str, Enum):
    NUMBER = "number"
    TEXT = "text"
    DATE = "date"
    NULL = "null"


@dataclass(frozen=True)
class Cell:
    """A spreadsheet cell normalised into one of four kinds."""

    kind: CellKind
    value: Any = None
    raw: Any = None

    @property
    def is_null(self) -> bool:
        return self.kind is CellKind.NULL


NULL = Cell(CellKind.NULL)


def is_nullish(raw: Any) -> bool:
    """None, NaN, NaT and blank strings all count as missing."""
    if raw is None or raw is pd.NaT:
        return True
    if isinstance(raw, np.datetime64):
        return bool(np.isnat(raw))
    if isinstance(raw, str):
        return raw.strip() == ""
    if isinstance(raw, (float, np.floating)):
        return math.isnan(raw)
    return False


def parse_number(raw: Any) -> Optional[float]:
    if isinstance(raw, (bool, np.bool_)):
        return None
    if isinstance(raw, (int, float, np.integer, np.floating)):
        value = float(raw)
        return value if math.isfinite(value) else None
    if isinstance(raw, str):
        text = raw.strip()
        if not NUMBER_PATTERN.match(text):
            return None
        value = float(text)
        return value if math.isfinite(value) else None
    return None


def parse_date(raw: Any, lenient: bool = False) -> Optional[pd.Timestamp]:
    """
    Parse a date-like value.

    Strings must match one of the known date shapes before they are handed
    to pandas, so free text and bare integers never become dates.
    """
    if isinstance(raw, pd.Timestamp):
        return None if raw is pd.NaT else raw
    if isinstance(raw, (datetime.datetime, datetime.date, np.datetime64)):
        ts = pd.Timestamp(raw)
        return None if ts is pd.NaT else ts
    if not isinstance(raw, str):
        return None

    text = raw.strip()
    patterns = LENIENT_DATE_PATTERNS if lenient else DATE_PATTERNS
    if not any(p.match(text) for p in patterns):
        return None

    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        try:
            parsed = pd.to_datetime(text, errors="coerce")
        except (ValueError, OverflowError, TypeError):
            return None

    if parsed is pd.NaT or pd.isna(parsed):
        return None
    if not MIN_YEAR <= parsed.year <= MAX_YEAR:
        return None
    return parsed


def to_cell(raw: Any) -> Cell:
    """Convert a raw cell into a tagged Cell. Never raises."""
    if is_nullish(raw):
        return NULL

    if isinstance(raw, (bool, np.bool_)):
        return Cell(CellKind.TEXT, "true" if raw else "false", raw)

    number = parse_number(raw)
    if number is not None:
        return Cell(CellKind.NUMBER, number, raw)
    if isinstance(raw, (int, float, np.integer, np.floating)):
        # inf / -inf
        return NULL

    date = parse_date(raw)
    if date is not None:
        return Cell(CellKind.DATE, date, raw)

    return Cell(CellKind.TEXT, str(raw).strip(), raw)


def to_json_scalar(raw: Any) -> Any:
    """Make a raw cell safe for a JSONField."""
    if is_nullish(raw):
        return None
    if isinstance(raw, (bool, np.bool_)):
        return bool(raw)
    if isinstance(raw, np.integer):
        return int(raw)
    if isinstance(raw, (float, np.floating)):
        value = float(raw)
        if not math.isfinite(value):
            return None
        return int(value) if value.is_integer() and abs(value) < 2**53 else value
    if isinstance(raw, pd.Timestamp):
        return raw.isoformat()
    if isinstance(raw, (datetime.datetime, datetime.date, datetime.time)):
        return raw.isoformat()
    return raw
