import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

from apps.visualization.services.values import (
    CellKind,
    parse_date,
    to_cell,
    to_json_scalar,
)

logger = logging.getLogger(__name__)

COLUMN_TYPES = ("numeric", "date", "categorical", "text")

DATE_NAME_KEYWORDS = {
    "date",
    "time",
    "timestamp",
    "datetime",
    "created",
    "updated",
    "modified",
    "deleted",
    "birth",
    "born",
    "dob",
    "start",
    "end",
    "begin",
    "finish",
    "expires",
    "expired",
    "due",
    "deadline",
    "published",
    "release",
    "launch",
    "opened",
    "closed",
    "registered",
    "joined",
    "signed",
    "login",
    "effective",
    "until",
}

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_TOKEN_SPLIT = re.compile(r"[^A-Za-z0-9]+")


def name_tokens(column_name: str) -> List[str]:
    """Split ``orderDate`` / ``order_date`` / ``Order Date`` into lowercase words."""
    spaced = _CAMEL_BOUNDARY.sub(" ", str(column_name))
    return [t.lower() for t in _TOKEN_SPLIT.split(spaced) if t]


def is_date_column_name(column_name: str) -> bool:
    return any(token in DATE_NAME_KEYWORDS for token in name_tokens(column_name))


class ColumnTypeInferrer:
    """
    Classify spreadsheet columns as numeric, date, categorical or text.

    Checks run in a fixed preference order (numeric > date > categorical >
    text) and the first one whose threshold is met decides the type, so the
    result is a deterministic function of the sampled values.

    Parameters
    ----------
    sample_size : int
        Number of leading values inspected per column.
    numeric_ratio : float
        Minimum fraction of non-null values that must parse as numbers.
    date_ratio : float
        Minimum fraction of non-null values that must parse as dates.
    date_name_hint_ratio : float
        Lower date fraction accepted when the column name suggests a date.
    categorical_ratio : float
        Distinct values must stay below this fraction of the sample.
    max_categories : int
        Upper bound on distinct values for a categorical column.
    max_failures : int
        How many unparsed values are kept in ``parse_failures``.
    """

    def __init__(
        self,
        sample_size: int = 1000,
        numeric_ratio: float = 0.8,
        date_ratio: float = 0.5,
        date_name_hint_ratio: float = 0.3,
        categorical_ratio: float = 0.5,
        max_categories: int = 50,
        max_failures: int = 5,
        sample_values: int = 5,
    ):
        self.sample_size = sample_size
        self.numeric_ratio = numeric_ratio
        self.date_ratio = date_ratio
        self.date_name_hint_ratio = date_name_hint_ratio
        self.categorical_ratio = categorical_ratio
        self.max_categories = max_categories
        self.max_failures = max_failures
        self.sample_values = sample_values

    def _sample(self, values: Sequence[Any]) -> List[Any]:
        return list(values[: self.sample_size])

    def infer_column(self, name: str, values: Sequence[Any]) -> Dict:
        """
        Build the ColumnInfo for one column.

        Returns
        -------
        Dict
            ``name``, ``type``, ``sample_values``, ``type_counts`` and
            ``parse_failures`` (values that did not parse as the chosen or
            nearest numeric/date type, with their row position)
        """
        sample = self._sample(values)
        cells = [to_cell(v) for v in sample]

        counts = {kind.value: 0 for kind in CellKind}
        for cell in cells:
            counts[cell.kind.value] += 1

        non_null = [(i, c) for i, c in enumerate(cells) if not c.is_null]
        total = len(non_null)

        column_type = self._decide(name, sample, non_null, counts)

        info = {
            "name": name,
            "type": column_type,
            "sample_values": [
                to_json_scalar(c.raw) for _, c in non_null[: self.sample_values]
            ],
            "type_counts": counts,
            "parse_failures": self._collect_failures(column_type, non_null, counts),
        }

        logger.debug(
            "Column %r -> %s (non-null=%d, counts=%s)", name, column_type, total, counts
        )
        return info

    def infer_column_type(self, name: str, values: Sequence[Any]) -> str:
        return self.infer_column(name, values)["type"]

    def infer_columns(
        self, rows: Sequence[Dict[str, Any]], headers: Optional[Iterable[str]] = None
    ) -> List[Dict]:
        """Infer ColumnInfo for every column, in header order."""
        if headers is None:
            headers = self.collect_headers(rows)
        return [
            self.infer_column(header, [row.get(header) for row in rows])
            for header in headers
        ]

    @staticmethod
    def collect_headers(rows: Sequence[Dict[str, Any]]) -> List[str]:
        headers = []
        seen = set()
        for row in rows:
            for key in row:
                if key not in seen:
                    seen.add(key)
                    headers.append(key)
        return headers

    def _decide(self, name, sample, non_null, counts) -> str:
        total = len(non_null)
        if total == 0:
            return "text"

        if is_date_column_name(name):
            lenient_hits = sum(
                1
                for i, c in non_null
                if c.kind is CellKind.DATE
                or parse_date(sample[i], lenient=True) is not None
            )
            if lenient_hits >= max(1, total * self.date_name_hint_ratio):
                return "date"

        if counts[CellKind.NUMBER.value] >= total * self.numeric_ratio:
            return "numeric"

        if counts[CellKind.DATE.value] >= total * self.date_ratio:
            return "date"

        distinct = {str(c.value).strip().lower() for _, c in non_null}
        if (
            1 < len(distinct) <= self.max_categories
            and len(distinct) < total * self.categorical_ratio
        ):
            return "categorical"

        return "text"

    def _collect_failures(self, column_type, non_null, counts) -> List[Dict]:
        if column_type == "numeric":
            expected = CellKind.NUMBER
        elif column_type == "date":
            expected = CellKind.DATE
        else:
            # Report against the nearest parse when a sizeable share parsed
            total = len(non_null) or 1
            number_share = counts[CellKind.NUMBER.value] / total
            date_share = counts[CellKind.DATE.value] / total
            if max(number_share, date_share) < 0.25:
                return []
            expected = CellKind.DATE if date_share >= number_share else CellKind.NUMBER

        failures = []
        for row, cell in non_null:
            if column_type == "date" and cell.kind is CellKind.TEXT:
                # lenient name-hinted dates
                if parse_date(cell.raw, lenient=True) is not None:
                    continue
            if cell.kind is not expected:
                failures.append({"row": row, "value": to_json_scalar(cell.raw)})
                if len(failures) >= self.max_failures:
                    break
        return failures


def override_column_type(columns: List[Dict], name: str, new_type: str) -> List[Dict]:
    """
    Return a copy of ``columns`` with one column's type replaced.

    Raises
    ------
    ValueError
        If the column does not exist or the type is not a known column type.
    """
    if new_type not in COLUMN_TYPES:
        raise ValueError(f"Unknown column type: {new_type}")

    if not any(col["name"] == name for col in columns):
        raise ValueError(f"Column not found: {name}")

    updated = []
    for col in columns:
        col = dict(col)
        if col["name"] == name:
            col["type"] = new_type
            col["overridden"] = True
        updated.append(col)
    return updated
