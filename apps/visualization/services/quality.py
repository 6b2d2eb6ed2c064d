import logging
import re
from typing import Any, Dict, List

from apps.visualization.services.type_inference import name_tokens
from apps.visualization.services.values import (
    CellKind,
    is_nullish,
    parse_date,
    parse_number,
    to_cell,
)

logger = logging.getLogger(__name__)

SEVERITY_ORDER = {"high": 3, "medium": 2, "low": 1}

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

RECOMMENDATIONS = {
    ("completeness", "high"): "Critical: make this field mandatory in source systems and add validation rules",
    ("completeness", "medium"): "Important: review the data collection process and add validation checks",
    ("completeness", "low"): "Monitor: consider default values or optional field handling",
    ("uniqueness", "high"): "Add a unique constraint and investigate the source of duplicates",
    ("uniqueness", "medium"): "Deduplicate the identifier column before joining on it",
    ("uniqueness", "low"): "Check whether the duplicate identifiers are expected",
    ("consistency", "high"): "Enforce the column type at entry and clean inconsistent values",
    ("consistency", "medium"): "Clean the inconsistent values or convert the column type",
    ("validity", "high"): "Validate ages at entry (0-150 years) and clean existing values",
    ("conformity", "medium"): "Validate email addresses at entry and clean existing values",
}


def is_identifier_name(column_name: str) -> bool:
    """``id``, ``user_id``, ``CustomerKey``... Matches on substrings."""
    lowered = str(column_name).lower()
    return "id" in lowered or "key" in lowered


class DataQualityScorer:
    """
    Score a dataset's health on four axes and list issues by severity.

    Completeness, consistency and uniqueness are computed per column and
    averaged. Accuracy is not computed: it is the ``accuracy_placeholder``
    constant and the report says so with ``accuracy_is_placeholder``.

    The scorer never mutates its inputs and includes no timestamps, so the
    same input always produces the same report.
    """

    def __init__(
        self,
        accuracy_placeholder: float = 0.95,
        completeness_high: float = 0.10,
        completeness_medium: float = 0.05,
        uniqueness_high: float = 0.10,
        uniqueness_medium: float = 0.05,
        numeric_consistency_high: float = 0.10,
        date_consistency_high: float = 0.05,
    ):
        self.accuracy_placeholder = accuracy_placeholder
        self.completeness_high = completeness_high
        self.completeness_medium = completeness_medium
        self.uniqueness_high = uniqueness_high
        self.uniqueness_medium = uniqueness_medium
        self.numeric_consistency_high = numeric_consistency_high
        self.date_consistency_high = date_consistency_high

    def score(self, rows: List[Dict], columns: List[Dict]) -> Dict:
        """
        Build the quality report.

        Returns
        -------
        Dict
            ``scores`` (0-100 per axis and overall), ``columns`` (per-column
            fractions), ``issues`` (high > medium > low) and ``summary``
        """
        total_rows = len(rows)
        column_reports = []
        issues = []

        for column in columns:
            values = [row.get(column["name"]) for row in rows]
            report, column_issues = self._score_column(column, values)
            column_reports.append(report)
            issues.extend(column_issues)

        completeness = self._average(column_reports, "completeness")
        consistency = self._average(column_reports, "consistency")
        uniqueness = self._average(column_reports, "uniqueness")
        accuracy = self.accuracy_placeholder

        overall = (completeness + consistency + accuracy + uniqueness) / 4

        issues = sorted(issues, key=lambda i: SEVERITY_ORDER[i["severity"]], reverse=True)

        return {
            "dataset": {"rows": total_rows, "columns": len(columns)},
            "scores": {
                "overall": round(overall * 100, 2),
                "completeness": round(completeness * 100, 2),
                "consistency": round(consistency * 100, 2),
                "accuracy": round(accuracy * 100, 2),
                "uniqueness": round(uniqueness * 100, 2),
            },
            "accuracy_is_placeholder": True,
            "columns": column_reports,
            "issues": issues,
            "summary": {
                "total_issues": len(issues),
                "high_severity_issues": sum(1 for i in issues if i["severity"] == "high"),
                "affected_columns": len({i["column"] for i in issues}),
            },
        }

    @staticmethod
    def _average(column_reports: List[Dict], key: str) -> float:
        if not column_reports:
            return 1.0
        return sum(c[key] for c in column_reports) / len(column_reports)

    def _score_column(self, column: Dict, values: List[Any]):
        name = column["name"]
        column_type = column.get("type")
        total = len(values)
        non_null = [v for v in values if not is_nullish(v)]
        null_count = total - len(non_null)
        issues = []

        completeness = 1 - null_count / total if total else 1.0
        missing = null_count / total if total else 0.0
        if null_count:
            severity = self._grade(missing, self.completeness_high, self.completeness_medium)
            issues.append(
                self._issue(
                    "completeness",
                    severity,
                    name,
                    f"Column has {null_count} missing values ({missing * 100:.1f}% missing)",
                    null_count,
                    missing,
                )
            )

        uniqueness = 1.0
        duplicates = 0
        if is_identifier_name(name) and non_null:
            distinct = {self._hashable(v) for v in non_null}
            duplicates = len(non_null) - len(distinct)
            uniqueness = 1 - duplicates / len(non_null)
            if duplicates:
                share = duplicates / total
                severity = self._grade(share, self.uniqueness_high, self.uniqueness_medium)
                issues.append(
                    self._issue(
                        "uniqueness",
                        severity,
                        name,
                        f"Potential ID column has {duplicates} duplicate values",
                        duplicates,
                        share,
                    )
                )

        consistency = 1.0
        inconsistent = 0
        if column_type == "numeric" and non_null:
            inconsistent = sum(1 for v in non_null if parse_number(v) is None)
            consistency = 1 - inconsistent / len(non_null)
            if inconsistent:
                share = inconsistent / len(non_null)
                severity = "high" if share > self.numeric_consistency_high else "medium"
                issues.append(
                    self._issue(
                        "consistency",
                        severity,
                        name,
                        f"Numeric column contains {inconsistent} non-numeric values",
                        inconsistent,
                        share,
                    )
                )
        elif column_type == "date" and non_null:
            inconsistent = sum(1 for v in non_null if not self._is_date(v))
            consistency = 1 - inconsistent / len(non_null)
            if inconsistent:
                share = inconsistent / len(non_null)
                severity = "high" if share > self.date_consistency_high else "medium"
                issues.append(
                    self._issue(
                        "consistency",
                        severity,
                        name,
                        f"Date column contains {inconsistent} invalid date values",
                        inconsistent,
                        share,
                    )
                )

        issues.extend(self._validity_issues(name, non_null))

        report = {
            "name": name,
            "type": column_type,
            "completeness": completeness,
            "consistency": consistency,
            "uniqueness": uniqueness,
            "null_count": null_count,
            "duplicate_count": duplicates,
            "inconsistent_count": inconsistent,
        }
        return report, issues

    def _validity_issues(self, name: str, non_null: List[Any]) -> List[Dict]:
        """Advisory checks for age and email columns. Not part of the score."""
        issues = []
        if not non_null:
            return issues
        tokens = name_tokens(name)

        if "age" in tokens:
            invalid = 0
            for value in non_null:
                number = parse_number(value)
                if number is None or number < 0 or number > 150:
                    invalid += 1
            if invalid:
                issues.append(
                    self._issue(
                        "validity",
                        "high",
                        name,
                        f"{invalid} invalid age values found",
                        invalid,
                        invalid / len(non_null),
                    )
                )

        if "email" in tokens or "e-mail" in str(name).lower():
            invalid = sum(1 for v in non_null if not EMAIL_PATTERN.match(str(v).strip()))
            if invalid:
                issues.append(
                    self._issue(
                        "conformity",
                        "medium",
                        name,
                        f"{invalid} invalid email formats found",
                        invalid,
                        invalid / len(non_null),
                    )
                )
        return issues

    @staticmethod
    def _is_date(value: Any) -> bool:
        if to_cell(value).kind is CellKind.DATE:
            return True
        return parse_date(value, lenient=True) is not None

    @staticmethod
    def _hashable(value: Any):
        number = parse_number(value)
        if number is not None:
            return ("n", number)
        return ("s", str(value).strip())

    @staticmethod
    def _grade(share: float, high: float, medium: float) -> str:
        if share > high:
            return "high"
        if share > medium:
            return "medium"
        return "low"

    @staticmethod
    def _issue(category, severity, column, description, affected_rows, share) -> Dict:
        return {
            "category": category,
            "severity": severity,
            "column": column,
            "description": description,
            "recommendation": RECOMMENDATIONS.get((category, severity), ""),
            "affected_rows": affected_rows,
            "percentage": round(share * 100, 2),
        }
