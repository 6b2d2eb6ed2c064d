from typing import Dict, List, Optional

import pandas as pd

from apps.visualization.services.chart_requirements import (
    get_chart_type_info,
    normalize_type,
)
from apps.visualization.services.geo import MAP_CHART_TYPES, GeoDataDetector
from apps.visualization.services.values import is_nullish, parse_number

ROLE_KEYS = {
    "x": "x_column",
    "y": "y_column",
    "series": "series_column",
    "z": "z_column",
}


class FieldSelector:
    def __init__(self, geo_detector: Optional[GeoDataDetector] = None):
        self.geo_detector = geo_detector or GeoDataDetector()

    def distinct_count(self, rows: List[Dict], column: str) -> int:
        return len(
            {
                str(row.get(column)).strip().lower()
                for row in rows
                if not is_nullish(row.get(column))
            }
        )

    def coefficient_of_variation(self, rows: List[Dict], column: str) -> float:
        values = pd.Series(
            [parse_number(row.get(column)) for row in rows], dtype="float64"
        ).dropna()
        if len(values) < 2:
            return 0.0
        mean = values.mean()
        if mean == 0:
            return 0.0
        return float(abs(values.std() / mean))

    def select_fields(self, chart_type: str, columns: List[Dict], rows: List[Dict]) -> Dict:
        """
        Select the best columns for a given chart type
        :param chart_type:
        :param columns: ColumnInfo list
        :param rows:
        :return: ChartConfig column keys (x_column, y_column, series_column, z_column)
        """
        info = get_chart_type_info(chart_type)
        if info is None:
            return {}

        fields = {}
        used = set()

        if chart_type in MAP_CHART_TYPES:
            detection = self.geo_detector.detect(columns, rows)
            if detection["longitude_column"] and detection["latitude_column"]:
                fields["x_column"] = detection["longitude_column"]
                fields["y_column"] = detection["latitude_column"]
            return fields

        for role, requirement in info["roles"].items():
            if not requirement["required"]:
                continue
            column = None
            for accepted in requirement["types"]:
                column = self._best(accepted, columns, rows, used)
                if column:
                    break
            if column:
                fields[ROLE_KEYS[role]] = column
                used.add(column)

        return fields

    def _best(self, column_type: str, columns, rows, used) -> Optional[str]:
        candidates = [
            c["name"]
            for c in columns
            if normalize_type(c.get("type")) == column_type and c["name"] not in used
        ]
        if not candidates:
            return None

        if column_type == "numeric":
            scored = [(name, self.coefficient_of_variation(rows, name)) for name in candidates]
            # highest spread first, declaration order breaks ties
            scored.sort(key=lambda x: -x[1])
            return scored[0][0]

        if column_type == "categorical":
            scored = []
            for name in candidates:
                distinct = self.distinct_count(rows, name)
                penalty = 0 if 2 <= distinct <= 30 else 1000
                scored.append((name, penalty + distinct))
            scored.sort(key=lambda x: x[1])
            return scored[0][0]

        return candidates[0]
