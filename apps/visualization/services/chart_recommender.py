from typing import Dict, List, Optional

import pandas as pd

from apps.visualization.services.chart_requirements import (
    CHART_TYPES,
    ChartRequirementValidator,
)
from apps.visualization.services.field_selector import FieldSelector
from apps.visualization.services.geo import GeoDataDetector
from apps.visualization.services.values import parse_number

REASONS = {
    "bar": "Compares {y_column} across the categories of {x_column}",
    "stacked-bar": "Shows how {series_column} makes up {y_column} per {x_column}",
    "line": "Shows how {y_column} changes along {x_column}",
    "area": "Shows the volume of {y_column} along {x_column}",
    "pie": "Shows each {x_column}'s share of total {y_column}",
    "scatter": "Explores the relationship between {x_column} and {y_column}",
    "histogram": "Shows the distribution of {x_column}",
    "heatmap": "Shows {z_column} across {x_column} and {y_column}",
    "treemap": "Shows {y_column} proportionally per {x_column}",
    "sankey": "Shows the flow of {y_column} from {x_column} to {series_column}",
    "map2d": "Plots rows at their {y_column}/{x_column} coordinates",
    "map3d": "Plots rows on a globe at their {y_column}/{x_column} coordinates",
    "network": "Links {x_column} to {series_column}",
    "network3d": "Links {x_column} to {series_column} in 3D",
    "surface3d": "Shows {z_column} as a surface over {x_column} and {y_column}",
    "scatter3d": "Explores {x_column}, {y_column} and {z_column} together",
}


class ChartRecommender:
    def __init__(
        self,
        field_selector: Optional[FieldSelector] = None,
        validator: Optional[ChartRequirementValidator] = None,
        geo_detector: Optional[GeoDataDetector] = None,
    ):
        self.geo_detector = geo_detector or GeoDataDetector()
        self.field_selector = field_selector or FieldSelector(self.geo_detector)
        self.validator = validator or ChartRequirementValidator(self.geo_detector)

    def recommend(self, columns: List[Dict], rows: List[Dict], top_k: int = 3) -> List[Dict]:
        """
        Rank the chart types the dataset can actually satisfy
        :param columns: ColumnInfo list
        :param rows:
        :param top_k:
        :return: A list of recommendations [{type, score, fields, reason}]
        """
        ranked = []

        for chart_type in CHART_TYPES:
            fields = self.field_selector.select_fields(chart_type, columns, rows)
            config = {"chart_type": chart_type, **fields}
            validation = self.validator.validate(config, columns, rows)
            if not validation["is_valid"]:
                continue

            score = self._score(chart_type, fields, columns, rows)
            ranked.append(
                {
                    "type": chart_type,
                    "score": score,
                    "fields": fields,
                    "reason": self._reason(chart_type, fields),
                }
            )

        ranked.sort(key=lambda x: (-x["score"], x["type"]))
        return ranked[:top_k] if top_k else ranked

    def _reason(self, chart_type: str, fields: Dict) -> str:
        template = REASONS.get(chart_type, "")
        values = {key: f'"{value}"' for key, value in fields.items()}
        for key in ("x_column", "y_column", "series_column", "z_column"):
            values.setdefault(key, "the data")
        return template.format(**values)

    def _score(self, chart_type: str, fields: Dict, columns: List[Dict], rows: List[Dict]) -> int:
        score = 10
        x = fields.get("x_column")
        y = fields.get("y_column")
        types = {c["name"]: c.get("type") for c in columns}

        if chart_type == "bar":
            if 2 <= self.field_selector.distinct_count(rows, x) <= 30:
                score += 20

        elif chart_type == "pie":
            distinct = self.field_selector.distinct_count(rows, x)
            score += 30 if 2 <= distinct <= 8 else -10

        elif chart_type in ("line", "area"):
            if types.get(x) == "date":
                score += 25 if chart_type == "line" else 15

        elif chart_type == "scatter":
            score += 10
            correlation = self._correlation(rows, x, y)
            if correlation is not None and abs(correlation) >= 0.7:
                score += 30

        elif chart_type == "histogram":
            score += 15
            if self._has_outliers(rows, x):
                score += 10

        elif chart_type == "treemap":
            score += 15 if self.field_selector.distinct_count(rows, x) > 20 else 5

        elif chart_type == "stacked-bar":
            score += 15

        elif chart_type == "heatmap":
            score += 10

        elif chart_type in ("sankey", "network"):
            score += 10

        elif chart_type in ("map2d", "map3d"):
            confidence = self.geo_detector.detect(columns, rows)["confidence"]
            score += int((40 if chart_type == "map2d" else 30) * confidence)

        elif chart_type == "scatter3d":
            score += 5

        return score

    def _numbers(self, rows: List[Dict], column: str) -> pd.Series:
        return pd.Series(
            [parse_number(row.get(column)) for row in rows], dtype="float64"
        )

    def _correlation(self, rows, x, y) -> Optional[float]:
        frame = pd.DataFrame({"x": self._numbers(rows, x), "y": self._numbers(rows, y)}).dropna()
        if len(frame) < 3:
            return None
        corr = frame["x"].corr(frame["y"])
        if pd.isna(corr):
            return None
        return float(corr)

    def _has_outliers(self, rows, column) -> bool:
        values = self._numbers(rows, column).dropna()
        if len(values) < 4:
            return False
        q1 = values.quantile(0.25)
        q3 = values.quantile(0.75)
        iqr = q3 - q1
        return bool(((values < q1 - 1.5 * iqr) | (values > q3 + 1.5 * iqr)).any())
