from typing import Dict, List, Tuple

import numpy as np
import pandas as pd

from apps.visualization.services.values import parse_date, parse_number, to_json_scalar

AGGREGATIONS = ("auto", "sum", "mean", "count", "min", "max", "median", "none")
SORT_ORDERS = ("none", "asc", "desc", "x")

POINT_CHARTS = ("scatter", "scatter3d", "map2d", "map3d", "surface3d")
FLOW_CHARTS = ("sankey", "network", "network3d")
TIME_CHARTS = ("line", "area")


def _numeric(series: pd.Series) -> pd.Series:
    return pd.to_numeric(series.map(parse_number), errors="coerce")


def _records(df: pd.DataFrame) -> List[Dict]:
    return [
        {str(k): to_json_scalar(v) for k, v in record.items()}
        for record in df.to_dict(orient="records")
    ]


class DataAggregator:
    def aggregate(self, rows: List[Dict], config: Dict) -> Tuple[List[Dict], Dict]:
        """
        Shape rows for a chart.
        Returns (rows, extra_info)
        """
        extra_info = {}
        chart_type = config.get("chart_type")
        x = config.get("x_column")
        y = config.get("y_column")
        series = config.get("series_column")
        z = config.get("z_column")

        df = pd.DataFrame.from_records(rows)
        if df.empty:
            return [], extra_info

        def present(*cols):
            return list(dict.fromkeys(c for c in cols if c and c in df.columns))

        if chart_type == "histogram":
            if x not in df.columns:
                return [], extra_info
            values = _numeric(df[x]).dropna()
            extra_info["bins"] = self._smart_bins(values)
            return _records(values.to_frame(name=x)), extra_info

        if chart_type in POINT_CHARTS:
            numeric_cols = present(x, y, z)
            cols = present(x, y, z, series)
            clean = df[cols].copy()
            for col in numeric_cols:
                clean[col] = _numeric(clean[col])
            clean = clean.dropna(subset=numeric_cols)
            extra_info["dropped_rows"] = int(len(df) - len(clean))
            return _records(clean), extra_info

        if chart_type in FLOW_CHARTS:
            group_cols = present(x, series)
            value_col = y if y in df.columns else None
        elif chart_type == "heatmap":
            group_cols = present(x, y)
            value_col = z if z in df.columns else None
        else:
            group_cols = present(x, series)
            value_col = y if y in df.columns else None

        # A grouping column cannot also be the measure
        if value_col in group_cols:
            value_col = None

        if not group_cols:
            return _records(df), extra_info

        method = config.get("aggregation") or "auto"
        if method not in AGGREGATIONS:
            method = "auto"

        work = df[group_cols].copy()
        if value_col:
            work["__value"] = _numeric(df[value_col])
            before = len(work)
            if method != "count":
                work = work.dropna(subset=["__value"])
            extra_info["dropped_rows"] = int(before - len(work))
        elif method not in ("count", "none"):
            method = "count"

        if method == "auto":
            method = self._choose_agg(work["__value"])

        if method == "none":
            result = work
        elif method == "count":
            result = work.groupby(group_cols, dropna=False).size().reset_index(name="__value")
        else:
            result = (
                work.groupby(group_cols, dropna=False)["__value"]
                .agg(method)
                .reset_index()
            )
        extra_info["aggregation"] = method

        value_name = value_col or "count"
        result = result.rename(columns={"__value": value_name})
        result = self._sort(result, config, chart_type, x, value_name)

        return _records(result), extra_info

    def _sort(self, df: pd.DataFrame, config: Dict, chart_type, x, value_name):
        order = config.get("sort_order") or "none"
        if order == "none" and chart_type in TIME_CHARTS:
            order = "x"

        if order in ("asc", "desc") and value_name in df.columns:
            return df.sort_values(
                by=value_name, ascending=order == "asc", kind="mergesort"
            ).reset_index(drop=True)

        if order == "x" and x in df.columns:
            keys = df[x].map(lambda v: parse_date(v, lenient=True))
            if keys.notna().all():
                return df.assign(_sort_key=keys).sort_values(
                    "_sort_key", kind="mergesort"
                ).drop(columns="_sort_key").reset_index(drop=True)
            numbers = df[x].map(parse_number)
            if numbers.notna().all():
                return df.assign(_sort_key=numbers).sort_values(
                    "_sort_key", kind="mergesort"
                ).drop(columns="_sort_key").reset_index(drop=True)
            return df.assign(_sort_key=df[x].astype(str)).sort_values(
                "_sort_key", kind="mergesort"
            ).drop(columns="_sort_key").reset_index(drop=True)

        return df

    def _smart_bins(self, series: pd.Series) -> int:
        n = len(series)
        if n <= 20:
            return 5
        if n <= 100:
            return int(np.sqrt(n))
        IQR = series.quantile(0.75) - series.quantile(0.25)
        if IQR == 0:
            return 10
        h = 2 * IQR / (n ** (1 / 3))
        return max(10, min(100, int((series.max() - series.min()) / h)))

    def _choose_agg(self, values: pd.Series) -> str:
        if len(values) == 0:
            return "sum"
        unique_ratio = values.nunique() / len(values)
        if unique_ratio < 0.1:
            return "sum"
        if unique_ratio < 0.5:
            return "mean"
        return "median"
