import hashlib
import logging
from typing import Dict, List, Optional

import networkx as nx
import pandas as pd
import plotly.graph_objects as go

from apps.visualization.ml.utils import convert_numpy
from apps.visualization.services.geo import calculate_geo_bounds

logger = logging.getLogger(__name__)

PALETTES = {
    "default": [
        "#1f77b4",
        "#ff7f0e",
        "#2ca02c",
        "#d62728",
        "#9467bd",
        "#8c564b",
        "#e377c2",
        "#7f7f7f",
        "#bcbd22",
        "#17becf",
    ],
    "pastel": [
        "#aec7e8",
        "#ffbb78",
        "#98df8a",
        "#ff9896",
        "#c5b0d5",
        "#c49c94",
        "#f7b6d2",
        "#c7c7c7",
        "#dbdb8d",
        "#9edae5",
    ],
    "vivid": [
        "#e6194b",
        "#3cb44b",
        "#ffe119",
        "#4363d8",
        "#f58231",
        "#911eb4",
        "#46f0f0",
        "#f032e6",
        "#bcf60c",
        "#fabebe",
    ],
    "mono": ["#08306b", "#08519c", "#2171b5", "#4292c6", "#6baed6", "#9ecae1"],
}

SEQUENTIAL_COLORS = "Blues"


class PlotlyChartGenerator:
    """Build Plotly figure dicts for every supported chart type."""

    def __init__(self, palette: str = "default"):
        self.palette = PALETTES.get(palette, PALETTES["default"])
        self.color_cache = {}

    def _get_consistent_color(self, key: str) -> str:
        """
        Same key always gets the same colour across charts.
        """
        if key not in self.color_cache:
            hash_val = int(hashlib.md5(str(key).encode()).hexdigest(), 16)
            self.color_cache[key] = self.palette[hash_val % len(self.palette)]
        return self.color_cache[key]

    def _get_color_palette(self, n: int) -> List[str]:
        return [self.palette[i % len(self.palette)] for i in range(n)]

    def generate_chart(self, config: Dict, data: List[Dict]) -> Dict:
        """
        Generate a Plotly figure dict for a chart config.

        Parameters
        ----------
        config : dict
            ChartConfig (chart_type, x_column, y_column, series_column,
            z_column, title, palette)
        data : list of dict
            Rows already shaped by the aggregator

        Returns
        -------
        dict
            ``chart_type``, ``chart_config`` (figure dict) and ``summary``
        """
        chart_type = config.get("chart_type")
        title = config.get("title") or ""

        if config.get("palette"):
            self.palette = PALETTES.get(config["palette"], PALETTES["default"])

        if not data:
            return self._create_empty_chart(title or "No data to display")

        handler = getattr(self, f"_create_{str(chart_type).replace('-', '_')}", None)
        if handler is None:
            return self._create_empty_chart(f"Unsupported chart type: {chart_type}")

        fig = handler(config, data)
        self._apply_common_styling(fig, title)

        return {
            "chart_type": chart_type,
            "chart_config": convert_numpy(fig.to_dict()),
            "summary": f"{len(data)} data points",
        }

    def _apply_common_styling(self, fig: go.Figure, title: str = None):
        fig.update_layout(
            title={
                "text": title or "",
                "x": 0.5,
                "xanchor": "center",
                "font": {"size": 18, "family": "Arial, sans-serif"},
            },
            plot_bgcolor="rgba(240, 240, 240, 0.5)",
            paper_bgcolor="white",
            font={"family": "Arial, sans-serif", "size": 12},
            hovermode="closest",
            margin={"l": 60, "r": 40, "t": 80, "b": 60},
            autosize=True,
        )

    @staticmethod
    def _value_key(config: Dict, data: List[Dict], role: str = "y_column") -> str:
        """Aggregated rows carry ``count`` when no value column was chosen."""
        key = config.get(role)
        if key and key in data[0]:
            return key
        return "count"

    @staticmethod
    def _column(data: List[Dict], key: Optional[str]) -> List:
        return [row.get(key) for row in data]

    # ========== CATEGORY CHARTS ==========

    def _create_bar(self, config: Dict, data: List[Dict]) -> go.Figure:
        x = config.get("x_column")
        y = self._value_key(config, data)
        labels = [str(v) for v in self._column(data, x)]

        fig = go.Figure()
        fig.add_trace(
            go.Bar(
                x=labels,
                y=self._column(data, y),
                marker={"color": [self._get_consistent_color(v) for v in labels]},
                hovertemplate=f"<b>%{{x}}</b><br>{y}: %{{y:,.2f}}<extra></extra>",
            )
        )
        fig.update_xaxes(title_text=x)
        fig.update_yaxes(title_text=y)
        return fig

    def _create_stacked_bar(self, config: Dict, data: List[Dict]) -> go.Figure:
        x = config.get("x_column")
        series = config.get("series_column")
        y = self._value_key(config, data)

        fig = go.Figure()
        groups = []
        for row in data:
            key = str(row.get(series))
            if key not in groups:
                groups.append(key)

        for group in groups:
            subset = [row for row in data if str(row.get(series)) == group]
            fig.add_trace(
                go.Bar(
                    name=group,
                    x=[str(row.get(x)) for row in subset],
                    y=[row.get(y) for row in subset],
                    marker={"color": self._get_consistent_color(group)},
                )
            )
        fig.update_layout(barmode="stack", legend={"title": {"text": series}})
        fig.update_xaxes(title_text=x)
        fig.update_yaxes(title_text=y)
        return fig

    def _create_pie(self, config: Dict, data: List[Dict]) -> go.Figure:
        x = config.get("x_column")
        y = self._value_key(config, data)
        labels = [str(v) for v in self._column(data, x)]

        fig = go.Figure()
        fig.add_trace(
            go.Pie(
                labels=labels,
                values=self._column(data, y),
                marker={"colors": [self._get_consistent_color(v) for v in labels]},
                textinfo="label+percent",
            )
        )
        return fig

    def _create_treemap(self, config: Dict, data: List[Dict]) -> go.Figure:
        x = config.get("x_column")
        parent = config.get("series_column")
        y = self._value_key(config, data)

        labels = []
        parents = []
        values = []
        if parent:
            totals = {}
            for row in data:
                key = str(row.get(parent))
                totals[key] = totals.get(key, 0) + (row.get(y) or 0)
            for key, total in totals.items():
                labels.append(key)
                parents.append("")
                values.append(total)
        for row in data:
            labels.append(str(row.get(x)))
            parents.append(str(row.get(parent)) if parent else "")
            values.append(row.get(y))

        fig = go.Figure()
        fig.add_trace(
            go.Treemap(
                labels=labels,
                parents=parents,
                values=values,
                branchvalues="total" if parent else "remainder",
                marker={"colorscale": SEQUENTIAL_COLORS},
            )
        )
        return fig

    def _create_heatmap(self, config: Dict, data: List[Dict]) -> go.Figure:
        x = config.get("x_column")
        y = config.get("y_column")
        z = self._value_key(config, data, "z_column")

        frame = pd.DataFrame(data)
        grid = frame.pivot_table(index=y, columns=x, values=z, aggfunc="sum")

        fig = go.Figure()
        fig.add_trace(
            go.Heatmap(
                x=[str(c) for c in grid.columns],
                y=[str(i) for i in grid.index],
                z=grid.where(pd.notna(grid), None).values.tolist(),
                colorscale=SEQUENTIAL_COLORS,
            )
        )
        fig.update_xaxes(title_text=x)
        fig.update_yaxes(title_text=y)
        return fig

    # ========== TREND CHARTS ==========

    def _series_traces(self, config: Dict, data: List[Dict], area: bool) -> go.Figure:
        x = config.get("x_column")
        series = config.get("series_column")
        y = self._value_key(config, data)

        fig = go.Figure()
        if series:
            groups = []
            for row in data:
                key = str(row.get(series))
                if key not in groups:
                    groups.append(key)
        else:
            groups = [None]

        for group in groups:
            subset = data if group is None else [r for r in data if str(r.get(series)) == group]
            trace = {
                "name": group or y,
                "x": self._column(subset, x),
                "y": self._column(subset, y),
                "mode": "lines+markers",
                "line": {"color": self._get_consistent_color(group or y), "width": 2},
            }
            if area:
                # stacked when there are several series
                trace["stackgroup"] = "one"
            fig.add_trace(go.Scatter(**trace))
        fig.update_xaxes(title_text=x)
        fig.update_yaxes(title_text=y)
        return fig

    def _create_line(self, config: Dict, data: List[Dict]) -> go.Figure:
        return self._series_traces(config, data, area=False)

    def _create_area(self, config: Dict, data: List[Dict]) -> go.Figure:
        return self._series_traces(config, data, area=True)

    # ========== DISTRIBUTION / RELATIONSHIP ==========

    def _create_histogram(self, config: Dict, data: List[Dict]) -> go.Figure:
        x = config.get("x_column")
        values = [v for v in self._column(data, x) if v is not None]
        bins = config.get("bins") or min(30, max(10, len(values) // 10))

        fig = go.Figure()
        fig.add_trace(
            go.Histogram(
                x=values,
                name=x,
                marker={"color": self.palette[0], "line": {"color": "#0d3d5c", "width": 1}},
                opacity=0.75,
                nbinsx=bins,
            )
        )
        fig.update_xaxes(title_text=x)
        fig.update_yaxes(title_text="Frequency")
        return fig

    def _create_scatter(self, config: Dict, data: List[Dict]) -> go.Figure:
        x = config.get("x_column")
        y = config.get("y_column")
        series = config.get("series_column")

        fig = go.Figure()
        if series:
            groups = sorted({str(row.get(series)) for row in data})
            for group in groups:
                subset = [r for r in data if str(r.get(series)) == group]
                fig.add_trace(
                    go.Scatter(
                        name=group,
                        x=self._column(subset, x),
                        y=self._column(subset, y),
                        mode="markers",
                        marker={"color": self._get_consistent_color(group), "size": 8},
                    )
                )
        else:
            fig.add_trace(
                go.Scatter(
                    x=self._column(data, x),
                    y=self._column(data, y),
                    mode="markers",
                    marker={"color": self.palette[0], "size": 8, "opacity": 0.7},
                )
            )
        fig.update_xaxes(title_text=x)
        fig.update_yaxes(title_text=y)
        return fig

    def _create_scatter3d(self, config: Dict, data: List[Dict]) -> go.Figure:
        x = config.get("x_column")
        y = config.get("y_column")
        z = config.get("z_column")

        fig = go.Figure()
        fig.add_trace(
            go.Scatter3d(
                x=self._column(data, x),
                y=self._column(data, y),
                z=self._column(data, z),
                mode="markers",
                marker={"size": 4, "color": self._column(data, z), "colorscale": SEQUENTIAL_COLORS},
            )
        )
        fig.update_layout(scene={"xaxis_title": x, "yaxis_title": y, "zaxis_title": z})
        return fig

    def _create_surface3d(self, config: Dict, data: List[Dict]) -> go.Figure:
        x = config.get("x_column")
        y = config.get("y_column")
        z = config.get("z_column")

        frame = pd.DataFrame(data)
        grid = frame.pivot_table(index=y, columns=x, values=z, aggfunc="mean")

        fig = go.Figure()
        fig.add_trace(
            go.Surface(
                x=list(grid.columns),
                y=list(grid.index),
                z=grid.where(pd.notna(grid), None).values.tolist(),
                colorscale=SEQUENTIAL_COLORS,
            )
        )
        fig.update_layout(scene={"xaxis_title": x, "yaxis_title": y, "zaxis_title": z})
        return fig

    # ========== FLOW / NETWORK ==========

    def _create_sankey(self, config: Dict, data: List[Dict]) -> go.Figure:
        source = config.get("x_column")
        target = config.get("series_column")
        value = self._value_key(config, data)

        nodes = []
        for row in data:
            for key in (str(row.get(source)), str(row.get(target))):
                if key not in nodes:
                    nodes.append(key)
        index = {node: i for i, node in enumerate(nodes)}

        fig = go.Figure()
        fig.add_trace(
            go.Sankey(
                node={
                    "label": nodes,
                    "color": [self._get_consistent_color(n) for n in nodes],
                    "pad": 15,
                },
                link={
                    "source": [index[str(row.get(source))] for row in data],
                    "target": [index[str(row.get(target))] for row in data],
                    "value": [row.get(value) or 0 for row in data],
                },
            )
        )
        return fig

    def _build_graph(self, config: Dict, data: List[Dict]) -> nx.Graph:
        source = config.get("x_column")
        target = config.get("series_column")
        weight = self._value_key(config, data)

        G = nx.Graph()
        for row in data:
            u = str(row.get(source))
            v = str(row.get(target))
            w = row.get(weight) or 1
            if G.has_edge(u, v):
                G[u][v]["weight"] += w
            else:
                G.add_edge(u, v, weight=w)
        return G

    def _create_network(self, config: Dict, data: List[Dict]) -> go.Figure:
        G = self._build_graph(config, data)
        pos = nx.spring_layout(G, seed=42)

        edge_x = []
        edge_y = []
        for u, v in G.edges():
            edge_x.extend([pos[u][0], pos[v][0], None])
            edge_y.extend([pos[u][1], pos[v][1], None])

        nodes = list(G.nodes())
        fig = go.Figure()
        fig.add_trace(
            go.Scatter(
                x=edge_x,
                y=edge_y,
                mode="lines",
                line={"width": 1, "color": "#888"},
                hoverinfo="none",
            )
        )
        fig.add_trace(
            go.Scatter(
                x=[pos[n][0] for n in nodes],
                y=[pos[n][1] for n in nodes],
                mode="markers+text",
                text=nodes,
                textposition="top center",
                marker={
                    "size": [10 + 3 * G.degree(n) for n in nodes],
                    "color": [self._get_consistent_color(n) for n in nodes],
                },
                hovertemplate="%{text}<extra></extra>",
            )
        )
        fig.update_layout(
            showlegend=False,
            xaxis={"visible": False},
            yaxis={"visible": False},
        )
        return fig

    def _create_network3d(self, config: Dict, data: List[Dict]) -> go.Figure:
        G = self._build_graph(config, data)
        pos = nx.spring_layout(G, dim=3, seed=42)

        edge_x = []
        edge_y = []
        edge_z = []
        for u, v in G.edges():
            edge_x.extend([pos[u][0], pos[v][0], None])
            edge_y.extend([pos[u][1], pos[v][1], None])
            edge_z.extend([pos[u][2], pos[v][2], None])

        nodes = list(G.nodes())
        fig = go.Figure()
        fig.add_trace(
            go.Scatter3d(
                x=edge_x,
                y=edge_y,
                z=edge_z,
                mode="lines",
                line={"width": 2, "color": "#888"},
                hoverinfo="none",
            )
        )
        fig.add_trace(
            go.Scatter3d(
                x=[pos[n][0] for n in nodes],
                y=[pos[n][1] for n in nodes],
                z=[pos[n][2] for n in nodes],
                mode="markers",
                text=nodes,
                marker={
                    "size": [4 + 2 * G.degree(n) for n in nodes],
                    "color": [self._get_consistent_color(n) for n in nodes],
                },
                hovertemplate="%{text}<extra></extra>",
            )
        )
        fig.update_layout(showlegend=False)
        return fig

    # ========== MAPS ==========

    def _marker_sizes(self, values: List) -> List[float]:
        numbers = [v for v in values if isinstance(v, (int, float))]
        if not numbers:
            return [8] * len(values)
        high = max(numbers) or 1
        return [6 + 24 * (v / high) if isinstance(v, (int, float)) and v > 0 else 6 for v in values]

    def _map_figure(self, config: Dict, data: List[Dict], projection: str) -> go.Figure:
        lng = config.get("x_column")
        lat = config.get("y_column")
        size = config.get("z_column")

        sizes = self._marker_sizes(self._column(data, size)) if size else 8

        fig = go.Figure()
        fig.add_trace(
            go.Scattergeo(
                lon=self._column(data, lng),
                lat=self._column(data, lat),
                mode="markers",
                marker={"size": sizes, "color": self.palette[0], "opacity": 0.7},
                hovertemplate="Lat: %{lat}<br>Lon: %{lon}<extra></extra>",
            )
        )

        geos = {"projection_type": projection, "showland": True, "showcountries": True}
        bounds = calculate_geo_bounds(data, lat, lng)
        if bounds:
            geos["center"] = {
                "lat": (bounds["north"] + bounds["south"]) / 2,
                "lon": (bounds["east"] + bounds["west"]) / 2,
            }
            if projection == "orthographic":
                geos["projection_rotation"] = {
                    "lat": geos["center"]["lat"],
                    "lon": geos["center"]["lon"],
                }
        fig.update_geos(**geos)
        return fig

    def _create_map2d(self, config: Dict, data: List[Dict]) -> go.Figure:
        return self._map_figure(config, data, "natural earth")

    def _create_map3d(self, config: Dict, data: List[Dict]) -> go.Figure:
        return self._map_figure(config, data, "orthographic")

    # ========== FALLBACK & UTILITY ==========

    def _create_empty_chart(self, message: str) -> Dict:
        fig = go.Figure()
        fig.add_annotation(
            text=message,
            xref="paper",
            yref="paper",
            x=0.5,
            y=0.5,
            showarrow=False,
            font={"size": 16},
        )
        fig.update_layout(xaxis={"visible": False}, yaxis={"visible": False})
        return {
            "chart_type": "empty",
            "chart_config": convert_numpy(fig.to_dict()),
            "summary": message,
        }
