from typing import Dict, List, Optional

from apps.visualization.services.geo import MAP_CHART_TYPES, GeoDataDetector

AXIS_NAMES = {
    "x": "X-axis",
    "y": "Y-axis",
    "series": "Series",
    "z": "Z-axis",
}


def _role(types, label, required=True):
    return {"types": tuple(types), "label": label, "required": required}


CHART_REQUIREMENTS = {
    "bar": {
        "name": "Bar Chart",
        "description": "Compare quantities across different categories using rectangular bars.",
        "roles": {
            "x": _role(["categorical", "date"], "Categories (X-axis)"),
            "y": _role(["numeric"], "Values (Y-axis)"),
        },
        "min_data_points": 2,
        "best_for": ["Comparing quantities across categories", "Ranking items by value"],
        "common_mistakes": ["Using too many categories (makes chart cluttered)"],
    },
    "stacked-bar": {
        "name": "Stacked Bar Chart",
        "description": "Compare totals while showing the composition of each category.",
        "roles": {
            "x": _role(["categorical", "date"], "Main Categories (X-axis)"),
            "y": _role(["numeric"], "Values (Y-axis)"),
            "series": _role(["categorical"], "Stack Categories"),
        },
        "min_data_points": 4,
        "best_for": ["Comparing totals and their composition"],
        "common_mistakes": ["Too many stack categories making it confusing"],
    },
    "line": {
        "name": "Line Chart",
        "description": "Show trends and changes over time or continuous data.",
        "roles": {
            "x": _role(["date", "numeric"], "Time/Sequence (X-axis)"),
            "y": _role(["numeric"], "Values (Y-axis)"),
            "series": _role(["categorical"], "Line Groups", required=False),
        },
        "min_data_points": 3,
        "best_for": ["Showing trends over time", "Comparing multiple series"],
        "common_mistakes": ["Using categorical data instead of time series"],
    },
    "area": {
        "name": "Area Chart",
        "description": "Show cumulative totals over time.",
        "roles": {
            "x": _role(["date", "numeric"], "Time/Sequence (X-axis)"),
            "y": _role(["numeric"], "Values (Y-axis)"),
            "series": _role(["categorical"], "Area Groups", required=False),
        },
        "min_data_points": 3,
        "best_for": ["Showing volume changes over time"],
        "common_mistakes": ["Stacking series that do not add up to a whole"],
    },
    "pie": {
        "name": "Pie Chart",
        "description": "Show parts of a whole as percentages or proportions.",
        "roles": {
            "x": _role(["categorical"], "Categories"),
            "y": _role(["numeric"], "Values"),
        },
        "min_data_points": 2,
        "best_for": ["Showing parts of a whole", "Displaying percentages"],
        "common_mistakes": ["Using too many slices (>7 categories)", "Using negative values"],
    },
    "scatter": {
        "name": "Scatter Plot",
        "description": "Explore relationships and correlations between two numeric variables.",
        "roles": {
            "x": _role(["numeric"], "First Variable (X-axis)"),
            "y": _role(["numeric"], "Second Variable (Y-axis)"),
            "series": _role(["categorical"], "Point Groups", required=False),
        },
        "min_data_points": 10,
        "best_for": ["Finding correlations between variables", "Identifying outliers"],
        "common_mistakes": ["Using categorical data", "Too few data points"],
    },
    "histogram": {
        "name": "Histogram",
        "description": "Show the distribution and frequency of a single numeric variable.",
        "roles": {
            "x": _role(["numeric"], "Numeric Variable"),
        },
        "min_data_points": 20,
        "best_for": ["Understanding data distribution", "Finding data skewness"],
        "common_mistakes": ["Using categorical data", "Too few or too many bins"],
    },
    "heatmap": {
        "name": "Heatmap",
        "description": "Show intensity or density across two categorical dimensions.",
        "roles": {
            "x": _role(["categorical", "date"], "First Dimension (X-axis)"),
            "y": _role(["categorical"], "Second Dimension (Y-axis)"),
            "z": _role(["numeric"], "Intensity Values"),
        },
        "min_data_points": 9,
        "best_for": ["Showing patterns across two dimensions"],
        "common_mistakes": ["Using continuous data for dimensions"],
    },
    "treemap": {
        "name": "Tree Map",
        "description": "Display hierarchical data with proportional rectangular sizes.",
        "roles": {
            "x": _role(["categorical"], "Categories"),
            "y": _role(["numeric"], "Size Values"),
            "series": _role(["categorical"], "Parent Categories", required=False),
        },
        "min_data_points": 3,
        "best_for": ["Showing hierarchical data", "Comparing proportional sizes"],
        "common_mistakes": ["Using negative values", "Too many small categories"],
    },
    "sankey": {
        "name": "Sankey Diagram",
        "description": "Visualize flow and connections between stages or categories.",
        "roles": {
            "x": _role(["categorical"], "Source Categories"),
            "series": _role(["categorical"], "Target Categories"),
            "y": _role(["numeric"], "Flow Values"),
        },
        "min_data_points": 3,
        "best_for": ["Showing flow between categories", "Tracking conversions"],
        "common_mistakes": ["Circular flows (source = target)"],
    },
    "map2d": {
        "name": "2D Map",
        "description": "Plot coordinates on a flat world map.",
        "roles": {
            "x": _role(["numeric"], "Longitude (X-axis)"),
            "y": _role(["numeric"], "Latitude (Y-axis)"),
            "z": _role(["numeric"], "Marker Size", required=False),
        },
        "min_data_points": 1,
        "best_for": ["Showing locations", "Regional comparisons"],
        "common_mistakes": ["Swapping latitude and longitude"],
    },
    "map3d": {
        "name": "3D Map",
        "description": "Plot coordinates on a globe, optionally with elevation.",
        "roles": {
            "x": _role(["numeric"], "Longitude (X-axis)"),
            "y": _role(["numeric"], "Latitude (Y-axis)"),
            "z": _role(["numeric"], "Elevation", required=False),
        },
        "min_data_points": 1,
        "best_for": ["Global distributions", "Elevation data"],
        "common_mistakes": ["Swapping latitude and longitude"],
    },
    "network": {
        "name": "Network Graph",
        "description": "Show relationships between entities as nodes and edges.",
        "roles": {
            "x": _role(["categorical"], "Source Nodes"),
            "series": _role(["categorical"], "Target Nodes"),
            "y": _role(["numeric"], "Edge Weight", required=False),
        },
        "min_data_points": 2,
        "best_for": ["Relationships between entities", "Finding clusters"],
        "common_mistakes": ["Source and target are the same column"],
    },
    "network3d": {
        "name": "3D Network Graph",
        "description": "Explore large relationship graphs in three dimensions.",
        "roles": {
            "x": _role(["categorical"], "Source Nodes"),
            "series": _role(["categorical"], "Target Nodes"),
            "y": _role(["numeric"], "Edge Weight", required=False),
        },
        "min_data_points": 2,
        "best_for": ["Dense relationship graphs"],
        "common_mistakes": ["Source and target are the same column"],
    },
    "surface3d": {
        "name": "3D Surface",
        "description": "Show a numeric value as a surface over two numeric dimensions.",
        "roles": {
            "x": _role(["numeric"], "X Dimension"),
            "y": _role(["numeric"], "Y Dimension"),
            "z": _role(["numeric"], "Surface Height (Z-axis)"),
        },
        "min_data_points": 9,
        "best_for": ["Response surfaces", "Terrain-like data"],
        "common_mistakes": ["Sparse grids with too few points"],
    },
    "scatter3d": {
        "name": "3D Scatter Plot",
        "description": "Explore relationships between three numeric variables.",
        "roles": {
            "x": _role(["numeric"], "First Variable (X-axis)"),
            "y": _role(["numeric"], "Second Variable (Y-axis)"),
            "z": _role(["numeric"], "Third Variable (Z-axis)"),
        },
        "min_data_points": 10,
        "best_for": ["Multivariate clusters"],
        "common_mistakes": ["Too few data points"],
    },
}

CHART_TYPES = list(CHART_REQUIREMENTS)

# Roles that must name different columns
DISTINCT_ROLES = {
    "sankey": ("x", "series"),
    "network": ("x", "series"),
    "network3d": ("x", "series"),
}


def get_chart_type_info(chart_type: str) -> Optional[Dict]:
    return CHART_REQUIREMENTS.get(chart_type)


def normalize_type(column_type: Optional[str]) -> Optional[str]:
    """Text columns are matched as categorical."""
    return "categorical" if column_type == "text" else column_type


def compatible_columns(columns: List[Dict], types) -> List[str]:
    return [c["name"] for c in columns if normalize_type(c.get("type")) in types]


def validate_chart_requirements(
    chart_type: str,
    x_column: Optional[str],
    y_column: Optional[str],
    columns: List[Dict],
    data_length: int,
    series_column: Optional[str] = None,
    z_column: Optional[str] = None,
) -> Dict:
    """
    Check a column selection against a chart type's declared requirements.

    Never raises; problems come back as human readable ``issues`` along with
    ``suggestions`` naming columns that would satisfy the requirement.
    """
    info = get_chart_type_info(chart_type)
    if info is None:
        return {"is_valid": False, "issues": ["Unknown chart type"], "suggestions": []}

    issues = []
    suggestions = []

    min_points = info["min_data_points"]
    if data_length < min_points:
        issues.append(
            f"This chart type needs at least {min_points} data points. You have {data_length}."
        )

    selections = {"x": x_column, "y": y_column, "series": series_column, "z": z_column}
    by_name = {col["name"]: col for col in columns}

    for role, requirement in info["roles"].items():
        column = selections.get(role)
        axis = AXIS_NAMES[role]

        if not column:
            if requirement["required"]:
                issues.append(f"Please select a {requirement['label']}")
            continue

        column_info = by_name.get(column)
        if column_info is None:
            issues.append(f"Selected {axis} column not found")
            continue

        actual = normalize_type(column_info.get("type"))
        accepted = requirement["types"]
        if actual not in accepted:
            issues.append(
                f'{axis} needs {" or ".join(accepted)} data, but "{column}" is {actual}'
            )
            alternatives = [c for c in compatible_columns(columns, accepted) if c != column]
            if alternatives:
                suggestions.append(f"Try using: {', '.join(alternatives)} for {axis}")

    distinct = DISTINCT_ROLES.get(chart_type)
    if distinct:
        first, second = (selections[r] for r in distinct)
        if first and second and first == second:
            issues.append("Source and target columns must be different")
            suggestions.append("Pick a different column for the target nodes")
    else:
        chosen = [c for c in selections.values() if c]
        if len(chosen) != len(set(chosen)):
            issues.append("Each axis needs a different column")

    return {
        "is_valid": not issues and data_length >= min_points,
        "issues": issues,
        "suggestions": suggestions,
    }


class ChartRequirementValidator:
    def __init__(self, geo_detector: Optional[GeoDataDetector] = None):
        self.geo_detector = geo_detector or GeoDataDetector()

    def validate(self, config: Dict, columns: List[Dict], rows: List[Dict]) -> Dict:
        """
        Validate a ChartConfig against the dataset it will be drawn from.

        Map charts also get coordinate range checks and, when lat/lng are
        missing, ``auto_suggestions`` naming detected geo columns.
        """
        chart_type = config.get("chart_type")
        result = validate_chart_requirements(
            chart_type,
            config.get("x_column"),
            config.get("y_column"),
            columns,
            len(rows),
            series_column=config.get("series_column"),
            z_column=config.get("z_column"),
        )
        result["auto_suggestions"] = {}

        if chart_type in MAP_CHART_TYPES:
            geo_result = self.geo_detector.validate_selection(
                rows,
                columns,
                config.get("x_column"),
                config.get("y_column"),
                chart_type,
            )
            for issue in geo_result["issues"]:
                if issue not in result["issues"]:
                    result["issues"].append(issue)
            for suggestion in geo_result["suggestions"]:
                if suggestion not in result["suggestions"]:
                    result["suggestions"].append(suggestion)
            result["auto_suggestions"] = geo_result["auto_suggestions"]
            result["is_valid"] = result["is_valid"] and geo_result["is_valid"]

        return result
