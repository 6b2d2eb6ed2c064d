import logging
import re
from typing import Any, Dict, List, Optional

from apps.visualization.services.values import CellKind, parse_number, to_cell

logger = logging.getLogger(__name__)

LAT_PATTERNS = [
    re.compile(r"^lat(itude)?$", re.IGNORECASE),
    re.compile(r"^y$", re.IGNORECASE),
    re.compile(r"^geo_lat$", re.IGNORECASE),
    re.compile(r"^location_lat$", re.IGNORECASE),
]

LNG_PATTERNS = [
    re.compile(r"^lng$", re.IGNORECASE),
    re.compile(r"^lon(gitude)?$", re.IGNORECASE),
    re.compile(r"^long$", re.IGNORECASE),
    re.compile(r"^x$", re.IGNORECASE),
    re.compile(r"^geo_lng$", re.IGNORECASE),
    re.compile(r"^geo_lon$", re.IGNORECASE),
    re.compile(r"^location_lng$", re.IGNORECASE),
    re.compile(r"^location_lon$", re.IGNORECASE),
]

ADDRESS_PATTERNS = [
    re.compile(r"^address$", re.IGNORECASE),
    re.compile(r"^location$", re.IGNORECASE),
    re.compile(r"^place$", re.IGNORECASE),
    re.compile(r"^city$", re.IGNORECASE),
    re.compile(r"^region$", re.IGNORECASE),
]

LAT_RANGE = (-90.0, 90.0)
LNG_RANGE = (-180.0, 180.0)

MAP_CHART_TYPES = ("map2d", "map3d")


def _matches(name: str, patterns: List[re.Pattern]) -> bool:
    return any(p.match(str(name).strip()) for p in patterns)


def _values_in_range(rows: List[Dict], column: str, bounds) -> bool:
    """Every non-null value must be a number inside ``bounds``."""
    low, high = bounds
    for row in rows:
        cell = to_cell(row.get(column))
        if cell.is_null:
            continue
        if cell.kind is not CellKind.NUMBER:
            return False
        if not low <= cell.value <= high:
            return False
    return True


def coordinate(value: Any) -> Optional[float]:
    """Numeric coordinate component, or None for anything else."""
    return parse_number(value)


def is_valid_coordinate(lat: Any, lng: Any) -> bool:
    lat_value = coordinate(lat)
    lng_value = coordinate(lng)
    if lat_value is None or lng_value is None:
        return False
    return (
        LAT_RANGE[0] <= lat_value <= LAT_RANGE[1]
        and LNG_RANGE[0] <= lng_value <= LNG_RANGE[1]
    )


class GeoDataDetector:
    """
    Decide whether a dataset can be drawn on a map.

    Latitude and longitude candidates are matched by name, must be declared
    numeric and must have every non-null value inside the coordinate range.
    Columns failing the range check are skipped, and for each role the first
    matching column in declaration order wins.
    """

    def __init__(
        self,
        latitude_weight: float = 0.4,
        longitude_weight: float = 0.4,
        address_weight: float = 0.2,
    ):
        self.latitude_weight = latitude_weight
        self.longitude_weight = longitude_weight
        self.address_weight = address_weight

    def _find_coordinate_column(self, columns, rows, patterns, bounds) -> Optional[str]:
        for column in columns:
            if column.get("type") != "numeric":
                continue
            if not _matches(column["name"], patterns):
                continue
            if _values_in_range(rows, column["name"], bounds):
                return column["name"]
            logger.debug(
                "Rejected %r as coordinate column: values outside %s",
                column["name"],
                bounds,
            )
        return None

    def _find_address_column(self, columns) -> Optional[str]:
        for column in columns:
            if column.get("type") not in ("text", "categorical"):
                continue
            if _matches(column["name"], ADDRESS_PATTERNS):
                return column["name"]
        return None

    def detect(self, columns: List[Dict], rows: List[Dict]) -> Dict:
        """
        Detect latitude/longitude/address columns.

        Returns
        -------
        Dict
            ``has_geo_data``, ``latitude_column``, ``longitude_column``,
            ``address_column`` and a ``confidence`` in [0, 1]
        """
        latitude = self._find_coordinate_column(columns, rows, LAT_PATTERNS, LAT_RANGE)
        longitude = self._find_coordinate_column(
            columns, rows, LNG_PATTERNS, LNG_RANGE
        )
        address = self._find_address_column(columns)

        confidence = 0.0
        if latitude:
            confidence += self.latitude_weight
        if longitude:
            confidence += self.longitude_weight
        if address:
            confidence += self.address_weight

        return {
            "has_geo_data": bool((latitude and longitude) or address),
            "latitude_column": latitude,
            "longitude_column": longitude,
            "address_column": address,
            "confidence": round(min(confidence, 1.0), 2),
        }

    def suggest_columns(self, columns: List[Dict], rows: List[Dict]) -> Optional[Dict]:
        detection = self.detect(columns, rows)
        if not detection["has_geo_data"]:
            return None
        return {
            "longitude": detection["longitude_column"],
            "latitude": detection["latitude_column"],
            "confidence": detection["confidence"],
        }

    def validate_selection(
        self,
        rows: List[Dict],
        columns: List[Dict],
        x_column: Optional[str],
        y_column: Optional[str],
        chart_type: str = "map2d",
    ) -> Dict:
        """
        Validate a map selection where x is longitude and y is latitude.

        Never raises. When columns are missing, the detector's own guesses
        are returned under ``auto_suggestions`` so the caller can apply them.
        """
        issues = []
        suggestions = []
        auto_suggestions = {}

        if not x_column or not y_column:
            issues.append(
                "Both longitude (X-axis) and latitude (Y-axis) columns must be selected"
            )
            detection = self.detect(columns, rows)
            if detection["has_geo_data"]:
                if detection["longitude_column"]:
                    auto_suggestions["longitude_column"] = detection["longitude_column"]
                    suggestions.append(
                        f'Detected longitude column: "{detection["longitude_column"]}"'
                    )
                if detection["latitude_column"]:
                    auto_suggestions["latitude_column"] = detection["latitude_column"]
                    suggestions.append(
                        f'Detected latitude column: "{detection["latitude_column"]}"'
                    )
            return self._result(issues, suggestions, auto_suggestions)

        by_name = {col["name"]: col for col in columns}
        x_info = by_name.get(x_column)
        y_info = by_name.get(y_column)

        if not x_info or not y_info:
            issues.append("Selected columns not found in data")
            return self._result(issues, suggestions, auto_suggestions)

        if x_info.get("type") != "numeric" or y_info.get("type") != "numeric":
            issues.append(
                "Both longitude and latitude columns must contain numeric values"
            )
            suggestions.append(
                "Select columns that contain decimal coordinates (e.g., -74.0059, 40.7128)"
            )
            return self._result(issues, suggestions, auto_suggestions)

        invalid = []
        valid_count = 0
        for row in rows:
            lng = row.get(x_column)
            lat = row.get(y_column)
            if to_cell(lng).is_null or to_cell(lat).is_null:
                continue
            if is_valid_coordinate(lat, lng):
                valid_count += 1
            else:
                invalid.append((lng, lat))

        if invalid:
            issues.append(f"{len(invalid)} rows have invalid coordinates")
            suggestions.append("Longitude values must be between -180 and 180")
            suggestions.append("Latitude values must be between -90 and 90")
            sample = ", ".join(f"({lng}, {lat})" for lng, lat in invalid[:3])
            suggestions.append(f"Sample invalid coordinates: {sample}")

        if valid_count == 0:
            issues.append("No valid geographic coordinates found")
            suggestions.append("Ensure your data contains valid latitude/longitude pairs")
            return self._result(issues, suggestions, auto_suggestions)

        if valid_count < len(rows) * 0.5:
            suggestions.append(
                f"Only {valid_count} of {len(rows)} rows have valid coordinates"
            )

        if chart_type == "map3d":
            suggestions.append(
                "For 3D maps, consider adding a Z-axis column for elevation data"
            )

        result = self._result(issues, suggestions, auto_suggestions)
        result["valid_points"] = valid_count
        return result

    @staticmethod
    def _result(issues, suggestions, auto_suggestions) -> Dict:
        return {
            "is_valid": not issues,
            "issues": issues,
            "suggestions": suggestions,
            "auto_suggestions": auto_suggestions,
        }


def calculate_geo_bounds(
    rows: List[Dict], lat_column: str, lng_column: str
) -> Optional[Dict[str, float]]:
    lats = []
    lngs = []
    for row in rows:
        lat = row.get(lat_column)
        lng = row.get(lng_column)
        if is_valid_coordinate(lat, lng):
            lats.append(coordinate(lat))
            lngs.append(coordinate(lng))

    if not lats:
        return None

    return {
        "north": max(lats),
        "south": min(lats),
        "east": max(lngs),
        "west": min(lngs),
    }


def format_coordinate(value: float, kind: str) -> str:
    """Format ``40.7128`` as ``40.712800°N``."""
    if kind == "lat":
        direction = "N" if value >= 0 else "S"
    elif kind == "lng":
        direction = "E" if value >= 0 else "W"
    else:
        raise ValueError(f"Unknown coordinate kind: {kind}")
    return f"{abs(value):.6f}°{direction}"
