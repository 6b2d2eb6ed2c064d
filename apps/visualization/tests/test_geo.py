from django.test import SimpleTestCase

from apps.visualization.services.geo import (
    GeoDataDetector,
    calculate_geo_bounds,
    format_coordinate,
    is_valid_coordinate,
)

COORD_COLUMNS = [
    {"name": "latitude", "type": "numeric"},
    {"name": "longitude", "type": "numeric"},
]

COORD_ROWS = [
    {"latitude": 40.7128, "longitude": -74.0060},
    {"latitude": 51.5074, "longitude": -0.1278},
    {"latitude": -33.8688, "longitude": 151.2093},
]


class TestGeoDataDetector(SimpleTestCase):
    def setUp(self):
        self.detector = GeoDataDetector()

    def test_detects_latitude_and_longitude(self):
        result = self.detector.detect(COORD_COLUMNS, COORD_ROWS)
        self.assertTrue(result["has_geo_data"])
        self.assertEqual(result["latitude_column"], "latitude")
        self.assertEqual(result["longitude_column"], "longitude")
        self.assertIsNone(result["address_column"])
        self.assertEqual(result["confidence"], 0.8)

    def test_out_of_range_latitude_is_rejected(self):
        rows = COORD_ROWS + [{"latitude": 200, "longitude": 10}]
        result = self.detector.detect(COORD_COLUMNS, rows)
        self.assertIsNone(result["latitude_column"])
        self.assertEqual(result["longitude_column"], "longitude")
        self.assertFalse(result["has_geo_data"])

    def test_short_names_match(self):
        columns = [{"name": "LAT", "type": "numeric"}, {"name": "lng", "type": "numeric"}]
        rows = [{"LAT": 10, "lng": 20}]
        result = self.detector.detect(columns, rows)
        self.assertEqual(result["latitude_column"], "LAT")
        self.assertEqual(result["longitude_column"], "lng")

    def test_non_numeric_columns_are_ignored(self):
        columns = [{"name": "lat", "type": "text"}, {"name": "lon", "type": "numeric"}]
        rows = [{"lat": "north", "lon": 10}]
        self.assertIsNone(self.detector.detect(columns, rows)["latitude_column"])

    def test_first_matching_column_wins(self):
        columns = [
            {"name": "lat", "type": "numeric"},
            {"name": "latitude", "type": "numeric"},
        ]
        rows = [{"lat": 1, "latitude": 2}]
        self.assertEqual(self.detector.detect(columns, rows)["latitude_column"], "lat")

    def test_address_only(self):
        columns = [{"name": "city", "type": "categorical"}]
        result = self.detector.detect(columns, [{"city": "Paris"}])
        self.assertTrue(result["has_geo_data"])
        self.assertEqual(result["address_column"], "city")
        self.assertEqual(result["confidence"], 0.2)

    def test_confidence_is_capped(self):
        detector = GeoDataDetector(latitude_weight=0.6, longitude_weight=0.6)
        self.assertEqual(detector.detect(COORD_COLUMNS, COORD_ROWS)["confidence"], 1.0)

    def test_no_geo_data(self):
        columns = [{"name": "sales", "type": "numeric"}]
        result = self.detector.detect(columns, [{"sales": 1}])
        self.assertFalse(result["has_geo_data"])
        self.assertEqual(result["confidence"], 0.0)

    def test_suggest_columns(self):
        suggestion = self.detector.suggest_columns(COORD_COLUMNS, COORD_ROWS)
        self.assertEqual(suggestion["latitude"], "latitude")
        self.assertEqual(suggestion["longitude"], "longitude")
        self.assertIsNone(self.detector.suggest_columns([], []))


class TestValidateSelection(SimpleTestCase):
    def setUp(self):
        self.detector = GeoDataDetector()

    def test_missing_columns_return_auto_suggestions(self):
        result = self.detector.validate_selection(COORD_ROWS, COORD_COLUMNS, None, None)
        self.assertFalse(result["is_valid"])
        self.assertEqual(
            result["auto_suggestions"],
            {"longitude_column": "longitude", "latitude_column": "latitude"},
        )

    def test_valid_selection(self):
        result = self.detector.validate_selection(
            COORD_ROWS, COORD_COLUMNS, "longitude", "latitude"
        )
        self.assertTrue(result["is_valid"])
        self.assertEqual(result["valid_points"], 3)

    def test_invalid_coordinates_are_reported(self):
        rows = COORD_ROWS + [{"latitude": 10, "longitude": 500}]
        result = self.detector.validate_selection(
            rows, COORD_COLUMNS, "longitude", "latitude"
        )
        self.assertFalse(result["is_valid"])
        self.assertIn("1 rows have invalid coordinates", result["issues"])
        self.assertEqual(result["valid_points"], 3)

    def test_non_numeric_selection(self):
        columns = COORD_COLUMNS + [{"name": "city", "type": "text"}]
        result = self.detector.validate_selection(COORD_ROWS, columns, "city", "latitude")
        self.assertFalse(result["is_valid"])

    def test_map3d_suggests_elevation(self):
        result = self.detector.validate_selection(
            COORD_ROWS, COORD_COLUMNS, "longitude", "latitude", "map3d"
        )
        self.assertTrue(any("Z-axis" in s for s in result["suggestions"]))


class TestGeoHelpers(SimpleTestCase):
    def test_is_valid_coordinate(self):
        self.assertTrue(is_valid_coordinate(45, 90))
        self.assertTrue(is_valid_coordinate("45.5", "-120"))
        self.assertFalse(is_valid_coordinate(91, 0))
        self.assertFalse(is_valid_coordinate(0, 181))
        self.assertFalse(is_valid_coordinate(None, 0))

    def test_calculate_geo_bounds(self):
        bounds = calculate_geo_bounds(COORD_ROWS, "latitude", "longitude")
        self.assertEqual(bounds["north"], 51.5074)
        self.assertEqual(bounds["south"], -33.8688)
        self.assertEqual(bounds["east"], 151.2093)
        self.assertEqual(bounds["west"], -74.0060)
        self.assertIsNone(calculate_geo_bounds([], "latitude", "longitude"))

    def test_format_coordinate(self):
        self.assertEqual(format_coordinate(40.7128, "lat"), "40.712800°N")
        self.assertEqual(format_coordinate(-74.006, "lng"), "74.006000°W")
        self.assertEqual(format_coordinate(-33.5, "lat"), "33.500000°S")
        with self.assertRaises(ValueError):
            format_coordinate(1.0, "alt")
