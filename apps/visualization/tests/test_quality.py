from django.test import SimpleTestCase

from apps.visualization.services.quality import DataQualityScorer, is_identifier_name


class TestDataQualityScorer(SimpleTestCase):
    def setUp(self):
        self.scorer = DataQualityScorer()

    def test_completeness_with_missing_values(self):
        rows = [{"value": i} for i in range(7)] + [{"value": None}] * 3
        report = self.scorer.score(rows, [{"name": "value", "type": "numeric"}])

        self.assertEqual(report["scores"]["completeness"], 70.0)
        self.assertEqual(report["columns"][0]["null_count"], 3)
        issue = report["issues"][0]
        self.assertEqual(issue["category"], "completeness")
        self.assertEqual(issue["severity"], "high")
        self.assertEqual(issue["affected_rows"], 3)
        self.assertEqual(issue["percentage"], 30.0)

    def test_overall_averages_four_axes(self):
        rows = [{"value": i} for i in range(7)] + [{"value": None}] * 3
        report = self.scorer.score(rows, [{"name": "value", "type": "numeric"}])
        # (0.7 + 1.0 + 0.95 + 1.0) / 4
        self.assertEqual(report["scores"]["overall"], 91.25)
        self.assertEqual(report["scores"]["accuracy"], 95.0)
        self.assertTrue(report["accuracy_is_placeholder"])

    def test_duplicate_identifiers(self):
        rows = [{"customer_id": v} for v in (1, 2, 2, 3)]
        report = self.scorer.score(rows, [{"name": "customer_id", "type": "numeric"}])
        self.assertEqual(report["scores"]["uniqueness"], 75.0)
        issue = report["issues"][0]
        self.assertEqual(issue["category"], "uniqueness")
        self.assertEqual(issue["severity"], "high")

    def test_duplicates_outside_identifier_columns_are_fine(self):
        rows = [{"color": "red"}] * 4
        report = self.scorer.score(rows, [{"name": "color", "type": "categorical"}])
        self.assertEqual(report["scores"]["uniqueness"], 100.0)
        self.assertEqual(report["issues"], [])

    def test_numeric_consistency(self):
        rows = [{"price": v} for v in (1, 2, "abc", 4)]
        report = self.scorer.score(rows, [{"name": "price", "type": "numeric"}])
        self.assertEqual(report["scores"]["consistency"], 75.0)
        self.assertEqual(report["columns"][0]["inconsistent_count"], 1)
        self.assertEqual(report["issues"][0]["category"], "consistency")

    def test_date_consistency(self):
        rows = [{"day": v} for v in ("2024-01-01", "2024-01-02", "soon", "2024-01-04")]
        report = self.scorer.score(rows, [{"name": "day", "type": "date"}])
        self.assertEqual(report["scores"]["consistency"], 75.0)

    def test_issues_sorted_by_severity(self):
        rows = [{"email": "a@example.com", "note": "x"} for _ in range(19)]
        rows.append({"email": "broken", "note": None})
        columns = [
            {"name": "email", "type": "text"},
            {"name": "note", "type": "text"},
        ]
        report = self.scorer.score(rows, columns)
        severities = [issue["severity"] for issue in report["issues"]]
        self.assertEqual(severities, ["medium", "low"])
        self.assertEqual(report["issues"][0]["category"], "conformity")
        self.assertEqual(report["summary"]["total_issues"], 2)
        self.assertEqual(report["summary"]["affected_columns"], 2)

    def test_age_validity(self):
        rows = [{"age": v} for v in (25, 40, 200)]
        report = self.scorer.score(rows, [{"name": "age", "type": "numeric"}])
        self.assertEqual(report["issues"][0]["category"], "validity")
        self.assertEqual(report["issues"][0]["affected_rows"], 1)
        self.assertEqual(report["summary"]["high_severity_issues"], 1)

    def test_empty_dataset(self):
        report = self.scorer.score([], [])
        self.assertEqual(report["scores"]["completeness"], 100.0)
        self.assertEqual(report["scores"]["overall"], 98.75)
        self.assertEqual(report["issues"], [])

    def test_columns_without_rows(self):
        report = self.scorer.score([], [{"name": "a", "type": "text"}])
        self.assertEqual(report["scores"]["completeness"], 100.0)
        self.assertEqual(report["dataset"], {"rows": 0, "columns": 1})

    def test_inputs_are_not_mutated_and_output_is_stable(self):
        rows = [{"id": 1, "v": None}, {"id": 1, "v": 2}]
        columns = [{"name": "id", "type": "numeric"}, {"name": "v", "type": "numeric"}]
        first = self.scorer.score(rows, columns)
        self.assertEqual(rows, [{"id": 1, "v": None}, {"id": 1, "v": 2}])
        self.assertEqual(first, self.scorer.score(rows, columns))

    def test_thresholds_are_configurable(self):
        rows = [{"v": i} for i in range(19)] + [{"v": None}]
        columns = [{"name": "v", "type": "numeric"}]
        self.assertEqual(self.scorer.score(rows, columns)["issues"][0]["severity"], "low")

        strict = DataQualityScorer(completeness_high=0.01)
        self.assertEqual(strict.score(rows, columns)["issues"][0]["severity"], "high")


class TestIdentifierNames(SimpleTestCase):
    def test_is_identifier_name(self):
        self.assertTrue(is_identifier_name("id"))
        self.assertTrue(is_identifier_name("CustomerKey"))
        self.assertTrue(is_identifier_name("order_id"))
        self.assertFalse(is_identifier_name("amount"))
