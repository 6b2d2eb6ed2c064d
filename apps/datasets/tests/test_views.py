import io
import json
from unittest import mock

import pandas as pd
from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from django.urls import reverse

from apps.datasets.models import Dashboard, DashboardTile, Dataset, StatusChoices
from apps.visualization.ml.insights import InsightError
from apps.visualization.services.type_inference import ColumnTypeInferrer

User = get_user_model()

REGIONS = ["North", "South", "East"]


def sales_rows(n=12):
    return [{"region": REGIONS[i % 3], "sales": 100 + i * 7} for i in range(n)]


def sales_csv(n=12):
    lines = ["region,sales"] + [f"{r['region']},{r['sales']}" for r in sales_rows(n)]
    return ("\n".join(lines) + "\n").encode()


class DatasetTestMixin:
    def setUp(self):
        self.user = User.objects.create_user(username="alice", password="secret")
        self.other = User.objects.create_user(username="bob", password="secret")
        self.client.force_login(self.user)

        rows = sales_rows()
        self.dataset = Dataset.objects.create(
            user=self.user,
            name="Sales",
            data=rows,
            columns=ColumnTypeInferrer().infer_columns(rows),
        )

    def post_json(self, url, payload):
        return self.client.post(url, json.dumps(payload), content_type="application/json")


@mock.patch("apps.datasets.views.analyze_dataset_task")
class TestDatasetUpload(DatasetTestMixin, TestCase):
    url = reverse("datasets:upload")

    def test_upload_csv(self, task):
        upload = SimpleUploadedFile("sales.csv", sales_csv(), content_type="text/csv")
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(self.url, {"file": upload})

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["name"], "sales.csv")
        self.assertEqual(body["row_count"], 12)
        self.assertEqual(body["worksheets"], [])
        self.assertEqual([c["type"] for c in body["columns"]], ["categorical", "numeric"])
        task.delay.assert_called_once_with(body["id"])

    def test_upload_excel_sheet(self, task):
        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            pd.DataFrame({"a": [1]}).to_excel(writer, index=False, sheet_name="Intro")
            pd.DataFrame(sales_rows()).to_excel(writer, index=False, sheet_name="Sales")
        upload = SimpleUploadedFile("book.xlsx", buffer.getvalue())

        response = self.client.post(
            self.url, {"file": upload, "name": "Q1", "worksheet_name": "Sales"}
        )

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["name"], "Q1")
        self.assertEqual(body["worksheet_name"], "Sales")
        self.assertEqual(body["worksheets"], ["Intro", "Sales"])
        self.assertEqual(body["row_count"], 12)

    def test_missing_worksheet(self, task):
        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            pd.DataFrame({"a": [1]}).to_excel(writer, index=False, sheet_name="Only")
        upload = SimpleUploadedFile("book.xlsx", buffer.getvalue())

        response = self.client.post(self.url, {"file": upload, "worksheet_name": "Other"})

        self.assertEqual(response.status_code, 400)
        self.assertIn("Worksheet not found", response.json()["error"])
        task.delay.assert_not_called()

    def test_rejects_unsupported_extension(self, task):
        upload = SimpleUploadedFile("report.pdf", b"%PDF-1.4")
        response = self.client.post(self.url, {"file": upload})
        self.assertEqual(response.status_code, 400)
        self.assertIn("file", response.json()["errors"])

    def test_rejects_legacy_excel(self, task):
        upload = SimpleUploadedFile("legacy.xls", b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1")
        response = self.client.post(self.url, {"file": upload})
        self.assertEqual(response.status_code, 400)
        self.assertIn("file", response.json()["errors"])
        task.delay.assert_not_called()

    def test_requires_login(self, task):
        self.client.logout()
        upload = SimpleUploadedFile("sales.csv", sales_csv(), content_type="text/csv")
        response = self.client.post(self.url, {"file": upload})
        self.assertEqual(response.status_code, 302)


@mock.patch("apps.datasets.views.analyze_dataset_task")
class TestDatasetCrud(DatasetTestMixin, TestCase):
    def test_list_only_own_datasets(self, task):
        Dataset.objects.create(user=self.other, name="Hidden", data=[], columns=[])
        response = self.client.get(reverse("datasets:list"))
        self.assertEqual([d["name"] for d in response.json()["datasets"]], ["Sales"])

    def test_save_rows_infers_columns(self, task):
        with self.captureOnCommitCallbacks(execute=True):
            response = self.post_json(
                reverse("datasets:list"), {"name": "Manual", "data": sales_rows(6)}
            )

        self.assertEqual(response.status_code, 201)
        dataset = Dataset.objects.get(pk=response.json()["id"])
        self.assertEqual(dataset.headers, ["region", "sales"])
        task.delay.assert_called_once_with(dataset.pk)

    def test_save_rejects_non_row_data(self, task):
        response = self.post_json(reverse("datasets:list"), {"name": "Bad", "data": [1, 2]})
        self.assertEqual(response.status_code, 400)
        self.assertIn("data", response.json()["errors"])

    def test_invalid_json_body(self, task):
        response = self.client.post(
            reverse("datasets:list"), "{not json", content_type="application/json"
        )
        self.assertEqual(response.status_code, 400)

    def test_detail_includes_rows(self, task):
        response = self.client.get(reverse("datasets:detail", args=[self.dataset.pk]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()["data"]), 12)

    def test_other_users_dataset_is_not_found(self, task):
        hidden = Dataset.objects.create(user=self.other, name="Hidden", data=[], columns=[])
        for name in ("detail", "quality", "geo", "recommendations", "preview", "export"):
            response = self.client.get(reverse(f"datasets:{name}", args=[hidden.pk]))
            self.assertEqual(response.status_code, 404, name)

    def test_delete(self, task):
        response = self.client.delete(reverse("datasets:detail", args=[self.dataset.pk]))
        self.assertEqual(response.status_code, 204)
        self.assertFalse(Dataset.objects.filter(pk=self.dataset.pk).exists())

    def test_column_override_resets_quality(self, task):
        self.dataset.quality_report = {"scores": {"overall": 90}}
        self.dataset.status = StatusChoices.COMPLETED
        self.dataset.save()

        with self.captureOnCommitCallbacks(execute=True):
            response = self.post_json(
                reverse("datasets:columns", args=[self.dataset.pk]),
                {"column": "sales", "type": "categorical"},
            )

        self.assertEqual(response.status_code, 200)
        self.dataset.refresh_from_db()
        self.assertEqual(self.dataset.columns[1]["type"], "categorical")
        self.assertTrue(self.dataset.columns[1]["overridden"])
        self.assertIsNone(self.dataset.quality_report)
        self.assertEqual(self.dataset.status, StatusChoices.PENDING)
        task.delay.assert_called_once_with(self.dataset.pk)

    def test_column_override_unknown_column(self, task):
        response = self.post_json(
            reverse("datasets:columns", args=[self.dataset.pk]),
            {"column": "profit", "type": "numeric"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("profit", response.json()["error"])


class TestDatasetAnalysis(DatasetTestMixin, TestCase):
    def test_quality_is_computed_once(self):
        url = reverse("datasets:quality", args=[self.dataset.pk])
        response = self.client.get(url)

        self.assertEqual(response.status_code, 200)
        self.assertIn("overall", response.json()["scores"])
        self.dataset.refresh_from_db()
        self.assertEqual(self.dataset.status, StatusChoices.COMPLETED)

        self.dataset.quality_report = {"scores": {"overall": 1}}
        self.dataset.save()
        self.assertEqual(self.client.get(url).json(), {"scores": {"overall": 1}})

    def test_geo_detects_address_column(self):
        response = self.client.get(reverse("datasets:geo", args=[self.dataset.pk]))
        body = response.json()
        self.assertTrue(body["has_geo_data"])
        self.assertEqual(body["address_column"], "region")
        self.assertIsNone(body["latitude_column"])

    def test_geo_without_location_columns(self):
        rows = [{"product": p, "units": i} for i, p in enumerate(["a", "b", "a", "b"])]
        dataset = Dataset.objects.create(
            user=self.user,
            name="Units",
            data=rows,
            columns=ColumnTypeInferrer().infer_columns(rows),
        )
        response = self.client.get(reverse("datasets:geo", args=[dataset.pk]))
        self.assertFalse(response.json()["has_geo_data"])

    def test_recommendations(self):
        url = reverse("datasets:recommendations", args=[self.dataset.pk])
        response = self.client.get(url)
        types = [r["type"] for r in response.json()["recommendations"]]
        self.assertEqual(types, ["pie", "bar", "treemap"])

        response = self.client.get(url, {"top_k": 1})
        self.assertEqual(len(response.json()["recommendations"]), 1)

        response = self.client.get(url, {"top_k": "many"})
        self.assertEqual(response.status_code, 400)

    def test_preview(self):
        response = self.client.get(reverse("datasets:preview", args=[self.dataset.pk]))
        self.assertEqual(response.status_code, 200)
        content = response.content.decode()
        self.assertIn("<table", content)
        self.assertEqual(content.count("<tr"), 11)
        self.assertIn('data-type="categorical"', content)

    def test_export_csv(self):
        response = self.client.get(reverse("datasets:export", args=[self.dataset.pk]))
        self.assertEqual(response["Content-Disposition"], 'attachment; filename="Sales.csv"')
        self.assertTrue(response.content.decode().startswith("region,sales"))

    def test_export_xlsx(self):
        response = self.client.get(
            reverse("datasets:export", args=[self.dataset.pk]), {"format": "xlsx"}
        )
        self.assertEqual(response.status_code, 200)
        df = pd.read_excel(io.BytesIO(response.content))
        self.assertEqual(len(df), 12)

    def test_export_unknown_format(self):
        response = self.client.get(
            reverse("datasets:export", args=[self.dataset.pk]), {"format": "parquet"}
        )
        self.assertEqual(response.status_code, 400)


class TestChartEndpoints(DatasetTestMixin, TestCase):
    def test_validate(self):
        response = self.post_json(
            reverse("datasets:validate", args=[self.dataset.pk]),
            {"chart_type": "bar", "x_column": "region", "y_column": "region"},
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertFalse(body["is_valid"])
        self.assertIn("Try using: sales for Y-axis", body["suggestions"])

    def test_render(self):
        response = self.post_json(
            reverse("datasets:render", args=[self.dataset.pk]),
            {
                "chart_type": "bar",
                "x_column": "region",
                "y_column": "sales",
                "aggregation": "sum",
                "palette": "vivid",
            },
        )
        self.assertEqual(response.status_code, 200)
        chart = response.json()["chart"]
        self.assertEqual(chart["chart_type"], "bar")
        self.assertEqual(chart["chart_config"]["data"][0]["x"], ["East", "North", "South"])

    def test_render_invalid_selection(self):
        response = self.post_json(
            reverse("datasets:render", args=[self.dataset.pk]),
            {"chart_type": "scatter", "x_column": "region", "y_column": "sales"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertIsNone(response.json()["chart"])

    def test_render_unknown_chart_type(self):
        response = self.post_json(
            reverse("datasets:render", args=[self.dataset.pk]), {"chart_type": "donut"}
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("chart_type", response.json()["errors"])


class TestInsightEndpoint(DatasetTestMixin, TestCase):
    def url(self):
        return reverse("datasets:insight", args=[self.dataset.pk])

    @mock.patch("apps.datasets.views.InsightClient")
    def test_insight(self, client_class):
        client_class.return_value.summarize.return_value = {
            "summary": "Sales by region",
            "highlights": [],
            "suggested_charts": [],
        }
        response = self.client.post(self.url())

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["summary"], "Sales by region")
        client_class.return_value.summarize.assert_called_once_with(
            "Sales", mock.ANY, 12, None
        )

    @mock.patch("apps.datasets.views.InsightClient")
    def test_insight_failure(self, client_class):
        client_class.return_value.summarize.side_effect = InsightError("timed out")
        response = self.client.post(self.url())
        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.json()["error"], "timed out")

    def test_insight_not_configured(self):
        self.client.delete(reverse("insight-config"))
        response = self.client.post(self.url())
        self.assertEqual(response.status_code, 400)


class TestDashboards(DatasetTestMixin, TestCase):
    def test_create_and_list(self):
        response = self.post_json(reverse("dashboards:list"), {"name": "Overview"})
        self.assertEqual(response.status_code, 201)

        response = self.client.get(reverse("dashboards:list"))
        self.assertEqual([d["name"] for d in response.json()["dashboards"]], ["Overview"])

    def test_add_and_remove_tile(self):
        dashboard = Dashboard.objects.create(user=self.user, name="Overview")
        url = reverse("dashboards:tiles", args=[dashboard.pk])

        response = self.post_json(
            url,
            {
                "dataset": self.dataset.pk,
                "chart_config": {"chart_type": "pie", "x_column": "region"},
            },
        )
        self.assertEqual(response.status_code, 201)
        tile = response.json()
        self.assertEqual(tile["position"], 0)
        self.assertEqual(tile["chart_config"]["chart_type"], "pie")
        self.assertIsNone(tile["chart_config"]["y_column"])

        detail = self.client.get(reverse("dashboards:detail", args=[dashboard.pk])).json()
        self.assertEqual(len(detail["tiles"]), 1)

        response = self.client.delete(
            reverse("dashboards:tile-delete", args=[dashboard.pk, tile["id"]])
        )
        self.assertEqual(response.status_code, 204)
        self.assertFalse(DashboardTile.objects.exists())

    def test_tile_rejects_bad_chart_config(self):
        dashboard = Dashboard.objects.create(user=self.user, name="Overview")
        response = self.post_json(
            reverse("dashboards:tiles", args=[dashboard.pk]),
            {"dataset": self.dataset.pk, "chart_config": {"chart_type": "donut"}},
        )
        self.assertEqual(response.status_code, 400)

    def test_tile_needs_own_dataset(self):
        dashboard = Dashboard.objects.create(user=self.user, name="Overview")
        hidden = Dataset.objects.create(user=self.other, name="Hidden", data=[], columns=[])
        response = self.post_json(
            reverse("dashboards:tiles", args=[dashboard.pk]),
            {"dataset": hidden.pk, "chart_config": {"chart_type": "pie", "x_column": "region"}},
        )
        self.assertEqual(response.status_code, 404)

    def test_other_users_dashboard(self):
        dashboard = Dashboard.objects.create(user=self.other, name="Private")
        response = self.client.get(reverse("dashboards:detail", args=[dashboard.pk]))
        self.assertEqual(response.status_code, 404)

    def test_deleting_dataset_removes_tiles(self):
        dashboard = Dashboard.objects.create(user=self.user, name="Overview")
        DashboardTile.objects.create(
            dashboard=dashboard, dataset=self.dataset, chart_config={"chart_type": "pie"}
        )
        self.dataset.delete()
        self.assertFalse(dashboard.tiles.exists())
