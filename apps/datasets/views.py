import logging
from functools import cached_property

from django.conf import settings
from django.contrib.auth.mixins import LoginRequiredMixin
from django.db import transaction
from django.http import HttpResponse, JsonResponse
from django.shortcuts import get_object_or_404
from django.views.generic import View

from apps.datasets.forms import (
    ChartConfigForm,
    ColumnTypeOverrideForm,
    DashboardForm,
    DashboardTileForm,
    DatasetSaveForm,
    DatasetUploadForm,
)
from apps.datasets.models import Dashboard, DashboardTile, Dataset, StatusChoices
from apps.datasets.tasks import analyze_dataset_task
from apps.datasets.utils import (
    EXPORT_FORMATS,
    JsonBodyMixin,
    export_dataframe,
    render_preview_table,
)
from apps.visualization.ml.insights import InsightClient, InsightConfig, InsightError
from apps.visualization.services.loader import DatasetLoader, DatasetLoadError
from apps.visualization.services.type_inference import override_column_type
from apps.visualization.services.visualizer_service import VisualizationService

logger = logging.getLogger(__name__)


def queue_analysis(dataset):
    pk = dataset.pk
    transaction.on_commit(lambda: analyze_dataset_task.delay(pk))


class DatasetMixin(LoginRequiredMixin, JsonBodyMixin):
    @cached_property
    def service(self):
        return VisualizationService.from_settings()

    def get_dataset(self, pk):
        return get_object_or_404(Dataset, pk=pk, user=self.request.user)


class DatasetListView(DatasetMixin, View):
    def get(self, request):
        datasets = request.user.datasets.order_by("-uploaded_at")
        return JsonResponse({"datasets": [dataset.to_dict() for dataset in datasets]})

    def post(self, request):
        payload, error = self.get_payload()
        if error:
            return error

        form = DatasetSaveForm(payload)
        if not form.is_valid():
            return JsonResponse({"errors": form.errors}, status=400)

        data = form.cleaned_data["data"]
        columns = form.cleaned_data["columns"] or self.service.infer_columns(data)

        dataset = Dataset.objects.create(
            user=request.user,
            name=form.cleaned_data["name"],
            data=data,
            columns=columns,
        )
        queue_analysis(dataset)
        return JsonResponse(dataset.to_dict(), status=201)


class DatasetUploadView(DatasetMixin, View):
    def post(self, request):
        form = DatasetUploadForm(request.POST, request.FILES)
        if not form.is_valid():
            return JsonResponse({"errors": form.errors}, status=400)

        upload = form.cleaned_data["file"]
        worksheet_name = form.cleaned_data["worksheet_name"] or None

        try:
            worksheets = DatasetLoader.list_worksheets(upload, upload.name)
            rows, columns = self.service.load_upload(upload, upload.name, worksheet_name)
        except DatasetLoadError as e:
            return JsonResponse({"error": str(e)}, status=400)

        if worksheets and worksheet_name is None:
            worksheet_name = worksheets[0]

        dataset = Dataset.objects.create(
            user=request.user,
            name=form.cleaned_data["name"] or upload.name,
            file_name=upload.name,
            worksheet_name=worksheet_name,
            data=rows,
            columns=columns,
        )
        queue_analysis(dataset)

        response = dataset.to_dict()
        response["worksheets"] = worksheets
        return JsonResponse(response, status=201)


class DatasetDetailView(DatasetMixin, View):
    def get(self, request, pk):
        dataset = self.get_dataset(pk)
        return JsonResponse(dataset.to_dict(include_data=True))

    def delete(self, request, pk):
        dataset = self.get_dataset(pk)
        dataset.delete()
        return HttpResponse(status=204)


class DatasetColumnsView(DatasetMixin, View):
    def post(self, request, pk):
        dataset = self.get_dataset(pk)
        payload, error = self.get_payload()
        if error:
            return error

        form = ColumnTypeOverrideForm(payload)
        if not form.is_valid():
            return JsonResponse({"errors": form.errors}, status=400)

        try:
            dataset.columns = override_column_type(
                dataset.columns, form.cleaned_data["column"], form.cleaned_data["type"]
            )
        except ValueError as e:
            return JsonResponse({"error": str(e)}, status=400)

        # The quality report depends on column types
        dataset.quality_report = None
        dataset.status = StatusChoices.PENDING
        dataset.save(update_fields=["columns", "quality_report", "status", "edited_at"])
        queue_analysis(dataset)

        return JsonResponse({"columns": dataset.columns})


class DatasetQualityView(DatasetMixin, View):
    def get(self, request, pk):
        dataset = self.get_dataset(pk)
        if dataset.quality_report is None:
            dataset.quality_report = self.service.quality_report(dataset.data, dataset.columns)
            dataset.status = StatusChoices.COMPLETED
            dataset.save(update_fields=["quality_report", "status", "edited_at"])
        return JsonResponse(dataset.quality_report)


class DatasetGeoView(DatasetMixin, View):
    def get(self, request, pk):
        dataset = self.get_dataset(pk)
        return JsonResponse(self.service.detect_geo(dataset.data, dataset.columns))


class DatasetRecommendationsView(DatasetMixin, View):
    def get(self, request, pk):
        dataset = self.get_dataset(pk)
        try:
            top_k = max(0, int(request.GET.get("top_k", 3)))
        except ValueError:
            return JsonResponse({"error": "top_k must be an integer"}, status=400)

        recommendations = self.service.recommend(dataset.data, dataset.columns, top_k=top_k)
        return JsonResponse({"recommendations": recommendations})


class DatasetPreviewView(DatasetMixin, View):
    def get(self, request, pk):
        dataset = self.get_dataset(pk)
        limit = settings.CHARTWISE.get("PREVIEW_ROWS", 10)
        return HttpResponse(render_preview_table(dataset.get_df().head(limit), dataset.columns))


class DatasetExportView(DatasetMixin, View):
    def get(self, request, pk):
        dataset = self.get_dataset(pk)
        export_format = request.GET.get("format", "csv")
        if export_format not in EXPORT_FORMATS:
            return JsonResponse(
                {"error": f"Unsupported export format: {export_format}"}, status=400
            )
        return export_dataframe(dataset.get_df(), dataset.name, export_format)


class ChartConfigMixin(DatasetMixin):
    def get_chart_config(self):
        payload, error = self.get_payload()
        if error:
            return None, error
        form = ChartConfigForm(payload)
        if not form.is_valid():
            return None, JsonResponse({"errors": form.errors}, status=400)
        return form.cleaned_data, None


class DatasetValidateView(ChartConfigMixin, View):
    def post(self, request, pk):
        dataset = self.get_dataset(pk)
        config, error = self.get_chart_config()
        if error:
            return error
        return JsonResponse(
            self.service.validate_config(config, dataset.data, dataset.columns)
        )


class DatasetRenderView(ChartConfigMixin, View):
    def post(self, request, pk):
        dataset = self.get_dataset(pk)
        config, error = self.get_chart_config()
        if error:
            return error

        result = self.service.render(config, dataset.data, dataset.columns)
        status = 200 if result["validation"]["is_valid"] else 400
        return JsonResponse(result, status=status)


class DatasetInsightView(DatasetMixin, View):
    def post(self, request, pk):
        dataset = self.get_dataset(pk)
        config = InsightConfig.from_session(request.session)
        if config is None:
            return JsonResponse(
                {"error": "Insight is not configured for this session"}, status=400
            )

        client = InsightClient(config)
        try:
            insight = client.summarize(
                dataset.name, dataset.columns, dataset.row_count, dataset.quality_report
            )
        except InsightError as e:
            logger.exception("Insight failed for dataset %s", dataset.pk)
            return JsonResponse({"error": str(e)}, status=502)

        return JsonResponse(insight)


class DashboardListView(LoginRequiredMixin, JsonBodyMixin, View):
    def get(self, request):
        dashboards = request.user.dashboards.prefetch_related("tiles")
        return JsonResponse({"dashboards": [d.to_dict() for d in dashboards]})

    def post(self, request):
        payload, error = self.get_payload()
        if error:
            return error

        form = DashboardForm(payload)
        if not form.is_valid():
            return JsonResponse({"errors": form.errors}, status=400)

        dashboard = form.save(commit=False)
        dashboard.user = request.user
        dashboard.save()
        return JsonResponse(dashboard.to_dict(), status=201)


class DashboardDetailView(LoginRequiredMixin, View):
    def get(self, request, pk):
        dashboard = get_object_or_404(Dashboard, pk=pk, user=request.user)
        return JsonResponse(dashboard.to_dict())

    def delete(self, request, pk):
        dashboard = get_object_or_404(Dashboard, pk=pk, user=request.user)
        dashboard.delete()
        return HttpResponse(status=204)


class DashboardTileCreateView(LoginRequiredMixin, JsonBodyMixin, View):
    def post(self, request, pk):
        dashboard = get_object_or_404(Dashboard, pk=pk, user=request.user)
        payload, error = self.get_payload()
        if error:
            return error

        form = DashboardTileForm(payload)
        if not form.is_valid():
            return JsonResponse({"errors": form.errors}, status=400)

        dataset = get_object_or_404(
            Dataset, pk=form.cleaned_data["dataset"], user=request.user
        )
        position = form.cleaned_data["position"]
        if position is None:
            position = dashboard.tiles.count()

        tile = DashboardTile.objects.create(
            dashboard=dashboard,
            dataset=dataset,
            chart_config=form.cleaned_data["chart_config"],
            position=position,
        )
        return JsonResponse(tile.to_dict(), status=201)


class DashboardTileDeleteView(LoginRequiredMixin, View):
    def delete(self, request, pk, tile_id):
        tile = get_object_or_404(
            DashboardTile, pk=tile_id, dashboard__pk=pk, dashboard__user=request.user
        )
        tile.delete()
        return HttpResponse(status=204)
