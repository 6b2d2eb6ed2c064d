from django.urls import include, path

from . import views

dataset_urlpatterns = [
    path("", views.DatasetListView.as_view(), name="list"),
    path("upload/", views.DatasetUploadView.as_view(), name="upload"),
    path("<int:pk>/", views.DatasetDetailView.as_view(), name="detail"),
    path("<int:pk>/columns/", views.DatasetColumnsView.as_view(), name="columns"),
    path("<int:pk>/quality/", views.DatasetQualityView.as_view(), name="quality"),
    path("<int:pk>/geo/", views.DatasetGeoView.as_view(), name="geo"),
    path(
        "<int:pk>/recommendations/",
        views.DatasetRecommendationsView.as_view(),
        name="recommendations",
    ),
    path("<int:pk>/preview/", views.DatasetPreviewView.as_view(), name="preview"),
    path("<int:pk>/export/", views.DatasetExportView.as_view(), name="export"),
    path("<int:pk>/validate/", views.DatasetValidateView.as_view(), name="validate"),
    path("<int:pk>/render/", views.DatasetRenderView.as_view(), name="render"),
    path("<int:pk>/insight/", views.DatasetInsightView.as_view(), name="insight"),
]

dashboard_urlpatterns = [
    path("", views.DashboardListView.as_view(), name="list"),
    path("<int:pk>/", views.DashboardDetailView.as_view(), name="detail"),
    path("<int:pk>/tiles/", views.DashboardTileCreateView.as_view(), name="tiles"),
    path(
        "<int:pk>/tiles/<int:tile_id>/",
        views.DashboardTileDeleteView.as_view(),
        name="tile-delete",
    ),
]

urlpatterns = [
    path(
        "api/datasets/",
        include((dataset_urlpatterns, "datasets"), namespace="datasets"),
    ),
    path(
        "api/dashboards/",
        include((dashboard_urlpatterns, "dashboards"), namespace="dashboards"),
    ),
]
