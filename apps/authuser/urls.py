from django.urls import path

from . import views

urlpatterns = [
    path(
        "api/session/insight-config/",
        views.InsightConfigView.as_view(),
        name="insight-config",
    ),
]
