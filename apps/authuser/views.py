from django.contrib.auth.mixins import LoginRequiredMixin
from django.http import HttpResponse, JsonResponse
from django.views.generic import View

from apps.authuser.forms import InsightConfigForm
from apps.datasets.utils import JsonBodyMixin
from apps.visualization.ml.insights import InsightConfig


class InsightConfigView(LoginRequiredMixin, JsonBodyMixin, View):
    def get(self, request):
        config = InsightConfig.from_session(request.session)
        if config is None:
            return JsonResponse({"configured": False})
        # The key never leaves the server
        return JsonResponse(
            {
                "configured": True,
                "endpoint": config.endpoint,
                "model": config.model,
                "timeout": config.timeout,
                "has_api_key": bool(config.api_key),
            }
        )

    def post(self, request):
        payload, error = self.get_payload()
        if error:
            return error

        form = InsightConfigForm(payload)
        if not form.is_valid():
            return JsonResponse({"errors": form.errors}, status=400)

        config = InsightConfig(**form.cleaned_data)
        config.store(request.session)
        return JsonResponse({"configured": True, "endpoint": config.endpoint, "model": config.model})

    def delete(self, request):
        InsightConfig.clear(request.session)
        return HttpResponse(status=204)
