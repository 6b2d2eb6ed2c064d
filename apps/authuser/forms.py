from django import forms
from django.conf import settings


class InsightConfigForm(forms.Form):
    endpoint = forms.URLField(required=False)
    model = forms.CharField(max_length=255, required=False)
    api_key = forms.CharField(max_length=512, required=False)
    timeout = forms.IntegerField(min_value=1, max_value=600, required=False)

    def clean(self):
        cleaned_data = super().clean()
        defaults = settings.INSIGHT_DEFAULTS
        for key in ("endpoint", "model", "timeout"):
            if cleaned_data.get(key) in (None, ""):
                cleaned_data[key] = defaults[key]
        cleaned_data["api_key"] = cleaned_data.get("api_key") or None
        return cleaned_data
