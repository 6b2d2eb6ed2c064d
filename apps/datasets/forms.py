from django import forms
from django.core.validators import FileExtensionValidator

from apps.visualization.services.aggregator import AGGREGATIONS, SORT_ORDERS
from apps.visualization.services.chart_requirements import CHART_TYPES
from apps.visualization.services.renderers import PALETTES
from apps.visualization.services.type_inference import COLUMN_TYPES

from .models import Dashboard


def _choices(values):
    return [(value, value) for value in values]


class DatasetUploadForm(forms.Form):
    file = forms.FileField(
        validators=[FileExtensionValidator(allowed_extensions=["csv", "txt", "xlsx"])]
    )
    name = forms.CharField(max_length=255, required=False)
    worksheet_name = forms.CharField(max_length=255, required=False)

    def __init__(self, *args, **kwargs):
        super(DatasetUploadForm, self).__init__(*args, **kwargs)
        self.fields["file"].label = "Choose File"


class DatasetSaveForm(forms.Form):
    name = forms.CharField(max_length=255)
    data = forms.JSONField()
    columns = forms.JSONField(required=False)

    def clean_data(self):
        data = self.cleaned_data["data"]
        if not isinstance(data, list) or not all(isinstance(row, dict) for row in data):
            raise forms.ValidationError("Data must be a list of row objects.")
        return data

    def clean_columns(self):
        columns = self.cleaned_data.get("columns")
        if columns in (None, ""):
            return None
        if not isinstance(columns, list) or not all(
            isinstance(column, dict) and "name" in column for column in columns
        ):
            raise forms.ValidationError("Columns must be a list of column objects.")
        return columns


class ColumnTypeOverrideForm(forms.Form):
    column = forms.CharField(max_length=255)
    type = forms.ChoiceField(choices=_choices(COLUMN_TYPES))


class ChartConfigForm(forms.Form):
    chart_type = forms.ChoiceField(choices=_choices(CHART_TYPES))
    x_column = forms.CharField(max_length=255, required=False)
    y_column = forms.CharField(max_length=255, required=False)
    series_column = forms.CharField(max_length=255, required=False)
    z_column = forms.CharField(max_length=255, required=False)
    aggregation = forms.ChoiceField(choices=_choices(AGGREGATIONS), required=False)
    palette = forms.ChoiceField(choices=_choices(PALETTES), required=False)
    sort_order = forms.ChoiceField(choices=_choices(SORT_ORDERS), required=False)
    title = forms.CharField(max_length=255, required=False)

    def clean(self):
        cleaned_data = super().clean()
        # Blank optional fields mean "not selected"
        return {key: value or None for key, value in cleaned_data.items()}


class DashboardForm(forms.ModelForm):
    class Meta:
        model = Dashboard
        fields = ["name", "description"]


class DashboardTileForm(forms.Form):
    dataset = forms.IntegerField(min_value=1)
    chart_config = forms.JSONField()
    position = forms.IntegerField(min_value=0, required=False)

    def clean_chart_config(self):
        config = self.cleaned_data["chart_config"]
        form = ChartConfigForm(config if isinstance(config, dict) else {})
        if not form.is_valid():
            raise forms.ValidationError(form.errors.as_text())
        return form.cleaned_data
