import io
import json

import pandas as pd
from bs4 import BeautifulSoup
from django.http import HttpResponse, JsonResponse

EXPORT_FORMATS = ("csv", "xlsx")


def render_preview_table(df, columns=None, max_chars=20):
    """
    HTML preview of the first rows of a dataset.

    Header cells carry the inferred column type in ``data-type`` and long
    text is shortened with the full value kept in ``title``.
    """
    types = {column["name"]: column.get("type", "text") for column in columns or []}

    html_table = df.to_html(index=False, border=0, na_rep="", classes="dataset-preview")
    soup = BeautifulSoup(html_table, "html.parser")

    for th in soup.select("thead th"):
        name = th.get_text()
        th.attrs.pop("style", None)
        th["data-type"] = types.get(name, "text")

    for tr in soup.select("tbody tr"):
        for td in tr.find_all("td"):
            value = td.get_text()
            if value == "":
                td["class"] = "is-null"
            elif len(value) > max_chars:
                td["title"] = value
                td.string = value[:max_chars] + "..."

    table = soup.find("table")
    table.attrs.pop("style", None)
    return str(soup)


def export_dataframe(df: pd.DataFrame, name: str, export_format: str) -> HttpResponse:
    """Serialise a dataset as a downloadable CSV or XLSX response."""
    if export_format not in EXPORT_FORMATS:
        raise ValueError(f"Unsupported export format: {export_format}")

    base_name = name.rsplit(".", 1)[0] if "." in name else name

    if export_format == "csv":
        response = HttpResponse(
            df.to_csv(index=False), content_type="text/csv; charset=utf-8"
        )
    else:
        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            df.to_excel(writer, index=False, sheet_name="Data")
        response = HttpResponse(
            buffer.getvalue(),
            content_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )

    response["Content-Disposition"] = f'attachment; filename="{base_name}.{export_format}"'
    return response


def parse_json_body(request):
    """Return the decoded JSON body, or the POST form data for non-JSON requests."""
    if request.content_type == "application/json":
        if not request.body:
            return {}
        return json.loads(request.body)
    return request.POST


class JsonBodyMixin:
    """Give a view ``get_payload()``: (payload, None) or (None, 400 response)."""

    def get_payload(self):
        try:
            return parse_json_body(self.request), None
        except json.JSONDecodeError:
            return None, JsonResponse({"error": "Request body is not valid JSON"}, status=400)
