from django.contrib import admin
from django.contrib.admin import TabularInline, register

from .models import Dashboard, DashboardTile, Dataset


class DashboardTileInline(TabularInline):
    model = DashboardTile
    extra = 0


@register(Dataset)
class DatasetAdmin(admin.ModelAdmin):
    list_display = ["name", "user", "status", "uploaded_at"]
    list_filter = ["status", "user"]
    search_fields = ["name", "file_name"]


@register(Dashboard)
class DashboardAdmin(admin.ModelAdmin):
    list_display = ["name", "user", "uploaded_at"]
    inlines = [
        DashboardTileInline,
    ]
