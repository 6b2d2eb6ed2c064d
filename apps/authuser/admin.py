from django.contrib import admin
from django.contrib.auth.admin import UserAdmin
from django.db.models import Count

from apps.authuser.models import AuthUser
from apps.datasets.models import Dataset


class DatasetInline(admin.TabularInline):
    model = Dataset
    fields = ("name", "file_name", "status", "uploaded_at")
    readonly_fields = fields
    extra = 0
    show_change_link = True


class AuthUserAdmin(UserAdmin):
    model = AuthUser
    list_display = ("username", "email", "dataset_count", "is_staff")
    list_filter = ("is_staff", "is_active")
    search_fields = ("username", "email")
    ordering = ("username",)
    inlines = [DatasetInline]

    def get_queryset(self, request):
        return super().get_queryset(request).annotate(_dataset_count=Count("datasets"))

    @admin.display(description="Datasets", ordering="_dataset_count")
    def dataset_count(self, obj):
        return obj._dataset_count


admin.site.register(AuthUser, AuthUserAdmin)
