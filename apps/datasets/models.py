from django.contrib.auth import get_user_model
from django.db import models

from apps.visualization.services.loader import DatasetLoader

User = get_user_model()


class TimestampedModel(models.Model):
    uploaded_at = models.DateTimeField(auto_now_add=True)
    edited_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class StatusChoices(models.TextChoices):
    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"


class Dataset(TimestampedModel):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="datasets")
    name = models.CharField(max_length=255)
    data = models.JSONField(default=list, blank=True)
    columns = models.JSONField(default=list, blank=True)
    file_name = models.CharField(max_length=255, null=True, blank=True)
    worksheet_name = models.CharField(max_length=255, null=True, blank=True)
    quality_report = models.JSONField(null=True, blank=True)
    status = models.CharField(
        choices=StatusChoices.choices,
        default=StatusChoices.PENDING,
        max_length=255,
    )

    class Meta:
        ordering = ["-uploaded_at"]
        indexes = [
            models.Index(fields=["user", "-uploaded_at"], name="dataset_user_uploaded_idx"),
        ]

    def save(self, *args, **kwargs):
        if self.file_name and not self.name:
            self.name = self.file_name
        super().save(*args, **kwargs)

    def __str__(self):
        return self.name

    @property
    def row_count(self):
        return len(self.data or [])

    @property
    def headers(self):
        return [column["name"] for column in self.columns or []]

    def get_df(self):
        return DatasetLoader.rows_to_dataframe(self.data or [], self.headers or None)

    def to_dict(self, include_data=False):
        payload = {
            "id": self.pk,
            "name": self.name,
            "file_name": self.file_name,
            "worksheet_name": self.worksheet_name,
            "columns": self.columns,
            "row_count": self.row_count,
            "status": self.status,
            "quality_report": self.quality_report,
            "uploaded_at": self.uploaded_at.isoformat() if self.uploaded_at else None,
            "edited_at": self.edited_at.isoformat() if self.edited_at else None,
        }
        if include_data:
            payload["data"] = self.data
        return payload


class Dashboard(TimestampedModel):
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="dashboards")
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-uploaded_at"]

    def __str__(self):
        return self.name

    def to_dict(self):
        return {
            "id": self.pk,
            "name": self.name,
            "description": self.description,
            "tiles": [tile.to_dict() for tile in self.tiles.all()],
            "uploaded_at": self.uploaded_at.isoformat() if self.uploaded_at else None,
            "edited_at": self.edited_at.isoformat() if self.edited_at else None,
        }


class DashboardTile(TimestampedModel):
    dashboard = models.ForeignKey(
        Dashboard, on_delete=models.CASCADE, related_name="tiles"
    )
    dataset = models.ForeignKey(
        Dataset, on_delete=models.CASCADE, related_name="tiles"
    )
    chart_config = models.JSONField(default=dict)
    position = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["position", "id"]

    def __str__(self):
        return f"{self.dashboard} - tile - {self.pk}"

    def to_dict(self):
        return {
            "id": self.pk,
            "dataset": self.dataset_id,
            "chart_config": self.chart_config,
            "position": self.position,
        }
