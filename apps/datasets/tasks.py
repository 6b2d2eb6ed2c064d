import logging

from celery import shared_task

from apps.datasets.models import Dataset, StatusChoices
from apps.visualization.services.visualizer_service import VisualizationService

logger = logging.getLogger(__name__)


@shared_task
def analyze_dataset_task(dataset_id):
    dataset = Dataset.objects.get(id=dataset_id)
    service = VisualizationService.from_settings()

    try:
        dataset.status = StatusChoices.PENDING
        dataset.save(update_fields=["status"])

        dataset.quality_report = service.quality_report(dataset.data, dataset.columns)
        dataset.status = StatusChoices.COMPLETED
        dataset.save(update_fields=["quality_report", "status"])
        logger.info(
            "Dataset %s analysed, overall quality %s",
            dataset_id,
            dataset.quality_report["scores"]["overall"],
        )

    except Exception:
        logger.exception("Analysis failed for dataset %s", dataset_id)
        dataset.status = StatusChoices.FAILED
        dataset.save(update_fields=["status"])
        raise
