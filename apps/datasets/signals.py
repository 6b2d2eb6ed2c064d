import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from apps.datasets.models import Dataset

logger = logging.getLogger(__name__)


def group_name_for(user_id):
    return f"datasets_{user_id}"


def publish_dataset_event(user_id, event_type, payload):
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    async_to_sync(channel_layer.group_send)(
        group_name_for(user_id),
        {"type": event_type, **payload},
    )
    logger.debug("Published %s to %s", event_type, group_name_for(user_id))


@receiver(post_save, sender=Dataset)
def dataset_saved(sender, instance, created, **kwargs):
    publish_dataset_event(
        instance.user_id,
        "dataset.updated",
        {
            "dataset_id": instance.pk,
            "status": instance.status,
            "created": created,
        },
    )


@receiver(post_delete, sender=Dataset)
def dataset_deleted(sender, instance, **kwargs):
    publish_dataset_event(
        instance.user_id,
        "dataset.deleted",
        {"dataset_id": instance.pk},
    )
