from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.test import SimpleTestCase

from apps.datasets.consumers import DatasetEventsConsumer
from apps.datasets.signals import group_name_for


def application_for(user):
    consumer = DatasetEventsConsumer.as_asgi()

    async def app(scope, receive, send):
        return await consumer(dict(scope, user=user), receive, send)

    return app


class TestDatasetEventsConsumer(SimpleTestCase):
    async def test_rejects_anonymous_users(self):
        communicator = WebsocketCommunicator(application_for(AnonymousUser()), "/ws/datasets/")
        connected, _ = await communicator.connect()
        self.assertFalse(connected)

    async def test_forwards_dataset_events(self):
        user = get_user_model()(pk=7, username="alice")
        communicator = WebsocketCommunicator(application_for(user), "/ws/datasets/")
        connected, _ = await communicator.connect()
        self.assertTrue(connected)

        layer = get_channel_layer()
        await layer.group_send(
            group_name_for(7),
            {"type": "dataset.updated", "dataset_id": 3, "status": "completed", "created": False},
        )
        self.assertEqual(
            await communicator.receive_json_from(),
            {"type": "dataset_updated", "dataset_id": 3, "status": "completed", "created": False},
        )

        await layer.group_send(group_name_for(7), {"type": "dataset.deleted", "dataset_id": 3})
        self.assertEqual(
            await communicator.receive_json_from(),
            {"type": "dataset_deleted", "dataset_id": 3},
        )

        await communicator.disconnect()
