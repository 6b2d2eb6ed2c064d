import json

from channels.generic.websocket import AsyncWebsocketConsumer

from .signals import group_name_for


class DatasetEventsConsumer(AsyncWebsocketConsumer):
    """Push dataset changes to every open tab of the signed-in user."""

    async def connect(self):
        user = self.scope.get("user")
        if user is None or not user.is_authenticated:
            await self.close()
            return

        self.group_name = group_name_for(user.pk)

        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()

    async def disconnect(self, close_code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def dataset_updated(self, event):
        await self.send(
            text_data=json.dumps(
                {
                    "type": "dataset_updated",
                    "dataset_id": event["dataset_id"],
                    "status": event.get("status"),
                    "created": event.get("created", False),
                }
            )
        )

    async def dataset_deleted(self, event):
        await self.send(
            text_data=json.dumps(
                {
                    "type": "dataset_deleted",
                    "dataset_id": event["dataset_id"],
                }
            )
        )
