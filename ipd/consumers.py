import json

from channels.generic.websocket import AsyncWebsocketConsumer

ALL_BEDS_GROUP = "beds_all"


def bed_group_name(room_type):
    return f"beds_{room_type}"


class BedStatusConsumer(AsyncWebsocketConsumer):
    """Pushes bed status changes to the bed management screen."""

    async def connect(self):
        if self.scope["user"].is_anonymous:
            await self.close()
            return

        room_type = self.scope["url_route"]["kwargs"].get("room_type")
        self.group_name = bed_group_name(room_type) if room_type else ALL_BEDS_GROUP
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()

    async def disconnect(self, close_code):
        if hasattr(self, "group_name"):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def bed_status(self, event):
        await self.send(text_data=json.dumps({
            "type": "bed_status",
            "bed_id": event["bed_id"],
            "bed_number": event["bed_number"],
            "room_type": event["room_type"],
            "status": event["status"],
        }))
