import json
from channels.generic.websocket import AsyncWebsocketConsumer
from channels.db import database_sync_to_async

from profiles.models import Profile
from .notifications import notification_group


class NotificationConsumer(AsyncWebsocketConsumer):
    """WebSocket consumer for real-time match notifications"""

    async def connect(self):
        self.user = self.scope.get("user")

        if self.user is None or self.user.is_anonymous:
            await self.close(code=4001)
            return

        profile_id = await self.get_profile_id()
        if not profile_id:
            await self.close(code=4004)
            return

        # Join the profile's personal notification group
        self.notification_group_name = notification_group(profile_id)

        await self.channel_layer.group_add(
            self.notification_group_name,
            self.channel_name
        )

        await self.accept()

    async def disconnect(self, close_code):
        if hasattr(self, 'notification_group_name'):
            await self.channel_layer.group_discard(
                self.notification_group_name,
                self.channel_name
            )

    # Handler for notification messages
    async def send_notification(self, event):
        """Send notification to WebSocket"""
        await self.send(text_data=json.dumps({
            'type': 'notification',
            'notification': event['notification']
        }))

    @database_sync_to_async
    def get_profile_id(self):
        profile_id = Profile.objects.filter(user=self.user).values_list('id', flat=True).first()
        return str(profile_id) if profile_id else None
