import json
from channels.generic.websocket import AsyncWebsocketConsumer
from channels.db import database_sync_to_async
from django.core.exceptions import ValidationError
from django.db.models import Q

from roommate_matching.models import Match


class ChatConsumer(AsyncWebsocketConsumer):
    """WebSocket consumer streaming new messages of one match"""

    async def connect(self):
        # Get match ID from URL route
        self.match_id = self.scope['url_route']['kwargs']['match_id']
        self.room_group_name = f'chat_{self.match_id}'

        self.user = self.scope.get("user")

        if self.user is None or self.user.is_anonymous:
            await self.close(code=4001)
            return

        # Check if the user's profile is part of this match
        if not await self.is_participant():
            await self.close(code=4003)
            return

        await self.channel_layer.group_add(
            self.room_group_name,
            self.channel_name
        )

        await self.accept()

    async def disconnect(self, close_code):
        if hasattr(self, 'room_group_name'):
            await self.channel_layer.group_discard(
                self.room_group_name,
                self.channel_name
            )

    # Handler for messages sent to the group
    async def chat_message(self, event):
        await self.send(text_data=json.dumps({
            'type': 'message',
            'message': event['message']
        }))

    @database_sync_to_async
    def is_participant(self):
        try:
            return Match.objects.filter(id=self.match_id).filter(
                Q(profile_one__user=self.user) | Q(profile_two__user=self.user)
            ).exists()
        except ValidationError:
            return False
