"""
"New match" and "candidates changed" events.

In-process listeners connect to the Django signals; connected websocket
clients receive the same events through the channel layer.
"""
from typing import Dict
import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.dispatch import Signal
from django.utils import timezone

from .records import MatchRecord

logger = logging.getLogger(__name__)

# Sent with match=MatchRecord, profile_ids=[str, str]
match_created = Signal()
# Sent with profile_id=str
candidates_changed = Signal()


def notification_group(profile_id) -> str:
    return f'notifications_{profile_id}'


class MatchNotifier:
    """Emits matching events to signal receivers and websocket groups"""

    def __init__(self, channel_layer=None):
        if channel_layer is not None:
            self.channel_layer = channel_layer
            return
        try:
            self.channel_layer = get_channel_layer()
        except Exception as e:
            # Channel layer misconfigured or backend unavailable, disable real-time pushes
            logger.warning(f"Channel layer unavailable, notifications are signal-only: {str(e)}")
            self.channel_layer = None

    def new_match(self, match: MatchRecord):
        profile_ids = [match.profile_one_id, match.profile_two_id]
        match_created.send(sender=self.__class__, match=match, profile_ids=profile_ids)

        for profile_id in profile_ids:
            self.push(profile_id, 'new_match', {
                'match_id': match.id,
                'counterpart_id': match.counterpart_of(profile_id),
                'created_at': match.created_at.isoformat(),
            })

    def candidates_changed(self, profile_id):
        profile_id = str(profile_id)
        candidates_changed.send(sender=self.__class__, profile_id=profile_id)
        self.push(profile_id, 'candidates_changed', {'profile_id': profile_id})

    def push(self, profile_id, notification_type: str, data: Dict):
        """Send a notification to the profile's websocket group"""
        if not self.channel_layer:
            return

        notification = {
            'type': notification_type,
            'data': data,
            'timestamp': timezone.now().isoformat()
        }

        try:
            async_to_sync(self.channel_layer.group_send)(
                notification_group(profile_id),
                {
                    'type': 'send_notification',
                    'notification': notification
                }
            )
        except Exception as e:
            # Delivery is best effort; the match itself is already stored
            logger.warning(f"Could not push {notification_type} to profile {profile_id}: {str(e)}")
