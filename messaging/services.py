from typing import Dict, List, Optional
import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, Q

from roommate_matching.exceptions import InvalidArgument
from roommate_matching.models import Match
from .models import Message

logger = logging.getLogger(__name__)


class MessagingService:
    """Append-and-subscribe message log attached to matches"""

    def __init__(self):
        try:
            self.channel_layer = get_channel_layer()
        except Exception as e:
            # Channel layer not available, disable real-time features
            logger.warning(f"Channel layer unavailable, chat pushes disabled: {str(e)}")
            self.channel_layer = None

    def get_match(self, match_id) -> Match:
        try:
            return Match.objects.select_related('profile_one', 'profile_two').get(id=match_id)
        except (Match.DoesNotExist, ValidationError):
            raise InvalidArgument(f"Match {match_id} does not exist")

    def send_message(self, match_id, sender_id, content: str) -> Message:
        """Append a message to a match's conversation"""
        content = (content or '').strip()
        if not content:
            raise InvalidArgument("Message content is empty")

        match = self.get_match(match_id)

        # Only the two matched profiles may write
        if str(sender_id) not in (str(match.profile_one_id), str(match.profile_two_id)):
            raise InvalidArgument(f"Profile {sender_id} is not part of match {match_id}")

        with transaction.atomic():
            message = Message.objects.create(
                match=match,
                sender_id=sender_id,
                content=content
            )
            match.touch()

        self.send_realtime_message(message)
        return message

    def send_realtime_message(self, message: Message):
        """Send message via WebSocket"""
        if not self.channel_layer:
            return

        room_group_name = f'chat_{message.match_id}'

        message_data = {
            'id': str(message.id),
            'match_id': str(message.match_id),
            'sender_id': str(message.sender_id) if message.sender_id else None,
            'content': message.content,
            'created_at': message.created_at.isoformat(),
            'is_read': message.is_read,
        }

        try:
            async_to_sync(self.channel_layer.group_send)(
                room_group_name,
                {
                    'type': 'chat_message',
                    'message': message_data
                }
            )
        except Exception as e:
            # The message is stored; subscribers pick it up on their next fetch
            logger.warning(f"Could not push message {message.id}: {str(e)}")

    def get_messages(self, match_id, limit: Optional[int] = None) -> List[Message]:
        """Get messages for a match, oldest first"""
        messages = Message.objects.filter(match_id=match_id).select_related('sender').order_by('created_at')
        if limit is not None:
            messages = messages[:limit]
        return list(messages)

    def mark_messages_as_read(self, match_id, reader_id) -> int:
        """Mark every message the counterpart sent as read; returns how many changed"""
        updated = Message.objects.filter(
            match_id=match_id,
            is_read=False
        ).exclude(
            sender_id=reader_id
        ).update(is_read=True)

        if updated:
            logger.debug(f"Profile {reader_id} read {updated} messages in match {match_id}")
        return updated

    def get_unread_counts(self, profile_id) -> Dict[str, int]:
        """Unread message count per match for a profile"""
        match_ids = list(
            Match.objects.filter(
                Q(profile_one_id=profile_id) | Q(profile_two_id=profile_id)
            ).values_list('id', flat=True)
        )

        counts = {str(match_id): 0 for match_id in match_ids}

        rows = Message.objects.filter(
            match_id__in=match_ids,
            is_read=False
        ).exclude(
            sender_id=profile_id
        ).values('match_id').annotate(unread=Count('id'))

        for row in rows:
            counts[str(row['match_id'])] = row['unread']

        return counts
