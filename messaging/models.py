from django.db import models
from django.utils import timezone
import uuid


class Message(models.Model):
    """A chat message exchanged inside a match"""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    match = models.ForeignKey(
        'roommate_matching.Match',
        on_delete=models.CASCADE,
        related_name='messages'
    )
    sender = models.ForeignKey(
        'profiles.Profile',
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='sent_messages'
    )

    content = models.TextField()

    # Set by the recipient side once the message was seen
    is_read = models.BooleanField(default=False)

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'messaging_message'
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['match', 'created_at'], name='message_match_created_idx'),
            models.Index(fields=['match', 'is_read'], name='message_match_read_idx'),
        ]

    def __str__(self):
        sender_name = self.sender.display_name if self.sender else 'System'
        content_preview = self.content[:50] + '...' if len(self.content) > 50 else self.content
        return f"{sender_name}: {content_preview}"
