from django.db import models
from django.db.models import F, Q
from django.utils import timezone
import uuid

from profiles.models import Profile


class Preference(models.Model):
    """A like/pass decision one profile issued toward another"""

    LIKE = 'like'
    PASS = 'pass'
    DECISIONS = [
        (LIKE, 'Like'),
        (PASS, 'Pass'),
    ]

    source = models.ForeignKey(
        Profile,
        on_delete=models.CASCADE,
        related_name='preferences_made'
    )
    target = models.ForeignKey(
        Profile,
        on_delete=models.CASCADE,
        related_name='preferences_received'
    )
    decision = models.CharField(max_length=10, choices=DECISIONS)

    # Timestamps
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'roommate_matching_preference'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['source', 'target'],
                name='unique_preference_per_pair'
            ),
            models.CheckConstraint(
                condition=~Q(source=F('target')),
                name='preference_not_self'
            ),
        ]
        indexes = [
            models.Index(fields=['target', 'source', 'decision'], name='pref_reverse_lookup_idx'),
            models.Index(fields=['source', 'created_at'], name='pref_source_created_idx'),
        ]

    def __str__(self):
        return f"{self.source} -> {self.target}: {self.get_decision_display()}"


class Match(models.Model):
    """
    A mutual like between two profiles.

    The pair is stored in canonical order (smaller id string in profile_one)
    so the unique constraint covers the unordered pair.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    profile_one = models.ForeignKey(
        Profile,
        on_delete=models.CASCADE,
        related_name='matches_as_one'
    )
    profile_two = models.ForeignKey(
        Profile,
        on_delete=models.CASCADE,
        related_name='matches_as_two'
    )

    # Timestamps
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'roommate_matching_match'
        ordering = ['-created_at']
        verbose_name_plural = 'Matches'
        constraints = [
            models.UniqueConstraint(
                fields=['profile_one', 'profile_two'],
                name='unique_match_per_pair'
            ),
            # Also rules out self-matches
            models.CheckConstraint(
                condition=Q(profile_one__lt=F('profile_two')),
                name='match_canonical_order'
            ),
        ]
        indexes = [
            models.Index(fields=['profile_two', 'created_at'], name='match_two_created_idx'),
        ]

    def __str__(self):
        return f"{self.profile_one} & {self.profile_two}"

    def touch(self):
        """Bump updated_at, e.g. when a new message arrives"""
        self.updated_at = timezone.now()
        self.save(update_fields=['updated_at'])
