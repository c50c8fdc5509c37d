from django.conf import settings
from django.db import models
from django.core.validators import MinValueValidator, MaxValueValidator
from django.utils import timezone
import uuid

LIFESTYLE_KEYS = ('cleanliness', 'noise', 'schedule', 'guests', 'smoking')


def default_lifestyle():
    return {key: '' for key in LIFESTYLE_KEYS}


class Profile(models.Model):
    """A user's public matching identity"""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True, blank=True,
        related_name='profile'
    )

    # Personal Information
    first_name = models.CharField(max_length=50)
    last_name = models.CharField(max_length=50, blank=True)
    age = models.PositiveSmallIntegerField(
        null=True, blank=True,
        validators=[MinValueValidator(18), MaxValueValidator(99)]
    )
    occupation = models.CharField(max_length=100, blank=True)
    bio = models.TextField(max_length=1000, blank=True, help_text="Tell others about yourself")
    interests = models.JSONField(default=list, blank=True, help_text="List of interests/hobbies")

    # Lifestyle descriptors (cleanliness, noise, schedule, guests, smoking)
    lifestyle = models.JSONField(default=default_lifestyle, blank=True)

    # Housing
    has_apartment = models.BooleanField(default=False)
    city = models.CharField(max_length=100, blank=True)
    zone = models.CharField(max_length=100, blank=True)

    # Profile Media
    profile_image = models.URLField(blank=True)

    # Status
    is_active = models.BooleanField(default=True, help_text="Inactive profiles are hidden from feeds")

    # Metadata
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'profiles_profile'
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['is_active', 'created_at'], name='profiles_active_created_idx'),
        ]

    def __str__(self):
        return self.display_name or str(self.id)

    @property
    def display_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def deactivate(self):
        """Stop appearing in candidate feeds without deleting anything"""
        if self.is_active:
            self.is_active = False
            self.save(update_fields=['is_active', 'updated_at'])

    def activate(self):
        if not self.is_active:
            self.is_active = True
            self.save(update_fields=['is_active', 'updated_at'])
