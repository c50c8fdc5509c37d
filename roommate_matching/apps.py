from django.apps import AppConfig


class RoommateMatchingConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'roommate_matching'
    verbose_name = 'Roommate Matching'
