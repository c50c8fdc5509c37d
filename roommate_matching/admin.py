from django.contrib import admin
from .models import Preference, Match


@admin.register(Preference)
class PreferenceAdmin(admin.ModelAdmin):
    list_display = ('source', 'target', 'decision', 'created_at', 'updated_at')
    list_filter = ('decision', 'created_at')
    search_fields = (
        'source__first_name', 'source__last_name',
        'target__first_name', 'target__last_name'
    )
    readonly_fields = ('created_at', 'updated_at')
    date_hierarchy = 'created_at'

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('source', 'target')


@admin.register(Match)
class MatchAdmin(admin.ModelAdmin):
    list_display = ('profile_pair', 'message_count', 'created_at', 'updated_at')
    list_filter = ('created_at',)
    search_fields = (
        'profile_one__first_name', 'profile_one__last_name',
        'profile_two__first_name', 'profile_two__last_name'
    )
    # Matches are derived state; only the matching service creates them
    readonly_fields = ('id', 'profile_one', 'profile_two', 'created_at', 'updated_at')
    date_hierarchy = 'created_at'

    def profile_pair(self, obj):
        return f"{obj.profile_one.display_name} ↔ {obj.profile_two.display_name}"
    profile_pair.short_description = 'Profile Pair'

    def message_count(self, obj):
        return obj.messages.count()
    message_count.short_description = 'Messages'

    def has_add_permission(self, request):
        return False

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('profile_one', 'profile_two')
