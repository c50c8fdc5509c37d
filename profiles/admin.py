from django.contrib import admin
from .models import Profile


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = (
        'display_name', 'age', 'zone', 'has_apartment', 'interest_count',
        'is_active', 'created_at'
    )
    list_filter = ('is_active', 'has_apartment', 'city', 'zone')
    search_fields = ('first_name', 'last_name', 'occupation', 'bio')
    readonly_fields = ('id', 'created_at', 'updated_at')
    actions = ['deactivate_profiles']

    fieldsets = (
        ('Identity', {
            'fields': ('id', 'user', 'first_name', 'last_name', 'age', 'occupation')
        }),
        ('About', {
            'fields': ('bio', 'interests', 'lifestyle')
        }),
        ('Housing', {
            'fields': ('has_apartment', 'city', 'zone')
        }),
        ('Media', {
            'fields': ('profile_image',)
        }),
        ('Status', {
            'fields': ('is_active', 'created_at', 'updated_at'),
        }),
    )

    def interest_count(self, obj):
        return len(obj.interests or [])
    interest_count.short_description = 'Interests'

    def deactivate_profiles(self, request, queryset):
        updated = queryset.filter(is_active=True).update(is_active=False)
        self.message_user(request, f"{updated} profiles deactivated.")
    deactivate_profiles.short_description = "Deactivate selected profiles"
