from django.contrib import admin
from .models import Challenge


@admin.register(Challenge)
class ChallengeAdmin(admin.ModelAdmin):
    """Admin interface for Challenge model"""
    list_display = [
        'title', 'event', 'category', 'difficulty', 'initial_points',
        'current_points', 'solve_count', 'is_active'
    ]
    list_filter = ['category', 'difficulty', 'is_active', 'event']
    search_fields = ['title', 'description', 'event__name']
    readonly_fields = ['solve_count', 'created_at', 'updated_at']

    fieldsets = (
        ('Challenge Information', {
            'fields': ('event', 'title', 'description', 'category', 'difficulty', 'is_active')
        }),
        ('Flag & File', {
            'fields': ('flag', 'file')
        }),
        ('Scoring', {
            'fields': ('initial_points', 'min_points', 'decay_factor', 'solve_count')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at')
        }),
    )

    actions = ['activate_challenges', 'deactivate_challenges']

    def current_points(self, obj):
        return obj.get_current_points()
    current_points.short_description = 'Current Points'

    def activate_challenges(self, request, queryset):
        count = queryset.update(is_active=True)
        self.message_user(request, f'{count} challenges activated.')
    activate_challenges.short_description = "Activate selected challenges"

    def deactivate_challenges(self, request, queryset):
        count = queryset.update(is_active=False)
        self.message_user(request, f'{count} challenges deactivated.')
    deactivate_challenges.short_description = "Deactivate selected challenges"
