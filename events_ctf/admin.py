from django.contrib import admin
from django.utils import timezone
from .models import Event, EventParticipant


class EventParticipantInline(admin.TabularInline):
    model = EventParticipant
    extra = 0
    fields = ['user', 'total_score', 'rank', 'nft_tier', 'has_received_nft', 'nft_token_id', 'joined_at']
    readonly_fields = ['user', 'rank', 'nft_tier', 'has_received_nft', 'nft_token_id', 'joined_at']
    ordering = ['-total_score']
    show_change_link = True


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    """Admin interface for Event model"""
    list_display = ['name', 'organizer', 'status_display', 'start_time', 'end_time', 'is_active', 'participant_count']
    list_filter = ['is_active', 'start_time', 'end_time']
    search_fields = ['name', 'description', 'organizer__username']
    readonly_fields = ['created_at', 'updated_at']
    inlines = [EventParticipantInline]

    fieldsets = (
        ('Event Information', {
            'fields': ('name', 'description', 'organizer', 'is_active')
        }),
        ('Schedule', {
            'fields': ('start_time', 'end_time', 'join_deadline_minutes')
        }),
        ('Capacity', {
            'fields': ('max_participants',)
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at')
        }),
    )

    actions = ['end_events_now', 'deactivate_events']

    def status_display(self, obj):
        return obj.get_status()
    status_display.short_description = 'Status'

    def participant_count(self, obj):
        return obj.participants.count()
    participant_count.short_description = 'Participants'

    def end_events_now(self, request, queryset):
        """Move end_time of running events to now"""
        now = timezone.now()
        count = queryset.filter(start_time__lte=now, end_time__gt=now).update(end_time=now)
        self.message_user(request, f'{count} events ended.')
    end_events_now.short_description = "End selected running events now"

    def deactivate_events(self, request, queryset):
        count = queryset.update(is_active=False)
        self.message_user(request, f'{count} events deactivated.')
    deactivate_events.short_description = "Deactivate selected events"


@admin.register(EventParticipant)
class EventParticipantAdmin(admin.ModelAdmin):
    """Admin interface for event participants"""
    list_display = ['user', 'event', 'total_score', 'rank', 'nft_tier', 'has_received_nft', 'joined_at']
    list_filter = ['has_received_nft', 'nft_tier', 'event']
    search_fields = ['user__username', 'user__wallet_address', 'event__name', 'nft_token_id']
    readonly_fields = ['joined_at', 'reward_batch']
    raw_id_fields = ['user', 'event']
