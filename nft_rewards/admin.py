from django.contrib import admin
from .models import ChainEvent, DistributionBatch, RewardDistribution


class DistributionBatchInline(admin.TabularInline):
    model = DistributionBatch
    extra = 0
    can_delete = False
    fields = ['index', 'status', 'size', 'attempts', 'tx_hash', 'last_error', 'started_at', 'finished_at']
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(RewardDistribution)
class RewardDistributionAdmin(admin.ModelAdmin):
    """Admin interface for reward distributions"""
    list_display = ['event', 'status', 'total_distributed', 'total_participants', 'requested_by', 'started_at', 'completed_at']
    list_filter = ['status', 'started_at']
    search_fields = ['event__name', 'requested_by__username']
    readonly_fields = [
        'event', 'status', 'requested_by', 'chain_event_id', 'total_participants',
        'total_distributed', 'errors', 'started_at', 'heartbeat_at', 'completed_at'
    ]
    inlines = [DistributionBatchInline]

    def has_add_permission(self, request):
        return False


@admin.register(ChainEvent)
class ChainEventAdmin(admin.ModelAdmin):
    list_display = ['event', 'chain_event_id', 'contract_address', 'tx_hash', 'created_at']
    search_fields = ['event__name', 'tx_hash']
    readonly_fields = ['created_at']
