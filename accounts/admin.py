from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils import timezone
from .models import User, OrganizerRequest
from .utils import format_address


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin interface for User model"""
    list_display = ['username', 'email', 'role', 'short_wallet', 'total_score', 'is_banned', 'is_staff', 'created_at']
    list_filter = ['role', 'is_banned', 'is_staff', 'is_superuser', 'is_active', 'created_at']
    search_fields = ['username', 'email', 'wallet_address']
    readonly_fields = ['created_at', 'updated_at', 'last_login', 'date_joined', 'total_score']

    fieldsets = BaseUserAdmin.fieldsets + (
        ('CTNFT', {
            'fields': ('role', 'wallet_address', 'total_score')
        }),
        ('Ban Information', {
            'fields': ('is_banned', 'banned_at', 'banned_reason')
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at')
        }),
    )

    actions = ['ban_users', 'unban_users', 'make_organizers']

    def short_wallet(self, obj):
        return format_address(obj.wallet_address) or '-'
    short_wallet.short_description = 'Wallet'

    def ban_users(self, request, queryset):
        """Admin action to ban users"""
        for user in queryset:
            user.ban(reason="Banned by administrator")
        self.message_user(request, f'{queryset.count()} users banned.')
    ban_users.short_description = "Ban selected users"

    def unban_users(self, request, queryset):
        """Admin action to unban users"""
        count = queryset.update(is_banned=False, banned_at=None, banned_reason='')
        self.message_user(request, f'{count} users unbanned.')
    unban_users.short_description = "Unban selected users"

    def make_organizers(self, request, queryset):
        count = queryset.filter(role=User.ROLE_USER).update(role=User.ROLE_ORGANIZER)
        self.message_user(request, f'{count} users promoted to organizer.')
    make_organizers.short_description = "Promote selected users to organizer"


@admin.register(OrganizerRequest)
class OrganizerRequestAdmin(admin.ModelAdmin):
    """Admin interface for organizer requests"""
    list_display = ['user', 'subject', 'status', 'reviewer', 'created_at', 'reviewed_at']
    list_filter = ['status', 'created_at']
    search_fields = ['user__username', 'subject', 'body']
    readonly_fields = ['created_at', 'reviewed_at', 'reviewer']

    actions = ['approve_requests', 'reject_requests']

    def approve_requests(self, request, queryset):
        pending = queryset.filter(status=OrganizerRequest.STATUS_PENDING)
        count = 0
        for organizer_request in pending.select_related('user'):
            organizer_request.approve(request.user, notes='Approved from admin')
            count += 1
        self.message_user(request, f'{count} requests approved.')
    approve_requests.short_description = "Approve selected requests"

    def reject_requests(self, request, queryset):
        count = queryset.filter(status=OrganizerRequest.STATUS_PENDING).update(
            status=OrganizerRequest.STATUS_REJECTED,
            reviewer=request.user,
            reviewed_at=timezone.now()
        )
        self.message_user(request, f'{count} requests rejected.')
    reject_requests.short_description = "Reject selected requests"
