from django.contrib import admin
from .models import Solve
from .services import submission_service


@admin.register(Solve)
class SolveAdmin(admin.ModelAdmin):
    """Admin interface for Solve model"""
    list_display = ['user', 'challenge', 'event', 'points_awarded', 'solved_at']
    list_filter = ['event', 'solved_at']
    search_fields = ['user__username', 'challenge__title', 'event__name']
    readonly_fields = ['user', 'challenge', 'event', 'points_awarded', 'solved_at']

    actions = ['delete_solves_with_score_cleanup']

    def delete_solves_with_score_cleanup(self, request, queryset):
        """
        Delete solves and roll back the scores and solve counts they added.
        """
        count = 0
        for solve in queryset.select_related('user', 'challenge'):
            submission_service.revoke_solve(solve)
            count += 1
        self.message_user(request, f'{count} solves deleted and scores recalculated.')
    delete_solves_with_score_cleanup.short_description = "Delete selected solves (with score cleanup)"
