from django.conf import settings
from django.db import models


class Solve(models.Model):
    """
    A correct flag submission. Each user solves a challenge at most once.
    `points_awarded` is fixed at solve time (dynamic scoring).
    """
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='solves')
    challenge = models.ForeignKey('challenges.Challenge', on_delete=models.CASCADE, related_name='solves')
    event = models.ForeignKey('events_ctf.Event', on_delete=models.CASCADE, related_name='solves')
    points_awarded = models.PositiveIntegerField()
    solved_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = 'solves'
        verbose_name = 'Solve'
        verbose_name_plural = 'Solves'
        ordering = ['-solved_at']
        constraints = [
            models.UniqueConstraint(fields=['user', 'challenge'], name='unique_user_challenge_solve'),
        ]
        indexes = [
            models.Index(fields=['event', 'user'], name='solves_event_user_idx'),
        ]

    def __str__(self):
        return f"{self.user.username} solved {self.challenge.title} (+{self.points_awarded})"
