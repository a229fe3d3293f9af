from datetime import timedelta

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone


DEFAULT_MAX_PARTICIPANTS = 10000
DEFAULT_JOIN_DEADLINE_MINUTES = 10
JOIN_WINDOW_OPENS_BEFORE = timedelta(hours=24)


class Event(models.Model):
    """
    A CTF event run by an organizer.
    Participants may join from 24 hours before the start until
    `join_deadline_minutes` after it; rewards are distributed after end_time.
    """
    STATUS_UPCOMING = 'UPCOMING'
    STATUS_ACTIVE = 'ACTIVE'
    STATUS_ENDED = 'ENDED'

    name = models.CharField(max_length=200, db_index=True)
    description = models.TextField()

    start_time = models.DateTimeField(help_text="Event start time")
    end_time = models.DateTimeField(help_text="Event end time")
    is_active = models.BooleanField(default=True, help_text="Event accepts participants and submissions")

    organizer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='organized_events'
    )

    max_participants = models.PositiveIntegerField(
        null=True,
        blank=True,
        default=DEFAULT_MAX_PARTICIPANTS,
        validators=[MinValueValidator(1)],
        help_text="Maximum number of participants (empty means the platform default)"
    )
    join_deadline_minutes = models.PositiveIntegerField(
        default=DEFAULT_JOIN_DEADLINE_MINUTES,
        help_text="Minutes after the start during which users may still join"
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'events'
        verbose_name = 'Event'
        verbose_name_plural = 'Events'
        ordering = ['-start_time']
        indexes = [
            models.Index(fields=['start_time', 'end_time'], name='events_window_idx'),
            models.Index(fields=['is_active', 'end_time'], name='events_active_end_idx'),
        ]

    def __str__(self):
        return self.name

    def has_started(self, now=None):
        return (now or timezone.now()) >= self.start_time

    def has_ended(self, now=None):
        return (now or timezone.now()) > self.end_time

    def is_running(self, now=None):
        """Check if flags can be submitted right now"""
        now = now or timezone.now()
        return self.is_active and self.has_started(now) and not self.has_ended(now)

    def get_status(self, now=None):
        now = now or timezone.now()
        if now < self.start_time:
            return self.STATUS_UPCOMING
        if now <= self.end_time:
            return self.STATUS_ACTIVE
        return self.STATUS_ENDED

    def join_window(self):
        """Return the (opens, closes) datetimes of the joining window"""
        minutes = self.join_deadline_minutes or DEFAULT_JOIN_DEADLINE_MINUTES
        return (
            self.start_time - JOIN_WINDOW_OPENS_BEFORE,
            self.start_time + timedelta(minutes=minutes),
        )

    def capacity(self):
        return self.max_participants or DEFAULT_MAX_PARTICIPANTS

    def get_duration(self):
        """Get event duration in hours"""
        delta = self.end_time - self.start_time
        return delta.total_seconds() / 3600

    def deactivate_if_expired(self, now=None):
        """
        Deactivate the event once its end time has passed.
        Returns True if the event was deactivated.
        """
        if self.is_active and self.has_ended(now):
            self.is_active = False
            self.save(update_fields=['is_active', 'updated_at'])
            return True
        return False


class EventParticipant(models.Model):
    """
    A user's participation in an event.
    Holds the event score and, after distribution, the NFT reward outcome.
    """
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='participations'
    )
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name='participants')
    total_score = models.IntegerField(default=0)

    # Reward outcome
    rank = models.PositiveIntegerField(null=True, blank=True)
    nft_tier = models.CharField(max_length=20, blank=True, null=True)
    has_received_nft = models.BooleanField(default=False, db_index=True)
    nft_token_id = models.CharField(max_length=100, blank=True, null=True)
    reward_batch = models.ForeignKey(
        'nft_rewards.DistributionBatch',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='participants'
    )

    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'event_participants'
        verbose_name = 'Event Participant'
        verbose_name_plural = 'Event Participants'
        ordering = ['-total_score', 'joined_at']
        constraints = [
            models.UniqueConstraint(fields=['user', 'event'], name='unique_event_participant'),
        ]
        indexes = [
            models.Index(fields=['event', '-total_score'], name='evpart_event_score_idx'),
        ]

    def __str__(self):
        return f"{self.user.username} @ {self.event.name} ({self.total_score})"
