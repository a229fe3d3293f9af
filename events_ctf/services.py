"""
Services for joining, ending and ranking events.
"""
import logging
from django.db import IntegrityError, transaction
from django.utils import timezone
from .exceptions import (
    AlreadyParticipating,
    EventFull,
    EventNotActive,
    InvalidEventState,
    JoinWindowClosed,
    OrganizerCannotJoin,
)
from .models import Event, EventParticipant

logger = logging.getLogger(__name__)


class EventService:
    """
    Service for event participation and lifecycle.
    """

    @staticmethod
    def join_event(user, event, now=None):
        """
        Register `user` as a participant of `event`.

        Rules:
        - event must be active
        - capacity (max_participants) not reached
        - 24h before start <= now <= start + join_deadline_minutes
        - the organizer cannot join their own event
        - a user joins at most once
        """
        now = now or timezone.now()

        with transaction.atomic():
            # Lock the event so concurrent joins see a consistent participant count
            event = Event.objects.select_for_update().get(pk=event.pk)

            if not event.is_active:
                raise EventNotActive('Event is not active')

            capacity = event.capacity()
            if event.participants.count() >= capacity:
                raise EventFull(f'Event is full. Maximum {capacity} participants allowed.')

            opens, closes = event.join_window()
            if now < opens:
                raise JoinWindowClosed(
                    f'You can only join starting from {opens.isoformat()} (1 day before event starts)'
                )
            if now > closes:
                raise JoinWindowClosed(
                    f'Join deadline has passed. You could join until {closes.isoformat()} '
                    f'({event.join_deadline_minutes} minutes after start).'
                )

            if event.organizer_id == user.id:
                raise OrganizerCannotJoin('Event organizers cannot join their own events')

            if EventParticipant.objects.filter(user=user, event=event).exists():
                raise AlreadyParticipating('You are already participating in this event')

            try:
                with transaction.atomic():
                    participant = EventParticipant.objects.create(user=user, event=event)
            except IntegrityError:
                raise AlreadyParticipating('You are already participating in this event')

        logger.info(f"User {user.username} joined event {event.id}")
        return participant

    @staticmethod
    def end_event(event, performed_by, now=None):
        """
        End a running event immediately by moving its end_time to now.
        """
        now = now or timezone.now()
        if event.has_ended(now):
            raise InvalidEventState('Event has already ended')
        if not event.has_started(now):
            raise InvalidEventState('Cannot end an event that has not started yet')

        event.end_time = now
        event.save(update_fields=['end_time', 'updated_at'])

        logger.info(f"Event {event.id} ended by {performed_by.username}")
        return event

    @staticmethod
    def leaderboard(event):
        """
        Participants ordered by score (earliest join wins a tie), with a 1-based rank.
        """
        participants = (
            EventParticipant.objects
            .filter(event=event)
            .select_related('user')
            .order_by('-total_score', 'joined_at', 'id')
        )
        entries = []
        for position, participant in enumerate(participants, 1):
            participant.position = position
            entries.append(participant)
        return entries

    @staticmethod
    def expire_events(now=None):
        """
        Deactivate every active event whose end time has passed.
        Returns the number of events deactivated.
        """
        now = now or timezone.now()
        expired = Event.objects.filter(is_active=True, end_time__lt=now)
        count = 0
        for event in expired:
            if event.deactivate_if_expired(now):
                count += 1
                logger.info(f"Event '{event.name}' deactivated (end_time passed)")
        return count


# Singleton instance
event_service = EventService()
