"""
Services for flag submission and scoring.
"""
import logging
from django.db import IntegrityError, transaction
from django.db.models import F
from django.contrib.auth import get_user_model
from django.utils import timezone
from challenges.models import Challenge
from challenges.scoring import calculate_points, is_correct_flag
from events_ctf.models import EventParticipant
from .exceptions import (
    AlreadySolved,
    ChallengeInactive,
    ChallengeNotInEvent,
    EventNotRunning,
    IncorrectFlag,
    NotParticipating,
    ParticipationLocked,
)
from .models import Solve

logger = logging.getLogger(__name__)


class SubmissionService:
    """
    Service class for handling flag submissions and dynamic scoring.
    """

    def check_event_open(self, event, now=None):
        now = now or timezone.now()
        if not event.has_started(now):
            raise EventNotRunning('Event has not started yet')
        if event.has_ended(now):
            raise EventNotRunning('Event has ended')
        if not event.is_active:
            raise EventNotRunning('Event is not active')

    def submit_flag(self, user, event, challenge, submitted_flag):
        """
        Validate a flag and record the solve.

        Points are computed from the solve count read under a row lock on the
        challenge, so concurrent solvers each get a distinct decayed value.
        Returns the created Solve.
        """
        self.check_event_open(event)

        if challenge.event_id != event.id:
            raise ChallengeNotInEvent('Challenge does not belong to this event')
        if not challenge.is_active:
            raise ChallengeInactive('Challenge is not active')

        participant = EventParticipant.objects.filter(user=user, event=event).first()
        if participant is None:
            raise NotParticipating('You are not participating in this event')
        if participant.has_received_nft:
            raise ParticipationLocked('Rewards for this event have already been distributed')

        if Solve.objects.filter(user=user, challenge=challenge).exists():
            raise AlreadySolved('You have already solved this challenge')

        if not is_correct_flag(submitted_flag, challenge.flag):
            logger.info(f"Incorrect flag from {user.username} for challenge {challenge.id}")
            raise IncorrectFlag('Incorrect flag')

        try:
            with transaction.atomic():
                locked = Challenge.objects.select_for_update().get(pk=challenge.pk)
                points = calculate_points(
                    locked.initial_points,
                    locked.min_points,
                    locked.decay_factor,
                    locked.solve_count,
                )

                solve = Solve.objects.create(
                    user=user,
                    challenge=locked,
                    event=event,
                    points_awarded=points,
                )

                Challenge.objects.filter(pk=locked.pk).update(solve_count=F('solve_count') + 1)
                EventParticipant.objects.filter(pk=participant.pk).update(
                    total_score=F('total_score') + points
                )
                get_user_model().objects.filter(pk=user.pk).update(
                    total_score=F('total_score') + points
                )
        except IntegrityError:
            raise AlreadySolved('You have already solved this challenge')

        logger.info(
            f"User {user.username} solved challenge {challenge.id} in event {event.id} "
            f"for {points} points"
        )
        return solve

    def revoke_solve(self, solve):
        """
        Delete a solve and roll back the points and solve count it added.
        """
        with transaction.atomic():
            Challenge.objects.filter(pk=solve.challenge_id, solve_count__gt=0).update(
                solve_count=F('solve_count') - 1
            )
            EventParticipant.objects.filter(user_id=solve.user_id, event_id=solve.event_id).update(
                total_score=F('total_score') - solve.points_awarded
            )
            get_user_model().objects.filter(pk=solve.user_id).update(
                total_score=F('total_score') - solve.points_awarded
            )
            solve.delete()

        logger.info(f"Solve of challenge {solve.challenge_id} by user {solve.user_id} revoked")


# Singleton instance
submission_service = SubmissionService()
