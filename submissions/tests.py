from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APITestCase

from challenges.models import Challenge
from events_ctf.models import Event, EventParticipant
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
from .services import submission_service

User = get_user_model()


class SubmissionFixtureMixin:

    def setUp(self):
        cache.clear()
        self.organizer = User.objects.create_user(
            username='org', email='org@example.com', password='testpass123', role=User.ROLE_ORGANIZER
        )
        self.player = User.objects.create_user(username='player', email='player@example.com', password='testpass123')
        now = timezone.now()
        self.event = Event.objects.create(
            name='Live CTF',
            description='Running now',
            start_time=now - timedelta(hours=1),
            end_time=now + timedelta(hours=1),
            organizer=self.organizer,
        )
        self.participant = EventParticipant.objects.create(user=self.player, event=self.event)
        self.challenge = Challenge.objects.create(
            event=self.event,
            title='Warmup',
            description='Find the flag',
            flag='ctnft{warmup}',
            initial_points=500,
            min_points=100,
            decay_factor=50,
        )

    def add_player(self, username):
        user = User.objects.create_user(username=username, email=f'{username}@example.com', password='testpass123')
        EventParticipant.objects.create(user=user, event=self.event)
        return user


class SubmitFlagTests(SubmissionFixtureMixin, TestCase):

    def test_correct_flag_awards_points(self):
        solve = submission_service.submit_flag(self.player, self.event, self.challenge, ' ctnft{warmup} ')

        self.assertEqual(solve.points_awarded, 500)
        self.challenge.refresh_from_db()
        self.participant.refresh_from_db()
        self.player.refresh_from_db()
        self.assertEqual(self.challenge.solve_count, 1)
        self.assertEqual(self.participant.total_score, 500)
        self.assertEqual(self.player.total_score, 500)

    def test_each_solve_decays_the_next(self):
        awarded = []
        for i in range(10):
            user = self.add_player(f'solver{i}')
            awarded.append(submission_service.submit_flag(user, self.event, self.challenge, 'ctnft{warmup}').points_awarded)

        self.assertEqual(awarded, [500, 450, 400, 350, 300, 250, 200, 150, 100, 100])

    def test_incorrect_flag(self):
        with self.assertRaises(IncorrectFlag):
            submission_service.submit_flag(self.player, self.event, self.challenge, 'CTNFT{WARMUP}')
        self.assertFalse(Solve.objects.exists())

    def test_already_solved(self):
        submission_service.submit_flag(self.player, self.event, self.challenge, 'ctnft{warmup}')
        with self.assertRaises(AlreadySolved):
            submission_service.submit_flag(self.player, self.event, self.challenge, 'ctnft{warmup}')

    def test_not_participating(self):
        outsider = User.objects.create_user(username='outsider', email='out@example.com', password='testpass123')
        with self.assertRaises(NotParticipating):
            submission_service.submit_flag(outsider, self.event, self.challenge, 'ctnft{warmup}')

    def test_event_not_running(self):
        Event.objects.filter(pk=self.event.pk).update(end_time=timezone.now() - timedelta(minutes=1))
        self.event.refresh_from_db()
        with self.assertRaises(EventNotRunning) as ctx:
            submission_service.submit_flag(self.player, self.event, self.challenge, 'ctnft{warmup}')
        self.assertEqual(str(ctx.exception), 'Event has ended')

    def test_inactive_challenge(self):
        Challenge.objects.filter(pk=self.challenge.pk).update(is_active=False)
        self.challenge.refresh_from_db()
        with self.assertRaises(ChallengeInactive):
            submission_service.submit_flag(self.player, self.event, self.challenge, 'ctnft{warmup}')

    def test_challenge_from_another_event(self):
        other = Event.objects.create(
            name='Other', description='x',
            start_time=self.event.start_time, end_time=self.event.end_time,
            organizer=self.organizer,
        )
        with self.assertRaises(ChallengeNotInEvent):
            submission_service.submit_flag(self.player, other, self.challenge, 'ctnft{warmup}')

    def test_locked_after_reward(self):
        EventParticipant.objects.filter(pk=self.participant.pk).update(has_received_nft=True)
        with self.assertRaises(ParticipationLocked):
            submission_service.submit_flag(self.player, self.event, self.challenge, 'ctnft{warmup}')

    def test_revoke_solve_rolls_back(self):
        solve = submission_service.submit_flag(self.player, self.event, self.challenge, 'ctnft{warmup}')

        submission_service.revoke_solve(solve)

        self.challenge.refresh_from_db()
        self.participant.refresh_from_db()
        self.assertEqual(self.challenge.solve_count, 0)
        self.assertEqual(self.participant.total_score, 0)
        self.assertFalse(Solve.objects.exists())


class FlagSubmitAPITests(SubmissionFixtureMixin, APITestCase):

    def url(self):
        return f'/api/events/{self.event.id}/challenges/{self.challenge.id}/submit/'

    def test_submit_correct(self):
        self.client.force_authenticate(user=self.player)

        response = self.client.post(self.url(), {'flag': 'ctnft{warmup}'}, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['pointsAwarded'], 500)
        self.assertEqual(response.data['solve']['challenge_title'], 'Warmup')

    def test_submit_errors_carry_status(self):
        self.client.force_authenticate(user=self.player)

        response = self.client.post(self.url(), {'flag': 'ctnft{nope}'}, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error'], 'Incorrect flag')

        self.client.post(self.url(), {'flag': 'ctnft{warmup}'}, format='json')
        response = self.client.post(self.url(), {'flag': 'ctnft{warmup}'}, format='json')
        self.assertEqual(response.status_code, 409)

    def test_missing_flag(self):
        self.client.force_authenticate(user=self.player)
        response = self.client.post(self.url(), {}, format='json')
        self.assertEqual(response.status_code, 400)

    @override_settings(SUBMISSION_RATE_LIMIT=2)
    def test_rate_limit(self):
        self.client.force_authenticate(user=self.player)

        for _ in range(2):
            self.client.post(self.url(), {'flag': 'ctnft{nope}'}, format='json')
        response = self.client.post(self.url(), {'flag': 'ctnft{warmup}'}, format='json')

        self.assertEqual(response.status_code, 429)

    def test_my_solves(self):
        submission_service.submit_flag(self.player, self.event, self.challenge, 'ctnft{warmup}')
        self.client.force_authenticate(user=self.player)

        response = self.client.get('/api/solves/mine/', {'event': self.event.id})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['points_awarded'], 500)
