from datetime import timedelta

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APITestCase

from .exceptions import (
    AlreadyParticipating,
    EventFull,
    EventNotActive,
    InvalidEventState,
    JoinWindowClosed,
    OrganizerCannotJoin,
)
from .models import Event, EventParticipant
from .services import event_service
from .tasks import auto_end_expired_events

User = get_user_model()


def make_user(username, **kwargs):
    return User.objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password='testpass123',
        **kwargs
    )


def make_event(organizer, start_offset, duration=timedelta(hours=2), **kwargs):
    start = timezone.now() + start_offset
    return Event.objects.create(
        name=kwargs.pop('name', 'Spring CTF'),
        description='Test event',
        start_time=start,
        end_time=start + duration,
        organizer=organizer,
        **kwargs
    )


class EventModelTests(TestCase):

    def setUp(self):
        self.organizer = make_user('org', role=User.ROLE_ORGANIZER)

    def test_status(self):
        upcoming = make_event(self.organizer, timedelta(hours=1))
        running = make_event(self.organizer, -timedelta(minutes=30))
        ended = make_event(self.organizer, -timedelta(hours=5))

        self.assertEqual(upcoming.get_status(), Event.STATUS_UPCOMING)
        self.assertEqual(running.get_status(), Event.STATUS_ACTIVE)
        self.assertEqual(ended.get_status(), Event.STATUS_ENDED)
        self.assertTrue(running.is_running())
        self.assertFalse(ended.is_running())

    def test_join_window(self):
        event = make_event(self.organizer, timedelta(hours=1), join_deadline_minutes=15)
        opens, closes = event.join_window()
        self.assertEqual(opens, event.start_time - timedelta(hours=24))
        self.assertEqual(closes, event.start_time + timedelta(minutes=15))

    def test_capacity_defaults(self):
        event = make_event(self.organizer, timedelta(hours=1), max_participants=None)
        self.assertEqual(event.capacity(), 10000)
        self.assertEqual(event.get_duration(), 2)

    def test_expire_events_deactivates_only_ended(self):
        ended = make_event(self.organizer, -timedelta(hours=5))
        running = make_event(self.organizer, -timedelta(minutes=30))

        result = auto_end_expired_events()

        self.assertEqual(result['ended_count'], 1)
        ended.refresh_from_db()
        running.refresh_from_db()
        self.assertFalse(ended.is_active)
        self.assertTrue(running.is_active)


class JoinEventTests(TestCase):

    def setUp(self):
        self.organizer = make_user('org', role=User.ROLE_ORGANIZER)
        self.player = make_user('player')

    def test_join_within_window(self):
        event = make_event(self.organizer, timedelta(hours=1))

        participant = event_service.join_event(self.player, event)

        self.assertEqual(participant.event, event)
        self.assertEqual(participant.total_score, 0)

    def test_join_shortly_after_start(self):
        event = make_event(self.organizer, -timedelta(minutes=5), join_deadline_minutes=10)
        event_service.join_event(self.player, event)
        self.assertTrue(EventParticipant.objects.filter(user=self.player, event=event).exists())

    def test_join_too_early(self):
        event = make_event(self.organizer, timedelta(days=2))
        with self.assertRaises(JoinWindowClosed):
            event_service.join_event(self.player, event)

    def test_join_after_deadline(self):
        event = make_event(self.organizer, -timedelta(minutes=30), join_deadline_minutes=10)
        with self.assertRaises(JoinWindowClosed):
            event_service.join_event(self.player, event)

    def test_join_inactive(self):
        event = make_event(self.organizer, timedelta(hours=1), is_active=False)
        with self.assertRaises(EventNotActive):
            event_service.join_event(self.player, event)

    def test_join_full(self):
        event = make_event(self.organizer, timedelta(hours=1), max_participants=1)
        event_service.join_event(self.player, event)

        with self.assertRaises(EventFull):
            event_service.join_event(make_user('late'), event)

    def test_organizer_cannot_join(self):
        event = make_event(self.organizer, timedelta(hours=1))
        with self.assertRaises(OrganizerCannotJoin):
            event_service.join_event(self.organizer, event)

    def test_join_twice(self):
        event = make_event(self.organizer, timedelta(hours=1))
        event_service.join_event(self.player, event)
        with self.assertRaises(AlreadyParticipating):
            event_service.join_event(self.player, event)

    def test_end_event(self):
        event = make_event(self.organizer, -timedelta(minutes=30))
        event_service.end_event(event, performed_by=self.organizer)
        self.assertTrue(event.has_ended(timezone.now() + timedelta(seconds=1)))

    def test_end_upcoming_event_rejected(self):
        event = make_event(self.organizer, timedelta(hours=1))
        with self.assertRaises(InvalidEventState):
            event_service.end_event(event, performed_by=self.organizer)


class EventAPITests(APITestCase):

    def setUp(self):
        self.organizer = make_user('org', role=User.ROLE_ORGANIZER)
        self.player = make_user('player')

    def test_create_requires_organizer(self):
        start = timezone.now() + timedelta(days=1)
        payload = {
            'name': 'Autumn CTF',
            'description': 'Jeopardy style',
            'start_time': start.isoformat(),
            'end_time': (start + timedelta(hours=4)).isoformat(),
        }

        self.client.force_authenticate(user=self.player)
        self.assertEqual(self.client.post('/api/events/', payload, format='json').status_code, 403)

        self.client.force_authenticate(user=self.organizer)
        response = self.client.post('/api/events/', payload, format='json')
        self.assertEqual(response.status_code, 201)
        self.assertEqual(Event.objects.get(name='Autumn CTF').organizer, self.organizer)

    def test_create_rejects_end_before_start(self):
        start = timezone.now() + timedelta(days=1)
        self.client.force_authenticate(user=self.organizer)

        response = self.client.post('/api/events/', {
            'name': 'Broken',
            'description': 'x',
            'start_time': start.isoformat(),
            'end_time': (start - timedelta(hours=1)).isoformat(),
        }, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertIn('end_time', response.data)

    def test_join_endpoint(self):
        event = make_event(self.organizer, timedelta(hours=1))
        self.client.force_authenticate(user=self.player)

        response = self.client.post(f'/api/events/{event.id}/join/')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['success'])

        response = self.client.post(f'/api/events/{event.id}/join/')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error'], 'You are already participating in this event')

    def test_only_organizer_can_end(self):
        event = make_event(self.organizer, -timedelta(minutes=30))

        self.client.force_authenticate(user=self.player)
        self.assertEqual(self.client.post(f'/api/events/{event.id}/end/').status_code, 403)

        self.client.force_authenticate(user=self.organizer)
        response = self.client.post(f'/api/events/{event.id}/end/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['status'], Event.STATUS_ENDED)

    def test_leaderboard_orders_by_score(self):
        event = make_event(self.organizer, -timedelta(minutes=30))
        EventParticipant.objects.create(user=self.player, event=event, total_score=50)
        EventParticipant.objects.create(user=make_user('second'), event=event, total_score=80)
        self.client.force_authenticate(user=self.player)

        response = self.client.get(f'/api/events/{event.id}/leaderboard/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual([row['username'] for row in response.data], ['second', 'player'])
        self.assertEqual([row['position'] for row in response.data], [1, 2])

    def test_list_filters_by_status(self):
        make_event(self.organizer, timedelta(hours=1), name='Later')
        make_event(self.organizer, -timedelta(hours=5), name='Over')
        self.client.force_authenticate(user=self.player)

        response = self.client.get('/api/events/', {'status': 'upcoming'})

        self.assertEqual([event['name'] for event in response.data], ['Later'])
        self.assertEqual(response.data[0]['participant_count'], 0)

    def test_global_leaderboard_is_public(self):
        User.objects.filter(pk=self.player.pk).update(total_score=120)
        make_user('zero')

        response = self.client.get('/api/leaderboard/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual([row['username'] for row in response.data['data']], ['player'])
        self.assertEqual(response.data['data'][0]['rank'], 1)
