from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APITestCase

from events_ctf.models import Event, EventParticipant
from .models import Challenge
from .scoring import calculate_points, is_correct_flag, is_valid_flag_format

User = get_user_model()


class ScoringTests(TestCase):

    def test_points_decay_linearly(self):
        self.assertEqual(calculate_points(500, 100, 50, 0), 500)
        self.assertEqual(calculate_points(500, 100, 50, 3), 350)

    def test_points_never_drop_below_minimum(self):
        self.assertEqual(calculate_points(500, 100, 50, 8), 100)
        self.assertEqual(calculate_points(500, 100, 50, 100), 100)

    def test_zero_decay_keeps_initial_points(self):
        self.assertEqual(calculate_points(300, 50, 0, 40), 300)

    def test_flag_format(self):
        self.assertTrue(is_valid_flag_format('ctnft{hello_world}'))
        self.assertTrue(is_valid_flag_format('CTNFT{Upper}'))
        self.assertTrue(is_valid_flag_format('  ctnft{padded}  '))
        self.assertFalse(is_valid_flag_format('flag{nope}'))
        self.assertFalse(is_valid_flag_format('ctnft{}'))
        self.assertFalse(is_valid_flag_format(''))

    def test_flag_comparison_trims_but_is_case_sensitive(self):
        self.assertTrue(is_correct_flag('  ctnft{abc}\n', 'ctnft{abc}'))
        self.assertFalse(is_correct_flag('CTNFT{ABC}', 'ctnft{abc}'))
        self.assertFalse(is_correct_flag(None, 'ctnft{abc}'))


class ChallengeAPITests(APITestCase):

    def setUp(self):
        self.organizer = User.objects.create_user(
            username='org', email='org@example.com', password='testpass123', role=User.ROLE_ORGANIZER
        )
        self.player = User.objects.create_user(username='player', email='player@example.com', password='testpass123')
        now = timezone.now()
        self.event = Event.objects.create(
            name='Summer CTF',
            description='Test',
            start_time=now - timedelta(hours=1),
            end_time=now + timedelta(hours=1),
            organizer=self.organizer,
        )
        EventParticipant.objects.create(user=self.player, event=self.event)
        self.url = f'/api/events/{self.event.id}/challenges/'

    def make_challenge(self, **kwargs):
        defaults = {
            'event': self.event,
            'title': 'Warmup',
            'description': 'Find the flag',
            'flag': 'ctnft{warmup}',
            'initial_points': 500,
            'min_points': 100,
            'decay_factor': 50,
        }
        defaults.update(kwargs)
        return Challenge.objects.create(**defaults)

    def test_organizer_creates_challenge(self):
        self.client.force_authenticate(user=self.organizer)

        response = self.client.post(self.url, {
            'title': 'Baby RSA',
            'description': 'Small e',
            'category': 'crypto',
            'flag': 'ctnft{small_e}',
            'initial_points': 400,
            'min_points': 50,
            'decay_factor': 25,
        }, format='json')

        self.assertEqual(response.status_code, 201)
        challenge = Challenge.objects.get(title='Baby RSA')
        self.assertEqual(challenge.event, self.event)
        self.assertEqual(challenge.category, 'CRYPTO')

    def test_invalid_flag_format_rejected(self):
        self.client.force_authenticate(user=self.organizer)

        response = self.client.post(self.url, {
            'title': 'Bad flag',
            'description': 'x',
            'flag': 'flag{wrong_prefix}',
        }, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertIn('flag', response.data)

    def test_disallowed_file_type_rejected(self):
        self.client.force_authenticate(user=self.organizer)

        response = self.client.post(self.url, {
            'title': 'Binary',
            'description': 'x',
            'flag': 'ctnft{exe}',
            'file': SimpleUploadedFile('payload.exe', b'MZ'),
        }, format='multipart')

        self.assertEqual(response.status_code, 400)
        self.assertIn('file', response.data)

    def test_participant_cannot_create(self):
        self.client.force_authenticate(user=self.player)

        response = self.client.post(self.url, {
            'title': 'Sneaky',
            'description': 'x',
            'flag': 'ctnft{sneaky}',
        }, format='json')

        self.assertEqual(response.status_code, 403)
        self.assertFalse(Challenge.objects.exists())

    def test_participant_list_hides_flag_and_inactive(self):
        self.make_challenge()
        self.make_challenge(title='Hidden', is_active=False)
        self.client.force_authenticate(user=self.player)

        response = self.client.get(self.url)

        self.assertEqual(response.status_code, 200)
        self.assertEqual([row['title'] for row in response.data], ['Warmup'])
        self.assertNotIn('flag', response.data[0])
        self.assertEqual(response.data[0]['current_points'], 500)
        self.assertFalse(response.data[0]['solved'])

    def test_organizer_sees_flag(self):
        challenge = self.make_challenge()
        self.client.force_authenticate(user=self.organizer)

        response = self.client.get(f'{self.url}{challenge.id}/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['flag'], 'ctnft{warmup}')

    def test_current_points_follow_solve_count(self):
        challenge = self.make_challenge(solve_count=3)
        self.assertEqual(challenge.get_current_points(), 350)
