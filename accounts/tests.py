from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APITestCase

from .models import OrganizerRequest
from .utils import format_address, normalize_wallet_address

User = get_user_model()

LOWER_WALLET = '0x5aaeb6053f3e94c9b9a09f33669435e7ef1beaed'
CHECKSUM_WALLET = '0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed'


class WalletUtilsTests(TestCase):

    def test_normalize_checksums(self):
        self.assertEqual(normalize_wallet_address(LOWER_WALLET), CHECKSUM_WALLET)

    def test_normalize_empty(self):
        self.assertIsNone(normalize_wallet_address(''))
        self.assertIsNone(normalize_wallet_address(None))

    def test_normalize_rejects_garbage(self):
        with self.assertRaises(ValueError):
            normalize_wallet_address('0x1234')

    def test_format_address(self):
        self.assertEqual(format_address(CHECKSUM_WALLET), '0x5aAe...eAed')
        self.assertEqual(format_address(None), None)


class ProfileAPITests(APITestCase):

    def setUp(self):
        self.user = User.objects.create_user(username='alice', email='alice@example.com', password='testpass123')
        self.client.force_authenticate(user=self.user)

    def test_get_profile(self):
        response = self.client.get('/api/accounts/me/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['username'], 'alice')
        self.assertFalse(response.data['permissions']['can_organize'])

    def test_set_wallet_address(self):
        response = self.client.patch('/api/accounts/me/', {'wallet_address': LOWER_WALLET}, format='json')

        self.assertEqual(response.status_code, 200)
        self.user.refresh_from_db()
        self.assertEqual(self.user.wallet_address, CHECKSUM_WALLET)

    def test_invalid_wallet_rejected(self):
        response = self.client.patch('/api/accounts/me/', {'wallet_address': 'not-a-wallet'}, format='json')
        self.assertEqual(response.status_code, 400)

    def test_wallet_already_linked(self):
        User.objects.create_user(
            username='bob', email='bob@example.com', password='testpass123', wallet_address=CHECKSUM_WALLET
        )
        response = self.client.patch('/api/accounts/me/', {'wallet_address': LOWER_WALLET}, format='json')
        self.assertEqual(response.status_code, 400)

    def test_stats(self):
        response = self.client.get('/api/accounts/me/stats/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['events_joined'], 0)
        self.assertEqual(response.data['nfts_received'], 0)

    def test_banned_user_cannot_read_profile(self):
        self.user.ban('spam')
        response = self.client.get('/api/accounts/me/')
        self.assertEqual(response.status_code, 403)


class OrganizerRequestTests(APITestCase):

    def setUp(self):
        self.user = User.objects.create_user(username='alice', email='alice@example.com', password='testpass123')
        self.admin = User.objects.create_user(
            username='root', email='root@example.com', password='testpass123', role=User.ROLE_ADMIN
        )

    def submit(self):
        self.client.force_authenticate(user=self.user)
        return self.client.post('/api/accounts/organizer-requests/', {
            'subject': 'Run a CTF',
            'body': 'Our club wants to host a CTF',
        }, format='json')

    def test_request_and_approve(self):
        self.assertEqual(self.submit().status_code, 201)
        self.assertEqual(self.submit().status_code, 400)

        request_id = OrganizerRequest.objects.get().id
        self.client.force_authenticate(user=self.admin)
        response = self.client.post(
            f'/api/accounts/admin/organizer-requests/{request_id}/approve/', {'notes': 'welcome'}, format='json'
        )

        self.assertEqual(response.status_code, 200)
        self.user.refresh_from_db()
        self.assertEqual(self.user.role, User.ROLE_ORGANIZER)

    def test_reject_keeps_role(self):
        self.submit()
        request_id = OrganizerRequest.objects.get().id
        self.client.force_authenticate(user=self.admin)

        self.client.post(f'/api/accounts/admin/organizer-requests/{request_id}/reject/', {}, format='json')

        self.user.refresh_from_db()
        self.assertEqual(self.user.role, User.ROLE_USER)
        self.assertEqual(OrganizerRequest.objects.get().status, OrganizerRequest.STATUS_REJECTED)

    def test_non_admin_cannot_review(self):
        self.submit()
        response = self.client.get('/api/accounts/admin/organizer-requests/')
        self.assertEqual(response.status_code, 403)
