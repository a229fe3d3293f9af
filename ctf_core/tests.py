from unittest import mock
from django.test import TestCase, override_settings


class HealthCheckTests(TestCase):

    def test_health(self):
        response = self.client.get('/health/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'healthy')

    @override_settings(REDIS_URL='', CTNFT_CONTRACT_ADDRESS='', PRIVATE_KEY='')
    def test_detailed_without_optional_services(self):
        response = self.client.get('/health/detailed/')

        self.assertEqual(response.status_code, 200)
        checks = response.json()['checks']
        self.assertEqual(checks['database'], 'healthy')
        self.assertEqual(checks['cache'], 'healthy')
        self.assertEqual(checks['websockets'], 'healthy')
        self.assertEqual(checks['redis'], 'not configured')
        self.assertEqual(checks['chain'], 'not configured')

    @override_settings(REDIS_URL='')
    def test_unreachable_chain_degrades(self):
        contract = mock.Mock()
        contract.is_connected.return_value = False

        with mock.patch('ctf_core.health.get_contract', return_value=contract):
            response = self.client.get('/health/detailed/')

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()['status'], 'degraded')
        self.assertTrue(response.json()['checks']['chain'].startswith('unhealthy'))
