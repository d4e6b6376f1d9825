from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase, override_settings
from django.urls import reverse

from services.models import Service


@override_settings(API_RATE_LIMIT=3)
class ApiRateLimitTests(TestCase):
    def setUp(self):
        cache.clear()
        self.addCleanup(cache.clear)

    def test_fourth_request_in_window_is_throttled(self):
        codes = [self.client.get(reverse('services:list')).status_code for _ in range(3)]
        self.assertEqual(codes, [200, 200, 200])

        response = self.client.get(reverse('services:list'))
        self.assertEqual(response.status_code, 429)
        self.assertEqual(response.json(), {
            'success': False,
            'message': 'Too many requests from this IP, please try again later.',
        })

    def test_limit_is_shared_across_api_routes(self):
        for _ in range(3):
            self.client.get(reverse('services:list'))
        response = self.client.get(reverse('slots:list', args=['Sodala']))
        self.assertEqual(response.status_code, 429)

    def test_clients_are_counted_separately(self):
        for _ in range(4):
            self.client.get(reverse('services:list'))
        response = self.client.get(reverse('services:list'), REMOTE_ADDR='10.0.0.2')
        self.assertEqual(response.status_code, 200)

    def test_webhook_is_never_throttled(self):
        for _ in range(5):
            response = self.client.post(reverse('payments:webhook'), data='{}', content_type='application/json')
            self.assertEqual(response.status_code, 200)

    def test_health_is_outside_api(self):
        for _ in range(5):
            self.assertEqual(self.client.get('/health').status_code, 200)

    @override_settings(API_RATE_LIMIT=0)
    def test_zero_disables_throttling(self):
        for _ in range(5):
            self.assertEqual(self.client.get(reverse('services:list')).status_code, 200)


class CompressionTests(TestCase):
    def test_large_json_is_gzipped(self):
        for name in ('Bathroom Cleaning', 'Kitchen Cleaning', 'Sofa Cleaning'):
            Service.objects.create(name=name, price=Decimal('499.00'), description='Deep clean with eco-friendly products')
        response = self.client.get(reverse('services:list'), headers={'Accept-Encoding': 'gzip'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['Content-Encoding'], 'gzip')


class RequestLogTests(TestCase):
    def test_access_line_per_request(self):
        with self.assertLogs('qwiky.requests', level='INFO') as logs:
            self.client.get('/health')
        self.assertEqual(len(logs.output), 1)
        self.assertIn('GET /health 200', logs.output[0])
        self.assertIn('127.0.0.1', logs.output[0])

    def test_error_responses_are_logged(self):
        with self.assertLogs('qwiky.requests', level='INFO') as logs:
            self.client.get(reverse('services:detail', args=['00000000-0000-0000-0000-000000000000']))
        self.assertIn('404', logs.output[0])
