from django.test import SimpleTestCase, override_settings


class HealthTests(SimpleTestCase):
    @override_settings(ENVIRONMENT='staging')
    def test_health(self):
        response = self.client.get('/health')
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['status'], 'OK')
        self.assertEqual(body['environment'], 'staging')
        self.assertEqual(body['service'], 'qwiky-backend')
        self.assertEqual(body['version'], '1.0.0')
        self.assertIn('timestamp', body)

    def test_cors_preflight_for_frontend(self):
        with self.settings(CORS_ALLOWED_ORIGINS=['https://app.example.com']):
            response = self.client.options(
                '/api/services/',
                headers={'Origin': 'https://app.example.com', 'Access-Control-Request-Method': 'GET'},
            )
        self.assertEqual(response['access-control-allow-origin'], 'https://app.example.com')
