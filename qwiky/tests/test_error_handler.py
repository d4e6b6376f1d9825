from unittest.mock import patch

from django.test import SimpleTestCase, override_settings


@override_settings(DEBUG=False)
class ErrorHandlerTests(SimpleTestCase):
    def test_unknown_route_returns_json_404(self):
        response = self.client.get('/this-url-does-not-exist/')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {'success': False, 'message': 'Route not found'})

    def test_unhandled_error_returns_json_500(self):
        with patch('qwiky.views.timezone.now', side_effect=RuntimeError('clock broke')):
            with self.assertLogs('qwiky.middleware', level='ERROR'):
                response = self.client.get('/health')
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {'success': False, 'message': 'Internal server error'})

    @override_settings(DEBUG=True)
    def test_debug_includes_error_detail(self):
        with patch('qwiky.views.timezone.now', side_effect=RuntimeError('clock broke')):
            with self.assertLogs('qwiky.middleware', level='ERROR'):
                response = self.client.get('/health')
        self.assertEqual(response.json()['error'], 'clock broke')

    def test_wrong_method(self):
        response = self.client.post('/health')
        self.assertEqual(response.status_code, 405)
