from .base import *

DEBUG = False

SECRET_KEY = 'test-secret-key'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

ALLOWED_HOSTS = ['testserver']

CASHFREE_ENV = 'SANDBOX'
CASHFREE_APP_ID = 'test-app-id'
CASHFREE_SECRET_KEY = 'test-secret'
CASHFREE_WEBHOOK_VERIFY_SIGNATURE = False

FRONTEND_URL = 'https://app.example.com'

LOGGING['root']['level'] = 'CRITICAL'
LOGGING['loggers']['qwiky.requests']['level'] = 'CRITICAL'

# throttling off unless a test turns it on
API_RATE_LIMIT = 0
