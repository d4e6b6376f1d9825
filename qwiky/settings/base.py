import os
from pathlib import Path

import dj_database_url
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent.parent
load_dotenv(BASE_DIR / ".env")


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _env_list(name: str, fallback: list[str]) -> list[str]:
    raw = os.getenv(name, "")
    if raw.strip():
        return [u.strip() for u in raw.split(",") if u.strip()]
    return fallback


SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "django-insecure-dev-only")
DEBUG = _env_bool("DEBUG")
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
SERVICE_NAME = "qwiky-backend"
SERVICE_VERSION = "1.0.0"

ALLOWED_HOSTS = _env_list("ALLOWED_HOSTS", ["localhost", "127.0.0.1"])

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "corsheaders",
    "accounts",
    "services",
    "orders",
    "payments.apps.PaymentsConfig",
]

MIDDLEWARE = [
    "qwiky.middleware.RequestLogMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.gzip.GZipMiddleware",
    "qwiky.middleware.ApiRateLimitMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    "qwiky.middleware.ApiErrorMiddleware",
]

ROOT_URLCONF = "qwiky.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "qwiky.wsgi.application"

DATABASES = {
    "default": dj_database_url.config(
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
        conn_max_age=600,
    )
}

LANGUAGE_CODE = "en-us"
TIME_ZONE = "Asia/Kolkata"
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# API clients (mobile apps) send JSON without a CSRF cookie; API views are csrf_exempt
CORS_ALLOWED_ORIGINS = _env_list("ALLOWED_ORIGINS", ["http://localhost:5173"])
CORS_ALLOW_CREDENTIALS = True
CORS_ALLOW_HEADERS = ["content-type", "authorization", "x-api-key"]

DATA_UPLOAD_MAX_MEMORY_SIZE = 10 * 1024 * 1024

# Per-IP throttling of /api/ (15 minute window); counters live in the default cache
API_RATE_LIMIT = int(os.getenv("API_RATE_LIMIT", "100"))
RATELIMIT_IP_META_KEY = os.getenv("RATELIMIT_IP_META_KEY") or None

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "qwiky",
    }
}

FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173").rstrip("/")

# Cashfree PG
CASHFREE_ENV = os.getenv("CASHFREE_ENV", "SANDBOX").upper()
CASHFREE_APP_ID = os.getenv("CASHFREE_APP_ID", "")
CASHFREE_SECRET_KEY = os.getenv("CASHFREE_SECRET_KEY", "")
CASHFREE_APP_ID_PROD = os.getenv("CASHFREE_APP_ID_PROD", "")
CASHFREE_SECRET_KEY_PROD = os.getenv("CASHFREE_SECRET_KEY_PROD", "")
CASHFREE_API_VERSION = os.getenv("CASHFREE_API_VERSION", "2023-08-01")
CASHFREE_TIMEOUT = float(os.getenv("CASHFREE_TIMEOUT", "30"))
CASHFREE_WEBHOOK_VERIFY_SIGNATURE = _env_bool("CASHFREE_WEBHOOK_VERIFY_SIGNATURE", "true")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": LOG_LEVEL,
    },
    "loggers": {
        "django.request": {
            "handlers": ["console"],
            "level": "ERROR",
            "propagate": False,
        },
        "qwiky.requests": {
            "handlers": ["console"],
            "level": os.getenv("ACCESS_LOG_LEVEL", "INFO").upper(),
            "propagate": False,
        },
    },
}
