"""
Django settings for the soap shop backend.

All deployment-specific values come from ``config.env.Settings`` so the same
module serves development, tests and production.
"""
import sys
from datetime import timedelta
from pathlib import Path

from celery.schedules import crontab

from config.env import get_settings

env = get_settings()

BASE_DIR = Path(__file__).resolve().parent.parent

TESTING = 'pytest' in sys.modules or (len(sys.argv) > 1 and sys.argv[1] == 'test')

SECRET_KEY = env.SECRET_KEY
DEBUG = env.DEBUG
ENVIRONMENT = env.ENVIRONMENT
ALLOWED_HOSTS = [host.strip() for host in env.ALLOWED_HOSTS.split(',') if host.strip()]

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'core',
    'customers',
    'inventory',
    'orders',
    'inquiries',
    'gallery',
    'notifications',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'config.urls'
WSGI_APPLICATION = 'config.wsgi.application'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

# =============================================================================
# Database
# =============================================================================

if env.POSTGRES_DB:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': env.POSTGRES_DB,
            'USER': env.POSTGRES_USER,
            'PASSWORD': env.POSTGRES_PASSWORD,
            'HOST': env.POSTGRES_HOST,
            'PORT': env.POSTGRES_PORT,
            'OPTIONS': {'connect_timeout': env.DB_CONNECT_TIMEOUT},
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / env.SQLITE_PATH,
        }
    }

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LANGUAGE_CODE = 'de-de'
TIME_ZONE = 'Europe/Berlin'
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

# =============================================================================
# REST framework
# =============================================================================

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'core.authentication.JWTAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.AllowAny',
    ],
    'DEFAULT_RENDERER_CLASSES': [
        'core.renderers.EnvelopeJSONRenderer',
    ],
    'EXCEPTION_HANDLER': 'core.exceptions.api_exception_handler',
}

# =============================================================================
# Auth tokens
# =============================================================================

JWT_SECRET = env.JWT_SECRET or SECRET_KEY
JWT_ALGORITHM = env.JWT_ALGORITHM
JWT_LIFETIME = timedelta(hours=env.JWT_EXPIRES_HOURS)

# =============================================================================
# Redis, rate limiting and Celery
# =============================================================================

REDIS_URL = env.REDIS_URL
RATE_LIMIT_ENABLED = env.RATE_LIMIT_ENABLED and not TESTING

CELERY_BROKER_URL = env.CELERY_BROKER_URL or env.REDIS_URL
CELERY_RESULT_BACKEND = env.REDIS_URL
CELERY_TASK_ALWAYS_EAGER = env.CELERY_TASK_ALWAYS_EAGER or TESTING
CELERY_TASK_EAGER_PROPAGATES = TESTING
CELERY_TASK_SERIALIZER = 'json'
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TIMEZONE = TIME_ZONE
CELERY_BEAT_SCHEDULE = {
    'retry-failed-emails': {
        'task': 'notifications.tasks.retry_failed_emails',
        'schedule': timedelta(minutes=15),
    },
    'daily-order-report': {
        'task': 'orders.tasks.generate_daily_order_report',
        'schedule': crontab(hour=6, minute=0),
    },
}

# =============================================================================
# E-Mail
# =============================================================================

EMAIL_BACKEND = env.EMAIL_BACKEND
EMAIL_HOST = env.EMAIL_HOST
EMAIL_PORT = env.EMAIL_PORT
EMAIL_HOST_USER = env.EMAIL_HOST_USER
EMAIL_HOST_PASSWORD = env.EMAIL_HOST_PASSWORD
EMAIL_USE_TLS = env.EMAIL_USE_TLS
DEFAULT_FROM_EMAIL = env.DEFAULT_FROM_EMAIL
EMAIL_MAX_ATTEMPTS = env.EMAIL_MAX_ATTEMPTS
# Pending rows older than this were never handed to the worker
EMAIL_PENDING_STALE_MINUTES = env.EMAIL_PENDING_STALE_MINUTES

# =============================================================================
# Shop rules
# =============================================================================

SHOP_NAME = env.SHOP_NAME
SHOP_TAX_RATE = env.SHOP_TAX_RATE
SHOP_SHIPPING_COST = env.SHOP_SHIPPING_COST
SHOP_FREE_SHIPPING_FROM = env.SHOP_FREE_SHIPPING_FROM

# =============================================================================
# Logging
# =============================================================================

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'plain': {
            'format': '%(asctime)s %(levelname)s %(name)s - %(message)s',
            'datefmt': '%Y-%m-%dT%H:%M:%S',
        },
        'json': {
            '()': 'core.logging.JsonFormatter',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'json' if env.LOG_JSON else 'plain',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': env.LOG_LEVEL.upper(),
    },
    'loggers': {
        'django.db.backends': {
            'level': 'WARNING',
        },
    },
}
