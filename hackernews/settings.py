"""Django settings for the hackernews project.

Values that differ between deployments come from the environment; the defaults are suitable for
local development and the test suite.
"""

import os
from datetime import timedelta
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'dev-only-secret-key-change-me')

DEBUG = os.environ.get('DJANGO_DEBUG', '1') == '1'

ALLOWED_HOSTS = [h for h in os.environ.get('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',')
                 if h]

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.staticfiles',
    'graphene_django',
    'django_filters',
    'channels',
    'users',
    'links',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
]

ROOT_URLCONF = 'hackernews.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
            ],
        },
    },
]

ASGI_APPLICATION = 'hackernews.asgi.application'

HACKERNEWS = {
    'TOKEN_SECRET': os.environ.get('HACKERNEWS_TOKEN_SECRET') or SECRET_KEY,
    'TOKEN_ALGORITHM': 'HS256',
    'TOKEN_LIFETIME': timedelta(days=int(os.environ.get('HACKERNEWS_TOKEN_DAYS', '7'))),
    # seconds a data access call may wait on the store before DataUnavailable
    'DATA_TIMEOUT': float(os.environ.get('HACKERNEWS_DATA_TIMEOUT', '5')),
    'DATA_RETRY_ATTEMPTS': 3,
    'DATA_RETRY_BACKOFF': 0.1,
}

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': os.environ.get('HACKERNEWS_DB_PATH', str(BASE_DIR / 'db.sqlite3')),
        'OPTIONS': {
            'timeout': HACKERNEWS['DATA_TIMEOUT'],
        },
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

GRAPHENE = {
    'SCHEMA': 'hackernews.schema.schema',
}

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = False
USE_TZ = True

STATIC_URL = '/static/'

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '{asctime} {levelname} {name}: {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'loggers': {
        'hackernews': {
            'handlers': ['console'],
            'level': os.environ.get('HACKERNEWS_LOG_LEVEL', 'INFO'),
        },
        'users': {
            'handlers': ['console'],
            'level': os.environ.get('HACKERNEWS_LOG_LEVEL', 'INFO'),
        },
        'links': {
            'handlers': ['console'],
            'level': os.environ.get('HACKERNEWS_LOG_LEVEL', 'INFO'),
        },
    },
}
