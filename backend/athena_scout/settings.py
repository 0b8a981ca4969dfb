"""
Django settings for the Athena Scout backend.

Everything environment-specific is read once at process start.
"""
import os
from pathlib import Path

import dj_database_url
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / '.env', override=False)


def _env_list(name, default=''):
    raw = os.environ.get(name, default)
    return [item.strip() for item in raw.split(',') if item.strip()]


SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'dev-insecure-secret-key-change-me')
DEBUG = os.environ.get('DEBUG', 'false').lower() in ('1', 'true', 'yes')
ALLOWED_HOSTS = _env_list('ALLOWED_HOSTS', 'localhost,127.0.0.1')

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'corsheaders',
    'rest_framework',
    'scout',
]

MIDDLEWARE = [
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'athena_scout.urls'

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

WSGI_APPLICATION = 'athena_scout.wsgi.application'

# Database
DATABASES = {
    'default': dj_database_url.config(
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
        conn_max_age=int(os.environ.get('DB_CONN_MAX_AGE', '60')),
    )
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator', 'OPTIONS': {'min_length': 6}},
]

LANGUAGE_CODE = 'ja'
TIME_ZONE = 'Asia/Tokyo'
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

# REST framework
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'scout.authentication.SignedTokenAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'EXCEPTION_HANDLER': 'scout.exceptions.custom_exception_handler',
}

# CORS: explicit front-end origins plus deployment-preview hosts
CORS_ALLOWED_ORIGINS = _env_list('FRONTEND_ORIGINS', 'http://localhost:5173,http://localhost:3000')
CORS_ALLOWED_ORIGIN_REGEXES = _env_list('FRONTEND_ORIGIN_REGEXES', r'^https://[\w-]+\.vercel\.app$')
CORS_ALLOW_CREDENTIALS = True

# Bearer tokens
SCOUT_TOKEN_SECRET = os.environ.get('SCOUT_TOKEN_SECRET', '') or SECRET_KEY
SCOUT_TOKEN_MAX_AGE = int(os.environ.get('SCOUT_TOKEN_MAX_AGE', str(24 * 60 * 60)))

# Text generation provider (Anthropic Messages API)
CLAUDE_API_KEY = os.environ.get('CLAUDE_API_KEY', '')
CLAUDE_MODEL = os.environ.get('CLAUDE_MODEL', 'claude-sonnet-4-20250514')
CLAUDE_MAX_TOKENS = int(os.environ.get('CLAUDE_MAX_TOKENS', '1024'))
CLAUDE_API_URL = os.environ.get('CLAUDE_API_URL', 'https://api.anthropic.com/v1/messages')
CLAUDE_TIMEOUT = int(os.environ.get('CLAUDE_TIMEOUT', '60'))
SCOUT_GENERATION_PROVIDER = os.environ.get('SCOUT_GENERATION_PROVIDER', 'scout.generation.ClaudeProvider')

# USD per million tokens
SCOUT_PRICING = {
    'input_per_million': os.environ.get('SCOUT_PRICE_INPUT_PER_MILLION', '3.00'),
    'output_per_million': os.environ.get('SCOUT_PRICE_OUTPUT_PER_MILLION', '15.00'),
}

_USER_CAPABILITIES = ['generate', 'own_history', 'view_config']
_MANAGER_CAPABILITIES = _USER_CAPABILITIES + ['manage_config', 'manage_templates', 'view_users', 'view_audit']
SCOUT_ROLE_CAPABILITIES = {
    'user': _USER_CAPABILITIES,
    'manager': _MANAGER_CAPABILITIES,
    'admin': _MANAGER_CAPABILITIES + [
        'manage_users', 'manage_teams', 'view_usage', 'export_history', 'unscoped',
    ],
}

# Logging
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '%(asctime)s %(levelname)s %(name)s %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': LOG_LEVEL,
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': os.environ.get('DJANGO_LOG_LEVEL', 'WARNING').upper(),
            'propagate': False,
        },
    },
}

# Error reporting
SENTRY_DSN = os.environ.get('SENTRY_DSN', '')
if SENTRY_DSN:
    import sentry_sdk
    from sentry_sdk.integrations.django import DjangoIntegration

    sentry_sdk.init(
        dsn=SENTRY_DSN,
        integrations=[DjangoIntegration()],
        traces_sample_rate=float(os.environ.get('SENTRY_TRACES_SAMPLE_RATE', '0.0')),
        send_default_pii=False,
    )
