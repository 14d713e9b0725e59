"""
Django settings for schoolledger project.

Scope:
- Tenant (school) and user structures
- Classes, students and fee transactions as ledger collaborators
- Income and expense cashbook
- Automated double-entry ledger: posting, historical backfill, statements
"""
import os
from decimal import Decimal
from pathlib import Path

from schoolledger.logging_config import get_logging_config


BASE_DIR = Path(__file__).resolve().parent.parent


DEBUG = os.getenv('DJANGO_DEBUG', 'False').lower() in {'1', 'true', 'yes'}
SECRET_KEY = os.getenv(
    'DJANGO_SECRET_KEY',
    'change-this-secret-key-in-production-7c1d2b9e54a84f0c9d1f3e6a2b8c4d10',
)
ALLOWED_HOSTS = [
    host.strip()
    for host in os.getenv('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver').split(',')
    if host.strip()
]


INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'apps.core.schools.apps.SchoolsConfig',
    'apps.core.users.apps.UsersConfig',
    'apps.core.academics.apps.AcademicsConfig',
    'apps.core.students.apps.StudentsConfig',
    'apps.finance.accounts.apps.AccountsConfig',
    'apps.core.fees.apps.FeesConfig',
    'apps.finance.cashbook.apps.CashbookConfig',
    'apps.core.apps.CoreConfig',
]


MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'apps.core.schools.middleware.CurrentSchoolMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]


ROOT_URLCONF = 'schoolledger.urls'

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

WSGI_APPLICATION = 'schoolledger.wsgi.application'


DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': os.getenv('DJANGO_DB_NAME', str(BASE_DIR / 'db.sqlite3')),
        'OPTIONS': {
            # Seconds a writer waits on a locked database before failing the statement.
            'timeout': int(os.getenv('DJANGO_DB_TIMEOUT', '20')),
        },
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator',
    },
]


LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True


STATIC_URL = 'static/'
AUTH_USER_MODEL = 'users.User'


CSRF_COOKIE_SECURE = not DEBUG
SESSION_COOKIE_SECURE = not DEBUG
SECURE_SSL_REDIRECT = os.getenv('DJANGO_SECURE_SSL_REDIRECT', 'False').lower() in {'1', 'true', 'yes'}
SECURE_HSTS_SECONDS = int(os.getenv('DJANGO_SECURE_HSTS_SECONDS', '0'))
SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')


LOGIN_URL = '/admin/login/'

TEST_RUNNER = 'apps.core.test_runner.InstalledAppsOnlyDiscoverRunner'


# Ledger
LEDGER_STORE_MAX_BATCH_OPERATIONS = int(os.getenv('LEDGER_STORE_MAX_BATCH_OPERATIONS', '500'))
LEDGER_WRITE_BATCH_LIMIT = int(os.getenv('LEDGER_WRITE_BATCH_LIMIT', '450'))
LEDGER_AUTO_POST_ENABLED = os.getenv('LEDGER_AUTO_POST_ENABLED', 'True').lower() in {'1', 'true', 'yes'}
LEDGER_DEMO_CLASS_NAME = os.getenv('LEDGER_DEMO_CLASS_NAME', 'Demo Class')
LEDGER_BALANCE_TOLERANCE = Decimal('0.001')


LOGGING = get_logging_config(DEBUG)
