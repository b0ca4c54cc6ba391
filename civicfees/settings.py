# civicfees/settings.py

"""
Django settings for the civicfees project.

Fee assessment, demands, gateway payments, refunds and the property
No Due Certificate (NDC) dues ledger for citizen-facing services.

Environment-derived values are resolved here once. Services receive them
through the configuration structs in core.config, never via os.getenv.
"""

import os
import sys
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent
APPS_DIR = BASE_DIR / 'apps'

# Apps are imported as top-level packages (fees.models, core.utils, ...)
if str(APPS_DIR) not in sys.path:
    sys.path.insert(0, str(APPS_DIR))


def _env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


SECRET_KEY = os.getenv('DJANGO_SECRET_KEY', 'django-insecure-civicfees-dev-key')
DEBUG = _env_bool('DJANGO_DEBUG', False)
ALLOWED_HOSTS = [h.strip() for h in os.getenv('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver').split(',') if h.strip()]


# =============================================================================
# APPLICATIONS
# =============================================================================

INSTALLED_APPS = [
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',

    # Project apps
    'core',
    'utils',
    'applications',
    'properties',
    'fees',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'utils.middleware.AuditContextMiddleware',
]

ROOT_URLCONF = 'civicfees.urls'
WSGI_APPLICATION = 'civicfees.wsgi.application'


# =============================================================================
# DATABASE
# =============================================================================
# PostgreSQL in deployment (row-level locks back select_for_update);
# SQLite fallback for local development and tests.

if os.getenv('POSTGRES_DB'):
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': os.getenv('POSTGRES_DB'),
            'USER': os.getenv('POSTGRES_USER', ''),
            'PASSWORD': os.getenv('POSTGRES_PASSWORD', ''),
            'HOST': os.getenv('POSTGRES_HOST', 'localhost'),
            'PORT': os.getenv('POSTGRES_PORT', '5432'),
            'CONN_MAX_AGE': 60,
            'OPTIONS': {
                'connect_timeout': int(os.getenv('POSTGRES_CONNECT_TIMEOUT', '5')),
            },
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# =============================================================================
# INTERNATIONALISATION
# =============================================================================
# Due dates and payment dates are calendar dates in UTC.

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True


# =============================================================================
# FEES & PAYMENTS
# =============================================================================

DEFAULT_CURRENCY = os.getenv('FEES_DEFAULT_CURRENCY', 'INR')

FEE_NUMBERING = {
    'DEMAND_PREFIX': os.getenv('FEES_DEMAND_PREFIX', 'DEM'),
    'RECEIPT_PREFIX': os.getenv('FEES_RECEIPT_PREFIX', 'RCPT'),
    'REFUND_PREFIX': os.getenv('FEES_REFUND_PREFIX', 'RFND'),
}

PAYMENT_GATEWAY = {
    'PROVIDER': os.getenv('PAYMENT_GATEWAY_PROVIDER', 'stub'),
    'WEBHOOK_SECRET': os.getenv('PAYMENT_GATEWAY_WEBHOOK_SECRET', ''),
    'RAZORPAY_KEY_ID': os.getenv('RAZORPAY_KEY_ID', ''),
    'RAZORPAY_KEY_SECRET': os.getenv('RAZORPAY_KEY_SECRET', ''),
    'API_BASE_URL': os.getenv('RAZORPAY_API_BASE_URL', 'https://api.razorpay.com/v1'),
    'TIMEOUT_SECONDS': float(os.getenv('PAYMENT_GATEWAY_TIMEOUT_SECONDS', '15')),
    'MAX_RETRIES': int(os.getenv('PAYMENT_GATEWAY_MAX_RETRIES', '2')),
}

NDC_LEDGER = {
    'ANNUAL_INTEREST_RATE_PCT': os.getenv('NDC_ANNUAL_INTEREST_RATE_PCT', '12'),
    'DCF_RATE_PCT': os.getenv('NDC_DCF_RATE_PCT', '2.5'),
    'RESIDENTIAL_RATE_PER_SQYD': os.getenv('NDC_RESIDENTIAL_RATE_PER_SQYD', '14000'),
    'COMMERCIAL_RATE_PER_SQYD': os.getenv('NDC_COMMERCIAL_RATE_PER_SQYD', '22000'),
    'DEFAULT_AREA_SQYD': os.getenv('NDC_DEFAULT_AREA_SQYD', '150'),
    'ADDITIONAL_AREA_RATE_PER_SQYD': os.getenv('NDC_ADDITIONAL_AREA_RATE_PER_SQYD', '1800'),
    'DEFAULT_ALLOTMENT_DATE': os.getenv('NDC_DEFAULT_ALLOTMENT_DATE', '2018-01-01'),
}


# =============================================================================
# LOGGING
# =============================================================================

LOG_LEVEL = os.getenv('DJANGO_LOG_LEVEL', 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name} {message}',
            'style': '{',
        },
        'simple': {
            'format': '{levelname} {message}',
            'style': '{',
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
        'level': 'WARNING',
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': False,
        },
        'fees': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'properties': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'applications': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'utils': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'financial_audit': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
    },
}
