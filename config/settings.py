"""
Django settings - Dízimo.
Plataforma de contribuições e notificações para igrejas.
"""

from pathlib import Path

from decouple import Csv, config

BASE_DIR = Path(__file__).resolve().parent.parent

# ==============================================================================
# SEGURANÇA & OBSERVABILIDADE
# ==============================================================================
SECRET_KEY = config("SECRET_KEY", default="django-insecure-change-me")
DEBUG = config("DEBUG", default=False, cast=bool)

import sentry_sdk
from sentry_sdk.integrations.celery import CeleryIntegration
from sentry_sdk.integrations.django import DjangoIntegration
from sentry_sdk.integrations.redis import RedisIntegration

SENTRY_DSN = config("SENTRY_DSN", default=None)

if SENTRY_DSN and not DEBUG:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        integrations=[
            DjangoIntegration(),
            CeleryIntegration(),
            RedisIntegration(),
        ],
        traces_sample_rate=0.1,
        send_default_pii=False,
    )

_allowed_hosts = config("ALLOWED_HOSTS", default="", cast=Csv())
if DEBUG:
    ALLOWED_HOSTS = _allowed_hosts if _allowed_hosts else ["localhost", "127.0.0.1"]
else:
    if not _allowed_hosts or "*" in _allowed_hosts:
        ALLOWED_HOSTS = ["localhost"]
    else:
        ALLOWED_HOSTS = _allowed_hosts

CSRF_TRUSTED_ORIGINS = config(
    "CSRF_TRUSTED_ORIGINS", default="http://localhost,http://127.0.0.1", cast=Csv()
)

# ==============================================================================
# APPS
# ==============================================================================
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Local Apps
    "apps.core",
    "apps.tenants",
    "apps.accounts",
    "apps.payments",
    "apps.notifications",
]

# ==============================================================================
# MIDDLEWARE
# ==============================================================================
MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"

# ==============================================================================
# TEMPLATES
# ==============================================================================
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
    }
]

# ==============================================================================
# DATABASE
# ==============================================================================
USE_SQLITE = config("USE_SQLITE", default=False, cast=bool)

if USE_SQLITE:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": config("DB_NAME", default="dizimo"),
            "USER": config("DB_USER", default="dizimo"),
            "PASSWORD": config("DB_PASSWORD", default=""),
            "HOST": config("DB_HOST", default="localhost"),
            "PORT": config("DB_PORT", default="5432"),
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ==============================================================================
# AUTH
# ==============================================================================
AUTH_USER_MODEL = "accounts.User"
LOGIN_URL = "admin:login"

# ==============================================================================
# I18N / STATIC
# ==============================================================================
LANGUAGE_CODE = "pt-br"
TIME_ZONE = "America/Sao_Paulo"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"},
}

# ==============================================================================
# CELERY
# ==============================================================================
CELERY_BROKER_URL = config("CELERY_BROKER_URL", default="")
CELERY_RESULT_BACKEND = config("CELERY_RESULT_BACKEND", default="")

if CELERY_BROKER_URL:
    from kombu import Exchange, Queue

    CELERY_ENABLE_UTC = True
    CELERY_TIMEZONE = TIME_ZONE

    CELERY_ACCEPT_CONTENT = ["json"]
    CELERY_TASK_SERIALIZER = "json"
    CELERY_RESULT_SERIALIZER = "json"

    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.redis.RedisCache",
            "LOCATION": CELERY_BROKER_URL,
        }
    }

    # Ack Late: a task só sai da fila depois de processada
    CELERY_TASK_ACKS_LATE = True
    CELERY_WORKER_PREFETCH_MULTIPLIER = 1

    CELERY_TASK_QUEUES = (
        Queue("default", Exchange("default"), routing_key="default"),
        Queue("notifications", Exchange("notifications"), routing_key="notifications"),
    )

    CELERY_TASK_ROUTES = {
        "apps.notifications.tasks.*": {"queue": "notifications"},
    }

    from celery.schedules import crontab

    CELERY_BEAT_SCHEDULE = {
        "expire-stale-pix-transactions": {
            "task": "apps.payments.tasks.expire_stale_pix_transactions",
            "schedule": crontab(minute="*/5"),
        },
        "process-welcome-notifications": {
            "task": "apps.notifications.tasks.process_welcome_notifications",
            "schedule": crontab(minute=0),  # De hora em hora
        },
        "process-payment-reminders": {
            "task": "apps.notifications.tasks.process_payment_reminders",
            "schedule": crontab(hour=9, minute=0),  # Diariamente às 09:00
        },
        "process-overdue-notifications": {
            "task": "apps.notifications.tasks.process_overdue_notifications",
            "schedule": crontab(hour=9, minute=30),
        },
    }
else:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        }
    }

# ==============================================================================
# SITE / INTEGRAÇÕES
# ==============================================================================
SITE_URL = config("SITE_URL", default="http://localhost:8000")
PAYMENT_STATUS_API_URL = config("PAYMENT_STATUS_API_URL", default=SITE_URL)

# URL global da Evolution API (usada quando a empresa não define a sua)
EVOLUTION_API_URL = config("EVOLUTION_API_URL", default="")

AWS_SES_REGION = config("AWS_SES_REGION", default="us-east-1")
DEFAULT_FROM_EMAIL = config("DEFAULT_FROM_EMAIL", default="contato@dizimo.app")

# ==============================================================================
# LOGGING
# ==============================================================================
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": "[{levelname}] {name}: {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": "WARNING",
            "propagate": False,
        },
        "celery": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
        "apps": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
    },
}
