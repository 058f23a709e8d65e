"""
Django settings for tasdeed_backend.

Values come from the environment; a `.env` file at the project root is
loaded first when present.
"""

import os
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / ".env")


def _getenv(name, default=None):
    val = os.getenv(name)
    if val is None:
        return "" if default is None else default
    return str(val)


def _getenv_bool(name, default=False):
    raw = os.getenv(name)
    if raw is None:
        return default
    return str(raw).strip().lower() in {"1", "true", "yes", "y", "on"}


def _getenv_int(name, default=0):
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        return default
    try:
        return int(str(raw).strip())
    except ValueError:
        return default


def _getenv_list(name, default=""):
    return [v.strip() for v in _getenv(name, default).split(",") if v.strip()]


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = _getenv("SECRET_KEY", "django-insecure-change-me")
DEBUG = _getenv_bool("DEBUG", False)

ALLOWED_HOSTS = _getenv_list("ALLOWED_HOSTS", "localhost,127.0.0.1")
CSRF_TRUSTED_ORIGINS = _getenv_list("CSRF_TRUSTED_ORIGINS")


# Application definition
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    # Third-party
    "rest_framework",
    "rest_framework_simplejwt",
    "drf_yasg",

    # Project apps
    "home",
    "customer",
    "products",
    "finance",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "tasdeed_backend.urls"

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

WSGI_APPLICATION = "tasdeed_backend.wsgi.application"
ASGI_APPLICATION = "tasdeed_backend.asgi.application"


# Database
# PostgreSQL when POSTGRES_DB is set, SQLite otherwise.
if _getenv("POSTGRES_DB"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": _getenv("POSTGRES_DB"),
            "USER": _getenv("POSTGRES_USER", "tasdeed"),
            "PASSWORD": _getenv("POSTGRES_PASSWORD", ""),
            "HOST": _getenv("POSTGRES_HOST", "localhost"),
            "PORT": _getenv("POSTGRES_PORT", "5432"),
            "CONN_MAX_AGE": _getenv_int("DB_CONN_MAX_AGE", 0),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / _getenv("SQLITE_PATH", "db.sqlite3"),
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# Cache
# Local memory by default; Redis when REDIS_URL is set. The scheduler's job
# locks only span processes with a shared cache such as Redis.
REDIS_URL = _getenv("REDIS_URL", "").strip()

if REDIS_URL:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.redis.RedisCache",
            "LOCATION": REDIS_URL,
        }
    }
else:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "tasdeed",
        }
    }


# Auth
AUTH_USER_MODEL = "home.CustomUser"

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]


# Internationalization
LANGUAGE_CODE = "en-us"
TIME_ZONE = _getenv("TIME_ZONE", "Asia/Baghdad")
USE_I18N = True
USE_TZ = True


# Static files
STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"


# Django REST Framework
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework_simplejwt.authentication.JWTAuthentication",
        "rest_framework.authentication.SessionAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.IsAuthenticated",
    ),
    "DEFAULT_PAGINATION_CLASS": "rest_framework.pagination.PageNumberPagination",
    "PAGE_SIZE": 20,
}

SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=_getenv_int("JWT_ACCESS_MINUTES", 60)),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=_getenv_int("JWT_REFRESH_DAYS", 7)),
    "AUTH_HEADER_TYPES": ("Bearer",),
}

SWAGGER_SETTINGS = {
    "SECURITY_DEFINITIONS": {
        "Bearer": {"type": "apiKey", "name": "Authorization", "in": "header"},
    },
    "USE_SESSION_AUTH": False,
}


# Role based access
# role -> "resource:action" grants; "*" matches anything on either side.
RBAC_SUPER_ROLES = _getenv_list("RBAC_SUPER_ROLES", "admin")

RBAC_GRANTS = {
    "salesperson": [
        "customer:*",
        "product:read",
        "contract:read",
        "contract:create",
        "installment:read",
        "payment:read",
    ],
    "cashier": [
        "customer:read",
        "product:read",
        "contract:read",
        "installment:read",
        "payment:read",
        "payment:create",
    ],
    "accountant": [
        "customer:read",
        "product:read",
        "contract:read",
        "installment:*",
        "payment:*",
        "reminders:read",
        "notifications:read",
    ],
    "manager": [
        "customer:*",
        "product:*",
        "contract:*",
        "installment:*",
        "payment:*",
        "jobs:run",
        "reminders:*",
        "notifications:*",
        "users:read",
    ],
}


# Ledger / reconciliation
LEDGER = {
    "SWEEP_BATCH_SIZE": _getenv_int("LEDGER_SWEEP_BATCH_SIZE", 500),
    "REMINDER_DAYS_BEFORE": _getenv_int("REMINDER_DAYS_BEFORE", 3),
    "REMINDER_RESEND_HOURS": _getenv_int("REMINDER_RESEND_HOURS", 24),
    "SENDER_NAME": _getenv("SENDER_NAME", "Tasdeed"),
    "CURRENCY_LABEL": _getenv("CURRENCY_LABEL", "IQD"),
    "SCHEDULER_TIMEZONE": _getenv("SCHEDULER_TIMEZONE", "Asia/Baghdad"),
    "SCHEDULER_POLL_SECONDS": _getenv_int("SCHEDULER_POLL_SECONDS", 5),
    "JOB_LOCK_SECONDS": _getenv_int("JOB_LOCK_SECONDS", 600),
    "SCHEDULE": {
        "overdue": {"every_minutes": 15},
        "markPaid": {"every_minutes": 10},
        "lowStock": {"daily_at": "08:30"},
        "reminders": {"daily_at": "09:00"},
    },
}


# Outbound notifications
SMS_GATEWAY_URL = _getenv("SMS_GATEWAY_URL", "")
SMS_GATEWAY_API_KEY = _getenv("SMS_GATEWAY_API_KEY", "")
SMS_SENDER_ID = _getenv("SMS_SENDER_ID", "Tasdeed")
SMS_GATEWAY_TIMEOUT = _getenv_int("SMS_GATEWAY_TIMEOUT", 15)

NOTIFY_WEBHOOK_URL = _getenv("NOTIFY_WEBHOOK_URL", "")
NOTIFY_WEBHOOK_TIMEOUT = _getenv_int("NOTIFY_WEBHOOK_TIMEOUT", 10)


# Logging
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        }
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "standard"},
    },
    "root": {"handlers": ["console"], "level": _getenv("DJANGO_LOG_LEVEL", "INFO")},
    "loggers": {
        "django.request": {"handlers": ["console"], "level": "WARNING", "propagate": False},
    },
}
