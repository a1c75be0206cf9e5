# config/settings/base.py
from pathlib import Path
import os
from decimal import Decimal
from dotenv import load_dotenv
from datetime import timedelta


BASE_DIR = Path(__file__).resolve().parent.parent.parent
load_dotenv(BASE_DIR / ".env")

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "unsafe-dev-key")
DEBUG = os.getenv("DJANGO_DEBUG", "0") == "1"
ALLOWED_HOSTS = ["*"]

INSTALLED_APPS = [
    # Django
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    # Third-party
    "corsheaders",
    "rest_framework",
    "rest_framework_simplejwt",
    "drf_spectacular",
    "django_filters",

    # Domain apps (modular monolith)
    "fs_core.common.apps.CommonConfig",
    "fs_core.audit.apps.AuditConfig",
    "fs_core.inspections.apps.InspectionsConfig",
    "fs_core.quotes.apps.QuotesConfig",
    "fs_core.jobs.apps.JobsConfig",
    "fs_core.billing.apps.BillingConfig",
    "fs_core.conversions.apps.ConversionsConfig",
]

MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]


ROOT_URLCONF = "config.urls"

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

WSGI_APPLICATION = "config.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": os.getenv("DB_NAME", "fs"),
        "USER": os.getenv("DB_USER", "fs"),
        "PASSWORD": os.getenv("DB_PASSWORD", "fs"),
        "HOST": os.getenv("DB_HOST", "127.0.0.1"),
        "PORT": os.getenv("DB_PORT", "5432"),
    }
}

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.getenv("DJANGO_TIME_ZONE", "America/Chicago")
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "fs_core.common.auth.CookieOrHeaderJWTAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.IsAuthenticated",
    ),
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",

    # Standard error envelope
    "EXCEPTION_HANDLER": "fs_core.common.api.exceptions.api_exception_handler",

    "DEFAULT_FILTER_BACKENDS": [
        "django_filters.rest_framework.DjangoFilterBackend",
        "rest_framework.filters.OrderingFilter",
        "rest_framework.filters.SearchFilter",
    ],

    "DEFAULT_PAGINATION_CLASS": "fs_core.common.api.pagination.DefaultPagination",
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Fire & Life-Safety Operations API",
    "DESCRIPTION": "Inspections, deficiencies, quotes, jobs, invoices and payments",
    "VERSION": "0.1.0",

    "COMPONENT_SPLIT_REQUEST": True,
    "SORT_OPERATIONS": True,
    "SORT_OPERATION_PARAMETERS": True,

    # scheme declared in fs_core/common/openapi.py
    "SECURITY": [
        {"BearerOrCookieJWT": []}
    ],

    # Remove the /api/* alias, keep /api/v1/*
    "PREPROCESSING_HOOKS": [
        "fs_core.common.spectacular_hooks.preprocess_exclude_legacy_api",
    ],

    # several models share status values; name the enums explicitly
    "ENUM_NAME_OVERRIDES": {
        "InspectionStatusEnum": "fs_core.workflow.machines.InspectionStatus",
        "DeficiencyStatusEnum": "fs_core.workflow.machines.DeficiencyStatus",
        "QuoteStatusEnum": "fs_core.workflow.machines.QuoteStatus",
        "JobStatusEnum": "fs_core.workflow.machines.JobStatus",
        "InvoiceStatusEnum": "fs_core.workflow.machines.InvoiceStatus",
    },
}

SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=10),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=14),
    "ROTATE_REFRESH_TOKENS": True,
    "BLACKLIST_AFTER_ROTATION": False,
    "UPDATE_LAST_LOGIN": True,

    # Cookie settings
    "AUTH_COOKIE": "fs_access",
    "AUTH_COOKIE_REFRESH": "fs_refresh",
    "AUTH_COOKIE_SECURE": False,   # set True in production (HTTPS)
    "AUTH_COOKIE_HTTP_ONLY": True,
    "AUTH_COOKIE_SAMESITE": "Lax",
}

# CORS settings
# Development
CORS_ALLOW_ALL_ORIGINS = True  # Only for development!
CORS_ALLOW_CREDENTIALS = True

COMMON_IDEMPOTENCY_USE_DB = True

# Domain settings
FS_DEFAULT_TAX_RATE = Decimal(os.getenv("FS_DEFAULT_TAX_RATE", "0.0825"))
FS_QUOTE_VALID_DAYS = int(os.getenv("FS_QUOTE_VALID_DAYS", "30"))
FS_INVOICE_DUE_DAYS = int(os.getenv("FS_INVOICE_DUE_DAYS", "30"))
FS_CURRENCY = os.getenv("FS_CURRENCY", "USD")

FS_LOG_LEVEL = os.getenv("FS_LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": os.getenv("DJANGO_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
        "fs_core": {
            "handlers": ["console"],
            "level": FS_LOG_LEVEL,
            "propagate": False,
        },
    },
}
