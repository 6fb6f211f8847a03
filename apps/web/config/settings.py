"""
Django settings for Orderhub.

Secrets come from the environment - never hardcode credentials.
Run with: SECRET_KEY=... python apps/web/manage.py runserver
"""

from pathlib import Path

import environ  # type: ignore[import-untyped]

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# Initialize environ
env = environ.Env(
    DEBUG=(bool, False),
    ALLOWED_HOSTS=(list, []),
    SKYTAB_ENVIRONMENT=(str, "sandbox"),
    POS_REQUEST_TIMEOUT_SECONDS=(float, 30.0),
    POS_MAX_RETRIES=(int, 3),
    POS_RETRY_BASE_DELAY_SECONDS=(float, 1.0),
    POS_RATE_LIMIT_REQUESTS=(int, 60),
    POS_RATE_LIMIT_WINDOW_SECONDS=(float, 60.0),
    POS_WEBHOOK_PROCESS_INLINE=(bool, True),
    POS_FAILED_REQUEST_MAX_RETRIES=(int, 5),
)

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = env("SECRET_KEY", default="django-insecure-orderhub-dev-only")

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = env("DEBUG")

ALLOWED_HOSTS = env("ALLOWED_HOSTS")

# Application definition
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Local apps
    "apps.web.core",
    "apps.web.restaurant",
    "apps.web.pos",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    # Custom middleware
    "apps.web.core.middleware.ClientMiddleware",
]

ROOT_URLCONF = "apps.web.config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [BASE_DIR / "templates"],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "apps.web.config.wsgi.application"

# Database
# https://docs.djangoproject.com/en/5.1/ref/settings/#databases
DATABASES = {
    "default": env.db("DATABASE_URL", default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
}

# Custom user model
AUTH_USER_MODEL = "core.User"

# Password validation
_V = "django.contrib.auth.password_validation"
AUTH_PASSWORD_VALIDATORS = [
    {"NAME": f"{_V}.UserAttributeSimilarityValidator"},
    {"NAME": f"{_V}.MinimumLengthValidator"},
    {"NAME": f"{_V}.CommonPasswordValidator"},
    {"NAME": f"{_V}.NumericPasswordValidator"},
]

# Internationalization
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# Static files (CSS, JavaScript, Images)
STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR.parent.parent / "staticfiles"

# Default primary key field type
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Logging
LOG_LEVEL = env("LOG_LEVEL", default="INFO")
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "apps.web": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
    },
}

# =============================================================================
# POS integration
# =============================================================================

# SkyTab (Shift4) credentials
SKYTAB_ENVIRONMENT = env("SKYTAB_ENVIRONMENT")  # "sandbox" or "production"
SKYTAB_API_KEY = env("SKYTAB_API_KEY", default="")
SKYTAB_API_SECRET = env("SKYTAB_API_SECRET", default="")
SKYTAB_LOCATION_ID = env("SKYTAB_LOCATION_ID", default="")
SKYTAB_INTERFACE_NAME = env("SKYTAB_INTERFACE_NAME", default="Orderhub Online Ordering")

# Webhook signing secrets, one per provider
POS_SKYTAB_WEBHOOK_SECRET = env("POS_SKYTAB_WEBHOOK_SECRET", default="")
POS_MOCK_WEBHOOK_SECRET = env("POS_MOCK_WEBHOOK_SECRET", default="")
POS_REQUIRE_WEBHOOK_SECRET = env.bool("POS_REQUIRE_WEBHOOK_SECRET", default=not DEBUG)

# Outbound request resilience
POS_REQUEST_TIMEOUT_SECONDS = env("POS_REQUEST_TIMEOUT_SECONDS")
POS_MAX_RETRIES = env("POS_MAX_RETRIES")
POS_RETRY_BASE_DELAY_SECONDS = env("POS_RETRY_BASE_DELAY_SECONDS")
POS_RATE_LIMIT_REQUESTS = env("POS_RATE_LIMIT_REQUESTS")
POS_RATE_LIMIT_WINDOW_SECONDS = env("POS_RATE_LIMIT_WINDOW_SECONDS")

# Process webhooks in the request (True) or leave them for process_pos_webhooks
POS_WEBHOOK_PROCESS_INLINE = env("POS_WEBHOOK_PROCESS_INLINE")

# Failed-request queue
POS_FAILED_REQUEST_MAX_RETRIES = env("POS_FAILED_REQUEST_MAX_RETRIES")
