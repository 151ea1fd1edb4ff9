"""Django settings for the join relay service.

Key idea:
- Callers POST a class code + display name to `/api/join`.
- The relay tries each configured upstream join endpoint in order and returns
  the first success, or the last failure when every candidate fails.
- Upstream settings are read from the environment once at process start.
"""

from pathlib import Path
import environ

BASE_DIR = Path(__file__).resolve().parent.parent
env = environ.Env(
    DJANGO_DEBUG=(bool, False),
)

DEBUG = env.bool("DJANGO_DEBUG", default=False)
SECRET_KEY = env("DJANGO_SECRET_KEY", default="dev-only-change-me")
ALLOWED_HOSTS = [h.strip() for h in env("DJANGO_ALLOWED_HOSTS", default="*").split(",") if h.strip()]

INSTALLED_APPS = [
    "relay",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "config.urls"

WSGI_APPLICATION = "config.wsgi.application"

# Join state is never persisted.
DATABASES = {}

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = False
USE_TZ = True

# When behind a proxy, Django should respect forwarded proto.
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")

# Upstream join relay.
JOIN_RELAY_TIMEOUT_MS = env("TIMEOUT_MS", default="8000")
JOIN_RELAY_UPSTREAM_URLS = [u.strip() for u in env("UPSTREAM_URLS", default="").split(",") if u.strip()]
JOIN_RELAY_UPSTREAM_BASE = env("UPSTREAM_BASE", default="").strip()
JOIN_RELAY_UPSTREAM_HEADERS = env("UPSTREAM_HEADERS", default='{"Content-Type":"application/json"}')
JOIN_RELAY_CORS_ORIGIN = env("CORS_ORIGIN", default="*")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "root": {
        "handlers": ["console"],
        "level": env("DJANGO_LOG_LEVEL", default="INFO"),
    },
}
