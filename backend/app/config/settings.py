# config/settings.py
import os
from pathlib import Path

from dotenv import load_dotenv
import dj_database_url
from datetime import timedelta

BASE_DIR = Path(__file__).resolve().parent.parent.parent  # backend/
load_dotenv(BASE_DIR / ".env")

# 빈 값이면 Redis 세션 캐시 비활성화 (channel layer는 별도 설정)
REDIS_HOST = os.environ.get("REDIS_HOST", "127.0.0.1")
REDIS_PORT = int(os.environ.get("REDIS_PORT", "6379"))
REDIS_DB = int(os.environ.get("REDIS_DB", "0"))


SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "dev-insecure-secret-key")
DEBUG = os.environ.get("DJANGO_DEBUG", "0") == "1"
ALLOWED_HOSTS = [
    h.strip()
    for h in os.environ.get("DJANGO_ALLOWED_HOSTS", "").split(",")
    if h.strip()
]
CORS_ALLOW_ALL_ORIGINS = True

CORS_ALLOW_CREDENTIALS = True

DATABASES = {
    "default": dj_database_url.config(
        default=os.environ.get("DATABASE_URL")
        or f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
        conn_max_age=600,
    )
}

INSTALLED_APPS = [
    # simplejwt / DRF가 auth 모델을 import 하므로 유지
    "django.contrib.auth",
    "django.contrib.contenttypes",
    # third party
    "rest_framework",
    "channels",
    "corsheaders",
    # local apps
    "app.common",
    "app.users",
    "app.matches",
    "app.messaging",
]


CHANNEL_LAYERS = {
    "default": {
        "BACKEND": "channels_redis.core.RedisChannelLayer",
        "CONFIG": {
            "hosts": [(REDIS_HOST or "127.0.0.1", REDIS_PORT)],
        },
    }
}

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "app.config.authentication.ChatUserJWTAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": ("rest_framework.permissions.IsAuthenticated",),
    "EXCEPTION_HANDLER": "app.common.exceptions.custom_exception_handler",
}

SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(days=7),
    "SIGNING_KEY": os.environ.get("JWT_SECRET", SECRET_KEY),
    "USER_ID_FIELD": "id",
    "USER_ID_CLAIM": "user_id",
}

MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "[{asctime}] {levelname} {name}: {message}", "style": "{"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "app": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

ROOT_URLCONF = "app.config.urls"

ASGI_APPLICATION = "app.config.asgi.application"  # channels(websocket)용
APPEND_SLASH = False
USE_TZ = True
TIME_ZONE = "UTC"

# ---- chat tunables ----

# 매칭 시도 중 다른 요청에 후보를 뺏겼을 때 다음 후보로 넘어가는 횟수
CHAT_PAIRING_ATTEMPTS = int(os.environ.get("CHAT_PAIRING_ATTEMPTS", "3"))
CHAT_MESSAGE_MAX_LENGTH = int(os.environ.get("CHAT_MESSAGE_MAX_LENGTH", "2000"))
CHAT_SESSION_STATE_TTL_SEC = int(
    os.environ.get("CHAT_SESSION_STATE_TTL_SEC", str(60 * 30))
)
# heartbeat가 이 시간 동안 없으면 expire_idle_users가 오프라인 처리
CHAT_IDLE_TIMEOUT_SEC = int(os.environ.get("CHAT_IDLE_TIMEOUT_SEC", "120"))
