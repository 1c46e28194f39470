"""
ASGI entrypoint.

  - http:      DRF API (/api/...)
  - websocket: 세션별 메시지 push (/ws/chat/<chatSessionId>/)

uvicorn app.config.asgi:application  (or daphne)
"""
import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "app.config.settings")

# 앱 로딩이 끝난 뒤에 consumer/model 을 import 해야 함
django_asgi_app = get_asgi_application()

from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402

from app.config.jwt_auth_middleware import JwtAuthMiddlewareStack  # noqa: E402
from app.messaging.routing import websocket_urlpatterns  # noqa: E402

application = ProtocolTypeRouter(
    {
        "http": django_asgi_app,
        "websocket": JwtAuthMiddlewareStack(URLRouter(websocket_urlpatterns)),
    }
)
