# app/messaging/routing.py
from django.urls import re_path
from .consumers import ChatMessageConsumer

websocket_urlpatterns = [
    re_path(
        r"^ws/chat/(?P<session_id>[0-9a-fA-F-]{36})/?$", ChatMessageConsumer.as_asgi()
    ),
]
