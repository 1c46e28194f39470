# app/messaging/urls.py
from django.urls import path
from .views import MessageListView, MessageSendView

urlpatterns = [
    path("send", MessageSendView.as_view()),
    path("send/", MessageSendView.as_view()),
    path("<uuid:session_id>", MessageListView.as_view()),
    path("<uuid:session_id>/", MessageListView.as_view()),
]
