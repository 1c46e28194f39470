# app/config/urls.py
from django.urls import path, include

from app.common.views import HealthView


urlpatterns = [
    path("api/health", HealthView.as_view()),
    path("api/users/", include("app.users.urls")),
    path("api/match/", include("app.matches.urls")),
    path("api/messages/", include("app.messaging.urls")),
]
