# app/matches/urls.py
from django.urls import path
from .views import ActiveSessionView, ChatEndView, SearchStartView, SearchStopView

urlpatterns = [
    path("search/start", SearchStartView.as_view()),
    path("search/start/", SearchStartView.as_view()),
    path("search/stop", SearchStopView.as_view()),
    path("search/stop/", SearchStopView.as_view()),
    path("active/<uuid:user_id>", ActiveSessionView.as_view()),
    path("active/<uuid:user_id>/", ActiveSessionView.as_view()),
    path("end", ChatEndView.as_view()),
    path("end/", ChatEndView.as_view()),
]
