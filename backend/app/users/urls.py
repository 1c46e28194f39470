# app/users/urls.py
from django.urls import path
from .views import DisplayNameView, OnlineStatusView, UserDetailView, UserSessionView

urlpatterns = [
    path("session", UserSessionView.as_view()),
    path("session/", UserSessionView.as_view()),
    path("display-name", DisplayNameView.as_view()),
    path("display-name/", DisplayNameView.as_view()),
    path("online", OnlineStatusView.as_view()),
    path("online/", OnlineStatusView.as_view()),
    path("<uuid:user_id>", UserDetailView.as_view()),
    path("<uuid:user_id>/", UserDetailView.as_view()),
]
