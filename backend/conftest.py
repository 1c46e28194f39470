import pytest
from rest_framework.test import APIClient

from app.users import services as user_services


@pytest.fixture
def make_user(db):
    def _make(session_id=None, display_name=None):
        user, _ = user_services.create_or_resume(
            session_id=session_id, display_name=display_name
        )
        return user

    return _make


@pytest.fixture
def client_for():
    def _client(user):
        client = APIClient()
        client.credentials(
            HTTP_AUTHORIZATION=f"Bearer {user_services.issue_access_token(user)}"
        )
        return client

    return _client
