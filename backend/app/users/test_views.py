import uuid

import pytest
from rest_framework.test import APIClient

from app.matches.models import WaitingQueueEntry
from app.matches.services import start_search
from app.users.models import User


pytestmark = pytest.mark.django_db


class TestUserSession:
    def test_creates_new_user_with_generated_session_id(self):
        resp = APIClient().post("/api/users/session", {}, format="json")

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["user"]["sessionId"].startswith("session_")
        assert body["user"]["isOnline"] is True
        assert body["user"]["isSearching"] is False
        assert body["accessToken"]
        assert User.objects.count() == 1

    def test_resumes_existing_session(self):
        client = APIClient()
        first = client.post("/api/users/session", {"sessionId": "abc"}, format="json").json()
        User.objects.filter(pk=first["user"]["id"]).update(is_online=False)

        second = client.post("/api/users/session", {"sessionId": "abc"}, format="json").json()

        assert second["user"]["id"] == first["user"]["id"]
        assert second["user"]["isOnline"] is True
        assert User.objects.count() == 1

    def test_token_authenticates_follow_up_calls(self):
        client = APIClient()
        body = client.post("/api/users/session", {}, format="json").json()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {body['accessToken']}")

        resp = client.get(f"/api/users/{body['user']['id']}")

        assert resp.status_code == 200
        assert resp.json()["user"]["id"] == body["user"]["id"]

    def test_rejects_too_long_session_id(self):
        resp = APIClient().post("/api/users/session", {"sessionId": "x" * 65}, format="json")

        assert resp.status_code == 400
        assert resp.json() == {
            "success": False,
            "error": "sessionId must be at most 64 characters",
            "code": "VALIDATION_ERROR",
        }


class TestAuth:
    def test_missing_token_is_401(self, make_user):
        user = make_user()
        resp = APIClient().post("/api/match/search/start", {"userId": str(user.id)}, format="json")

        assert resp.status_code == 401
        assert resp.json()["success"] is False
        assert resp.json()["code"] == "UNAUTHORIZED"

    def test_garbage_token_is_401(self):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION="Bearer not-a-jwt")

        resp = client.get(f"/api/users/{uuid.uuid4()}")

        assert resp.status_code == 401
        assert resp.json()["code"] == "INVALID_TOKEN"

    def test_acting_for_someone_else_is_403(self, make_user, client_for):
        me, other = make_user(), make_user()

        resp = client_for(me).post(
            "/api/users/online", {"userId": str(other.id), "isOnline": False}, format="json"
        )

        assert resp.status_code == 403
        other.refresh_from_db()
        assert other.is_online is True


class TestFetchUser:
    def test_unknown_user_is_404(self, make_user, client_for):
        resp = client_for(make_user()).get(f"/api/users/{uuid.uuid4()}")

        assert resp.status_code == 404
        assert resp.json()["success"] is False

    def test_public_view_hides_session_id(self, make_user, client_for):
        me = make_user()
        other = make_user(session_id="secret-session", display_name="Kim")

        user = client_for(me).get(f"/api/users/{other.id}").json()["user"]

        assert user == {"id": str(other.id), "displayName": "Kim", "isOnline": True}


class TestDisplayName:
    def test_can_be_set_once(self, make_user, client_for):
        user = make_user()
        client = client_for(user)

        first = client.post(
            "/api/users/display-name",
            {"userId": str(user.id), "displayName": "  Lee  "},
            format="json",
        )
        second = client.post(
            "/api/users/display-name",
            {"userId": str(user.id), "displayName": "Park"},
            format="json",
        )

        assert first.status_code == 200
        assert first.json()["user"]["displayName"] == "Lee"
        assert second.status_code == 409
        assert second.json()["code"] == "DISPLAY_NAME_ALREADY_SET"
        user.refresh_from_db()
        assert user.display_name == "Lee"


class TestOnlineFlag:
    def test_going_offline_leaves_the_queue(self, make_user, client_for):
        user = make_user()
        start_search(user.id)
        assert WaitingQueueEntry.objects.filter(user=user).exists()

        resp = client_for(user).post(
            "/api/users/online", {"userId": str(user.id), "isOnline": False}, format="json"
        )

        assert resp.status_code == 200
        assert resp.json() == {"success": True}
        user.refresh_from_db()
        assert user.is_online is False
        assert user.is_searching is False
        assert not WaitingQueueEntry.objects.filter(user=user).exists()

    def test_is_online_must_be_boolean(self, make_user, client_for):
        user = make_user()

        resp = client_for(user).post(
            "/api/users/online", {"userId": str(user.id), "isOnline": "nope"}, format="json"
        )

        assert resp.status_code == 400


def test_health_check():
    resp = APIClient().get("/api/health")

    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert "timestamp" in resp.json()
