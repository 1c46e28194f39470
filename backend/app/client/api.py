# app/client/api.py
import requests

DEFAULT_TIMEOUT = 5


class ApiError(Exception):
    def __init__(self, message, status=None, code=None, transient=False):
        super().__init__(message)
        self.status = status
        self.code = code
        # 네트워크 장애/5xx 는 다음 tick 에서 다시 시도해도 됨
        self.transient = transient


class ChatApiClient:
    """
    /api/* 호출용 얇은 HTTP 클라이언트.
    create_session() 이 받은 accessToken 을 이후 요청에 Bearer 로 붙인다.
    """

    def __init__(self, base_url: str, access_token=None, timeout=DEFAULT_TIMEOUT, session=None):
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.timeout = timeout
        self.http = session or requests.Session()

    def _request(self, method: str, path: str, json=None, params=None, auth=True):
        headers = {"Content-Type": "application/json"}
        if auth and self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"

        try:
            resp = self.http.request(
                method,
                f"{self.base_url}{path}",
                json=json,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ApiError(f"{method} {path} failed: {e}", transient=True) from e

        try:
            data = resp.json()
        except ValueError:
            data = {}

        if resp.status_code >= 400 or data.get("success") is False:
            raise ApiError(
                data.get("error") or f"{method} {path} returned {resp.status_code}",
                status=resp.status_code,
                code=data.get("code"),
                transient=resp.status_code >= 500,
            )
        return data

    # ---- users ----

    def create_session(self, session_id=None, display_name=None) -> dict:
        body = {"sessionId": session_id}
        if display_name:
            body["displayName"] = display_name
        data = self._request("POST", "/api/users/session", json=body, auth=False)
        self.access_token = data.get("accessToken")
        return data["user"]

    def set_online(self, user_id, is_online: bool) -> None:
        self._request(
            "POST", "/api/users/online", json={"userId": str(user_id), "isOnline": is_online}
        )

    # ---- match ----

    def start_search(self, user_id) -> dict:
        return self._request("POST", "/api/match/search/start", json={"userId": str(user_id)})

    def stop_search(self, user_id) -> None:
        self._request("POST", "/api/match/search/stop", json={"userId": str(user_id)})

    def active_session(self, user_id):
        return self._request("GET", f"/api/match/active/{user_id}").get("chatSession")

    def end_chat(self, chat_session_id, user_id) -> None:
        self._request(
            "POST",
            "/api/match/end",
            json={"chatSessionId": str(chat_session_id), "userId": str(user_id)},
        )

    # ---- messages ----

    def send_message(self, chat_session_id, sender_id, message_text: str) -> dict:
        data = self._request(
            "POST",
            "/api/messages/send",
            json={
                "chatSessionId": str(chat_session_id),
                "senderId": str(sender_id),
                "messageText": message_text,
            },
        )
        return data["message"]

    def load_messages(self, chat_session_id, after_id=None) -> list:
        params = {"afterId": after_id} if after_id is not None else None
        data = self._request("GET", f"/api/messages/{chat_session_id}", params=params)
        return data.get("messages") or []

    def health(self) -> dict:
        return self._request("GET", "/api/health", auth=False)
