from rest_framework.views import APIView
from rest_framework.permissions import IsAuthenticated

from app.common.views import ok, require_fields, require_self
from app.common.exceptions import ValidationError
from .serializers import PublicUserSerializer, UserSerializer
from . import services


class UserSessionView(APIView):
    """
    POST /api/users/session
    body: { "sessionId"?: "...", "displayName"?: "..." }
    res: { success, user, accessToken }
    """

    authentication_classes = []
    permission_classes = []

    def post(self, request):
        user, _ = services.create_or_resume(
            session_id=request.data.get("sessionId"),
            display_name=request.data.get("displayName"),
        )
        return ok(
            user=UserSerializer(user).data,
            accessToken=services.issue_access_token(user),
        )


class DisplayNameView(APIView):
    permission_classes = [IsAuthenticated]

    # POST /api/users/display-name
    # body: { "userId": "...", "displayName": "..." }
    def post(self, request):
        user_id, display_name = require_fields(request.data, "userId", "displayName")
        user_id = require_self(request, user_id)

        user = services.set_display_name(user_id, display_name)
        return ok(user=UserSerializer(user).data)


class OnlineStatusView(APIView):
    permission_classes = [IsAuthenticated]

    # POST /api/users/online
    # body: { "userId": "...", "isOnline": false }
    def post(self, request):
        user_id = require_self(request, require_fields(request.data, "userId"))

        is_online = request.data.get("isOnline")
        if not isinstance(is_online, bool):
            raise ValidationError("isOnline must be a boolean")

        services.set_online(user_id, is_online)
        return ok()


class UserDetailView(APIView):
    permission_classes = [IsAuthenticated]

    # GET /api/users/<userId>
    def get(self, request, user_id):
        user = services.get_user(user_id)
        return ok(user=PublicUserSerializer(user).data)
