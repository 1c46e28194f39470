# app/matches/views.py
from rest_framework.views import APIView
from rest_framework.permissions import IsAuthenticated

from app.common.views import ok, parse_uuid, require_fields, require_self
from .serializers import ChatSessionSerializer
from . import services


class SearchStartView(APIView):
    """
    POST /api/match/search/start
    body: { "userId": "..." }
    res: { success, matched, chatSession? }

    매칭 결과는 push 하지 않음. 클라가 matched 될 때까지 주기적으로 다시 호출.
    """

    permission_classes = [IsAuthenticated]

    def post(self, request):
        user_id = require_self(request, require_fields(request.data, "userId"))

        result = services.start_search(user_id)
        if not result.matched:
            return ok(matched=False)
        return ok(matched=True, chatSession=ChatSessionSerializer(result.session).data)


class SearchStopView(APIView):
    permission_classes = [IsAuthenticated]

    # POST /api/match/search/stop
    # body: { "userId": "..." }
    def post(self, request):
        user_id = require_self(request, require_fields(request.data, "userId"))
        services.stop_search(user_id)
        return ok()


class ActiveSessionView(APIView):
    permission_classes = [IsAuthenticated]

    # GET /api/match/active/<userId>
    def get(self, request, user_id):
        require_self(request, user_id)
        session = services.active_session_for(user_id)
        data = ChatSessionSerializer(session).data if session else None
        return ok(chatSession=data)


class ChatEndView(APIView):
    permission_classes = [IsAuthenticated]

    # POST /api/match/end
    # body: { "chatSessionId": "...", "userId": "..." }
    def post(self, request):
        session_id, user_id = require_fields(request.data, "chatSessionId", "userId")
        user_id = require_self(request, user_id)

        services.end_session(parse_uuid(session_id, "chatSessionId"), user_id)
        return ok()
