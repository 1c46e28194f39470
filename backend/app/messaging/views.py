# app/messaging/views.py
from rest_framework.views import APIView
from rest_framework.permissions import IsAuthenticated

from app.common.exceptions import PermissionDeniedError, ValidationError
from app.common.views import ok, parse_uuid, require_fields, require_self
from app.matches.services import get_session
from .serializers import MessageSerializer
from . import services


class MessageSendView(APIView):
    """
    POST /api/messages/send
    body: { "chatSessionId": "...", "senderId": "...", "messageText": "..." }
    res: { success, message }
    """

    permission_classes = [IsAuthenticated]

    def post(self, request):
        session_id, sender_id, text = require_fields(
            request.data, "chatSessionId", "senderId", "messageText"
        )
        sender_id = require_self(request, sender_id)

        message = services.send_message(
            parse_uuid(session_id, "chatSessionId"), sender_id, text
        )
        return ok(message=MessageSerializer(message).data)


class MessageListView(APIView):
    permission_classes = [IsAuthenticated]

    # GET /api/messages/<chatSessionId>?afterId=123
    def get(self, request, session_id):
        session = get_session(session_id)
        if not session.has_participant(request.user.id):
            raise PermissionDeniedError("not your session")

        after_id = request.query_params.get("afterId")
        if after_id:
            try:
                after_id = int(after_id)
            except ValueError:
                raise ValidationError("afterId must be an integer")
        else:
            after_id = None

        messages = services.load_messages(session.pk, after_id=after_id)
        return ok(messages=MessageSerializer(messages, many=True).data)
