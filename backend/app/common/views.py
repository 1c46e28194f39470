# app/common/views.py
import uuid

from django.utils import timezone
from rest_framework.response import Response
from rest_framework.views import APIView

from app.common.exceptions import PermissionDeniedError, ValidationError


def ok(**data):
    return Response({"success": True, **data})


def require_fields(data, *names):
    """
    request.data 에서 필수 필드를 꺼낸다. 하나라도 비어 있으면 ValidationError.
    """
    values = []
    missing = []
    for name in names:
        value = data.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(name)
        values.append(value)
    if missing:
        raise ValidationError(f"{', '.join(missing)} required")
    return values if len(values) > 1 else values[0]


def parse_uuid(value, name: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise ValidationError(f"{name} is not a valid id")


def require_self(request, user_id) -> uuid.UUID:
    """
    body로 넘어온 userId가 토큰의 유저와 같은지 확인.
    """
    parsed = parse_uuid(user_id, "userId")
    if parsed != request.user.id:
        raise PermissionDeniedError("userId does not match the authenticated user")
    return parsed


class HealthView(APIView):
    authentication_classes = []
    permission_classes = []

    def get(self, request):
        return Response({"status": "ok", "timestamp": timezone.now().isoformat()})
