import logging

from django.db import DatabaseError
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import (
    APIException,
    NotAuthenticated,
    AuthenticationFailed,
    PermissionDenied,
)
from rest_framework.response import Response
from rest_framework.views import exception_handler
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError

logger = logging.getLogger(__name__)


class ChatError(APIException):
    """요청 경계에서 {success: false, error, code} 로 변환되는 에러의 베이스."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "request failed"
    default_code = "CHAT_ERROR"

    def __init__(self, detail=None, code=None):
        super().__init__(detail=detail, code=code or self.default_code)
        self.code = code or self.default_code


class ValidationError(ChatError):
    # 필수 필드 누락/형식 오류. 재시도 안 함
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "invalid request"
    default_code = "VALIDATION_ERROR"


class NotFoundError(ChatError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "not found"
    default_code = "NOT_FOUND"


class PermissionDeniedError(ChatError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "not allowed"
    default_code = "FORBIDDEN"


class StateConflictError(ChatError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "state conflict"
    default_code = "STATE_CONFLICT"


class SessionNotActive(StateConflictError):
    default_detail = "chat session is not active"
    default_code = "SESSION_NOT_ACTIVE"


class TransientStoreError(ChatError):
    # 네트워크/DB 장애. 다음 poll tick에서 재시도하면 됨
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "store temporarily unavailable"
    default_code = "TRANSIENT_STORE_ERROR"


class DeliveryDegraded(Exception):
    """push 채널 사용 불가. 로그만 남기고 사용자에게는 노출하지 않는다."""


def error_body(message, code: str):
    return {"success": False, "error": str(message), "code": code}


def custom_exception_handler(exc, context):
    if isinstance(exc, DatabaseError):
        logger.warning("store failure in %s: %s", _view_name(context), exc)
        exc = TransientStoreError()
    elif isinstance(exc, Http404):
        exc = NotFoundError()

    response = exception_handler(exc, context)
    if response is None:
        # DRF가 모르는 예외 -> 500, 프로세스는 죽이지 않음
        logger.exception("unhandled error in %s", _view_name(context), exc_info=exc)
        return Response(
            error_body("internal server error", "INTERNAL_ERROR"),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if isinstance(exc, ChatError):
        response.data = error_body(exc.detail, exc.code)
    elif isinstance(exc, NotAuthenticated):
        response.data = error_body("Authorization header missing", "UNAUTHORIZED")
    elif isinstance(exc, (InvalidToken, TokenError, AuthenticationFailed)):
        response.data = error_body("Invalid token", "INVALID_TOKEN")
    elif isinstance(exc, PermissionDenied):
        response.data = error_body("Permission denied", "FORBIDDEN")
    else:
        detail = getattr(exc, "detail", "request failed")
        response.data = error_body(detail, "REQUEST_ERROR")

    return response


def _view_name(context) -> str:
    view = (context or {}).get("view")
    return type(view).__name__ if view is not None else "-"
