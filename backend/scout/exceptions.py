"""
Custom exception handlers for consistent API error responses.
"""
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status, exceptions as drf_exceptions
import logging

logger = logging.getLogger(__name__)


class ConflictError(drf_exceptions.APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = '同じ名前のデータが既に存在します。'
    default_code = 'conflict'


class SelfDeleteForbidden(drf_exceptions.APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = '自分自身のアカウントは削除できません。'
    default_code = 'self_delete_forbidden'


class InvalidCredentials(drf_exceptions.AuthenticationFailed):
    default_detail = 'ユーザー名またはパスワードが正しくありません。'
    default_code = 'invalid_credentials'


class ProviderError(drf_exceptions.APIException):
    """Base for failures reported by the text-generation provider.

    ``provider_status`` is the HTTP status the provider answered with, when
    there was one.
    """
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = 'AIサービスでエラーが発生しました。'
    default_code = 'provider_error'

    def __init__(self, detail=None, code=None, provider_status=None):
        super().__init__(detail, code)
        self.provider_status = provider_status


class ProviderOverloaded(ProviderError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'AIサービスが混雑しています。しばらくしてから再度お試しください。'
    default_code = 'provider_overloaded'


class ProviderRateLimited(ProviderError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_detail = 'AIサービスの利用上限に達しました。しばらくしてから再度お試しください。'
    default_code = 'provider_rate_limited'


class ProviderServerError(ProviderError):
    default_code = 'provider_error'


class GenerationFailed(ProviderError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'コメントの生成に失敗しました。'
    default_code = 'generation_failed'

    def __init__(self, detail=None, code=None, provider_status=None, detail_message=None):
        super().__init__(detail, code, provider_status)
        self.detail_message = detail_message


def _collect_messages_from_response_data(response_data):
    """Build a list of human-readable messages from DRF error response data."""
    messages = []
    if isinstance(response_data, dict):
        # DRF returns {'field': ['msg']} or {'detail': 'msg'}
        if 'detail' in response_data and not isinstance(response_data.get('detail'), (dict, list)):
            messages.append(str(response_data['detail']))
        for field, value in response_data.items():
            if field == 'detail':
                continue
            if isinstance(value, (list, tuple)) and value:
                msg = str(value[0])
            else:
                msg = str(value)
            messages.append(f"{field}: {msg}")
    elif isinstance(response_data, (list, tuple)):
        for v in response_data:
            if v:
                messages.append(str(v))
    elif response_data:
        messages.append(str(response_data))
    return messages


def custom_exception_handler(exc, context):
    """
    Custom exception handler that provides consistent error response format.

    Returns:
        Response with format:
        {
            "error": {
                "code": "error_code",
                "message": "User-friendly error message",
                "messages": [...],
                "details": {...}  # Optional field-specific errors
            }
        }
    """
    response = exception_handler(exc, context)

    if response is not None:
        # Auth failures always return 401 so clients can re-auth.
        if isinstance(exc, (drf_exceptions.NotAuthenticated, drf_exceptions.AuthenticationFailed)):
            response.status_code = status.HTTP_401_UNAUTHORIZED

        messages = _collect_messages_from_response_data(response.data)
        custom_response_data = {
            'error': {
                'code': get_error_code(exc, response.status_code),
                'message': (messages[0] if messages else get_error_message(exc, response.data)),
            }
        }
        if messages:
            custom_response_data['error']['messages'] = messages

        if isinstance(response.data, dict):
            details = {}
            for field, errors in response.data.items():
                if field == 'detail':
                    continue
                if isinstance(errors, list):
                    details[field] = str(errors[0]) if errors else 'Invalid value'
                else:
                    details[field] = str(errors)
            if details:
                custom_response_data['error']['details'] = details

        if isinstance(exc, ProviderError):
            if exc.provider_status is not None:
                custom_response_data['error']['provider_status'] = exc.provider_status
            detail_message = getattr(exc, 'detail_message', None)
            if detail_message:
                custom_response_data['error']['details'] = {'reason': detail_message}

        response.data = custom_response_data
    else:
        logger.error("Unhandled exception: %s", exc, exc_info=True)

        response = Response(
            {
                'error': {
                    'code': 'internal_server_error',
                    'message': 'サーバーでエラーが発生しました。しばらくしてから再度お試しください。',
                }
            },
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    return response


def get_error_code(exc, status_code):
    """Generate error code from exception."""
    if isinstance(exc, drf_exceptions.ValidationError):
        return 'validation_error'
    if isinstance(exc, drf_exceptions.APIException):
        codes = exc.get_codes()
        if isinstance(codes, str):
            return codes
        if getattr(exc, 'default_code', None):
            return exc.default_code

    code_map = {
        400: 'bad_request',
        401: 'unauthorized',
        403: 'permission_denied',
        404: 'not_found',
        405: 'method_not_allowed',
        409: 'conflict',
        429: 'too_many_requests',
        500: 'internal_server_error',
    }

    return code_map.get(status_code, 'error')


def get_error_message(exc, response_data):
    """Extract user-friendly error message."""
    if hasattr(exc, 'detail'):
        detail = exc.detail
        if isinstance(detail, dict):
            for value in detail.values():
                if isinstance(value, list) and value:
                    return str(value[0])
                return str(value)
        return str(detail)

    if isinstance(response_data, dict) and 'detail' in response_data:
        return str(response_data['detail'])

    return 'エラーが発生しました。'
