"""
Bearer-token authentication for Django REST Framework.

Tokens are signed with ``django.core.signing`` and only carry the user id;
the user row and its role are loaded from the database on every request, so
a demoted or deactivated account loses access on its next call.
"""
import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core import signing
from rest_framework import authentication
from rest_framework import exceptions

logger = logging.getLogger(__name__)
User = get_user_model()

TOKEN_SALT = 'scout.auth.token'


class TokenExpired(exceptions.AuthenticationFailed):
    default_detail = 'セッションの有効期限が切れました。再度ログインしてください。'
    default_code = 'token_expired'


def issue_token(user):
    return signing.dumps({'uid': user.pk}, key=settings.SCOUT_TOKEN_SECRET, salt=TOKEN_SALT)


def read_token(token):
    """Return the user id carried by ``token``.

    Raises TokenExpired or AuthenticationFailed.
    """
    try:
        payload = signing.loads(
            token,
            key=settings.SCOUT_TOKEN_SECRET,
            salt=TOKEN_SALT,
            max_age=settings.SCOUT_TOKEN_MAX_AGE,
        )
    except signing.SignatureExpired:
        raise TokenExpired()
    except signing.BadSignature:
        raise exceptions.AuthenticationFailed('認証トークンが無効です。')
    uid = payload.get('uid') if isinstance(payload, dict) else None
    if not uid:
        raise exceptions.AuthenticationFailed('認証トークンが無効です。')
    return uid


class SignedTokenAuthentication(authentication.BaseAuthentication):
    """
    Clients authenticate by passing the token in the "Authorization" HTTP
    header, prepended with the string "Bearer ".

    Example:
        Authorization: Bearer eyJ1aWQiOjF9:1u2Xy...
    """
    keyword = 'Bearer'

    def authenticate(self, request):
        auth_header = request.META.get('HTTP_AUTHORIZATION', '')
        if not auth_header:
            return None

        auth_parts = auth_header.split()
        if len(auth_parts) != 2 or auth_parts[0].lower() != self.keyword.lower():
            return None

        uid = read_token(auth_parts[1])
        user = User.objects.select_related('account').filter(pk=uid).first()
        if user is None or not user.is_active:
            logger.info("AUTH token_rejected user_id=%s reason=%s", uid, 'missing' if user is None else 'inactive')
            raise exceptions.AuthenticationFailed('アカウントが無効です。')
        return (user, auth_parts[1])

    def authenticate_header(self, request):
        return self.keyword
