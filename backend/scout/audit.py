"""
Append-only audit recording: administrative actions and generation history.

Recorder writes run in their own savepoint and a failure is logged, never
raised, so the primary response is unaffected.
"""
import functools
import logging

from django.core.exceptions import ValidationError
from django.core.validators import validate_ipv46_address
from django.db import transaction
from rest_framework.permissions import SAFE_METHODS

from scout.models import ActivityLog, GenerationHistory

logger = logging.getLogger(__name__)

REDACTED = '********'
SENSITIVE_KEYS = {'password', 'current_password', 'new_password', 'token'}


def client_ip(request):
    """Client address, honoring the first X-Forwarded-For hop."""
    meta = getattr(request, 'META', {})
    remote_addr = meta.get('REMOTE_ADDR')
    xff = meta.get('HTTP_X_FORWARDED_FOR')
    if xff:
        remote_addr = xff.split(',')[0].strip()
    if not remote_addr:
        return None
    try:
        validate_ipv46_address(remote_addr)
    except ValidationError:
        return None
    return remote_addr


def redact(value):
    if isinstance(value, dict):
        return {
            key: (REDACTED if str(key).lower() in SENSITIVE_KEYS else redact(item))
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(item) for item in value]
    return value


def _request_body(request):
    data = getattr(request, 'data', None)
    if data is None:
        return {}
    if hasattr(data, 'dict'):
        data = data.dict()
    if not isinstance(data, (dict, list)):
        return {}
    return redact(data)


def record_activity(request, action):
    user = getattr(request, 'user', None)
    if user is not None and not user.is_authenticated:
        user = None
    try:
        with transaction.atomic():
            ActivityLog.objects.create(
                user=user,
                username=getattr(user, 'username', '') or '',
                action=action,
                details={
                    'path': request.path,
                    'method': request.method,
                    'body': _request_body(request),
                },
            )
    except Exception:
        logger.exception("Failed to record activity action=%s path=%s", action, getattr(request, 'path', None))


def audit_action(action):
    """Decorate a view so a successful (2xx) mutating response appends one
    ActivityLog. Safe methods are never recorded.

    Apply below ``@api_view`` so ``request`` is the DRF request.
    """

    def decorator(view_func):
        @functools.wraps(view_func)
        def wrapper(request, *args, **kwargs):
            response = view_func(request, *args, **kwargs)
            if request.method in SAFE_METHODS:
                return response
            if 200 <= getattr(response, 'status_code', 500) < 300:
                record_activity(request, action)
            return response

        return wrapper

    return decorator


def record_generation(user, snapshot, generated_comment):
    """Append the GenerationHistory row for one successful generation."""
    try:
        with transaction.atomic():
            return GenerationHistory.objects.create(
                user=user,
                username=user.username,
                template_name=snapshot.template_name,
                job_type=snapshot.job_type,
                industry=snapshot.industry,
                company_requirement=snapshot.company_requirement,
                output_rule_name=snapshot.output_rule_name,
                student_profile=snapshot.student_profile,
                generated_comment=generated_comment,
            )
    except Exception:
        logger.exception("Failed to record generation history for user_id=%s", getattr(user, 'id', None))
        return None
