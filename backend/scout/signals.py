import logging

from django.contrib.auth import get_user_model
from django.contrib.auth.signals import user_logged_in, user_login_failed
from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from scout.audit import client_ip
from scout.models import LoginLog, UserAccount

logger = logging.getLogger(__name__)


@receiver(user_login_failed)
def log_login_failed(sender, credentials, request=None, **kwargs):
    """Failed attempts are only written to the server log, never to LoginLog."""
    username = None
    if isinstance(credentials, dict):
        username = credentials.get('username')

    remote_addr = None
    user_agent = None
    if request is not None:
        remote_addr = client_ip(request)
        user_agent = request.META.get('HTTP_USER_AGENT')

    logger.warning("AUTH login_failed username=%s ip=%s ua=%s", username, remote_addr, user_agent)


@receiver(user_logged_in)
def record_login(sender, request, user, **kwargs):
    """Append one LoginLog row per successful login."""
    remote_addr = None
    user_agent = ''
    if request is not None:
        remote_addr = client_ip(request)
        user_agent = request.META.get('HTTP_USER_AGENT', '')

    logger.info(
        "AUTH login_success user_id=%s username=%s ip=%s",
        getattr(user, 'id', None), getattr(user, 'username', None), remote_addr
    )
    try:
        with transaction.atomic():
            LoginLog.objects.create(
                user=user,
                username=user.username,
                ip_address=remote_addr,
                user_agent=user_agent or '',
            )
    except Exception:
        # Never break the login response on audit failure
        logger.exception("Failed to record login for user_id=%s", getattr(user, 'id', None))


@receiver(post_save, sender=get_user_model())
def ensure_useraccount_exists(sender, instance, created, **kwargs):
    """Ensure a UserAccount record exists for every Django User."""
    if created:
        UserAccount.objects.get_or_create(user=instance)
