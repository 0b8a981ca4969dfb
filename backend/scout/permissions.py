from rest_framework import permissions

from scout.policies import caller_can


def requires(*capabilities):
    """Build a DRF permission class granting access when the caller's role
    carries every capability listed. Compose results with ``&`` and ``|``.
    """

    class HasCapability(permissions.BasePermission):
        message = 'この操作を行う権限がありません。'

        def has_permission(self, request, view):
            user = getattr(request, 'user', None)
            if user is None or not user.is_authenticated:
                return False
            return caller_can(request, *capabilities)

    HasCapability.__name__ = 'Requires_' + '_'.join(capabilities)
    HasCapability.__qualname__ = HasCapability.__name__
    return HasCapability


class SafeMethod(permissions.BasePermission):
    """Read-only requests. Combine with ``requires`` for read/write splits."""

    def has_permission(self, request, view):
        return request.method in permissions.SAFE_METHODS
