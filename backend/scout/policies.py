"""
Role -> capability table and team/assignment scoping rules.

Routes never compare role names directly; they ask the policy whether the
caller's role carries a capability, and list views narrow querysets with the
``scope_*`` helpers below.
"""
from django.conf import settings
from django.db.models import Q

from scout.models import ROLE_USER, TeamMember

GENERATE = 'generate'
OWN_HISTORY = 'own_history'
VIEW_CONFIG = 'view_config'
MANAGE_CONFIG = 'manage_config'
MANAGE_TEMPLATES = 'manage_templates'
VIEW_USERS = 'view_users'
VIEW_AUDIT = 'view_audit'
MANAGE_USERS = 'manage_users'
MANAGE_TEAMS = 'manage_teams'
VIEW_USAGE = 'view_usage'
EXPORT_HISTORY = 'export_history'
UNSCOPED = 'unscoped'


class RolePolicy:
    def __init__(self, table):
        self._table = {role: frozenset(caps) for role, caps in table.items()}

    @classmethod
    def from_settings(cls):
        return cls(getattr(settings, 'SCOUT_ROLE_CAPABILITIES', {}))

    def roles(self):
        return sorted(self._table)

    def capabilities(self, role):
        return self._table.get(role, frozenset())

    def allows(self, role, *capabilities):
        granted = self.capabilities(role)
        return all(cap in granted for cap in capabilities)


def get_policy():
    # Built per call so override_settings in tests takes effect
    return RolePolicy.from_settings()


def role_of(request):
    """Role of the authenticated caller, resolved once per request."""
    cached = getattr(request, '_scout_role', None)
    if cached is not None:
        return cached
    user = getattr(request, 'user', None)
    account = getattr(user, 'account', None) if user is not None else None
    role = account.role if account is not None else ROLE_USER
    request._scout_role = role
    return role


def caller_can(request, *capabilities):
    return get_policy().allows(role_of(request), *capabilities)


def managed_user_ids(user):
    """Ids of users whose records ``user`` may see without ``unscoped``.

    Members of every team where ``user`` is a manager, plus ``user``.
    """
    team_ids = TeamMember.objects.filter(user=user, is_manager=True).values_list('team_id', flat=True)
    ids = set(TeamMember.objects.filter(team_id__in=list(team_ids)).values_list('user_id', flat=True))
    ids.add(user.id)
    return ids


def scope_user_rows(request, queryset, field='user'):
    """Narrow a queryset of per-user rows to the caller's managed users."""
    if caller_can(request, UNSCOPED):
        return queryset
    return queryset.filter(**{f'{field}__in': managed_user_ids(request.user)})


def scope_assigned(request, queryset):
    """Narrow templates or output rules to those assigned to the caller.

    Assignment is direct (``assigned_users``) or through a team the caller
    belongs to.
    """
    if caller_can(request, UNSCOPED):
        return queryset
    user = request.user
    team_ids = list(TeamMember.objects.filter(user=user).values_list('team_id', flat=True))
    return queryset.filter(Q(assigned_users=user) | Q(teams__in=team_ids)).distinct()
