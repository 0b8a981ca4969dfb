from django.db import IntegrityError, transaction
from django.shortcuts import get_object_or_404
from rest_framework import serializers, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from scout import policies
from scout.audit import audit_action
from scout.exceptions import ConflictError
from scout.models import OutputRule, Team, TeamMember, Template
from scout.permissions import requires
from scout.serializers import (
    IdListSerializer,
    TeamDetailSerializer,
    TeamMemberSerializer,
    TeamMemberUpdateSerializer,
    TeamMemberWriteSerializer,
    TeamSerializer,
)

CanManageTeams = requires(policies.MANAGE_TEAMS)


def _get_team(team_id):
    return get_object_or_404(Team.objects.prefetch_related('members__user__account'), pk=team_id)


def _get_membership(team, user_id):
    return get_object_or_404(TeamMember.objects.select_related('user__account'), team=team, user_id=user_id)


def _name_taken(name, exclude_pk=None):
    qs = Team.objects.filter(name=name)
    if exclude_pk is not None:
        qs = qs.exclude(pk=exclude_pk)
    return qs.exists()


@api_view(["GET", "POST"])
@permission_classes([CanManageTeams])
@audit_action('create_team')
def teams(request):
    """List or create teams."""
    if request.method == "GET":
        qs = Team.objects.prefetch_related('members').order_by('name')
        return Response(TeamSerializer(qs, many=True).data)

    serializer = TeamSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    if _name_taken(serializer.validated_data['name']):
        raise ConflictError('同じ名前のチームが既に存在します。')
    try:
        with transaction.atomic():
            team = serializer.save()
    except IntegrityError:
        raise ConflictError('同じ名前のチームが既に存在します。')
    return Response(TeamSerializer(team).data, status=status.HTTP_201_CREATED)


@api_view(["GET", "PUT", "DELETE"])
@permission_classes([CanManageTeams])
@audit_action('modify_team')
def team_detail(request, team_id):
    team = _get_team(team_id)
    if request.method == "GET":
        return Response(TeamDetailSerializer(team).data)

    if request.method == "DELETE":
        team.delete()
        return Response({"success": True})

    serializer = TeamSerializer(team, data=request.data, partial=True)
    serializer.is_valid(raise_exception=True)
    name = serializer.validated_data.get('name')
    if name and _name_taken(name, exclude_pk=team.pk):
        raise ConflictError('同じ名前のチームが既に存在します。')
    try:
        with transaction.atomic():
            team = serializer.save()
    except IntegrityError:
        raise ConflictError('同じ名前のチームが既に存在します。')
    return Response(TeamDetailSerializer(team).data)


@api_view(["POST"])
@permission_classes([CanManageTeams])
@audit_action('add_team_member')
def team_members(request, team_id):
    """Add a user to a team, optionally as one of its managers."""
    team = _get_team(team_id)
    serializer = TeamMemberWriteSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    user_id = serializer.validated_data['user_id']
    if TeamMember.objects.filter(team=team, user_id=user_id).exists():
        raise ConflictError('このユーザーは既にチームのメンバーです。')
    try:
        with transaction.atomic():
            membership = TeamMember.objects.create(
                team=team,
                user_id=user_id,
                is_manager=serializer.validated_data['is_manager'],
            )
    except IntegrityError:
        raise ConflictError('このユーザーは既にチームのメンバーです。')
    membership = _get_membership(team, membership.user_id)
    return Response(TeamMemberSerializer(membership).data, status=status.HTTP_201_CREATED)


@api_view(["PUT", "DELETE"])
@permission_classes([CanManageTeams])
@audit_action('modify_team_member')
def team_member_detail(request, team_id, user_id):
    team = _get_team(team_id)
    membership = _get_membership(team, user_id)

    if request.method == "DELETE":
        membership.delete()
        return Response({"success": True})

    serializer = TeamMemberUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    membership.is_manager = serializer.validated_data.get('is_manager', not membership.is_manager)
    membership.save(update_fields=['is_manager'])
    return Response(TeamMemberSerializer(membership).data)


def _replace_assignments(request, team, relation, model):
    serializer = IdListSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    ids = sorted(set(serializer.validated_data['ids']))
    found = list(model.objects.filter(pk__in=ids).values_list('pk', flat=True))
    missing = sorted(set(ids) - set(found))
    if missing:
        raise serializers.ValidationError({'ids': [f"存在しないIDです: {missing}"]})
    getattr(team, relation).set(found)
    return Response({"success": True, "ids": sorted(found)})


@api_view(["PUT"])
@permission_classes([CanManageTeams])
@audit_action('assign_team_templates')
def team_templates(request, team_id):
    return _replace_assignments(request, _get_team(team_id), 'templates', Template)


@api_view(["PUT"])
@permission_classes([CanManageTeams])
@audit_action('assign_team_output_rules')
def team_output_rules(request, team_id):
    return _replace_assignments(request, _get_team(team_id), 'output_rules', OutputRule)
