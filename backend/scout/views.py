"""
API views for authentication, users, configuration entities and generation.
"""
import logging

from django.contrib.auth import authenticate, get_user_model
from django.contrib.auth.signals import user_logged_in
from django.db import IntegrityError, transaction
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from scout import policies
from scout.audit import audit_action
from scout.authentication import issue_token
from scout.exceptions import ConflictError, InvalidCredentials, SelfDeleteForbidden
from scout.generation import generate_scout_comment
from scout.models import (
    GenerationHistory,
    JobType,
    OutputRule,
    OutputRuleAssignment,
    Template,
    TemplateAssignment,
)
from scout.permissions import SafeMethod, requires
from scout.policies import caller_can, scope_assigned
from scout.prompts import GenerationInputs, GenerationReference
from scout.serializers import (
    AssignUsersSerializer,
    DuplicateTemplateSerializer,
    GenerateRequestSerializer,
    GenerationHistorySerializer,
    JobTypeSerializer,
    LoginSerializer,
    OutputRuleSerializer,
    SelfUpdateSerializer,
    TemplateSerializer,
    UserSerializer,
    UserWriteSerializer,
)

logger = logging.getLogger(__name__)
User = get_user_model()

CanViewConfig = SafeMethod & requires(policies.VIEW_CONFIG)


def _ensure_unique(model, field, value, exclude_pk=None):
    qs = model.objects.filter(**{field: value})
    if exclude_pk is not None:
        qs = qs.exclude(pk=exclude_pk)
    if qs.exists():
        raise ConflictError()


def _save_unique(serializer, **kwargs):
    """Save inside a savepoint; a unique-constraint race becomes a 409."""
    try:
        with transaction.atomic():
            return serializer.save(**kwargs)
    except IntegrityError:
        raise ConflictError()


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def health(request):
    return Response({'status': 'ok'})


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def login(request):
    """
    Exchange username/password for a bearer token.

    Failed attempts (including inactive accounts) are reported through
    ``user_login_failed`` by ``authenticate`` and never produce a LoginLog.
    """
    serializer = LoginSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    user = authenticate(
        request._request,
        username=serializer.validated_data['username'],
        password=serializer.validated_data['password'],
    )
    if user is None:
        raise InvalidCredentials()

    user_logged_in.send(sender=user.__class__, request=request._request, user=user)
    return Response({
        'success': True,
        'token': issue_token(user),
        'user': UserSerializer(user).data,
    })


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated])
@audit_action('update_own_account')
def me(request):
    """Read or update the caller's own username/password."""
    user = request.user
    if request.method == 'GET':
        return Response(UserSerializer(user).data)

    serializer = SelfUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    if 'username' in data:
        _ensure_unique(User, 'username', data['username'], exclude_pk=user.pk)
        user.username = data['username']
    if 'password' in data:
        user.set_password(data['password'])
    try:
        with transaction.atomic():
            user.save()
    except IntegrityError:
        raise ConflictError()
    return Response(UserSerializer(user).data)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

@api_view(['GET', 'POST'])
@permission_classes([(SafeMethod & requires(policies.VIEW_USERS)) | requires(policies.MANAGE_USERS)])
@audit_action('create_user')
def users(request):
    if request.method == 'GET':
        qs = policies.scope_user_rows(
            request, User.objects.select_related('account').order_by('id'), field='id'
        )
        return Response(UserSerializer(qs, many=True).data)

    serializer = UserWriteSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    _ensure_unique(User, 'username', serializer.validated_data['username'])
    user = _save_unique(serializer)
    return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([(SafeMethod & requires(policies.VIEW_USERS)) | requires(policies.MANAGE_USERS)])
@audit_action('modify_user')
def user_detail(request, user_id):
    qs = policies.scope_user_rows(request, User.objects.select_related('account'), field='id')
    user = get_object_or_404(qs, pk=user_id)

    if request.method == 'GET':
        return Response(UserSerializer(user).data)

    if request.method == 'DELETE':
        if user.pk == request.user.pk:
            raise SelfDeleteForbidden()
        user.delete()
        return Response({'success': True})

    serializer = UserWriteSerializer(user, data=request.data, partial=True)
    serializer.is_valid(raise_exception=True)
    if 'username' in serializer.validated_data:
        _ensure_unique(User, 'username', serializer.validated_data['username'], exclude_pk=user.pk)
    user = _save_unique(serializer)
    return Response(UserSerializer(user).data)


# ---------------------------------------------------------------------------
# Job types
# ---------------------------------------------------------------------------

@api_view(['GET', 'POST'])
@permission_classes([CanViewConfig | requires(policies.MANAGE_CONFIG)])
@audit_action('create_job_type')
def job_types(request):
    if request.method == 'GET':
        return Response(JobTypeSerializer(JobType.objects.order_by('created_at', 'id'), many=True).data)

    serializer = JobTypeSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    _ensure_unique(JobType, 'name', serializer.validated_data['name'])
    job_type = _save_unique(serializer)
    return Response(JobTypeSerializer(job_type).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([CanViewConfig | requires(policies.MANAGE_CONFIG)])
@audit_action('modify_job_type')
def job_type_detail(request, job_type_id):
    job_type = get_object_or_404(JobType, pk=job_type_id)
    if request.method == 'GET':
        return Response(JobTypeSerializer(job_type).data)

    if request.method == 'DELETE':
        job_type.delete()
        return Response({'success': True})

    serializer = JobTypeSerializer(job_type, data=request.data, partial=True)
    serializer.is_valid(raise_exception=True)
    if 'name' in serializer.validated_data:
        _ensure_unique(JobType, 'name', serializer.validated_data['name'], exclude_pk=job_type.pk)
    job_type = _save_unique(serializer)
    return Response(JobTypeSerializer(job_type).data)


# ---------------------------------------------------------------------------
# Output rules
# ---------------------------------------------------------------------------

@api_view(['GET', 'POST'])
@permission_classes([CanViewConfig | requires(policies.MANAGE_CONFIG)])
@audit_action('create_output_rule')
def output_rules(request):
    if request.method == 'GET':
        qs = scope_assigned(request, OutputRule.objects.all()).order_by('created_at', 'id')
        active = request.query_params.get('active')
        if active is not None:
            qs = qs.filter(is_active=active.lower() in ('1', 'true', 'yes'))
        return Response(OutputRuleSerializer(qs, many=True).data)

    serializer = OutputRuleSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    with transaction.atomic():
        rule = serializer.save(created_by=request.user)
        if not caller_can(request, policies.UNSCOPED):
            OutputRuleAssignment.objects.create(output_rule=rule, user=request.user)
    return Response(OutputRuleSerializer(rule).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([CanViewConfig | requires(policies.MANAGE_CONFIG)])
@audit_action('modify_output_rule')
def output_rule_detail(request, rule_id):
    rule = get_object_or_404(scope_assigned(request, OutputRule.objects.all()), pk=rule_id)
    if request.method == 'GET':
        return Response(OutputRuleSerializer(rule).data)

    if request.method == 'DELETE':
        rule.delete()
        return Response({'success': True})

    serializer = OutputRuleSerializer(rule, data=request.data, partial=True)
    serializer.is_valid(raise_exception=True)
    rule = serializer.save()
    return Response(OutputRuleSerializer(rule).data)


@api_view(['GET', 'PUT'])
@permission_classes([requires(policies.MANAGE_CONFIG)])
@audit_action('assign_output_rule_users')
def output_rule_users(request, rule_id):
    rule = get_object_or_404(scope_assigned(request, OutputRule.objects.all()), pk=rule_id)
    if request.method == 'GET':
        assigned = rule.assigned_users.select_related('account').order_by('id')
        return Response(UserSerializer(assigned, many=True).data)

    serializer = AssignUsersSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    with transaction.atomic():
        OutputRuleAssignment.objects.filter(output_rule=rule).delete()
        OutputRuleAssignment.objects.bulk_create([
            OutputRuleAssignment(output_rule=rule, user_id=pk) for pk in serializer.validated_data['user_ids']
        ])
    return Response({'success': True, 'user_ids': serializer.validated_data['user_ids']})


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

def _visible_templates(request):
    return scope_assigned(request, Template.objects.select_related('job_type', 'output_rule'))


@api_view(['GET', 'POST'])
@permission_classes([CanViewConfig | requires(policies.MANAGE_TEMPLATES)])
@audit_action('create_template')
def templates(request):
    if request.method == 'GET':
        qs = _visible_templates(request).order_by('-created_at', '-id')
        return Response(TemplateSerializer(qs, many=True).data)

    serializer = TemplateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    _ensure_unique(Template, 'name', serializer.validated_data['name'])
    try:
        with transaction.atomic():
            template = serializer.save(created_by=request.user)
            if not caller_can(request, policies.UNSCOPED):
                TemplateAssignment.objects.create(template=template, user=request.user)
    except IntegrityError:
        raise ConflictError()
    return Response(
        {'success': True, 'id': template.id, **TemplateSerializer(template).data},
        status=status.HTTP_201_CREATED,
    )


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([CanViewConfig | requires(policies.MANAGE_TEMPLATES)])
@audit_action('modify_template')
def template_detail(request, template_id):
    template = get_object_or_404(_visible_templates(request), pk=template_id)
    if request.method == 'GET':
        return Response(TemplateSerializer(template).data)

    if request.method == 'DELETE':
        template.delete()
        return Response({'success': True})

    serializer = TemplateSerializer(template, data=request.data, partial=True)
    serializer.is_valid(raise_exception=True)
    if 'name' in serializer.validated_data:
        _ensure_unique(Template, 'name', serializer.validated_data['name'], exclude_pk=template.pk)
    template = _save_unique(serializer)
    return Response({'success': True, 'id': template.id, **TemplateSerializer(template).data})


def duplicate_name(source_name, now=None):
    now = timezone.localtime(now or timezone.now())
    return f"{source_name}_{now.strftime('%Y%m%d%H%M%S')}"


@api_view(['POST'])
@permission_classes([requires(policies.VIEW_CONFIG)])
@audit_action('duplicate_template')
def template_duplicate(request, template_id):
    """
    Copy a template and its assignments in one transaction.

    Callers with ``unscoped`` carry over every user assignment of the source;
    anyone else is the only user assigned to the copy.
    """
    source = get_object_or_404(_visible_templates(request), pk=template_id)
    serializer = DuplicateTemplateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    name = (serializer.validated_data.get('template_name') or '').strip() or duplicate_name(source.name)
    _ensure_unique(Template, 'name', name)

    try:
        with transaction.atomic():
            copy = Template.objects.create(
                name=name,
                job_type=source.job_type,
                industry=source.industry,
                company_requirement=source.company_requirement,
                offer_template=source.offer_template,
                output_rule=source.output_rule,
                created_by=request.user,
            )
            if caller_can(request, policies.UNSCOPED):
                user_ids = list(source.assignments.values_list('user_id', flat=True))
            else:
                user_ids = [request.user.id]
            TemplateAssignment.objects.bulk_create([
                TemplateAssignment(template=copy, user_id=pk) for pk in user_ids
            ])
    except IntegrityError:
        raise ConflictError()

    logger.info("Duplicated template %s -> %s by user_id=%s", source.id, copy.id, request.user.id)
    return Response(
        {'success': True, 'id': copy.id, **TemplateSerializer(copy).data},
        status=status.HTTP_201_CREATED,
    )


@api_view(['GET'])
@permission_classes([requires(policies.MANAGE_TEMPLATES)])
def template_users(request, template_id):
    template = get_object_or_404(_visible_templates(request), pk=template_id)
    assigned = template.assigned_users.select_related('account').order_by('id')
    return Response(UserSerializer(assigned, many=True).data)


@api_view(['PUT'])
@permission_classes([requires(policies.MANAGE_TEMPLATES)])
@audit_action('assign_template_users')
def template_assign_users(request, template_id):
    template = get_object_or_404(_visible_templates(request), pk=template_id)
    serializer = AssignUsersSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    with transaction.atomic():
        TemplateAssignment.objects.filter(template=template).delete()
        TemplateAssignment.objects.bulk_create([
            TemplateAssignment(template=template, user_id=pk) for pk in serializer.validated_data['user_ids']
        ])
    return Response({'success': True, 'user_ids': serializer.validated_data['user_ids']})


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

@api_view(['POST'])
@permission_classes([requires(policies.GENERATE)])
def generate(request):
    """Generate the fill-in portion of an offer message for one candidate."""
    serializer = GenerateRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    reference = GenerationReference(
        job_type_id=data['job_type_id'],
        output_rule_id=data['output_rule_id'],
        template_id=data.get('template_id'),
    )
    inputs = GenerationInputs(
        industry=data['industry'],
        company_requirement=data['company_requirement'],
        offer_template=data['offer_template'],
        student_profile=data['student_profile'],
    )
    result = generate_scout_comment(request.user, reference, inputs)
    return Response({
        'success': True,
        'comment': result.text,
        'usage': {
            'input_tokens': result.input_tokens,
            'output_tokens': result.output_tokens,
            'total_tokens': result.total_tokens,
        },
    })


@api_view(['GET'])
@permission_classes([requires(policies.OWN_HISTORY)])
def my_generation_history(request):
    qs = GenerationHistory.objects.filter(user=request.user).order_by('-created_at', '-id')
    return Response(GenerationHistorySerializer(qs, many=True).data)


@api_view(['DELETE'])
@permission_classes([requires(policies.OWN_HISTORY)])
def my_generation_history_detail(request, history_id):
    # Other users' rows are indistinguishable from missing ones
    entry = get_object_or_404(GenerationHistory, pk=history_id, user=request.user)
    entry.delete()
    return Response({'success': True})
