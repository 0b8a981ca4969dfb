"""
Serializers for the scout API. Field names follow what the front end sends
and reads (``template_name``, ``rule_name``, ``user_role`` ...).
"""
from django.contrib.auth import get_user_model
from rest_framework import serializers

from scout.models import (
    ActivityLog,
    GenerationHistory,
    JobType,
    LoginLog,
    OutputRule,
    Team,
    TeamMember,
    Template,
    UserAccount,
)

User = get_user_model()

STATUS_ACTIVE = 'active'
STATUS_INACTIVE = 'inactive'


def user_role(user):
    account = getattr(user, 'account', None)
    return account.role if account is not None else 'user'


def _set_role(user, role):
    # Write through the cached account so the response echoes the new role
    try:
        account = user.account
    except UserAccount.DoesNotExist:
        account = UserAccount.objects.create(user=user)
    account.role = role
    account.save(update_fields=['role', 'updated_at'])


class UserSerializer(serializers.Serializer):
    id = serializers.IntegerField(read_only=True)
    username = serializers.CharField(read_only=True)
    user_status = serializers.SerializerMethodField()
    user_role = serializers.SerializerMethodField()
    last_login_at = serializers.DateTimeField(source='last_login', read_only=True)
    created_at = serializers.DateTimeField(source='date_joined', read_only=True)

    def get_user_status(self, obj):
        return STATUS_ACTIVE if obj.is_active else STATUS_INACTIVE

    def get_user_role(self, obj):
        return user_role(obj)


class UserWriteSerializer(serializers.Serializer):
    """Create (all fields required) or update (partial) a user account."""
    username = serializers.CharField(max_length=150)
    password = serializers.CharField(min_length=6, write_only=True, trim_whitespace=False)
    user_status = serializers.ChoiceField(choices=[STATUS_ACTIVE, STATUS_INACTIVE], default=STATUS_ACTIVE)
    user_role = serializers.ChoiceField(choices=[choice for choice, _ in UserAccount.ROLE_CHOICES], default='user')

    def create(self, validated_data):
        user = User(username=validated_data['username'], is_active=validated_data['user_status'] == STATUS_ACTIVE)
        user.set_password(validated_data['password'])
        user.save()
        _set_role(user, validated_data['user_role'])
        return user

    def update(self, instance, validated_data):
        if 'username' in validated_data:
            instance.username = validated_data['username']
        if 'password' in validated_data:
            instance.set_password(validated_data['password'])
        if 'user_status' in validated_data:
            instance.is_active = validated_data['user_status'] == STATUS_ACTIVE
        instance.save()
        if 'user_role' in validated_data:
            _set_role(instance, validated_data['user_role'])
        return instance


class SelfUpdateSerializer(serializers.Serializer):
    username = serializers.CharField(max_length=150, required=False)
    password = serializers.CharField(min_length=6, write_only=True, required=False, trim_whitespace=False)


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField(trim_whitespace=False)


class JobTypeSerializer(serializers.ModelSerializer):
    # Uniqueness surfaces as 409 from the view rather than a 400 here
    name = serializers.CharField(max_length=100)

    class Meta:
        model = JobType
        fields = ['id', 'name', 'definition', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']


class OutputRuleSerializer(serializers.ModelSerializer):
    rule_name = serializers.CharField(source='name', max_length=200)

    class Meta:
        model = OutputRule
        fields = ['id', 'rule_name', 'rule_text', 'description', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']


class TemplateSerializer(serializers.ModelSerializer):
    template_name = serializers.CharField(source='name', max_length=200)
    job_type_id = serializers.PrimaryKeyRelatedField(source='job_type', queryset=JobType.objects.all())
    job_type = serializers.SerializerMethodField()
    output_rule_id = serializers.PrimaryKeyRelatedField(source='output_rule', queryset=OutputRule.objects.all())
    output_rule_name = serializers.SerializerMethodField()

    class Meta:
        model = Template
        fields = [
            'id', 'template_name', 'job_type_id', 'job_type', 'industry', 'company_requirement',
            'offer_template', 'output_rule_id', 'output_rule_name', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def get_job_type(self, obj):
        return obj.job_type.name if obj.job_type_id else None

    def get_output_rule_name(self, obj):
        return obj.output_rule.name if obj.output_rule_id else None


class AssignUsersSerializer(serializers.Serializer):
    user_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=True)

    def validate_user_ids(self, value):
        ids = sorted(set(value))
        found = set(User.objects.filter(pk__in=ids).values_list('pk', flat=True))
        missing = [pk for pk in ids if pk not in found]
        if missing:
            raise serializers.ValidationError(f'存在しないユーザーIDです: {missing}')
        return ids


class DuplicateTemplateSerializer(serializers.Serializer):
    template_name = serializers.CharField(max_length=200, required=False, allow_blank=True)


class GenerateRequestSerializer(serializers.Serializer):
    job_type_id = serializers.IntegerField(min_value=1)
    industry = serializers.CharField(max_length=200)
    company_requirement = serializers.CharField()
    offer_template = serializers.CharField()
    student_profile = serializers.CharField()
    output_rule_id = serializers.IntegerField(min_value=1)
    template_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)


class GenerationHistorySerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = GenerationHistory
        fields = [
            'id', 'user_id', 'username', 'template_name', 'job_type', 'industry', 'company_requirement',
            'output_rule_name', 'student_profile', 'generated_comment', 'created_at',
        ]
        read_only_fields = fields


class LoginLogSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = LoginLog
        fields = ['id', 'user_id', 'username', 'ip_address', 'user_agent', 'login_at']
        read_only_fields = fields


class ActivityLogSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = ActivityLog
        fields = ['id', 'user_id', 'username', 'action', 'details', 'created_at']
        read_only_fields = fields


class TeamMemberSerializer(serializers.ModelSerializer):
    id = serializers.IntegerField(source='user_id', read_only=True)
    username = serializers.CharField(source='user.username', read_only=True)
    user_role = serializers.SerializerMethodField()

    class Meta:
        model = TeamMember
        fields = ['id', 'username', 'user_role', 'is_manager', 'joined_at']
        read_only_fields = fields

    def get_user_role(self, obj):
        return user_role(obj.user)


class TeamSerializer(serializers.ModelSerializer):
    team_name = serializers.CharField(source='name', max_length=180)
    member_count = serializers.SerializerMethodField()

    class Meta:
        model = Team
        fields = ['id', 'team_name', 'description', 'member_count', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']

    def get_member_count(self, obj):
        return obj.members.count()


class TeamDetailSerializer(TeamSerializer):
    members = TeamMemberSerializer(many=True, read_only=True)
    template_ids = serializers.SerializerMethodField()
    output_rule_ids = serializers.SerializerMethodField()

    class Meta(TeamSerializer.Meta):
        fields = TeamSerializer.Meta.fields + ['members', 'template_ids', 'output_rule_ids']

    def get_template_ids(self, obj):
        return list(obj.templates.values_list('id', flat=True))

    def get_output_rule_ids(self, obj):
        return list(obj.output_rules.values_list('id', flat=True))


class TeamMemberWriteSerializer(serializers.Serializer):
    user_id = serializers.IntegerField(min_value=1)
    is_manager = serializers.BooleanField(default=False)

    def validate_user_id(self, value):
        if not User.objects.filter(pk=value).exists():
            raise serializers.ValidationError('ユーザーが見つかりません。')
        return value


class TeamMemberUpdateSerializer(serializers.Serializer):
    # Omitted means toggle
    is_manager = serializers.BooleanField(required=False)


class IdListSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=True)
