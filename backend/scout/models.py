# backend/scout/models.py
from django.conf import settings
from django.db import models


ROLE_USER = 'user'
ROLE_MANAGER = 'manager'
ROLE_ADMIN = 'admin'


class UserAccount(models.Model):
    """Application-level account record holding the caller's role.

    Linked one-to-one to Django's auth user, which owns the username,
    password hash and active flag.
    """
    ROLE_CHOICES = [
        (ROLE_USER, 'User'),
        (ROLE_MANAGER, 'Manager'),
        (ROLE_ADMIN, 'Admin'),
    ]

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='account')
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_USER)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [models.Index(fields=['role'], name='scout_account_role_idx')]

    def __str__(self):
        return f"{self.user_id} ({self.role})"


class JobType(models.Model):
    """Named aptitude definition used to bias what a scout message emphasizes."""
    name = models.CharField(max_length=100, unique=True)
    definition = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['created_at', 'id']

    def __str__(self):
        return self.name


class OutputRule(models.Model):
    """Free-text tone/format/length instructions for the generator."""
    name = models.CharField(max_length=200)
    rule_text = models.TextField()
    description = models.TextField(blank=True, default='')
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_output_rules'
    )
    assigned_users = models.ManyToManyField(
        settings.AUTH_USER_MODEL, through='OutputRuleAssignment', related_name='assigned_output_rules', blank=True
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['created_at', 'id']

    def __str__(self):
        return self.name


class OutputRuleAssignment(models.Model):
    output_rule = models.ForeignKey(OutputRule, on_delete=models.CASCADE, related_name='assignments')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='output_rule_assignments')
    assigned_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = [('output_rule', 'user')]


class Template(models.Model):
    """Reusable set of generation inputs a user selects before generating."""
    name = models.CharField(max_length=200, unique=True)
    job_type = models.ForeignKey(JobType, on_delete=models.SET_NULL, null=True, blank=True, related_name='templates')
    industry = models.CharField(max_length=200, blank=True, default='')
    company_requirement = models.TextField(blank=True, default='')
    # Contains 【】 fill-in markers
    offer_template = models.TextField(blank=True, default='')
    output_rule = models.ForeignKey(OutputRule, on_delete=models.SET_NULL, null=True, blank=True, related_name='templates')
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_templates'
    )
    assigned_users = models.ManyToManyField(
        settings.AUTH_USER_MODEL, through='TemplateAssignment', related_name='assigned_templates', blank=True
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at', '-id']

    def __str__(self):
        return self.name


class TemplateAssignment(models.Model):
    template = models.ForeignKey(Template, on_delete=models.CASCADE, related_name='assignments')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='template_assignments')
    assigned_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = [('template', 'user')]


class Team(models.Model):
    """Group of users; managers inside a team see its members' activity."""
    name = models.CharField(max_length=180, unique=True)
    description = models.TextField(blank=True, default='')
    templates = models.ManyToManyField(Template, related_name='teams', blank=True)
    output_rules = models.ManyToManyField(OutputRule, related_name='teams', blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name


class TeamMember(models.Model):
    team = models.ForeignKey(Team, on_delete=models.CASCADE, related_name='members')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='team_memberships')
    is_manager = models.BooleanField(default=False)
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = [('team', 'user')]
        indexes = [
            models.Index(fields=['user', 'is_manager'], name='scout_member_user_mgr_idx'),
        ]

    def __str__(self):
        return f"{self.user_id} in {self.team_id}{' (manager)' if self.is_manager else ''}"


class GenerationHistory(models.Model):
    """Append-only record of one generation request and its output.

    Descriptive fields are copies taken at generation time, so later edits or
    deletions of templates, job types and rules never alter history.
    """
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='generation_history'
    )
    username = models.CharField(max_length=150)
    template_name = models.CharField(max_length=200, blank=True, default='')
    job_type = models.CharField(max_length=100)
    industry = models.CharField(max_length=200)
    company_requirement = models.TextField(blank=True, default='')
    output_rule_name = models.CharField(max_length=200, blank=True, default='')
    student_profile = models.TextField()
    generated_comment = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['user', '-created_at'], name='scout_history_user_idx'),
        ]


class UsageLog(models.Model):
    """Token usage and cost reported for one successful provider call."""
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='usage_logs'
    )
    model = models.CharField(max_length=100, blank=True, default='')
    input_tokens = models.PositiveIntegerField(default=0)
    output_tokens = models.PositiveIntegerField(default=0)
    total_tokens = models.PositiveIntegerField(default=0)
    total_cost = models.DecimalField(max_digits=14, decimal_places=6, default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['-created_at'], name='scout_usage_created_idx'),
        ]


class LoginLog(models.Model):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='login_logs'
    )
    username = models.CharField(max_length=150)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True, default='')
    login_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-login_at', '-id']
        indexes = [
            models.Index(fields=['user', '-login_at'], name='scout_login_user_idx'),
        ]


class ActivityLog(models.Model):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='activity_logs'
    )
    username = models.CharField(max_length=150, blank=True, default='')
    action = models.CharField(max_length=100)
    # {"path": ..., "method": ..., "body": ...}
    details = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['user', '-created_at'], name='scout_activity_user_idx'),
            models.Index(fields=['action', '-created_at'], name='scout_activity_action_idx'),
        ]
